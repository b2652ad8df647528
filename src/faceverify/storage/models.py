"""SQLAlchemy ORM models for stored face embeddings.

CREATE TABLE face_embeddings (
    id INTEGER PRIMARY KEY,
    embedding JSON NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FaceEmbeddingRow(Base):
    __tablename__ = "face_embeddings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<FaceEmbeddingRow(id={self.id}, dim={len(self.embedding)}, created_at={self.created_at})>"
