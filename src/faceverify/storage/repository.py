"""Embedding repository: persistence for encoded faces.

The pipeline only inserts embeddings and reads back the generated id and
timestamp. ``get`` and ``count`` form the read side for operators and
maintenance scripts; no request path depends on them.
``SqlEmbeddingRepository`` stores rows through SQLAlchemy;
``InMemoryEmbeddingRepository`` keeps them in a dict for tests and
throwaway deployments.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from faceverify.errors import StorageError
from faceverify.storage.models import Base, FaceEmbeddingRow

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredEmbeddingRecord:
    id: int
    embedding: list[float]
    created_at: datetime


class EmbeddingRepository(Protocol):
    """Protocol for embedding persistence.

    ``insert`` is the write path used by the encode flow. ``get`` and ``count``
    are the read API offered to callers outside the request pipeline.
    """

    def insert(self, embedding: Sequence[float]) -> StoredEmbeddingRecord:
        """Store an embedding and return the created record."""
        ...

    def get(self, record_id: int) -> StoredEmbeddingRecord | None:
        """Return a stored record, or None if it does not exist."""
        ...

    def count(self) -> int:
        """Return the number of stored records."""
        ...


class SqlEmbeddingRepository:
    """Stores embeddings in a relational database via SQLAlchemy."""

    def __init__(self, database_url: str) -> None:
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self._engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)

    def create_tables(self) -> None:
        """Create the face_embeddings table if it does not exist."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to initialize database: {exc}") from exc
        logger.info("Database tables ready")

    def insert(self, embedding: Sequence[float]) -> StoredEmbeddingRecord:
        row = FaceEmbeddingRow(embedding=[float(v) for v in embedding])
        try:
            with self._session_factory.begin() as session:
                session.add(row)
                session.flush()
                record = self._to_record(row)
        except SQLAlchemyError as exc:
            logger.error("Failed to store embedding: %s", exc)
            raise StorageError() from exc
        logger.info("Embedding stored with ID: %s", record.id)
        return record

    def get(self, record_id: int) -> StoredEmbeddingRecord | None:
        try:
            with self._session_factory() as session:
                row = session.get(FaceEmbeddingRow, record_id)
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read embedding {record_id}") from exc

    def count(self) -> int:
        try:
            with self._session_factory() as session:
                return int(session.scalar(select(func.count()).select_from(FaceEmbeddingRow)) or 0)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to count embeddings") from exc

    def close(self) -> None:
        self._engine.dispose()
        logger.info("Database connections closed")

    @staticmethod
    def _to_record(row: FaceEmbeddingRow) -> StoredEmbeddingRecord:
        return StoredEmbeddingRecord(id=row.id, embedding=list(row.embedding), created_at=row.created_at)


class InMemoryEmbeddingRepository:
    """Keeps embeddings in process memory."""

    def __init__(self) -> None:
        self._records: dict[int, StoredEmbeddingRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def insert(self, embedding: Sequence[float]) -> StoredEmbeddingRecord:
        with self._lock:
            record = StoredEmbeddingRecord(
                id=next(self._ids),
                embedding=[float(v) for v in embedding],
                created_at=datetime.now(UTC),
            )
            self._records[record.id] = record
        return record

    def get(self, record_id: int) -> StoredEmbeddingRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def count(self) -> int:
        with self._lock:
            return len(self._records)
