"""API key authentication dependency."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from faceverify.errors import Unauthorized

if TYPE_CHECKING:
    from faceverify.config import Settings

_bearer_scheme = HTTPBearer(auto_error=False)
_header_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


def _get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    header_key: Annotated[str | None, Depends(_header_scheme)],
) -> None:
    """Check the caller's key against the configured API key.

    If no API key is configured (FACEVERIFY_API_KEY not set), all requests pass.
    Otherwise the key must arrive as 'Authorization: Bearer <key>' or 'X-API-Key: <key>'.
    """
    settings = _get_settings_from_request(request)
    if settings.api_key is None:
        return

    supplied = credentials.credentials if credentials is not None else header_key
    if supplied is None or not secrets.compare_digest(supplied.encode(), settings.api_key.encode()):
        raise Unauthorized()
