"""FastAPI dependency providers.

Process-wide services are created in the app lifespan and registered here
with ``set_dependencies``; route handlers receive them through ``Depends``.
"""

import hmac
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader, APIKeyQuery
from sqlalchemy.ext.asyncio import AsyncSession

from stillnoob.config import get_settings

_session_factory = None
_wcl_factory = None
_raiderio = None


def set_dependencies(session_factory, wcl_factory=None, raiderio=None) -> None:
    global _session_factory, _wcl_factory, _raiderio
    _session_factory = session_factory
    _wcl_factory = wcl_factory
    _raiderio = raiderio


async def get_db() -> AsyncGenerator[AsyncSession]:
    """One session per request, closed when the response is sent."""
    if _session_factory is None:
        raise RuntimeError("DB not initialized")
    async with _session_factory() as session:
        yield session


def get_wcl_factory():
    """The shared WCL factory, or None while WCL credentials are unset."""
    return _wcl_factory if get_settings().wcl.has_credentials else None


def get_raiderio():
    return _raiderio


def api_key_matches(provided: str | None, expected: str) -> bool:
    return bool(provided) and hmac.compare_digest(provided, expected)


async def verify_api_key(
    header_key: str | None = Depends(APIKeyHeader(name="X-API-Key", auto_error=False)),
    query_key: str | None = Depends(APIKeyQuery(name="api_key", auto_error=False)),
) -> None:
    """401 unless the configured key arrives as header or query param.

    An empty ``API_KEY`` setting turns the check off.
    """
    expected = get_settings().api_key
    if expected and not api_key_matches(header_key or query_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
