"""
Wiring — builds the collaborators from Settings at construction time.

    settings = Settings.from_env()
    storage = await build_storage(settings)
    backend = build_backend(settings, http)
    verifier = build_verifier(settings, backend)

Nothing downstream knows which Storage or verifier it was handed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import httpx
from sqlalchemy.engine import make_url

from paysync._types import Clock, Sleep
from paysync.config import Settings
from paysync.gateway import HttpBackendApi
from paysync.resilience import CircuitBreaker, ResilientClient
from paysync.store import (
    MemoryStorage,
    RemoteStorage,
    SQLAlchemyStorage,
    Storage,
    create_database,
)
from paysync.webhook import BackendSignatureVerifier, HexSignatureVerifier, SignatureVerifier

logger = logging.getLogger(__name__)


def build_client(
    settings: Settings,
    http: httpx.AsyncClient | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> ResilientClient:
    """A ResilientClient with its own breaker, configured from settings."""
    return ResilientClient(
        http,
        breaker=CircuitBreaker(settings.breaker),
        timeout=settings.timeout,
        sleep=sleep,
    )


def build_http(settings: Settings) -> httpx.AsyncClient:
    """Caller owns the client and must close it (`await http.aclose()`)."""
    if not settings.backend_url:
        raise ValueError("backend_url is not configured")
    return httpx.AsyncClient(base_url=settings.backend_url)


async def build_storage(
    settings: Settings,
    *,
    http: httpx.AsyncClient | None = None,
    clock: Clock = datetime.now,
    sleep: Sleep = asyncio.sleep,
) -> Storage:
    """
    Remote backend when `backend_url` is set, SQLAlchemy when
    `database_url` is set, memory otherwise.
    """
    if settings.backend_url:
        logger.info("storage: remote backend at %s", settings.backend_url)
        client = build_client(settings, http or build_http(settings), sleep=sleep)
        return RemoteStorage(client)

    if settings.database_url:
        dialect = make_url(settings.database_url).get_backend_name()
        logger.info("storage: %s database", dialect)
        session_factory, engine = await create_database(settings.database_url)
        return SQLAlchemyStorage(session_factory, dialect=dialect, clock=clock, engine=engine)

    logger.info("storage: in-memory")
    return MemoryStorage(clock=clock)


def build_backend(
    settings: Settings,
    http: httpx.AsyncClient | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> HttpBackendApi:
    return HttpBackendApi(build_client(settings, http, sleep=sleep))


def build_verifier(settings: Settings, backend: HttpBackendApi | None = None) -> SignatureVerifier:
    """Backend verification when a backend exists, format check otherwise."""
    if settings.backend_url and backend is not None:
        return BackendSignatureVerifier(backend)
    logger.warning("no backend configured, notification signatures are only format-checked")
    return HexSignatureVerifier()


__all__ = (
    "build_client",
    "build_http",
    "build_storage",
    "build_backend",
    "build_verifier",
)
