"""
HTTPX AsyncClient factory for the default transport.

httpx connection pools belong to the event loop that opened them, so the
factory keeps one lazily-built ``httpx.AsyncClient`` per event loop, and
rebuilds them after ``fork()`` (PID-aware).

Architecture:
1. get_http_client(settings) → AsyncClient for the running loop
2. Event hooks from instrumentation log one net.request record per attempt
3. aclose_http_clients() closes the client of the running loop
4. reset_http_client() drops every cached client (for testing)
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import weakref
from typing import TYPE_CHECKING, Optional

import httpx

from .instrumentation import create_http_event_hooks

if TYPE_CHECKING:
    from TypedAPI.settings import APISettings

logger = logging.getLogger(__name__)

# ============================================================================
# Singleton State (PID-aware for fork safety, one client per loop)
# ============================================================================

_CLIENTS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, httpx.AsyncClient]" = (
    weakref.WeakKeyDictionary()
)
_BIND_HASH: Optional[str] = None
_BIND_PID: Optional[int] = None
_LOCK = threading.Lock()


# ============================================================================
# Client Factory
# ============================================================================


def get_http_client(settings: Optional["APISettings"] = None) -> httpx.AsyncClient:
    """
    Lazy AsyncClient factory bound to the running event loop.

    Settings changes mid-process are warned but don't trigger a rebuild.

    Args:
        settings: APISettings instance (defaults to the process settings)

    Returns:
        httpx.AsyncClient configured per settings

    Raises:
        RuntimeError: if no event loop is running in this thread
    """
    global _BIND_HASH, _BIND_PID

    if settings is None:
        from TypedAPI.settings import get_settings  # Local import to avoid circular dependency

        settings = get_settings()

    loop = asyncio.get_running_loop()
    pid = os.getpid()

    with _LOCK:
        if _BIND_PID != pid:
            # Fork detected: inherited clients share sockets with the parent
            _CLIENTS.clear()
            _BIND_PID = pid
            _BIND_HASH = None

        client = _CLIENTS.get(loop)
        if client is None or client.is_closed:
            logger.debug("Creating new HTTPX AsyncClient (pid=%s, loop=%s)", pid, id(loop))
            client = _build_http_client(settings)
            _CLIENTS[loop] = client
            _BIND_HASH = settings.config_hash()
        elif _BIND_HASH != settings.config_hash():
            logger.warning(
                "HTTP client settings changed after binding. No hot reload; existing client unchanged."
            )
            _BIND_HASH = settings.config_hash()

    return client


async def aclose_http_clients() -> None:
    """Close the client bound to the running loop, if any."""
    loop = asyncio.get_running_loop()
    with _LOCK:
        client = _CLIENTS.pop(loop, None)
    if client is not None:
        await client.aclose()
        logger.debug("HTTPX AsyncClient closed")


def reset_http_client() -> None:
    """Forget every cached client without closing it (for testing)."""
    global _BIND_HASH, _BIND_PID
    with _LOCK:
        _CLIENTS.clear()
        _BIND_HASH = None
        _BIND_PID = None


# ============================================================================
# Client Construction
# ============================================================================


def _build_http_client(settings: "APISettings") -> httpx.AsyncClient:
    """Build a new AsyncClient from settings."""
    client = httpx.AsyncClient(
        timeout=settings.http_timeout(),
        verify=settings.verify_tls,
        trust_env=settings.trust_env,
        follow_redirects=settings.follow_redirects,
        headers={"User-Agent": settings.user_agent},
        event_hooks=create_http_event_hooks(),
    )
    logger.debug(
        "HTTPX AsyncClient created: follow_redirects=%s, verify=%s",
        settings.follow_redirects,
        settings.verify_tls,
    )
    return client


__all__ = [
    "get_http_client",
    "aclose_http_clients",
    "reset_http_client",
]
