"""Process-wide estimate of the offset between local and server time.

Managers overwrite the estimate from the ``Date`` header of every response
that carries one. The estimate is last-write-wins: no averaging, no
staleness check, no history.

Example:
    >>> from datetime import datetime, timedelta, timezone
    >>> update_server_time(datetime.now(timezone.utc) + timedelta(seconds=5))
    >>> round(get_server_time().offset)
    5
"""

from __future__ import annotations

import email.utils
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ServerTime:
    """Offset (seconds, server minus local) captured at ``captured_at``."""

    offset: float = 0.0
    captured_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_date(cls, date: datetime) -> "ServerTime":
        """Estimate built from a server timestamp observed now."""
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        now = _utcnow()
        return cls(offset=(date - now).total_seconds(), captured_at=now)

    @property
    def time(self) -> datetime:
        """Current server time, i.e. local time adjusted by the offset."""
        return _utcnow() + timedelta(seconds=self.offset)

    def date_since_now(self, seconds: float) -> datetime:
        """Server time ``seconds`` from now (negative for the past)."""
        return self.time + timedelta(seconds=seconds)


def parse_server_date(response: Any) -> Optional[datetime]:
    """Read the RFC 7231 ``Date`` header of ``response`` as an aware datetime.

    Returns ``None`` when the header is missing or unparseable.
    """
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("Date")
    if not value:
        return None
    try:
        date = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring unparseable Date header: %r", value)
        return None
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date


_SHARED = ServerTime()
_LOCK = threading.Lock()


def get_server_time() -> ServerTime:
    """Return the current process-wide estimate."""
    with _LOCK:
        return _SHARED


def set_server_time(value: ServerTime) -> None:
    """Overwrite the process-wide estimate."""
    global _SHARED
    with _LOCK:
        _SHARED = value


def update_server_time(date: datetime) -> ServerTime:
    """Overwrite the process-wide estimate from a server timestamp."""
    value = ServerTime.from_date(date)
    set_server_time(value)
    logger.debug("Server time offset updated to %.3fs", value.offset)
    return value


def reset_server_time() -> None:
    """Restore a zero offset (for testing)."""
    set_server_time(ServerTime())


__all__ = [
    "ServerTime",
    "parse_server_date",
    "get_server_time",
    "set_server_time",
    "update_server_time",
    "reset_server_time",
]
