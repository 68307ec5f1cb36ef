"""In-memory session state.

A session is active while ``expires_at_ms > now``. Expiry is evaluated on
every read; nothing sweeps or times out stored sessions.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_iso(value: int) -> str:
    """Format an epoch-millisecond timestamp as ISO-8601 UTC."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat(
        timespec="milliseconds"
    )


def mask_token(token: str, visible: int = 6) -> str:
    """Keep only a short prefix of a session token for display."""
    if len(token) <= visible:
        return token
    return token[:visible] + "***"


@dataclass(frozen=True)
class Session:
    """A remote-service session returned by a successful login."""

    token: str
    expires_at_ms: int
    login_time_ms: int | None = None

    def is_active_at(self, at_ms: int) -> bool:
        return self.expires_at_ms > at_ms

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "expires_at_ms": self.expires_at_ms,
            "login_time_ms": self.login_time_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        token = data["token"]
        expires = data["expires_at_ms"]
        login_time = data.get("login_time_ms")
        if not isinstance(token, str) or not isinstance(expires, int):
            raise TypeError("session record has mistyped token or expiry")
        if login_time is not None and not isinstance(login_time, int):
            raise TypeError("session record has mistyped login time")
        return cls(token=token, expires_at_ms=expires, login_time_ms=login_time)


class SessionManager:
    """Single-slot holder for the process's current session.

    Each AuthFacade receives its own instance; there is no module-level
    singleton.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or now_ms
        self._session: Session | None = None

    def set(self, session: Session) -> None:
        """Replace any existing session."""
        self._session = session

    def get(self) -> Session | None:
        return self._session

    def clear(self) -> None:
        self._session = None

    def is_active(self) -> bool:
        """False when unset, else whether the session expires in the future."""
        if self._session is None:
            return False
        return self._session.is_active_at(self._clock())
