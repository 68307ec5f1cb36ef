"""Encrypted session snapshot persistence.

SessionManager only lives as long as one process. The CLI snapshots the
session and its browser cookies here after login and restores it on the next
invocation.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from rtmctl.auth.errors import StorageError
from rtmctl.auth.session import Session, now_ms

_logger = logging.getLogger(__name__)

# Machine-local fallback key file (created once, reused)
DEFAULT_MACHINE_KEY_PATH = Path.home() / ".rtm" / ".machine_key"


def _derive_key(passphrase: str) -> bytes:
    """Derive a Fernet key from a passphrase via SHA-256."""
    return base64.urlsafe_b64encode(hashlib.sha256(passphrase.encode()).digest())


def _machine_key(path: Path) -> str:
    """Return a stable machine-local passphrase, creating one if needed."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_text().strip()
        key = uuid.uuid4().hex
        path.write_text(key)
        if os.name != "nt":
            path.chmod(0o600)
    except OSError as exc:
        raise StorageError(f"Cannot use machine key file {path}: {exc}", cause=exc) from exc
    return key


@dataclass
class SessionSnapshot:
    """A restored session plus the cookies captured at login."""

    session: Session
    cookies: list[dict] = field(default_factory=list)
    saved_at: float = 0.0


class SessionStore:
    """Save and load an encrypted session snapshot to disk."""

    def __init__(
        self,
        session_file: str | Path,
        passphrase: str | None = None,
        machine_key_file: str | Path | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._session_file = Path(session_file)
        key_material = passphrase or _machine_key(
            Path(machine_key_file) if machine_key_file else DEFAULT_MACHINE_KEY_PATH
        )
        self._fernet = Fernet(_derive_key(key_material))
        self._clock = clock or now_ms

    @property
    def path(self) -> Path:
        return self._session_file

    def save(self, session: Session, cookies: list[dict] | None = None) -> None:
        """Encrypt and write the session and cookies to disk."""
        payload = json.dumps(
            {
                "saved_at": time.time(),
                "session": session.to_dict(),
                "cookies": cookies or [],
            }
        )
        self._session_file.parent.mkdir(parents=True, exist_ok=True)
        self._session_file.write_bytes(self._fernet.encrypt(payload.encode()))
        if os.name != "nt":
            self._session_file.chmod(0o600)
        _logger.debug("Saved session snapshot to %s", self._session_file)

    def load(self) -> SessionSnapshot | None:
        """Load the snapshot. Returns None if missing, expired, or corrupt."""
        if not self._session_file.is_file():
            return None
        try:
            raw = self._fernet.decrypt(self._session_file.read_bytes())
            data = json.loads(raw)
            session = Session.from_dict(data["session"])
        except (InvalidToken, json.JSONDecodeError):
            _logger.warning("Session file corrupt or wrong passphrase; ignoring")
            return None
        except (KeyError, TypeError):
            _logger.warning("Session file has an unexpected layout; ignoring")
            return None
        except OSError as exc:
            _logger.warning("Cannot read session file %s: %s", self._session_file, exc)
            return None
        if not session.is_active_at(self._clock()):
            _logger.info("Saved session expired; ignoring")
            return None
        return SessionSnapshot(
            session=session,
            cookies=data.get("cookies") or [],
            saved_at=data.get("saved_at", 0.0),
        )

    def clear(self) -> None:
        """Delete the session file."""
        self._session_file.unlink(missing_ok=True)
