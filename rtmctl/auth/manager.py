"""Authentication facade used by the command layer.

Composes CredentialStore (durable, encrypted secret) and SessionManager
(in-memory session). The two are independent: a session can be active without
stored credentials, and stored credentials do not imply a session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from rtmctl.auth.browser import LoginProvider
from rtmctl.auth.credentials import Credential, CredentialStore
from rtmctl.auth.errors import (
    NotFoundError,
    ParseError,
    RTMError,
    StorageError,
    ValidationError,
)
from rtmctl.auth.session import Session, SessionManager, mask_token, ms_to_iso

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogoutOutcome:
    """Result of AuthFacade.logout()."""

    was_logged_in: bool
    cleared_credentials: bool = False


@dataclass(frozen=True)
class SessionView:
    """Display-safe view of a Session: the token is masked."""

    token: str
    expires_at: str
    login_time: str | None = None

    @classmethod
    def from_session(cls, session: Session) -> SessionView:
        return cls(
            token=mask_token(session.token),
            expires_at=ms_to_iso(session.expires_at_ms),
            login_time=(
                ms_to_iso(session.login_time_ms)
                if session.login_time_ms is not None
                else None
            ),
        )


@dataclass(frozen=True)
class StatusReport:
    """Non-secret summary for status commands."""

    logged_in: bool
    has_stored_credentials: bool
    username: str | None = None
    credentials_created_at: datetime | None = None
    session: SessionView | None = None


class AuthFacade:
    """Entry point for login, logout and status handlers.

    Both collaborators are passed in (or created per instance), so separate
    facades never share session state.
    """

    def __init__(
        self,
        store: CredentialStore | None = None,
        sessions: SessionManager | None = None,
    ) -> None:
        self._store = store or CredentialStore()
        self._sessions = sessions or SessionManager()

    # -- queries ----------------------------------------------------------

    def has_stored_credentials(self, path: str | Path) -> bool:
        return self._store.exists(path)

    def is_logged_in(self) -> bool:
        return self._sessions.is_active()

    def current_session(self) -> Session | None:
        return self._sessions.get()

    def verify_stored_credentials(
        self, path: str | Path, username: str, candidate: str
    ) -> bool:
        """True iff the file at path belongs to username and holds candidate."""
        try:
            credential = self._store.load(path)
        except (NotFoundError, ParseError) as exc:
            _logger.debug("Cannot verify stored credentials: %s", exc)
            return False
        if credential.username != username:
            return False
        return self._store.validate(credential, candidate)

    def stored_credential(self, path: str | Path) -> Credential | None:
        """Load the stored credential, or None when absent or unreadable."""
        try:
            return self._store.load(path)
        except NotFoundError:
            return None
        except (ParseError, StorageError) as exc:
            _logger.warning("Ignoring unreadable credential file: %s", exc)
            return None

    def status(self, path: str | Path) -> StatusReport:
        session = self._sessions.get()
        logged_in = self._sessions.is_active()
        credential = self.stored_credential(path)
        return StatusReport(
            logged_in=logged_in,
            has_stored_credentials=self._store.exists(path),
            username=credential.username if credential else None,
            credentials_created_at=credential.created_at if credential else None,
            session=SessionView.from_session(session) if session and logged_in else None,
        )

    # -- commands ---------------------------------------------------------

    def record_successful_login(self, session: Session) -> None:
        """Adopt a session produced by an external login handshake."""
        self._sessions.set(session)
        _logger.debug("Recorded session %s", mask_token(session.token))

    def persist_credentials_if_requested(
        self,
        username: str,
        secret: str,
        path: str | Path,
        should_save: bool,
    ) -> Credential | None:
        """Encrypt and save credentials when should_save is set."""
        if not should_save:
            return None
        credential = self._store.create(username, secret)
        self._store.save(credential, path)
        _logger.info("Stored credentials for %s", username)
        return credential

    async def login(
        self,
        provider: LoginProvider,
        username: str,
        secret: str,
        path: str | Path,
        save: bool = False,
    ) -> Session:
        """Run the provider's handshake, record the session, persist if asked."""
        if not username or not secret:
            raise ValidationError("Username and password are required")
        session = await provider.login(username, secret)
        self.record_successful_login(session)
        self.persist_credentials_if_requested(username, secret, path, save)
        return session

    async def auto_login(
        self,
        provider: LoginProvider,
        username: str,
        secret: str,
        path: str | Path,
        save: bool = False,
    ) -> Session:
        """Reuse the active session, logging in only when there is none."""
        current = self._sessions.get()
        if current is not None and self._sessions.is_active():
            _logger.info("Reusing active session")
            return current
        return await self.login(provider, username, secret, path, save=save)

    def logout(
        self,
        path: str | Path,
        clear_stored_credentials: bool = False,
        force: bool = False,
    ) -> LogoutOutcome:
        """Clear the session and optionally the stored credential file.

        A failed delete propagates unless force is set. The session is
        cleared either way.
        """
        was_logged_in = self._sessions.is_active()
        self._sessions.clear()

        cleared = False
        if clear_stored_credentials:
            try:
                self._store.clear(path)
                cleared = True
            except RTMError as exc:
                if not force:
                    raise
                _logger.warning("Ignoring failure to remove credentials: %s", exc)
        return LogoutOutcome(was_logged_in=was_logged_in, cleared_credentials=cleared)
