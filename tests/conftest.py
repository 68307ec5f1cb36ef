"""Shared fixtures for rtmctl tests."""

import logging
from pathlib import Path

import pytest

from rtmctl.auth.credentials import CredentialStore
from rtmctl.auth.crypto import CryptoService
from rtmctl.auth.manager import AuthFacade
from rtmctl.auth.session import Session, SessionManager

NOW_MS = 1_700_000_000_000


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeLoginProvider:
    """LoginProvider double that records calls and returns a fixed session."""

    def __init__(self, session: Session | None = None, error: Exception | None = None):
        self.session = session or Session(
            token="tok_abcdef123456",
            expires_at_ms=NOW_MS + 3_600_000,
            login_time_ms=NOW_MS,
        )
        self.error = error
        self.calls: list[tuple[str, str]] = []
        self.cookies = [
            {"name": "sid", "value": self.session.token, "domain": "example.com", "path": "/"},
        ]

    async def login(self, username: str, secret: str) -> Session:
        self.calls.append((username, secret))
        if self.error is not None:
            raise self.error
        return self.session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def crypto() -> CryptoService:
    return CryptoService()


@pytest.fixture
def store(crypto: CryptoService) -> CredentialStore:
    return CredentialStore(crypto)


@pytest.fixture
def cred_path(tmp_path: Path) -> Path:
    """Credential path whose parent directories do not exist yet."""
    return tmp_path / "home" / ".rtm" / "auth.json"


@pytest.fixture
def sessions(clock: FakeClock) -> SessionManager:
    return SessionManager(clock=clock)


@pytest.fixture
def facade(store: CredentialStore, sessions: SessionManager) -> AuthFacade:
    return AuthFacade(store=store, sessions=sessions)


@pytest.fixture
def active_session() -> Session:
    return Session(
        token="tok_abcdef123456",
        expires_at_ms=NOW_MS + 3_600_000,
        login_time_ms=NOW_MS,
    )


@pytest.fixture
def provider(active_session: Session) -> FakeLoginProvider:
    return FakeLoginProvider(active_session)


@pytest.fixture
def failing_provider(active_session: Session) -> FakeLoginProvider:
    from rtmctl.auth.errors import AuthenticationError

    return FakeLoginProvider(active_session, error=AuthenticationError("Login failed"))


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo setup_logging() so caplog keeps seeing rtmctl records."""
    yield
    logger = logging.getLogger("rtmctl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
