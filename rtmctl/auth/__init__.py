from rtmctl.auth.browser import LoginProvider, PlaywrightLogin, check_session
from rtmctl.auth.config import AuthConfig, credentials_from_env, has_env_credentials
from rtmctl.auth.credentials import Credential, CredentialStore
from rtmctl.auth.crypto import CryptoService
from rtmctl.auth.errors import (
    AuthenticationError,
    ConfigError,
    DecryptionError,
    NetworkError,
    NotFoundError,
    ParseError,
    RTMError,
    StorageError,
    ValidationError,
)
from rtmctl.auth.manager import AuthFacade, LogoutOutcome, SessionView, StatusReport
from rtmctl.auth.session import Session, SessionManager, mask_token
from rtmctl.auth.session_store import SessionSnapshot, SessionStore

__all__ = [
    "AuthConfig",
    "AuthenticationError",
    "AuthFacade",
    "check_session",
    "ConfigError",
    "Credential",
    "credentials_from_env",
    "CredentialStore",
    "CryptoService",
    "DecryptionError",
    "has_env_credentials",
    "LoginProvider",
    "LogoutOutcome",
    "mask_token",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "PlaywrightLogin",
    "RTMError",
    "Session",
    "SessionManager",
    "SessionSnapshot",
    "SessionStore",
    "SessionView",
    "StatusReport",
    "StorageError",
    "ValidationError",
]
