from rtmctl._version import __version__
from rtmctl.auth import (
    AuthConfig,
    AuthenticationError,
    AuthFacade,
    Credential,
    CredentialStore,
    CryptoService,
    PlaywrightLogin,
    RTMError,
    Session,
    SessionManager,
    SessionStore,
)
from rtmctl.config import CliOptions, load_config

__all__ = [
    "__version__",
    "AuthConfig",
    "AuthenticationError",
    "AuthFacade",
    "CliOptions",
    "Credential",
    "CredentialStore",
    "CryptoService",
    "load_config",
    "PlaywrightLogin",
    "RTMError",
    "Session",
    "SessionManager",
    "SessionStore",
]
