"""Authentication error types."""


class RTMError(Exception):
    """Base class for every error raised by rtmctl."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ValidationError(RTMError):
    """Raised when caller-supplied input is malformed (e.g. empty username)."""


class DecryptionError(RTMError):
    """Raised when an encrypted blob fails integrity verification."""


class NotFoundError(RTMError):
    """Raised when a credential file is missing or not a regular file."""


class ParseError(RTMError):
    """Raised when a persisted credential record cannot be deserialized."""


class StorageError(RTMError):
    """Raised when writing or deleting a credential file fails."""


class AuthenticationError(RTMError):
    """Raised when the remote login handshake fails."""


class NetworkError(RTMError):
    """Raised when the browser cannot be launched or a page cannot be loaded."""


class ConfigError(RTMError):
    """Raised when a configuration file is unreadable or invalid."""
