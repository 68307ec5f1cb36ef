"""Encrypted credential persistence.

A credential file is a small JSON record::

    {
      "username": "alice",
      "encryptedSecret": "<base64 nonce|ciphertext|tag>",
      "key": "<64 hex chars>",
      "createdAt": "2025-01-01T12:00:00Z"
    }

The plaintext secret is encrypted as soon as a Credential is created and is
never kept on the object. Checking a password means decrypting and comparing.
"""

from __future__ import annotations

import hmac
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from rtmctl.auth.crypto import CryptoService
from rtmctl.auth.errors import (
    DecryptionError,
    NotFoundError,
    ParseError,
    StorageError,
    ValidationError,
)

_logger = logging.getLogger(__name__)

CREDENTIAL_FILE_MODE = 0o600


class Credential(BaseModel):
    """One user's long-lived secret, encrypted at rest.

    There is deliberately no field or property returning the plaintext; use
    CredentialStore.validate() to check a candidate password.
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    encrypted_secret: str = Field(
        min_length=1,
        repr=False,
        validation_alias=AliasChoices(
            "encrypted_secret", "encryptedSecret", "encryptedPassword"
        ),
        serialization_alias="encryptedSecret",
    )
    key: str = Field(pattern=r"^[0-9a-fA-F]{64}$", repr=False)
    created_at: AwareDatetime = Field(
        strict=True,
        validation_alias=AliasChoices("created_at", "createdAt"),
        serialization_alias="createdAt",
    )


def _restrict_permissions(path: Path) -> None:
    """chmod 0600 where POSIX permissions exist."""
    if os.name != "nt":
        path.chmod(CREDENTIAL_FILE_MODE)


class CredentialStore:
    """Create, persist, load and check a single Credential file."""

    def __init__(self, crypto: CryptoService | None = None) -> None:
        self._crypto = crypto or CryptoService()

    def create(self, username: str, secret: str) -> Credential:
        """Encrypt secret under a fresh key and return the new Credential."""
        if not username:
            raise ValidationError("Username must not be empty")
        try:
            username.encode("utf-8")
            plaintext = secret.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValidationError(
                "Username and password must be valid UTF-8 text", cause=exc
            ) from exc
        key = self._crypto.generate_key()
        return Credential(
            username=username,
            encrypted_secret=self._crypto.encrypt(plaintext, key),
            key=key,
            created_at=datetime.now(timezone.utc),
        )

    def save(self, credential: Credential, path: str | Path) -> None:
        """Atomically write credential to path with owner-only permissions.

        The record is written to a temporary file next to the target and
        renamed into place, so readers never observe a partial file.
        """
        target = Path(path)
        payload = credential.model_dump_json(by_alias=True, indent=2)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
            )
            tmp_path = Path(tmp_name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                _restrict_permissions(tmp_path)
                os.replace(tmp_path, target)
            except OSError:
                tmp_path.unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(
                f"Failed to save credentials to {target}: {exc}", cause=exc
            ) from exc
        _logger.debug("Saved credentials for %s to %s", credential.username, target)

    def load(self, path: str | Path) -> Credential:
        """Read and validate the credential record at path.

        Raises:
            NotFoundError: path is missing or not a regular file.
            ParseError: content is not a well-formed credential record.
            StorageError: the file exists but could not be read.
        """
        target = Path(path)
        if not self.exists(target):
            raise NotFoundError(f"No stored credentials at {target}")
        try:
            text = target.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"Credential file {target} is not UTF-8 text", cause=exc) from exc
        except OSError as exc:
            raise StorageError(
                f"Failed to read credentials from {target}: {exc}", cause=exc
            ) from exc

        try:
            return Credential.model_validate_json(text)
        except PydanticValidationError as exc:
            fields = sorted({".".join(str(p) for p in e["loc"]) or "<root>" for e in exc.errors()})
            raise ParseError(
                f"Malformed credential file {target}: invalid {', '.join(fields)}",
                cause=exc,
            ) from exc

    def validate(self, credential: Credential, candidate: str) -> bool:
        """Return True iff the stored secret equals candidate exactly.

        Wrong keys, tampered data and unencodable candidates count as a
        mismatch, never as an error.
        """
        try:
            expected = candidate.encode("utf-8")
        except UnicodeEncodeError:
            return False
        try:
            decrypted = self._crypto.decrypt(credential.encrypted_secret, credential.key)
        except DecryptionError:
            _logger.debug("Stored secret for %s failed to decrypt", credential.username)
            return False
        return hmac.compare_digest(decrypted, expected)

    def exists(self, path: str | Path) -> bool:
        """True iff a regular file is present at path."""
        try:
            return Path(path).is_file()
        except (OSError, ValueError):
            return False

    def clear(self, path: str | Path) -> None:
        """Delete the credential file. A missing file is not an error."""
        target = Path(path)
        try:
            target.unlink()
        except FileNotFoundError:
            _logger.debug("No credential file at %s; nothing to clear", target)
            return
        except OSError as exc:
            raise StorageError(
                f"Failed to delete credentials at {target}: {exc}", cause=exc
            ) from exc
        _logger.debug("Removed credential file %s", target)
