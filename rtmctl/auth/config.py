"""Authentication configuration model."""

from __future__ import annotations

import os
import re

from pydantic import BaseModel, Field, field_validator, model_validator

USERNAME_ENV = "RTM_USERNAME"
PASSWORD_ENV = "RTM_PASSWORD"


def _interpolate_env(value: str | None) -> str | None:
    """Replace ${VAR} with environment variable values. Leave as-is if unset."""
    if value is None:
        return None
    return re.sub(
        r"\$\{(\w+)\}",
        lambda m: os.environ.get(m.group(1), m.group(0)),
        value,
    )


def credentials_from_env(
    username_key: str = USERNAME_ENV,
    password_key: str = PASSWORD_ENV,
) -> tuple[str | None, str | None]:
    """Read (username, password) from the environment; empty values count as unset."""
    return (
        os.environ.get(username_key) or None,
        os.environ.get(password_key) or None,
    )


def has_env_credentials(
    username_key: str = USERNAME_ENV,
    password_key: str = PASSWORD_ENV,
) -> bool:
    username, password = credentials_from_env(username_key, password_key)
    return bool(username and password)


class AuthConfig(BaseModel):
    """Configuration for the auth section of the rtm config file."""

    login_url: str = "https://www.rememberthemilk.com/login/"

    # CSS selectors for the login form
    username_selector: str = "#username"
    password_selector: str = "#password"
    submit_selector: str | None = Field(
        default="#login-button",
        description="CSS selector for the login submit button; None presses Enter",
    )
    error_selector: str = Field(
        default=".alert-danger, .error, [class*='error']",
        description="Elements whose presence after submit means bad credentials",
    )

    # Success detection and cookie capture
    success_url_pattern: str = r".*rememberthemilk\.com/app.*"
    cookie_domain: str = "rememberthemilk.com"
    session_cookie: str | None = Field(
        default=None,
        description="Cookie whose value becomes the session token; first domain cookie if unset",
    )

    # Credentials (support ${ENV_VAR} interpolation)
    username: str | None = None
    password: str | None = None

    # Session validation
    check_url: str | None = None
    session_ttl: int = Field(default=3600, gt=0)

    @field_validator("success_url_pattern")
    @classmethod
    def _validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"success_url_pattern is not a valid regex: {exc}") from exc
        return v

    @model_validator(mode="after")
    def _interpolate_credentials(self) -> AuthConfig:
        self.username = _interpolate_env(self.username)
        self.password = _interpolate_env(self.password)
        return self
