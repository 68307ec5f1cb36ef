"""Browser-driven login and remote session checks.

The login handshake itself is delegated to Playwright; the rest of the auth
package only sees the resulting Session.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol, runtime_checkable

import httpx

from rtmctl.auth.config import AuthConfig
from rtmctl.auth.errors import AuthenticationError, NetworkError
from rtmctl.auth.session import Session, now_ms

_logger = logging.getLogger(__name__)


@runtime_checkable
class LoginProvider(Protocol):
    """Anything that can turn a username/secret pair into a remote Session."""

    async def login(self, username: str, secret: str) -> Session: ...


def session_from_cookies(
    cookies: list[dict],
    config: AuthConfig,
    at_ms: int | None = None,
) -> Session:
    """Build a Session from the cookies captured after a successful login.

    The token is the configured session cookie, or the first domain cookie
    when none is configured. Expiry is ``session_ttl`` seconds from now.
    """
    if not cookies:
        raise AuthenticationError(
            f"Login appeared to succeed but no cookies were set for {config.cookie_domain}"
        )
    if config.session_cookie:
        token = next(
            (c["value"] for c in cookies if c["name"] == config.session_cookie),
            None,
        )
        if token is None:
            raise AuthenticationError(
                f"Session cookie '{config.session_cookie}' missing after login"
            )
    else:
        token = cookies[0]["value"]

    login_time = now_ms() if at_ms is None else at_ms
    return Session(
        token=token,
        expires_at_ms=login_time + config.session_ttl * 1000,
        login_time_ms=login_time,
    )


class PlaywrightLogin:
    """Log in through the real login form with a Chromium browser.

    Cookies for ``config.cookie_domain`` from the last successful login are
    kept on ``self.cookies`` so the caller can persist them.
    """

    def __init__(
        self,
        config: AuthConfig | None = None,
        headless: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._config = config or AuthConfig()
        self.headless = headless
        self.timeout = timeout
        self.cookies: list[dict] = []

    async def login(self, username: str, secret: str) -> Session:
        """Run the login flow in Playwright and return the new Session."""
        try:
            from playwright.async_api import Error as PlaywrightError
            from playwright.async_api import TimeoutError as PlaywrightTimeoutError
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise AuthenticationError(
                "Login requires playwright. Install with: "
                "pip install rtmctl[browser] && playwright install chromium"
            ) from exc

        config = self._config
        _logger.info("Logging in as %s (headless=%s)", username, self.headless)

        async with async_playwright() as p:
            try:
                browser = await p.chromium.launch(headless=self.headless)
            except PlaywrightError as exc:
                raise NetworkError(
                    "Failed to launch Playwright browser. "
                    f"Did you run 'playwright install chromium'? Error: {exc}"
                ) from exc

            try:
                context = await browser.new_context()
                context.set_default_timeout(self.timeout * 1000)  # ms
                page = await context.new_page()

                try:
                    await page.goto(config.login_url)
                    await page.wait_for_selector(config.username_selector)
                except PlaywrightError as exc:
                    raise NetworkError(
                        f"Failed to load login page {config.login_url}: {exc}"
                    ) from exc

                try:
                    await self._fill_form(page, username, secret)
                    await self._wait_for_success(page, PlaywrightTimeoutError)
                    cookies = await context.cookies()
                except PlaywrightError as exc:
                    raise NetworkError(f"Login failed: {exc}") from exc
            finally:
                await browser.close()

        self.cookies = [
            {
                "name": c["name"],
                "value": c["value"],
                "domain": c["domain"],
                "path": c["path"],
            }
            for c in cookies
            if config.cookie_domain in c.get("domain", "")
        ]
        _logger.info("Login succeeded; captured %d cookie(s)", len(self.cookies))
        return session_from_cookies(self.cookies, config)

    async def _fill_form(self, page, username: str, secret: str) -> None:
        """Fill login form and submit."""
        config = self._config
        for selector, value in (
            (config.username_selector, username),
            (config.password_selector, secret),
        ):
            el = page.locator(selector)
            if await el.count() == 0:
                raise AuthenticationError(f"Selector not found: {selector}")
            await el.fill(value)

        if config.submit_selector:
            el = page.locator(config.submit_selector)
            if await el.count() == 0:
                raise AuthenticationError(
                    f"Selector not found: {config.submit_selector}"
                )
            await el.click()
        else:
            await page.keyboard.press("Enter")

    async def _wait_for_success(self, page, timeout_error: type[Exception]) -> None:
        """Wait for the post-login redirect, then decide why it did not come."""
        pattern = re.compile(self._config.success_url_pattern)
        try:
            await page.wait_for_url(pattern)
            return
        except timeout_error:
            _logger.debug("Timed out waiting for %s; inspecting page", pattern.pattern)

        if await page.locator(self._config.error_selector).count() > 0:
            raise AuthenticationError("Login failed: invalid username or password")
        if pattern.match(page.url):
            return
        raise AuthenticationError(f"Login failed: unexpected page {page.url}")


def inject_cookies(client: httpx.AsyncClient, cookies: list[dict]) -> None:
    """Set cookies on the httpx client."""
    for c in cookies:
        client.cookies.set(c["name"], c["value"], domain=c.get("domain", ""))


async def check_session(
    check_url: str,
    cookies: list[dict],
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """GET check_url with the saved cookies. 2xx = still logged in."""
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=False)
    try:
        inject_cookies(client, cookies)
        resp = await client.get(check_url)
        return 200 <= resp.status_code < 300
    except httpx.HTTPError as exc:
        _logger.warning("Session check against %s failed: %s", check_url, exc)
        return False
    finally:
        if owns_client:
            await client.aclose()
