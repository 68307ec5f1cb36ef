"""rtm CLI: thin wrapper around the auth facade.

Commands:
- login:  run the browser login and snapshot the session
- logout: drop the session and optionally the stored credentials
- status: show login state, optionally with details or a remote check
"""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from rtmctl._version import __version__
from rtmctl.auth import (
    AuthFacade,
    PlaywrightLogin,
    RTMError,
    SessionSnapshot,
    SessionStore,
    StatusReport,
    check_session,
    credentials_from_env,
)
from rtmctl.auth.config import PASSWORD_ENV, USERNAME_ENV
from rtmctl.config import LOG_LEVELS, CliOptions, load_config
from rtmctl.logging import get_logger, setup_logging


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Turn rtmctl errors into a one-line message and exit code 1."""
    try:
        yield
    except RTMError as exc:
        get_logger().debug("Command failed", exc_info=exc)
        raise click.ClickException(str(exc)) from exc


def _open_session(
    opts: CliOptions,
) -> tuple[AuthFacade, SessionStore, SessionSnapshot | None]:
    """Build a facade and restore the session saved by a previous run."""
    facade = AuthFacade()
    with _domain_errors():
        store = SessionStore(
            opts.session_file,
            machine_key_file=opts.session_file.parent / ".machine_key",
        )
    snapshot = store.load()
    if snapshot is not None:
        facade.record_successful_login(snapshot.session)
    return facade, store, snapshot


def _prompt_credentials(
    opts: CliOptions, facade: AuthFacade, username: str | None
) -> tuple[str, str]:
    """Ask for username/password, checking against stored credentials."""
    env_user, env_pass = credentials_from_env()
    stored = facade.stored_credential(opts.credentials_file)

    default_user = (
        username
        or (stored.username if stored else None)
        or env_user
        or opts.auth.username
    )
    username = click.prompt("Username or email", default=default_user)
    password = click.prompt(
        "Password",
        hide_input=True,
        default=env_pass or None,
        show_default=False,
    )

    if stored is not None and stored.username == username:
        if not facade.verify_stored_credentials(
            opts.credentials_file, username, password
        ):
            raise click.ClickException(
                "Password does not match the stored credentials. "
                "Pass --username/--password to replace them."
            )
    return username, password


def _status_table(report: StatusReport) -> Table:
    table = Table(box=None, padding=(0, 2), show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    if report.username:
        table.add_row("User", report.username)
    if report.session is not None:
        table.add_row("Session", report.session.token)
        table.add_row("Expires", report.session.expires_at)
        if report.session.login_time:
            table.add_row("Login time", report.session.login_time)
    table.add_row(
        "Stored credentials", "yes" if report.has_stored_credentials else "no"
    )
    if report.credentials_created_at is not None:
        table.add_row("Saved at", report.credentials_created_at.isoformat())
    return table


@click.group()
@click.version_option(version=__version__, prog_name="rtm")
@click.option(
    "--config",
    "-C",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file path",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (default: INFO)",
)
@click.option("--log-file", help="Write logs to file")
@click.option(
    "--credentials-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Stored credentials path (default: ~/.rtm/auth.json)",
)
@click.option(
    "--session-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Session snapshot path (default: ~/.rtm/session.enc)",
)
@click.pass_context
def cli(ctx, config_file, log_level, log_file, credentials_file, session_file):
    """rtm - Remember The Milk command-line login."""
    with _domain_errors():
        file_config = load_config(config_file)
        opts = CliOptions.from_sources(
            file_config,
            credentials_file=credentials_file,
            session_file=session_file,
            log_level=log_level,
            log_file=log_file,
        )
    setup_logging(opts.log_level, opts.log_file)
    ctx.obj = opts


@cli.command()
@click.option("--username", "-u", help="Username or email address.")
@click.option("--password", "-p", help="Password.")
@click.option(
    "--save/--no-save", "-s", default=None,
    help="Store the credentials encrypted for later logins.",
)
@click.option(
    "--env", "use_env", is_flag=True,
    help=f"Read credentials from {USERNAME_ENV} / {PASSWORD_ENV}.",
)
@click.option("--interactive", "-i", is_flag=True, help="Prompt for credentials.")
@click.option(
    "--headless/--headed", default=None,
    help="Run the browser headless (default) or visibly.",
)
@click.option("--force", is_flag=True, help="Log in again even if a session is active.")
@click.pass_obj
def login(
    opts: CliOptions,
    username: str | None,
    password: str | None,
    save: bool | None,
    use_env: bool,
    interactive: bool,
    headless: bool | None,
    force: bool,
) -> None:
    """Log in to Remember The Milk.

    \b
    Examples:
      rtm login -u alice@example.com -p secret --save
      rtm login --env
      rtm login -i
    """
    logger = get_logger()
    facade, snapshots, _ = _open_session(opts)
    if facade.is_logged_in() and not force:
        click.echo("Already logged in. Use --force to log in again.")
        return

    if use_env:
        username, password = credentials_from_env()
        if not (username and password):
            raise click.ClickException(
                f"{USERNAME_ENV} and {PASSWORD_ENV} must both be set to use --env"
            )
    else:
        username = username or opts.auth.username
        password = password or opts.auth.password
        if interactive or not (username and password):
            username, password = _prompt_credentials(opts, facade, username)

    should_save = opts.save_credentials if save is None else save
    provider = PlaywrightLogin(
        opts.auth,
        headless=opts.headless if headless is None else headless,
        timeout=opts.timeout,
    )

    with _domain_errors():
        session = asyncio.run(
            facade.login(
                provider,
                username,
                password,
                opts.credentials_file,
                save=should_save,
            )
        )

    try:
        snapshots.save(session, provider.cookies)
    except OSError as exc:
        logger.warning("Could not save session to %s: %s", snapshots.path, exc)

    suffix = " (credentials saved)" if should_save else ""
    click.echo(f"Logged in as {username}{suffix}")


@cli.command()
@click.option(
    "--clear-credentials", "-c", is_flag=True,
    help="Also delete the stored credentials.",
)
@click.option(
    "--force", "-f", is_flag=True,
    help="Report success even if stored credentials cannot be removed.",
)
@click.pass_obj
def logout(opts: CliOptions, clear_credentials: bool, force: bool) -> None:
    """Log out and forget the saved session."""
    facade, snapshots, _ = _open_session(opts)
    with _domain_errors():
        outcome = facade.logout(
            opts.credentials_file,
            clear_stored_credentials=clear_credentials,
            force=force,
        )
    try:
        snapshots.clear()
    except OSError as exc:
        if not force:
            raise click.ClickException(f"Failed to remove session file: {exc}") from exc
        get_logger().warning("Ignoring failure to remove session file: %s", exc)

    if outcome.cleared_credentials:
        click.echo("Logged out (stored credentials removed)")
    elif outcome.was_logged_in or force:
        click.echo("Logged out")
    else:
        click.echo("Already logged out")


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Show session and storage details.")
@click.option(
    "--check", is_flag=True,
    help="Verify the saved session against auth.check_url.",
)
@click.pass_obj
def status(opts: CliOptions, verbose: bool, check: bool) -> None:
    """Show whether you are logged in."""
    facade, _, snapshot = _open_session(opts)
    report = facade.status(opts.credentials_file)

    if report.logged_in:
        click.echo(f"Logged in ({report.username})" if report.username else "Logged in")
    else:
        click.echo("Logged out")

    if check and report.logged_in:
        if not opts.auth.check_url:
            raise click.ClickException("auth.check_url is not configured")
        cookies = snapshot.cookies if snapshot is not None else []
        valid = asyncio.run(check_session(opts.auth.check_url, cookies, opts.timeout))
        click.echo("Remote session: valid" if valid else "Remote session: rejected")

    if verbose:
        Console().print(_status_table(report))


if __name__ == "__main__":
    cli()
