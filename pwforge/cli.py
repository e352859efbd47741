"""
Command-line interface.

    pwforge generate --length 20 --no-symbols
    pwforge login you@example.com
    pwforge save --label Gmail
    pwforge list --show
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from . import state as app_state
from .backends import build_backend
from .config import DEFAULT_CONFIG, MAX_LENGTH, MIN_LENGTH, BackendSettings, get_user_config_dir
from .generator import (
    GenerationRequest,
    NoCharacterClassSelected,
    StrengthTier,
    classify_strength,
    estimate_entropy_bits,
    generate_password_with_meta,
)
from .models import AuthSession
from .random_source import build_source

app = typer.Typer(no_args_is_help=True, help="Password generator with saved passwords.")

_console = Console()
logger = logging.getLogger(__name__)

_TIER_STYLE = {
    StrengthTier.WEAK: "red",
    StrengthTier.MEDIUM: "yellow",
    StrengthTier.STRONG: "dark_orange",
    StrengthTier.VERY_STRONG: "green",
}


def _session_file() -> Path:
    return get_user_config_dir() / "session.json"


def _load_session(settings: BackendSettings) -> Optional[AuthSession]:
    path = _session_file()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        if data.get("backend") != settings.backend:
            return None
        return AuthSession.model_validate(data["session"])
    except (OSError, ValueError, KeyError, ValidationError) as exc:
        logger.warning("Ignoring unreadable session file %s: %s", path, exc)
        return None


def _store_session(settings: BackendSettings, session: Optional[AuthSession]) -> None:
    path = _session_file()
    if session is None:
        path.unlink(missing_ok=True)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"backend": settings.backend, "session": session.model_dump(mode="json")}
    path.write_text(json.dumps(payload), encoding="utf-8")
    try:
        path.chmod(0o600)
    except OSError:
        pass


@asynccontextmanager
async def _backend(settings: BackendSettings) -> AsyncIterator:
    try:
        backend = build_backend(settings)
    except ValueError as exc:
        _fail(str(exc))
    try:
        yield backend
    finally:
        aclose = getattr(backend, "aclose", None)
        if aclose is not None:
            await aclose()


def _print_secret(text: str) -> None:
    # Text, not str: no markup, emoji codes or highlighting inside passwords.
    _console.print(Text(text), soft_wrap=True)


def _fail(message: str) -> None:
    _console.print(Text(message, style="red"))
    raise typer.Exit(code=1)


def _signed_in_state(settings: BackendSettings) -> app_state.AppState:
    session = _load_session(settings)
    if session is None:
        _fail("Not signed in. Run `pwforge login` first.")
    return replace(app_state.initial_state(), session=session)


def _request(length: int, upper: bool, lower: bool, numbers: bool, symbols: bool) -> GenerationRequest:
    return GenerationRequest(
        length=length,
        include_uppercase=upper,
        include_lowercase=lower,
        include_numbers=numbers,
        include_symbols=symbols,
    )


def _strength_text(request: GenerationRequest) -> str:
    report = classify_strength(request)
    style = _TIER_STYLE[report.tier]
    return f"[{style}]{report.label}[/{style}] (score {report.score}/7)"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    level = "DEBUG" if verbose else BackendSettings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.command()
def generate(
    length: int = typer.Option(
        DEFAULT_CONFIG.default_length, "--length", "-l", min=MIN_LENGTH, max=MAX_LENGTH
    ),
    upper: bool = typer.Option(True, "--uppercase/--no-uppercase", help="A-Z"),
    lower: bool = typer.Option(True, "--lowercase/--no-lowercase", help="a-z"),
    numbers: bool = typer.Option(True, "--numbers/--no-numbers", help="0-9"),
    symbols: bool = typer.Option(True, "--symbols/--no-symbols", help="!@#..."),
    count: int = typer.Option(1, "--count", "-n", min=1, max=100),
    source: str = typer.Option(DEFAULT_CONFIG.char_source, help="system, pseudo or quantum."),
    shuffle_source: Optional[str] = typer.Option(
        None, help="Source for shuffling (defaults to --source)."
    ),
) -> None:
    """Generate one or more passwords."""
    request = _request(length, upper, lower, numbers, symbols)
    try:
        char_src = build_source(source, DEFAULT_CONFIG)
        shuffle_src = build_source(shuffle_source, DEFAULT_CONFIG) if shuffle_source else char_src
    except ValueError as exc:
        _fail(str(exc))

    for _ in range(count):
        try:
            result = generate_password_with_meta(
                request, source=char_src, shuffle_source=shuffle_src
            )
        except NoCharacterClassSelected as exc:
            _fail(str(exc))
        _print_secret(result.password)

    _console.print(
        f"Strength: {_strength_text(request)}  "
        f"~{estimate_entropy_bits(request):.0f} bits", style="dim"
    )


@app.command()
def strength(
    length: int = typer.Option(DEFAULT_CONFIG.default_length, "--length", "-l"),
    upper: bool = typer.Option(True, "--uppercase/--no-uppercase"),
    lower: bool = typer.Option(True, "--lowercase/--no-lowercase"),
    numbers: bool = typer.Option(True, "--numbers/--no-numbers"),
    symbols: bool = typer.Option(True, "--symbols/--no-symbols"),
) -> None:
    """Show the strength tier a request would get."""
    request = _request(length, upper, lower, numbers, symbols)
    _console.print(f"Strength: {_strength_text(request)}")


@app.command()
def signup(
    email: str = typer.Argument(...),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
) -> None:
    """Create an account."""
    settings = BackendSettings()

    async def _run() -> app_state.AppState:
        async with _backend(settings) as backend:
            return await app_state.sign_up(app_state.initial_state(), backend, email, password)

    result = asyncio.run(_run())
    if result.error:
        _fail(result.error)
    if result.session is None:
        _console.print("Signup successful. Check your email to confirm, then log in.")
        return
    _store_session(settings, result.session)
    _console.print(f"Signed up and logged in as [bold]{result.session.user.email}[/bold].")


@app.command()
def login(
    email: str = typer.Argument(...),
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """Sign in and remember the session."""
    settings = BackendSettings()

    async def _run() -> app_state.AppState:
        async with _backend(settings) as backend:
            return await app_state.sign_in(app_state.initial_state(), backend, email, password)

    result = asyncio.run(_run())
    if result.error:
        _fail(result.error)
    _store_session(settings, result.session)
    _console.print(f"Logged in as [bold]{result.session.user.email}[/bold].")


@app.command()
def logout() -> None:
    """Sign out and forget the stored session."""
    settings = BackendSettings()
    session = _load_session(settings)
    if session is None:
        _console.print("Not signed in.")
        return

    async def _run() -> app_state.AppState:
        async with _backend(settings) as backend:
            return await app_state.sign_out(replace(app_state.initial_state(), session=session), backend)

    result = asyncio.run(_run())
    _store_session(settings, None)
    if result.error:
        _console.print(Text(f"Signed out locally; server said: {result.error}", style="yellow"))
    else:
        _console.print("Signed out.")


@app.command("list")
def list_saved(
    show: bool = typer.Option(False, "--show", help="Print passwords in clear text."),
) -> None:
    """List saved passwords, newest first."""
    settings = BackendSettings()
    current = _signed_in_state(settings)

    async def _run() -> app_state.AppState:
        async with _backend(settings) as backend:
            return await app_state.refresh_saved(current, backend)

    result = asyncio.run(_run())
    if result.error:
        _fail(result.error)
    if not result.saved:
        _console.print("No passwords saved yet.")
        return

    table = Table(title=f"Saved passwords ({result.session.user.email})")
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Label")
    table.add_column("Password", no_wrap=True)
    table.add_column("Created", style="dim")
    for record in result.saved:
        text = record.text if show else "•" * len(record.text)
        table.add_row(
            record.id,
            Text(record.label) if record.label else Text("No Label", style="italic dim"),
            Text(text),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    _console.print(table)


@app.command()
def save(
    label: Optional[str] = typer.Option(None, "--label", help="e.g. Gmail"),
    text: Optional[str] = typer.Option(
        None, "--text", help="Save this text instead of a fresh password."
    ),
    length: int = typer.Option(
        DEFAULT_CONFIG.default_length, "--length", "-l", min=MIN_LENGTH, max=MAX_LENGTH
    ),
    upper: bool = typer.Option(True, "--uppercase/--no-uppercase"),
    lower: bool = typer.Option(True, "--lowercase/--no-lowercase"),
    numbers: bool = typer.Option(True, "--numbers/--no-numbers"),
    symbols: bool = typer.Option(True, "--symbols/--no-symbols"),
) -> None:
    """Generate (or take --text) and save a password."""
    settings = BackendSettings()
    current = _signed_in_state(settings)
    current = app_state.update_request(current, _request(length, upper, lower, numbers, symbols))
    if text:
        current = replace(current, password=text)
    else:
        current = app_state.regenerate(current)
        if current.error:
            _fail(current.error)

    async def _run() -> app_state.AppState:
        async with _backend(settings) as backend:
            return await app_state.save_current(current, backend, label)

    result = asyncio.run(_run())
    if result.error:
        _fail(result.error)
    _print_secret(result.password)
    _console.print(f"Saved. {len(result.saved)} password(s) stored.", style="dim")


@app.command()
def delete(
    record_id: str = typer.Argument(..., help="ID shown by `pwforge list`."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a saved password."""
    if not yes:
        typer.confirm("Are you sure you want to delete this password?", abort=True)
    settings = BackendSettings()
    current = _signed_in_state(settings)

    async def _run() -> app_state.AppState:
        async with _backend(settings) as backend:
            return await app_state.delete_saved(current, backend, record_id)

    result = asyncio.run(_run())
    if result.error:
        _fail(result.error)
    _console.print("Deleted.")


def run() -> None:
    """Entry point for `pwforge` and `python -m pwforge`."""
    app()
