"""Provider factory functions for CLI.

Centralizes creation of the store and chat transport from environment variables.
Hides configuration details from command implementations.
"""

import os

import typer
from rich.console import Console

from ..config import DEFAULT_GATEWAY_MODEL, DEFAULT_REQUEST_TIMEOUT
from ..log_config import setup_logging
from ..storage import CompanionStore, create_companion_store
from ..transport import ChatTransport, create_chat_transport

# Default console for output
_console = Console()


def configure_logging() -> None:
    """Set up logging from environment variables.

    Environment variables:
        MOODLINE_LOG_LEVEL: stderr log level (default: WARNING)
        MOODLINE_LOG_FILE: optional log file path
    """
    setup_logging(
        level=os.getenv("MOODLINE_LOG_LEVEL", "WARNING"),
        log_file=os.getenv("MOODLINE_LOG_FILE") or None,
    )


def get_store() -> CompanionStore:
    """Create the companion store from environment variables.

    Environment variables:
        MOODLINE_STORE: Backend type (memory, sqlite; default: sqlite)
        MOODLINE_DB_PATH: SQLite database path (default: ./moodline.db)
    """
    backend = os.getenv("MOODLINE_STORE", "sqlite").lower()
    if backend == "sqlite":
        return create_companion_store(
            "sqlite",
            path=os.getenv("MOODLINE_DB_PATH", "./moodline.db"),
        )
    return create_companion_store(backend)


def get_transport(console: Console | None = None) -> ChatTransport:
    """Create the chat transport from environment variables.

    Raises:
        SystemExit: If the selected transport is not configured

    Environment variables:
        MOODLINE_TRANSPORT: Transport type (http, gateway; default: http)
        MOODLINE_CHAT_URL: Chat endpoint URL (http transport)
        MOODLINE_CHAT_TOKEN: Session token sent as bearer auth (http transport)
        MOODLINE_TIMEOUT: Request timeout in seconds (http transport; default: 60)
        GATEWAY_API_KEY: Gateway API key (gateway transport)
        GATEWAY_BASE_URL: Gateway base URL (gateway transport)
        GATEWAY_MODEL: Model (gateway transport; default: google/gemini-2.5-flash)
    """
    con = console or _console
    kind = os.getenv("MOODLINE_TRANSPORT", "http").lower()

    if kind == "http":
        url = os.getenv("MOODLINE_CHAT_URL")
        if not url:
            con.print("[red]Error: MOODLINE_CHAT_URL not set in environment[/red]")
            raise typer.Exit(code=1)
        return create_chat_transport(
            "http",
            url=url,
            token=os.getenv("MOODLINE_CHAT_TOKEN") or None,
            timeout=float(os.getenv("MOODLINE_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))),
        )

    elif kind == "gateway":
        api_key = os.getenv("GATEWAY_API_KEY")
        if not api_key:
            con.print("[red]Error: GATEWAY_API_KEY not set in environment[/red]")
            raise typer.Exit(code=1)
        return create_chat_transport(
            "gateway",
            api_key=api_key,
            base_url=os.getenv("GATEWAY_BASE_URL") or None,
            model=os.getenv("GATEWAY_MODEL", DEFAULT_GATEWAY_MODEL),
        )

    con.print(f"[red]Error: Unknown transport: {kind}[/red]")
    raise typer.Exit(code=1)
