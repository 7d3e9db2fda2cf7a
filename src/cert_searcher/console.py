"""Rich console and logging utilities.

This module owns the shared Rich console, the logging setup used by the
package and the CLI, and the rendering of found certificates.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from cert_searcher.models import TLS

_ROOT_LOGGER = "cert_searcher"

_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "highlight": "cyan bold",
        "muted": "dim",
    }
)

# Diagnostics go to stderr so PEM or YAML output on stdout stays clean.
console = Console(theme=_THEME, stderr=True)


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the package logger.

    Args:
        name: Usually the calling module's __name__.

    Returns:
        The logger.

    """
    if name != _ROOT_LOGGER and not name.startswith(f"{_ROOT_LOGGER}."):
        name = f"{_ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(*, debug: bool = False) -> logging.Logger:
    """Route package logs through a RichHandler on the shared console.

    Calling it again replaces the previously installed handler.

    Args:
        debug: Log at DEBUG instead of INFO.
                Must be passed as a keyword argument.

    Returns:
        The package logger.

    """
    root = logging.getLogger(_ROOT_LOGGER)
    for handler in [h for h in root.handlers if isinstance(h, RichHandler)]:
        root.removeHandler(handler)

    handler = RichHandler(console=console, show_path=debug, markup=True, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.propagate = False
    return root


def highlight(text: str) -> str:
    """Return text wrapped in highlight markup."""
    return f"[highlight]{text}[/highlight]"


def error(message: str) -> None:
    """Print an error message.

    Args:
        message: The message to display.

    """
    console.print(f"[error]✗[/error] {message}")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]✓[/success] {message}")


def warning(message: str) -> None:
    """Print a warning message.

    Args:
        message: The message to display.

    """
    console.print(f"[warning]⚠[/warning] {message}")


def action(message: str) -> None:
    """Print an action message."""
    console.print(f"[info]→[/info] {message}")


@contextmanager
def spinner(message: str) -> Generator[None, None, None]:
    """Display a spinner while waiting on an operation.

    Args:
        message: The status message to display.

    Yields:
        None

    """
    with console.status(f"[info]{message}[/info]", spinner="dots"):
        yield


def summary_panel(title: str, certificates: dict[str, TLS]) -> None:
    """Print a panel listing found certificates.

    Only sizes are shown; key material never reaches the terminal.

    Args:
        title: Title for the panel.
        certificates: Label -> TLS material to describe.

    """
    table = Table(box=None, padding=(0, 2))
    table.add_column("Certificate", style="bold")
    table.add_column("CA", style="cyan", justify="right")
    table.add_column("Crt", style="cyan", justify="right")
    table.add_column("Key", style="cyan", justify="right")

    for label, tls in certificates.items():
        table.add_row(label, f"{len(tls.ca)} B", f"{len(tls.crt)} B", f"{len(tls.key)} B")

    console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style="green"))
