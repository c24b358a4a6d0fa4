"""Common CLI utilities and the main app group."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)
_configured = False


def configure_logging(*, verbose: bool = False) -> None:
    """Configure logging with Rich handler. Call once at startup."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
            )
        ],
        force=True,
    )

    # readability-lxml logs every candidate at INFO
    logging.getLogger("readability").setLevel(logging.WARNING)

    _configured = True


@click.group(help="Extract the readable article from noisy HTML.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def app(verbose: bool) -> None:
    """
    Entry point for the cleancut CLI.

    Provides commands for extracting articles from saved HTML pages and
    inspecting the boilerplate rules.
    """
    configure_logging(verbose=verbose)
