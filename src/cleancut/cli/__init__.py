"""Command-line interface for cleancut.

The CLI is a thin host around the extraction core. Commands are organized
into modules by functionality:

- extract: Extract an article from a saved HTML file
- rules: List the active boilerplate rule sets
"""

# Import all command modules to register them with the app
from cleancut.cli import (
    extract,  # noqa: F401
    rules,  # noqa: F401
)
from cleancut.cli._common import app

__all__ = ["app"]
