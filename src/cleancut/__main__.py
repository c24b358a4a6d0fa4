"""Allow ``python -m cleancut``."""

from cleancut.cli import app

if __name__ == "__main__":
    app()
