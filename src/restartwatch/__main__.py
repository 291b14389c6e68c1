"""Allow ``python -m restartwatch``."""

from restartwatch.cli import app

if __name__ == "__main__":
    app()
