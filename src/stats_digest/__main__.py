"""Allow ``python -m stats_digest``."""

from stats_digest.cli import app

if __name__ == "__main__":
    app()
