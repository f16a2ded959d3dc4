"""Entry point for `python -m w3gw`."""

from w3gw.cli.commands import app

if __name__ == "__main__":
    app()
