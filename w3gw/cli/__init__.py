"""Command-line interface for w3gw."""
