"""Command-line interface for the party venues pipeline."""
