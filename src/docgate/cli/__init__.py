"""Command-line interface for docgate."""
