"""CLI commands for docgate."""
