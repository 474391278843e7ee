"""Core processing module for docgate: admission, workspaces, routing, fallback and cleanup."""
