"""docgate - admission-controlled document conversion through external office engines."""

__version__ = "0.3.0"
