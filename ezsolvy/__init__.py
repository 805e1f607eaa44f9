"""ezsolvy: worksheet explanation jobs, dispatch and status streaming."""

__version__ = "0.1.0"
