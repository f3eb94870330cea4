"""Static SPA server with an /api reverse proxy to a single backend."""

__version__ = "1.0.0"
