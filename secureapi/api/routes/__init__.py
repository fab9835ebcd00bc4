"""API routes package."""

from secureapi.api.routes import health, patterns, scan

__all__ = ["health", "patterns", "scan"]
