"""app-v1: a single static JSON endpoint behind CORS and request logging."""

__version__ = "1.0.0"
