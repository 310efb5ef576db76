"""Router exports for the Streamhub API."""
from . import content, diagnostics, fallback, health, providers, proxy, stream, transcode

__all__ = ["content", "diagnostics", "fallback", "health", "providers", "proxy", "stream", "transcode"]
