"""
Provider runtime for Streamhub.

This package fetches provider modules from mirrors, runs them in a restricted
namespace, and turns content links into playable stream candidates. A cascade
of generic strategies takes over when a provider comes back empty.
"""

__all__ = [
    "adapter",
    "cascade",
    "content",
    "context",
    "diagnostics",
    "errors",
    "extractors",
    "fallback",
    "proxy",
    "registry",
    "resolution",
    "sandbox",
]
