"""HTTP surface of the Streamhub provider gateway."""
from .app import create_app

__all__ = ["create_app"]
