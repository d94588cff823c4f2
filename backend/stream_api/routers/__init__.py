"""Router exports for the stream API."""
from . import health, mappings, proxy, sources

__all__ = ["health", "mappings", "proxy", "sources"]
