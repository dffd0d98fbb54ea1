"""HTTP adapter for a PostgREST-style bookmark table."""

from marksync.adapters.rest.client import RestBookmarkGateway

__all__ = ["RestBookmarkGateway"]
