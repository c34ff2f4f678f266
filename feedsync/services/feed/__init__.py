"""Feed retrieval helpers."""

from .jsonfeed import FeedClient, FeedItem, parse_feed

__all__ = ["FeedClient", "FeedItem", "parse_feed"]
