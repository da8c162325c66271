"""Crawl-frontier and item-catalog datastore."""

from crawlstore.store import FrontierStore

__all__ = ["FrontierStore"]
