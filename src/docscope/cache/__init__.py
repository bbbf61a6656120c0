"""Extraction result caching."""

from docscope.cache.result_cache import CacheEntry, ResultCache

__all__ = ["CacheEntry", "ResultCache"]
