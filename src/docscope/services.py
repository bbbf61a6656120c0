"""Wiring of the process-wide service objects."""

from dataclasses import dataclass
from typing import Optional

from docscope.cache import ResultCache
from docscope.config import Settings
from docscope.extractors import ChunkedReader, ContentExtractor, SheetReader
from docscope.protocols import Store
from docscope.scope import ScopeResolver
from docscope.storage import DriveStore


@dataclass
class Services:
    """Everything a request handler needs, created once per process."""

    settings: Settings
    store: Store
    scope: ScopeResolver
    cache: ResultCache
    extractor: ContentExtractor
    reader: ChunkedReader
    sheets: SheetReader

    def reset(self) -> None:
        """Drop memoized scope and cached results."""
        self.scope.invalidate()
        self.cache.clear()

    async def aclose(self) -> None:
        close = getattr(self.store, "aclose", None)
        if close is not None:
            await close()


def build_services(settings: Settings, store: Optional[Store] = None) -> Services:
    store = store or DriveStore(settings)
    scope = ScopeResolver.from_settings(store, settings)
    cache = ResultCache.from_settings(settings)
    return Services(
        settings=settings,
        store=store,
        scope=scope,
        cache=cache,
        extractor=ContentExtractor.from_settings(store, scope, cache, settings),
        reader=ChunkedReader.from_settings(store, scope, settings),
        sheets=SheetReader.from_settings(store, scope, settings),
    )
