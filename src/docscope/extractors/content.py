"""Content extraction pipeline: dispatch, size limits, caching."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from docscope.cache import ResultCache
from docscope.errors import ErrorType, ExtractionError, with_retry
from docscope.extractors.formats import classify_format, export_target
from docscope.extractors.pdf import PdfDocument, parse_pdf
from docscope.extractors.tables import TableExtractor
from docscope.extractors.workbook import parse_workbook
from docscope.models import ContentFormat, ExtractionResult, Node, SheetData
from docscope.protocols import Store
from docscope.scope import ScopeResolver
from docscope.utils.media import format_size, is_text_media_type

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fingerprint(node: Node) -> Optional[str]:
    """Cache key for a node's current revision; any edit changes it.

    Nodes without a modification time have no stable revision and are
    never cached.
    """
    if not node.modified_time:
        return None
    return f"{node.id}@{node.modified_time}"


class ContentExtractor:
    """Turns a node's bytes into an ExtractionResult.

    - Native documents are exported to a fixed text/image format.
    - PDFs and workbooks are size-checked, parsed off the event loop, and
      cached by fingerprint. Concurrent requests for the same uncached
      fingerprint share one download and parse.
    - Everything else is returned verbatim as text or bytes.

    Authorization is checked before any content is fetched.
    """

    def __init__(
        self,
        store: Store,
        scope: ScopeResolver,
        cache: ResultCache,
        max_document_size: int = 20 * 1024 * 1024,
        parse_timeout: float = 120.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        table_extractor: Optional[TableExtractor] = None,
        pdf_parser: Callable[[bytes], PdfDocument] = parse_pdf,
        workbook_parser: Callable[[bytes], list[SheetData]] = parse_workbook,
    ):
        self.store = store
        self.scope = scope
        self.cache = cache
        self.max_document_size = max_document_size
        self.parse_timeout = parse_timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.tables = table_extractor or TableExtractor()
        self.pdf_parser = pdf_parser
        self.workbook_parser = workbook_parser
        self._in_flight: dict[str, asyncio.Task[ExtractionResult]] = {}

    @classmethod
    def from_settings(
        cls, store: Store, scope: ScopeResolver, cache: ResultCache, settings: Any
    ) -> "ContentExtractor":
        return cls(
            store,
            scope,
            cache,
            max_document_size=settings.max_document_size_bytes,
            parse_timeout=settings.parse_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay_seconds,
        )

    async def _call(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(fn, self.retry_attempts, self.retry_delay)

    async def extract(self, node_id: str) -> ExtractionResult:
        """Extract a node's content.

        Raises:
            ExtractionError: classified failure; nothing is cached
        """
        node = await self._call(lambda: self.store.get_metadata(node_id))
        await self.scope.ensure_authorized(node)

        content_format = classify_format(node)
        if content_format is ContentFormat.NATIVE:
            return await self._export(node)
        if content_format in (ContentFormat.PDF, ContentFormat.WORKBOOK):
            return await self._extract_cached(node, content_format)
        return await self._passthrough(node, content_format)

    async def _export(self, node: Node) -> ExtractionResult:
        target = export_target(node.media_type)
        if target is None:
            raise ExtractionError(
                ErrorType.NOT_EXPORTABLE,
                f"Cannot read native documents of type {node.media_type}.",
            )

        data = await self._call(lambda: self.store.export_as(node.id, target))
        result = ExtractionResult(
            node_id=node.id,
            name=node.name,
            media_type=target,
            format=ContentFormat.NATIVE,
            metadata={"source_media_type": node.media_type},
        )
        if is_text_media_type(target):
            result.text = data.decode("utf-8", errors="replace")
        else:
            result.data = data
        return result

    async def _passthrough(self, node: Node, content_format: ContentFormat) -> ExtractionResult:
        data = await self._call(lambda: self.store.get_content(node.id))
        result = ExtractionResult(
            node_id=node.id,
            name=node.name,
            media_type=node.media_type,
            format=content_format,
            metadata={"file_size": len(data)},
        )
        if content_format is ContentFormat.TEXT:
            result.text = data.decode("utf-8", errors="replace")
        else:
            result.data = data
        return result

    def _check_size(self, node: Node, size: Optional[int]) -> None:
        if size is not None and size > self.max_document_size:
            logger.info(
                "Refusing to parse %s: %s exceeds limit of %s",
                node.id, format_size(size), format_size(self.max_document_size),
            )
            raise ExtractionError(
                ErrorType.SIZE_LIMIT_EXCEEDED,
                f"{node.name} is {format_size(size)}, over the "
                f"{format_size(self.max_document_size)} parsing limit.",
            )

    async def _extract_cached(self, node: Node, content_format: ContentFormat) -> ExtractionResult:
        key = fingerprint(node)
        if key is None:
            logger.debug("No revision for %s, extracting without cache", node.id)
            self._check_size(node, node.size)
            return await self._load(node, content_format, None)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        self._check_size(node, node.size)

        task = self._in_flight.get(key)
        if task is None:
            logger.debug("Cache miss for %s", key)
            task = asyncio.ensure_future(self._load(node, content_format, key))
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        else:
            logger.debug("Joining in-flight extraction for %s", key)

        # shield: one cancelled caller must not cancel the shared work
        return await asyncio.shield(task)

    async def _load(self, node: Node, content_format: ContentFormat, key: Optional[str]) -> ExtractionResult:
        data = await self._call(lambda: self.store.get_content(node.id))
        self._check_size(node, len(data))

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._decode, node, content_format, data),
                timeout=self.parse_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExtractionError(
                ErrorType.NETWORK_ERROR,
                f"Parsing {node.name} timed out after {self.parse_timeout:.0f}s.",
            ) from exc

        if key is not None:
            self.cache.set(key, result, len(data))
        return result

    def _decode(self, node: Node, content_format: ContentFormat, data: bytes) -> ExtractionResult:
        if content_format is ContentFormat.PDF:
            return self._decode_pdf(node, data)
        return self._decode_workbook(node, data)

    def _decode_pdf(self, node: Node, data: bytes) -> ExtractionResult:
        document = self.pdf_parser(data)
        tables = self.tables.extract(document.fragments)
        return ExtractionResult(
            node_id=node.id,
            name=node.name,
            media_type=node.media_type,
            format=ContentFormat.PDF,
            text=document.text,
            metadata={
                "pages": document.page_count,
                "file_size": len(data),
                "table_count": len(tables),
                **document.metadata,
            },
            tables=tables,
        )

    def _decode_workbook(self, node: Node, data: bytes) -> ExtractionResult:
        sheets = self.workbook_parser(data)
        text = "\n\n".join(f"## {sheet.name}\n{sheet.delimited}".rstrip() for sheet in sheets)
        return ExtractionResult(
            node_id=node.id,
            name=node.name,
            media_type=node.media_type,
            format=ContentFormat.WORKBOOK,
            text=text,
            metadata={
                "file_size": len(data),
                "sheet_count": len(sheets),
                "sheet_names": [sheet.name for sheet in sheets],
            },
            sheets=sheets,
        )
