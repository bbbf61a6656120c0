"""Bounded byte-range reads for content too large to extract whole."""

import logging
from contextlib import aclosing
from typing import Any, Optional

from docscope.errors import ErrorType, ExtractionError, with_retry
from docscope.models import ByteWindow, ChunkResult
from docscope.protocols import Store
from docscope.scope import ScopeResolver
from docscope.utils.media import is_text_media_type

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024


def compute_window(
    total_size: int,
    start_byte: int = 0,
    end_byte: Optional[int] = None,
    max_bytes: int = DEFAULT_CHUNK_SIZE,
) -> ByteWindow:
    """Resolve the inclusive range to fetch.

    The window never extends past the end of the file, and never spans more
    than ``max_bytes`` bytes even when ``end_byte`` asks for more.
    """
    if max_bytes <= 0:
        raise ExtractionError(ErrorType.INVALID_RANGE, f"max_bytes must be positive, got {max_bytes}.")
    if start_byte < 0 or start_byte >= total_size:
        raise ExtractionError(
            ErrorType.INVALID_RANGE,
            f"Invalid start byte {start_byte}. File size is {total_size} bytes.",
        )

    limit = min(start_byte + max_bytes - 1, total_size - 1)
    end = limit if end_byte is None else min(end_byte, limit)
    if end < start_byte:
        raise ExtractionError(
            ErrorType.INVALID_RANGE,
            f"End byte {end_byte} is before start byte {start_byte}.",
        )
    return ByteWindow(start=start_byte, end=end, max_bytes=max_bytes)


class ChunkedReader:
    """Reads one byte window of a node per call.

    Callers page through large content by following
    ``ChunkResult.next_start_byte``; at most one window is held in memory.
    """

    def __init__(
        self,
        store: Store,
        scope: ScopeResolver,
        default_max_bytes: int = DEFAULT_CHUNK_SIZE,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self.store = store
        self.scope = scope
        self.default_max_bytes = default_max_bytes
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, store: Store, scope: ScopeResolver, settings: Any) -> "ChunkedReader":
        return cls(
            store,
            scope,
            default_max_bytes=settings.chunk_size_bytes,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay_seconds,
        )

    async def read(
        self,
        node_id: str,
        start_byte: int = 0,
        end_byte: Optional[int] = None,
        max_bytes: Optional[int] = None,
        encoding: str = "utf-8",
    ) -> ChunkResult:
        node = await with_retry(
            lambda: self.store.get_metadata(node_id),
            self.retry_attempts,
            self.retry_delay,
        )
        await self.scope.ensure_authorized(node)

        if node.is_native:
            raise ExtractionError(
                ErrorType.NOT_STREAMABLE,
                f"Native documents ({node.media_type}) cannot be streamed.",
            )
        if node.size is None:
            raise ExtractionError(
                ErrorType.NOT_STREAMABLE,
                f"{node.name} has no known size and cannot be read by range.",
            )

        window = compute_window(
            node.size, start_byte, end_byte, max_bytes or self.default_max_bytes
        )
        logger.debug("Reading %s bytes %d-%d of %d", node.id, window.start, window.end, node.size)

        data = await with_retry(
            lambda: self._fetch(node.id, window),
            self.retry_attempts,
            self.retry_delay,
        )

        is_text = is_text_media_type(node.media_type)
        try:
            text = data.decode(encoding, errors="replace") if is_text else None
        except LookupError as exc:
            raise ExtractionError(ErrorType.UNKNOWN, f"Unknown text encoding: {encoding}") from exc

        return ChunkResult(
            node_id=node.id,
            name=node.name,
            media_type=node.media_type,
            total_size=node.size,
            window=window,
            data=data,
            is_text=is_text,
            text=text,
        )

    async def _fetch(self, node_id: str, window: ByteWindow) -> bytes:
        buffer = bytearray()
        async with aclosing(self.store.get_content_range(node_id, window.start, window.end)) as stream:
            async for chunk in stream:
                buffer += chunk[: window.length - len(buffer)]
                if len(buffer) >= window.length:
                    break
        return bytes(buffer)
