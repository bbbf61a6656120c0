"""Protocol for the remote hierarchical file store."""

from typing import AsyncIterator, Optional, Protocol, Sequence, runtime_checkable

from docscope.models import Node, RangeValues, SheetInfo


@runtime_checkable
class Store(Protocol):
    """Protocol for remote store backends.

    Implementations talk to a concrete service (Drive, a test double, ...).
    Uses structural subtyping - no inheritance required. Failures are
    raised as ``ExtractionError`` so callers can classify and retry them.
    """

    async def get_metadata(self, node_id: str) -> Node:
        """Fetch name, media type, size, modification time and parents."""
        ...

    async def get_content(self, node_id: str) -> bytes:
        """Download the node's full byte content."""
        ...

    def get_content_range(
        self, node_id: str, start: int, end: int
    ) -> AsyncIterator[bytes]:
        """Stream the inclusive byte range ``[start, end]``."""
        ...

    async def export_as(self, node_id: str, media_type: str) -> bytes:
        """Export a store-native document to ``media_type``."""
        ...

    async def list_children(
        self,
        node_id: str,
        folders_only: bool = False,
        limit: Optional[int] = None,
    ) -> list[Node]:
        """List the direct children of a folder."""
        ...

    async def list_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        """List the tabs of a native spreadsheet in display order."""
        ...

    async def get_sheet_values(
        self, spreadsheet_id: str, ranges: Sequence[str]
    ) -> list[RangeValues]:
        """Fetch cell values for each A1 range, one entry per range."""
        ...
