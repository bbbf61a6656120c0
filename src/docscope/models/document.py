"""Core data models for store nodes and extraction results."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

FOLDER_MEDIA_TYPE = "application/vnd.google-apps.folder"
NATIVE_MEDIA_PREFIX = "application/vnd.google-apps"


class ContentFormat(str, Enum):
    """Closed set of content families the extractor knows how to handle.

    Every media type maps to exactly one member; BINARY is the fallback.
    """

    NATIVE = "native"
    PDF = "pdf"
    WORKBOOK = "workbook"
    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True)
class Node:
    """Snapshot of a node's metadata in the remote store."""

    id: str
    name: str
    media_type: str
    size: Optional[int] = None
    modified_time: Optional[str] = None
    parents: tuple[str, ...] = ()

    @property
    def is_folder(self) -> bool:
        return self.media_type == FOLDER_MEDIA_TYPE

    @property
    def is_native(self) -> bool:
        """True for store-native documents, which have no byte content."""
        return self.media_type.startswith(NATIVE_MEDIA_PREFIX)


@dataclass(frozen=True)
class TextFragment:
    """A run of text positioned on a PDF page."""

    text: str
    x: float
    y: float
    page: int = 0


@dataclass(frozen=True)
class TableCell:
    text: str
    row: int
    col: int


@dataclass
class Table:
    """A table recovered from positioned text.

    Every row in ``rows`` has exactly ``len(headers)`` entries.
    """

    headers: list[str]
    rows: list[list[str]]
    cells: list[list[TableCell]] = field(default_factory=list)
    page: int = 0

    def to_markdown(self) -> str:
        """Render as a Markdown pipe table."""
        if not self.headers:
            return ""

        def fmt(values: list[str]) -> str:
            return "| " + " | ".join(v.replace("|", "\\|") for v in values) + " |"

        lines = [fmt(self.headers), "|" + "|".join("---" for _ in self.headers) + "|"]
        lines.extend(fmt(row) for row in self.rows)
        return "\n".join(lines) + "\n"

    def to_records(self) -> list[dict[str, str]]:
        """Render as a list of header-keyed records."""
        return [dict(zip(self.headers, row)) for row in self.rows]


@dataclass
class SheetData:
    """One worksheet of a parsed workbook."""

    name: str
    headers: list[str]
    records: list[dict[str, Any]]
    cells: list[list[Any]]
    row_count: int
    column_count: int
    delimited: str = ""


@dataclass
class ExtractionResult:
    """Structured content extracted from a single node."""

    node_id: str
    name: str
    media_type: str
    format: ContentFormat
    text: Optional[str] = None
    data: Optional[bytes] = None  # None for text results
    metadata: dict[str, Any] = field(default_factory=dict)
    tables: list[Table] = field(default_factory=list)
    sheets: list[SheetData] = field(default_factory=list)

    @property
    def is_binary(self) -> bool:
        return self.text is None and self.data is not None


@dataclass(frozen=True)
class ByteWindow:
    """Inclusive byte range for a single ranged read."""

    start: int
    end: int
    max_bytes: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class ChunkResult:
    """Bytes returned by one ranged read plus paging information."""

    node_id: str
    name: str
    media_type: str
    total_size: int
    window: ByteWindow
    data: bytes
    is_text: bool
    text: Optional[str] = None

    @property
    def next_start_byte(self) -> Optional[int]:
        """Offset to continue from, or None when the window reached the end."""
        if self.window.end < self.total_size - 1:
            return self.window.end + 1
        return None


@dataclass
class TreeNode:
    """A node in a rendered folder hierarchy."""

    id: str
    name: str
    media_type: str
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.media_type == FOLDER_MEDIA_TYPE


@dataclass(frozen=True)
class SheetInfo:
    """Properties of one tab of a native spreadsheet."""

    sheet_id: int
    title: str
    index: int = 0


@dataclass
class RangeValues:
    """Cell values the store returned for one A1 range, row-major."""

    range: str
    values: list[list[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SheetCell:
    """A cell value with its A1 location, e.g. ``Sheet1!B3``."""

    value: Any
    location: str


@dataclass
class SheetRangeData:
    """One range of a native spreadsheet, first row as column headers."""

    sheet_name: str
    column_headers: list[SheetCell]
    rows: list[list[SheetCell]]
    total_rows: int
    total_columns: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
