"""Data models for DocScope."""

from docscope.models.document import (
    FOLDER_MEDIA_TYPE,
    ByteWindow,
    ChunkResult,
    ContentFormat,
    ExtractionResult,
    Node,
    RangeValues,
    SheetCell,
    SheetData,
    SheetInfo,
    SheetRangeData,
    Table,
    TableCell,
    TextFragment,
    TreeNode,
)

__all__ = [
    "FOLDER_MEDIA_TYPE",
    "ByteWindow",
    "ChunkResult",
    "ContentFormat",
    "ExtractionResult",
    "Node",
    "RangeValues",
    "SheetCell",
    "SheetData",
    "SheetInfo",
    "SheetRangeData",
    "Table",
    "TableCell",
    "TextFragment",
    "TreeNode",
]
