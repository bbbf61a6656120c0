"""Closed classification of nodes into content formats."""

from typing import Optional

from docscope.models import ContentFormat, Node
from docscope.utils.media import is_pdf, is_text_media_type, is_workbook

# Store-native document type -> export media type. Anything native that is
# not listed here (folders, forms, sites, shortcuts, maps) cannot be read.
EXPORT_TARGETS = {
    "application/vnd.google-apps.document": "text/markdown",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
    "application/vnd.google-apps.drawing": "image/png",
}


def classify_format(node: Node) -> ContentFormat:
    """Map a node onto exactly one ContentFormat, BINARY as fallback."""
    if node.is_native:
        return ContentFormat.NATIVE
    if is_pdf(node.media_type, node.name):
        return ContentFormat.PDF
    if is_workbook(node.media_type, node.name):
        return ContentFormat.WORKBOOK
    if is_text_media_type(node.media_type):
        return ContentFormat.TEXT
    return ContentFormat.BINARY


def export_target(media_type: str) -> Optional[str]:
    return EXPORT_TARGETS.get(media_type)
