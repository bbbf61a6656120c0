"""Content extraction: format dispatch, decoders, tables, ranged reads."""

from docscope.extractors.chunked import ChunkedReader, compute_window
from docscope.extractors.content import ContentExtractor, fingerprint
from docscope.extractors.formats import EXPORT_TARGETS, classify_format, export_target
from docscope.extractors.pdf import PdfDocument, parse_pdf
from docscope.extractors.sheets import SheetReader
from docscope.extractors.tables import TableExtractor
from docscope.extractors.workbook import parse_workbook

__all__ = [
    "EXPORT_TARGETS",
    "ChunkedReader",
    "ContentExtractor",
    "PdfDocument",
    "SheetReader",
    "TableExtractor",
    "classify_format",
    "compute_window",
    "export_target",
    "fingerprint",
    "parse_pdf",
    "parse_workbook",
]
