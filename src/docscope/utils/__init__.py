"""Utility functions for DocScope."""

from docscope.utils.media import format_size, is_pdf, is_text_media_type, is_workbook

__all__ = ["format_size", "is_pdf", "is_text_media_type", "is_workbook"]
