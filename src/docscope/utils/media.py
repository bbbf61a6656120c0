"""Media type and size helpers."""

from pathlib import PurePosixPath

PDF_MEDIA_TYPE = "application/pdf"

WORKBOOK_MEDIA_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}

# Extensions are only consulted when the store reports a generic media type
GENERIC_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
PDF_EXTENSIONS = {".pdf"}
WORKBOOK_EXTENSIONS = {".xlsx", ".xlsm"}

TEXT_MEDIA_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
}


def _base(media_type: str) -> str:
    return media_type.split(";", 1)[0].strip().lower()


def extension(name: str) -> str:
    """Lower-cased file extension of a node name, including the dot."""
    return PurePosixPath(name).suffix.lower()


def is_text_media_type(media_type: str) -> bool:
    """Check if a media type is safe to decode as text."""
    media_type = _base(media_type)
    return media_type.startswith("text/") or media_type in TEXT_MEDIA_TYPES


def is_pdf(media_type: str, name: str = "") -> bool:
    media_type = _base(media_type)
    if media_type == PDF_MEDIA_TYPE:
        return True
    return media_type in GENERIC_MEDIA_TYPES and extension(name) in PDF_EXTENSIONS


def is_workbook(media_type: str, name: str = "") -> bool:
    media_type = _base(media_type)
    if media_type in WORKBOOK_MEDIA_TYPES:
        return True
    return media_type in GENERIC_MEDIA_TYPES and extension(name) in WORKBOOK_EXTENSIONS


def format_size(size: int | None) -> str:
    """Human-readable byte count."""
    if size is None:
        return "unknown"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
