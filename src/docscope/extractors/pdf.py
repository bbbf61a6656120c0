"""PDF decoding: text, metadata, and positioned fragments."""

import io
from dataclasses import dataclass, field
from typing import Any

import pdfplumber
from pdfminer.pdfdocument import PDFEncryptionError, PDFPasswordIncorrect

from docscope.errors import ErrorType, ExtractionError
from docscope.models import TextFragment

# PDF info dictionary key -> result metadata key
METADATA_FIELDS = {
    "Title": "title",
    "Author": "author",
    "Subject": "subject",
    "Keywords": "keywords",
    "Creator": "creator",
    "Producer": "producer",
    "CreationDate": "created_at",
    "ModDate": "modified_at",
}


@dataclass
class PdfDocument:
    """Everything extracted from one PDF in a single pass."""

    text: str
    page_count: int
    metadata: dict[str, str] = field(default_factory=dict)
    fragments: list[list[TextFragment]] = field(default_factory=list)


def _metadata_value(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip()


def _is_password_error(exc: BaseException) -> bool:
    """Walk the exception chain looking for a pdfminer encryption failure.

    pdfplumber wraps pdfminer errors, so the original may sit in
    ``args``, ``__cause__`` or ``__context__``.
    """
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))

        if isinstance(current, (PDFPasswordIncorrect, PDFEncryptionError)):
            return True
        message = str(current).lower()
        if "password" in message or "encrypt" in message:
            return True

        pending.extend(a for a in current.args if isinstance(a, BaseException))
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)
    return False


def parse_pdf(data: bytes) -> PdfDocument:
    """Decode a PDF held in memory.

    Args:
        data: Raw PDF bytes

    Returns:
        PdfDocument with page text joined by newlines and per-page fragments

    Raises:
        ExtractionError: ENCRYPTED_DOCUMENT for password-protected files,
            SCANNED_DOCUMENT when no text layer exists, PARSE_ERROR otherwise
    """
    page_texts: list[str] = []
    fragments: list[list[TextFragment]] = []
    metadata: dict[str, str] = {}

    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            info = pdf.metadata or {}
            for key, name in METADATA_FIELDS.items():
                if info.get(key):
                    value = _metadata_value(info[key])
                    if value:
                        metadata[name] = value

            for index, page in enumerate(pdf.pages):
                page_texts.append(page.extract_text() or "")
                # keep_blank_chars keeps multi-word cells as one fragment
                words = page.extract_words(keep_blank_chars=True)
                fragments.append(
                    [
                        TextFragment(
                            text=w["text"],
                            x=float(w["x0"]),
                            y=float(w["top"]),
                            page=index,
                        )
                        for w in words
                    ]
                )
    except Exception as exc:
        if _is_password_error(exc):
            raise ExtractionError(
                ErrorType.ENCRYPTED_DOCUMENT, "This PDF is password protected."
            ) from exc
        raise ExtractionError(ErrorType.PARSE_ERROR, f"PDF parse error: {exc}") from exc

    text = "\n".join(page_texts).strip()
    if not text:
        raise ExtractionError(
            ErrorType.SCANNED_DOCUMENT,
            "This PDF consists of scanned images; no text could be extracted.",
        )

    return PdfDocument(
        text=text,
        page_count=len(page_texts),
        metadata=metadata,
        fragments=fragments,
    )
