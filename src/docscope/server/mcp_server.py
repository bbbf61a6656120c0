"""FastMCP server implementation for DocScope."""

import asyncio
import base64
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Optional, TypeVar

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from docscope.cache import ResultCache
from docscope.config import Settings
from docscope.errors import ErrorType, ExtractionError
from docscope.models import ChunkResult, ContentFormat, ExtractionResult, Node, SheetRangeData
from docscope.protocols import Store
from docscope.scope import build_tree, count_nodes, render_tree
from docscope.services import Services, build_services
from docscope.utils.media import format_size

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_LABELS = {
    "pages": "Pages",
    "title": "Title",
    "author": "Author",
    "subject": "Subject",
    "created_at": "Created",
    "modified_at": "Modified",
    "creator": "Creator",
    "producer": "Producer",
    "table_count": "Tables",
}


def format_extraction(result: ExtractionResult) -> str:
    """Render an extraction result as text for a tool response."""
    if result.format is ContentFormat.PDF:
        lines = [f"PDF: {result.name}", "", "Metadata:"]
        lines.append(f"- File size: {format_size(result.metadata.get('file_size'))}")
        for key, label in METADATA_LABELS.items():
            if key in result.metadata:
                lines.append(f"- {label}: {result.metadata[key]}")
        lines += ["", "Text:", "", result.text or ""]
        for index, table in enumerate(result.tables, 1):
            lines += ["", f"Table {index} (page {table.page + 1}):", table.to_markdown()]
        return "\n".join(lines)

    if result.format is ContentFormat.WORKBOOK:
        lines = [f"Workbook: {result.name}", f"Sheets: {', '.join(s.name for s in result.sheets)}"]
        for sheet in result.sheets:
            lines += [
                "",
                f"## {sheet.name} ({sheet.row_count} rows x {sheet.column_count} columns)",
                sheet.delimited.rstrip(),
            ]
        return "\n".join(lines)

    if result.is_binary:
        data = result.data or b""
        return (
            f"[Binary file]\n"
            f"  Name: {result.name}\n"
            f"  Size: {format_size(len(data))}\n"
            f"  Type: {result.media_type}\n"
            f"\n"
            f"Content (base64):\n"
            f"{base64.b64encode(data).decode('ascii')}"
        )

    return f"Contents of {result.name}:\n\n{result.text or ''}"


def format_sheet_data(data: list[SheetRangeData]) -> str:
    return json.dumps([d.to_dict() for d in data], indent=2, ensure_ascii=False, default=str)


def format_chunk(chunk: ChunkResult) -> str:
    window = chunk.window
    lines = [
        f"File: {chunk.name}",
        f"Size: {chunk.total_size} bytes",
        f"Read: bytes {window.start}-{window.end} ({window.length} bytes)",
        f"MIME Type: {chunk.media_type}",
        "",
    ]
    if chunk.is_text:
        lines += ["Content:", chunk.text or ""]
    else:
        lines.append(f"Binary content ({len(chunk.data)} bytes).")
    if chunk.next_start_byte is not None:
        lines += ["", f"[More content available. Next chunk: start_byte={chunk.next_start_byte}]"]
    return "\n".join(lines)


def format_search(query: str, nodes: list[Node]) -> str:
    if not nodes:
        return f"No files found matching '{query}'"
    lines = [f"Found {len(nodes)} files:"]
    lines += [f"{n.id} {n.name} ({n.media_type})" for n in nodes]
    return "\n".join(lines)


async def _guard(action: Awaitable[T], context: str) -> T:
    """Turn classified failures into tool errors with a remediation hint."""
    try:
        return await action
    except ExtractionError as exc:
        logger.info("%s failed: %s", context, exc.error_type.value)
        raise ToolError(f"Error {context}: {exc.describe()}") from exc
    except Exception as exc:
        logger.exception("Unexpected failure while %s", context)
        error = ExtractionError(ErrorType.UNKNOWN, str(exc) or repr(exc))
        raise ToolError(f"Error {context}: {error.describe()}") from exc


async def _cleanup_loop(cache: ResultCache, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        cache.cleanup()


def create_mcp_server(settings: Settings, store: Optional[Store] = None) -> FastMCP:
    """Create an MCP server scoped to one authorized root folder.

    Design: 1 process = 1 root. The scope set and result cache are built
    once and shared by every tool call.

    Args:
        settings: Loaded application settings
        store: Store backend; defaults to DriveStore

    Returns:
        Configured FastMCP server instance
    """
    services: Services = build_services(settings, store)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict]:
        interval = settings.cache_cleanup_interval_seconds
        task = asyncio.create_task(_cleanup_loop(services.cache, interval)) if interval > 0 else None
        try:
            yield {}
        finally:
            if task is not None:
                task.cancel()
            await services.aclose()

    mcp = FastMCP(name="docscope", lifespan=lifespan)

    @mcp.tool()
    async def read_file(file_id: str) -> str:
        """Read a file's contents.

        Native documents are exported (documents as Markdown, spreadsheets as
        CSV, presentations as plain text). PDFs return text, metadata and any
        detected tables; Excel workbooks return every sheet.

        Args:
            file_id: ID of the file to read
        """
        result = await _guard(services.extractor.extract(file_id), "reading file")
        return format_extraction(result)

    @mcp.tool()
    async def read_tables(file_id: str, format: str = "markdown") -> str:
        """Extract tables from a PDF.

        Args:
            file_id: ID of the PDF
            format: "markdown" for pipe tables or "json" for header-keyed records
        """
        result = await _guard(services.extractor.extract(file_id), "extracting tables")
        if result.format is not ContentFormat.PDF:
            raise ToolError(f"Error extracting tables: {result.name} is not a PDF.")
        if not result.tables:
            return f"No tables found in {result.name}"
        if format == "json":
            return json.dumps([t.to_records() for t in result.tables], indent=2, ensure_ascii=False)
        return "\n".join(t.to_markdown() for t in result.tables)

    @mcp.tool()
    async def read_sheet(
        spreadsheet_id: str,
        ranges: Optional[list[str]] = None,
        sheet_id: Optional[int] = None,
    ) -> str:
        """Read cell values from a native spreadsheet, each tagged with its A1 location.

        Args:
            spreadsheet_id: ID of the spreadsheet
            ranges: A1 ranges like ["Sheet1!A1:B10"]; reads a whole sheet if omitted
            sheet_id: Numeric sheet ID to read when no ranges are given (default: first sheet)
        """
        data = await _guard(
            services.sheets.read(spreadsheet_id, ranges, sheet_id), "reading spreadsheet"
        )
        return format_sheet_data(data)

    @mcp.tool()
    async def read_large_file(
        file_id: str,
        start_byte: int = 0,
        end_byte: Optional[int] = None,
        max_bytes: Optional[int] = None,
        encoding: str = "utf-8",
    ) -> str:
        """Read part of a large file by byte range.

        Args:
            file_id: ID of the file to read
            start_byte: Starting byte position (0-based)
            end_byte: Ending byte position (inclusive)
            max_bytes: Maximum bytes to read (default: 10MB)
            encoding: Text encoding (default: utf-8)
        """
        chunk = await _guard(
            services.reader.read(file_id, start_byte, end_byte, max_bytes, encoding),
            "reading large file",
        )
        return format_chunk(chunk)

    @mcp.tool()
    async def search(query: str, limit: int = 10) -> str:
        """Search for files by name inside the allowed folders.

        Args:
            query: Text the file name must contain
            limit: Maximum number of results (max 100)
        """
        nodes = await _guard(services.scope.search(query, limit), "searching files")
        return format_search(query, nodes)

    @mcp.tool()
    async def folder_structure(
        folder_id: Optional[str] = None,
        max_depth: int = 5,
        include_files: bool = False,
        max_items: int = 50,
    ) -> str:
        """Show the folder hierarchy as a tree.

        Args:
            folder_id: Folder to start from (defaults to the root folder)
            max_depth: Maximum depth to traverse
            include_files: Include files, not only folders
            max_items: Maximum items listed per folder
        """
        tree = await _guard(
            build_tree(services.scope, folder_id, max_depth, include_files, max_items),
            "getting folder structure",
        )
        folders, files = count_nodes(tree)
        summary = f"Summary: {folders} folders"
        if include_files:
            summary += f", {files} files"
        return f"Folder Structure:\n\n{render_tree(tree)}\n\n{summary}\n(Max depth: {max_depth})"

    @mcp.tool()
    def cache_stats() -> str:
        """Report result cache usage."""
        stats = services.cache.stats()
        return (
            f"Entries: {stats['count']}\n"
            f"Size: {format_size(stats['size'])} of {format_size(stats['max_size'])}\n"
            f"Hits: {stats['hits']}  Misses: {stats['misses']}  "
            f"Hit rate: {stats['hit_rate']:.0%}"
        )

    return mcp
