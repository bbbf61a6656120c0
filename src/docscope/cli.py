"""CLI entry point for DocScope."""

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable, Literal, Optional, TypeVar, cast

from pydantic import ValidationError

from docscope.config import Settings, get_settings
from docscope.errors import ExtractionError
from docscope.scope import build_tree, count_nodes, render_tree
from docscope.services import Services, build_services

logging.basicConfig(
    level=logging.INFO,
    stream=sys.stderr,
    format="%(message)s",
)
logger = logging.getLogger(__name__)

T = TypeVar("T")


def load_settings() -> Settings:
    """Load settings or exit with a readable message."""
    try:
        return get_settings()
    except ValidationError as exc:
        logger.error("Invalid configuration:")
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"])
            logger.error("  DOCSCOPE_%s: %s", field.upper(), error["msg"])
        sys.exit(1)


def _run(action: Callable[[Services], Awaitable[T]]) -> T:
    """Build services, run one action, and exit on classified failures."""

    async def main() -> T:
        services = build_services(load_settings())
        try:
            return await action(services)
        finally:
            await services.aclose()

    try:
        return asyncio.run(main())
    except ExtractionError as exc:
        logger.error(exc.describe())
        sys.exit(1)


def serve(transport: str = "stdio") -> None:
    """Start the MCP server.

    Args:
        transport: Transport protocol (stdio or sse)
    """
    settings = load_settings()

    # Import here to avoid loading MCP unless needed
    from docscope.server import create_mcp_server

    logger.info("Serving folder %s via %s", settings.root_folder_id, transport)
    mcp = create_mcp_server(settings)
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))


def read(file_id: str) -> None:
    """Extract one file and print it."""
    from docscope.server import format_extraction

    result = _run(lambda s: s.extractor.extract(file_id))
    print(format_extraction(result))


def chunk(file_id: str, start: int = 0, end: Optional[int] = None, max_bytes: Optional[int] = None) -> None:
    """Read a byte range of a file and print it."""
    from docscope.server import format_chunk

    result = _run(lambda s: s.reader.read(file_id, start, end, max_bytes))
    print(format_chunk(result))


def sheet(spreadsheet_id: str, ranges: Optional[list[str]] = None, sheet_id: Optional[int] = None) -> None:
    """Print cell values of a native spreadsheet as JSON."""
    from docscope.server import format_sheet_data

    data = _run(lambda s: s.sheets.read(spreadsheet_id, ranges, sheet_id))
    print(format_sheet_data(data))


def tree(folder_id: Optional[str] = None, depth: int = 5, files: bool = False) -> None:
    """Print the folder hierarchy."""
    root = _run(lambda s: build_tree(s.scope, folder_id, depth, files))
    folders, file_count = count_nodes(root)

    print(render_tree(root))
    print()
    print(f"Folders: {folders}")
    if files:
        print(f"Files: {file_count}")


def check(file_id: str) -> None:
    """Print whether a node is inside the authorized scope."""
    allowed = _run(lambda s: s.scope.is_authorized(file_id))
    print(f"{file_id}: {'authorized' if allowed else 'outside scope'}")
    if not allowed:
        sys.exit(2)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docscope",
        description="DocScope - scoped document extraction for remote file stores",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the MCP server",
    )
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    # read command
    read_parser = subparsers.add_parser(
        "read",
        help="Extract a file's content",
    )
    read_parser.add_argument("file_id", help="ID of the file to read")

    # chunk command
    chunk_parser = subparsers.add_parser(
        "chunk",
        help="Read a byte range of a large file",
    )
    chunk_parser.add_argument("file_id", help="ID of the file to read")
    chunk_parser.add_argument("--start", type=int, default=0, help="Start byte (default: 0)")
    chunk_parser.add_argument("--end", type=int, default=None, help="End byte, inclusive")
    chunk_parser.add_argument("--max-bytes", type=int, default=None, help="Maximum bytes to read")

    # sheet command
    sheet_parser = subparsers.add_parser(
        "sheet",
        help="Read cell values from a native spreadsheet",
    )
    sheet_parser.add_argument("spreadsheet_id", help="ID of the spreadsheet")
    sheet_parser.add_argument(
        "--range", dest="ranges", action="append", default=None, help="A1 range (repeatable)"
    )
    sheet_parser.add_argument("--sheet-id", type=int, default=None, help="Numeric sheet ID")

    # tree command
    tree_parser = subparsers.add_parser(
        "tree",
        help="Show the folder structure",
    )
    tree_parser.add_argument("--folder", default=None, help="Folder ID (default: root)")
    tree_parser.add_argument("--depth", type=int, default=5, help="Maximum depth (default: 5)")
    tree_parser.add_argument("--files", action="store_true", help="Include files")

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Check whether a file is inside the authorized scope",
    )
    check_parser.add_argument("file_id", help="ID of the file or folder")

    args = parser.parse_args()

    if args.command == "serve":
        serve(args.transport)
    elif args.command == "read":
        read(args.file_id)
    elif args.command == "chunk":
        chunk(args.file_id, args.start, args.end, args.max_bytes)
    elif args.command == "sheet":
        sheet(args.spreadsheet_id, args.ranges, args.sheet_id)
    elif args.command == "tree":
        tree(args.folder, args.depth, args.files)
    elif args.command == "check":
        check(args.file_id)


if __name__ == "__main__":
    main()
