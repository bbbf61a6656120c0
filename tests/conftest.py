"""Shared fixtures: an in-memory store and wired service objects."""

from collections import Counter
from typing import Any, AsyncIterator, Optional, Sequence

import pytest

from docscope.cache import ResultCache
from docscope.config import Settings
from docscope.errors import ErrorType, ExtractionError
from docscope.extractors.sheets import SPREADSHEET_MEDIA_TYPE, sheet_name_from_range
from docscope.models import FOLDER_MEDIA_TYPE, Node, RangeValues, SheetInfo
from docscope.scope import ScopeResolver

ROOT_ID = "root"


class InMemoryStore:
    """Store double backed by dicts, counting every call by method name."""

    def __init__(self, range_piece: int = 4):
        self.nodes: dict[str, Node] = {}
        self.content: dict[str, bytes] = {}
        self.exports: dict[tuple[str, str], bytes] = {}
        self.tabs: dict[str, dict[str, list[list[Any]]]] = {}
        self.sheet_ids: dict[str, dict[str, int]] = {}
        self.requested_ranges: list[str] = []
        self.calls: Counter[str] = Counter()
        self.range_piece = range_piece
        self.add_folder(ROOT_ID, parent=None, name="Root")

    def add_folder(self, node_id: str, parent: Optional[str] = ROOT_ID, name: Optional[str] = None) -> Node:
        node = Node(
            id=node_id,
            name=name or node_id,
            media_type=FOLDER_MEDIA_TYPE,
            parents=(parent,) if parent else (),
        )
        self.nodes[node_id] = node
        return node

    def add_file(
        self,
        node_id: str,
        name: str,
        media_type: str,
        data: bytes = b"",
        parent: str = ROOT_ID,
        size: Optional[int] = None,
        modified_time: Optional[str] = "2024-01-01T00:00:00Z",
    ) -> Node:
        node = Node(
            id=node_id,
            name=name,
            media_type=media_type,
            size=len(data) if size is None else size,
            modified_time=modified_time,
            parents=(parent,),
        )
        self.nodes[node_id] = node
        self.content[node_id] = data
        return node

    def add_native(self, node_id: str, name: str, media_type: str, parent: str = ROOT_ID) -> Node:
        node = Node(id=node_id, name=name, media_type=media_type, parents=(parent,))
        self.nodes[node_id] = node
        return node

    def add_spreadsheet(
        self,
        node_id: str,
        name: str,
        tabs: dict[str, list[list[Any]]],
        parent: str = ROOT_ID,
    ) -> Node:
        """Native spreadsheet whose tabs get sheet IDs 0, 100, 200, ... in order."""
        node = self.add_native(node_id, name, SPREADSHEET_MEDIA_TYPE, parent)
        self.tabs[node_id] = tabs
        self.sheet_ids[node_id] = {title: i * 100 for i, title in enumerate(tabs)}
        return node

    def _node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise ExtractionError(ErrorType.NOT_FOUND, f"Not found: {node_id}", 404) from None

    async def get_metadata(self, node_id: str) -> Node:
        self.calls["get_metadata"] += 1
        return self._node(node_id)

    async def get_content(self, node_id: str) -> bytes:
        self.calls["get_content"] += 1
        self._node(node_id)
        return self.content.get(node_id, b"")

    async def get_content_range(self, node_id: str, start: int, end: int) -> AsyncIterator[bytes]:
        self.calls["get_content_range"] += 1
        data = self.content.get(self._node(node_id).id, b"")[start : end + 1]
        for offset in range(0, len(data), self.range_piece):
            yield data[offset : offset + self.range_piece]

    async def export_as(self, node_id: str, media_type: str) -> bytes:
        self.calls["export_as"] += 1
        self._node(node_id)
        return self.exports.get((node_id, media_type), b"")

    async def list_children(
        self,
        node_id: str,
        folders_only: bool = False,
        limit: Optional[int] = None,
    ) -> list[Node]:
        self.calls["list_children"] += 1
        children = sorted(
            (n for n in self.nodes.values() if node_id in n.parents),
            key=lambda n: (not n.is_folder, n.name),
        )
        if folders_only:
            children = [n for n in children if n.is_folder]
        return children if limit is None else children[:limit]

    async def list_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        self.calls["list_sheets"] += 1
        self._node(spreadsheet_id)
        ids = self.sheet_ids.get(spreadsheet_id, {})
        return [SheetInfo(sheet_id=ids[t], title=t, index=i) for i, t in enumerate(ids)]

    async def get_sheet_values(
        self, spreadsheet_id: str, ranges: Sequence[str]
    ) -> list[RangeValues]:
        self.calls["get_sheet_values"] += 1
        self.requested_ranges = list(ranges)
        tabs = self.tabs.get(self._node(spreadsheet_id).id, {})
        results = []
        for a1_range in ranges:
            title = sheet_name_from_range(a1_range)
            if title not in tabs:
                raise ExtractionError(ErrorType.NOT_FOUND, f"Unable to parse range: {a1_range}", 400)
            echoed = a1_range if "!" in a1_range else f"{a1_range}!A1:Z1000"
            results.append(RangeValues(range=echoed, values=tabs[title]))
        return results


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scope(store: InMemoryStore) -> ScopeResolver:
    return ScopeResolver(store, ROOT_ID, max_depth=3, max_nodes=100, retry_delay=0)


@pytest.fixture
def cache(clock: FakeClock) -> ResultCache:
    return ResultCache(max_size_bytes=1024 * 1024, ttl_seconds=60, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        root_folder_id=ROOT_ID,
        retry_delay_seconds=0,
        cache_cleanup_interval_seconds=0,
        _env_file=None,
    )
