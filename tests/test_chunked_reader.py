"""Tests for byte-window reads of large content."""

import pytest

from docscope.errors import ErrorType, ExtractionError
from docscope.extractors import ChunkedReader, compute_window

pytestmark = pytest.mark.anyio

ALPHABET = b"abcdefghijklmnopqrstuvwxyz"


@pytest.fixture
def reader(store, scope) -> ChunkedReader:
    return ChunkedReader(store, scope, default_max_bytes=10, retry_delay=0)


class TestComputeWindow:
    def test_window_capped_by_max_bytes(self):
        window = compute_window(100, 0, max_bytes=10)
        assert (window.start, window.end, window.length) == (0, 9, 10)

    def test_window_capped_by_file_end(self):
        window = compute_window(100, 95, max_bytes=10)
        assert (window.start, window.end) == (95, 99)

    def test_explicit_end_within_limit(self):
        assert compute_window(100, 10, 14, max_bytes=10).end == 14

    def test_explicit_end_beyond_max_bytes_is_capped(self):
        assert compute_window(100, 0, 50, max_bytes=10).end == 9

    def test_single_byte_file(self):
        window = compute_window(1, 0, max_bytes=10)
        assert (window.start, window.end) == (0, 0)

    @pytest.mark.parametrize(
        "total, start, end, max_bytes",
        [
            (100, 100, None, 10),
            (100, -1, None, 10),
            (100, 50, 40, 10),
            (100, 0, None, 0),
            (0, 0, None, 10),
        ],
    )
    def test_invalid_ranges(self, total, start, end, max_bytes):
        with pytest.raises(ExtractionError) as exc_info:
            compute_window(total, start, end, max_bytes)
        assert exc_info.value.error_type is ErrorType.INVALID_RANGE


async def test_text_chunk_with_continuation(store, reader):
    store.add_file("log", "app.log", "text/plain", ALPHABET)

    chunk = await reader.read("log")

    assert chunk.is_text
    assert chunk.text == "abcdefghij"
    assert chunk.total_size == 26
    assert chunk.next_start_byte == 10


async def test_paging_reassembles_whole_file(store, reader):
    store.add_file("log", "app.log", "text/plain", ALPHABET)

    collected = b""
    start = 0
    while start is not None:
        chunk = await reader.read("log", start_byte=start, max_bytes=7)
        collected += chunk.data
        start = chunk.next_start_byte

    assert collected == ALPHABET


async def test_last_chunk_has_no_continuation(store, reader):
    store.add_file("log", "app.log", "text/plain", ALPHABET)
    chunk = await reader.read("log", start_byte=20)
    assert chunk.data == b"uvwxyz"
    assert chunk.next_start_byte is None


async def test_binary_chunk_has_no_text(store, reader):
    store.add_file("bin", "blob.dat", "application/octet-stream", bytes(range(32)))

    chunk = await reader.read("bin", start_byte=4, end_byte=7)

    assert not chunk.is_text
    assert chunk.text is None
    assert chunk.data == bytes([4, 5, 6, 7])


async def test_native_documents_are_not_streamable(store, reader):
    store.add_native("doc", "Doc", "application/vnd.google-apps.document")
    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("doc")
    assert exc_info.value.error_type is ErrorType.NOT_STREAMABLE


async def test_start_past_end_is_invalid(store, reader):
    store.add_file("log", "app.log", "text/plain", ALPHABET)
    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("log", start_byte=26)
    assert exc_info.value.error_type is ErrorType.INVALID_RANGE
    assert store.calls["get_content_range"] == 0


async def test_out_of_scope_file_is_denied(store, reader):
    store.add_folder("elsewhere", parent="other-root")
    store.add_file("log", "app.log", "text/plain", ALPHABET, parent="elsewhere")
    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("log")
    assert exc_info.value.error_type is ErrorType.OUT_OF_SCOPE


async def test_unknown_encoding(store, reader):
    store.add_file("log", "app.log", "text/plain", ALPHABET)
    with pytest.raises(ExtractionError) as exc_info:
        await reader.read("log", encoding="no-such-codec")
    assert exc_info.value.error_type is ErrorType.UNKNOWN


async def test_alternate_encoding(store, reader):
    store.add_file("log", "app.log", "text/plain", "café".encode("latin-1"))
    chunk = await reader.read("log", encoding="latin-1")
    assert chunk.text == "café"
