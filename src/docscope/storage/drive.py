"""Drive v3 REST implementation of the Store protocol."""

import logging
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from docscope.errors import classify_http_error
from docscope.models import FOLDER_MEDIA_TYPE, Node, RangeValues, SheetInfo

logger = logging.getLogger(__name__)

FILE_FIELDS = "id,name,mimeType,size,modifiedTime,parents"
PAGE_SIZE = 100


def _quote(value: str) -> str:
    """Escape a literal for use inside a Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _to_node(data: dict[str, Any]) -> Node:
    size = data.get("size")
    return Node(
        id=data["id"],
        name=data.get("name") or data["id"],
        media_type=data.get("mimeType") or "application/octet-stream",
        size=int(size) if size is not None else None,
        modified_time=data.get("modifiedTime"),
        parents=tuple(data.get("parents") or ()),
    )


def _to_sheet(data: dict[str, Any]) -> SheetInfo:
    props = data.get("properties") or {}
    return SheetInfo(
        sheet_id=int(props.get("sheetId", 0)),
        title=props.get("title", ""),
        index=int(props.get("index", 0)),
    )


class DriveStore:
    """Async client for the Drive v3 files API and the Sheets v4 values API.

    Credentials are supplied as a ready-made bearer token; acquiring and
    refreshing it is outside this class.
    """

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.api_base_url.rstrip("/")
        self.sheets_url = settings.sheets_api_base_url.rstrip("/")
        self.timeout = settings.request_timeout_seconds
        self._headers: dict[str, str] = {}
        if settings.access_token is not None:
            self._headers["Authorization"] = f"Bearer {settings.access_token.get_secret_value()}"
        self._client = client or httpx.AsyncClient(timeout=self.timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DriveStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, url: str, params: Any) -> httpx.Response:
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise classify_http_error(exc) from exc
        return response

    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        return await self._request(
            f"{self.base_url}{path}", {"supportsAllDrives": "true", **params}
        )

    async def get_metadata(self, node_id: str) -> Node:
        response = await self._get(f"/files/{node_id}", {"fields": FILE_FIELDS})
        return _to_node(response.json())

    async def get_content(self, node_id: str) -> bytes:
        response = await self._get(f"/files/{node_id}", {"alt": "media"})
        return response.content

    async def export_as(self, node_id: str, media_type: str) -> bytes:
        response = await self._get(f"/files/{node_id}/export", {"mimeType": media_type})
        return response.content

    async def get_content_range(self, node_id: str, start: int, end: int) -> AsyncIterator[bytes]:
        """Stream bytes ``start..end`` inclusive.

        A server that ignores the Range header answers 200 with the whole
        file; the leading bytes are skipped and the stream is cut at ``end``.
        """
        headers = {**self._headers, "Range": f"bytes={start}-{end}"}
        remaining = end - start + 1
        try:
            async with self._client.stream(
                "GET",
                f"{self.base_url}/files/{node_id}",
                params={"alt": "media", "supportsAllDrives": "true"},
                headers=headers,
                timeout=self.timeout,
            ) as response:
                if response.is_error:
                    await response.aread()
                    response.raise_for_status()

                skip = start if response.status_code == 200 else 0
                if skip:
                    logger.debug("Range ignored for %s; skipping %d bytes", node_id, skip)

                async for chunk in response.aiter_bytes():
                    if skip:
                        if len(chunk) <= skip:
                            skip -= len(chunk)
                            continue
                        chunk = chunk[skip:]
                        skip = 0
                    if len(chunk) >= remaining:
                        yield chunk[:remaining]
                        return
                    remaining -= len(chunk)
                    yield chunk
        except httpx.HTTPError as exc:
            raise classify_http_error(exc) from exc

    async def list_children(
        self,
        node_id: str,
        folders_only: bool = False,
        limit: Optional[int] = None,
    ) -> list[Node]:
        query = f"'{_quote(node_id)}' in parents and trashed = false"
        if folders_only:
            query += f" and mimeType = '{FOLDER_MEDIA_TYPE}'"

        if limit is not None and limit <= 0:
            return []

        nodes: list[Node] = []
        page_token: Optional[str] = None
        while True:
            page_size = PAGE_SIZE if limit is None else min(PAGE_SIZE, limit - len(nodes))
            params: dict[str, Any] = {
                "q": query,
                "fields": f"nextPageToken,files({FILE_FIELDS})",
                "pageSize": page_size,
                "orderBy": "folder,name",
                "includeItemsFromAllDrives": "true",
            }
            if page_token:
                params["pageToken"] = page_token

            body = (await self._get("/files", params)).json()
            nodes.extend(_to_node(item) for item in body.get("files", []))

            page_token = body.get("nextPageToken")
            if not page_token or (limit is not None and len(nodes) >= limit):
                break

        return nodes if limit is None else nodes[:limit]

    async def list_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        response = await self._request(
            f"{self.sheets_url}/spreadsheets/{spreadsheet_id}",
            {"fields": "sheets.properties"},
        )
        sheets = [_to_sheet(item) for item in response.json().get("sheets", [])]
        return sorted(sheets, key=lambda s: s.index)

    async def get_sheet_values(
        self, spreadsheet_id: str, ranges: Sequence[str]
    ) -> list[RangeValues]:
        # Repeated ``ranges`` parameters, one per requested range
        params = [("ranges", r) for r in ranges] + [("majorDimension", "ROWS")]
        response = await self._request(
            f"{self.sheets_url}/spreadsheets/{spreadsheet_id}/values:batchGet", params
        )
        return [
            RangeValues(range=item.get("range", ""), values=item.get("values") or [])
            for item in response.json().get("valueRanges", [])
        ]
