"""Cell-level reads of store-native spreadsheets."""

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from openpyxl.utils import get_column_letter

from docscope.errors import ErrorType, ExtractionError, with_retry
from docscope.models import RangeValues, SheetCell, SheetRangeData
from docscope.protocols import Store
from docscope.scope import ScopeResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

SPREADSHEET_MEDIA_TYPE = "application/vnd.google-apps.spreadsheet"


def quote_sheet_title(title: str) -> str:
    """Quote a tab title for use as an A1 range, e.g. ``'Q1 ''24'``."""
    return "'" + title.replace("'", "''") + "'"


def sheet_name_from_range(a1_range: str) -> str:
    """Tab name of an A1 range as the store echoes it back."""
    name = a1_range.rsplit("!", 1)[0] if "!" in a1_range else a1_range
    if len(name) >= 2 and name.startswith("'") and name.endswith("'"):
        name = name[1:-1].replace("''", "'")
    return name or "Sheet1"


def cell_location(sheet_name: str, row: int, col: int) -> str:
    """A1 location of a zero-based cell, e.g. ``Sheet1!AA10``."""
    return f"{sheet_name}!{get_column_letter(col + 1)}{row + 1}"


def to_range_data(values: RangeValues) -> Optional[SheetRangeData]:
    """Annotate every value with its location; None for an empty range."""
    if not values.values:
        return None

    name = sheet_name_from_range(values.range)
    cells = [
        [SheetCell(value=value, location=cell_location(name, r, c)) for c, value in enumerate(row)]
        for r, row in enumerate(values.values)
    ]
    return SheetRangeData(
        sheet_name=name,
        column_headers=cells[0],
        rows=cells[1:],
        total_rows=len(cells),
        total_columns=max(len(row) for row in cells),
    )


class SheetReader:
    """Reads native spreadsheets by A1 range, inside the authorized scope.

    With no ranges given, the tab named by ``sheet_id`` is read, or the
    first tab when that is omitted too. Results are not cached; cell values
    change without a new file revision being visible to callers.
    """

    def __init__(
        self,
        store: Store,
        scope: ScopeResolver,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self.store = store
        self.scope = scope
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, store: Store, scope: ScopeResolver, settings: Any) -> "SheetReader":
        return cls(
            store,
            scope,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay_seconds,
        )

    async def _call(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(fn, self.retry_attempts, self.retry_delay)

    async def read(
        self,
        spreadsheet_id: str,
        ranges: Optional[Sequence[str]] = None,
        sheet_id: Optional[int] = None,
    ) -> list[SheetRangeData]:
        """Read cell values from a native spreadsheet.

        Args:
            spreadsheet_id: ID of the spreadsheet
            ranges: A1 ranges such as ``Sheet1!A1:B10``; overrides ``sheet_id``
            sheet_id: Numeric tab ID to read in full

        Returns:
            One entry per non-empty range, in request order

        Raises:
            ExtractionError: OUT_OF_SCOPE, NOT_FOUND for non-spreadsheets
                and unknown tabs, or a classified store failure
        """
        node = await self._call(lambda: self.store.get_metadata(spreadsheet_id))
        await self.scope.ensure_authorized(node)
        if node.media_type != SPREADSHEET_MEDIA_TYPE:
            raise ExtractionError(
                ErrorType.NOT_FOUND,
                f"{node.name} is not a native spreadsheet ({node.media_type}).",
            )

        requested = list(ranges) if ranges else [await self._tab_range(spreadsheet_id, sheet_id)]
        logger.debug("Reading %s ranges %s", spreadsheet_id, requested)

        values = await self._call(lambda: self.store.get_sheet_values(spreadsheet_id, requested))
        return [data for data in map(to_range_data, values) if data is not None]

    async def _tab_range(self, spreadsheet_id: str, sheet_id: Optional[int]) -> str:
        sheets = await self._call(lambda: self.store.list_sheets(spreadsheet_id))
        if sheet_id is None:
            if not sheets:
                raise ExtractionError(ErrorType.NOT_FOUND, "Spreadsheet has no sheets.")
            return quote_sheet_title(sheets[0].title)

        for sheet in sheets:
            if sheet.sheet_id == sheet_id:
                return quote_sheet_title(sheet.title)
        raise ExtractionError(ErrorType.NOT_FOUND, f"Sheet ID {sheet_id} not found.")
