"""Geometric table detection over positioned PDF text."""

from typing import Iterable, Mapping, Optional, Sequence, Union

from docscope.models import Table, TableCell, TextFragment

Row = list[TextFragment]
FragmentsByPage = Union[Mapping[int, Sequence[TextFragment]], Sequence[Sequence[TextFragment]]]


class TableExtractor:
    """Recover tables from text fragments by clustering their coordinates.

    - Fragments within ROW_TOLERANCE vertically form one row.
    - Rows with fewer than MIN_ROW_FRAGMENTS fragments are treated as prose.
    - Consecutive rows whose columns line up (ALIGN_TOLERANCE) form a block;
      blocks of at least two rows become tables, first row as header.
    - Body fragments are assigned to the nearest header column within
      COLUMN_TOLERANCE, left to right.

    Pure and deterministic: ties always resolve in left-to-right,
    top-to-bottom order.
    """

    ROW_TOLERANCE = 3.0
    ALIGN_TOLERANCE = 20.0
    COLUMN_TOLERANCE = 30.0
    MIN_ROW_FRAGMENTS = 3
    MIN_TABLE_ROWS = 2
    MAX_COLUMN_DIFFERENCE = 2
    MIN_ALIGNED_RATIO = 0.5

    def __init__(
        self,
        row_tolerance: Optional[float] = None,
        align_tolerance: Optional[float] = None,
        column_tolerance: Optional[float] = None,
    ):
        self.row_tolerance = self.ROW_TOLERANCE if row_tolerance is None else row_tolerance
        self.align_tolerance = self.ALIGN_TOLERANCE if align_tolerance is None else align_tolerance
        self.column_tolerance = (
            self.COLUMN_TOLERANCE if column_tolerance is None else column_tolerance
        )

    def extract(self, fragments_by_page: FragmentsByPage) -> list[Table]:
        """Find every table on every page.

        Args:
            fragments_by_page: Either a mapping of page index to fragments,
                or a sequence of per-page fragment lists

        Returns:
            Tables in page order, then top-to-bottom within a page
        """
        if isinstance(fragments_by_page, Mapping):
            pages: Iterable[tuple[int, Sequence[TextFragment]]] = sorted(
                fragments_by_page.items(), key=lambda item: item[0]
            )
        else:
            pages = enumerate(fragments_by_page)

        tables: list[Table] = []
        for page_index, fragments in pages:
            tables.extend(self.extract_page(fragments, page_index))
        return tables

    def extract_page(self, fragments: Sequence[TextFragment], page: int = 0) -> list[Table]:
        rows = [r for r in self.group_rows(fragments) if len(r) >= self.MIN_ROW_FRAGMENTS]
        if len(rows) < self.MIN_TABLE_ROWS:
            return []
        return [self.build_table(block, page) for block in self.group_blocks(rows)]

    def group_rows(self, fragments: Sequence[TextFragment]) -> list[Row]:
        """Cluster fragments into rows by vertical position."""
        # sorted() is stable, so equal y keeps the input order
        items = sorted((f for f in fragments if f.text.strip()), key=lambda f: f.y)

        rows: list[Row] = []
        current: Row = []
        anchor_y = 0.0

        for fragment in items:
            if current and abs(fragment.y - anchor_y) <= self.row_tolerance:
                current.append(fragment)
                continue

            if current:
                rows.append(sorted(current, key=lambda f: f.x))
            current = [fragment]
            anchor_y = fragment.y

        if current:
            rows.append(sorted(current, key=lambda f: f.x))

        return rows

    def rows_align(self, first: Row, second: Row) -> bool:
        """Check whether two rows share a column layout."""
        if abs(len(first) - len(second)) > self.MAX_COLUMN_DIFFERENCE:
            return False

        smaller, other = (first, second) if len(first) <= len(second) else (second, first)
        aligned = sum(
            1
            for a in smaller
            if any(abs(a.x - b.x) <= self.align_tolerance for b in other)
        )
        return aligned >= len(smaller) * self.MIN_ALIGNED_RATIO

    def group_blocks(self, rows: Sequence[Row]) -> list[list[Row]]:
        """Merge consecutive aligned rows into table blocks."""
        blocks: list[list[Row]] = []
        current: list[Row] = []

        for row in rows:
            if not current or self.rows_align(current[-1], row):
                current.append(row)
                continue

            if len(current) >= self.MIN_TABLE_ROWS:
                blocks.append(current)
            current = [row]

        if len(current) >= self.MIN_TABLE_ROWS:
            blocks.append(current)

        return blocks

    def build_table(self, block: Sequence[Row], page: int = 0) -> Table:
        header_row = block[0]
        headers = [f.text.strip() for f in header_row]

        rows: list[list[str]] = []
        for row in block[1:]:
            values = [""] * len(headers)
            last_col = -1
            for fragment in row:
                col = self._nearest_column(fragment, header_row, last_col)
                if col is None:
                    continue
                values[col] = fragment.text.strip()
                last_col = col
            rows.append(values)

        cells = [
            [TableCell(text=text, row=r, col=c) for c, text in enumerate(values)]
            for r, values in enumerate(rows)
        ]
        return Table(headers=headers, rows=rows, cells=cells, page=page)

    def _nearest_column(
        self, fragment: TextFragment, header_row: Row, after: int
    ) -> Optional[int]:
        """Index of the closest header column right of ``after``, if in range."""
        best: Optional[int] = None
        best_distance = self.column_tolerance
        for col in range(after + 1, len(header_row)):
            distance = abs(fragment.x - header_row[col].x)
            if distance <= best_distance and (best is None or distance < best_distance):
                best = col
                best_distance = distance
        return best
