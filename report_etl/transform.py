"""
Report Grid Transformation

Lays the CRM metrics payload out into the fixed 12x5 report block
(A10:E21 on the target sheet): five manager rows followed by seven
summary rows. Cells are literals or spreadsheet formulas.
"""

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)

SheetRow = List[Any]
SheetGrid = List[SheetRow]

DATE_FORMAT = "%d.%m.%Y"
FIRST_SHEET_ROW = 10
ROW_WIDTH = 5
ROW_COUNT = 12

MANAGER_FILTER_C = "1"
MANAGER_FILTER_D = "2"

# (manager id, display name), in sheet order
MANAGERS: List[Tuple[str, str]] = [
    ("49", "Степанов Александр"),
    ("969", "Кондратьев Олег"),
    ("2879", "Латыпова Марина"),
    ("16998", "Алексей Канатников"),
    ("14829", "Мария Бескаравайная"),
]

# (label, C source, D source); sources starting with "=" are formulas
SUMMARY_ROWS: List[Tuple[str, str, str]] = [
    ("АВ с рекламы", "3", "4"),
    ("Всего с рекламы за 30", "5", "6"),
    ("Остальной трафик", "=C18-C16", "=D18-D16"),
    ("Всего АВС за 30д", "7", "8"),
    ("Всего АВ за 30д", "11", "12"),
    ("АБ с рекламы сегодня", "9", "13"),
    ("АБ с рекламы за тек.м", "10", "14"),
]

OTHER_TRAFFIC_ROW = 2
# Fixed reference kept as-is; it does not follow the row's own position
OTHER_TRAFFIC_RATIO = "=D17/C17"


def is_formula(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("=")


def ratio_formula(sheet_row: int) -> str:
    return f"=D{sheet_row}/C{sheet_row}"


def manager_placeholder(key: str, manager_id: str) -> str:
    return f"Фильтр {key} (айди {manager_id})"


def filter_placeholder(key: str) -> str:
    return f"Фильтр {key}"


def _cell(value: Any) -> Any:
    return "" if value is None else value


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def lookup(payload: Mapping, key: str, sub_key: Optional[str], default: str) -> Any:
    """
    Read one cell value from the payload.

    Args:
        payload: Metrics payload
        key: Filter number
        sub_key: Manager id, or None for a top-level value
        default: Returned when the value is missing or has the wrong shape

    Returns:
        Scalar cell value or the default
    """
    if key not in payload:
        return default
    value = payload[key]

    if sub_key is None:
        if _is_container(value):
            return default
        return _cell(value)

    if not isinstance(value, Mapping) or sub_key not in value:
        return default
    inner = value[sub_key]
    if _is_container(inner):
        return default
    return _cell(inner)


class GridMapper:
    """
    Maps a metrics payload to the report grid.

    Stateless; the same payload and date always give the same grid.
    """

    def __init__(self, first_sheet_row: int = FIRST_SHEET_ROW):
        self.first_sheet_row = first_sheet_row

    def map(self, payload: Mapping, day: date) -> SheetGrid:
        """
        Build the full report grid.

        Args:
            payload: Parsed CRM metrics
            day: Report date, written to the first manager row

        Returns:
            12 rows of 5 cells each
        """
        if not payload:
            logger.warning("Mapping an empty payload; all cells get placeholders")

        grid = self._manager_rows(payload, day) + self._summary_rows(payload)
        validate_grid(grid)
        logger.debug(f"Prepared data: {grid}")
        return grid

    def _manager_rows(self, payload: Mapping, day: date) -> SheetGrid:
        rows = []
        report_date = day.strftime(DATE_FORMAT)

        for index, (manager_id, name) in enumerate(MANAGERS):
            sheet_row = self.first_sheet_row + index
            rows.append(
                [
                    report_date if index == 0 else "",
                    name,
                    lookup(payload, MANAGER_FILTER_C, manager_id,
                           manager_placeholder(MANAGER_FILTER_C, manager_id)),
                    lookup(payload, MANAGER_FILTER_D, manager_id,
                           manager_placeholder(MANAGER_FILTER_D, manager_id)),
                    ratio_formula(sheet_row),
                ]
            )
        return rows

    def _summary_rows(self, payload: Mapping) -> SheetGrid:
        rows = []
        offset = self.first_sheet_row + len(MANAGERS)

        for index, (label, c_source, d_source) in enumerate(SUMMARY_ROWS):
            if index == OTHER_TRAFFIC_ROW:
                ratio = OTHER_TRAFFIC_RATIO
            else:
                ratio = ratio_formula(offset + index)
            rows.append(
                [
                    "",
                    label,
                    self._summary_cell(payload, c_source),
                    self._summary_cell(payload, d_source),
                    ratio,
                ]
            )
        return rows

    @staticmethod
    def _summary_cell(payload: Mapping, source: str) -> Any:
        if is_formula(source):
            return source
        return lookup(payload, source, None, filter_placeholder(source))


def validate_grid(grid: SheetGrid, rows: int = ROW_COUNT, columns: int = ROW_WIDTH) -> None:
    """
    Check the grid has the expected shape.

    Raises:
        ValueError: If the row count or any row width is wrong
    """
    if len(grid) != rows:
        raise ValueError(f"Grid must have {rows} rows, got {len(grid)}")
    for index, row in enumerate(grid):
        if len(row) != columns:
            raise ValueError(f"Grid row {index} must have {columns} cells, got {len(row)}")


def map_payload(payload: Mapping, day: date) -> SheetGrid:
    """
    Convenience function to build the report grid.

    Args:
        payload: Parsed CRM metrics
        day: Report date

    Returns:
        12x5 report grid
    """
    return GridMapper().map(payload, day)
