"""
XLSX workbook adapter (openpyxl).

Reading: every sheet becomes a list of dicts keyed by the header row.
Cell values are kept as openpyxl returns them (datetime, time, int, float,
str) so date/time decoding can tell serial numbers from strings.
Blank header cells are named Column_<n>; duplicate headers get a _<k> suffix.

Writing: a list of SheetData -> .xlsx bytes.
"""
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Sequence

import openpyxl
from openpyxl.utils import get_column_letter

INVENTORY_SHEET = "Inventory"
PURCHASE_SHEET = "Purchase Log"
CONSUMPTION_SHEETS = ("Consumption", "Smoke Log")
DASHBOARD_SHEET = "Dashboard"


class WorkbookFormatError(ValueError):
    """Файл не является читаемым .xlsx"""
    pass


@dataclass
class SheetData:
    name: str
    columns: Sequence[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)


def _normalize_header_cell(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def _cell_value(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _headers(row: Sequence[Any]) -> List[str]:
    headers: List[str] = []
    for idx, value in enumerate(row):
        key = _normalize_header_cell(value) or f"Column_{idx + 1}"
        base, count = key, 0
        while key in headers:
            count += 1
            key = f"{base}_{count}"
        headers.append(key)
    return headers


def read_sheet_rows(worksheet, max_rows: int = 100_000) -> List[Dict[str, Any]]:
    """
    Rows below the header as dicts; fully blank rows are skipped.

    Raises:
        WorkbookFormatError: если на листе больше max_rows строк с данными
    """
    rows = worksheet.iter_rows(values_only=True)
    header_row = next(rows, None)
    if header_row is None:
        return []

    headers = _headers(header_row)
    result = []
    for raw in rows:
        values = [_cell_value(v) for v in raw[:len(headers)]]
        if all(v is None for v in values):
            continue
        if len(result) >= max_rows:
            raise WorkbookFormatError(
                f"Sheet {worksheet.title!r} has more than {max_rows} data rows"
            )
        result.append(dict(zip(headers, values)))
    return result


def read_workbook(data: bytes, max_rows: int = 100_000) -> Dict[str, List[Dict[str, Any]]]:
    """
    Прочитать все листы .xlsx файла

    Returns:
        {sheet_name: [row_dict, ...]}

    Raises:
        WorkbookFormatError: если файл не открывается как .xlsx
            или лист длиннее max_rows строк
    """
    try:
        wb = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:  # openpyxl raises zipfile / KeyError / InvalidFileException
        raise WorkbookFormatError(f"Not a readable .xlsx file: {exc}") from exc

    try:
        return {ws.title: read_sheet_rows(ws, max_rows) for ws in wb.worksheets}
    finally:
        wb.close()


def pick_sheet(sheets: Dict[str, List[Dict[str, Any]]], *names: str) -> List[Dict[str, Any]]:
    """Rows of the first sheet found among ``names`` (case-insensitive)."""
    by_lower = {title.strip().lower(): rows for title, rows in sheets.items()}
    for name in names:
        rows = by_lower.get(name.lower())
        if rows is not None:
            return rows
    return []


def build_workbook(sheets: Sequence[SheetData]) -> bytes:
    """Записать листы в .xlsx и вернуть байты файла"""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)

    for sheet in sheets:
        ws = wb.create_sheet(title=sheet.name)
        ws.append(list(sheet.columns))
        for row in sheet.rows:
            ws.append([row.get(col) for col in sheet.columns])
        for idx, col in enumerate(sheet.columns, start=1):
            width = max([len(str(col))] + [len(str(r.get(col) or "")) for r in sheet.rows])
            ws.column_dimensions[get_column_letter(idx)].width = min(width + 2, 50)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()

