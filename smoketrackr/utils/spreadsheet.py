"""
Spreadsheet cell decoding: header aliases and date/time values.

Spreadsheet engines store dates as serial day counts since 1899-12-30
and times as a fraction of a day (0.5 = 12:00). Exports written by hand
or by other tools use plain strings instead, so every decoder accepts both.
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Iterable, List, Optional, Sequence

from smoketrackr.utils.money import to_decimal

SERIAL_EPOCH = datetime(1899, 12, 30)

_SECONDS_PER_DAY = 86400

# Ordered header candidates per logical column; the first match wins
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "product_name": ("Product Name", "Product", "product", "Name", "name"),
    "product_type": ("Type", "type"),
    "flavor_detail": ("Flavor/Detail", "Flavor", "flavor", "Flavor Detail"),
    "date": ("Purchase Date", "Consumption Date", "Date", "date"),
    "time": ("Time", "time"),
    "quantity": ("Quantity", "quantity", "Qty"),
    "price_per_item": ("Price Per Item (SEK)", "Price Per Item", "pricePerItem", "Price per unit"),
    "label": ("Smoke Tracker Dashboard", "Label", "label"),
    "value": ("Value", "value", "Column_2"),
}

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y%m%d", "%m/%d/%Y", "%d.%m.%Y")
_TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M:%S %p")
_EMPTY_MARKERS = ("", "none", "null", "nan")


class ColumnMap:
    """
    Header lookup for one sheet, resolved once from the header row.

    For every logical field keeps the aliases that are actually present
    in the sheet, in alias order. A row value is the first non-empty
    cell among them (a sheet may carry both "Product Name" and "Product").

    Example:
        >>> cols = ColumnMap(["Date", "Product", "Quantity"])
        >>> cols.get({"Product": "Widget"}, "product_name")
        'Widget'
    """

    def __init__(self, headers: Iterable[str], aliases: Dict[str, Sequence[str]] = FIELD_ALIASES):
        present = {str(h).strip() for h in headers if h is not None}
        self.columns: Dict[str, List[str]] = {
            field: [a for a in candidates if a in present]
            for field, candidates in aliases.items()
        }

    def has(self, field: str) -> bool:
        return bool(self.columns.get(field))

    def get(self, row: Dict[str, Any], field: str, default: Any = None) -> Any:
        for header in self.columns.get(field, ()):
            value = row.get(header)
            if not is_empty(value):
                return value.strip() if isinstance(value, str) else value
        return default


def is_empty(value: Any) -> bool:
    """None, пустая строка и строковые 'None'/'null' считаются пустыми"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _EMPTY_MARKERS
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _split_serial(value: Any) -> tuple[int, Decimal]:
    number = to_decimal(value)
    whole = number.to_integral_value(rounding=ROUND_FLOOR)
    return int(whole), number - whole


def _fraction_to_time(fraction: Decimal) -> time:
    seconds = int((fraction * _SECONDS_PER_DAY).to_integral_value())
    seconds %= _SECONDS_PER_DAY
    return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)


def serial_to_datetime(value: Any) -> datetime:
    """
    Serial day count -> datetime (дробная часть = время суток)

    Example:
        >>> serial_to_datetime(45000)
        datetime.datetime(2023, 3, 15, 0, 0)
        >>> serial_to_datetime(45000.5)
        datetime.datetime(2023, 3, 15, 12, 0)

    Raises:
        ValueError: если serial вне диапазона дат (например 20230315)
    """
    days, fraction = _split_serial(value)
    try:
        day = SERIAL_EPOCH + timedelta(days=days)
    except OverflowError:
        raise ValueError(f"Serial date out of range: {value!r}")
    return datetime.combine(day.date(), _fraction_to_time(fraction))


def datetime_to_serial(value: datetime) -> float:
    """Inverse of serial_to_datetime (used by tests and exports of raw serials)."""
    delta = value - SERIAL_EPOCH
    return delta.days + delta.seconds / _SECONDS_PER_DAY


def decode_date(value: Any) -> Optional[datetime]:
    """
    Декодировать значение даты из ячейки

    Accepts datetime/date objects, serial numbers (int/float/Decimal or a
    numeric string) and ISO-like strings. Returns None for an empty cell.

    Raises:
        ValueError: если значение не распознано как дата
    """
    if is_empty(value):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if _is_number(value):
        return serial_to_datetime(value)

    text = str(value).strip()
    try:
        return serial_to_datetime(to_decimal(text))
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    raise ValueError(f"Unrecognized date: {value!r}")


def decode_time(value: Any) -> Optional[time]:
    """
    Декодировать значение времени из ячейки

    Fractional days >= 1.0 are reduced modulo 1.0 first (1.25 -> 06:00).
    Returns None for an empty cell.

    Raises:
        ValueError: если значение не распознано как время
    """
    if is_empty(value):
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        return _fraction_to_time(Decimal(value.total_seconds() % _SECONDS_PER_DAY) / _SECONDS_PER_DAY)
    if _is_number(value):
        return _fraction_to_time(_split_serial(value)[1])

    text = str(value).strip()
    try:
        return _fraction_to_time(_split_serial(to_decimal(text))[1])
    except ValueError:
        pass

    try:
        return time.fromisoformat(text)
    except ValueError:
        pass

    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(text.upper(), fmt).time()
        except ValueError:
            continue

    raise ValueError(f"Unrecognized time: {value!r}")


def decode_timestamp(date_value: Any, time_value: Any = None) -> datetime:
    """
    Собрать timestamp из ячеек даты и времени

    Time is optional: without it the time carried by the date cell is kept
    (midnight for a plain date).

    Example:
        >>> decode_timestamp(45000, 0.5)
        datetime.datetime(2023, 3, 15, 12, 0)

    Raises:
        ValueError: если дата отсутствует или не распознана
    """
    day = decode_date(date_value)
    if day is None:
        raise ValueError("Date is missing")
    at = decode_time(time_value)
    if at is None:
        return day
    return datetime.combine(day.date(), at)
