"""
Reconciliation pipeline: bulk export / import of the ledger as .xlsx

Workbook layout (four sheets):
    Inventory     Product | Type | Flavor
    Purchase Log  Date | Product | Quantity | Price Per Item | Total Cost
    Consumption   Date | Time | Product | Quantity     (legacy name: Smoke Log)
    Dashboard     Label | Value                        (monthly budget row)

Import is idempotent: a purchase or consumption row whose
(product, calendar date, quantity) already exists is counted as a duplicate
and not written again. Every write runs in its own SAVEPOINT so one bad row
never aborts the batch; the whole import is committed once at the end.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smoketrackr.application.user_settings import settings_view
from smoketrackr.application.workbook import (
    CONSUMPTION_SHEETS,
    DASHBOARD_SHEET,
    INVENTORY_SHEET,
    PURCHASE_SHEET,
    SheetData,
    build_workbook,
    pick_sheet,
    read_workbook,
)
from smoketrackr.config import get_settings
from smoketrackr.domain.product import normalize_product_type
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.money import ZERO, round_money, round_qty
from smoketrackr.utils.spreadsheet import ColumnMap, decode_timestamp, is_empty
from smoketrackr.utils.validation import parse_whole_quantity

logger = logging.getLogger(__name__)

INVENTORY_COLUMNS = ("Product", "Type", "Flavor")
PURCHASE_COLUMNS = ("Date", "Product", "Quantity", "Price Per Item", "Total Cost")
CONSUMPTION_COLUMNS = ("Date", "Time", "Product", "Quantity")
DASHBOARD_COLUMNS = ("Label", "Value")


def export_filename(day: date) -> str:
    return f"SmokeTrackr_Export_{day.isoformat()}.xlsx"


# ======================================================================
# Export
# ======================================================================


@dataclass
class ExportPayload:
    """Ledger rows ready for serialization (JSON or workbook)."""
    products: List[Dict[str, Any]] = field(default_factory=list)
    purchases: List[Dict[str, Any]] = field(default_factory=list)
    consumption: List[Dict[str, Any]] = field(default_factory=list)
    monthly_budget: Decimal = ZERO
    currency: str = "SEK"

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExportResult:
    payload: ExportPayload
    content: bytes
    filename: str


class ExportDataUseCase:
    """Use case: Выгрузить все данные пользователя в .xlsx"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def collect(self, user_id: int) -> ExportPayload:
        products = self.store.list_products(user_id)
        names = {p.id: p.name for p in products}
        settings = settings_view(self.store.get_settings(user_id))

        # Журналы в хронологическом порядке; строки без продукта не выгружаются
        purchases = sorted(self.store.list_purchases(user_id), key=lambda p: (p.purchase_date, p.id))
        consumption = sorted(self.store.list_consumption(user_id), key=lambda c: (c.consumption_date, c.id))

        return ExportPayload(
            products=[
                {
                    "name": p.name,
                    "product_type": p.product_type,
                    "flavor_detail": p.flavor_detail,
                }
                for p in products
            ],
            purchases=[
                {
                    "product_name": names[p.product_id],
                    "purchase_date": p.purchase_date,
                    "quantity": p.quantity,
                    "price_per_item": round_money(p.price_per_item),
                    "total_cost": round_money(p.total_cost),
                }
                for p in purchases if p.product_id in names
            ],
            consumption=[
                {
                    "product_name": names[c.product_id],
                    "consumption_date": c.consumption_date,
                    "quantity": Decimal(c.quantity),
                }
                for c in consumption if c.product_id in names
            ],
            monthly_budget=settings["monthly_budget"],
            currency=settings["currency"],
        )

    def execute(self, user_id: int, today: Optional[date] = None) -> ExportResult:
        payload = self.collect(user_id)
        content = build_workbook(_export_sheets(payload))
        filename = export_filename(today or date.today())
        logger.info(
            "Exported ledger for user_id=%s: %d products, %d purchases, %d consumption rows",
            user_id, len(payload.products), len(payload.purchases), len(payload.consumption),
        )
        return ExportResult(payload=payload, content=content, filename=filename)


def _cell_number(value: Decimal):
    """Decimal -> int/float for the workbook (openpyxl has no Decimal cell type)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _export_sheets(payload: ExportPayload) -> List[SheetData]:
    return [
        SheetData(
            name=INVENTORY_SHEET,
            columns=INVENTORY_COLUMNS,
            rows=[
                {"Product": p["name"], "Type": p["product_type"], "Flavor": p["flavor_detail"]}
                for p in payload.products
            ],
        ),
        SheetData(
            name=PURCHASE_SHEET,
            columns=PURCHASE_COLUMNS,
            rows=[
                {
                    "Date": p["purchase_date"],
                    "Product": p["product_name"],
                    "Quantity": p["quantity"],
                    "Price Per Item": _cell_number(p["price_per_item"]),
                    "Total Cost": _cell_number(p["total_cost"]),
                }
                for p in payload.purchases
            ],
        ),
        SheetData(
            name=CONSUMPTION_SHEETS[0],
            columns=CONSUMPTION_COLUMNS,
            rows=[
                {
                    "Date": c["consumption_date"].strftime("%Y-%m-%d"),
                    "Time": c["consumption_date"].strftime("%H:%M"),
                    "Product": c["product_name"],
                    "Quantity": _cell_number(c["quantity"]),
                }
                for c in payload.consumption
            ],
        ),
        SheetData(
            name=DASHBOARD_SHEET,
            columns=DASHBOARD_COLUMNS,
            rows=[
                {
                    "Label": f"Monthly Budget ({payload.currency})",
                    "Value": _cell_number(round_money(payload.monthly_budget)),
                }
            ],
        ),
    ]


# ======================================================================
# Import
# ======================================================================


@dataclass
class ImportPayload:
    """
    Rows to import, already keyed by logical field

    products:    {"name", "product_type", "flavor_detail"}
    purchases:   {"product_name", "purchase_date", "time", "quantity", "price_per_item"}
    consumption: {"product_name", "consumption_date", "time", "quantity"}

    Values may be raw cell values (serial numbers, strings, datetimes);
    decoding happens in ImportDataUseCase.
    """
    products: List[Dict[str, Any]] = field(default_factory=list)
    purchases: List[Dict[str, Any]] = field(default_factory=list)
    consumption: List[Dict[str, Any]] = field(default_factory=list)
    monthly_budget: Any = None


@dataclass
class ImportReport:
    products_created: int = 0
    products_failed: int = 0
    purchases_imported: int = 0
    purchases_duplicates: int = 0
    consumption_imported: int = 0
    consumption_duplicates: int = 0
    skipped: int = 0
    invalid: int = 0
    budget_updated: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _headers(rows: List[Dict[str, Any]]) -> List[str]:
    headers: List[str] = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)
    return headers


def payload_from_sheets(sheets: Dict[str, List[Dict[str, Any]]]) -> ImportPayload:
    """
    Привести листы книги к ImportPayload через таблицу алиасов колонок

    Missing sheets simply contribute no rows.
    """
    payload = ImportPayload()

    inventory_rows = pick_sheet(sheets, INVENTORY_SHEET)
    cols = ColumnMap(_headers(inventory_rows))
    for row in inventory_rows:
        payload.products.append({
            "name": cols.get(row, "product_name"),
            "product_type": cols.get(row, "product_type"),
            "flavor_detail": cols.get(row, "flavor_detail"),
        })

    purchase_rows = pick_sheet(sheets, PURCHASE_SHEET)
    cols = ColumnMap(_headers(purchase_rows))
    for row in purchase_rows:
        payload.purchases.append({
            "product_name": cols.get(row, "product_name"),
            "purchase_date": cols.get(row, "date"),
            "time": cols.get(row, "time"),
            "quantity": cols.get(row, "quantity"),
            "price_per_item": cols.get(row, "price_per_item"),
        })

    consumption_rows = pick_sheet(sheets, *CONSUMPTION_SHEETS)
    cols = ColumnMap(_headers(consumption_rows))
    for row in consumption_rows:
        payload.consumption.append({
            "product_name": cols.get(row, "product_name"),
            "consumption_date": cols.get(row, "date"),
            "time": cols.get(row, "time"),
            "quantity": cols.get(row, "quantity"),
        })

    dashboard_rows = pick_sheet(sheets, DASHBOARD_SHEET)
    cols = ColumnMap(_headers(dashboard_rows))
    for row in dashboard_rows:
        label = cols.get(row, "label")
        if label is not None and "budget" in str(label).lower():
            payload.monthly_budget = cols.get(row, "value")
            break

    return payload


def _product_name(value: Any) -> Optional[str]:
    if is_empty(value):
        return None
    return str(value).strip()


class ImportDataUseCase:
    """
    Use case: Импорт данных (идемпотентный)

    Порядок:
    1. Создать недостающие продукты (из листа Inventory и из журналов)
    2. Перечитать карту name -> id
    3. Покупки и потребление с проверкой дубликатов
    4. Бюджет из строки Dashboard
    5. Один commit в конце
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute_workbook(self, user_id: int, content: bytes) -> ImportReport:
        """
        Raises:
            WorkbookFormatError: файл не читается как .xlsx
        """
        sheets = read_workbook(content, max_rows=get_settings().IMPORT_MAX_ROWS)
        logger.info(
            "Importing workbook for user_id=%s, sheets: %s",
            user_id, ", ".join(f"{name}({len(rows)})" for name, rows in sheets.items()),
        )
        return self.execute(user_id, payload_from_sheets(sheets))

    def execute(self, user_id: int, payload: ImportPayload) -> ImportReport:
        report = ImportReport()

        product_ids = self._resolve_products(user_id, payload, report)
        self._import_purchases(user_id, payload.purchases, product_ids, report)
        self._import_consumption(user_id, payload.consumption, product_ids, report)
        self._merge_budget(user_id, payload.monthly_budget, report)

        self.db.commit()
        logger.info("Import finished for user_id=%s: %s", user_id, report.as_dict())
        return report

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _resolve_products(self, user_id: int, payload: ImportPayload, report: ImportReport) -> Dict[str, int]:
        existing = {p.name for p in self.store.list_products(user_id)}

        # name -> (type, flavor); first occurrence wins, product sheet first
        wanted: Dict[str, tuple] = {}
        for row in payload.products:
            name = _product_name(row.get("name"))
            if name and name not in wanted:
                flavor = row.get("flavor_detail")
                wanted[name] = (
                    normalize_product_type(row.get("product_type")),
                    None if is_empty(flavor) else str(flavor).strip(),
                )
        for row in payload.purchases + payload.consumption:
            name = _product_name(row.get("product_name"))
            if name and name not in wanted:
                wanted[name] = (normalize_product_type(None), None)

        for name, (product_type, flavor) in wanted.items():
            if name in existing:
                continue
            try:
                with self.db.begin_nested():
                    self.store.create_product(user_id, name, product_type, flavor)
                report.products_created += 1
            except SQLAlchemyError:
                logger.exception("Failed to create product %r for user_id=%s", name, user_id)
                report.products_failed += 1

        # Барьер: строки журналов пишутся только после перечитывания карты
        return {p.name: p.id for p in self.store.list_products(user_id)}

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def _import_purchases(
        self,
        user_id: int,
        rows: List[Dict[str, Any]],
        product_ids: Dict[str, int],
        report: ImportReport
    ) -> None:
        seen = set()
        for index, row in enumerate(rows, start=1):
            product_id = product_ids.get(_product_name(row.get("product_name")))
            if product_id is None:
                report.skipped += 1
                continue

            try:
                purchase_date = decode_timestamp(row.get("purchase_date"), row.get("time"))
                quantity = parse_whole_quantity(row.get("quantity"))
                price = row.get("price_per_item")
                price = ZERO if is_empty(price) else round_money(price)
                if price < 0:
                    raise ValueError("Price must not be negative")
            except ValueError as exc:
                logger.warning("Purchase row %d rejected: %s", index, exc)
                report.invalid += 1
                continue

            key = (product_id, purchase_date.date(), quantity)
            if key in seen or self.store.find_purchase_on_day(user_id, product_id, purchase_date.date(), quantity):
                report.purchases_duplicates += 1
                continue

            try:
                with self.db.begin_nested():
                    self.store.create_purchase(user_id, product_id, purchase_date, quantity, price)
            except SQLAlchemyError:
                logger.exception("Failed to import purchase row %d for user_id=%s", index, user_id)
                report.invalid += 1
                continue
            seen.add(key)
            report.purchases_imported += 1

    def _import_consumption(
        self,
        user_id: int,
        rows: List[Dict[str, Any]],
        product_ids: Dict[str, int],
        report: ImportReport
    ) -> None:
        seen = set()
        for index, row in enumerate(rows, start=1):
            product_id = product_ids.get(_product_name(row.get("product_name")))
            if product_id is None:
                report.skipped += 1
                continue

            try:
                consumed_at = decode_timestamp(row.get("consumption_date"), row.get("time"))
                # stored as Numeric(10,2); the dedup key uses the stored value
                quantity = round_qty(row.get("quantity"))
                if quantity <= 0:
                    raise ValueError("Quantity must be greater than zero")
            except ValueError as exc:
                logger.warning("Consumption row %d rejected: %s", index, exc)
                report.invalid += 1
                continue

            key = (product_id, consumed_at.date(), quantity)
            if key in seen or self.store.find_consumption_on_day(user_id, product_id, consumed_at.date(), quantity):
                report.consumption_duplicates += 1
                continue

            try:
                with self.db.begin_nested():
                    self.store.create_consumption(user_id, product_id, consumed_at, quantity)
            except SQLAlchemyError:
                logger.exception("Failed to import consumption row %d for user_id=%s", index, user_id)
                report.invalid += 1
                continue
            seen.add(key)
            report.consumption_imported += 1

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _merge_budget(self, user_id: int, value: Any, report: ImportReport) -> None:
        if is_empty(value):
            return
        try:
            budget = round_money(value)
        except ValueError:
            logger.warning("Ignoring unparseable monthly budget %r", value)
            return
        if budget <= 0:
            logger.warning("Ignoring non-positive monthly budget %s", budget)
            return

        fields: Dict[str, Any] = {"monthly_budget": budget}
        if self.store.get_settings(user_id) is None:
            fields["currency"] = settings_view(None)["currency"]
        with self.db.begin_nested():
            self.store.upsert_settings(user_id, **fields)
        report.budget_updated = True
