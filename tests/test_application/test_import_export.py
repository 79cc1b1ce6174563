"""
Tests for the xlsx reconciliation pipeline (export + idempotent import)
"""
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest
from sqlalchemy.exc import IntegrityError

from smoketrackr.application.consumption import CreateConsumptionUseCase
from smoketrackr.application.import_export import (
    ExportDataUseCase,
    ImportDataUseCase,
    ImportPayload,
)
from smoketrackr.application.products import CreateProductUseCase
from smoketrackr.application.purchases import CreatePurchaseUseCase
from smoketrackr.application.user_settings import UpdateSettingsUseCase
from smoketrackr.application.workbook import WorkbookFormatError, read_workbook
from smoketrackr.infrastructure.db.models import Consumption, Product, Purchase, UserSettings


def _workbook(sheets: dict) -> bytes:
    """{sheet_name: [header_row, row, ...]} -> .xlsx bytes"""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _counts(db, user_id):
    return (
        db.query(Product).filter(Product.user_id == user_id).count(),
        db.query(Purchase).filter(Purchase.user_id == user_id).count(),
        db.query(Consumption).filter(Consumption.user_id == user_id).count(),
    )


def _seed_ledger(db, user_id):
    robusto = CreateProductUseCase(db).execute(user_id, "Robusto", "Cigar", "Maduro")
    snus = CreateProductUseCase(db).execute(user_id, "General", "Snus")
    CreatePurchaseUseCase(db).execute(user_id, robusto.id, 10, Decimal("32.50"), datetime(2025, 3, 1, 14, 0))
    CreatePurchaseUseCase(db).execute(user_id, snus.id, 4, Decimal("55.00"), datetime(2025, 3, 2, 9, 0))
    CreateConsumptionUseCase(db).execute(user_id, robusto.id, Decimal("1"), datetime(2025, 3, 2, 21, 30))
    CreateConsumptionUseCase(db).execute(user_id, robusto.id, Decimal("0.5"), datetime(2025, 3, 3, 20, 0))
    CreateConsumptionUseCase(db).execute(user_id, snus.id, Decimal("1"), datetime(2025, 3, 3, 8, 15))
    UpdateSettingsUseCase(db).execute(user_id, monthly_budget=Decimal("750"), currency="EUR")


class TestExport:
    def test_workbook_layout(self, db_session, sample_user_id):
        _seed_ledger(db_session, sample_user_id)

        result = ExportDataUseCase(db_session).execute(sample_user_id, today=date(2025, 3, 15))

        assert result.filename == "SmokeTrackr_Export_2025-03-15.xlsx"
        wb = openpyxl.load_workbook(BytesIO(result.content))
        assert wb.sheetnames == ["Inventory", "Purchase Log", "Consumption", "Dashboard"]

        inventory = list(wb["Inventory"].iter_rows(values_only=True))
        assert inventory[0] == ("Product", "Type", "Flavor")
        assert ("Robusto", "Cigar", "Maduro") in inventory

        consumption = list(wb["Consumption"].iter_rows(values_only=True))
        assert consumption[0] == ("Date", "Time", "Product", "Quantity")
        assert consumption[1] == ("2025-03-02", "21:30", "Robusto", 1)
        assert consumption[2] == ("2025-03-03", "08:15", "General", 1)

        dashboard = list(wb["Dashboard"].iter_rows(values_only=True))
        assert dashboard[1] == ("Monthly Budget (EUR)", 750)

    def test_payload_without_workbook(self, db_session, sample_user_id):
        _seed_ledger(db_session, sample_user_id)

        payload = ExportDataUseCase(db_session).collect(sample_user_id)

        assert [p["name"] for p in payload.products] == ["General", "Robusto"]
        assert payload.purchases[0]["total_cost"] == Decimal("325.00")
        assert payload.monthly_budget == Decimal("750")
        assert payload.currency == "EUR"


class TestImportWorkbook:
    def test_serial_date_and_fraction_time(self, db_session, sample_user_id):
        content = _workbook({
            "Consumption": [
                ["Date", "Time", "Product", "Quantity"],
                [45000, 0.5, "Widget", 2],
            ],
        })

        report = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert report.products_created == 1
        assert report.consumption_imported == 1
        entry = db_session.query(Consumption).one()
        assert entry.consumption_date == datetime(2023, 3, 15, 12, 0)
        assert Decimal(entry.quantity) == Decimal(2)
        product = db_session.query(Product).one()
        assert product.name == "Widget"
        assert product.product_type == "Other"

    def test_reimport_is_idempotent(self, db_session, sample_user_id):
        content = _workbook({
            "Inventory": [
                ["Product Name", "Type", "Flavor/Detail"],
                ["Robusto", "cigar", "Maduro"],
            ],
            "Purchase Log": [
                ["Purchase Date", "Product Name", "Quantity", "Price Per Item (SEK)"],
                ["2025-03-01", "Robusto", 10, 32.5],
            ],
            "Smoke Log": [
                ["Date", "Time", "Product", "Quantity"],
                ["2025-03-02", "21:30", "Robusto", 1],
                ["2025-03-03", None, "Robusto", 0.5],
            ],
        })

        first = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)
        counts_after_first = _counts(db_session, sample_user_id)
        second = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert first.purchases_imported == 1
        assert first.consumption_imported == 2
        assert _counts(db_session, sample_user_id) == counts_after_first == (1, 1, 2)
        assert second.products_created == 0
        assert second.purchases_duplicates == 1
        assert second.consumption_duplicates == 2
        assert db_session.query(Product).one().product_type == "Cigar"

    def test_duplicate_rows_within_one_file(self, db_session, sample_user_id):
        content = _workbook({
            "Consumption": [
                ["Date", "Product", "Quantity"],
                ["2025-03-02 08:00", "Widget", 1],
                ["2025-03-02 19:00", "Widget", 1],
                ["2025-03-02 19:00", "Widget", 2],
            ],
        })

        report = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert report.consumption_imported == 2
        assert report.consumption_duplicates == 1

    def test_invalid_rows_are_counted_not_fatal(self, db_session, sample_user_id):
        content = _workbook({
            "Purchase Log": [
                ["Date", "Product", "Quantity", "Price Per Item"],
                ["not a date", "Widget", 1, 5],
                ["2025-03-01", "Widget", 0.5, 5],
                ["2025-03-01", "Widget", 3, 5],
            ],
            "Consumption": [
                ["Date", "Product", "Quantity"],
                [None, "Widget", 1],
                ["2025-03-02", None, 1],
                ["2025-03-02", "Widget", "lots"],
                ["2025-03-02", "Widget", 1],
            ],
        })

        report = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert report.purchases_imported == 1
        assert report.consumption_imported == 1
        assert report.invalid == 4
        assert report.skipped == 1

    def test_budget_merged_from_dashboard_second_column(self, db_session, sample_user_id):
        content = _workbook({
            "Dashboard": [
                ["Smoke Tracker Dashboard", None],
                ["Total consumed", 42],
                ["Monthly budget", 900],
            ],
        })

        report = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert report.budget_updated is True
        settings = db_session.query(UserSettings).one()
        assert Decimal(settings.monthly_budget) == Decimal(900)
        assert settings.currency == "SEK"

    def test_budget_untouched_without_dashboard(self, db_session, sample_user_id):
        UpdateSettingsUseCase(db_session).execute(sample_user_id, monthly_budget=Decimal("300"))
        content = _workbook({"Consumption": [["Date", "Product", "Quantity"]]})

        report = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert report.budget_updated is False
        assert Decimal(db_session.query(UserSettings).one().monthly_budget) == Decimal(300)

    def test_not_a_workbook(self, db_session, sample_user_id):
        with pytest.raises(WorkbookFormatError):
            ImportDataUseCase(db_session).execute_workbook(sample_user_id, b"plain text, not xlsx")

    def test_sheet_over_row_limit_is_rejected(self):
        content = _workbook({
            "Consumption": [["Date", "Product", "Quantity"]]
            + [[f"2025-03-0{day}", "Widget", 1] for day in range(1, 6)],
        })

        assert len(read_workbook(content, max_rows=5)["Consumption"]) == 5
        with pytest.raises(WorkbookFormatError, match="more than 3 data rows"):
            read_workbook(content, max_rows=3)

    def test_fractional_quantity_stored_with_two_decimals_reimports_as_duplicate(self, db_session, sample_user_id):
        content = _workbook({
            "Consumption": [
                ["Date", "Product", "Quantity"],
                ["2025-03-02", "Widget", 0.333],
            ],
        })

        first = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)
        second = ImportDataUseCase(db_session).execute_workbook(sample_user_id, content)

        assert first.consumption_imported == 1
        assert Decimal(db_session.query(Consumption).one().quantity) == Decimal("0.33")
        assert second.consumption_imported == 0
        assert second.consumption_duplicates == 1


class TestRoundTrip:
    def test_export_then_import_reproduces_ledger(self, db_session, sample_user_id):
        _seed_ledger(db_session, sample_user_id)
        other_user_id = sample_user_id + 1

        exported = ExportDataUseCase(db_session).execute(sample_user_id)
        report = ImportDataUseCase(db_session).execute_workbook(other_user_id, exported.content)

        assert report.products_created == 2
        assert report.purchases_imported == 2
        assert report.consumption_imported == 3
        assert report.invalid == 0

        original = ExportDataUseCase(db_session).collect(sample_user_id)
        copy = ExportDataUseCase(db_session).collect(other_user_id)
        assert copy.products == original.products
        assert copy.purchases == original.purchases
        assert [
            (c["product_name"], c["consumption_date"], Decimal(c["quantity"])) for c in copy.consumption
        ] == [
            (c["product_name"], c["consumption_date"], Decimal(c["quantity"])) for c in original.consumption
        ]
        assert copy.monthly_budget == original.monthly_budget


class TestImportPayload:
    def test_json_rows(self, db_session, sample_user_id):
        payload = ImportPayload(
            products=[{"name": "Club", "product_type": "Cigarillo", "flavor_detail": None}],
            purchases=[{
                "product_name": "Club",
                "purchase_date": "2025-02-01T10:00:00Z",
                "quantity": 20,
                "price_per_item": "3.25",
            }],
            consumption=[{"product_name": "Club", "consumption_date": "2025-02-02", "time": "18:00", "quantity": 1}],
            monthly_budget="650",
        )

        report = ImportDataUseCase(db_session).execute(sample_user_id, payload)

        assert report.as_dict() == {
            "products_created": 1,
            "products_failed": 0,
            "purchases_imported": 1,
            "purchases_duplicates": 0,
            "consumption_imported": 1,
            "consumption_duplicates": 0,
            "skipped": 0,
            "invalid": 0,
            "budget_updated": True,
        }
        purchase = db_session.query(Purchase).one()
        assert Decimal(purchase.total_cost) == Decimal("65.00")

    def test_failed_insert_rolls_back_only_that_row(self, db_session, sample_user_id):
        use_case = ImportDataUseCase(db_session)
        original_create = use_case.store.create_consumption

        def flaky_create(user_id, product_id, consumption_date, quantity):
            if quantity == Decimal(3):
                raise IntegrityError("INSERT INTO consumption", {}, Exception("boom"))
            return original_create(user_id, product_id, consumption_date, quantity)

        use_case.store.create_consumption = flaky_create
        payload = ImportPayload(consumption=[
            {"product_name": "Widget", "consumption_date": "2025-03-01", "quantity": 1},
            {"product_name": "Widget", "consumption_date": "2025-03-02", "quantity": 3},
            {"product_name": "Widget", "consumption_date": "2025-03-03", "quantity": 2},
        ])

        report = use_case.execute(sample_user_id, payload)

        assert report.consumption_imported == 2
        assert report.invalid == 1
        assert db_session.query(Consumption).count() == 2

    def test_unparseable_dates_do_not_abort_import(self, db_session, sample_user_id):
        payload = ImportPayload(consumption=[
            {"product_name": "Widget", "consumption_date": "20230315", "quantity": 1},
            {"product_name": "Widget", "consumption_date": 99999999, "quantity": 1},
            {"product_name": "Widget", "consumption_date": "-1e9", "quantity": 1},
            {"product_name": "Widget", "consumption_date": 45000, "time": 0.5, "quantity": 2},
        ])

        report = ImportDataUseCase(db_session).execute(sample_user_id, payload)

        assert report.consumption_imported == 2
        assert report.invalid == 2
        dates = sorted(c.consumption_date for c in db_session.query(Consumption).all())
        assert dates == [datetime(2023, 3, 15, 0, 0), datetime(2023, 3, 15, 12, 0)]
