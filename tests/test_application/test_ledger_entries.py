"""
Tests for write use cases: products, purchases, consumption, giveaways, settings
"""
from datetime import datetime
from decimal import Decimal

import pytest

from smoketrackr.application.consumption import (
    ConsumptionNotFoundError,
    ConsumptionValidationError,
    CreateConsumptionUseCase,
    DeleteConsumptionUseCase,
    UpdateConsumptionUseCase,
)
from smoketrackr.application.giveaways import CreateGiveawayUseCase, GiveawayValidationError
from smoketrackr.application.products import (
    CreateProductUseCase,
    DeleteProductUseCase,
    ProductNotFoundError,
    ProductValidationError,
    UpdateProductUseCase,
)
from smoketrackr.application.purchases import CreatePurchaseUseCase, PurchaseValidationError
from smoketrackr.application.user_settings import SettingsValidationError, UpdateSettingsUseCase
from smoketrackr.infrastructure.db.models import Consumption, Giveaway, Product, Purchase


@pytest.fixture
def widget(db_session, sample_user_id):
    return CreateProductUseCase(db_session).execute(sample_user_id, "  Widget ", "Cigar")


class TestProducts:
    def test_name_is_stripped(self, widget):
        assert widget.name == "Widget"
        assert widget.product_type == "Cigar"

    def test_empty_name_rejected(self, db_session, sample_user_id):
        with pytest.raises(ProductValidationError):
            CreateProductUseCase(db_session).execute(sample_user_id, "   ")

    def test_unknown_type_rejected(self, db_session, sample_user_id):
        with pytest.raises(ProductValidationError):
            CreateProductUseCase(db_session).execute(sample_user_id, "Pipe tobacco", "Pipe")
        assert db_session.query(Product).count() == 0

    def test_update(self, db_session, sample_user_id, widget):
        UpdateProductUseCase(db_session).execute(sample_user_id, widget.id, "Widget No.2", "Snus", " mint ")
        db_session.refresh(widget)
        assert (widget.name, widget.product_type, widget.flavor_detail) == ("Widget No.2", "Snus", "mint")

    def test_update_foreign_product(self, db_session, widget):
        with pytest.raises(ProductNotFoundError):
            UpdateProductUseCase(db_session).execute(999, widget.id, "Mine now", "Other")

    def test_delete_cascades_to_logs(self, db_session, sample_user_id, widget):
        CreatePurchaseUseCase(db_session).execute(sample_user_id, widget.id, 5, Decimal("2.00"))
        CreateConsumptionUseCase(db_session).execute(sample_user_id, widget.id, Decimal("1"))
        CreateGiveawayUseCase(db_session).execute(sample_user_id, widget.id, Decimal("1"))

        DeleteProductUseCase(db_session).execute(sample_user_id, widget.id)

        assert db_session.query(Product).count() == 0
        assert db_session.query(Purchase).count() == 0
        assert db_session.query(Consumption).count() == 0
        assert db_session.query(Giveaway).count() == 0

    def test_delete_missing(self, db_session, sample_user_id):
        with pytest.raises(ProductNotFoundError):
            DeleteProductUseCase(db_session).execute(sample_user_id, 404)


class TestPurchases:
    def test_total_cost_computed(self, db_session, sample_user_id, widget):
        purchase = CreatePurchaseUseCase(db_session).execute(
            sample_user_id, widget.id, 3, Decimal("12.50"), datetime(2025, 3, 1)
        )
        assert Decimal(purchase.total_cost) == Decimal("37.50")

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, True])
    def test_quantity_must_be_positive_int(self, db_session, sample_user_id, widget, quantity):
        with pytest.raises(PurchaseValidationError):
            CreatePurchaseUseCase(db_session).execute(sample_user_id, widget.id, quantity, Decimal("1"))

    def test_price_must_be_positive(self, db_session, sample_user_id, widget):
        with pytest.raises(PurchaseValidationError):
            CreatePurchaseUseCase(db_session).execute(sample_user_id, widget.id, 1, Decimal("0"))

    def test_foreign_product_rejected(self, db_session, widget):
        with pytest.raises(PurchaseValidationError):
            CreatePurchaseUseCase(db_session).execute(2, widget.id, 1, Decimal("1"))


class TestConsumption:
    def test_fractional_quantity(self, db_session, sample_user_id, widget):
        entry = CreateConsumptionUseCase(db_session).execute(sample_user_id, widget.id, Decimal("0.5"))
        assert Decimal(entry.quantity) == Decimal("0.5")

    def test_zero_rejected(self, db_session, sample_user_id, widget):
        with pytest.raises(ConsumptionValidationError):
            CreateConsumptionUseCase(db_session).execute(sample_user_id, widget.id, Decimal("0"))

    def test_update_and_delete(self, db_session, sample_user_id, widget):
        entry = CreateConsumptionUseCase(db_session).execute(
            sample_user_id, widget.id, Decimal("1"), datetime(2025, 3, 1, 9, 0)
        )
        UpdateConsumptionUseCase(db_session).execute(
            sample_user_id, entry.id, widget.id, Decimal("2"), datetime(2025, 3, 2, 9, 0)
        )
        db_session.refresh(entry)
        assert Decimal(entry.quantity) == Decimal(2)
        assert entry.consumption_date == datetime(2025, 3, 2, 9, 0)

        DeleteConsumptionUseCase(db_session).execute(sample_user_id, entry.id)
        assert db_session.query(Consumption).count() == 0

    def test_delete_foreign_entry(self, db_session, sample_user_id, widget):
        entry = CreateConsumptionUseCase(db_session).execute(sample_user_id, widget.id, Decimal("1"))
        with pytest.raises(ConsumptionNotFoundError):
            DeleteConsumptionUseCase(db_session).execute(sample_user_id + 1, entry.id)


class TestGiveaways:
    def test_cannot_give_away_more_than_stock(self, db_session, sample_user_id, widget):
        CreatePurchaseUseCase(db_session).execute(sample_user_id, widget.id, 5, Decimal("1.00"))

        with pytest.raises(GiveawayValidationError, match="available stock"):
            CreateGiveawayUseCase(db_session).execute(sample_user_id, widget.id, Decimal("10"))

        assert db_session.query(Giveaway).count() == 0

    def test_giveaway_within_stock(self, db_session, sample_user_id, widget):
        CreatePurchaseUseCase(db_session).execute(sample_user_id, widget.id, 5, Decimal("1.00"))
        CreateConsumptionUseCase(db_session).execute(sample_user_id, widget.id, Decimal("2"))

        giveaway = CreateGiveawayUseCase(db_session).execute(
            sample_user_id, widget.id, Decimal("3"), recipient=" Sam ", notes=""
        )

        assert giveaway.recipient == "Sam"
        assert giveaway.notes is None
        with pytest.raises(GiveawayValidationError):
            CreateGiveawayUseCase(db_session).execute(sample_user_id, widget.id, Decimal("0.5"))


class TestSettings:
    def test_defaults_filled_for_new_row(self, db_session, sample_user_id):
        settings = UpdateSettingsUseCase(db_session).execute(sample_user_id, currency="eur")
        assert settings.currency == "EUR"
        assert Decimal(settings.monthly_budget) == Decimal("500.00")

    def test_budget_must_be_positive(self, db_session, sample_user_id):
        with pytest.raises(SettingsValidationError):
            UpdateSettingsUseCase(db_session).execute(sample_user_id, monthly_budget=Decimal("-5"))

    def test_currency_length(self, db_session, sample_user_id):
        with pytest.raises(SettingsValidationError):
            UpdateSettingsUseCase(db_session).execute(sample_user_id, currency="K")
