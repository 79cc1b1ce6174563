"""
Ledger Store - доступ к продуктам, журналам и настройкам пользователя

Все методы принимают user_id и никогда не возвращают чужие строки.
Store только читает и пишет; бизнес-проверки (остаток, положительное
количество) выполняются в use case'ах до вызова store.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from smoketrackr.domain.ledger import (
    ConsumptionSnapshot,
    GiveawaySnapshot,
    LedgerSnapshot,
    ProductSnapshot,
    PurchaseSnapshot,
)
from smoketrackr.infrastructure.db.models import (
    Consumption,
    Giveaway,
    Product,
    Purchase,
    UserSettings,
)

_SETTINGS_FIELDS = ("monthly_budget", "currency", "share_token", "share_preferences")


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


class LedgerStore:
    """
    Repository над таблицами products / purchases / consumption / giveaways / user_settings

    Writes only flush(); commit belongs to the caller (use case or import batch).
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_products(self, user_id: int) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.user_id == user_id)
            .order_by(Product.name, Product.id)
            .all()
        )

    def get_product(self, user_id: int, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(
            Product.id == product_id,
            Product.user_id == user_id
        ).first()

    def create_product(
        self,
        user_id: int,
        name: str,
        product_type: str,
        flavor_detail: Optional[str] = None
    ) -> Product:
        product = Product(
            user_id=user_id,
            name=name,
            product_type=product_type,
            flavor_detail=flavor_detail,
        )
        self.db.add(product)
        self.db.flush()  # Получить ID без commit
        return product

    def update_product(self, product: Product, **fields: Any) -> Product:
        for key in ("name", "product_type", "flavor_detail"):
            if key in fields:
                setattr(product, key, fields[key])
        self.db.flush()
        return product

    def delete_product(self, user_id: int, product_id: int) -> bool:
        """
        Удалить продукт вместе с его покупками, потреблением и раздачами

        Returns:
            True если продукт был найден и удалён
        """
        product = self.get_product(user_id, product_id)
        if not product:
            return False

        for model in (Purchase, Consumption, Giveaway):
            self.db.query(model).filter(
                model.user_id == user_id,
                model.product_id == product_id
            ).delete(synchronize_session=False)

        self.db.delete(product)
        self.db.flush()
        return True

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    def list_purchases(self, user_id: int) -> List[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.user_id == user_id)
            .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
            .all()
        )

    def create_purchase(
        self,
        user_id: int,
        product_id: int,
        purchase_date: datetime,
        quantity: int,
        price_per_item: Decimal
    ) -> Purchase:
        purchase = Purchase(
            user_id=user_id,
            product_id=product_id,
            purchase_date=purchase_date,
            quantity=quantity,
            price_per_item=price_per_item,
            total_cost=Decimal(quantity) * price_per_item,
        )
        self.db.add(purchase)
        self.db.flush()
        return purchase

    def find_purchase_on_day(
        self,
        user_id: int,
        product_id: int,
        day: date,
        quantity: int
    ) -> Optional[Purchase]:
        """Dedup lookup: same product, same calendar date, same quantity."""
        start, end = _day_bounds(day)
        return self.db.query(Purchase).filter(
            Purchase.user_id == user_id,
            Purchase.product_id == product_id,
            Purchase.purchase_date >= start,
            Purchase.purchase_date < end,
            Purchase.quantity == quantity
        ).first()

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def list_consumption(self, user_id: int, since: Optional[datetime] = None) -> List[Consumption]:
        query = self.db.query(Consumption).filter(Consumption.user_id == user_id)
        if since is not None:
            query = query.filter(Consumption.consumption_date >= since)
        return query.order_by(Consumption.consumption_date.desc(), Consumption.id.desc()).all()

    def get_consumption(self, user_id: int, consumption_id: int) -> Optional[Consumption]:
        return self.db.query(Consumption).filter(
            Consumption.id == consumption_id,
            Consumption.user_id == user_id
        ).first()

    def create_consumption(
        self,
        user_id: int,
        product_id: int,
        consumption_date: datetime,
        quantity: Decimal
    ) -> Consumption:
        entry = Consumption(
            user_id=user_id,
            product_id=product_id,
            consumption_date=consumption_date,
            quantity=quantity,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def update_consumption(self, entry: Consumption, **fields: Any) -> Consumption:
        for key in ("product_id", "consumption_date", "quantity"):
            if key in fields:
                setattr(entry, key, fields[key])
        self.db.flush()
        return entry

    def delete_consumption(self, user_id: int, consumption_id: int) -> bool:
        deleted = self.db.query(Consumption).filter(
            Consumption.id == consumption_id,
            Consumption.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.flush()
        return deleted > 0

    def find_consumption_on_day(
        self,
        user_id: int,
        product_id: int,
        day: date,
        quantity: Decimal
    ) -> Optional[Consumption]:
        """Dedup lookup: same product, same calendar date, same quantity."""
        start, end = _day_bounds(day)
        return self.db.query(Consumption).filter(
            Consumption.user_id == user_id,
            Consumption.product_id == product_id,
            Consumption.consumption_date >= start,
            Consumption.consumption_date < end,
            Consumption.quantity == quantity
        ).first()

    # ------------------------------------------------------------------
    # Giveaways
    # ------------------------------------------------------------------

    def list_giveaways(self, user_id: int) -> List[Giveaway]:
        return (
            self.db.query(Giveaway)
            .filter(Giveaway.user_id == user_id)
            .order_by(Giveaway.giveaway_date.desc(), Giveaway.id.desc())
            .all()
        )

    def create_giveaway(
        self,
        user_id: int,
        product_id: int,
        quantity: Decimal,
        giveaway_date: datetime,
        recipient: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Giveaway:
        giveaway = Giveaway(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            giveaway_date=giveaway_date,
            recipient=recipient,
            notes=notes,
        )
        self.db.add(giveaway)
        self.db.flush()
        return giveaway

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self, user_id: int) -> Optional[UserSettings]:
        return self.db.query(UserSettings).filter(UserSettings.user_id == user_id).first()

    def upsert_settings(self, user_id: int, **fields: Any) -> UserSettings:
        """
        Создать или обновить настройки пользователя

        Only monthly_budget / currency / share_token / share_preferences are
        accepted; other keys are ignored.
        """
        settings = self.get_settings(user_id)
        if settings is None:
            settings = UserSettings(user_id=user_id)
            self.db.add(settings)
        for key in _SETTINGS_FIELDS:
            if key in fields:
                setattr(settings, key, fields[key])
        self.db.flush()
        return settings

    def get_settings_by_share_token(self, token: str) -> Optional[UserSettings]:
        if not token:
            return None
        return self.db.query(UserSettings).filter(UserSettings.share_token == token).first()

    # ------------------------------------------------------------------
    # Snapshot for the aggregator
    # ------------------------------------------------------------------

    def load_snapshot(self, user_id: int) -> LedgerSnapshot:
        """Read all four collections and convert them to immutable snapshots."""
        products = tuple(
            ProductSnapshot(
                id=p.id,
                name=p.name,
                product_type=p.product_type,
                flavor_detail=p.flavor_detail,
            )
            for p in self.list_products(user_id)
        )
        purchases = tuple(
            PurchaseSnapshot(
                id=p.id,
                product_id=p.product_id,
                occurred_at=p.purchase_date,
                quantity=p.quantity,
                price_per_item=Decimal(p.price_per_item),
                total_cost=Decimal(p.total_cost),
            )
            for p in self.list_purchases(user_id)
        )
        consumption = tuple(
            ConsumptionSnapshot(
                id=c.id,
                product_id=c.product_id,
                occurred_at=c.consumption_date,
                quantity=Decimal(c.quantity),
            )
            for c in self.list_consumption(user_id)
        )
        giveaways = tuple(
            GiveawaySnapshot(
                id=g.id,
                product_id=g.product_id,
                occurred_at=g.giveaway_date,
                quantity=Decimal(g.quantity),
                recipient=g.recipient,
                notes=g.notes,
            )
            for g in self.list_giveaways(user_id)
        )
        return LedgerSnapshot(
            products=products,
            purchases=purchases,
            consumption=consumption,
            giveaways=giveaways,
        )
