"""
Purchase use cases - покупки неизменяемы (нет update / delete)
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from smoketrackr.infrastructure.db.models import Purchase
from smoketrackr.infrastructure.store.repository import LedgerStore


class PurchaseValidationError(ValueError):
    """Ошибка валидации покупки"""
    pass


class CreatePurchaseUseCase:
    """
    Use case: Записать покупку

    quantity - целое число единиц (дробные покупки не поддерживаются),
    total_cost = quantity * price_per_item считается здесь.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        price_per_item: Decimal,
        purchase_date: datetime | None = None
    ) -> Purchase:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise PurchaseValidationError("Purchase quantity must be a whole number")
        if quantity <= 0:
            raise PurchaseValidationError("Purchase quantity must be greater than zero")

        price_per_item = Decimal(price_per_item)
        if not price_per_item.is_finite() or price_per_item <= 0:
            raise PurchaseValidationError("Price per item must be greater than zero")

        if not self.store.get_product(user_id, product_id):
            raise PurchaseValidationError(f"Product #{product_id} not found")

        purchase = self.store.create_purchase(
            user_id=user_id,
            product_id=product_id,
            purchase_date=purchase_date or datetime.now(),
            quantity=quantity,
            price_per_item=price_per_item,
        )
        self.db.commit()
        return purchase
