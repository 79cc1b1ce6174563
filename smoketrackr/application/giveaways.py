"""
Giveaway use cases - списание без потребления
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from smoketrackr.domain.ledger import stock_of
from smoketrackr.infrastructure.db.models import Giveaway
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.money import round_qty


class GiveawayValidationError(ValueError):
    """Ошибка валидации раздачи"""
    pass


class CreateGiveawayUseCase:
    """
    Use case: Отдать часть запаса

    Количество не может превышать текущий остаток продукта. Остаток
    пересчитывается из журналов прямо перед записью, проверка выполняется
    до любого изменения в БД.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        product_id: int,
        quantity: Decimal,
        giveaway_date: datetime | None = None,
        recipient: str | None = None,
        notes: str | None = None
    ) -> Giveaway:
        quantity = Decimal(quantity)
        if not quantity.is_finite() or quantity <= 0:
            raise GiveawayValidationError("Quantity must be greater than zero")

        if not self.store.get_product(user_id, product_id):
            raise GiveawayValidationError(f"Product #{product_id} not found")

        snapshot = self.store.load_snapshot(user_id)
        stock = stock_of(product_id, snapshot.purchases, snapshot.consumption, snapshot.giveaways)
        if quantity > stock:
            raise GiveawayValidationError(
                f"Cannot give away more than available stock ({round_qty(max(stock, Decimal(0)))})"
            )

        giveaway = self.store.create_giveaway(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            giveaway_date=giveaway_date or datetime.now(),
            recipient=(recipient or "").strip() or None,
            notes=(notes or "").strip() or None,
        )
        self.db.commit()
        return giveaway
