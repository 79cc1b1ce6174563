"""
Consumption use cases - log, correct and delete consumption entries
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from smoketrackr.infrastructure.db.models import Consumption
from smoketrackr.infrastructure.store.repository import LedgerStore


class ConsumptionValidationError(ValueError):
    """Ошибка валидации записи потребления"""
    pass


class ConsumptionNotFoundError(LookupError):
    pass


def _check_quantity(quantity) -> Decimal:
    quantity = Decimal(quantity)
    if not quantity.is_finite() or quantity <= 0:
        raise ConsumptionValidationError("Quantity must be greater than zero")
    return quantity


class CreateConsumptionUseCase:
    """Use case: Записать потребление (допускается 0.5 и т.п.)"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        product_id: int,
        quantity: Decimal,
        consumption_date: datetime | None = None
    ) -> Consumption:
        quantity = _check_quantity(quantity)

        if not self.store.get_product(user_id, product_id):
            raise ConsumptionValidationError(f"Product #{product_id} not found")

        entry = self.store.create_consumption(
            user_id=user_id,
            product_id=product_id,
            consumption_date=consumption_date or datetime.now(),
            quantity=quantity,
        )
        self.db.commit()
        return entry


class UpdateConsumptionUseCase:
    """Use case: Исправить запись потребления (продукт, дата, количество)"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        consumption_id: int,
        product_id: int,
        quantity: Decimal,
        consumption_date: datetime
    ) -> Consumption:
        quantity = _check_quantity(quantity)

        entry = self.store.get_consumption(user_id, consumption_id)
        if not entry:
            raise ConsumptionNotFoundError(f"Consumption entry #{consumption_id} not found")

        if not self.store.get_product(user_id, product_id):
            raise ConsumptionValidationError(f"Product #{product_id} not found")

        self.store.update_consumption(
            entry,
            product_id=product_id,
            consumption_date=consumption_date,
            quantity=quantity,
        )
        self.db.commit()
        return entry


class DeleteConsumptionUseCase:
    """Use case: Удалить запись потребления"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(self, user_id: int, consumption_id: int) -> None:
        if not self.store.delete_consumption(user_id, consumption_id):
            raise ConsumptionNotFoundError(f"Consumption entry #{consumption_id} not found")
        self.db.commit()
