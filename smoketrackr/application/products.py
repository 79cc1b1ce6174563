"""
Product use cases - create / rename / delete products
"""
from sqlalchemy.orm import Session

from smoketrackr.domain.product import is_valid_product_type, PRODUCT_TYPES, PRODUCT_TYPE_OTHER
from smoketrackr.infrastructure.db.models import Product
from smoketrackr.infrastructure.store.repository import LedgerStore


class ProductValidationError(ValueError):
    """Ошибка валидации продукта"""
    pass


class ProductNotFoundError(LookupError):
    """Продукт не найден (или принадлежит другому пользователю)"""
    pass


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ProductValidationError("Product name must not be empty")
    if len(name) > 255:
        raise ProductValidationError("Product name is too long (max 255 characters)")
    return name


def _check_type(product_type: str) -> str:
    if not is_valid_product_type(product_type):
        raise ProductValidationError(
            f"Invalid product type: {product_type}. Use one of {', '.join(PRODUCT_TYPES)}"
        )
    return product_type


def _clean_detail(flavor_detail: str | None) -> str | None:
    if flavor_detail is None:
        return None
    flavor_detail = flavor_detail.strip()
    return flavor_detail or None


class CreateProductUseCase:
    """Use case: Создать продукт"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        name: str,
        product_type: str = PRODUCT_TYPE_OTHER,
        flavor_detail: str | None = None
    ) -> Product:
        product = self.store.create_product(
            user_id=user_id,
            name=_clean_name(name),
            product_type=_check_type(product_type),
            flavor_detail=_clean_detail(flavor_detail),
        )
        self.db.commit()
        return product


class UpdateProductUseCase:
    """Use case: Исправить название / тип / описание продукта"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        product_id: int,
        name: str,
        product_type: str,
        flavor_detail: str | None = None
    ) -> Product:
        name = _clean_name(name)
        product_type = _check_type(product_type)

        product = self.store.get_product(user_id, product_id)
        if not product:
            raise ProductNotFoundError(f"Product #{product_id} not found")

        self.store.update_product(
            product,
            name=name,
            product_type=product_type,
            flavor_detail=_clean_detail(flavor_detail),
        )
        self.db.commit()
        return product


class DeleteProductUseCase:
    """
    Use case: Удалить продукт

    Покупки, потребление и раздачи продукта удаляются вместе с ним.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(self, user_id: int, product_id: int) -> None:
        if not self.store.delete_product(user_id, product_id):
            raise ProductNotFoundError(f"Product #{product_id} not found")
        self.db.commit()
