"""
Product API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.ledger_reports import LedgerReportService
from smoketrackr.application.products import (
    CreateProductUseCase,
    DeleteProductUseCase,
    ProductNotFoundError,
    ProductValidationError,
    UpdateProductUseCase,
)
from smoketrackr.domain.product import PRODUCT_TYPE_OTHER, PRODUCT_TYPES
from smoketrackr.infrastructure.db.models import Product, User
from smoketrackr.infrastructure.store.repository import LedgerStore


router = APIRouter(prefix="/api/v1/products", tags=["products"])


# === Request/Response models ===

class ProductRequest(BaseModel):
    name: str
    product_type: str = PRODUCT_TYPE_OTHER  # Cigar, Cigarillo, Cigarette, Snus, Other
    flavor_detail: str | None = None

    @field_validator("product_type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in PRODUCT_TYPES:
            raise ValueError(f"Product type must be one of: {', '.join(PRODUCT_TYPES)}")
        return v


class ProductResponse(BaseModel):
    id: int
    name: str
    product_type: str
    flavor_detail: str | None
    created_at: datetime | None = None


def _to_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        name=product.name,
        product_type=product.product_type,
        flavor_detail=product.flavor_detail,
        created_at=product.created_at,
    )


# === Endpoints ===

@router.get("", response_model=list[ProductResponse])
def list_products(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Список продуктов пользователя (по имени)"""
    return [_to_response(p) for p in LedgerStore(db).list_products(user.id)]


@router.post("", response_model=ProductResponse)
def create_product(
    req: ProductRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Создать продукт"""
    try:
        product = CreateProductUseCase(db).execute(
            user_id=user.id,
            name=req.name,
            product_type=req.product_type,
            flavor_detail=req.flavor_detail,
        )
    except ProductValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(product)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    req: ProductRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Изменить продукт"""
    try:
        product = UpdateProductUseCase(db).execute(
            user_id=user.id,
            product_id=product_id,
            name=req.name,
            product_type=req.product_type,
            flavor_detail=req.flavor_detail,
        )
    except ProductValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(product)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Удалить продукт вместе с его журналами"""
    try:
        DeleteProductUseCase(db).execute(user_id=user.id, product_id=product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


@router.get("/{product_id}/inventory")
def get_product_inventory(
    product_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Остаток, средняя цена и прогноз для одного продукта"""
    metrics = LedgerReportService(db).product_inventory(user.id, product_id)
    if metrics is None:
        raise HTTPException(status_code=404, detail=f"Product #{product_id} not found")
    return metrics
