"""
Purchase API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.purchases import CreatePurchaseUseCase, PurchaseValidationError
from smoketrackr.infrastructure.db.models import Purchase, User
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.validation import parse_positive_decimal


router = APIRouter(prefix="/api/v1/purchases", tags=["purchases"])


# === Request/Response models ===

class CreatePurchaseRequest(BaseModel):
    product_id: int
    quantity: int
    price_per_item: str  # "12.50" или "12,50"
    purchase_date: datetime | None = None

    @field_validator("price_per_item")
    @classmethod
    def validate_price(cls, v: str) -> str:
        """Цена > 0, максимум 2 знака"""
        return str(parse_positive_decimal(v, max_decimal_places=2))


class PurchaseResponse(BaseModel):
    id: int
    product_id: int
    purchase_date: datetime
    quantity: int
    price_per_item: str  # Decimal as string
    total_cost: str


def _to_response(purchase: Purchase) -> PurchaseResponse:
    return PurchaseResponse(
        id=purchase.id,
        product_id=purchase.product_id,
        purchase_date=purchase.purchase_date,
        quantity=purchase.quantity,
        price_per_item=str(purchase.price_per_item),
        total_cost=str(purchase.total_cost),
    )


# === Endpoints ===

@router.get("", response_model=list[PurchaseResponse])
def list_purchases(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Все покупки, новые сверху"""
    return [_to_response(p) for p in LedgerStore(db).list_purchases(user.id)]


@router.post("", response_model=PurchaseResponse)
def create_purchase(
    req: CreatePurchaseRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Записать покупку"""
    try:
        purchase = CreatePurchaseUseCase(db).execute(
            user_id=user.id,
            product_id=req.product_id,
            quantity=req.quantity,
            price_per_item=parse_positive_decimal(req.price_per_item),
            purchase_date=req.purchase_date,
        )
    except PurchaseValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(purchase)
