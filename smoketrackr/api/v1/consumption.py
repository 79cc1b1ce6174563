"""
Consumption API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.consumption import (
    ConsumptionNotFoundError,
    ConsumptionValidationError,
    CreateConsumptionUseCase,
    DeleteConsumptionUseCase,
    UpdateConsumptionUseCase,
)
from smoketrackr.infrastructure.db.models import Consumption, User
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.validation import parse_positive_decimal


router = APIRouter(prefix="/api/v1/consumption", tags=["consumption"])


# === Request/Response models ===

class CreateConsumptionRequest(BaseModel):
    product_id: int
    quantity: str = "1"  # допускается "0.5"
    consumption_date: datetime | None = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: str) -> str:
        return str(parse_positive_decimal(v, max_decimal_places=2))


class UpdateConsumptionRequest(BaseModel):
    product_id: int
    quantity: str
    consumption_date: datetime

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: str) -> str:
        return str(parse_positive_decimal(v, max_decimal_places=2))


class ConsumptionResponse(BaseModel):
    id: int
    product_id: int
    consumption_date: datetime
    quantity: str  # Decimal as string


def _to_response(entry: Consumption) -> ConsumptionResponse:
    return ConsumptionResponse(
        id=entry.id,
        product_id=entry.product_id,
        consumption_date=entry.consumption_date,
        quantity=str(entry.quantity),
    )


# === Endpoints ===

@router.get("", response_model=list[ConsumptionResponse])
def list_consumption(
    since: datetime | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Журнал потребления, новые сверху (опционально с даты)"""
    return [_to_response(c) for c in LedgerStore(db).list_consumption(user.id, since=since)]


@router.post("", response_model=ConsumptionResponse)
def create_consumption(
    req: CreateConsumptionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Записать потребление"""
    try:
        entry = CreateConsumptionUseCase(db).execute(
            user_id=user.id,
            product_id=req.product_id,
            quantity=parse_positive_decimal(req.quantity),
            consumption_date=req.consumption_date,
        )
    except ConsumptionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(entry)


@router.put("/{consumption_id}", response_model=ConsumptionResponse)
def update_consumption(
    consumption_id: int,
    req: UpdateConsumptionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Исправить запись"""
    try:
        entry = UpdateConsumptionUseCase(db).execute(
            user_id=user.id,
            consumption_id=consumption_id,
            product_id=req.product_id,
            quantity=parse_positive_decimal(req.quantity),
            consumption_date=req.consumption_date,
        )
    except ConsumptionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConsumptionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(entry)


@router.delete("/{consumption_id}")
def delete_consumption(
    consumption_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Удалить запись"""
    try:
        DeleteConsumptionUseCase(db).execute(user_id=user.id, consumption_id=consumption_id)
    except ConsumptionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}
