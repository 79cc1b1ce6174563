"""
Giveaway API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.giveaways import CreateGiveawayUseCase, GiveawayValidationError
from smoketrackr.infrastructure.db.models import Giveaway, User
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.validation import parse_positive_decimal


router = APIRouter(prefix="/api/v1/giveaways", tags=["giveaways"])


# === Request/Response models ===

class CreateGiveawayRequest(BaseModel):
    product_id: int
    quantity: str
    giveaway_date: datetime | None = None
    recipient: str | None = None
    notes: str | None = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: str) -> str:
        return str(parse_positive_decimal(v, max_decimal_places=2))


class GiveawayResponse(BaseModel):
    id: int
    product_id: int
    giveaway_date: datetime
    quantity: str  # Decimal as string
    recipient: str | None
    notes: str | None


def _to_response(giveaway: Giveaway) -> GiveawayResponse:
    return GiveawayResponse(
        id=giveaway.id,
        product_id=giveaway.product_id,
        giveaway_date=giveaway.giveaway_date,
        quantity=str(giveaway.quantity),
        recipient=giveaway.recipient,
        notes=giveaway.notes,
    )


# === Endpoints ===

@router.get("", response_model=list[GiveawayResponse])
def list_giveaways(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [_to_response(g) for g in LedgerStore(db).list_giveaways(user.id)]


@router.post("", response_model=GiveawayResponse)
def create_giveaway(
    req: CreateGiveawayRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Отдать часть запаса (не больше текущего остатка)"""
    try:
        giveaway = CreateGiveawayUseCase(db).execute(
            user_id=user.id,
            product_id=req.product_id,
            quantity=parse_positive_decimal(req.quantity),
            giveaway_date=req.giveaway_date,
            recipient=req.recipient,
            notes=req.notes,
        )
    except GiveawayValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(giveaway)
