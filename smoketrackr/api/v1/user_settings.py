"""
User settings API: budget, currency, share link
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.sharing import (
    GenerateShareTokenUseCase,
    RevokeShareTokenUseCase,
    UpdateSharePreferencesUseCase,
    parse_preferences,
)
from smoketrackr.application.user_settings import (
    SettingsValidationError,
    UpdateSettingsUseCase,
    settings_view,
)
from smoketrackr.infrastructure.db.models import User
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.validation import parse_positive_decimal


router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


# === Request/Response models ===

class UpdateSettingsRequest(BaseModel):
    monthly_budget: str | None = None
    currency: str | None = None

    @field_validator("monthly_budget")
    @classmethod
    def validate_budget(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return str(parse_positive_decimal(v, max_decimal_places=2))


class SharePreferencesRequest(BaseModel):
    dashboard: bool = True
    history: bool = True
    inventory: bool = True
    purchases: bool = True


class SettingsResponse(BaseModel):
    monthly_budget: str  # Decimal as string
    currency: str
    share_token: str | None
    share_preferences: dict[str, bool]


def _response(view: dict) -> SettingsResponse:
    return SettingsResponse(
        monthly_budget=str(view["monthly_budget"]),
        currency=view["currency"],
        share_token=view["share_token"],
        share_preferences=parse_preferences(view["share_preferences"]),
    )


# === Endpoints ===

@router.get("", response_model=SettingsResponse)
def get_user_settings(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Настройки (или значения по умолчанию, если ещё не сохранялись)"""
    return _response(settings_view(LedgerStore(db).get_settings(user.id)))


@router.put("", response_model=SettingsResponse)
def update_user_settings(
    req: UpdateSettingsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        settings = UpdateSettingsUseCase(db).execute(
            user_id=user.id,
            monthly_budget=parse_positive_decimal(req.monthly_budget) if req.monthly_budget else None,
            currency=req.currency,
        )
    except SettingsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _response(settings_view(settings))


@router.post("/share-token")
def generate_share_token(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Создать новую публичную ссылку (старая перестаёт работать)"""
    token = GenerateShareTokenUseCase(db).execute(user.id)
    return {"share_token": token}


@router.delete("/share-token")
def revoke_share_token(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    RevokeShareTokenUseCase(db).execute(user.id)
    return {"success": True}


@router.put("/share-preferences")
def update_share_preferences(
    req: SharePreferencesRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Какие разделы видны по публичной ссылке"""
    prefs = UpdateSharePreferencesUseCase(db).execute(user.id, req.model_dump())
    return {"share_preferences": prefs}
