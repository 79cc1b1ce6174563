"""
User settings: monthly budget and currency
"""
from decimal import Decimal

from sqlalchemy.orm import Session

from smoketrackr.config import get_settings
from smoketrackr.infrastructure.db.models import UserSettings
from smoketrackr.infrastructure.store.repository import LedgerStore


class SettingsValidationError(ValueError):
    """Ошибка валидации настроек"""
    pass


def settings_view(settings: UserSettings | None) -> dict:
    """
    Настройки для отображения; если строки ещё нет - значения по умолчанию
    """
    app_settings = get_settings()
    if settings is None:
        return {
            "monthly_budget": app_settings.DEFAULT_MONTHLY_BUDGET,
            "currency": app_settings.DEFAULT_CURRENCY,
            "share_token": None,
            "share_preferences": None,
        }
    return {
        "monthly_budget": Decimal(settings.monthly_budget),
        "currency": settings.currency,
        "share_token": settings.share_token,
        "share_preferences": settings.share_preferences,
    }


def effective_budget(settings: UserSettings | None) -> Decimal:
    return settings_view(settings)["monthly_budget"]


class UpdateSettingsUseCase:
    """Use case: Изменить бюджет и/или валюту"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        user_id: int,
        monthly_budget: Decimal | None = None,
        currency: str | None = None
    ) -> UserSettings:
        fields = {}

        if monthly_budget is not None:
            monthly_budget = Decimal(monthly_budget)
            if not monthly_budget.is_finite() or monthly_budget <= 0:
                raise SettingsValidationError("Monthly budget must be greater than zero")
            fields["monthly_budget"] = monthly_budget

        if currency is not None:
            currency = currency.strip().upper()
            if not 3 <= len(currency) <= 10:
                raise SettingsValidationError(f"Invalid currency: «{currency}»")
            fields["currency"] = currency

        existing = self.store.get_settings(user_id)
        if existing is None:
            # Новая строка получает дефолты из конфигурации
            defaults = settings_view(None)
            fields.setdefault("monthly_budget", defaults["monthly_budget"])
            fields.setdefault("currency", defaults["currency"])

        settings = self.store.upsert_settings(user_id, **fields)
        self.db.commit()
        return settings
