"""
Public read-only share links.

A share token maps 1:1 to a user_settings row. Resolving it yields the
ledger views filtered by the owner's visibility flags; revoking sets the
token to NULL so every outstanding link stops working at once.
"""
import json
import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from smoketrackr.application.ledger_reports import LedgerReportService
from smoketrackr.application.user_settings import settings_view
from smoketrackr.infrastructure.store.repository import LedgerStore

logger = logging.getLogger(__name__)

SHARE_SECTIONS = ("dashboard", "history", "inventory", "purchases")


class ShareNotFoundError(LookupError):
    """Unknown or revoked share token (the two cases are indistinguishable)."""
    pass


def default_preferences() -> Dict[str, bool]:
    return {section: True for section in SHARE_SECTIONS}


def parse_preferences(raw: Optional[str]) -> Dict[str, bool]:
    """
    Разобрать JSON флагов видимости

    Пустое или повреждённое значение = всё видно; неизвестные ключи
    отбрасываются, отсутствующие считаются True.
    """
    prefs = default_preferences()
    if not raw:
        return prefs
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Corrupt share preferences, falling back to defaults")
        return prefs
    if not isinstance(data, dict):
        return prefs
    for section in SHARE_SECTIONS:
        if section in data:
            prefs[section] = bool(data[section])
    return prefs


class GenerateShareTokenUseCase:
    """Use case: Создать (или заменить) ссылку для публичного просмотра"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(self, user_id: int) -> str:
        token = secrets.token_urlsafe(24)
        fields: Dict[str, Any] = {"share_token": token}
        if self.store.get_settings(user_id) is None:
            defaults = settings_view(None)
            fields.update(
                monthly_budget=defaults["monthly_budget"],
                currency=defaults["currency"],
            )
        self.store.upsert_settings(user_id, **fields)
        self.db.commit()
        return token


class RevokeShareTokenUseCase:
    """Use case: Отозвать ссылку"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(self, user_id: int) -> None:
        if self.store.get_settings(user_id) is None:
            return
        self.store.upsert_settings(user_id, share_token=None)
        self.db.commit()


class UpdateSharePreferencesUseCase:
    """Use case: Какие разделы видны по ссылке"""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(self, user_id: int, preferences: Dict[str, bool]) -> Dict[str, bool]:
        prefs = default_preferences()
        for section in SHARE_SECTIONS:
            if section in preferences:
                prefs[section] = bool(preferences[section])

        fields: Dict[str, Any] = {"share_preferences": json.dumps(prefs)}
        if self.store.get_settings(user_id) is None:
            defaults = settings_view(None)
            fields.update(
                monthly_budget=defaults["monthly_budget"],
                currency=defaults["currency"],
            )
        self.store.upsert_settings(user_id, **fields)
        self.db.commit()
        return prefs


class ShareViewService:
    """Resolve a share token into the owner's filtered ledger views."""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)
        self.reports = LedgerReportService(db)

    def get_public_data(self, token: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Raises:
            ShareNotFoundError: токен неизвестен или отозван
        """
        settings = self.store.get_settings_by_share_token(token)
        if settings is None:
            raise ShareNotFoundError("Share link not found")

        user_id = settings.user_id
        now = now or datetime.now()
        prefs = parse_preferences(settings.share_preferences)
        snapshot = self.reports.load(user_id)
        names = {p.id: p.name for p in snapshot.products}

        data: Dict[str, Any] = {
            "preferences": prefs,
            "currency": settings.currency,
        }

        if prefs["dashboard"]:
            data["stats"] = self.reports.dashboard(user_id, "all", now=now, snapshot=snapshot)
            data["monthly_budget"] = Decimal(settings.monthly_budget)

        if prefs["history"]:
            data["history"] = self.reports.history(user_id, "all", now=now, snapshot=snapshot)
            data["consumption"] = [
                {
                    "id": c.id,
                    "product_id": c.product_id,
                    "product_name": names.get(c.product_id),
                    "consumption_date": c.occurred_at,
                    "quantity": c.quantity,
                }
                for c in snapshot.consumption if c.product_id in names
            ]

        if prefs["inventory"]:
            data["inventory"] = self.reports.inventory(user_id, snapshot=snapshot)
            data["products"] = [
                {
                    "id": p.id,
                    "name": p.name,
                    "product_type": p.product_type,
                    "flavor_detail": p.flavor_detail,
                }
                for p in snapshot.products
            ]
            data["giveaways"] = [
                {
                    "id": g.id,
                    "product_id": g.product_id,
                    "product_name": names.get(g.product_id),
                    "giveaway_date": g.occurred_at,
                    "quantity": g.quantity,
                    "recipient": g.recipient,
                    "notes": g.notes,
                }
                for g in snapshot.giveaways if g.product_id in names
            ]

        if prefs["purchases"]:
            data["purchases"] = [
                {
                    "id": p.id,
                    "product_id": p.product_id,
                    "product_name": names.get(p.product_id),
                    "purchase_date": p.occurred_at,
                    "quantity": p.quantity,
                    "price_per_item": p.price_per_item,
                    "total_cost": p.total_cost,
                }
                for p in snapshot.purchases if p.product_id in names
            ]

        return data
