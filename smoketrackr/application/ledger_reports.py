"""
Ledger read service: dashboard, inventory, history and cost analytics.

Pure read-layer: loads a fresh snapshot of the user's ledger on every call
and hands it to smoketrackr.domain.ledger. When the database is unreachable
reads degrade to empty figures so the dashboard still renders.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from smoketrackr.config import get_settings
from smoketrackr.domain import ledger
from smoketrackr.domain.ledger import LedgerSnapshot
from smoketrackr.application.user_settings import effective_budget
from smoketrackr.infrastructure.store.repository import LedgerStore
from smoketrackr.utils.money import ZERO, round_money, round_qty

logger = logging.getLogger(__name__)


class LedgerReportService:
    """Build derived ledger views for one user."""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, user_id: int) -> LedgerSnapshot:
        try:
            return self.store.load_snapshot(user_id)
        except OperationalError:
            logger.exception("Ledger snapshot unavailable for user_id=%s", user_id)
            self.db.rollback()
            return LedgerSnapshot()

    def monthly_budget(self, user_id: int) -> Decimal:
        try:
            return effective_budget(self.store.get_settings(user_id))
        except OperationalError:
            logger.exception("Settings unavailable for user_id=%s", user_id)
            self.db.rollback()
            return get_settings().DEFAULT_MONTHLY_BUDGET

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def dashboard(
        self,
        user_id: int,
        window: str = ledger.WINDOW_MONTH,
        now: Optional[datetime] = None,
        snapshot: Optional[LedgerSnapshot] = None,
    ) -> Dict[str, Any]:
        now = now or datetime.now()
        snapshot = snapshot if snapshot is not None else self.load(user_id)
        stats = ledger.dashboard_stats(
            snapshot.products,
            snapshot.purchases,
            snapshot.consumption,
            monthly_budget=self.monthly_budget(user_id),
            window=window,
            now=now,
        )
        return stats.as_dict()

    def inventory(self, user_id: int, snapshot: Optional[LedgerSnapshot] = None) -> List[Dict[str, Any]]:
        snapshot = snapshot if snapshot is not None else self.load(user_id)
        rows = ledger.inventory(
            snapshot.products, snapshot.purchases, snapshot.consumption, snapshot.giveaways
        )
        return [r.as_dict() for r in rows]

    def product_inventory(self, user_id: int, product_id: int) -> Optional[Dict[str, Any]]:
        snapshot = self.load(user_id)
        product = next((p for p in snapshot.products if p.id == product_id), None)
        if product is None:
            return None
        metrics = ledger.product_metrics(
            product, snapshot.purchases, snapshot.consumption, snapshot.giveaways
        )
        return metrics.as_dict()

    def history(
        self,
        user_id: int,
        period: str = ledger.WINDOW_ALL,
        grain: str = ledger.GRAIN_DAILY,
        now: Optional[datetime] = None,
        snapshot: Optional[LedgerSnapshot] = None,
    ) -> Dict[str, Any]:
        """
        Consumption history for a period: entries, chart series, totals.

        Entries are valued at the product's all-time average cost.
        """
        now = now or datetime.now()
        snapshot = snapshot if snapshot is not None else self.load(user_id)
        start = ledger.window_start(period, now)

        by_id = {p.id: p for p in snapshot.products}
        avg = ledger.average_costs(p for p in snapshot.purchases if p.product_id in by_id)
        entries = [
            c for c in ledger.in_window(snapshot.consumption, start)
            if c.product_id in by_id
        ]

        total_items = ZERO
        total_cost = ZERO
        by_product: Dict[int, Decimal] = {}
        for c in entries:
            total_items += c.quantity
            total_cost += avg.get(c.product_id, ZERO) * c.quantity
            by_product[c.product_id] = by_product.get(c.product_id, ZERO) + c.quantity

        return {
            "period": period,
            "grain": grain,
            "total_items": round_qty(total_items),
            "total_cost": round_money(total_cost),
            "series": ledger.consumption_series(snapshot.products, entries, grain=grain),
            "by_product": [
                {"product_id": pid, "name": by_id[pid].name, "quantity": round_qty(qty)}
                for pid, qty in sorted(by_product.items(), key=lambda kv: (-kv[1], by_id[kv[0]].name))
            ],
            "entries": [
                {
                    "id": c.id,
                    "product_id": c.product_id,
                    "product_name": by_id[c.product_id].name,
                    "consumption_date": c.occurred_at,
                    "quantity": c.quantity,
                }
                for c in sorted(entries, key=lambda c: (c.occurred_at, c.id), reverse=True)
            ],
        }

    def cost_analytics(
        self,
        user_id: int,
        window: str = ledger.WINDOW_ALL,
        now: Optional[datetime] = None,
        snapshot: Optional[LedgerSnapshot] = None,
    ) -> Dict[str, Any]:
        now = now or datetime.now()
        settings = get_settings()
        snapshot = snapshot if snapshot is not None else self.load(user_id)
        analytics = ledger.cost_analytics(
            snapshot.products,
            snapshot.purchases,
            snapshot.consumption,
            snapshot.giveaways,
            start=ledger.window_start(window, now),
            top_n=settings.TOP_PRODUCTS_LIMIT,
            months=settings.COST_MONTHS_LIMIT,
        )
        return {"window": window, **analytics.as_dict()}

    def heatmap(self, user_id: int, year: int, month: int) -> Dict[str, Any]:
        snapshot = self.load(user_id)
        return ledger.consumption_heatmap(snapshot.products, snapshot.consumption, year, month)
