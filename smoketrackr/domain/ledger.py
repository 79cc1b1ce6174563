"""
Ledger aggregation: derived inventory and cost metrics.

Pure read-layer over immutable snapshots of the four collections
(products, purchases, consumption, giveaways). No I/O, no caching:
every call recomputes from the raw logs.

Conventions:
  * quantities and money are Decimal and stay unrounded inside this module;
    rounding happens in the ``as_dict()`` presentation methods
  * consumption / giveaway / purchase rows whose product is not in the
    product snapshot are orphans and are skipped everywhere
  * a zero denominator yields 0, never an exception
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from smoketrackr.domain.product import PRODUCT_TYPES
from smoketrackr.utils.money import ZERO, round_money, round_qty

WINDOW_TODAY = "today"
WINDOW_WEEK = "week"
WINDOW_MONTH = "month"
WINDOW_ALL = "all"
WINDOWS = (WINDOW_TODAY, WINDOW_WEEK, WINDOW_MONTH, WINDOW_ALL)

GRAIN_DAILY = "daily"
GRAIN_WEEKLY = "weekly"

DAILY_SERIES_LIMIT = 30
WEEKLY_SERIES_LIMIT = 12


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    product_type: str
    flavor_detail: Optional[str] = None


@dataclass(frozen=True)
class PurchaseSnapshot:
    id: int
    product_id: int
    occurred_at: datetime
    quantity: int
    price_per_item: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class ConsumptionSnapshot:
    id: int
    product_id: int
    occurred_at: datetime
    quantity: Decimal


@dataclass(frozen=True)
class GiveawaySnapshot:
    id: int
    product_id: int
    occurred_at: datetime
    quantity: Decimal
    recipient: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything one user owns, loaded at a single point in time."""
    products: tuple = ()
    purchases: tuple = ()
    consumption: tuple = ()
    giveaways: tuple = ()


# ---------------------------------------------------------------------------
# Basic helpers
# ---------------------------------------------------------------------------


def _known(entries: Iterable, product_ids) -> list:
    return [e for e in entries if e.product_id in product_ids]


def _sum_quantity(entries: Iterable) -> Decimal:
    return sum((Decimal(e.quantity) for e in entries), ZERO)


def _div(numerator: Decimal, denominator) -> Decimal:
    if not denominator:
        return ZERO
    return numerator / Decimal(denominator)


def window_start(window: str, now: datetime) -> Optional[datetime]:
    """
    Lower bound of a dashboard date window (None = all time).

    today -> midnight today, week -> now minus 7 days,
    month -> first day of the current calendar month.

    Raises:
        ValueError: unknown window name
    """
    if window == WINDOW_TODAY:
        return datetime(now.year, now.month, now.day)
    if window == WINDOW_WEEK:
        return now - timedelta(days=7)
    if window == WINDOW_MONTH:
        return datetime(now.year, now.month, 1)
    if window == WINDOW_ALL:
        return None
    raise ValueError(f"Unknown date window: {window}")


def in_window(entries: Iterable, start: Optional[datetime], end: Optional[datetime] = None) -> list:
    """Entries with start <= occurred_at < end (open bounds when None)."""
    return [
        e for e in entries
        if (start is None or e.occurred_at >= start)
        and (end is None or e.occurred_at < end)
    ]


def month_bounds(reference: date) -> tuple[datetime, datetime]:
    """[first day of the month, first day of the next month)"""
    start = datetime(reference.year, reference.month, 1)
    if reference.month == 12:
        return start, datetime(reference.year + 1, 1, 1)
    return start, datetime(reference.year, reference.month + 1, 1)


def elapsed_days(first: datetime, last: datetime) -> int:
    """Whole days between two timestamps, rounded up, never less than 1."""
    seconds = (last - first).total_seconds()
    return max(1, math.ceil(seconds / 86400))


def average_unit_cost(purchases: Iterable[PurchaseSnapshot]) -> Decimal:
    """
    Weighted average unit cost: total cost / total quantity.

    Returns 0 when nothing was purchased.
    """
    purchases = list(purchases)
    total_quantity = sum((p.quantity for p in purchases), 0)
    total_cost = sum((Decimal(p.total_cost) for p in purchases), ZERO)
    return _div(total_cost, total_quantity)


def average_costs(purchases: Iterable[PurchaseSnapshot]) -> Dict[int, Decimal]:
    """Average unit cost per product_id over every given purchase."""
    by_product: Dict[int, List[PurchaseSnapshot]] = {}
    for p in purchases:
        by_product.setdefault(p.product_id, []).append(p)
    return {pid: average_unit_cost(rows) for pid, rows in by_product.items()}


def run_rate(consumption: Sequence[ConsumptionSnapshot]) -> Decimal:
    """
    Average quantity consumed per day between first and last entry.

    All entries on one day count as one day. No entries -> 0.
    """
    if not consumption:
        return ZERO
    dates = [c.occurred_at for c in consumption]
    return _sum_quantity(consumption) / Decimal(elapsed_days(min(dates), max(dates)))


def stock_of(
    product_id: int,
    purchases: Iterable[PurchaseSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    giveaways: Iterable[GiveawaySnapshot],
) -> Decimal:
    """purchased - consumed - given away, full precision"""
    purchased = _sum_quantity(p for p in purchases if p.product_id == product_id)
    consumed = _sum_quantity(c for c in consumption if c.product_id == product_id)
    given = _sum_quantity(g for g in giveaways if g.product_id == product_id)
    return purchased - consumed - given


# ---------------------------------------------------------------------------
# Per-product inventory
# ---------------------------------------------------------------------------


@dataclass
class ProductMetrics:
    product: ProductSnapshot
    total_purchased: Decimal
    total_consumed: Decimal
    total_given_away: Decimal
    total_cost: Decimal
    stock: Decimal
    avg_cost: Decimal
    run_rate: Decimal
    days_remaining: Optional[Decimal]
    inventory_value: Decimal
    consumed_value: Decimal
    given_away_value: Decimal

    def as_dict(self) -> dict:
        return {
            "product_id": self.product.id,
            "name": self.product.name,
            "product_type": self.product.product_type,
            "flavor_detail": self.product.flavor_detail,
            "total_purchased": round_qty(self.total_purchased),
            "total_consumed": round_qty(self.total_consumed),
            "total_given_away": round_qty(self.total_given_away),
            "total_cost": round_money(self.total_cost),
            "stock": round_qty(self.stock),
            "avg_cost": round_money(self.avg_cost),
            "run_rate": round_qty(self.run_rate),
            "days_remaining": round_qty(self.days_remaining) if self.days_remaining is not None else None,
            "inventory_value": round_money(self.inventory_value),
            "consumed_value": round_money(self.consumed_value),
            "given_away_value": round_money(self.given_away_value),
        }


def product_metrics(
    product: ProductSnapshot,
    purchases: Iterable[PurchaseSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    giveaways: Iterable[GiveawaySnapshot],
) -> ProductMetrics:
    """Stock, cost and burn-rate figures for one product."""
    own_purchases = [p for p in purchases if p.product_id == product.id]
    own_consumption = [c for c in consumption if c.product_id == product.id]
    own_giveaways = [g for g in giveaways if g.product_id == product.id]

    total_purchased = _sum_quantity(own_purchases)
    total_consumed = _sum_quantity(own_consumption)
    total_given_away = _sum_quantity(own_giveaways)
    total_cost = sum((Decimal(p.total_cost) for p in own_purchases), ZERO)

    stock = total_purchased - total_consumed - total_given_away
    avg_cost = _div(total_cost, total_purchased)
    rate = run_rate(own_consumption)

    days_remaining = None
    if rate > 0:
        days_remaining = stock / rate if stock > 0 else ZERO

    return ProductMetrics(
        product=product,
        total_purchased=total_purchased,
        total_consumed=total_consumed,
        total_given_away=total_given_away,
        total_cost=total_cost,
        stock=stock,
        avg_cost=avg_cost,
        run_rate=rate,
        days_remaining=days_remaining,
        inventory_value=stock * avg_cost,
        consumed_value=total_consumed * avg_cost,
        given_away_value=total_given_away * avg_cost,
    )


def inventory(
    products: Iterable[ProductSnapshot],
    purchases: Iterable[PurchaseSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    giveaways: Iterable[GiveawaySnapshot],
) -> List[ProductMetrics]:
    """ProductMetrics for every product, sorted by name."""
    purchases = list(purchases)
    consumption = list(consumption)
    giveaways = list(giveaways)
    return [
        product_metrics(p, purchases, consumption, giveaways)
        for p in sorted(products, key=lambda p: (p.name.lower(), p.id))
    ]


# ---------------------------------------------------------------------------
# Account-wide figures
# ---------------------------------------------------------------------------


def monthly_spend(purchases: Iterable[PurchaseSnapshot], reference: date) -> Decimal:
    """Total purchase cost within the calendar month of ``reference``."""
    start, end = month_bounds(reference)
    return sum((Decimal(p.total_cost) for p in in_window(purchases, start, end)), ZERO)


def consumption_by_category(
    products: Iterable[ProductSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    start: Optional[datetime] = None,
) -> Dict[str, Decimal]:
    """Consumed quantity per product type; every type is present, default 0."""
    type_by_id = {p.id: p.product_type for p in products}
    result = {t: ZERO for t in PRODUCT_TYPES}
    for c in in_window(_known(consumption, type_by_id), start):
        result[type_by_id[c.product_id]] = result.get(type_by_id[c.product_id], ZERO) + Decimal(c.quantity)
    return result


@dataclass
class DashboardStats:
    window: str
    monthly_budget: Decimal
    monthly_spent: Decimal
    total_consumed: Decimal
    by_category: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def remaining_budget(self) -> Decimal:
        return self.monthly_budget - self.monthly_spent

    def as_dict(self) -> dict:
        return {
            "window": self.window,
            "monthly_budget": round_money(self.monthly_budget),
            "monthly_spent": round_money(self.monthly_spent),
            "remaining_budget": round_money(self.remaining_budget),
            "total_consumed": round_qty(self.total_consumed),
            "by_category": {k: round_qty(v) for k, v in self.by_category.items()},
        }


def dashboard_stats(
    products: Iterable[ProductSnapshot],
    purchases: Iterable[PurchaseSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    monthly_budget: Decimal,
    window: str,
    now: datetime,
) -> DashboardStats:
    """
    Budget block + consumption totals for the dashboard.

    Spend is recognised at purchase time for the current calendar month,
    independent of ``window``; consumption figures honour ``window``.
    """
    products = list(products)
    product_ids = {p.id for p in products}
    start = window_start(window, now)
    by_category = consumption_by_category(products, consumption, start)
    return DashboardStats(
        window=window,
        monthly_budget=Decimal(monthly_budget),
        monthly_spent=monthly_spend(_known(purchases, product_ids), now.date()),
        total_consumed=sum(by_category.values(), ZERO),
        by_category=by_category,
    )


# ---------------------------------------------------------------------------
# Cost attribution
# ---------------------------------------------------------------------------


@dataclass
class ProductCost:
    product_id: int
    name: str
    cost: Decimal
    quantity: Decimal

    def as_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "cost": round_money(self.cost),
            "quantity": round_qty(self.quantity),
            "avg_cost": round_money(_div(self.cost, self.quantity)),
        }


@dataclass
class CostAnalytics:
    total_spent: Decimal
    total_items: Decimal
    total_consumed_cost: Decimal
    total_given_away_cost: Decimal
    cost_per_day: Decimal
    cost_by_category: Dict[str, Decimal]
    cost_by_month: List[tuple]
    top_products: List[ProductCost]

    @property
    def cost_per_item(self) -> Decimal:
        return _div(self.total_consumed_cost, self.total_items)

    def as_dict(self) -> dict:
        return {
            "total_spent": round_money(self.total_spent),
            "total_items": round_qty(self.total_items),
            "total_consumed_cost": round_money(self.total_consumed_cost),
            "total_given_away_cost": round_money(self.total_given_away_cost),
            "cost_per_day": round_money(self.cost_per_day),
            "cost_per_item": round_money(self.cost_per_item),
            "cost_by_category": {k: round_money(v) for k, v in self.cost_by_category.items()},
            "cost_by_month": [
                {"month": month, "cost": round_money(cost)} for month, cost in self.cost_by_month
            ],
            "top_products": [p.as_dict() for p in self.top_products],
        }


def cost_analytics(
    products: Iterable[ProductSnapshot],
    purchases: Iterable[PurchaseSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    giveaways: Iterable[GiveawaySnapshot],
    start: Optional[datetime] = None,
    top_n: int = 5,
    months: int = 6,
) -> CostAnalytics:
    """
    Value consumption and giveaways at each product's average unit cost.

    The average is taken over ALL purchases of the product, the window
    (``start``) restricts only which consumption / giveaway / purchase rows
    are summed.
    """
    products = list(products)
    by_id = {p.id: p for p in products}
    purchases = _known(purchases, by_id)
    avg = average_costs(purchases)

    consumed = in_window(_known(consumption, by_id), start)
    given = in_window(_known(giveaways, by_id), start)

    cost_by_category = {t: ZERO for t in PRODUCT_TYPES}
    monthly: Dict[str, Decimal] = {}
    per_product: Dict[int, ProductCost] = {}
    total_consumed_cost = ZERO

    for c in consumed:
        product = by_id[c.product_id]
        quantity = Decimal(c.quantity)
        cost = avg.get(c.product_id, ZERO) * quantity
        total_consumed_cost += cost

        cost_by_category[product.product_type] = cost_by_category.get(product.product_type, ZERO) + cost

        month_key = f"{c.occurred_at.year:04d}-{c.occurred_at.month:02d}"
        monthly[month_key] = monthly.get(month_key, ZERO) + cost

        entry = per_product.get(product.id)
        if entry is None:
            entry = per_product[product.id] = ProductCost(product.id, product.name, ZERO, ZERO)
        entry.cost += cost
        entry.quantity += quantity

    total_given_away_cost = sum(
        (avg.get(g.product_id, ZERO) * Decimal(g.quantity) for g in given), ZERO
    )

    cost_per_day = ZERO
    if consumed:
        dates = [c.occurred_at for c in consumed]
        cost_per_day = total_consumed_cost / Decimal(elapsed_days(min(dates), max(dates)))

    top = sorted(per_product.values(), key=lambda p: (-p.cost, p.name))[:top_n]

    return CostAnalytics(
        total_spent=sum((Decimal(p.total_cost) for p in in_window(purchases, start)), ZERO),
        total_items=_sum_quantity(consumed),
        total_consumed_cost=total_consumed_cost,
        total_given_away_cost=total_given_away_cost,
        cost_per_day=cost_per_day,
        cost_by_category=cost_by_category,
        cost_by_month=sorted(monthly.items())[-months:] if months > 0 else [],
        top_products=top,
    )


# ---------------------------------------------------------------------------
# History charts
# ---------------------------------------------------------------------------


def _week_start(day: date) -> date:
    # Weeks start on Sunday
    return day - timedelta(days=(day.weekday() + 1) % 7)


def consumption_series(
    products: Iterable[ProductSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    grain: str = GRAIN_DAILY,
    start: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    """
    Consumed quantity per day or per week, ascending, most recent buckets kept.

    Default limits: 30 days / 12 weeks.
    """
    if grain == GRAIN_DAILY:
        bucket = lambda d: d
        limit = DAILY_SERIES_LIMIT if limit is None else limit
    elif grain == GRAIN_WEEKLY:
        bucket = _week_start
        limit = WEEKLY_SERIES_LIMIT if limit is None else limit
    else:
        raise ValueError(f"Unknown grain: {grain}")

    product_ids = {p.id for p in products}
    totals: Dict[date, Decimal] = {}
    for c in in_window(_known(consumption, product_ids), start):
        key = bucket(c.occurred_at.date())
        totals[key] = totals.get(key, ZERO) + Decimal(c.quantity)

    rows = sorted(totals.items())[-limit:] if limit > 0 else []
    return [{"date": day.isoformat(), "quantity": round_qty(qty)} for day, qty in rows]


def consumption_heatmap(
    products: Iterable[ProductSnapshot],
    consumption: Iterable[ConsumptionSnapshot],
    year: int,
    month: int,
) -> dict:
    """Daily totals for one calendar month with intensity in [0, 1]."""
    start, end = month_bounds(date(year, month, 1))
    product_ids = {p.id for p in products}

    daily: Dict[date, Decimal] = {}
    for c in in_window(_known(consumption, product_ids), start, end):
        day = c.occurred_at.date()
        daily[day] = daily.get(day, ZERO) + Decimal(c.quantity)

    busiest = max(daily.values(), default=ZERO)
    # intensity denominator never drops below one unit
    peak = max(busiest, Decimal(1))
    days = []
    day = start.date()
    while day < end.date():
        quantity = daily.get(day, ZERO)
        days.append({
            "date": day.isoformat(),
            "quantity": round_qty(quantity),
            "intensity": round_qty(quantity / peak),
        })
        day += timedelta(days=1)

    return {"year": year, "month": month, "max_quantity": round_qty(busiest), "days": days}
