"""
SQLAlchemy ORM models (users, products, ledger tables, settings)
"""
from decimal import Decimal
from datetime import datetime
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, func, Numeric, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from smoketrackr.infrastructure.db.session import Base


class User(Base):
    """
    User model (authentication lives outside this service)
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class Product(Base):
    """
    Product - всё, что покупается и потребляется (сигары, снюс и т.д.)
    """
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_type: Mapped[str] = mapped_column(String(20), nullable=False, server_default="Other")  # Cigar, Cigarillo, Cigarette, Snus, Other
    flavor_detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


# ============================================================================
# Ledger tables (append-only event logs; stock is never stored)
# ============================================================================


class Purchase(Base):
    """
    Purchase - покупка (целое количество единиц)

    total_cost = quantity * price_per_item, хранится избыточно для аудита
    """
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    purchase_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_item: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_purchases_user_date", "user_id", "purchase_date"),
    )


class Consumption(Base):
    """
    Consumption - потребление (допускается дробное количество, например 0.5)
    """
    __tablename__ = "consumption"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    consumption_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_consumption_user_date", "user_id", "consumption_date"),
    )


class Giveaway(Base):
    """
    Giveaway - списание без потребления (подарили кому-то)
    """
    __tablename__ = "giveaways"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    giveaway_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    recipient: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class UserSettings(Base):
    """
    Per-user settings: monthly budget, currency, public share link
    """
    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    monthly_budget: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        server_default="500.00"
    )
    currency: Mapped[str] = mapped_column(String(10), nullable=False, server_default="SEK")

    share_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    # JSON: {"dashboard": bool, "history": bool, "inventory": bool, "purchases": bool}
    share_preferences: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
