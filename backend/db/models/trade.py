"""Trade journal model definitions."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Identity,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    Text,
    desc,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.db.base import Base
from backend.db.enums import AssetClass, DealStatus, Direction, OptionType, sql_in_list

logger = logging.getLogger(__name__)


class Trade(Base):
    """Logged trade holding the union of asset-class-specific fields."""

    __tablename__ = "trades"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_trades"),
        ForeignKeyConstraint(
            ["user_id"],
            ["auth.users.id"],
            name="fk_trades_auth_user",
            ondelete="CASCADE",
        ),
        CheckConstraint(
            f"asset_class IN ({sql_in_list(AssetClass)})",
            name="ck_trades_asset_class",
        ),
        CheckConstraint(
            "length(btrim(instrument)) > 0",
            name="ck_trades_instrument_not_blank",
        ),
        CheckConstraint(
            f"direction IS NULL OR direction IN ({sql_in_list(Direction)})",
            name="ck_trades_direction",
        ),
        CheckConstraint(
            f"option_type IS NULL OR option_type IN ({sql_in_list(OptionType)})",
            name="ck_trades_option_type",
        ),
        CheckConstraint(
            f"deal_status IS NULL OR deal_status IN ({sql_in_list(DealStatus)})",
            name="ck_trades_deal_status",
        ),
        CheckConstraint("rating >= 0", name="ck_trades_rating_non_negative"),
        CheckConstraint(
            "date_closed IS NULL OR date_closed >= date_opened",
            name="ck_trades_closed_after_opened",
        ),
        Index("idx_trades_user_id", "user_id"),
        Index("idx_trades_user_date_opened_desc", "user_id", desc("date_opened")),
        Index("idx_trades_user_asset_class", "user_id", "asset_class"),
        {"schema": "public"},
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=True),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    # Shared
    asset_class: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        server_default=text("'stocks'"),
    )
    instrument: Mapped[str] = mapped_column(Text, nullable=False)
    direction: Mapped[str | None] = mapped_column(Text, nullable=True)
    entry_price: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    exit_price: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)

    # Stocks / forex
    shares: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    lots: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    pip_value: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)

    # Futures / commodities / indices
    contracts: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    contract_size: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    point_value: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    tick_size: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    tick_value: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)

    # Options
    option_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    strike: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    premium: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    exit_premium: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)

    # Angel / VC
    investment_amount: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    equity_pct: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    valuation: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    exit_valuation: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    deal_status: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Real estate
    property_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    purchase_price: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    current_value: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    generates_rent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("FALSE"),
    )
    monthly_rent: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    monthly_expenses: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)

    # Journal
    date_opened: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    date_closed: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pnl: Mapped[Decimal | None] = mapped_column(
        Numeric,
        nullable=True,
        server_default=text("0"),
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True, server_default=text("''"))
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(Text),
        nullable=False,
        server_default=text("'{}'"),
    )
    emotion: Mapped[str | None] = mapped_column(Text, nullable=True, server_default=text("''"))
    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
