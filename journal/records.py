"""Row projections for auth subjects, profiles and trades."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID


def _as_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class AuthSubject:
    """Auth-provider user as seen by the provisioning hook."""

    id: UUID
    email: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProfileDraft:
    """Client-supplied profile values for insertion."""

    id: UUID
    email: str
    username: str
    country: Optional[str] = None
    date_of_birth: Optional[date] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class ProfileRecord:
    id: UUID
    email: str
    username: str
    country: Optional[str]
    date_of_birth: Optional[date]
    avatar_url: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProfileRecord":
        return cls(
            id=_as_uuid(row["id"]),
            email=str(row["email"]),
            username=str(row["username"]),
            country=row.get("country"),
            date_of_birth=row.get("date_of_birth"),
            avatar_url=row.get("avatar_url"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True, kw_only=True)
class TradeDraft:
    """Client-supplied trade values.

    Only the subset relevant to ``asset_class`` is expected to be set; the
    rest stay ``None``. Ownership is never part of the draft: the store
    assigns the requester as owner.
    """

    instrument: str
    asset_class: str = "stocks"
    direction: Optional[str] = None
    entry_price: Optional[Decimal] = None
    exit_price: Optional[Decimal] = None
    shares: Optional[Decimal] = None
    lots: Optional[Decimal] = None
    pip_value: Optional[Decimal] = None
    contracts: Optional[Decimal] = None
    contract_size: Optional[Decimal] = None
    point_value: Optional[Decimal] = None
    tick_size: Optional[Decimal] = None
    tick_value: Optional[Decimal] = None
    option_type: Optional[str] = None
    strike: Optional[Decimal] = None
    expiry: Optional[date] = None
    premium: Optional[Decimal] = None
    exit_premium: Optional[Decimal] = None
    investment_amount: Optional[Decimal] = None
    equity_pct: Optional[Decimal] = None
    valuation: Optional[Decimal] = None
    exit_valuation: Optional[Decimal] = None
    deal_status: Optional[str] = None
    property_type: Optional[str] = None
    purchase_price: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    generates_rent: bool = False
    monthly_rent: Optional[Decimal] = None
    monthly_expenses: Optional[Decimal] = None
    date_opened: Optional[datetime] = None
    date_closed: Optional[datetime] = None
    pnl: Optional[Decimal] = Decimal("0")
    notes: Optional[str] = ""
    tags: tuple[str, ...] = ()
    emotion: Optional[str] = ""
    rating: int = 0

    def to_params(self) -> dict[str, Any]:
        params = {item.name: getattr(self, item.name) for item in fields(TradeDraft)}
        params["tags"] = list(self.tags)
        return params


TRADE_DRAFT_COLUMNS: tuple[str, ...] = tuple(item.name for item in fields(TradeDraft))

_DECIMAL_COLUMNS: frozenset[str] = frozenset(
    {
        "entry_price",
        "exit_price",
        "shares",
        "lots",
        "pip_value",
        "contracts",
        "contract_size",
        "point_value",
        "tick_size",
        "tick_value",
        "strike",
        "premium",
        "exit_premium",
        "investment_amount",
        "equity_pct",
        "valuation",
        "exit_valuation",
        "purchase_price",
        "current_value",
        "monthly_rent",
        "monthly_expenses",
        "pnl",
    }
)


@dataclass(frozen=True, kw_only=True)
class TradeRecord(TradeDraft):
    id: int
    user_id: UUID
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TradeRecord":
        values: dict[str, Any] = {}
        for column in TRADE_DRAFT_COLUMNS:
            if column not in row:
                continue
            value = row[column]
            if column in _DECIMAL_COLUMNS:
                value = _as_decimal(value)
            elif column == "tags":
                value = tuple(value or ())
            values[column] = value
        return cls(
            id=int(row["id"]),
            user_id=_as_uuid(row["user_id"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **values,
        )
