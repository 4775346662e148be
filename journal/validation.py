"""Client-side mirror of schema constraints and database error translation."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from backend.db.enums import AssetClass, DealStatus, Direction, OptionType
from journal.errors import ConstraintViolationError, JournalError, NotPermittedError
from journal.records import TRADE_DRAFT_COLUMNS, TradeDraft

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")

ASSET_CLASS_FIELDS: dict[AssetClass, frozenset[str]] = {
    AssetClass.STOCKS: frozenset({"entry_price", "exit_price", "shares"}),
    AssetClass.OPTIONS: frozenset(
        {"option_type", "strike", "expiry", "premium", "exit_premium", "contracts"}
    ),
    AssetClass.FOREX: frozenset({"entry_price", "exit_price", "lots", "pip_value"}),
    AssetClass.COMMODITIES: frozenset({"entry_price", "exit_price", "contracts", "contract_size"}),
    AssetClass.INDICES: frozenset({"entry_price", "exit_price", "contracts", "point_value"}),
    AssetClass.FUTURES: frozenset(
        {"entry_price", "exit_price", "contracts", "tick_size", "tick_value"}
    ),
    AssetClass.ANGEL: frozenset(
        {"investment_amount", "equity_pct", "valuation", "exit_valuation", "deal_status"}
    ),
    AssetClass.REALESTATE: frozenset(
        {
            "property_type",
            "purchase_price",
            "current_value",
            "generates_rent",
            "monthly_rent",
            "monthly_expenses",
        }
    ),
}

_CLASS_SPECIFIC_FIELDS: frozenset[str] = frozenset().union(*ASSET_CLASS_FIELDS.values())

PROFILE_UPDATABLE_COLUMNS: frozenset[str] = frozenset(
    {"email", "username", "country", "date_of_birth", "avatar_url"}
)

# Constraint and index names from the migration, keyed to the column they guard.
CONSTRAINT_FIELDS: dict[str, str] = {
    "pk_profiles": "id",
    "fk_profiles_auth_user": "id",
    "ck_profiles_username_format": "username",
    "uqix_profiles_username_lower": "username",
    "fk_trades_auth_user": "user_id",
    "ck_trades_asset_class": "asset_class",
    "ck_trades_instrument_not_blank": "instrument",
    "ck_trades_direction": "direction",
    "ck_trades_option_type": "option_type",
    "ck_trades_deal_status": "deal_status",
    "ck_trades_rating_non_negative": "rating",
    "ck_trades_closed_after_opened": "date_closed",
}

_CONSTRAINT_SQLSTATES: dict[str, str] = {
    "23505": "value already taken",
    "23514": "value fails check constraint",
    "23502": "value is required",
    "23503": "referenced row does not exist",
}
_INSUFFICIENT_PRIVILEGE = "42501"


def validate_username(username: str) -> None:
    if not USERNAME_RE.fullmatch(username or ""):
        raise ConstraintViolationError(
            "username",
            "must be 3-20 characters of letters, digits or underscores",
            constraint="ck_profiles_username_format",
        )


def _check_choice(field_name: str, value: Optional[str], choices: Any, constraint: str) -> None:
    if value is None:
        return
    allowed = {member.value for member in choices}
    if value not in allowed:
        raise ConstraintViolationError(
            field_name,
            f"must be one of {sorted(allowed)}",
            constraint=constraint,
        )


def validate_trade(draft: TradeDraft) -> None:
    """Reject drafts the trades table constraints would refuse."""
    if draft.asset_class is None:
        raise ConstraintViolationError("asset_class", "value is required")
    _check_choice("asset_class", draft.asset_class, AssetClass, "ck_trades_asset_class")
    if draft.instrument is None or draft.instrument.strip() == "":
        raise ConstraintViolationError(
            "instrument",
            "must not be blank",
            constraint="ck_trades_instrument_not_blank",
        )
    _check_choice("direction", draft.direction, Direction, "ck_trades_direction")
    _check_choice("option_type", draft.option_type, OptionType, "ck_trades_option_type")
    _check_choice("deal_status", draft.deal_status, DealStatus, "ck_trades_deal_status")
    if draft.rating is None:
        raise ConstraintViolationError("rating", "value is required")
    if draft.rating < 0:
        raise ConstraintViolationError(
            "rating",
            "must not be negative",
            constraint="ck_trades_rating_non_negative",
        )
    if draft.date_opened is not None and draft.date_closed is not None:
        if (draft.date_opened.tzinfo is None) != (draft.date_closed.tzinfo is None):
            raise ConstraintViolationError(
                "date_closed",
                "must match date_opened in carrying a timezone",
            )
        if draft.date_closed < draft.date_opened:
            raise ConstraintViolationError(
                "date_closed",
                "must not precede date_opened",
                constraint="ck_trades_closed_after_opened",
            )


def validate_trade_changes(changes: dict[str, Any]) -> None:
    """Per-column checks for a partial trade update; cross-column rules stay in the database."""
    unknown = sorted(set(changes) - set(TRADE_DRAFT_COLUMNS))
    if unknown:
        raise ConstraintViolationError(unknown[0], "is not an updatable trade column")
    if "asset_class" in changes:
        if changes["asset_class"] is None:
            raise ConstraintViolationError("asset_class", "value is required")
        _check_choice("asset_class", changes["asset_class"], AssetClass, "ck_trades_asset_class")
    if "instrument" in changes:
        instrument = changes["instrument"]
        if instrument is None or str(instrument).strip() == "":
            raise ConstraintViolationError(
                "instrument",
                "must not be blank",
                constraint="ck_trades_instrument_not_blank",
            )
    if "direction" in changes:
        _check_choice("direction", changes["direction"], Direction, "ck_trades_direction")
    if "option_type" in changes:
        _check_choice("option_type", changes["option_type"], OptionType, "ck_trades_option_type")
    if "deal_status" in changes:
        _check_choice("deal_status", changes["deal_status"], DealStatus, "ck_trades_deal_status")
    if "rating" in changes:
        if changes["rating"] is None:
            raise ConstraintViolationError("rating", "value is required")
        if changes["rating"] < 0:
            raise ConstraintViolationError(
                "rating",
                "must not be negative",
                constraint="ck_trades_rating_non_negative",
            )


def validate_profile_changes(changes: dict[str, Any]) -> None:
    unknown = sorted(set(changes) - PROFILE_UPDATABLE_COLUMNS)
    if unknown:
        raise ConstraintViolationError(unknown[0], "is not an updatable profile column")
    if "email" in changes and not changes["email"]:
        raise ConstraintViolationError("email", "value is required")
    if "username" in changes:
        validate_username(changes["username"])


def out_of_class_fields(draft: TradeDraft) -> tuple[str, ...]:
    """Return populated class-specific fields that ``draft.asset_class`` does not use."""
    relevant = ASSET_CLASS_FIELDS[AssetClass(draft.asset_class)]
    populated = []
    for name in sorted(_CLASS_SPECIFIC_FIELDS - relevant):
        value = getattr(draft, name)
        if name == "generates_rent":
            if value:
                populated.append(name)
        elif value is not None:
            populated.append(name)
    return tuple(populated)


def translate_database_error(exc: BaseException) -> Optional[JournalError]:
    """Map a driver error to a journal error, or ``None`` to let it propagate."""
    sqlstate = getattr(exc, "sqlstate", None)
    if sqlstate == _INSUFFICIENT_PRIVILEGE:
        logger.info("Database rejected write under row-level security.")
        return NotPermittedError()
    if sqlstate not in _CONSTRAINT_SQLSTATES:
        return None

    diag = getattr(exc, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    column = getattr(diag, "column_name", None)
    field_name = CONSTRAINT_FIELDS.get(constraint or "", column or constraint or "unknown")
    return ConstraintViolationError(
        field_name,
        _CONSTRAINT_SQLSTATES[sqlstate],
        constraint=constraint,
    )
