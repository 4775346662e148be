"""Text-valued domain contracts for the journal schema.

Columns stay TEXT in Postgres; the allowed values are enforced with CHECK
constraints built from these enums.
"""

from __future__ import annotations

import enum
import logging

logger = logging.getLogger(__name__)


class AssetClass(str, enum.Enum):
    """Trade category deciding which optional fields are meaningful."""

    STOCKS = "stocks"
    OPTIONS = "options"
    FOREX = "forex"
    FUTURES = "futures"
    COMMODITIES = "commodities"
    INDICES = "indices"
    ANGEL = "angel"
    REALESTATE = "realestate"


class Direction(str, enum.Enum):
    """Position direction."""

    LONG = "LONG"
    SHORT = "SHORT"


class OptionType(str, enum.Enum):
    """Option contract type."""

    CALL = "CALL"
    PUT = "PUT"


class DealStatus(str, enum.Enum):
    """Private equity / VC deal lifecycle status."""

    ACTIVE = "active"
    EXITED = "exited"
    WRITTEN_OFF = "written-off"


def sql_in_list(values: type[enum.Enum]) -> str:
    """Render enum values as a SQL IN list body."""
    return ", ".join(f"'{member.value}'" for member in values)
