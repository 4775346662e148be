"""Trading journal data-access layer."""

from journal.access import AccessDecision, can_access_trade, can_insert_profile, can_read_profile, can_update_profile
from journal.config import JournalConfig, load_journal_config
from journal.errors import ConstraintViolationError, JournalError, NotPermittedError
from journal.hooks import (
    build_profile_provision,
    default_username,
    fallback_username,
    normalize_username,
    strip_managed_columns,
)
from journal.records import AuthSubject, ProfileDraft, ProfileRecord, TradeDraft, TradeRecord
from journal.store import JournalDatabase, JournalStore

__all__ = [
    "AccessDecision",
    "AuthSubject",
    "ConstraintViolationError",
    "JournalConfig",
    "JournalDatabase",
    "JournalError",
    "JournalStore",
    "NotPermittedError",
    "ProfileDraft",
    "ProfileRecord",
    "TradeDraft",
    "TradeRecord",
    "build_profile_provision",
    "can_access_trade",
    "can_insert_profile",
    "can_read_profile",
    "can_update_profile",
    "default_username",
    "fallback_username",
    "load_journal_config",
    "normalize_username",
    "strip_managed_columns",
]
