"""Server-side hook equivalents: post-signup provisioning and managed columns.

The SQL triggers ``handle_new_user`` and ``handle_updated_at`` are the
authoritative versions; these helpers keep the Python path consistent with
them.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional
from uuid import UUID

from journal.records import AuthSubject, ProfileDraft

logger = logging.getLogger(__name__)

MANAGED_COLUMNS: frozenset[str] = frozenset({"id", "user_id", "created_at", "updated_at"})

_USERNAME_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")
_USERNAME_MIN_LENGTH = 3
_USERNAME_MAX_LENGTH = 20


def normalize_username(raw: Optional[str]) -> str:
    """Coerce ``raw`` into the profile username format, as ``public.normalize_username`` does.

    Disallowed characters become ``_``; the result is padded with ``_`` to
    three characters and cut at twenty.
    """
    cleaned = _USERNAME_INVALID_CHARS.sub("_", raw or "")
    return cleaned.ljust(_USERNAME_MIN_LENGTH, "_")[:_USERNAME_MAX_LENGTH]


def fallback_username(base: str, subject_id: UUID) -> str:
    """Username used when ``base`` is already claimed: ``base`` suffixed with the subject id."""
    return f"{base[:11]}_{subject_id.hex[:8]}"


def _metadata_text(value: Any) -> Optional[str]:
    # Same text the jsonb ->> operator yields.
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


def default_username(email: str, metadata: Optional[Mapping[str, Any]] = None) -> str:
    """Signup metadata username when non-blank, else the email local part, normalized."""
    candidate = _metadata_text((metadata or {}).get("username"))
    if candidate is not None and candidate.strip(" "):
        return normalize_username(candidate.strip(" "))
    return normalize_username(email.split("@", 1)[0])


def build_profile_provision(subject: AuthSubject) -> ProfileDraft:
    return ProfileDraft(
        id=subject.id,
        email=subject.email,
        username=default_username(subject.email, subject.metadata),
    )


def strip_managed_columns(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Drop columns callers may not set; ``updated_at`` is always trigger-assigned."""
    dropped = sorted(set(changes) & MANAGED_COLUMNS)
    if dropped:
        logger.debug("Ignoring caller-supplied managed columns: %s", ", ".join(dropped))
    return {key: value for key, value in changes.items() if key not in MANAGED_COLUMNS}
