"""Row ownership predicates for profiles and trades.

The database enforces the same rules through row-level-security policies on
``auth.uid()``. These checks reject obviously foreign requests before a
statement is issued and give denials one generic shape.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional
from uuid import UUID

from journal.errors import NotPermittedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    """Ownership evaluation result."""

    allowed: bool
    reason_code: str
    detail: str


_ALLOWED = AccessDecision(allowed=True, reason_code="OK", detail="Requester owns the row.")


def _owner_only(requester: Optional[UUID], owner_id: Optional[UUID], subject: str) -> AccessDecision:
    if requester is None:
        return AccessDecision(
            allowed=False,
            reason_code="ANONYMOUS",
            detail=f"Anonymous requester cannot access {subject}.",
        )
    if owner_id is None or owner_id != requester:
        return AccessDecision(
            allowed=False,
            reason_code="NOT_OWNER",
            detail=f"Requester does not own this {subject}.",
        )
    return _ALLOWED


def can_read_profile(requester: Optional[UUID], owner_id: Optional[UUID]) -> AccessDecision:
    """Profiles are visible to their owner only; availability goes through check_username."""
    return _owner_only(requester, owner_id, "profile")


def can_insert_profile(requester: Optional[UUID], profile_id: Optional[UUID]) -> AccessDecision:
    """A requester may only create the profile keyed by their own identity."""
    return _owner_only(requester, profile_id, "profile")


def can_update_profile(requester: Optional[UUID], owner_id: Optional[UUID]) -> AccessDecision:
    return _owner_only(requester, owner_id, "profile")


def can_access_trade(requester: Optional[UUID], owner_id: Optional[UUID]) -> AccessDecision:
    """Read, insert, update and delete on trades share one owner-only rule."""
    return _owner_only(requester, owner_id, "trade")


def hidden_row(subject: str) -> AccessDecision:
    """Denial for rows the policy filtered out; missing and foreign rows look the same."""
    return AccessDecision(
        allowed=False,
        reason_code="NO_VISIBLE_ROW",
        detail=f"No {subject} visible to requester.",
    )


def require_identity(requester: Optional[UUID]) -> UUID:
    """Return the requester identity, denying anonymous callers."""
    if requester is None:
        require(
            AccessDecision(
                allowed=False,
                reason_code="ANONYMOUS",
                detail="Operation requires an authenticated requester.",
            )
        )
    assert requester is not None
    return requester


def require(decision: AccessDecision) -> None:
    """Raise a generic denial when ``decision`` is not allowed."""
    if decision.allowed:
        return
    logger.info("Access denied (%s): %s", decision.reason_code, decision.detail)
    raise NotPermittedError()
