"""Identity-scoped data-access operations over profiles and trades.

Every operation is one transaction. Requester-scoped operations switch to
the authenticated (or anon) role and set ``request.jwt.claim.sub`` so the
row-level-security policies evaluate ``auth.uid()`` against the requester.
Provisioning and subject registration run with the connection's own
privileges.
"""

from __future__ import annotations

from contextlib import contextmanager
import enum
import json
import logging
from typing import Any, Iterator, Mapping, Optional, Protocol, Sequence
from uuid import UUID

from journal.access import (
    can_access_trade,
    can_insert_profile,
    can_read_profile,
    can_update_profile,
    hidden_row,
    require,
    require_identity,
)
from journal.errors import ConstraintViolationError
from journal.hooks import build_profile_provision, fallback_username, strip_managed_columns
from journal.records import (
    AuthSubject,
    ProfileDraft,
    ProfileRecord,
    TRADE_DRAFT_COLUMNS,
    TradeDraft,
    TradeRecord,
)
from journal.validation import (
    out_of_class_fields,
    translate_database_error,
    validate_profile_changes,
    validate_trade,
    validate_trade_changes,
    validate_username,
)

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = "id, email, username, country, date_of_birth, avatar_url, created_at, updated_at"
_TRADE_COLUMNS = ", ".join(("id", "user_id", *TRADE_DRAFT_COLUMNS, "created_at", "updated_at"))


class JournalDatabase(Protocol):
    """Minimal transactional DB protocol required by the journal store."""

    def fetch_one(self, sql: str, params: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        """Fetch one row."""

    def fetch_all(self, sql: str, params: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        """Fetch all rows."""

    def execute(self, sql: str, params: Mapping[str, Any]) -> None:
        """Execute a statement without reading results."""

    def commit(self) -> None:
        """Commit the open transaction."""

    def rollback(self) -> None:
        """Roll back the open transaction."""


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


def _set_clause(columns: Sequence[str]) -> str:
    if not columns:
        # Still an UPDATE so the timestamp trigger fires.
        return "updated_at = updated_at"
    return ", ".join(f"{column} = :{column}" for column in columns)


class JournalStore:
    """Profile and trade operations evaluated against ownership policies."""

    def __init__(
        self,
        db: JournalDatabase,
        *,
        authenticated_role: str = "authenticated",
        anon_role: str = "anon",
        list_limit: int = 100,
    ) -> None:
        self._db = db
        self._authenticated_role = authenticated_role
        self._anon_role = anon_role
        self._list_limit = list_limit

    @contextmanager
    def _transaction(self, role: Optional[str] = None, requester: Optional[UUID] = None) -> Iterator[None]:
        try:
            if role is not None:
                self._db.execute(
                    """
                    SELECT
                        set_config('role', :role, true),
                        set_config('request.jwt.claim.sub', :sub, true)
                    """,
                    {"role": role, "sub": str(requester) if requester is not None else ""},
                )
            yield
            self._db.commit()
        except Exception as exc:
            self._db.rollback()
            translated = translate_database_error(exc)
            if translated is not None:
                logger.info("Write rejected: %s", translated)
                raise translated from exc
            raise

    # Username availability
    def check_username(self, candidate: str) -> bool:
        """Return True when no profile holds ``candidate`` case-insensitively.

        Advisory only: a later insert can still lose the race to the unique
        index on ``lower(username)``.
        """
        with self._transaction(self._anon_role):
            row = self._db.fetch_one(
                "SELECT public.check_username(:candidate) AS available",
                {"candidate": candidate},
            )
        return bool(row["available"]) if row is not None else False

    # Profiles
    def create_profile(self, requester: Optional[UUID], draft: ProfileDraft) -> ProfileRecord:
        require(can_insert_profile(requester, draft.id))
        validate_username(draft.username)
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                f"""
                INSERT INTO public.profiles (id, email, username, country, date_of_birth, avatar_url)
                VALUES (:id, :email, :username, :country, :date_of_birth, :avatar_url)
                RETURNING {_PROFILE_COLUMNS}
                """,
                {
                    "id": draft.id,
                    "email": draft.email,
                    "username": draft.username,
                    "country": draft.country,
                    "date_of_birth": draft.date_of_birth,
                    "avatar_url": draft.avatar_url,
                },
            )
            if row is None:
                require(hidden_row("profile"))
        assert row is not None
        logger.info("Created profile %s.", draft.id)
        return ProfileRecord.from_row(row)

    def get_profile(self, requester: Optional[UUID], profile_id: UUID) -> ProfileRecord:
        require(can_read_profile(requester, profile_id))
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                f"SELECT {_PROFILE_COLUMNS} FROM public.profiles WHERE id = :id",
                {"id": profile_id},
            )
            if row is None:
                require(hidden_row("profile"))
        assert row is not None
        return ProfileRecord.from_row(row)

    def update_profile(
        self,
        requester: Optional[UUID],
        profile_id: UUID,
        changes: Mapping[str, Any],
    ) -> ProfileRecord:
        require(can_update_profile(requester, profile_id))
        values = strip_managed_columns(changes)
        validate_profile_changes(values)
        columns = sorted(values)
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                f"""
                UPDATE public.profiles
                SET {_set_clause(columns)}
                WHERE id = :profile_id
                RETURNING {_PROFILE_COLUMNS}
                """,
                {**{column: _plain(values[column]) for column in columns}, "profile_id": profile_id},
            )
            if row is None:
                require(hidden_row("profile"))
        assert row is not None
        return ProfileRecord.from_row(row)

    # Provisioning
    def provision_profile(self, subject: AuthSubject) -> bool:
        """Ensure ``subject`` has a profile; returns False when one already existed.

        A derived username already claimed by another profile is replaced by
        its subject-id-suffixed fallback, as the signup trigger does.
        """
        draft = build_profile_provision(subject)
        validate_username(draft.username)
        with self._transaction():
            row = self._db.fetch_one(
                """
                INSERT INTO public.profiles (id, email, username)
                VALUES (
                    :id,
                    :email,
                    CASE WHEN public.check_username(:username) THEN :username ELSE :fallback END
                )
                ON CONFLICT (id) DO NOTHING
                RETURNING id, username
                """,
                {
                    "id": draft.id,
                    "email": draft.email,
                    "username": draft.username,
                    "fallback": fallback_username(draft.username, draft.id),
                },
            )
        created = row is not None
        if created:
            logger.info("Provisioned profile %s as %s.", draft.id, row["username"])
        else:
            logger.debug("Profile %s already present; provisioning skipped.", draft.id)
        return created

    def register_subject(
        self,
        email: str,
        metadata: Optional[Mapping[str, Any]] = None,
        subject_id: Optional[UUID] = None,
    ) -> AuthSubject:
        """Insert an auth subject; the ``on_auth_user_created`` trigger provisions its profile.

        Only meaningful where this schema owns ``auth.users``.
        """
        with self._transaction():
            row = self._db.fetch_one(
                """
                INSERT INTO auth.users (id, email, raw_user_meta_data)
                VALUES (COALESCE(:id, gen_random_uuid()), :email, CAST(:metadata AS jsonb))
                RETURNING id, email
                """,
                {"id": subject_id, "email": email, "metadata": json.dumps(dict(metadata or {}))},
            )
        assert row is not None
        subject = AuthSubject(id=UUID(str(row["id"])), email=str(row["email"]), metadata=dict(metadata or {}))
        logger.info("Registered auth subject %s.", subject.id)
        return subject

    # Trades
    def create_trade(self, requester: Optional[UUID], draft: TradeDraft) -> TradeRecord:
        owner = require_identity(requester)
        require(can_access_trade(requester, owner))
        validate_trade(draft)
        stray = out_of_class_fields(draft)
        if stray:
            logger.warning(
                "Trade for %s carries fields outside asset class %s: %s",
                draft.instrument,
                _plain(draft.asset_class),
                ", ".join(stray),
            )

        params = {column: _plain(value) for column, value in draft.to_params().items()}
        params["user_id"] = owner
        values = ", ".join(
            "COALESCE(:date_opened, now())" if column == "date_opened" else f":{column}"
            for column in TRADE_DRAFT_COLUMNS
        )
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                f"""
                INSERT INTO public.trades (user_id, {", ".join(TRADE_DRAFT_COLUMNS)})
                VALUES (:user_id, {values})
                RETURNING {_TRADE_COLUMNS}
                """,
                params,
            )
            if row is None:
                require(hidden_row("trade"))
        assert row is not None
        logger.info("Recorded trade %s for %s.", row["id"], owner)
        return TradeRecord.from_row(row)

    def _require_owned(self, requester: UUID, row: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
        if row is None:
            require(hidden_row("trade"))
        assert row is not None
        require(can_access_trade(requester, UUID(str(row["user_id"]))))
        return row

    def get_trade(self, requester: Optional[UUID], trade_id: int) -> TradeRecord:
        owner = require_identity(requester)
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                f"""
                SELECT {_TRADE_COLUMNS}
                FROM public.trades
                WHERE id = :trade_id
                  AND user_id = :user_id
                """,
                {"trade_id": trade_id, "user_id": owner},
            )
            row = self._require_owned(owner, row)
        return TradeRecord.from_row(row)

    def list_trades(
        self,
        requester: Optional[UUID],
        asset_class: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> tuple[TradeRecord, ...]:
        """Requester's trades, newest ``date_opened`` first."""
        owner = require_identity(requester)
        if limit is None:
            limit = self._list_limit
        elif limit <= 0:
            raise ConstraintViolationError("limit", "must be positive")
        params: dict[str, Any] = {"user_id": owner, "limit": limit}
        asset_filter = ""
        if asset_class is not None:
            asset_filter = "AND asset_class = :asset_class"
            params["asset_class"] = _plain(asset_class)
        with self._transaction(self._authenticated_role, requester):
            rows = self._db.fetch_all(
                f"""
                SELECT {_TRADE_COLUMNS}
                FROM public.trades
                WHERE user_id = :user_id
                  {asset_filter}
                ORDER BY date_opened DESC, id DESC
                LIMIT :limit
                """,
                params,
            )
        return tuple(TradeRecord.from_row(row) for row in rows)

    def update_trade(
        self,
        requester: Optional[UUID],
        trade_id: int,
        changes: Mapping[str, Any],
    ) -> TradeRecord:
        owner = require_identity(requester)
        values = strip_managed_columns(changes)
        validate_trade_changes(values)
        columns = sorted(values)
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                f"""
                UPDATE public.trades
                SET {_set_clause(columns)}
                WHERE id = :trade_id
                  AND user_id = :owner_id
                RETURNING {_TRADE_COLUMNS}
                """,
                {
                    **{column: _plain(values[column]) for column in columns},
                    "trade_id": trade_id,
                    "owner_id": owner,
                },
            )
            row = self._require_owned(owner, row)
        logger.info("Updated trade %s (%s).", trade_id, ", ".join(columns) or "touch")
        return TradeRecord.from_row(row)

    def delete_trade(self, requester: Optional[UUID], trade_id: int) -> None:
        owner = require_identity(requester)
        with self._transaction(self._authenticated_role, requester):
            row = self._db.fetch_one(
                """
                DELETE FROM public.trades
                WHERE id = :trade_id
                  AND user_id = :owner_id
                RETURNING id, user_id
                """,
                {"trade_id": trade_id, "owner_id": owner},
            )
            self._require_owned(owner, row)
        logger.info("Deleted trade %s.", trade_id)
