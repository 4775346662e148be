"""DB-backed integration tests for profile/trade ownership, hooks and constraints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import psycopg
import pytest

from journal.db import PsycopgJournalDB
from journal.errors import ConstraintViolationError, NotPermittedError
from journal.hooks import fallback_username, normalize_username
from journal.records import AuthSubject, ProfileDraft, TradeDraft
from journal.store import JournalStore
from journal.validation import validate_username
from tests.utils.journal_db import new_subject, unique_name


def _profile_count(db: PsycopgJournalDB, profile_id: UUID) -> int:
    row = db.fetch_one("SELECT COUNT(*) AS n FROM public.profiles WHERE id = :id", {"id": profile_id})
    db.commit()
    return int(row["n"]) if row is not None else 0


def _raw_subject(db: PsycopgJournalDB) -> UUID:
    """Auth subject whose trigger-provisioned profile is removed again."""
    subject_id = uuid4()
    db.execute(
        "INSERT INTO auth.users (id, email) VALUES (:id, :email)",
        {"id": subject_id, "email": f"{unique_name('raw')}@example.com"},
    )
    db.execute("DELETE FROM public.profiles WHERE id = :id", {"id": subject_id})
    db.commit()
    return subject_id


def _as_requester(db: PsycopgJournalDB, requester: UUID) -> None:
    db.execute(
        "SELECT set_config('role', 'authenticated', true), set_config('request.jwt.claim.sub', :sub, true)",
        {"sub": str(requester)},
    )


def test_signup_with_metadata_username(store: JournalStore, journal_db: PsycopgJournalDB) -> None:
    username = unique_name("alice")
    subject = store.register_subject(f"{username}@x.com", {"username": username})

    profile = store.get_profile(subject.id, subject.id)
    assert profile.username == username
    assert _profile_count(journal_db, subject.id) == 1


def test_signup_without_metadata_uses_email_local_part(store: JournalStore) -> None:
    local_part = unique_name("bob")
    subject = store.register_subject(f"{local_part}@x.com")

    assert store.get_profile(subject.id, subject.id).username == local_part


def test_reprovisioning_is_a_silent_noop(store: JournalStore, journal_db: PsycopgJournalDB) -> None:
    subject = new_subject(store, "prov")

    assert store.provision_profile(subject) is False
    assert store.provision_profile(AuthSubject(id=subject.id, email="other@x.com")) is False
    assert _profile_count(journal_db, subject.id) == 1


def test_client_insert_then_provisioning_keeps_first_writer(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    subject_id = _raw_subject(journal_db)
    username = unique_name("first")
    store.create_profile(subject_id, ProfileDraft(id=subject_id, email="first@x.com", username=username))

    created = store.provision_profile(AuthSubject(id=subject_id, email="fallback@x.com"))

    assert created is False
    assert store.get_profile(subject_id, subject_id).username == username


def test_check_username_is_case_insensitive(store: JournalStore) -> None:
    subject = new_subject(store, "Case")
    taken = store.get_profile(subject.id, subject.id).username

    assert store.check_username(taken) is False
    assert store.check_username(taken.upper()) is False
    assert store.check_username(taken.lower()) is False
    assert store.check_username(unique_name("free")) is True


def test_usernames_differing_only_by_case_are_rejected(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    first = new_subject(store, "dup")
    taken = store.get_profile(first.id, first.id).username
    second_id = _raw_subject(journal_db)

    with pytest.raises(ConstraintViolationError) as excinfo:
        store.create_profile(second_id, ProfileDraft(id=second_id, email="dup@x.com", username=taken.upper()))

    assert excinfo.value.field == "username"
    assert _profile_count(journal_db, second_id) == 0


@pytest.mark.parametrize("username", ["ab", "bad name!"])
def test_malformed_username_rejected_by_schema(journal_db: PsycopgJournalDB, username: str) -> None:
    subject_id = _raw_subject(journal_db)
    with pytest.raises(psycopg.errors.CheckViolation):
        journal_db.execute(
            "INSERT INTO public.profiles (id, email, username) VALUES (:id, 'x@x.com', :username)",
            {"id": subject_id, "username": username},
        )
    journal_db.rollback()


def test_profile_insert_for_other_identity_is_refused_by_policy(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    owner = new_subject(store, "own")
    target_id = _raw_subject(journal_db)

    _as_requester(journal_db, owner.id)
    with pytest.raises(psycopg.errors.InsufficientPrivilege):
        journal_db.execute(
            "INSERT INTO public.profiles (id, email, username) VALUES (:id, 'x@x.com', :username)",
            {"id": target_id, "username": unique_name("steal")},
        )
    journal_db.rollback()


def test_profiles_are_owner_only(store: JournalStore, journal_db: PsycopgJournalDB) -> None:
    alice = new_subject(store, "pa")
    bob = new_subject(store, "pb")

    _as_requester(journal_db, alice.id)
    visible = journal_db.fetch_all("SELECT id FROM public.profiles", {})
    journal_db.rollback()

    assert [UUID(str(row["id"])) for row in visible] == [alice.id]
    with pytest.raises(NotPermittedError):
        store.get_profile(alice.id, bob.id)


def test_profile_update_refreshes_timestamp(store: JournalStore) -> None:
    subject = new_subject(store, "upd")
    before = store.get_profile(subject.id, subject.id)

    after = store.update_profile(
        subject.id,
        subject.id,
        {"country": "CA", "updated_at": datetime(2000, 1, 1, tzinfo=timezone.utc)},
    )

    assert after.country == "CA"
    assert after.updated_at > before.updated_at


def test_trade_roundtrip_and_updated_at_strictly_increases(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    owner = new_subject(store, "tr")
    created = store.create_trade(
        owner.id,
        TradeDraft(
            instrument="AAPL",
            direction="LONG",
            entry_price=Decimal("187.50"),
            shares=Decimal("10"),
            tags=("breakout", "earnings"),
            emotion="calm",
            rating=4,
        ),
    )
    assert created.user_id == owner.id
    assert created.tags == ("breakout", "earnings")
    assert created.pnl == Decimal("0")

    # Caller tries to pin the timestamp in the past and in the future.
    past = store.update_trade(owner.id, created.id, {"updated_at": created.updated_at - timedelta(days=1)})
    assert past.updated_at > created.updated_at

    future = store.update_trade(
        owner.id,
        created.id,
        {"exit_price": Decimal("190"), "updated_at": datetime(2999, 1, 1, tzinfo=timezone.utc)},
    )
    assert future.updated_at > past.updated_at
    assert future.updated_at < datetime(2999, 1, 1, tzinfo=timezone.utc)

    # Raw SQL bypassing the store cannot pin it either.
    journal_db.execute(
        "UPDATE public.trades SET updated_at = :pinned WHERE id = :id",
        {"pinned": datetime(2000, 1, 1, tzinfo=timezone.utc), "id": created.id},
    )
    journal_db.commit()
    assert store.get_trade(owner.id, created.id).updated_at > future.updated_at


def test_cross_user_trade_access_is_denied(store: JournalStore, journal_db: PsycopgJournalDB) -> None:
    alice = new_subject(store, "ta")
    bob = new_subject(store, "tb")
    trade = store.create_trade(alice.id, TradeDraft(instrument="EURUSD", asset_class="forex", lots=Decimal("1")))

    with pytest.raises(NotPermittedError):
        store.get_trade(bob.id, trade.id)
    with pytest.raises(NotPermittedError):
        store.update_trade(bob.id, trade.id, {"notes": "not yours"})
    with pytest.raises(NotPermittedError):
        store.delete_trade(bob.id, trade.id)
    assert store.list_trades(bob.id) == ()

    # Policies alone, without the store's owner predicate, affect zero rows.
    _as_requester(journal_db, bob.id)
    touched: list[Any] = journal_db.fetch_all(
        "UPDATE public.trades SET notes = 'raw' WHERE id = :id RETURNING id",
        {"id": trade.id},
    )
    deleted = journal_db.fetch_all("DELETE FROM public.trades WHERE id = :id RETURNING id", {"id": trade.id})
    journal_db.rollback()
    assert touched == []
    assert deleted == []

    intact = store.get_trade(alice.id, trade.id)
    assert intact.notes == ""


def test_trade_insert_for_other_owner_is_refused_by_policy(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    alice = new_subject(store, "ia")
    bob = new_subject(store, "ib")

    _as_requester(journal_db, bob.id)
    with pytest.raises(psycopg.errors.InsufficientPrivilege):
        journal_db.execute(
            "INSERT INTO public.trades (user_id, instrument) VALUES (:user_id, 'AAPL')",
            {"user_id": alice.id},
        )
    journal_db.rollback()
    assert store.list_trades(alice.id) == ()


def test_list_trades_orders_and_filters(store: JournalStore) -> None:
    owner = new_subject(store, "lst")
    base = datetime(2026, 2, 1, tzinfo=timezone.utc)
    older = store.create_trade(owner.id, TradeDraft(instrument="AAPL", date_opened=base))
    newer = store.create_trade(owner.id, TradeDraft(instrument="MSFT", date_opened=base + timedelta(days=1)))
    option = store.create_trade(
        owner.id,
        TradeDraft(
            instrument="SPY",
            asset_class="options",
            option_type="CALL",
            strike=Decimal("500"),
            contracts=Decimal("2"),
            date_opened=base - timedelta(days=1),
        ),
    )

    assert [trade.id for trade in store.list_trades(owner.id)] == [newer.id, older.id, option.id]
    assert [trade.id for trade in store.list_trades(owner.id, asset_class="options")] == [option.id]
    assert [trade.id for trade in store.list_trades(owner.id, limit=1)] == [newer.id]


def test_delete_trade_removes_row(store: JournalStore) -> None:
    owner = new_subject(store, "del")
    trade = store.create_trade(owner.id, TradeDraft(instrument="GC", asset_class="commodities"))

    store.delete_trade(owner.id, trade.id)

    with pytest.raises(NotPermittedError):
        store.get_trade(owner.id, trade.id)


def test_schema_check_violations_surface_as_constraint_errors(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    owner = new_subject(store, "ck")
    opened = datetime(2026, 3, 1, tzinfo=timezone.utc)
    trade = store.create_trade(owner.id, TradeDraft(instrument="AAPL", date_opened=opened))

    with pytest.raises(ConstraintViolationError) as excinfo:
        store.update_trade(owner.id, trade.id, {"date_closed": opened - timedelta(hours=1)})

    assert excinfo.value.field == "date_closed"
    assert store.get_trade(owner.id, trade.id).date_closed is None


def test_deleting_auth_subject_cascades(store: JournalStore, journal_db: PsycopgJournalDB) -> None:
    owner = new_subject(store, "cas")
    store.create_trade(owner.id, TradeDraft(instrument="AAPL"))

    journal_db.execute("DELETE FROM auth.users WHERE id = :id", {"id": owner.id})
    journal_db.commit()

    assert _profile_count(journal_db, owner.id) == 0
    row = journal_db.fetch_one("SELECT COUNT(*) AS n FROM public.trades WHERE user_id = :id", {"id": owner.id})
    journal_db.commit()
    assert row is not None and int(row["n"]) == 0


def test_signup_with_dotted_email_gets_normalized_username(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    token = unique_name("john")
    subject = store.register_subject(f"{token}.doe@gmail.com")

    profile = store.get_profile(subject.id, subject.id)
    assert profile.username == normalize_username(f"{token}.doe")
    assert _profile_count(journal_db, subject.id) == 1


@pytest.mark.parametrize("local_part", ["jo", "a+b", "x" * 40])
def test_signup_never_lost_to_username_format(store: JournalStore, local_part: str) -> None:
    subject = store.register_subject(f"{local_part}@{unique_name('host')}.com")

    validate_username(store.get_profile(subject.id, subject.id).username)


def test_signup_with_claimed_username_gets_suffixed_fallback(store: JournalStore) -> None:
    first = new_subject(store, "claim")
    taken = store.get_profile(first.id, first.id).username

    second = store.register_subject(f"{taken.upper()}@other.com")

    username = store.get_profile(second.id, second.id).username
    assert username == fallback_username(taken.upper(), second.id)
    validate_username(username)


def test_provision_profile_with_claimed_username_uses_fallback(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    first = new_subject(store, "pclm")
    taken = store.get_profile(first.id, first.id).username
    subject_id = _raw_subject(journal_db)

    created = store.provision_profile(AuthSubject(id=subject_id, email=f"{taken}@other.com"))

    assert created is True
    assert store.get_profile(subject_id, subject_id).username == fallback_username(taken, subject_id)


def test_client_supplied_timestamps_are_overwritten_on_insert(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    owner = new_subject(store, "ts")
    far_future = datetime(2999, 1, 1, tzinfo=timezone.utc)

    _as_requester(journal_db, owner.id)
    row = journal_db.fetch_one(
        """
        INSERT INTO public.trades (user_id, instrument, created_at, updated_at)
        VALUES (:user_id, 'AAPL', :pinned, :pinned)
        RETURNING id, created_at, updated_at
        """,
        {"user_id": owner.id, "pinned": far_future},
    )
    journal_db.commit()
    assert row is not None
    assert row["created_at"] < far_future
    assert row["updated_at"] < far_future

    edited = store.update_trade(owner.id, row["id"], {"notes": "edited"})
    assert row["updated_at"] < edited.updated_at < far_future
    assert edited.created_at == row["created_at"]


def test_client_supplied_profile_timestamps_are_overwritten_on_insert(
    store: JournalStore,
    journal_db: PsycopgJournalDB,
) -> None:
    subject_id = _raw_subject(journal_db)
    far_future = datetime(2999, 1, 1, tzinfo=timezone.utc)

    _as_requester(journal_db, subject_id)
    journal_db.execute(
        """
        INSERT INTO public.profiles (id, email, username, created_at, updated_at)
        VALUES (:id, 'ts@x.com', :username, :pinned, :pinned)
        """,
        {"id": subject_id, "username": unique_name("pts"), "pinned": far_future},
    )
    journal_db.commit()

    updated = store.update_profile(subject_id, subject_id, {"country": "DE"})
    assert updated.updated_at < far_future
    assert updated.created_at < far_future
