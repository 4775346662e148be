"""Schema contract alignment checks between ORM metadata and migration DDL."""

from __future__ import annotations

import re

import backend.db.models  # noqa: F401  # Ensure all mapped classes are registered.
from backend.db.base import Base
from journal.records import TRADE_DRAFT_COLUMNS
from tests.utils.journal_db import load_migration_module

_CREATE_TABLE_RE = re.compile(r"CREATE TABLE (?:IF NOT EXISTS )?(\w+\.\w+) \((.*?)\);", re.S)


def _ddl_columns() -> dict[str, set[str]]:
    module = load_migration_module("migration_0001_journal_contract")
    sql = "\n".join((*module.AUTH_DDL, *module.TABLE_DDL))

    tables: dict[str, set[str]] = {}
    for table_name, body in _CREATE_TABLE_RE.findall(sql):
        columns: set[str] = set()
        for raw_line in body.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("CONSTRAINT"):
                continue
            columns.add(line.split()[0].rstrip(","))
        tables[table_name] = columns
    return tables


def test_orm_tables_and_columns_match_migration() -> None:
    ddl = _ddl_columns()
    mapped_tables = Base.metadata.tables

    assert sorted(ddl) == sorted(mapped_tables) == ["auth.users", "public.profiles", "public.trades"]

    column_mismatches: dict[str, dict[str, list[str]]] = {}
    for table_name in sorted(mapped_tables):
        orm_columns = {column.name for column in mapped_tables[table_name].columns}
        missing_columns = sorted(ddl[table_name] - orm_columns)
        extra_columns = sorted(orm_columns - ddl[table_name])
        if missing_columns or extra_columns:
            column_mismatches[table_name] = {
                "missing_columns": missing_columns,
                "extra_columns": extra_columns,
            }

    assert column_mismatches == {}, (
        "Migration/ORM column mismatches detected: "
        f"{column_mismatches}"
    )


def test_orm_constraint_and_index_names_match_migration() -> None:
    module = load_migration_module("migration_0001_journal_names")
    sql = "\n".join((*module.TABLE_DDL, *module.INDEX_DDL))

    for table_name in ("public.profiles", "public.trades"):
        table = Base.metadata.tables[table_name]
        names = {constraint.name for constraint in table.constraints}
        names |= {index.name for index in table.indexes}
        for name in names:
            assert name in sql, f"{table_name}: {name} missing from migration"


def test_trade_draft_covers_every_client_column() -> None:
    trades = {column.name for column in Base.metadata.tables["public.trades"].columns}
    managed = {"id", "user_id", "created_at", "updated_at"}
    assert set(TRADE_DRAFT_COLUMNS) == trades - managed
