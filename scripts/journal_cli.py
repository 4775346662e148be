#!/usr/bin/env python3
"""Operator CLI for the trading journal store."""

from __future__ import annotations

import argparse
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
import json
import logging
from pathlib import Path
import sys
from typing import Any, Mapping
from uuid import UUID

# Ensure repository root is importable when script is executed by path.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from backend.db.enums import AssetClass
from journal.config import JournalConfig, load_journal_config
from journal.db import PsycopgJournalDB, connect
from journal.errors import JournalError
from journal.records import AuthSubject
from journal.store import JournalStore

logger = logging.getLogger("journal_cli")


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    raise TypeError(f"Unserializable value: {type(value).__name__}")


def _parse_metadata(value: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"Invalid metadata JSON: {value}") from exc
    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("Metadata must be a JSON object.")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trading journal store CLI")
    parser.add_argument("--dsn", help="PostgreSQL DSN (overrides JOURNAL_DSN)")
    parser.add_argument("--log-level", help="Logging level (overrides JOURNAL_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_cmd = subparsers.add_parser("check-username", help="Report whether a username is free")
    check_cmd.add_argument("username")

    provision_cmd = subparsers.add_parser("provision", help="Ensure an auth subject has a profile")
    provision_cmd.add_argument("--user-id", required=True, type=UUID)
    provision_cmd.add_argument("--email", required=True)
    provision_cmd.add_argument("--metadata", type=_parse_metadata, default={})

    list_cmd = subparsers.add_parser("list-trades", help="List a user's trades, newest first")
    list_cmd.add_argument("--user-id", required=True, type=UUID)
    list_cmd.add_argument("--asset-class", choices=[member.value for member in AssetClass], default=None)
    list_cmd.add_argument("--limit", type=int, default=None)

    delete_cmd = subparsers.add_parser("delete-trade", help="Delete one of a user's trades")
    delete_cmd.add_argument("--user-id", required=True, type=UUID)
    delete_cmd.add_argument("--trade-id", required=True, type=int)

    return parser


def _resolve_config(args: argparse.Namespace) -> JournalConfig:
    config = load_journal_config()
    overrides: dict[str, Any] = {}
    if args.dsn:
        overrides["dsn"] = args.dsn
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if not overrides:
        return config
    return JournalConfig(**{**asdict(config), **overrides})


def _run(store: JournalStore, args: argparse.Namespace) -> dict[str, Any]:
    if args.command == "check-username":
        return {"username": args.username, "available": store.check_username(args.username)}
    if args.command == "provision":
        subject = AuthSubject(id=args.user_id, email=args.email, metadata=args.metadata)
        return {"user_id": args.user_id, "created": store.provision_profile(subject)}
    if args.command == "list-trades":
        trades = store.list_trades(args.user_id, asset_class=args.asset_class, limit=args.limit)
        return {"count": len(trades), "trades": [asdict(trade) for trade in trades]}
    if args.command == "delete-trade":
        store.delete_trade(args.user_id, args.trade_id)
        return {"trade_id": args.trade_id, "deleted": True}
    raise SystemExit(f"Unsupported command: {args.command}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    config = _resolve_config(args)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        conn = connect(config)
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from exc

    store = JournalStore(
        PsycopgJournalDB(conn),
        authenticated_role=config.authenticated_role,
        anon_role=config.anon_role,
        list_limit=config.list_limit,
    )
    try:
        payload = _run(store, args)
    except JournalError as exc:
        logger.error("%s", exc)
        print(json.dumps({"error": type(exc).__name__, "detail": str(exc)}, sort_keys=True))
        return 1
    finally:
        conn.close()

    print(json.dumps(payload, sort_keys=True, default=_json_default))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
