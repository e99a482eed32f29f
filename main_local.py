"""Headless runner and account administration without Telegram."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import config
from config import APP_LOG_FILE, LOG_DIR, LOG_LEVEL
from database import db
from trading.account_admin import AccountAdminError
from trading.bot_settings import KEY_RUN_MODE, load_settings, update_setting
from trading.engine import Engine
from trading.errors import TradingError
from trading.order_service import parse_amount_arg
from wallet.key_vault import KeyVaultError

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
STOP_POLL_SECONDS = 1.0


def configure_logging() -> None:
    os.makedirs(LOG_DIR, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = RotatingFileHandler(APP_LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def _graceful_stop_file_path() -> str:
    raw = str(config.GRACEFUL_STOP_FILE or "").strip() or os.path.join("data", "graceful_stop.signal")
    if os.path.isabs(raw):
        return raw
    return os.path.abspath(os.path.join(PROJECT_ROOT, raw))


def _clear_graceful_stop_flag() -> None:
    path = _graceful_stop_file_path()
    if os.path.exists(path):
        os.remove(path)


async def _watch_stop_file(engine: Engine) -> None:
    path = _graceful_stop_file_path()
    while engine.controller.is_running:
        if os.path.exists(path):
            logger.info("GRACEFUL_STOP requested path=%s", path)
            engine.controller.stop()
            return
        await asyncio.sleep(STOP_POLL_SECONDS)


async def run_bot(engine: Engine, start_account_id: int | None) -> None:
    task = engine.controller.start_background(start_account_id)
    watcher = asyncio.create_task(_watch_stop_file(engine))
    try:
        await task
    finally:
        watcher.cancel()


def _print_accounts(engine: Engine) -> None:
    accounts = engine.store.list_accounts()
    if not accounts:
        print("No accounts.")
        return
    for a in accounts:
        cycle = f"{int(a.current_cycle or 0)}/{int(a.cycle or 0) or 'inf'}"
        print(
            f"#{a.id:<4} {'on ' if a.is_active else 'off'} {a.address} {a.type:<4} "
            f"{float(a.amount_in or 0):g} {a.unit:<7} cycle={cycle:<7} status={a.status:<7} "
            f"bnb={float(a.bnb_balance or 0):.6f} token={float(a.token_balance or 0):.4f} "
            f"name={a.name or '-'}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multi-account swap bot (headless).")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="run the scheduler until no account is eligible")
    run.add_argument("--from", dest="start_from", type=int, default=None, help="start from this account id")
    run.add_argument("--mode", choices=["sequential", "concurrent"], default=None)

    sub.add_parser("accounts", help="list accounts")

    add_key = sub.add_parser("add-key", help="import an account from a private key")
    add_key.add_argument("key")
    add_key.add_argument("--name", default=None)

    add_seed = sub.add_parser("add-seed", help="import an account from a seed phrase")
    add_seed.add_argument("words", nargs="+")
    add_seed.add_argument("--name", default=None)

    delete = sub.add_parser("delete", help="delete an account")
    delete.add_argument("account_id", type=int)

    toggle = sub.add_parser("toggle", help="activate/deactivate an account")
    toggle.add_argument("account_id", type=int)

    sub.add_parser("activate-all", help="activate every account")
    sub.add_parser("deactivate-all", help="deactivate every account")
    sub.add_parser("delete-all", help="delete every account")

    reorder = sub.add_parser("reorder", help="set the processing order of accounts")
    reorder.add_argument("account_ids", type=int, nargs="+")

    side = sub.add_parser("side", help="set an account to buy or sell")
    side.add_argument("account_id", type=int)
    side.add_argument("side", choices=["buy", "sell"])

    amount = sub.add_parser("amount", help="set an account amount: 50%% or 0.01")
    amount.add_argument("account_id", type=int)
    amount.add_argument("amount")

    wait = sub.add_parser("wait", help="set a per-account delay range; omit both to use the global one")
    wait.add_argument("account_id", type=int)
    wait.add_argument("wait_from", type=int, nargs="?", default=None)
    wait.add_argument("wait_to", type=int, nargs="?", default=None)

    bulk = sub.add_parser("bulk", help="re-classify every account to buy/sell")
    bulk.add_argument("side", choices=["buy", "sell"])
    bulk.add_argument("amount")

    sub.add_parser("reset", help="reset status and cycle counters of all accounts")
    sub.add_parser("balances", help="refresh balances of all accounts")

    order = sub.add_parser("order", help="place one order for an account")
    order.add_argument("account_id", type=int)

    set_cmd = sub.add_parser("set", help="change a runtime setting")
    set_cmd.add_argument("key")
    set_cmd.add_argument("value")

    sub.add_parser("settings", help="show runtime settings")

    logs = sub.add_parser("logs", help="show recent log lines")
    logs.add_argument("--limit", type=int, default=config.LOG_HISTORY_LIMIT)
    sub.add_parser("clear-logs", help="delete stored log lines")
    return parser


def dispatch(engine: Engine, args: argparse.Namespace) -> int:
    admin = engine.admin
    if args.command == "run":
        if args.mode:
            update_setting(KEY_RUN_MODE, args.mode)
        _clear_graceful_stop_flag()
        try:
            asyncio.run(run_bot(engine, args.start_from))
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            _clear_graceful_stop_flag()
    elif args.command == "accounts":
        _print_accounts(engine)
    elif args.command == "add-key":
        account = admin.add_from_private_key(args.key, args.name)
        print(f"Imported #{account.id} {account.address}")
    elif args.command == "add-seed":
        account = admin.add_from_seed(" ".join(args.words), args.name)
        print(f"Imported #{account.id} {account.address}")
    elif args.command == "delete":
        admin.delete(args.account_id)
    elif args.command == "toggle":
        account = admin.toggle_active(args.account_id)
        print(f"#{account.id} active={bool(account.is_active)}")
    elif args.command in ("activate-all", "deactivate-all"):
        print(f"{admin.set_all_active(args.command == 'activate-all')} accounts updated")
    elif args.command == "delete-all":
        print(f"{admin.delete_all()} accounts deleted")
    elif args.command == "reorder":
        print(f"{admin.reorder(args.account_ids)} accounts reordered")
    elif args.command == "side":
        admin.set_side(args.account_id, args.side)
    elif args.command == "amount":
        value, unit = parse_amount_arg(args.amount)
        admin.set_amount(args.account_id, value, unit)
    elif args.command == "wait":
        if (args.wait_from is None) != (args.wait_to is None):
            raise ValueError("give both FROM and TO, or neither")
        admin.set_wait(args.account_id, args.wait_from, args.wait_to)
    elif args.command == "bulk":
        value, unit = parse_amount_arg(args.amount)
        print(f"{admin.bulk_reclassify(args.side, value, unit)} accounts updated")
    elif args.command == "reset":
        print(f"{admin.reset_all()} accounts reset")
    elif args.command == "balances":
        report = asyncio.run(engine.refresh_balances())
        print(f"updated={report.updated} failed={report.failed}")
        for account_id, err in sorted(report.errors.items()):
            print(f"  #{account_id}: {err}")
    elif args.command == "order":
        result = asyncio.run(engine.place_single_order(args.account_id))
        if result.ok:
            print(f"tx={result.value.tx_hash}")
        else:
            print(f"failed kind={result.kind.value} detail={result.detail}")
            return 1
    elif args.command == "set":
        update_setting(args.key, args.value)
    elif args.command == "settings":
        for key, value in load_settings().as_records().items():
            print(f"{key}={value}")
    elif args.command == "logs":
        for row in engine.store.list_logs(limit=args.limit):
            print(f"{row.created_at:%Y-%m-%d %H:%M:%S} {row.message}")
    elif args.command == "clear-logs":
        print(f"{engine.store.clear_logs()} log lines deleted")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    db.init_db()
    engine = Engine(db)
    try:
        return dispatch(engine, args)
    except (TradingError, AccountAdminError, KeyVaultError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
