"""Telegram handlers."""

from __future__ import annotations

import html
import logging
from typing import Any

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from bot.keyboards import (
    BTN_ACCOUNTS,
    BTN_BALANCES,
    BTN_LOGS,
    BTN_RUN,
    BTN_STATUS,
    BTN_STOP,
    account_actions_keyboard,
    bulk_keyboard,
    main_menu_keyboard,
)
from bot.messages import (
    ACCESS_DENIED,
    ACCOUNT_ROW,
    ACCOUNTS_EMPTY,
    HELP_MESSAGE,
    STATUS_TEMPLATE,
    WELCOME_MESSAGE,
)
from config import ADMIN_IDS, LOG_HISTORY_LIMIT
from database.db import clear_logs, list_accounts, list_eligible_accounts, list_logs
from trading.account_admin import AccountAdminError
from trading.bot_settings import load_settings, update_setting
from trading.errors import TradingError
from trading.order_service import UNIT_PERCENT, parse_amount_arg
from wallet.key_vault import KeyVaultError
from wallet.keys import looks_like_seed_phrase

logger = logging.getLogger(__name__)

TELEGRAM_TEXT_LIMIT = 4000


def _is_admin(user_id: int | None) -> bool:
    return bool(user_id and user_id in ADMIN_IDS)


def _engine(context: ContextTypes.DEFAULT_TYPE) -> Any:
    return context.application.bot_data["engine"]


def _chunks(lines: list[str], limit: int = TELEGRAM_TEXT_LIMIT) -> list[str]:
    out: list[str] = []
    current = ""
    for line in lines:
        if current and len(current) + len(line) + 1 > limit:
            out.append(current)
            current = ""
        current = f"{current}\n{line}" if current else line
    if current:
        out.append(current)
    return out


def format_account_row(account: Any) -> str:
    cycle = f"{int(account.current_cycle or 0)}/{int(account.cycle or 0) or '∞'}"
    unit = "%" if account.unit == UNIT_PERCENT else " BNB" if account.type == "buy" else " TKN"
    return ACCOUNT_ROW.format(
        id=account.id,
        name=html.escape(str(account.name or "")),
        address=account.short_address(),
        active="🟢" if account.is_active else "⚪️",
        type=account.type,
        amount=f"{float(account.amount_in or 0):g}",
        unit=unit,
        cycle=cycle,
        status=account.status,
        bnb=f"{float(account.bnb_balance or 0):.4f}",
        tkn=f"{float(account.token_balance or 0):.2f}",
    )


async def _guard(update: Update) -> bool:
    user = update.effective_user
    if _is_admin(user.id if user else None):
        return True
    target = update.effective_message
    if target:
        await target.reply_text(ACCESS_DENIED)
    return False


async def _reply(update: Update, text: str, **kwargs: Any) -> None:
    target = update.effective_message
    if target:
        await target.reply_text(text, **kwargs)


async def _int_arg(update: Update, context: ContextTypes.DEFAULT_TYPE, usage: str) -> int | None:
    args = context.args or []
    if not args or not args[0].isdigit():
        await _reply(update, f"Usage: {usage}")
        return None
    return int(args[0])


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    await _reply(update, WELCOME_MESSAGE, parse_mode="HTML", reply_markup=main_menu_keyboard())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    await _reply(update, HELP_MESSAGE, parse_mode="HTML")


async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    settings = load_settings()
    accounts = list_accounts()
    text = STATUS_TEMPLATE.format(
        state="running" if _engine(context).controller.is_running else "stopped",
        network=settings.network_type,
        mode=settings.run_mode,
        token=html.escape(settings.token_address or "-"),
        wait_from=settings.wait_from,
        wait_to=settings.wait_to,
        slippage=f"{settings.slippage_pct:g}",
        active=sum(1 for a in accounts if a.is_active),
        total=len(accounts),
        eligible=len(list_eligible_accounts()),
    )
    await _reply(update, text, parse_mode="HTML", reply_markup=bulk_keyboard())


async def accounts_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    accounts = list_accounts()
    if not accounts:
        await _reply(update, ACCOUNTS_EMPTY)
        return
    for chunk in _chunks([format_account_row(a) for a in accounts]):
        await _reply(update, chunk, parse_mode="HTML")


async def account_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    account_id = await _int_arg(update, context, "/account <id>")
    if account_id is None:
        return
    account = _engine(context).store.get_account(account_id)
    if account is None:
        await _reply(update, f"Account {account_id} not found.")
        return
    await _reply(
        update,
        format_account_row(account),
        parse_mode="HTML",
        reply_markup=account_actions_keyboard(account.id, bool(account.is_active)),
    )


async def _delete_secret_message(update: Update) -> None:
    if not update.message:
        return
    try:
        await update.message.delete()
    except TelegramError as exc:
        logger.warning("ADMIN secret_message_not_deleted err=%s", exc)


async def addkey_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    await _delete_secret_message(update)
    if not args:
        await _reply(update, "Usage: /addkey <private_key> [name]")
        return
    name = " ".join(args[1:]) or None
    try:
        account = _engine(context).admin.add_from_private_key(args[0], name)
    except (TradingError, AccountAdminError, KeyVaultError) as exc:
        await _reply(update, f"Import failed: {exc}")
        return
    await _reply(update, f"Imported account #{account.id} {account.address}")


async def addseed_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    await _delete_secret_message(update)
    if not args:
        await _reply(update, "Usage: /addseed <seed words>")
        return
    if not looks_like_seed_phrase(" ".join(args)):
        await _reply(update, "A seed phrase has 12, 15, 18, 21 or 24 words.")
        return
    try:
        account = _engine(context).admin.add_from_seed(" ".join(args))
    except (TradingError, AccountAdminError, KeyVaultError) as exc:
        await _reply(update, f"Import failed: {exc}")
        return
    await _reply(update, f"Imported account #{account.id} {account.address}")


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    account_id = await _int_arg(update, context, "/delete <id>")
    if account_id is None:
        return
    try:
        _engine(context).admin.delete(account_id)
    except AccountAdminError as exc:
        await _reply(update, str(exc))
        return
    await _reply(update, f"Account {account_id} deleted.")


async def toggle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    account_id = await _int_arg(update, context, "/toggle <id>")
    if account_id is None:
        return
    try:
        account = _engine(context).admin.toggle_active(account_id)
    except AccountAdminError as exc:
        await _reply(update, str(exc))
        return
    await _reply(update, f"Account {account_id} is now {'active' if account.is_active else 'inactive'}.")


async def activeall_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if len(args) != 1 or args[0].lower() not in {"on", "off"}:
        await _reply(update, "Usage: /activeall on|off")
        return
    active = args[0].lower() == "on"
    count = _engine(context).admin.set_all_active(active)
    await _reply(update, f"{count} accounts {'activated' if active else 'deactivated'}.")


async def reorder_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if not args or not all(a.isdigit() for a in args):
        await _reply(update, "Usage: /reorder <id> <id> ...")
        return
    count = _engine(context).admin.reorder([int(a) for a in args])
    await _reply(update, f"{count} accounts reordered.")


async def deleteall_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if args != ["confirm"]:
        await _reply(update, "This removes every account. Send /deleteall confirm to proceed.")
        return
    if _engine(context).controller.is_running:
        await _reply(update, "Stop the bot before deleting accounts.")
        return
    removed = _engine(context).admin.delete_all()
    await _reply(update, f"{removed} accounts deleted.")


async def side_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if len(args) != 2 or not args[0].isdigit():
        await _reply(update, "Usage: /side <id> buy|sell")
        return
    try:
        account = _engine(context).admin.set_side(int(args[0]), args[1])
    except AccountAdminError as exc:
        await _reply(update, str(exc))
        return
    await _reply(update, f"Account {account.id} set to {account.type}.")


async def amount_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if len(args) != 2 or not args[0].isdigit():
        await _reply(update, "Usage: /amount <id> 50% | 0.01")
        return
    try:
        amount, unit = parse_amount_arg(args[1])
        account = _engine(context).admin.set_amount(int(args[0]), amount, unit)
    except (ValueError, AccountAdminError) as exc:
        await _reply(update, f"Amount not changed: {exc}")
        return
    await _reply(update, format_account_row(account), parse_mode="HTML")


async def wait_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if len(args) not in (1, 3) or not all(a.isdigit() for a in args):
        await _reply(update, "Usage: /wait <id> <from> <to> (or /wait <id> to use the global delay)")
        return
    wait_from = int(args[1]) if len(args) == 3 else None
    wait_to = int(args[2]) if len(args) == 3 else None
    try:
        _engine(context).admin.set_wait(int(args[0]), wait_from, wait_to)
    except AccountAdminError as exc:
        await _reply(update, str(exc))
        return
    await _reply(update, f"Account {args[0]} delay updated.")


async def bulk_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if len(args) != 2:
        await _reply(update, "Usage: /bulk buy|sell 100% | 0.01", reply_markup=bulk_keyboard())
        return
    try:
        amount, unit = parse_amount_arg(args[1])
        count = _engine(context).admin.bulk_reclassify(args[0], amount, unit)
    except (ValueError, AccountAdminError) as exc:
        await _reply(update, f"Bulk update failed: {exc}")
        return
    await _reply(update, f"{count} accounts set to {args[0].lower()} {args[1]}.")


async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    count = _engine(context).admin.reset_all()
    await _reply(update, f"{count} accounts reset to pending, cycle 0.")


async def balances_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    await _reply(update, "Refreshing balances...")
    report = await _engine(context).refresh_balances()
    await _reply(update, f"Balances updated: {report.updated}, failed: {report.failed}.")


async def order_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    account_id = await _int_arg(update, context, "/order <id>")
    if account_id is None:
        return
    result = await _engine(context).place_single_order(account_id)
    if result.ok:
        await _reply(update, f"Order placed: {result.value.tx_hash}")
    else:
        await _reply(update, f"Order failed [{result.kind.value}]: {result.detail}")


async def set_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    if len(args) != 2:
        await _reply(update, "Usage: /set <key> <value>")
        return
    if _engine(context).controller.is_running:
        await _reply(update, "Stop the bot before changing settings.")
        return
    try:
        update_setting(args[0], args[1])
    except ValueError as exc:
        await _reply(update, f"Setting not saved: {exc}")
        return
    await _reply(update, f"{args[0]} = {args[1]}")


async def run_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    await _start(update, context, None)


async def runfrom_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    account_id = await _int_arg(update, context, "/runfrom <id>")
    if account_id is None:
        return
    await _start(update, context, account_id)


async def _start(update: Update, context: ContextTypes.DEFAULT_TYPE, start_account_id: int | None) -> None:
    try:
        _engine(context).controller.start_background(start_account_id)
    except (TradingError, ValueError) as exc:
        await _reply(update, f"Cannot start: {exc}")
        return
    await _reply(update, "Bot started.")


async def stop_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    try:
        _engine(context).controller.stop()
    except TradingError as exc:
        await _reply(update, str(exc))
        return
    await _reply(update, "Stopping after the current order.")


async def logs_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    args = context.args or []
    limit = int(args[0]) if args and args[0].isdigit() else LOG_HISTORY_LIMIT
    rows = list_logs(limit=limit)
    if not rows:
        await _reply(update, "No logs.")
        return
    lines = [f"{row.created_at:%H:%M:%S} {row.message}" for row in rows]
    for chunk in _chunks(lines):
        await _reply(update, chunk)


async def clearlogs_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not await _guard(update):
        return
    removed = clear_logs()
    await _reply(update, f"{removed} log lines removed.")


async def handle_text_menu(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message:
        return
    text = (update.message.text or "").strip()
    routes = {
        BTN_RUN: run_command,
        BTN_STOP: stop_command,
        BTN_STATUS: status_command,
        BTN_ACCOUNTS: accounts_command,
        BTN_BALANCES: balances_command,
        BTN_LOGS: logs_command,
    }
    handler = routes.get(text)
    if handler is not None:
        context.args = []
        await handler(update, context)


async def handle_account_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if not query:
        return
    await query.answer()
    if not await _guard(update):
        return

    engine = _engine(context)
    parts = (query.data or "").split("_")
    action = parts[0]
    try:
        if action == "amt" and len(parts) == 3:
            account = engine.admin.set_amount(int(parts[1]), float(parts[2]), UNIT_PERCENT)
            await query.edit_message_text(
                format_account_row(account),
                parse_mode="HTML",
                reply_markup=account_actions_keyboard(account.id, bool(account.is_active)),
            )
        elif action == "side" and len(parts) == 3:
            account = engine.admin.set_side(int(parts[1]), parts[2])
            await query.edit_message_text(
                format_account_row(account),
                parse_mode="HTML",
                reply_markup=account_actions_keyboard(account.id, bool(account.is_active)),
            )
        elif action == "toggle" and len(parts) == 2:
            account = engine.admin.toggle_active(int(parts[1]))
            await query.edit_message_text(
                format_account_row(account),
                parse_mode="HTML",
                reply_markup=account_actions_keyboard(account.id, bool(account.is_active)),
            )
        elif action == "delete" and len(parts) == 2:
            engine.admin.delete(int(parts[1]))
            await query.edit_message_text(f"Account {parts[1]} deleted.")
        elif action == "runfrom" and len(parts) == 2:
            await _start(update, context, int(parts[1]))
        elif action == "bulk" and len(parts) == 3:
            count = engine.admin.bulk_reclassify(parts[1], float(parts[2]), UNIT_PERCENT)
            await _reply(update, f"{count} accounts set to {parts[1]} {parts[2]}%.")
        elif action == "reset":
            count = engine.admin.reset_all()
            await _reply(update, f"{count} accounts reset to pending, cycle 0.")
    except (ValueError, AccountAdminError) as exc:
        await _reply(update, f"Action failed: {exc}")
