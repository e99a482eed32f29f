"""Entry point for the Telegram-operated swap bot."""

import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler

from telegram.ext import Application, CallbackQueryHandler, CommandHandler, MessageHandler, filters

from bot.handlers import (
    account_command,
    accounts_command,
    activeall_command,
    addkey_command,
    addseed_command,
    amount_command,
    balances_command,
    bulk_command,
    clearlogs_command,
    delete_command,
    deleteall_command,
    handle_account_callback,
    handle_text_menu,
    help_command,
    logs_command,
    order_command,
    reorder_command,
    reset_command,
    run_command,
    runfrom_command,
    set_command,
    side_command,
    start_command,
    status_command,
    stop_command,
    toggle_command,
    wait_command,
)
from config import ADMIN_IDS, APP_LOG_FILE, FORWARD_TRADE_EVENTS, LOG_DIR, LOG_LEVEL, TELEGRAM_BOT_TOKEN
from database import db
from trading import events
from trading.engine import Engine
from trading.events import CallbackSink, TradeEvent


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

    # Avoid leaking bot token in verbose transport logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.INFO)
    logging.getLogger("web3").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)

FORWARDED_KINDS = {
    events.TX_SUBMITTED,
    events.ORDER_ERROR,
    events.ORDER_FATAL,
    events.ACCOUNT_CAPPED,
    events.SCHEDULER_IDLE,
    events.SCHEDULER_STARTED,
    events.SCHEDULER_STOPPED,
}


def _forwarder(application: Application) -> CallbackSink:
    # Strong references until each send finishes.
    pending: set[asyncio.Task] = set()

    def _send(event: TradeEvent, line: str) -> None:
        for chat_id in ADMIN_IDS:
            task = asyncio.get_running_loop().create_task(_safe_send(application, chat_id, line))
            pending.add(task)
            task.add_done_callback(pending.discard)

    return CallbackSink(_send, kinds=FORWARDED_KINDS)


async def _safe_send(application: Application, chat_id: int, text: str) -> None:
    try:
        await application.bot.send_message(chat_id=chat_id, text=text)
    except Exception as exc:
        logger.warning("Forward to chat=%s failed: %s", chat_id, exc)


async def post_init(application: Application) -> None:
    engine = Engine(db)
    if FORWARD_TRADE_EVENTS and ADMIN_IDS:
        engine.add_sink(_forwarder(application))
    application.bot_data["engine"] = engine


async def post_shutdown(application: Application) -> None:
    engine: Engine | None = application.bot_data.get("engine")
    if engine and engine.controller.is_running:
        engine.controller.stop()
        task = engine.controller.task
        if task:
            try:
                await task
            except Exception:
                logger.exception("Scheduler finished with error during shutdown")


def main() -> None:
    configure_logging()
    db.init_db()

    if not TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")
    if not ADMIN_IDS:
        raise RuntimeError("ADMIN_IDS is not set")

    app = Application.builder().token(TELEGRAM_BOT_TOKEN).post_init(post_init).post_shutdown(post_shutdown).build()

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("status", status_command))
    app.add_handler(CommandHandler("accounts", accounts_command))
    app.add_handler(CommandHandler("account", account_command))
    app.add_handler(CommandHandler("addkey", addkey_command))
    app.add_handler(CommandHandler("addseed", addseed_command))
    app.add_handler(CommandHandler("delete", delete_command))
    app.add_handler(CommandHandler("toggle", toggle_command))
    app.add_handler(CommandHandler("activeall", activeall_command))
    app.add_handler(CommandHandler("reorder", reorder_command))
    app.add_handler(CommandHandler("deleteall", deleteall_command))
    app.add_handler(CommandHandler("side", side_command))
    app.add_handler(CommandHandler("amount", amount_command))
    app.add_handler(CommandHandler("wait", wait_command))
    app.add_handler(CommandHandler("bulk", bulk_command))
    app.add_handler(CommandHandler("reset", reset_command))
    app.add_handler(CommandHandler("balances", balances_command))
    app.add_handler(CommandHandler("order", order_command))
    app.add_handler(CommandHandler("set", set_command))
    app.add_handler(CommandHandler("run", run_command))
    app.add_handler(CommandHandler("runfrom", runfrom_command))
    app.add_handler(CommandHandler("stop", stop_command))
    app.add_handler(CommandHandler("logs", logs_command))
    app.add_handler(CommandHandler("clearlogs", clearlogs_command))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text_menu))
    app.add_handler(
        CallbackQueryHandler(handle_account_callback, pattern=r"^(amt|side|toggle|delete|runfrom|bulk|reset)_")
    )

    app.run_polling()


if __name__ == "__main__":
    main()
