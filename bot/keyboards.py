"""Keyboards for bot navigation."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup

BTN_RUN = "▶️ Run"
BTN_STOP = "⏹ Stop"
BTN_STATUS = "📊 Status"
BTN_ACCOUNTS = "👛 Accounts"
BTN_BALANCES = "💰 Balances"
BTN_LOGS = "📜 Logs"

PERCENT_PRESETS = (25, 50, 75, 100)


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [
            [KeyboardButton(BTN_RUN), KeyboardButton(BTN_STOP)],
            [KeyboardButton(BTN_STATUS), KeyboardButton(BTN_ACCOUNTS)],
            [KeyboardButton(BTN_BALANCES), KeyboardButton(BTN_LOGS)],
        ],
        resize_keyboard=True,
        is_persistent=True,
    )


def account_actions_keyboard(account_id: int, is_active: bool) -> InlineKeyboardMarkup:
    toggle_label = "⏸ Deactivate" if is_active else "✅ Activate"
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(f"{pct}%", callback_data=f"amt_{account_id}_{pct}")
                for pct in PERCENT_PRESETS
            ],
            [
                InlineKeyboardButton("Buy", callback_data=f"side_{account_id}_buy"),
                InlineKeyboardButton("Sell", callback_data=f"side_{account_id}_sell"),
                InlineKeyboardButton(toggle_label, callback_data=f"toggle_{account_id}"),
            ],
            [
                InlineKeyboardButton("⏩ Run from here", callback_data=f"runfrom_{account_id}"),
                InlineKeyboardButton("🗑 Delete", callback_data=f"delete_{account_id}"),
            ],
        ]
    )


def bulk_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(f"Buy {pct}%", callback_data=f"bulk_buy_{pct}") for pct in PERCENT_PRESETS],
            [InlineKeyboardButton(f"Sell {pct}%", callback_data=f"bulk_sell_{pct}") for pct in PERCENT_PRESETS],
            [InlineKeyboardButton("🔄 Reset cycles", callback_data="reset_all")],
        ]
    )
