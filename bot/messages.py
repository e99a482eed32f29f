"""Message templates."""

WELCOME_MESSAGE = (
    "👋 <b>Swap Bot</b>\n\n"
    "Runs buy/sell orders for one token across all your imported wallets.\n"
    "Import wallets with /addkey or /addseed, set the token with "
    "<code>/set tokenAddress 0x...</code>, then press Run.\n\n"
    "Use /help for the full command list."
)

HELP_MESSAGE = (
    "<b>Commands</b>\n"
    "/run, /runfrom &lt;id&gt;, /stop, /status\n"
    "/accounts, /addkey &lt;key&gt; [name], /addseed &lt;words&gt;\n"
    "/delete &lt;id&gt;, /deleteall confirm, /toggle &lt;id&gt;, /activeall on|off\n"
    "/side &lt;id&gt; buy|sell, /reorder &lt;id&gt; &lt;id&gt; ...\n"
    "/amount &lt;id&gt; 50% | 0.01, /wait &lt;id&gt; &lt;from&gt; &lt;to&gt;\n"
    "/bulk buy|sell 100% | 0.01, /reset, /balances, /order &lt;id&gt;\n"
    "/set &lt;key&gt; &lt;value&gt; (tokenAddress, minDelay, maxDelay, slippage, networkType, runMode)\n"
    "/logs [n], /clearlogs"
)

STATUS_TEMPLATE = (
    "📊 <b>Status</b>\n\n"
    "Bot: <b>{state}</b>\n"
    "Network: <b>{network}</b> | Mode: <b>{mode}</b>\n"
    "Token: <code>{token}</code>\n"
    "Delay: <b>{wait_from}-{wait_to}s</b> | Slippage: <b>{slippage}%</b>\n"
    "Accounts: <b>{active}</b> active / <b>{total}</b> total, <b>{eligible}</b> eligible"
)

ACCOUNT_ROW = "#{id} {name} <code>{address}</code> {active} {type} {amount}{unit} {cycle} [{status}] BNB {bnb} TKN {tkn}"

ACCOUNTS_EMPTY = "No accounts yet. Import one with /addkey or /addseed."

ACCESS_DENIED = "Access denied."
