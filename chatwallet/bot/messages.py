"""
Reply texts and inline keyboards.

Everything here is Telegram (legacy) Markdown. User-supplied text that ends
up inside a reply goes through ``escape_markdown`` or ``escape_username``.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.amounts import format_decimal
from ..core.errors import ExecutionStatus
from ..core.execution.models import ExecutionResult
from ..core.intent.models import ActionKind

Keyboard = Dict[str, Any]

_MARKDOWN_SPECIALS = re.compile(r"([_*`\[\]])")
_HANDLE_IN_TEXT = re.compile(r"@(\w+)")


def _keyboard(rows: List[List[tuple]]) -> Keyboard:
    return {
        "inline_keyboard": [
            [{"text": label, "callback_data": data} for label, data in row]
            for row in rows
        ]
    }


def main_menu() -> Keyboard:
    return _keyboard([
        [("💰 Balance", "balance"), ("📤 Send SOL", "send")],
        [("🔄 Swap Tokens", "swap"), ("🌉 Bridge", "bridge")],
        [("📋 History", "history"), ("⚙️ Settings", "settings")],
    ])


def wallet_menu() -> Keyboard:
    return _keyboard([
        [("🆕 Create Wallet", "create_wallet")],
        [("📥 Import Wallet", "import_wallet")],
        [("◀️ Back", "main_menu")],
    ])


def back_menu() -> Keyboard:
    return _keyboard([[("◀️ Back to Menu", "main_menu")]])


def escape_markdown(text: Optional[str]) -> str:
    return _MARKDOWN_SPECIALS.sub(r"\\\1", text or "")


def escape_username(text: Optional[str]) -> str:
    """Escape underscores inside @handles so they don't open italics."""
    return _HANDLE_IN_TEXT.sub(lambda m: "@" + m.group(1).replace("_", "\\_"), text or "")


def solscan_link(signature: str) -> str:
    return f"{settings.explorer_base_url.rstrip('/')}/tx/{signature}"


def explorer_link(signature: str) -> str:
    return f"https://explorer.solana.com/tx/{signature}"


def _links(signature: str) -> str:
    return (
        f"[🔍 View on Solscan]({solscan_link(signature)})\n"
        f"[🌐 View on Explorer]({explorer_link(signature)})"
    )


# ---------------------------------------------------------------------------
# Static cards
# ---------------------------------------------------------------------------

def welcome_text(has_wallet: bool) -> str:
    status = "✅ Wallet connected" if has_wallet else "⚠️ No wallet found. Create or import one to get started."
    return (
        "👋 *Welcome to your Solana wallet assistant!*\n\n"
        f"{status}\n\n"
        "Use the buttons below to interact, or chat with me naturally!"
    )


MAIN_MENU_TEXT = "Choose an action:"

HELP_TEXT = (
    "🤖 *Commands*\n\n"
    "*/start* - Start the bot\n"
    "*/wallet* - Show your wallet\n"
    "*/balance* - Check your SOL balance\n"
    "*/history* - Recent transactions\n"
    "*/import* - Import an existing wallet\n"
    "*/cancel* - Cancel the current request\n"
    "*/help* - Show this help message\n\n"
    "Or just ask: \"send 0.5 SOL to alice.sol\", \"swap 10 USDC to SOL\", "
    "\"bridge 0.1 SOL to base 0x...\""
)

GROUP_HELP_TEXT = (
    "👋 Hi! I can help you with Solana transactions. Try:\n\n"
    "• \"send 1 SOL to @username\"\n"
    "• \"check my balance\"\n"
    "• \"create wallet\"\n"
    "• \"send 0.5 SOL to @alice\"\n\n"
    "Use /start or say \"create wallet\" to get started!"
)

SETTINGS_TEXT = (
    "⚙️ *Settings*\n\n"
    "Network: Solana mainnet\n"
    "More settings coming soon!"
)

SWAP_HELP_TEXT = (
    "🔄 *How to Swap*\n\n"
    "1. Make sure your wallet holds enough SOL for the swap and fees.\n"
    "2. Ask in chat, for example: \"swap 0.1 SOL to USDC\" or \"buy 25 bonk\".\n"
    "3. For selling, you can say \"sell 50% BONK\" and I calculate the amount.\n"
    "4. Check the token mint address to avoid scams; swaps execute immediately.\n\n"
    "⚠️ Always double-check token symbols or mint addresses before swapping."
)

BRIDGE_HELP_TEXT = (
    "🌉 *How to Bridge*\n\n"
    "1. Make sure your wallet holds at least *0.1 SOL* for bridge and network fees.\n"
    "2. Ask in chat, for example: \"bridge 0.1 SOL from solana to bsc 0xYourEVMAddress\".\n"
    "3. Double-check the destination address. Bridge transfers cannot be reversed.\n"
    "4. Leave a small SOL buffer so future transactions still succeed.\n\n"
    "⚠️ Always verify chain names and addresses before bridging."
)

IMPORT_PROMPT_TEXT = (
    "📥 *Import Wallet*\n\n"
    "Send your private key (JSON array format):\n"
    "Example: [123,45,67,...]\n\n"
    "⚠️ Make sure you trust this bot!"
)

UNKNOWN_COMMAND_TEXT = "Unknown command. Use /help to see available commands."

GENERIC_ERROR_TEXT = "❌ Sorry, I encountered an error processing your message. Please try again."


def no_wallet_text(is_group: bool) -> str:
    if is_group:
        bot = f"@{settings.bot_username}" if settings.bot_username else "me"
        return f"❌ You need to create a wallet first! Say \"{bot} create wallet\" or use /start to create your wallet."
    return "❌ No wallet found. Please create or import a wallet first."


def unknown_intent_text(prompt: Optional[str]) -> str:
    return f"🤔 I couldn't understand that.\n\n{prompt}" if prompt else "🤔 I couldn't understand that."


def transfer_notification(amount: str, sender: str, signature: str, in_group: bool) -> str:
    where = " in a group chat" if in_group else ""
    return (
        f"💰 You received {amount} SOL from {escape_markdown(sender)}{where}!\n\n"
        f"[🔍 View Transaction]({solscan_link(signature)})"
    )


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------

_FAILURE_TITLES = {
    ActionKind.TRANSFER: "Transaction failed",
    ActionKind.SWAP: "Swap failed",
    ActionKind.BRIDGE: "Bridge failed",
    ActionKind.BALANCE: "Error fetching balance",
    ActionKind.HISTORY: "Failed to load history",
    ActionKind.CREATE_WALLET: "Failed to create wallet",
    ActionKind.IMPORT_WALLET: "Failed to import wallet",
}


def format_failure(result: ExecutionResult) -> str:
    title = _FAILURE_TITLES.get(result.kind, "Request failed")
    lines = [f"❌ {title}: {escape_markdown(result.error_detail or 'Unknown error')}"]
    if result.suggestion:
        lines += ["", f"💡 {escape_markdown(result.suggestion)}"]
    if result.status == ExecutionStatus.NETWORK_FAILED and result.transaction_id:
        lines += ["", f"🔗 Signature: `{result.transaction_id}`", f"[🔍 Check on Solscan]({solscan_link(result.transaction_id)})"]
    if result.kind == ActionKind.IMPORT_WALLET:
        lines += ["", "Please check your private key format and try again."]
    return "\n".join(lines)


def format_balance(data: Dict[str, Any]) -> str:
    return (
        "💰 *Your Balance*\n\n"
        f"Address: `{data['address']}`\n"
        f"Balance: *{data['balance']} SOL*\n\n"
        "💡 *Tip:* If you recently received SOL, it may take a few seconds to appear."
    )


def _history_line(index: int, entry: Any) -> str:
    direction = {"in": "📥 Received", "out": "📤 Sent"}.get(entry.direction, "🔁 Activity")
    if entry.amount_change is None:
        amount = "Amount N/A"
    else:
        amount = f"{format_decimal(abs(Decimal(entry.amount_change)), 4)} SOL"
    status = "❌ Failed" if entry.status == "failed" else "✅ Confirmed"
    when = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC") if entry.timestamp else "Time N/A"
    return (
        f"{index}. {direction}\n"
        f"   • Amount: *{amount}*\n"
        f"   • Status: {status}\n"
        f"   • Time: {when}\n"
        f"   • [View on Solscan]({solscan_link(entry.signature)})"
    )


def format_history(data: Dict[str, Any]) -> str:
    text = f"📋 *Recent Transactions*\n\nAddress: `{data['address']}`\n\n"
    entries = data.get("entries") or []
    if not entries:
        return text + "No transactions found yet. Once you start sending or receiving SOL, they will appear here."
    return text + "\n\n".join(_history_line(i, entry) for i, entry in enumerate(entries, start=1))


def format_transfer(result: ExecutionResult) -> str:
    data = result.data
    if data.get("recipient_form") == "address":
        to = f"`{data['recipient_address']}`"
    else:
        to = escape_markdown(data["recipient"])
    return (
        "✅ *Transaction Successful!*\n\n"
        f"💰 Amount: *{data['amount']} SOL*\n"
        f"📤 To: {to}\n"
        f"🔗 Signature: `{result.transaction_id}`\n\n"
        f"{_links(result.transaction_id)}"
    )


def format_swap(result: ExecutionResult) -> str:
    data = result.data
    text = "✅ *Swap Successful!*\n\n"
    if data.get("percentage"):
        text += f"📊 Sold *{data['percentage']}%* of your {data['input_symbol']} balance\n\n"
    text += f"💰 Swapped: *{data['input_amount']} {data['input_symbol']}*\n"
    text += f"➡️ Received: *{data['output_amount']} {data['output_symbol']}*\n"
    impact = data.get("price_impact_pct")
    if impact is not None:
        marker = "⚠️" if data.get("high_price_impact") else "✅"
        text += f"{marker} Price Impact: {impact:.2f}%\n"
    text += f"\n🔗 Signature: `{result.transaction_id}`\n\n{_links(result.transaction_id)}"
    return text


def format_bridge(result: ExecutionResult) -> str:
    data = result.data
    text = (
        "✅ *Bridge Transaction Initiated!*\n\n"
        f"🌉 Bridging: *{data['amount']} {data['token']}*\n"
        f"📤 From: *{data['from_chain']}*\n"
        f"📥 To: *{data['to_chain']}*\n"
        f"📍 Destination: `{data['destination']}`\n"
        f"⏱️ Estimated time: {data['estimated_time']}\n"
    )
    if data.get("tracking_id") and data["tracking_id"] != result.transaction_id:
        text += f"🛰️ Tracking ID: `{data['tracking_id']}`\n"
    text += (
        f"\n🔗 Transaction: `{result.transaction_id}`\n\n"
        f"{_links(result.transaction_id)}\n\n"
        f"💡 *Note:* The bridge transaction is processing. "
        f"Tokens will arrive on {data['to_chain']} once the bridge completes."
    )
    return text


def format_wallet(result: ExecutionResult) -> str:
    data = result.data
    if result.kind == ActionKind.IMPORT_WALLET:
        return f"✅ *Wallet Imported Successfully!*\n\nYour wallet address:\n`{data['address']}`"
    if result.kind == ActionKind.CONNECT:
        return f"👛 *Your Wallet*\n\nAddress:\n`{data['address']}`"
    status = "Created Successfully" if data.get("is_new") else "Already Exists"
    note = (
        "⚠️ *Important:* Your private key is encrypted and stored securely. Never share it with anyone!"
        if data.get("is_new")
        else "ℹ️ This is your existing wallet. You can use it in both private chats and group chats!"
    )
    return f"✅ *Wallet {status}!*\n\nYour wallet address:\n`{data['address']}`\n\n{note}"


_FORMATTERS = {
    ActionKind.TRANSFER: format_transfer,
    ActionKind.SWAP: format_swap,
    ActionKind.BRIDGE: format_bridge,
    ActionKind.BALANCE: lambda result: format_balance(result.data),
    ActionKind.HISTORY: lambda result: format_history(result.data),
    ActionKind.CONNECT: format_wallet,
    ActionKind.CREATE_WALLET: format_wallet,
    ActionKind.IMPORT_WALLET: format_wallet,
}


def format_result(result: ExecutionResult) -> str:
    if not result.succeeded:
        return format_failure(result)
    return _FORMATTERS[result.kind](result)
