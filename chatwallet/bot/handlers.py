"""
Update handlers.

``Assistant.handle_update`` is the single entry point the webhook calls: it
turns one Telegram update into at most one reply for the originating chat,
plus any notifications for other users (delivered through the Bot API).
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from ..cache import TTLCache
from ..config import Settings, settings
from ..core.dispatch import ActionDispatcher, DispatchOutcome, OutcomeKind
from ..core.errors import UnknownIntent
from ..core.execution import (
    BridgeExecutor,
    ExecutionEngine,
    ExecutionResult,
    ResilientRpcClient,
    SwapExecutor,
    TransferExecutor,
)
from ..core.intent import Action, ActionKind, Command, CommandKind, IntentResolver, NluClient
from ..core.recipient import RecipientResolver
from ..core.recovery import RetryPolicy
from ..core.session import SessionStore
from ..core.wallet import KeyStore
from ..providers.bungee import BungeeProvider
from ..providers.directory import InMemoryUserDirectory, UserDirectory
from ..providers.jupiter import JupiterSwapProvider, JupiterTokenList
from ..providers.llm import get_nlu_providers
from ..providers.sns import SnsProvider
from ..providers.solana import SolanaLedger
from ..providers.telegram import TelegramNotifier
from ..types import CallbackQuery, Chat, HandledUpdate, Message, Notification, Reply, Update, User
from . import messages

logger = logging.getLogger(__name__)


class Assistant:
    """Wires the resolver, dispatcher and collaborators behind one update handler."""

    def __init__(
        self,
        *,
        resolver: IntentResolver,
        dispatcher: ActionDispatcher,
        keystore: KeyStore,
        directory: UserDirectory,
        notifier: TelegramNotifier,
        rpc: Optional[ResilientRpcClient] = None,
        bot_username: str = "",
    ):
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.keystore = keystore
        self.directory = directory
        self.notifier = notifier
        self.rpc = rpc
        self.bot_username = bot_username.lstrip("@")

    async def close(self) -> None:
        if self.rpc is not None:
            await self.rpc.close()

    async def handle_update(self, update: Update) -> HandledUpdate:
        try:
            if update.callback_query is not None:
                return await self.handle_callback(update.callback_query)
            if update.message is not None:
                return await self.handle_message(update.message)
        except Exception:
            logger.exception("Unhandled error processing update %s", update.update_id)
            chat_id = _chat_id(update)
            if chat_id is None:
                return HandledUpdate()
            return HandledUpdate(
                reply=Reply(chat_id=chat_id, text=messages.GENERIC_ERROR_TEXT, reply_markup=messages.back_menu())
            )
        return HandledUpdate()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    async def handle_message(self, message: Message) -> HandledUpdate:
        user = message.from_user
        if user is None or user.is_bot or not message.text:
            return HandledUpdate()

        await self.directory.record(user.id, user.username)

        text = message.text
        is_group = message.chat.is_group
        if is_group:
            if not self._mentions_bot(text):
                return HandledUpdate()
            text = self._strip_mention(text)
            if not text:
                return HandledUpdate(reply=Reply(chat_id=message.chat.id, text=messages.GROUP_HELP_TEXT, parse_mode=None))

        awaiting_param, pending_kind = self.dispatcher.awaiting(user.id)
        replied_to = message.reply_to_message.text if message.reply_to_message else None
        try:
            intent = await self.resolver.resolve_text(
                text,
                awaiting_param=awaiting_param,
                pending_kind=pending_kind,
                replied_to=replied_to,
            )
        except UnknownIntent as exc:
            logger.info("Unknown intent from user %s: %s", user.id, exc)
            return self._reply(message.chat, messages.unknown_intent_text(exc.prompt), messages.main_menu())

        return await self._handle_intent(user, message.chat, intent)

    async def handle_callback(self, query: CallbackQuery) -> HandledUpdate:
        await self.notifier.answer_callback_query(query.id)
        user = query.from_user
        await self.directory.record(user.id, user.username)

        chat = query.message.chat if query.message is not None else Chat(id=user.id)
        intent = self.resolver.resolve_callback(query.data or "")
        return await self._handle_intent(user, chat, intent)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def _handle_intent(self, user: User, chat: Chat, intent) -> HandledUpdate:
        if isinstance(intent, Command):
            return await self._handle_command(user, chat, intent)

        if intent.kind == ActionKind.IMPORT_WALLET and chat.is_group:
            # Never collect secret keys in a shared chat
            return self._reply(chat, "🔒 Please import your wallet in a private chat with me.", None)

        outcome = await self.dispatcher.dispatch(user.id, intent)
        return await self._render_outcome(user, chat, intent, outcome)

    async def _handle_command(self, user: User, chat: Chat, command: Command) -> HandledUpdate:
        kind = command.kind
        if kind == CommandKind.START:
            has_wallet = await self.keystore.has(user.id)
            menu = messages.main_menu() if has_wallet else messages.wallet_menu()
            return self._reply(chat, messages.welcome_text(has_wallet), menu)
        if kind == CommandKind.HELP:
            return self._reply(chat, messages.HELP_TEXT, messages.main_menu())
        if kind == CommandKind.SETTINGS:
            return self._reply(chat, messages.SETTINGS_TEXT, messages.main_menu())
        if kind == CommandKind.SWAP_HELP:
            return self._reply(chat, messages.SWAP_HELP_TEXT, messages.main_menu())
        if kind == CommandKind.BRIDGE_HELP:
            return self._reply(chat, messages.BRIDGE_HELP_TEXT, messages.main_menu())
        if kind == CommandKind.CANCEL:
            outcome = await self.dispatcher.cancel(user.id)
            return self._reply(chat, outcome.text or "", messages.main_menu())
        if kind == CommandKind.MAIN_MENU:
            outcome = await self.dispatcher.cancel(user.id)
            text = outcome.text if outcome.kind == OutcomeKind.BUSY else messages.MAIN_MENU_TEXT
            return self._reply(chat, text, messages.main_menu(), parse_mode=None)
        return self._reply(chat, messages.UNKNOWN_COMMAND_TEXT, messages.back_menu(), parse_mode=None)

    async def _render_outcome(
        self,
        user: User,
        chat: Chat,
        action: Action,
        outcome: DispatchOutcome,
    ) -> HandledUpdate:
        if outcome.kind == OutcomeKind.PROMPT:
            if outcome.param == "private_key" and not (outcome.text or "").startswith("⚠️"):
                return self._reply(chat, messages.IMPORT_PROMPT_TEXT, messages.back_menu())
            return self._reply(chat, outcome.text or "", messages.back_menu(), parse_mode=None)

        if outcome.kind == OutcomeKind.REPLY:
            text = messages.escape_username(outcome.text) or "👍"
            return self._reply(chat, text, messages.main_menu())

        if outcome.kind in (OutcomeKind.BUSY, OutcomeKind.CANCELLED):
            return self._reply(chat, outcome.text or "", None, parse_mode=None)

        result = outcome.result
        if result is None:
            return HandledUpdate()

        if not result.succeeded and result.data.get("error_type") == "WalletRequired":
            return self._reply(chat, messages.no_wallet_text(chat.is_group), messages.wallet_menu(), parse_mode=None)

        handled = self._reply(chat, messages.format_result(result), messages.main_menu())
        handled.notifications = await self._notify(user, chat, result)
        return handled

    async def _notify(self, sender: User, chat: Chat, result: ExecutionResult) -> List[Notification]:
        """Tell a @handle recipient they were paid. Never affects the sender's reply."""
        if result.kind != ActionKind.TRANSFER or not result.succeeded:
            return []
        owner_id = result.data.get("handle_owner_id")
        if not owner_id or owner_id == sender.id:
            return []

        name = sender.first_name or (f"@{sender.username}" if sender.username else "someone")
        note = Notification(
            chat_id=owner_id,
            text=messages.transfer_notification(result.data["amount"], name, result.transaction_id, chat.is_group),
        )
        delivered = await self.notifier.send_message(note.chat_id, note.text)
        if not delivered:
            logger.info("Recipient %s was not notified", owner_id)
        return [note]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reply(self, chat: Chat, text: str, keyboard, parse_mode: Optional[str] = "Markdown") -> HandledUpdate:
        # No inline keyboards in group chats
        markup = None if chat.is_group else keyboard
        return HandledUpdate(reply=Reply(chat_id=chat.id, text=text, parse_mode=parse_mode, reply_markup=markup))

    def _mentions_bot(self, text: str) -> bool:
        if not self.bot_username:
            return False
        return f"@{self.bot_username.lower()}" in text.lower()

    def _strip_mention(self, text: str) -> str:
        return re.sub(rf"@{re.escape(self.bot_username)}\b", "", text, flags=re.IGNORECASE).strip()


def _chat_id(update: Update) -> Optional[int]:
    if update.message is not None:
        return update.message.chat.id
    if update.callback_query is not None:
        query = update.callback_query
        return query.message.chat.id if query.message is not None else query.from_user.id
    return None


def build_assistant(config: Settings = settings, directory: Optional[UserDirectory] = None) -> Assistant:
    """Production wiring from settings."""
    policy = RetryPolicy(
        max_attempts=config.rpc_max_attempts,
        initial_delay_seconds=config.rpc_retry_delay_seconds,
    )
    rpc = ResilientRpcClient(
        config.rpc_endpoints,
        policy=policy,
        commitment=config.rpc_commitment,
        timeout_s=config.rpc_timeout_seconds,
        confirm_timeout_s=config.confirm_timeout_seconds,
    )
    keystore = KeyStore(config.key_encryption_secret)
    directory = directory or InMemoryUserDirectory()
    recipients = RecipientResolver(SnsProvider(config.sns_base_url), directory, keystore)

    engine = ExecutionEngine(
        keystore,
        SolanaLedger(rpc),
        TransferExecutor(rpc, recipients, fee_reserve_lamports=config.fee_reserve_lamports),
        SwapExecutor(
            rpc,
            JupiterSwapProvider(config.jupiter_base_url),
            JupiterTokenList(config.jupiter_token_list_url),
            cache=TTLCache(default_ttl=config.cache_ttl_seconds, max_size=config.max_cache_size),
            slippage_bps=config.swap_slippage_bps,
            fee_reserve_lamports=config.fee_reserve_lamports,
            quote_max_age_s=config.quote_max_age_seconds,
            high_impact_pct=config.high_price_impact_pct,
        ),
        BridgeExecutor(
            rpc,
            BungeeProvider(config.bungee_api_key, config.bungee_base_url),
            min_amount_sol=config.min_bridge_amount,
            fee_reserve_lamports=config.fee_reserve_lamports,
        ),
        history_limit=config.history_limit,
    )

    nlu = NluClient(
        get_nlu_providers(),
        temperature=config.nlu_temperature,
        max_tokens=config.nlu_max_tokens,
    )
    return Assistant(
        resolver=IntentResolver(nlu),
        dispatcher=ActionDispatcher(SessionStore(), engine, keystore),
        keystore=keystore,
        directory=directory,
        notifier=TelegramNotifier(config.telegram_bot_token, config.telegram_api_base_url),
        rpc=rpc,
        bot_username=config.bot_username,
    )


_assistant: Optional[Assistant] = None


def get_assistant() -> Assistant:
    global _assistant
    if _assistant is None:
        _assistant = build_assistant()
    return _assistant


def set_assistant(assistant: Optional[Assistant]) -> None:
    """Replace the process-wide assistant (tests, alternative wiring)."""
    global _assistant
    _assistant = assistant


async def shutdown_assistant() -> None:
    global _assistant
    if _assistant is not None:
        await _assistant.close()
        _assistant = None
