from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict

from aiogram import Bot, Dispatcher, F
from aiogram.client.default import DefaultBotProperties
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message
from aiogram.utils.keyboard import InlineKeyboardBuilder
from eth_account import Account

from chainmate_bot.analysis.wallet import analyze_wallet, risk_label, wallet_age
from chainmate_bot.chain.adapters import ChainGateway
from chainmate_bot.chain.client import ChainClient
from chainmate_bot.chain.explorer import ExplorerClient
from chainmate_bot.intent.extractors import extract_address
from chainmate_bot.intent.pipeline import Collaborators, TurnResult, apply_effects, run_turn
from chainmate_bot.intent.session_store import SessionStore
from chainmate_bot.intent.types import TurnRequest
from chainmate_bot.llm.openai_client import AsyncAssistant, OpenAIClient
from chainmate_bot.storage import ContactStore, HistoryStore, UserConfig, UserStore

from ..config import Settings, load_settings
from ..logging_setup import setup_logging
from . import templates

CB_CONFIRM = "tx_confirm"
CB_CANCEL = "tx_cancel"


def _mask_secret(s: str, show: int = 4) -> str:
    if not s:
        return "None"
    if len(s) <= show:
        return "*" * len(s)
    return s[:show] + "*" * (len(s) - show)


def build_confirm_keyboard():
    kb = InlineKeyboardBuilder()
    kb.button(text="✅ Confirm", callback_data=CB_CONFIRM)
    kb.button(text="❌ Cancel", callback_data=CB_CANCEL)
    kb.adjust(2)
    return kb


def render_status(cfg: UserConfig | None, settings: Settings, pending: str | None) -> str:
    parts: list[str] = []
    parts.append("🔎 *Status*")
    parts.append("")

    if cfg is None or not cfg.wallet_address:
        parts.append(templates.section("Wallet", ["🔐 Not connected", "Connect: `/wallet <private key>`"]))
    else:
        parts.append(
            templates.section(
                "Wallet",
                [
                    f"🔐 {cfg.wallet_address}",
                    f"Key: {templates.md_escape(_mask_secret(cfg.signing_key, show=6))}",
                    f"Keeper: {'ON' if cfg.keeper_enabled else 'OFF'}",
                ],
            )
        )

    parts.append("")
    parts.append(
        templates.section(
            "Network",
            [
                f"Chain id: {settings.chain_id}",
                f"Core contract: {templates.short_address(settings.core_contract_address)}",
                f"AI replies: {'on' if settings.openai_api_key else 'off'}",
            ],
        )
    )

    parts.append("")
    parts.append(templates.section("Pending", [pending or "nothing waiting for confirmation"]))
    return "\n".join(parts).strip()


async def _answer(message: Message, text: str, reply_markup=None) -> None:
    try:
        await message.answer(text, reply_markup=reply_markup)
    except TelegramBadRequest:
        # model output can contain unbalanced markdown
        await message.answer(text, reply_markup=reply_markup, parse_mode=None)


async def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)

    bot = Bot(
        token=settings.require_bot_token(),
        default=DefaultBotProperties(parse_mode="Markdown"),
    )

    dp = Dispatcher()

    user_locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    cache = settings.cache_dir
    users = UserStore(cache / "users")
    sessions = SessionStore(cache / "sessions")
    contacts = ContactStore(cache / "contacts")
    history = HistoryStore(cache / "history")
    explorer = ExplorerClient(
        settings.bscscan_api_base, settings.bscscan_api_key, cache_dir=cache / "explorer"
    )

    assistant: AsyncAssistant | None = None
    if settings.openai_api_key:
        assistant = AsyncAssistant(OpenAIClient(settings.openai_api_key, model=settings.openai_model))

    logger = logging.getLogger("chainmate_bot.bot")

    def make_client(signing_key: str | None = None) -> ChainClient:
        return ChainClient.from_settings(settings, private_key=signing_key or None)

    read_client = make_client()

    def build_deps(tg_id: int, cfg: UserConfig | None) -> Collaborators:
        gateway = ChainGateway(make_client(cfg.signing_key) if cfg else read_client)
        return Collaborators(
            contacts=contacts.book(tg_id),
            reputation=gateway,
            quotes=gateway,
            submitter=gateway,
            balances=gateway,
            replies=assistant,
            explorer_url=settings.explorer_url,
            pending_ttl_seconds=settings.pending_ttl_seconds,
        )

    async def process_text(message: Message, tg_id: int, text: str) -> None:
        async with user_locks[tg_id]:
            cfg = users.load(tg_id)
            req = TurnRequest(
                user_id=tg_id,
                text=text,
                now_ts=int(time.time()),
                wallet_address=cfg.wallet_address if cfg else None,
            )
            try:
                result: TurnResult = await run_turn(req, sessions, build_deps(tg_id, cfg))
            except Exception:
                logger.exception("Turn failed for user=%s", tg_id)
                await message.answer(templates.failed_message())
                return

            apply_effects(tg_id, result.effects, sessions=sessions, history=history, contacts=contacts)

        for turn in result.replies:
            kb = build_confirm_keyboard().as_markup() if turn.requires_confirmation else None
            await _answer(message, turn.content, reply_markup=kb)

    from .scheduler import create_scheduler, start_jobs

    scheduler = create_scheduler()
    loop = asyncio.get_running_loop()

    start_jobs(
        scheduler,
        loop=loop,
        bot=bot,
        users=users,
        history=history,
        make_client=make_client,
        explorer_url=settings.explorer_url,
        logger=logger,
        default_minutes=settings.keeper_interval_minutes,
    )

    @dp.message(Command("start"))
    async def cmd_start(message: Message) -> None:
        tg_id = message.from_user.id if message.from_user else None
        if tg_id is None:
            return

        users.save(tg_id, chat_id=message.chat.id)
        cfg = users.load(tg_id)

        text = templates.start_message()
        if cfg is None or not cfg.wallet_address:
            text = "\n".join([text, "", templates.info("Start with `/wallet <private key>`")]).strip()
        await message.answer(text)

    @dp.message(Command("help"))
    async def cmd_help(message: Message) -> None:
        await message.answer(templates.help_message())

    @dp.message(Command("wallet"))
    async def cmd_wallet(message: Message) -> None:
        parts = (message.text or "").split(maxsplit=1)
        if len(parts) < 2 or not parts[1].strip():
            await message.answer(templates.wallet_connect_instructions())
            return

        tg_id = message.from_user.id if message.from_user else None
        if tg_id is None:
            await message.answer(templates.error("Couldn't determine your Telegram user id."))
            return

        key = parts[1].strip()
        try:
            address = Account.from_key(key).address
        except ValueError:
            await message.answer(templates.error("That doesn't look like a valid private key."))
            return

        users.save(tg_id, wallet_address=address, signing_key=key, chat_id=message.chat.id)
        logger.info("user=%s connected wallet %s", tg_id, address)
        await message.answer(templates.wallet_connected_message(address))

    @dp.message(Command("status"))
    async def cmd_status(message: Message) -> None:
        tg_id = message.from_user.id if message.from_user else None
        cfg = users.load(tg_id) if tg_id is not None else None

        pending = None
        if tg_id is not None:
            state = sessions.load_state(tg_id)
            if state.is_awaiting and state.pending is not None:
                pending = templates.describe_intent(state.pending)

        await message.answer(render_status(cfg, settings, pending))

    @dp.message(Command("contacts"))
    async def cmd_contacts(message: Message) -> None:
        tg_id = message.from_user.id
        await message.answer(templates.contacts_message(contacts.list(tg_id)))

    @dp.message(Command("addcontact"))
    async def cmd_addcontact(message: Message) -> None:
        tg_id = message.from_user.id
        parts = (message.text or "").split()
        address = extract_address(message.text or "")
        if len(parts) < 3 or address is None:
            await message.answer(templates.warning("Usage: /addcontact <name> <0x address>"))
            return

        name = " ".join(p for p in parts[1:] if p != address).strip()
        contact = contacts.add(tg_id, name, address)
        await message.answer(
            templates.success(f"Saved {templates.md_escape(contact.name)}: {contact.address}")
        )

    @dp.message(Command("history"))
    async def cmd_history(message: Message) -> None:
        tg_id = message.from_user.id
        records = history.load(tg_id, limit=10)
        await message.answer(templates.history_message(records, settings.explorer_url))

    @dp.message(Command("analyze"))
    async def cmd_analyze(message: Message) -> None:
        tg_id = message.from_user.id
        address = extract_address(message.text or "")
        if address is None:
            cfg = users.load(tg_id)
            address = cfg.wallet_address if cfg else None
        if address is None:
            await message.answer(templates.warning("Usage: /analyze <0x address>"))
            return

        await message.answer(templates.info("Analyzing… this can take a few seconds."))
        try:
            report = await analyze_wallet(address, read_client, explorer, assistant)
        except Exception:
            logger.exception("Wallet analysis failed for %s", address)
            await message.answer(templates.failed_message())
            return

        text = templates.wallet_report_message(report, risk_label(report.data), wallet_age(report.data))
        if assistant is None:
            text = "\n\n".join([text, templates.llm_unavailable_message()])
        await _answer(message, text)

    @dp.message(Command("keeper"))
    async def cmd_keeper(message: Message) -> None:
        tg_id = message.from_user.id
        cfg = users.load(tg_id)
        if cfg is None or not cfg.wallet_address:
            await message.answer(templates.wallet_required_message())
            return

        parts = (message.text or "").split()
        action = parts[1].lower() if len(parts) > 1 else "status"

        if action == "on":
            users.save(tg_id, keeper_enabled=True, chat_id=message.chat.id)
            await message.answer(templates.success("Keeper enabled"))
            return
        if action == "off":
            users.save(tg_id, keeper_enabled=False)
            await message.answer(templates.success("Keeper disabled"))
            return

        await message.answer(templates.keeper_status_message(cfg.keeper_enabled))

    @dp.callback_query(F.data.in_({CB_CONFIRM, CB_CANCEL}))
    async def cb_confirm_cancel(query: CallbackQuery) -> None:
        await query.answer()
        if query.message is None:
            return
        try:
            await query.message.edit_reply_markup(reply_markup=None)
        except TelegramBadRequest:
            pass
        text = "confirm" if query.data == CB_CONFIRM else "cancel"
        await process_text(query.message, query.from_user.id, text)

    @dp.message(F.text & ~F.text.startswith("/"))
    async def handle_plain_text(message: Message) -> None:
        await process_text(message, message.from_user.id, message.text)

    logger.info("Starting Telegram bot polling...")
    try:
        await dp.start_polling(bot)
    finally:
        scheduler.shutdown(wait=False)
        explorer.close()


if __name__ == "__main__":
    asyncio.run(main())
