import argparse
import asyncio
import json
import logging
import time

from . import __version__
from .config import load_settings
from .logging_setup import setup_logging


def mask(value: str | None, show: int = 4) -> str:
    if not value:
        return "None"
    if len(value) <= show:
        return "*" * len(value)
    return value[:show] + "*" * (len(value) - show)


async def _chat_loop(settings, user_id: int) -> None:
    from .chain.adapters import ChainGateway
    from .chain.client import ChainClient
    from .intent.pipeline import Collaborators, apply_effects, run_turn
    from .intent.session_store import SessionStore
    from .intent.types import TurnRequest
    from .llm.openai_client import AsyncAssistant, OpenAIClient
    from .storage import ContactStore, HistoryStore, UserStore

    cache = settings.cache_dir
    users = UserStore(cache / "users")
    sessions = SessionStore(cache / "sessions")
    contacts = ContactStore(cache / "contacts")
    history = HistoryStore(cache / "history")

    cfg = users.load(user_id)
    client = ChainClient.from_settings(settings, private_key=cfg.signing_key if cfg else None)
    gateway = ChainGateway(client)
    assistant = None
    if settings.openai_api_key:
        assistant = AsyncAssistant(OpenAIClient(settings.openai_api_key, model=settings.openai_model))

    deps = Collaborators(
        contacts=contacts.book(user_id),
        reputation=gateway,
        quotes=gateway,
        submitter=gateway,
        balances=gateway,
        replies=assistant,
        explorer_url=settings.explorer_url,
        pending_ttl_seconds=settings.pending_ttl_seconds,
    )

    print("ChainMate chat. Empty line or Ctrl-D to quit.")
    while True:
        try:
            text = await asyncio.to_thread(input, "you> ")
        except EOFError:
            break
        if not text.strip():
            break

        req = TurnRequest(
            user_id=user_id,
            text=text,
            now_ts=int(time.time()),
            wallet_address=cfg.wallet_address if cfg else None,
        )
        result = await run_turn(req, sessions, deps)
        apply_effects(user_id, result.effects, sessions=sessions, history=history, contacts=contacts)
        for turn in result.replies:
            print("bot>", turn.content)
            print()


def main() -> int:
    parser = argparse.ArgumentParser(prog="chainmate-bot")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument(
        "command",
        nargs="?",
        default="health",
        choices=["health", "status-env", "parse", "chat", "analyze", "bot"],
        help="Command to run",
    )
    parser.add_argument("--text", type=str, default=None, help="Message to classify (used with parse)")
    parser.add_argument("--address", type=str, default=None, help="Address to analyze (used with analyze)")
    parser.add_argument(
        "--user-id",
        type=int,
        default=0,
        help="Local user id whose wallet, contacts and session are used (used with chat). Default: 0",
    )

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return 0

    settings = load_settings()
    setup_logging(settings.log_level)

    logger = logging.getLogger(__name__)

    if args.command == "health":
        logger.info("Application started successfully.")
        print("ok")
        return 0

    if args.command == "status-env":
        print("TELEGRAM_BOT_TOKEN =", mask(settings.telegram_bot_token))
        print("MASTER_KEY =", mask(settings.master_key))
        print("OPENAI_API_KEY =", mask(settings.openai_api_key))
        print("OPENAI_MODEL =", settings.openai_model)
        print("BSCSCAN_API_KEY =", mask(settings.bscscan_api_key))
        print("BSC_RPC_URL =", settings.bsc_rpc_url)
        print("CHAIN_ID =", settings.chain_id)
        print("CORE_CONTRACT_ADDRESS =", settings.core_contract_address)
        print("TOKEN_CONTRACT_ADDRESS =", settings.token_contract_address)
        print("LOG_LEVEL =", settings.log_level)
        return 0

    if args.command == "parse":
        from .intent.router import classify

        if not args.text:
            parser.error("parse needs --text")

        intent = classify(args.text, int(time.time()))
        if intent is None:
            print("no intent")
            return 1
        print(json.dumps(intent.to_dict(), ensure_ascii=False, indent=2))
        return 0

    if args.command == "chat":
        asyncio.run(_chat_loop(settings, args.user_id))
        return 0

    if args.command == "analyze":
        from .analysis.wallet import analyze_wallet, risk_label, wallet_age
        from .chain.client import ChainClient
        from .chain.explorer import ExplorerClient
        from .intent.extractors import extract_address
        from .llm.openai_client import AsyncAssistant, OpenAIClient

        address = extract_address(args.address or "")
        if address is None:
            parser.error("analyze needs --address 0x... (40 hex characters)")

        explorer = ExplorerClient(
            settings.bscscan_api_base,
            settings.bscscan_api_key,
            cache_dir=settings.cache_dir / "explorer",
        )
        analyst = None
        if settings.openai_api_key:
            analyst = AsyncAssistant(OpenAIClient(settings.openai_api_key, model=settings.openai_model))
        try:
            report = asyncio.run(
                analyze_wallet(address, ChainClient.from_settings(settings), explorer, analyst)
            )
        finally:
            explorer.close()

        data = report.data
        print("address =", data.address)
        print("is_contract =", data.is_contract)
        print("bnb_balance =", data.bnb_balance)
        for t in data.token_balances:
            print("token:", t.symbol, "balance=", t.balance)
        print("transaction_count =", data.transaction_count)
        print("risk =", risk_label(data))
        print("wallet_age =", wallet_age(data))
        print("recent_transactions =", len(data.recent_transactions))
        if data.reputation is not None:
            print("reputation =", data.reputation.transaction_count, "flagged=", data.reputation.is_flagged)
        if data.is_contract:
            print("verified_source =", data.contract_source is not None)
        if report.ai_analysis:
            print()
            print(report.ai_analysis)
        if report.contract_analysis:
            print()
            print(report.contract_analysis)
        return 0

    if args.command == "bot":
        from .bot.app import main as bot_main

        asyncio.run(bot_main())
        return 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
