from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from dotenv import load_dotenv

from chainmate_bot.chain.client import ChainClient, from_base_units
from chainmate_bot.chain.contracts import NATIVE_DECIMALS, NATIVE_SYMBOL, ZERO_ADDRESS
from chainmate_bot.intent.types import TransactionRecord

from . import templates

load_dotenv()


@dataclass(frozen=True)
class KeeperConfig:
    test_mode: bool
    interval_minutes: int


def load_keeper_config(default_minutes: int = 5) -> KeeperConfig:
    """
    Env:
    - KEEPER_TEST_MODE=1 -> run every minute (dev)
    - KEEPER_INTERVAL_MINUTES=5
    """
    test_mode = os.getenv("KEEPER_TEST_MODE", "").strip() == "1"

    raw = os.getenv("KEEPER_INTERVAL_MINUTES", str(default_minutes)).strip()
    try:
        minutes = max(1, int(raw))
    except ValueError:
        minutes = default_minutes

    if test_mode:
        minutes = 1

    return KeeperConfig(test_mode=test_mode, interval_minutes=minutes)


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone="UTC")


async def safe_send(bot, chat_id: int, text: str, logger: logging.Logger) -> None:
    try:
        await bot.send_message(chat_id=chat_id, text=text)
    except Exception as e:
        logger.warning("Failed to send message to chat_id=%s: %s", chat_id, e)


async def run_keeper_once(
    *,
    users,
    history,
    make_client: Callable[[str], ChainClient],
    notify: Callable[[int, str], Awaitable[None]],
    explorer_url: str,
    logger: logging.Logger,
    now_ts: int | None = None,
) -> int:
    """
    Executes every due scheduled payment of users with the keeper enabled.
    Returns how many payments were executed.
    """
    now = int(time.time()) if now_ts is None else int(now_ts)
    executed = 0

    for u in users.iter_all():
        if not u.keeper_enabled or not u.signing_key or not u.wallet_address:
            continue

        client = make_client(u.signing_key)
        try:
            due = await asyncio.to_thread(client.due_payments, u.wallet_address, now)
        except Exception as e:
            logger.warning("Keeper: scan failed for user=%s: %s", u.telegram_user_id, e)
            continue

        for p in due:
            try:
                tx_hash = await asyncio.to_thread(client.execute_scheduled_payment, p.id)
            except Exception as e:
                logger.warning("Keeper: payment #%s failed for user=%s: %s", p.id, u.telegram_user_id, e)
                if u.chat_id:
                    await notify(u.chat_id, templates.keeper_failed_message(p.id, str(e)))
                continue

            executed += 1
            history.add(
                u.telegram_user_id,
                TransactionRecord(
                    id=uuid.uuid4().hex,
                    type="schedule",
                    from_address=u.wallet_address,
                    to_address=p.to_address,
                    amount=from_base_units(p.amount, NATIVE_DECIMALS),
                    token=NATIVE_SYMBOL if p.token == ZERO_ADDRESS else p.token,
                    tx_hash=tx_hash,
                    timestamp=now,
                    status="success",
                    memo=p.memo or f"Scheduled payment #{p.id}",
                ),
            )
            if u.chat_id:
                await notify(u.chat_id, templates.keeper_executed_message(p.id, tx_hash, explorer_url))

    return executed


def start_jobs(
    scheduler: AsyncIOScheduler,
    *,
    loop: asyncio.AbstractEventLoop,
    bot,
    users,
    history,
    make_client: Callable[[str], ChainClient],
    explorer_url: str,
    logger: logging.Logger,
    default_minutes: int = 5,
) -> None:
    cfg = load_keeper_config(default_minutes)

    async def notify(chat_id: int, text: str) -> None:
        await safe_send(bot, chat_id, text, logger)

    async def job_keeper() -> None:
        logger.info("Scheduler: keeper started")
        n = await run_keeper_once(
            users=users,
            history=history,
            make_client=make_client,
            notify=notify,
            explorer_url=explorer_url,
            logger=logger,
        )
        logger.info("Scheduler: keeper done. executed=%s", n)

    def keeper_wrapper() -> None:
        loop.create_task(job_keeper())

    scheduler.add_job(
        keeper_wrapper,
        IntervalTrigger(minutes=cfg.interval_minutes),
        id="keeper",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started (test_mode=%s). keeper_every=%s min",
        cfg.test_mode,
        cfg.interval_minutes,
    )
