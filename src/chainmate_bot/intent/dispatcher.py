from __future__ import annotations

import logging
import uuid
from typing import Any

from chainmate_bot.intent.ports import Submitter
from chainmate_bot.intent.types import (
    DEFAULT_TOKEN,
    DispatchOutcome,
    TransactionIntent,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

FAUCET_TOKEN = "CMT"
FAUCET_AMOUNT = "100"


class NotDispatchable(ValueError):
    pass


def plan_operation(intent: TransactionIntent) -> tuple[str, dict[str, Any]]:
    """Exactly one submitter operation per confirmed intent."""
    token = (intent.token or DEFAULT_TOKEN).upper()

    if intent.type == "send":
        if token == "BNB":
            return "transfer", {"to": intent.recipient, "amount": intent.amount}
        return "token_transfer", {"to": intent.recipient, "amount": intent.amount, "token": token}

    if intent.type == "schedule":
        return "schedule", {
            "to": intent.recipient,
            "token": token,
            "amount": intent.amount,
            "execute_at": intent.execute_at,
            "memo": intent.memo or "",
        }

    if intent.type == "conditional":
        return "conditional", {
            "to": intent.recipient,
            "token": token,
            "amount": intent.amount,
            "price_threshold": intent.price_threshold or "0",
            "is_above_threshold": True if intent.is_above_threshold is None else intent.is_above_threshold,
            "memo": intent.memo or "",
        }

    if intent.type == "team":
        return "team", {
            "name": intent.team_name,
            "members": list(intent.team_members),
            "required_approvals": intent.required_approvals,
        }

    if intent.type == "contact":
        return "contact", {"name": intent.contact_name, "address": intent.recipient}

    if intent.type == "swap":
        # approve-if-needed and the swap itself are one logical operation for the submitter
        return "swap", {
            "from_token": intent.from_token,
            "to_token": intent.to_token,
            "amount": intent.amount,
        }

    if intent.type == "faucet":
        return "faucet", {}

    raise NotDispatchable(f"'{intent.type}' is not a transaction")


async def dispatch(intent: TransactionIntent, submitter: Submitter) -> DispatchOutcome:
    try:
        operation, fields = plan_operation(intent)
    except NotDispatchable as e:
        return DispatchOutcome(success=False, error_message=str(e))

    logger.info("Dispatching %s (%s)", operation, intent.type)
    try:
        tx_hash = await submitter.submit(operation, fields)
    except Exception as e:
        logger.warning("Dispatch %s failed: %s", operation, e)
        return DispatchOutcome(success=False, error_message=str(e) or e.__class__.__name__)

    logger.info("Dispatch %s ok tx=%s", operation, tx_hash)
    return DispatchOutcome(success=True, transaction_id=tx_hash)


def history_entry(
    intent: TransactionIntent,
    outcome: DispatchOutcome,
    *,
    from_address: str | None,
    now_ts: int,
) -> TransactionRecord | None:
    if intent.type == "contact":
        return None

    if intent.type == "swap":
        to_address, amount, token = "", intent.amount or "", intent.from_token or ""
    elif intent.type == "faucet":
        to_address, amount, token = from_address or "", FAUCET_AMOUNT, FAUCET_TOKEN
    elif intent.type == "team":
        to_address, amount, token = "", "0", ""
    else:
        to_address = intent.recipient or ""
        amount = intent.amount or ""
        token = (intent.token or DEFAULT_TOKEN).upper()

    memo = intent.memo
    if intent.type == "team":
        memo = intent.team_name
    elif intent.type == "swap" and intent.to_token:
        memo = f"{intent.from_token} -> {intent.to_token}"

    return TransactionRecord(
        id=uuid.uuid4().hex,
        type=intent.type,
        from_address=from_address or "",
        to_address=to_address,
        amount=amount,
        token=token,
        tx_hash=outcome.transaction_id or "",
        timestamp=int(now_ts),
        status="success" if outcome.success else "failed",
        memo=memo,
    )
