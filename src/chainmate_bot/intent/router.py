from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Callable

from chainmate_bot.intent.extractors import (
    DEFAULT_DELAY_HOURS,
    AmountMatch,
    extract_address,
    extract_all_addresses,
    extract_amount,
    extract_approvals,
    extract_delay_hours,
    extract_named_recipient,
    extract_swap,
    extract_threshold,
    has_relative_time,
)
from chainmate_bot.intent.types import DEFAULT_TOKEN, TransactionIntent, TurnRequest

logger = logging.getLogger(__name__)

_FAUCET_RE = re.compile(r"\b(faucet|claim)", re.IGNORECASE)
_BALANCE_RE = re.compile(r"\bbalance\b|\bhow\s+much\b", re.IGNORECASE)
_REPUTATION_RE = re.compile(r"\breputation\b|\brisk\b|\bcheck\s+address\b", re.IGNORECASE)
_CONTACT_PHRASE_RE = re.compile(r"\b(add|save)\s+contact\b", re.IGNORECASE)
_ADD_RE = re.compile(r"\badd\b", re.IGNORECASE)
_CONTACT_RE = re.compile(r"\bcontact\b", re.IGNORECASE)
_TEAM_RE = re.compile(r"\b(create|new)\s+team\b", re.IGNORECASE)
_SCHEDULE_RE = re.compile(r"\b(schedule\w*|tomorrow|later)\b", re.IGNORECASE)
_CONDITION_RE = re.compile(r"\b(if|when|condition\w*)\b", re.IGNORECASE)
_PRICE_RE = re.compile(r"\b(price|above|below)\b", re.IGNORECASE)
_SEND_RE = re.compile(r"\b(send|transfer|pay)", re.IGNORECASE)
_SWAP_RE = re.compile(r"\b(swap|exchange|trade)", re.IGNORECASE)

_CONTACT_NAME_RE = re.compile(
    r"\b(?:add|save)\s+(?:(?:a|an|the|new|my)\s+)*(?:contact\s+)?(?:(?:named|called)\s+)?"
    r"([A-Za-z][\w-]*)",
    re.IGNORECASE,
)
_TEAM_NAME_RE = re.compile(
    r"\b(?:create|new)\s+team\s+(?:(?:called|named)\s+)?([A-Za-z][\w-]*)",
    re.IGNORECASE,
)
_NOT_A_NAME = {"contact", "with", "for", "and", "as", "of", "to"}


@dataclass(frozen=True)
class _Context:
    text: str
    lower: str
    now_ts: int
    amount: AmountMatch | None


@dataclass(frozen=True)
class IntentRule:
    name: str
    matches: Callable[[_Context], bool]
    build: Callable[[_Context], TransactionIntent]


def _fmt_num(x: float) -> str:
    return f"{round(x, 2):g}"


def describe_delay(hours: float) -> str:
    seconds = hours * 3600
    if seconds < 60:
        n = _fmt_num(seconds)
        return f"{n} second" if n == "1" else f"{n} seconds"
    if seconds < 3600:
        n = _fmt_num(seconds / 60)
        return f"{n} minute" if n == "1" else f"{n} minutes"
    n = _fmt_num(hours)
    return f"{n} hour" if n == "1" else f"{n} hours"


def _recipient_fields(ctx: _Context) -> dict:
    address = extract_address(ctx.text)
    if address:
        return {"recipient": address}
    name = extract_named_recipient(ctx.text)
    return {"contact_name": name} if name else {}


def _token(ctx: _Context) -> str:
    if ctx.amount is not None and ctx.amount.token:
        return ctx.amount.token
    return DEFAULT_TOKEN


def _amount(ctx: _Context) -> str:
    if ctx.amount is None:
        raise ValueError("rule matched without an amount")
    return ctx.amount.amount


def _build_faucet(ctx: _Context) -> TransactionIntent:
    return TransactionIntent(type="faucet")


def _build_balance(ctx: _Context) -> TransactionIntent:
    return TransactionIntent(type="balance", recipient=extract_address(ctx.text))


def _build_reputation(ctx: _Context) -> TransactionIntent:
    return TransactionIntent(type="reputation", recipient=extract_address(ctx.text))


def _is_contact_add(ctx: _Context) -> bool:
    if _CONTACT_PHRASE_RE.search(ctx.lower):
        return True
    return bool(_ADD_RE.search(ctx.lower) and _CONTACT_RE.search(ctx.lower))


def _build_contact(ctx: _Context) -> TransactionIntent:
    name: str | None = None
    for m in _CONTACT_NAME_RE.finditer(ctx.text):
        cand = m.group(1)
        if cand.lower() not in _NOT_A_NAME:
            name = cand
            break
    return TransactionIntent(type="contact", contact_name=name, recipient=extract_address(ctx.text))


def _build_team(ctx: _Context) -> TransactionIntent:
    m = _TEAM_NAME_RE.search(ctx.text)
    team_name = m.group(1) if m and m.group(1).lower() not in _NOT_A_NAME else None

    members = extract_all_addresses(ctx.text)
    approvals = extract_approvals(ctx.text)
    if approvals is None:
        approvals = math.ceil(len(members) / 2)

    return TransactionIntent(
        type="team",
        team_name=team_name,
        team_members=members,
        required_approvals=approvals,
    )


def _is_schedule(ctx: _Context) -> bool:
    wants = _SCHEDULE_RE.search(ctx.lower) is not None or has_relative_time(ctx.text)
    return wants and ctx.amount is not None


def _build_schedule(ctx: _Context) -> TransactionIntent:
    hours = extract_delay_hours(ctx.text)
    if hours is None:
        hours = DEFAULT_DELAY_HOURS
    execute_at = ctx.now_ts + int(round(hours * 3600))

    return TransactionIntent(
        type="schedule",
        amount=_amount(ctx),
        token=_token(ctx),
        execute_at=execute_at,
        memo=f"Scheduled payment in {describe_delay(hours)}",
        **_recipient_fields(ctx),
    )


def _is_conditional(ctx: _Context) -> bool:
    return (
        _CONDITION_RE.search(ctx.lower) is not None
        and _PRICE_RE.search(ctx.lower) is not None
        and ctx.amount is not None
    )


def _build_conditional(ctx: _Context) -> TransactionIntent:
    th = extract_threshold(ctx.text)
    price = th.price if th else "0"
    is_above = th.is_above if th else True

    return TransactionIntent(
        type="conditional",
        amount=_amount(ctx),
        token=_token(ctx),
        price_threshold=price,
        is_above_threshold=is_above,
        memo=f"Pay when price goes {'above' if is_above else 'below'} {price}",
        **_recipient_fields(ctx),
    )


def _is_send(ctx: _Context) -> bool:
    return _SEND_RE.search(ctx.lower) is not None and ctx.amount is not None


def _build_send(ctx: _Context) -> TransactionIntent:
    return TransactionIntent(
        type="send",
        amount=_amount(ctx),
        token=_token(ctx),
        **_recipient_fields(ctx),
    )


def _build_swap(ctx: _Context) -> TransactionIntent:
    m = extract_swap(ctx.text)
    if m is None:
        return TransactionIntent(type="swap")
    return TransactionIntent(
        type="swap",
        from_token=m.from_token,
        to_token=m.to_token,
        amount=m.amount,
    )


# Order is part of the contract: the first matching rule wins.
# Schedule and conditional must stay ahead of send.
RULES: tuple[IntentRule, ...] = (
    IntentRule("faucet", lambda c: _FAUCET_RE.search(c.lower) is not None, _build_faucet),
    IntentRule("balance", lambda c: _BALANCE_RE.search(c.lower) is not None, _build_balance),
    IntentRule(
        "reputation", lambda c: _REPUTATION_RE.search(c.lower) is not None, _build_reputation
    ),
    IntentRule("contact", _is_contact_add, _build_contact),
    IntentRule("team", lambda c: _TEAM_RE.search(c.lower) is not None, _build_team),
    IntentRule("schedule", _is_schedule, _build_schedule),
    IntentRule("conditional", _is_conditional, _build_conditional),
    IntentRule("send", _is_send, _build_send),
    IntentRule("swap", lambda c: _SWAP_RE.search(c.lower) is not None, _build_swap),
)


def classify(user_text: str, now_ts: int | None = None) -> TransactionIntent | None:
    text = (user_text or "").strip()
    if not text:
        return None
    if now_ts is None:
        now_ts = int(time.time())

    ctx = _Context(text=text, lower=text.lower(), now_ts=int(now_ts), amount=extract_amount(text))

    for rule in RULES:
        if rule.matches(ctx):
            intent = rule.build(ctx)
            logger.debug("intent rule matched: %s -> %s", rule.name, intent.to_dict())
            return intent

    return None


def route(req: TurnRequest, assistant_text: str | None = None) -> TransactionIntent | None:
    """
    assistant_text is the language model's reply for the same turn; it is only
    logged and never changes the structured result.
    """
    intent = classify(req.text, req.now_ts)
    if assistant_text:
        logger.debug("route: user=%s assistant_reply_len=%s", req.user_id, len(assistant_text))
    return intent
