from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable

from chainmate_bot.bot import templates
from chainmate_bot.intent.dispatcher import dispatch, history_entry
from chainmate_bot.intent.enrichment import QuoteFailed, enrich, risk_from_reputation
from chainmate_bot.intent.ports import (
    BalanceSource,
    ContactLookup,
    QuoteSource,
    ReplyGenerator,
    ReputationSource,
    Submitter,
)
from chainmate_bot.intent.resolver import missing_field, resolve
from chainmate_bot.intent.router import route
from chainmate_bot.intent.session_store import SessionStore
from chainmate_bot.intent.state import (
    ConversationState,
    on_dispatch_done,
    on_proposal,
    on_utterance,
)
from chainmate_bot.intent.types import (
    READ_ONLY_INTENTS,
    ConversationTurn,
    DispatchOutcome,
    Effect,
    PersistTurn,
    RecordHistory,
    SaveContact,
    TransactionIntent,
    TurnRequest,
)

logger = logging.getLogger(__name__)


@dataclass
class Collaborators:
    contacts: ContactLookup
    reputation: ReputationSource
    quotes: QuoteSource
    submitter: Submitter
    balances: BalanceSource
    replies: ReplyGenerator | None = None
    explorer_url: str = "https://testnet.bscscan.com"
    pending_ttl_seconds: int | None = 600


@dataclass(frozen=True)
class TurnResult:
    state: ConversationState
    replies: list[ConversationTurn] = field(default_factory=list)
    effects: list[Effect] = field(default_factory=list)
    intent: TransactionIntent | None = None
    outcome: DispatchOutcome | None = None


class _Turn:
    def __init__(self, req: TurnRequest):
        self.req = req
        self.replies: list[ConversationTurn] = []
        self.effects: list[Effect] = [
            PersistTurn(
                ConversationTurn(
                    id=uuid.uuid4().hex,
                    role="user",
                    content=req.text,
                    timestamp=req.now_ts,
                )
            )
        ]

    def say(
        self,
        content: str,
        *,
        status: str | None = None,
        transaction_hash: str | None = None,
        requires_confirmation: bool = False,
    ) -> None:
        turn = ConversationTurn(
            id=uuid.uuid4().hex,
            role="assistant",
            content=content,
            timestamp=self.req.now_ts,
            transaction_hash=transaction_hash,
            status=status,
            requires_confirmation=requires_confirmation,
        )
        self.replies.append(turn)
        self.effects.append(PersistTurn(turn))

    def result(
        self,
        state: ConversationState,
        intent: TransactionIntent | None = None,
        outcome: DispatchOutcome | None = None,
    ) -> TurnResult:
        return TurnResult(
            state=state,
            replies=list(self.replies),
            effects=list(self.effects),
            intent=intent,
            outcome=outcome,
        )


async def _conversational_reply(
    deps: Collaborators, chat_log: list[dict[str, str]], text: str
) -> str:
    if deps.replies is None:
        return templates.unknown_message()
    try:
        reply = await deps.replies.generate_reply(chat_log, text)
    except Exception as e:
        logger.warning("Reply generation failed: %s", e)
        return templates.fallback_reply()
    return (reply or "").strip() or templates.fallback_reply()


async def _answer_query(intent: TransactionIntent, req: TurnRequest, deps: Collaborators) -> str:
    address = intent.recipient or req.wallet_address

    if intent.type == "balance":
        if not address:
            return templates.wallet_required_message()
        try:
            balances = await deps.balances.get_balances(address)
        except Exception as e:
            logger.warning("Balance lookup failed for %s: %s", address, e)
            return templates.lookup_failed_message("balance")
        return templates.balance_message(address, balances)

    if not intent.recipient:
        return templates.warning("Which address should I check? Send it as 0x...")
    try:
        rep = await deps.reputation.get_reputation(intent.recipient)
    except Exception as e:
        logger.warning("Reputation lookup failed for %s: %s", intent.recipient, e)
        return templates.lookup_failed_message("reputation")
    return templates.reputation_message(intent.recipient, rep, risk_from_reputation(rep))


async def _execute(
    turn: _Turn, state: ConversationState, intent: TransactionIntent, deps: Collaborators
) -> TurnResult:
    req = turn.req
    turn.say(templates.processing_message(), status="pending")

    outcome = await dispatch(intent, deps.submitter)

    entry = history_entry(intent, outcome, from_address=req.wallet_address, now_ts=req.now_ts)
    if entry is not None:
        turn.effects.append(RecordHistory(entry))

    if outcome.success and outcome.transaction_id:
        turn.say(
            templates.dispatch_success_message(intent, outcome.transaction_id, deps.explorer_url),
            status="success",
            transaction_hash=outcome.transaction_id,
        )
        if intent.type == "contact" and intent.contact_name and intent.recipient:
            turn.effects.append(SaveContact(name=intent.contact_name, address=intent.recipient))
    else:
        turn.say(
            templates.dispatch_failed_message(outcome.error_message or "unknown error"),
            status="error",
        )

    return turn.result(on_dispatch_done(state), intent=intent, outcome=outcome)


async def handle_turn(
    req: TurnRequest,
    state: ConversationState,
    deps: Collaborators,
    chat_log: list[dict[str, str]] | None = None,
    checkpoint: Callable[[ConversationState], None] | None = None,
) -> TurnResult:
    """
    One user utterance in, the next state plus replies and declared effects out.
    Collaborator failures are turned into replies; this never raises for them.

    checkpoint receives the EXECUTING state before a confirmed intent is
    submitted, so an interrupted dispatch can not be confirmed a second time.
    """
    turn = _Turn(req)

    tr = on_utterance(state, req.text, req.now_ts, deps.pending_ttl_seconds)
    if tr.expired is not None:
        logger.info("user=%s pending %s expired", req.user_id, tr.expired.type)
        turn.say(templates.expired_notice(tr.expired))

    if tr.action == "cancel":
        logger.info("user=%s cancelled %s", req.user_id, tr.intent.type if tr.intent else "-")
        turn.say(templates.cancelled_message())
        return turn.result(tr.state, intent=tr.intent)

    if tr.action == "dispatch" and tr.intent is not None:
        if checkpoint is not None:
            checkpoint(tr.state)
        logger.info("user=%s confirmed %s", req.user_id, tr.intent.type)
        return await _execute(turn, tr.state, tr.intent, deps)

    state = tr.state
    intent = route(req)

    if intent is None:
        turn.say(await _conversational_reply(deps, chat_log or [], req.text))
        if state.is_awaiting and state.pending is not None:
            turn.say(templates.pending_reminder(state.pending))
        return turn.result(state)

    intent = resolve(intent, deps.contacts)

    if intent.type in READ_ONLY_INTENTS:
        turn.say(await _answer_query(intent, req, deps))
        if state.is_awaiting and state.pending is not None:
            turn.say(templates.pending_reminder(state.pending))
        return turn.result(state, intent=intent)

    missing = missing_field(intent)
    if missing is not None:
        logger.info("user=%s %s needs %s", req.user_id, intent.type, missing.kind)
        turn.say(templates.warning(missing.prompt))
        return turn.result(state, intent=intent)

    try:
        extra = await enrich(intent, deps.reputation, deps.quotes)
    except QuoteFailed as e:
        turn.say(templates.quote_failed_message(intent, str(e)), status="error")
        return turn.result(state, intent=intent)

    prop = on_proposal(state, intent, req.now_ts)
    if prop.replaced is not None:
        turn.say(templates.replaced_notice(prop.replaced))

    logger.info("user=%s awaiting confirmation for %s", req.user_id, intent.type)
    turn.say(
        templates.confirmation_prompt(intent, risk=extra.risk, quote=extra.quote),
        status="pending",
        requires_confirmation=True,
    )
    return turn.result(prop.state, intent=intent)


async def run_turn(req: TurnRequest, sessions: SessionStore, deps: Collaborators) -> TurnResult:
    state = sessions.load_state(req.user_id)
    result = await handle_turn(
        req,
        state,
        deps,
        chat_log=sessions.chat_log(req.user_id),
        checkpoint=lambda s: sessions.save_state(req.user_id, s),
    )
    sessions.save_state(req.user_id, result.state)
    return result


def apply_effects(
    user_id: int,
    effects: list[Effect],
    *,
    sessions: SessionStore | None = None,
    history=None,
    contacts=None,
) -> None:
    """Persistence is best effort; a failing store never affects the conversation."""
    for eff in effects:
        try:
            if isinstance(eff, PersistTurn) and sessions is not None:
                sessions.append_chat(user_id, eff.turn.role, eff.turn.content)
            elif isinstance(eff, RecordHistory) and history is not None:
                history.add(user_id, eff.entry)
            elif isinstance(eff, SaveContact) and contacts is not None:
                contacts.add(user_id, eff.name, eff.address)
        except Exception as e:
            logger.warning("Effect %s failed for user=%s: %s", type(eff).__name__, user_id, e)
