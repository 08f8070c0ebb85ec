from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from chainmate_bot.intent.types import TransactionIntent


class Phase(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"


@dataclass(frozen=True)
class ConversationState:
    phase: Phase = Phase.IDLE
    pending: TransactionIntent | None = None
    pending_since: int | None = None

    @property
    def is_awaiting(self) -> bool:
        return self.phase is Phase.AWAITING_CONFIRMATION and self.pending is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "pending_intent": self.pending.to_dict() if self.pending else None,
            "pending_since": self.pending_since,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ConversationState":
        if not isinstance(data, dict):
            return IDLE
        pending = TransactionIntent.from_dict(data.get("pending_intent"))
        try:
            phase = Phase(data.get("phase") or Phase.IDLE.value)
        except ValueError:
            phase = Phase.IDLE

        # Executing is transient; a snapshot caught mid-dispatch is treated as finished
        if phase is not Phase.AWAITING_CONFIRMATION or pending is None:
            return IDLE

        since = data.get("pending_since")
        return cls(phase=phase, pending=pending, pending_since=int(since) if since is not None else None)


IDLE = ConversationState()

ReplyKind = Literal["confirm", "cancel", "other"]
Action = Literal["dispatch", "cancel", "classify"]


@dataclass(frozen=True)
class Transition:
    state: ConversationState
    action: Action
    intent: TransactionIntent | None = None
    expired: TransactionIntent | None = None
    replaced: TransactionIntent | None = None


def interpret_reply(text: str) -> ReplyKind:
    t = (text or "").lower()
    if "confirm" in t or "yes" in t:
        return "confirm"
    if "cancel" in t or "no" in t:
        return "cancel"
    return "other"


def is_expired(state: ConversationState, now_ts: int, ttl_seconds: int | None) -> bool:
    if not state.is_awaiting or not ttl_seconds or ttl_seconds <= 0:
        return False
    if state.pending_since is None:
        return False
    return now_ts - state.pending_since >= ttl_seconds


def on_utterance(
    state: ConversationState,
    text: str,
    now_ts: int,
    ttl_seconds: int | None = None,
) -> Transition:
    expired: TransactionIntent | None = None
    if is_expired(state, now_ts, ttl_seconds):
        expired = state.pending
        state = IDLE

    if state.is_awaiting:
        kind = interpret_reply(text)
        if kind == "confirm":
            return Transition(
                state=ConversationState(phase=Phase.EXECUTING),
                action="dispatch",
                intent=state.pending,
            )
        if kind == "cancel":
            return Transition(state=IDLE, action="cancel", intent=state.pending)

    return Transition(state=state, action="classify", expired=expired)


def on_proposal(state: ConversationState, intent: TransactionIntent, now_ts: int) -> Transition:
    replaced = state.pending if state.is_awaiting else None
    return Transition(
        state=ConversationState(
            phase=Phase.AWAITING_CONFIRMATION,
            pending=intent,
            pending_since=int(now_ts),
        ),
        action="classify",
        intent=intent,
        replaced=replaced,
    )


def on_dispatch_done(state: ConversationState) -> ConversationState:
    return IDLE
