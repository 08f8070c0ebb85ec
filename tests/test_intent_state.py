from chainmate_bot.intent.state import (
    IDLE,
    ConversationState,
    Phase,
    interpret_reply,
    on_dispatch_done,
    on_proposal,
    on_utterance,
)
from chainmate_bot.intent.types import TransactionIntent

SEND = TransactionIntent(
    type="send", amount="1", token="BNB", recipient="0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
)
SWAP = TransactionIntent(type="swap", amount="1", from_token="BNB", to_token="USDT")


def _awaiting(intent=SEND, since=100):
    return on_proposal(IDLE, intent, since).state


def test_interpret_reply_is_substring_based():
    assert interpret_reply("Yes please") == "confirm"
    assert interpret_reply("CONFIRM it") == "confirm"
    assert interpret_reply("cancel that") == "cancel"
    assert interpret_reply("no") == "cancel"
    assert interpret_reply("hmm") == "other"


def test_confirm_wins_when_both_present():
    assert interpret_reply("yes, no, cancel") == "confirm"


def test_proposal_pins_intent():
    st = _awaiting()
    assert st.phase is Phase.AWAITING_CONFIRMATION
    assert st.pending == SEND
    assert st.pending_since == 100


def test_confirm_dispatches_pending_once():
    tr = on_utterance(_awaiting(), "confirm", 110, ttl_seconds=600)
    assert tr.action == "dispatch"
    assert tr.intent == SEND
    assert tr.state.phase is Phase.EXECUTING
    assert tr.state.pending is None
    assert on_dispatch_done(tr.state) == IDLE


def test_cancel_clears_pending():
    tr = on_utterance(_awaiting(), "cancel", 110)
    assert tr.action == "cancel"
    assert tr.intent == SEND
    assert tr.state == IDLE


def test_confirm_in_idle_is_just_text():
    tr = on_utterance(IDLE, "confirm", 110)
    assert tr.action == "classify"
    assert tr.state == IDLE
    assert tr.intent is None


def test_other_text_keeps_pending():
    st = _awaiting()
    tr = on_utterance(st, "what's my balance", 110)
    assert tr.action == "classify"
    assert tr.state == st


def test_new_proposal_replaces_pending():
    tr = on_proposal(_awaiting(), SWAP, 120)
    assert tr.replaced == SEND
    assert tr.state.pending == SWAP
    assert tr.state.pending_since == 120


def test_pending_expires():
    tr = on_utterance(_awaiting(since=0), "confirm", 600, ttl_seconds=600)
    assert tr.action == "classify"
    assert tr.expired == SEND
    assert tr.state == IDLE


def test_no_ttl_never_expires():
    tr = on_utterance(_awaiting(since=0), "confirm", 10**9, ttl_seconds=None)
    assert tr.action == "dispatch"


def test_snapshot_roundtrip_and_executing_resets():
    st = _awaiting()
    assert ConversationState.from_dict(st.to_dict()) == st

    executing = {"phase": "executing", "pending_intent": None, "pending_since": None}
    assert ConversationState.from_dict(executing) == IDLE
    assert ConversationState.from_dict({"phase": "bogus"}) == IDLE
    assert ConversationState.from_dict(None) == IDLE
