import asyncio

import pytest

from chainmate_bot.intent.pipeline import Collaborators, apply_effects, handle_turn, run_turn
from chainmate_bot.intent.session_store import SessionStore
from chainmate_bot.intent.state import IDLE, ConversationState, Phase, on_proposal
from chainmate_bot.intent.types import (
    PersistTurn,
    RecordHistory,
    Reputation,
    SaveContact,
    SwapQuote,
    TransactionIntent,
    TurnRequest,
)
from chainmate_bot.storage import ContactStore, HistoryStore

ADDR_A = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
ADDR_B = "0x892d35Cc6634C0532925a3b844Bc9e7595f0aAa1"
WALLET = "0x2222222222222222222222222222222222222222"
TX = "0x" + "ab" * 32


class DictContacts:
    def __init__(self, data=None):
        self.data = {k.lower(): v for k, v in (data or {}).items()}

    def lookup(self, name):
        return self.data.get(name.lower())


class FakeReputation:
    def __init__(self, rep=None, exc=None):
        self.rep = rep or Reputation(transaction_count=150, is_flagged=False)
        self.exc = exc
        self.calls = []

    async def get_reputation(self, address):
        self.calls.append(address)
        if self.exc:
            raise self.exc
        return self.rep


class FakeQuotes:
    def __init__(self, exc=None):
        self.exc = exc

    async def get_swap_quote(self, from_token, to_token, amount):
        if self.exc:
            raise self.exc
        return SwapQuote(amount_out="301.5", path=["0xa", "0xb"])


class FakeSubmitter:
    def __init__(self, exc=None):
        self.exc = exc
        self.calls = []

    async def submit(self, operation, fields):
        self.calls.append((operation, fields))
        if self.exc:
            raise self.exc
        return TX


class FakeBalances:
    async def get_balances(self, address):
        return {"BNB": "1.5", "USDT": "20"}


class FakeReplies:
    def __init__(self, text="Hi! How can I help?"):
        self.text = text
        self.seen = []

    async def generate_reply(self, prior_turns, utterance):
        self.seen.append((list(prior_turns), utterance))
        return self.text


def make_deps(**kw):
    deps = dict(
        contacts=DictContacts({"Alice": ADDR_A}),
        reputation=FakeReputation(),
        quotes=FakeQuotes(),
        submitter=FakeSubmitter(),
        balances=FakeBalances(),
        replies=None,
        pending_ttl_seconds=600,
    )
    deps.update(kw)
    return Collaborators(**deps)


def turn(text, state=IDLE, deps=None, now=1000, chat_log=None):
    req = TurnRequest(user_id=1, text=text, now_ts=now, wallet_address=WALLET)
    return asyncio.run(handle_turn(req, state, deps or make_deps(), chat_log=chat_log))


def test_send_is_proposed_not_executed():
    deps = make_deps()
    res = turn(f"Send 0.5 BNB to {ADDR_A}", deps=deps)

    assert res.state.phase is Phase.AWAITING_CONFIRMATION
    assert res.state.pending.amount == "0.5"
    assert deps.submitter.calls == []

    last = res.replies[-1]
    assert last.requires_confirmation is True
    assert last.status == "pending"
    assert 'Reply with "confirm" to proceed or "cancel" to abort.' in last.content
    assert ADDR_A in last.content


def test_confirm_dispatches_exactly_once():
    deps = make_deps()
    proposed = turn(f"Send 0.5 BNB to {ADDR_A}", deps=deps)

    res = turn("yes", state=proposed.state, deps=deps, now=1010)

    assert deps.submitter.calls == [("transfer", {"to": ADDR_A, "amount": "0.5"})]
    assert res.state == IDLE
    assert res.outcome.success is True
    assert res.outcome.transaction_id == TX
    assert res.replies[-1].status == "success"
    assert res.replies[-1].transaction_hash == TX
    assert "/tx/" + TX in res.replies[-1].content

    history = [e for e in res.effects if isinstance(e, RecordHistory)]
    assert len(history) == 1
    assert history[0].entry.status == "success"
    assert history[0].entry.from_address == WALLET


def test_cancel_never_dispatches():
    deps = make_deps()
    proposed = turn(f"Send 0.5 BNB to {ADDR_A}", deps=deps)

    res = turn("cancel", state=proposed.state, deps=deps)

    assert deps.submitter.calls == []
    assert res.state == IDLE
    assert "Transaction cancelled" in res.replies[-1].content


def test_confirm_without_pending_is_harmless():
    deps = make_deps()
    res = turn("confirm", deps=deps)

    assert deps.submitter.calls == []
    assert res.state == IDLE
    assert res.intent is None


def test_contact_name_resolves_before_proposal():
    res = turn("Send $20 to Alice")
    pending = res.state.pending
    assert pending.recipient == ADDR_A
    assert pending.token == "USDT"


def test_unknown_contact_asks_for_address():
    deps = make_deps(contacts=DictContacts())
    res = turn("Send 5 BNB to Bob", deps=deps)

    assert res.state == IDLE
    assert "couldn't find a contact named 'Bob'" in res.replies[-1].content
    assert deps.reputation.calls == []


def test_risk_warnings_shown_before_confirmation():
    deps = make_deps(reputation=FakeReputation(Reputation(transaction_count=0, is_flagged=True)))
    res = turn(f"Send 1 BNB to {ADDR_A}", deps=deps)

    content = res.replies[-1].content
    assert "HIGH" in content
    assert "flagged" in content
    assert content.index("HIGH") < content.index("Please confirm")


def test_reputation_failure_is_fail_open():
    deps = make_deps(reputation=FakeReputation(exc=RuntimeError("rpc down")))
    res = turn(f"Send 1 BNB to {ADDR_A}", deps=deps)

    assert res.state.phase is Phase.AWAITING_CONFIRMATION
    assert "Risk check" not in res.replies[-1].content


def test_swap_quote_shown():
    res = turn("Swap 1 BNB to USDT")
    assert res.state.phase is Phase.AWAITING_CONFIRMATION
    assert "301.5" in res.replies[-1].content
    assert "1 hop" in res.replies[-1].content


def test_swap_quote_failure_stays_idle():
    deps = make_deps(quotes=FakeQuotes(exc=RuntimeError("no liquidity")))
    res = turn("Swap 1 BNB to USDT", deps=deps)

    assert res.state == IDLE
    assert res.replies[-1].status == "error"
    assert "no liquidity" in res.replies[-1].content
    assert deps.submitter.calls == []


def test_swap_quote_failure_keeps_earlier_pending():
    deps = make_deps(quotes=FakeQuotes(exc=RuntimeError("no liquidity")))
    proposed = turn(f"Send 1 BNB to {ADDR_A}", deps=deps)

    res = turn("Swap 1 BNB to USDT", state=proposed.state, deps=deps)
    assert res.state == proposed.state


def test_balance_answered_immediately_and_keeps_pending():
    proposed = turn(f"Send 1 BNB to {ADDR_A}")
    res = turn("what's my balance", state=proposed.state)

    assert res.state == proposed.state
    assert "1.5" in res.replies[0].content
    assert "Still waiting on" in res.replies[-1].content


def test_reputation_query():
    res = turn(f"check reputation of {ADDR_B}")
    assert res.state == IDLE
    assert "Transactions: 150" in res.replies[0].content
    assert "Risk level: low" in res.replies[0].content


def test_new_request_replaces_pending():
    proposed = turn(f"Send 1 BNB to {ADDR_A}")
    res = turn("Swap 1 BNB to USDT", state=proposed.state)

    assert res.state.pending.type == "swap"
    assert "Previous request discarded" in res.replies[0].content


def test_expired_pending_is_not_dispatched():
    deps = make_deps()
    state = on_proposal(IDLE, TransactionIntent(type="faucet"), 0).state

    res = turn("confirm", state=state, deps=deps, now=601)

    assert deps.submitter.calls == []
    assert res.state == IDLE
    assert "expired" in res.replies[0].content


def test_dispatch_failure_reported_verbatim():
    deps = make_deps(submitter=FakeSubmitter(exc=RuntimeError("insufficient funds for gas")))
    proposed = turn(f"Send 1 BNB to {ADDR_A}", deps=deps)

    res = turn("confirm", state=proposed.state, deps=deps)

    assert res.state == IDLE
    assert res.outcome.success is False
    assert "insufficient funds for gas" in res.replies[-1].content
    assert res.replies[-1].status == "error"
    history = [e for e in res.effects if isinstance(e, RecordHistory)]
    assert history[0].entry.status == "failed"


def test_contact_dispatch_saves_contact_locally():
    deps = make_deps()
    proposed = turn(f"add contact Carol {ADDR_B}", deps=deps)
    res = turn("confirm", state=proposed.state, deps=deps)

    assert deps.submitter.calls == [("contact", {"name": "Carol", "address": ADDR_B})]
    assert SaveContact(name="Carol", address=ADDR_B) in res.effects
    assert not any(isinstance(e, RecordHistory) for e in res.effects)


def test_free_text_uses_reply_generator():
    replies = FakeReplies()
    log = [{"role": "user", "content": "hi"}]
    res = turn("tell me about BSC", deps=make_deps(replies=replies), chat_log=log)

    assert res.replies[-1].content == "Hi! How can I help?"
    assert replies.seen == [(log, "tell me about BSC")]


def test_every_turn_is_persisted():
    res = turn(f"Send 1 BNB to {ADDR_A}")
    persisted = [e.turn for e in res.effects if isinstance(e, PersistTurn)]

    assert persisted[0].role == "user"
    assert persisted[0].content == f"Send 1 BNB to {ADDR_A}"
    assert [t.id for t in persisted[1:]] == [t.id for t in res.replies]


def test_run_turn_persists_state_between_turns(tmp_path):
    sessions = SessionStore(tmp_path / "sessions")
    history = HistoryStore(tmp_path / "history")
    contacts = ContactStore(tmp_path / "contacts")
    deps = make_deps(contacts=contacts.book(1))

    def step(text, now):
        req = TurnRequest(user_id=1, text=text, now_ts=now, wallet_address=WALLET)
        res = asyncio.run(run_turn(req, sessions, deps))
        apply_effects(1, res.effects, sessions=sessions, history=history, contacts=contacts)
        return res

    step(f"add contact Dave {ADDR_B}", 1000)
    assert sessions.load_state(1).is_awaiting

    step("confirm", 1005)
    assert sessions.load_state(1) == IDLE
    assert contacts.lookup(1, "dave") == ADDR_B

    step("Send 2 BNB to Dave", 1010)
    assert sessions.load_state(1).pending.recipient == ADDR_B

    step("yes", 1020)
    records = history.load(1)
    assert len(records) == 1
    assert records[0].to_address == ADDR_B
    assert records[0].amount == "2"

    log = sessions.chat_log(1)
    assert log[0] == {"role": "user", "content": f"add contact Dave {ADDR_B}"}


def test_interrupted_dispatch_is_not_repeated(tmp_path):
    sessions = SessionStore(tmp_path / "sessions")
    submitter = FakeSubmitter(exc=asyncio.CancelledError())
    deps = make_deps(submitter=submitter)

    def step(text, now):
        req = TurnRequest(user_id=1, text=text, now_ts=now, wallet_address=WALLET)
        return asyncio.run(run_turn(req, sessions, deps))

    step(f"Send 2 BNB to {ADDR_A}", 1000)
    assert sessions.load_state(1).is_awaiting

    with pytest.raises(asyncio.CancelledError):
        step("yes", 1005)

    assert sessions.load_state(1) == IDLE

    submitter.exc = None
    res = step("yes", 1010)

    assert submitter.calls == [("transfer", {"to": ADDR_A, "amount": "2"})]
    assert res.outcome is None
    assert res.state == IDLE


def test_apply_effects_is_best_effort():
    class Broken:
        def add(self, *args, **kwargs):
            raise OSError("disk full")

    class Recorder:
        def __init__(self):
            self.calls = []

        def append_chat(self, user_id, role, content):
            self.calls.append((role, content))

    res = turn(f"Send 1 BNB to {ADDR_A}")
    rec = Recorder()
    apply_effects(
        1,
        res.effects + [SaveContact(name="X", address=ADDR_A)],
        sessions=rec,
        history=Broken(),
        contacts=Broken(),
    )
    assert rec.calls[0] == ("user", f"Send 1 BNB to {ADDR_A}")


def test_state_type_is_always_idle_or_awaiting():
    deps = make_deps(submitter=FakeSubmitter(exc=RuntimeError("boom")))
    state: ConversationState = IDLE
    for text in [f"Send 1 BNB to {ADDR_A}", "confirm", "Swap 1 BNB to USDT", "cancel", "hello"]:
        state = turn(text, state=state, deps=deps).state
        assert state.phase in (Phase.IDLE, Phase.AWAITING_CONFIRMATION)
