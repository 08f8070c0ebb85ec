import asyncio

import pytest

from chainmate_bot.intent.dispatcher import NotDispatchable, dispatch, history_entry, plan_operation
from chainmate_bot.intent.types import DispatchOutcome, TransactionIntent

ADDR_A = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
WALLET = "0x2222222222222222222222222222222222222222"


class FakeSubmitter:
    def __init__(self, exc=None):
        self.exc = exc
        self.calls = []

    async def submit(self, operation, fields):
        self.calls.append((operation, fields))
        if self.exc:
            raise self.exc
        return "0xhash"


def test_native_and_token_transfers():
    op, fields = plan_operation(TransactionIntent(type="send", amount="1", recipient=ADDR_A))
    assert op == "transfer"
    assert fields == {"to": ADDR_A, "amount": "1"}

    op, fields = plan_operation(
        TransactionIntent(type="send", amount="20", token="usdt", recipient=ADDR_A)
    )
    assert op == "token_transfer"
    assert fields["token"] == "USDT"


def test_schedule_fields():
    intent = TransactionIntent(
        type="schedule",
        amount="1",
        token="BNB",
        recipient=ADDR_A,
        execute_at=5000,
        memo="Scheduled payment in 1 hour",
    )
    op, fields = plan_operation(intent)
    assert op == "schedule"
    assert fields == {
        "to": ADDR_A,
        "token": "BNB",
        "amount": "1",
        "execute_at": 5000,
        "memo": "Scheduled payment in 1 hour",
    }


def test_conditional_defaults():
    op, fields = plan_operation(TransactionIntent(type="conditional", amount="1", recipient=ADDR_A))
    assert op == "conditional"
    assert fields["price_threshold"] == "0"
    assert fields["is_above_threshold"] is True


def test_swap_team_faucet():
    assert plan_operation(
        TransactionIntent(type="swap", amount="1", from_token="BNB", to_token="USDT")
    ) == ("swap", {"from_token": "BNB", "to_token": "USDT", "amount": "1"})

    op, fields = plan_operation(
        TransactionIntent(type="team", team_name="Ops", team_members=[ADDR_A], required_approvals=1)
    )
    assert op == "team"
    assert fields == {"name": "Ops", "members": [ADDR_A], "required_approvals": 1}

    assert plan_operation(TransactionIntent(type="faucet")) == ("faucet", {})


def test_read_only_intents_are_not_dispatchable():
    with pytest.raises(NotDispatchable):
        plan_operation(TransactionIntent(type="balance"))


def test_dispatch_calls_submitter_once():
    sub = FakeSubmitter()
    out = asyncio.run(dispatch(TransactionIntent(type="faucet"), sub))
    assert out == DispatchOutcome(success=True, transaction_id="0xhash")
    assert sub.calls == [("faucet", {})]


def test_dispatch_turns_errors_into_outcome():
    out = asyncio.run(dispatch(TransactionIntent(type="faucet"), FakeSubmitter(exc=RuntimeError("reverted"))))
    assert out.success is False
    assert out.error_message == "reverted"
    assert out.transaction_id is None


def test_dispatch_read_only_never_reaches_submitter():
    sub = FakeSubmitter()
    out = asyncio.run(dispatch(TransactionIntent(type="reputation", recipient=ADDR_A), sub))
    assert out.success is False
    assert sub.calls == []


def test_history_entries():
    ok = DispatchOutcome(success=True, transaction_id="0xhash")

    rec = history_entry(TransactionIntent(type="faucet"), ok, from_address=WALLET, now_ts=10)
    assert (rec.token, rec.amount, rec.to_address) == ("CMT", "100", WALLET)

    rec = history_entry(
        TransactionIntent(type="swap", amount="1", from_token="BNB", to_token="USDT"),
        ok,
        from_address=WALLET,
        now_ts=10,
    )
    assert rec.memo == "BNB -> USDT"
    assert rec.tx_hash == "0xhash"

    assert (
        history_entry(
            TransactionIntent(type="contact", contact_name="A", recipient=ADDR_A),
            ok,
            from_address=WALLET,
            now_ts=10,
        )
        is None
    )
