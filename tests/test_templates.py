from chainmate_bot.bot import templates
from chainmate_bot.intent.types import RiskAssessment, TransactionIntent, TransactionRecord

ADDR = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"


def test_md_escape():
    assert templates.md_escape("a_b*c") == "a\\_b\\*c"
    assert templates.md_escape(None) == ""


def test_short_address():
    assert templates.short_address(ADDR) == "0x742d...bEb0"
    assert templates.short_address(None) == "—"


def test_confirmation_prompt_schedule():
    intent = TransactionIntent(
        type="schedule",
        amount="1",
        token="BNB",
        recipient=ADDR,
        execute_at=0,
        memo="Scheduled payment in 48 hours",
    )
    text = templates.confirmation_prompt(intent)
    assert "💰 Amount: 1 BNB" in text
    assert "1970-01-01 00:00 UTC" in text
    assert "📝 Memo: Scheduled payment in 48 hours" in text
    assert text.endswith('Reply with "confirm" to proceed or "cancel" to abort.')


def test_confirmation_prompt_team():
    intent = TransactionIntent(
        type="team", team_name="Ops", team_members=[ADDR, ADDR], required_approvals=1
    )
    text = templates.confirmation_prompt(intent)
    assert "Members: 2" in text
    assert "Required approvals: 1" in text


def test_risk_block_only_with_warnings():
    assert templates.risk_block(RiskAssessment(risk_level="low")) is None
    block = templates.risk_block(RiskAssessment(risk_level="medium", warnings=["No history"]))
    assert "MEDIUM" in block
    assert "No history" in block


def test_cancelled_message():
    assert templates.cancelled_message() == "❌ Transaction cancelled. How else can I help you?"


def test_history_message():
    rec = TransactionRecord(
        id="1",
        type="send",
        from_address="",
        to_address=ADDR,
        amount="1",
        token="BNB",
        tx_hash="0xabc",
        timestamp=0,
        status="success",
    )
    text = templates.history_message([rec], "https://testnet.bscscan.com/")
    assert "send 1 BNB → 0x742d...bEb0" in text
    assert "https://testnet.bscscan.com/tx/0xabc" in text
    assert templates.history_message([], "x") == "ℹ️ No transactions yet."
