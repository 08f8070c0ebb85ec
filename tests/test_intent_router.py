from chainmate_bot.intent.router import RULES, classify, describe_delay, route
from chainmate_bot.intent.types import TurnRequest

ADDR_A = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
ADDR_B = "0x892d35Cc6634C0532925a3b844Bc9e7595f0aAa1"
ADDR_C = "0x1111111111111111111111111111111111111111"

NOW = 1_700_000_000


def test_rule_order_is_fixed():
    assert [r.name for r in RULES] == [
        "faucet",
        "balance",
        "reputation",
        "contact",
        "team",
        "schedule",
        "conditional",
        "send",
        "swap",
    ]


def test_send_with_address():
    intent = classify(f"Send 0.5 BNB to {ADDR_A}", NOW)
    assert intent.type == "send"
    assert intent.amount == "0.5"
    assert intent.token == "BNB"
    assert intent.recipient == ADDR_A
    assert intent.contact_name is None


def test_send_dollar_amount_to_contact():
    intent = classify("Send $20 to Alice", NOW)
    assert intent.type == "send"
    assert intent.amount == "20"
    assert intent.token == "USDT"
    assert intent.recipient is None
    assert intent.contact_name == "Alice"


def test_send_defaults_to_bnb():
    intent = classify(f"transfer 3 to {ADDR_A}", NOW)
    assert intent.type == "send"
    assert intent.token == "BNB"


def test_short_address_is_not_a_recipient():
    intent = classify("Send 10 BNB to 0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb", NOW)
    assert intent.type == "send"
    assert intent.recipient is None
    assert intent.contact_name is None


def test_schedule_relative_days():
    intent = classify(f"Schedule 1 BNB to {ADDR_A} in 2 days", NOW)
    assert intent.type == "schedule"
    assert intent.amount == "1"
    assert intent.execute_at == NOW + 2 * 86400
    assert intent.memo == "Scheduled payment in 48 hours"


def test_schedule_minutes_memo():
    intent = classify(f"send 1 BNB to {ADDR_A} in 30 minutes", NOW)
    assert intent.type == "schedule"
    assert intent.execute_at == NOW + 1800
    assert intent.memo == "Scheduled payment in 30 minutes"


def test_schedule_beats_send_for_tomorrow():
    intent = classify("Pay 1 BNB to Bob tomorrow", NOW)
    assert intent.type == "schedule"
    assert intent.contact_name == "Bob"
    assert intent.execute_at == NOW + 86400


def test_schedule_without_amount_is_not_schedule():
    assert classify("schedule something for later", NOW) is None


def test_conditional_above():
    intent = classify(f"Pay 1 BNB to {ADDR_A} if BNB price goes above 300", NOW)
    assert intent.type == "conditional"
    assert intent.amount == "1"
    assert intent.price_threshold == "300"
    assert intent.is_above_threshold is True
    assert intent.memo == "Pay when price goes above 300"


def test_conditional_dollar_threshold_keeps_token_amount():
    intent = classify(f"Pay 1 BNB to {ADDR_A} if BNB price goes above $300", NOW)
    assert intent.type == "conditional"
    assert (intent.amount, intent.token) == ("1", "BNB")
    assert intent.price_threshold == "300"
    assert intent.is_above_threshold is True

    intent = classify(f"Send 5 USDT to {ADDR_A} when price is below $1,200", NOW)
    assert (intent.amount, intent.token) == ("5", "USDT")
    assert intent.price_threshold == "1200"
    assert intent.is_above_threshold is False


def test_send_comma_grouped_amount():
    intent = classify(f"Send 1,500 BNB to {ADDR_A}", NOW)
    assert intent.type == "send"
    assert intent.amount == "1500"


def test_conditional_below():
    intent = classify(f"Send 2 BNB to {ADDR_A} when price is below 250", NOW)
    assert intent.type == "conditional"
    assert intent.amount == "2"
    assert intent.price_threshold == "250"
    assert intent.is_above_threshold is False


def test_faucet_wins_over_send():
    assert classify("Send 5 BNB to the faucet", NOW).type == "faucet"
    assert classify("claim test tokens", NOW).type == "faucet"


def test_balance_with_and_without_address():
    assert classify("What's my balance?", NOW).recipient is None

    intent = classify(f"how much BNB does {ADDR_A} have", NOW)
    assert intent.type == "balance"
    assert intent.recipient == ADDR_A


def test_reputation():
    intent = classify(f"check reputation of {ADDR_A}", NOW)
    assert intent.type == "reputation"
    assert intent.recipient == ADDR_A


def test_contact_add():
    intent = classify(f"add contact Alice {ADDR_A}", NOW)
    assert intent.type == "contact"
    assert intent.contact_name == "Alice"
    assert intent.recipient == ADDR_A


def test_team_default_approvals_is_majority():
    intent = classify(f"create team Ops with {ADDR_A} {ADDR_B} {ADDR_C}", NOW)
    assert intent.type == "team"
    assert intent.team_name == "Ops"
    assert intent.team_members == [ADDR_A, ADDR_B, ADDR_C]
    assert intent.required_approvals == 2

    intent = classify(f"create team Ops with {ADDR_A} {ADDR_B}", NOW)
    assert intent.required_approvals == 1


def test_team_explicit_approvals():
    intent = classify(f"new team Core {ADDR_A} {ADDR_B} {ADDR_C} 3 approvals", NOW)
    assert intent.required_approvals == 3


def test_swap():
    intent = classify("Swap 1 BNB to USDT", NOW)
    assert intent.type == "swap"
    assert (intent.amount, intent.from_token, intent.to_token) == ("1", "BNB", "USDT")


def test_swap_without_pair_still_classified():
    intent = classify("I want to trade", NOW)
    assert intent.type == "swap"
    assert intent.from_token is None


def test_non_actionable():
    assert classify("hello there", NOW) is None
    assert classify("send money", NOW) is None
    assert classify("   ", NOW) is None


def test_route_ignores_assistant_text():
    req = TurnRequest(user_id=1, text="Swap 1 BNB to USDT", now_ts=NOW)
    assert route(req, assistant_text="Sure, send 99 BNB") == classify(req.text, NOW)


def test_describe_delay_units():
    assert describe_delay(0.5) == "30 minutes"
    assert describe_delay(1 / 3600) == "1 second"
    assert describe_delay(1.5) == "1.5 hours"
    assert describe_delay(1) == "1 hour"
