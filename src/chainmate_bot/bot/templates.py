from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from chainmate_bot.intent.types import (
    DEFAULT_TOKEN,
    Reputation,
    RiskAssessment,
    SwapQuote,
    TransactionIntent,
    TransactionRecord,
)

_MD_SPECIAL = "\\`*_[]()"


def md_escape(text: str | None) -> str:
    if text is None:
        return ""
    out = []
    for ch in str(text):
        if ch in _MD_SPECIAL:
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def section(title: str, lines: Iterable[str]) -> str:
    body = "\n".join(line for line in lines if line)
    return f"*{title}*\n{body}".strip()


def info(message: str) -> str:
    return f"ℹ️ {message}"


def success(message: str) -> str:
    return f"✅ {message}"


def warning(message: str) -> str:
    return f"⚠️ {message}"


def error(message: str) -> str:
    return f"❌ {message}"


def divider() -> str:
    return "──────────────────"


def bullets(items: Iterable[str], *, prefix: str = "• ") -> str:
    xs = [x for x in items if x]
    return "\n".join(prefix + x for x in xs)


def short_address(value: str | None) -> str:
    if not value:
        return "—"
    if len(value) <= 12:
        return value
    return f"{value[:6]}...{value[-4:]}"


def fmt_ts(ts: int | None) -> str:
    if ts is None:
        return "—"
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def tx_link(explorer_url: str, tx_hash: str) -> str:
    return f"{explorer_url.rstrip('/')}/tx/{tx_hash}"


def start_message() -> str:
    parts: list[str] = []
    parts.append("👋 *ChainMate*")
    parts.append("")
    parts.append(
        "Hi! I'm ChainMate, your AI companion for BSC transactions. I can help you send "
        "tokens, schedule payments, manage contacts, and analyze wallets."
    )
    parts.append("")
    parts.append(
        section(
            "Quick start",
            [
                "/wallet <private key> — connect a signing wallet",
                "/addcontact Alice 0x... — save a contact",
                "/help — all commands",
            ],
        )
    )
    parts.append("")
    parts.append(
        section(
            "Try saying",
            [
                bullets(
                    [
                        "Send 10 BNB to 0x...",
                        "Schedule 0.5 BNB to Alice in 2 days",
                        "Pay 1 BNB to Bob if BNB price goes above 300",
                        "Swap 1 BNB to USDT",
                        "Check my balance",
                    ]
                )
            ],
        )
    )
    parts.append("")
    parts.append("Nothing moves until you reply *confirm*.")
    return "\n".join(parts).strip()


def help_message() -> str:
    parts: list[str] = []
    parts.append("📘 *Help*")
    parts.append("")
    parts.append(
        section(
            "Wallet",
            [
                "/wallet <private key> — connect the wallet that signs transactions",
                "/status — wallet, network and pending request",
                "/keeper on|off — auto-execute your due scheduled payments",
            ],
        )
    )
    parts.append("")
    parts.append(
        section(
            "Contacts & history",
            [
                "/contacts — saved contacts",
                "/addcontact <name> <address> — save locally",
                "/history — recent transactions",
                "/analyze <address> — AI wallet analysis",
            ],
        )
    )
    parts.append("")
    parts.append(
        section(
            "Natural language",
            [
                "Send, schedule, conditional payments, swaps, teams, contacts, faucet, balance, reputation.",
                "Every transaction is shown for confirmation first: reply confirm or cancel.",
            ],
        )
    )
    return "\n".join(parts).strip()


def describe_intent(intent: TransactionIntent) -> str:
    token = intent.token or DEFAULT_TOKEN
    if intent.type == "send":
        return f"send {intent.amount} {token} to {short_address(intent.recipient)}"
    if intent.type == "schedule":
        return f"schedule {intent.amount} {token} to {short_address(intent.recipient)}"
    if intent.type == "conditional":
        direction = "above" if intent.is_above_threshold is not False else "below"
        return (
            f"pay {intent.amount} {token} to {short_address(intent.recipient)} "
            f"when price is {direction} {intent.price_threshold}"
        )
    if intent.type == "swap":
        return f"swap {intent.amount or '?'} {intent.from_token or '?'} to {intent.to_token or '?'}"
    if intent.type == "team":
        return f"create team {intent.team_name} ({len(intent.team_members)} members)"
    if intent.type == "contact":
        return f"add contact {intent.contact_name}"
    if intent.type == "faucet":
        return "claim from the faucet"
    return intent.type


def risk_block(risk: RiskAssessment | None) -> str | None:
    if risk is None or not risk.warnings:
        return None
    lines = [f"🛡 *Risk check: {risk.risk_level.upper()}*"]
    lines.extend(warning(md_escape(w)) for w in risk.warnings)
    return "\n".join(lines)


def quote_block(intent: TransactionIntent, quote: SwapQuote) -> str:
    hops = quote.hop_count
    return (
        f"📈 Quote: {md_escape(intent.amount)} {intent.from_token} ≈ "
        f"{md_escape(quote.amount_out)} {intent.to_token} "
        f"({hops} hop{'s' if hops != 1 else ''})"
    )


def confirmation_prompt(
    intent: TransactionIntent,
    *,
    risk: RiskAssessment | None = None,
    quote: SwapQuote | None = None,
) -> str:
    parts: list[str] = []

    rb = risk_block(risk)
    if rb:
        parts.append(rb)
        parts.append(divider())

    lines: list[str] = ["Please confirm this transaction:", ""]
    token = intent.token or DEFAULT_TOKEN

    if intent.type == "send":
        lines.append(f"💰 Amount: {md_escape(intent.amount)} {token}")
        lines.append(f"📍 To: {intent.recipient}")
    elif intent.type == "schedule":
        lines.append(f"💰 Amount: {md_escape(intent.amount)} {token}")
        lines.append(f"📍 To: {intent.recipient}")
        lines.append(f"⏰ Executes at: {fmt_ts(intent.execute_at)}")
    elif intent.type == "conditional":
        direction = "above" if intent.is_above_threshold is not False else "below"
        lines.append(f"💰 Amount: {md_escape(intent.amount)} {token}")
        lines.append(f"📍 To: {intent.recipient}")
        lines.append(f"🎯 Condition: price {direction} {md_escape(intent.price_threshold)}")
    elif intent.type == "swap":
        lines.append(f"🔁 Swap: {md_escape(intent.amount)} {intent.from_token} → {intent.to_token}")
        if quote is not None:
            lines.append(quote_block(intent, quote))
    elif intent.type == "team":
        lines.append(f"👥 Team: {md_escape(intent.team_name)}")
        lines.append(f"Members: {len(intent.team_members)}")
        for m in intent.team_members:
            lines.append(f"  • {m}")
        lines.append(f"Required approvals: {intent.required_approvals}")
    elif intent.type == "contact":
        lines.append(f"📇 Contact: {md_escape(intent.contact_name)}")
        lines.append(f"📍 Address: {intent.recipient}")
    elif intent.type == "faucet":
        lines.append("🚰 Claim 100 CMT from the faucet")

    if intent.memo:
        lines.append(f"📝 Memo: {md_escape(intent.memo)}")

    lines.append("")
    lines.append('Reply with "confirm" to proceed or "cancel" to abort.')
    parts.append("\n".join(lines))
    return "\n\n".join(parts).strip()


def cancelled_message() -> str:
    return error("Transaction cancelled. How else can I help you?")


def processing_message() -> str:
    return success("Transaction confirmed! Processing your request...")


def dispatch_success_message(intent: TransactionIntent, tx_hash: str, explorer_url: str) -> str:
    return "\n".join(
        [
            success(f"Done: {md_escape(describe_intent(intent))}"),
            f"Tx: {tx_hash}",
            tx_link(explorer_url, tx_hash),
        ]
    )


def dispatch_failed_message(error_message: str) -> str:
    return error(f"Transaction failed: {md_escape(error_message)}")


def replaced_notice(previous: TransactionIntent) -> str:
    return info(f"Previous request discarded: {md_escape(describe_intent(previous))}.")


def expired_notice(previous: TransactionIntent) -> str:
    return info(
        f"Your pending request ({md_escape(describe_intent(previous))}) expired and was discarded."
    )


def pending_reminder(pending: TransactionIntent) -> str:
    return info(
        f"Still waiting on: {md_escape(describe_intent(pending))}. "
        'Reply "confirm" or "cancel".'
    )


def quote_failed_message(intent: TransactionIntent, reason: str) -> str:
    return error(
        f"Couldn't get a quote for {intent.from_token} → {intent.to_token}: {md_escape(reason)}. "
        "Nothing was submitted."
    )


def fallback_reply() -> str:
    return "I'm having trouble processing that request. Could you please rephrase?"


def wallet_required_message() -> str:
    return warning("Connect a wallet first: /wallet <private key>, or include an address.")


def balance_message(address: str, balances: dict[str, str]) -> str:
    lines = [f"💼 *Balance of* {short_address(address)}"]
    if not balances:
        lines.append("No balances found.")
    for symbol, amount in balances.items():
        lines.append(f"• {symbol}: {md_escape(amount)}")
    return "\n".join(lines)


def reputation_message(address: str, rep: Reputation, risk: RiskAssessment) -> str:
    lines = [f"🛡 *Reputation of* {short_address(address)}"]
    lines.append(f"Transactions: {rep.transaction_count}")
    lines.append(f"Flagged: {'yes' if rep.is_flagged else 'no'}")
    lines.append(f"Risk level: {risk.risk_level}")
    lines.extend(warning(md_escape(w)) for w in risk.warnings)
    return "\n".join(lines)


def lookup_failed_message(what: str) -> str:
    return warning(f"Couldn't load the {what} right now. Try again in a minute.")


def contacts_message(contacts: list) -> str:
    if not contacts:
        return info("No contacts yet. Add one: /addcontact Alice 0x...")
    lines = ["📇 *Contacts*"]
    for c in contacts:
        mark = " ✅" if getattr(c, "verified", False) else ""
        lines.append(f"• {md_escape(c.name)}: {c.address}{mark}")
    return "\n".join(lines)


def history_message(records: list[TransactionRecord], explorer_url: str) -> str:
    if not records:
        return info("No transactions yet.")
    lines = ["🧾 *Recent transactions*"]
    for r in records:
        status = "✅" if r.status == "success" else "❌"
        head = f"{status} {fmt_ts(r.timestamp)} {r.type} {md_escape(r.amount)} {r.token}".rstrip()
        if r.to_address:
            head += f" → {short_address(r.to_address)}"
        lines.append(head)
        if r.tx_hash:
            lines.append(f"   {tx_link(explorer_url, r.tx_hash)}")
    return "\n".join(lines)


def unknown_message() -> str:
    return warning("I didn't catch that. Try: \"Send 10 BNB to 0x...\"")


def failed_message() -> str:
    return error("Sorry, I encountered an error. Please try again.")


def llm_unavailable_message() -> str:
    return warning("AI analysis is unavailable right now. Showing on-chain data only.")


def wallet_connect_instructions() -> str:
    return "\n".join(
        [
            "🔐 *Connect a wallet*",
            "",
            "Send `/wallet <private key>` with the key of a BSC testnet wallet.",
            "The key is stored encrypted and only used to sign transactions you confirm.",
            "Delete the message with the key afterwards.",
        ]
    )


def wallet_connected_message(address: str) -> str:
    return success(f"Wallet connected: {address}")


def keeper_status_message(enabled: bool) -> str:
    return info(f"Keeper: {'ON' if enabled else 'OFF'}. Toggle with /keeper on|off")


def keeper_executed_message(payment_id: int, tx_hash: str, explorer_url: str) -> str:
    return "\n".join(
        [
            success(f"Scheduled payment #{payment_id} executed."),
            tx_link(explorer_url, tx_hash),
        ]
    )


def keeper_failed_message(payment_id: int, reason: str) -> str:
    return error(f"Scheduled payment #{payment_id} failed: {md_escape(reason)}")


def wallet_report_message(report, risk: str, age: str) -> str:
    data = report.data
    parts: list[str] = []
    parts.append(f"🔍 *Wallet analysis* {short_address(data.address)}")
    parts.append("")
    overview = [
        f"Type: {'Smart contract' if data.is_contract else 'Wallet (EOA)'}",
        f"BNB: {md_escape(data.bnb_balance)}",
        f"Transactions: {data.transaction_count}",
        f"Risk level: {risk}",
        f"Wallet age: {age}",
    ]
    if data.reputation is not None:
        overview.append(
            f"On-chain reputation: {data.reputation.transaction_count} txs, "
            f"flagged: {'yes' if data.reputation.is_flagged else 'no'}"
        )
    parts.append(section("Overview", overview))

    held = [t for t in data.token_balances if t.balance not in ("0", "")]
    if held:
        parts.append("")
        parts.append(section("Tokens", [bullets(f"{t.symbol}: {md_escape(t.balance)}" for t in held)]))

    if data.recent_transactions:
        parts.append("")
        rows = []
        for tx in data.recent_transactions[:5]:
            direction = "out" if tx.from_.lower() == data.address.lower() else "in"
            mark = "❌ " if tx.isError == "1" else ""
            ts = int(tx.timeStamp) if tx.timeStamp.isdigit() else None
            rows.append(f"{mark}{fmt_ts(ts)} {direction} {short_address(tx.hash)}")
        parts.append(section("Recent transactions", [bullets(rows)]))

    if data.is_contract:
        parts.append("")
        src = data.contract_source
        parts.append(
            section(
                "Contract",
                [
                    f"Verified: {'yes' if src else 'no'}",
                    f"Name: {md_escape(src.contract_name)}" if src else "",
                    f"Proxy: {'yes' if src and src.proxy else 'no'}",
                ],
            )
        )

    if report.ai_analysis:
        parts.append("")
        parts.append(divider())
        parts.append("🤖 *AI analysis*")
        parts.append(md_escape(report.ai_analysis))

    if report.contract_analysis:
        parts.append("")
        parts.append("🧪 *Contract security*")
        parts.append(md_escape(report.contract_analysis))

    return "\n".join(parts).strip()
