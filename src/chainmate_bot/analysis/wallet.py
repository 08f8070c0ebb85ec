from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from chainmate_bot.chain.models import (
    ContractSource,
    ExplorerTx,
    ReputationData,
    TokenBalance,
    WalletAnalysis,
)

logger = logging.getLogger(__name__)

AI_ANALYSIS_FAILED = "Unable to generate AI analysis."
CONTRACT_ANALYSIS_FAILED = "Unable to generate contract security analysis."


class WalletAnalyst(Protocol):
    async def analyze_wallet(self, data: WalletAnalysis) -> str: ...

    async def audit_contract(self, data: WalletAnalysis) -> str: ...


@dataclass(frozen=True)
class WalletReport:
    data: WalletAnalysis
    ai_analysis: str | None = None
    contract_analysis: str | None = None


def risk_label(data: WalletAnalysis) -> str:
    if data.reputation is not None and data.reputation.is_flagged:
        return "High"
    if data.transaction_count > 50:
        return "Low"
    if data.transaction_count > 5:
        return "Medium"
    if data.transaction_count > 0:
        return "New"
    return "Unknown"


def wallet_age(data: WalletAnalysis, now_ts: int | None = None) -> str:
    if not data.first_tx_timestamp:
        return "Active" if data.transaction_count > 0 else "—"

    now = int(time.time()) if now_ts is None else int(now_ts)
    days = (now - data.first_tx_timestamp) // 86400
    if days < 1:
        return "< 1 day"
    if days < 30:
        return f"{days} days"
    if days < 365:
        return f"{days // 30} months"
    return f"{days / 365:.1f} years"


def _token_balances(chain, address: str) -> list[TokenBalance]:
    out: list[TokenBalance] = []
    for symbol, token_addr in chain.tokens.items():
        if symbol in ("WBNB", "BNB"):
            continue
        try:
            out.append(
                TokenBalance(
                    symbol=symbol,
                    balance=chain.token_balance(symbol, address),
                    address=token_addr,
                )
            )
        except Exception as e:
            logger.debug("token balance %s skipped for %s: %s", symbol, address, e)
    return out


def _reputation(chain, address: str) -> ReputationData:
    rep = chain.reputation(address)
    return ReputationData(transaction_count=rep.transaction_count, is_flagged=rep.is_flagged)


def _ok(value: Any, default: Any, what: str, address: str) -> Any:
    if isinstance(value, BaseException):
        logger.warning("wallet analysis: %s failed for %s: %s", what, address, value)
        return default
    return value


async def collect_wallet_data(address: str, chain, explorer) -> WalletAnalysis:
    """
    Every lookup runs concurrently and is isolated: a failed one falls back
    to its default instead of failing the whole analysis.
    """
    results = await asyncio.gather(
        asyncio.to_thread(chain.native_balance, address),
        asyncio.to_thread(_token_balances, chain, address),
        asyncio.to_thread(chain.transaction_count, address),
        asyncio.to_thread(chain.is_contract, address),
        asyncio.to_thread(explorer.recent_transactions, address),
        asyncio.to_thread(_reputation, chain, address),
        asyncio.to_thread(explorer.first_tx_timestamp, address),
        return_exceptions=True,
    )

    bnb = _ok(results[0], "0", "bnb balance", address)
    tokens: list[TokenBalance] = _ok(results[1], [], "token balances", address)
    tx_count: int = _ok(results[2], 0, "tx count", address)
    is_contract: bool = _ok(results[3], False, "code lookup", address)
    recent: list[ExplorerTx] = _ok(results[4], [], "recent transactions", address)
    reputation: ReputationData | None = _ok(results[5], None, "reputation", address)
    first_ts: int | None = _ok(results[6], None, "first tx", address)

    if not first_ts and recent:
        stamps = [int(tx.timeStamp) for tx in recent if tx.timeStamp.isdigit()]
        first_ts = min(stamps) if stamps else None

    source: ContractSource | None = None
    if is_contract:
        try:
            source = await asyncio.to_thread(explorer.contract_source, address)
        except Exception as e:
            logger.warning("wallet analysis: contract source failed for %s: %s", address, e)

    return WalletAnalysis(
        address=address,
        bnb_balance=bnb,
        token_balances=tokens,
        transaction_count=tx_count,
        is_contract=is_contract,
        recent_transactions=recent,
        reputation=reputation,
        first_tx_timestamp=first_ts,
        contract_source=source,
    )


async def _safe(coro, fallback: str, what: str) -> str:
    try:
        text = await coro
    except Exception as e:
        logger.warning("%s failed: %s", what, e)
        return fallback
    return (text or "").strip() or fallback


async def analyze_wallet(
    address: str, chain, explorer, analyst: WalletAnalyst | None = None
) -> WalletReport:
    data = await collect_wallet_data(address, chain, explorer)
    if analyst is None:
        return WalletReport(data=data)

    if not data.is_contract:
        ai = await _safe(analyst.analyze_wallet(data), AI_ANALYSIS_FAILED, "AI wallet analysis")
        return WalletReport(data=data, ai_analysis=ai)

    ai, audit = await asyncio.gather(
        _safe(analyst.analyze_wallet(data), AI_ANALYSIS_FAILED, "AI wallet analysis"),
        _safe(analyst.audit_contract(data), CONTRACT_ANALYSIS_FAILED, "AI contract audit"),
    )
    return WalletReport(data=data, ai_analysis=ai, contract_analysis=audit)
