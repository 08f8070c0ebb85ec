from __future__ import annotations

import logging
from dataclasses import dataclass

from chainmate_bot.intent.ports import QuoteSource, ReputationSource
from chainmate_bot.intent.types import (
    RISK_CHECKED_INTENTS,
    Reputation,
    RiskAssessment,
    SwapQuote,
    TransactionIntent,
)

logger = logging.getLogger(__name__)

TRUSTED_TX_COUNT = 100


class QuoteFailed(RuntimeError):
    pass


@dataclass(frozen=True)
class Enrichment:
    risk: RiskAssessment | None = None
    quote: SwapQuote | None = None


def risk_from_reputation(rep: Reputation) -> RiskAssessment:
    warnings: list[str] = []
    if rep.is_flagged:
        warnings.append("This address has been flagged as suspicious.")
    if rep.transaction_count <= 0:
        warnings.append("This address has no recorded transaction history.")

    if rep.is_flagged:
        level = "high"
    elif rep.transaction_count > TRUSTED_TX_COUNT:
        level = "low"
    else:
        level = "medium"
    return RiskAssessment(risk_level=level, warnings=warnings)


async def assess_risk(
    intent: TransactionIntent, source: ReputationSource
) -> RiskAssessment | None:
    """Advisory only: any lookup failure yields None and the flow continues."""
    if intent.type not in RISK_CHECKED_INTENTS or not intent.recipient:
        return None
    try:
        rep = await source.get_reputation(intent.recipient)
    except Exception as e:
        logger.warning("Reputation lookup failed for %s: %s", intent.recipient, e)
        return None
    return risk_from_reputation(rep)


async def fetch_quote(intent: TransactionIntent, source: QuoteSource) -> SwapQuote:
    if not intent.from_token or not intent.to_token or not intent.amount:
        raise QuoteFailed("swap needs both tokens and an amount")
    try:
        quote = await source.get_swap_quote(intent.from_token, intent.to_token, intent.amount)
    except Exception as e:
        logger.warning(
            "Swap quote failed %s->%s amount=%s: %s",
            intent.from_token,
            intent.to_token,
            intent.amount,
            e,
        )
        raise QuoteFailed(str(e) or "no route available") from e
    return quote


async def enrich(
    intent: TransactionIntent,
    reputation: ReputationSource,
    quotes: QuoteSource,
) -> Enrichment:
    if intent.type == "swap":
        return Enrichment(quote=await fetch_quote(intent, quotes))
    return Enrichment(risk=await assess_risk(intent, reputation))
