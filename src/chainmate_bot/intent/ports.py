from __future__ import annotations

from typing import Any, Protocol

from chainmate_bot.intent.types import Reputation, SwapQuote


class ContactLookup(Protocol):
    def lookup(self, name: str) -> str | None: ...


class ReputationSource(Protocol):
    async def get_reputation(self, address: str) -> Reputation: ...


class QuoteSource(Protocol):
    async def get_swap_quote(self, from_token: str, to_token: str, amount: str) -> SwapQuote: ...


class Submitter(Protocol):
    """
    operation is one of: transfer, token_transfer, schedule, conditional,
    team, contact, swap, faucet. Returns the transaction hash, raises on failure.
    """

    async def submit(self, operation: str, fields: dict[str, Any]) -> str: ...


class BalanceSource(Protocol):
    async def get_balances(self, address: str) -> dict[str, str]: ...


class ReplyGenerator(Protocol):
    async def generate_reply(self, prior_turns: list[dict[str, str]], utterance: str) -> str: ...
