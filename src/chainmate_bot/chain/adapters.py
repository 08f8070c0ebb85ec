from __future__ import annotations

import asyncio
from typing import Any

from chainmate_bot.intent.types import Reputation, SwapQuote

from .client import ChainClient, ChainError


class ChainGateway:
    """
    Async face of ChainClient for the conversation pipeline.

    One instance serves one user: reputation, quotes, balances and the
    submitter all share the client built with that user's signing key.
    web3 calls block, so each one runs in a worker thread.
    """

    def __init__(self, client: ChainClient):
        self.client = client

    async def get_reputation(self, address: str) -> Reputation:
        return await asyncio.to_thread(self.client.reputation, address)

    async def get_swap_quote(self, from_token: str, to_token: str, amount: str) -> SwapQuote:
        return await asyncio.to_thread(self.client.quote, from_token, to_token, amount)

    async def get_balances(self, address: str) -> dict[str, str]:
        return await asyncio.to_thread(self.client.balances, address)

    async def submit(self, operation: str, fields: dict[str, Any]) -> str:
        c = self.client
        f = fields

        if operation == "transfer":
            return await asyncio.to_thread(c.transfer, f["to"], f["amount"])
        if operation == "token_transfer":
            return await asyncio.to_thread(c.token_transfer, f["to"], f["amount"], f["token"])
        if operation == "schedule":
            return await asyncio.to_thread(
                c.create_scheduled_payment,
                f["to"],
                f["token"],
                f["amount"],
                f["execute_at"],
                f.get("memo", ""),
            )
        if operation == "conditional":
            return await asyncio.to_thread(
                c.create_conditional_payment,
                f["to"],
                f["token"],
                f["amount"],
                f["price_threshold"],
                f["is_above_threshold"],
                f.get("memo", ""),
            )
        if operation == "team":
            return await asyncio.to_thread(
                c.create_team, f["name"], f["members"], f["required_approvals"]
            )
        if operation == "contact":
            return await asyncio.to_thread(c.add_contact, f["name"], f["address"])
        if operation == "swap":
            return await asyncio.to_thread(c.swap, f["from_token"], f["to_token"], f["amount"])
        if operation == "faucet":
            return await asyncio.to_thread(c.claim_faucet)

        raise ChainError(f"Unsupported operation: {operation}")
