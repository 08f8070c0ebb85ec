from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from chainmate_bot.chain.models import WalletAnalysis

SYSTEM_PROMPT = (
    "You are ChainMate, an AI assistant for blockchain transactions on BSC (Binance Smart Chain).\n\n"
    "You help users with:\n"
    "1. Sending tokens/BNB to addresses or contacts\n"
    "2. Scheduling future payments\n"
    "3. Creating conditional payments based on price\n"
    "4. Managing contacts and teams\n"
    "5. Analyzing transaction history\n"
    "6. Providing transaction insights\n\n"
    "You never execute transactions yourself. When the user wants one, tell them the exact "
    'phrase to use, for example "Send 0.1 BNB to 0x..." or "Swap 1 BNB to USDT"; '
    "the bot will show it for confirmation.\n"
    "Be helpful, clear, and security-conscious. Respond in a friendly, conversational tone."
)

WALLET_ANALYST_PROMPT = (
    "You are a blockchain security analyst for BSC wallets.\n"
    "Use ONLY the facts JSON you are given. Do not invent balances, counterparties or history.\n"
    "Cover: activity level and wallet age, holdings, notable counterparties or patterns in the "
    "recent transactions, on-chain reputation, and an overall risk verdict with 2-4 concrete "
    "recommendations. Plain text, short paragraphs, no markdown tables."
)

CONTRACT_AUDITOR_PROMPT = (
    "You are a smart-contract security auditor.\n"
    "Review the verified Solidity source you are given. List the most important risks "
    "(owner privileges, mint/burn, pausing, blacklists, upgradeability, external calls, "
    "reentrancy), each with severity Low/Medium/High, then a one-line verdict. "
    "If no source is available, say so and judge only from the on-chain facts. Plain text."
)

# keeps the audit prompt inside the model context window
MAX_SOURCE_CHARS = 24_000


def wallet_facts(data: WalletAnalysis) -> dict[str, Any]:
    return {
        "address": data.address,
        "bnb_balance": data.bnb_balance,
        "token_balances": [t.model_dump() for t in data.token_balances],
        "transaction_count": data.transaction_count,
        "is_contract": data.is_contract,
        "first_tx_timestamp": data.first_tx_timestamp,
        "reputation": data.reputation.model_dump() if data.reputation else None,
        "recent_transactions": [
            {
                "hash": tx.hash,
                "from": tx.from_,
                "to": tx.to,
                "value_wei": tx.value,
                "timestamp": tx.timeStamp,
                "failed": tx.isError == "1",
                "method": tx.functionName,
            }
            for tx in data.recent_transactions[:15]
        ],
    }


class OpenAIClient:
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout_s: float = 30.0):
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not set")
        self.api_key = api_key
        self.model = model
        self.client = httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def _chat(self, messages: list[dict[str, str]], temperature: float = 0.2) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }

        r = self.client.post(
            "https://api.openai.com/v1/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
        )
        r.raise_for_status()
        data = r.json()
        return data["choices"][0]["message"]["content"]

    def generate_reply(self, prior_turns: list[dict[str, str]], utterance: str) -> str:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        for turn in prior_turns:
            if turn.get("role") in ("user", "assistant") and turn.get("content"):
                messages.append({"role": turn["role"], "content": turn["content"]})
        messages.append({"role": "user", "content": utterance})
        return self._chat(messages, temperature=0.7).strip()

    def analyze_wallet(self, data: WalletAnalysis) -> str:
        user = f"facts: {json.dumps(wallet_facts(data), ensure_ascii=False)}"
        return self._chat(
            [
                {"role": "system", "content": WALLET_ANALYST_PROMPT},
                {"role": "user", "content": user},
            ]
        ).strip()

    def audit_contract(self, data: WalletAnalysis) -> str:
        src = data.contract_source
        if src is None:
            body = "Source code: not verified on BscScan."
        else:
            body = (
                f"Contract: {src.contract_name}\n"
                f"Compiler: {src.compiler_version} (optimization={src.optimization_used}, runs={src.runs})\n"
                f"License: {src.license_type}\n"
                f"Proxy: {src.proxy} {src.implementation}\n\n"
                f"Source:\n{src.source_code[:MAX_SOURCE_CHARS]}"
            )
        user = (
            f"Address: {data.address}\n"
            f"Transactions: {data.transaction_count}\n"
            f"Balance: {data.bnb_balance} BNB\n\n"
            f"{body}"
        )
        return self._chat(
            [
                {"role": "system", "content": CONTRACT_AUDITOR_PROMPT},
                {"role": "user", "content": user},
            ]
        ).strip()


class AsyncAssistant:
    """Runs the blocking OpenAI client off the event loop."""

    def __init__(self, client: OpenAIClient):
        self.client = client

    async def generate_reply(self, prior_turns: list[dict[str, str]], utterance: str) -> str:
        return await asyncio.to_thread(self.client.generate_reply, prior_turns, utterance)

    async def analyze_wallet(self, data: WalletAnalysis) -> str:
        return await asyncio.to_thread(self.client.analyze_wallet, data)

    async def audit_contract(self, data: WalletAnalysis) -> str:
        return await asyncio.to_thread(self.client.audit_contract, data)
