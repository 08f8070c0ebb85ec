from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from chainmate_bot.config import Settings
from chainmate_bot.intent.types import Reputation, SwapQuote

from .contracts import (
    CORE_ABI,
    DEFAULT_TOKEN_ADDRESSES,
    ERC20_ABI,
    FAUCET_TOKEN_ABI,
    NATIVE_DECIMALS,
    NATIVE_SYMBOL,
    ROUTER_ABI,
    ZERO_ADDRESS,
)
from .models import ScheduledPayment

logger = logging.getLogger(__name__)


class ChainError(RuntimeError):
    pass


class WalletNotConnected(ChainError):
    pass


class QuoteUnavailable(ChainError):
    pass


def to_base_units(amount: str, decimals: int) -> int:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ChainError(f"Invalid amount: {amount}") from e
    if value <= 0:
        raise ChainError(f"Amount must be positive: {amount}")
    return int(value * (Decimal(10) ** decimals))


def from_base_units(value: int, decimals: int) -> str:
    d = Decimal(int(value)) / (Decimal(10) ** decimals)
    return format(d.normalize(), "f") if d else "0"


class ChainClient:
    """
    Synchronous BSC client over web3.py.

    Reads work without a signing key; every write needs one and waits for
    the receipt, raising ChainError when the transaction reverts.
    """

    RECEIPT_TIMEOUT = 120
    SWAP_DEADLINE_SECONDS = 1200

    def __init__(
        self,
        rpc_url: str,
        *,
        chain_id: int,
        router_address: str,
        wbnb_address: str,
        core_address: str | None = None,
        token_address: str | None = None,
        private_key: str | None = None,
        slippage_bps: int = 100,
        w3: Web3 | None = None,
    ):
        if w3 is None:
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 20}))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.w3 = w3
        self.chain_id = chain_id
        self.slippage_bps = slippage_bps

        self._router_address = Web3.to_checksum_address(router_address)
        self._wbnb = Web3.to_checksum_address(wbnb_address)
        self._core_address = Web3.to_checksum_address(core_address) if core_address else None
        self._cmt_address = Web3.to_checksum_address(token_address) if token_address else None
        self._account = Account.from_key(private_key) if private_key else None

        self.tokens: dict[str, str] = {
            sym: Web3.to_checksum_address(addr) for sym, addr in DEFAULT_TOKEN_ADDRESSES.items()
        }
        self.tokens["WBNB"] = self._wbnb
        if self._cmt_address:
            self.tokens["CMT"] = self._cmt_address

        self._decimals: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: Settings, private_key: str | None = None) -> "ChainClient":
        return cls(
            settings.bsc_rpc_url,
            chain_id=settings.chain_id,
            router_address=settings.pancake_router,
            wbnb_address=settings.wbnb_address,
            core_address=settings.core_contract_address,
            token_address=settings.token_contract_address,
            private_key=private_key,
            slippage_bps=settings.swap_slippage_bps,
        )

    @property
    def address(self) -> str | None:
        return self._account.address if self._account else None

    # --- contracts -------------------------------------------------------

    def _require_account(self):
        if self._account is None:
            raise WalletNotConnected("No wallet connected. Use /wallet <private key> first.")
        return self._account

    def _core(self):
        if not self._core_address:
            raise ChainError("CORE_CONTRACT_ADDRESS is not configured")
        return self.w3.eth.contract(address=self._core_address, abi=CORE_ABI)

    def _erc20(self, address: str):
        return self.w3.eth.contract(address=address, abi=ERC20_ABI)

    def _router(self):
        return self.w3.eth.contract(address=self._router_address, abi=ROUTER_ABI)

    def token_address(self, symbol: str) -> str:
        sym = symbol.upper()
        if sym == NATIVE_SYMBOL:
            return self._wbnb
        addr = self.tokens.get(sym)
        if addr is None:
            raise ChainError(f"Unknown token: {symbol}")
        return addr

    def decimals(self, symbol: str) -> int:
        sym = symbol.upper()
        if sym == NATIVE_SYMBOL:
            return NATIVE_DECIMALS
        if sym not in self._decimals:
            self._decimals[sym] = int(self._erc20(self.token_address(sym)).functions.decimals().call())
        return self._decimals[sym]

    # --- writes ----------------------------------------------------------

    def _base_tx(self, value: int = 0) -> dict[str, Any]:
        account = self._require_account()
        return {
            "from": account.address,
            "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
            "chainId": self.chain_id,
            "gasPrice": self.w3.eth.gas_price,
            "value": value,
        }

    def _send(self, tx: dict[str, Any]) -> str:
        account = self._require_account()
        if "gas" not in tx:
            tx["gas"] = self.w3.eth.estimate_gas(tx)
        try:
            signed = account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.RECEIPT_TIMEOUT
            )
        except ContractLogicError as e:
            raise ChainError(f"Transaction reverted: {e}") from e
        except Web3Exception as e:
            raise ChainError(str(e)) from e

        hex_hash = Web3.to_hex(tx_hash)
        if receipt.get("status") != 1:
            raise ChainError(f"Transaction {hex_hash} failed on-chain")
        logger.info("tx mined %s block=%s", hex_hash, receipt.get("blockNumber"))
        return hex_hash

    def _call_tx(self, fn, value: int = 0) -> str:
        try:
            tx = fn.build_transaction(self._base_tx(value))
        except ContractLogicError as e:
            raise ChainError(f"Transaction would revert: {e}") from e
        return self._send(tx)

    def transfer(self, to: str, amount: str) -> str:
        tx = self._base_tx(to_base_units(amount, NATIVE_DECIMALS))
        tx["to"] = Web3.to_checksum_address(to)
        tx["gas"] = 21000
        return self._send(tx)

    def token_transfer(self, to: str, amount: str, token: str) -> str:
        contract = self._erc20(self.token_address(token))
        value = to_base_units(amount, self.decimals(token))
        return self._call_tx(contract.functions.transfer(Web3.to_checksum_address(to), value))

    def _payment_token(self, token: str) -> str:
        # the core contract treats the zero address as native BNB
        return ZERO_ADDRESS if token.upper() == NATIVE_SYMBOL else self.token_address(token)

    def create_scheduled_payment(
        self, to: str, token: str, amount: str, execute_at: int, memo: str = ""
    ) -> str:
        fn = self._core().functions.createScheduledPayment(
            Web3.to_checksum_address(to),
            self._payment_token(token),
            to_base_units(amount, NATIVE_DECIMALS),
            int(execute_at),
            memo,
        )
        return self._call_tx(fn)

    def create_conditional_payment(
        self,
        to: str,
        token: str,
        amount: str,
        price_threshold: str,
        is_above_threshold: bool,
        memo: str = "",
    ) -> str:
        threshold = Decimal(str(price_threshold or "0"))
        fn = self._core().functions.createConditionalPayment(
            Web3.to_checksum_address(to),
            self._payment_token(token),
            to_base_units(amount, NATIVE_DECIMALS),
            int(threshold * (Decimal(10) ** NATIVE_DECIMALS)),
            bool(is_above_threshold),
            memo,
        )
        return self._call_tx(fn)

    def add_contact(self, name: str, address: str) -> str:
        return self._call_tx(
            self._core().functions.addContact(name, Web3.to_checksum_address(address))
        )

    def create_team(self, name: str, members: list[str], required_approvals: int) -> str:
        fn = self._core().functions.createTeam(
            name,
            [Web3.to_checksum_address(m) for m in members],
            int(required_approvals),
        )
        return self._call_tx(fn)

    def claim_faucet(self) -> str:
        if not self._cmt_address:
            raise ChainError("TOKEN_CONTRACT_ADDRESS is not configured")
        contract = self.w3.eth.contract(address=self._cmt_address, abi=FAUCET_TOKEN_ABI)
        return self._call_tx(contract.functions.faucet())

    # --- swaps -----------------------------------------------------------

    def swap_path(self, from_token: str, to_token: str) -> list[str]:
        a = self.token_address(from_token)
        b = self.token_address(to_token)
        if a == b:
            raise QuoteUnavailable(f"Cannot swap {from_token} to itself")
        if a == self._wbnb or b == self._wbnb:
            return [a, b]
        return [a, self._wbnb, b]

    def _amounts_out(self, amount_in: int, path: list[str]) -> list[int]:
        try:
            amounts = self._router().functions.getAmountsOut(amount_in, path).call()
        except (ContractLogicError, Web3Exception) as e:
            raise QuoteUnavailable(f"No liquidity route: {e}") from e
        if not amounts or int(amounts[-1]) <= 0:
            raise QuoteUnavailable("No liquidity route")
        return [int(x) for x in amounts]

    def quote(self, from_token: str, to_token: str, amount: str) -> SwapQuote:
        path = self.swap_path(from_token, to_token)
        amounts = self._amounts_out(to_base_units(amount, self.decimals(from_token)), path)
        return SwapQuote(amount_out=from_base_units(amounts[-1], self.decimals(to_token)), path=path)

    def _ensure_allowance(self, token_addr: str, amount_in: int) -> None:
        me = self._require_account().address
        erc20 = self._erc20(token_addr)
        current = int(erc20.functions.allowance(me, self._router_address).call())
        if current >= amount_in:
            return
        logger.info("approving router for %s amount=%s", token_addr, amount_in)
        self._call_tx(erc20.functions.approve(self._router_address, amount_in))

    def swap(self, from_token: str, to_token: str, amount: str) -> str:
        me = self._require_account().address
        path = self.swap_path(from_token, to_token)
        amount_in = to_base_units(amount, self.decimals(from_token))
        expected = self._amounts_out(amount_in, path)[-1]
        min_out = expected * (10_000 - self.slippage_bps) // 10_000
        deadline = int(time.time()) + self.SWAP_DEADLINE_SECONDS
        router = self._router().functions

        if from_token.upper() == NATIVE_SYMBOL:
            return self._call_tx(
                router.swapExactETHForTokens(min_out, path, me, deadline), value=amount_in
            )

        self._ensure_allowance(path[0], amount_in)
        if to_token.upper() == NATIVE_SYMBOL:
            return self._call_tx(router.swapExactTokensForETH(amount_in, min_out, path, me, deadline))
        return self._call_tx(router.swapExactTokensForTokens(amount_in, min_out, path, me, deadline))

    # --- reads -----------------------------------------------------------

    def native_balance(self, address: str) -> str:
        wei = self.w3.eth.get_balance(Web3.to_checksum_address(address))
        return from_base_units(wei, NATIVE_DECIMALS)

    def token_balance(self, symbol: str, address: str) -> str:
        contract = self._erc20(self.token_address(symbol))
        raw = contract.functions.balanceOf(Web3.to_checksum_address(address)).call()
        return from_base_units(raw, self.decimals(symbol))

    def balances(self, address: str) -> dict[str, str]:
        """BNB first, then every known token whose balance could be read."""
        out = {NATIVE_SYMBOL: self.native_balance(address)}
        for symbol in self.tokens:
            if symbol == "WBNB":
                continue
            try:
                out[symbol] = self.token_balance(symbol, address)
            except Exception as e:
                logger.warning("balanceOf %s failed for %s: %s", symbol, address, e)
        return out

    def transaction_count(self, address: str) -> int:
        return int(self.w3.eth.get_transaction_count(Web3.to_checksum_address(address)))

    def is_contract(self, address: str) -> bool:
        code = self.w3.eth.get_code(Web3.to_checksum_address(address))
        return len(code) > 0

    def reputation(self, address: str) -> Reputation:
        count, flagged = self._core().functions.getAddressReputation(
            Web3.to_checksum_address(address)
        ).call()
        return Reputation(transaction_count=int(count), is_flagged=bool(flagged))

    # --- keeper ----------------------------------------------------------

    def scheduled_payment_ids(self, user: str) -> list[int]:
        ids = self._core().functions.getUserScheduledPayments(
            Web3.to_checksum_address(user)
        ).call()
        return [int(x) for x in ids]

    def scheduled_payment(self, payment_id: int) -> ScheduledPayment:
        row = self._core().functions.scheduledPayments(int(payment_id)).call()
        return ScheduledPayment(
            id=int(payment_id),
            from_address=row[0],
            to_address=row[1],
            token=row[2],
            amount=int(row[3]),
            execute_at=int(row[4]),
            executed=bool(row[5]),
            cancelled=bool(row[6]),
            memo=row[7],
        )

    def due_payments(self, user: str, now_ts: int) -> list[ScheduledPayment]:
        return [
            p
            for p in (self.scheduled_payment(i) for i in self.scheduled_payment_ids(user))
            if p.is_due(now_ts)
        ]

    def execute_scheduled_payment(self, payment_id: int) -> str:
        return self._call_tx(self._core().functions.executeScheduledPayment(int(payment_id)))
