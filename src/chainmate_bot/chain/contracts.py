from __future__ import annotations

from typing import Any

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

NATIVE_SYMBOL = "BNB"
NATIVE_DECIMALS = 18

# BSC testnet; CMT comes from TOKEN_CONTRACT_ADDRESS
DEFAULT_TOKEN_ADDRESSES: dict[str, str] = {
    "WBNB": "0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd",
    "BUSD": "0xeD24FC36d5Ee211Ea25A80239Fb8C4Cfd80f12Ee",
    "USDT": "0x337610d27c682E347C9cD60BD4b3b107C9d34dDd",
    "DAI": "0x8a9424745056Eb399FD19a0EC26A14316684e274",
}


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in (outputs or [])],
    }


CORE_ABI: list[dict[str, Any]] = [
    _fn(
        "createScheduledPayment",
        [
            ("to", "address"),
            ("token", "address"),
            ("amount", "uint256"),
            ("executeAt", "uint256"),
            ("memo", "string"),
        ],
        [("", "uint256")],
    ),
    _fn("executeScheduledPayment", [("paymentId", "uint256")]),
    _fn("cancelScheduledPayment", [("paymentId", "uint256")]),
    _fn(
        "createConditionalPayment",
        [
            ("to", "address"),
            ("token", "address"),
            ("amount", "uint256"),
            ("priceThreshold", "uint256"),
            ("isAboveThreshold", "bool"),
            ("memo", "string"),
        ],
        [("", "uint256")],
    ),
    _fn("addContact", [("name", "string"), ("contactAddress", "address")]),
    _fn(
        "createTeam",
        [("name", "string"), ("members", "address[]"), ("requiredApprovals", "uint256")],
        [("", "uint256")],
    ),
    _fn(
        "getUserScheduledPayments",
        [("user", "address")],
        [("", "uint256[]")],
        "view",
    ),
    _fn(
        "getAddressReputation",
        [("addr", "address")],
        [("", "uint256"), ("", "bool")],
        "view",
    ),
    _fn(
        "scheduledPayments",
        [("", "uint256")],
        [
            ("from", "address"),
            ("to", "address"),
            ("token", "address"),
            ("amount", "uint256"),
            ("executeAt", "uint256"),
            ("executed", "bool"),
            ("cancelled", "bool"),
            ("memo", "string"),
        ],
        "view",
    ),
]

ERC20_ABI: list[dict[str, Any]] = [
    _fn("balanceOf", [("account", "address")], [("", "uint256")], "view"),
    _fn("decimals", [], [("", "uint8")], "view"),
    _fn("transfer", [("to", "address"), ("amount", "uint256")], [("", "bool")]),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")]),
    _fn(
        "allowance",
        [("owner", "address"), ("spender", "address")],
        [("", "uint256")],
        "view",
    ),
]

FAUCET_TOKEN_ABI: list[dict[str, Any]] = ERC20_ABI + [_fn("faucet", [])]

ROUTER_ABI: list[dict[str, Any]] = [
    _fn(
        "getAmountsOut",
        [("amountIn", "uint256"), ("path", "address[]")],
        [("amounts", "uint256[]")],
        "view",
    ),
    _fn(
        "swapExactETHForTokens",
        [
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
        "payable",
    ),
    _fn(
        "swapExactTokensForETH",
        [
            ("amountIn", "uint256"),
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
    ),
    _fn(
        "swapExactTokensForTokens",
        [
            ("amountIn", "uint256"),
            ("amountOutMin", "uint256"),
            ("path", "address[]"),
            ("to", "address"),
            ("deadline", "uint256"),
        ],
        [("amounts", "uint256[]")],
    ),
]
