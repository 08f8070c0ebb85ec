from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Literal

IntentType = Literal[
    "send",
    "swap",
    "schedule",
    "conditional",
    "team",
    "balance",
    "contact",
    "reputation",
    "faucet",
]

INTENT_TYPES: tuple[str, ...] = (
    "send",
    "swap",
    "schedule",
    "conditional",
    "team",
    "balance",
    "contact",
    "reputation",
    "faucet",
)

# executed immediately, never pinned into the pending slot
READ_ONLY_INTENTS = frozenset({"balance", "reputation"})

# cannot be proposed without a resolved recipient address
RECIPIENT_REQUIRED_INTENTS = frozenset({"send", "schedule", "conditional", "contact"})

# advisory reputation check before the confirmation prompt
RISK_CHECKED_INTENTS = frozenset({"send", "schedule", "conditional"})

DEFAULT_TOKEN = "BNB"

Role = Literal["user", "assistant"]
TurnStatus = Literal["pending", "success", "error"]
RiskLevel = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class TransactionIntent:
    type: IntentType
    recipient: str | None = None
    contact_name: str | None = None
    amount: str | None = None
    token: str | None = None
    memo: str | None = None
    execute_at: int | None = None
    price_threshold: str | None = None
    is_above_threshold: bool | None = None
    team_name: str | None = None
    team_members: list[str] = field(default_factory=list)
    required_approvals: int | None = None
    from_token: str | None = None
    to_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for k, v in asdict(self).items():
            if v is None:
                continue
            if k == "team_members" and not v:
                continue
            out[k] = v
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "TransactionIntent | None":
        if not isinstance(data, dict):
            return None
        kind = data.get("type")
        if kind not in INTENT_TYPES:
            return None

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}

        members = kwargs.get("team_members")
        kwargs["team_members"] = [str(x) for x in members] if isinstance(members, list) else []
        return cls(**kwargs)


@dataclass(frozen=True)
class TurnRequest:
    user_id: int
    text: str
    now_ts: int
    wallet_address: str | None = None


@dataclass(frozen=True)
class ConversationTurn:
    id: str
    role: Role
    content: str
    timestamp: int
    transaction_hash: str | None = None
    status: TurnStatus | None = None
    requires_confirmation: bool = False


@dataclass(frozen=True)
class Reputation:
    transaction_count: int
    is_flagged: bool


@dataclass(frozen=True)
class RiskAssessment:
    risk_level: RiskLevel
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SwapQuote:
    amount_out: str
    path: list[str] = field(default_factory=list)

    @property
    def hop_count(self) -> int:
        return max(0, len(self.path) - 1)


@dataclass(frozen=True)
class DispatchOutcome:
    success: bool
    transaction_id: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    type: str
    from_address: str
    to_address: str
    amount: str
    token: str
    tx_hash: str
    timestamp: int
    status: Literal["success", "failed"]
    memo: str | None = None


@dataclass(frozen=True)
class PersistTurn:
    turn: ConversationTurn


@dataclass(frozen=True)
class RecordHistory:
    entry: TransactionRecord


@dataclass(frozen=True)
class SaveContact:
    name: str
    address: str


Effect = PersistTurn | RecordHistory | SaveContact
