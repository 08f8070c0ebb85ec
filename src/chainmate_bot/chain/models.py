from pydantic import BaseModel, ConfigDict, Field


class ExplorerTx(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    blockNumber: str
    timeStamp: str
    hash: str
    from_: str = Field(alias="from")
    to: str = ""
    value: str = "0"
    gas: str | None = None
    gasUsed: str | None = None
    isError: str = "0"
    functionName: str = ""


class ContractSource(BaseModel):
    source_code: str
    contract_name: str = ""
    compiler_version: str = ""
    optimization_used: bool = False
    runs: int = 0
    evm_version: str = ""
    license_type: str = ""
    proxy: bool = False
    implementation: str = ""


class TokenBalance(BaseModel):
    symbol: str
    balance: str
    address: str


class ReputationData(BaseModel):
    transaction_count: int
    is_flagged: bool


class WalletAnalysis(BaseModel):
    address: str
    bnb_balance: str = "0"
    token_balances: list[TokenBalance] = Field(default_factory=list)
    transaction_count: int = 0
    is_contract: bool = False
    recent_transactions: list[ExplorerTx] = Field(default_factory=list)
    reputation: ReputationData | None = None
    first_tx_timestamp: int | None = None
    contract_source: ContractSource | None = None


class ScheduledPayment(BaseModel):
    id: int
    from_address: str
    to_address: str
    token: str
    amount: int
    execute_at: int
    executed: bool
    cancelled: bool
    memo: str = ""

    def is_due(self, now_ts: int) -> bool:
        return not self.executed and not self.cancelled and self.execute_at <= now_ts
