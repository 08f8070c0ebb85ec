from chainmate_bot.chain.explorer import ExplorerClient

ADDR = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"


class DummyCache:
    def __init__(self):
        self._data = {}

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value, ttl_seconds=None):
        self._data[key] = value


def _tx(ts: int) -> dict:
    return {
        "blockNumber": "1",
        "timeStamp": str(ts),
        "hash": f"0x{ts}",
        "from": ADDR,
        "to": "0x1111111111111111111111111111111111111111",
        "value": "1000",
        "isError": "0",
    }


def make_client(tmp_path, monkeypatch, responses):
    ex = ExplorerClient(cache_dir=tmp_path)
    ex._cache = DummyCache()
    calls = []

    def fake_request_json(params):
        calls.append(params)
        return responses(params)

    monkeypatch.setattr(ex, "_request_json", fake_request_json)
    return ex, calls


def test_recent_transactions_cached(tmp_path, monkeypatch):
    ex, calls = make_client(
        tmp_path, monkeypatch, lambda p: {"status": "1", "result": [_tx(200), _tx(100)]}
    )

    txs = ex.recent_transactions(ADDR)
    assert [t.hash for t in txs] == ["0x200", "0x100"]
    assert txs[0].from_ == ADDR
    assert calls[0]["offset"] == 25
    assert calls[0]["sort"] == "desc"

    ex.recent_transactions(ADDR)
    assert len(calls) == 1
    ex.close()


def test_no_transactions_is_empty(tmp_path, monkeypatch):
    ex, _ = make_client(
        tmp_path,
        monkeypatch,
        lambda p: {"status": "0", "message": "No transactions found", "result": []},
    )
    assert ex.recent_transactions(ADDR) == []
    assert ex.first_tx_timestamp(ADDR) is None
    ex.close()


def test_first_tx_timestamp(tmp_path, monkeypatch):
    ex, calls = make_client(tmp_path, monkeypatch, lambda p: {"status": "1", "result": [_tx(42)]})
    assert ex.first_tx_timestamp(ADDR) == 42
    assert calls[0]["sort"] == "asc"
    assert calls[0]["offset"] == 1
    ex.close()


def test_unverified_contract_has_no_source(tmp_path, monkeypatch):
    ex, _ = make_client(
        tmp_path,
        monkeypatch,
        lambda p: {"status": "1", "result": [{"SourceCode": "", "ContractName": ""}]},
    )
    assert ex.contract_source(ADDR) is None
    ex.close()


def test_verified_contract_source(tmp_path, monkeypatch):
    row = {
        "SourceCode": "contract Token {}",
        "ContractName": "Token",
        "CompilerVersion": "v0.8.20",
        "OptimizationUsed": "1",
        "Runs": "200",
        "EVMVersion": "paris",
        "LicenseType": "MIT",
        "Proxy": "0",
        "Implementation": "",
    }
    ex, _ = make_client(tmp_path, monkeypatch, lambda p: {"status": "1", "result": [row]})

    src = ex.contract_source(ADDR)
    assert src.contract_name == "Token"
    assert src.optimization_used is True
    assert src.runs == 200
    assert src.proxy is False
    ex.close()
