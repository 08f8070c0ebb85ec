from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Any

import httpx

from chainmate_bot.core.cache import JsonDiskCache

from .models import ContractSource, ExplorerTx

logger = logging.getLogger(__name__)


class ExplorerError(RuntimeError):
    pass


def _sleep_seconds(attempt: int) -> float:
    base = min(20.0, 1.2 * (2**attempt))
    return base + random.random() * 0.8


def _retry_after_seconds(headers: httpx.Headers) -> float | None:
    ra = headers.get("Retry-After")
    if ra and ra.isdigit():
        return float(ra)
    return None


class ExplorerClient:
    """BscScan HTTP API: transaction lists and verified contract sources."""

    TXLIST_TTL = 120
    SOURCE_TTL = 24 * 3600
    RECENT_LIMIT = 25

    def __init__(
        self,
        base_url: str = "https://api-testnet.bscscan.com/api",
        api_key: str | None = None,
        cache_dir: Path | None = None,
        max_attempts: int = 4,
    ):
        self._base_url = base_url
        self._api_key = api_key
        self._max_attempts = max_attempts
        self._cache = JsonDiskCache(cache_dir or (Path(".cache") / "explorer"), namespace="bscscan")
        self._client = httpx.Client(
            headers={"User-Agent": "chainmate-bot/0.1.0"},
            timeout=httpx.Timeout(20.0),
        )

    def close(self) -> None:
        self._client.close()

    def _request_json(self, params: dict[str, Any]) -> dict[str, Any]:
        query = dict(params)
        if self._api_key:
            query["apikey"] = self._api_key

        last_err: Exception | None = None
        for attempt in range(self._max_attempts):
            try:
                resp = self._client.get(self._base_url, params=query)

                if resp.status_code == 429:
                    sleep_s = _retry_after_seconds(resp.headers)
                    time.sleep(sleep_s if sleep_s is not None else _sleep_seconds(attempt))
                    last_err = ExplorerError(f"BscScan error: 429 Too Many Requests. Response: {resp.text}")
                    continue

                if 500 <= resp.status_code <= 599:
                    time.sleep(_sleep_seconds(attempt))
                    last_err = ExplorerError(
                        f"BscScan error: {resp.status_code} {resp.reason_phrase}. Response: {resp.text}"
                    )
                    continue

                try:
                    resp.raise_for_status()
                except httpx.HTTPStatusError as e:
                    raise ExplorerError(
                        f"BscScan error: {resp.status_code} {resp.reason_phrase}. Response: {resp.text}"
                    ) from e

                data = resp.json()
                if not isinstance(data, dict):
                    raise ExplorerError("BscScan response is not an object")
                return data

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_err = e
                time.sleep(_sleep_seconds(attempt))
                continue

        raise ExplorerError(
            f"BscScan request failed after retries: {params.get('action')}. Last error: {last_err}"
        )

    def _txlist(self, address: str, *, offset: int, sort: str) -> list[dict[str, Any]]:
        cache_key = f"txlist:{address.lower()}:{offset}:{sort}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = self._request_json(
            {
                "module": "account",
                "action": "txlist",
                "address": address,
                "startblock": 0,
                "endblock": 99999999,
                "page": 1,
                "offset": offset,
                "sort": sort,
            }
        )
        # status "0" with "No transactions found" is an empty history, not an error
        result = data.get("result")
        rows: list[dict[str, Any]] = []
        if data.get("status") == "1" and isinstance(result, list):
            rows = [x for x in result if isinstance(x, dict)]

        self._cache.set(cache_key, rows, ttl_seconds=self.TXLIST_TTL)
        return rows

    def recent_transactions(self, address: str) -> list[ExplorerTx]:
        rows = self._txlist(address, offset=self.RECENT_LIMIT, sort="desc")
        return [ExplorerTx.model_validate(x) for x in rows]

    def first_tx_timestamp(self, address: str) -> int | None:
        rows = self._txlist(address, offset=1, sort="asc")
        if not rows:
            return None
        try:
            return int(rows[0].get("timeStamp"))
        except (TypeError, ValueError):
            return None

    def contract_source(self, address: str) -> ContractSource | None:
        """None for unverified contracts (BscScan returns an empty SourceCode)."""
        cache_key = f"source:{address.lower()}"
        cached = self._cache.get(cache_key)
        if cached is None:
            data = self._request_json(
                {"module": "contract", "action": "getsourcecode", "address": address}
            )
            result = data.get("result")
            cached = {}
            if data.get("status") == "1" and isinstance(result, list) and result:
                cached = result[0]
            self._cache.set(cache_key, cached, ttl_seconds=self.SOURCE_TTL)

        if not isinstance(cached, dict) or not cached.get("SourceCode"):
            return None

        try:
            runs = int(cached.get("Runs") or 0)
        except ValueError:
            runs = 0

        return ContractSource(
            source_code=cached["SourceCode"],
            contract_name=cached.get("ContractName") or "",
            compiler_version=cached.get("CompilerVersion") or "",
            optimization_used=cached.get("OptimizationUsed") == "1",
            runs=runs,
            evm_version=cached.get("EVMVersion") or "",
            license_type=cached.get("LicenseType") or "",
            proxy=cached.get("Proxy") == "1",
            implementation=cached.get("Implementation") or "",
        )
