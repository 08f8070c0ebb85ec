from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from chainmate_bot.intent.types import TransactionRecord

HISTORY_LIMIT = 200


class HistoryStore:
    """
    Per-user transaction history stored as JSONL, newest first:

      .cache/history/<user_id>.jsonl
    """

    def __init__(self, root_dir: Path | None = None, limit: int = HISTORY_LIMIT):
        self.root_dir = root_dir or (Path(".cache") / "history")
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.limit = limit

    def _path(self, user_id: int) -> Path:
        return self.root_dir / f"{int(user_id)}.jsonl"

    def add(self, user_id: int, record: TransactionRecord) -> None:
        rows = [asdict(record)]
        for r in self.load(user_id):
            rows.append(asdict(r))
        rows = rows[: self.limit]

        path = self._path(user_id)
        tmp = path.with_suffix(".jsonl.tmp")
        tmp.write_text(
            "".join(json.dumps(x, ensure_ascii=False) + "\n" for x in rows),
            encoding="utf-8",
        )
        tmp.replace(path)

    def load(self, user_id: int, limit: int | None = None) -> list[TransactionRecord]:
        path = self._path(user_id)
        if not path.exists():
            return []

        out: list[TransactionRecord] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
                out.append(
                    TransactionRecord(
                        id=str(obj["id"]),
                        type=str(obj["type"]),
                        from_address=str(obj.get("from_address", "")),
                        to_address=str(obj.get("to_address", "")),
                        amount=str(obj.get("amount", "")),
                        token=str(obj.get("token", "")),
                        tx_hash=str(obj.get("tx_hash", "")),
                        timestamp=int(obj.get("timestamp", 0)),
                        status="success" if obj.get("status") == "success" else "failed",
                        memo=obj.get("memo"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
            if limit is not None and len(out) >= limit:
                break
        return out
