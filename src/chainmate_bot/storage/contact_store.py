from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class Contact:
    id: int
    name: str
    address: str
    verified: bool
    added_at: float
    group: str | None = None


class ContactStore:
    """
    Per-user address book stored under .cache/contacts/<user_id>.json
    """

    def __init__(self, root_dir: Path | None = None):
        self.root_dir = root_dir or (Path(".cache") / "contacts")
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, user_id: int) -> Path:
        return self.root_dir / f"{int(user_id)}.json"

    def _load_raw(self, user_id: int) -> list[dict[str, Any]]:
        path = self._path(user_id)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            return []
        return [x for x in data if isinstance(x, dict)] if isinstance(data, list) else []

    def _save_raw(self, user_id: int, rows: list[dict[str, Any]]) -> None:
        path = self._path(user_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    def list(self, user_id: int) -> list[Contact]:
        out: list[Contact] = []
        for x in self._load_raw(user_id):
            try:
                out.append(
                    Contact(
                        id=int(x["id"]),
                        name=str(x["name"]),
                        address=str(x["address"]),
                        verified=bool(x.get("verified", False)),
                        added_at=float(x.get("added_at", 0.0)),
                        group=x.get("group"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return out

    def add(self, user_id: int, name: str, address: str, group: str | None = None) -> Contact:
        """Same name (case-insensitive) overwrites the stored address."""
        name = (name or "").strip()
        address = (address or "").strip()
        if not name or not address:
            raise ValueError("contact needs a name and an address")

        contacts = self.list(user_id)
        kept = [c for c in contacts if c.name.lower() != name.lower()]
        next_id = max((c.id for c in contacts), default=0) + 1

        contact = Contact(
            id=next_id,
            name=name,
            address=address,
            verified=False,
            added_at=time.time(),
            group=group,
        )
        kept.append(contact)
        self._save_raw(user_id, [asdict(c) for c in kept])
        return contact

    def remove(self, user_id: int, name: str) -> bool:
        contacts = self.list(user_id)
        kept = [c for c in contacts if c.name.lower() != (name or "").strip().lower()]
        if len(kept) == len(contacts):
            return False
        self._save_raw(user_id, [asdict(c) for c in kept])
        return True

    def lookup(self, user_id: int, name: str) -> str | None:
        key = (name or "").strip().lower()
        if not key:
            return None
        for c in self.list(user_id):
            if c.name.lower() == key:
                return c.address
        return None

    def book(self, user_id: int) -> "ContactBook":
        return ContactBook(self, user_id)


class ContactBook:
    """One user's view of the store, as the intent resolver needs it."""

    def __init__(self, store: ContactStore, user_id: int):
        self._store = store
        self._user_id = user_id

    def lookup(self, name: str) -> str | None:
        return self._store.lookup(self._user_id, name)
