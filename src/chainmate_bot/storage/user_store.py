from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from chainmate_bot.security.crypto import decrypt_secret, encrypt_secret, is_encrypted


@dataclass(frozen=True)
class UserConfig:
    telegram_user_id: int
    wallet_address: str | None
    signing_key: str  # decrypted, never persisted in plain text
    chat_id: int | None
    keeper_enabled: bool
    updated_at: float  # unix timestamp


class UserStore:
    """
    Local disk store for per-user wallet config (address, encrypted signing key, chat_id, keeper flag).
    Stored under .cache/users/<telegram_user_id>.json
    """

    def __init__(self, root_dir: Path | None = None):
        self.root_dir = root_dir or (Path(".cache") / "users")
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, telegram_user_id: int) -> Path:
        return self.root_dir / f"{telegram_user_id}.json"

    def save(
        self,
        telegram_user_id: int,
        wallet_address: str | None = None,
        signing_key: str | None = None,
        chat_id: int | None = None,
        keeper_enabled: bool | None = None,
    ) -> Path:
        existing = self.load_raw(telegram_user_id)

        if signing_key is not None:
            key_enc = encrypt_secret(signing_key) if signing_key else ""
        else:
            key_enc = str(existing.get("signing_key", ""))

        payload: dict[str, Any] = {
            "telegram_user_id": telegram_user_id,
            "wallet_address": (
                wallet_address if wallet_address is not None else existing.get("wallet_address")
            ),
            "signing_key": key_enc,
            "chat_id": (chat_id if chat_id is not None else existing.get("chat_id")),
            "keeper_enabled": (
                bool(keeper_enabled)
                if keeper_enabled is not None
                else bool(existing.get("keeper_enabled", False))
            ),
            "updated_at": time.time(),
        }

        path = self._path(telegram_user_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)
        return path

    def load_raw(self, telegram_user_id: int) -> dict[str, Any]:
        path = self._path(telegram_user_id)
        if not path.exists():
            return {}
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            return {}

    def load(self, telegram_user_id: int) -> UserConfig | None:
        data = self.load_raw(telegram_user_id)
        if not data:
            return None

        key_stored = str(data.get("signing_key", ""))

        # a key written by hand into the file is encrypted on first read
        if key_stored and not is_encrypted(key_stored):
            key_enc = encrypt_secret(key_stored)
            data["signing_key"] = key_enc
            self._path(telegram_user_id).write_text(
                json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            key_stored = key_enc

        return UserConfig(
            telegram_user_id=int(data.get("telegram_user_id", telegram_user_id)),
            wallet_address=data.get("wallet_address") or None,
            signing_key=decrypt_secret(key_stored) if key_stored else "",
            chat_id=(int(data["chat_id"]) if data.get("chat_id") is not None else None),
            keeper_enabled=bool(data.get("keeper_enabled", False)),
            updated_at=float(data.get("updated_at", 0.0)),
        )

    def iter_all(self) -> Iterator[UserConfig]:
        for p in self.root_dir.glob("*.json"):
            try:
                telegram_user_id = int(p.stem)
            except ValueError:
                continue
            try:
                cfg = self.load(telegram_user_id)
            except Exception:
                continue
            if cfg is not None:
                yield cfg
