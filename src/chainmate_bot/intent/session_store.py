from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from chainmate_bot.intent.state import IDLE, ConversationState

CHAT_LOG_LIMIT = 20


def _default_session() -> dict[str, Any]:
    return {
        "state": IDLE.to_dict(),
        "chat_log": [],
    }


class SessionStore:
    """
    Per-user conversation snapshot:

      .cache/sessions/<user_id>.json

    Holds the pending-intent state and the prior-turn log handed to the
    language model. The log is opaque to the intent engine.
    """

    def __init__(self, root_dir: Path | None = None):
        self.root_dir = root_dir or (Path(".cache") / "sessions")
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, user_id: int) -> Path:
        return self.root_dir / f"{int(user_id)}.json"

    def load(self, user_id: int) -> dict[str, Any]:
        path = self._path(user_id)
        if not path.exists():
            return _default_session()

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            return _default_session()

        if not isinstance(data, dict):
            return _default_session()

        if not isinstance(data.get("state"), dict):
            data["state"] = IDLE.to_dict()
        if not isinstance(data.get("chat_log"), list):
            data["chat_log"] = []
        return data

    def save(self, user_id: int, data: dict[str, Any]) -> None:
        path = self._path(user_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    def load_state(self, user_id: int) -> ConversationState:
        return ConversationState.from_dict(self.load(user_id).get("state"))

    def save_state(self, user_id: int, state: ConversationState) -> None:
        data = self.load(user_id)
        data["state"] = state.to_dict()
        self.save(user_id, data)

    def chat_log(self, user_id: int) -> list[dict[str, str]]:
        out: list[dict[str, str]] = []
        for x in self.load(user_id).get("chat_log", []):
            if not isinstance(x, dict):
                continue
            role = x.get("role")
            content = x.get("content")
            if role in ("user", "assistant") and isinstance(content, str):
                out.append({"role": role, "content": content})
        return out

    def append_chat(self, user_id: int, role: str, content: str) -> None:
        data = self.load(user_id)
        log = [x for x in data.get("chat_log", []) if isinstance(x, dict)]
        log.append({"role": role, "content": content})
        data["chat_log"] = log[-CHAT_LOG_LIMIT:]
        self.save(user_id, data)

    def clear_chat(self, user_id: int) -> None:
        data = self.load(user_id)
        data["chat_log"] = []
        self.save(user_id, data)
