"""Which assistant messages already finished their reveal animation.

Records are kept per chat in a small key-value store: ``get``/``set`` of
JSON-compatible values. ``MemoryStore`` is for tests and one-off sessions,
``JsonFileStore`` persists to a file (the terminal counterpart of browser
local storage). Records never expire.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

NAMESPACE = "animatedChats"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    def __init__(self, initial: dict[str, Any] | None = None):
        self.data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """Whole store in one JSON object on disk, rewritten atomically on each set."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable reveal store %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".reveal-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    def get(self, key: str) -> Any:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class AnimatedMessages:
    """(chat_id, message_id) -> animated flag, namespaced per chat.

    Writes are read-modify-write on the chat's entry, last writer wins.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def key(chat_id: str) -> str:
        return f"{NAMESPACE}:{chat_id}"

    def for_chat(self, chat_id: str) -> dict[str, bool]:
        value = self.store.get(self.key(chat_id))
        return dict(value) if isinstance(value, dict) else {}

    def is_animated(self, chat_id: str, message_id: str) -> bool:
        return bool(self.for_chat(chat_id).get(message_id))

    def mark_animated(self, chat_id: str, message_id: str) -> None:
        records = self.for_chat(chat_id)
        records[message_id] = True
        self.store.set(self.key(chat_id), records)

    def forget_chat(self, chat_id: str) -> None:
        self.store.delete(self.key(chat_id))
