"""
Conversation thread registry.

Threads are opaque handles that carry a conversation's message history
between turns. The store only maps ids to handles; it has no
conversational behavior of its own.
"""

import json
import logging
import re
import threading
import time
import uuid
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_SHARDS = 16

SAFE_THREAD_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def new_thread_id() -> str:
    return uuid.uuid4().hex


def is_safe_thread_id(thread_id: str) -> bool:
    return bool(thread_id) and SAFE_THREAD_ID.match(thread_id) is not None


@dataclass
class ConversationThread:
    """Opaque per-conversation dialogue handle."""

    thread_id: str = field(default_factory=new_thread_id)
    created_at: float = field(default_factory=time.time)
    messages: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "thread_id": self.thread_id,
            "created_at": self.created_at,
            "messages": self.messages,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationThread":
        return cls(
            thread_id=data["thread_id"],
            created_at=float(data.get("created_at", time.time())),
            messages=list(data.get("messages", [])),
        )


class ThreadStore(Protocol):
    def create(self) -> ConversationThread:
        ...

    def get(self, thread_id: str) -> Optional[ConversationThread]:
        ...

    def register(self, thread: ConversationThread) -> str:
        ...

    def save(self, thread: ConversationThread) -> None:
        ...

    def delete(self, thread_id: str) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryThreadStore:
    """
    Sharded in-memory thread registry.

    Each shard has its own lock, so lookups for unrelated conversations
    rarely contend. All state is lost on restart.

    Args:
        shards: Number of independent shards
    """

    def __init__(self, shards: int = DEFAULT_SHARDS):
        if shards <= 0:
            raise ValueError("shards must be positive")
        self._shards: list[dict[str, ConversationThread]] = [
            {} for _ in range(shards)
        ]
        self._locks = [threading.Lock() for _ in range(shards)]

    def _index(self, thread_id: str) -> int:
        return zlib.crc32(thread_id.encode("utf-8")) % len(self._shards)

    def create(self) -> ConversationThread:
        """Create and register a new empty thread."""
        thread = ConversationThread()
        self.register(thread)
        return thread

    def get(self, thread_id: str) -> Optional[ConversationThread]:
        if not thread_id:
            return None
        i = self._index(thread_id)
        with self._locks[i]:
            return self._shards[i].get(thread_id)

    def register(self, thread: ConversationThread) -> str:
        """Register a thread under its id, returning the id."""
        if not thread.thread_id:
            thread.thread_id = new_thread_id()
        i = self._index(thread.thread_id)
        with self._locks[i]:
            self._shards[i][thread.thread_id] = thread
        logger.debug(f"Registered thread {thread.thread_id}")
        return thread.thread_id

    def save(self, thread: ConversationThread) -> None:
        """No-op: in-memory threads are mutated in place."""

    def delete(self, thread_id: str) -> None:
        if not thread_id:
            return
        i = self._index(thread_id)
        with self._locks[i]:
            self._shards[i].pop(thread_id, None)

    def clear(self) -> None:
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                shard.clear()

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)

    def __contains__(self, thread_id: str) -> bool:
        return self.get(thread_id) is not None


class JsonFileThreadStore(InMemoryThreadStore):
    """
    Durable thread registry backed by one JSON file per thread.

    Threads are written on register/save and reconstructed lazily from
    disk on the first lookup after a restart.

    Args:
        directory: Folder holding ``<thread_id>.json`` transcripts
        shards: Number of in-memory cache shards
    """

    def __init__(self, directory: str, shards: int = DEFAULT_SHARDS):
        super().__init__(shards=shards)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, thread_id: str) -> Path:
        if not is_safe_thread_id(thread_id):
            raise ValueError(f"Invalid thread id: {thread_id!r}")
        return self.directory / f"{thread_id}.json"

    def get(self, thread_id: str) -> Optional[ConversationThread]:
        thread = super().get(thread_id)
        if thread is not None or not is_safe_thread_id(thread_id):
            return thread

        path = self._path(thread_id)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                thread = ConversationThread.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to load thread {thread_id} from {path}: {e}")
            return None

        logger.debug(f"Reconstructed thread {thread_id} from disk")
        super().register(thread)
        return thread

    def register(self, thread: ConversationThread) -> str:
        thread_id = super().register(thread)
        self.save(thread)
        return thread_id

    def save(self, thread: ConversationThread) -> None:
        """Persist the thread transcript."""
        path = self._path(thread.thread_id)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(thread.to_dict(), f, ensure_ascii=False)
        tmp_path.replace(path)

    def delete(self, thread_id: str) -> None:
        super().delete(thread_id)
        if is_safe_thread_id(thread_id):
            self._path(thread_id).unlink(missing_ok=True)

    def clear(self) -> None:
        """Drop the in-memory cache; transcripts on disk are kept."""
        super().clear()
