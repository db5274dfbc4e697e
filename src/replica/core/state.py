from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from replica.core.enums import MessageStatus
from replica.core.models import Checkpoint, Event, event_from_json, event_to_json
from replica.helper.hashing import to_bytes32, to_hex

logger = logging.getLogger(__name__)


# ======================================================================
# 1. Abstract Interface: ReplicaStore
#
#    σ = checkpoint ledger (root -> index, frontier)
#      + message register (leaf -> status)
#      + event log
# ======================================================================

class ReplicaStore(ABC):
    """
    Durable state of one Replica.

    The store only records what the engine tells it; it does not verify
    signatures or proofs. It does enforce the two structural invariants
    that must hold no matter which engine writes to it:

        • the checkpoint frontier only moves forward;
        • message status only moves UNSEEN -> PROVEN -> PROCESSED.

    Nothing is ever deleted. Accepted roots stay valid proof targets and
    status entries double as the replay guard, so the store is an
    append-only log rather than a cache.
    """

    # --------------------------------------------------------------
    # 1.1 Checkpoint ledger
    # --------------------------------------------------------------

    @abstractmethod
    def checkpoint_index(self, root: bytes) -> Optional[int]:
        """Index the root was accepted at, or None if never accepted."""
        raise NotImplementedError

    @abstractmethod
    def latest_checkpoint(self) -> Optional[Checkpoint]:
        """The checkpoint at the frontier, or None before the first one."""
        raise NotImplementedError

    @abstractmethod
    def record_checkpoint(self, root: bytes, index: int) -> None:
        """
        Add root -> index and move the frontier to `index`.

        Raises ValueError if `index` does not exceed the current frontier.
        """
        raise NotImplementedError

    # --------------------------------------------------------------
    # 1.2 Message register
    # --------------------------------------------------------------

    @abstractmethod
    def message_status(self, leaf: bytes) -> MessageStatus:
        """Status of `leaf`; UNSEEN for every leaf never written."""
        raise NotImplementedError

    @abstractmethod
    def set_message_status(self, leaf: bytes, status: MessageStatus) -> None:
        """
        Advance `leaf` by exactly one step.

        Raises ValueError for any transition other than UNSEEN -> PROVEN
        or PROVEN -> PROCESSED.
        """
        raise NotImplementedError

    # --------------------------------------------------------------
    # 1.3 Event log
    # --------------------------------------------------------------

    @abstractmethod
    def append_event(self, event: Event) -> None:
        raise NotImplementedError

    @abstractmethod
    def events(self) -> List[Event]:
        """All events in commit order (a copy)."""
        raise NotImplementedError

    @property
    def frontier(self) -> Optional[int]:
        latest = self.latest_checkpoint()
        return latest.index if latest is not None else None


# ======================================================================
# 2. Concrete In-memory Implementation
# ======================================================================

class InMemoryReplicaStore(ReplicaStore):
    """
    Dict-backed store.

    Internal structure:
        _roots:    bytes32 -> index
        _latest:   (root, index) at the frontier
        _status:   bytes32 -> MessageStatus (absent == UNSEEN)
        _events:   list of CheckpointEvent / ProcessEvent
    """

    def __init__(self) -> None:
        self._roots: Dict[bytes, int] = {}
        self._latest: Optional[Tuple[bytes, int]] = None
        self._status: Dict[bytes, MessageStatus] = {}
        self._events: List[Event] = []

    def checkpoint_index(self, root: bytes) -> Optional[int]:
        return self._roots.get(bytes(root))

    def latest_checkpoint(self) -> Optional[Checkpoint]:
        if self._latest is None:
            return None
        return Checkpoint(root=self._latest[0], index=self._latest[1])

    def record_checkpoint(self, root: bytes, index: int) -> None:
        if self._latest is not None and index <= self._latest[1]:
            raise ValueError(
                f"Checkpoint index {index} does not advance frontier {self._latest[1]}"
            )
        root = bytes(root)
        self._roots[root] = index
        self._latest = (root, index)
        self._commit()

    def message_status(self, leaf: bytes) -> MessageStatus:
        return self._status.get(bytes(leaf), MessageStatus.UNSEEN)

    def set_message_status(self, leaf: bytes, status: MessageStatus) -> None:
        leaf = bytes(leaf)
        current = self.message_status(leaf)
        if not current.can_advance_to(status):
            raise ValueError(
                f"Illegal status transition {current.value} -> {status.value} "
                f"for {to_hex(leaf)}"
            )
        self._status[leaf] = status
        self._commit()

    def append_event(self, event: Event) -> None:
        self._events.append(event)
        self._commit()

    def events(self) -> List[Event]:
        return list(self._events)

    def _commit(self) -> None:
        """Hook for durable subclasses; called after every mutation."""


# ======================================================================
# 3. JSON-file Implementation (durable across restarts)
# ======================================================================

class JsonFileReplicaStore(InMemoryReplicaStore):
    """
    InMemoryReplicaStore that persists a full snapshot after every
    mutation and reloads it on construction.

    Snapshots are written to a temporary file in the same directory and
    moved into place with os.replace(), so a reader (or a restart after a
    crash) sees either the previous or the new state, never a torn file.
    """

    VERSION = 1

    def __init__(self, path: Union[str, Path], *, fsync: bool = True) -> None:
        super().__init__()
        self._path = Path(path)
        self._fsync = fsync
        if self._path.exists():
            self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("version")
        if version != self.VERSION:
            raise ValueError(f"Unsupported store version {version!r} in {self._path}")

        self._roots = {to_bytes32(r): int(i) for r, i in data["roots"].items()}
        latest = data.get("latest")
        self._latest = (to_bytes32(latest["root"]), int(latest["index"])) if latest else None
        self._status = {
            to_bytes32(leaf): MessageStatus(status)
            for leaf, status in data["messages"].items()
        }
        self._events = [event_from_json(e) for e in data["events"]]
        logger.info(
            "Loaded replica store %s: %d roots, %d messages, %d events",
            self._path, len(self._roots), len(self._status), len(self._events),
        )

    def _snapshot(self) -> dict:
        latest = None
        if self._latest is not None:
            latest = {"root": to_hex(self._latest[0]), "index": self._latest[1]}
        return {
            "version": self.VERSION,
            "roots": {to_hex(r): i for r, i in self._roots.items()},
            "latest": latest,
            "messages": {to_hex(leaf): s.value for leaf, s in self._status.items()},
            "events": [event_to_json(e) for e in self._events],
        }

    def _commit(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self._path.name, suffix=".tmp", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._snapshot(), f, sort_keys=True, separators=(",", ":"))
                f.flush()
                if self._fsync:
                    os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
