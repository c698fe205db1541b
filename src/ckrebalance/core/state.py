"""
state.py
- In-memory model of one rebalance run:
    - NodeState: partitions and planned moves of a single node
    - MoveRecord: per-partition progress through detach → transfer → attach
    - NodeResult / RebalanceReport: per-node and aggregate execution outcome
- MoveJournal keeps every MoveRecord of the run and, when a path is configured,
  saves them to disk as JSON after each transition so stranded partitions can
  be found after the process exits.
"""

import json
import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger


@dataclass
class NodeState:
    host: str
    partitions: Dict[str, int] = field(default_factory=dict)
    total_size: int = 0
    outgoing_moves: Optional[Dict[str, str]] = None  # partition -> destination host
    outgoing_sizes: Dict[str, int] = field(default_factory=dict)
    incoming: bool = False

    @classmethod
    def from_sizes(cls, host, sizes):
        partitions = dict(sizes)
        return cls(host=host, partitions=partitions, total_size=sum(partitions.values()))

    @property
    def is_unassigned(self):
        """True while the node has been given neither the source nor the destination role."""
        return self.outgoing_moves is None and not self.incoming

    def planned_moves(self):
        """Outgoing moves in ascending partition-id order."""
        return sorted((self.outgoing_moves or {}).items())


class MoveState(str, Enum):
    PLANNED = "planned"
    DETACHED = "detached"
    TRANSFERRED = "transferred"
    ATTACHED = "attached"
    FAILED = "failed"


def _now():
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MoveRecord:
    partition: str
    source: str
    destination: str
    size: int = 0
    state: MoveState = MoveState.PLANNED
    failed_step: Optional[str] = None
    error: Optional[str] = None
    detached: bool = False
    updated_at: str = field(default_factory=_now)

    def advance(self, state):
        self.state = state
        if state is MoveState.DETACHED:
            self.detached = True
        self.updated_at = _now()

    def fail(self, step, error):
        self.state = MoveState.FAILED
        self.failed_step = step
        self.error = str(error)
        self.updated_at = _now()

    @property
    def stranded(self):
        """Detached at the source but never attached at the destination."""
        return self.state is MoveState.FAILED and self.detached

    def to_dict(self):
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass
class NodeResult:
    host: str
    moves: List[MoveRecord] = field(default_factory=list)
    error: Optional[Exception] = None
    skipped: List[str] = field(default_factory=list)  # partitions never attempted

    @property
    def ok(self):
        return self.error is None


@dataclass
class RebalanceReport:
    results: List[NodeResult] = field(default_factory=list)

    @property
    def moves(self):
        return [m for r in self.results for m in r.moves]

    @property
    def succeeded(self):
        return [m for m in self.moves if m.state is MoveState.ATTACHED]

    @property
    def failed(self):
        return [m for m in self.moves if m.state is MoveState.FAILED]

    @property
    def stranded(self):
        return [m for m in self.moves if m.stranded]

    @property
    def ok(self):
        return all(r.ok for r in self.results)

    def summary(self):
        return (
            f"{len(self.succeeded)} moved, {len(self.failed)} failed, "
            f"{len(self.stranded)} stranded across {len(self.results)} nodes"
        )


class MoveJournal:
    """Ordered log of MoveRecords for one run, optionally mirrored to a JSON file."""

    def __init__(self, path=None):
        self.path = Path(path) if path else None
        self.records: List[MoveRecord] = []
        self.started_at = _now()
        self._lock = threading.Lock()

    def track(self, record):
        self.records.append(record)
        return record

    def stranded(self):
        return [r for r in self.records if r.stranded]

    def save(self):
        """
        Write the journal to disk as formatted JSON. A no-op when no path is configured.
        Write failures are logged, not raised.

        Blocking file I/O: async callers run it through asyncio.to_thread. Concurrent
        saves from worker threads are serialized on an internal lock.
        """
        if self.path is None:
            return
        with self._lock:
            payload = {
                "started_at": self.started_at,
                "moves": [r.to_dict() for r in self.records],
            }
            self._write(payload)

    def _write(self, payload):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w") as f:
                json.dump(payload, f, indent=2)
            tmp.replace(self.path)
        except OSError as e:
            logger.warning(f"[journal] Failed to save move journal to {self.path}: {e}")


def load_journal(path):
    """
    Load move records written by a previous run.

    Returns:
        list[MoveRecord]: Records in journal order, or [] if no file exists.
    """
    if not Path(path).exists():
        return []
    with open(path, "r") as f:
        data = json.load(f)
    records = []
    for item in data.get("moves", []):
        item = dict(item)
        item["state"] = MoveState(item["state"])
        records.append(MoveRecord(**item))
    return records
