"""
Ledger events and the append-only event log.

Events are the ledger's output channel for indexers and oracles. They are
not return values: a committed operation appends its events to the log
in order, and a rejected operation appends nothing.

Usage:
    log = EventLog()
    unsubscribe = log.subscribe(lambda entry: print(entry.seq, entry.event))
    ...
    for entry in log.since(10):
        handle(entry.event)
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Type, Union

logger = logging.getLogger(__name__)


# =============================================================================
# Event types
# =============================================================================

@dataclass(frozen=True)
class LedgerEvent:
    """Base class for ledger events."""
    name: ClassVar[str] = "LedgerEvent"

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class Transfer(LedgerEvent):
    name: ClassVar[str] = "Transfer"
    sender: str
    recipient: str
    value: int


@dataclass(frozen=True)
class AutoBurn(LedgerEvent):
    name: ClassVar[str] = "AutoBurn"
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class Minted(LedgerEvent):
    name: ClassVar[str] = "Minted"
    to: str
    amount: int


@dataclass(frozen=True)
class Approval(LedgerEvent):
    name: ClassVar[str] = "Approval"
    owner: str
    spender: str
    value: int


@dataclass(frozen=True)
class BurnExemptionUpdated(LedgerEvent):
    name: ClassVar[str] = "BurnExemptionUpdated"
    account: str
    exempt: bool


@dataclass(frozen=True)
class AutoBurnStatusUpdated(LedgerEvent):
    name: ClassVar[str] = "AutoBurnStatusUpdated"
    enabled: bool


@dataclass(frozen=True)
class RoleGranted(LedgerEvent):
    name: ClassVar[str] = "RoleGranted"
    role: str
    account: str
    sender: str


@dataclass(frozen=True)
class RoleRevoked(LedgerEvent):
    name: ClassVar[str] = "RoleRevoked"
    role: str
    account: str
    sender: str


@dataclass(frozen=True)
class Paused(LedgerEvent):
    name: ClassVar[str] = "Paused"
    account: str


@dataclass(frozen=True)
class Unpaused(LedgerEvent):
    name: ClassVar[str] = "Unpaused"
    account: str


@dataclass(frozen=True)
class Initialized(LedgerEvent):
    name: ClassVar[str] = "Initialized"
    version: int


@dataclass(frozen=True)
class Upgraded(LedgerEvent):
    name: ClassVar[str] = "Upgraded"
    implementation: str
    version: int


@dataclass(frozen=True)
class BridgeAddressUpdated(LedgerEvent):
    name: ClassVar[str] = "BridgeAddressUpdated"
    bridge: str


EVENT_TYPES: Dict[str, Type[LedgerEvent]] = {
    cls.name: cls
    for cls in (
        Transfer,
        AutoBurn,
        Minted,
        Approval,
        BurnExemptionUpdated,
        AutoBurnStatusUpdated,
        RoleGranted,
        RoleRevoked,
        Paused,
        Unpaused,
        Initialized,
        Upgraded,
        BridgeAddressUpdated,
    )
}


def event_from_dict(data: Dict[str, Any]) -> LedgerEvent:
    """Rebuild an event from its ``to_dict`` form."""
    try:
        cls = EVENT_TYPES[data["event"]]
    except KeyError as exc:
        raise ValueError(f"Unknown event: {data.get('event')}") from exc
    kwargs = {f.name: data[f.name] for f in fields(cls)}
    return cls(**kwargs)


# =============================================================================
# Event log
# =============================================================================

@dataclass(frozen=True)
class LoggedEvent:
    """An event with its position in the log."""
    seq: int
    event: LedgerEvent

    def to_dict(self) -> Dict[str, Any]:
        return {"seq": self.seq, **self.event.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggedEvent":
        payload = dict(data)
        seq = int(payload.pop("seq"))
        return cls(seq=seq, event=event_from_dict(payload))


Subscriber = Callable[[LoggedEvent], None]


class EventLog:
    """
    Append-only, ordered event log.

    Sequence numbers start at ``start_seq`` and increase by one per event.
    Subscribers are called synchronously, in subscription order, after a
    batch has been appended in full.
    """

    def __init__(self, start_seq: int = 0):
        self._entries: List[LoggedEvent] = []
        self._next_seq = start_seq
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    def append_batch(self, events: List[LedgerEvent]) -> List[LoggedEvent]:
        """Append a committed batch. Returns the logged entries."""
        with self._lock:
            batch = []
            for event in events:
                entry = LoggedEvent(seq=self._next_seq, event=event)
                self._next_seq += 1
                batch.append(entry)
            self._entries.extend(batch)
            return batch

    def notify(self, batch: List[LoggedEvent]) -> int:
        """Deliver ``batch`` to subscribers. Returns the number of failed deliveries.

        The batch is already committed when this runs. A subscriber error is
        logged with its traceback and the remaining subscribers still run.
        """
        failures = 0
        for entry in batch:
            for subscriber in list(self._subscribers):
                try:
                    subscriber(entry)
                except Exception:
                    failures += 1
                    logger.exception(f"Event subscriber failed on {entry.event.name} seq={entry.seq}")
        return failures

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return _unsubscribe

    @property
    def next_seq(self) -> int:
        return self._next_seq

    def since(self, seq: int) -> List[LoggedEvent]:
        """Entries with sequence number >= ``seq``."""
        with self._lock:
            return [entry for entry in self._entries if entry.seq >= seq]

    def of_type(self, event_type: Union[str, Type[LedgerEvent]]) -> List[LedgerEvent]:
        name = event_type if isinstance(event_type, str) else event_type.name
        with self._lock:
            return [entry.event for entry in self._entries if entry.event.name == name]

    def events(self) -> List[LedgerEvent]:
        with self._lock:
            return [entry.event for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LoggedEvent]:
        return iter(list(self._entries))

    # -------------------------------------------------------------------------
    # JSON Lines export
    # -------------------------------------------------------------------------

    def to_jsonl(self, since: int = 0) -> str:
        return "".join(json.dumps(entry.to_dict()) + "\n" for entry in self.since(since))

    def append_jsonl(self, path: Union[str, Path], since: int = 0) -> int:
        """Append entries from ``since`` to a JSON Lines file. Returns count written."""
        entries = self.since(since)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            for entry in entries:
                f.write(json.dumps(entry.to_dict()) + "\n")
        return len(entries)

    @staticmethod
    def read_jsonl(path: Union[str, Path]) -> List[LoggedEvent]:
        path = Path(path)
        if not path.exists():
            return []
        entries = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                entries.append(LoggedEvent.from_dict(json.loads(line)))
        return entries
