# src/assetledger/runtime/events.py
from __future__ import annotations

"""Structured events and event sinks.

Each registry emits a closed set of event dataclasses. Events are buffered
for the duration of a command and handed to the sink only after the
command's store transaction commits, in emission order. A command that fails
delivers nothing.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Iterator, List, Protocol, Union, runtime_checkable

from assetledger.ledger.types import AccountId, AssetId
from assetledger.logging_utils import log_event

Json = Dict[str, Any]

ASSETS = "assets"
UNIQUE_ASSETS = "unique_assets"


class _EventBase:
    registry: ClassVar[str]
    kind: ClassVar[str]

    def to_json(self) -> Json:
        out: Json = {"registry": self.registry, "event": self.kind}
        for f in fields(self):  # type: ignore[arg-type]
            v = getattr(self, f.name)
            key = "from" if f.name == "from_" else f.name
            out[key] = v.hex() if isinstance(v, bytes) else v
        return out


# ---------------------------------------------------------------------------
# Fungible registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Created(_EventBase):
    registry: ClassVar[str] = ASSETS
    kind: ClassVar[str] = "Created"

    owner: AccountId
    asset_id: AssetId


@dataclass(frozen=True)
class MetadataSet(_EventBase):
    registry: ClassVar[str] = ASSETS
    kind: ClassVar[str] = "MetadataSet"

    asset_id: AssetId
    name: bytes
    symbol: bytes


@dataclass(frozen=True)
class Minted(_EventBase):
    registry: ClassVar[str] = ASSETS
    kind: ClassVar[str] = "Minted"

    asset_id: AssetId
    owner: AccountId
    total_supply: int


@dataclass(frozen=True)
class Burned(_EventBase):
    registry: ClassVar[str] = ASSETS
    kind: ClassVar[str] = "Burned"

    asset_id: AssetId
    owner: AccountId
    total_supply: int


@dataclass(frozen=True)
class Transferred(_EventBase):
    registry: ClassVar[str] = ASSETS
    kind: ClassVar[str] = "Transferred"

    asset_id: AssetId
    from_: AccountId
    to: AccountId
    amount: int


# ---------------------------------------------------------------------------
# Unique registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UniqueCreated(_EventBase):
    registry: ClassVar[str] = UNIQUE_ASSETS
    kind: ClassVar[str] = "Created"

    creator: AccountId
    asset_id: AssetId


@dataclass(frozen=True)
class UniqueBurned(_EventBase):
    registry: ClassVar[str] = UNIQUE_ASSETS
    kind: ClassVar[str] = "Burned"

    asset_id: AssetId
    owner: AccountId
    total_supply: int


@dataclass(frozen=True)
class UniqueTransferred(_EventBase):
    registry: ClassVar[str] = UNIQUE_ASSETS
    kind: ClassVar[str] = "Transferred"

    asset_id: AssetId
    from_: AccountId
    to: AccountId
    amount: int


AssetEvent = Union[Created, MetadataSet, Minted, Burned, Transferred]
UniqueAssetEvent = Union[UniqueCreated, UniqueBurned, UniqueTransferred]
LedgerEvent = Union[AssetEvent, UniqueAssetEvent]


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


@runtime_checkable
class EventSink(Protocol):
    def deposit(self, event: LedgerEvent) -> None: ...


class MemoryEventSink:
    """Collects delivered events in order (tests, embedding hosts)."""

    def __init__(self) -> None:
        self.events: List[LedgerEvent] = []

    def deposit(self, event: LedgerEvent) -> None:
        self.events.append(event)

    def names(self) -> List[str]:
        return [e.kind for e in self.events]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink:
    """Writes each delivered event as a JSONL "ledger_event" log line."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("assetledger.events")

    def deposit(self, event: LedgerEvent) -> None:
        log_event(self._logger, "ledger_event", data=event.to_json())


class FanoutEventSink:
    def __init__(self, *sinks: EventSink) -> None:
        self._sinks = list(sinks)

    def deposit(self, event: LedgerEvent) -> None:
        for s in self._sinks:
            s.deposit(event)


class EventBuffer:
    """Holds a command's events until its outermost scope succeeds.

    Scopes nest: only the outermost scope flushes (on success) or discards
    (on failure). Pair it with the store transaction so that the transaction
    commits before the scope flushes:

        with events.scope(), store.transaction():
            ...
    """

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink
        self._pending: List[LedgerEvent] = []
        self._depth = 0

    def emit(self, event: LedgerEvent) -> None:
        if self._depth == 0:
            self._sink.deposit(event)
            return
        self._pending.append(event)

    @contextmanager
    def scope(self) -> Iterator["EventBuffer"]:
        self._depth += 1
        try:
            yield self
        except BaseException:
            if self._depth == 1:
                self._pending.clear()
            raise
        finally:
            self._depth -= 1

        if self._depth == 0:
            pending, self._pending = self._pending, []
            for ev in pending:
                self._sink.deposit(ev)


def as_event_buffer(sink: Union[EventSink, EventBuffer, None]) -> EventBuffer:
    if isinstance(sink, EventBuffer):
        return sink
    return EventBuffer(sink if sink is not None else MemoryEventSink())
