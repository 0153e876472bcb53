# src/assetledger/runtime/atomic.py
# ---------------------------------------------------------------------------
# Fail-atomic command scope shared by both registries and the ledger facade.
# ---------------------------------------------------------------------------

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from assetledger.runtime.events import EventBuffer
from assetledger.storage.kv import KVStore


@contextmanager
def atomic_command(store: KVStore, events: EventBuffer) -> Iterator[None]:
    """Run one command with all-or-nothing semantics.

    On success:
      - the store transaction commits, then buffered events reach the sink.

    On any exception:
      - the store rolls back and buffered events are discarded.

    Nested scopes join the outermost one, so a registry command invoked by the
    facade commits (and emits) together with the facade's own writes.
    """
    with events.scope(), store.transaction():
        yield
