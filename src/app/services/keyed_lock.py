from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass(slots=True)
class _Slot:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


@dataclass(slots=True)
class KeyedLock:
    """One re-entrant lock per key (vehicle id, rider id).

    A key's lock exists only while some thread holds or waits for it, so the
    map stays as small as the set of keys in flight. Only serializes work
    inside this process; cross-process exclusion comes from the stores'
    conditional writes.
    """

    _guard: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _slots: dict[str, _Slot] = field(default_factory=dict, init=False, repr=False)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._slots[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)
