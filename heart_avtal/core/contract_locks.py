from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class ContractLockRegistry:
    """
    Per-contract mutex for this process.

    Serializes read-evaluate-write sequences on one contract (e.g. two parties
    signing at once). Across processes the row lock taken with
    SELECT ... FOR UPDATE and the version column do the same job.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, contract_id) -> Iterator[None]:
        key = str(contract_id)
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


contract_locks = ContractLockRegistry()
