from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator


class ProviderLockRegistry:
    """Hands out one mutex per provider.

    Slot writes and the accept-transition check+write both read provider-scoped
    state before writing, so they must run under the same provider lock.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        # One entry per provider seen; entries are kept for the life of the process.
        self._locks: Dict[int, Lock] = {}

    def lock_for(self, provider_id: int) -> Lock:
        with self._lock:
            return self._locks.setdefault(int(provider_id), Lock())

    @contextmanager
    def hold(self, provider_id: int) -> Iterator[None]:
        lock = self.lock_for(provider_id)
        with lock:
            yield
