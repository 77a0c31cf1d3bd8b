"""Time-bounded cache for a single blob, refreshed lazily on expiry."""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

log = logging.getLogger("prompto.cache")


@dataclass
class CachedValue:
    ttl_seconds: float
    value:       Any = None
    fetched_at:  Optional[float] = None
    clock:       Callable[[], float] = time.monotonic
    _lock:       threading.Lock = field(default_factory=threading.Lock, repr=False)

    def is_fresh(self) -> bool:
        return self.fetched_at is not None and self.clock() - self.fetched_at < self.ttl_seconds

    def get(self, loader: Callable[[], Any]) -> Any:
        """Return the cached value, reloading it once the TTL has passed.

        A failed reload serves the last known value; with nothing cached
        the loader's error propagates.
        """
        with self._lock:
            if self.is_fresh():
                return self.value
            try:
                self.value = loader()
                self.fetched_at = self.clock()
            except Exception as e:
                if self.fetched_at is None:
                    raise
                log.warning(f"Cache refresh failed ({e}), serving stale value")
            return self.value

    def invalidate(self) -> None:
        with self._lock:
            self.fetched_at = None
