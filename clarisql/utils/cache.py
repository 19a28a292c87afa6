import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict

logger = logging.getLogger("clarisql.cache")


class SchemaCache:
    """
    Process-wide cache of schema snapshots keyed by database id.

    Filling is single-flight: when several callers miss the same key at once,
    exactly one runs the loader and the others wait on its Future, receiving
    the same snapshot (or the same exception). A failed load leaves the key
    empty so the next caller starts a fresh attempt.

    Reads of filled keys never take the lock; entries are installed with a
    single dict assignment of a fully built, immutable snapshot.
    The hit counter is bumped outside the lock too, so under concurrent hits
    stats() may undercount them; misses, loads and failures are exact.

    Inject one instance wherever snapshots are needed; tests create their own.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._loads = 0
        self._failures = 0

    def get(self, key: str) -> Any:
        """Cached value for key, or None."""
        return self._entries.get(key)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, running loader at most once per miss.

        Raises:
            Whatever loader raised, to the leader and every waiting caller.
        """
        value = self._entries.get(key)
        if value is not None:
            self._hits += 1
            return value

        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._hits += 1
                return value
            self._misses += 1
            future = self._inflight.get(key)
            is_leader = future is None
            if is_leader:
                future = Future()
                self._inflight[key] = future

        if not is_leader:
            logger.debug("Waiting on in-flight load for '%s'", key)
            return future.result()

        try:
            value = loader()
        except BaseException as e:
            with self._lock:
                self._failures += 1
                self._inflight.pop(key, None)
            future.set_exception(e)
            logger.warning("Load failed for '%s'; nothing cached: %s", key, e)
            raise

        with self._lock:
            self._entries[key] = value
            self._loads += 1
            self._inflight.pop(key, None)
        future.set_result(value)
        logger.info("Cached schema for '%s'", key)
        return value

    def evict(self, key: str) -> bool:
        """Drop a cached entry. Returns True if one existed."""
        with self._lock:
            existed = self._entries.pop(key, None) is not None
        if existed:
            logger.info("Evicted schema for '%s'", key)
        return existed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        """Counters for diagnostics. "hits" is approximate under concurrency."""
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "loads": self._loads,
            "failures": self._failures,
        }
