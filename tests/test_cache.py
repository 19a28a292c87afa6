"""Tests for the single-flight SchemaCache."""
import threading
import time

import pytest

from clarisql.utils import SchemaCache


class _Snapshot:
    """Stand-in cached value; identity matters in these tests."""


# =============================================================================
# BASIC BEHAVIOUR
# =============================================================================

class TestSchemaCache:

    def test_loads_once_then_serves_from_cache(self):
        cache = SchemaCache()
        calls = []

        def loader():
            calls.append(1)
            return _Snapshot()

        first = cache.get_or_load("shop", loader)
        second = cache.get_or_load("shop", loader)

        assert first is second
        assert len(calls) == 1
        assert cache.stats()["hits"] == 1
        assert cache.stats()["loads"] == 1

    def test_hits_are_served_without_the_lock(self):
        cache = SchemaCache()
        value = cache.get_or_load("shop", _Snapshot)

        # A loader holding the lock for another key must not stall readers
        with cache._lock:
            assert cache.get_or_load("shop", _Snapshot) is value

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    def test_keys_are_independent(self):
        cache = SchemaCache()
        a = cache.get_or_load("a", _Snapshot)
        b = cache.get_or_load("b", _Snapshot)
        assert a is not b

    def test_failure_is_not_cached(self):
        cache = SchemaCache()

        def failing():
            raise RuntimeError("catalog unavailable")

        with pytest.raises(RuntimeError):
            cache.get_or_load("shop", failing)

        assert cache.get("shop") is None
        assert cache.stats()["failures"] == 1

        value = cache.get_or_load("shop", _Snapshot)
        assert cache.get("shop") is value

    def test_evict_forces_reload(self):
        cache = SchemaCache()
        first = cache.get_or_load("shop", _Snapshot)

        assert cache.evict("shop") is True
        assert cache.evict("shop") is False

        second = cache.get_or_load("shop", _Snapshot)
        assert second is not first

    def test_clear_empties_cache(self):
        cache = SchemaCache()
        cache.get_or_load("a", _Snapshot)
        cache.clear()
        assert cache.get("a") is None
        assert cache.stats()["entries"] == 0


# =============================================================================
# SINGLE-FLIGHT
# =============================================================================

class TestSingleFlight:

    def _run_concurrently(self, cache, loader, callers=2):
        results, errors = [], []

        def worker():
            try:
                results.append(cache.get_or_load("shop", loader))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(callers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        return results, errors

    def test_concurrent_misses_share_one_load(self):
        cache = SchemaCache()
        calls = []
        release = threading.Event()

        def slow_loader():
            calls.append(1)
            release.wait(timeout=5)
            return _Snapshot()

        # Let every caller reach the cache before the leader finishes
        threading.Timer(0.2, release.set).start()
        results, errors = self._run_concurrently(cache, slow_loader, callers=4)

        assert not errors
        assert len(calls) == 1
        assert len(results) == 4
        assert all(r is results[0] for r in results)

    def test_waiters_receive_the_leaders_error(self):
        cache = SchemaCache()
        calls = []

        def failing_loader():
            calls.append(1)
            time.sleep(0.2)
            raise RuntimeError("connection refused")

        results, errors = self._run_concurrently(cache, failing_loader, callers=3)

        assert not results
        assert len(calls) == 1
        assert len(errors) == 3
        assert all(str(e) == "connection refused" for e in errors)
        assert cache.get("shop") is None
