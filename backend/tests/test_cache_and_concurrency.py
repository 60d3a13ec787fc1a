# Overview: Pytest coverage for the analytics cache and keyed locking.

import threading
import time
from datetime import date

import pytest

from quarrydesk.services import cache_service, metrics_service
from quarrydesk.services.cache_service import TTLCache
from quarrydesk.services.concurrency import active_lock_count, keyed_lock


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_hit_then_expiry(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        calls = []

        def compute():
            calls.append(1)
            return len(calls)

        assert cache.get_or_compute("k", compute) == 1
        assert cache.get_or_compute("k", compute) == 1
        clock.now += 61
        assert cache.get_or_compute("k", compute) == 2

    def test_disabled_when_ttl_not_positive(self):
        cache = TTLCache(0)
        cache.set("k", "v")
        assert cache.get("k") == (False, None)
        assert len(cache) == 0

    def test_failures_are_not_cached(self):
        cache = TTLCache(60)

        def boom():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            cache.get_or_compute("k", boom)
        assert cache.get("k") == (False, None)

    def test_set_sweeps_expired_entries(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        for i in range(1000):
            cache.set(("period_metrics", 1, i), i)
        assert len(cache) == 1000

        clock.now += 3600
        cache.set(("period_metrics", 1, "fresh"), "v")

        assert len(cache) == 1
        assert cache.get(("period_metrics", 1, "fresh")) == (True, "v")

    def test_purge_expired_keeps_live_entries(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        cache.set("old", 1)
        clock.now += 30
        cache.set("new", 2)
        clock.now += 40

        assert cache.purge_expired() == 1
        assert cache.get("new") == (True, 2)

    def test_clear(self):
        cache = TTLCache(60)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert len(cache) == 0


class TestAnalyticsCaching:
    def test_multi_day_metrics_served_from_cache_until_cleared(self, app, db_session, quarry_b, make_sale):
        start, end = date(2025, 5, 1), date(2025, 5, 7)
        original = app.extensions[cache_service.EXTENSION_KEY]
        app.extensions[cache_service.EXTENSION_KEY] = TTLCache(300)
        try:
            make_sale(quarry_b, start, quantity=10, price=100)
            first = metrics_service.get_period_metrics(quarry_b.id, start, end)

            # Writes do not invalidate; the entry simply lives until it expires
            make_sale(quarry_b, start, quantity=10, price=100)
            cached = metrics_service.get_period_metrics(quarry_b.id, start, end)
            assert cached.revenue == pytest.approx(first.revenue)

            cache_service.clear_cache()
            fresh = metrics_service.get_period_metrics(quarry_b.id, start, end)
            assert fresh.revenue == pytest.approx(2000.0)
        finally:
            app.extensions[cache_service.EXTENSION_KEY] = original

    def test_single_day_always_recomputes(self, app, db_session, quarry_b, make_sale):
        day = date(2025, 5, 1)
        original = app.extensions[cache_service.EXTENSION_KEY]
        app.extensions[cache_service.EXTENSION_KEY] = TTLCache(300)
        try:
            make_sale(quarry_b, day, quantity=10, price=100)
            metrics_service.get_period_metrics(quarry_b.id, day, day)
            make_sale(quarry_b, day, quantity=10, price=100)
            second = metrics_service.get_period_metrics(quarry_b.id, day, day)
            assert second.revenue == pytest.approx(2000.0)
        finally:
            app.extensions[cache_service.EXTENSION_KEY] = original


class TestKeyedLock:
    def test_same_key_is_serialized(self):
        active = []
        overlaps = []

        def worker():
            with keyed_lock(("balance_snapshot", 1, "20250501")):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(1)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert active_lock_count() == 0

    def test_different_keys_do_not_block(self):
        entered = threading.Event()

        with keyed_lock(("balance_snapshot", 1, "20250501")):
            def other():
                with keyed_lock(("balance_snapshot", 2, "20250501")):
                    entered.set()

            t = threading.Thread(target=other)
            t.start()
            assert entered.wait(timeout=2)
            t.join()

        assert active_lock_count() == 0

    def test_lock_released_on_error(self):
        with pytest.raises(RuntimeError):
            with keyed_lock(("balance_snapshot", 3, "20250501")):
                raise RuntimeError("write failed")

        assert active_lock_count() == 0
        with keyed_lock(("balance_snapshot", 3, "20250501")):
            assert active_lock_count() == 1
