from __future__ import annotations

import threading
import time

from gkdecomp.cache import AnalysisCache


def test_get_or_compute_runs_factory_once():
    cache = AnalysisCache()
    calls = []

    def factory():
        calls.append(1)
        return "value"

    assert cache.get_or_compute("ns", "k", factory) == "value"
    assert cache.get_or_compute("ns", "k", factory) == "value"
    assert len(calls) == 1
    assert cache.stats.as_dict() == {"hits": 1, "misses": 1}


def test_namespaces_are_independent():
    cache = AnalysisCache()
    cache.get_or_compute("instructions", "k", lambda: 1)
    cache.get_or_compute("source", "k", lambda: 2)
    assert cache.get("instructions", "k") == 1
    assert cache.get("source", "k") == 2
    assert cache.contains("source", "k")
    assert not cache.contains("other", "k")
    assert len(cache) == 2


def test_clear_resets_entries_and_stats():
    cache = AnalysisCache()
    cache.get_or_compute("ns", "k", lambda: 1)
    cache.clear()
    assert len(cache) == 0
    assert cache.stats.misses == 0
    assert cache.get("ns", "k", default="missing") == "missing"


def test_concurrent_callers_compute_once():
    cache = AnalysisCache()
    calls = []
    lock = threading.Lock()

    def factory():
        with lock:
            calls.append(1)
        time.sleep(0.05)
        return 42

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(cache.get_or_compute("ns", "shared", factory)))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == [42] * 8
    assert len(calls) == 1
