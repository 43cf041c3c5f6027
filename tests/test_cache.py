import threading

import pytest

from cacheproxy.cache import ENTRY_OVERHEAD, LRUCache


def _size(key, data):
    return len(key) + len(data) + ENTRY_OVERHEAD


def test_put_then_get_round_trip():
    cache = LRUCache(1 << 20, 1 << 16)
    assert cache.put("GET:example.com:80:/", b"response body") is True
    assert cache.get("GET:example.com:80:/") == b"response body"
    assert len(cache) == 1


def test_missing_key_returns_none():
    cache = LRUCache(1 << 20, 1 << 16)
    assert cache.get("absent") is None


def test_current_size_accounts_key_data_and_overhead():
    cache = LRUCache(1 << 20, 1 << 16)
    cache.put("k1", b"abc")
    cache.put("k2", b"defgh")
    assert cache.current_size() == _size("k1", b"abc") + _size("k2", b"defgh")


def test_element_larger_than_limit_is_rejected():
    data = b"x" * 50
    cache = LRUCache(1 << 20, _size("k", data) - 1)
    assert cache.put("k", data) is False
    assert cache.get("k") is None
    assert cache.current_size() == 0


def test_element_exactly_at_limit_is_accepted():
    data = b"x" * 50
    cache = LRUCache(1 << 20, _size("k", data))
    assert cache.put("k", data) is True
    assert cache.get("k") == data


def test_least_recently_used_is_evicted():
    data = b"payload"
    cache = LRUCache(2 * _size("a", data), 1 << 16)
    cache.put("a", data)
    cache.put("b", data)
    assert cache.get("a") == data  # "a" becomes most recently used
    cache.put("c", data)
    assert cache.get("b") is None
    assert cache.get("a") == data
    assert cache.get("c") == data
    assert len(cache) == 2


def test_eviction_removes_several_entries_when_needed():
    small = b"s"
    cache = LRUCache(3 * _size("a", small), 1 << 16)
    for key in ("a", "b", "c"):
        cache.put(key, small)
    big = b"s" * (2 * _size("a", small) - ENTRY_OVERHEAD - 1)
    cache.put("d", big)
    assert cache.get("a") is None
    assert cache.get("b") is None
    assert cache.get("c") == small
    assert cache.get("d") == big
    assert cache.current_size() <= 3 * _size("a", small)


def test_update_replaces_data_and_size():
    cache = LRUCache(1 << 20, 1 << 16)
    cache.put("k", b"short")
    assert cache.put("k", b"a much longer value") is True
    assert cache.get("k") == b"a much longer value"
    assert len(cache) == 1
    assert cache.current_size() == _size("k", b"a much longer value")


def test_update_moves_entry_to_most_recent():
    data = b"v"
    cache = LRUCache(2 * _size("a", data), 1 << 16)
    cache.put("a", data)
    cache.put("b", data)
    cache.put("a", data)
    cache.put("c", data)
    assert cache.get("a") == data
    assert cache.get("b") is None


def test_size_never_exceeds_capacity_under_threads():
    data = b"z" * 10
    capacity = 5 * _size("key-00", data)
    cache = LRUCache(capacity, 1 << 16)

    def worker(offset):
        for index in range(50):
            cache.put(f"key-{(offset + index) % 100:02d}", data)

    threads = [threading.Thread(target=worker, args=(n * 7,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert cache.current_size() <= capacity
    assert cache.current_size() == len(cache) * _size("key-00", data)


@pytest.mark.parametrize("payload", [b"", b"one", b"\x00\xff" * 100])
def test_round_trip_various_payloads(payload):
    cache = LRUCache(1 << 20, 1 << 16)
    cache.put("key", payload)
    assert cache.get("key") == payload