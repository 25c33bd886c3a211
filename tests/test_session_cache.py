import pytest

from utils.session_cache import SessionFileCache


def test_add_and_get():
    cache = SessionFileCache()
    cache.add("a", b"123")
    assert cache.get("a") == b"123"
    assert cache.get("missing") is None
    assert "a" in cache
    assert len(cache) == 1


def test_replace_keeps_single_entry():
    cache = SessionFileCache()
    cache.add("a", b"1")
    cache.add("a", b"2")
    assert len(cache) == 1
    assert cache.get("a") == b"2"


def test_all_preserves_insertion_order():
    cache = SessionFileCache()
    for key in ("c", "a", "b"):
        cache.add(key, key.encode())
    assert [key for key, _ in cache.all()] == ["c", "a", "b"]


def test_stores_a_copy():
    data = bytearray(b"abc")
    cache = SessionFileCache()
    cache.add("a", data)
    data[0] = ord("z")
    assert cache.get("a") == b"abc"


def test_remove_and_clear():
    cache = SessionFileCache()
    cache.add("a", b"1")
    cache.add("b", b"2")
    assert cache.remove("a") is True
    assert cache.remove("a") is False
    assert cache.clear() == 1
    assert len(cache) == 0
    assert "b" not in cache


def test_empty_id_rejected():
    with pytest.raises(ValueError):
        SessionFileCache().add("", b"1")
