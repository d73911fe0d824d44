import pytest

from gbromkit.hashmap import HashMap, fnv1a


def _colliding_keys():
    seen = {}
    for number in range(100000):
        key = f"k{number}"
        low = fnv1a(key) & 0xFFFF
        if low in seen:
            return seen[low], key
        seen[low] = key
    raise AssertionError("no collision found")


def test_fnv1a_empty_is_offset_basis():
    assert fnv1a("") == 0x811C9DC5


def test_fnv1a_known_vector():
    assert fnv1a("a") == 0xE40C292C


def test_fnv1a_text_and_bytes_agree():
    assert fnv1a("Label.local") == fnv1a(b"Label.local")


def test_fnv1a_fits_32_bits():
    assert 0 <= fnv1a("x" * 500) < 2**32


def test_add_and_get():
    table = HashMap()
    assert table.add("start", 1) == 1
    assert table.get("start") == 1
    assert "start" in table
    assert len(table) == 1


def test_get_missing_returns_default():
    table = HashMap()
    assert table.get("nothing") is None
    assert table.get("nothing", 42) == 42
    assert "nothing" not in table


def test_newer_entry_shadows_older():
    table = HashMap()
    table.add("sym", "old")
    table.add("sym", "new")
    assert table.get("sym") == "new"
    assert len(table) == 2
    assert table.remove("sym") is True
    assert table.get("sym") == "old"
    assert table.remove("sym") is True
    assert table.remove("sym") is False


def test_remove_missing_is_false():
    table = HashMap()
    table.add("a", 1)
    assert table.remove("b") is False
    assert len(table) == 1


def test_colliding_keys_are_kept_apart():
    first, second = _colliding_keys()
    table = HashMap()
    table.add(first, "first")
    table.add(second, "second")
    assert table.get(first) == "first"
    assert table.get(second) == "second"
    assert table.remove(first) is True
    assert table.get(first) is None
    assert table.get(second) == "second"


def test_iteration_yields_all_values():
    table = HashMap()
    names = [f"name{n}" for n in range(50)]
    for position, name in enumerate(names):
        table.add(name, position)
    assert sorted(table) == list(range(50))


def test_iteration_within_bucket_is_newest_first():
    first, second = _colliding_keys()
    table = HashMap()
    table.add(first, "first")
    table.add(second, "second")
    assert list(table) == ["second", "first"]


def test_clear_empties_map():
    table = HashMap()
    table.add("a", 1)
    table.add("b", 2)
    table.clear()
    assert len(table) == 0
    assert list(table) == []
    assert table.get("a") is None


@pytest.mark.parametrize("key", ["", ".", "Label", "ünïcode"])
def test_round_trip_various_keys(key):
    table = HashMap()
    table.add(key, key * 2)
    assert table.get(key) == key * 2