from __future__ import annotations

from rr.core.structured import as_str_dict, get_bool, get_float, get_int, get_str, get_table


def test_as_str_dict_rejects_non_string_keys() -> None:
    assert as_str_dict({"a": 1}) == {"a": 1}
    assert as_str_dict({1: "a"}) is None
    assert as_str_dict(["a"]) is None


def test_get_str_strips_and_drops_empty() -> None:
    table: dict[str, object] = {"a": "  x  ", "b": "   ", "c": 3}
    assert get_str(table, "a") == "x"
    assert get_str(table, "b") is None
    assert get_str(table, "c") is None


def test_numbers_exclude_bool() -> None:
    table: dict[str, object] = {"n": 3, "f": 2.5, "flag": True}
    assert get_int(table, "n") == 3
    assert get_int(table, "flag") is None
    assert get_float(table, "n") == 3.0
    assert get_float(table, "f") == 2.5
    assert get_float(table, "flag") is None
    assert get_bool(table, "flag") is True
    assert get_bool(table, "n") is None


def test_get_table() -> None:
    table: dict[str, object] = {"t": {"k": "v"}, "s": "x"}
    assert get_table(table, "t") == {"k": "v"}
    assert get_table(table, "s") is None
