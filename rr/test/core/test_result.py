"""Tests for rr.core.result module."""

import pytest

from rr.core.result import Err, Ok, Result, is_err, is_ok


class TestOk:
    def test_unwrap(self) -> None:
        assert Ok(42).unwrap() == 42

    def test_unwrap_or_ignores_default(self) -> None:
        assert Ok(42).unwrap_or(0) == 42

    def test_map(self) -> None:
        assert Ok(2).map(lambda v: v * 10) == Ok(20)

    def test_map_err_is_identity(self) -> None:
        result = Ok(1)
        assert result.map_err(str) is result

    def test_flat_map_chains(self) -> None:
        def half(v: int) -> Result[int, str]:
            return Ok(v // 2) if v % 2 == 0 else Err("odd")

        assert Ok(8).flat_map(half) == Ok(4)
        assert Ok(3).flat_map(half) == Err("odd")

    def test_repr(self) -> None:
        assert repr(Ok("x")) == "Ok('x')"


class TestErr:
    def test_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="called unwrap on Err"):
            Err("boom").unwrap()

    def test_unwrap_or_returns_default(self) -> None:
        assert Err("boom").unwrap_or(7) == 7

    def test_map_is_identity(self) -> None:
        result = Err("boom")
        assert result.map(lambda v: v) is result

    def test_map_err(self) -> None:
        assert Err("boom").map_err(str.upper) == Err("BOOM")


class TestPatternMatching:
    def test_match_ok_and_err(self) -> None:
        def describe(result: Result[int, str]) -> str:
            match result:
                case Ok(value):
                    return f"ok {value}"
                case Err(error):
                    return f"err {error}"

        assert describe(Ok(1)) == "ok 1"
        assert describe(Err("x")) == "err x"

    def test_type_guards(self) -> None:
        assert is_ok(Ok(1)) and not is_err(Ok(1))
        assert is_err(Err(1)) and not is_ok(Err(1))
