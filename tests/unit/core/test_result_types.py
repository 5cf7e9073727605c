"""Unit tests for Result types."""

import pytest

from policy_rating.core.result_types import Err, Ok, Result


class TestResultTypes:
    """Ok and Err behaviour."""

    def test_ok(self):
        """Ok exposes its value."""
        result = Ok(5)

        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == 5
        assert result.ok_value == 5
        assert result.err_value is None
        assert result.unwrap_or(0) == 5
        assert result.map(lambda v: v * 2) == Ok(10)

    def test_ok_unwrap_err_raises(self):
        """Ok has no error to unwrap."""
        with pytest.raises(ValueError):
            Ok(5).unwrap_err()

    def test_err(self):
        """Err exposes its error."""
        result = Err("boom")

        assert result.is_err()
        assert not result.is_ok()
        assert result.unwrap_err() == "boom"
        assert result.err_value == "boom"
        assert result.ok_value is None
        assert result.unwrap_or(0) == 0
        assert result.map(lambda v: v * 2) is result

    def test_err_unwrap_raises(self):
        """Unwrapping an Err raises with the error in the message."""
        with pytest.raises(ValueError, match="boom"):
            Err("boom").unwrap()

    def test_constructors(self):
        """Result offers ok/err constructors."""
        assert Result.ok(1) == Ok(1)
        assert Result.err("x") == Err("x")
