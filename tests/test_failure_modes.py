"""Tests for failure modes, timeouts, and invalid input handling."""

import pytest

from aljabar_pkg import api
from aljabar_pkg.calculus import integrate
from aljabar_pkg.parser import parse, preprocess, tokenize
from aljabar_pkg.session import get_session
from aljabar_pkg.solver import solve
from aljabar_pkg.types import (
    CasError,
    OutOfRangeError,
    ParityError,
    UnexpectedTokenError,
    ValidationError,
)


class TestInputValidationFailures:
    """Test input validation failure modes."""

    def test_empty_input(self):
        """Test empty input."""
        with pytest.raises(ValidationError):
            preprocess("")

    def test_whitespace_only(self):
        """Test whitespace-only input."""
        with pytest.raises(ValidationError):
            preprocess("   ")

    def test_too_long_input(self):
        """Test input exceeding maximum length."""
        with pytest.raises(ValidationError):
            preprocess("x" * 10001)

    def test_input_limit_is_a_setting(self):
        with get_session().overrides(max_input_length=5):
            with pytest.raises(ValidationError):
                preprocess("x+1+2+3")

    def test_unbalanced_parentheses(self):
        """Test unbalanced parentheses."""
        with pytest.raises(ParityError):
            tokenize("(x + 1")

    def test_unbalanced_brackets(self):
        """Test unbalanced brackets."""
        with pytest.raises(ParityError):
            tokenize("[x + 1")

    def test_stray_closer(self):
        with pytest.raises(ParityError):
            tokenize("x + 1)")

    def test_mismatched_delimiters(self):
        """Test mismatched delimiters."""
        with pytest.raises(ParityError):
            tokenize("(x + 1]")

    def test_braces_are_not_brackets(self):
        with pytest.raises(UnexpectedTokenError):
            tokenize("{x + 1}")

    def test_deep_nesting(self):
        """Test that deep parenthesis nesting still parses."""
        deep_expr = "1"
        for _ in range(101):
            deep_expr = f"({deep_expr})"
        assert str(parse(deep_expr)) == "1"


class TestMalformedExpressions:
    """Test malformed expressions raise parse errors."""

    @pytest.mark.parametrize("text", ["x++", "*x", "x/", "2^", "sin()", "f(,)", "x y ^"])
    def test_malformed(self, text):
        with pytest.raises(CasError):
            parse(text)

    def test_error_position(self):
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse("2 + # 3")
        assert exc_info.value.position == 4
        assert exc_info.value.token == "#"


class TestEvaluationFailures:
    """Test failures that surface while evaluating."""

    def test_huge_power(self):
        with pytest.raises(OutOfRangeError):
            parse("2^100000")

    def test_huge_factorial(self):
        with pytest.raises(OutOfRangeError):
            parse("100000!")

    def test_moderate_power_is_exact(self):
        assert str(parse("2^100")) == str(2**100)

    def test_series_term_limit(self):
        with get_session().overrides(max_series_terms=10):
            with pytest.raises(OutOfRangeError):
                parse("sum(k, k, 1, 100)")

    def test_api_never_raises(self):
        for text in ["", "(", "1/0", "2^100000", "log(0)", "x = = 2"]:
            result = api.evaluate(text)
            assert result.ok is False
            assert result.error


class TestSolverFailures:
    """Test solver failure modes."""

    def test_no_roots_without_numeric_fallback(self):
        with get_session().overrides(numeric_fallback=False):
            assert solve(parse("sin(x) + x^3 = 7"), "x") == []

    def test_solve_without_variable(self):
        assert solve(parse("2 = 3")) == []

    def test_api_solve_unparsable(self):
        result = api.solve_equation("x^2 = (")
        assert result.ok is False
        assert result.error_code == "PARITY_ERROR"


class TestInertResults:
    """Test that unsolvable calculus stays symbolic instead of failing."""

    def test_integral_stays_inert(self):
        assert integrate(parse("sin(x^2)"), "x").contains_function("integrate")

    def test_settings_survive_failures(self):
        session = get_session()
        before = session.settings.copy()
        api.evaluate("1/0")
        api.laplace_transform("tan(t)")
        assert session.settings == before
