"""Test that API functions return typed dataclasses."""

from aljabar_pkg.api import (
    diff,
    evaluate,
    integrate_expr,
    inverse_laplace,
    laplace_transform,
    solve_equation,
    solve_system,
    validate_expression,
)
from aljabar_pkg.types import EvalResult, SolveResult


class TestAPITypedReturns:
    """Test that all API functions return typed dataclasses."""

    def test_evaluate_returns_eval_result(self):
        """Test that evaluate() returns EvalResult."""
        result = evaluate("2 + 2")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert result.result == "4"
        assert result.approx == "4"
        assert result.free_symbols == []

    def test_evaluate_symbolic(self):
        """Test that symbolic results carry free symbols and no approximation."""
        result = evaluate("2*x+3*x")
        assert result.result == "5*x"
        assert result.approx is None
        assert result.free_symbols == ["x"]

    def test_evaluate_with_bindings(self):
        result = evaluate("x^2 + 1", x=2)
        assert result.result == "5"

    def test_evaluate_decimal_approximation(self):
        result = evaluate("1/3")
        assert result.result == "1/3"
        assert result.approx.startswith("0.33333")

    def test_evaluate_error_returns_eval_result(self):
        """Test that evaluate() errors return EvalResult."""
        result = evaluate("1/0")
        assert isinstance(result, EvalResult)
        assert result.ok is False
        assert result.error is not None
        assert result.error_code == "DIVISION_BY_ZERO"

    def test_solve_equation_returns_solve_result(self):
        """Test that solve_equation() returns SolveResult."""
        result = solve_equation("x + 1 = 0")
        assert isinstance(result, SolveResult)
        assert result.ok is True
        assert result.result_type == "equation"
        assert result.exact == ["-1"]
        assert result.approx == ["-1"]

    def test_solve_equation_quadratic(self):
        result = solve_equation("x^2 - 4 = 0")
        assert set(result.exact) == {"2", "-2"}

    def test_solve_equation_identity(self):
        result = solve_equation("2 + 2 = 4")
        assert result.result_type == "identity_or_contradiction"
        assert result.exact == ["identity"]
        assert solve_equation("1 = 2").exact == ["contradiction"]

    def test_solve_equation_for_named_variable(self):
        result = solve_equation("a*y - 6 = 0", "a")
        assert result.exact == ["6/y"]

    def test_solve_system_returns_solve_result(self):
        """Test that solve_system() returns SolveResult."""
        result = solve_system("x + y = 3, x - y = 1")
        assert isinstance(result, SolveResult)
        assert result.ok is True
        assert result.result_type == "system"
        assert result.system_solutions == [{"x": "2", "y": "1"}]

    def test_solve_system_single_variable(self):
        result = solve_system("x + y = 3, x - y = 1", "y")
        assert result.result_type == "equation"
        assert result.exact == ["1"]

    def test_validate_expression_returns_tuple(self):
        """Test that validate_expression() returns tuple."""
        is_valid, error = validate_expression("2 + 2")
        assert isinstance(is_valid, bool)
        assert is_valid is True
        assert error is None

    def test_validate_expression_rejects_unbalanced(self):
        is_valid, error = validate_expression("(2 + 2")
        assert is_valid is False
        assert "Unclosed" in error

    def test_validate_does_not_evaluate(self):
        """Test that validation accepts 1/0, which only fails on evaluation."""
        assert validate_expression("1/0") == (True, None)

    def test_diff_returns_eval_result(self):
        """Test that diff() returns EvalResult."""
        result = diff("x^3", "x")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert result.result == "3*x^2"

    def test_integrate_returns_eval_result(self):
        """Test that integrate_expr() returns EvalResult."""
        result = integrate_expr("cos(x)", "x")
        assert isinstance(result, EvalResult)
        assert result.result == "sin(x)"

    def test_laplace_returns_eval_result(self):
        result = laplace_transform("t^2")
        assert isinstance(result, EvalResult)
        assert result.result == "2/s^3"
        assert result.free_symbols == ["s"]

    def test_inverse_laplace_returns_eval_result(self):
        result = inverse_laplace("1/s^3")
        assert result.ok is True
        assert result.free_symbols == ["t"]

    def test_to_dict(self):
        data = solve_equation("x - 2 = 0").to_dict()
        assert data == {"ok": True, "type": "equation", "exact": ["2"], "approx": ["2"]}
