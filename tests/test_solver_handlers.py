"""Unit tests for solver handler functions."""

from aljabar_pkg import core
from aljabar_pkg.algebra import Polynomial
from aljabar_pkg.parser import parse
from aljabar_pkg.solver import (
    _isolate,
    _numeric_polynomial_roots,
    _solve_linear_equation,
    _solve_polynomial_equation,
    _solve_quadratic_equation,
)


def nums(*values):
    return [core.number(v) for v in values]


class TestLinearSolver:
    """Test linear equation solving."""

    def test_simple_linear(self):
        """Test x + 1 = 0."""
        solutions = _solve_linear_equation(nums(1, 1))
        assert [str(s) for s in solutions] == ["-1"]

    def test_linear_with_coefficient(self):
        """Test 2*x + 3 = 0."""
        solutions = _solve_linear_equation(nums(3, 2))
        assert [str(s) for s in solutions] == ["-3/2"]

    def test_linear_symbolic(self):
        """Test a*x - 1 = 0."""
        solutions = _solve_linear_equation([core.number(-1), core.symbol("a")])
        assert [str(s) for s in solutions] == ["1/a"]


class TestQuadraticSolver:
    """Test quadratic equation solving."""

    def test_simple_quadratic(self):
        """Test x^2 - 1 = 0."""
        solutions = _solve_quadratic_equation(nums(-1, 0, 1))
        assert {str(s) for s in solutions} == {"1", "-1"}

    def test_quadratic_no_real_roots(self):
        """Test x^2 + 1 = 0 gives the complex pair."""
        solutions = _solve_quadratic_equation(nums(1, 0, 1))
        assert {str(s) for s in solutions} == {"i", "-i"}

    def test_quadratic_perfect_square(self):
        """Test (x - 2)^2 = 0 gives one root."""
        solutions = _solve_quadratic_equation(nums(4, -4, 1))
        assert [str(s) for s in solutions] == ["2"]

    def test_plus_root_first(self):
        """Test x^2 - 2 = 0 lists +sqrt(2) before -sqrt(2)."""
        solutions = _solve_quadratic_equation(nums(-2, 0, 1))
        assert solutions == [parse("sqrt(2)"), parse("-sqrt(2)")]


class TestPolynomialSolver:
    """Test polynomial equation solving."""

    def test_cubic(self):
        """Test x^3 - x = 0."""
        poly = Polynomial([0, -1, 0, 1])
        solutions = _solve_polynomial_equation(poly, "x")
        assert {str(s) for s in solutions} == {"0", "1", "-1"}

    def test_deflation_leaves_quadratic(self):
        """Test (x - 1)(x^2 - 3) = 0 keeps the irrational pair exact."""
        poly = Polynomial.from_node(parse("(x-1)*(x^2-3)"), "x")
        solutions = _solve_polynomial_equation(poly, "x")
        assert set(solutions) == {parse("1"), parse("sqrt(3)"), parse("-sqrt(3)")}

    def test_numeric_roots(self):
        """Test x^5 - x - 1 has one real root near 1.1673."""
        roots = _numeric_polynomial_roots(Polynomial([-1, -1, 0, 0, 0, 1]))
        assert len(roots) == 1
        assert abs(float(roots[0]) - 1.1673039782614187) < 1e-9


class TestIsolation:
    """Test isolation of a single occurrence of the unknown."""

    def test_log(self):
        roots = _isolate(parse("log(x)"), core.number(2), "x")
        assert roots == [parse("e^2")]

    def test_even_power(self):
        roots = _isolate(parse("(x+1)^2"), core.number(9), "x")
        assert {str(r) for r in roots} == {"2", "-4"}

    def test_two_occurrences(self):
        assert _isolate(parse("x+sin(x)"), core.zero(), "x") is None
