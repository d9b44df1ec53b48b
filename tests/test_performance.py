"""Performance tests and benchmarks for Aljabar.

These tests are marked as 'slow' and can be skipped with: pytest -m "not slow"
"""

import time

import pytest

from aljabar_pkg import api
from aljabar_pkg.parser import parse, render
from aljabar_pkg.session import get_session


@pytest.mark.slow
class TestParsingPerformance:
    """Test parsing performance."""

    def test_simple_expression_parsing_time(self):
        """Benchmark simple expression parsing."""
        start = time.time()
        for _ in range(100):
            parse("x^2 + 2*x + 1")
        elapsed = time.time() - start
        assert elapsed < 2.0, f"Parsing too slow: {elapsed}s"

    def test_complex_expression_parsing_time(self):
        """Benchmark complex expression parsing."""
        start = time.time()
        for _ in range(50):
            parse("sin(x) * cos(y) + tan(z) * log(w) + (x+1)^3/(y-2)")
        elapsed = time.time() - start
        assert elapsed < 2.0, f"Complex parsing too slow: {elapsed}s"

    @pytest.mark.parametrize(
        "text",
        [
            "(x+1)*(x-1) + 3*x^2 - 2*x*(x+4)",
            "expand((x+2)^3*(x-1))",
            "diff(sin(x)^2*x, x)",
            "integrate(x*e^x, x)",
            "integrate(1/(x^2-1), x)",
            "laplace(t*sin(t), t, s)",
            "ilt((s+3)/((s+1)*(s+2)), s, t)",
            "solve(x^3 - 6*x^2 + 11*x - 6, x)",
            "simplify((x^2-1)/(x-1))",
            "limit(sin(x)/x, x, 0)",
        ],
    )
    def test_mutable_mode_matches_immutable(self, text):
        """Consuming operands in place gives the same canonical results."""
        expected = render(parse(text))
        with get_session().overrides(immutable=False):
            assert render(parse(text)) == expected


@pytest.mark.slow
class TestSolvingPerformance:
    """Test solving performance."""

    def test_linear_solving_time(self):
        """Benchmark linear equation solving."""
        start = time.time()
        for i in range(50):
            result = api.solve_equation(f"x + {i} = 0")
            assert result.ok is True
        elapsed = time.time() - start
        assert elapsed < 3.0, f"Linear solving too slow: {elapsed}s"

    def test_quadratic_solving_time(self):
        """Benchmark quadratic equation solving."""
        start = time.time()
        for i in range(20):
            result = api.solve_equation(f"x^2 + {i}*x + 1 = 0")
            assert result.ok is True
        elapsed = time.time() - start
        assert elapsed < 5.0, f"Quadratic solving too slow: {elapsed}s"

    def test_system_solving_time(self):
        start = time.time()
        for i in range(20):
            result = api.solve_system(f"x + y + z = {i}, x - y = 1, y + 2*z = 3")
            assert result.ok is True
        elapsed = time.time() - start
        assert elapsed < 5.0, f"System solving too slow: {elapsed}s"


@pytest.mark.slow
class TestTransformPerformance:
    """Test calculus and transform performance."""

    def test_laplace_time(self):
        start = time.time()
        for expr in ["t^3*e^(-2*t)", "sin(3*t)*e^t", "cosh(2*t) + t^2"]:
            assert api.laplace_transform(expr).ok is True
        elapsed = time.time() - start
        assert elapsed < 5.0, f"Laplace too slow: {elapsed}s"

    def test_partial_fraction_inverse_time(self):
        start = time.time()
        result = api.inverse_laplace("(s+3)/((s+1)*(s+2)*(s^2+4))")
        elapsed = time.time() - start
        assert result.ok is True
        assert elapsed < 5.0, f"Inverse Laplace too slow: {elapsed}s"
