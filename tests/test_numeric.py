"""Tests for numeric evaluation and the numeric fallbacks."""

import math

import numpy as np
import pytest

from aljabar_pkg.numeric import (
    bisection,
    build,
    find_real_roots,
    newton,
    polynomial_roots,
    quadrature,
    to_float,
    to_rational,
)
from aljabar_pkg.parser import parse
from aljabar_pkg.rational import Rational
from aljabar_pkg.session import get_session
from aljabar_pkg.types import (
    DivisionByZero,
    MaximumIterationsReached,
    OutOfFunctionDomainError,
    ValidationError,
)


class TestBuild:
    """Test compiling trees to callables."""

    def test_scalar(self):
        func = build(parse("x^2 + sin(y)"), ["x", "y"])
        assert func(3, 0) == pytest.approx(9.0)

    def test_constants(self):
        assert to_float(parse("2*pi")) == pytest.approx(2 * math.pi)
        assert to_float(parse("sqrt(2)")) == pytest.approx(math.sqrt(2))

    def test_bindings(self):
        assert to_float(parse("a*b"), {"a": 2.0, "b": 4.5}) == pytest.approx(9.0)

    def test_vectorized(self):
        func = build(parse("x^2"), ["x"], vectorize=True)
        result = func(np.array([1.0, 2.0, 3.0]))
        assert list(result) == [1.0, 4.0, 9.0]

    def test_unbound_variable(self):
        with pytest.raises(ValidationError):
            to_float(parse("x+1"))

    def test_complex_result_rejected(self):
        with pytest.raises(OutOfFunctionDomainError):
            build(parse("sqrt(x)"), ["x"])(-4)

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZero):
            build(parse("1/x"), ["x"])(0)

    def test_float_conversion(self):
        assert float(parse("1/4")) == 0.25


class TestRootFinding:
    """Test Newton, bisection and the grid scan."""

    def test_newton(self):
        root = newton(lambda x: x * x - 2, lambda x: 2 * x, 1.0)
        assert root == pytest.approx(math.sqrt(2), abs=1e-12)

    def test_newton_gives_up(self):
        with pytest.raises(MaximumIterationsReached):
            newton(lambda x: x * x + 1, lambda x: 2 * x, 0.5)

    def test_bisection(self):
        root = bisection(lambda x: x**3 - 2, 0.0, 2.0)
        assert root == pytest.approx(2 ** (1 / 3), abs=1e-10)

    def test_find_real_roots(self):
        func = build(parse("x^2 - 2"), ["x"])
        roots = find_real_roots(func, lambda x: 2 * x)
        assert roots == pytest.approx([-math.sqrt(2), math.sqrt(2)], abs=1e-9)

    def test_roots_per_side_limit(self):
        func = build(parse("sin(x)"), ["x"])
        with get_session().overrides(roots_per_side=2):
            roots = find_real_roots(func, math.cos)
        assert len(roots) == 4

    def test_polynomial_roots(self):
        roots = sorted(r.real for r in polynomial_roots([1, -3, 2]))
        assert roots == pytest.approx([1.0, 2.0])


class TestQuadrature:
    def test_polynomial(self):
        assert quadrature(lambda x: x * x, 0.0, 3.0) == pytest.approx(9.0, abs=1e-10)

    def test_unbounded_integrand(self):
        with pytest.raises(MaximumIterationsReached):
            quadrature(build(parse("1/x"), ["x"]), 0.0, 1.0)


def test_to_rational():
    assert to_rational(0.75) == Rational(3, 4)
    assert to_rational(1 / 3) == Rational(1, 3)
