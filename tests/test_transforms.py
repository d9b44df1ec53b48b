"""Tests for the Laplace transform and its inverse."""

import math

import pytest

from aljabar_pkg.numeric import build
from aljabar_pkg.parser import parse
from aljabar_pkg.session import get_session
from aljabar_pkg.transforms import ilt, laplace


def L(text):
    return laplace(parse(text), "t", "s")


def inverse(text):
    return ilt(parse(text), "s", "t")


def assert_close_in(node, variable, expected, points=(0.5, 1.0, 2.5)):
    func = build(node, [variable])
    for point in points:
        assert func(point) == pytest.approx(expected(point), rel=1e-9, abs=1e-12)


class TestLaplace:
    """Test forward transforms."""

    def test_power_of_t(self):
        """Test t^2 -> 2/s^3."""
        assert str(L("t^2")) == "2/s^3"

    def test_constant(self):
        assert L("5") == parse("5/s")

    def test_linearity(self):
        assert L("2*t + 3") == parse("2/s^2 + 3/s")

    def test_exponential(self):
        assert L("e^(2*t)") == parse("1/(s-2)")

    def test_exponential_with_offset(self):
        assert L("3*e^(-t+1)") == parse("3*e/(s+1)")

    def test_sine_and_cosine(self):
        assert L("sin(3*t)") == parse("3/(s^2+9)")
        assert L("cos(t)") == parse("s/(s^2+1)")

    def test_hyperbolic(self):
        assert L("sinh(2*t)") == parse("2/(s^2-4)")

    def test_square_of_sine(self):
        expected = lambda s: 2 / (s * (s**2 + 4))
        assert_close_in(L("sin(t)^2"), "s", expected)

    def test_half_integer_power(self):
        expected = lambda s: math.sqrt(math.pi) / 2 / s**1.5
        assert_close_in(L("sqrt(t)"), "s", expected)

    def test_frequency_shift(self):
        assert L("t*e^t") == parse("1/(s-1)^2")

    def test_multiplication_by_t(self):
        expected = lambda s: 2 * s / (s**2 + 1) ** 2
        assert_close_in(L("t*sin(t)"), "s", expected)

    def test_multiplication_by_t_with_mutable_operands(self):
        expected = lambda s: 2 * s / (s**2 + 1) ** 2
        with get_session().overrides(immutable=False):
            result = L("t*sin(t)")
        assert_close_in(result, "s", expected)

    def test_symbolic_coefficient_kept(self):
        assert L("a*t") == parse("a/s^2")

    def test_no_closed_form_is_inert(self):
        result = L("tan(t)")
        assert result.is_function("laplace")
        assert str(result) == "laplace(tan(t),t,s)"

    def test_integration_depth_restored(self):
        before = get_session().settings.integration_depth
        L("tan(t)")
        assert get_session().settings.integration_depth == before

    def test_elementwise(self):
        result = laplace(parse("[1, t]"), "t", "s")
        assert result == (parse("1/s"), parse("1/s^2"))

    def test_parsed_call(self):
        assert str(parse("laplace(t^2, t, s)")) == "2/s^3"


class TestInverseLaplace:
    """Test inverse transforms."""

    def test_power_of_s(self):
        """Test 1/s^3 -> t^2/2."""
        assert inverse("1/s^3") == parse("t^2/2")

    def test_shifted_pole(self):
        assert inverse("1/(s-2)") == parse("e^(2*t)")

    def test_sine(self):
        assert inverse("1/(s^2+1)") == parse("sin(t)")

    def test_cosine(self):
        assert inverse("s/(s^2+4)") == parse("cos(2*t)")

    def test_partial_fractions(self):
        assert_close_in(inverse("1/(s^2-1)"), "t", math.sinh)

    def test_repeated_pole(self):
        assert_close_in(inverse("1/(s+1)^2"), "t", lambda t: t * math.exp(-t))

    def test_damped_oscillation(self):
        expected = lambda t: math.exp(-t) * math.sin(2 * t) / 2
        assert_close_in(inverse("1/(s^2+2*s+5)"), "t", expected)

    def test_round_trip(self):
        forward = L("t*e^(-t) + cos(3*t)")
        expected = lambda t: t * math.exp(-t) + math.cos(3 * t)
        assert_close_in(ilt(forward, "s", "t"), "t", expected)

    def test_unmatched_piece_is_inert(self):
        result = inverse("e^(-s)")
        assert str(result) == "ilt(e^(-s),s,t)"

    def test_matched_and_unmatched_terms(self):
        result = inverse("1/s + e^(-s)")
        assert len(result.terms()) == 2
        assert parse("1") in result.terms()
        assert result.contains_function("ilt")
