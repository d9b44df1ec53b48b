"""Unit tests for exact rational arithmetic."""

import unittest

from aljabar_pkg.rational import Rational
from aljabar_pkg.types import DivisionByZero, ParseError


class TestConstruction(unittest.TestCase):
    """Test that rationals are always reduced with a positive denominator."""

    def test_reduces(self):
        r = Rational(6, 8)
        self.assertEqual((r.num, r.den), (3, 4))

    def test_negative_denominator_moves_sign(self):
        r = Rational(1, -2)
        self.assertEqual((r.num, r.den), (-1, 2))

    def test_zero_denominator(self):
        with self.assertRaises(DivisionByZero):
            Rational(1, 0)

    def test_from_strings(self):
        self.assertEqual(Rational("0.25"), Rational(1, 4))
        self.assertEqual(Rational("3/6"), Rational(1, 2))
        self.assertEqual(Rational("1.5e2"), Rational(150))
        self.assertEqual(Rational("-2.5"), Rational(-5, 2))

    def test_bad_literal(self):
        with self.assertRaises(ParseError):
            Rational("1.2.3")

    def test_float_is_exact(self):
        self.assertEqual(Rational(0.5), Rational(1, 2))

    def test_from_float_bounds_denominator(self):
        r = Rational.from_float(1 / 3, max_denominator=1000)
        self.assertEqual(r, Rational(1, 3))

    def test_immutable(self):
        r = Rational(1, 2)
        with self.assertRaises(AttributeError):
            r.num = 3


class TestArithmetic(unittest.TestCase):
    """Test that arithmetic never rounds."""

    def test_sum_of_thirds_and_sixths(self):
        self.assertEqual(Rational(1, 3) + Rational(1, 6), Rational(1, 2))

    def test_mixed_with_int(self):
        self.assertEqual(Rational(1, 2) + 1, Rational(3, 2))
        self.assertEqual(1 - Rational(1, 4), Rational(3, 4))
        self.assertEqual(2 * Rational(1, 4), Rational(1, 2))
        self.assertEqual(1 / Rational(1, 4), Rational(4))

    def test_division_by_zero(self):
        with self.assertRaises(DivisionByZero):
            Rational(1, 2) / 0
        with self.assertRaises(DivisionByZero):
            Rational(0).invert()

    def test_negative_power(self):
        self.assertEqual(Rational(2, 3) ** -2, Rational(9, 4))

    def test_large_values_stay_exact(self):
        big = Rational(10**40 + 1, 3)
        self.assertEqual((big * 3).num, 10**40 + 1)

    def test_floor_and_int(self):
        self.assertEqual(Rational(-7, 2).floor(), -4)
        self.assertEqual(int(Rational(-7, 2)), -3)

    def test_mod_sign_follows_divisor(self):
        self.assertEqual(Rational(7).mod(3), Rational(1))
        self.assertEqual(Rational(-7).mod(3), Rational(2))

    def test_ordering(self):
        self.assertLess(Rational(1, 3), Rational(1, 2))
        self.assertGreater(Rational(-1, 3), -1)
        self.assertEqual(Rational(4, 2), 2)
        self.assertEqual(hash(Rational(4, 2)), hash(Rational(2)))


class TestDecimal(unittest.TestCase):
    """Test decimal rendering."""

    def test_exact_decimal(self):
        self.assertEqual(Rational(1, 4).to_decimal(), "0.25")

    def test_repeating_decimal_rounds(self):
        self.assertEqual(Rational(2, 3).to_decimal(5), "0.66667")

    def test_integer(self):
        self.assertEqual(Rational(-12).to_decimal(), "-12")

    def test_small_value_keeps_significant_digits(self):
        self.assertEqual(Rational(1, 3000).to_decimal(3), "0.000333")

    def test_str(self):
        self.assertEqual(str(Rational(3, 4)), "3/4")
        self.assertEqual(str(Rational(8, 4)), "2")


if __name__ == "__main__":
    unittest.main()
