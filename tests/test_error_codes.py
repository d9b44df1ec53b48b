"""Test error codes returned by various functions."""

import unittest

from aljabar_pkg import api
from aljabar_pkg.parser import parse, preprocess, tokenize
from aljabar_pkg.types import CasError, ParityError, ValidationError


class TestErrorCodes(unittest.TestCase):
    """Test that functions return appropriate error codes."""

    def test_too_long_error_code(self):
        """Test that overly long input returns TOO_LONG error code."""
        long_input = "x" * 10001  # Exceeds MAX_INPUT_LENGTH
        try:
            preprocess(long_input)
            self.fail("Should have raised ValidationError")
        except ValidationError as e:
            self.assertEqual(e.code, "TOO_LONG", f"Expected TOO_LONG, got {e.code}")
            self.assertIn("too long", str(e).lower())

    def test_empty_input_error_code(self):
        with self.assertRaises(ValidationError) as ctx:
            preprocess("   ")
        self.assertEqual(ctx.exception.code, "EMPTY_INPUT")

    def test_parity_error_code(self):
        with self.assertRaises(ParityError) as ctx:
            tokenize("(x + 1]")
        self.assertEqual(ctx.exception.code, "PARITY_ERROR")
        self.assertEqual(ctx.exception.position, 6)

    def test_invalid_equation_format_error(self):
        """Test that chained equals come back as an operator error."""
        result = api.solve_equation("x = x = 1")
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "OPERATOR_ERROR")
        self.assertIn("chained", result.error.lower())

    def test_division_by_zero_error_code(self):
        result = api.evaluate("1/(2-2)")
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "DIVISION_BY_ZERO")

    def test_undefined_error_code(self):
        result = api.evaluate("0^0")
        self.assertEqual(result.error_code, "UNDEFINED")

    def test_domain_error_code(self):
        result = api.evaluate("log(0)")
        self.assertEqual(result.error_code, "OUT_OF_DOMAIN")

    def test_unknown_variable_error_code(self):
        result = api.solve_system("x + y = 3, x - y = 1", "z")
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "UNKNOWN_VARIABLE")

    def test_constant_as_index_error_code(self):
        result = api.evaluate("sum(i^2, i, 1, 10)")
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "INVALID_VARIABLE_NAME")

    def test_several_equations_to_solve_equation(self):
        result = api.solve_equation("[x + y = 3, x - y = 1]")
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "DIMENSION_ERROR")

    def test_system_error_codes(self):
        self.assertEqual(
            api.solve_system("x + y = 2, x - y = 0, x = 3").error_code,
            "INCONSISTENT_SYSTEM",
        )
        self.assertEqual(
            api.solve_system("x + y = 1, x + y = 2").error_code, "NO_UNIQUE_SOLUTION"
        )
        self.assertEqual(
            api.solve_system("x*y = 1, x + y = 2").error_code, "NONLINEAR_SYSTEM"
        )

    def test_huge_power_is_out_of_range(self):
        with self.assertRaises(CasError) as ctx:
            parse("9^9^9")
        self.assertEqual(ctx.exception.code, "OUT_OF_RANGE")

    def test_error_codes_are_strings(self):
        """Every failed API call carries a string code."""
        for text in ["(", "1/0", "sin(1,2)", "@", "x = x = 1"]:
            result = api.evaluate(text)
            self.assertFalse(result.ok, text)
            self.assertIsInstance(result.error_code, str)
            self.assertNotEqual(result.error_code, "INTERNAL_ERROR", text)


if __name__ == "__main__":
    unittest.main()
