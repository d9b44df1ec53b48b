"""Unit tests for solver module."""

import unittest

from aljabar_pkg import core
from aljabar_pkg.parser import parse
from aljabar_pkg.session import get_session
from aljabar_pkg.solver import solve, solve_system
from aljabar_pkg.types import DimensionError, ValidationError


def roots_of(text, x=None):
    return {str(root) for root in solve(parse(text), x)}


class TestSolveEquation(unittest.TestCase):
    """Test single-equation solving."""

    def test_linear_equation(self):
        self.assertEqual(roots_of("x + 1 = 0"), {"-1"})

    def test_quadratic_equation(self):
        self.assertEqual(roots_of("x^2 - 4 = 0"), {"2", "-2"})

    def test_bare_expression_means_equal_to_zero(self):
        self.assertEqual(roots_of("x^2 - 4"), {"2", "-2"})

    def test_repeated_root_listed_once(self):
        self.assertEqual(roots_of("(x-3)^2 = 0"), {"3"})

    def test_irrational_roots_are_exact(self):
        roots = solve(parse("x^2 - 2 = 0"))
        self.assertEqual(set(roots), {parse("sqrt(2)"), parse("-sqrt(2)")})

    def test_complex_roots(self):
        self.assertEqual(roots_of("x^2 + 1 = 0"), {"i", "-i"})

    def test_cubic_with_rational_roots(self):
        self.assertEqual(roots_of("x^3 - 6*x^2 + 11*x - 6 = 0"), {"1", "2", "3"})

    def test_two_term_polynomial(self):
        roots = solve(parse("x^3 = 2"))
        self.assertEqual(len(roots), 3)
        self.assertEqual(roots[0], parse("2^(1/3)"))
        self.assertTrue(all(root.contains("i") for root in roots[1:]))

    def test_mutable_operands_give_same_roots(self):
        with get_session().overrides(immutable=False):
            roots = roots_of("x^3 - 6*x^2 + 11*x - 6 = 0")
            irrational = roots_of("x^2 - 2*x - 1")
        self.assertEqual(roots, {"1", "2", "3"})
        self.assertEqual(irrational, roots_of("x^2 - 2*x - 1"))

    def test_two_term_polynomial_lists_every_root(self):
        roots = solve(parse("x^6 - 64"))
        self.assertEqual(roots[:2], [parse("2"), parse("-2")])
        self.assertEqual(
            set(roots),
            {
                parse("2"), parse("-2"),
                parse("1+i*sqrt(3)"), parse("1-i*sqrt(3)"),
                parse("-1+i*sqrt(3)"), parse("-1-i*sqrt(3)"),
            },
        )

    def test_two_term_with_negative_ratio(self):
        self.assertEqual(roots_of("x^4 + 16"), {
            str(parse("sqrt(2)+i*sqrt(2)")), str(parse("sqrt(2)-i*sqrt(2)")),
            str(parse("-sqrt(2)+i*sqrt(2)")), str(parse("-sqrt(2)-i*sqrt(2)")),
        })

    def test_symbolic_coefficients(self):
        self.assertEqual(roots_of("a*x + b = 0", "x"), {"-b/a"})

    def test_rational_equation_excludes_poles(self):
        self.assertEqual(roots_of("(x^2-1)/(x-1) = 0"), {"-1"})

    def test_product_of_factors(self):
        self.assertEqual(roots_of("x*sin(x) = 0"), {"0", "pi"})

    def test_inverse_function_isolation(self):
        roots = solve(parse("e^x = 5"))
        self.assertEqual([str(r) for r in roots], ["log(5)"])

    def test_trig_isolation(self):
        roots = solve(parse("sin(x) = 1/2"))
        self.assertIn(parse("pi/6"), roots)

    def test_numeric_fallback(self):
        roots = solve(parse("cos(x) = x"))
        self.assertEqual(len(roots), 1)
        self.assertAlmostEqual(float(roots[0]), 0.7390851332151607, places=8)

    def test_numeric_fallback_disabled(self):
        with get_session().overrides(numeric_fallback=False):
            self.assertEqual(solve(parse("cos(x) = x")), [])

    def test_no_variable(self):
        self.assertEqual(solve(parse("3 = 3")), [])


class TestSolveSystem(unittest.TestCase):
    """Test linear system solving."""

    def test_two_by_two(self):
        solution = solve_system([parse("x + y = 3"), parse("x - y = 1")])
        self.assertEqual({k: str(v) for k, v in solution.items()}, {"x": "2", "y": "1"})

    def test_rational_solution(self):
        solution = solve_system([parse("2*x + y = 1"), parse("x - y = 1")])
        self.assertEqual(str(solution["x"]), "2/3")
        self.assertEqual(str(solution["y"]), "-1/3")

    def test_symbolic_parameters(self):
        solution = solve_system([parse("x + y = a"), parse("x - y = b")], ["x", "y"])
        self.assertEqual(core.expand(solution["x"]), parse("a/2+b/2"))
        self.assertEqual(core.expand(solution["y"]), parse("a/2-b/2"))

    def test_underdetermined(self):
        with self.assertRaises(DimensionError):
            solve_system([parse("x + y = 3")])

    def test_nonlinear(self):
        with self.assertRaises(ValidationError) as ctx:
            solve_system([parse("x*y = 3"), parse("x - y = 1")])
        self.assertEqual(ctx.exception.code, "NONLINEAR_SYSTEM")

    def test_singular(self):
        with self.assertRaises(ValidationError) as ctx:
            solve_system([parse("x + y = 3"), parse("2*x + 2*y = 6")])
        self.assertEqual(ctx.exception.code, "NO_UNIQUE_SOLUTION")

    def test_inconsistent(self):
        with self.assertRaises(ValidationError) as ctx:
            solve_system([parse("x = 1"), parse("y = 2"), parse("x + y = 5")])
        self.assertEqual(ctx.exception.code, "INCONSISTENT_SYSTEM")


if __name__ == "__main__":
    unittest.main()
