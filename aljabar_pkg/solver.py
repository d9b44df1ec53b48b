"""Core equation and system solving module.

This module provides:
- Single equation solving (symbolic first, numeric fallback last)
- Dedicated handlers for linear, quadratic and polynomial equations
- Isolation of a single occurrence of the unknown through inverse functions
- Linear systems by Gaussian elimination

An equation is moved to one side and combined over a common denominator; the
numerator is solved and roots that zero the denominator are dropped. Numeric
roots come back as exact Rationals (continued-fraction approximations).
"""

from __future__ import annotations

from typing import Callable

from . import core
from .algebra import Polynomial, coeffs, simplify, together
from .calculus import diff
from .deadline import check_deadline, entry_point
from .expr import SUM_SHAPES, Equation, ExprNode, Shape
from .functions import call_function
from .logging_config import get_logger
from .numeric import build, find_real_roots, newton, polynomial_roots, to_rational
from .rational import ONE, Rational
from .types import (
    DimensionError,
    DivisionByZero,
    MaximumIterationsReached,
    OutOfFunctionDomainError,
    UndefinedError,
    ValidationError,
)

logger = get_logger("solver")

ZERO_TOL = 1e-9

Roots = list[ExprNode]


def _num(value) -> ExprNode:
    return core.number(value)


def _fn(name: str, arg: ExprNode) -> ExprNode:
    return call_function(name, [arg])


def _unique(roots: Roots) -> Roots:
    seen: set[str] = set()
    result = []
    for root in roots:
        key = str(root)
        if key not in seen:
            seen.add(key)
            result.append(root)
    return result


def _default_variable(expr: ExprNode, x: str | None) -> str | None:
    if x is not None:
        return x
    names = expr.variables()
    return names[0] if names else None


@entry_point
def solve(equation, x: str | None = None) -> Roots:
    """Solve an equation (or ``expr = 0``) for ``x``.

    Args:
        equation: Equation or expression assumed equal to zero
        x: Unknown (default: first free variable)

    Returns:
        List of distinct roots; empty when none are found
    """
    expr = equation.to_lhs() if isinstance(equation, Equation) else equation
    x = _default_variable(expr, x)
    if x is None or not expr.contains(x):
        return []
    numerator, denominator = together(expr)
    roots = _solve_expression(numerator, x)
    if denominator.contains(x):
        roots = [root for root in roots if not _zeroes(denominator, x, root)]
    return _unique(roots)


def _zeroes(denominator: ExprNode, x: str, root: ExprNode) -> bool:
    try:
        return core.expand(core.substitute(denominator, x, root)).is_zero()
    except (DivisionByZero, UndefinedError):
        return True


def _solve_expression(node: ExprNode, x: str) -> Roots:
    check_deadline()
    if not node.contains(x):
        return []

    poly = Polynomial.from_node(node, x)
    if poly is not None:
        return _solve_polynomial_equation(poly, x)

    cs = coeffs(node, x)
    if cs is not None and len(cs) == 2:
        return _solve_linear_equation(cs)
    if cs is not None and len(cs) == 3:
        return _solve_quadratic_equation(cs)

    if node.shape is Shape.PRODUCT:
        # a product vanishes where one of its factors does
        roots: Roots = []
        for factor in node.factors():
            if factor.contains(x) and (factor.shape is Shape.EXPONENTIAL or factor.power > 0):
                base = factor
                if factor.shape is not Shape.EXPONENTIAL:
                    base = factor.unit()
                    base.power = ONE
                roots.extend(_solve_expression(base, x))
        if roots:
            return roots

    isolated = _isolate(node, core.zero(), x)
    if isolated is not None:
        return [root for root in isolated if not root.contains(x)]

    return _numeric_roots_for_single_var(node, x)


def _solve_linear_equation(cs: list[ExprNode]) -> Roots:
    """Root of a*x + b with coefficients [b, a]."""
    b, a = cs
    return [core.negate(core.divide(b, a))]


def _solve_quadratic_equation(cs: list[ExprNode]) -> Roots:
    """Quadratic formula for a*x^2 + b*x + c with coefficients [c, b, a]."""
    c, b, a = cs
    discriminant = core.expand(
        core.subtract(core.multiply(b, b), core.multiply(_num(4), core.multiply(a, c)))
    )
    two_a = core.multiply(_num(2), a)
    minus_b = core.negate(b)
    if discriminant.is_zero():
        return [core.divide(minus_b, two_a)]
    root = core.sqrt(discriminant)
    return [
        core.divide(core.add(minus_b, root), two_a),
        core.divide(core.subtract(minus_b, root), two_a),
    ]


def _solve_polynomial_equation(poly: Polynomial, x: str) -> Roots:
    """Exact roots where possible, numeric roots for what is left.

    Two-term ``a*x^n + b`` above degree two yields all n roots directly.
    Otherwise rational roots are found first and deflated; the remaining
    factor is handled as linear, quadratic, two-term or numerically.
    """
    nonzero = [i for i, c in enumerate(poly.coefficients) if not c.is_zero()]
    if poly.degree > 2 and nonzero == [0, poly.degree]:
        return _solve_two_term(poly)

    roots: Roots = []
    remaining = poly
    for root in poly.rational_roots():
        check_deadline()
        roots.append(_num(root))
        linear = Polynomial.linear_root(root)
        while True:
            quotient, remainder = divmod(remaining, linear)
            if not remainder.is_zero():
                break
            remaining = quotient

    cs = [_num(c) for c in remaining.coefficients]
    if remaining.degree < 1:
        return roots
    if remaining.degree == 1:
        return roots + _solve_linear_equation(cs)
    if remaining.degree == 2:
        return roots + _solve_quadratic_equation(cs)

    nonzero = [i for i, c in enumerate(remaining.coefficients) if not c.is_zero()]
    if nonzero == [0, remaining.degree]:
        return roots + _solve_two_term(remaining)

    logger.debug("Falling back to numeric roots for degree %s polynomial", remaining.degree)
    return roots + _numeric_polynomial_roots(remaining)


def _solve_two_term(poly: Polynomial) -> Roots:
    """All n roots of a*x^n + b, real ones first.

    The k-th root is ``r*(cos(t) + i*sin(t))`` with ``r = |b/a|^(1/n)`` and
    ``t = (2*k + s)*pi/n``, where ``s`` is 1 when ``-b/a`` is negative.
    """
    n = poly.degree
    ratio = -poly.coefficients[0] / poly.leading
    radius = core.pow(_num(abs(ratio)), _num(Rational(1, n)))
    offset = 1 if ratio < 0 else 0
    roots: Roots = []
    for k in range(n):
        check_deadline()
        angle = core.multiply(_num(Rational(2 * k + offset, n)), core.symbol("pi"))
        unit = core.add(_fn("cos", angle), core.multiply(core.symbol("i"), _fn("sin", angle)))
        roots.append(core.expand(core.multiply(radius, unit)))
    return sorted(roots, key=lambda root: root.contains("i"))


def _numeric_polynomial_roots(poly: Polynomial) -> Roots:
    highest_first = [float(c) for c in reversed(poly.coefficients)]
    lowest_first = [float(c) for c in poly.coefficients]

    def func(value: float) -> float:
        result = 0.0
        for c in reversed(lowest_first):
            result = result * value + c
        return result

    derivative_cs = [i * c for i, c in enumerate(lowest_first)][1:]

    def derivative(value: float) -> float:
        result = 0.0
        for c in reversed(derivative_cs):
            result = result * value + c
        return result

    roots: Roots = []
    for candidate in polynomial_roots(highest_first):
        check_deadline()
        if abs(candidate.imag) > ZERO_TOL * max(1.0, abs(candidate.real)):
            continue
        value = candidate.real
        try:
            value = newton(func, derivative, value)
        except MaximumIterationsReached:
            logger.debug("Newton polish failed near %s, keeping numpy root", value)
        roots.append(_num(to_rational(value)))
    return roots


# isolation through inverse functions

# f(u) = target -> candidate values of u
_INVERSES: dict[str, Callable[[ExprNode], Roots]] = {
    "sin": lambda v: [_fn("asin", v), core.subtract(core.symbol("pi"), _fn("asin", v))],
    "cos": lambda v: [_fn("acos", v), core.negate(_fn("acos", v))],
    "tan": lambda v: [_fn("atan", v)],
    "asin": lambda v: [_fn("sin", v)],
    "acos": lambda v: [_fn("cos", v)],
    "atan": lambda v: [_fn("tan", v)],
    "sinh": lambda v: [_fn("asinh", v)],
    "cosh": lambda v: [_fn("acosh", v), core.negate(_fn("acosh", v))],
    "tanh": lambda v: [_fn("atanh", v)],
    "asinh": lambda v: [_fn("sinh", v)],
    "acosh": lambda v: [_fn("cosh", v)],
    "atanh": lambda v: [_fn("tanh", v)],
    "log": lambda v: [core.pow(core.symbol("e"), v)],
    "abs": lambda v: [v, core.negate(v)],
}


def _root_of(target: ExprNode, power: Rational) -> Roots:
    """Values u with u^power == target."""
    value = core.pow(target, _num(power.invert()))
    if power.num % 2 == 0:
        return [value, core.negate(value)]
    return [value]


def _isolate(node: ExprNode, target: ExprNode, x: str) -> Roots | None:
    """Solve node == target when x occurs in exactly one place; None otherwise."""
    check_deadline()
    if not node.contains(x):
        return None
    if node.is_symbol(x) and node.power == ONE and node.multiplier == ONE:
        return [target]

    if node.multiplier != ONE:
        unit = node.clone()
        unit.multiplier = ONE
        return _isolate(unit, core.divide(target, _num(node.multiplier)), x)

    if node.shape in SUM_SHAPES and node.power == ONE:
        with_x = [term for term in node.terms() if term.contains(x)]
        if len(with_x) != 1:
            return None
        rest = core.subtract(node, with_x[0])
        return _isolate(with_x[0], core.subtract(target, rest), x)

    if node.shape is Shape.PRODUCT:
        with_x = [factor for factor in node.factors() if factor.contains(x)]
        if len(with_x) != 1:
            return None
        rest = core.divide(node, with_x[0])
        return _isolate(with_x[0], core.divide(target, rest), x)

    if node.shape is Shape.EXPONENTIAL:
        base, exponent = node.base, node.exponent
        if base.contains(x) and exponent.contains(x):
            return None
        if base.contains(x):
            return _collect(base, [core.pow(target, core.invert(exponent))], x)
        if target.is_zero():
            return []
        if base.is_e() and base.multiplier == ONE:
            value = _fn("log", target)
        else:
            value = core.divide(_fn("log", target), _fn("log", base))
        return _isolate(exponent, value, x)

    if node.power != ONE:
        inner = node.unit()
        inner.power = ONE
        return _collect(inner, _root_of(target, node.power), x)

    if node.shape is Shape.FUNCTION and len(node.args) == 1:
        inverse = _INVERSES.get(node.value)
        if inverse is None:
            return None
        try:
            values = inverse(target)
        except OutOfFunctionDomainError:
            return []
        return _collect(node.args[0], values, x)
    return None


def _collect(node: ExprNode, targets: Roots, x: str) -> Roots | None:
    roots: Roots = []
    for target in targets:
        found = _isolate(node, target, x)
        if found is None:
            return None
        roots.extend(found)
    return roots


def _numeric_roots_for_single_var(node: ExprNode, x: str) -> Roots:
    """Grid scan plus Newton/bisection over the configured interval."""
    from .session import get_session

    if not get_session().settings.numeric_fallback or set(node.variables()) != {x}:
        return []
    logger.debug("Numeric fallback engaged for %s", node)
    try:
        func = build(node, [x])
    except ValidationError:
        return []
    try:
        derivative = build(diff(node, x), [x])
    except ValidationError:

        def derivative(value: float, h: float = 1e-7) -> float:
            return (func(value + h) - func(value - h)) / (2 * h)

    return [_num(to_rational(root)) for root in find_real_roots(func, derivative)]


# systems


@entry_point
def solve_system(equations, variables: list[str] | None = None) -> dict[str, ExprNode]:
    """Solve a linear system by Gaussian elimination.

    Args:
        equations: Equations or expressions assumed equal to zero
        variables: Unknowns (default: all free variables, sorted)

    Returns:
        Mapping from variable name to its value

    Raises:
        ValidationError: For nonlinear systems or systems without a unique solution
    """
    exprs = [eq.to_lhs() if isinstance(eq, Equation) else eq for eq in equations]
    if not exprs:
        raise ValidationError("No equations given", "NO_EQUATIONS")
    if variables is None:
        names: set[str] = set()
        for expr in exprs:
            names.update(expr.variables())
        variables = sorted(names)
    if not variables:
        raise ValidationError("No variables to solve for", "NO_VARIABLES")

    rows = [_linear_row(expr, variables) for expr in exprs]
    n = len(variables)
    if len(rows) < n:
        raise DimensionError(
            f"{len(rows)} equation(s) cannot determine {n} unknowns", "UNDERDETERMINED"
        )

    for col in range(n):
        check_deadline()
        pivot = next((r for r in range(col, len(rows)) if not rows[r][col].is_zero()), None)
        if pivot is None:
            raise ValidationError("System has no unique solution", "NO_UNIQUE_SOLUTION")
        rows[col], rows[pivot] = rows[pivot], rows[col]
        lead = rows[col][col]
        rows[col] = [core.divide(entry, lead) for entry in rows[col]]
        for r in range(len(rows)):
            if r == col or rows[r][col].is_zero():
                continue
            scale = rows[r][col]
            rows[r] = [
                core.expand(core.subtract(entry, core.multiply(scale, pivot_entry)))
                for entry, pivot_entry in zip(rows[r], rows[col])
            ]

    for row in rows[n:]:
        if not simplify(row[n]).is_zero():
            raise ValidationError("System is inconsistent", "INCONSISTENT_SYSTEM")
    return {name: simplify(rows[i][n]) for i, name in enumerate(variables)}


def _linear_row(expr: ExprNode, variables: list[str]) -> list[ExprNode]:
    """Coefficients of each variable followed by the right-hand side."""
    row = []
    constant = expr
    for name in variables:
        cs = coeffs(expr, name)
        if cs is None or len(cs) > 2:
            raise ValidationError(f"Equation is not linear in {name}", "NONLINEAR_SYSTEM")
        coefficient = cs[1] if len(cs) == 2 else core.zero()
        if any(coefficient.contains(other) for other in variables):
            raise ValidationError("Equation has products of unknowns", "NONLINEAR_SYSTEM")
        row.append(coefficient)
        constant = core.substitute(constant, name, core.zero())
    row.append(core.negate(core.expand(constant)))
    return row
