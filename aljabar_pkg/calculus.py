"""Dedicated calculus operations module.

Differentiation is a shape dispatch with a derivative table keyed by function
name. Integration tries, in order: linearity, the power rule, table lookups for
functions of linear arguments, exponentials, rational functions through
partial fractions, the e^(ax)*sin(bx) cycle, u-substitution, integration by
parts, and finally an expansion retry. Depth is bounded by
``Settings.integration_depth``; without a closed form the result is the inert
``integrate(f, x)``.

Limits substitute into the combined fraction and fall back on L'Hopital's
rule; at ``Infinity`` only rational functions are handled.
"""

from __future__ import annotations

from typing import Callable

from . import core
from .config import MAX_LIMIT_DEPTH
from .algebra import (
    Polynomial,
    coeffs,
    complete_square,
    decompose_linear,
    partfrac,
    split_fraction,
    strip_coefficient,
    terms_of,
    together,
)
from .deadline import check_deadline, entry_point
from .expr import SUM_SHAPES, Equation, ExprNode, Shape
from .functions import call_function
from .logging_config import get_logger
from .numeric import build, quadrature, to_rational
from .rational import HALF, MINUS_ONE, ONE, Rational
from .types import (
    DivisionByZero,
    MaximumIterationsReached,
    OutOfFunctionDomainError,
    OutOfRangeError,
    UndefinedError,
    ValidationError,
)

logger = get_logger("calculus")

_SUBSTITUTION_SYMBOL = "__u"


def _fn(name: str, arg: ExprNode) -> ExprNode:
    return call_function(name, [arg])


def _num(value) -> ExprNode:
    return core.number(value)


def _default_variable(node, x: str | None) -> str | None:
    if x is not None:
        return x
    if isinstance(node, Equation):
        names = sorted(set(node.lhs.variables()) | set(node.rhs.variables()))
    else:
        names = node.variables()
    return names[0] if names else None


# differentiation

_DERIVATIVES: dict[str, Callable[[ExprNode], ExprNode]] = {
    "sin": lambda u: _fn("cos", u),
    "cos": lambda u: core.negate(_fn("sin", u)),
    "tan": lambda u: core.pow(_fn("cos", u), _num(-2)),
    "asin": lambda u: core.pow(core.subtract(_num(1), core.pow(u, _num(2))), _num(Rational(-1, 2))),
    "acos": lambda u: core.negate(
        core.pow(core.subtract(_num(1), core.pow(u, _num(2))), _num(Rational(-1, 2)))
    ),
    "atan": lambda u: core.invert(core.add(_num(1), core.pow(u, _num(2)))),
    "sinh": lambda u: _fn("cosh", u),
    "cosh": lambda u: _fn("sinh", u),
    "tanh": lambda u: core.pow(_fn("cosh", u), _num(-2)),
    "asinh": lambda u: core.pow(core.add(core.pow(u, _num(2)), _num(1)), _num(Rational(-1, 2))),
    "acosh": lambda u: core.pow(core.subtract(core.pow(u, _num(2)), _num(1)), _num(Rational(-1, 2))),
    "atanh": lambda u: core.invert(core.subtract(_num(1), core.pow(u, _num(2)))),
    "log": lambda u: core.invert(u),
    "abs": lambda u: core.divide(u, _fn("abs", u)),
    "erf": lambda u: core.multiply(
        core.divide(_num(2), core.sqrt(core.symbol("pi"))),
        core.pow(core.symbol("e"), core.negate(core.pow(u, _num(2)))),
    ),
}


@entry_point
def diff(node, x: str | None = None, n: int = 1):
    """Differentiate ``node`` n times with respect to ``x``.

    Args:
        node: Expression, Equation (both sides) or tuple (elementwise)
        x: Variable name (default: first free variable)
        n: Order of the derivative

    Returns:
        The derivative; unknown functions give an inert ``diff(f, x)``
    """
    if isinstance(node, tuple):
        return tuple(diff(item, x, n) for item in node)
    if isinstance(node, Equation):
        x = _default_variable(node, x)
        return Equation(diff(node.lhs, x, n), diff(node.rhs, x, n))
    if n < 0:
        raise ValidationError("Derivative order must be non-negative", "INVALID_ARGUMENT")
    x = _default_variable(node, x)
    if x is None:
        return core.zero() if n else node.clone()
    result = node
    for _ in range(n):
        result = _derive(result, x)
    return result


def _derive(node: ExprNode, x: str) -> ExprNode:
    if not node.contains(x):
        return core.zero()
    shape = node.shape
    multiplier = core.number(node.multiplier)

    if shape is Shape.MONOMIAL:
        # x^p -> p*x^(p-1)
        power = node.power
        result = core.multiply(_num(power), core.pow(core.symbol(x), _num(power - 1)))
        return core.multiply(multiplier, result)

    if shape in SUM_SHAPES and node.power == ONE:
        total = core.zero()
        for term in terms_of(node):
            total = core.add(total, _derive(term, x))
        return total

    if shape is Shape.PRODUCT:
        factors = list(node.children.values())
        total = core.zero()
        for i, factor in enumerate(factors):
            term = _derive(factor, x)
            if term.is_zero():
                continue
            for j, other in enumerate(factors):
                if i != j:
                    term = core.multiply(term, other)
            total = core.add(total, term)
        return core.multiply(multiplier, total)

    if shape is Shape.EXPONENTIAL:
        # d(a^b) = a^b * (b'*log(a) + b*a'/a)
        base, exponent = node.base, node.exponent
        rate = core.multiply(_derive(exponent, x), _fn("log", base))
        if base.contains(x):
            rate = core.add(rate, core.multiply(exponent, core.divide(_derive(base, x), base)))
        return core.multiply(node.clone(), rate)

    # FUNCTION or SUM raised to a constant power: chain rule through the power
    if node.power != ONE:
        inner = node.unit()
        inner.power = ONE
        outer = core.multiply(_num(node.power), core.pow(inner, _num(node.power - 1)))
        return core.multiply(multiplier, core.multiply(outer, _derive(inner, x)))

    return core.multiply(multiplier, _derive_function(node.unit(), x))


def _derive_function(node: ExprNode, x: str) -> ExprNode:
    name = node.value
    if name == "integrate" and len(node.args) == 2 and node.args[1].is_symbol(x):
        return node.args[0].clone()
    rule = _DERIVATIVES.get(name)
    if rule is None or len(node.args) != 1:
        logger.debug("No derivative rule for %s, returning inert diff", name)
        return ExprNode.function("diff", [node, core.symbol(x)])
    arg = node.args[0]
    return core.multiply(rule(arg.clone()), _derive(arg, x))


# integration


class _NoClosedForm(Exception):
    """Raised inside the integrator when a branch cannot be finished."""


def _power(node: ExprNode, p) -> ExprNode:
    return core.pow(node, _num(p))


def _x(x: str) -> ExprNode:
    return core.symbol(x)


# antiderivatives with respect to u for f(u)
_FUNCTION_TABLE: dict[tuple[str, Rational], Callable[[ExprNode], ExprNode]] = {
    ("sin", ONE): lambda u: core.negate(_fn("cos", u)),
    ("cos", ONE): lambda u: _fn("sin", u),
    ("tan", ONE): lambda u: core.negate(_fn("log", _fn("cos", u))),
    ("sinh", ONE): lambda u: _fn("cosh", u),
    ("cosh", ONE): lambda u: _fn("sinh", u),
    ("tanh", ONE): lambda u: _fn("log", _fn("cosh", u)),
    ("log", ONE): lambda u: core.subtract(core.multiply(u, _fn("log", u)), u),
    ("asin", ONE): lambda u: core.add(
        core.multiply(u, _fn("asin", u)),
        core.sqrt(core.subtract(_num(1), _power(u, 2))),
    ),
    ("acos", ONE): lambda u: core.subtract(
        core.multiply(u, _fn("acos", u)),
        core.sqrt(core.subtract(_num(1), _power(u, 2))),
    ),
    ("atan", ONE): lambda u: core.subtract(
        core.multiply(u, _fn("atan", u)),
        core.multiply(_num(HALF), _fn("log", core.add(_num(1), _power(u, 2)))),
    ),
    ("abs", ONE): lambda u: core.multiply(_num(HALF), core.multiply(u, _fn("abs", u))),
    ("sin", Rational(2)): lambda u: core.subtract(
        core.multiply(_num(HALF), u),
        core.multiply(_num(Rational(1, 4)), _fn("sin", core.multiply(_num(2), u))),
    ),
    ("cos", Rational(2)): lambda u: core.add(
        core.multiply(_num(HALF), u),
        core.multiply(_num(Rational(1, 4)), _fn("sin", core.multiply(_num(2), u))),
    ),
    ("tan", Rational(2)): lambda u: core.subtract(_fn("tan", u), u),
    ("cos", Rational(-2)): lambda u: _fn("tan", u),
    ("sin", Rational(-2)): lambda u: core.negate(core.divide(_fn("cos", u), _fn("sin", u))),
    ("cos", MINUS_ONE): lambda u: _fn("log", core.add(_fn("tan", u), _power(_fn("cos", u), -1))),
    ("sin", MINUS_ONE): lambda u: _fn("log", _fn("tan", core.multiply(_num(HALF), u))),
    ("cosh", Rational(-2)): lambda u: _fn("tanh", u),
    ("sinh", Rational(2)): lambda u: core.subtract(
        core.multiply(_num(Rational(1, 4)), _fn("sinh", core.multiply(_num(2), u))),
        core.multiply(_num(HALF), u),
    ),
    ("cosh", Rational(2)): lambda u: core.add(
        core.multiply(_num(Rational(1, 4)), _fn("sinh", core.multiply(_num(2), u))),
        core.multiply(_num(HALF), u),
    ),
    ("log", Rational(2)): lambda u: core.add(
        core.subtract(
            core.multiply(u, _power(_fn("log", u), 2)),
            core.multiply(_num(2), core.multiply(u, _fn("log", u))),
        ),
        core.multiply(_num(2), u),
    ),
}

_BY_PARTS_PREFERRED = ("log", "asin", "acos", "atan", "asinh", "acosh", "atanh")


@entry_point
def integrate(node, x: str | None = None):
    """Indefinite integral of ``node`` with respect to ``x``.

    Returns:
        The antiderivative without a constant, or the inert ``integrate(f, x)``
    """
    if isinstance(node, tuple):
        return tuple(integrate(item, x) for item in node)
    x = _default_variable(node, x) or "x"
    try:
        return _integrate(node, x, 0)
    except _NoClosedForm:
        logger.debug("No closed form for integral of %s", node)
        return ExprNode.function("integrate", [node.clone(), core.symbol(x)])


def integration_depth() -> int:
    from .session import get_session

    return get_session().settings.integration_depth


def _integrate(node: ExprNode, x: str, depth: int) -> ExprNode:
    check_deadline()
    if depth > integration_depth():
        raise _NoClosedForm()
    if not node.contains(x):
        return core.multiply(node, _x(x))

    if node.shape in SUM_SHAPES and node.power == ONE:
        total = core.zero()
        for term in terms_of(node):
            total = core.add(total, _integrate(term, x, depth))
        return total

    coefficient, rest = strip_coefficient(node, x)
    if not coefficient.is_one():
        return core.multiply(coefficient, _integrate(rest, x, depth))

    result = _integrate_simple(rest, x, depth)
    if result is not None:
        return result

    # distributing first keeps products of polynomials out of integration by parts
    expanded = core.expand(rest)
    if expanded.shape in SUM_SHAPES and expanded.power == ONE:
        return _integrate(expanded, x, depth + 1)

    result = _integrate_product(rest, x, depth)
    if result is not None:
        return result
    if expanded != rest:
        return _integrate(expanded, x, depth + 1)
    raise _NoClosedForm()


def _integrate_simple(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    shape = node.shape
    if shape is Shape.MONOMIAL and node.value == x:
        if node.power == MINUS_ONE:
            return _fn("log", _x(x))
        p = node.power + 1
        return core.divide(_power(_x(x), p), _num(p))

    if shape is Shape.FUNCTION and len(node.args) == 1:
        linear = decompose_linear(node.args[0], x)
        rule = _FUNCTION_TABLE.get((node.value, node.power))
        if linear is not None and rule is not None:
            a, _ = linear
            return core.divide(rule(node.args[0].clone()), a)
        return None

    if shape is Shape.EXPONENTIAL:
        return _integrate_exponential(node, x)

    if shape in SUM_SHAPES:
        return _integrate_power_of_sum(node, x, depth)
    return None


def _integrate_exponential(node: ExprNode, x: str) -> ExprNode | None:
    base, exponent = node.base, node.exponent
    if base.contains(x):
        return None
    log_base = core.one() if (base.is_e() and base.multiplier == ONE) else _fn("log", base)
    linear = decompose_linear(exponent, x)
    if linear is not None:
        a, _ = linear
        return core.divide(node.clone(), core.multiply(a, log_base))
    # e^(a*x^2): sqrt(pi)*erf(sqrt(-a)*x)/(2*sqrt(-a))
    square = complete_square(exponent, x) if log_base.is_one() else None
    if square is not None:
        a, h, k = square
        if h.is_zero() and a.is_number() and a.multiplier < 0:
            root = core.sqrt(core.negate(a))
            scale = core.divide(
                core.multiply(core.sqrt(core.symbol("pi")), core.pow(core.symbol("e"), k)),
                core.multiply(_num(2), root),
            )
            return core.multiply(scale, _fn("erf", core.multiply(root, _x(x))))
    return None


def _integrate_power_of_sum(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    base = node.unit()
    power = node.power
    base.power = ONE
    linear = decompose_linear(base, x)
    if linear is not None:
        a, _ = linear
        if power == MINUS_ONE:
            return core.divide(_fn("log", base), a)
        p = power + 1
        return core.divide(_power(base, p), core.multiply(a, _num(p)))
    if power == Rational(-1, 2):
        result = _inverse_sqrt_quadratic(base, x)
        if result is not None:
            return result
    if power.is_integer() and power > 1:
        return _integrate(core.expand(node), x, depth + 1)
    return None


def _inverse_sqrt_quadratic(base: ExprNode, x: str) -> ExprNode | None:
    square = complete_square(base, x)
    if square is None:
        return None
    a, h, k = square
    if not (a.is_number() and k.is_number()) or k.is_zero():
        return None
    shifted = core.add(_x(x), h)
    a_value, k_value = a.multiplier, k.multiplier
    if a_value < 0 < k_value:
        scale = core.sqrt(_num(-a_value / k_value))
        return core.divide(_fn("asin", core.multiply(scale, shifted)), core.sqrt(_num(-a_value)))
    if a_value > 0 and k_value > 0:
        scale = core.sqrt(_num(a_value / k_value))
        return core.divide(_fn("asinh", core.multiply(scale, shifted)), core.sqrt(_num(a_value)))
    if a_value > 0 > k_value:
        scale = core.sqrt(_num(a_value / -k_value))
        return core.divide(_fn("acosh", core.multiply(scale, shifted)), core.sqrt(_num(a_value)))
    return None


def _integrate_product(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    for rule in (_integrate_rational, _integrate_cyclic, _integrate_substitution, _integrate_by_parts):
        check_deadline()
        result = rule(node, x, depth)
        if result is not None:
            return result
    return None


def _integrate_rational(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    numerator, denominator = together(node)
    if denominator.is_one() or not denominator.contains(x):
        return None
    if Polynomial.from_node(numerator, x) is None or Polynomial.from_node(denominator, x) is None:
        return None
    pieces = partfrac(core.divide(numerator, denominator), x)
    total = core.zero()
    for term in terms_of(pieces):
        top, bottom = split_fraction(term)
        bottom_poly = Polynomial.from_node(bottom, x)
        if bottom_poly is None:
            raise _NoClosedForm()
        if bottom_poly.degree <= 1:
            total = core.add(total, _integrate(term, x, depth + 1))
        elif bottom_poly.degree == 2:
            total = core.add(total, _over_quadratic(top, bottom, x))
        else:
            raise _NoClosedForm()
    return total


def _over_quadratic(top: ExprNode, bottom: ExprNode, x: str) -> ExprNode:
    """Integral of (B*x + C)/(a*x^2 + b*x + c)."""
    top_poly = Polynomial.from_node(top, x)
    square = complete_square(bottom, x)
    if top_poly is None or top_poly.degree > 1 or square is None:
        raise _NoClosedForm()
    a, h, k = square
    if not (a.is_number() and h.is_number() and k.is_number()):
        raise _NoClosedForm()
    a_value, h_value, k_value = a.multiplier, h.multiplier, k.multiplier
    cs = top_poly.coefficients + [Rational(0)] * (2 - len(top_poly.coefficients))
    c_coeff, b_coeff = cs[0], cs[1]
    result = core.zero()
    if not b_coeff.is_zero():
        # B/(2a) * log(q) absorbs the x-part; the shift leaves C - B*h
        result = core.multiply(_num(b_coeff / (2 * a_value)), _fn("log", bottom))
    remaining = c_coeff - b_coeff * h_value
    if remaining.is_zero():
        return result
    shifted = core.add(_x(x), _num(h_value))
    ratio = k_value / a_value
    if ratio > 0:
        # 1/(a*((x+h)^2 + r)) -> atan((x+h)/sqrt(r))/(a*sqrt(r))
        root = core.sqrt(_num(ratio))
        inner = core.multiply(_num(remaining / a_value), core.divide(_fn("atan", core.divide(shifted, root)), root))
    elif ratio < 0:
        # 1/(a*((x+h)^2 - m)) -> log((x+h-sqrt(m))/(x+h+sqrt(m)))/(2*a*sqrt(m))
        root = core.sqrt(_num(-ratio))
        quotient = core.divide(core.subtract(shifted, root), core.add(shifted, root))
        inner = core.multiply(
            _num(remaining / a_value), core.divide(_fn("log", quotient), core.multiply(_num(2), root))
        )
    else:
        inner = core.multiply(_num(-remaining / a_value), core.invert(shifted))
    return core.add(result, inner)


def _x_factors(node: ExprNode, x: str) -> list[ExprNode]:
    return [f for f in node.factors() if f.contains(x)]


def _integrate_cyclic(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    """e^(a*x+c) * sin(b*x+d) and the cos counterpart."""
    factors = _x_factors(node, x)
    if len(factors) != 2:
        return None
    exponential = next((f for f in factors if f.shape is Shape.EXPONENTIAL and f.base.is_e()), None)
    trig = next(
        (f for f in factors if f.is_function() and f.value in ("sin", "cos") and f.power == ONE),
        None,
    )
    if exponential is None or trig is None:
        return None
    exp_linear = decompose_linear(exponential.exponent, x)
    trig_linear = decompose_linear(trig.args[0], x)
    if exp_linear is None or trig_linear is None:
        return None
    a, b = exp_linear[0], trig_linear[0]
    sin_part = _fn("sin", trig.args[0].clone())
    cos_part = _fn("cos", trig.args[0].clone())
    scale = core.add(core.multiply(a, a), core.multiply(b, b))
    if trig.value == "sin":
        body = core.subtract(core.multiply(a, sin_part), core.multiply(b, cos_part))
    else:
        body = core.add(core.multiply(a, cos_part), core.multiply(b, sin_part))
    return core.divide(core.multiply(exponential.clone(), body), scale)


def _outer_in_terms_of(factor: ExprNode, t: ExprNode) -> tuple[ExprNode, ExprNode] | None:
    """(inner u, outer g(t)) for a composite factor g(u)."""
    if factor.shape is Shape.FUNCTION and len(factor.args) == 1:
        outer = core.pow(call_function(factor.value, [t]), _num(factor.power))
        return factor.args[0], outer
    if factor.shape is Shape.EXPONENTIAL:
        return factor.exponent, core.pow(factor.base.clone(), t)
    if factor.shape in SUM_SHAPES and factor.power != ONE:
        inner = factor.unit()
        inner.power = ONE
        return inner, core.pow(t, _num(factor.power))
    return None


def _integrate_substitution(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    t = core.symbol(_SUBSTITUTION_SYMBOL)
    candidates = node.factors() if node.shape is Shape.PRODUCT else [node]
    for factor in candidates:
        check_deadline()
        composite = _outer_in_terms_of(factor, t)
        if composite is None:
            continue
        inner, outer = composite
        if decompose_linear(inner, x) is not None:
            continue
        rest = core.divide(node, factor)
        du = _derive(inner, x)
        if du.is_zero():
            continue
        ratio = core.divide(rest, du)
        if ratio.contains(x):
            ratio = core.expand(ratio)
            if ratio.contains(x):
                continue
        try:
            antiderivative = _integrate(outer, _SUBSTITUTION_SYMBOL, depth + 1)
        except _NoClosedForm:
            continue
        return core.multiply(ratio, core.substitute(antiderivative, _SUBSTITUTION_SYMBOL, inner))

    # g(x)^p * g'(x): the factor itself is the substitution
    for factor in candidates:
        check_deadline()
        if factor.shape not in (Shape.FUNCTION, Shape.SUM, Shape.POLYNOMIAL) or factor is node:
            continue
        base = factor.unit()
        power = base.power
        base.power = ONE
        du = _derive(base, x)
        if du.is_zero():
            continue
        ratio = core.divide(core.divide(node, factor), du)
        if ratio.contains(x):
            continue
        if power == MINUS_ONE:
            return core.multiply(ratio, _fn("log", base))
        return core.multiply(ratio, core.divide(_power(base, power + 1), _num(power + 1)))
    return None


def _integrate_by_parts(node: ExprNode, x: str, depth: int) -> ExprNode | None:
    factors = _x_factors(node, x)
    if len(factors) < 2 and not (len(factors) == 1 and factors[0].value in _BY_PARTS_PREFERRED):
        return None
    u = next(
        (f for f in factors if f.is_function() and f.value in _BY_PARTS_PREFERRED and f.power == ONE),
        None,
    )
    if u is None:
        u = next(
            (
                f
                for f in factors
                if f.shape is Shape.MONOMIAL and f.power.is_integer() and f.power > 0
            ),
            None,
        )
    if u is None:
        return None
    dv = core.divide(node, u)
    try:
        v = _integrate(dv, x, depth + 1)
        remainder = _integrate(core.multiply(_derive(u, x), v), x, depth + 1)
    except _NoClosedForm:
        return None
    return core.subtract(core.multiply(u, v), remainder)


@entry_point
def defint(f: ExprNode, a: ExprNode, b: ExprNode, x: str | None = None) -> ExprNode:
    """Definite integral: antiderivative difference, else adaptive quadrature."""
    x = _default_variable(f, x) or "x"
    antiderivative = integrate(f, x)
    if not antiderivative.contains_function("integrate"):
        try:
            upper = core.substitute(antiderivative, x, b)
            lower = core.substitute(antiderivative, x, a)
            return core.subtract(upper, lower)
        except (DivisionByZero, OutOfFunctionDomainError):
            logger.debug("Antiderivative undefined at a bound, trying quadrature")
    if a.is_constant() and b.is_constant() and set(f.variables()) <= {x}:
        try:
            low, high = float(a), float(b)
            value = quadrature(build(f, [x]), low, high)
            return core.number(to_rational(value))
        except MaximumIterationsReached:
            logger.debug("Quadrature did not converge for %s", f)
    return ExprNode.function("defint", [f.clone(), a.clone(), b.clone(), core.symbol(x)])


def _integer_bound(node: ExprNode) -> int | None:
    if isinstance(node, ExprNode) and node.is_number() and node.multiplier.is_integer():
        return int(node.multiplier)
    return None


def _series(kind: str, f: ExprNode, index: str, start: ExprNode, end: ExprNode) -> ExprNode:
    from .session import get_session

    low, high = _integer_bound(start), _integer_bound(end)
    if low is None or high is None:
        return ExprNode.function(kind, [f.clone(), core.symbol(index), start.clone(), end.clone()])
    max_terms = get_session().settings.max_series_terms
    if high - low + 1 > max_terms:
        raise OutOfRangeError(f"{kind} over more than {max_terms} terms")
    combine = core.add if kind == "sum" else core.multiply
    result = core.zero() if kind == "sum" else core.one()
    for i in range(low, high + 1):
        check_deadline()
        result = combine(result, core.substitute(f, index, core.number(i)))
    return result


@entry_point
def series_sum(f: ExprNode, index: str, start: ExprNode, end: ExprNode) -> ExprNode:
    """sum(f, i, a, b) over the integers a..b."""
    return _series("sum", f, index, start, end)


@entry_point
def series_product(f: ExprNode, index: str, start: ExprNode, end: ExprNode) -> ExprNode:
    """product(f, i, a, b) over the integers a..b."""
    return _series("product", f, index, start, end)




_INFINITY_NAMES = ("Infinity", "inf")


def _is_infinity(point: ExprNode) -> bool:
    return (
        point.shape is Shape.MONOMIAL
        and point.value in _INFINITY_NAMES
        and point.power == ONE
        and not point.multiplier.is_zero()
    )


def _value_at(node: ExprNode, x: str, point: ExprNode) -> ExprNode | None:
    try:
        return core.expand(core.substitute(node, x, point))
    except (DivisionByZero, UndefinedError, OutOfFunctionDomainError):
        return None


@entry_point
def limit(node: ExprNode, x: str, point: ExprNode) -> ExprNode:
    """Two-sided limit of ``node`` as ``x`` approaches ``point``.

    Finite points are substituted into the combined fraction; a 0/0 form is
    retried with L'Hopital's rule up to ``MAX_LIMIT_DEPTH`` times.
    ``Infinity`` (or ``-Infinity``) compares the degrees of a rational
    function.

    Raises:
        UndefinedError: When the limit is unbounded
    """
    if not node.contains(x):
        return node.clone()
    if _is_infinity(point):
        result = _limit_at_infinity(node, x)
    else:
        result = _limit_at_point(node, x, point)
    if result is None:
        return ExprNode.function("limit", [node.clone(), core.symbol(x), point.clone()])
    return result


def _limit_at_point(node: ExprNode, x: str, point: ExprNode) -> ExprNode | None:
    numerator, denominator = together(node)
    for _ in range(MAX_LIMIT_DEPTH):
        check_deadline()
        top = _value_at(numerator, x, point)
        bottom = _value_at(denominator, x, point)
        if top is None or bottom is None:
            return None
        if not bottom.is_zero():
            return core.divide(top, bottom)
        if not top.is_zero():
            raise UndefinedError(f"limit of {node} as {x} -> {point} does not exist")
        numerator, denominator = diff(numerator, x), diff(denominator, x)
    logger.debug("L'Hopital's rule did not settle for %s", node)
    return None


def _limit_at_infinity(node: ExprNode, x: str) -> ExprNode | None:
    numerator, denominator = together(node)
    top, bottom = coeffs(numerator, x), coeffs(denominator, x)
    if top is None or bottom is None:
        return None
    if len(top) < len(bottom):
        return core.zero()
    if len(top) > len(bottom):
        raise UndefinedError(f"limit of {node} as {x} -> Infinity is unbounded")
    return core.divide(top[-1], bottom[-1])
