"""Laplace transform and its inverse.

``laplace(f, t, s)`` strips the t-free coefficient, then dispatches on shape:
constants, powers of t, sums (linearity), exponentials of a linear argument,
sin/cos/sinh/cosh of a linear argument, and the frequency-shift and t^n
rules for products. Anything else is integrated against e^(-s*t) with the
deeper ``laplace_integration_depth`` budget. Without a closed form the result
is the inert ``laplace(f, t, s)``.

``ilt(F, s, t)`` splits rational inputs into partial fractions first and
matches each piece against 1/s^n, 1/(a*s+b)^n and completed-square
quadratics; unmatched pieces stay inside an inert ``ilt(F, s, t)``.
"""

from __future__ import annotations

import math
from typing import Callable

from . import core
from .algebra import (
    coeffs,
    complete_square,
    decompose_linear,
    partfrac,
    split_fraction,
    strip_coefficient,
    terms_of,
)
from .calculus import diff, integrate
from .deadline import check_deadline, entry_point
from .expr import SUM_SHAPES, ExprNode, Shape
from .functions import call_function
from .logging_config import get_logger
from .rational import HALF, ONE, Rational
from .types import (
    DivisionByZero,
    MaximumIterationsReached,
    OutOfFunctionDomainError,
    UndefinedError,
)

logger = get_logger("transforms")


def _fn(name: str, arg: ExprNode) -> ExprNode:
    return call_function(name, [arg])


def _num(value) -> ExprNode:
    return core.number(value)


def _gamma(x: Rational) -> ExprNode:
    """Gamma(x) for a positive integer or half-integer x."""
    if x.is_integer():
        return _num(math.factorial(int(x) - 1))
    value = Rational(1)
    m = HALF
    while m < x:
        value = value * m
        m = m + 1
    return core.multiply(_num(value), core.sqrt(core.symbol("pi")))


def _is_half_integer(p: Rational) -> bool:
    return (p * 2).is_integer()


# forward transform

# (name, power) -> F(s) for f(a*t + b)
_FUNCTION_KERNELS: dict[tuple[str, Rational], Callable[[ExprNode, ExprNode, ExprNode], ExprNode]] = {
    # sin(a*t+b) = sin(a*t)*cos(b) + cos(a*t)*sin(b)
    ("sin", ONE): lambda a, b, s: core.divide(
        core.add(core.multiply(a, _fn("cos", b)), core.multiply(s, _fn("sin", b))),
        core.add(core.pow(s, _num(2)), core.pow(a, _num(2))),
    ),
    ("cos", ONE): lambda a, b, s: core.divide(
        core.subtract(core.multiply(s, _fn("cos", b)), core.multiply(a, _fn("sin", b))),
        core.add(core.pow(s, _num(2)), core.pow(a, _num(2))),
    ),
    ("sinh", ONE): lambda a, b, s: core.divide(
        core.add(core.multiply(a, _fn("cosh", b)), core.multiply(s, _fn("sinh", b))),
        core.subtract(core.pow(s, _num(2)), core.pow(a, _num(2))),
    ),
    ("cosh", ONE): lambda a, b, s: core.divide(
        core.add(core.multiply(s, _fn("cosh", b)), core.multiply(a, _fn("sinh", b))),
        core.subtract(core.pow(s, _num(2)), core.pow(a, _num(2))),
    ),
}

# power reduction: f(u)^2 rewritten in terms of f(2u)
_SQUARE_REWRITES: dict[str, Callable[[ExprNode], ExprNode]] = {
    "sin": lambda u: core.multiply(_num(HALF), core.subtract(_num(1), _fn("cos", core.multiply(_num(2), u)))),
    "cos": lambda u: core.multiply(_num(HALF), core.add(_num(1), _fn("cos", core.multiply(_num(2), u)))),
    "sinh": lambda u: core.multiply(_num(HALF), core.subtract(_fn("cosh", core.multiply(_num(2), u)), _num(1))),
    "cosh": lambda u: core.multiply(_num(HALF), core.add(_fn("cosh", core.multiply(_num(2), u)), _num(1))),
}


@entry_point
def laplace(node, t: str, s: str):
    """Laplace transform of ``node`` from ``t`` to ``s``.

    Args:
        node: Expression in t (tuples are transformed elementwise)
        t: Time variable
        s: Frequency variable

    Returns:
        F(s), or the inert ``laplace(f, t, s)`` when no closed form is found
    """
    if isinstance(node, tuple):
        return tuple(laplace(item, t, s) for item in node)
    return _transform(node, t, s)


def _transform(node: ExprNode, t: str, s: str) -> ExprNode:
    check_deadline()
    if not node.contains(t):
        return core.divide(node, core.symbol(s))

    if node.shape in SUM_SHAPES and node.power == ONE:
        total = core.zero()
        for term in terms_of(node):
            total = core.add(total, _transform(term, t, s))
        return total

    coefficient, rest = strip_coefficient(node, t)
    result = _lookup(rest, t, s)
    if result is None:
        result = _by_integration(rest, t, s)
    if result is None:
        logger.debug("No Laplace transform found for %s", rest)
        result = ExprNode.function("laplace", [rest, core.symbol(t), core.symbol(s)])
    return core.multiply(coefficient, result)


def _lookup(node: ExprNode, t: str, s: str) -> ExprNode | None:
    handler = _SHAPE_HANDLERS.get(node.shape)
    if handler is None:
        return None
    return handler(node, t, s)


def _transform_monomial(node: ExprNode, t: str, s: str) -> ExprNode | None:
    # t^p -> Gamma(p+1)/s^(p+1)
    p = node.power
    if p <= -1 or not _is_half_integer(p):
        return None
    return core.divide(_gamma(p + 1), core.pow(core.symbol(s), _num(p + 1)))


def _transform_exponential(node: ExprNode, t: str, s: str) -> ExprNode | None:
    # c^(a*t+b) -> c^b/(s - a*log(c))
    base = node.base
    if base.contains(t):
        return None
    linear = decompose_linear(node.exponent, t)
    if linear is None:
        return None
    a, b = linear
    rate = a if base.is_e() and base.multiplier == ONE else core.multiply(a, _fn("log", base))
    return core.divide(core.pow(base.clone(), b), core.subtract(core.symbol(s), rate))


def _transform_function(node: ExprNode, t: str, s: str) -> ExprNode | None:
    if len(node.args) != 1:
        return None
    linear = decompose_linear(node.args[0], t)
    if linear is None:
        return None
    if node.power == 2 and node.value in _SQUARE_REWRITES:
        return _transform(_SQUARE_REWRITES[node.value](node.args[0]), t, s)
    kernel = _FUNCTION_KERNELS.get((node.value, node.power))
    if kernel is None:
        return None
    a, b = linear
    return kernel(a, b, core.symbol(s))


def _transform_power_of_sum(node: ExprNode, t: str, s: str) -> ExprNode | None:
    expanded = core.expand(node)
    if expanded.shape in SUM_SHAPES and expanded.power == ONE:
        return _transform(expanded, t, s)
    return None


def _transform_product(node: ExprNode, t: str, s: str) -> ExprNode | None:
    factors = node.factors()
    # e^(a*t+b)*g(t) -> e^b * G(s-a)
    for factor in factors:
        if factor.shape is not Shape.EXPONENTIAL or not factor.base.is_e():
            continue
        linear = decompose_linear(factor.exponent, t)
        if linear is None:
            continue
        a, b = linear
        shifted = _transform(core.divide(node, factor), t, s)
        if shifted.contains_function("laplace"):
            return None
        moved = core.substitute(shifted, s, core.subtract(core.symbol(s), a))
        return core.multiply(core.pow(core.symbol("e"), b), moved)

    # t^n*g(t) -> (-1)^n * d^n/ds^n G(s)
    for factor in factors:
        if factor.shape is not Shape.MONOMIAL or factor.value != t:
            continue
        if not (factor.power.is_integer() and factor.power > 0):
            continue
        n = int(factor.power)
        transformed = _transform(core.divide(node, factor), t, s)
        if transformed.contains_function("laplace"):
            return None
        return core.multiply(_num((-1) ** n), diff(transformed, s, n))
    return None


_SHAPE_HANDLERS: dict[Shape, Callable[[ExprNode, str, str], ExprNode | None]] = {
    Shape.MONOMIAL: _transform_monomial,
    Shape.EXPONENTIAL: _transform_exponential,
    Shape.FUNCTION: _transform_function,
    Shape.SUM: _transform_power_of_sum,
    Shape.POLYNOMIAL: _transform_power_of_sum,
    Shape.PRODUCT: _transform_product,
}


def _decays(antiderivative: ExprNode, t: str, s: str) -> bool:
    """Every term carries an e^(...) factor in both s and t, so it vanishes as t grows."""
    for term in terms_of(core.expand(antiderivative)):
        if not term.contains(t):
            continue
        if not any(
            f.shape is Shape.EXPONENTIAL and f.base.is_e() and f.exponent.contains(s) and f.exponent.contains(t)
            for f in term.factors()
        ):
            return False
    return True


def _by_integration(node: ExprNode, t: str, s: str) -> ExprNode | None:
    """Integrate e^(-s*t)*f(t) over [0, oo) through the antiderivative."""
    from .session import get_session

    session = get_session()
    settings = session.settings
    depth = max(settings.integration_depth, settings.laplace_integration_depth)
    kernel = core.pow(core.symbol("e"), core.negate(core.multiply(core.symbol(s), core.symbol(t))))
    try:
        with session.overrides(integration_depth=depth):
            antiderivative = integrate(core.multiply(kernel, node), t)
    except MaximumIterationsReached:
        return None
    if antiderivative.contains_function("integrate") or not _decays(antiderivative, t, s):
        return None
    try:
        at_zero = core.substitute(antiderivative, t, core.zero())
    except (DivisionByZero, OutOfFunctionDomainError, UndefinedError):
        return None
    return core.negate(at_zero)


# inverse transform


@entry_point
def ilt(node, s: str, t: str):
    """Inverse Laplace transform of ``node`` from ``s`` to ``t``.

    Returns:
        f(t); pieces without a table match stay in an inert ``ilt(F, s, t)``
    """
    if isinstance(node, tuple):
        return tuple(ilt(item, s, t) for item in node)
    pieces = partfrac(node, s) if node.contains(s) else node
    result = core.zero()
    unresolved = core.zero()
    for term in terms_of(pieces):
        check_deadline()
        value = _inverse_term(term, s, t) if term.contains(s) else None
        if value is None:
            unresolved = core.add(unresolved, term)
        else:
            result = core.add(result, value)
    if not unresolved.is_zero():
        logger.debug("No inverse Laplace transform for %s", unresolved)
        result = core.add(result, ExprNode.function("ilt", [unresolved, core.symbol(s), core.symbol(t)]))
    return result


def _inverse_term(term: ExprNode, s: str, t: str) -> ExprNode | None:
    coefficient, rest = strip_coefficient(term, s)
    top, bottom = split_fraction(rest)
    if top.contains(s) and bottom.is_one():
        return None
    if bottom.shape is Shape.PRODUCT:
        return None
    order = bottom.power
    base = bottom.unit()
    base.power = ONE
    top_cs = coeffs(top, s)
    if top_cs is None or len(top_cs) > 2:
        return None
    c = top_cs[0]
    b = top_cs[1] if len(top_cs) == 2 else core.zero()

    if base.is_symbol(s):
        if not b.is_zero() or order <= 0 or not _is_half_integer(order):
            return None
        result = core.divide(core.pow(core.symbol(t), _num(order - 1)), _gamma(order))
        return core.multiply(coefficient, core.multiply(c, result))

    if not order.is_integer() or order <= 0:
        return None
    n = int(order)
    degree = len(coeffs(base, s) or []) - 1
    if degree == 1:
        result = _inverse_linear(base, c, b, n, s, t)
    elif degree == 2 and n <= 2:
        result = _inverse_quadratic(base, c, b, n, s, t)
    else:
        result = None
    if result is None:
        return None
    return core.multiply(coefficient, result)


def _inverse_linear(
    base: ExprNode, c: ExprNode, b: ExprNode, n: int, s: str, t: str
) -> ExprNode | None:
    """(b*s + c)/(p*s + q)^n."""
    p, q = decompose_linear(base, s)
    tt = core.symbol(t)

    def power(k: int) -> ExprNode:
        # 1/(p*s+q)^k -> t^(k-1)*e^(-q*t/p)/(p^k*(k-1)!)
        shift = core.pow(core.symbol("e"), core.negate(core.divide(core.multiply(q, tt), p)))
        scale = core.multiply(core.pow(p, _num(k)), _num(math.factorial(k - 1)))
        return core.divide(core.multiply(core.pow(tt, _num(k - 1)), shift), scale)

    result = core.multiply(c, power(n))
    if b.is_zero():
        return result
    if n == 1:
        return None
    # b*s = (b/p)*(p*s+q) - b*q/p
    ratio = core.divide(b, p)
    result = core.add(result, core.multiply(ratio, power(n - 1)))
    return core.subtract(result, core.multiply(core.multiply(ratio, q), power(n)))


def _inverse_quadratic(
    base: ExprNode, c: ExprNode, b: ExprNode, n: int, s: str, t: str
) -> ExprNode | None:
    """(b*s + c)/(a*(s+h)^2 + k)^n for n = 1, 2."""
    a, h, k = complete_square(base, s)
    tt = core.symbol(t)
    # b*s + c = b*(s+h) + d
    d = core.subtract(c, core.multiply(b, h))
    shift = core.pow(core.symbol("e"), core.negate(core.multiply(h, tt)))
    r = core.divide(k, a)
    sign = r.multiplier.sign() if r.is_number() else 1

    if sign == 0:
        # (s+h)^(-2n+1) and (s+h)^(-2n)
        shifted_part = core.divide(core.pow(tt, _num(2 * n - 2)), _num(math.factorial(2 * n - 2)))
        plain_part = core.divide(core.pow(tt, _num(2 * n - 1)), _num(math.factorial(2 * n - 1)))
    else:
        w = core.sqrt(r if sign > 0 else core.negate(r))
        wt = core.multiply(w, tt)
        sine, cosine = ("sin", "cos") if sign > 0 else ("sinh", "cosh")
        if n == 1:
            shifted_part = _fn(cosine, wt)
            plain_part = core.divide(_fn(sine, wt), w)
        else:
            shifted_part = core.divide(core.multiply(tt, _fn(sine, wt)), core.multiply(_num(2), w))
            # (sin(wt) - wt*cos(wt))/(2w^3), sign flipped for the hyperbolic case
            inner = core.subtract(_fn(sine, wt), core.multiply(wt, _fn(cosine, wt)))
            plain_part = core.divide(
                core.multiply(_num(sign), inner), core.multiply(_num(2), core.pow(w, _num(3)))
            )

    body = core.add(core.multiply(b, shifted_part), core.multiply(d, plain_part))
    return core.divide(core.multiply(shift, body), core.pow(a, _num(n)))
