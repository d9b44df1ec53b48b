"""Arithmetic core: the operators that keep expression trees canonical.

Each binary operator works in two phases. First the operands are classified
by a per-operator "alike" key (``term_key`` for addition, ``base_key`` for
multiplication). Alike operands are merged in place; everything else is
unioned into the children map of a SUM or PRODUCT, re-merging whenever a
merge produces a node whose key collides with an existing child.

Normal form:
- SUM/POLYNOMIAL hold the rational content of their terms in their own
  multiplier and their leading term is positive
- PRODUCT factors have multiplier 1; the product's multiplier carries the
  coefficient
- a zero multiplier collapses to the zero CONSTANT, a zero power to a CONSTANT
"""

from __future__ import annotations

from math import gcd
from typing import Callable

from .config import MAX_INTEGER_BITS
from .deadline import check_deadline, entry_point
from .expr import NAMED_CONSTANTS, SUM_SHAPES, ExprNode, Shape
from .rational import HALF, MINUS_ONE, ONE, ZERO, Rational
from .types import DivisionByZero, OutOfRangeError, UndefinedError

LeafFn = Callable[[str], "ExprNode | None"]

_SMALL_PRIMES = [p for p in range(2, 1000) if all(p % q for q in range(2, int(p**0.5) + 1))]


def as_node(value) -> ExprNode:
    """Coerce an int, float, Rational or ExprNode into an ExprNode."""
    if isinstance(value, ExprNode):
        return value
    if isinstance(value, (int, Rational)):
        return ExprNode.number(value)
    if isinstance(value, float):
        return ExprNode.number(Rational.from_float(value))
    if isinstance(value, str):
        from .parser import parse

        return parse(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to an expression")


def _own(node: ExprNode) -> ExprNode:
    from .session import get_session

    if get_session().settings.immutable:
        return node.clone()
    return node


def number(value) -> ExprNode:
    return ExprNode.number(value)


def zero() -> ExprNode:
    return ExprNode.number(ZERO)


def one() -> ExprNode:
    return ExprNode.number(ONE)


def symbol(name: str) -> ExprNode:
    return ExprNode.symbol(name)


def _scale(node: ExprNode, factor: Rational) -> ExprNode:
    if factor.is_zero():
        return zero()
    node.multiplier = node.multiplier * factor
    return node


# addition


def _summands(node: ExprNode):
    if node.shape in SUM_SHAPES and node.power == ONE:
        for child in node.children.values():
            child.multiplier = child.multiplier * node.multiplier
            yield child
    else:
        yield node


def _finalize_sum(children: dict[str, ExprNode]) -> ExprNode:
    terms = {k: v for k, v in children.items() if not v.multiplier.is_zero()}
    if not terms:
        return zero()
    if len(terms) == 1:
        return next(iter(terms.values()))

    node = ExprNode(Shape.SUM, children=terms)
    leading = node.terms()[0]
    num_gcd = 0
    den_lcm = 1
    for term in terms.values():
        num_gcd = gcd(num_gcd, term.multiplier.num)
        den = term.multiplier.den
        den_lcm = den_lcm * den // gcd(den_lcm, den)
    content = Rational(num_gcd, den_lcm)
    if leading.multiplier < 0:
        content = -content
    for term in terms.values():
        term.multiplier = term.multiplier / content
    node.multiplier = content

    variables = {t.value for t in terms.values() if t.shape is Shape.MONOMIAL}
    if (
        len(variables) == 1
        and all(t.shape is Shape.MONOMIAL for t in terms.values())
        and next(iter(variables)) not in NAMED_CONSTANTS
        and not any(t.is_numeric_base() for t in terms.values())
    ):
        node.shape = Shape.POLYNOMIAL
    return node


def add(a: ExprNode, b: ExprNode) -> ExprNode:
    """Sum of two expressions with like terms merged."""
    a, b = _own(a), _own(b)
    if a.is_zero():
        return b
    if b.is_zero():
        return a
    if a.is_number() and b.is_number():
        return number(a.multiplier + b.multiplier)

    children: dict[str, ExprNode] = {}
    for source in (a, b):
        for term in _summands(source):
            key = term.term_key()
            existing = children.get(key)
            if existing is None:
                children[key] = term
            else:
                existing.multiplier = existing.multiplier + term.multiplier
    return _finalize_sum(children)


def negate(a: ExprNode) -> ExprNode:
    a = _own(a)
    a.multiplier = -a.multiplier
    return a


def subtract(a: ExprNode, b: ExprNode) -> ExprNode:
    return add(a, negate(b))


# multiplication


def _base_of(node: ExprNode) -> ExprNode:
    if node.shape is Shape.EXPONENTIAL:
        return node.base.clone()
    if node.is_numeric_base():
        return number(int(node.value))
    base = node.clone()
    base.multiplier = ONE
    base.power = ONE
    return base


def _exponent_of(node: ExprNode) -> ExprNode:
    if node.shape is Shape.EXPONENTIAL:
        return node.exponent.clone()
    return number(node.power)


def _merge_factors(first: ExprNode, second: ExprNode) -> ExprNode:
    base = _base_of(first)
    exponent = add(_exponent_of(first), _exponent_of(second))
    return pow(base, exponent)


def _finalize_product(factors: dict[str, ExprNode], multiplier: Rational) -> ExprNode:
    if multiplier.is_zero():
        return zero()
    if not factors:
        return number(multiplier)
    if len(factors) == 1:
        node = next(iter(factors.values()))
        node.multiplier = multiplier
        return node
    return ExprNode(Shape.PRODUCT, multiplier=multiplier, children=factors)


def multiply(a: ExprNode, b: ExprNode) -> ExprNode:
    """Product of two expressions with matching bases merged."""
    a, b = _own(a), _own(b)
    if a.is_zero() or b.is_zero():
        return zero()
    if a.is_number():
        return _scale(b, a.multiplier)
    if b.is_number():
        return _scale(a, b.multiplier)

    multiplier = a.multiplier * b.multiplier
    pending = a.factors() + b.factors()
    factors: dict[str, ExprNode] = {}
    while pending:
        factor = pending.pop(0)
        key = factor.base_key()
        existing = factors.pop(key, None)
        if existing is None:
            factors[key] = factor
            continue
        merged = _merge_factors(existing, factor)
        multiplier = multiplier * merged.multiplier
        if merged.is_number():
            continue
        if merged.shape is Shape.PRODUCT:
            pending.extend(merged.children.values())
        else:
            merged.multiplier = ONE
            pending.append(merged)
    return _finalize_product(factors, multiplier)


def invert(a: ExprNode) -> ExprNode:
    if a.is_zero():
        raise DivisionByZero("Division by zero")
    if a.is_number():
        return number(a.multiplier.invert())
    return pow(a, number(MINUS_ONE))


def divide(a: ExprNode, b: ExprNode) -> ExprNode:
    if b.is_zero():
        raise DivisionByZero("Division by zero")
    return multiply(a, invert(b))


# exponentiation


def _integer_root(value: int, degree: int) -> int | None:
    """Exact non-negative integer root of a non-negative int, else None."""
    if value < 2:
        return value
    guess = 1 << ((value.bit_length() + degree - 1) // degree)
    while True:
        better = ((degree - 1) * guess + value // guess ** (degree - 1)) // degree
        if better >= guess:
            break
        guess = better
    return guess if guess**degree == value else None


def _split_power(value: int, degree: int) -> tuple[int, int]:
    """Write value as outside**degree * inside with inside free of small degree-th powers."""
    root = _integer_root(value, degree)
    if root is not None:
        return root, 1
    outside = 1
    inside = value
    for prime in _SMALL_PRIMES:
        target = prime**degree
        if target > inside:
            break
        while inside % target == 0:
            inside //= target
            outside *= prime
    return outside, inside


def _i_power(n: int) -> ExprNode:
    n %= 4
    if n == 0:
        return one()
    if n == 2:
        return number(MINUS_ONE)
    node = symbol("i")
    if n == 3:
        node.multiplier = MINUS_ONE
    return node


def _root_of_positive(value: Rational, exponent: Rational) -> ExprNode:
    """value**exponent for value > 0 and a non-integer exponent, kept exact."""
    whole = exponent.floor()
    fraction = exponent - whole
    degree = fraction.den
    k = fraction.num
    size = max(value.num.bit_length(), value.den.bit_length())
    radicand_bits = value.num.bit_length() + (degree - 1) * (value.den.bit_length() - 1)
    if abs(whole) * size + k * radicand_bits > MAX_INTEGER_BITS:
        raise OutOfRangeError(f"Power too large (over {MAX_INTEGER_BITS} bits)")
    coefficient = value.pow(whole)
    # (a/b)^(k/d) == (a*b^(d-1))^(k/d) / b^k
    radicand = value.num * value.den ** (degree - 1)
    coefficient = coefficient / Rational(value.den) ** k
    outside, inside = _split_power(radicand**k, degree)
    coefficient = coefficient * outside
    if inside == 1:
        return number(coefficient)
    node = ExprNode.symbol(str(inside), Rational(1, degree))
    node.multiplier = coefficient
    return node


def _pow_constant(value: Rational, exponent: Rational) -> ExprNode:
    if exponent.is_integer():
        if value.is_zero() and exponent < 0:
            raise DivisionByZero("Division by zero")
        size = max(abs(value.num).bit_length(), value.den.bit_length())
        if size > 1 and size * abs(exponent.num) > MAX_INTEGER_BITS:
            raise OutOfRangeError(f"Power too large (over {MAX_INTEGER_BITS} bits)")
        return number(value.pow(exponent))
    if value.is_zero():
        return zero()
    if value.is_one():
        return one()
    if value > 0:
        return _root_of_positive(value, exponent)

    magnitude = _root_of_positive(-value, exponent)
    degree = exponent.den
    if degree % 2 == 1:
        if exponent.num % 2:
            return negate(magnitude)
        return magnitude
    if degree == 2:
        return multiply(magnitude, _i_power(exponent.num))
    # even roots of -1 other than square roots stay symbolic
    reduced = exponent - Rational(2) * (exponent / 2).floor()
    return multiply(magnitude, ExprNode.symbol("-1", reduced))


def _pow_rational(a: ExprNode, p: Rational) -> ExprNode:
    if p.is_zero():
        if a.is_zero():
            raise UndefinedError("0^0 is undefined")
        return one()
    if p.is_one():
        return a
    if a.is_zero():
        if p < 0:
            raise DivisionByZero("Division by zero")
        return zero()
    if a.shape is Shape.CONSTANT:
        return _pow_constant(a.multiplier, p)

    if a.shape is Shape.PRODUCT:
        result = _pow_constant(a.multiplier, p)
        for factor in a.children.values():
            result = multiply(result, _pow_rational(factor, p))
        return result

    coefficient = _pow_constant(a.multiplier, p)
    a.multiplier = ONE
    if a.shape is Shape.EXPONENTIAL:
        powered = pow(a.base, multiply(a.exponent, number(p)))
    elif a.is_numeric_base():
        powered = _pow_constant(Rational(int(a.value)), a.power * p)
    elif a.shape is Shape.MONOMIAL and a.value == "i" and (a.power * p).is_integer():
        powered = _i_power(int(a.power * p))
    else:
        total = a.power * p
        if total.is_zero():
            powered = one()
        else:
            a.power = total
            powered = a
    return multiply(coefficient, powered)


def pow(a: ExprNode, b: ExprNode) -> ExprNode:
    """a raised to b; constant exponents stay in ``power``, symbolic ones build an EXPONENTIAL."""
    a, b = _own(a), _own(b)
    if b.is_number():
        return _pow_rational(a, b.multiplier)
    if a.is_one():
        return one()
    if a.is_zero():
        return zero()
    if a.shape is Shape.EXPONENTIAL and a.multiplier == ONE:
        return pow(a.base, multiply(a.exponent, b))
    if a.is_e() and a.multiplier == ONE and a.power == ONE and b.is_function("log"):
        if b.power == ONE and len(b.args) == 1:
            return _pow_rational(b.args[0], b.multiplier)
    if a.shape is Shape.MONOMIAL and a.multiplier == ONE and a.power != ONE and not a.is_numeric_base():
        exponent = multiply(b, number(a.power))
        a.power = ONE
        return ExprNode.exponential(a, exponent)
    if a.is_numeric_base() and a.multiplier == ONE:
        exponent = multiply(b, number(a.power))
        return ExprNode.exponential(number(int(a.value)), exponent)
    return ExprNode.exponential(a, b)


def sqrt(a: ExprNode) -> ExprNode:
    return pow(a, number(HALF))


# structure


def _distribute(a: ExprNode, b: ExprNode) -> ExprNode:
    left = a.terms() if a.shape in SUM_SHAPES and a.power == ONE else [a]
    right = b.terms() if b.shape in SUM_SHAPES and b.power == ONE else [b]
    a_scale = a.multiplier if len(left) > 1 else ONE
    b_scale = b.multiplier if len(right) > 1 else ONE
    total = zero()
    for x in left:
        for y in right:
            check_deadline()
            total = add(total, multiply(x, y))
    return _scale(total, a_scale * b_scale)


@entry_point
def expand(node: ExprNode) -> ExprNode:
    """Distribute products over sums and expand positive integer powers of sums."""
    shape = node.shape
    if shape in (Shape.CONSTANT, Shape.MONOMIAL):
        return node.clone()
    if shape is Shape.FUNCTION:
        rebuilt = ExprNode.function(node.value, [expand(arg) for arg in node.args])
        rebuilt.power = node.power
        rebuilt.multiplier = node.multiplier
        return rebuilt
    if shape is Shape.EXPONENTIAL:
        rebuilt = pow(expand(node.base), expand(node.exponent))
        return _scale(rebuilt, node.multiplier)
    if shape is Shape.PRODUCT:
        result = number(node.multiplier)
        for factor in node.factors():
            result = _distribute(result, expand(factor))
        return result

    # SUM / POLYNOMIAL
    inner = zero()
    for term in node.children.values():
        inner = add(inner, expand(term))
    power = node.power
    if power == ONE:
        return _scale(inner, node.multiplier)
    if power.is_integer() and power > 0:
        result = inner
        for _ in range(int(power) - 1):
            result = _distribute(result, inner)
        return _scale(result, node.multiplier)
    return _scale(_pow_rational(inner, power), node.multiplier)


def rebuild(node: ExprNode, leaf_fn: LeafFn | None = None) -> ExprNode:
    """Reassemble a tree through the operators, optionally replacing symbols.

    Args:
        node: Tree to rebuild
        leaf_fn: Called with each symbol name; a non-None return replaces it

    Returns:
        Canonical tree
    """
    from .functions import call_function

    shape = node.shape
    if shape is Shape.CONSTANT:
        return number(node.multiplier)
    if shape is Shape.MONOMIAL:
        replacement = leaf_fn(node.value) if leaf_fn is not None else None
        if replacement is None:
            if node.is_numeric_base():
                base = number(int(node.value))
            else:
                base = symbol(node.value)
        else:
            base = replacement
        return _scale(_pow_rational(base, node.power), node.multiplier)
    if shape is Shape.FUNCTION:
        args = [rebuild(arg, leaf_fn) for arg in node.args]
        result = call_function(node.value, args)
        return _scale(_pow_rational(result, node.power), node.multiplier)
    if shape is Shape.EXPONENTIAL:
        result = pow(rebuild(node.base, leaf_fn), rebuild(node.exponent, leaf_fn))
        return _scale(result, node.multiplier)
    if shape is Shape.PRODUCT:
        result = number(node.multiplier)
        for factor in node.children.values():
            result = multiply(result, rebuild(factor, leaf_fn))
        return result
    total = zero()
    for term in node.children.values():
        total = add(total, rebuild(term, leaf_fn))
    return _scale(_pow_rational(total, node.power), node.multiplier)


def substitute(node: ExprNode, name: str, value: ExprNode) -> ExprNode:
    """Replace every occurrence of the symbol ``name`` with ``value``."""
    return rebuild(node, lambda leaf: value.clone() if leaf == name else None)


def canonicalize(node: ExprNode) -> ExprNode:
    return rebuild(node)
