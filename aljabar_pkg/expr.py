"""Symbolic expression tree.

Every term is an ExprNode classified into a closed set of shapes. Each node
carries an exact rational multiplier and power plus its structural children:

- CONSTANT     multiplier only
- MONOMIAL     variable, named constant (pi, e, i) or integer base, to a power
- FUNCTION     named call with an ordered argument list
- SUM          terms keyed by their unit-multiplier rendering
- POLYNOMIAL   a SUM whose terms are all powers of one variable
- PRODUCT      factors keyed by their unit-multiplier, unit-power rendering
- EXPONENTIAL  base raised to a symbolic exponent, args = [base, exponent]

Nodes are built by the parser or the arithmetic core in ``core.py``; the
canonical rendering produced here is both the display format and the
structural key used for equality, hashing and like-term detection.
"""

from __future__ import annotations

import enum
from typing import Iterator

from .rational import HALF, ONE, ZERO, Rational


class Shape(enum.Enum):
    CONSTANT = "N"
    MONOMIAL = "S"
    FUNCTION = "FN"
    SUM = "CP"
    PRODUCT = "CB"
    POLYNOMIAL = "PL"
    EXPONENTIAL = "EX"


NAMED_CONSTANTS = frozenset({"pi", "e", "i"})
SUM_SHAPES = (Shape.SUM, Shape.POLYNOMIAL)


class ExprNode:
    """One node of the canonical expression tree."""

    __slots__ = ("shape", "value", "multiplier", "power", "children", "args")

    def __init__(
        self,
        shape: Shape,
        value: str | None = None,
        multiplier: Rational = ONE,
        power: Rational = ONE,
        children: dict[str, ExprNode] | None = None,
        args: list[ExprNode] | None = None,
    ):
        self.shape = shape
        self.value = value
        self.multiplier = multiplier
        self.power = power
        self.children = children if children is not None else {}
        self.args = args if args is not None else []

    # construction helpers

    @classmethod
    def number(cls, value) -> ExprNode:
        if not isinstance(value, Rational):
            value = Rational(value)
        return cls(Shape.CONSTANT, multiplier=value)

    @classmethod
    def symbol(cls, name: str, power: Rational = ONE) -> ExprNode:
        return cls(Shape.MONOMIAL, value=name, power=power)

    @classmethod
    def function(cls, name: str, args: list[ExprNode]) -> ExprNode:
        """Raw function-call node; no simplification is attempted."""
        return cls(Shape.FUNCTION, value=name, args=list(args))

    @classmethod
    def exponential(cls, base: ExprNode, exponent: ExprNode) -> ExprNode:
        return cls(Shape.EXPONENTIAL, args=[base, exponent])

    def clone(self) -> ExprNode:
        return ExprNode(
            self.shape,
            self.value,
            self.multiplier,
            self.power,
            {k: v.clone() for k, v in self.children.items()},
            [a.clone() for a in self.args],
        )

    def unit(self) -> ExprNode:
        """Copy with the multiplier set to one."""
        node = self.clone()
        node.multiplier = ONE
        return node

    # predicates

    def is_zero(self) -> bool:
        return self.shape is Shape.CONSTANT and self.multiplier.is_zero()

    def is_one(self) -> bool:
        return self.shape is Shape.CONSTANT and self.multiplier.is_one()

    def is_number(self) -> bool:
        return self.shape is Shape.CONSTANT

    def is_composite(self) -> bool:
        return self.shape in SUM_SHAPES

    def is_numeric_base(self) -> bool:
        return self.shape is Shape.MONOMIAL and _is_integer_text(self.value)

    def is_constant(self) -> bool:
        """True when no free variable occurs anywhere in the tree."""
        return not self.variables()

    def is_function(self, name: str | None = None) -> bool:
        return self.shape is Shape.FUNCTION and (name is None or self.value == name)

    def is_symbol(self, name: str | None = None) -> bool:
        """A bare unit-multiplier, unit-power monomial, optionally of a given name."""
        return (
            self.shape is Shape.MONOMIAL
            and self.power == ONE
            and self.multiplier == ONE
            and (name is None or self.value == name)
        )

    def is_e(self) -> bool:
        return self.shape is Shape.MONOMIAL and self.value == "e"

    @property
    def base(self) -> ExprNode:
        return self.args[0]

    @property
    def exponent(self) -> ExprNode:
        return self.args[1]

    # traversal

    def walk(self) -> Iterator[ExprNode]:
        yield self
        for child in self.children.values():
            yield from child.walk()
        for arg in self.args:
            yield from arg.walk()

    def variables(self) -> list[str]:
        names = {
            node.value
            for node in self.walk()
            if node.shape is Shape.MONOMIAL
            and node.value not in NAMED_CONSTANTS
            and not _is_integer_text(node.value)
        }
        return sorted(names)

    def contains(self, name: str) -> bool:
        for node in self.walk():
            if node.shape is Shape.MONOMIAL and node.value == name:
                return True
        return False

    def contains_function(self, name: str) -> bool:
        return any(node.is_function(name) for node in self.walk())

    def terms(self) -> list[ExprNode]:
        """Terms of a sum in canonical order, or the node itself."""
        if self.shape in SUM_SHAPES and self.power == ONE:
            return sorted(self.children.values(), key=_term_order)
        return [self]

    def factors(self) -> list[ExprNode]:
        """Factors of a product in canonical order, or the unit node itself."""
        if self.shape is Shape.PRODUCT:
            return sorted(self.children.values(), key=_factor_order)
        if self.shape is Shape.CONSTANT:
            return []
        return [self.unit()]

    # keys and rendering

    def term_key(self) -> str:
        """Key under which two terms are alike for addition."""
        if self.shape is Shape.CONSTANT:
            return "#"
        return _render(self, ONE)

    def base_key(self) -> str:
        """Key under which two factors are alike for multiplication."""
        if self.shape is Shape.CONSTANT:
            return "#" + str(self.multiplier)
        if self.shape is Shape.EXPONENTIAL:
            if self.base.multiplier == ONE:
                return self.base.base_key()
            return f"({self.base.text()})"
        return _render_factor(self, ONE)

    def text(self) -> str:
        return _render(self, self.multiplier)

    def __str__(self) -> str:
        return self.text()

    def __repr__(self) -> str:
        return f"ExprNode({self.shape.name}, {self.text()!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, ExprNode):
            return self.text() == other.text()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.text())

    # numeric conveniences

    def __float__(self) -> float:
        from .numeric import to_float

        return to_float(self)

    # operator overloads delegate to the arithmetic core

    def __add__(self, other):
        from . import core

        return core.add(self, core.as_node(other))

    def __radd__(self, other):
        from . import core

        return core.add(core.as_node(other), self)

    def __sub__(self, other):
        from . import core

        return core.subtract(self, core.as_node(other))

    def __rsub__(self, other):
        from . import core

        return core.subtract(core.as_node(other), self)

    def __mul__(self, other):
        from . import core

        return core.multiply(self, core.as_node(other))

    def __rmul__(self, other):
        from . import core

        return core.multiply(core.as_node(other), self)

    def __truediv__(self, other):
        from . import core

        return core.divide(self, core.as_node(other))

    def __rtruediv__(self, other):
        from . import core

        return core.divide(core.as_node(other), self)

    def __pow__(self, other):
        from . import core

        return core.pow(self, core.as_node(other))

    def __neg__(self):
        from . import core

        return core.negate(self)


class Equation:
    """``lhs = rhs`` as produced by the ``=`` operator."""

    __slots__ = ("lhs", "rhs")

    def __init__(self, lhs: ExprNode, rhs: ExprNode):
        self.lhs = lhs
        self.rhs = rhs

    def to_lhs(self) -> ExprNode:
        """Move everything to the left: ``lhs - rhs``."""
        from .core import subtract

        return subtract(self.lhs, self.rhs)

    def clone(self) -> Equation:
        return Equation(self.lhs.clone(), self.rhs.clone())

    def __str__(self) -> str:
        return f"{self.lhs}={self.rhs}"

    def __repr__(self) -> str:
        return f"Equation({str(self)!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, Equation):
            return self.lhs == other.lhs and self.rhs == other.rhs
        return NotImplemented

    def __hash__(self) -> int:
        return hash(str(self))


def _is_integer_text(value: str | None) -> bool:
    if not value:
        return False
    if value[0] == "-":
        value = value[1:]
    return value.isdigit()


def degree_hint(node: ExprNode) -> Rational:
    """Total power of plain variables in a term, used only for ordering."""
    if node.shape is Shape.MONOMIAL:
        if node.value in NAMED_CONSTANTS or _is_integer_text(node.value):
            return ZERO
        return node.power
    if node.shape is Shape.PRODUCT:
        total = ZERO
        for child in node.children.values():
            total = total + degree_hint(child)
        return total
    return ZERO


def _term_order(node: ExprNode):
    return (node.shape is Shape.CONSTANT, -degree_hint(node), node.term_key())


_FACTOR_RANK = {
    Shape.MONOMIAL: 2,
    Shape.FUNCTION: 3,
    Shape.SUM: 4,
    Shape.POLYNOMIAL: 4,
    Shape.EXPONENTIAL: 5,
}


def _factor_order(node: ExprNode):
    rank = _FACTOR_RANK.get(node.shape, 6)
    if node.shape is Shape.MONOMIAL:
        if _is_integer_text(node.value):
            rank = 0
        elif node.value in NAMED_CONSTANTS:
            rank = 1
    return (rank, node.base_key())


def _render(node: ExprNode, multiplier: Rational) -> str:
    shape = node.shape
    if shape is Shape.CONSTANT:
        return str(multiplier)
    if shape in SUM_SHAPES and node.power == ONE:
        return _render_terms(node, multiplier)

    if shape is Shape.PRODUCT:
        factors = sorted(node.children.values(), key=_factor_order)
    else:
        factors = [node]
    numer: list[str] = []
    denom: list[str] = []
    for factor in factors:
        power = factor.power
        if factor.shape is not Shape.EXPONENTIAL and power < 0:
            denom.append(_render_factor(factor, -power))
        else:
            numer.append(_render_factor(factor, power))

    sign = "-" if multiplier < 0 else ""
    m = abs(multiplier)
    head = [str(m.num)] if (m.num != 1 or not numer) else []
    text = "*".join(head + numer)
    bottom = ([str(m.den)] if m.den != 1 else []) + denom
    if len(bottom) == 1:
        text += "/" + bottom[0]
    elif bottom:
        text += "/(" + "*".join(bottom) + ")"
    return sign + text


def _render_terms(node: ExprNode, scale: Rational) -> str:
    pieces: list[str] = []
    for term in sorted(node.children.values(), key=_term_order):
        piece = _render(term, term.multiplier * scale)
        if pieces and not piece.startswith("-"):
            pieces.append("+")
        pieces.append(piece)
    return "".join(pieces)


def _render_factor(node: ExprNode, power: Rational) -> str:
    """Render a unit-multiplier factor raised to ``power``."""
    shape = node.shape
    if shape is Shape.EXPONENTIAL:
        return _wrap_base(node.base) + "^" + _wrap_exponent(node.exponent)
    if shape is Shape.MONOMIAL:
        inner = node.value
        base = f"({inner})" if inner.startswith("-") else inner
    elif shape is Shape.FUNCTION:
        inner = f"{node.value}({','.join(_render(a, a.multiplier) for a in node.args)})"
        base = inner
    elif shape in SUM_SHAPES:
        inner = _render_terms(node, ONE)
        base = f"({inner})"
    else:
        inner = _render(node, ONE)
        base = f"({inner})"

    if power == ONE:
        return base
    if power == HALF:
        return f"sqrt({inner})"
    if power.is_integer() and power > 0:
        return f"{base}^{power}"
    return f"{base}^({power})"


def _wrap_base(base: ExprNode) -> str:
    if base.shape is Shape.CONSTANT:
        m = base.multiplier
        if m.is_integer() and m > 0:
            return str(m)
        return f"({m})"
    if base.multiplier == ONE and base.power == ONE and base.shape in (
        Shape.MONOMIAL,
        Shape.FUNCTION,
    ):
        return _render(base, ONE)
    return f"({_render(base, base.multiplier)})"


def _wrap_exponent(exponent: ExprNode) -> str:
    text = _render(exponent, exponent.multiplier)
    if exponent.multiplier == ONE and exponent.power == ONE and exponent.shape in (
        Shape.MONOMIAL,
        Shape.FUNCTION,
    ):
        return text
    if exponent.shape is Shape.CONSTANT and exponent.multiplier.is_integer() and exponent.multiplier > 0:
        return text
    return f"({text})"
