"""Built-in function table.

Each entry is a FunctionSpec: an arity range plus either a Python
implementation over ExprNode arguments or a user-defined body. Built-ins
simplify what they can exactly (special values, sign symmetry, inverse
pairs) and otherwise return an unevaluated FUNCTION node.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from . import core
from .config import MAX_INTEGER_BITS
from .expr import NAMED_CONSTANTS, Equation, ExprNode, Shape
from .rational import HALF, MINUS_ONE, ONE, ZERO, Rational
from .types import (
    DimensionError,
    DivisionByZero,
    InvalidVariableNameError,
    OperatorError,
    OutOfFunctionDomainError,
    OutOfRangeError,
    ValidationError,
)


@dataclass
class FunctionSpec:
    name: str
    implementation: Callable | None
    min_args: int = 1
    max_args: int | None = 1
    params: list[str] | None = None
    body: ExprNode | None = None
    # receives tuples whole instead of being mapped over their items
    vector_aware: bool = False

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                expected = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f"{self.min_args} to {self.max_args}"
            raise OperatorError(
                f"Function '{self.name}' expects {expected} argument(s), got {count}",
                token=self.name,
            )

    def __call__(self, args: list):
        if self.body is not None:
            mapping = dict(zip(self.params or [], args))
            return core.rebuild(self.body, lambda name: _fresh(mapping.get(name)))
        return self.implementation(*args)


def _fresh(value):
    return value.clone() if isinstance(value, ExprNode) else value


def call_function(name: str, args: list):
    """Apply a session function by name; unknown names stay unevaluated."""
    from .session import get_session

    spec = get_session().functions.get(name)
    if spec is None:
        return ExprNode.function(name, args)
    spec.check_arity(len(args))
    if not spec.vector_aware and args and isinstance(args[0], tuple):
        return tuple(call_function(name, [item] + list(args[1:])) for item in args[0])
    return spec(args)


def symbol_name(node, role: str = "variable") -> str:
    """Name of a bare symbol argument such as the ``x`` in ``diff(f, x)``."""
    if isinstance(node, ExprNode) and node.is_symbol():
        if node.value in NAMED_CONSTANTS:
            raise InvalidVariableNameError(f"'{node.value}' is a constant, not a {role} name")
        return node.value
    raise ValidationError(f"Expected a {role} name, got '{node}'", "INVALID_ARGUMENT")


def _is_negative(node: ExprNode) -> bool:
    return node.multiplier < 0


def _pi_multiple(node: ExprNode) -> Rational | None:
    """k when node is k*pi, 0 for zero, else None."""
    if node.is_zero():
        return ZERO
    if node.shape is Shape.MONOMIAL and node.value == "pi" and node.power == ONE:
        return node.multiplier
    return None


def _half_sqrt(n: int) -> ExprNode:
    return core.multiply(core.number(HALF), core.sqrt(core.number(n)))


def _sin_of_pi_multiple(k: Rational) -> ExprNode | None:
    k = k - Rational(2) * (k / 2).floor()
    sign = ONE
    if k >= 1:
        sign = MINUS_ONE
        k = k - 1
    if k > HALF:
        k = ONE - k
    table = {
        ZERO: lambda: core.zero(),
        Rational(1, 6): lambda: core.number(HALF),
        Rational(1, 4): lambda: _half_sqrt(2),
        Rational(1, 3): lambda: _half_sqrt(3),
        HALF: lambda: core.one(),
    }
    value = table.get(k)
    if value is None:
        return None
    return core.multiply(core.number(sign), value())


def _sin(x: ExprNode) -> ExprNode:
    k = _pi_multiple(x)
    if k is not None:
        exact = _sin_of_pi_multiple(k)
        if exact is not None:
            return exact
    if _is_negative(x):
        return core.negate(_sin(core.negate(x)))
    if x.is_function("asin") and x.multiplier == ONE and x.power == ONE:
        return x.args[0]
    return ExprNode.function("sin", [x])


def _cos(x: ExprNode) -> ExprNode:
    k = _pi_multiple(x)
    if k is not None:
        exact = _sin_of_pi_multiple(HALF - k)
        if exact is not None:
            return exact
    if _is_negative(x):
        return _cos(core.negate(x))
    if x.is_function("acos") and x.multiplier == ONE and x.power == ONE:
        return x.args[0]
    return ExprNode.function("cos", [x])


def _tan(x: ExprNode) -> ExprNode:
    k = _pi_multiple(x)
    if k is not None:
        sine = _sin_of_pi_multiple(k)
        cosine = _sin_of_pi_multiple(HALF - k)
        if sine is not None and cosine is not None:
            if cosine.is_zero():
                raise OutOfFunctionDomainError(f"tan is undefined at {x}")
            return core.divide(sine, cosine)
    if _is_negative(x):
        return core.negate(_tan(core.negate(x)))
    if x.is_function("atan") and x.multiplier == ONE and x.power == ONE:
        return x.args[0]
    return ExprNode.function("tan", [x])


def _reciprocal(func: Callable[[ExprNode], ExprNode]) -> Callable[[ExprNode], ExprNode]:
    return lambda x: core.invert(func(x))


_ASIN_TABLE = {
    ZERO: ZERO,
    HALF: Rational(1, 6),
    ONE: HALF,
}


def _asin(x: ExprNode) -> ExprNode:
    if x.is_number():
        value = x.multiplier
        if abs(value) > 1:
            raise OutOfFunctionDomainError(f"asin is undefined at {value}")
        if abs(value) in _ASIN_TABLE:
            k = _ASIN_TABLE[abs(value)] * value.sign()
            return core.multiply(core.number(k), core.symbol("pi"))
    if _is_negative(x):
        return core.negate(_asin(core.negate(x)))
    return ExprNode.function("asin", [x])


def _acos(x: ExprNode) -> ExprNode:
    if x.is_number():
        value = x.multiplier
        if abs(value) > 1:
            raise OutOfFunctionDomainError(f"acos is undefined at {value}")
        if abs(value) in _ASIN_TABLE:
            return core.subtract(
                core.multiply(core.number(HALF), core.symbol("pi")), _asin(x)
            )
    if _is_negative(x):
        return core.subtract(core.symbol("pi"), _acos(core.negate(x)))
    return ExprNode.function("acos", [x])


def _atan(x: ExprNode) -> ExprNode:
    if x.is_zero():
        return core.zero()
    if x.is_one():
        return core.multiply(core.number(Rational(1, 4)), core.symbol("pi"))
    if _is_negative(x):
        return core.negate(_atan(core.negate(x)))
    return ExprNode.function("atan", [x])


def _odd(name: str, at_zero: int = 0) -> Callable[[ExprNode], ExprNode]:
    def apply(x: ExprNode) -> ExprNode:
        if x.is_zero():
            return core.number(at_zero)
        if _is_negative(x):
            return core.negate(apply(core.negate(x)))
        return ExprNode.function(name, [x])

    return apply


def _cosh(x: ExprNode) -> ExprNode:
    if x.is_zero():
        return core.one()
    if _is_negative(x):
        return _cosh(core.negate(x))
    return ExprNode.function("cosh", [x])


def _acosh(x: ExprNode) -> ExprNode:
    if x.is_one():
        return core.zero()
    return ExprNode.function("acosh", [x])


def _log(x: ExprNode, base: ExprNode | None = None) -> ExprNode:
    if base is not None:
        return core.divide(_log(x), _log(base))
    if x.is_zero():
        raise OutOfFunctionDomainError("log(0) is undefined")
    if x.is_one():
        return core.zero()
    if x.multiplier == ONE:
        if x.is_e():
            return core.number(x.power)
        if x.shape is Shape.EXPONENTIAL and x.base.is_e() and x.base.multiplier == ONE:
            return x.exponent
    return ExprNode.function("log", [x])


def _log10(x: ExprNode) -> ExprNode:
    return core.divide(_log(x), ExprNode.function("log", [core.number(10)]))


def _exp(x: ExprNode) -> ExprNode:
    return core.pow(core.symbol("e"), x)


def _abs(x: ExprNode) -> ExprNode:
    if x.is_number():
        return core.number(abs(x.multiplier))
    scale = abs(x.multiplier)
    unit = x.unit()
    if unit.shape is Shape.MONOMIAL and unit.value in ("pi", "e"):
        return core.multiply(core.number(scale), unit)
    if unit.is_function("abs") and unit.power == ONE:
        return core.multiply(core.number(scale), unit)
    return core.multiply(core.number(scale), ExprNode.function("abs", [unit]))


def _mod(a: ExprNode, b: ExprNode) -> ExprNode:
    """Remainder taking the sign of the divisor; symbolic operands stay inert."""
    if b.is_zero():
        raise DivisionByZero("Modulo by zero")
    if a.is_number() and b.is_number():
        return core.number(a.multiplier.mod(b.multiplier))
    return ExprNode.function("mod", [a, b])


def _factorial(x: ExprNode) -> ExprNode:
    if x.is_number() and x.multiplier.is_integer():
        n = int(x.multiplier)
        if n < 0:
            raise OutOfFunctionDomainError(f"factorial is undefined for {n}")
        if n > 1 and n * math.log2(n) > MAX_INTEGER_BITS:
            raise OutOfRangeError(f"factorial of {n} is too large")
        return core.number(math.factorial(n))
    return ExprNode.function("factorial", [x])


def _extreme(name: str, pick: Callable) -> Callable[..., ExprNode]:
    def apply(*args: ExprNode) -> ExprNode:
        if len(args) == 1 and isinstance(args[0], tuple):
            args = args[0]
        if all(isinstance(a, ExprNode) and a.is_constant() for a in args):
            from .numeric import to_float

            return pick(args, key=to_float)
        return ExprNode.function(name, list(args))

    return apply


# transforms are imported lazily to keep the arithmetic layer import-free


def _diff(f, x=None, n=None):
    from .calculus import diff

    name = symbol_name(x) if x is not None else None
    times = 1 if n is None else _integer_argument(n, "diff")
    return diff(f, name, times)


def _integrate(f, x=None):
    from .calculus import integrate

    return integrate(f, symbol_name(x) if x is not None else None)


def _defint(f, a, b, x=None):
    from .calculus import defint

    return defint(f, a, b, symbol_name(x) if x is not None else None)


def _series(kind: str):
    def apply(f, index, start, end):
        from . import calculus

        return getattr(calculus, kind)(f, symbol_name(index, "index"), start, end)

    return apply


def _laplace(f, t, s):
    from .transforms import laplace

    return laplace(f, symbol_name(t), symbol_name(s))


def _ilt(f, s, t):
    from .transforms import ilt

    return ilt(f, symbol_name(s), symbol_name(t))


def _solve(equation, x=None):
    from .solver import solve

    return tuple(solve(equation, symbol_name(x) if x is not None else None))


def _expand(f):
    return core.expand(f)


def _simplify(f):
    from .algebra import simplify

    return simplify(f)


def _factor(f):
    from .algebra import factor

    return factor(f)


def _partfrac(f, x=None):
    from .algebra import partfrac

    return partfrac(f, symbol_name(x) if x is not None else None)


def _optional_name(x) -> str | None:
    return symbol_name(x) if x is not None else None


def _gcd(a, b, x=None):
    from .algebra import polynomial_gcd

    return polynomial_gcd(a, b, _optional_name(x))


def _lcm(a, b, x=None):
    from .algebra import polynomial_lcm

    return polynomial_lcm(a, b, _optional_name(x))


def _divide(a, b, x=None):
    from .algebra import poly_divide

    return poly_divide(a, b, _optional_name(x))


def _sqcomp(f, x=None):
    from .algebra import square_completion

    return square_completion(f, _optional_name(x))


def _polynomial_in(f, x, function: str) -> tuple[list[ExprNode], str | None]:
    """Coefficients of ``f``, lowest degree first, and the variable they belong to."""
    from .algebra import coeffs

    if x is not None:
        name = symbol_name(x)
    else:
        names = f.variables()
        if len(names) > 1:
            raise ValidationError(f"{function} needs a variable for '{f}'", "INVALID_ARGUMENT")
        if not names:
            return [f], None
        name = names[0]
    cs = coeffs(f, name)
    if cs is None:
        raise DimensionError(f"{function} needs a polynomial in {name}, got '{f}'")
    return cs, name


def _deg(f, x=None):
    cs, _ = _polynomial_in(f, x, "deg")
    return core.number(len(cs) - 1)


def _coeffs(f, x=None):
    cs, _ = _polynomial_in(f, x, "coeffs")
    return tuple(cs)


def _roots(f, x=None):
    from .solver import solve

    _, name = _polynomial_in(f, x, "roots")
    if name is None:
        return ()
    return tuple(solve(f, name))


def _limit(f, x, point):
    from .calculus import limit

    return limit(f, symbol_name(x), point)


def _integer_argument(node, function: str) -> int:
    if isinstance(node, ExprNode) and node.is_number() and node.multiplier.is_integer():
        return int(node.multiplier)
    raise ValidationError(
        f"{function} expects an integer, got '{node}'", "INVALID_ARGUMENT"
    )


def builtin_functions() -> dict[str, FunctionSpec]:
    table = [
        FunctionSpec("sin", _sin),
        FunctionSpec("cos", _cos),
        FunctionSpec("tan", _tan),
        FunctionSpec("sec", _reciprocal(_cos)),
        FunctionSpec("csc", _reciprocal(_sin)),
        FunctionSpec("cot", _reciprocal(_tan)),
        FunctionSpec("asin", _asin),
        FunctionSpec("acos", _acos),
        FunctionSpec("atan", _atan),
        FunctionSpec("sinh", _odd("sinh")),
        FunctionSpec("cosh", _cosh),
        FunctionSpec("tanh", _odd("tanh")),
        FunctionSpec("asinh", _odd("asinh")),
        FunctionSpec("acosh", _acosh),
        FunctionSpec("atanh", _odd("atanh")),
        FunctionSpec("erf", _odd("erf")),
        FunctionSpec("log", _log, 1, 2),
        FunctionSpec("log10", _log10),
        FunctionSpec("exp", _exp),
        FunctionSpec("sqrt", core.sqrt),
        FunctionSpec("abs", _abs),
        FunctionSpec("factorial", _factorial),
        FunctionSpec("mod", _mod, 2, 2),
        FunctionSpec("min", _extreme("min", min), 1, None, vector_aware=True),
        FunctionSpec("max", _extreme("max", max), 1, None, vector_aware=True),
        FunctionSpec("expand", _expand),
        FunctionSpec("simplify", _simplify),
        FunctionSpec("factor", _factor),
        FunctionSpec("partfrac", _partfrac, 1, 2),
        FunctionSpec("gcd", _gcd, 2, 3),
        FunctionSpec("lcm", _lcm, 2, 3),
        FunctionSpec("divide", _divide, 2, 3),
        FunctionSpec("deg", _deg, 1, 2),
        FunctionSpec("coeffs", _coeffs, 1, 2),
        FunctionSpec("sqcomp", _sqcomp, 1, 2),
        FunctionSpec("roots", _roots, 1, 2),
        FunctionSpec("limit", _limit, 3, 3),
        FunctionSpec("diff", _diff, 1, 3),
        FunctionSpec("integrate", _integrate, 1, 2),
        FunctionSpec("defint", _defint, 3, 4),
        FunctionSpec("sum", _series("series_sum"), 4, 4),
        FunctionSpec("product", _series("series_product"), 4, 4),
        FunctionSpec("laplace", _laplace, 3, 3),
        FunctionSpec("ilt", _ilt, 3, 3),
        FunctionSpec("solve", _solve, 1, 2),
    ]
    return {spec.name: spec for spec in table}


def builtin_constants() -> dict[str, ExprNode]:
    return {name: ExprNode.symbol(name) for name in ("pi", "e", "i")}


def apply_to_equation(func: Callable, equation: Equation, *args) -> Equation:
    return Equation(func(equation.lhs, *args), func(equation.rhs, *args))
