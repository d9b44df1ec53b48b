"""Numeric evaluation and the bounded numeric fallbacks.

Trees compile to plain closures over ``math`` (scalar) or ``numpy``
(vectorised). The root finders and quadrature poll the deadline and raise
MaximumIterationsReached when they run out of iterations; callers turn that
into an inert placeholder.
"""

from __future__ import annotations

import cmath
import math
from typing import Callable, Sequence

import numpy as np

from .deadline import check_deadline
from .expr import ExprNode, Shape
from .logging_config import get_logger
from .rational import Rational
from .types import (
    DivisionByZero,
    MaximumIterationsReached,
    OutOfFunctionDomainError,
    ValidationError,
)

logger = get_logger("numeric")

Compiled = Callable[[dict], object]


def _math_log(x, base=None):
    if isinstance(x, complex) or x < 0:
        value = cmath.log(x)
    else:
        value = math.log(x)
    if base is not None:
        return value / _math_log(base)
    return value


def _gamma_factorial(x):
    return math.gamma(x + 1)


MATH_FUNCTIONS: dict[str, Callable] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "sec": lambda x: 1 / math.cos(x),
    "csc": lambda x: 1 / math.sin(x),
    "cot": lambda x: 1 / math.tan(x),
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "asinh": math.asinh,
    "acosh": math.acosh,
    "atanh": math.atanh,
    "erf": math.erf,
    "log": _math_log,
    "log10": math.log10,
    "exp": math.exp,
    "sqrt": math.sqrt,
    "abs": abs,
    "factorial": _gamma_factorial,
    "min": min,
    "max": max,
    "mod": lambda a, b: a % b,
}

NUMPY_FUNCTIONS: dict[str, Callable] = {
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "sec": lambda x: 1 / np.cos(x),
    "csc": lambda x: 1 / np.sin(x),
    "cot": lambda x: 1 / np.tan(x),
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "asinh": np.arcsinh,
    "acosh": np.arccosh,
    "atanh": np.arctanh,
    "erf": np.vectorize(math.erf),
    "log": lambda x, base=None: np.log(x) if base is None else np.log(x) / np.log(base),
    "log10": np.log10,
    "exp": np.exp,
    "sqrt": np.sqrt,
    "abs": np.abs,
    "factorial": np.vectorize(_gamma_factorial),
    "min": lambda *xs: np.minimum.reduce(xs),
    "max": lambda *xs: np.maximum.reduce(xs),
    "mod": np.mod,
}

CONSTANT_VALUES = {"pi": math.pi, "e": math.e, "i": 1j}


def _compile(node: ExprNode, library: dict[str, Callable]) -> Compiled:
    shape = node.shape
    multiplier = float(node.multiplier)
    power = node.power

    if shape is Shape.CONSTANT:
        return lambda env: multiplier

    if shape is Shape.MONOMIAL:
        name = node.value
        if node.is_numeric_base():
            constant = float(int(name))
            inner: Compiled = lambda env: constant
        elif name in CONSTANT_VALUES:
            constant_value = CONSTANT_VALUES[name]
            inner = lambda env: constant_value
        else:
            def inner(env, name=name):
                try:
                    return env[name]
                except KeyError:
                    raise ValidationError(
                        f"No value for variable '{name}'", "UNBOUND_VARIABLE"
                    ) from None
    elif shape is Shape.FUNCTION:
        func = library.get(node.value)
        if func is None:
            raise ValidationError(
                f"'{node.value}' cannot be evaluated numerically", "NOT_NUMERIC"
            )
        arguments = [_compile(arg, library) for arg in node.args]
        inner = lambda env: func(*(arg(env) for arg in arguments))
    elif shape is Shape.EXPONENTIAL:
        base = _compile(node.base, library)
        exponent = _compile(node.exponent, library)
        inner = lambda env: base(env) ** exponent(env)
    elif shape is Shape.PRODUCT:
        factors = [_compile(child, library) for child in node.children.values()]

        def inner(env):
            result = 1.0
            for factor in factors:
                result = result * factor(env)
            return result
    else:
        terms = [_compile(child, library) for child in node.children.values()]

        def inner(env):
            result = 0.0
            for term in terms:
                result = result + term(env)
            return result

    if shape is Shape.PRODUCT or power == 1:
        powered = inner
    elif power.is_integer():
        exponent_value = int(power)
        powered = lambda env: inner(env) ** exponent_value
    else:
        exponent_float = float(power)
        powered = lambda env: inner(env) ** exponent_float

    if multiplier == 1.0:
        return powered
    return lambda env: multiplier * powered(env)


def _real(value) -> float:
    if isinstance(value, complex):
        if abs(value.imag) > 1e-12 * max(1.0, abs(value.real)):
            raise OutOfFunctionDomainError(f"Result is complex: {value}")
        return value.real
    return float(value)


def build(node: ExprNode, variables: Sequence[str] | None = None, vectorize: bool = False) -> Callable:
    """Compile a tree into a numeric callable.

    Args:
        node: Expression to compile
        variables: Positional parameter names (default: free variables, sorted)
        vectorize: Evaluate with numpy so arguments may be arrays

    Returns:
        Callable taking one value per variable
    """
    names = list(variables) if variables is not None else node.variables()
    compiled = _compile(node, NUMPY_FUNCTIONS if vectorize else MATH_FUNCTIONS)

    if vectorize:
        def vector_function(*args):
            env = {name: np.asarray(value, dtype=float) for name, value in zip(names, args)}
            with np.errstate(all="ignore"):
                return compiled(env)

        return vector_function

    def scalar_function(*args):
        env = dict(zip(names, (float(a) for a in args)))
        try:
            return _real(compiled(env))
        except ZeroDivisionError:
            raise DivisionByZero("Division by zero during numeric evaluation") from None
        except (ValueError, OverflowError, TypeError) as exc:
            raise OutOfFunctionDomainError(f"Numeric evaluation failed: {exc}") from None

    return scalar_function


def to_float(node: ExprNode, bindings: dict[str, float] | None = None) -> float:
    """Evaluate a tree to a float, binding free variables from ``bindings``."""
    bindings = bindings or {}
    names = list(bindings)
    return build(node, names)(*(bindings[name] for name in names))


def to_rational(value: float) -> Rational:
    from .session import get_session

    return Rational.from_float(value, get_session().settings.max_denominator)


def _try(func: Callable[[float], float], x: float) -> float | None:
    try:
        value = func(x)
    except (DivisionByZero, OutOfFunctionDomainError):
        return None
    return value if math.isfinite(value) else None


def newton(func: Callable, derivative: Callable, x0: float) -> float:
    """Newton iteration from ``x0``.

    Raises:
        MaximumIterationsReached: If it does not converge within the budget
    """
    from .session import get_session

    settings = get_session().settings
    x = x0
    for _ in range(settings.max_newton_iterations):
        check_deadline()
        fx = _try(func, x)
        dfx = _try(derivative, x)
        if fx is None or dfx is None or dfx == 0:
            break
        if abs(fx) < settings.newton_epsilon:
            return x
        step = fx / dfx
        x -= step
        if abs(step) <= settings.newton_epsilon * max(1.0, abs(x)):
            return x
    raise MaximumIterationsReached(f"Newton's method did not converge from {x0}")


def bisection(func: Callable, low: float, high: float) -> float:
    """Bisection on a bracketing interval."""
    from .session import get_session

    settings = get_session().settings
    f_low = func(low)
    if f_low == 0:
        return low
    for _ in range(settings.max_bisection_iterations):
        check_deadline()
        mid = (low + high) / 2
        f_mid = func(mid)
        if f_mid == 0 or (high - low) / 2 < settings.bisection_epsilon:
            return mid
        if (f_mid < 0) == (f_low < 0):
            low, f_low = mid, f_mid
        else:
            high = mid
    raise MaximumIterationsReached("Bisection did not converge")


def find_real_roots(func: Callable, derivative: Callable) -> list[float]:
    """Scan [-radius, radius] for sign changes and touching minima, then refine."""
    from .session import get_session

    settings = get_session().settings
    radius = settings.solve_radius
    count = int(round(2 * radius / settings.solve_step)) + 1
    grid = np.linspace(-radius, radius, count)
    values = [_try(func, float(x)) for x in grid]
    tolerance = settings.root_tolerance

    candidates: list[float] = []
    for index in range(len(grid) - 1):
        check_deadline()
        a, b = float(grid[index]), float(grid[index + 1])
        fa, fb = values[index], values[index + 1]
        if fa is None or fb is None:
            continue
        if fa == 0:
            candidates.append(a)
            continue
        if (fa < 0) != (fb < 0):
            try:
                root = newton(func, derivative, (a + b) / 2)
                if not a <= root <= b:
                    root = bisection(func, a, b)
            except MaximumIterationsReached:
                try:
                    root = bisection(func, a, b)
                except (MaximumIterationsReached, DivisionByZero, OutOfFunctionDomainError):
                    continue
            except (DivisionByZero, OutOfFunctionDomainError):
                continue
            candidates.append(root)
        elif 0 < index and values[index - 1] is not None:
            # local minimum of |f| may be a double root
            if abs(fa) < abs(values[index - 1]) and abs(fa) <= abs(fb) and abs(fa) < 1:
                try:
                    candidates.append(newton(func, derivative, a))
                except MaximumIterationsReached:
                    logger.debug("No touching root near %s", a)

    roots: list[float] = []
    for root in sorted(candidates):
        value = _try(func, root)
        if value is None or abs(value) > tolerance * max(1.0, abs(root)):
            continue
        if roots and abs(root - roots[-1]) <= 1e-7 * max(1.0, abs(root)):
            continue
        roots.append(root)

    negatives = [r for r in roots if r < 0][-settings.roots_per_side:]
    positives = [r for r in roots if r >= 0][: settings.roots_per_side]
    return negatives + positives


def polynomial_roots(coefficients: Sequence[float]) -> list[complex]:
    """Roots of a polynomial given highest-degree-first float coefficients."""
    return [complex(r) for r in np.roots(np.asarray(coefficients, dtype=float))]


def quadrature(func: Callable, low: float, high: float) -> float:
    """Adaptive Simpson quadrature of ``func`` over [low, high].

    Raises:
        MaximumIterationsReached: When the tolerance is not met within the depth limit
    """
    from .session import get_session

    settings = get_session().settings

    def value(x: float) -> float:
        try:
            result = func(x)
        except (DivisionByZero, OutOfFunctionDomainError, ValidationError) as exc:
            raise MaximumIterationsReached(f"Integrand cannot be evaluated: {exc}") from exc
        if not math.isfinite(result):
            raise MaximumIterationsReached(f"Integrand is not finite at {x}")
        return result

    def simpson(a, b, fa, fm, fb):
        return (b - a) / 6 * (fa + 4 * fm + fb)

    def recurse(a, b, fa, fm, fb, whole, tolerance, depth):
        check_deadline()
        m = (a + b) / 2
        lm, rm = (a + m) / 2, (m + b) / 2
        flm, frm = value(lm), value(rm)
        left = simpson(a, m, fa, flm, fm)
        right = simpson(m, b, fm, frm, fb)
        if abs(left + right - whole) <= 15 * tolerance:
            return left + right + (left + right - whole) / 15
        if depth <= 0:
            raise MaximumIterationsReached("Quadrature did not converge")
        return recurse(a, m, fa, flm, fm, left, tolerance / 2, depth - 1) + recurse(
            m, b, fm, frm, fb, right, tolerance / 2, depth - 1
        )

    fa, fb = value(low), value(high)
    fm = value((low + high) / 2)
    whole = simpson(low, high, fa, fm, fb)
    return recurse(low, high, fa, fm, fb, whole, settings.quadrature_tolerance, settings.max_quadrature_depth)
