"""Public API for Aljabar - returns structured objects without side effects.

Every function takes text, runs the engine and returns an ``EvalResult`` or
``SolveResult``. Engine errors (including ``Timeout``) never escape: they come
back as ``ok=False`` with the error message and its machine code.
"""

from __future__ import annotations

from typing import Any, Callable

from . import calculus, solver, transforms
from .expr import Equation, ExprNode
from .logging_config import get_logger
from .numeric import to_float
from .parser import parse, preprocess, render, split_top_level_commas, to_postfix, tokenize
from .session import get_session
from .types import CasError, EvalResult, SolveResult

logger = get_logger("api")


def _approx(value) -> str | None:
    """Decimal text for a constant result, None when it has free variables."""
    if isinstance(value, tuple):
        parts = [_approx(item) for item in value]
        if any(part is None for part in parts):
            return None
        return "[" + ",".join(parts) + "]"
    if not isinstance(value, ExprNode) or not value.is_constant():
        return None
    settings = get_session().settings
    if value.is_number():
        return value.multiplier.to_decimal(settings.output_precision)
    try:
        number = to_float(value)
    except CasError:
        return None
    return f"{number:.{settings.output_precision}g}"


def _free_symbols(value) -> list[str]:
    if isinstance(value, tuple):
        names: set[str] = set()
        for item in value:
            names.update(_free_symbols(item))
        return sorted(names)
    if isinstance(value, Equation):
        return sorted(set(value.lhs.variables()) | set(value.rhs.variables()))
    return value.variables()


def _failure(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, CasError):
        logger.debug("Engine error: %s", exc.message, extra={"error_code": exc.code})
        return {"ok": False, "error": exc.message, "error_code": exc.code}
    logger.error(
        "Unexpected error: %s", exc, exc_info=True, extra={"error_code": "INTERNAL_ERROR"}
    )
    return {"ok": False, "error": f"Unexpected error: {exc}", "error_code": "INTERNAL_ERROR"}


def _run(compute: Callable[[], Any]) -> EvalResult:
    try:
        value = compute()
        return EvalResult(
            ok=True,
            result=render(value),
            approx=_approx(value),
            free_symbols=_free_symbols(value),
        )
    except Exception as exc:
        return EvalResult(**_failure(exc))


def evaluate(expression: str, **bindings) -> EvalResult:
    """Evaluate a mathematical expression.

    Args:
        expression: Mathematical expression string (e.g., "2+2", "sin(pi/2)")
        **bindings: Values substituted for variables (e.g., x=2)

    Returns:
        EvalResult with result, approximation, and free symbols

    Example:
        >>> from aljabar_pkg.api import evaluate
        >>> evaluate("2*x+3*x").result
        '5*x'
    """
    return _run(lambda: parse(expression, **bindings))


def solve_equation(equation: str, find_var: str | None = None) -> SolveResult:
    """Solve a single equation.

    Args:
        equation: Equation string (e.g., "x+1=0", "x^2-1=0"); a bare
            expression is taken as equal to zero
        find_var: Optional variable to solve for (e.g., "x")

    Returns:
        SolveResult with solutions

    Example:
        >>> from aljabar_pkg.api import solve_equation
        >>> result = solve_equation("x^2 - 4 = 0")
        >>> sorted(result.exact)
        ['-2', '2']
    """
    try:
        parsed = parse(equation)
        if isinstance(parsed, tuple):
            return SolveResult(
                ok=False,
                result_type="equation",
                error="Use solve_system for several equations",
                error_code="DIMENSION_ERROR",
            )
        expr = parsed.to_lhs() if isinstance(parsed, Equation) else parsed
        if find_var is None and not expr.variables():
            # nothing to solve for: the equation either always or never holds
            holds = expr.is_zero()
            return SolveResult(
                ok=True,
                result_type="identity_or_contradiction",
                exact=["identity" if holds else "contradiction"],
            )
        roots = solver.solve(parsed, find_var)
        return SolveResult(
            ok=True,
            result_type="equation",
            exact=[str(root) for root in roots],
            approx=[_approx(root) for root in roots],
        )
    except Exception as exc:
        return SolveResult(result_type="equation", **_failure(exc))


def solve_system(equations: str, find_var: str | None = None) -> SolveResult:
    """Solve a system of linear equations.

    Args:
        equations: Comma-separated equations (e.g., "x+y=3, x-y=1")
        find_var: Optional variable to pick out of the solution

    Returns:
        SolveResult with system solutions

    Example:
        >>> from aljabar_pkg.api import solve_system
        >>> solve_system("x+y=3, x-y=1").system_solutions
        [{'x': '2', 'y': '1'}]
    """
    try:
        parsed = [parse(part) for part in split_top_level_commas(equations)]
        solution = solver.solve_system(parsed)
        if find_var is not None:
            if find_var not in solution:
                return SolveResult(
                    ok=False,
                    result_type="equation",
                    error=f"'{find_var}' does not occur in the system",
                    error_code="UNKNOWN_VARIABLE",
                )
            value = solution[find_var]
            return SolveResult(
                ok=True, result_type="equation", exact=[str(value)], approx=[_approx(value)]
            )
        return SolveResult(
            ok=True,
            result_type="system",
            system_solutions=[{name: str(value) for name, value in solution.items()}],
        )
    except Exception as exc:
        return SolveResult(result_type="system", **_failure(exc))


def validate_expression(expression: str) -> tuple[bool, str | None]:
    """Validate an expression without evaluating it.

    Runs preprocessing, tokenization and the postfix reduction only.

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> from aljabar_pkg.api import validate_expression
        >>> validate_expression("2 + 2")
        (True, None)
        >>> validate_expression("(2 + 2")[0]
        False
    """
    session = get_session()
    try:
        to_postfix(tokenize(preprocess(expression, session), session), session)
        return True, None
    except CasError as e:
        return False, str(e)
    except Exception as e:
        logger.warning("Unexpected validation error: %s", e, exc_info=True)
        return False, "Unexpected validation error"


def diff(expression: str, variable: str | None = None, order: int = 1) -> EvalResult:
    """Differentiate an expression.

    Example:
        >>> from aljabar_pkg.api import diff
        >>> diff("x^3", "x").result
        '3*x^2'
    """
    return _run(lambda: calculus.diff(parse(expression), variable, order))


def integrate_expr(expression: str, variable: str | None = None) -> EvalResult:
    """Integrate an expression.

    Example:
        >>> from aljabar_pkg.api import integrate_expr
        >>> integrate_expr("cos(x)", "x").result
        'sin(x)'
    """
    return _run(lambda: calculus.integrate(parse(expression), variable))


def laplace_transform(expression: str, t: str = "t", s: str = "s") -> EvalResult:
    """Laplace transform of an expression in ``t``.

    Example:
        >>> from aljabar_pkg.api import laplace_transform
        >>> laplace_transform("t^2").result
        '2/s^3'
    """
    return _run(lambda: transforms.laplace(parse(expression), t, s))


def inverse_laplace(expression: str, s: str = "s", t: str = "t") -> EvalResult:
    """Inverse Laplace transform of an expression in ``s``."""
    return _run(lambda: transforms.ilt(parse(expression), s, t))
