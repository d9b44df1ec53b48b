from __future__ import annotations

import argparse
import json
import re
from typing import Any

from . import api
from .config import VAR_NAME_RE, VERSION
from .logging_config import get_logger
from .parser import parse, split_top_level_commas
from .session import get_session
from .types import CasError

logger = get_logger("cli")

FIND_SUFFIX_RE = re.compile(r"(?:,|\s)\s*find\s+([A-Za-z_][A-Za-z0-9_]*)\s*$", re.IGNORECASE)
DEFINITION_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:\(([^)]*)\))?\s*:=\s*(.+)$")


def print_result_pretty(res: dict[str, Any], output_format: str = "human") -> None:
    """Print result in specified format.

    Args:
        res: Result dictionary
        output_format: "json" for JSON output, "human" for human-readable
    """
    if output_format == "json":
        print(json.dumps(res, indent=2, ensure_ascii=False))
        return
    if not res.get("ok"):
        print("Error:", res.get("error"))
        return
    typ = res.get("type", "value")
    if typ == "equation":
        exact = res.get("exact") or []
        if not exact:
            print("No solutions found")
            return
        print("Exact:", ", ".join(exact))
        approx = [value for value in res.get("approx") or [] if value is not None]
        if approx and approx != exact:
            print("Approx:", ", ".join(approx))
    elif typ == "system":
        for solution in res.get("solutions", []):
            for name, value in solution.items():
                print(f"{name} = {value}")
    elif typ == "identity_or_contradiction":
        print(res.get("exact", [""])[0])
    elif typ == "definition":
        print(f"{res.get('name')} := {res.get('result')}")
    else:
        result = res.get("result")
        print(result)
        approx = res.get("approx")
        if approx and approx != result:
            print("Decimal:", approx)


def _define(name: str, params: str | None, body: str) -> dict[str, Any]:
    """Handle ``name := expr`` and ``f(x, y) := expr``."""
    session = get_session()
    try:
        if params is None:
            value = parse(body)
            session.register_var(name, value)
            return {"ok": True, "type": "definition", "name": name, "result": str(value)}
        names = [p.strip() for p in params.split(",") if p.strip()]
        for param in names:
            if not VAR_NAME_RE.match(param):
                return {"ok": False, "error": f"Invalid parameter name '{param}'"}
        session.register_function(name, body, names)
        signature = f"{name}({', '.join(names)})"
        return {"ok": True, "type": "definition", "name": signature, "result": body.strip()}
    except CasError as exc:
        return {"ok": False, "error": exc.message, "error_code": exc.code}


def dispatch(line: str) -> dict[str, Any]:
    """Route one line of input to the API and return a result dictionary.

    - ``name := expr`` stores a variable, ``f(x) := expr`` defines a function
    - ``eq1, eq2, ...`` with ``=`` solves a linear system
    - ``eq`` or ``eq, find x`` solves one equation
    - anything else is evaluated
    """
    text = line.strip()
    definition = DEFINITION_RE.match(text)
    if definition:
        return _define(*definition.groups())

    find_var = None
    match = FIND_SUFFIX_RE.search(text)
    if match:
        find_var = match.group(1)
        text = text[: match.start()]

    parts = split_top_level_commas(text)
    equations = [part for part in parts if "=" in part]
    logger.debug("Dispatching %r (%d equation(s), find=%s)", text, len(equations), find_var)
    if len(equations) > 1:
        return api.solve_system(text, find_var).to_dict()
    if equations or find_var:
        return api.solve_equation(text, find_var).to_dict()
    result = api.evaluate(text).to_dict()
    result.setdefault("type", "value")
    return result


def print_help_text() -> None:
    """Print help text for REPL commands."""
    help_text = f"""Aljabar version {VERSION}

Expressions:    2*x+3*x, sin(pi/6), (x+1)^3, 1/3+1/6
Calculus:       diff(x^3, x), integrate(x*e^x, x), defint(x^2, 0, 1, x)
                limit(sin(x)/x, x, 0), limit((2*x^2+1)/(x^2+3), x, Infinity)
Transforms:     laplace(t^2, t, s), ilt(1/(s^2+1), s, t)
Algebra:        expand((x+1)^2), factor(x^2-1), partfrac(1/(x^2-1), x), simplify(...)
                gcd(x^2-1, x^2+2*x+1), lcm(4, 6), divide(x^3-1, x-1), deg(f), coeffs(f),
                sqcomp(x^2+4*x+1), roots(x^3-1), 7 % 3
Equations:      x^2-4=0, sin(x)=1/2, find x
Systems:        x+y=3, x-y=1
Definitions:    a := 2, f(x) := x^2+1

Commands:       help, vars, clear, quit"""
    print(help_text)


def repl_loop(output_format: str = "human") -> None:
    """Interactive REPL loop with graceful interrupt handling."""
    try:
        import readline  # noqa: F401
    except ImportError:
        # readline not available on Windows - that's fine
        pass

    print("Aljabar - type 'help' for commands, 'quit' to exit.")
    session = get_session()
    while True:
        try:
            line = input(">>> ")
        except EOFError:
            print()
            return
        except KeyboardInterrupt:
            print("\n[Press Ctrl+D or type quit to exit]")
            continue
        command = line.strip().lower()
        if not command:
            continue
        if command in ("quit", "exit"):
            return
        if command == "help":
            print_help_text()
            continue
        if command == "vars":
            for name, value in sorted(session.variables.items()):
                print(f"{name} = {value}")
            continue
        if command == "clear":
            session.clear_vars()
            continue
        try:
            print_result_pretty(dispatch(line), output_format)
        except KeyboardInterrupt:
            print("\n[Interrupted]")


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for the Aljabar CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(prog="aljabar")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one expression and exit (non-interactive)",
        dest="eval_expr",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "-t", "--timeout", type=int, help="Override the deadline budget (milliseconds)"
    )
    parser.add_argument(
        "--no-numeric-fallback",
        action="store_true",
        help="Disable numeric root-finding fallback",
    )
    parser.add_argument(
        "-p", "--precision", type=int, help="Set output precision (significant digits)"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (default: ALJABAR_LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    args = parser.parse_args(argv)

    from .logging_config import setup_logging

    setup_logging(level=args.log_level, log_file=args.log_file)

    if args.version:
        print(VERSION)
        return 0

    session = get_session()
    if args.timeout is not None and args.timeout >= 0:
        session.set_setting("timeout_ms", args.timeout)
    if args.no_numeric_fallback:
        session.set_setting("numeric_fallback", False)
    if args.precision and args.precision > 0:
        session.set_setting("output_precision", args.precision)

    if args.eval_expr is not None:
        expr = args.eval_expr.strip()
        if expr.startswith(">>>"):
            expr = expr[3:].strip()
        if not expr:
            print("Error: Empty input. Please enter a valid expression, equation, or command.")
            return 1
        result = dispatch(expr)
        print_result_pretty(result, args.format)
        return 0 if result.get("ok") else 1

    repl_loop(args.format)
    return 0


if __name__ == "__main__":
    import sys

    sys.exit(main_entry())
