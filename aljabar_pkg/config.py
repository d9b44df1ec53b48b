"""Centralized configuration for Aljabar.

This module defines:
- Deadline budget for transforms, solving and simplification
- Recursion-depth limits per algorithm
- Numeric fallback limits (Newton, bisection, quadrature, root scan)
- Input validation limits
- Regex patterns used by the preprocessor and identifier validation

Defaults can be overridden via environment variables prefixed with ALJABAR_.
At runtime a session's Settings are changed only through
``Session.set_setting`` and the scoped override helpers, which always restore
the previous values.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields

try:
    import importlib.metadata

    VERSION = importlib.metadata.version("aljabar")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Logging
LOG_LEVEL = os.getenv("ALJABAR_LOG_LEVEL", "WARNING")

# Deadline guard
TIMEOUT_MS = int(os.getenv("ALJABAR_TIMEOUT_MS", "2000"))

# Output
PRECISION = int(os.getenv("ALJABAR_PRECISION", "21"))  # significant digits
OUTPUT_PRECISION = int(os.getenv("ALJABAR_OUTPUT_PRECISION", "15"))

# Recursion-depth limits
INTEGRATION_DEPTH = int(os.getenv("ALJABAR_INTEGRATION_DEPTH", "10"))
LAPLACE_INTEGRATION_DEPTH = int(os.getenv("ALJABAR_LAPLACE_INTEGRATION_DEPTH", "40"))
SIMPLIFY_MAX_PASSES = int(os.getenv("ALJABAR_SIMPLIFY_MAX_PASSES", "8"))

# Numeric solver configuration
NUMERIC_FALLBACK_ENABLED = (
    os.getenv("ALJABAR_NUMERIC_FALLBACK_ENABLED", "true").lower() == "true"
)
MAX_NEWTON_ITERATIONS = int(os.getenv("ALJABAR_MAX_NEWTON_ITERATIONS", "200"))
MAX_BISECTION_ITERATIONS = int(os.getenv("ALJABAR_MAX_BISECTION_ITERATIONS", "2000"))
NEWTON_EPSILON = float(os.getenv("ALJABAR_NEWTON_EPSILON", "1e-14"))
BISECTION_EPSILON = float(os.getenv("ALJABAR_BISECTION_EPSILON", "1e-12"))
ROOT_TOLERANCE = float(os.getenv("ALJABAR_ROOT_TOLERANCE", "1e-9"))
SOLVE_RADIUS = float(os.getenv("ALJABAR_SOLVE_RADIUS", "100"))
SOLVE_STEP = float(os.getenv("ALJABAR_SOLVE_STEP", "0.1"))
ROOTS_PER_SIDE = int(os.getenv("ALJABAR_ROOTS_PER_SIDE", "10"))
MAX_DENOMINATOR = int(os.getenv("ALJABAR_MAX_DENOMINATOR", "1000000000000"))
MAX_RATIONAL_ROOT_CANDIDATES = int(
    os.getenv("ALJABAR_MAX_RATIONAL_ROOT_CANDIDATES", "5000")
)

# Quadrature
QUADRATURE_TOLERANCE = float(os.getenv("ALJABAR_QUADRATURE_TOLERANCE", "1e-12"))
MAX_QUADRATURE_DEPTH = int(os.getenv("ALJABAR_MAX_QUADRATURE_DEPTH", "40"))

# L'Hopital steps in limit()
MAX_LIMIT_DEPTH = int(os.getenv("ALJABAR_MAX_LIMIT_DEPTH", "10"))

# Loops in sum()/product()
MAX_SERIES_TERMS = int(os.getenv("ALJABAR_MAX_SERIES_TERMS", "1000000000"))

# Exact powers and factorials beyond this many bits raise OutOfRangeError;
# 14000 bits stays under the interpreter's 4300-digit int-to-str limit
MAX_INTEGER_BITS = int(os.getenv("ALJABAR_MAX_INTEGER_BITS", "14000"))

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("ALJABAR_MAX_INPUT_LENGTH", "10000"))  # characters

VAR_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

NUMBER_RE = re.compile(r"\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?")
IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
DIGIT_LETTERS_REGEX = re.compile(
    r"(?<![A-Za-z_\d.])(\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)(?![eE][+-]?\d)\s*(?=[A-Za-z_(])"
)
CLOSE_PAREN_OPERAND_REGEX = re.compile(r"\)\s*(?=[A-Za-z_\d.(])")
SUPERSCRIPT_REGEX = re.compile("([⁰¹²³⁴⁵⁶⁷⁸⁹⁻]+)")

SUPERSCRIPT_MAP = {
    "⁰": "0",
    "¹": "1",
    "²": "2",
    "³": "3",
    "⁴": "4",
    "⁵": "5",
    "⁶": "6",
    "⁷": "7",
    "⁸": "8",
    "⁹": "9",
    "⁻": "-",
}

UNICODE_REPLACEMENTS = {
    "π": "pi",
    "√": "sqrt",
    "×": "*",
    "·": "*",
    "÷": "/",
    "−": "-",
    "–": "-",
    "**": "^",
}

FUNCTION_ALIASES = {
    "ln": "log",
    "arcsin": "asin",
    "arccos": "acos",
    "arctan": "atan",
    "arcsinh": "asinh",
    "arccosh": "acosh",
    "arctanh": "atanh",
    "fact": "factorial",
}


@dataclass
class Settings:
    """Per-session configuration, seeded from the module defaults."""

    timeout_ms: int = TIMEOUT_MS
    precision: int = PRECISION
    output_precision: int = OUTPUT_PRECISION
    integration_depth: int = INTEGRATION_DEPTH
    laplace_integration_depth: int = LAPLACE_INTEGRATION_DEPTH
    simplify_max_passes: int = SIMPLIFY_MAX_PASSES
    numeric_fallback: bool = NUMERIC_FALLBACK_ENABLED
    max_newton_iterations: int = MAX_NEWTON_ITERATIONS
    max_bisection_iterations: int = MAX_BISECTION_ITERATIONS
    newton_epsilon: float = NEWTON_EPSILON
    bisection_epsilon: float = BISECTION_EPSILON
    root_tolerance: float = ROOT_TOLERANCE
    solve_radius: float = SOLVE_RADIUS
    solve_step: float = SOLVE_STEP
    roots_per_side: int = ROOTS_PER_SIDE
    max_denominator: int = MAX_DENOMINATOR
    max_rational_root_candidates: int = MAX_RATIONAL_ROOT_CANDIDATES
    quadrature_tolerance: float = QUADRATURE_TOLERANCE
    max_quadrature_depth: int = MAX_QUADRATURE_DEPTH
    max_series_terms: int = MAX_SERIES_TERMS
    max_input_length: int = MAX_INPUT_LENGTH
    # False lets the arithmetic core consume operands in place
    immutable: bool = True

    @classmethod
    def names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def copy(self) -> Settings:
        return Settings(**{name: getattr(self, name) for name in self.names()})
