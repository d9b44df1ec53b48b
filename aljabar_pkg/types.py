"""Error taxonomy and result dataclasses for consistent API responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class CasError(Exception):
    """Base class for every error raised by the engine."""

    default_code = "CAS_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(CasError):
    """Raised when input validation fails."""

    default_code = "VALIDATION_ERROR"


class ParseError(CasError):
    """Raised when parsing fails.

    ``token`` and ``position`` locate the fault in the source text when known.
    """

    default_code = "PARSE_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        token: str | None = None,
        position: int | None = None,
    ):
        self.token = token
        self.position = position
        super().__init__(message, code)


class UnexpectedTokenError(ParseError):
    default_code = "UNEXPECTED_TOKEN"


class ParityError(ParseError):
    """Unmatched or mismatched brackets."""

    default_code = "PARITY_ERROR"


class OperatorError(ParseError):
    default_code = "OPERATOR_ERROR"


class InvalidVariableNameError(CasError):
    default_code = "INVALID_VARIABLE_NAME"


class UndefinedError(CasError):
    """Indeterminate forms such as 0^0."""

    default_code = "UNDEFINED"


class DivisionByZero(UndefinedError):
    default_code = "DIVISION_BY_ZERO"


class OutOfFunctionDomainError(CasError):
    default_code = "OUT_OF_DOMAIN"


class MaximumIterationsReached(CasError):
    """A numeric method did not converge within its iteration budget."""

    default_code = "MAX_ITERATIONS"


class Timeout(CasError):
    """The deadline guard fired. Never caught inside the engine."""

    default_code = "TIMEOUT"


class DimensionError(CasError):
    default_code = "DIMENSION_ERROR"


class OutOfRangeError(CasError):
    default_code = "OUT_OF_RANGE"


@dataclass
class EvalResult:
    """Result of evaluating a mathematical expression."""

    ok: bool
    result: str | None = None
    approx: str | None = None
    free_symbols: list[str] | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.result is not None:
            result_dict["result"] = self.result
        if self.approx is not None:
            result_dict["approx"] = self.approx
        if self.free_symbols is not None:
            result_dict["free_symbols"] = self.free_symbols
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r})"
        parts = [f"ok={self.ok}"]
        if self.result is not None:
            parts.append(f"result={self.result!r}")
        if self.approx is not None:
            parts.append(f"approx={self.approx!r}")
        if self.free_symbols is not None:
            parts.append(f"free_symbols={self.free_symbols!r}")
        return f"EvalResult({', '.join(parts)})"


@dataclass
class SolveResult:
    """Result of solving an equation or a system."""

    ok: bool
    result_type: str  # "equation", "identity_or_contradiction", "system"
    error: str | None = None
    error_code: str | None = None
    exact: list[str] | None = None
    approx: list[str] | None = None
    system_solutions: list[dict[str, str]] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok, "type": self.result_type}
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        if self.exact is not None:
            result_dict["exact"] = self.exact
        if self.approx is not None:
            result_dict["approx"] = self.approx
        if self.system_solutions is not None:
            result_dict["solutions"] = self.system_solutions
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"SolveResult(ok=False, result_type={self.result_type!r}, error={self.error!r})"
        parts = [f"ok={self.ok}", f"result_type={self.result_type!r}"]
        if self.exact is not None:
            parts.append(f"exact={self.exact!r}")
        if self.approx is not None:
            parts.append(f"approx={self.approx!r}")
        if self.system_solutions is not None:
            parts.append(f"system_solutions={self.system_solutions!r}")
        return f"SolveResult({', '.join(parts)})"
