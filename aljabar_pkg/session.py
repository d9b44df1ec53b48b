"""Session: the mutable state shared by the parser and the transforms.

A session owns the operator, bracket, function, constant and variable tables,
the preprocessor chain, the peeker registry, the Settings and the deadline
guard. The active session travels in a ContextVar so independent sessions can
be used side by side; a default session is created on first use.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .config import VAR_NAME_RE, Settings
from .deadline import DeadlineGuard
from .logging_config import get_logger
from .types import InvalidVariableNameError, ValidationError

logger = get_logger("session")

Peeker = Callable[[str, list], None]
Preprocessor = Callable[[str, "Session"], str]

_ACTIVE: contextvars.ContextVar[Session | None] = contextvars.ContextVar(
    "aljabar_session", default=None
)
_DEFAULT: Session | None = None


class Session:
    """Parser tables, settings and deadline guard for one independent engine."""

    def __init__(self, settings: Settings | None = None):
        from .functions import builtin_constants, builtin_functions
        from .parser import default_brackets, default_operators, default_preprocessors

        self.settings = settings.copy() if settings is not None else Settings()
        self.deadline = DeadlineGuard()
        self.operators = default_operators()
        self.brackets = default_brackets()
        self.preprocessors: list[tuple[str, Preprocessor]] = default_preprocessors()
        self.peekers: dict[str, list[Peeker]] = {}
        self.functions = builtin_functions()
        self.constants = builtin_constants()
        self.variables: dict[str, Any] = {}

    @contextmanager
    def activate(self) -> Iterator[Session]:
        """Make this session the active one for the duration of the block."""
        token = _ACTIVE.set(self)
        try:
            yield self
        finally:
            _ACTIVE.reset(token)

    # settings

    def get_setting(self, name: str) -> Any:
        if name not in Settings.names():
            raise ValidationError(f"Unknown setting '{name}'", "UNKNOWN_SETTING")
        return getattr(self.settings, name)

    def set_setting(self, name: str, value: Any) -> Any:
        """Change one setting and return its previous value."""
        previous = self.get_setting(name)
        setattr(self.settings, name, value)
        logger.debug("Setting %s changed from %r to %r", name, previous, value)
        return previous

    @contextmanager
    def overrides(self, **values: Any) -> Iterator[Settings]:
        """Temporarily override settings; previous values are restored on exit."""
        saved: dict[str, Any] = {}
        try:
            for name, value in values.items():
                saved[name] = self.set_setting(name, value)
            yield self.settings
        finally:
            for name, value in saved.items():
                setattr(self.settings, name, value)

    def with_settings(self, callback: Callable[[], Any], **values: Any) -> Any:
        with self.overrides(**values):
            return callback()

    # registration

    def register_function(
        self,
        name: str,
        implementation: Callable | str,
        params: list[str] | None = None,
        min_args: int | None = None,
        max_args: int | None = None,
        variadic: bool = False,
    ) -> None:
        """Add or replace a function.

        Args:
            name: Function name used in expressions
            implementation: Python callable taking ExprNode arguments, or the
                text of a body expression over ``params``
            params: Parameter names when ``implementation`` is text
            min_args: Minimum arity of a callable implementation (default 1)
            max_args: Maximum arity (defaults to ``min_args``)
            variadic: Accept any number of arguments above ``min_args``
        """
        from .functions import FunctionSpec
        from .parser import parse

        _validate_name(name)
        if isinstance(implementation, str):
            params = list(params or [])
            for param in params:
                _validate_name(param)
            body = parse(implementation, session=self)
            spec = FunctionSpec(
                name, None, len(params), len(params), params=params, body=body
            )
        else:
            low = 1 if min_args is None else min_args
            high = None if variadic else (low if max_args is None else max_args)
            spec = FunctionSpec(name, implementation, low, high)
        self.functions[name] = spec
        logger.debug("Registered function %s", name)

    def unregister_function(self, name: str) -> None:
        self.functions.pop(name, None)

    def register_constant(self, name: str, value: Any) -> None:
        from .core import as_node

        _validate_name(name)
        self.constants[name] = as_node(value)

    def register_var(self, name: str, value: Any) -> None:
        from .core import as_node

        _validate_name(name)
        self.variables[name] = as_node(value) if not isinstance(value, tuple) else value

    def clear_var(self, name: str) -> None:
        self.variables.pop(name, None)

    def clear_vars(self) -> None:
        self.variables.clear()

    def register_operator(
        self,
        symbol: str,
        precedence: int,
        action: Callable,
        name: str | None = None,
        arity: int = 2,
        fixity: str = "infix",
        right_assoc: bool = False,
    ) -> None:
        from .parser import Operator

        operator = Operator(
            symbol, name or symbol, precedence, action, arity, fixity, right_assoc
        )
        self.operators[(symbol, fixity)] = operator

    def register_preprocessor(
        self, name: str, func: Preprocessor, position: int | None = None
    ) -> None:
        entry = (name, func)
        self.unregister_preprocessor(name)
        if position is None:
            self.preprocessors.append(entry)
        else:
            self.preprocessors.insert(position, entry)

    def unregister_preprocessor(self, name: str) -> None:
        self.preprocessors = [p for p in self.preprocessors if p[0] != name]

    def register_peeker(self, operation: str, peeker: Peeker) -> None:
        """Observe the operands of ``operation`` (e.g. "add", "pow") before it runs."""
        self.peekers.setdefault(operation, []).append(peeker)

    def unregister_peeker(self, operation: str, peeker: Peeker) -> None:
        callbacks = self.peekers.get(operation, [])
        if peeker in callbacks:
            callbacks.remove(peeker)

    def notify_peekers(self, operation: str, operands: list) -> None:
        for peeker in self.peekers.get(operation, ()):
            # peekers see copies so they cannot alter the result
            peeker(operation, [_copy(op) for op in operands])


def _copy(operand):
    if isinstance(operand, tuple):
        return tuple(_copy(item) for item in operand)
    clone = getattr(operand, "clone", None)
    return clone() if clone is not None else operand


def _validate_name(name: str) -> None:
    if not isinstance(name, str) or not VAR_NAME_RE.match(name):
        raise InvalidVariableNameError(f"Invalid name: '{name}'")


def validate_variable_name(name: str) -> str:
    _validate_name(name)
    return name


def get_session() -> Session:
    """Return the active session, creating the default one if needed."""
    global _DEFAULT
    session = _ACTIVE.get()
    if session is not None:
        return session
    if _DEFAULT is None:
        _DEFAULT = Session()
    return _DEFAULT


def reset_default_session() -> Session:
    """Discard the default session's registrations and settings."""
    global _DEFAULT
    _DEFAULT = Session()
    return _DEFAULT
