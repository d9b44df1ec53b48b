"""Aljabar package: exact computer algebra with a parser, calculus, transforms and a solver."""

__all__ = [
    "config",
    "rational",
    "expr",
    "core",
    "functions",
    "parser",
    "session",
    "deadline",
    "algebra",
    "calculus",
    "transforms",
    "solver",
    "numeric",
    "types",
    "api",
    "cli",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "evaluate",
    "solve_equation",
    "solve_system",
    "validate_expression",
    "diff",
    "integrate_expr",
    "laplace_transform",
    "inverse_laplace",
]
