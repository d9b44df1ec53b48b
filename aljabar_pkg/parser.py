"""Input parsing and preprocessing module.

This module handles:
- Input validation and preprocessing (unicode symbols, aliases, implied multiplication)
- Tokenization into numbers, identifiers, operators and bracket groups
- Precedence climbing into a postfix program
- Evaluation of the postfix program into a canonical expression tree

Each stage is exposed on its own; ``parse`` chains all four.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable

from . import core
from .config import (
    CLOSE_PAREN_OPERAND_REGEX,
    DIGIT_LETTERS_REGEX,
    FUNCTION_ALIASES,
    IDENT_RE,
    NUMBER_RE,
    SUPERSCRIPT_MAP,
    SUPERSCRIPT_REGEX,
    UNICODE_REPLACEMENTS,
    VAR_NAME_RE,
)
from .expr import Equation, ExprNode
from .functions import call_function
from .logging_config import get_logger
from .rational import Rational
from .types import (
    DimensionError,
    InvalidVariableNameError,
    OperatorError,
    ParityError,
    UnexpectedTokenError,
    ValidationError,
)

logger = get_logger("parser")

SQRT_OPERAND_REGEX = re.compile(r"√\s*([A-Za-z_][A-Za-z0-9_]*|\d+\.?\d*)")

NUMBER = "NUMBER"
IDENT = "IDENT"
OPERATOR = "OPERATOR"
COMMA = "COMMA"
GROUP = "GROUP"

INFIX = "infix"
PREFIX = "prefix"
POSTFIX = "postfix"


@dataclass
class Operator:
    symbol: str
    name: str
    precedence: int
    action: Callable
    arity: int = 2
    fixity: str = INFIX
    right_assoc: bool = False


@dataclass
class Token:
    kind: str
    value: str
    position: int
    children: list[Token] = field(default_factory=list)

    def __repr__(self) -> str:
        if self.kind == GROUP:
            return f"Token(GROUP {self.value!r} {self.children!r})"
        return f"Token({self.kind} {self.value!r}@{self.position})"


# operator actions


def _elementwise(func: Callable) -> Callable:
    """Lift a binary operation over bracket lists and reject equations."""

    def apply(a, b):
        if isinstance(a, tuple) or isinstance(b, tuple):
            if isinstance(a, tuple) and isinstance(b, tuple):
                if len(a) != len(b):
                    raise DimensionError(
                        f"Cannot combine lists of length {len(a)} and {len(b)}"
                    )
                return tuple(apply(x, y) for x, y in zip(a, b))
            if isinstance(a, tuple):
                return tuple(apply(x, b) for x in a)
            return tuple(apply(a, y) for y in b)
        if isinstance(a, Equation) or isinstance(b, Equation):
            raise OperatorError("Arithmetic on an equation is not supported")
        return func(a, b)

    return apply


def _elementwise_unary(func: Callable) -> Callable:
    def apply(a):
        if isinstance(a, tuple):
            return tuple(apply(x) for x in a)
        if isinstance(a, Equation):
            return Equation(apply(a.lhs), apply(a.rhs))
        return func(a)

    return apply


def _mod(a: ExprNode, b: ExprNode) -> ExprNode:
    return call_function("mod", [a, b])


def _percent(a: ExprNode) -> ExprNode:
    return core.divide(a, core.number(100))


def _factorial(a: ExprNode) -> ExprNode:
    return call_function("factorial", [a])


def _equals(a, b):
    if isinstance(a, Equation) or isinstance(b, Equation):
        raise OperatorError("Chained '=' is not supported", token="=")
    return Equation(a, b)


def default_operators() -> dict[tuple[str, str], Operator]:
    table = [
        Operator("=", "equals", 1, _equals),
        Operator("+", "add", 3, _elementwise(core.add)),
        Operator("-", "subtract", 3, _elementwise(core.subtract)),
        Operator("*", "multiply", 4, _elementwise(core.multiply)),
        Operator("/", "divide", 4, _elementwise(core.divide)),
        Operator("%", "mod", 4, _elementwise(_mod)),
        Operator("-", "negate", 5, _elementwise_unary(core.negate), 1, PREFIX),
        Operator("+", "positive", 5, _elementwise_unary(lambda a: a), 1, PREFIX),
        Operator("^", "pow", 6, _elementwise(core.pow), right_assoc=True),
        Operator("!", "factorial", 7, _elementwise_unary(_factorial), 1, POSTFIX),
        Operator("%", "percent", 7, _elementwise_unary(_percent), 1, POSTFIX),
    ]
    return {(op.symbol, op.fixity): op for op in table}


def default_brackets() -> dict[str, str]:
    return {"(": ")", "[": "]"}


# stage 1: preprocessing


def validate_input(text: str, session) -> str:
    text = text.strip() if text else ""
    if not text:
        raise ValidationError("Expression cannot be empty", "EMPTY_INPUT")
    limit = session.settings.max_input_length
    if len(text) > limit:
        raise ValidationError(
            f"Input too long (max {limit} characters)", "TOO_LONG"
        )
    return text


def normalize_unicode(text: str, session) -> str:
    def superscript(match: re.Match) -> str:
        digits = "".join(SUPERSCRIPT_MAP[c] for c in match.group(1))
        return f"^({digits})" if digits.startswith("-") else f"^{digits}"

    text = SUPERSCRIPT_REGEX.sub(superscript, text)
    text = SQRT_OPERAND_REGEX.sub(r"sqrt(\1)", text)
    for old, new in UNICODE_REPLACEMENTS.items():
        text = text.replace(old, new)
    return text


def substitute_aliases(text: str, session) -> str:
    return IDENT_RE.sub(lambda m: FUNCTION_ALIASES.get(m.group(0), m.group(0)), text)


def insert_implied_multiplication(text: str, session) -> str:
    """Insert '*' for 2x, 2(x+1), )( and )x. ``f(x)`` and ``x y`` are left to the parser."""
    text = DIGIT_LETTERS_REGEX.sub(r"\1*", text)
    return CLOSE_PAREN_OPERAND_REGEX.sub(")*", text)


def default_preprocessors() -> list[tuple[str, Callable]]:
    return [
        ("validate", validate_input),
        ("unicode", normalize_unicode),
        ("aliases", substitute_aliases),
        ("implied_multiplication", insert_implied_multiplication),
    ]


def preprocess(text: str, session=None) -> str:
    """Run the session's preprocessors in order.

    Args:
        text: Raw input string from user
        session: Session to use (default: the active session)

    Returns:
        Normalised text ready for tokenization

    Raises:
        ValidationError: If the input is empty or too long
    """
    session = _resolve(session)
    for _name, func in session.preprocessors:
        text = func(text, session)
    return text


# stage 2: tokenization


def tokenize(text: str, session=None) -> list[Token]:
    """Scan text into tokens with bracket pairs nested as GROUP tokens.

    Raises:
        ParityError: For unmatched or mismatched brackets
        UnexpectedTokenError: For characters no rule accepts
    """
    session = _resolve(session)
    brackets = session.brackets
    closers = {close: open_ for open_, close in brackets.items()}
    symbols = sorted({symbol for symbol, _ in session.operators}, key=len, reverse=True)

    root: list[Token] = []
    # (expected closer, token list being filled, opening token)
    stack: list[tuple[str | None, list[Token], Token | None]] = [(None, root, None)]
    pos = 0
    length = len(text)
    while pos < length:
        char = text[pos]
        if char.isspace():
            pos += 1
            continue
        if char.isdigit() or (char == "." and pos + 1 < length and text[pos + 1].isdigit()):
            match = NUMBER_RE.match(text, pos)
            stack[-1][1].append(Token(NUMBER, match.group(0), pos))
            pos = match.end()
            continue
        if char.isalpha() or char == "_":
            match = IDENT_RE.match(text, pos)
            stack[-1][1].append(Token(IDENT, match.group(0), pos))
            pos = match.end()
            continue
        if char == ",":
            stack[-1][1].append(Token(COMMA, char, pos))
            pos += 1
            continue
        if char in brackets:
            group = Token(GROUP, char, pos)
            stack[-1][1].append(group)
            stack.append((brackets[char], group.children, group))
            pos += 1
            continue
        if char in closers:
            expected, _, opener = stack[-1]
            if expected != char:
                if opener is None:
                    raise ParityError(f"Unmatched '{char}' at position {pos}", token=char, position=pos)
                raise ParityError(
                    f"Expected '{expected}' but found '{char}' at position {pos}",
                    token=char,
                    position=pos,
                )
            stack.pop()
            pos += 1
            continue
        for symbol in symbols:
            if text.startswith(symbol, pos):
                stack[-1][1].append(Token(OPERATOR, symbol, pos))
                pos += len(symbol)
                break
        else:
            raise UnexpectedTokenError(
                f"Unexpected character '{char}' at position {pos}", token=char, position=pos
            )
    if len(stack) > 1:
        opener = stack[-1][2]
        raise ParityError(
            f"Unclosed '{opener.value}' at position {opener.position}",
            token=opener.value,
            position=opener.position,
        )
    return root


# stage 3: postfix conversion

Instruction = tuple


class _PostfixBuilder:
    """Precedence climbing over one token list; groups recurse with a new builder."""

    def __init__(self, tokens: list[Token], session, out: list[Instruction]):
        self.tokens = tokens
        self.session = session
        self.operators = session.operators
        self.out = out
        self.index = 0

    def peek(self, offset: int = 0) -> Token | None:
        i = self.index + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def parse_all(self) -> None:
        if not self.tokens:
            raise UnexpectedTokenError("Empty expression")
        self.expression(0)
        token = self.peek()
        if token is not None:
            raise UnexpectedTokenError(
                f"Unexpected token '{token.value}' at position {token.position}",
                token=token.value,
                position=token.position,
            )

    def _starts_operand(self, token: Token | None) -> bool:
        return token is not None and token.kind in (NUMBER, IDENT, GROUP)

    def expression(self, min_precedence: int) -> None:
        self.operand()
        multiply = self.operators[("*", INFIX)]
        while True:
            token = self.peek()
            if token is None:
                return
            if token.kind == OPERATOR and (token.value, INFIX) in self.operators:
                op = self.operators[(token.value, INFIX)]
                if op.precedence < min_precedence:
                    return
                self.advance()
                self.expression(op.precedence if op.right_assoc else op.precedence + 1)
                self.out.append(("op", op))
            elif token.kind in (NUMBER, IDENT, GROUP):
                # juxtaposition implies multiplication
                if multiply.precedence < min_precedence:
                    return
                self.expression(multiply.precedence + 1)
                self.out.append(("op", multiply))
            else:
                return

    def operand(self) -> None:
        token = self.peek()
        if token is None:
            raise UnexpectedTokenError("Unexpected end of expression", "UNEXPECTED_END")
        if token.kind == OPERATOR:
            op = self.operators.get((token.value, PREFIX))
            if op is None:
                raise UnexpectedTokenError(
                    f"Unexpected operator '{token.value}' at position {token.position}",
                    token=token.value,
                    position=token.position,
                )
            self.advance()
            self.expression(op.precedence)
            self.out.append(("op", op))
            return
        self.primary()
        self.postfix_operators()

    def postfix_operators(self) -> None:
        while True:
            token = self.peek()
            if token is None or token.kind != OPERATOR:
                return
            op = self.operators.get((token.value, POSTFIX))
            if op is None:
                return
            # "a % b" is the infix form when an operand follows
            if (token.value, INFIX) in self.operators and self._starts_operand(self.peek(1)):
                return
            self.advance()
            self.out.append(("op", op))

    def primary(self) -> None:
        token = self.advance()
        if token.kind == NUMBER:
            self.out.append(("num", token.value))
            return
        if token.kind == IDENT:
            self.identifier(token)
            return
        if token.kind == GROUP:
            self.group(token)
            return
        raise UnexpectedTokenError(
            f"Unexpected '{token.value}' at position {token.position}",
            token=token.value,
            position=token.position,
        )

    def identifier(self, token: Token) -> None:
        name = token.value
        following = self.peek()
        if name in self.session.functions:
            if following is not None and following.kind == GROUP and following.value == "(":
                self.advance()
                args = _split_arguments(following.children)
                for arg in args:
                    _PostfixBuilder(arg, self.session, self.out).parse_all()
                self.out.append(("call", name, len(args), token.position))
                return
            if following is not None and following.kind in (NUMBER, IDENT):
                # "sin 9" applies the function to the next power-level operand
                self.expression(self.operators[("^", INFIX)].precedence)
                self.out.append(("call", name, 1, token.position))
                return
        self.out.append(("ident", name, token.position))

    def group(self, token: Token) -> None:
        elements = _split_arguments(token.children)
        if token.value == "(":
            if len(elements) != 1:
                raise UnexpectedTokenError(
                    f"Unexpected ',' in group at position {token.position}",
                    token=",",
                    position=token.position,
                )
            _PostfixBuilder(elements[0], self.session, self.out).parse_all()
            return
        for element in elements:
            _PostfixBuilder(element, self.session, self.out).parse_all()
        self.out.append(("vector", len(elements)))


def _split_arguments(tokens: list[Token]) -> list[list[Token]]:
    if not tokens:
        return []
    parts: list[list[Token]] = [[]]
    for token in tokens:
        if token.kind == COMMA:
            parts.append([])
        else:
            parts[-1].append(token)
    for part in parts:
        if not part:
            raise UnexpectedTokenError("Empty argument", token=",")
    return parts


def to_postfix(tokens: list[Token], session=None) -> list[Instruction]:
    """Convert tokens into a postfix program.

    Instructions are tuples: ``("num", text)``, ``("ident", name, pos)``,
    ``("op", Operator)``, ``("call", name, argc, pos)`` and ``("vector", n)``.
    """
    session = _resolve(session)
    out: list[Instruction] = []
    _PostfixBuilder(tokens, session, out).parse_all()
    return out


# stage 4: evaluation


def _resolve_identifier(name: str, position: int, session, bindings: dict[str, Any]):
    if name in bindings:
        value = bindings[name]
        return value if isinstance(value, tuple) else core.as_node(value)
    if name in session.variables:
        value = session.variables[name]
        return value.clone() if isinstance(value, ExprNode) else value
    if name in session.constants:
        return session.constants[name].clone()
    if name in session.functions:
        raise UnexpectedTokenError(
            f"Function '{name}' used without arguments", token=name, position=position
        )
    if not VAR_NAME_RE.match(name):
        raise InvalidVariableNameError(f"Invalid variable name: '{name}'")
    return ExprNode.symbol(name)


def evaluate(postfix: list[Instruction], session=None, bindings: dict[str, Any] | None = None):
    """Run a postfix program on a value stack.

    Args:
        postfix: Program from ``to_postfix``
        session: Session to use (default: the active session)
        bindings: Caller-supplied values for identifiers

    Returns:
        ExprNode, Equation, or a tuple for bracket lists
    """
    session = _resolve(session)
    bindings = bindings or {}
    stack: list[Any] = []
    with session.activate():
        for instruction in postfix:
            kind = instruction[0]
            if kind == "num":
                stack.append(ExprNode.number(Rational(instruction[1])))
            elif kind == "ident":
                stack.append(_resolve_identifier(instruction[1], instruction[2], session, bindings))
            elif kind == "op":
                op = instruction[1]
                if len(stack) < op.arity:
                    raise OperatorError(
                        f"Operator '{op.symbol}' is missing an operand", token=op.symbol
                    )
                operands = stack[-op.arity:]
                del stack[-op.arity:]
                session.notify_peekers(op.name, operands)
                stack.append(op.action(*operands))
            elif kind == "call":
                _, name, argc, position = instruction
                if name not in session.functions:
                    raise UnexpectedTokenError(
                        f"Unknown function '{name}'", token=name, position=position
                    )
                args = stack[len(stack) - argc:] if argc else []
                del stack[len(stack) - argc:]
                session.notify_peekers(name, args)
                stack.append(call_function(name, args))
            elif kind == "vector":
                count = instruction[1]
                items = tuple(stack[len(stack) - count:]) if count else ()
                del stack[len(stack) - count:]
                stack.append(items)
            else:
                raise OperatorError(f"Unknown instruction '{kind}'")
    if len(stack) != 1:
        raise OperatorError("Malformed expression")
    return stack[0]


def parse(text: str, session=None, **bindings):
    """Parse text into a canonical expression.

    Args:
        text: Expression such as "2x+sin(x)^2" or "x^2-4=0"
        session: Session to use (default: the active session)
        **bindings: Values substituted for identifiers during evaluation

    Returns:
        ExprNode, Equation, or tuple for bracket lists

    Raises:
        ParseError: Malformed input (see subclasses for the specific cause)
        DivisionByZero: When evaluation divides by zero
    """
    session = _resolve(session)
    with session.activate():
        cleaned = preprocess(text, session)
        tokens = tokenize(cleaned, session)
        program = to_postfix(tokens, session)
        return evaluate(program, session, bindings)


def split_top_level_commas(input_str: str) -> list[str]:
    """Split string by commas that are not inside (), [], or {}."""
    parts: list[str] = []
    current = []
    depth = 0
    for char in input_str:
        if char == "," and depth == 0:
            part = "".join(current).strip()
            if part:
                parts.append(part)
            current = []
            continue
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth = max(0, depth - 1)
        current.append(char)
    last = "".join(current).strip()
    if last:
        parts.append(last)
    return parts


def render(value) -> str:
    """Canonical text of a parse result, including bracket lists."""
    if isinstance(value, tuple):
        return "[" + ",".join(render(item) for item in value) + "]"
    return str(value)


def _resolve(session):
    if session is not None:
        return session
    from .session import get_session

    return get_session()
