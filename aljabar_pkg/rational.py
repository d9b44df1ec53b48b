"""Exact rational numbers used for every coefficient and exponent.

A Rational is an immutable, always-reduced numerator/denominator pair of
Python ints. Arithmetic never rounds; the only lossy operation is
``to_decimal`` which is explicitly opt-in.
"""

from __future__ import annotations

import math
import re
from typing import Any

from .types import DivisionByZero, ParseError

_DECIMAL_RE = re.compile(r"^([+-]?)(\d*)(?:\.(\d*))?(?:[eE]([+-]?\d+))?$")
# literals stay under the interpreter's 4300-digit int-to-str limit
_MAX_LITERAL_DIGITS = 3000
_MAX_EXPONENT_DIGITS = 3


class Rational:
    """Arbitrary-precision rational number, denominator always positive."""

    __slots__ = ("num", "den")

    def __init__(self, num: Any = 0, den: Any = 1):
        if isinstance(num, Rational) and den == 1:
            n, d = num.num, num.den
        elif isinstance(num, str):
            n, d = _parse_string(num)
            if den != 1:
                other = Rational(den)
                n, d = n * other.den, d * other.num
        elif isinstance(num, float):
            if not math.isfinite(num):
                raise ParseError(f"Cannot convert {num!r} to a rational", "NON_FINITE")
            n, d = num.as_integer_ratio()
            if den != 1:
                d *= int(den)
        elif isinstance(num, bool):
            raise TypeError("bool is not a valid rational component")
        elif isinstance(num, int):
            if isinstance(den, Rational):
                n, d = num * den.den, den.num
            else:
                n, d = num, int(den)
        elif isinstance(num, Rational):
            other = Rational(den)
            n, d = num.num * other.den, num.den * other.num
        else:
            raise TypeError(f"Cannot build Rational from {type(num).__name__}")

        if d == 0:
            raise DivisionByZero("Division by zero", "DIVISION_BY_ZERO")
        if d < 0:
            n, d = -n, -d
        g = math.gcd(n, d)
        if g > 1:
            n //= g
            d //= g
        object.__setattr__(self, "num", n)
        object.__setattr__(self, "den", d)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Rational is immutable")

    @classmethod
    def _raw(cls, n: int, d: int) -> Rational:
        # n/d already reduced with d > 0
        obj = object.__new__(cls)
        object.__setattr__(obj, "num", n)
        object.__setattr__(obj, "den", d)
        return obj

    @classmethod
    def from_float(cls, value: float, max_denominator: int = 10**12) -> Rational:
        """Best rational approximation of a float by continued fractions.

        Args:
            value: Finite float to approximate
            max_denominator: Largest denominator allowed in the result

        Returns:
            The closest Rational whose denominator does not exceed the bound
        """
        if not math.isfinite(value):
            raise ParseError(f"Cannot convert {value!r} to a rational", "NON_FINITE")
        exact = cls(value)
        if exact.den <= max_denominator:
            return exact
        p0, q0, p1, q1 = 0, 1, 1, 0
        n, d = exact.num, exact.den
        while True:
            a = n // d
            q2 = q0 + a * q1
            if q2 > max_denominator:
                break
            p0, q0, p1, q1 = p1, q1, p0 + a * p1, q2
            n, d = d, n - a * d
            if d == 0:
                break
        k = (max_denominator - q0) // q1
        bound1 = cls(p0 + k * p1, q0 + k * q1)
        bound2 = cls(p1, q1)
        if abs(bound2 - exact) <= abs(bound1 - exact):
            return bound2
        return bound1

    # predicates

    def is_zero(self) -> bool:
        return self.num == 0

    def is_one(self) -> bool:
        return self.num == 1 and self.den == 1

    def is_integer(self) -> bool:
        return self.den == 1

    def is_negative(self) -> bool:
        return self.num < 0

    def sign(self) -> int:
        return (self.num > 0) - (self.num < 0)

    # arithmetic

    def add(self, other: Any) -> Rational:
        other = _coerce(other)
        return Rational(self.num * other.den + other.num * self.den, self.den * other.den)

    def subtract(self, other: Any) -> Rational:
        other = _coerce(other)
        return Rational(self.num * other.den - other.num * self.den, self.den * other.den)

    def multiply(self, other: Any) -> Rational:
        other = _coerce(other)
        return Rational(self.num * other.num, self.den * other.den)

    def divide(self, other: Any) -> Rational:
        other = _coerce(other)
        if other.num == 0:
            raise DivisionByZero("Division by zero", "DIVISION_BY_ZERO")
        return Rational(self.num * other.den, self.den * other.num)

    def mod(self, other: Any) -> Rational:
        """Remainder with the sign of the divisor, like Python's ``%``."""
        other = _coerce(other)
        if other.num == 0:
            raise DivisionByZero("Modulo by zero", "DIVISION_BY_ZERO")
        q = (self.num * other.den) // (self.den * other.num)
        return self.subtract(other.multiply(q))

    def negate(self) -> Rational:
        return Rational._raw(-self.num, self.den)

    def invert(self) -> Rational:
        if self.num == 0:
            raise DivisionByZero("Division by zero", "DIVISION_BY_ZERO")
        if self.num < 0:
            return Rational._raw(-self.den, -self.num)
        return Rational._raw(self.den, self.num)

    def abs(self) -> Rational:
        return Rational._raw(abs(self.num), self.den)

    def pow(self, exponent: int) -> Rational:
        """Integer power by repeated squaring."""
        if isinstance(exponent, Rational):
            if not exponent.is_integer():
                raise ValueError("Rational.pow needs an integer exponent")
            exponent = exponent.num
        if exponent < 0:
            return self.invert().pow(-exponent)
        result_n, result_d = 1, 1
        base_n, base_d = self.num, self.den
        while exponent:
            if exponent & 1:
                result_n *= base_n
                result_d *= base_d
            base_n *= base_n
            base_d *= base_d
            exponent >>= 1
        return Rational._raw(result_n, result_d)

    def floor(self) -> int:
        return self.num // self.den

    def to_decimal(self, precision: int = 21) -> str:
        """Render as a decimal string by exact long division.

        Args:
            precision: Number of significant digits (integer part is never cut)

        Returns:
            Decimal string, rounded half up, trailing zeros removed
        """
        n, d = abs(self.num), self.den
        if n == 0:
            return "0"
        int_part = n // d
        if int_part:
            frac_digits = max(precision - len(str(int_part)), 0)
        else:
            zeros = 0
            while n * 10 ** (zeros + 1) < d:
                zeros += 1
            frac_digits = zeros + precision
        scaled = (2 * n * 10**frac_digits + d) // (2 * d)
        digits = str(scaled)
        if frac_digits:
            digits = digits.rjust(frac_digits + 1, "0")
            whole, frac = digits[:-frac_digits], digits[-frac_digits:].rstrip("0")
            text = f"{whole}.{frac}" if frac else whole
        else:
            text = digits
        return "-" + text if self.num < 0 else text

    # dunder protocol

    __add__ = add
    __sub__ = subtract
    __mul__ = multiply
    __truediv__ = divide
    __mod__ = mod

    def __radd__(self, other: Any) -> Rational:
        return _coerce(other).add(self)

    def __rsub__(self, other: Any) -> Rational:
        return _coerce(other).subtract(self)

    def __rmul__(self, other: Any) -> Rational:
        return _coerce(other).multiply(self)

    def __rtruediv__(self, other: Any) -> Rational:
        return _coerce(other).divide(self)

    def __neg__(self) -> Rational:
        return self.negate()

    def __pos__(self) -> Rational:
        return self

    def __abs__(self) -> Rational:
        return self.abs()

    def __pow__(self, exponent: int) -> Rational:
        return self.pow(exponent)

    def _cmp(self, other: Any) -> int:
        other = _coerce(other)
        lhs = self.num * other.den
        rhs = other.num * self.den
        return (lhs > rhs) - (lhs < rhs)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Rational):
            return self.num == other.num and self.den == other.den
        if isinstance(other, int) and not isinstance(other, bool):
            return self.den == 1 and self.num == other
        if isinstance(other, float):
            return float(self) == other
        return NotImplemented

    def __hash__(self) -> int:
        if self.den == 1:
            return hash(self.num)
        return hash((self.num, self.den))

    def __lt__(self, other: Any) -> bool:
        return self._cmp(other) < 0

    def __le__(self, other: Any) -> bool:
        return self._cmp(other) <= 0

    def __gt__(self, other: Any) -> bool:
        return self._cmp(other) > 0

    def __ge__(self, other: Any) -> bool:
        return self._cmp(other) >= 0

    def __bool__(self) -> bool:
        return self.num != 0

    def __float__(self) -> float:
        return self.num / self.den

    def __int__(self) -> int:
        # truncates toward zero like int(float)
        q = abs(self.num) // self.den
        return -q if self.num < 0 else q

    def __str__(self) -> str:
        if self.den == 1:
            return str(self.num)
        return f"{self.num}/{self.den}"

    def __repr__(self) -> str:
        return f"Rational({self.num}, {self.den})"

    def __reduce__(self):
        return (Rational, (self.num, self.den))


ZERO = Rational._raw(0, 1)
ONE = Rational._raw(1, 1)
MINUS_ONE = Rational._raw(-1, 1)
HALF = Rational._raw(1, 2)


def _coerce(value: Any) -> Rational:
    if isinstance(value, Rational):
        return value
    return Rational(value)


def _parse_string(text: str) -> tuple[int, int]:
    """Parse "3", "-1.25", "1.2e-3" or "3/4" into a numerator/denominator pair."""
    text = text.strip()
    if "/" in text:
        left, _, right = text.partition("/")
        a, b = Rational(left), Rational(right)
        if b.num == 0:
            raise DivisionByZero("Division by zero", "DIVISION_BY_ZERO")
        return a.num * b.den, a.den * b.num
    match = _DECIMAL_RE.match(text)
    if not match or not (match.group(2) or match.group(3)):
        raise ParseError(f"Invalid number literal: {text!r}", "INVALID_NUMBER")
    sign, whole, frac, exp = match.groups()
    frac = frac or ""
    too_long = len(whole) + len(frac) > _MAX_LITERAL_DIGITS
    if too_long or (exp and len(exp.lstrip("+-0")) > _MAX_EXPONENT_DIGITS):
        raise ParseError(f"Number literal out of range: {text[:20]!r}", "INVALID_NUMBER")
    n = int((whole or "0") + frac)
    d = 10 ** len(frac)
    if exp:
        e = int(exp)
        if e >= 0:
            n *= 10**e
        else:
            d *= 10 ** (-e)
    if sign == "-":
        n = -n
    return n, d
