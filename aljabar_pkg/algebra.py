"""Algebra helpers shared by the transforms.

- coefficient extraction (``coeffs``, ``degree``, ``strip_coefficient``,
  ``decompose_linear``, ``complete_square``)
- exact univariate polynomials over Rational (``Polynomial``)
- rational-function tools (``together``, ``poly_divide``, ``partfrac``)
- polynomial gcd and lcm, square completion
- ``factor`` and ``simplify``
"""

from __future__ import annotations

from math import gcd, isqrt

from . import core
from .deadline import check_deadline, entry_point
from .expr import SUM_SHAPES, ExprNode, Shape
from .logging_config import get_logger
from .rational import ONE, ZERO, Rational
from .types import DimensionError, DivisionByZero

logger = get_logger("algebra")


# coefficient extraction


def terms_of(node: ExprNode) -> list[ExprNode]:
    """Terms of a sum with the sum's multiplier distributed into each."""
    if node.shape in SUM_SHAPES and node.power == ONE:
        result = []
        for term in node.terms():
            term = term.clone()
            term.multiplier = term.multiplier * node.multiplier
            result.append(term)
        return result
    return [node.clone()]


def without_factor(node: ExprNode, key: str) -> ExprNode:
    """Product node with the factor under ``key`` removed."""
    result = core.number(node.multiplier)
    for child_key, child in node.children.items():
        if child_key != key:
            result = core.multiply(result, child)
    return result


def _term_degree(term: ExprNode, x: str) -> tuple[ExprNode, int] | None:
    if not term.contains(x):
        return term, 0
    if term.shape is Shape.MONOMIAL and term.value == x:
        if term.power.is_integer() and term.power > 0:
            return core.number(term.multiplier), int(term.power)
        return None
    if term.shape is Shape.PRODUCT:
        factor = term.children.get(x)
        if factor is None or factor.shape is not Shape.MONOMIAL:
            return None
        if not (factor.power.is_integer() and factor.power > 0):
            return None
        rest = without_factor(term, x)
        if rest.contains(x):
            return None
        return rest, int(factor.power)
    return None


def coeffs(node: ExprNode, x: str) -> list[ExprNode] | None:
    """Polynomial coefficients in ``x``, lowest degree first; None if not a polynomial."""
    expanded = core.expand(node)
    collected: dict[int, ExprNode] = {}
    for term in terms_of(expanded):
        split = _term_degree(term, x)
        if split is None:
            return None
        coefficient, power = split
        collected[power] = core.add(collected.get(power, core.zero()), coefficient)
    top = max(collected) if collected else 0
    result = [collected.get(i, core.zero()) for i in range(top + 1)]
    while len(result) > 1 and result[-1].is_zero():
        result.pop()
    return result


def degree(node: ExprNode, x: str) -> int | None:
    cs = coeffs(node, x)
    if cs is None:
        return None
    return len(cs) - 1


def strip_coefficient(node: ExprNode, x: str) -> tuple[ExprNode, ExprNode]:
    """Split ``node`` into (x-free coefficient, remainder) with node == coefficient * remainder.

    The coefficient keeps symbolic constants exact: ``2*pi*a*sin(x)`` gives
    ``(2*pi*a, sin(x))``.
    """
    if not node.contains(x):
        return node.clone(), core.one()
    if node.shape is Shape.PRODUCT:
        coefficient = core.number(node.multiplier)
        rest = core.one()
        for factor in node.children.values():
            if factor.contains(x):
                rest = core.multiply(rest, factor)
            else:
                coefficient = core.multiply(coefficient, factor)
        return coefficient, rest
    return core.number(node.multiplier), node.unit()


def decompose_linear(node: ExprNode, x: str) -> tuple[ExprNode, ExprNode] | None:
    """(a, b) when node == a*x + b with a, b free of x and a nonzero."""
    cs = coeffs(node, x)
    if cs is None or len(cs) != 2 or cs[1].is_zero():
        return None
    return cs[1], cs[0]


def complete_square(node: ExprNode, x: str) -> tuple[ExprNode, ExprNode, ExprNode] | None:
    """(a, h, k) with node == a*(x+h)^2 + k, or None when node is not quadratic in x."""
    cs = coeffs(node, x)
    if cs is None or len(cs) != 3:
        return None
    c, b, a = cs
    h = core.divide(b, core.multiply(core.number(2), a))
    k = core.subtract(c, core.divide(core.multiply(b, b), core.multiply(core.number(4), a)))
    return a, h, k


# exact univariate polynomials


class Polynomial:
    """Univariate polynomial with Rational coefficients, lowest degree first."""

    __slots__ = ("coefficients",)

    def __init__(self, coefficients):
        cs = [c if isinstance(c, Rational) else Rational(c) for c in coefficients]
        while cs and cs[-1].is_zero():
            cs.pop()
        self.coefficients = cs

    @classmethod
    def from_node(cls, node: ExprNode, x: str) -> Polynomial | None:
        cs = coeffs(node, x)
        if cs is None or not all(c.is_number() for c in cs):
            return None
        return cls([c.multiplier for c in cs])

    @classmethod
    def linear_root(cls, root: Rational) -> Polynomial:
        """x - root"""
        return cls([-root, ONE])

    def to_node(self, x: str) -> ExprNode:
        result = core.zero()
        for power, c in enumerate(self.coefficients):
            if c.is_zero():
                continue
            term = core.pow(core.symbol(x), core.number(power)) if power else core.one()
            result = core.add(result, core.multiply(core.number(c), term))
        return result

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    @property
    def leading(self) -> Rational:
        return self.coefficients[-1] if self.coefficients else ZERO

    def is_zero(self) -> bool:
        return not self.coefficients

    def evaluate(self, value: Rational) -> Rational:
        result = ZERO
        for c in reversed(self.coefficients):
            result = result * value + c
        return result

    def __add__(self, other: Polynomial) -> Polynomial:
        n = max(len(self.coefficients), len(other.coefficients))
        a = self.coefficients + [ZERO] * (n - len(self.coefficients))
        b = other.coefficients + [ZERO] * (n - len(other.coefficients))
        return Polynomial([x + y for x, y in zip(a, b)])

    def __neg__(self) -> Polynomial:
        return Polynomial([-c for c in self.coefficients])

    def __sub__(self, other: Polynomial) -> Polynomial:
        return self + (-other)

    def __mul__(self, other) -> Polynomial:
        if not isinstance(other, Polynomial):
            return Polynomial([c * other for c in self.coefficients])
        if self.is_zero() or other.is_zero():
            return Polynomial([])
        result = [ZERO] * (len(self.coefficients) + len(other.coefficients) - 1)
        for i, a in enumerate(self.coefficients):
            for j, b in enumerate(other.coefficients):
                result[i + j] = result[i + j] + a * b
        return Polynomial(result)

    def __pow__(self, n: int) -> Polynomial:
        result = Polynomial([ONE])
        for _ in range(n):
            result = result * self
        return result

    def __divmod__(self, divisor: Polynomial) -> tuple[Polynomial, Polynomial]:
        if divisor.is_zero():
            raise DivisionByZero("Polynomial division by zero")
        remainder = list(self.coefficients)
        quotient = [ZERO] * max(0, len(remainder) - len(divisor.coefficients) + 1)
        lead = divisor.leading
        while len(remainder) >= len(divisor.coefficients) and remainder:
            check_deadline()
            shift = len(remainder) - len(divisor.coefficients)
            factor = remainder[-1] / lead
            quotient[shift] = factor
            for i, c in enumerate(divisor.coefficients):
                remainder[i + shift] = remainder[i + shift] - factor * c
            remainder.pop()
            while remainder and remainder[-1].is_zero():
                remainder.pop()
        return Polynomial(quotient), Polynomial(remainder)

    def __floordiv__(self, divisor: Polynomial) -> Polynomial:
        return divmod(self, divisor)[0]

    def __mod__(self, divisor: Polynomial) -> Polynomial:
        return divmod(self, divisor)[1]

    def __eq__(self, other) -> bool:
        if isinstance(other, Polynomial):
            return self.coefficients == other.coefficients
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self.coefficients))

    def __repr__(self) -> str:
        return f"Polynomial({[str(c) for c in self.coefficients]})"

    def monic(self) -> Polynomial:
        if self.is_zero():
            return self
        return self * self.leading.invert()

    def derivative(self) -> Polynomial:
        return Polynomial([c * i for i, c in enumerate(self.coefficients)][1:])

    def gcd(self, other: Polynomial) -> Polynomial:
        a, b = self, other
        while not b.is_zero():
            check_deadline()
            a, b = b, a % b
        return a.monic()

    def primitive(self) -> tuple[Rational, Polynomial]:
        """(content, p) with self == content * p, p integral, coprime, leading positive."""
        if self.is_zero():
            return ZERO, self
        den_lcm = 1
        for c in self.coefficients:
            den_lcm = den_lcm * c.den // gcd(den_lcm, c.den)
        ints = [(c * den_lcm).num for c in self.coefficients]
        num_gcd = 0
        for value in ints:
            num_gcd = gcd(num_gcd, value)
        if ints[-1] < 0:
            num_gcd = -num_gcd
        content = Rational(num_gcd, den_lcm)
        return content, Polynomial([Rational(v // num_gcd) for v in ints])

    def rational_roots(self) -> list[Rational]:
        """Distinct rational roots by the rational root theorem."""
        from .session import get_session

        if self.degree < 1:
            return []
        roots: list[Rational] = []
        poly = self
        if poly.coefficients[0].is_zero():
            roots.append(ZERO)
            while poly.coefficients and poly.coefficients[0].is_zero():
                poly = Polynomial(poly.coefficients[1:])
            if poly.degree < 1:
                return roots
        _, integral = poly.primitive()
        constant = abs(integral.coefficients[0].num)
        lead = abs(integral.leading.num)
        limit = get_session().settings.max_rational_root_candidates
        numerators = _divisors(constant)
        denominators = _divisors(lead)
        if numerators is None or denominators is None or len(numerators) * len(denominators) > limit:
            logger.debug("Rational root search skipped, too many candidates")
            return roots
        seen = set()
        for q in denominators:
            for p in numerators:
                check_deadline()
                for candidate in (Rational(p, q), Rational(-p, q)):
                    if candidate in seen:
                        continue
                    seen.add(candidate)
                    if integral.evaluate(candidate).is_zero():
                        roots.append(candidate)
        return sorted(roots)

    def square_free(self) -> list[tuple[Polynomial, int]]:
        """Yun's square-free decomposition of the monic part: [(factor, multiplicity)]."""
        result: list[tuple[Polynomial, int]] = []
        if self.degree < 1:
            return result
        f = self.monic()
        c = f.gcd(f.derivative())
        w = f // c
        multiplicity = 1
        while w.degree > 0:
            check_deadline()
            y = w.gcd(c)
            z = w // y
            if z.degree > 0:
                result.append((z.monic(), multiplicity))
            multiplicity += 1
            w = y
            c = c // y
        return result


def _divisors(n: int) -> list[int] | None:
    if n == 0:
        return None
    small: list[int] = []
    large: list[int] = []
    root = isqrt(n)
    if root > 10**6:
        return None
    for d in range(1, root + 1):
        if d % 1000 == 0:
            check_deadline()
        if n % d == 0:
            small.append(d)
            if d != n // d:
                large.append(n // d)
    return small + large[::-1]


def factor_polynomial(poly: Polynomial) -> tuple[Rational, list[tuple[Polynomial, int]]]:
    """Content plus (primitive factor, multiplicity) pairs.

    Rational roots become linear factors; what remains is split square-free.
    """
    content, remaining = poly.primitive()
    factors: list[tuple[Polynomial, int]] = []
    for root in remaining.rational_roots():
        linear = Polynomial([-root.num, root.den])
        multiplicity = 0
        while True:
            quotient, remainder = divmod(remaining, linear)
            if not remainder.is_zero():
                break
            remaining = quotient
            multiplicity += 1
        if multiplicity:
            factors.append((linear, multiplicity))
    if remaining.degree > 0:
        for part, multiplicity in remaining.square_free():
            _, primitive = part.primitive()
            factors.append((primitive, multiplicity))
    # whatever is left over is a constant, fold it into the content
    check = Polynomial([ONE])
    for part, multiplicity in factors:
        check = check * (part**multiplicity)
    scale = (poly.leading / check.leading) if not check.is_zero() else poly.leading
    return scale, factors


# rational functions


def split_fraction(node: ExprNode) -> tuple[ExprNode, ExprNode]:
    """(numerator, denominator) of a single term; negative powers go to the denominator."""
    if node.shape is Shape.PRODUCT:
        numerator = core.number(node.multiplier)
        denominator = core.one()
        for factor in node.children.values():
            if factor.shape is not Shape.EXPONENTIAL and factor.power < 0:
                denominator = core.multiply(denominator, core.pow(factor, core.number(-1)))
            else:
                numerator = core.multiply(numerator, factor)
        return numerator, denominator
    if node.shape is not Shape.EXPONENTIAL and node.shape is not Shape.CONSTANT and node.power < 0:
        return core.number(node.multiplier), core.pow(node.unit(), core.number(-1))
    return node.clone(), core.one()


def together(node: ExprNode) -> tuple[ExprNode, ExprNode]:
    """Combine over a common denominator: returns (numerator, denominator)."""
    terms = terms_of(core.expand(node))
    parts = [split_fraction(term) for term in terms]
    common: dict[str, ExprNode] = {}
    for _, denominator in parts:
        for factor in denominator.factors():
            key = factor.base_key()
            current = common.get(key)
            if current is None or current.power < factor.power:
                common[key] = factor
    denominator = core.one()
    for factor in common.values():
        denominator = core.multiply(denominator, factor)
    numerator = core.zero()
    for term_numerator, term_denominator in parts:
        check_deadline()
        scale = core.divide(denominator, term_denominator)
        numerator = core.add(numerator, core.expand(core.multiply(term_numerator, scale)))
    return numerator, denominator


def _polynomial_pair(
    a: ExprNode, b: ExprNode, x: str | None, operation: str
) -> tuple[Polynomial, Polynomial, str]:
    if x is None:
        names = sorted(set(a.variables()) | set(b.variables()))
        x = names[0] if len(names) == 1 else None
    pa = Polynomial.from_node(a, x) if x is not None else None
    pb = Polynomial.from_node(b, x) if x is not None else None
    if pa is None or pb is None:
        where = f" in {x}" if x is not None else " in one variable"
        raise DimensionError(f"{operation} needs rational-coefficient polynomials{where}")
    return pa, pb, x


def poly_divide(a: ExprNode, b: ExprNode, x: str | None = None) -> tuple[ExprNode, ExprNode]:
    """Polynomial long division of rational-coefficient polynomials in x."""
    pa, pb, x = _polynomial_pair(a, b, x, "poly_divide")
    quotient, remainder = divmod(pa, pb)
    return quotient.to_node(x), remainder.to_node(x)


def _integer_pair(a: ExprNode, b: ExprNode) -> tuple[int, int] | None:
    if all(n.is_number() and n.multiplier.is_integer() for n in (a, b)):
        return int(a.multiplier), int(b.multiplier)
    return None


@entry_point
def polynomial_gcd(a: ExprNode, b: ExprNode, x: str | None = None) -> ExprNode:
    """gcd of two integers, or the monic gcd of two polynomials."""
    integers = _integer_pair(a, b)
    if integers is not None:
        return core.number(gcd(*integers))
    pa, pb, x = _polynomial_pair(a, b, x, "gcd")
    return pa.gcd(pb).to_node(x)


@entry_point
def polynomial_lcm(a: ExprNode, b: ExprNode, x: str | None = None) -> ExprNode:
    """lcm of two integers, or the monic lcm of two polynomials."""
    integers = _integer_pair(a, b)
    if integers is not None:
        m, n = integers
        return core.number(abs(m * n) // gcd(m, n) if m and n else 0)
    pa, pb, x = _polynomial_pair(a, b, x, "lcm")
    if pa.is_zero() or pb.is_zero():
        return core.zero()
    return ((pa * pb) // pa.gcd(pb)).monic().to_node(x)


@entry_point
def square_completion(node: ExprNode, x: str | None = None) -> ExprNode:
    """Rewrite a quadratic in ``x`` as ``a*(x+h)^2 + k``.

    Raises:
        DimensionError: When ``node`` is not quadratic in ``x``
    """
    x = _main_variable(node, x)
    parts = complete_square(node, x) if x is not None else None
    if parts is None:
        raise DimensionError(f"sqcomp needs a quadratic, got '{node}'")
    a, h, k = parts
    square = core.pow(core.add(core.symbol(x), h), core.number(2))
    return core.add(core.multiply(a, square), k)


def _main_variable(node: ExprNode, x: str | None) -> str | None:
    if x is not None:
        return x
    names = node.variables()
    return names[0] if len(names) == 1 else None


@entry_point
def partfrac(node: ExprNode, x: str | None = None) -> ExprNode:
    """Partial fraction decomposition over the rationals.

    Returns the input unchanged when it is not a rational function of ``x``
    with rational coefficients.
    """
    x = _main_variable(node, x)
    if x is None:
        return node
    numerator, denominator = together(node)
    pn = Polynomial.from_node(numerator, x)
    pd = Polynomial.from_node(denominator, x)
    if pn is None or pd is None or pd.degree < 1:
        return node
    quotient, remainder = divmod(pn, pd)
    result = quotient.to_node(x)
    if remainder.is_zero():
        return result

    scale, factors = factor_polynomial(pd)
    # one unknown per basis polynomial: x^j * D / q^k for each factor q^m, k <= m
    basis: list[tuple[Polynomial, int, int, int]] = []
    for index, (q, multiplicity) in enumerate(factors):
        for k in range(1, multiplicity + 1):
            cofactor = pd // (q**k)
            for j in range(q.degree):
                basis.append((cofactor * Polynomial([ZERO] * j + [ONE]), index, k, j))
    size = pd.degree
    if len(basis) != size:
        return node
    matrix = [
        [b[0].coefficients[row] if row < len(b[0].coefficients) else ZERO for b in basis]
        for row in range(size)
    ]
    rhs = [remainder.coefficients[row] if row < len(remainder.coefficients) else ZERO for row in range(size)]
    solution = solve_linear_rational(matrix, rhs)
    if solution is None:
        return node

    numerators: dict[tuple[int, int], list[Rational]] = {}
    for value, (_, index, k, j) in zip(solution, basis):
        numerators.setdefault((index, k), [ZERO] * factors[index][0].degree)[j] = value
    for (index, k), cs in sorted(numerators.items()):
        top = Polynomial(cs)
        if top.is_zero():
            continue
        q = factors[index][0].to_node(x)
        term = core.divide(top.to_node(x), core.pow(q, core.number(k)))
        result = core.add(result, term)
    return result


def solve_linear_rational(matrix: list[list[Rational]], rhs: list[Rational]) -> list[Rational] | None:
    """Gauss-Jordan elimination over Rational; None when singular."""
    n = len(matrix)
    rows = [list(row) + [value] for row, value in zip(matrix, rhs)]
    for col in range(n):
        check_deadline()
        pivot = next((r for r in range(col, n) if not rows[r][col].is_zero()), None)
        if pivot is None:
            return None
        rows[col], rows[pivot] = rows[pivot], rows[col]
        lead = rows[col][col]
        rows[col] = [v / lead for v in rows[col]]
        for r in range(n):
            if r != col and not rows[r][col].is_zero():
                factor = rows[r][col]
                rows[r] = [a - factor * b for a, b in zip(rows[r], rows[col])]
    return [rows[i][n] for i in range(n)]


# factoring


def _common_factor(node: ExprNode) -> tuple[ExprNode, ExprNode]:
    """(common, rest) with common the shared symbolic factors of all terms."""
    terms = terms_of(node)
    shared: dict[str, ExprNode] | None = None
    for term in terms:
        current = {}
        for factor in term.factors():
            if factor.shape is Shape.EXPONENTIAL or factor.power <= 0:
                continue
            current[factor.base_key()] = factor
        if shared is None:
            shared = current
        else:
            shared = {
                key: (f if f.power <= current[key].power else current[key])
                for key, f in shared.items()
                if key in current
            }
    common = core.one()
    for factor in (shared or {}).values():
        common = core.multiply(common, factor)
    if common.is_one():
        return common, node
    rest = core.zero()
    for term in terms:
        rest = core.add(rest, core.divide(term, common))
    return common, rest


@entry_point
def factor(node: ExprNode) -> ExprNode:
    """Factor over the rationals: common factors, then rational roots of univariate parts."""
    return _factor(node)


def _factor(node: ExprNode) -> ExprNode:
    check_deadline()
    if node.shape is Shape.PRODUCT:
        result = core.number(node.multiplier)
        for child in node.children.values():
            result = core.multiply(result, _factor(child))
        return result
    if node.shape not in SUM_SHAPES:
        return node.clone()
    if node.power != ONE:
        inner = node.clone()
        inner.power = ONE
        inner.multiplier = ONE
        powered = core.pow(_factor(inner), core.number(node.power))
        return core.multiply(core.number(node.multiplier), powered)

    common, rest = _common_factor(node)
    if not common.is_one():
        return core.multiply(common, _factor(rest))

    names = node.variables()
    if len(names) != 1:
        return node.clone()
    x = names[0]
    poly = Polynomial.from_node(node, x)
    if poly is None or poly.degree < 2:
        return node.clone()
    scale, factors = factor_polynomial(poly)
    if len(factors) == 1 and factors[0][1] == 1:
        return node.clone()
    result = core.number(scale)
    for part, multiplicity in factors:
        result = core.multiply(result, core.pow(part.to_node(x), core.number(multiplicity)))
    return result


# simplification


def _cancel(node: ExprNode) -> ExprNode:
    numerator, denominator = together(node)
    if denominator.is_one():
        return numerator
    names = sorted(set(numerator.variables()) | set(denominator.variables()))
    if len(names) == 1:
        x = names[0]
        pn = Polynomial.from_node(numerator, x)
        pd = Polynomial.from_node(core.expand(denominator), x)
        if pn is not None and pd is not None and not pd.is_zero():
            common = pn.gcd(pd)
            if common.degree > 0:
                pn, pd = pn // common, pd // common
                return core.divide(pn.to_node(x), _factor(pd.to_node(x)))
    return core.divide(numerator, denominator)


def _pythagorean(node: ExprNode) -> ExprNode:
    """Replace c*sin(u)^2 + c*cos(u)^2 by c."""
    if node.shape not in SUM_SHAPES or node.power != ONE:
        return node
    terms = terms_of(node)
    squares: dict[tuple[str, str, str], int] = {}
    for index, term in enumerate(terms):
        if term.shape is Shape.FUNCTION and term.power == 2 and term.value in ("sin", "cos"):
            squares[(term.value, str(term.args[0]), str(term.multiplier))] = index
    used: set[int] = set()
    replacement = core.zero()
    for (name, arg, multiplier), index in squares.items():
        if name != "sin":
            continue
        partner = squares.get(("cos", arg, multiplier))
        if partner is None:
            continue
        used.update((index, partner))
        replacement = core.add(replacement, core.number(Rational(multiplier)))
    if not used:
        return node
    for index, term in enumerate(terms):
        if index not in used:
            replacement = core.add(replacement, term)
    return replacement


@entry_point
def simplify(node: ExprNode) -> ExprNode:
    """Rewrite to a fixed point, keeping the shortest canonical candidate each pass."""
    from .session import get_session

    current = core.canonicalize(node)
    for _ in range(get_session().settings.simplify_max_passes):
        check_deadline()
        candidates = [current, core.expand(current), _pythagorean(current), _cancel(current)]
        best = min(candidates, key=lambda n: (len(str(n)), str(n)))
        if best == current:
            break
        current = best
    return current
