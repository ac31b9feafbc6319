"""
Exact numeric tower used by the constant folder and the parser.

    Integer(i) | Rational(num, den) | Float(mpf)

Integer and Rational are exact and always kept in lowest terms with a
positive denominator.  Float wraps an mpmath `mpf` and is the escape hatch:
any operation that touches a Float yields a Float.  Operations between exact
values return the most exact representation (Rational results with unit
denominator come back as Integer).
"""
from math import gcd
from typing import Optional, Tuple

from mpmath import mp

from errors import DivisionByZero, EvaluationError, DOMAIN

# Exponents beyond this many result bits are not folded exactly.
_MAX_EXACT_BITS = 200_000


class ExactNumber:
    """Common protocol for the three numeric variants."""

    __slots__ = ()
    is_exact = True

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    def as_pair(self) -> Tuple[int, int]:
        raise NotImplementedError

    def to_mpf(self):
        num, den = self.as_pair()
        return mp.mpf(num) / den

    def is_zero(self) -> bool:
        return self.as_pair()[0] == 0

    def is_one(self) -> bool:
        return self.as_pair() == (1, 1)

    def is_negative(self) -> bool:
        return self.as_pair()[0] < 0

    def is_integer(self) -> bool:
        return self.as_pair()[1] == 1

    def serial(self) -> str:
        return str(self)

    # ------------------------------------------------------------------ #
    # Arithmetic
    # ------------------------------------------------------------------ #
    def __add__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        if not (self.is_exact and other.is_exact):
            return Float(self.to_mpf() + other.to_mpf())
        a, b = self.as_pair()
        c, d = other.as_pair()
        return make_rational(a * d + c * b, b * d)

    __radd__ = __add__

    def __sub__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        return self + (-other)

    def __rsub__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        return other + (-self)

    def __mul__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        if not (self.is_exact and other.is_exact):
            return Float(self.to_mpf() * other.to_mpf())
        a, b = self.as_pair()
        c, d = other.as_pair()
        return make_rational(a * c, b * d)

    __rmul__ = __mul__

    def __truediv__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        if other.is_zero():
            raise DivisionByZero(f"{self} / {other}")
        if not (self.is_exact and other.is_exact):
            return Float(self.to_mpf() / other.to_mpf())
        a, b = self.as_pair()
        c, d = other.as_pair()
        return make_rational(a * d, b * c)

    def __rtruediv__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        return other / self

    def __pow__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        exact = exact_power(self, other)
        if exact is not None:
            return exact
        if self.is_zero() and other.is_negative():
            raise DivisionByZero(f"{self} ^ {other}")
        value = mp.power(self.to_mpf(), other.to_mpf())
        if isinstance(value, mp.mpc):
            raise EvaluationError(DOMAIN, f"{self} ^ {other} is not real")
        return Float(value)

    def __neg__(self):
        num, den = self.as_pair()
        return make_rational(-num, den)

    def __abs__(self):
        return -self if self.is_negative() else self

    # ------------------------------------------------------------------ #
    # Comparison
    # ------------------------------------------------------------------ #
    def __eq__(self, other):
        other = to_exact(other)
        if other is None:
            return NotImplemented
        if self.is_exact != other.is_exact:
            return False
        if not self.is_exact:
            return self.to_mpf() == other.to_mpf()
        return self.as_pair() == other.as_pair()

    def __hash__(self):
        num, den = self.as_pair()
        return hash(num) if den == 1 else hash((num, den))

    def _cmp(self, other) -> Optional[int]:
        other = to_exact(other)
        if other is None:
            return None
        if not (self.is_exact and other.is_exact):
            a, b = self.to_mpf(), other.to_mpf()
            return (a > b) - (a < b)
        a, b = self.as_pair()
        c, d = other.as_pair()
        return (a * d > c * b) - (a * d < c * b)

    def __lt__(self, other):
        c = self._cmp(other)
        return NotImplemented if c is None else c < 0

    def __le__(self, other):
        c = self._cmp(other)
        return NotImplemented if c is None else c <= 0

    def __gt__(self, other):
        c = self._cmp(other)
        return NotImplemented if c is None else c > 0

    def __ge__(self, other):
        c = self._cmp(other)
        return NotImplemented if c is None else c >= 0

    def __bool__(self):
        return not self.is_zero()


class Integer(ExactNumber):
    __slots__ = ("value",)

    def __init__(self, value: int):
        self.value = int(value)

    def as_pair(self):
        return self.value, 1

    def to_mpf(self):
        return mp.mpf(self.value)

    def __int__(self):
        return self.value

    def __repr__(self):
        return f"Integer({self.value})"

    def __str__(self):
        return str(self.value)


class Rational(ExactNumber):
    """num/den in lowest terms; the sign always lives on the numerator."""

    __slots__ = ("num", "den")

    def __init__(self, num: int, den: int = 1):
        num, den = int(num), int(den)
        if den == 0:
            raise DivisionByZero(f"{num}/0")
        if den < 0:
            num, den = -num, -den
        g = gcd(num, den)
        self.num = num // g
        self.den = den // g

    def as_pair(self):
        return self.num, self.den

    def __repr__(self):
        return f"Rational({self.num}, {self.den})"

    def __str__(self):
        if self.den == 1:
            return str(self.num)
        return f"{self.num}/{self.den}"


class Float(ExactNumber):
    """Inexact escape hatch backed by mpmath."""

    __slots__ = ("value",)
    is_exact = False

    def __init__(self, value):
        self.value = mp.mpf(value)

    def as_pair(self):
        # Only meaningful for sign/zero queries on a Float.
        if self.value == 0:
            return 0, 1
        return (1 if self.value > 0 else -1), 2

    def to_mpf(self):
        return self.value

    def is_one(self):
        return self.value == 1

    def is_integer(self):
        return False

    def __neg__(self):
        return Float(-self.value)

    def __hash__(self):
        return hash(("Float", str(self.value)))

    def __repr__(self):
        return f"Float({mp.nstr(self.value, 15)})"

    def __str__(self):
        return mp.nstr(self.value, 15)

    def serial(self):
        return "f" + mp.nstr(self.value, 15)


# ---------------------------------------------------------------------- #
# Construction helpers
# ---------------------------------------------------------------------- #
def make_rational(num: int, den: int = 1) -> ExactNumber:
    """Reduced Rational, or Integer when the denominator divides out."""
    value = Rational(num, den)
    if value.den == 1:
        return Integer(value.num)
    return value


def to_exact(value) -> Optional[ExactNumber]:
    """Coerce Python / mpmath numbers into the tower; None if impossible."""
    if isinstance(value, ExactNumber):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Integer(value)
    if isinstance(value, (float, mp.mpf)):
        return Float(value)
    return None


def from_decimal_string(text: str) -> ExactNumber:
    """'2.50' -> 5/2 exactly.  At most one decimal point is accepted."""
    if text.count(".") > 1 or text in ("", "."):
        raise ValueError(f"Invalid number format: {text}")
    whole, _, frac = text.partition(".")
    digits = (whole or "0") + frac
    return make_rational(int(digits), 10 ** len(frac))


def _integer_root(n: int, k: int) -> Optional[int]:
    """Exact k-th root of n, or None when n is not a perfect power."""
    if n < 0:
        if k % 2 == 0:
            return None
        r = _integer_root(-n, k)
        return None if r is None else -r
    if n < 2:
        return n
    x = 1 << ((n.bit_length() + k - 1) // k)
    while True:
        y = ((k - 1) * x + n // x ** (k - 1)) // k
        if y >= x:
            break
        x = y
    return x if x ** k == n else None


def exact_power(base: ExactNumber, exp: ExactNumber) -> Optional[ExactNumber]:
    """
    Fold base^exp exactly when the result is representable, else None.

    0^0 is 1.  A zero base with a negative exponent raises DivisionByZero.
    Float operands never fold here.
    """
    if not (base.is_exact and exp.is_exact):
        return None
    a, b = base.as_pair()
    p, q = exp.as_pair()
    if p == 0:
        return Integer(1)
    if a == 0:
        if p < 0:
            raise DivisionByZero(f"{base} ^ {exp}")
        return Integer(0)
    if q != 1:
        ra, rb = _integer_root(a, q), _integer_root(b, q)
        if ra is None or rb is None:
            return None
        a, b = ra, rb
    n = abs(p)
    if n * max(abs(a).bit_length(), b.bit_length()) > _MAX_EXACT_BITS:
        return None
    if p > 0:
        return make_rational(a ** n, b ** n)
    return make_rational(b ** n, a ** n)


ZERO = Integer(0)
ONE = Integer(1)
MINUS_ONE = Integer(-1)
