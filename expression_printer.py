"""
Canonical pretty-printer.

Output re-parses to the same tree shape: implicit multiplication only after a
numeric coefficient (``2x``, ``3sin(x)``), ``√`` for square roots,
negative powers gathered under a single ``/``, and parentheses only where
precedence demands them.
"""
from exact_arithmetic import ONE, ZERO, ExactNumber
from expression_tree import (
    Add, Constant, Div, Equation, Expression, Func, Limit, Matrix, Mul, Neg,
    Number, Pow, Series, Sub, Tensor, UnevaluatedIntegral, Variable,
)
from priority_rules import PRIORITY, needs_parens, node_precedence

_IMPLICIT_STARTS = ("(", "√", "∫", "[")

# Subtrees nested deeper than this print as an ellipsis.
MAX_DISPLAY_DEPTH = 60
ELISION = "…"


def to_display_string(expr: Expression) -> str:
    return _fmt(expr, 0)


def _fmt(e: Expression, depth: int) -> str:
    if depth > MAX_DISPLAY_DEPTH:
        return ELISION
    d = depth + 1
    if isinstance(e, Number):
        return str(e.value)
    if isinstance(e, (Variable, Constant)):
        return e.name
    if isinstance(e, Add):
        return _fmt_sum(e.terms, d)
    if isinstance(e, Sub):
        right = e.right
        if _is_negative_term(right) or needs_parens(right, '-', right_side=True):
            return f"{_fmt(e.left, d)} - ({_fmt(right, d)})"
        return f"{_fmt(e.left, d)} - {_fmt(right, d)}"
    if isinstance(e, Mul):
        return _fmt_product(e.factors, d)
    if isinstance(e, Div):
        return f"{_operand(e.left, '/', d)}/{_operand(e.right, '/', d, right_side=True)}"
    if isinstance(e, Pow):
        return _fmt_power(e, d)
    if isinstance(e, Neg):
        arg = e.arg
        if isinstance(arg, Neg) or _is_negative_number(arg) or node_precedence(arg) < PRIORITY['*']:
            return f"-({_fmt(arg, d)})"
        return "-" + _fmt(arg, d)
    if isinstance(e, Func):
        return _fmt_func(e, d)
    if isinstance(e, Equation):
        return f"{_fmt(e.left, d)} = {_fmt(e.right, d)}"
    if isinstance(e, Tensor):
        return "[" + ", ".join(_fmt(x, d) for x in e.elements) + "]"
    if isinstance(e, Matrix):
        return "[" + ", ".join("[" + ", ".join(_fmt(x, d) for x in row) + "]" for row in e.rows) + "]"
    if isinstance(e, UnevaluatedIntegral):
        return f"∫({_fmt(e.expr, d)}, {e.var})"
    if isinstance(e, Limit):
        return f"lim({_fmt(e.expr, d)}, {e.var}, {_fmt(e.point, d)})"
    if isinstance(e, Series):
        return f"series({_fmt(e.expr, d)}, {e.var}, {_fmt(e.center, d)}, {e.order})"
    raise TypeError(f"cannot display {type(e).__name__}")


def _operand(child: Expression, op: str, depth: int, *, right_side: bool = False) -> str:
    text = _fmt(child, depth)
    return f"({text})" if needs_parens(child, op, right_side=right_side) else text


def _is_negative_number(e: Expression) -> bool:
    return isinstance(e, Number) and e.value.is_negative()


# ---------------------------------------------------------------------- #
# Sums
# ---------------------------------------------------------------------- #
def _degree(e: Expression, depth: int = 0) -> ExactNumber:
    """Polynomial degree used only to order terms for reading."""
    if depth > MAX_DISPLAY_DEPTH:
        return ZERO
    if isinstance(e, Variable):
        return ONE
    if isinstance(e, Pow) and isinstance(e.exp, Number):
        return _degree(e.base, depth + 1) * e.exp.value
    if isinstance(e, Mul):
        total = ZERO
        for f in e.factors:
            total = total + _degree(f, depth + 1)
        return total
    if isinstance(e, Neg):
        return _degree(e.arg, depth + 1)
    return ZERO


def _is_constant_term(e: Expression) -> bool:
    return isinstance(e, Number) or (isinstance(e, Neg) and isinstance(e.arg, Number))


def _is_negative_term(e: Expression) -> bool:
    if isinstance(e, Neg):
        return True
    if isinstance(e, Number):
        return e.value.is_negative()
    if isinstance(e, Mul):
        coeff, _ = _split_coefficient(e.factors)
        return coeff.is_negative()
    return False


def _negate_for_display(e: Expression) -> Expression:
    if isinstance(e, Neg):
        return e.arg
    if isinstance(e, Number):
        return Number(-e.value)
    coeff, rest = _split_coefficient(e.factors)
    coeff = -coeff
    if coeff.is_one() and rest:
        return rest[0] if len(rest) == 1 else Mul(tuple(rest))
    return Mul((Number(coeff),) + tuple(rest))


def _fmt_sum(terms, depth: int) -> str:
    ordered = sorted(terms, key=lambda t: (_is_constant_term(t), -_degree(t)))
    out = []
    for i, term in enumerate(ordered):
        if i == 0:
            out.append(_fmt(term, depth) if not isinstance(term, Equation) else f"({_fmt(term, depth)})")
            continue
        if _is_negative_term(term):
            positive = _negate_for_display(term)
            text = _fmt(positive, depth)
            if node_precedence(positive) <= PRIORITY['+'] or _is_negative_term(positive):
                text = f"({text})"
            out.append(" - " + text)
        else:
            out.append(" + " + _operand(term, '+', depth, right_side=True))
    return "".join(out)


# ---------------------------------------------------------------------- #
# Products
# ---------------------------------------------------------------------- #
def _split_coefficient(factors):
    """(numeric coefficient, remaining factors); one literal is absorbed, signs always."""
    coeff = ONE
    rest = []
    absorbed = False
    for f in factors:
        while isinstance(f, Neg):
            coeff = -coeff
            f = f.arg
        if isinstance(f, Number) and not absorbed:
            coeff = coeff * f.value
            absorbed = True
            continue
        rest.append(f)
    return coeff, rest


def _display_bucket(f: Expression) -> int:
    base = f.base if isinstance(f, Pow) else f
    if isinstance(f, (Tensor, Matrix)):
        return 3
    if isinstance(base, (Variable, Constant)):
        return 0
    if isinstance(base, Func):
        return 1
    return 2


def _fmt_product(factors, depth: int) -> str:
    coeff, rest = _split_coefficient(factors)
    numer, denom = [], []
    for f in rest:
        if isinstance(f, Pow) and _is_negative_number(f.exp):
            power = -f.exp.value
            denom.append(f.base if power.is_one() else Pow(f.base, Number(power)))
        else:
            numer.append(f)
    numer.sort(key=_display_bucket)

    sign = "-" if coeff.is_negative() else ""
    coeff = abs(coeff)
    c_num, c_den = (coeff, None)
    if coeff.is_exact and not coeff.is_integer():
        num, den = coeff.as_pair()
        c_num, c_den = ONE * num, ONE * den
        denom.insert(0, Number(c_den))

    pieces = []
    if not c_num.is_one() or not numer:
        pieces.append(str(c_num))
    for i, f in enumerate(numer):
        text = _fmt(f, depth)
        if needs_parens(f, '*', right_side=bool(pieces)) or (pieces and _is_negative_number(f)):
            text = f"({text})"
        if pieces and i == 0 and len(pieces) == 1 and pieces[0][0].isdigit() \
                and (text[0].isalpha() or text.startswith(_IMPLICIT_STARTS)):
            pieces[0] += text
        elif pieces:
            pieces.append("*" + text)
        else:
            pieces.append(text)
    numerator = "".join(pieces)

    if not denom:
        return sign + numerator
    if len(denom) == 1:
        den = denom[0]
        den_text = _fmt(den, depth)
        if needs_parens(den, '/', right_side=True) or _is_negative_number(den):
            den_text = f"({den_text})"
    else:
        den_text = "(" + _fmt_product(denom, depth) + ")"
    if len(numer) == 1 and c_num.is_one() and node_precedence(numer[0]) <= PRIORITY['*'] \
            and not numerator.startswith("("):
        numerator = f"({numerator})"
    return f"{sign}{numerator}/{den_text}"


# ---------------------------------------------------------------------- #
# Powers and functions
# ---------------------------------------------------------------------- #
def _is_half(e: Expression) -> bool:
    return isinstance(e, Number) and e.value.is_exact and e.value.as_pair() == (1, 2)


def _fmt_root(arg: Expression, depth: int) -> str:
    text = _fmt(arg, depth)
    if node_precedence(arg) < PRIORITY['!'] or _is_negative_number(arg):
        return f"√({text})"
    return "√" + text


def _fmt_power(e: Pow, depth: int) -> str:
    if _is_half(e.exp):
        return _fmt_root(e.base, depth)
    if _is_negative_number(e.exp):
        return _fmt_product((e,), depth)
    base = _fmt(e.base, depth)
    if needs_parens(e.base, '^') or _is_negative_number(e.base):
        base = f"({base})"
    exp = _fmt(e.exp, depth)
    if needs_parens(e.exp, '^', right_side=True) or _is_negative_number(e.exp):
        exp = f"({exp})"
    return f"{base}^{exp}"


def _fmt_func(e: Func, depth: int) -> str:
    if e.name == "sqrt" and len(e.args) == 1:
        return _fmt_root(e.args[0], depth)
    if e.name == "factorial" and len(e.args) == 1:
        arg = e.args[0]
        text = _fmt(arg, depth)
        if node_precedence(arg) < PRIORITY['!'] or _is_negative_number(arg):
            text = f"({text})"
        return text + "!"
    if e.name == "int":
        return "∫(" + ", ".join(_fmt(a, depth) for a in e.args) + ")"
    if e.name == "diff" and len(e.args) == 2 and isinstance(e.args[1], Variable):
        return f"(d/d{e.args[1].name})({_fmt(e.args[0], depth)})"
    return e.name + "(" + ", ".join(_fmt(a, depth) for a in e.args) + ")"
