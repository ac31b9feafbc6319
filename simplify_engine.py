"""
Term-rewriting simplifier.

One *pass* walks the tree innermost-first; at every node the local rules are
re-applied until the node stops changing (bounded by MAX_INNER_PASSES).
Passes repeat until a whole pass changes nothing (bounded by
MAX_OUTER_PASSES).  Subtrees deeper than MAX_DEPTH are left as they are.

Canonical shape at the fixed point:

    * no Sub, Div or Neg nodes (they become Add, Mul and x^-1 forms);
    * Add / Mul flattened, at most one Number (first), the rest ordered by
      their serialization string, tensors last in their original order;
    * like terms collected, equal bases combined into one power;
    * sqrt(u) -> u^(1/2), e^u -> exp(u), factorial(u) -> gamma(u + 1);
    * with `expand` on, products are distributed and (a+b)^n, n <= 5, expanded.
"""
from math import comb, factorial
from typing import List, Optional, Tuple

import tensor_engine
from abc_engines import MathEngine
from errors import CASError
from exact_arithmetic import MINUS_ONE, ONE, ZERO, ExactNumber, exact_power, make_rational
from expression_tree import (
    MAX_TREE_DEPTH, Add, Div, Equation, Expression, Func, Mul, Neg, Number, Pow,
    Sub, Variable, depends_on, is_tensor, map_children, serialize, sort_key,
)
from expression_tree import depth as tree_depth

MAX_OUTER_PASSES = 20
MAX_INNER_PASSES = 50
MAX_DEPTH = 50
MAX_BINOMIAL = 5
MAX_LITERAL_FACTORIAL = 1000

HALF = make_rational(1, 2)
EULER = Variable("e")
PI = Variable("pi")

_ODD = {"sin", "tan", "sinh", "tanh", "asin", "atan", "asinh", "atanh", "arcsin", "arctan"}
_EVEN = {"cos", "cosh"}
_ZERO_AT_ZERO = _ODD
_ONE_AT_ZERO = {"cos", "cosh"}
_LOGS = {"ln", "log"}


def _num(value) -> Number:
    return Number(value)


def _is_num(e: Expression, value=None) -> bool:
    if not isinstance(e, Number):
        return False
    return value is None or e.value == value


def _is_int_num(e: Expression) -> bool:
    return isinstance(e, Number) and e.value.is_exact and e.value.is_integer()


def _flatten(items, kind) -> List[Expression]:
    out = []
    for item in items:
        if isinstance(item, kind):
            out.extend(item.terms if kind is Add else item.factors)
        else:
            out.append(item)
    return out


def split_coefficient(e: Expression) -> Tuple[ExactNumber, Optional[Expression]]:
    """(numeric coefficient, non-numeric remainder or None for a pure number)."""
    if isinstance(e, Number):
        return e.value, None
    if isinstance(e, Mul):
        coeff = ONE
        rest = []
        for f in e.factors:
            if isinstance(f, Number):
                coeff = coeff * f.value
            else:
                rest.append(f)
        if not rest:
            return coeff, None
        return coeff, rest[0] if len(rest) == 1 else Mul(tuple(rest))
    return ONE, e


def _square_of(e: Expression, names) -> Optional[Tuple[str, Expression]]:
    """(name, u) when e is name(u)^2 for a name in `names`."""
    if isinstance(e, Pow) and _is_num(e.exp, 2) and isinstance(e.base, Func) \
            and e.base.name in names and len(e.base.args) == 1:
        return e.base.name, e.base.args[0]
    return None


class SimplifyEngine(MathEngine):
    """Rewrites an expression to its canonical fixed point."""

    def __init__(self, environment=None, *, expand: bool = True):
        super().__init__(environment)
        self.expand = expand
        self.passes = 0
        self.converged = False

    def compute(self, expr):
        return self.simplify(expr)

    # ------------------------------------------------------------------ #
    # Driver
    # ------------------------------------------------------------------ #
    def simplify(self, expr: Expression) -> Expression:
        self._add_traceback('simplify_start', f'expand={self.expand}')
        nesting = tree_depth(expr)
        if nesting > MAX_TREE_DEPTH:
            self._add_traceback('simplify_cap', f'nesting {nesting} exceeds {MAX_TREE_DEPTH}, left as is')
            return expr
        current = expr
        self.converged = False
        self.passes = 0
        for n in range(1, MAX_OUTER_PASSES + 1):
            nxt = self._pass(current, 0)
            self.passes = n
            if nxt == current:
                self.converged = True
                break
            self._add_traceback('simplify_pass', f'pass {n} changed the tree')
            current = nxt
        if not self.converged:
            self._add_traceback('simplify_cap', f'no fixed point after {MAX_OUTER_PASSES} passes')
        self._add_traceback('simplify_done', f'{self.passes} pass(es), converged={self.converged}')
        return current

    def _pass(self, e: Expression, depth: int) -> Expression:
        if depth > MAX_DEPTH:
            return e
        e = map_children(e, lambda k: self._pass(k, depth + 1))
        return self._settle(e, depth)

    def _settle(self, e: Expression, depth: int) -> Expression:
        """Apply the root rules to `e` until it stops changing."""
        if depth > MAX_DEPTH:
            return e
        for _ in range(MAX_INNER_PASSES):
            new = self._rewrite(e, depth)
            if new is e or new == e:
                return e
            e = new
        return e

    def _rewrite(self, e: Expression, depth: int) -> Expression:
        d = depth + 1
        if isinstance(e, Sub):
            return Add((e.left, self._settle(Mul((_num(MINUS_ONE), e.right)), d)))
        if isinstance(e, Div):
            return Mul((e.left, self._settle(Pow(e.right, _num(MINUS_ONE)), d)))
        if isinstance(e, Neg):
            if isinstance(e.arg, Number):
                return _num(-e.arg.value)
            return Mul((_num(MINUS_ONE), e.arg))
        if isinstance(e, Add):
            return self._rewrite_add(e, depth)
        if isinstance(e, Mul):
            return self._rewrite_mul(e, depth)
        if isinstance(e, Pow):
            return self._rewrite_pow(e, depth)
        if isinstance(e, Func):
            return self._rewrite_func(e, depth)
        if isinstance(e, Equation):
            if _is_num(e.right, 0):
                return e
            moved = self._settle(Mul((_num(MINUS_ONE), e.right)), d)
            return Equation(self._settle(Add((e.left, moved)), d), _num(0))
        return e

    # ------------------------------------------------------------------ #
    # Sums
    # ------------------------------------------------------------------ #
    def _rewrite_add(self, e: Add, depth: int) -> Expression:
        terms = self._add_tensors(_flatten(e.terms, Add))

        constant = ZERO
        groups = {}
        for term in terms:
            coeff, base = split_coefficient(term)
            if base is None:
                constant = constant + coeff
                continue
            key = serialize(base)
            if key in groups:
                groups[key][0] = groups[key][0] + coeff
            else:
                groups[key] = [coeff, base]

        collected = []
        for coeff, base in groups.values():
            if coeff.is_zero():
                continue
            collected.append(base if coeff.is_one() else self._scaled(coeff, base))

        collected = self._trig_squares(collected, depth)
        if not constant.is_zero():
            collected.append(_num(constant))
        return self._build_add(collected)

    def _add_tensors(self, terms: List[Expression]) -> List[Expression]:
        out = []
        for term in terms:
            if is_tensor(term):
                for i, prev in enumerate(out):
                    if is_tensor(prev):
                        summed = tensor_engine.add_tensors(prev, term)
                        if summed is not None:
                            out[i] = summed
                            break
                else:
                    out.append(term)
            else:
                out.append(term)
        return out

    def _trig_squares(self, terms: List[Expression], depth: int) -> List[Expression]:
        """a·sin²u + a·cos²u -> a,  a·cos²u - a·sin²u -> a·cos(2u),  a·cosh²u - a·sinh²u -> a."""
        seen = {}
        for i, term in enumerate(terms):
            coeff, base = split_coefficient(term)
            sq = _square_of(base, ("sin", "cos", "sinh", "cosh")) if base is not None else None
            if sq is not None:
                seen[(sq[0], serialize(sq[1]))] = (i, coeff, sq[1])

        for (name, key), (i, c_sin, u) in seen.items():
            partner = {"sin": "cos", "sinh": "cosh"}.get(name)
            if partner is None or (partner, key) not in seen:
                continue
            j, c_cos, _ = seen[(partner, key)]
            rest = [t for k, t in enumerate(terms) if k not in (i, j)]
            if name == "sin" and c_sin == c_cos:
                return rest + [_num(c_sin)]
            if name == "sin" and c_sin == -c_cos:
                double = Func("cos", (self._settle(Mul((_num(2), u)), depth + 1),))
                return rest + [self._scaled(c_cos, double)]
            if name == "sinh" and c_sin == -c_cos:
                return rest + [_num(c_cos)]
        return terms

    def _scaled(self, coeff: ExactNumber, base: Expression) -> Expression:
        factors = list(base.factors) if isinstance(base, Mul) else [base]
        return self._build_mul(coeff, factors)

    @staticmethod
    def _build_add(terms: List[Expression]) -> Expression:
        if not terms:
            return _num(0)
        if len(terms) == 1:
            return terms[0]
        return Add(tuple(sorted(terms, key=sort_key)))

    # ------------------------------------------------------------------ #
    # Products
    # ------------------------------------------------------------------ #
    def _rewrite_mul(self, e: Mul, depth: int) -> Expression:
        coeff = ONE
        others = []
        for f in _flatten(e.factors, Mul):
            if isinstance(f, Number):
                coeff = coeff * f.value
            else:
                others.append(f)

        if any(is_tensor(f) for f in others):
            return self._tensor_product(coeff, others)
        if coeff.is_zero():
            return _num(coeff)

        others = self._combine_powers(others, depth)
        others = self._combine_exp(others, depth)
        coeff, others = self._double_angle(coeff, others, depth)

        # combination may leave literal numbers behind (x * x^-1 -> 1)
        folded = []
        for f in others:
            if isinstance(f, Number):
                coeff = coeff * f.value
            else:
                folded.append(f)
        others = folded
        if coeff.is_zero():
            return _num(coeff)

        adds = [f for f in others if isinstance(f, Add)]
        if adds and (self.expand or (len(others) == 1 and not coeff.is_one())):
            return self._distribute(coeff, others, adds[0], depth)
        return self._build_mul(coeff, others)

    def _combine_powers(self, factors: List[Expression], depth: int) -> List[Expression]:
        groups = {}
        for f in factors:
            base, exp = (f.base, f.exp) if isinstance(f, Pow) else (f, _num(1))
            key = serialize(base)
            if key in groups:
                groups[key][1].append(exp)
                groups[key][2].append(f)
            else:
                groups[key] = [base, [exp], [f]]
        out = []
        for base, exps, originals in groups.values():
            if len(originals) == 1:
                out.append(originals[0])
                continue
            exp = self._settle(Add(tuple(exps)), depth + 1)
            out.append(self._settle(Pow(base, exp), depth + 1))
        return out

    def _combine_exp(self, factors: List[Expression], depth: int) -> List[Expression]:
        exps = [f for f in factors if isinstance(f, Func) and f.name == "exp" and len(f.args) == 1]
        if len(exps) < 2:
            return factors
        rest = [f for f in factors if not (isinstance(f, Func) and f.name == "exp" and len(f.args) == 1)]
        total = self._settle(Add(tuple(f.args[0] for f in exps)), depth + 1)
        return rest + [self._settle(Func("exp", (total,)), depth + 1)]

    def _double_angle(self, coeff: ExactNumber, factors: List[Expression], depth: int):
        """sin(u)·cos(u) -> sin(2u)/2."""
        for i, f in enumerate(factors):
            if isinstance(f, Func) and f.name == "sin" and len(f.args) == 1:
                for j, g in enumerate(factors):
                    if isinstance(g, Func) and g.name == "cos" and g.args == f.args:
                        rest = [h for k, h in enumerate(factors) if k not in (i, j)]
                        double = self._settle(Mul((_num(2), f.args[0])), depth + 1)
                        return coeff * HALF, rest + [self._settle(Func("sin", (double,)), depth + 1)]
        return coeff, factors

    def _distribute(self, coeff, factors, target: Add, depth: int) -> Expression:
        index = factors.index(target)
        rest = factors[:index] + factors[index + 1:]
        terms = []
        for term in target.terms:
            terms.append(self._settle(self._build_mul(coeff, rest + [term]), depth + 1))
        return Add(tuple(terms))

    def _tensor_product(self, coeff: ExactNumber, factors: List[Expression]) -> Expression:
        scalars = [f for f in factors if not is_tensor(f)]
        reduced = []
        for t in (f for f in factors if is_tensor(f)):
            if reduced:
                prod = tensor_engine.product(reduced[-1], t)
                if prod is not None:
                    if is_tensor(prod):
                        reduced[-1] = prod
                    else:
                        reduced.pop()
                        scalars.append(prod)
                    continue
            reduced.append(t)
        if not reduced:
            return self._build_mul(coeff, scalars)
        if len(reduced) == 1 and (scalars or not coeff.is_one()):
            return tensor_engine.scale(reduced[0], self._build_mul(coeff, scalars))
        head = [] if coeff.is_one() else [_num(coeff)]
        return Mul(tuple(head + sorted(scalars, key=sort_key) + reduced))

    @staticmethod
    def _build_mul(coeff: ExactNumber, factors: List[Expression]) -> Expression:
        if coeff.is_zero() and not any(is_tensor(f) for f in factors):
            return _num(coeff)
        ordered = sorted(factors, key=sort_key)
        if not coeff.is_one() or not ordered:
            ordered.insert(0, _num(coeff))
        if len(ordered) == 1:
            return ordered[0]
        return Mul(tuple(ordered))

    # ------------------------------------------------------------------ #
    # Powers
    # ------------------------------------------------------------------ #
    def _rewrite_pow(self, e: Pow, depth: int) -> Expression:
        base, exp = e.base, e.exp
        d = depth + 1
        if base == EULER:
            return Func("exp", (exp,))
        if isinstance(exp, Number):
            if exp.value.is_zero():
                return _num(1)          # includes 0^0
            if exp.value.is_one():
                return base

        if isinstance(base, Number):
            b = base.value
            if b.is_one():
                return _num(1)
            if b.is_zero() and not (isinstance(exp, Number) and exp.value.is_negative()):
                return _num(0)
            if isinstance(exp, Number):
                try:
                    folded = exact_power(b, exp.value) if (b.is_exact and exp.value.is_exact) \
                        else b ** exp.value
                except CASError:
                    folded = None
                if folded is not None:
                    return _num(folded)
            return e

        if isinstance(base, Pow):
            integral_outer = _is_int_num(exp)
            fractional_inner = isinstance(base.exp, Number) and isinstance(exp, Number) \
                and not base.exp.value.is_integer()
            if integral_outer or fractional_inner:
                return Pow(base.base, self._settle(Mul((base.exp, exp)), d))

        if isinstance(base, Mul) and _is_int_num(exp) and not any(is_tensor(f) for f in base.factors):
            return Mul(tuple(self._settle(Pow(f, exp), d) for f in base.factors))

        if isinstance(base, Func) and len(base.args) == 1:
            if base.name == "exp":
                return Func("exp", (self._settle(Mul((exp, base.args[0])), d),))
            if base.name == "abs" and _is_int_num(exp) and exp.value.as_pair()[0] % 2 == 0:
                return Pow(base.args[0], exp)

        if isinstance(base, Add) and self.expand and _is_int_num(exp) \
                and 2 <= int(exp.value) <= MAX_BINOMIAL:
            return self._binomial(base, int(exp.value), depth)
        return e

    def _binomial(self, base: Add, n: int, depth: int) -> Expression:
        d = depth + 1
        first = base.terms[0]
        rest = base.terms[1:]
        second = rest[0] if len(rest) == 1 else Add(tuple(rest))
        terms = []
        for k in range(n + 1):
            parts = (
                _num(comb(n, k)),
                self._settle(Pow(first, _num(n - k)), d),
                self._settle(Pow(second, _num(k)), d),
            )
            terms.append(self._settle(Mul(parts), d))
        return Add(tuple(terms))

    # ------------------------------------------------------------------ #
    # Functions
    # ------------------------------------------------------------------ #
    def _rewrite_func(self, e: Func, depth: int) -> Expression:
        if len(e.args) != 1:
            return e
        name, u = e.name, e.args[0]
        d = depth + 1

        if name == "sqrt":
            return Pow(u, _num(HALF))
        if name == "log10":
            return Func("log", (u,))
        if name == "factorial":
            literal = _literal_factorial(u)
            if literal is not None:
                return literal
            if isinstance(u, Number) and u.value.is_integer():
                return e        # negative integer: pole, leave as written
            return Func("gamma", (self._settle(Add((u, _num(1))), d),))
        if name == "gamma" and _is_int_num(u) and 0 < int(u.value) <= MAX_LITERAL_FACTORIAL + 1:
            return _num(factorial(int(u.value) - 1))

        if name == "exp":
            return self._rewrite_exp(u, e, d)
        if name in _LOGS:
            return self._rewrite_log(name, u, e, d)

        if name == "abs":
            if isinstance(u, Number):
                return _num(abs(u.value))
            if isinstance(u, Func) and u.name in ("abs", "exp"):
                return u
            positive = self._negated(u, d)
            if positive is not None:
                return Func("abs", (positive,))
            return e

        if _is_num(u, 0):
            if name in _ZERO_AT_ZERO:
                return _num(0)
            if name in _ONE_AT_ZERO:
                return _num(1)
        if u == PI:
            if name in ("sin", "tan"):
                return _num(0)
            if name == "cos":
                return _num(-1)
        if name in _ODD or name in _EVEN:
            positive = self._negated(u, d)
            if positive is not None:
                flipped = Func(name, (positive,))
                return flipped if name in _EVEN else Mul((_num(MINUS_ONE), flipped))
        return e

    def _rewrite_exp(self, u: Expression, e: Func, d: int) -> Expression:
        if _is_num(u, 0):
            return _num(1)
        if isinstance(u, Func) and u.name == "ln" and len(u.args) == 1:
            return u.args[0]
        if isinstance(u, Mul):
            logs = [f for f in u.factors if isinstance(f, Func) and f.name == "ln"]
            if len(logs) == 1 and all(isinstance(f, Number) or f is logs[0] for f in u.factors):
                coeff, _ = split_coefficient(u)
                return self._settle(Pow(logs[0].args[0], _num(coeff)), d)
        return e

    def _rewrite_log(self, name: str, u: Expression, e: Func, d: int) -> Expression:
        if _is_num(u, 1):
            return _num(0)
        if name == "ln":
            if u == EULER:
                return _num(1)
            if isinstance(u, Func) and u.name == "exp" and len(u.args) == 1:
                return u.args[0]
        if name == "log" and _is_num(u, 10):
            return _num(1)
        if isinstance(u, Pow) and not isinstance(u.base, Number):
            return self._settle(Mul((u.exp, Func(name, (u.base,)))), d)
        if isinstance(u, Mul) and not any(isinstance(f, Number) and f.value.is_negative()
                                          for f in u.factors) \
                and not any(is_tensor(f) for f in u.factors):
            return Add(tuple(self._settle(Func(name, (f,)), d) for f in u.factors))
        return e

    def _negated(self, u: Expression, d: int) -> Optional[Expression]:
        """-u when u carries a negative numeric coefficient, else None."""
        if isinstance(u, Number):
            return _num(-u.value) if u.value.is_negative() else None
        coeff, base = split_coefficient(u)
        if base is None or not coeff.is_negative():
            return None
        return self._settle(self._scaled(-coeff, base), d)


def _literal_factorial(u: Expression) -> Optional[Number]:
    if _is_int_num(u) and 0 <= int(u.value) <= MAX_LITERAL_FACTORIAL:
        return _num(factorial(int(u.value)))
    return None


# ---------------------------------------------------------------------- #
# Module-level operations
# ---------------------------------------------------------------------- #
def simplify(expr: Expression, *, expand: bool = True, environment=None) -> Expression:
    return SimplifyEngine(environment, expand=expand).simplify(expr)


def simplify_with_stats(expr: Expression, *, expand: bool = True, environment=None):
    """(result, passes used, whether a fixed point was reached)."""
    engine = SimplifyEngine(environment, expand=expand)
    result = engine.simplify(expr)
    return result, engine.passes, engine.converged


def canonicalize(expr: Expression, _depth: int = 0) -> Expression:
    """Flatten nested sums/products and sort their arguments; no identities applied."""
    if _depth > MAX_TREE_DEPTH:
        return expr
    e = map_children(expr, lambda k: canonicalize(k, _depth + 1))
    if isinstance(e, Add):
        return Add(tuple(sorted(_flatten(e.terms, Add), key=sort_key)))
    if isinstance(e, Mul):
        return Mul(tuple(sorted(_flatten(e.factors, Mul), key=sort_key)))
    return e


def fold_literals(expr: Expression, _depth: int = 0) -> Expression:
    """Single-step folder run on fresh parse trees: n! of a literal, ∫ of a constant."""
    if _depth > MAX_TREE_DEPTH:
        return expr
    e = map_children(expr, lambda k: fold_literals(k, _depth + 1))
    if isinstance(e, Func) and e.name == "factorial" and len(e.args) == 1:
        literal = _literal_factorial(e.args[0])
        if literal is not None:
            return literal
    if isinstance(e, Func) and e.name == "int" and isinstance(e.args[1], Variable) \
            and not depends_on(e.args[0], e.args[1].name):
        integrand, var = e.args[0], e.args[1]
        if len(e.args) == 2:
            return Mul((integrand, var))
        lower, upper = e.args[2], e.args[3]
        return Mul((integrand, Add((upper, Neg(lower)))))
    return e
