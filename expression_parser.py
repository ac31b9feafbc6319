"""
Recursive-descent parser: tokens -> expression tree.

    expr    := sum ('=' expr)?
    sum     := term (('+'|'-') term)*
    term    := unary (('*'|'/') unary)*
    unary   := ('-'|'+') unary | power
    power   := postfix ('^' unary)?
    postfix := primary '!'*
    primary := number | ident | ident '(' args ')' | '(' expr ')'
             | '[' expr (',' expr)* ']' | '√' postfix
             | '∫' '(' expr ',' ident (',' expr ',' expr)? ')'
             | (d/dx) postfix | series(...) | lim(...)

Subtraction is kept as `Add` with a `Neg` term and division as a factor
raised to -1, so products and sums stay n-ary from the start.
"""
from contextlib import contextmanager
from typing import List, Optional

from environment import DEFAULT_ENVIRONMENT, Environment
from errors import (
    BAD_INTEGRAL, BAD_LIMIT, BAD_SERIES, EMPTY_INPUT, FUNCTION_MISSING_ARGS,
    MISSING_OPERAND, RAGGED_TENSOR, TOO_DEEP, UNEXPECTED_EOF, UNEXPECTED_TOKEN,
    UNMATCHED_BRACKET, UNMATCHED_PAREN, ExpressionSyntaxError,
)
from exact_arithmetic import MINUS_ONE, from_decimal_string
from expression_tree import (
    Add, Equation, Expression, Func, Limit, Mul, Neg, Number, Pow, Series,
    Tensor, Variable,
)
from tokenizer import (
    COMMA, DERIVATIVE, EOF, EQUALS, IDENT, INTEGRAL, LBRACKET, LPAREN, NUMBER,
    OP, RBRACKET, RPAREN, SQRT, STRING, Token, tokenize,
)

MAX_NESTING = 200

# Function names accepted as the sugared calculus forms.
_INTEGRAL_NAMES = {"int", "integrate"}
_DIFF_NAMES = {"diff", "derivative"}
_LIMIT_NAMES = {"lim", "limit"}


class Parser:
    def __init__(self, tokens: List[Token], environment: Optional[Environment] = None):
        self.tokens = tokens
        self.pos = 0
        self.environment = environment or DEFAULT_ENVIRONMENT
        self._nesting = 0

    # ------------------------------------------------------------------ #
    # Token helpers
    # ------------------------------------------------------------------ #
    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _at(self, kind: str, text: Optional[str] = None) -> bool:
        tok = self.current
        return tok.kind == kind and (text is None or tok.text == text)

    def _advance(self) -> Token:
        tok = self.current
        if tok.kind != EOF:
            self.pos += 1
        return tok

    def _error(self, kind: str, detail: str = "") -> ExpressionSyntaxError:
        tok = self.current
        context = self.tokens[max(0, self.pos - 3):self.pos + 1]
        return ExpressionSyntaxError(kind, detail or tok.text, tok.position, context=context)

    def _expect(self, kind: str, error_kind: str) -> Token:
        if not self._at(kind):
            raise self._error(error_kind)
        return self._advance()

    def _expect_close_paren(self):
        if self._at(RPAREN):
            return self._advance()
        if self._at(EOF) or self._at(RBRACKET):
            raise self._error(UNMATCHED_PAREN, "expected ')'")
        raise self._error(UNEXPECTED_TOKEN)

    @contextmanager
    def _nested(self):
        self._nesting += 1
        if self._nesting > MAX_NESTING:
            raise self._error(TOO_DEEP, f"nesting deeper than {MAX_NESTING}")
        try:
            yield
        finally:
            self._nesting -= 1

    # ------------------------------------------------------------------ #
    # Grammar
    # ------------------------------------------------------------------ #
    def parse(self) -> Expression:
        if self._at(EOF):
            raise self._error(EMPTY_INPUT, "empty expression")
        expr = self.parse_expr()
        if not self._at(EOF):
            if self._at(RPAREN):
                raise self._error(UNMATCHED_PAREN, "unexpected ')'")
            if self._at(RBRACKET):
                raise self._error(UNMATCHED_BRACKET, "unexpected ']'")
            raise self._error(UNEXPECTED_TOKEN)
        return expr

    def parse_expr(self) -> Expression:
        with self._nested():
            left = self.parse_sum()
            if self._at(EQUALS):
                self._advance()
                return Equation(left, self.parse_expr())
            return left

    def parse_sum(self) -> Expression:
        terms = [self.parse_term()]
        while self._at(OP, "+") or self._at(OP, "-"):
            op = self._advance().text
            term = self.parse_term()
            terms.append(term if op == "+" else Neg(term))
        return terms[0] if len(terms) == 1 else Add(tuple(terms))

    def parse_term(self) -> Expression:
        factors = [self.parse_unary()]
        while self._at(OP, "*") or self._at(OP, "/"):
            op = self._advance().text
            factor = self.parse_unary()
            factors.append(factor if op == "*" else Pow(factor, Number(MINUS_ONE)))
        return factors[0] if len(factors) == 1 else Mul(tuple(factors))

    def parse_unary(self) -> Expression:
        with self._nested():
            if self._at(OP, "-"):
                self._advance()
                return Neg(self.parse_unary())
            if self._at(OP, "+"):
                self._advance()
                return self.parse_unary()
            return self.parse_power()

    def parse_power(self) -> Expression:
        base = self.parse_postfix()
        if self._at(OP, "^"):
            self._advance()
            return Pow(base, self.parse_unary())
        return base

    def parse_postfix(self) -> Expression:
        expr = self.parse_primary()
        while self._at(OP, "!"):
            self._advance()
            expr = Func("factorial", (expr,))
        return expr

    def parse_primary(self) -> Expression:
        tok = self.current

        if tok.kind == NUMBER:
            self._advance()
            return Number(from_decimal_string(tok.text))

        if tok.kind == IDENT:
            self._advance()
            if self._at(LPAREN):
                return self._parse_call(tok.text)
            const = self.environment.lookup_constant(tok.text)
            if const is not None:
                return const.as_node()
            return Variable(tok.text)

        if tok.kind == LPAREN:
            self._advance()
            if self._at(RPAREN):
                raise self._error(MISSING_OPERAND, "empty parentheses")
            inner = self.parse_expr()
            self._expect_close_paren()
            return inner

        if tok.kind == LBRACKET:
            return self._parse_tensor()

        if tok.kind == SQRT:
            self._advance()
            with self._nested():
                return Func("sqrt", (self.parse_postfix(),))

        if tok.kind == DERIVATIVE:
            self._advance()
            with self._nested():
                operand = self.parse_postfix()
            return Func("diff", (operand, Variable(tok.text)))

        if tok.kind == INTEGRAL:
            self._advance()
            if not self._at(LPAREN):
                raise self._error(BAD_INTEGRAL, "expected '(' after ∫")
            return self._parse_integral()

        if tok.kind == EOF:
            prev = self.tokens[self.pos - 1] if self.pos else None
            if prev is not None and prev.kind == OP:
                raise self._error(MISSING_OPERAND, f"nothing after '{prev.text}'")
            raise self._error(UNEXPECTED_EOF, "unexpected end of input")

        if tok.kind in (OP, RPAREN, COMMA, EQUALS, RBRACKET):
            raise self._error(MISSING_OPERAND, f"operand expected before '{tok.text}'")

        raise self._error(UNEXPECTED_TOKEN)

    # ------------------------------------------------------------------ #
    # Compound forms
    # ------------------------------------------------------------------ #
    def _parse_args(self) -> List[Expression]:
        self._expect(LPAREN, UNEXPECTED_TOKEN)
        args = []
        if self._at(RPAREN):
            raise self._error(FUNCTION_MISSING_ARGS, "empty argument list")
        with self._nested():
            while True:
                if self._at(STRING):
                    raise self._error(UNEXPECTED_TOKEN, "string literal not allowed here")
                args.append(self.parse_expr())
                if self._at(COMMA):
                    self._advance()
                    continue
                self._expect_close_paren()
                return args

    def _parse_call(self, name: str) -> Expression:
        if name == "series":
            return self._parse_series()
        if name in _LIMIT_NAMES:
            args = self._parse_args()
            if len(args) != 3 or not isinstance(args[1], Variable):
                raise self._error(BAD_LIMIT, "lim(expr, var, point)")
            return Limit(args[0], args[1].name, args[2])
        if name in _INTEGRAL_NAMES:
            return self._parse_integral()
        args = self._parse_args()
        if name in _DIFF_NAMES:
            if len(args) != 2 or not isinstance(args[1], Variable):
                raise self._error(UNEXPECTED_TOKEN, "diff(expr, var)")
            return Func("diff", tuple(args))
        return Func(name, tuple(args))

    def _parse_integral(self) -> Expression:
        args = self._parse_args()
        if len(args) not in (2, 4) or not isinstance(args[1], Variable):
            raise self._error(BAD_INTEGRAL, "∫(expr, var) or ∫(expr, var, lower, upper)")
        return Func("int", tuple(args))

    def _parse_series(self) -> Expression:
        self._expect(LPAREN, BAD_SERIES)
        with self._nested():
            if self._at(STRING):
                head = Variable(self._advance().text)
            else:
                head = self.parse_expr()
            rest = []
            while self._at(COMMA):
                self._advance()
                rest.append(self.parse_expr())
            self._expect_close_paren()
        if len(rest) != 3 or not isinstance(rest[0], Variable):
            raise self._error(BAD_SERIES, "series(func, var, center, order)")
        var, center, order = rest
        if not (isinstance(order, Number) and order.value.is_integer()
                and not order.value.is_negative()):
            raise self._error(BAD_SERIES, "order must be a non-negative integer")
        # a bare function name stands for that function applied to the variable
        if isinstance(head, Variable) and head != var:
            head = Func(head.name, (var,))
        return Series(head, var.name, center, int(order.value))

    def _parse_tensor(self) -> Expression:
        self._advance()
        elements = []
        with self._nested():
            if not self._at(RBRACKET):
                while True:
                    elements.append(self.parse_expr())
                    if self._at(COMMA):
                        self._advance()
                        continue
                    break
            if not self._at(RBRACKET):
                if self._at(EOF) or self._at(RPAREN):
                    raise self._error(UNMATCHED_BRACKET, "expected ']'")
                raise self._error(UNEXPECTED_TOKEN)
            self._advance()
        nested = [isinstance(e, Tensor) for e in elements]
        if any(nested):
            if not all(nested) or len({_shape(e) for e in elements}) != 1:
                raise self._error(RAGGED_TENSOR, "tensor rows differ in shape")
        return Tensor(tuple(elements))


def _shape(t: Expression):
    if not isinstance(t, Tensor):
        return ()
    inner = _shape(t.elements[0]) if t.elements else ()
    return (len(t.elements),) + inner


def parse(text: str, environment: Optional[Environment] = None) -> Expression:
    """Parse `text` and fold trivially-foldable literals (n!, ∫ of a constant)."""
    from simplify_engine import fold_literals

    tree = Parser(tokenize(text), environment).parse()
    return fold_literals(tree)
