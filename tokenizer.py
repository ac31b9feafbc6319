"""
Unicode-aware tokenizer for expression text.

Besides plain lexing it inserts the synthetic tokens the grammar relies on:
an implicit ``*`` between a number or ``)`` and a following identifier,
``(``, ``[``, ``∫`` or ``√``; and a ``,`` between adjacent ``][`` tensor
brackets, with one enclosing bracket added when the run is not already
inside one.
"""
import re
from dataclasses import dataclass
from typing import List

from errors import (
    ExpressionSyntaxError, INVALID_CHARACTER, INVALID_NUMBER, UNTERMINATED_STRING,
)

NUMBER = "NUMBER"
IDENT = "IDENT"
STRING = "STRING"
OP = "OP"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
COMMA = "COMMA"
EQUALS = "EQUALS"
INTEGRAL = "INTEGRAL"
SQRT = "SQRT"
DERIVATIVE = "DERIVATIVE"
EOF = "EOF"

_OPERATORS = {
    "+": "+", "-": "-", "*": "*", "/": "/", "^": "^", "!": "!",
    "−": "-",   # minus sign
    "×": "*",   # multiplication sign
    "·": "*",   # middle dot
    "⋅": "*",   # dot operator
    "÷": "/",   # division sign
}
_SINGLE = {
    "(": LPAREN, ")": RPAREN, "[": LBRACKET, "]": RBRACKET,
    ",": COMMA, "=": EQUALS, "∫": INTEGRAL, "√": SQRT,
}
_IDENT_ALIASES = {"π": "pi"}

# (d/dx)  and  (d)/(dx)
_DERIVATIVE_RE = re.compile(
    r"\(\s*d\s*/\s*d(?P<a>[^\W\d]\w*)\s*\)"
    r"|\(\s*d\s*\)\s*/\s*\(\s*d(?P<b>[^\W\d]\w*)\s*\)"
)

_IMPLICIT_LEFT = {NUMBER, RPAREN}
_IMPLICIT_RIGHT = {IDENT, LPAREN, LBRACKET, INTEGRAL, SQRT, DERIVATIVE}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int

    def __repr__(self):
        return f"{self.kind}({self.text!r})"


def _is_ident_start(ch: str) -> bool:
    return (ch.isalpha() or ch == "_" or ord(ch) > 127) \
        and ch not in _OPERATORS and ch not in _SINGLE


def _is_ident_part(ch: str) -> bool:
    return _is_ident_start(ch) or ch.isdigit()


def tokenize(text: str) -> List[Token]:
    """Split `text` into tokens, ending with a single EOF token."""
    tokens: List[Token] = []

    def push(tok: Token):
        if tokens:
            prev = tokens[-1]
            if prev.kind in _IMPLICIT_LEFT and tok.kind in _IMPLICIT_RIGHT:
                tokens.append(Token(OP, "*", tok.position))
        tokens.append(tok)

    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue

        if ch == "(":
            m = _DERIVATIVE_RE.match(text, i)
            if m:
                push(Token(DERIVATIVE, m.group("a") or m.group("b"), i))
                i = m.end()
                continue

        if ch.isdigit() or (ch == "." and i + 1 < n and text[i + 1].isdigit()):
            j = i
            while j < n and (text[j].isdigit() or text[j] == "."):
                j += 1
            literal = text[i:j]
            if literal.count(".") > 1 or literal.endswith("."):
                raise ExpressionSyntaxError(INVALID_NUMBER, literal, i, context=tokens[-3:])
            push(Token(NUMBER, literal, i))
            i = j
            continue

        if _is_ident_start(ch):
            j = i + 1
            while j < n and _is_ident_part(text[j]):
                j += 1
            # prime marks belong to the name: f'(x), f''(x)
            while j < n and text[j] == "'":
                j += 1
            name = text[i:j]
            push(Token(IDENT, _IDENT_ALIASES.get(name, name), i))
            i = j
            continue

        if ch == '"':
            j = text.find('"', i + 1)
            if j < 0:
                raise ExpressionSyntaxError(UNTERMINATED_STRING, text[i:], i, context=tokens[-3:])
            push(Token(STRING, text[i + 1:j], i))
            i = j + 1
            continue

        if ch == "*" and i + 1 < n and text[i + 1] == "*":
            push(Token(OP, "^", i))
            i += 2
            continue

        if ch in _OPERATORS:
            push(Token(OP, _OPERATORS[ch], i))
            i += 1
            continue

        if ch in _SINGLE:
            push(Token(_SINGLE[ch], ch, i))
            i += 1
            continue

        raise ExpressionSyntaxError(INVALID_CHARACTER, repr(ch), i, context=tokens[-3:])

    tokens.append(Token(EOF, "", n))
    return _join_adjacent_tensors(tokens)


def _join_adjacent_tensors(tokens: List[Token]) -> List[Token]:
    """
    Read ``][`` as a row break.  Directly inside a bracket it becomes a comma;
    anywhere else the juxtaposed run is also wrapped in one more bracket, so
    ``[1,2][3,4]`` tokenizes as ``[[1,2],[3,4]]``.
    """
    out: List[Token] = []
    # per open delimiter: [kind, index of its token, start of the last closed [...] inside, run wrapped]
    levels = [[None, -1, -1, False]]
    for tok in tokens:
        level = levels[-1]
        adjacent = tok.kind == LBRACKET and bool(out) and out[-1].kind == RBRACKET
        if level[3] and not adjacent:
            out.append(Token(RBRACKET, "]", tok.position))
            level[3] = False
        if adjacent:
            if level[0] != LBRACKET and not level[3] and level[2] >= 0:
                out.insert(level[2], Token(LBRACKET, "[", out[level[2]].position))
                level[3] = True
            out.append(Token(COMMA, ",", tok.position))
        if tok.kind in (LPAREN, LBRACKET):
            levels.append([tok.kind, len(out), -1, False])
        elif tok.kind in (RPAREN, RBRACKET):
            closed = levels.pop() if len(levels) > 1 else None
            if tok.kind == RBRACKET:
                levels[-1][2] = closed[1] if closed else -1
        out.append(tok)
    return out
