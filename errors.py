"""
Structured errors for the symbolic core.

Every error carries a stable machine-readable `kind` key such as
``parse(unmatched_paren)``.  Human text is looked up through an injected
message provider; with no provider (or an unknown key) the bare key is used.
"""
from typing import Callable, Optional

MessageProvider = Callable[[str], Optional[str]]

# parse(...)
UNMATCHED_PAREN = "parse(unmatched_paren)"
UNMATCHED_BRACKET = "parse(unmatched_bracket)"
MISSING_OPERAND = "parse(missing_operand)"
INVALID_NUMBER = "parse(invalid_number)"
UNTERMINATED_STRING = "parse(unterminated_string)"
INVALID_CHARACTER = "parse(invalid_character)"
UNEXPECTED_TOKEN = "parse(unexpected_token)"
UNEXPECTED_EOF = "parse(unexpected_eof)"
FUNCTION_MISSING_ARGS = "parse(function_missing_args)"
RAGGED_TENSOR = "parse(ragged_tensor)"
BAD_INTEGRAL = "parse(integral)"
BAD_SERIES = "parse(series)"
BAD_LIMIT = "parse(limit)"
TOO_DEEP = "parse(too_deep)"
EMPTY_INPUT = "parse(empty)"

# eval(...)
UNBOUND_VARIABLE = "eval(unbound_variable)"
UNKNOWN_FUNCTION = "eval(unknown_function)"
NON_NUMERIC = "eval(non_numeric)"
DOMAIN = "eval(domain)"
DIVIDE_BY_ZERO = "eval(divide_by_zero)"

# engines
DIFF_UNIMPLEMENTED = "diff(unimplemented_node)"
SERIES_UNIMPLEMENTED = "series(unimplemented_node)"
INTERNAL_INVARIANT = "internal(invariant)"


class CASError(Exception):
    """Base class for every error raised by the core."""

    default_kind = "cas(error)"

    def __init__(self, kind: Optional[str] = None, detail: str = "", context=None):
        self.kind = kind or self.default_kind
        self.detail = detail
        self.context = context
        super().__init__(f"{self.kind}: {detail}" if detail else self.kind)

    def message(self, provider: Optional[MessageProvider] = None) -> str:
        """Resolve the human-readable message, falling back to the bare key."""
        text = provider(self.kind) if provider is not None else None
        if not text:
            return self.kind
        return f"{text} ({self.detail})" if self.detail else text


class ExpressionSyntaxError(CASError):
    """Malformed input text.  `position` is the code-point offset of the failure."""

    default_kind = UNEXPECTED_TOKEN

    def __init__(self, kind: str, detail: str = "", position: int = -1, context=None):
        self.position = position
        super().__init__(kind, detail, context)


class EvaluationError(CASError):
    default_kind = UNBOUND_VARIABLE


class DivisionByZero(EvaluationError, ZeroDivisionError):
    default_kind = DIVIDE_BY_ZERO

    def __init__(self, detail: str = "division by exact zero", context=None):
        super().__init__(DIVIDE_BY_ZERO, detail, context)


class UnimplementedNode(CASError):
    default_kind = DIFF_UNIMPLEMENTED


class InternalInvariantViolation(CASError):
    """A helper produced or received a node of the wrong shape.  Always a bug."""

    default_kind = INTERNAL_INVARIANT

    def __init__(self, detail: str = "", context=None):
        super().__init__(INTERNAL_INVARIANT, detail, context)
