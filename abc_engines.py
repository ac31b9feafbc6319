from abc import ABC, abstractmethod
from typing import List, Optional

from mpmath import mp

from environment import DEFAULT_ENVIRONMENT, Environment
from errors import DOMAIN, EvaluationError
from exact_arithmetic import ExactNumber, Float
from utils.precision_manager import get_dps
from utils.trace_helpers import add_traceback

mp.dps = get_dps()


class MathEngine(ABC):
    """Abstract base class for all symbolic engines. Owns the trace log and the call-time environment."""

    def __init__(self, environment: Optional[Environment] = None):
        self.environment = environment or DEFAULT_ENVIRONMENT
        self.traceback_info: List[dict] = []

    @abstractmethod
    def compute(self, expr):
        """Run the engine's main operation on `expr`."""
        pass

    def _add_traceback(self, step, info, with_stack=False):
        add_traceback(self, step, info, with_stack=with_stack)

    @staticmethod
    def _normalise_small(x, *, eps=None):
        eps = eps or mp.mpf(10) ** (-mp.dps + 2)  # ~100 ulps
        return mp.mpf(0) if mp.fabs(x) < eps else x

    @staticmethod
    def _real_number(value, what: str = "") -> ExactNumber:
        """Wrap an mpmath result as a Float; complex, infinite or NaN results are domain errors."""
        if isinstance(value, mp.mpc):
            if value.imag != 0:
                raise EvaluationError(DOMAIN, f"{what} is not real")
            value = value.real
        if mp.isinf(value) or mp.isnan(value):
            raise EvaluationError(DOMAIN, f"{what} is undefined")
        return Float(MathEngine._normalise_small(value))
