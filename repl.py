#!/usr/bin/env python3
"""
Interactive REPL for the symbolic calculator.

    cas> simplify 2x + 3x
    5x
    cas> diff sin(x^2), x
    2x*cos(x^2)
    cas> int x*exp(x), x
    cas> series sin, x, 0, 5
    cas> eval sin(pi/6) + 1

Type 'trace' to toggle the trace tail, 'precision N' to change the numeric
precision and 'quit' to exit.  Each line is handled by `handle_line`, which
returns the text to print, so the command set can be driven without a tty.
"""
import os
import sys
from dataclasses import dataclass, field
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from calculus_engine import CalculusEngine
from environment import DEFAULT_ENVIRONMENT, Environment
from errors import CASError
from expression_parser import parse
from expression_printer import to_display_string
from expression_tree import Variable
from numeric_evaluator import NumericEvaluator
from utils.precision_manager import get_dps, presets, set_dps
from utils.trace_helpers import format_traceback

PROMPT = "cas> "
_COMMANDS = ("simplify", "diff", "int", "series", "eval")


@dataclass
class ReplState:
    environment: Environment = DEFAULT_ENVIRONMENT
    show_trace: bool = False
    engine: CalculusEngine = None
    done: bool = False
    history: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.engine is None:
            self.engine = CalculusEngine(self.environment)


def _split_args(text: str) -> List[str]:
    """Split on top-level commas only."""
    parts, depth, start = [], 0, 0
    for i, ch in enumerate(text):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
    parts.append(text[start:].strip())
    return parts


def _variable(state: ReplState, text: str) -> str:
    node = parse(text, state.environment)
    if not isinstance(node, Variable):
        raise ValueError(f"expected a variable name, got {text!r}")
    return node.name


def _precision(parts: List[str]) -> str:
    if len(parts) == 1:
        return f"Current precision: {get_dps()} dps"
    if len(parts) == 2:
        try:
            set_dps(int(parts[1]))
        except ValueError as e:
            return f"Error: {e}"
        return f"Precision set to {get_dps()} dps"
    return "Usage: precision [N] with N one of " + str(presets())


def _run(state: ReplState, command: str, rest: str) -> str:
    engine = state.engine
    if command not in _COMMANDS:
        return engine.compute((command + " " + rest).strip())
    if command == "simplify":
        return engine.compute(rest)
    if command == "diff":
        args = _split_args(rest)
        if len(args) != 2:
            return "Usage: diff <expr>, <var>"
        result = engine.differentiate(parse(args[0], state.environment), _variable(state, args[1]))
        text = to_display_string(result)
        if state.show_trace:
            return "\n".join(engine.last_steps[:-1] + [text])
        return text
    if command == "int":
        args = _split_args(rest)
        if len(args) != 2:
            return "Usage: int <expr>, <var>"
        result = engine.integrate(parse(args[0], state.environment), _variable(state, args[1]))
        return to_display_string(result)
    if command == "series":
        args = _split_args(rest)
        if len(args) != 4:
            return "Usage: series <func>, <var>, <center>, <order>"
        head = args[0].strip('"')
        func = head if head.isidentifier() else parse(head, state.environment)
        order = int(args[3])
        result = engine.series(func, _variable(state, args[1]), parse(args[2], state.environment), order)
        return to_display_string(result)
    return str(NumericEvaluator(state.environment).evaluate(parse(rest, state.environment)))


def handle_line(state: ReplState, line: str) -> str:
    """Process one input line and return the text to print ('' for nothing)."""
    line = line.strip()
    if not line:
        return ""
    state.history.append(line)
    lowered = line.lower()
    if lowered == "quit":
        state.done = True
        return "Goodbye!"
    if lowered == "trace":
        state.show_trace = not state.show_trace
        return f"Traceback display: {'ON' if state.show_trace else 'OFF'}"
    if lowered.split()[0] == "precision":
        return _precision(lowered.split())

    command, _, rest = line.partition(" ")
    try:
        output = _run(state, command.lower(), rest.strip())
    except CASError as e:
        return f"Error: {e.message(state.environment.messages)}"
    except ValueError as e:
        return f"Error: {e}"
    if state.show_trace and command.lower() != "diff":
        tail = format_traceback(state.engine, last=5)
        if tail:
            output += "\n\nTracebacks:\n" + "\n".join("  " + t for t in tail)
    return output


def main():
    """Run the interactive REPL."""
    print("=" * 80)
    print("Symbolic calculator REPL")
    print("Commands: simplify <e> | diff <e>, <x> | int <e>, <x> | series <f>, <x>, <c>, <n> | eval <e>")
    print("Type 'trace' to toggle traceback display")
    print("Type 'precision N' where N is one of", presets(), "to change precision")
    print("Type 'quit' to exit")

    state = ReplState()
    while not state.done:
        try:
            output = handle_line(state, input(PROMPT))
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break
        if output:
            print(output)


if __name__ == '__main__':
    main()
