import os
import sys
import unittest
from unittest import mock

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import repl
from environment import Environment
from repl import ReplState, handle_line
from utils.precision_manager import get_dps, reset_dps

MESSAGES = {
    "parse(unmatched_paren)": "Unmatched parenthesis",
    "eval(unbound_variable)": "Unbound variable",
}


class CommandSuite(unittest.TestCase):

    def setUp(self):
        self.state = ReplState()

    def test_simplify(self):
        self.assertEqual(handle_line(self.state, "simplify 2x + 3x"), "5x")

    def test_bare_expression(self):
        self.assertEqual(handle_line(self.state, "2x + 3x"), "5x")
        self.assertEqual(handle_line(self.state, "diff(x^3, x)"), "3x^2")

    def test_diff(self):
        self.assertEqual(handle_line(self.state, "diff sin(x^2), x"), "2x*cos(x^2)")

    def test_int(self):
        self.assertEqual(handle_line(self.state, "int x*exp(x), x"), "x*exp(x) - exp(x)")

    def test_eval(self):
        self.assertEqual(handle_line(self.state, "eval 1/3 + 1/6"), "1/2")
        self.assertEqual(handle_line(self.state, "eval sin(pi/6) + 1"), "3/2")

    def test_series(self):
        output = handle_line(self.state, "series sin, x, 0, 3")
        self.assertIn("x^3", output)
        self.assertFalse(output.startswith("Error"))

    def test_blank_line(self):
        self.assertEqual(handle_line(self.state, "   "), "")
        self.assertEqual(self.state.history, [])

    def test_history(self):
        handle_line(self.state, "x + x")
        handle_line(self.state, "trace")
        self.assertEqual(self.state.history, ["x + x", "trace"])


class UsageAndErrorSuite(unittest.TestCase):

    def setUp(self):
        self.state = ReplState()

    def test_usage(self):
        self.assertEqual(handle_line(self.state, "diff x^2"), "Usage: diff <expr>, <var>")
        self.assertEqual(handle_line(self.state, "int x^2"), "Usage: int <expr>, <var>")
        self.assertTrue(handle_line(self.state, "series sin, x").startswith("Usage: series"))

    def test_variable_must_be_a_name(self):
        self.assertEqual(handle_line(self.state, "diff x^2, 2"),
                         "Error: expected a variable name, got '2'")

    def test_bare_error_key(self):
        self.assertEqual(handle_line(self.state, "eval y + 1"), "Error: eval(unbound_variable)")

    def test_message_provider(self):
        state = ReplState(environment=Environment().with_messages(MESSAGES.get))
        self.assertTrue(handle_line(state, "(x + 1").startswith("Error: Unmatched parenthesis"))
        self.assertEqual(handle_line(state, "eval y + 1"), "Error: Unbound variable (y)")


class StateSuite(unittest.TestCase):

    def setUp(self):
        self.state = ReplState()

    def tearDown(self):
        reset_dps()

    def test_quit(self):
        self.assertEqual(handle_line(self.state, "quit"), "Goodbye!")
        self.assertTrue(self.state.done)

    def test_trace_toggle(self):
        self.assertEqual(handle_line(self.state, "trace"), "Traceback display: ON")
        output = handle_line(self.state, "simplify x + x")
        self.assertIn("Tracebacks:", output)
        self.assertIn("result: 2x", output)
        self.assertEqual(handle_line(self.state, "TRACE"), "Traceback display: OFF")

    def test_diff_steps_with_trace(self):
        handle_line(self.state, "trace")
        output = handle_line(self.state, "diff sin(x^2), x")
        lines = output.splitlines()
        self.assertEqual(lines[-1], "2x*cos(x^2)")
        self.assertGreater(len(lines), 1)
        self.assertNotIn("Tracebacks:", output)

    def test_precision(self):
        self.assertEqual(handle_line(self.state, "precision"), f"Current precision: {get_dps()} dps")
        self.assertEqual(handle_line(self.state, "precision 50"), "Precision set to 50 dps")
        self.assertEqual(get_dps(), 50)
        self.assertTrue(handle_line(self.state, "precision 42").startswith("Error:"))
        self.assertEqual(get_dps(), 50)
        self.assertTrue(handle_line(self.state, "precision 1 2").startswith("Usage:"))


class MainLoopSuite(unittest.TestCase):

    def test_main_runs_until_quit(self):
        lines = iter(["simplify 2x + 3x", "quit"])
        with mock.patch("builtins.input", lambda prompt: next(lines)), \
                mock.patch("builtins.print") as fake_print:
            repl.main()
        printed = [call.args[0] for call in fake_print.call_args_list if call.args]
        self.assertIn("5x", printed)
        self.assertIn("Goodbye!", printed)

    def test_main_stops_on_eof(self):
        def raise_eof(prompt):
            raise EOFError

        with mock.patch("builtins.input", raise_eof), mock.patch("builtins.print"):
            repl.main()


if __name__ == "__main__":
    unittest.main()
