"""Tests for Scenario, the test-facing entry point."""

import os
import shlex
import sys
import tempfile
import time
import unittest
from pathlib import Path

from cmd_harness import (
    Announcer,
    CommandFailedError,
    CommandTimedOutError,
    Configuration,
    EnvironmentStore,
    OutputMismatchError,
    ProcessState,
    Scenario,
)
from cmd_harness.errors import ProcessNotFoundError


def python_cmd(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


class ScenarioTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.config = Configuration(root_directory=self.root, exit_timeout=10)
        self.lines: list[str] = []
        self.scenario = Scenario(config=self.config, announcer=Announcer(echo=self.lines.append))

    def tearDown(self):
        self.scenario.terminate_processes()
        self._tmp.cleanup()


class TestRunSimple(ScenarioTestCase):
    """Run-and-wait behaviour."""

    @unittest.skipIf(os.name == "nt", "POSIX commands")
    def test_echo_hi(self):
        process = self.scenario.run_simple("echo hi")

        self.assertEqual(process.stdout, "hi\n")
        self.assertEqual(self.scenario.last_exit_status(), 0)
        self.scenario.assert_passing_with("hi")
        self.scenario.assert_exit_status(0)

    def test_working_directory_is_created(self):
        process = self.scenario.run_simple(python_cmd("import os; print(os.getcwd())"))

        expected = (self.root / "tmp" / "cmd-harness").resolve()
        self.assertTrue(expected.is_dir())
        self.assertEqual(Path(process.stdout.strip()).resolve(), expected)

    def test_failure_raises_command_failed(self):
        with self.assertRaises(CommandFailedError):
            self.scenario.run_simple(python_cmd("exit(3)"))

        self.scenario.assert_exit_status(3)
        self.scenario.assert_not_exit_status(0)
        self.scenario.assert_success(False)

    def test_failure_tolerated_without_fail_on_error(self):
        process = self.scenario.run_simple(python_cmd("print('oops'); exit(2)"), fail_on_error=False)

        self.assertEqual(process.exit_status, 2)
        self.scenario.assert_failing_with("oops")

    def test_timeout_raises_command_timed_out(self):
        """A hung command is reported as timed out, not as failed."""
        with self.assertRaises(CommandTimedOutError) as cm:
            self.scenario.run_simple(python_cmd("import time; time.sleep(10)"), timeout=0.5)

        self.assertNotIsInstance(cm.exception, CommandFailedError)
        self.assertIsInstance(cm.exception, AssertionError)
        self.assertTrue(self.scenario.timed_out)
        self.assertEqual(self.scenario.last_command.state, ProcessState.TIMED_OUT)
        self.assertIsNone(self.scenario.last_exit_status())
        with self.assertRaises(CommandTimedOutError):
            self.scenario.assert_exit_status(0)


class TestInteractive(ScenarioTestCase):
    """Feeding input to the last command."""

    def test_type_and_close_input(self):
        self.scenario.run(python_cmd("import sys; sys.stdout.write(sys.stdin.read())"), label="cat")
        self.scenario.type("hello")
        self.scenario.type("world")
        self.scenario.close_input()
        self.scenario.stop_processes()

        self.assertEqual(self.scenario.stdout_from("cat"), "hello\nworld\n")

    def test_empty_type_closes_input(self):
        self.scenario.run(python_cmd("import sys; print(len(sys.stdin.read()))"))
        self.scenario.type("")
        self.scenario.stop_processes()

        self.assertEqual(self.scenario.last_command.stdout, "0\n")

    def test_pipe_in_file(self):
        self.config.working_path.mkdir(parents=True)
        (self.config.working_path / "input.txt").write_text("first\nsecond\n", encoding="utf-8")
        self.scenario.run(python_cmd("import sys; sys.stdout.write(sys.stdin.read().upper())"))
        self.scenario.pipe_in_file("input.txt")
        self.scenario.close_input()
        self.scenario.stop_processes()

        self.assertEqual(self.scenario.all_stdout(), "FIRST\nSECOND\n")

    def test_partial_output_of_running_command(self):
        self.scenario.run(python_cmd("import sys; print('prompt', flush=True); sys.stdin.read()"))
        deadline = time.monotonic() + 5
        while "prompt" not in self.scenario.last_command.stdout and time.monotonic() < deadline:
            time.sleep(0.02)

        self.scenario.assert_partial_output_interactive("prompt")
        with self.assertRaises(OutputMismatchError):
            self.scenario.assert_partial_output_interactive("never printed")
        self.scenario.close_input()
        self.scenario.stop_processes()

    def test_lookup_before_any_command(self):
        with self.assertRaises(ProcessNotFoundError):
            self.scenario.type("nobody listening")

    def test_context_manager_terminates_processes(self):
        with Scenario(config=self.config, announcer=Announcer(echo=False)) as scenario:
            process = scenario.run(python_cmd("import time; time.sleep(10)"))

        self.assertEqual(process.state, ProcessState.TERMINATED)


class TestEnvironment(ScenarioTestCase):
    """Environment changes apply to commands started afterwards."""

    def test_set_append_prepend(self):
        self.scenario.environment = EnvironmentStore({"PATH": os.environ.get("PATH", "")})
        self.scenario.set_environment_variable("CH_VALUE", "middle")
        self.scenario.append_environment_variable("CH_VALUE", "-end")
        self.scenario.prepend_environment_variable("CH_VALUE", "start-")
        process = self.scenario.run_simple(python_cmd("import os; print(os.environ['CH_VALUE'])"))

        self.assertEqual(process.stdout, "start-middle-end\n")

    def test_later_changes_do_not_reach_running_command(self):
        self.scenario.set_environment_variable("CH_VALUE", "before")
        first = self.scenario.run(python_cmd("import os; print(os.environ['CH_VALUE'])"))
        self.scenario.set_environment_variable("CH_VALUE", "after")
        second = self.scenario.run(python_cmd("import os; print(os.environ['CH_VALUE'])"))
        self.scenario.stop_processes()

        self.assertEqual(first.stdout, "before\n")
        self.assertEqual(second.stdout, "after\n")


class TestHooksAndAnnouncements(ScenarioTestCase):
    """Command hooks and announcer output."""

    def test_hooks_see_process_states(self):
        seen = []

        @self.config.before_command
        def before(scenario, process):
            seen.append(("before", process.state))

        @self.config.after_command
        def after(scenario, process):
            seen.append(("after", process.state))

        self.scenario.run_simple(python_cmd("pass"))

        self.assertEqual(seen[0], ("before", ProcessState.PENDING))
        self.assertEqual(seen[1][0], "after")
        self.assertNotEqual(seen[1][1], ProcessState.PENDING)

    def test_failing_before_hook_propagates(self):
        def refuse(scenario, process):
            raise RuntimeError("refused")

        self.config.before_command(refuse)

        with self.assertRaises(RuntimeError):
            self.scenario.run(python_cmd("pass"))
        self.assertEqual(len(self.scenario.process_monitor), 0)

    def test_activated_channels_are_echoed(self):
        self.scenario.announcer.activate("command", "stdout")
        cmdline = python_cmd("print('announced')")
        self.scenario.run_simple(cmdline)

        self.assertIn(f"$ {cmdline}", self.lines)
        self.assertIn("<<-STDOUT\nannounced\n\nSTDOUT", self.lines)
        self.assertFalse(any(line.startswith("$ cd ") for line in self.lines))


if __name__ == "__main__":
    unittest.main()
