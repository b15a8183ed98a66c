"""Tests for the ProcessMonitor registry."""

import shlex
import sys
import unittest
import warnings

from cmd_harness import Command, ProcessMonitor, ProcessState, SpawnProcess
from cmd_harness.errors import ProcessNotFoundError, ProcessStateError


def python_cmd(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def start(monitor: ProcessMonitor, label: str, code: str, exit_timeout: float = 10) -> SpawnProcess:
    process = SpawnProcess(Command(python_cmd(code), exit_timeout=exit_timeout), label=label)
    monitor.register(label, process)
    return process.run()


class TestRegistry(unittest.TestCase):
    """Registration order and label lookups."""

    def test_reused_label_resolves_to_latest(self):
        """Three runs labelled a, b, a keep their order; lookups find the last a."""
        monitor = ProcessMonitor()
        first = start(monitor, "a", "print('one')")
        start(monitor, "b", "print('two')")
        third = start(monitor, "a", "print('three')")
        monitor.stop_processes()

        self.assertEqual(monitor.all_stdout(), "one\ntwo\nthree\n")
        self.assertIs(monitor.get_process("a"), third)
        self.assertIsNot(monitor.get_process("a"), first)
        self.assertEqual(monitor.stdout_from("a"), "three\n")
        self.assertEqual(len(monitor), 3)
        self.assertEqual([label for label, _ in monitor.processes], ["a", "b", "a"])

    def test_all_output_is_concatenation_of_each_entry(self):
        monitor = ProcessMonitor()
        start(monitor, "a", "import sys; print('out-a'); print('err-a', file=sys.stderr)")
        start(monitor, "b", "import sys; print('out-b'); print('err-b', file=sys.stderr)")
        monitor.stop_processes()

        expected = "".join(proc.output for _, proc in monitor.processes)
        self.assertEqual(monitor.all_output(), expected)
        self.assertEqual(monitor.output_from("b"), "out-b\nerr-b\n")
        self.assertEqual(monitor.all_stderr(), "err-a\nerr-b\n")
        self.assertEqual(monitor.stderr_from("a"), "err-a\n")

    def test_unknown_label_raises(self):
        monitor = ProcessMonitor()
        start(monitor, "a", "pass")
        monitor.stop_processes()

        with self.assertRaises(ProcessNotFoundError):
            monitor.get_process("missing")
        with self.assertRaises(LookupError):
            monitor.output_from("missing")

    def test_empty_registry(self):
        monitor = ProcessMonitor()

        with self.assertRaises(ProcessNotFoundError):
            _ = monitor.last_process
        with self.assertRaises(ProcessNotFoundError):
            monitor.last_exit_status()
        self.assertEqual(monitor.all_output(), "")


class TestLifecycle(unittest.TestCase):
    """Stopping and terminating registered processes."""

    def test_last_exit_status(self):
        monitor = ProcessMonitor()
        start(monitor, "ok", "pass")
        start(monitor, "bad", "exit(3)")
        monitor.stop_processes()

        self.assertEqual(monitor.last_exit_status(), 3)
        self.assertIs(monitor.last_process, monitor.get_process("bad"))

    def test_last_exit_status_of_running_process_raises(self):
        monitor = ProcessMonitor()
        start(monitor, "sleeper", "import time; time.sleep(10)")
        try:
            with self.assertRaises(ProcessStateError):
                monitor.last_exit_status()
        finally:
            monitor.terminate_processes()

    def test_terminate_processes_twice(self):
        monitor = ProcessMonitor()
        done = start(monitor, "done", "pass")
        done.stop()
        sleeper = start(monitor, "sleeper", "import time; time.sleep(10)")

        monitor.terminate_processes()
        monitor.terminate_processes()

        self.assertEqual(done.state, ProcessState.EXITED)
        self.assertEqual(sleeper.state, ProcessState.TERMINATED)
        self.assertEqual(monitor.list_active(), [])

    def test_list_and_dump_active(self):
        monitor = ProcessMonitor()
        sleeper = start(monitor, "sleeper", "import time; time.sleep(10)")
        try:
            self.assertEqual(monitor.list_active(), [sleeper])
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                monitor.dump_active()
            messages = [str(w.message) for w in caught]
            self.assertIn("STUCK SUBPROCESS COMMANDS:", messages)
            self.assertTrue(any("label=sleeper" in m for m in messages))
        finally:
            monitor.terminate_processes()


if __name__ == "__main__":
    unittest.main()
