"""Spawned external command with captured output, input, and timeout enforcement.

## Basic Usage

### Run to completion
```python
command = Command("echo hi", exit_timeout=5)
process = SpawnProcess(command).run()
process.stop()
print(process.stdout)                  # "hi\\n"
print(process.successfully_executed())  # True
```

### Interactive input
```python
process = SpawnProcess(Command("cat", exit_timeout=5)).run()
process.write("hello\\n")
process.close_io("stdin")
process.stop()
```

### Timeouts
```python
process = SpawnProcess(Command("sleep 5", exit_timeout=1)).run()
process.stop()
print(process.timed_out)  # True
print(process.state)      # ProcessState.TIMED_OUT
```

## Key Features

- **Non-blocking output**: one reader thread per output stream keeps the pipes drained
- **Wall-clock timeouts**: a watcher thread enforces the exit-timeout even without stop()
- **Hang detection**: stop() treats a silent process as hung once the io-wait budget elapses
- **Escalating termination**: termination signal first, kill after a grace period
- **Process tree management**: descendants are terminated together with the process
- **Thread-safe**: exactly one terminal transition wins; repeated stop/terminate are no-ops
"""

import contextlib
import logging
import subprocess
import threading
import time
from typing import TYPE_CHECKING

from cmd_harness.command import Command
from cmd_harness.errors import InputClosedError, ProcessStateError, SpawnFailureError
from cmd_harness.process_output_reader import OutputBuffer, ProcessOutputReader
from cmd_harness.process_protocol import ProcessState
from cmd_harness.process_utils import get_process_tree_info
from cmd_harness.process_watcher import ProcessWatcher
from cmd_harness.timeout_controller import DEFAULT_TERMINATE_GRACE, TimeoutController

if TYPE_CHECKING:
    from cmd_harness.announcer import Announcer

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.01
READER_JOIN_TIMEOUT = 0.5

_STREAM_ALIASES = {
    "stdin": "stdin",
    "input": "stdin",
    "stdout": "stdout",
    "output": "stdout",
    "stderr": "stderr",
    "error": "stderr",
}


class SpawnProcess:
    """
    One invocation of an external command.

    The process is spawned without a shell; its stdin is a pipe the caller can
    write to and its stdout/stderr are drained into buffers by background
    threads. A watcher thread records natural exit and enforces the
    exit-timeout; stop() additionally applies io-wait hang detection.
    """

    def __init__(
        self,
        command: Command,
        label: str | None = None,
        startup_wait_time: float = 0.0,
    ) -> None:
        """
        Initialize the SpawnProcess instance.

        Args:
            command: The command to execute.
            label: Name used to look the process up later. Defaults to the command line.
            startup_wait_time: Seconds to sleep after spawning, for slow-starting programs.
        """
        self.command = command
        self.label = label if label is not None else command.cmdline
        self.startup_wait_time = startup_wait_time
        self.proc: subprocess.Popen[bytes] | None = None
        self.timeout_controller = TimeoutController(command.exit_timeout, command.io_wait_timeout)
        self._state = ProcessState.PENDING
        self._lock = threading.RLock()
        self._finished = threading.Event()
        self._stdout = OutputBuffer("stdout")
        self._stderr = OutputBuffer("stderr")
        self._reader_shutdown = {"stdout": threading.Event(), "stderr": threading.Event()}
        self._reader_threads: list[threading.Thread] = []
        self._watcher: ProcessWatcher | None = None
        self._stdin_closed = False
        self._exit_status: int | None = None
        self._returncode: int | None = None
        self._timed_out = False
        self._start_time: float | None = None
        self._end_time: float | None = None

    def __repr__(self) -> str:
        return f"SpawnProcess(label={self.label!r}, pid={self.pid}, state={self._state.value})"

    @property
    def commandline(self) -> str:
        return self.command.cmdline

    @property
    def pid(self) -> int | None:
        return self.proc.pid if self.proc is not None else None

    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    def _create_process(self) -> None:
        """Create the subprocess with all three streams piped."""
        cmdline = self.command.cmdline
        env = dict(self.command.environment)
        # Python children otherwise buffer their output when it goes to a pipe
        env.setdefault("PYTHONUNBUFFERED", "1")
        try:
            argv = self.command.argv
            if not argv:
                error_message = "empty command line"
                raise ValueError(error_message)
            self.proc = subprocess.Popen(  # noqa: S603
                argv,
                cwd=self.command.working_directory,
                env=env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to start %r: %s", cmdline, e)
            error_message = f"It tried to start {cmdline!r}. {e}"
            raise SpawnFailureError(error_message) from e

    def _start_reader_threads(self) -> None:
        assert self.proc is not None
        streams = (("stdout", self.proc.stdout, self._stdout), ("stderr", self.proc.stderr, self._stderr))
        for name, stream, buffer in streams:
            assert stream is not None
            reader = ProcessOutputReader(stream, buffer, self._reader_shutdown[name])
            thread = threading.Thread(target=reader.run, name=f"CHReader-{self.pid}-{name}", daemon=True)
            thread.start()
            self._reader_threads.append(thread)

    def _start_watcher_thread(self) -> None:
        self._watcher = ProcessWatcher(self)
        self._watcher.start()

    def run(self) -> "SpawnProcess":
        """
        Spawn the command and start draining its output.

        Returns:
            This process, now running.

        Raises:
            SpawnFailureError: If the executable could not be started. Not retried.
            ProcessStateError: If the process was already started.
        """
        with self._lock:
            if self._state is not ProcessState.PENDING:
                error_message = f"Process has already been started: {self.commandline}"
                raise ProcessStateError(error_message)
            self._create_process()
            self._start_time = time.time()
            self.timeout_controller.start()
            self._state = ProcessState.RUNNING

        logger.debug("Started pid %s: %s", self.pid, self.commandline)
        self._start_reader_threads()
        self._start_watcher_thread()

        if self.startup_wait_time > 0:
            time.sleep(self.startup_wait_time)
        return self

    def write(self, data: str | bytes) -> "SpawnProcess":
        """
        Write to the process's standard input.

        Strings are encoded as UTF-8. The state lock is not held while writing, so
        a child that stops reading cannot prevent its own timeout.

        Raises:
            InputClosedError: If stdin was closed, the pipe broke, or the process finished.
            ProcessStateError: If the process has not been started.
        """
        with self._lock:
            if self._state is ProcessState.PENDING:
                error_message = "Process is not running."
                raise ProcessStateError(error_message)
            if self._stdin_closed or self._state.is_terminal:
                error_message = f"Input of {self.commandline!r} is closed"
                raise InputClosedError(error_message)
            assert self.proc is not None
            stdin = self.proc.stdin
            assert stdin is not None

        view = memoryview(data.encode("utf-8") if isinstance(data, str) else bytes(data))
        try:
            while view:
                written = stdin.write(view)
                view = view[written or 0 :]
            stdin.flush()
        except (ValueError, OSError) as e:
            error_message = f"Input of {self.commandline!r} is closed: {e}"
            raise InputClosedError(error_message) from e
        return self

    def close_io(self, name: str) -> "SpawnProcess":
        """
        Close one of the process's streams. Closing an already closed stream is a no-op.

        Args:
            name: ``stdin``/``input``, ``stdout``/``output`` or ``stderr``/``error``.
                  Output captured before closing an output stream is kept.
        """
        try:
            stream_name = _STREAM_ALIASES[name]
        except KeyError:
            error_message = f"Unknown stream {name!r}, expected one of {', '.join(_STREAM_ALIASES)}"
            raise ValueError(error_message) from None

        if stream_name == "stdin":
            with self._lock:
                if self._stdin_closed:
                    return self
                self._stdin_closed = True
            self._close_stdin()
            return self

        buffer = self._stdout if stream_name == "stdout" else self._stderr
        buffer.close()
        # The reader closes the pipe itself once its pending read returns
        self._reader_shutdown[stream_name].set()
        return self

    def _close_stdin(self) -> None:
        if self.proc is not None and self.proc.stdin is not None and not self.proc.stdin.closed:
            with contextlib.suppress(OSError, ValueError):
                self.proc.stdin.close()

    def poll(self) -> int | None:
        """
        Check the return code of the process without recording anything.
        """
        if self.proc is None:
            return None
        return self.proc.poll()

    def _claim(self, target: ProcessState) -> ProcessState | None:
        """Apply the single terminal transition for this process.

        Returns the state that was applied: ``EXITED`` if the OS already reports
        an exit, otherwise ``target``. Returns None if the process is not running
        or another caller already applied a terminal transition.
        """
        with self._lock:
            if self._state is not ProcessState.RUNNING:
                return None
            assert self.proc is not None
            rc = self.proc.poll()
            if rc is not None:
                self._state = ProcessState.EXITED
                self._exit_status = rc
                self._returncode = rc
            else:
                self._state = target
                if target is ProcessState.TIMED_OUT:
                    self._timed_out = True
            return self._state

    def record_exit(self) -> None:
        """Record a natural exit observed by the OS. No-op while running or once terminal."""
        if self.poll() is None:
            return
        if self._claim(ProcessState.EXITED) is None:
            return
        logger.debug("Process exited with status %s: %s", self._exit_status, self.commandline)
        self._finalize()

    def expire(self, reason: str, io_wait: float | None = None) -> None:
        """
        Kill the process because it exceeded a timeout.

        Args:
            reason: ``exit-timeout`` or ``io-wait``, used for logging.
            io_wait: Grace period budget between the termination signal and the kill.
        """
        applied = self._claim(ProcessState.TIMED_OUT)
        if applied is None:
            return
        if applied is ProcessState.TIMED_OUT:
            logger.warning(
                "Process timed out (%s) after %.2f seconds, killing: %s",
                reason,
                self.timeout_controller.elapsed(),
                self.commandline,
            )
            if self.pid is not None:
                logger.debug("Process tree at timeout:\n%s", get_process_tree_info(self.pid))
            self._kill(self.timeout_controller.grace_period(io_wait))
        self._finalize()

    def terminate(self) -> None:
        """
        Terminate the process: termination signal, short grace period, then kill.

        Safe to call at any time; a process that is not running is left as is.
        """
        applied = self._claim(ProcessState.TERMINATED)
        if applied is None:
            return
        if applied is ProcessState.TERMINATED:
            logger.info("Terminating process: %s", self.commandline)
            self._kill(DEFAULT_TERMINATE_GRACE)
            with self._lock:
                self._exit_status = self._returncode
        self._finalize()

    def _kill(self, grace: float) -> None:
        assert self.proc is not None
        rc = self.timeout_controller.escalate(self.proc, grace)
        with self._lock:
            self._returncode = rc if rc is not None else self.proc.poll()

    def _finalize(self) -> None:
        """Join the readers, release stdin and mark the process finished.

        Only the caller that won the terminal transition gets here, exactly once.
        """
        for thread in self._reader_threads:
            thread.join(timeout=READER_JOIN_TIMEOUT)
            if thread.is_alive():
                # A surviving descendant still holds the pipe open
                logger.debug("Reader %s still attached after exit of %s", thread.name, self.commandline)
        for event in self._reader_shutdown.values():
            event.set()

        with self._lock:
            self._stdin_closed = True
        self._close_stdin()

        if self._end_time is None:
            self._end_time = time.time()
        self._finished.set()

    def _last_activity(self) -> float | None:
        stamps = [ts for ts in (self._stdout.last_activity, self._stderr.last_activity) if ts is not None]
        return max(stamps) if stamps else None

    def stop(self, io_wait: float | None = None, announcer: "Announcer | None" = None) -> int | None:
        """
        Wait for the process to finish, enforcing the exit-timeout and io-wait hang detection.

        Args:
            io_wait: Seconds without output after which the process counts as hung.
                     None uses the command's io_wait_timeout; if that is None too,
                     hang detection is off and only the exit-timeout applies.
            announcer: Receives the final stdout and stderr.

        Returns:
            The exit status, or None if the process timed out or was never started.
        """
        if self.state is ProcessState.PENDING:
            return None

        budget = io_wait if io_wait is not None else self.command.io_wait_timeout
        stop_started = time.monotonic()

        while not self._finished.wait(POLL_INTERVAL):
            if self.poll() is not None:
                self.record_exit()
            elif self.timeout_controller.exit_timeout_expired():
                self.expire("exit-timeout", budget)
            else:
                last_activity = max(stop_started, self._last_activity() or stop_started)
                if self.timeout_controller.io_wait_expired(last_activity, budget):
                    self.expire("io-wait", budget)

        if announcer is not None:
            announcer.announce("stdout", self.stdout)
            announcer.announce("stderr", self.stderr)
        return self.exit_status

    def wait_finished(self, timeout: float | None = None) -> bool:
        """Block until the process reached a terminal state and was cleaned up."""
        return self._finished.wait(timeout)

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def exit_status(self) -> int | None:
        """Exit status once exited or terminated; None while running or after a timeout."""
        with self._lock:
            return self._exit_status

    @property
    def returncode(self) -> int | None:
        """Raw OS return code, also available after a timeout kill."""
        with self._lock:
            return self._returncode

    @property
    def timed_out(self) -> bool:
        with self._lock:
            return self._timed_out

    def successfully_executed(self) -> bool:
        with self._lock:
            return self._state is ProcessState.EXITED and self._exit_status == 0

    def has_exit_status(self, status: int) -> bool:
        with self._lock:
            return self._state is ProcessState.EXITED and self._exit_status == status

    @property
    def start_time(self) -> float | None:
        """Get the process start time"""
        return self._start_time

    @property
    def end_time(self) -> float | None:
        """Get the process end time"""
        return self._end_time

    @property
    def duration(self) -> float | None:
        """Get the process duration in seconds, or None if not completed"""
        if self._start_time is None or self._end_time is None:
            return None
        return self._end_time - self._start_time

    @property
    def stdout(self) -> str:
        """
        Get the stdout captured so far.

        Available in every state; while running it holds the output read so far.
        """
        return self._stdout.text()

    @property
    def stderr(self) -> str:
        """Get the stderr captured so far."""
        return self._stderr.text()

    @property
    def output(self) -> str:
        """Get stdout followed by stderr."""
        return self.stdout + self.stderr

    def time_last_output(self) -> float | None:
        """Monotonic time of the most recent output on either stream."""
        return self._last_activity()

    @property
    def watcher_thread(self) -> threading.Thread | None:
        return self._watcher.thread if self._watcher is not None else None
