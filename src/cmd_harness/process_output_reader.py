"""Process output reader module.

This module contains the OutputBuffer that accumulates a stream's bytes and the
ProcessOutputReader that drains one pipe into it from a dedicated thread, so a
full pipe never blocks the child or the caller.
"""

import _thread
import logging
import threading
import time
import traceback
from typing import IO

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


class OutputBuffer:
    """Append-only byte buffer shared between a reader thread and the caller.

    The reader only appends and the caller only reads, both under one lock.
    Once closed, the buffer keeps its contents and ignores further appends.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._data = bytearray()
        self._lock = threading.Lock()
        self._last_activity: float | None = None
        self._closed = False

    def append(self, chunk: bytes) -> None:
        with self._lock:
            if self._closed:
                return
            self._data.extend(chunk)
            self._last_activity = time.monotonic()

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    def text(self) -> str:
        return self.getvalue().decode("utf-8", errors="replace")

    @property
    def last_activity(self) -> float | None:
        """Monotonic time of the most recent append, or None if nothing arrived yet."""
        with self._lock:
            return self._last_activity


class ProcessOutputReader:
    """Dedicated reader that drains one output pipe of a process into a buffer.

    Reads raw chunks rather than lines so partial output (prompts without a
    trailing newline) is visible while the process is still running.
    """

    def __init__(
        self,
        stream: IO[bytes],
        buffer: OutputBuffer,
        shutdown: threading.Event,
    ) -> None:
        self._stream = stream
        self._buffer = buffer
        self._shutdown = shutdown

    def _process_pipe_output(self) -> None:
        # The stream is only ever closed by this thread, never underneath a pending read
        while not self._shutdown.is_set():
            chunk = self._stream.read(CHUNK_SIZE)
            if not chunk:  # EOF reached
                break
            self._buffer.append(chunk)

    def _handle_keyboard_interrupt(self) -> None:
        thread_id = threading.current_thread().ident
        thread_name = threading.current_thread().name
        logger.warning("Thread %s (%s) caught KeyboardInterrupt", thread_id, thread_name)
        traceback.print_exc()
        _thread.interrupt_main()

    def _handle_io_error(self, e: ValueError | OSError) -> None:
        error_str = str(e)
        if any(msg in error_str for msg in ["closed file", "Bad file descriptor"]):
            logger.debug("%s reader stopped on closed stream: %s", self._buffer.name, e)
        else:
            logger.warning("%s reader encountered error: %s", self._buffer.name, e)

    def _cleanup_stream(self) -> None:
        if self._stream.closed:
            return
        try:
            self._stream.close()
        except (ValueError, OSError) as err:
            logger.debug("%s reader failed to close stream: %s", self._buffer.name, err)

    def run(self) -> None:
        """Continuously read chunks and append them until EOF, close, or shutdown."""
        try:
            self._process_pipe_output()
        except KeyboardInterrupt:
            self._handle_keyboard_interrupt()
            raise
        except (ValueError, OSError) as e:
            self._handle_io_error(e)
        finally:
            self._cleanup_stream()
