"""
Execution stream - stdin/stdout and stderr of one channel.
"""

from __future__ import annotations
import codecs
import logging
import os
import time
from typing import Optional, Union

from . import valid
from .exceptions import InvalidArgumentError
from .transport.base import Handle

logger = logging.getLogger(__name__)

Data = Union[str, bytes]


class ExecutionStream:
    """
    The I/O of a remote command or shell.

    Wraps the channel's stdio stream and its stderr sub-stream. Both share
    one blocking flag:

    - synchronous (default): reads wait until data is available or the
      channel closes. A read on a channel that never produces data and
      never closes waits forever.
    - asynchronous: reads return whatever is buffered right now, possibly
      nothing. Use wait() between polls.

    stdout and stderr are buffered separately; nothing here interleaves them.

    With an encoding (default utf-8) reads return str and writes accept str.
    With encoding=None reads return bytes.
    """

    def __init__(self, stream: Handle, encoding: Optional[str] = "utf-8"):
        if not valid.stream_handle(stream):
            raise InvalidArgumentError("Parameter must be a valid channel stream handle")

        stderr = stream.provider.fetch_stderr(stream)
        if not valid.error_stream_handle(stderr):
            raise InvalidArgumentError(
                "Parameter is a valid stream, but does not contain an stderr sub-stream"
            )

        self._provider = stream.provider
        self._stdio = stream
        self._stderr = stderr
        self._blocking = True
        self.encoding = encoding
        if encoding:
            self._stdio_decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
            self._stderr_decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    # -------------------------------------------------------------------------
    # Mode
    # -------------------------------------------------------------------------

    @property
    def blocking(self) -> bool:
        return self._blocking

    @property
    def closed(self) -> bool:
        return self._stdio.closed

    def _set_blocking(self, blocking: bool) -> ExecutionStream:
        self._check_open()
        self._provider.set_blocking(self._stdio, blocking)
        self._provider.set_blocking(self._stderr, blocking)
        self._blocking = blocking
        return self

    def asynchronous(self) -> ExecutionStream:
        """
        Switch to non-blocking mode.

        Reads no longer wait for EOF or EOL; they return the unconsumed data
        currently available, or "" if there is none.
        """
        return self._set_blocking(False)

    def synchronous(self) -> ExecutionStream:
        """Switch to blocking mode. Reads wait until their data is available."""
        return self._set_blocking(True)

    def wait(self, seconds: float) -> ExecutionStream:
        """Sleep, for callers polling an asynchronous stream."""
        time.sleep(seconds)
        return self

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write(self, data: Data) -> ExecutionStream:
        self._check_open()
        if isinstance(data, str):
            data = data.encode(self.encoding or "utf-8")
        self._provider.write(self._stdio, data)
        return self

    def write_line(self, data: Data) -> ExecutionStream:
        """Write data followed by the platform newline."""
        if isinstance(data, bytes):
            return self.write(data + os.linesep.encode())
        return self.write(data + os.linesep)

    # -------------------------------------------------------------------------
    # Reading stdout
    # -------------------------------------------------------------------------

    def read(self, length: int) -> Data:
        """Read up to length bytes."""
        self._check_open()
        return self._decode(self._provider.read(self._stdio, length), stderr=False)

    def read_line(self) -> Data:
        """
        Read one line, including its newline.

        In asynchronous mode, returns the available data if no complete
        line has arrived yet.
        """
        self._check_open()
        return self._decode(self._provider.read_line(self._stdio), stderr=False)

    def read_to_end(self) -> Data:
        """
        Read everything.

        Synchronous: waits until the channel closes. Asynchronous: returns
        what is currently buffered.
        """
        self._check_open()
        return self._decode(self._provider.read_all(self._stdio), stderr=False, final=self._blocking)

    # -------------------------------------------------------------------------
    # Reading stderr
    # -------------------------------------------------------------------------

    def read_error(self, length: int) -> Data:
        self._check_open()
        return self._decode(self._provider.read(self._stderr, length), stderr=True)

    def read_error_line(self) -> Data:
        self._check_open()
        return self._decode(self._provider.read_line(self._stderr), stderr=True)

    def read_error_to_end(self) -> Data:
        self._check_open()
        return self._decode(self._provider.read_all(self._stderr), stderr=True, final=self._blocking)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def close(self) -> ExecutionStream:
        """Close the channel (stdio and, with it, stderr)."""
        self._provider.close(self._stdio)
        return self

    def read_and_close(self, wait_for_eof: bool) -> Data:
        """
        Read all unconsumed stdout, then close.

        Args:
            wait_for_eof: True to block until the channel closes, False to
                take only what is available now.
        """
        try:
            if wait_for_eof:
                self.synchronous()
            else:
                self.asynchronous()
            return self.read_to_end()
        finally:
            self.close()

    def __enter__(self) -> ExecutionStream:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._stdio.closed:
            raise InvalidArgumentError("Stream has been closed")

    def _decode(self, data: bytes, stderr: bool, final: bool = False) -> Data:
        if not self.encoding:
            return data
        decoder = self._stderr_decoder if stderr else self._stdio_decoder
        return decoder.decode(data, final)

    def __repr__(self) -> str:
        mode = "sync" if self._blocking else "async"
        state = "closed" if self.closed else "open"
        return f"<ExecutionStream #{self._stdio.ident} {mode} {state}>"
