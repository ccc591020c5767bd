"""
SCP "protocol" over an exec channel.

The protocol is undocumented; this follows what OpenSSH's scp does for a
single regular file. The local side runs ``scp -t <path>`` (send) or
``scp -f <path>`` (receive) on the remote host and then exchanges
one-letter commands, each acknowledged by a response byte:

    C<mode> <size> <name>\\n   file header, followed by <size> bytes of data
    T<mtime> 0 <atime> 0\\n    timestamps of the next file (receive only, ignored)
    E\\n                       end of a directory (not used here)

Responses: ``\\0`` ok, ``\\1`` soft error, ``\\2`` hard error. Error codes
are followed by a message terminated by a newline.
"""

from __future__ import annotations
import logging
import os
import posixpath
import shlex

from ..exceptions import ScpError

logger = logging.getLogger(__name__)

OK = b"\x00"
SOFT_ERROR = b"\x01"
HARD_ERROR = b"\x02"

COPY_BUFFER_SIZE = 32768


def _read_response(reader) -> None:
    """Wait for the remote acknowledgement of the last command."""
    code = reader.read(1)
    if code == OK:
        return
    if not code:
        raise ScpError("Remote scp closed the channel unexpectedly")
    if code in (SOFT_ERROR, HARD_ERROR):
        message = reader.readline().decode("utf-8", errors="replace").strip()
        raise ScpError(f"Remote scp error: {message}")
    # Anything else is a hard error (usually scp not found / shell noise)
    message = (code + reader.readline()).decode("utf-8", errors="replace").strip()
    raise ScpError(f"Unexpected scp response: {message}")


def _parse_header(line: bytes) -> tuple[int, int, str]:
    """Parse 'C0644 1234 name' into (mode, size, name)."""
    try:
        text = line.decode("utf-8").rstrip("\n")
        mode, size, name = text[1:].split(" ", 2)
        return int(mode, 8), int(size), name
    except (UnicodeDecodeError, ValueError):
        raise ScpError(f"Malformed scp header: {line!r}")


def send_file(channel, local_path: str, remote_path: str, mode: int = 0o644) -> int:
    """
    Copy one local file to remote_path over an unused exec channel.

    Returns the number of bytes sent. Raises ScpError or OSError.
    """
    size = os.path.getsize(local_path)
    name = posixpath.basename(remote_path) or os.path.basename(local_path)
    reader = channel.makefile("rb")

    channel.exec_command(f"scp -t {shlex.quote(remote_path)}")
    _read_response(reader)

    header = f"C{mode & 0o7777:04o} {size} {name}\n"
    logger.debug(f"scp send header: {header.strip()}")
    channel.sendall(header.encode("utf-8"))
    _read_response(reader)

    with open(local_path, "rb") as f:
        while True:
            chunk = f.read(COPY_BUFFER_SIZE)
            if not chunk:
                break
            channel.sendall(chunk)

    channel.sendall(OK)
    _read_response(reader)
    return size


def receive_file(channel, remote_path: str, local_path: str) -> int:
    """
    Copy one remote file to local_path over an unused exec channel.

    Returns the number of bytes received. Raises ScpError or OSError.
    """
    reader = channel.makefile("rb")

    channel.exec_command(f"scp -f {shlex.quote(remote_path)}")
    channel.sendall(OK)

    while True:
        line = reader.readline()
        if not line:
            raise ScpError("Remote scp closed the channel before sending a file")
        code = line[:1]
        if code in (SOFT_ERROR, HARD_ERROR):
            message = line[1:].decode("utf-8", errors="replace").strip()
            raise ScpError(f"Remote scp error: {message}")
        if code == b"T":
            channel.sendall(OK)
            continue
        if code == b"C":
            break
        raise ScpError(f"Unexpected scp command: {line!r}")

    mode, size, name = _parse_header(line)
    logger.debug(f"scp receive header: mode={mode:04o} size={size} name={name}")
    channel.sendall(OK)

    remaining = size
    with open(local_path, "wb") as f:
        while remaining > 0:
            chunk = reader.read(min(COPY_BUFFER_SIZE, remaining))
            if not chunk:
                raise ScpError(f"Connection closed with {remaining} bytes outstanding")
            f.write(chunk)
            remaining -= len(chunk)

    _read_response(reader)
    channel.sendall(OK)
    return size
