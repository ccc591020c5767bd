"""
Handle and argument validators.

Every operation checks its handle here before the provider is called.
"""

from __future__ import annotations
from typing import Any

from .transport.base import Handle, HandleKind

MIN_PORT = 0
MAX_PORT = 65535


def tcp_port(port: Any) -> bool:
    """True if port is an int (or decimal string) between 0 and 65535."""
    if isinstance(port, bool):
        return False
    if isinstance(port, str):
        text = port.strip()
        if text.startswith(("+", "-")):
            sign, text = text[0], text[1:]
        else:
            sign = ""
        if not (text.isascii() and text.isdigit()):
            return False
        # "0", "+0" and "-0" are fine, "022" is not
        if len(text) > 1 and text.startswith("0"):
            return False
        port = int(sign + text)
    if not isinstance(port, int):
        return False
    return MIN_PORT <= port <= MAX_PORT


def _open_handle(handle: Any, kind: HandleKind) -> bool:
    return isinstance(handle, Handle) and handle.kind is kind and not handle.closed


def session_handle(handle: Any) -> bool:
    """True for an open SSH session handle."""
    return _open_handle(handle, HandleKind.SESSION)


def stream_handle(handle: Any) -> bool:
    """True for an open primary channel stream (not an error sub-stream)."""
    return _open_handle(handle, HandleKind.STREAM) and handle.parent is None


def error_stream_handle(handle: Any) -> bool:
    """True for an open error sub-stream."""
    return _open_handle(handle, HandleKind.STREAM) and handle.parent is not None


def sftp_handle(handle: Any) -> bool:
    """True for an open SFTP handle."""
    return _open_handle(handle, HandleKind.SFTP)
