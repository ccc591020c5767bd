"""
Abstract transport provider interface.

Everything that touches the SSH wire goes through a TransportProvider.
The rest of the package only ever holds tagged Handle objects returned by
the provider, and checks their kind (see sshsession.valid) before use.
"""

from __future__ import annotations
import itertools
import logging
import stat as stat_module
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Mapping, Optional
from urllib.parse import quote, unquote, urlsplit

from ..exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 32768
SFTP_SCHEME = "sftp"


class HandleKind(Enum):
    """Capability tag carried by every handle."""
    SESSION = auto()
    STREAM = auto()
    SFTP = auto()


class DimensionUnit(Enum):
    """Unit of a terminal's width and height."""
    CHARS = "chars"
    PIXELS = "pixels"


class FingerprintAlgorithm(Enum):
    MD5 = "md5"
    SHA1 = "sha1"


class FingerprintEncoding(Enum):
    HEX = "hex"
    RAW = "raw"


_handle_ids = itertools.count(1)


@dataclass(eq=False)
class Handle:
    """
    Opaque provider resource tagged with its kind.

    A STREAM handle with a parent is the error sub-stream of that parent;
    it is considered closed as soon as the parent is.
    """
    kind: HandleKind
    provider: TransportProvider
    raw: Any
    parent: Optional[Handle] = None
    ident: int = field(default_factory=lambda: next(_handle_ids))
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def closed(self) -> bool:
        if self._closed:
            return True
        return self.parent is not None and self.parent.closed

    def mark_closed(self) -> None:
        self._closed = True


@dataclass(frozen=True)
class SftpStat:
    """Provider-neutral result of sftp stat/lstat."""
    size: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    mode: Optional[int] = None
    atime: Optional[int] = None
    mtime: Optional[int] = None

    @property
    def is_dir(self) -> bool:
        return self.mode is not None and stat_module.S_ISDIR(self.mode)

    @property
    def is_file(self) -> bool:
        return self.mode is not None and stat_module.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        return self.mode is not None and stat_module.S_ISLNK(self.mode)


class Substream(ABC):
    """
    One readable side of a channel (stdout or stderr) with its own buffer.

    Providers implement recv() and ready(); the line and drain logic lives
    here so every provider gets the same blocking semantics:

    - blocking: reads wait for data or EOF
    - non-blocking: reads return what is buffered now, possibly b""
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.blocking = True
        self.chunk_size = chunk_size
        self._buffer = bytearray()

    @abstractmethod
    def recv(self, size: int) -> bytes:
        """Receive up to size bytes, waiting if needed. b"" means EOF."""
        pass

    @abstractmethod
    def ready(self) -> bool:
        """True if recv() would return without waiting."""
        pass

    def send(self, data: bytes) -> int:
        raise InvalidArgumentError("This stream is read-only")

    def close(self) -> None:
        pass

    def _fill(self, size: int) -> bool:
        """Pull one chunk into the buffer. False on EOF or nothing available."""
        if not self.blocking and not self.ready():
            return False
        chunk = self.recv(size)
        if not chunk:
            return False
        self._buffer.extend(chunk)
        return True

    def _take(self, size: int) -> bytes:
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def read(self, size: int) -> bytes:
        if size <= 0:
            return b""
        if not self._buffer:
            self._fill(size)
        return self._take(size)

    def readline(self) -> bytes:
        while b"\n" not in self._buffer:
            if not self._fill(self.chunk_size):
                break
        idx = self._buffer.find(b"\n")
        return self._take(idx + 1 if idx >= 0 else len(self._buffer))

    def read_all(self) -> bytes:
        while self._fill(self.chunk_size):
            pass
        return self._take(len(self._buffer))


def sftp_locator(handle: Handle, path: str) -> str:
    """Build the sftp://<ident><path> locator accepted by sftp_open()."""
    if not path.startswith("/"):
        path = "/" + path
    return f"{SFTP_SCHEME}://{handle.ident}{quote(path)}"


class TransportProvider(ABC):
    """
    Primitive SSH operations.

    Session, channel and sftp resources are returned as Handle objects.
    Failures of connect/open calls are reported as None, failures of
    auth/transfer/filesystem calls as False or None. Nothing retries.
    """

    def __init__(self):
        self._sftp_handles: weakref.WeakValueDictionary[int, Handle] = weakref.WeakValueDictionary()

    def _new_handle(self, kind: HandleKind, raw: Any, parent: Handle = None) -> Handle:
        handle = Handle(kind, self, raw, parent)
        if kind is HandleKind.SFTP:
            self._sftp_handles[handle.ident] = handle
        logger.debug(f"New {kind.name.lower()} handle #{handle.ident}")
        return handle

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    @abstractmethod
    def connect(self, host: str, port: int) -> Optional[Handle]:
        pass

    @abstractmethod
    def disconnect(self, handle: Handle) -> None:
        pass

    @abstractmethod
    def auth_password(self, handle: Handle, username: str, password: str) -> bool:
        pass

    @abstractmethod
    def auth_public_key_file(
        self,
        handle: Handle,
        username: str,
        pubkey_file: Optional[str],
        privkey_file: str,
        passphrase: Optional[str] = None,
    ) -> bool:
        pass

    @abstractmethod
    def auth_agent(self, handle: Handle, username: str) -> bool:
        pass

    @abstractmethod
    def host_fingerprint(
        self,
        handle: Handle,
        algorithm: FingerprintAlgorithm,
        encoding: FingerprintEncoding,
    ):
        """Server host key fingerprint: hex str or raw bytes."""
        pass

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------

    @abstractmethod
    def open_exec(
        self,
        handle: Handle,
        command: str,
        pty: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        width: int = 80,
        height: int = 25,
        dimension_unit: DimensionUnit = DimensionUnit.CHARS,
    ) -> Optional[Handle]:
        pass

    @abstractmethod
    def open_shell(
        self,
        handle: Handle,
        pty_type: str,
        env: Optional[Mapping[str, str]] = None,
        width: int = 80,
        height: int = 25,
        dimension_unit: DimensionUnit = DimensionUnit.CHARS,
    ) -> Optional[Handle]:
        pass

    @abstractmethod
    def _open_stderr(self, stream: Handle) -> Optional[Substream]:
        """Substream for the error side of a channel, or None."""
        pass

    def fetch_stderr(self, stream: Handle) -> Optional[Handle]:
        """Return the error sub-stream paired with a primary stream."""
        if stream.parent is not None:
            return None
        raw = self._open_stderr(stream)
        if raw is None:
            return None
        return self._new_handle(HandleKind.STREAM, raw, parent=stream)

    def set_blocking(self, stream: Handle, blocking: bool) -> None:
        stream.raw.blocking = bool(blocking)

    def read(self, stream: Handle, max_len: int) -> bytes:
        return stream.raw.read(max_len)

    def read_line(self, stream: Handle) -> bytes:
        return stream.raw.readline()

    def read_all(self, stream: Handle) -> bytes:
        return stream.raw.read_all()

    def write(self, stream: Handle, data: bytes) -> int:
        return stream.raw.send(data)

    def close(self, stream: Handle) -> None:
        if stream.closed:
            return
        stream.raw.close()
        stream.mark_closed()

    # -------------------------------------------------------------------------
    # SCP
    # -------------------------------------------------------------------------

    @abstractmethod
    def scp_send(self, handle: Handle, local_path: str, remote_path: str, mode: int) -> bool:
        pass

    @abstractmethod
    def scp_receive(self, handle: Handle, remote_path: str, local_path: str) -> bool:
        pass

    # -------------------------------------------------------------------------
    # SFTP
    # -------------------------------------------------------------------------

    @abstractmethod
    def open_sftp(self, handle: Handle) -> Optional[Handle]:
        pass

    @abstractmethod
    def close_sftp(self, sftp: Handle) -> None:
        pass

    @abstractmethod
    def sftp_chmod(self, sftp: Handle, path: str, mode: int) -> bool:
        pass

    @abstractmethod
    def sftp_lstat(self, sftp: Handle, path: str) -> Optional[SftpStat]:
        pass

    @abstractmethod
    def sftp_mkdir(self, sftp: Handle, path: str, mode: int, recursive: bool = False) -> bool:
        pass

    @abstractmethod
    def sftp_readlink(self, sftp: Handle, path: str) -> Optional[str]:
        pass

    @abstractmethod
    def sftp_realpath(self, sftp: Handle, path: str) -> Optional[str]:
        pass

    @abstractmethod
    def sftp_rename(self, sftp: Handle, src: str, dst: str) -> bool:
        pass

    @abstractmethod
    def sftp_rmdir(self, sftp: Handle, path: str) -> bool:
        pass

    @abstractmethod
    def sftp_stat(self, sftp: Handle, path: str) -> Optional[SftpStat]:
        pass

    @abstractmethod
    def sftp_symlink(self, sftp: Handle, target: str, link: str) -> bool:
        pass

    @abstractmethod
    def sftp_unlink(self, sftp: Handle, path: str) -> bool:
        pass

    @abstractmethod
    def _sftp_open_path(self, sftp: Handle, path: str, mode: str):
        """Open an absolute remote path, returning a binary file object."""
        pass

    def sftp_open(self, locator: str, mode: str = "r"):
        """Open a file addressed by an sftp:// locator."""
        parts = urlsplit(locator)
        if parts.scheme != SFTP_SCHEME:
            raise InvalidArgumentError(f"Not an {SFTP_SCHEME}:// locator: {locator!r}")
        try:
            handle = self._sftp_handles.get(int(parts.netloc))
        except ValueError:
            handle = None
        if handle is None or handle.closed:
            raise InvalidArgumentError(f"Locator {locator!r} does not refer to an open sftp handle")
        return self._sftp_open_path(handle, unquote(parts.path) or "/", mode)
