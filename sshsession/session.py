"""
Authenticated SSH session.
"""

from __future__ import annotations
import logging
from contextlib import contextmanager
from enum import Enum, auto
from typing import Callable, Iterator, Optional, TypeVar

from . import valid
from .config import ClientSettings, get_settings
from .contracts import AuthenticatorContract, ConnectorContract
from .exceptions import AuthenticationError, InvalidArgumentError, SSHConnectionError, SSHError
from .sftp import Sftp
from .stream import ExecutionStream
from .terminal import Terminal
from .transport.base import FingerprintAlgorithm, FingerprintEncoding, Handle

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CREATE_MODE = 0o644


class SessionState(Enum):
    """Session lifecycle states."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    AUTHENTICATING = auto()
    CONNECTED = auto()
    CLOSED = auto()
    FAILED = auto()


class Session:
    """
    An authenticated SSH session.

    Usage:
        session = Session(Connect.to("host"), Auth.via_password("admin", "secret"))
        print(session.execute("uname -a"))

        with session.channel("tail -n 20 /var/log/syslog") as io:
            for line in iter(io.read_line, ""):
                ...

        session.close()

    Not thread-safe. One session handle backs every channel opened here.
    """

    def __init__(
        self,
        connection: ConnectorContract,
        authentication: AuthenticatorContract,
        settings: ClientSettings = None,
    ):
        """
        Connect and authenticate.

        Raises:
            SSHConnectionError: connection could not be established
            AuthenticationError: the user could not be authenticated
        """
        self.settings = settings or get_settings()
        self._state = SessionState.DISCONNECTED
        self._handle: Optional[Handle] = None
        target = f"{connection.host()}:{connection.port()}"

        self._set_state(SessionState.CONNECTING, target)
        handle = connection.create_session_resource()
        if not handle:
            self._set_state(SessionState.FAILED, "no session handle")
            raise SSHConnectionError(f"Could not establish SSH connection to {target}")

        self._set_state(SessionState.AUTHENTICATING)
        try:
            authenticated = authentication.authenticate_session_resource(handle)
        except Exception:
            self._set_state(SessionState.FAILED, "authentication error")
            handle.provider.disconnect(handle)
            raise

        if not authenticated:
            self._set_state(SessionState.FAILED, "authentication rejected")
            handle.provider.disconnect(handle)
            raise AuthenticationError(f"Could not authenticate user on {target}")

        self._handle = handle
        self._provider = handle.provider
        self._terminal = Terminal.from_settings(self.settings)
        self._set_state(SessionState.CONNECTED, target)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def handle(self) -> Handle:
        return self._handle

    @property
    def closed(self) -> bool:
        return self._handle is None or self._handle.closed

    def _set_state(self, new_state: SessionState, message: str = "") -> None:
        old_state = self._state
        self._state = new_state
        logger.info(f"Session state: {old_state.name} -> {new_state.name} {message}")

    def _check_open(self) -> Handle:
        if not valid.session_handle(self._handle):
            raise InvalidArgumentError("Session has been closed")
        return self._handle

    def close(self) -> None:
        """Disconnect. Channels still open on this session die with it."""
        if self.closed:
            return
        self._provider.disconnect(self._handle)
        self._set_state(SessionState.CLOSED)

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Host key
    # -------------------------------------------------------------------------

    @staticmethod
    def get_fingerprint_algorithm_id(algorithm: str) -> FingerprintAlgorithm:
        try:
            return FingerprintAlgorithm(algorithm)
        except ValueError:
            choices = ", ".join(a.value for a in FingerprintAlgorithm)
            raise InvalidArgumentError(
                f'Incorrect algorithm "{algorithm}". You must use one of [{choices}]'
            ) from None

    @staticmethod
    def get_fingerprint_encoding_id(encoding: str) -> FingerprintEncoding:
        try:
            return FingerprintEncoding(encoding)
        except ValueError:
            choices = ", ".join(e.value for e in FingerprintEncoding)
            raise InvalidArgumentError(
                f'Incorrect encoding "{encoding}". You must use one of [{choices}]'
            ) from None

    def fingerprint(self, algorithm: str = "sha1", encoding: str = "hex"):
        """
        Server host key fingerprint.

        Args:
            algorithm: "sha1" or "md5"
            encoding: "hex" (uppercase str) or "raw" (bytes)
        """
        algorithm_id = self.get_fingerprint_algorithm_id(algorithm)
        encoding_id = self.get_fingerprint_encoding_id(encoding)
        return self._provider.host_fingerprint(self._check_open(), algorithm_id, encoding_id)

    # -------------------------------------------------------------------------
    # Terminal
    # -------------------------------------------------------------------------

    @property
    def terminal(self) -> Terminal:
        return self._terminal

    def with_terminal(self, terminal: Terminal) -> Session:
        """Use terminal for the next executions and shells."""
        self._terminal = terminal
        return self

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _open_exec(self, command: str) -> Optional[Handle]:
        handle = self._check_open()
        terminal = self._terminal
        logger.debug(f"Executing {command!r} with {terminal!r}")
        return self._provider.open_exec(
            handle,
            command,
            None,
            terminal.get_env() or None,
            terminal.get_width(),
            terminal.get_height(),
            terminal.get_dimension_units(),
        )

    def _wrap(self, raw: Handle) -> ExecutionStream:
        """ExecutionStream over raw; raw is closed if that fails."""
        try:
            return ExecutionStream(raw, encoding=self.settings.encoding)
        except Exception:
            self._provider.close(raw)
            raise

    def _exec_stream(self, command: str) -> ExecutionStream:
        raw = self._open_exec(command)
        if raw is None:
            raise SSHError(f"Could not open a channel for {command!r}")
        return self._wrap(raw)

    def execute(self, command: str) -> str:
        """
        Execute a command and return its output once it has finished.

        Blocks until the remote process exits, so only pass commands that
        terminate on their own. Returns an empty result if the server
        refuses the channel.
        """
        raw = self._open_exec(command)
        if raw is None:
            logger.warning(f"Could not open a channel for {command!r}")
            return "" if self.settings.encoding else b""
        return self._wrap(raw).read_and_close(True)

    @contextmanager
    def channel(self, command: str) -> Iterator[ExecutionStream]:
        """
        Execute a command and lend its (blocking) stream to the with-block.

        The stream is closed when the block exits, also on error.

        Raises:
            SSHError: the server refused the channel
        """
        stream = self._exec_stream(command)
        try:
            yield stream
        finally:
            stream.close()

    def run(self, command: str, callback: Callable[[ExecutionStream], T]) -> T:
        """
        Execute a command and let callback talk to it.

        Returns whatever callback returns. The stream is closed afterwards.
        """
        with self.channel(command) as stream:
            return callback(stream)

    @contextmanager
    def interactive(self) -> Iterator[ExecutionStream]:
        """
        Open a shell and lend its stream, already asynchronous, to the with-block.

        Raises:
            SSHError: the server refused the shell channel
        """
        handle = self._check_open()
        terminal = self._terminal
        logger.debug(f"Opening shell with {terminal!r}")
        raw = self._provider.open_shell(
            handle,
            self.settings.shell_term_type,
            terminal.get_env() or None,
            terminal.get_width(),
            terminal.get_height(),
            terminal.get_dimension_units(),
        )
        if raw is None:
            raise SSHError(f"Could not open a {self.settings.shell_term_type} shell")
        stream = self._wrap(raw)
        try:
            yield stream.asynchronous()
        finally:
            stream.close()

    def shell(self, callback: Callable[[ExecutionStream], T]) -> T:
        """Start a shell and let callback drive it. Returns the callback's result."""
        with self.interactive() as stream:
            return callback(stream)

    # -------------------------------------------------------------------------
    # File transfer
    # -------------------------------------------------------------------------

    def send_file(self, local_file: str, remote_file: str, create_mode: int = DEFAULT_CREATE_MODE) -> bool:
        """Upload a file via SCP; the remote file is created with create_mode."""
        return bool(self._provider.scp_send(self._check_open(), local_file, remote_file, create_mode))

    def get_file(self, remote_file: str, local_file: str) -> bool:
        """Download a file via SCP."""
        return bool(self._provider.scp_receive(self._check_open(), remote_file, local_file))

    def sftp(self) -> Sftp:
        """Open the SFTP subsystem."""
        return Sftp(self._provider.open_sftp(self._check_open()))

    def __repr__(self) -> str:
        return f"<Session #{self._handle.ident if self._handle else '-'} {self._state.name}>"


class Scp:
    """One-shot SCP transfers that do not need a persistent session."""

    @staticmethod
    def send_file(
        connection: ConnectorContract,
        authentication: AuthenticatorContract,
        local_file: str,
        remote_file: str,
        create_mode: int = DEFAULT_CREATE_MODE,
    ) -> bool:
        with Session(connection, authentication) as session:
            return session.send_file(local_file, remote_file, create_mode)

    @staticmethod
    def get_file(
        connection: ConnectorContract,
        authentication: AuthenticatorContract,
        remote_file: str,
        local_file: str,
    ) -> bool:
        with Session(connection, authentication) as session:
            return session.get_file(remote_file, local_file)
