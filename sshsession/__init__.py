"""
sshsession - typed SSH sessions on top of Paramiko.

- Connect / Auth: where to connect and how to log in
- Session: authenticated connection; execute, run, shell, scp, sftp
- ExecutionStream: stdout/stderr of a channel with sync/async reads
- Terminal: pty size, units and environment
- Sftp: remote filesystem view
- Scp: one-shot transfers

Quick start:
    from sshsession import Session, Connect, Auth

    with Session(Connect.to("host"), Auth.via_agent("admin")) as s:
        print(s.execute("uptime"))
"""

__version__ = "0.1.0"

from .auth import Auth, AuthMethod
from .config import ClientSettings, SettingsManager, get_settings
from .connect import Connect
from .contracts import AuthenticatorContract, ConnectorContract
from .exceptions import (
    SSHError,
    InvalidArgumentError,
    IllegalStateError,
    SSHConnectionError,
    AuthenticationError,
    ScpError,
)
from .session import Session, SessionState, Scp
from .sftp import Sftp
from .stream import ExecutionStream
from .terminal import Terminal
from .transport import DimensionUnit, TransportProvider, get_provider, set_provider

__all__ = [
    # Connection
    "Connect",
    "Auth",
    "AuthMethod",
    "ConnectorContract",
    "AuthenticatorContract",
    # Sessions
    "Session",
    "SessionState",
    "Scp",
    "Sftp",
    "ExecutionStream",
    "Terminal",
    "DimensionUnit",
    # Transport
    "TransportProvider",
    "get_provider",
    "set_provider",
    # Settings
    "ClientSettings",
    "SettingsManager",
    "get_settings",
    # Errors
    "SSHError",
    "InvalidArgumentError",
    "IllegalStateError",
    "SSHConnectionError",
    "AuthenticationError",
    "ScpError",
]
