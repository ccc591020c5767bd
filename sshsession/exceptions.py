"""
Exception hierarchy for sshsession.
"""


class SSHError(Exception):
    """Base class for all sshsession errors."""
    pass


class InvalidArgumentError(SSHError, ValueError):
    """
    Raised for malformed arguments: bad ports, unknown enum names, or a
    handle of the wrong kind (or an already closed one).

    Always detected before the transport provider is called.
    """
    pass


class IllegalStateError(SSHError, RuntimeError):
    """Raised when a write-once setting is changed to a different value."""
    pass


class SSHConnectionError(SSHError, ConnectionError):
    """Raised when the transport provider could not open a session."""
    pass


class AuthenticationError(SSHError):
    """Raised when the server rejected the chosen authentication method."""
    pass


class ScpError(SSHError):
    """
    Raised by the SCP protocol when the remote side answers with a soft or
    hard error, or closes the channel mid-transfer.

    The provider converts this into a False result.
    """
    pass
