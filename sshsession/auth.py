"""
Authentication strategies.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from . import valid
from .contracts import AuthenticatorContract
from .exceptions import InvalidArgumentError
from .transport.base import Handle

logger = logging.getLogger(__name__)


class AuthMethod(Enum):
    """Supported authentication methods."""
    PASSWORD = "password"
    KEY_FILE = "key_file"
    AGENT = "agent"


@dataclass(frozen=True)
class PasswordArgs:
    username: str
    password: str = ""

    def __repr__(self) -> str:
        return f"PasswordArgs(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class KeyFileArgs:
    username: str
    pubkey_file: Optional[str]
    privkey_file: str
    passphrase: Optional[str] = None

    def __repr__(self) -> str:
        passphrase = "'***'" if self.passphrase else "None"
        return (
            f"KeyFileArgs(username={self.username!r}, pubkey_file={self.pubkey_file!r}, "
            f"privkey_file={self.privkey_file!r}, passphrase={passphrase})"
        )


@dataclass(frozen=True)
class AgentArgs:
    username: str


AuthArgs = Union[PasswordArgs, KeyFileArgs, AgentArgs]


class Auth(AuthenticatorContract):
    """
    A chosen authentication method bound to its arguments.

    Usage:
        auth = Auth.via_password("admin", "secret")
        auth = Auth.via_key_file("admin", "~/.ssh/id_ed25519.pub", "~/.ssh/id_ed25519")
        auth = Auth.via_agent("admin")

    One attempt per call; there is no fallback between methods.
    """

    def __init__(self, method: AuthMethod, args: AuthArgs):
        self._method = method
        self._args = args

    @classmethod
    def via_password(cls, username: str, password: str) -> Auth:
        """Log in with username and password."""
        return cls(AuthMethod.PASSWORD, PasswordArgs(username, password))

    @classmethod
    def via_key_file(
        cls,
        username: str,
        pubkey_file: Optional[str],
        privkey_file: str,
        passphrase: Optional[str] = None,
    ) -> Auth:
        """
        Log in with a specific private key.

        Args:
            username: Remote user
            pubkey_file: Public key (e.g. id_rsa.pub) or OpenSSH certificate
            privkey_file: Private key (e.g. id_rsa)
            passphrase: Passphrase protecting the private key
        """
        return cls(AuthMethod.KEY_FILE, KeyFileArgs(username, pubkey_file, privkey_file, passphrase))

    @classmethod
    def via_agent(cls, username: str) -> Auth:
        """
        Log in with keys held by the running SSH agent.

        Hardware-backed keys may prompt for a touch during authentication.
        """
        return cls(AuthMethod.AGENT, AgentArgs(username))

    @property
    def method(self) -> AuthMethod:
        return self._method

    @property
    def args(self) -> AuthArgs:
        return self._args

    @property
    def username(self) -> str:
        return self._args.username

    def authenticate_session_resource(self, handle: Handle) -> bool:
        if not valid.session_handle(handle):
            raise InvalidArgumentError("Parameter must be a valid SSH session handle")

        provider = handle.provider
        args = self._args
        logger.info(f"Trying auth method: {self._method.value} as {args.username}")

        if self._method == AuthMethod.PASSWORD:
            result = provider.auth_password(handle, args.username, args.password)
        elif self._method == AuthMethod.KEY_FILE:
            result = provider.auth_public_key_file(
                handle, args.username, args.pubkey_file, args.privkey_file, args.passphrase
            )
        elif self._method == AuthMethod.AGENT:
            result = provider.auth_agent(handle, args.username)
        else:
            raise InvalidArgumentError(f"Unsupported auth method: {self._method}")

        return bool(result)

    def __repr__(self) -> str:
        return f"Auth({self._method.value}, {self._args!r})"
