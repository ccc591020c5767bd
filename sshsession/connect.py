"""
Connector - where to connect.
"""

from __future__ import annotations
import logging
from typing import Optional, Union

from . import valid
from .contracts import ConnectorContract
from .exceptions import InvalidArgumentError
from .transport import get_provider
from .transport.base import Handle, TransportProvider

logger = logging.getLogger(__name__)

DEFAULT_PORT = 22


class Connect(ConnectorContract):
    """
    Target host and port of an SSH connection.

    Usage:
        connector = Connect.to("switch1.example.com")
        connector = Connect.to("10.0.0.5", 2222)
    """

    def __init__(
        self,
        host: str,
        port: Union[int, str, None] = None,
        provider: TransportProvider = None,
    ):
        if port is None:
            port = DEFAULT_PORT

        if not valid.tcp_port(port):
            raise InvalidArgumentError(
                f"port must be an integer between {valid.MIN_PORT} and {valid.MAX_PORT}, got {port!r}"
            )

        self._host = host
        self._port = int(port)
        self._provider = provider

    @classmethod
    def to(
        cls,
        host: str,
        port: Union[int, str, None] = None,
        provider: TransportProvider = None,
    ) -> Connect:
        return cls(host, port, provider)

    def host(self) -> str:
        return self._host

    def port(self) -> int:
        return self._port

    @property
    def provider(self) -> TransportProvider:
        return self._provider or get_provider()

    def create_session_resource(self) -> Optional[Handle]:
        """Open a raw session handle. Returns None on failure, never retries."""
        handle = self.provider.connect(self._host, self._port)
        if not handle:
            logger.warning(f"No session handle for {self._host}:{self._port}")
        return handle

    def __repr__(self) -> str:
        return f"Connect({self._host!r}, {self._port})"
