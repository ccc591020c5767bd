"""
Abstract collaborators of a Session.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from .transport.base import Handle


class ConnectorContract(ABC):
    """Knows where to connect and how to open a raw session handle."""

    @abstractmethod
    def host(self) -> str:
        """Host name or IP to connect to."""
        pass

    @abstractmethod
    def port(self) -> int:
        """TCP port to connect to."""
        pass

    @abstractmethod
    def create_session_resource(self) -> Optional[Handle]:
        """Open a session handle, or return None on failure."""
        pass


class AuthenticatorContract(ABC):
    """Authenticates a session handle it does not own."""

    @abstractmethod
    def authenticate_session_resource(self, handle: Handle) -> bool:
        """
        Authenticate a session handle.

        Raises:
            InvalidArgumentError: if handle is not a valid session handle
        """
        pass
