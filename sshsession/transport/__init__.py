"""
Transport layer - the SSH primitives the session layer is built on.

- TransportProvider: abstract interface (connect, auth, channels, scp, sftp)
- ParamikoProvider: the default implementation on top of Paramiko
- Handle / HandleKind: tagged resources returned by a provider
"""

from typing import Optional

from .base import (
    DimensionUnit,
    FingerprintAlgorithm,
    FingerprintEncoding,
    Handle,
    HandleKind,
    SftpStat,
    Substream,
    TransportProvider,
    sftp_locator,
)

__all__ = [
    "DimensionUnit",
    "FingerprintAlgorithm",
    "FingerprintEncoding",
    "Handle",
    "HandleKind",
    "SftpStat",
    "Substream",
    "TransportProvider",
    "sftp_locator",
    "get_provider",
    "set_provider",
]

# Process-wide default provider, created on first use
_provider: Optional[TransportProvider] = None


def get_provider() -> TransportProvider:
    """Get the default transport provider (Paramiko unless replaced)."""
    global _provider
    if _provider is None:
        from .paramiko_provider import ParamikoProvider
        _provider = ParamikoProvider()
    return _provider


def set_provider(provider: Optional[TransportProvider]) -> None:
    """Replace the default transport provider. None restores Paramiko on next use."""
    global _provider
    _provider = provider
