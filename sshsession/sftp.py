"""
Remote filesystem view over an SFTP handle.
"""

from __future__ import annotations
import logging
import posixpath
from typing import Optional, Union

from . import valid
from .exceptions import InvalidArgumentError
from .transport.base import Handle, SftpStat, sftp_locator

logger = logging.getLogger(__name__)


class Sftp:
    """
    Remote path operations.

    File contents are addressed through stream_uri() locators; the other
    operations pass the path straight to the provider and return its result
    (False/None on failure).
    """

    def __init__(self, handle: Handle):
        if not valid.sftp_handle(handle):
            raise InvalidArgumentError("Parameter must be a valid SFTP handle")
        self._handle = handle
        self._provider = handle.provider

    @property
    def handle(self) -> Handle:
        return self._handle

    def _check_open(self) -> Handle:
        if not valid.sftp_handle(self._handle):
            raise InvalidArgumentError("SFTP handle has been closed")
        return self._handle

    def close(self) -> None:
        self._provider.close_sftp(self._handle)

    def __enter__(self) -> Sftp:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Stream access
    # -------------------------------------------------------------------------

    def stream_uri(self, remote_file: str) -> str:
        """
        Locator for remote_file, resolved against the current remote directory.

        Absolute paths are used as given.
        """
        handle = self._check_open()
        cwd = self._provider.sftp_realpath(handle, ".") or "/"
        return sftp_locator(handle, posixpath.join(cwd, remote_file))

    def get_contents(self, remote_file: str) -> bytes:
        """Contents of a remote file."""
        with self._provider.sftp_open(self.stream_uri(remote_file), "rb") as f:
            return f.read()

    def put_contents(self, remote_file: str, contents: Union[str, bytes]) -> int:
        """Write contents to a remote file, returning the number of bytes written."""
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        with self._provider.sftp_open(self.stream_uri(remote_file), "wb") as f:
            f.write(contents)
        logger.debug(f"Wrote {len(contents)} bytes to {remote_file}")
        return len(contents)

    def fopen(self, remote_file: str, mode: str = "r"):
        """Open a remote file. The caller closes it."""
        return self._provider.sftp_open(self.stream_uri(remote_file), mode)

    # -------------------------------------------------------------------------
    # Path operations
    # -------------------------------------------------------------------------

    def chmod(self, remote_file: str, mode: int) -> bool:
        return self._provider.sftp_chmod(self._check_open(), remote_file, mode)

    def lstat(self, path: str) -> Optional[SftpStat]:
        """Stat a path without following symlinks."""
        return self._provider.sftp_lstat(self._check_open(), path)

    def mkdir(self, dirname: str, mode: int = 0o777, recursive: bool = False) -> bool:
        return self._provider.sftp_mkdir(self._check_open(), dirname, mode, recursive)

    def readlink(self, link: str) -> Optional[str]:
        """Target of a symbolic link."""
        return self._provider.sftp_readlink(self._check_open(), link)

    def realpath(self, path: str) -> Optional[str]:
        return self._provider.sftp_realpath(self._check_open(), path)

    def rename(self, src: str, dst: str) -> bool:
        return self._provider.sftp_rename(self._check_open(), src, dst)

    def rmdir(self, dirname: str) -> bool:
        return self._provider.sftp_rmdir(self._check_open(), dirname)

    def stat(self, path: str) -> Optional[SftpStat]:
        return self._provider.sftp_stat(self._check_open(), path)

    def symlink(self, target: str, link: str) -> bool:
        return self._provider.sftp_symlink(self._check_open(), target, link)

    def unlink(self, remote_file: str) -> bool:
        return self._provider.sftp_unlink(self._check_open(), remote_file)

    def __repr__(self) -> str:
        return f"<Sftp #{self._handle.ident}>"
