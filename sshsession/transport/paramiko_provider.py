"""
Transport provider implementation using Paramiko.
"""

from __future__ import annotations
import logging
import os
import socket
import time
import warnings
from pathlib import Path
from typing import Mapping, Optional

import paramiko
from cryptography.hazmat.primitives import hashes

from ..config import ClientSettings, get_settings
from ..exceptions import ScpError
from . import scp
from .base import (
    DimensionUnit,
    FingerprintAlgorithm,
    FingerprintEncoding,
    Handle,
    HandleKind,
    SftpStat,
    Substream,
    TransportProvider,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Legacy Device Support - Algorithm Configuration
# =============================================================================
# Broad compatibility with older servers while still preferring modern
# algorithms. Only applied when settings.legacy_algorithms is enabled.

PREFERRED_CIPHERS = (
    "aes128-ctr",
    "aes192-ctr",
    "aes256-ctr",
    "aes128-gcm@openssh.com",
    "aes256-gcm@openssh.com",
    "chacha20-poly1305@openssh.com",
    "aes128-cbc",
    "aes192-cbc",
    "aes256-cbc",
    "3des-cbc",
)

PREFERRED_KEX = (
    "curve25519-sha256",
    "curve25519-sha256@libssh.org",
    "ecdh-sha2-nistp256",
    "ecdh-sha2-nistp384",
    "ecdh-sha2-nistp521",
    "diffie-hellman-group14-sha256",
    "diffie-hellman-group16-sha512",
    "diffie-hellman-group-exchange-sha256",
    "diffie-hellman-group14-sha1",
    "diffie-hellman-group-exchange-sha1",
    "diffie-hellman-group1-sha1",
)

PREFERRED_KEYS = (
    "rsa-sha2-512",
    "rsa-sha2-256",
    "ssh-rsa",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521",
    "ssh-ed25519",
)

CERT_SUFFIX = "-cert-v01@openssh.com"

# Seconds between checks while a blocking read waits on the other side
POLL_INTERVAL = 0.01


def _apply_legacy_algorithms(transport: paramiko.Transport) -> None:
    """
    Prefer algorithms that older servers understand, filtered to what this
    Paramiko build supports.
    """
    warnings.filterwarnings('ignore', category=DeprecationWarning, module='paramiko')

    security = transport.get_security_options()
    try:
        security.ciphers = tuple(c for c in PREFERRED_CIPHERS if c in security.ciphers)
        security.kex = tuple(k for k in PREFERRED_KEX if k in security.kex)
        security.key_types = tuple(k for k in PREFERRED_KEYS if k in security.key_types)
    except ValueError as e:
        logger.warning(f"Could not apply legacy algorithm settings: {e}")
        return

    logger.debug(
        f"Legacy algorithms: {len(security.ciphers)} ciphers, "
        f"{len(security.kex)} kex, {len(security.key_types)} keys"
    )


def _load_private_key(key_path: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Load a private key file, trying each supported key type in turn.

    Raises:
        paramiko.PasswordRequiredException: key is encrypted and no passphrase given
        paramiko.SSHException: key could not be parsed
    """
    key_classes = [
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ]

    # Add DSA if available (older Paramiko)
    if hasattr(paramiko, 'DSSKey'):
        key_classes.append(paramiko.DSSKey)

    for key_class in key_classes:
        try:
            return key_class.from_private_key_file(key_path, password=passphrase)
        except paramiko.PasswordRequiredException:
            raise
        except (paramiko.SSHException, ValueError):
            continue

    raise paramiko.SSHException(f"Unable to parse private key {key_path}")


def _attach_public_key(pkey: paramiko.PKey, pubkey_file: str) -> bool:
    """
    Check the public key file against the loaded private key.

    OpenSSH certificates are loaded onto the key instead, so the server
    sees the certificate during auth.
    """
    try:
        blob = paramiko.PublicBlob.from_file(pubkey_file)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read public key {pubkey_file}: {e}")
        return False

    if blob.key_type.endswith(CERT_SUFFIX):
        try:
            pkey.load_certificate(pubkey_file)
        except ValueError as e:
            logger.warning(f"Certificate {pubkey_file} does not match private key: {e}")
            return False
        return True

    if blob.key_blob != pkey.asbytes():
        logger.warning(f"Public key {pubkey_file} does not match private key")
        return False
    return True


def _pty_kwargs(width: int, height: int, dimension_unit: DimensionUnit) -> dict:
    """Map terminal dimensions onto Channel.get_pty keyword arguments."""
    if dimension_unit is DimensionUnit.PIXELS:
        return {'width': 0, 'height': 0, 'width_pixels': width, 'height_pixels': height}
    return {'width': width, 'height': height}


def _to_stat(attrs: paramiko.SFTPAttributes) -> SftpStat:
    return SftpStat(
        size=attrs.st_size,
        uid=attrs.st_uid,
        gid=attrs.st_gid,
        mode=attrs.st_mode,
        atime=attrs.st_atime,
        mtime=attrs.st_mtime,
    )


class ChannelSubstream(Substream):
    """
    stdout or stderr side of a paramiko Channel.

    Both sides share one flow-control window, and only reading a side frees
    the window space its data occupies. A blocking read on one side
    therefore moves data that arrives on the other side into the sibling's
    buffer while it waits.
    """

    def __init__(self, channel: paramiko.Channel, stderr: bool = False,
                 chunk_size: int = 32768):
        super().__init__(chunk_size)
        self.channel = channel
        self.stderr = stderr
        self.sibling: Optional[ChannelSubstream] = None

    def _recv(self, size: int) -> bytes:
        if self.stderr:
            return self.channel.recv_stderr(size)
        return self.channel.recv(size)

    def recv(self, size: int) -> bytes:
        if self.sibling is not None:
            self._drain_sibling_until_ready()
        return self._recv(size)

    def _drain_sibling_until_ready(self) -> None:
        channel = self.channel
        while not self.ready() and not channel.eof_received and not channel.closed:
            if self.sibling.ready():
                self.sibling._buffer.extend(self.sibling._recv(self.sibling.chunk_size))
            else:
                time.sleep(POLL_INTERVAL)

    def ready(self) -> bool:
        if self.stderr:
            return self.channel.recv_stderr_ready()
        return self.channel.recv_ready()

    def send(self, data: bytes) -> int:
        if self.stderr:
            return super().send(data)
        self.channel.sendall(data)
        return len(data)

    def close(self) -> None:
        # The stderr side shares the channel; only the primary side closes it.
        if not self.stderr:
            self.channel.close()


class ParamikoProvider(TransportProvider):
    """
    Paramiko-backed transport provider.

    Session handles wrap a paramiko.Transport, stream handles a
    ChannelSubstream, sftp handles a paramiko.SFTPClient.
    """

    def __init__(self, settings: ClientSettings = None):
        super().__init__()
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def connect(self, host: str, port: int) -> Optional[Handle]:
        timeout = self.settings.connect_timeout
        logger.info(f"Connecting to {host}:{port}")

        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            logger.warning(f"Could not connect to {host}:{port}: {e}")
            return None

        transport = paramiko.Transport(sock)
        if self.settings.legacy_algorithms:
            _apply_legacy_algorithms(transport)

        try:
            transport.start_client(timeout=timeout)
        except (paramiko.SSHException, OSError) as e:
            logger.warning(f"SSH handshake with {host}:{port} failed: {e}")
            transport.close()
            return None

        if not self._verify_host_key(host, port, transport):
            transport.close()
            return None

        if self.settings.keepalive_interval > 0:
            transport.set_keepalive(self.settings.keepalive_interval)

        logger.debug(
            f"Negotiated: cipher={transport.remote_cipher}, "
            f"mac={transport.remote_mac}, host_key_type={transport.host_key_type}"
        )
        return self._new_handle(HandleKind.SESSION, transport)

    def _load_host_keys(self) -> paramiko.HostKeys:
        host_keys = paramiko.HostKeys()
        paths = []
        if self.settings.load_system_host_keys:
            paths.append(Path.home() / ".ssh" / "known_hosts")
        if self.settings.known_hosts_file:
            paths.append(Path(self.settings.known_hosts_file).expanduser())

        for path in paths:
            if not path.exists():
                continue
            try:
                host_keys.load(str(path))
            except (OSError, paramiko.SSHException) as e:
                logger.warning(f"Could not load known hosts {path}: {e}")
        return host_keys

    def _verify_host_key(self, host: str, port: int, transport: paramiko.Transport) -> bool:
        """Check the server key against known_hosts according to host_key_policy."""
        key = transport.get_remote_server_key()
        lookup = host if port == 22 else f"[{host}]:{port}"
        known = self._load_host_keys().lookup(lookup)

        if known is not None and key.get_name() in known:
            if known[key.get_name()] == key:
                return True
            logger.error(f"Host key for {lookup} does not match known_hosts entry")
            return False

        policy = self.settings.host_key_policy
        if policy == "reject":
            logger.error(f"Unknown {key.get_name()} host key for {lookup}, rejecting")
            return False
        if policy == "warning":
            logger.warning(f"Unknown {key.get_name()} host key for {lookup}")
        else:
            logger.info(f"Accepting new {key.get_name()} host key for {lookup}")
        return True

    def disconnect(self, handle: Handle) -> None:
        if handle.closed:
            return
        handle.raw.close()
        handle.mark_closed()
        logger.info("Disconnected")

    def auth_password(self, handle: Handle, username: str, password: str) -> bool:
        transport: paramiko.Transport = handle.raw
        try:
            transport.auth_password(username, password)
        except paramiko.AuthenticationException as e:
            logger.info(f"Password auth failed for {username}: {e}")
            return False
        except paramiko.SSHException as e:
            logger.warning(f"Password auth error for {username}: {e}")
            return False
        return transport.is_authenticated()

    def auth_public_key_file(
        self,
        handle: Handle,
        username: str,
        pubkey_file: Optional[str],
        privkey_file: str,
        passphrase: Optional[str] = None,
    ) -> bool:
        transport: paramiko.Transport = handle.raw
        try:
            pkey = _load_private_key(os.path.expanduser(privkey_file), passphrase)
        except paramiko.PasswordRequiredException:
            logger.warning(f"Private key {privkey_file} requires a passphrase")
            return False
        except (paramiko.SSHException, OSError) as e:
            logger.warning(f"Could not load private key {privkey_file}: {e}")
            return False

        if pubkey_file and not _attach_public_key(pkey, os.path.expanduser(pubkey_file)):
            return False

        try:
            transport.auth_publickey(username, pkey)
        except paramiko.AuthenticationException as e:
            logger.info(f"Key auth failed for {username}: {e}")
            return False
        except paramiko.SSHException as e:
            logger.warning(f"Key auth error for {username}: {e}")
            return False
        return transport.is_authenticated()

    def auth_agent(self, handle: Handle, username: str) -> bool:
        transport: paramiko.Transport = handle.raw
        agent = None
        try:
            agent = paramiko.Agent()
            keys = agent.get_keys()
            if not keys:
                logger.warning("SSH agent has no keys")
                return False

            for key in keys:
                logger.debug(f"Trying agent key {key.get_name()}")
                try:
                    transport.auth_publickey(username, key)
                except paramiko.AuthenticationException:
                    continue
                except paramiko.SSHException as e:
                    logger.warning(f"Agent auth error for {username}: {e}")
                    return False
                if transport.is_authenticated():
                    return True

            logger.info(f"No agent key accepted for {username}")
            return False
        except paramiko.SSHException as e:
            logger.warning(f"SSH agent unavailable: {e}")
            return False
        finally:
            if agent is not None:
                agent.close()

    def host_fingerprint(
        self,
        handle: Handle,
        algorithm: FingerprintAlgorithm,
        encoding: FingerprintEncoding,
    ):
        key = handle.raw.get_remote_server_key()
        digest = hashes.Hash(hashes.MD5() if algorithm is FingerprintAlgorithm.MD5 else hashes.SHA1())
        digest.update(key.asbytes())
        raw = digest.finalize()
        if encoding is FingerprintEncoding.RAW:
            return raw
        return raw.hex().upper()

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------

    def _open_channel(self, handle: Handle, env: Optional[Mapping[str, str]]) -> paramiko.Channel:
        channel = handle.raw.open_session()
        if env:
            # Servers silently drop variables not allowed by AcceptEnv
            channel.update_environment(dict(env))
        return channel

    def _stream_handle(self, channel: paramiko.Channel) -> Handle:
        raw = ChannelSubstream(channel, chunk_size=self.settings.read_chunk_size)
        return self._new_handle(HandleKind.STREAM, raw)

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
        try:
            channel = self._open_channel(handle, env)
            if pty:
                channel.get_pty(term=pty, **_pty_kwargs(width, height, dimension_unit))
            channel.exec_command(command)
        except paramiko.SSHException as e:
            logger.error(f"Could not execute {command!r}: {e}")
            return None
        logger.debug(f"Exec channel opened for {command!r}")
        return self._stream_handle(channel)

    def open_shell(
        self,
        handle: Handle,
        pty_type: str,
        env: Optional[Mapping[str, str]] = None,
        width: int = 80,
        height: int = 25,
        dimension_unit: DimensionUnit = DimensionUnit.CHARS,
    ) -> Optional[Handle]:
        try:
            channel = self._open_channel(handle, env)
            channel.get_pty(term=pty_type, **_pty_kwargs(width, height, dimension_unit))
            channel.invoke_shell()
        except paramiko.SSHException as e:
            logger.error(f"Could not open shell: {e}")
            return None
        logger.debug(f"Shell channel opened ({pty_type}, {width}x{height} {dimension_unit.value})")
        return self._stream_handle(channel)

    def _open_stderr(self, stream: Handle) -> Optional[Substream]:
        if not isinstance(stream.raw, ChannelSubstream) or stream.raw.stderr:
            return None
        stderr = ChannelSubstream(stream.raw.channel, stderr=True,
                                  chunk_size=self.settings.read_chunk_size)
        stream.raw.sibling = stderr
        stderr.sibling = stream.raw
        return stderr

    # -------------------------------------------------------------------------
    # SCP
    # -------------------------------------------------------------------------

    def scp_send(self, handle: Handle, local_path: str, remote_path: str, mode: int) -> bool:
        try:
            channel = handle.raw.open_session()
        except paramiko.SSHException as e:
            logger.error(f"Could not open scp channel: {e}")
            return False

        try:
            size = scp.send_file(channel, local_path, remote_path, mode)
        except (ScpError, paramiko.SSHException, OSError) as e:
            logger.error(f"scp send {local_path} -> {remote_path} failed: {e}")
            return False
        finally:
            channel.close()

        logger.info(f"scp sent {local_path} -> {remote_path} ({size} bytes)")
        return True

    def scp_receive(self, handle: Handle, remote_path: str, local_path: str) -> bool:
        try:
            channel = handle.raw.open_session()
        except paramiko.SSHException as e:
            logger.error(f"Could not open scp channel: {e}")
            return False

        try:
            size = scp.receive_file(channel, remote_path, local_path)
        except (ScpError, paramiko.SSHException, OSError) as e:
            logger.error(f"scp receive {remote_path} -> {local_path} failed: {e}")
            return False
        finally:
            channel.close()

        logger.info(f"scp received {remote_path} -> {local_path} ({size} bytes)")
        return True

    # -------------------------------------------------------------------------
    # SFTP
    # -------------------------------------------------------------------------

    def open_sftp(self, handle: Handle) -> Optional[Handle]:
        try:
            client = paramiko.SFTPClient.from_transport(handle.raw)
        except paramiko.SSHException as e:
            logger.error(f"Could not open sftp channel: {e}")
            return None
        if client is None:
            return None
        return self._new_handle(HandleKind.SFTP, client)

    def close_sftp(self, sftp: Handle) -> None:
        if sftp.closed:
            return
        sftp.raw.close()
        sftp.mark_closed()

    def _call(self, sftp: Handle, name: str, *args):
        """Run an SFTPClient method; IOError/SSHException become None."""
        try:
            return getattr(sftp.raw, name)(*args)
        except (IOError, paramiko.SSHException) as e:
            logger.warning(f"sftp {name}{args} failed: {e}")
            return None

    def _succeeded(self, sftp: Handle, name: str, *args) -> bool:
        try:
            getattr(sftp.raw, name)(*args)
        except (IOError, paramiko.SSHException) as e:
            logger.warning(f"sftp {name}{args} failed: {e}")
            return False
        return True

    def sftp_chmod(self, sftp: Handle, path: str, mode: int) -> bool:
        return self._succeeded(sftp, "chmod", path, mode)

    def sftp_lstat(self, sftp: Handle, path: str) -> Optional[SftpStat]:
        attrs = self._call(sftp, "lstat", path)
        return _to_stat(attrs) if attrs is not None else None

    def sftp_mkdir(self, sftp: Handle, path: str, mode: int, recursive: bool = False) -> bool:
        if not recursive:
            return self._succeeded(sftp, "mkdir", path, mode)

        client: paramiko.SFTPClient = sftp.raw
        current = "/" if path.startswith("/") else ""
        for part in [p for p in path.split("/") if p]:
            current = f"{current}{part}" if current in ("", "/") else f"{current}/{part}"
            try:
                client.stat(current)
                continue
            except IOError:
                pass
            if not self._succeeded(sftp, "mkdir", current, mode):
                return False
        return True

    def sftp_readlink(self, sftp: Handle, path: str) -> Optional[str]:
        return self._call(sftp, "readlink", path)

    def sftp_realpath(self, sftp: Handle, path: str) -> Optional[str]:
        return self._call(sftp, "normalize", path)

    def sftp_rename(self, sftp: Handle, src: str, dst: str) -> bool:
        return self._succeeded(sftp, "rename", src, dst)

    def sftp_rmdir(self, sftp: Handle, path: str) -> bool:
        return self._succeeded(sftp, "rmdir", path)

    def sftp_stat(self, sftp: Handle, path: str) -> Optional[SftpStat]:
        attrs = self._call(sftp, "stat", path)
        return _to_stat(attrs) if attrs is not None else None

    def sftp_symlink(self, sftp: Handle, target: str, link: str) -> bool:
        return self._succeeded(sftp, "symlink", target, link)

    def sftp_unlink(self, sftp: Handle, path: str) -> bool:
        return self._succeeded(sftp, "remove", path)

    def _sftp_open_path(self, sftp: Handle, path: str, mode: str):
        if "b" not in mode:
            mode += "b"
        return sftp.raw.open(path, mode)
