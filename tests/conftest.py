"""Shared fixtures: an in-memory transport provider."""

import threading
from collections import deque

import pytest

from sshsession import config as config_module
from sshsession.config import ClientSettings
from sshsession.transport import set_provider
from sshsession.transport.base import (
    FingerprintAlgorithm,
    FingerprintEncoding,
    HandleKind,
    SftpStat,
    Substream,
    TransportProvider,
)

FAKE_HOST_KEY_DIGEST = bytes(range(20))


class FeedSubstream(Substream):
    """One side of a fake channel. feed() adds data, finish() signals EOF."""

    def __init__(self, chunk_size=16):
        super().__init__(chunk_size)
        self._chunks = deque()
        self._eof = False
        self._cond = threading.Condition()
        self.sent = bytearray()
        self.sibling = None
        self.closed = False

    def feed(self, data: bytes):
        with self._cond:
            self._chunks.append(data)
            self._cond.notify_all()

    def finish(self):
        with self._cond:
            self._eof = True
            self._cond.notify_all()

    def recv(self, size):
        with self._cond:
            while not self._chunks and not self._eof and not self.closed:
                self._cond.wait()
            if not self._chunks:
                return b""
            chunk = self._chunks.popleft()
            if len(chunk) > size:
                self._chunks.appendleft(chunk[size:])
                chunk = chunk[:size]
            return chunk

    def ready(self):
        with self._cond:
            return bool(self._chunks)

    def send(self, data):
        self.sent.extend(data)
        return len(data)

    def close(self):
        with self._cond:
            self.closed = True
            self._cond.notify_all()


class FakeChannel:
    def __init__(self, stdout=b"", stderr=b"", finished=True):
        self.stdout = FeedSubstream()
        self.stderr = FeedSubstream()
        self.stdout.sibling = self.stderr
        if stdout:
            self.stdout.feed(stdout)
        if stderr:
            self.stderr.feed(stderr)
        if finished:
            self.finish()

    def finish(self):
        self.stdout.finish()
        self.stderr.finish()


class FakeFile:
    def __init__(self, store, path, mode):
        self._store = store
        self._path = path
        self._mode = mode
        self._data = bytearray() if "w" in mode else bytearray(store.get(path, b""))

    def read(self):
        return bytes(self._data)

    def write(self, data):
        self._data.extend(data)
        return len(data)

    def close(self):
        if "w" in self._mode:
            self._store[self._path] = bytes(self._data)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeProvider(TransportProvider):
    """
    Records every primitive call in self.calls as (name, *args).

    Users in `users` log in with a password, paths in `keys` are accepted
    private keys, names in `agent_users` succeed with agent auth.
    Commands are answered from `outputs`; commands listed in `keep_open`
    get a channel that never reaches EOF until finished by the test.
    """

    def __init__(self, users=None, keys=(), agent_users=(), refuse_connect=False):
        super().__init__()
        self.users = {"alice": "secret"} if users is None else users
        self.keys = set(keys)
        self.agent_users = set(agent_users)
        self.refuse_connect = refuse_connect
        self.calls = []
        self.outputs = {}
        self.keep_open = set()
        self.channels = []
        self.remote_files = {}
        self.cwd = "/home/alice"
        self.fail_sftp = False

    def _record(self, name, *args):
        self.calls.append((name,) + args)

    def called(self, name):
        return [c for c in self.calls if c[0] == name]

    # Session

    def connect(self, host, port):
        self._record("connect", host, port)
        if self.refuse_connect:
            return None
        return self._new_handle(HandleKind.SESSION, {"host": host, "port": port})

    def disconnect(self, handle):
        self._record("disconnect", handle)
        handle.mark_closed()

    def auth_password(self, handle, username, password):
        self._record("auth_password", handle, username, password)
        return self.users.get(username) == password

    def auth_public_key_file(self, handle, username, pubkey_file, privkey_file, passphrase=None):
        self._record("auth_public_key_file", handle, username, pubkey_file, privkey_file, passphrase)
        return privkey_file in self.keys

    def auth_agent(self, handle, username):
        self._record("auth_agent", handle, username)
        return username in self.agent_users

    def host_fingerprint(self, handle, algorithm, encoding):
        self._record("host_fingerprint", handle, algorithm, encoding)
        raw = FAKE_HOST_KEY_DIGEST[:16] if algorithm is FingerprintAlgorithm.MD5 else FAKE_HOST_KEY_DIGEST
        return raw if encoding is FingerprintEncoding.RAW else raw.hex().upper()

    # Channels

    def _channel(self, key):
        stdout, stderr = self.outputs.get(key, (b"", b""))
        channel = FakeChannel(stdout, stderr, finished=key not in self.keep_open)
        self.channels.append(channel)
        return self._new_handle(HandleKind.STREAM, channel.stdout)

    def open_exec(self, handle, command, pty=None, env=None, width=80, height=25, dimension_unit=None):
        self._record("open_exec", handle, command, pty, env, width, height, dimension_unit)
        return self._channel(command)

    def open_shell(self, handle, pty_type, env=None, width=80, height=25, dimension_unit=None):
        self._record("open_shell", handle, pty_type, env, width, height, dimension_unit)
        return self._channel("<shell>")

    def _open_stderr(self, stream):
        return getattr(stream.raw, "sibling", None)

    # SCP

    def scp_send(self, handle, local_path, remote_path, mode):
        self._record("scp_send", handle, local_path, remote_path, mode)
        try:
            with open(local_path, "rb") as f:
                self.remote_files[remote_path] = f.read()
        except OSError:
            return False
        return True

    def scp_receive(self, handle, remote_path, local_path):
        self._record("scp_receive", handle, remote_path, local_path)
        if remote_path not in self.remote_files:
            return False
        with open(local_path, "wb") as f:
            f.write(self.remote_files[remote_path])
        return True

    # SFTP

    def open_sftp(self, handle):
        self._record("open_sftp", handle)
        return self._new_handle(HandleKind.SFTP, object())

    def close_sftp(self, sftp):
        self._record("close_sftp", sftp)
        sftp.mark_closed()

    def sftp_chmod(self, sftp, path, mode):
        self._record("sftp_chmod", sftp, path, mode)
        return not self.fail_sftp

    def sftp_lstat(self, sftp, path):
        self._record("sftp_lstat", sftp, path)
        return None if self.fail_sftp else SftpStat(size=0, mode=0o120777)

    def sftp_mkdir(self, sftp, path, mode, recursive=False):
        self._record("sftp_mkdir", sftp, path, mode, recursive)
        return not self.fail_sftp

    def sftp_readlink(self, sftp, path):
        self._record("sftp_readlink", sftp, path)
        return None if self.fail_sftp else "/target"

    def sftp_realpath(self, sftp, path):
        self._record("sftp_realpath", sftp, path)
        return self.cwd if path == "." else path

    def sftp_rename(self, sftp, src, dst):
        self._record("sftp_rename", sftp, src, dst)
        return not self.fail_sftp

    def sftp_rmdir(self, sftp, path):
        self._record("sftp_rmdir", sftp, path)
        return not self.fail_sftp

    def sftp_stat(self, sftp, path):
        self._record("sftp_stat", sftp, path)
        data = self.remote_files.get(path)
        return None if data is None else SftpStat(size=len(data), mode=0o100644)

    def sftp_symlink(self, sftp, target, link):
        self._record("sftp_symlink", sftp, target, link)
        return not self.fail_sftp

    def sftp_unlink(self, sftp, path):
        self._record("sftp_unlink", sftp, path)
        return self.remote_files.pop(path, None) is not None

    def _sftp_open_path(self, sftp, path, mode):
        self._record("sftp_open", sftp, path, mode)
        return FakeFile(self.remote_files, path, mode)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Never read the developer's ~/.sshsession config; reset globals."""
    monkeypatch.setenv(config_module.CONFIG_ENV_VAR, str(tmp_path / "config.yaml"))
    monkeypatch.setattr(config_module, "_manager", None)
    yield
    set_provider(None)


@pytest.fixture
def settings():
    return ClientSettings()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def session_handle(provider):
    return provider.connect("host.example.com", 22)
