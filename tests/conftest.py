"""Shared fixtures: an in-memory stand-in for a paramiko client and a wired-up app."""

from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from cerberus.auth import AuthService, TokenRegistry
from cerberus.errors import InvalidCredentialsError
from cerberus.server import create_app
from cerberus.ssh import RemoteSession, SessionDirectory

Reply = Tuple[str, str, int]


class FakeChannel:
    """Just enough of ``paramiko.Channel`` for the executor's polling loop."""

    def __init__(self, client: "FakeClient"):
        self.client = client
        self.command = ""
        self._stdout = b""
        self._stderr = b""
        self._exit_status = -1
        self.closed = False

    def exec_command(self, command: str) -> None:
        self.command = command
        self.client.commands.append(command)
        stdout, stderr, exit_status = self.client.reply_for(command)
        self._stdout = stdout.encode("utf-8")
        self._stderr = stderr.encode("utf-8")
        self._exit_status = exit_status

    def recv_ready(self) -> bool:
        return bool(self._stdout)

    def recv(self, size: int) -> bytes:
        chunk, self._stdout = self._stdout[:size], self._stdout[size:]
        return chunk

    def recv_stderr_ready(self) -> bool:
        return bool(self._stderr)

    def recv_stderr(self, size: int) -> bytes:
        chunk, self._stderr = self._stderr[:size], self._stderr[size:]
        return chunk

    def exit_status_ready(self) -> bool:
        return True

    def recv_exit_status(self) -> int:
        return self._exit_status

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, client: "FakeClient"):
        self.client = client

    def is_active(self) -> bool:
        return self.client.active

    def open_session(self) -> FakeChannel:
        return FakeChannel(self.client)


class FakeClient:
    """Canned replies keyed by exact command, falling back to the longest matching prefix."""

    def __init__(self):
        self.active = True
        self.commands: List[str] = []
        self._exact: Dict[str, Reply] = {}
        self._prefixes: Dict[str, Reply] = {}

    def on(self, command: str, stdout: str = "", stderr: str = "", exit_status: int = 0) -> "FakeClient":
        self._exact[command] = (stdout, stderr, exit_status)
        return self

    def on_prefix(self, prefix: str, stdout: str = "", stderr: str = "", exit_status: int = 0) -> "FakeClient":
        self._prefixes[prefix] = (stdout, stderr, exit_status)
        return self

    def reply_for(self, command: str) -> Reply:
        if command in self._exact:
            return self._exact[command]
        matches = [prefix for prefix in self._prefixes if command.startswith(prefix)]
        if matches:
            return self._prefixes[max(matches, key=len)]
        return "", f"sh: unexpected command: {command}", 127

    def get_transport(self) -> Optional[FakeTransport]:
        return FakeTransport(self) if self.active else None

    def close(self) -> None:
        self.active = False


class StubSession(RemoteSession):
    """RemoteSession whose connect accepts the password "secret" and nothing else."""

    def connect(self, password=None) -> None:
        if password != "secret":
            raise InvalidCredentialsError("invalid credentials")
        self.client = FakeClient()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def session(fake_client: FakeClient) -> RemoteSession:
    return RemoteSession("session-1", "root", "example.test", 22, client=fake_client)


@pytest.fixture
def directory(session: RemoteSession) -> SessionDirectory:
    directory = SessionDirectory()
    directory.put(session)
    return directory


@pytest.fixture
def tokens() -> TokenRegistry:
    return TokenRegistry(ttl_seconds=3600)


@pytest.fixture
def auth(directory: SessionDirectory, tokens: TokenRegistry) -> AuthService:
    return AuthService(directory, tokens, session_factory=StubSession)


@pytest.fixture
def token(tokens: TokenRegistry, session: RemoteSession) -> str:
    return tokens.issue(session.id, session.principal).token


@pytest.fixture
def api(directory: SessionDirectory, tokens: TokenRegistry, auth: AuthService) -> TestClient:
    return TestClient(create_app(directory, tokens, auth))


@pytest.fixture
def headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def session_factory():
    return StubSession
