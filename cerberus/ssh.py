import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import paramiko

from cerberus.config import BUFFER_SIZE, KEEPALIVE_INTERVAL, POLL_INTERVAL, config
from cerberus.errors import ExecutionFailedError, InvalidCredentialsError, SessionNotFoundError
from cerberus.utils import iso_now, json_line, log_error, safe_name


@dataclass
class CommandResult:
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    def check(self) -> str:
        if not self.ok:
            raise ExecutionFailedError(
                f"command exited with status {self.exit_status}",
                command=self.command,
                exit_status=self.exit_status,
                stderr=self.stderr,
            )
        return self.stdout


def run(client: paramiko.SSHClient, command: str) -> CommandResult:
    """Run ``command`` on its own exec channel and wait for it to exit.

    stdout and stderr are drained together so a chatty stderr cannot stall the
    remote process. Transport problems raise ``ExecutionFailedError``; a
    non-zero exit status does not.
    """
    transport = client.get_transport() if client else None
    if transport is None or not transport.is_active():
        raise ExecutionFailedError("ssh transport is not active", command=command)

    try:
        channel = transport.open_session()
        channel.exec_command(command)
    except (paramiko.SSHException, OSError, EOFError) as exc:
        raise ExecutionFailedError(f"failed to start remote command: {exc}", command=command)

    stdout: List[bytes] = []
    stderr: List[bytes] = []
    try:
        while True:
            has_progress = False
            if channel.recv_ready():
                data = channel.recv(BUFFER_SIZE)
                if data:
                    stdout.append(data)
                    has_progress = True
            if channel.recv_stderr_ready():
                err_data = channel.recv_stderr(BUFFER_SIZE)
                if err_data:
                    stderr.append(err_data)
                    has_progress = True
            if channel.exit_status_ready() and not channel.recv_ready() and not channel.recv_stderr_ready():
                break
            if not has_progress:
                time.sleep(POLL_INTERVAL)
        exit_status = channel.recv_exit_status()
    except (paramiko.SSHException, OSError, EOFError) as exc:
        raise ExecutionFailedError(f"remote command aborted: {exc}", command=command)
    finally:
        channel.close()

    return CommandResult(
        command=command,
        stdout=b"".join(stdout).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr).decode("utf-8", errors="replace"),
        exit_status=exit_status,
    )


def execute(client: paramiko.SSHClient, command: str, check: bool = True) -> str:
    result = run(client, command)
    return result.check() if check else result.stdout


class RemoteSession:
    """One authenticated SSH connection bound to a session id and principal."""

    def __init__(
        self,
        session_id: str,
        principal: str,
        host: str,
        port: int = 22,
        log_dirs: Optional[Dict[str, str]] = None,
        client: Optional[paramiko.SSHClient] = None,
    ):
        self.id = session_id
        self.principal = principal
        self.host = host
        self.port = port
        self.client = client
        self.created_at = datetime.now()
        self.last_command = ""
        self.last_command_time: Optional[datetime] = None
        self.lock = threading.Lock()

        self.session_log_path = ""
        if log_dirs and log_dirs.get("sessions_dir"):
            filename = f"{safe_name(self.id)}.log"
            self.session_log_path = os.path.join(log_dirs["sessions_dir"], filename)
        self._log("SYS", {"event": "session_created", "principal": principal, "host": host, "port": port})

    def _log(self, direction: str, payload: Dict[str, Any]) -> None:
        if not self.session_log_path:
            return
        data = {"ts": iso_now(), "dir": direction, "session_id": self.id}
        data.update(payload)
        json_line(self.session_log_path, data)

    def connect(self, password: Optional[str] = None) -> None:
        self.close()
        client = paramiko.SSHClient()
        if config.SSH_VERIFY_HOST_KEY:
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs = {
            "hostname": self.host,
            "port": self.port,
            "username": self.principal,
            "timeout": config.SSH_CONNECT_TIMEOUT,
            "allow_agent": False,
            "look_for_keys": False,
        }
        if password:
            connect_kwargs["password"] = password

        try:
            client.connect(**connect_kwargs)
        except paramiko.AuthenticationException as exc:
            client.close()
            self._log("SYS", {"event": "connect_failed", "error": str(exc)})
            raise InvalidCredentialsError("invalid credentials")
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            self._log("SYS", {"event": "connect_failed", "error": str(exc)})
            raise InvalidCredentialsError(f"failed to connect to {self.host}:{self.port}: {exc}")

        transport = client.get_transport()
        if transport:
            transport.set_keepalive(KEEPALIVE_INTERVAL)
        self.client = client
        self._log("SYS", {"event": "connected", "host": self.host, "port": self.port})

    def is_alive(self) -> bool:
        if not self.client:
            return False
        transport = self.client.get_transport()
        return bool(transport and transport.is_active())

    def run(self, command: str) -> CommandResult:
        if not self.client:
            raise ExecutionFailedError("session is not connected", command=command)
        with self.lock:
            self.last_command = command
            self.last_command_time = datetime.now()
        self._log("IN", {"event": "exec", "command": command})
        result = run(self.client, command)
        self._log("OUT", {"event": "exit", "command": command, "exit_status": result.exit_status})
        return result

    def execute(self, command: str, check: bool = True) -> str:
        result = self.run(command)
        return result.check() if check else result.stdout

    def close(self) -> None:
        if self.client is None:
            return
        try:
            self.client.close()
        except (paramiko.SSHException, OSError) as exc:
            log_error(f"session {self.id} close failed: {exc}")
        self.client = None
        self._log("SYS", {"event": "closed"})

    def info(self) -> Dict[str, Any]:
        with self.lock:
            last_command = self.last_command
            last_command_time = self.last_command_time
        return {
            "id": self.id,
            "principal": self.principal,
            "host": self.host,
            "port": self.port,
            "created_at": self.created_at.isoformat(),
            "alive": self.is_alive(),
            "last_command": last_command,
            "last_command_time": last_command_time.isoformat() if last_command_time else None,
        }


class SessionDirectory:
    def __init__(self):
        self._sessions: Dict[str, RemoteSession] = {}
        self._lock = threading.Lock()

    def put(self, session: RemoteSession) -> None:
        with self._lock:
            previous = self._sessions.get(session.id)
            self._sessions[session.id] = session
        if previous is not None and previous is not session:
            previous.close()

    def get(self, session_id: str) -> RemoteSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError()
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError()
        session.close()

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            sessions = list(self._sessions.values())
        rows = [session.info() for session in sessions]
        rows.sort(key=lambda item: item["created_at"])
        return rows

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
