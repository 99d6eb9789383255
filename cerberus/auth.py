import secrets
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from cerberus.config import config
from cerberus.errors import SessionNotFoundError, ValidationError
from cerberus.ssh import RemoteSession, SessionDirectory
from cerberus.utils import log_error, make_log_dirs


@dataclass
class TokenBinding:
    token: str
    session_id: str
    principal: str
    expires_at: float

    def expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


class TokenRegistry:
    """Opaque bearer tokens, each bound to one session.

    Expired bindings are dropped whenever the registry is touched, and
    ``on_expire`` is called with each one outside the lock.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, on_expire: Optional[Callable[[TokenBinding], None]] = None):
        self.ttl_seconds = config.TOKEN_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.on_expire = on_expire
        self._bindings: Dict[str, TokenBinding] = {}
        self._lock = threading.Lock()

    def _pop_expired(self) -> List[TokenBinding]:
        now = time.time()
        expired = [binding for binding in self._bindings.values() if binding.expired(now)]
        for binding in expired:
            del self._bindings[binding.token]
        return expired

    def _notify(self, expired: List[TokenBinding]) -> None:
        if self.on_expire is None:
            return
        for binding in expired:
            self.on_expire(binding)

    def issue(self, session_id: str, principal: str) -> TokenBinding:
        binding = TokenBinding(
            token=secrets.token_urlsafe(32),
            session_id=session_id,
            principal=principal,
            expires_at=time.time() + self.ttl_seconds,
        )
        with self._lock:
            expired = self._pop_expired()
            self._bindings[binding.token] = binding
        self._notify(expired)
        return binding

    def validate(self, token: Optional[str]) -> TokenBinding:
        if not token:
            raise SessionNotFoundError("missing bearer token")
        with self._lock:
            expired = self._pop_expired()
            binding = self._bindings.get(token)
        self._notify(expired)
        if binding is None:
            raise SessionNotFoundError("invalid or expired token")
        return binding

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._bindings.pop(token, None) is not None


SessionFactory = Callable[[str, str, str, int], RemoteSession]


class AuthService:
    def __init__(
        self,
        directory: SessionDirectory,
        tokens: TokenRegistry,
        session_factory: Optional[SessionFactory] = None,
    ):
        self.directory = directory
        self.tokens = tokens
        self.session_factory = session_factory or self._new_session
        self.log_dirs = make_log_dirs(config.LOG_DIR)
        self.tokens.on_expire = self._expire

    def _expire(self, binding: TokenBinding) -> None:
        try:
            self.directory.remove(binding.session_id)
        except SessionNotFoundError:
            log_error(f"expired token: session {binding.session_id} was already closed")
            return
        log_error(f"token for {binding.principal} expired, closed session {binding.session_id}")

    def _new_session(self, session_id: str, principal: str, host: str, port: int) -> RemoteSession:
        return RemoteSession(session_id, principal, host, port, log_dirs=self.log_dirs)

    def login(self, host: str, port: int, username: str, password: str) -> Dict[str, str]:
        if not host or not username:
            raise ValidationError("host and username are required")
        if not 0 < int(port) < 65536:
            raise ValidationError(f"invalid port: {port}")

        session_id = str(uuid.uuid4())
        session = self.session_factory(session_id, username, host, int(port))
        session.connect(password=password)
        self.directory.put(session)

        binding = self.tokens.issue(session_id, username)
        return {"token": binding.token, "session_id": session_id}

    def logout(self, token: str) -> None:
        binding = self.tokens.validate(token)
        self.tokens.revoke(token)
        try:
            self.directory.remove(binding.session_id)
        except SessionNotFoundError:
            log_error(f"logout: session {binding.session_id} was already closed")
            raise
