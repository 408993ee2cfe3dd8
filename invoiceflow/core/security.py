from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import hashlib
import logging
import secrets
import threading
from starlette.requests import Request

logger = logging.getLogger(__name__)

def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()
    return f"{salt}${digest}"

def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    if not stored_hash:
        return False
    try:
        salt, expected = stored_hash.split("$", 1)
    except ValueError:
        return False
    digest = hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()
    return secrets.compare_digest(digest, expected)

class SessionRegistry:
    """
    Opaque session tokens mapped to user ids with sliding expiry.

    One registry belongs to one application instance and is handed to the
    code that needs it; nothing reads a process-wide current session.
    """

    def __init__(self, ttl_minutes: int):
        self.ttl = timedelta(minutes=ttl_minutes)
        self._sessions: Dict[str, Dict] = {}
        # Route handlers run in a threadpool
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def _prune(self, now: datetime) -> None:
        # Abandoned tokens are never resolved again; drop them as new sessions arrive
        expired = [token for token, session in self._sessions.items() if now - session["last_seen"] > self.ttl]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info(f"Pruned {len(expired)} expired sessions")

    def create(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        with self._lock:
            self._prune(now)
            self._sessions[token] = {"user_id": user_id, "last_seen": now}
        logger.info(f"Session created for user {user_id}")
        return token

    def resolve(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        now = datetime.now(timezone.utc)
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if now - session["last_seen"] > self.ttl:
                del self._sessions[token]
                logger.info(f"Session expired for user {session['user_id']}")
                return None
            session["last_seen"] = now
            return session["user_id"]

    def revoke(self, token: Optional[str]) -> None:
        if token:
            with self._lock:
                self._sessions.pop(token, None)

def extract_session_token(request: Request, cookie_name: str) -> Optional[str]:
    # Bearer header for API clients, cookie for the browser
    auth = request.headers.get("Authorization")
    if auth:
        parts = auth.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()
    return request.cookies.get(cookie_name)
