from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4
import json
import logging
from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from invoiceflow.core.errors import Conflict, StoreFailure
from invoiceflow.db.store import BusinessDataStore, UserRecord
from invoiceflow.schemas.business import BusinessData

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
      id TEXT PRIMARY KEY,
      email TEXT UNIQUE NOT NULL,
      display_name TEXT,
      avatar_url TEXT,
      password_hash TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_data (
      user_id TEXT PRIMARY KEY REFERENCES users(id),
      data TEXT NOT NULL
    )
    """,
]

class SqlStore(BusinessDataStore):
    """SQLAlchemy Core store: one `user_data` row per user holding the JSON document."""

    def __init__(self, database_url: str):
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = create_engine(database_url, future=True, pool_pre_ping=True)

    def _run(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(text(sql), params or {})
                if result.returns_rows:
                    return [dict(row._mapping) for row in result.fetchall()]
                return []
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error(f"Store query failed: {exc.__class__.__name__}")
            raise StoreFailure(f"database error: {exc.__class__.__name__}") from exc

    def initialize_schema(self) -> None:
        for statement in SCHEMA:
            self._run(statement)

    def get(self, user_id: str) -> Optional[BusinessData]:
        rows = self._run("SELECT data FROM user_data WHERE user_id = :user_id", {"user_id": user_id})
        if not rows:
            return None
        try:
            return BusinessData.model_validate_json(rows[0]["data"])
        except ValidationError as exc:
            raise StoreFailure(f"Stored business data for user {user_id} is unreadable") from exc

    def put(self, user_id: str, data: BusinessData) -> None:
        self._run(
            "INSERT INTO user_data (user_id, data) VALUES (:user_id, :data) "
            "ON CONFLICT(user_id) DO UPDATE SET data = excluded.data",
            {"user_id": user_id, "data": json.dumps(data.to_json_dict())}
        )
        logger.debug(f"Stored business data for user {user_id}")

    def create_user(self, email, display_name, password_hash=None, avatar_url=None) -> UserRecord:
        user = UserRecord(
            id=uuid4().hex,
            email=email,
            display_name=display_name,
            avatar_url=avatar_url,
            password_hash=password_hash
        )
        try:
            self._run(
                "INSERT INTO users (id, email, display_name, avatar_url, password_hash) "
                "VALUES (:id, :email, :display_name, :avatar_url, :password_hash)",
                user.model_dump()
            )
        except IntegrityError as exc:
            raise Conflict("User already exists") from exc
        return user

    def _user(self, where: str, params: Dict[str, Any]) -> Optional[UserRecord]:
        rows = self._run(
            f"SELECT id, email, display_name, avatar_url, password_hash FROM users WHERE {where}",
            params
        )
        return UserRecord(**{k: v for k, v in rows[0].items() if v is not None}) if rows else None

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._user("id = :id", {"id": user_id})

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return self._user("email = :email", {"email": email})
