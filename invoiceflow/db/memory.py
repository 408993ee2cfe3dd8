from typing import Dict, Optional
from uuid import uuid4
import json
import logging
import threading
from invoiceflow.core.errors import Conflict
from invoiceflow.db.store import BusinessDataStore, UserRecord
from invoiceflow.schemas.business import BusinessData

logger = logging.getLogger(__name__)

class InMemoryStore(BusinessDataStore):
    def __init__(self):
        self._users: Dict[str, UserRecord] = {}
        # Documents are kept as JSON text so callers never share a mutable object with the store
        self._documents: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[BusinessData]:
        raw = self._documents.get(user_id)
        if raw is None:
            return None
        return BusinessData.model_validate_json(raw)

    def put(self, user_id: str, data: BusinessData) -> None:
        self._documents[user_id] = json.dumps(data.to_json_dict())
        logger.debug(f"Stored business data for user {user_id}")

    def create_user(self, email, display_name, password_hash=None, avatar_url=None) -> UserRecord:
        with self._lock:
            if self.get_user_by_email(email) is not None:
                raise Conflict("User already exists")
            user = UserRecord(
                id=uuid4().hex,
                email=email,
                display_name=display_name,
                avatar_url=avatar_url,
                password_hash=password_hash
            )
            self._users[user.id] = user
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return next((u for u in list(self._users.values()) if u.email == email), None)
