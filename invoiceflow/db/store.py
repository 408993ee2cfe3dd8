from abc import ABC, abstractmethod
from typing import Optional
from pydantic import BaseModel
from invoiceflow.schemas.business import BusinessData

class UserRecord(BaseModel):
    id: str
    email: str
    display_name: str = ""
    avatar_url: Optional[str] = None
    password_hash: Optional[str] = None

class BusinessDataStore(ABC):
    """
    One BusinessData document per user id, read and written as a whole.

    put() is an upsert that replaces the stored document. There is no merge
    and no version check: when two writers race, the later put wins.
    """

    @abstractmethod
    def get(self, user_id: str) -> Optional[BusinessData]:
        pass

    @abstractmethod
    def put(self, user_id: str, data: BusinessData) -> None:
        pass

    @abstractmethod
    def create_user(
        self,
        email: str,
        display_name: str,
        password_hash: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> UserRecord:
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        pass
