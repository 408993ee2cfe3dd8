from typing import Optional
from fastapi import Depends, Request
from invoiceflow.core.config import Settings
from invoiceflow.core.converter import PdfConverter
from invoiceflow.core.errors import Unauthorized
from invoiceflow.core.security import SessionRegistry, extract_session_token
from invoiceflow.db.store import BusinessDataStore, UserRecord

# Collaborators live on app.state and reach handlers through these
# dependencies, so tests can build an app around their own store/converter.

def app_settings(request: Request) -> Settings:
    return request.app.state.settings

def app_store(request: Request) -> BusinessDataStore:
    return request.app.state.store

def app_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions

def app_converter(request: Request) -> PdfConverter:
    return request.app.state.converter

def session_token(request: Request, settings: Settings = Depends(app_settings)) -> Optional[str]:
    return extract_session_token(request, settings.SESSION_COOKIE_NAME)

def optional_user(
    token: Optional[str] = Depends(session_token),
    sessions: SessionRegistry = Depends(app_sessions),
    store: BusinessDataStore = Depends(app_store),
) -> Optional[UserRecord]:
    user_id = sessions.resolve(token)
    if user_id is None:
        return None
    return store.get_user(user_id)

def current_user(user: Optional[UserRecord] = Depends(optional_user)) -> UserRecord:
    if user is None:
        raise Unauthorized("Unauthorized")
    return user
