from fastapi import APIRouter, Depends, Response
from typing import Optional
import logging
from invoiceflow.api.deps import app_sessions, app_settings, app_store, optional_user, session_token
from invoiceflow.core.config import Settings
from invoiceflow.core.errors import Unauthorized
from invoiceflow.core.security import SessionRegistry, hash_password, verify_password
from invoiceflow.db.store import BusinessDataStore, UserRecord
from invoiceflow.schemas.auth import AuthResponse, LoginRequest, SignupRequest, UserProfile

router = APIRouter(prefix="/auth")
logger = logging.getLogger(__name__)

def to_profile(user: UserRecord) -> UserProfile:
    return UserProfile(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        avatar_url=user.avatar_url
    )

@router.post("/signup")
def signup(payload: SignupRequest, store: BusinessDataStore = Depends(app_store)):
    display_name = payload.display_name or payload.email.split("@")[0]
    user = store.create_user(payload.email, display_name, password_hash=hash_password(payload.password))
    logger.info(f"User created: {user.id}")
    return {"success": True, "message": "User created"}

@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    response: Response,
    store: BusinessDataStore = Depends(app_store),
    sessions: SessionRegistry = Depends(app_sessions),
    settings: Settings = Depends(app_settings),
):
    user = store.get_user_by_email(payload.email)
    if user is None:
        raise Unauthorized("Incorrect email.")
    if not user.password_hash:
        raise Unauthorized("No password set for this account.")
    if not verify_password(payload.password, user.password_hash):
        logger.warning(f"Failed login for user {user.id}")
        raise Unauthorized("Incorrect password.")

    token = sessions.create(user.id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=settings.SESSION_TTL_MINUTES * 60,
        path="/"
    )
    return AuthResponse(token=token, user=to_profile(user))

@router.post("/logout")
def logout(
    response: Response,
    token: Optional[str] = Depends(session_token),
    sessions: SessionRegistry = Depends(app_sessions),
    settings: Settings = Depends(app_settings),
):
    sessions.revoke(token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"success": True}

@router.get("/me", response_model=Optional[UserProfile])
def me(user: Optional[UserRecord] = Depends(optional_user)):
    return to_profile(user) if user else None
