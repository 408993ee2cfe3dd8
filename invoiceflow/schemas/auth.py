from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
import re

class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str = Field(..., min_length=8)
    display_name: Optional[str] = Field(None, alias="displayName")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("Invalid email format")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    display_name: str = Field("", alias="displayName")
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserProfile
