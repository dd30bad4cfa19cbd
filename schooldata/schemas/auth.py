from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Credentials posted to /auth/login."""

    email: str = Field(
        ..., min_length=1, description="Email, or a learner reference number without '@'"
    )
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str = Field(..., description="Profile ID")
    email: EmailStr = Field(..., description="User email")
    full_name: Optional[str] = Field(None, description="Display name")
    role: str = Field("student", description="Role used for authorization")


class LoginResponse(BaseModel):
    token: str = Field(..., description="JWT bearer token")
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
