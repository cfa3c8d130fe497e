from pydantic import BaseModel, Field, field_validator
from typing import Optional


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class AuthStatus(BaseModel):
    authenticated: bool
    username: Optional[str] = None


class AuthResult(BaseModel):
    success: bool
    message: str
