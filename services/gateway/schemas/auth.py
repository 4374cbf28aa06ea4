"""Schemas for the auth service verification contract."""

from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator


class VerifyResponse(BaseModel):
    """Body returned by ``POST /auth/verify`` on the auth service."""

    verified: bool = Field(..., description="Whether the credential is valid")
    user_id: Optional[Union[int, str]] = Field(None, description="Subject id if verified")
    role: Optional[str] = Field(None, description="Role if verified, e.g. ADMIN or MEMBER")

    @field_validator("verified", mode="before")
    @classmethod
    def require_real_bool(cls, value):
        # "false" must not coerce to a verified flag
        if not isinstance(value, bool):
            raise ValueError("verified must be a boolean")
        return value
