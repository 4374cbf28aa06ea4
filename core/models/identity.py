"""Identity models shared between the verifier and the forwarder."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Roles issued by the auth service."""

    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class VerifiedIdentity(BaseModel):
    """Caller identity confirmed by the auth service for a single request.

    Never persisted. The forwarder turns it into the ``x-user-id`` and
    ``x-user-role`` headers of the outbound request.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Subject id")
    role: str = Field(..., min_length=1, description="Role, e.g. ADMIN or MEMBER")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
