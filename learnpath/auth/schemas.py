"""Pydantic schemas for the authenticated caller."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from learnpath.auth.permissions import ActorKind, actor_kind_for_role


class CurrentUserResponse(BaseModel):
    """Identity extracted from a validated access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str = ""
    role: str
    actor_kind: ActorKind = Field(
        default=ActorKind.DIRECT,
        description="Enrollment variant derived from the role",
    )

    @classmethod
    def from_claims(cls, payload: dict) -> "CurrentUserResponse":
        """Build the caller from JWT claims."""
        role = payload["role"]
        return cls(
            id=payload["sub"],
            email=payload.get("email", ""),
            role=role,
            actor_kind=actor_kind_for_role(role),
        )
