from typing import Literal

from pydantic import BaseModel, Field

from syncledger.core.common.errors import PermissionDeniedError

ActorRole = Literal["client", "producer", "admin"]


class Actor(BaseModel):
    actor_id: str = Field(
        min_length=1,
        description="Opaque actor identifier supplied by the identity provider.",
        examples=["client_001"],
    )
    role: ActorRole = Field(description="Actor role.", examples=["client"])

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def require_role(actor: Actor, *roles: ActorRole) -> None:
    if actor.role not in roles:
        raise PermissionDeniedError(f"ACTOR_ROLE_NOT_PERMITTED: {actor.role}")


def require_owner_or_admin(actor: Actor, *, owner_id: str, role: ActorRole) -> None:
    if actor.is_admin:
        return
    if actor.role != role or actor.actor_id != owner_id:
        raise PermissionDeniedError(f"ACTOR_NOT_PERMITTED: {actor.actor_id}")
