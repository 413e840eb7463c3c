"""Domain Entities - Actors"""
from pydantic import BaseModel

from domain.enums import ActorRole


class Actor(BaseModel):
    """Caller on whose behalf an operation runs.

    Authentication happens upstream; the core only needs to know who the
    caller is and whether they are staff.
    """
    actor_id: str
    role: ActorRole = ActorRole.GUEST

    @property
    def is_privileged(self) -> bool:
        return self.role in (ActorRole.STAFF, ActorRole.ADMIN)

    @staticmethod
    def guest(email: str = "anonymous") -> "Actor":
        return Actor(actor_id=f"guest:{email.strip().lower()}", role=ActorRole.GUEST)

    class Config:
        frozen = True
