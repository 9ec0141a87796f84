"""
Acting party passed into every custody operation.
"""

from dataclasses import dataclass
from typing import Optional

from custody.app.models.enums import ActorRole
from custody.app.models.package_enums import Zone


@dataclass(frozen=True)
class Actor:
    """
    Caller identity as resolved by the authorization collaborator.
    
    Built from the stored account, never from caller-supplied claims.
    """
    id: int
    role: ActorRole
    name: str = ""
    home_zone: Optional[Zone] = None

    @classmethod
    def from_account(cls, account) -> "Actor":
        return cls(
            id=account.id,
            role=account.role,
            name=account.name,
            home_zone=account.home_zone,
        )
