"""
Access — Who is acting. Authentication itself happens upstream; services
only receive the resolved identity.
"""
from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_access(self, owner_id: str) -> bool:
        """Owners see their own records; admins see everything."""
        return self.is_admin or self.user_id == owner_id
