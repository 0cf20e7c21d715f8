"""Explicit caller context passed into every service operation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from seisan.models import APPROVER_ROLES, User, UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    organization_id: Optional[str]
    role: UserRole
    ip_address: Optional[str] = None

    @classmethod
    def from_user(cls, user: User, ip_address: Optional[str] = None) -> "Actor":
        return cls(
            user_id=user.id,
            organization_id=user.organization_id,
            role=user.role,
            ip_address=ip_address,
        )

    @property
    def is_approver(self) -> bool:
        return self.role in APPROVER_ROLES

    def can_view(self, owner_id: str, organization_id: Optional[str]) -> bool:
        """Owners see their own rows; approvers see their organization's."""
        if owner_id == self.user_id:
            return True
        return (
            self.is_approver
            and organization_id is not None
            and organization_id == self.organization_id
        )
