"""User-related models."""
from __future__ import annotations

import enum

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from seisan import db
from seisan.models.base import enum_column, new_id, utcnow


class UserRole(enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


APPROVER_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


class User(UserMixin, db.Model):
    __tablename__ = "user_profiles"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255), nullable=False)
    department = db.Column(db.String(120), nullable=True)
    position = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(enum_column(UserRole, "user_role"), nullable=False, default=UserRole.EMPLOYEE)
    organization_id = db.Column(
        db.String(36), db.ForeignKey("organizations.id"), nullable=True, index=True
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    organization = db.relationship("Organization", back_populates="members", lazy="joined")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_approver(self) -> bool:
        return self.role in APPROVER_ROLES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "department": self.department,
            "position": self.position,
            "role": self.role.value,
            "organization_id": self.organization_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.email}>"
