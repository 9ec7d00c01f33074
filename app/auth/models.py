import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import relationship

from app.core.models import Tenant
from app.db.session import Base


class User(Base):
    """User within a tenant (school). Roles are attached through auth.user_roles (UserRole)."""

    __tablename__ = "users"
    __table_args__ = (
        # Email is the login identifier, unique across all tenants
        UniqueConstraint("email", name="uq_user_email"),
        {"schema": "auth"},
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Owning tenant
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("core.tenants.id"), nullable=False)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    # Origin: SYSTEM, IMPORT
    source = Column(String(50), nullable=False, default="SYSTEM")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    tenant = relationship(Tenant, back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Role(Base):
    """Tenant-scoped role with JSON permissions."""

    __tablename__ = "roles"
    __table_args__ = (
        # Role name must be unique within a tenant
        UniqueConstraint("tenant_id", "name", name="uq_role_tenant_name"),
        {"schema": "auth"},
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("core.tenants.id"), nullable=False)
    name = Column(String(100), nullable=False)
    # Example shape:
    # {
    #   "users": {"create": true, "read": true, "import": true},
    #   "grades": {"read": true}
    # }
    permissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class UserRole(Base):
    """Role assignment: one row per (user, role) pair."""

    __tablename__ = "user_roles"
    __table_args__ = {"schema": "auth"}

    user_id = Column(Uuid(as_uuid=True), ForeignKey("auth.users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Uuid(as_uuid=True), ForeignKey("auth.roles.id", ondelete="CASCADE"), primary_key=True)
