import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Tenant(Base):
    """
    Tenant (school) in the multi-tenant platform.

    - tenant_id (id): Internal primary key (UUID). Used for all FKs and internal logic.
    - Users created by an import inherit the tenant of the user who started it.
    """

    __tablename__ = "tenants"
    __table_args__ = {"schema": "core"}

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_name = Column(String(255), nullable=False)
    organization_type = Column(String(100), nullable=False, default="School")
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")
