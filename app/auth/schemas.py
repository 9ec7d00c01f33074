from typing import Dict, List
from uuid import UUID

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    permissions is the union of the permissions of every role assigned to the user.
    """

    id: UUID
    tenant_id: UUID
    email: str
    full_name: str
    roles: List[str] = Field(default_factory=list)
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
