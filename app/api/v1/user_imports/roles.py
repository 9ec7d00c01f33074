"""
Role snapshot for one import job.
Taken once at job start; roles created or renamed while the job runs are not seen by it.
"""

from types import MappingProxyType
from typing import FrozenSet, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import Role


class RoleSnapshot:
    """Immutable role name -> role id mapping."""

    def __init__(self, roles_by_name: Mapping[str, UUID]) -> None:
        self._roles = MappingProxyType(dict(roles_by_name))

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self._roles)

    def __contains__(self, name: object) -> bool:
        return name in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    def resolve(self, name: str) -> UUID:
        """Role id for name. Raises KeyError for names outside the snapshot."""
        return self._roles[name]


async def load_role_snapshot(db: AsyncSession, tenant_id: UUID) -> RoleSnapshot:
    result = await db.execute(select(Role.name, Role.id).where(Role.tenant_id == tenant_id))
    return RoleSnapshot({name: role_id for name, role_id in result.all()})
