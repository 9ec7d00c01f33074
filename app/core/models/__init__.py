from app.core.models.tenant import Tenant

__all__ = [
    "Tenant",
]
