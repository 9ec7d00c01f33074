import logging
from typing import Iterable, List, Optional, Set, Union

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import generate_temporary_password
from app.core.config import settings

from .roles import RoleSnapshot
from .schemas import REQUIRED_COLUMNS, ImportRow, ImportRowError, ValidatedRecord

logger = logging.getLogger(__name__)


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _chunks(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def load_existing_emails(
    db: AsyncSession,
    emails: Iterable[str],
    chunk_size: Optional[int] = None,
) -> Set[str]:
    """Subset of emails (normalized) already held by a persisted user, across all tenants."""
    if chunk_size is None:
        chunk_size = settings.import_chunk_size
    candidates = sorted({e for e in emails if e})
    existing: Set[str] = set()
    for chunk in _chunks(candidates, chunk_size):
        result = await db.execute(
            select(func.lower(User.email)).where(func.lower(User.email).in_(chunk))
        )
        existing.update(result.scalars().all())
    return existing


def _check_row(
    fields: dict,
    roles: RoleSnapshot,
    existing_emails: Set[str],
    max_length: int,
) -> Optional[str]:
    """Return the reason for the first failing rule, or None if the row is valid."""
    for column in REQUIRED_COLUMNS:
        value = (fields.get(column) or "").strip()
        if not value:
            return f"The {column} field is required."
        if len(value) > max_length:
            return f"The {column} field must not be greater than {max_length} characters."

    email = normalize_email(fields["email"])
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return "The email field must be a valid email address."

    if fields["role_name"].strip() not in roles:
        return "The selected role_name is invalid."

    if email in existing_emails:
        return "The email has already been taken."
    return None


def validate_row(
    row: ImportRow,
    roles: RoleSnapshot,
    existing_emails: Set[str],
    *,
    max_length: Optional[int] = None,
) -> Union[ValidatedRecord, ImportRowError]:
    """
    Validate one row, stopping at the first failing rule:
    required fields, email format, role membership, email not already taken.
    Duplicates inside the same file are not detected here.
    """
    if max_length is None:
        max_length = settings.import_field_max_length

    reason = _check_row(row.fields, roles, existing_emails, max_length)
    if reason is not None:
        logger.warning("Import row rejected: line=%s reason=%s", row.line_number, reason)
        return ImportRowError(line=row.line_number, data=row.fields, error=reason)

    return ValidatedRecord(
        line_number=row.line_number,
        first_name=row.fields["first_name"].strip(),
        last_name=row.fields["last_name"].strip(),
        email=normalize_email(row.fields["email"]),
        role_name=row.fields["role_name"].strip(),
        temporary_password=generate_temporary_password(),
        fields=row.fields,
    )
