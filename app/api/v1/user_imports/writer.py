"""
Batch writer for validated import records.

Users and their role links are inserted in fixed-size chunks (one bulk statement per
chunk) and committed together: either every record of the batch is stored or none is.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Set
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User, UserRole
from app.auth.security import hash_password
from app.core.config import settings
from app.core.exceptions import ImportConflictError

from .roles import RoleSnapshot
from .schemas import ImportRowError, ValidatedRecord
from .validator import load_existing_emails

logger = logging.getLogger(__name__)

IMPORTED_USER_SOURCE = "IMPORT"
DUPLICATE_IN_UPLOAD = "Duplicate email in upload: {email}"
EMAIL_TAKEN = "The email has already been taken."


class ConflictPolicy(str, Enum):
    """What to do with a record whose email is rejected by the store's unique constraint."""

    ISOLATE = "isolate"  # reject only the conflicting rows, commit the rest
    ABORT = "abort"  # roll back the whole batch and fail the job


class CommittedUser(BaseModel):
    """Stored user id together with the record it was created from."""

    user_id: UUID
    record: ValidatedRecord


class BatchResult(BaseModel):
    committed: List[CommittedUser] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)


def _chunked(items: Sequence[dict], size: int) -> Iterator[Sequence[dict]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _record_data(record: ValidatedRecord) -> Dict[str, str]:
    return dict(record.fields)


def _split_in_file_duplicates(records: List[ValidatedRecord]):
    """First occurrence of an email wins; later rows with the same email are rejected."""
    seen: Set[str] = set()
    unique: List[ValidatedRecord] = []
    errors: List[ImportRowError] = []
    for record in records:
        if record.email in seen:
            errors.append(
                ImportRowError(
                    line=record.line_number,
                    data=_record_data(record),
                    error=DUPLICATE_IN_UPLOAD.format(email=record.email),
                )
            )
            continue
        seen.add(record.email)
        unique.append(record)
    return unique, errors


async def _insert_and_commit(
    db: AsyncSession,
    tenant_id: UUID,
    records: List[ValidatedRecord],
    roles: RoleSnapshot,
    chunk_size: int,
) -> List[CommittedUser]:
    """Insert users and role links chunk by chunk, then commit once. Rolls back on any error."""
    now = datetime.now(timezone.utc)
    committed: List[CommittedUser] = []
    user_rows: List[dict] = []
    role_rows: List[dict] = []
    for record in records:
        user_id = uuid.uuid4()
        user_rows.append(
            {
                "id": user_id,
                "tenant_id": tenant_id,
                "first_name": record.first_name,
                "last_name": record.last_name,
                "email": record.email,
                "password_hash": hash_password(record.temporary_password),
                "status": "ACTIVE",
                "source": IMPORTED_USER_SOURCE,
                "created_at": now,
            }
        )
        role_rows.append({"user_id": user_id, "role_id": roles.resolve(record.role_name)})
        committed.append(CommittedUser(user_id=user_id, record=record))

    try:
        for chunk in _chunked(user_rows, chunk_size):
            await db.execute(insert(User), list(chunk))
            logger.debug("Inserted user chunk: size=%s", len(chunk))
        for chunk in _chunked(role_rows, chunk_size):
            await db.execute(insert(UserRole), list(chunk))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return committed


async def write_batch(
    db: AsyncSession,
    tenant_id: UUID,
    records: List[ValidatedRecord],
    roles: RoleSnapshot,
    *,
    chunk_size: Optional[int] = None,
    conflict_policy: Optional[ConflictPolicy] = None,
) -> BatchResult:
    """
    Persist validated records for one tenant and return the committed users.

    ISOLATE: rows repeating an email earlier in the same file are reported instead of
    inserted; if the store still raises a uniqueness violation (another import took the
    email meanwhile), the now-taken emails are reported and the batch is retried once.
    ABORT: any uniqueness violation rolls back everything and raises ImportConflictError.
    """
    if chunk_size is None:
        chunk_size = settings.import_chunk_size
    if conflict_policy is None:
        conflict_policy = ConflictPolicy(settings.import_conflict_policy)

    errors: List[ImportRowError] = []
    if conflict_policy is ConflictPolicy.ISOLATE:
        records, errors = _split_in_file_duplicates(records)

    if not records:
        return BatchResult(errors=errors)

    try:
        committed = await _insert_and_commit(db, tenant_id, records, roles, chunk_size)
        return BatchResult(committed=committed, errors=errors)
    except IntegrityError as e:
        if conflict_policy is ConflictPolicy.ABORT:
            logger.error("Import batch aborted on unique constraint: tenant=%s records=%s", tenant_id, len(records))
            raise ImportConflictError("Duplicate email detected while saving the import; nothing was saved.") from e
        conflict = e

    taken = await load_existing_emails(db, (r.email for r in records), chunk_size)
    if not taken:
        # not an email collision (e.g. a role removed mid-job)
        logger.error("Import batch failed on a non-email constraint: tenant=%s", tenant_id)
        raise conflict
    logger.warning("Import batch hit a unique constraint, isolating %s taken emails: tenant=%s", len(taken), tenant_id)
    remaining: List[ValidatedRecord] = []
    for record in records:
        if record.email in taken:
            errors.append(ImportRowError(line=record.line_number, data=_record_data(record), error=EMAIL_TAKEN))
        else:
            remaining.append(record)

    if not remaining:
        return BatchResult(errors=errors)
    try:
        committed = await _insert_and_commit(db, tenant_id, remaining, roles, chunk_size)
    except IntegrityError as e:
        raise ImportConflictError("Import could not be saved: emails kept conflicting with concurrent writes.") from e
    return BatchResult(committed=committed, errors=errors)
