from typing import Dict, List
from uuid import UUID

from pydantic import BaseModel, Field

REQUIRED_COLUMNS = ("first_name", "last_name", "email", "role_name")


# ----- Pipeline records (in memory only) -----
class ImportRow(BaseModel):
    """One non-blank line of the uploaded file, keyed by header column."""

    line_number: int = Field(..., ge=1, description="1-based position in the source file")
    fields: Dict[str, str]


class ValidatedRecord(BaseModel):
    """Row that passed validation. temporary_password is plaintext and is never persisted."""

    line_number: int
    first_name: str
    last_name: str
    email: str
    role_name: str
    temporary_password: str = Field(..., repr=False)
    fields: Dict[str, str] = Field(default_factory=dict, description="Original row fields, for error reporting")


class ImportRowError(BaseModel):
    """One rejected row in the import report."""

    line: int = Field(..., ge=2, description="Source line of the rejected row (header is line 1)")
    data: Dict[str, str] = Field(..., description="Original row fields as uploaded")
    error: str = Field(..., description="Why this row was not imported")


class ImportReport(BaseModel):
    """Completion report for one import job run."""

    success_count: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    errors: List[ImportRowError] = Field(default_factory=list)


# ----- Queue payloads -----
class ImportJob(BaseModel):
    """Unit of asynchronous execution: the uploaded content plus who started it."""

    tenant_id: UUID
    initiator_id: UUID
    initiator_email: str
    initiator_name: str = ""
    filename: str = "users.csv"
    content: str


class WelcomeNotification(BaseModel):
    """Payload of the per-user welcome task."""

    user_id: UUID
    first_name: str
    last_name: str
    email: str
    temporary_password: str = Field(..., repr=False)


# ----- HTTP responses -----
class ImportAcceptedResponse(BaseModel):
    """Returned by POST /api/v1/users/import once the job is queued."""

    message: str
    status: str = "processing"
