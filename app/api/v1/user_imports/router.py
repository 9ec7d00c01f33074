import logging
import os

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.exceptions import ImportFileError, ServiceError
from app.worker.tasks import run_user_import

from .schemas import REQUIRED_COLUMNS, ImportAcceptedResponse, ImportJob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users/import", tags=["user-imports"])

ALLOWED_EXTENSIONS = (".csv", ".txt")
ACCEPTED_MESSAGE = "User import in progress. You will receive an email once it is finished."


def _decode_upload(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ImportFileError("File must be UTF-8 encoded text")


@router.get(
    "/template",
    dependencies=[Depends(check_permission("users", "import"))],
)
async def download_user_import_template() -> Response:
    """Download an empty CSV with the expected header. Fill one user per line and upload via POST /import."""
    header = ",".join(REQUIRED_COLUMNS) + "\n"
    return Response(
        content=header,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=user_import_template.csv"},
    )


@router.post(
    "",
    response_model=ImportAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(check_permission("users", "import"))],
)
async def import_users(
    users: UploadFile = File(
        ...,
        description="CSV with header first_name,last_name,email,role_name. role_name must be an existing role of your school.",
    ),
    current_user: CurrentUser = Depends(get_current_user),
) -> ImportAcceptedResponse:
    """
    Queue a bulk user import for the current user's school.
    Rows are validated and created in the background; the outcome is emailed to the caller.
    """
    filename = users.filename or "users.csv"
    if os.path.splitext(filename)[1].lower() not in ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be a .csv or .txt file")

    raw = await users.read(settings.import_max_upload_bytes + 1)
    if len(raw) > settings.import_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.import_max_upload_bytes} bytes",
        )
    try:
        content = _decode_upload(raw)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    job = ImportJob(
        tenant_id=current_user.tenant_id,
        initiator_id=current_user.id,
        initiator_email=current_user.email,
        initiator_name=current_user.full_name,
        filename=filename,
        content=content,
    )
    run_user_import.delay(job.model_dump(mode="json"))
    logger.info("Import queued: tenant=%s initiator=%s file=%s bytes=%s", job.tenant_id, job.initiator_id, filename, len(raw))
    return ImportAcceptedResponse(message=ACCEPTED_MESSAGE)
