"""End-to-end tests of the import job against an in-memory database."""

import pytest
from sqlalchemy import func, select

from app.api.v1.user_imports.service import run_import_job
from app.api.v1.user_imports.writer import ConflictPolicy
from app.auth.models import Role, User, UserRole
from app.auth.security import verify_password
from app.core.exceptions import ImportConflictError
from app.core.models import Tenant


HEADER = "first_name,last_name,email,role_name"


async def _emails(db) -> set:
    return set((await db.execute(select(User.email))).scalars().all())


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_valid_file_creates_users_and_notifies(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,john@example.com,teacher\nJane,Smith,jane@example.com,staff"

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.model_dump() == {"success_count": 2, "error_count": 0, "errors": []}
    assert await _emails(db_session) == {"john@example.com", "jane@example.com"}
    assert await _count(db_session, UserRole) == 2
    assert sorted(n.email for n in queue.submitted) == ["jane@example.com", "john@example.com"]
    assert len(notifier.sent) == 1
    assert notifier.sent[0]["to"] == "principal@lincoln-high.org"


@pytest.mark.asyncio
async def test_welcome_task_carries_plaintext_and_store_only_the_hash(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,john@example.com,teacher"

    await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    (welcome,) = queue.submitted
    user = (await db_session.execute(select(User).where(User.email == "john@example.com"))).scalar_one()
    assert welcome.user_id == user.id
    assert user.password_hash != welcome.temporary_password
    assert verify_password(welcome.temporary_password, user.password_hash)
    assert welcome.temporary_password not in notifier.sent[0]["body"]


@pytest.mark.asyncio
async def test_invalid_rows_are_reported_with_source_lines(db_session, make_job, notifier, queue) -> None:
    content = (
        f"{HEADER}\n"
        "John,,john@example.com,teacher\n"
        "Jane,Smith,jane@example.com,janitor\n"
        "Valid,User,valid@example.com,teacher"
    )

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 1
    assert report.error_count == 2
    assert [(e.line, e.error) for e in report.errors] == [
        (2, "The last_name field is required."),
        (3, "The selected role_name is invalid."),
    ]
    assert report.errors[0].data["email"] == "john@example.com"
    assert await _emails(db_session) == {"valid@example.com"}
    assert [n.email for n in queue.submitted] == ["valid@example.com"]


@pytest.mark.asyncio
async def test_header_only_file_still_sends_summary(db_session, make_job, notifier, queue) -> None:
    report = await run_import_job(db_session, make_job(f"{HEADER}\n"), submit_welcome=queue, notifier=notifier)

    assert report.model_dump() == {"success_count": 0, "error_count": 0, "errors": []}
    assert await _count(db_session, User) == 0
    assert queue.submitted == []
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_blank_lines_are_not_reported_and_keep_numbering(db_session, make_job, notifier, queue) -> None:
    content = (
        f"{HEADER}\n"
        "John,Doe,john@example.com,teacher\n"
        "\n"
        "\n"
        "Jane,Smith,jane-at-example.com,staff\n"
        "\n"
    )

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 1
    assert report.error_count == 1
    assert report.errors[0].line == 5


@pytest.mark.asyncio
async def test_only_invalid_rows_completes_with_zero_successes(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,,john@example.com,teacher\nJane,Smith,invalid-email,staff\n,Doe,valid@example.com,teacher"

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 0
    assert report.error_count == 3
    assert report.success_count + report.error_count == 3
    assert await _count(db_session, User) == 0
    assert await _count(db_session, UserRole) == 0
    assert queue.submitted == []
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_rerunning_the_same_file_reports_every_row_as_taken(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,john@example.com,teacher\nJane,Smith,JANE@example.com,staff"
    await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)
    queue.submitted.clear()

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 0
    assert report.error_count == 2
    assert {e.error for e in report.errors} == {"The email has already been taken."}
    assert queue.submitted == []
    assert await _count(db_session, User) == 2


@pytest.mark.asyncio
async def test_chunk_size_does_not_change_the_report(db_session, make_job, notifier, queue) -> None:
    valid_rows = [f"First{i},Last{i},user{i}@example.com,teacher" for i in range(7)]
    lines = [HEADER] + valid_rows[:3] + ["Bad,Row,not-an-email,teacher"] + valid_rows[3:] + [",,,"]
    content = "\n".join(lines)

    small = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier, chunk_size=3)

    # empty the store so the second run starts from the same state
    await db_session.execute(UserRole.__table__.delete())
    await db_session.execute(User.__table__.delete())
    await db_session.commit()

    large = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier, chunk_size=500)

    assert small.model_dump() == large.model_dump()
    assert small.success_count == 7
    assert small.errors[0].line == 5


@pytest.mark.asyncio
async def test_repeated_email_is_isolated_by_default(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,same@example.com,teacher\nJane,Smith,same@example.com,staff\nAl,Bo,al@example.com,staff"

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 2
    assert [(e.line, e.error) for e in report.errors] == [(3, "Duplicate email in upload: same@example.com")]
    assert await _emails(db_session) == {"same@example.com", "al@example.com"}


@pytest.mark.asyncio
async def test_abort_policy_fails_the_job_without_side_effects(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,same@example.com,teacher\nJane,Smith,same@example.com,staff\nAl,Bo,al@example.com,staff"

    with pytest.raises(ImportConflictError):
        await run_import_job(
            db_session,
            make_job(content),
            submit_welcome=queue,
            notifier=notifier,
            conflict_policy=ConflictPolicy.ABORT,
        )

    assert await _count(db_session, User) == 0
    assert queue.submitted == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_roles_are_scoped_to_the_importing_school(db_session, tenant, make_job, notifier, queue) -> None:
    other_school = Tenant(organization_name="Other School")
    db_session.add(other_school)
    await db_session.flush()
    db_session.add(Role(tenant_id=other_school.id, name="librarian", permissions={}))
    await db_session.commit()
    content = f"{HEADER}\nJohn,Doe,john@example.com,teacher\nJane,Smith,jane@example.com,librarian"

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 1
    assert report.errors[0].line == 3


@pytest.mark.asyncio
async def test_summary_failure_does_not_fail_the_job(db_session, make_job, failing_notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,john@example.com,teacher"

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=failing_notifier)

    assert report.success_count == 1
    assert len(queue.submitted) == 1


@pytest.mark.asyncio
async def test_oversized_cell_only_fails_its_own_row(db_session, make_job, notifier, queue) -> None:
    content = f"{HEADER}\nJohn,Doe,john@example.com,teacher\nJane,{'x' * 200000},jane@example.com,staff"

    report = await run_import_job(db_session, make_job(content), submit_welcome=queue, notifier=notifier)

    assert report.success_count == 1
    assert report.error_count == 1
    assert report.errors[0].line == 3
    assert report.errors[0].error == "The last_name field must not be greater than 255 characters."
    assert await _emails(db_session) == {"john@example.com"}
    assert len(notifier.sent) == 1
