"""Internal survey assignments: admin sends, employee completes.

An assignment is a ``PendingResponse`` row. It moves from ``pending`` to
``completed`` exactly once; the move is a conditional update in the same
transaction as the stored response.
"""
import logging
from typing import Iterable, Mapping

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamsurvey import models
from teamsurvey.config import settings
from teamsurvey.email import render_assignment_notice, send_with_settings
from teamsurvey.errors import AssignmentClosed, EmailDeliveryError, NotFoundError, ValidationFailed
from teamsurvey.questions import build_qa_responses, validate_answers
from teamsurvey.services.smtp import get_smtp
from teamsurvey.services.surveys import get_survey
from teamsurvey.utils import utcnow

logger = logging.getLogger(__name__)


async def send_survey(
    session: AsyncSession,
    company_id: int,
    survey_id: int,
    employee_ids: Iterable[int],
    base_url: str,
) -> tuple[int, int, int]:
    """Assign a survey to employees. Returns ``(created, skipped, notified)``."""
    employee_ids = sorted(set(employee_ids))
    if not survey_id:
        raise ValidationFailed("Please select a survey to send")
    if not employee_ids:
        raise ValidationFailed("Please select at least one employee to send the survey to")

    survey = await get_survey(session, company_id, survey_id)
    if not survey.is_active:
        raise ValidationFailed("This survey is not active")

    result = await session.execute(
        select(models.Profile).where(
            models.Profile.company_id == company_id,
            models.Profile.id.in_(employee_ids),
        )
    )
    employees = {employee.id: employee for employee in result.scalars().all()}
    unknown = [employee_id for employee_id in employee_ids if employee_id not in employees]
    if unknown:
        raise ValidationFailed("Some selected employees do not belong to your company", details=[str(i) for i in unknown])

    existing = await session.execute(
        select(models.PendingResponse.user_id).where(
            models.PendingResponse.survey_id == survey.id,
            models.PendingResponse.status == models.STATUS_PENDING,
            models.PendingResponse.user_id.in_(employee_ids),
        )
    )
    already_pending = set(existing.scalars().all())

    recipients = []
    for employee_id in employee_ids:
        if employee_id in already_pending:
            continue
        session.add(models.PendingResponse(user_id=employee_id, survey_id=survey.id, status=models.STATUS_PENDING))
        recipients.append(employees[employee_id])
    await session.commit()
    logger.info(
        "Survey %s assigned to %d employees (%d already pending)",
        survey.id, len(recipients), len(already_pending),
    )

    notified = 0
    if settings.notify_employees and recipients:
        notified = await _notify(session, company_id, survey, recipients, base_url)
    return len(recipients), len(already_pending), notified


async def _notify(session: AsyncSession, company_id: int, survey: models.Survey, recipients, base_url: str) -> int:
    smtp = await get_smtp(session, company_id)
    await session.commit()
    notified = 0
    for employee in recipients:
        html = render_assignment_notice(employee.full_name, survey.title, f"{base_url}/")
        try:
            await send_with_settings(smtp, employee.email, f"New survey: {survey.title}", html)
        except EmailDeliveryError as exc:
            # assignments stay committed and visible on the dashboard
            logger.warning("Could not notify %s about survey %s: %s", employee.email, survey.id, exc)
            continue
        notified += 1
    return notified


async def list_pending(session: AsyncSession, user: models.Profile) -> list[models.PendingResponse]:
    result = await session.execute(
        select(models.PendingResponse)
        .options(selectinload(models.PendingResponse.survey))
        .where(
            models.PendingResponse.user_id == user.id,
            models.PendingResponse.status == models.STATUS_PENDING,
        )
        .order_by(models.PendingResponse.created_at)
    )
    return list(result.scalars().all())


async def get_pending(session: AsyncSession, user: models.Profile, pending_id: int) -> models.PendingResponse:
    result = await session.execute(
        select(models.PendingResponse)
        .options(selectinload(models.PendingResponse.survey))
        .where(models.PendingResponse.id == pending_id)
    )
    pending = result.scalars().first()
    if not pending or pending.user_id != user.id:
        raise NotFoundError("Survey assignment not found")
    if pending.status != models.STATUS_PENDING:
        raise AssignmentClosed()
    return pending


async def complete_pending(
    session: AsyncSession, user: models.Profile, pending_id: int, answers: Mapping
) -> models.SurveyResponse:
    pending = await get_pending(session, user, pending_id)
    survey = pending.survey
    cleaned = validate_answers(survey.questions, answers)

    now = utcnow()
    flipped = await session.execute(
        update(models.PendingResponse)
        .where(
            models.PendingResponse.id == pending.id,
            models.PendingResponse.status == models.STATUS_PENDING,
        )
        .values(status=models.STATUS_COMPLETED, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != 1:
        await session.rollback()
        raise AssignmentClosed()

    response = models.SurveyResponse(
        survey_id=survey.id,
        user_id=user.id,
        company_id=survey.company_id,
        team_id=user.team_id,
        qa_responses=build_qa_responses(survey.questions, cleaned, user.email),
    )
    session.add(response)
    await session.commit()
    logger.info("Assignment %s completed by user %s", pending.id, user.id)
    return response


async def assignment_counts(session: AsyncSession, company_id: int) -> dict[str, int]:
    result = await session.execute(
        select(models.PendingResponse.status)
        .join(models.Survey, models.Survey.id == models.PendingResponse.survey_id)
        .where(models.Survey.company_id == company_id)
    )
    statuses = list(result.scalars().all())
    return {
        models.STATUS_PENDING: statuses.count(models.STATUS_PENDING),
        models.STATUS_COMPLETED: statuses.count(models.STATUS_COMPLETED),
    }
