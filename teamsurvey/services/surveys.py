import datetime as dt
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamsurvey import models
from teamsurvey.errors import NotFoundError, ValidationFailed
from teamsurvey.questions import parse_questions

logger = logging.getLogger(__name__)


async def list_surveys(session: AsyncSession, company_id: int, active_only: bool = False) -> list[models.Survey]:
    stmt = (
        select(models.Survey)
        .options(selectinload(models.Survey.creator))
        .where(models.Survey.company_id == company_id)
    )
    if active_only:
        stmt = stmt.where(models.Survey.is_active.is_(True))
    result = await session.execute(stmt.order_by(models.Survey.created_at.desc(), models.Survey.id.desc()))
    return list(result.scalars().all())


async def get_survey(session: AsyncSession, company_id: int, survey_id: int) -> models.Survey:
    survey = await session.get(models.Survey, survey_id)
    if not survey or survey.company_id != company_id:
        raise NotFoundError("Survey not found")
    return survey


async def create_survey(
    session: AsyncSession,
    company_id: int,
    title: str,
    questions_json: str,
    description: Optional[str] = None,
    start_date: Optional[dt.datetime] = None,
    end_date: Optional[dt.datetime] = None,
    created_by: Optional[int] = None,
) -> models.Survey:
    title = (title or "").strip()
    if not title:
        raise ValidationFailed("Survey title is required")
    if start_date and end_date and end_date < start_date:
        raise ValidationFailed("End date must not be before the start date")
    questions = parse_questions(questions_json)

    survey = models.Survey(
        company_id=company_id,
        title=title,
        description=(description or "").strip() or None,
        questions=questions,
        start_date=start_date,
        end_date=end_date,
        created_by=created_by,
    )
    session.add(survey)
    await session.commit()
    logger.info("Created survey %s with %d questions for company %s", survey.id, len(questions), company_id)
    return survey


async def toggle_survey(session: AsyncSession, company_id: int, survey_id: int) -> models.Survey:
    survey = await get_survey(session, company_id, survey_id)
    survey.is_active = not survey.is_active
    await session.commit()
    return survey
