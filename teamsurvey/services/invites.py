"""Guest survey invites: emailed single-use links for people without an account.

Lifecycle::

    pending --(submitted before expiry)--> completed
    pending --(expires_at passes)--------> expired   (derived, never stored)

Only the SHA-256 of a token is stored. The raw token exists in the emailed
link and nowhere else.
"""
import datetime as dt
import logging
from typing import Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamsurvey import models
from teamsurvey.config import settings
from teamsurvey.email import render_guest_invite, send_with_settings
from teamsurvey.errors import (
    InviteAlreadyCompleted,
    InviteExpired,
    InviteNotFound,
    PermissionDeniedError,
    ValidationFailed,
)
from teamsurvey.questions import build_qa_responses, validate_answers
from teamsurvey.security import generate_invite_token, hash_token
from teamsurvey.services.directory import get_team
from teamsurvey.services.smtp import get_smtp
from teamsurvey.services.surveys import get_survey
from teamsurvey.utils import utcnow

logger = logging.getLogger(__name__)


def invite_status(invite: models.GuestSurveyInvite, now: Optional[dt.datetime] = None) -> str:
    now = now or utcnow()
    if invite.status != models.STATUS_PENDING:
        return invite.status
    if invite.expires_at < now:
        return models.STATUS_EXPIRED
    return models.STATUS_PENDING


def guest_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/survey/guest/{token}"


async def send_guest_invite(
    session: AsyncSession,
    admin: Optional[models.Profile],
    survey_id: Optional[int],
    team_id: Optional[int],
    guest_email: Optional[str],
    base_url: str,
) -> models.GuestSurveyInvite:
    if admin is None:
        raise PermissionDeniedError("User not authenticated")
    if not admin.is_company_admin:
        raise PermissionDeniedError("User is not authorized to send invites.")
    if not admin.company_id:
        raise PermissionDeniedError("Admin profile is not associated with a company.")
    guest_email = (guest_email or "").strip()
    if not survey_id or not team_id or not guest_email:
        raise ValidationFailed("Missing required fields: survey_id, team_id, and guest_email.")

    survey = await get_survey(session, admin.company_id, survey_id)
    if not survey.is_active:
        raise ValidationFailed("This survey is not active")
    await get_team(session, admin.company_id, team_id)

    smtp = await get_smtp(session, admin.company_id)
    await session.commit()

    token = generate_invite_token()
    html = render_guest_invite(guest_link(base_url, token), survey.title, settings.guest_invite_ttl_days)
    # the row is only written once the link has been handed to the mail server
    await send_with_settings(smtp, guest_email, "You have been invited to take a survey", html)

    invite = models.GuestSurveyInvite(
        token_hash=hash_token(token),
        guest_email=guest_email,
        survey_id=survey.id,
        team_id=team_id,
        company_id=admin.company_id,
        expires_at=utcnow() + dt.timedelta(days=settings.guest_invite_ttl_days),
        created_by=admin.id,
        status=models.STATUS_PENDING,
    )
    session.add(invite)
    await session.commit()
    logger.info("Guest invite %s sent to %s for survey %s", invite.id, guest_email, survey.id)
    return invite


async def _load_open_invite(session: AsyncSession, token: Optional[str]) -> models.GuestSurveyInvite:
    if not token:
        raise InviteNotFound("Token is required.")
    result = await session.execute(
        select(models.GuestSurveyInvite)
        .options(selectinload(models.GuestSurveyInvite.survey))
        .where(models.GuestSurveyInvite.token_hash == hash_token(token))
    )
    invite = result.scalars().first()
    if not invite:
        raise InviteNotFound()
    status = invite_status(invite)
    if status == models.STATUS_COMPLETED:
        raise InviteAlreadyCompleted()
    if status == models.STATUS_EXPIRED:
        raise InviteExpired()
    return invite


async def get_guest_survey(session: AsyncSession, token: Optional[str]) -> dict:
    invite = await _load_open_invite(session, token)
    survey = invite.survey
    return {
        "id": survey.id,
        "title": survey.title,
        "description": survey.description,
        "questions": survey.questions or [],
    }


async def submit_guest_survey(
    session: AsyncSession, token: Optional[str], answers: Optional[Mapping]
) -> models.SurveyResponse:
    if not token or answers is None:
        raise ValidationFailed("Token and answers are required.")
    invite = await _load_open_invite(session, token)
    survey = invite.survey
    cleaned = validate_answers(survey.questions, answers)

    flipped = await session.execute(
        update(models.GuestSurveyInvite)
        .where(
            models.GuestSurveyInvite.id == invite.id,
            models.GuestSurveyInvite.status == models.STATUS_PENDING,
        )
        .values(status=models.STATUS_COMPLETED, completed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != 1:
        await session.rollback()
        raise InviteAlreadyCompleted("This invitation has already been completed.")

    response = models.SurveyResponse(
        survey_id=invite.survey_id,
        user_id=None,
        company_id=invite.company_id,
        team_id=invite.team_id,
        qa_responses=build_qa_responses(survey.questions, cleaned, invite.guest_email),
    )
    session.add(response)
    await session.commit()
    logger.info("Guest invite %s completed", invite.id)
    return response


async def list_guest_invites(session: AsyncSession, company_id: int) -> list[models.GuestSurveyInvite]:
    result = await session.execute(
        select(models.GuestSurveyInvite)
        .options(selectinload(models.GuestSurveyInvite.survey), selectinload(models.GuestSurveyInvite.team))
        .where(models.GuestSurveyInvite.company_id == company_id)
        .order_by(models.GuestSurveyInvite.created_at.desc(), models.GuestSurveyInvite.id.desc())
    )
    return list(result.scalars().all())


async def invite_counts(session: AsyncSession, company_id: int) -> dict[str, int]:
    now = utcnow()
    counts = {models.STATUS_PENDING: 0, models.STATUS_COMPLETED: 0, models.STATUS_EXPIRED: 0}
    result = await session.execute(
        select(models.GuestSurveyInvite).where(models.GuestSurveyInvite.company_id == company_id)
    )
    for invite in result.scalars().all():
        counts[invite_status(invite, now)] += 1
    return counts
