"""Guest invites: admin dispatch page, the tokenized guest pages, and the JSON API."""
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.db import get_session
from teamsurvey.dependencies import get_optional_user, require_company_admin
from teamsurvey.errors import EmailDeliveryError, ValidationFailed
from teamsurvey.questions import answers_from_form
from teamsurvey.schemas import GuestInvitePayload, GuestSubmissionPayload, GuestTokenPayload
from teamsurvey.services import directory, invites, surveys
from teamsurvey.templating import base_url, render

router = APIRouter()


# =========================
# Admin page
# =========================

async def _invites_page(request: Request, session: AsyncSession, admin: models.Profile, **extra):
    rows = await invites.list_guest_invites(session, admin.company_id)
    context = {
        "user": admin,
        "invites": [(invite, invites.invite_status(invite)) for invite in rows],
        "surveys": await surveys.list_surveys(session, admin.company_id, active_only=True),
        "teams": await directory.list_teams(session, admin.company_id),
        "message": None,
        "error": None,
    }
    context.update(extra)
    return render(request, "admin/guest_invites.html", context, status_code=400 if context["error"] else 200)


@router.get("/admin/guest-invites", response_class=HTMLResponse)
async def guest_invites_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    return await _invites_page(request, session, admin)


@router.post("/admin/guest-invites", response_class=HTMLResponse)
async def send_guest_invite_form(
    request: Request,
    survey_id: int = Form(0),
    team_id: int = Form(0),
    guest_email: str = Form(""),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    try:
        await invites.send_guest_invite(session, admin, survey_id, team_id, guest_email, base_url(request))
    except (ValidationFailed, EmailDeliveryError) as exc:
        return await _invites_page(request, session, admin, error=exc.message)
    return await _invites_page(request, session, admin, message=f"Invite sent to {guest_email.strip()}!")


# =========================
# Guest pages
# =========================

@router.get("/survey/guest/{token}", response_class=HTMLResponse)
async def guest_survey_page(request: Request, token: str, session: AsyncSession = Depends(get_session)):
    survey = await invites.get_guest_survey(session, token)
    return render(
        request,
        "survey/take.html",
        {"user": None, "survey": survey, "action": f"/survey/guest/{token}", "answers": {}, "error": None},
    )


@router.post("/survey/guest/{token}", response_class=HTMLResponse)
async def guest_survey_submit(request: Request, token: str, session: AsyncSession = Depends(get_session)):
    survey = await invites.get_guest_survey(session, token)
    form = await request.form()
    answers = answers_from_form(survey["questions"], form)
    try:
        await invites.submit_guest_survey(session, token, answers)
    except ValidationFailed as exc:
        return render(
            request,
            "survey/take.html",
            {
                "user": None,
                "survey": survey,
                "action": f"/survey/guest/{token}",
                "answers": answers,
                "error": exc.message,
                "details": exc.details,
            },
            status_code=400,
        )
    return render(request, "survey/done.html", {"user": None, "survey": survey})


# =========================
# JSON API
# =========================

@router.post("/api/send-guest-invite")
async def api_send_guest_invite(
    request: Request,
    payload: GuestInvitePayload,
    session: AsyncSession = Depends(get_session),
    user: Optional[models.Profile] = Depends(get_optional_user),
):
    await invites.send_guest_invite(
        session, user, payload.survey_id, payload.team_id, payload.guest_email, base_url(request)
    )
    return {"success": True, "message": "Invite sent!"}


@router.post("/api/get-guest-survey")
async def api_get_guest_survey(payload: GuestTokenPayload, session: AsyncSession = Depends(get_session)):
    return await invites.get_guest_survey(session, payload.token)


@router.post("/api/submit-guest-survey")
async def api_submit_guest_survey(payload: GuestSubmissionPayload, session: AsyncSession = Depends(get_session)):
    await invites.submit_guest_survey(session, payload.token, payload.answers)
    return {"success": True, "message": "Survey submitted successfully!"}
