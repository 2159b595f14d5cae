from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.db import get_session
from teamsurvey.dependencies import require_company_admin
from teamsurvey.errors import ValidationFailed
from teamsurvey.services import assignments, directory, surveys
from teamsurvey.templating import base_url, redirect, render
from teamsurvey.utils import parse_date

router = APIRouter(prefix="/admin")

QUESTIONS_EXAMPLE = """[
  {"text": "How satisfied are you with your team?", "type": "rating", "scale": 5, "required": true},
  {"text": "Would you recommend working here?", "type": "yes_no", "required": true},
  {"text": "Which benefit matters most?", "type": "multiple_choice", "options": ["Health", "Pension", "Remote work"]},
  {"text": "Anything else?", "type": "text"}
]"""


@router.get("/surveys", response_class=HTMLResponse)
async def surveys_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    rows = await surveys.list_surveys(session, admin.company_id)
    return render(request, "admin/surveys.html", {"user": admin, "surveys": rows})


@router.get("/surveys/new", response_class=HTMLResponse)
async def new_survey_page(request: Request, admin: models.Profile = Depends(require_company_admin)):
    return render(
        request,
        "admin/survey_new.html",
        {"user": admin, "form": {"questions": QUESTIONS_EXAMPLE}, "error": None, "details": []},
    )


@router.post("/surveys/new", response_class=HTMLResponse)
async def create_survey(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    questions: str = Form(""),
    start_date: str = Form(""),
    end_date: str = Form(""),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    form = {
        "title": title,
        "description": description,
        "questions": questions,
        "start_date": start_date,
        "end_date": end_date,
    }
    try:
        try:
            start, end = parse_date(start_date), parse_date(end_date)
        except ValueError:
            raise ValidationFailed("Dates must be in YYYY-MM-DD format")
        survey = await surveys.create_survey(
            session,
            admin.company_id,
            title=title,
            questions_json=questions,
            description=description,
            start_date=start,
            end_date=end,
            created_by=admin.id,
        )
    except ValidationFailed as exc:
        return render(
            request,
            "admin/survey_new.html",
            {"user": admin, "form": form, "error": exc.message, "details": exc.details},
            status_code=400,
        )
    return redirect(f"/admin/surveys/{survey.id}")


@router.get("/surveys/{survey_id}", response_class=HTMLResponse)
async def survey_detail(
    request: Request,
    survey_id: int,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    survey = await surveys.get_survey(session, admin.company_id, survey_id)
    return render(request, "admin/survey_detail.html", {"user": admin, "survey": survey})


@router.post("/surveys/{survey_id}/toggle")
async def toggle_survey(
    survey_id: int,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await surveys.toggle_survey(session, admin.company_id, survey_id)
    return redirect("/admin/surveys")


async def _send_page(request: Request, session: AsyncSession, admin: models.Profile, **extra):
    context = {
        "user": admin,
        "surveys": await surveys.list_surveys(session, admin.company_id, active_only=True),
        "employees": await directory.list_employees(session, admin.company_id),
        "message": None,
        "error": None,
    }
    context.update(extra)
    return render(request, "admin/send_survey.html", context, status_code=400 if context["error"] else 200)


@router.get("/send-survey", response_class=HTMLResponse)
async def send_survey_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    return await _send_page(request, session, admin)


@router.post("/send-survey", response_class=HTMLResponse)
async def send_survey(
    request: Request,
    survey_id: int = Form(0),
    employee_ids: list[int] = Form([]),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    try:
        created, skipped, notified = await assignments.send_survey(
            session, admin.company_id, survey_id, employee_ids, base_url(request)
        )
    except ValidationFailed as exc:
        return await _send_page(request, session, admin, error=exc.message)
    plural = "s" if created != 1 else ""
    message = f"Survey sent to {created} employee{plural}."
    if skipped:
        message += f" {skipped} already had it pending."
    if notified:
        message += f" {notified} notified by email."
    return await _send_page(request, session, admin, message=message)
