from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.db import get_session
from teamsurvey.dependencies import get_current_user
from teamsurvey.errors import ValidationFailed
from teamsurvey.questions import answers_from_form
from teamsurvey.services import assignments
from teamsurvey.templating import render

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: models.Profile = Depends(get_current_user),
):
    pending = await assignments.list_pending(session, user)
    return render(request, "home.html", {"user": user, "pending": pending})


@router.get("/surveys/pending/{pending_id}", response_class=HTMLResponse)
async def take_survey_page(
    request: Request,
    pending_id: int,
    session: AsyncSession = Depends(get_session),
    user: models.Profile = Depends(get_current_user),
):
    pending = await assignments.get_pending(session, user, pending_id)
    return render(
        request,
        "survey/take.html",
        {"user": user, "survey": pending.survey, "action": f"/surveys/pending/{pending.id}", "answers": {}, "error": None},
    )


@router.post("/surveys/pending/{pending_id}", response_class=HTMLResponse)
async def submit_survey(
    request: Request,
    pending_id: int,
    session: AsyncSession = Depends(get_session),
    user: models.Profile = Depends(get_current_user),
):
    pending = await assignments.get_pending(session, user, pending_id)
    survey = pending.survey
    form = await request.form()
    answers = answers_from_form(survey.questions, form)
    try:
        await assignments.complete_pending(session, user, pending.id, answers)
    except ValidationFailed as exc:
        return render(
            request,
            "survey/take.html",
            {
                "user": user,
                "survey": survey,
                "action": f"/surveys/pending/{pending.id}",
                "answers": answers,
                "error": exc.message,
                "details": exc.details,
            },
            status_code=400,
        )
    return render(request, "survey/done.html", {"user": user, "survey": survey})
