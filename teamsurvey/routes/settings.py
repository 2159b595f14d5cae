import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.config import settings
from teamsurvey.db import get_session
from teamsurvey.dependencies import require_company_admin
from teamsurvey.email import send_with_settings
from teamsurvey.errors import EmailDeliveryError
from teamsurvey.services import assignments, invites
from teamsurvey.services.smtp import get_smtp, save_smtp
from teamsurvey.templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


async def _count(session: AsyncSession, column, *criteria) -> int:
    return (await session.execute(select(func.count(column)).where(*criteria))).scalar_one()


@router.get("", response_class=HTMLResponse)
async def admin_dashboard(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    company_id = admin.company_id
    company = await session.get(models.Company, company_id)
    counts = {
        "employees": await _count(session, models.Profile.id, models.Profile.company_id == company_id),
        "departments": await _count(session, models.Department.id, models.Department.company_id == company_id),
        "teams": await _count(session, models.Team.id, models.Team.company_id == company_id),
        "active_surveys": await _count(
            session, models.Survey.id, models.Survey.company_id == company_id, models.Survey.is_active.is_(True)
        ),
        "responses": await _count(session, models.SurveyResponse.id, models.SurveyResponse.company_id == company_id),
    }
    return render(
        request,
        "admin/dashboard.html",
        {
            "user": admin,
            "company": company,
            "counts": counts,
            "assignments": await assignments.assignment_counts(session, company_id),
            "guest_invites": await invites.invite_counts(session, company_id),
        },
    )


@router.get("/smtp", response_class=HTMLResponse)
async def smtp_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    smtp = await get_smtp(session, admin.company_id)
    await session.commit()
    return render(request, "admin/smtp.html", {"user": admin, "smtp": smtp, "message": None})


@router.post("/smtp")
async def update_smtp(
    host: str = Form(...),
    port: int = Form(...),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    use_tls: Optional[bool] = Form(False),
    from_email: str = Form(...),
    from_name: str = Form(...),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await save_smtp(session, admin.company_id, host, port, username, password, bool(use_tls), from_email, from_name)
    return redirect("/admin/smtp")


@router.post("/smtp/test", response_class=HTMLResponse)
async def test_smtp(
    request: Request,
    to_email: str = Form(...),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    smtp = await get_smtp(session, admin.company_id)
    await session.commit()
    html = "<p>This is a test email from Team Survey.</p>"
    try:
        await send_with_settings(smtp, to_email, "SMTP test", html)
        message = "Test email sent"
    except EmailDeliveryError as exc:
        message = exc.message
    return render(request, "admin/smtp.html", {"user": admin, "smtp": smtp, "message": message})


@router.get("/diagnostics")
async def diagnostics(
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    info = {
        "has_secret_key": settings.has_secret_key,
        "has_site_url": bool(settings.site_url),
        "site_url": settings.site_url or None,
        "has_smtp_host": bool(settings.smtp_host),
        "environment": settings.environment,
        "user": {"id": admin.id, "email": admin.email},
        "profile": {"company_id": admin.company_id, "role": admin.role},
    }
    try:
        await session.execute(select(func.count(models.GuestSurveyInvite.id)))
        info["table_exists"] = True
        info["table_error"] = None
    except SQLAlchemyError as exc:
        logger.error("Guest invite table check failed", exc_info=True)
        info["table_exists"] = False
        info["table_error"] = str(exc)
    return info
