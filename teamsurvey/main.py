import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.sessions import SessionMiddleware

from teamsurvey import db, models
from teamsurvey.config import settings
from teamsurvey.errors import SurveyAppError
from teamsurvey.logging_setup import configure_logging
from teamsurvey.routes import auth, directory, guest, home, surveys
from teamsurvey.routes import settings as settings_routes
from teamsurvey.security import get_password_hash
from teamsurvey.services.smtp import get_smtp
from teamsurvey.templating import render

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Team Survey")
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key, session_cookie="teamsurvey_session", https_only=False)

app.include_router(auth.router)
app.include_router(home.router)
app.include_router(settings_routes.router)
app.include_router(directory.router)
app.include_router(surveys.router)
app.include_router(guest.router)


@app.exception_handler(SurveyAppError)
async def survey_error_handler(request: Request, exc: SurveyAppError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    if request.url.path.startswith("/api/"):
        body = {"error": exc.message}
        if exc.details:
            body["details"] = exc.details
        return JSONResponse(body, status_code=exc.status_code)
    return render(
        request,
        "error.html",
        {"user": None, "message": exc.message, "details": exc.details},
        status_code=exc.status_code,
    )


@app.on_event("startup")
async def startup_event():
    if not settings.has_secret_key:
        logger.warning("SECRET_KEY is not set; session cookies use the built-in default")
    await db.init_db()
    async with db.SessionLocal() as session:
        await ensure_bootstrap_admin(session)
        await session.commit()


async def ensure_bootstrap_admin(session: AsyncSession) -> None:
    count = (await session.execute(select(func.count(models.Profile.id)))).scalar_one()
    if count > 0:
        return
    company = models.Company(name=settings.company_name)
    session.add(company)
    await session.flush()
    session.add(
        models.Profile(
            company_id=company.id,
            email=settings.admin_email.lower(),
            password_hash=get_password_hash(settings.admin_password),
            first_name="Admin",
            last_name="User",
            role=models.ROLE_COMPANY_ADMIN,
        )
    )
    await get_smtp(session, company.id)
    logger.info("Seeded bootstrap company %s with admin %s", company.id, settings.admin_email)


@app.get("/health")
async def healthcheck():
    return {"status": "ok"}
