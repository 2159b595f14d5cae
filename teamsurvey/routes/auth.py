import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.db import get_session
from teamsurvey.dependencies import SESSION_USER_KEY, get_current_user
from teamsurvey.security import get_password_hash, verify_password
from teamsurvey.templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_PASSWORD_LENGTH = 8


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    return render(request, "login.html", {"error": None})


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    session: AsyncSession = Depends(get_session),
):
    result = await session.execute(
        select(models.Profile).where(func.lower(models.Profile.email) == email.strip().lower())
    )
    user = result.scalars().first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        return render(request, "login.html", {"error": "Invalid credentials"}, status_code=400)
    request.session[SESSION_USER_KEY] = user.id
    if user.must_change_password:
        return redirect("/account/password")
    return redirect("/admin" if user.is_company_admin else "/")


@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return redirect("/login")


@router.get("/signup", response_class=HTMLResponse)
async def signup_page(request: Request):
    return render(request, "signup.html", {"error": None})


@router.post("/signup")
async def signup(
    request: Request,
    company_name: str = Form(...),
    first_name: str = Form(...),
    last_name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    session: AsyncSession = Depends(get_session),
):
    email = email.strip().lower()
    error = None
    if not company_name.strip():
        error = "Company name is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    else:
        exists = await session.execute(select(models.Profile.id).where(func.lower(models.Profile.email) == email))
        if exists.scalar_one_or_none() is not None:
            error = "An account with this email already exists"
    if error:
        return render(request, "signup.html", {"error": error}, status_code=400)

    company = models.Company(name=company_name.strip())
    session.add(company)
    await session.flush()
    admin = models.Profile(
        company_id=company.id,
        email=email,
        password_hash=get_password_hash(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=models.ROLE_COMPANY_ADMIN,
    )
    session.add(admin)
    await session.commit()
    logger.info("Company %s registered by %s", company.id, email)
    request.session[SESSION_USER_KEY] = admin.id
    return redirect("/admin")


@router.get("/account/password", response_class=HTMLResponse)
async def password_page(request: Request, user: models.Profile = Depends(get_current_user)):
    return render(request, "password.html", {"user": user, "error": None})


@router.post("/account/password")
async def change_password(
    request: Request,
    current_password: str = Form(...),
    new_password: str = Form(...),
    confirm_password: str = Form(...),
    session: AsyncSession = Depends(get_session),
    user: models.Profile = Depends(get_current_user),
):
    error = None
    if not verify_password(current_password, user.password_hash):
        error = "Current password is incorrect"
    elif len(new_password) < MIN_PASSWORD_LENGTH:
        error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    elif new_password != confirm_password:
        error = "Passwords do not match"
    if error:
        return render(request, "password.html", {"user": user, "error": error}, status_code=400)

    user.password_hash = get_password_hash(new_password)
    user.must_change_password = False
    await session.commit()
    return redirect("/admin" if user.is_company_admin else "/")
