from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.db import get_session
from teamsurvey.dependencies import require_company_admin
from teamsurvey.errors import ValidationFailed
from teamsurvey.services import directory
from teamsurvey.templating import redirect, render

router = APIRouter(prefix="/admin")


def optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or not str(value).strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationFailed(f"Invalid id: {value}")


# =========================
# Employees
# =========================

async def _employees_page(request: Request, session: AsyncSession, admin: models.Profile, **extra):
    employees = await directory.list_employees(session, admin.company_id)
    departments = await directory.list_departments(session, admin.company_id, active_only=True)
    context = {
        "user": admin,
        "employees": employees,
        "departments": departments,
        "department_name": directory.department_name,
        "message": None,
        "error": None,
    }
    context.update(extra)
    return render(request, "admin/employees.html", context, status_code=400 if context["error"] else 200)


@router.get("/employees", response_class=HTMLResponse)
async def employees_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    return await _employees_page(request, session, admin)


@router.post("/employees/departments", response_class=HTMLResponse)
async def save_employee_departments(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    form = await request.form()
    employees = await directory.list_employees(session, admin.company_id)
    changes = {}
    for employee in employees:
        field = f"dept_{employee.id}"
        if field not in form:
            continue
        department_id = optional_int(form.get(field))
        if department_id != employee.department_id:
            changes[employee.id] = department_id
    try:
        updated = await directory.update_employee_departments(session, admin.company_id, changes)
    except ValidationFailed as exc:
        return await _employees_page(request, session, admin, error=exc.message)
    return await _employees_page(
        request, session, admin, message=f"Successfully updated {updated} employee departments!"
    )


@router.get("/employees/invite", response_class=HTMLResponse)
async def invite_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    invites = await directory.list_pending_invites(session, admin.company_id)
    return render(request, "admin/invite.html", {"user": admin, "invites": invites, "created": None, "error": None})


@router.post("/employees/invite", response_class=HTMLResponse)
async def invite_employee(
    request: Request,
    email: str = Form(...),
    first_name: str = Form(...),
    last_name: str = Form(...),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    created = None
    error = None
    try:
        profile, temp_password = await directory.invite_employee(
            session, admin.company_id, email, first_name, last_name, invited_by=admin.id
        )
        created = {"email": profile.email, "name": profile.full_name, "temp_password": temp_password}
    except ValidationFailed as exc:
        error = exc.message
    invites = await directory.list_pending_invites(session, admin.company_id)
    return render(
        request,
        "admin/invite.html",
        {"user": admin, "invites": invites, "created": created, "error": error},
        status_code=400 if error else 200,
    )


# =========================
# Departments
# =========================

@router.get("/departments", response_class=HTMLResponse)
async def departments_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    departments = await directory.list_departments(session, admin.company_id)
    return render(request, "admin/departments.html", {"user": admin, "departments": departments})


@router.post("/departments/add")
async def add_department(
    request: Request,
    name: str = Form(...),
    description: str = Form(""),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await directory.create_department(session, admin.company_id, name, description)
    return redirect("/admin/departments")


@router.post("/departments/{department_id}/toggle")
async def toggle_department(
    department_id: int,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await directory.toggle_department(session, admin.company_id, department_id)
    return redirect("/admin/departments")


# =========================
# Teams
# =========================

@router.get("/teams", response_class=HTMLResponse)
async def teams_page(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    teams = await directory.list_teams(session, admin.company_id)
    departments = await directory.list_departments(session, admin.company_id, active_only=True)
    employees = await directory.list_employees(session, admin.company_id)
    return render(
        request,
        "admin/teams.html",
        {"user": admin, "teams": teams, "departments": departments, "employees": employees},
    )


@router.post("/teams/add")
async def add_team(
    request: Request,
    name: str = Form(...),
    manager_id: str = Form(""),
    department_id: str = Form(""),
    description: str = Form(""),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    team = await directory.create_team(
        session,
        admin.company_id,
        name=name,
        manager_id=optional_int(manager_id),
        description=description,
        department_id=optional_int(department_id),
        created_by=admin.id,
    )
    return redirect(f"/admin/teams/{team.id}")


@router.get("/teams/{team_id}", response_class=HTMLResponse)
async def team_members_page(
    request: Request,
    team_id: int,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    team = await directory.get_team(session, admin.company_id, team_id)
    members = await directory.list_team_members(session, admin.company_id, team_id)
    employees = await directory.list_employees(session, admin.company_id)
    member_ids = {member.id for member in members}
    candidates = [employee for employee in employees if employee.id not in member_ids]
    return render(
        request,
        "admin/team_members.html",
        {"user": admin, "team": team, "members": members, "candidates": candidates},
    )


@router.post("/teams/{team_id}/members/add")
async def add_team_member(
    team_id: int,
    employee_id: int = Form(...),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await directory.add_team_member(session, admin.company_id, team_id, employee_id)
    return redirect(f"/admin/teams/{team_id}")


@router.post("/teams/{team_id}/members/{employee_id}/remove")
async def remove_team_member(
    team_id: int,
    employee_id: int,
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await directory.remove_team_member(session, admin.company_id, team_id, employee_id)
    return redirect(f"/admin/teams/{team_id}")


@router.post("/teams/{team_id}/manager")
async def set_team_manager(
    team_id: int,
    manager_id: int = Form(...),
    session: AsyncSession = Depends(get_session),
    admin: models.Profile = Depends(require_company_admin),
):
    await directory.set_team_manager(session, admin.company_id, team_id, manager_id)
    return redirect(f"/admin/teams/{team_id}")
