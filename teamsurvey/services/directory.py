"""Departments, teams and employee profiles, always scoped to one company."""
import logging
from typing import Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamsurvey import models
from teamsurvey.errors import NotFoundError, ValidationFailed
from teamsurvey.security import generate_temp_password, get_password_hash

logger = logging.getLogger(__name__)


# =========================
# Departments
# =========================

async def list_departments(session: AsyncSession, company_id: int, active_only: bool = False) -> list[models.Department]:
    stmt = select(models.Department).where(models.Department.company_id == company_id)
    if active_only:
        stmt = stmt.where(models.Department.is_active.is_(True))
    result = await session.execute(stmt.order_by(models.Department.name))
    return list(result.scalars().all())


async def get_department(session: AsyncSession, company_id: int, department_id: int) -> models.Department:
    department = await session.get(models.Department, department_id)
    if not department or department.company_id != company_id:
        raise NotFoundError("Department not found")
    return department


async def create_department(
    session: AsyncSession, company_id: int, name: str, description: Optional[str] = None
) -> models.Department:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Department name is required")
    department = models.Department(
        company_id=company_id,
        name=name,
        description=(description or "").strip() or None,
    )
    session.add(department)
    await session.commit()
    logger.info("Created department %s for company %s", department.id, company_id)
    return department


async def toggle_department(session: AsyncSession, company_id: int, department_id: int) -> models.Department:
    department = await get_department(session, company_id, department_id)
    department.is_active = not department.is_active
    await session.commit()
    return department


# =========================
# Employees
# =========================

async def get_employee(session: AsyncSession, company_id: int, employee_id: int) -> models.Profile:
    employee = await session.get(models.Profile, employee_id)
    if not employee or employee.company_id != company_id:
        raise NotFoundError("Employee not found")
    return employee


async def list_employees(session: AsyncSession, company_id: int) -> list[models.Profile]:
    result = await session.execute(
        select(models.Profile)
        .options(selectinload(models.Profile.department))
        .where(models.Profile.company_id == company_id)
        .order_by(models.Profile.first_name, models.Profile.last_name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def department_name(employee: models.Profile) -> str:
    return employee.department.name if employee.department else "No Department"


async def update_employee_departments(
    session: AsyncSession, company_id: int, changes: Mapping[int, Optional[int]]
) -> int:
    """Apply ``{employee_id: department_id or None}``. Returns the number updated."""
    if not changes:
        raise ValidationFailed("No changes to save")
    for employee_id, department_id in changes.items():
        employee = await get_employee(session, company_id, employee_id)
        if department_id is not None:
            await get_department(session, company_id, department_id)
        employee.department_id = department_id
    await session.commit()
    logger.info("Updated departments for %d employees in company %s", len(changes), company_id)
    return len(changes)


async def invite_employee(
    session: AsyncSession,
    company_id: int,
    email: str,
    first_name: str,
    last_name: str,
    invited_by: Optional[int] = None,
) -> tuple[models.Profile, str]:
    """Create an employee login with a temporary password.

    The password is returned once so the admin can hand it over; the employee
    is asked to change it on first login.
    """
    email = (email or "").strip().lower()
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    if not email or not first_name or not last_name:
        raise ValidationFailed("Email, first name and last name are required")
    existing = await session.execute(select(models.Profile.id).where(func.lower(models.Profile.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise ValidationFailed(f"An account for {email} already exists")

    temp_password = generate_temp_password()
    profile = models.Profile(
        company_id=company_id,
        email=email,
        password_hash=get_password_hash(temp_password),
        first_name=first_name,
        last_name=last_name,
        role=models.ROLE_EMPLOYEE,
        is_active=True,
        must_change_password=True,
    )
    session.add(profile)
    session.add(
        models.PendingInvite(
            company_id=company_id,
            email=email,
            name=f"{first_name} {last_name}",
            invited_by=invited_by,
        )
    )
    await session.commit()
    logger.info("Invited employee %s to company %s", email, company_id)
    return profile, temp_password


async def list_pending_invites(session: AsyncSession, company_id: int) -> list[models.PendingInvite]:
    result = await session.execute(
        select(models.PendingInvite)
        .where(models.PendingInvite.company_id == company_id)
        .order_by(models.PendingInvite.created_at.desc())
    )
    return list(result.scalars().all())


# =========================
# Teams
# =========================

async def list_teams(session: AsyncSession, company_id: int) -> list[models.Team]:
    result = await session.execute(
        select(models.Team)
        .options(selectinload(models.Team.department), selectinload(models.Team.manager))
        .where(models.Team.company_id == company_id)
        .order_by(models.Team.name)
    )
    return list(result.scalars().all())


async def get_team(session: AsyncSession, company_id: int, team_id: int) -> models.Team:
    result = await session.execute(
        select(models.Team)
        .options(selectinload(models.Team.department), selectinload(models.Team.manager))
        .where(models.Team.id == team_id)
    )
    team = result.scalars().first()
    if not team or team.company_id != company_id:
        raise NotFoundError("Team not found")
    return team


async def create_team(
    session: AsyncSession,
    company_id: int,
    name: str,
    manager_id: Optional[int],
    description: Optional[str] = None,
    department_id: Optional[int] = None,
    created_by: Optional[int] = None,
) -> models.Team:
    name = (name or "").strip()
    if not name or not manager_id:
        raise ValidationFailed("Please fill in all required fields (name and manager)")
    if department_id is not None:
        await get_department(session, company_id, department_id)
    manager = await get_employee(session, company_id, manager_id)

    team = models.Team(
        company_id=company_id,
        department_id=department_id,
        name=name,
        description=(description or "").strip() or None,
        manager_id=manager.id,
        created_by=created_by,
    )
    session.add(team)
    await session.flush()
    # the manager belongs to the team they manage
    manager.team_id = team.id
    await session.commit()
    logger.info("Created team %s managed by %s", team.id, manager.id)
    return team


async def list_team_members(session: AsyncSession, company_id: int, team_id: int) -> list[models.Profile]:
    await get_team(session, company_id, team_id)
    result = await session.execute(
        select(models.Profile)
        .where(models.Profile.company_id == company_id, models.Profile.team_id == team_id)
        .order_by(models.Profile.first_name, models.Profile.last_name)
    )
    return list(result.scalars().all())


async def add_team_member(session: AsyncSession, company_id: int, team_id: int, employee_id: int) -> models.Profile:
    await get_team(session, company_id, team_id)
    employee = await get_employee(session, company_id, employee_id)
    employee.team_id = team_id
    await session.commit()
    return employee


async def remove_team_member(session: AsyncSession, company_id: int, team_id: int, employee_id: int) -> None:
    team = await get_team(session, company_id, team_id)
    employee = await get_employee(session, company_id, employee_id)
    if employee.team_id != team.id:
        raise ValidationFailed("Employee is not a member of this team")
    employee.team_id = None
    if team.manager_id == employee.id:
        team.manager_id = None
    await session.commit()


async def set_team_manager(session: AsyncSession, company_id: int, team_id: int, manager_id: int) -> models.Team:
    team = await get_team(session, company_id, team_id)
    manager = await get_employee(session, company_id, manager_id)
    if manager.team_id != team.id:
        raise ValidationFailed("The manager must be a member of the team")
    team.manager_id = manager.id
    await session.commit()
    return team
