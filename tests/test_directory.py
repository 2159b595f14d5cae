import asyncio

import pytest

from teamsurvey import models
from teamsurvey.errors import NotFoundError, ValidationFailed
from teamsurvey.security import verify_password
from teamsurvey.services import directory, surveys


def run_with(sessions, fn):
    async def run():
        async with sessions() as session:
            return await fn(session)

    return asyncio.run(run())


def test_departments_are_listed_per_company(sessions, acme, globex):
    run_with(sessions, lambda s: directory.create_department(s, acme.company.id, "  Sales  ", "Revenue"))
    names = run_with(sessions, lambda s: directory.list_departments(s, acme.company.id))
    assert [d.name for d in names] == ["Engineering", "Sales"]

    with pytest.raises(ValidationFailed):
        run_with(sessions, lambda s: directory.create_department(s, acme.company.id, " "))
    with pytest.raises(NotFoundError):
        run_with(sessions, lambda s: directory.toggle_department(s, acme.company.id, globex.department.id))


def test_inactive_departments_are_hidden_when_asked(sessions, acme):
    run_with(sessions, lambda s: directory.toggle_department(s, acme.company.id, acme.department.id))
    assert run_with(sessions, lambda s: directory.list_departments(s, acme.company.id, active_only=True)) == []


def test_update_employee_departments(sessions, acme, globex):
    updated = run_with(
        sessions,
        lambda s: directory.update_employee_departments(s, acme.company.id, {acme.employee.id: acme.department.id}),
    )
    assert updated == 1
    employees = run_with(sessions, lambda s: directory.list_employees(s, acme.company.id))
    assert {e.email: directory.department_name(e) for e in employees} == {
        "admin@acme.test": "No Department",
        "emp@acme.test": "Engineering",
    }

    with pytest.raises(ValidationFailed) as exc:
        run_with(sessions, lambda s: directory.update_employee_departments(s, acme.company.id, {}))
    assert exc.value.message == "No changes to save"
    with pytest.raises(NotFoundError):
        run_with(
            sessions,
            lambda s: directory.update_employee_departments(s, acme.company.id, {globex.employee.id: None}),
        )


def test_invite_employee_creates_login_with_temporary_password(sessions, acme):
    profile, temp_password = run_with(
        sessions,
        lambda s: directory.invite_employee(s, acme.company.id, " New@Acme.test ", "Nia", "New", acme.admin.id),
    )
    assert profile.email == "new@acme.test"
    assert profile.must_change_password is True
    assert profile.role == models.ROLE_EMPLOYEE
    assert verify_password(temp_password, profile.password_hash)

    pending = run_with(sessions, lambda s: directory.list_pending_invites(s, acme.company.id))
    assert [(p.email, p.name) for p in pending] == [("new@acme.test", "Nia New")]

    with pytest.raises(ValidationFailed) as exc:
        run_with(sessions, lambda s: directory.invite_employee(s, acme.company.id, "NEW@acme.test", "N", "N"))
    assert exc.value.message == "An account for new@acme.test already exists"


def test_create_team_puts_manager_on_the_team(sessions, acme):
    team = run_with(
        sessions,
        lambda s: directory.create_team(
            s, acme.company.id, "Growth", acme.admin.id, "Experiments", acme.department.id, acme.admin.id
        ),
    )
    members = run_with(sessions, lambda s: directory.list_team_members(s, acme.company.id, team.id))
    assert [m.id for m in members] == [acme.admin.id]
    loaded = run_with(sessions, lambda s: directory.get_team(s, acme.company.id, team.id))
    assert loaded.manager.email == "admin@acme.test"
    assert loaded.department.name == "Engineering"

    with pytest.raises(ValidationFailed) as exc:
        run_with(sessions, lambda s: directory.create_team(s, acme.company.id, "Nameless", None))
    assert exc.value.message == "Please fill in all required fields (name and manager)"


def test_team_membership_and_manager(sessions, acme, globex):
    company_id, team_id = acme.company.id, acme.team.id
    run_with(sessions, lambda s: directory.add_team_member(s, company_id, team_id, acme.admin.id))
    run_with(sessions, lambda s: directory.set_team_manager(s, company_id, team_id, acme.admin.id))
    assert run_with(sessions, lambda s: directory.get_team(s, company_id, team_id)).manager_id == acme.admin.id

    run_with(sessions, lambda s: directory.remove_team_member(s, company_id, team_id, acme.admin.id))
    team = run_with(sessions, lambda s: directory.get_team(s, company_id, team_id))
    assert team.manager_id is None
    members = run_with(sessions, lambda s: directory.list_team_members(s, company_id, team_id))
    assert [m.id for m in members] == [acme.employee.id]

    with pytest.raises(ValidationFailed) as exc:
        run_with(sessions, lambda s: directory.set_team_manager(s, company_id, team_id, acme.admin.id))
    assert exc.value.message == "The manager must be a member of the team"
    with pytest.raises(ValidationFailed):
        run_with(sessions, lambda s: directory.remove_team_member(s, company_id, team_id, acme.admin.id))
    with pytest.raises(NotFoundError):
        run_with(sessions, lambda s: directory.add_team_member(s, company_id, team_id, globex.employee.id))


def test_create_survey_validates_input(sessions, acme):
    questions = '[{"text": "Rate lunch", "type": "rating", "scale": 10}]'
    survey = run_with(
        sessions, lambda s: surveys.create_survey(s, acme.company.id, "Lunch", questions, created_by=acme.admin.id)
    )
    assert survey.questions == [{"id": "q1", "text": "Rate lunch", "type": "rating", "scale": 10, "required": False}]
    listed = run_with(sessions, lambda s: surveys.list_surveys(s, acme.company.id))
    assert [s.title for s in listed] == ["Lunch", "Acme pulse"]

    with pytest.raises(ValidationFailed) as exc:
        run_with(sessions, lambda s: surveys.create_survey(s, acme.company.id, " ", questions))
    assert exc.value.message == "Survey title is required"
