import asyncio

import aiosmtplib
import pytest
from sqlalchemy import func, select

import teamsurvey.email
from teamsurvey import models
from teamsurvey.config import settings
from teamsurvey.errors import AssignmentClosed, NotFoundError, ValidationFailed
from teamsurvey.services import assignments, surveys

BASE_URL = "https://surveys.example.com"
ANSWERS = {"q1": "5", "q2": "no"}


def _send(sessions, company_id, survey_id, employee_ids):
    async def run():
        async with sessions() as session:
            return await assignments.send_survey(session, company_id, survey_id, employee_ids, BASE_URL)

    return asyncio.run(run())


def _pending_for(sessions, user):
    async def run():
        async with sessions() as session:
            return await assignments.list_pending(session, user)

    return asyncio.run(run())


def test_send_survey_creates_one_pending_row_per_employee(sessions, acme):
    created, skipped, notified = _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id, acme.admin.id])
    assert (created, skipped, notified) == (2, 0, 0)

    pending = _pending_for(sessions, acme.employee)
    assert [p.survey.title for p in pending] == ["Acme pulse"]


def test_send_survey_skips_employees_already_pending(sessions, acme):
    _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id])
    assert _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id, acme.admin.id]) == (1, 1, 0)


@pytest.mark.parametrize(
    "survey_id, employee_ids, message",
    [
        (0, [1], "Please select a survey to send"),
        (1, [], "Please select at least one employee to send the survey to"),
    ],
)
def test_send_survey_requires_selection(sessions, acme, survey_id, employee_ids, message):
    with pytest.raises(ValidationFailed) as exc:
        _send(sessions, acme.company.id, survey_id, employee_ids)
    assert exc.value.message == message


def test_send_survey_rejects_other_tenants(sessions, acme, globex):
    with pytest.raises(ValidationFailed) as exc:
        _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id, globex.employee.id])
    assert exc.value.message == "Some selected employees do not belong to your company"
    with pytest.raises(NotFoundError):
        _send(sessions, acme.company.id, globex.survey.id, [acme.employee.id])


def test_send_survey_rejects_inactive_survey(sessions, acme):
    async def deactivate():
        async with sessions() as session:
            await surveys.toggle_survey(session, acme.company.id, acme.survey.id)

    asyncio.run(deactivate())
    with pytest.raises(ValidationFailed) as exc:
        _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id])
    assert exc.value.message == "This survey is not active"


def test_notifications_are_best_effort(sessions, acme, monkeypatch):
    monkeypatch.setattr(settings, "notify_employees", True)
    delivered = []

    async def flaky_send_email(**kwargs):
        if kwargs["to_email"] == acme.admin.email:
            raise aiosmtplib.SMTPException("mailbox full")
        delivered.append(kwargs)

    monkeypatch.setattr(teamsurvey.email, "send_email", flaky_send_email)
    created, skipped, notified = _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id, acme.admin.id])
    assert (created, notified) == (2, 1)
    assert delivered[0]["to_email"] == acme.employee.email
    assert "Acme pulse" in delivered[0]["subject"]
    assert len(_pending_for(sessions, acme.admin)) == 1


def test_complete_pending_stores_response(sessions, acme):
    _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id])
    pending_id = _pending_for(sessions, acme.employee)[0].id

    async def run():
        async with sessions() as session:
            return await assignments.complete_pending(session, acme.employee, pending_id, ANSWERS)

    response = asyncio.run(run())
    assert response.user_id == acme.employee.id
    assert response.team_id == acme.team.id
    assert response.company_id == acme.company.id
    assert response.qa_responses["email"] == acme.employee.email
    assert response.qa_responses["responses"][0]["answer"] == 5
    assert _pending_for(sessions, acme.employee) == []

    with pytest.raises(AssignmentClosed):
        asyncio.run(run())


def test_complete_pending_only_for_the_assignee(sessions, acme):
    _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id])
    pending_id = _pending_for(sessions, acme.employee)[0].id

    async def run():
        async with sessions() as session:
            return await assignments.complete_pending(session, acme.admin, pending_id, ANSWERS)

    with pytest.raises(NotFoundError):
        asyncio.run(run())


def test_double_submission_race(sessions, acme):
    _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id])
    pending_id = _pending_for(sessions, acme.employee)[0].id

    async def run():
        async with sessions() as first, sessions() as second:
            await assignments.get_pending(first, acme.employee, pending_id)
            await assignments.complete_pending(second, acme.employee, pending_id, ANSWERS)
            with pytest.raises(AssignmentClosed):
                await assignments.complete_pending(first, acme.employee, pending_id, ANSWERS)
            return (await second.execute(select(func.count(models.SurveyResponse.id)))).scalar_one()

    assert asyncio.run(run()) == 1


def test_assignment_counts(sessions, acme, globex):
    _send(sessions, acme.company.id, acme.survey.id, [acme.employee.id, acme.admin.id])
    _send(sessions, globex.company.id, globex.survey.id, [globex.employee.id])
    pending_id = _pending_for(sessions, acme.employee)[0].id

    async def run():
        async with sessions() as session:
            await assignments.complete_pending(session, acme.employee, pending_id, ANSWERS)
            return await assignments.assignment_counts(session, acme.company.id)

    assert asyncio.run(run()) == {"pending": 1, "completed": 1}
