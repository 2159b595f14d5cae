"""Shared fixtures.

Every test gets its own file-backed SQLite database. The environment is set
before ``teamsurvey`` is imported so the module-level engine and settings never
point at PostgreSQL or try to deliver mail.
"""
import asyncio
import os
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./teamsurvey_test.db")
os.environ.setdefault("NOTIFY_EMPLOYEES", "false")
os.environ.setdefault("SITE_URL", "")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import teamsurvey.email
from teamsurvey import db, models
from teamsurvey.security import get_password_hash

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)

QUESTIONS = [
    {"id": "q1", "text": "How happy are you at work?", "type": "rating", "scale": 5, "required": True},
    {"id": "q2", "text": "Do you feel supported?", "type": "yes_no", "required": True},
    {"id": "q3", "text": "Anything else?", "type": "text", "required": False},
]


@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'teamsurvey.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(db.Base.metadata.create_all)

    asyncio.run(create_tables())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def sessions(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


async def seed_company(session, slug: str) -> SimpleNamespace:
    company = models.Company(name=f"{slug.title()} Ltd")
    session.add(company)
    await session.flush()

    admin = models.Profile(
        company_id=company.id,
        email=f"admin@{slug}.test",
        password_hash=PASSWORD_HASH,
        first_name="Ada",
        last_name="Admin",
        role=models.ROLE_COMPANY_ADMIN,
    )
    employee = models.Profile(
        company_id=company.id,
        email=f"emp@{slug}.test",
        password_hash=PASSWORD_HASH,
        first_name="Eve",
        last_name="Employee",
        role=models.ROLE_EMPLOYEE,
    )
    department = models.Department(company_id=company.id, name="Engineering")
    session.add_all([admin, employee, department])
    await session.flush()

    team = models.Team(company_id=company.id, name="Platform", manager_id=employee.id, department_id=department.id)
    survey = models.Survey(company_id=company.id, title=f"{slug.title()} pulse", questions=QUESTIONS, is_active=True)
    session.add_all([team, survey])
    await session.flush()
    employee.team_id = team.id
    await session.commit()
    return SimpleNamespace(
        company=company, admin=admin, employee=employee, department=department, team=team, survey=survey
    )


@pytest.fixture
def seeded(sessions):
    """Two tenants, ``acme`` and ``globex``, each with an admin, an employee, a team and a survey."""

    async def run():
        async with sessions() as session:
            return await seed_company(session, "acme"), await seed_company(session, "globex")

    return asyncio.run(run())


@pytest.fixture
def acme(seeded):
    return seeded[0]


@pytest.fixture
def globex(seeded):
    return seeded[1]


@pytest.fixture
def sent_emails(monkeypatch):
    """Replace SMTP delivery with a recorder."""
    sent = []

    async def fake_send_email(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(teamsurvey.email, "send_email", fake_send_email)
    return sent


@pytest.fixture
def app_client(engine, sessions, monkeypatch, sent_emails):
    from fastapi.testclient import TestClient

    from teamsurvey.main import app

    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", sessions)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def client(seeded, app_client):
    return app_client


def login(client, email: str, password: str = PASSWORD):
    return client.post("/login", data={"email": email, "password": password}, follow_redirects=False)
