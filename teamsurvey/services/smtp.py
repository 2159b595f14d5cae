from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.config import settings
from teamsurvey.utils import utcnow


async def get_smtp(session: AsyncSession, company_id: int) -> models.SMTPSettings:
    """The company's SMTP row, seeded from the environment on first use."""
    result = await session.execute(
        select(models.SMTPSettings).where(models.SMTPSettings.company_id == company_id).limit(1)
    )
    smtp = result.scalars().first()
    if smtp:
        return smtp
    smtp = models.SMTPSettings(
        company_id=company_id,
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
    )
    session.add(smtp)
    await session.flush()
    return smtp


async def save_smtp(
    session: AsyncSession,
    company_id: int,
    host: str,
    port: int,
    username: str | None,
    password: str | None,
    use_tls: bool,
    from_email: str,
    from_name: str,
) -> models.SMTPSettings:
    smtp = await get_smtp(session, company_id)
    smtp.host = host
    smtp.port = port
    smtp.username = username or None
    # a blank password field keeps the stored one
    if password:
        smtp.password = password
    smtp.use_tls = bool(use_tls)
    smtp.from_email = from_email
    smtp.from_name = from_name
    smtp.updated_at = utcnow()
    await session.commit()
    return smtp
