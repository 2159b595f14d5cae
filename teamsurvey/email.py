import logging
from email.message import EmailMessage
from html import escape
from typing import Optional

import aiosmtplib

from teamsurvey.errors import EmailDeliveryError
from teamsurvey.utils import utcnow

logger = logging.getLogger(__name__)


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    host: str,
    port: int,
    username: Optional[str] = None,
    password: Optional[str] = None,
    use_tls: bool = True,
    from_email: str = "",
    from_name: str = "Team Survey",
) -> None:
    message = EmailMessage()
    message["From"] = f"{from_name} <{from_email}>"
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(html_content, subtype="html")

    # Port 465 is implicit TLS, anything else upgrades with STARTTLS when asked to.
    is_ssl_port = port == 465

    try:
        smtp_client = aiosmtplib.SMTP(
            hostname=host,
            port=port,
            use_tls=is_ssl_port,
            start_tls=not is_ssl_port and use_tls,
        )
        async with smtp_client:
            if username:
                await smtp_client.login(username, password or "")
            await smtp_client.send_message(message)
        logger.info("Email sent to %s (%s)", to_email, subject)
    except (aiosmtplib.SMTPException, OSError):
        logger.exception("SMTP delivery to %s failed", to_email)
        raise


async def send_with_settings(smtp, to_email: str, subject: str, html_content: str) -> None:
    """Send through a company's SMTP row; delivery failures become EmailDeliveryError."""
    try:
        await send_email(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            host=smtp.host,
            port=smtp.port,
            username=smtp.username,
            password=smtp.password,
            use_tls=smtp.use_tls,
            from_email=smtp.from_email,
            from_name=smtp.from_name,
        )
    except (aiosmtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(f"Failed to send email: {exc}") from exc


def _layout(heading: str, body: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8" />
  <title>{heading}</title>
</head>
<body style="margin:0; padding:0; background-color:#f4f6f8; font-family: Arial, Helvetica, sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color:#f4f6f8; padding:40px 0;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff; border-radius:8px; overflow:hidden;">
          <tr>
            <td style="background-color:#2563eb; padding:24px; text-align:center;">
              <h1 style="margin:0; color:#ffffff; font-size:22px;">{heading}</h1>
            </td>
          </tr>
          <tr>
            <td style="padding:32px; color:#1f2937;">
{body}
            </td>
          </tr>
          <tr>
            <td style="background-color:#f9fafb; padding:20px; text-align:center; font-size:12px; color:#9ca3af;">
              <p style="margin:0;">&copy; {utcnow().year} Team Survey</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _button(link: str, label: str) -> str:
    return f"""
              <div style="text-align:center; margin:32px 0;">
                <a href="{link}" style="background-color:#2563eb; color:#ffffff; text-decoration:none; padding:14px 28px; font-size:16px; border-radius:6px; display:inline-block;">{label}</a>
              </div>
              <p style="font-size:14px; color:#4b5563;">If the button above doesn't work, copy and paste this link into your browser:</p>
              <p style="font-size:14px; word-break:break-all;"><a href="{link}" style="color:#2563eb;">{link}</a></p>
"""


def render_guest_invite(link: str, survey_title: str, ttl_days: int) -> str:
    body = f"""
              <p style="font-size:16px; line-height:1.6; margin-top:0;">Hello,</p>
              <p style="font-size:16px; line-height:1.6;">
                You've been invited to complete the survey <strong>{escape(survey_title)}</strong>.
                Please click the link below to begin.
              </p>
{_button(link, "Start Survey")}
              <p style="font-size:14px; color:#6b7280; margin-bottom:0;">
                This link is unique to you and will expire in {ttl_days} days.
              </p>
"""
    return _layout("You're Invited", body)


def render_assignment_notice(name: str, survey_title: str, link: str) -> str:
    body = f"""
              <p style="font-size:16px; line-height:1.6; margin-top:0;">Hello {escape(name)},</p>
              <p style="font-size:16px; line-height:1.6;">
                A new survey, <strong>{escape(survey_title)}</strong>, is waiting for you on your dashboard.
              </p>
{_button(link, "Open Dashboard")}
"""
    return _layout("New Survey", body)
