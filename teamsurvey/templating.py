from pathlib import Path

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from teamsurvey.config import settings
from teamsurvey.questions import describe_question_type, question_count
from teamsurvey.utils import format_date, survey_status

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.filters["format_date"] = format_date
templates.env.filters["question_type"] = describe_question_type
templates.env.filters["question_count"] = question_count
templates.env.globals["survey_status"] = survey_status


def base_url(request: Request) -> str:
    return (settings.site_url or str(request.base_url)).rstrip("/")


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def render(request: Request, name: str, context: dict, status_code: int = 200):
    return templates.TemplateResponse(request, name, context, status_code=status_code)
