import datetime as dt
from typing import Optional

# =========================
# Time
# =========================

def utcnow() -> dt.datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def parse_date(value: Optional[str]) -> Optional[dt.datetime]:
    """Parse an HTML date/datetime-local form value. Blank means unset."""
    if value is None or not value.strip():
        return None
    return dt.datetime.fromisoformat(value.strip())


# =========================
# Survey Status
# =========================

STATUS_COLORS = {
    "Inactive": "#6c757d",
    "Scheduled": "#ffc107",
    "Ended": "#dc3545",
    "Active": "#28a745",
    "Draft": "#17a2b8",
}


def survey_status(survey, now: Optional[dt.datetime] = None) -> tuple[str, str]:
    """
    Derive the display status of a survey.

    Precedence:
      inactive flag       -> Inactive
      before start_date   -> Scheduled
      after end_date      -> Ended
      started, not ended  -> Active
      no start_date       -> Draft
    """
    now = now or utcnow()
    if not survey.is_active:
        label = "Inactive"
    elif survey.start_date and now < survey.start_date:
        label = "Scheduled"
    elif survey.end_date and now > survey.end_date:
        label = "Ended"
    elif survey.start_date and now >= survey.start_date:
        label = "Active"
    else:
        label = "Draft"
    return label, STATUS_COLORS[label]


def format_date(value: Optional[dt.datetime]) -> str:
    if not value:
        return "Not set"
    return value.strftime("%Y-%m-%d")
