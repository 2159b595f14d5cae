"""JSON request bodies for the /api endpoints.

Fields are optional so that missing values reach the services and produce
their own messages instead of a generic 422.
"""
from typing import Any, Optional

from pydantic import BaseModel


class GuestInvitePayload(BaseModel):
    survey_id: Optional[int] = None
    team_id: Optional[int] = None
    guest_email: Optional[str] = None


class GuestTokenPayload(BaseModel):
    token: Optional[str] = None


class GuestSubmissionPayload(BaseModel):
    token: Optional[str] = None
    answers: Optional[dict[str, Any]] = None
