"""Session authentication dependencies."""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamsurvey import models
from teamsurvey.db import get_session
from teamsurvey.errors import PermissionDeniedError

SESSION_USER_KEY = "user_id"


async def get_optional_user(request: Request, session: AsyncSession = Depends(get_session)) -> Optional[models.Profile]:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None
    user = await session.get(models.Profile, user_id)
    if not user or not user.is_active:
        request.session.clear()
        return None
    return user


async def get_current_user(user: Optional[models.Profile] = Depends(get_optional_user)) -> models.Profile:
    if user is None:
        raise HTTPException(status_code=status.HTTP_302_FOUND, headers={"Location": "/login"})
    return user


async def require_company_admin(user: models.Profile = Depends(get_current_user)) -> models.Profile:
    if not user.is_company_admin:
        raise PermissionDeniedError("Company admin access required")
    if not user.company_id:
        raise PermissionDeniedError("Admin profile is not associated with a company.")
    return user
