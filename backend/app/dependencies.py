"""
RxScribe Backend: FastAPI Dependencies
=======================================

What:  Injectable collaborators for route handlers: the signed-in user, the
       AI capability service and the record store.
How:   Plain functions used with Depends(); tests swap them through
       app.dependency_overrides.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.exceptions import ValidationError
from app.schemas.records import OWNER_ID_MAX_LENGTH, AuthenticatedUser
from app.services.ai_service import MedicalAIService, ai_service
from app.services.record_store import RecordStore, SQLRecordStore

logger = logging.getLogger(__name__)


def get_current_user(request: Request) -> Optional[AuthenticatedUser]:
    """
    Signed-in user from the authentication collaborator, or None.

    The upstream auth gateway puts the user id in settings.auth_user_header.
    """
    user_id = request.headers.get(settings.auth_user_header, "").strip()
    if not user_id:
        return None
    if len(user_id) > OWNER_ID_MAX_LENGTH:
        raise ValidationError(
            message=f"User id must be at most {OWNER_ID_MAX_LENGTH} characters.",
            field=settings.auth_user_header,
        )
    return AuthenticatedUser(user_id=user_id)


def get_ai_service() -> MedicalAIService:
    return ai_service


def get_record_store(db: AsyncSession = Depends(get_db_session)) -> RecordStore:
    return SQLRecordStore(db)
