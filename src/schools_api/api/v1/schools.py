"""School maintenance endpoints: DELETE /schools."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.dependencies import get_async_session, require_import_admin
from schools_api.models.user import User
from schools_api.schemas.imports import ClearSchoolsResponse
from schools_api.services import school_service

router = APIRouter(prefix="/schools", tags=["schools"])


@router.delete("", response_model=ClearSchoolsResponse)
async def clear_schools(
    current_user: Annotated[User, Depends(require_import_admin)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ClearSchoolsResponse:
    """Delete every stored school (import admins only)."""
    deleted = await school_service.clear_schools(session)
    return ClearSchoolsResponse(deleted=deleted)
