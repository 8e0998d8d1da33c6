import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user_id
from app.core.response import no_content_response
from app.db.deps import get_db
from app.services.users.user_service import UserService


router = APIRouter(prefix="/user", tags=["user"])


@router.delete("", status_code=204)
async def delete_account(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete the caller's account data.

    Method/Path: DELETE /api/v1/user
    Returns: 204 with no body
    Errors: 401 without a valid token, 500 auth_error when deletion fails
    """
    await UserService(db).delete_user(user_id)
    return no_content_response()
