from fastapi import APIRouter, Depends

from app.core.dependencies import require_auth
from app.models.user import User
from app.schemas.user import User as UserSchema

router = APIRouter()

@router.get("/me", response_model=UserSchema)
async def get_current_user_profile(
    current_user: User = Depends(require_auth)
):
    """Профиль текущего пользователя"""
    return current_user
