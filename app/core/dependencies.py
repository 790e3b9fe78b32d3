from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.core.database import get_db
from app.core.security import decode_access_token
from app.services.auth import AuthService
from app.services.email_verification import EmailVerificationService
from app.models.user import User

# Определяем схему безопасности
security = HTTPBearer(auto_error=False)

def get_email_verification_service(request: Request) -> EmailVerificationService:
    """Собирает сервис из объектов, созданных при старте приложения."""
    state = request.app.state
    return EmailVerificationService(
        store=state.verification_store,
        generator=state.code_generator,
        dispatcher=state.email_dispatcher,
    )

def get_auth_service(
    db: AsyncSession = Depends(get_db),
    verification: EmailVerificationService = Depends(get_email_verification_service),
) -> AuthService:
    return AuthService(db, verification)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    """
    Dependency для получения текущего пользователя из JWT токена.
    Возвращает None если токен не предоставлен или невалиден (для опциональной авторизации).
    """
    if not credentials:
        return None

    try:
        payload = decode_access_token(credentials.credentials)
        user_id: str = payload.get("sub")
        if user_id is None:
            return None
    except JWTError:
        return None

    user = await auth_service.get_user_by_id(int(user_id))

    if user is None or not user.is_active:
        return None

    return user

async def require_auth(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """
    Dependency для эндпоинтов, которые обязательно требуют авторизации.
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user
