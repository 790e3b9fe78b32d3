from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from app.models.user import User
from app.core.email_address import normalize_email
from app.core.security import create_access_token, hash_password, verify_password
from app.core.validation import validate_email, validate_password
from app.services.email_verification import EmailVerificationService
from app.services.verification import VerificationError


class EmailAlreadyRegistered(Exception):
    pass


class InvalidCredentials(Exception):
    pass


class AuthService:
    def __init__(self, db: AsyncSession, verification: Optional[EmailVerificationService] = None):
        self.db = db
        self.verification = verification

    def _default_name(self, email: str) -> str:
        local = email.split("@", 1)[0]
        return local or "User"

    async def find_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def signup(self, email: str, password: str, name: Optional[str], verification_code: str) -> User:
        """Регистрирует пользователя по подтвержденному коду.

        Проверки идут до погашения кода, чтобы ошибка в пароле не сжигала код.
        """
        email_check = validate_email((email or "").strip())
        if not email_check.is_valid:
            raise ValueError(email_check.error)
        password_check = validate_password(password)
        if not password_check.is_valid:
            raise ValueError(password_check.errors[0])
        if not verification_code:
            raise ValueError("Please verify your email first")

        normalized_email = normalize_email(email)
        if await self.find_user_by_email(normalized_email):
            raise EmailAlreadyRegistered(normalized_email)

        user = User(
            email=normalized_email,
            name=name or self._default_name(normalized_email),
            hashed_password=hash_password(password),
        )
        self.db.add(user)
        # Вставка до погашения кода: гонка двух регистраций ловится здесь
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise EmailAlreadyRegistered(normalized_email)

        try:
            # Бросает VerificationError, если код не подошел
            self.verification.submit_code(normalized_email, verification_code)
        except VerificationError:
            await self.db.rollback()
            raise

        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def login(self, email: str, password: str) -> User:
        user = await self.find_user_by_email(email or "")
        if user is None or not user.is_active:
            raise InvalidCredentials()
        if not verify_password(password or "", user.hashed_password):
            raise InvalidCredentials()
        return user

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Получает пользователя по ID"""
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    def create_token(self, user_id: int) -> str:
        """Создает JWT токен для пользователя"""
        return create_access_token(data={"sub": str(user_id)})
