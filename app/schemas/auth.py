from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from app.schemas.user import User as UserSchema


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    return cleaned[:60]


# Схема для запроса кода на email
class SendVerificationRequest(BaseModel):
    email: str
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)


# Схема для подтверждения кода
class VerifyCodeRequest(BaseModel):
    email: str
    code: str


class VerifyCodeResponse(BaseModel):
    ok: bool
    status: str
    message: Optional[str] = None


class CodeStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    expires_in: Optional[int] = Field(default=None, alias="expiresIn")


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    name: Optional[str] = None
    verification_code: Optional[str] = Field(default=None, alias="verificationCode")

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordRequirement(BaseModel):
    key: str
    text: str
    met: bool


class PasswordCheckRequest(BaseModel):
    password: str


class PasswordCheckResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    requirements: List[PasswordRequirement]


# Схема для ответа с токеном
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    success: bool = True  # поле, которое ждет веб-клиент
    user_id: int
    user: Optional[UserSchema] = None
