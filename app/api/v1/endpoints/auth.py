from fastapi import APIRouter, Depends, HTTPException, status
from app.core.dependencies import get_auth_service, get_email_verification_service
from app.core.email_address import normalize_email
from app.core.validation import describe_requirements, validate_password
from app.schemas.auth import (
    CodeStatusResponse,
    LoginRequest,
    PasswordCheckRequest,
    PasswordCheckResponse,
    SendVerificationRequest,
    SignupRequest,
    TokenResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from app.schemas.user import User as UserSchema
from app.services.auth import AuthService, EmailAlreadyRegistered, InvalidCredentials
from app.services.email_verification import DeliveryFailed, EmailVerificationService
from app.services.verification import VerificationError


def _verification_error(exc: VerificationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"status": exc.status.value, "message": exc.message},
    )


def _token_payload(auth_service: AuthService, user) -> dict:
    token = auth_service.create_token(user.id)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user_id": user.id,
        "user": UserSchema.model_validate(user),
    }

router = APIRouter()

@router.post("/send-verification", status_code=status.HTTP_200_OK)
async def send_verification_code(
    request: SendVerificationRequest,
    verification: EmailVerificationService = Depends(get_email_verification_service),
):
    """
    Выдает код подтверждения и отправляет его на email.
    Без SMTP код пишется в лог сервера (для разработки).
    """
    try:
        expires_in = await verification.request_code(request.email, request.name)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )
    except DeliveryFailed:
        # Код уже сохранен, клиент может запросить повторную отправку
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send verification email. Please try again.",
        )

    return {
        "ok": True,
        "success": True,  # поле, которое ждет веб-клиент
        "message": "Verification code sent",
        "email": normalize_email(request.email),
        "expiresIn": expires_in,
    }

@router.post("/verify-code", response_model=VerifyCodeResponse)
async def verify_code(
    request: VerifyCodeRequest,
    verification: EmailVerificationService = Depends(get_email_verification_service),
):
    """Проверяет и погашает код. Повторно тот же код не примется."""
    try:
        result = verification.submit_code(request.email, request.code)
    except VerificationError as exc:
        raise _verification_error(exc)
    return VerifyCodeResponse(ok=True, status=result.value, message="Code verified")

@router.get("/verification-status", response_model=CodeStatusResponse)
async def verification_status(
    email: str,
    verification: EmailVerificationService = Depends(get_email_verification_service),
):
    """Сколько секунд осталось жить коду (null, если кода нет)."""
    return CodeStatusResponse(
        email=normalize_email(email),
        expires_in=verification.time_remaining(email),
    )

@router.post("/password-check", response_model=PasswordCheckResponse)
async def password_check(request: PasswordCheckRequest):
    """Отдает состояние каждого правила пароля для подсказки в форме."""
    result = validate_password(request.password)
    return {
        "is_valid": result.is_valid,
        "errors": result.errors,
        "requirements": describe_requirements(result.requirements),
    }

@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Создает аккаунт по email, паролю и коду подтверждения."""
    try:
        user = await auth_service.signup(
            request.email,
            request.password,
            request.name,
            request.verification_code,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except EmailAlreadyRegistered:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )
    except VerificationError as exc:
        raise _verification_error(exc)

    return _token_payload(auth_service, user)

@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        user = await auth_service.login(request.email, request.password)
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return _token_payload(auth_service, user)
