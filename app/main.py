import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import settings
from app.core.database import engine
from app.core.init_db import init_db
from app.api.v1.api import api_router
from app.services.codes import CodeGenerator
from app.services.mailer import build_dispatcher
from app.services.verification import VerificationStore, VerificationSweeper

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()

    store = VerificationStore(ttl_seconds=settings.VERIFICATION_CODE_TTL_SECONDS)
    app.state.verification_store = store
    app.state.code_generator = CodeGenerator(settings.VERIFICATION_CODE_LENGTH)
    app.state.email_dispatcher = build_dispatcher(settings)

    # Фоновая очистка кодов, которые так и не были введены
    sweeper = VerificationSweeper(store, settings.VERIFICATION_SWEEP_INTERVAL_SECONDS)
    sweeper.start()
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    try:
        yield
    finally:
        await sweeper.stop()
        await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Настройка CORS
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Подключаем роутеры API v1
app.include_router(api_router, prefix=settings.API_V1_STR)

# Роутеры БЕЗ префикса для веб-клиента (/auth/send-verification и т.д.)
app.include_router(api_router, prefix="")


@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} ready"}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Ошибки в формате веб-клиента: success/error рядом с detail."""
    detail = exc.detail
    error = detail.get("message") if isinstance(detail, dict) else detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": error, "detail": detail},
        headers=getattr(exc, "headers", None),
    )
