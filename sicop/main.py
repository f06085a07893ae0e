"""
Aplicación FastAPI de SICOP (entrypoint ASGI).

    uvicorn sicop.main:app --reload
"""
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sicop.api.auth import router as auth_router
from sicop.api.cases import router as cases_router
from sicop.api.users import router as users_router
from sicop.core.config import settings
from sicop.core.exceptions import SicopException
from sicop.core.logger import get_logger
from sicop.core.security import limiter

# =========================================================
# CARGA DE ENTORNO
# =========================================================

load_dotenv()

logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting SICOP",
        action="startup",
        environment=settings.environment,
        version=settings.app_version,
    )
    if settings.auto_create_tables:
        from sicop.core.init_db import create_tables

        create_tables()
    yield
    logger.info("Stopping SICOP", action="shutdown")


# =========================================================
# FASTAPI APP
# =========================================================

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Núcleo de gestión de casos del consultorio jurídico",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth_router)
app.include_router(cases_router)
app.include_router(users_router)


# =========================================================
# MANEJO DE ERRORES
# =========================================================

@app.exception_handler(SicopException)
async def sicop_exception_handler(request: Request, exc: SicopException):
    headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == 401 else None

    if exc.http_status >= 500:
        logger.error(
            "Request failed",
            action="http_error",
            path=request.url.path,
            error=exc.original_error or exc,
        )

    return JSONResponse(status_code=exc.http_status, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.warning("Invalid request", action="validation_error", path=request.url.path)

    return JSONResponse(
        status_code=400,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": "Petición inválida",
            "severity": "low",
            "details": {"errors": errors},
        },
    )


# =========================================================
# METADATOS
# =========================================================

@app.get("/health", tags=["meta"])
def health():
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/", tags=["meta"])
def root():
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
