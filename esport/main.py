"""
esport/main.py
FastAPI application: routers, middleware and error handlers

Run for development with `python -m esport.main`, in production through
gunicorn (deploy/gunicorn.conf.py).
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from esport import __version__
from esport.config import get_settings, feature_flags, configure_logging
from esport.database import init_db, close_db
from esport.errors import APIError, StorageError, ErrorCode, ERROR_MAPPING, new_log_id, get_error_summary
from esport.rate_limit import limiter
from esport.routes import router

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} {__version__} starting ({settings.environment})")
    for problem in settings.check():
        logger.warning(f"Configuration: {problem}")
    try:
        await init_db()
        logger.info("Database schema ready")
    except SQLAlchemyError as e:
        logger.error(f"Database unavailable at startup: {str(e)}")
        raise

    yield

    logger.info("Stopping; disposing database engine")
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Competitions, match results, rankings and paid registrations",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

# slowapi reads the limiter from app.state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

DEV_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
origins = list(settings.allowed_origins)
if settings.is_development:
    origins.extend(DEV_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request to {request.url.path}: {len(exc.errors())} validation errors")

    error_details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": "Validation Error",
            "message": "The request body or parameters are invalid",
            "code": ErrorCode.VALIDATION_ERROR,
            "details": {"errors": error_details}
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")
    label, code = ERROR_MAPPING.get(exc.status_code, ("Error", ErrorCode.INVALID_INPUT))
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": label,
            "message": str(exc.detail),
            "code": code
        }
    )


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
    response = exc.to_response()
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    return StorageError.from_exception(exc, request.url.path).to_response()


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log_id = new_log_id()
    logger.error(f"[{log_id}] Unhandled exception on {request.url.path}: {type(exc).__name__}: {str(exc)}",
                 exc_info=exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal Error",
            "message": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
            "details": {"log_id": log_id}
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.environment,
        "database": settings.db_connection.split("://", 1)[0],
        "features": feature_flags.get_all_flags(),
        "version": __version__
    }


@app.get("/api/errors/health", tags=["Health"])
async def error_handling_health():
    return get_error_summary()


app.include_router(router, prefix="/api")


if __name__ == "__main__":
    import os
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))

    logger.info(f"Starting server on {host}:{port} ({settings.environment})")
    uvicorn.run(
        "esport.main:app",
        host=host,
        port=port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
