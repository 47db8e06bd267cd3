from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from memberguard import __version__
from memberguard.api.routers import auth, conversations, prize_draws, resources
from memberguard.common.logger import configure_from_settings
from memberguard.core.config import Settings, get_settings
from memberguard.core.errors import (
    ConflictError,
    KernelError,
    NotFoundError,
    PayloadValidationError,
    PermissionDeniedError,
    StorageUnavailableError,
    TransitionError,
    UnauthenticatedError,
)

# Kernel failures to HTTP status codes
ERROR_STATUS = {
    UnauthenticatedError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    TransitionError: status.HTTP_409_CONFLICT,
    PayloadValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StorageUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _status_for(exc: KernelError) -> int:
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def kernel_error_handler(request: Request, exc: KernelError) -> JSONResponse:
    body = {"error": exc.code, "detail": str(exc), "code": exc.code}
    headers = None
    if isinstance(exc, UnauthenticatedError):
        # Never reveal why a session was rejected
        body["detail"] = "Could not validate credentials"
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, PermissionDeniedError):
        body["violation_type"] = exc.violation_type
    elif isinstance(exc, PayloadValidationError):
        body["field"] = exc.field
    elif isinstance(exc, StorageUnavailableError):
        body["detail"] = "A backing store is unavailable, try again later"
    return JSONResponse(status_code=_status_for(exc), content=body, headers=headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_from_settings(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Authorization kernel and guarded resource lifecycles",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(KernelError, kernel_error_handler)

    # Include routers
    app.include_router(auth.router, prefix="/api")
    app.include_router(resources.router, prefix="/api")
    app.include_router(conversations.router, prefix="/api")
    app.include_router(prize_draws.router, prefix="/api")

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()
