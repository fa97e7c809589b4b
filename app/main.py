import logging
from contextlib import asynccontextmanager
from typing import Annotated

import uvicorn
from fastapi import FastAPI, Response, Request, Depends, Header, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app import services
from app.auth import AuthService, TokenClaims, get_auth_service
from app.config import settings
from app.errors import AppError, UnauthorizedError
from app.logging_utils import setup_logging, RequestLoggingMiddleware, log_request_data
from app.metrics import get_metrics, get_metrics_content_type
from app.storage import init_db, check_db_health, get_db
from app.schemas import (
    AuthResponse,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    MessageCreatedResponse,
    MessageView,
    SendMessageRequest,
    SignupRequest,
    UserOut,
    UserSummary,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: create tables if they do not exist yet
    """
    init_db()
    yield


app = FastAPI(
    title="Anonymous Messaging API",
    description="Invite-only messaging with optional anonymous senders",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or malformed fields"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
}


# =============================================================================
# Error Handlers
# =============================================================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log_request_data(request, result=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and path parameters are client input errors (400)."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "invalid request")
    log_request_data(request, result="InvalidInputError")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected becomes an opaque 500; details stay in the logs."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    # Runs outside RequestLoggingMiddleware, which shares request.state
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error"},
        headers={"X-Request-ID": request_id} if request_id else None,
    )


# =============================================================================
# Dependencies
# =============================================================================

def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    auth: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """
    Resolve the caller from ``Authorization: Bearer <token>``.
    A header without the Bearer prefix is taken as the raw token.
    """
    if not authorization:
        raise UnauthorizedError("Missing authorization header")

    token = authorization[len("Bearer "):] if authorization.startswith("Bearer ") else authorization
    claims = auth.verify_token(token.strip())
    log_request_data(request, user_id=claims.id)
    return claims


CurrentUser = Annotated[TokenClaims, Depends(get_current_user)]


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. JWT_SECRET and INVITE_CODE are set (non-empty)
    2. DB is reachable and schema is applied

    Otherwise returns 503 (Service Unavailable).
    """
    if not settings.JWT_SECRET or not settings.INVITE_CODE:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason="JWT_SECRET or INVITE_CODE not configured")

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason="Database not reachable or schema not applied")

    return HealthResponse(status="ready")


# =============================================================================
# Auth Routes
# =============================================================================

@app.post(
    "/signup",
    response_model=AuthResponse,
    responses={
        400: ERROR_RESPONSES[400],
        403: {"model": ErrorResponse, "description": "Invalid invite code"},
        409: {"model": ErrorResponse, "description": "Phone already registered"},
    },
)
def signup(
    payload: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Create an account. Requires the shared invite code.
    Returns a bearer token for the new user.
    """
    result = auth.signup(db, payload.phone, payload.password, payload.invite_code)
    log_request_data(request, user_id=result.user.id, result="created")
    logger.info(f"Signup succeeded for user {result.user.id}")
    return AuthResponse(token=result.token, user=UserOut(id=result.user.id, phone=result.user.phone))


@app.post(
    "/login",
    response_model=AuthResponse,
    responses={
        400: ERROR_RESPONSES[400],
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Exchange phone and password for a bearer token.
    """
    result = auth.login(db, payload.phone, payload.password)
    log_request_data(request, user_id=result.user.id, result="ok")
    return AuthResponse(token=result.token, user=UserOut(id=result.user.id, phone=result.user.phone))


# =============================================================================
# User Routes
# =============================================================================

@app.get("/users", response_model=list[UserSummary], responses={401: ERROR_RESPONSES[401]})
def list_users(current: CurrentUser, db: Session = Depends(get_db)) -> list[UserSummary]:
    """
    Every other user, most recently registered first.
    Each entry carries the phone and its masked display form.
    """
    return services.list_other_users(db, current)


@app.get("/me", response_model=UserOut, responses={401: ERROR_RESPONSES[401]})
def me(current: CurrentUser) -> UserOut:
    """Identity embedded in the caller's token."""
    return services.get_self(current)


# =============================================================================
# Message Routes
# =============================================================================

@app.post("/messages", response_model=MessageCreatedResponse, responses=ERROR_RESPONSES)
def send_message(
    payload: SendMessageRequest,
    request: Request,
    current: CurrentUser,
    db: Session = Depends(get_db),
) -> MessageCreatedResponse:
    """
    Send a message to another user.

    Body:
        - to_user: recipient id
        - body: message text
        - anonymous: hide the sender from the recipient (default false)
    """
    created = services.send_message(db, current, payload.to_user, payload.body, payload.anonymous)
    log_request_data(request, result="created")
    return created


@app.get(
    "/messages/{user_id}",
    response_model=list[MessageView],
    responses={
        **ERROR_RESPONSES,
        403: {"model": ErrorResponse, "description": "Not the caller's inbox"},
    },
)
def list_messages(user_id: int, current: CurrentUser, db: Session = Depends(get_db)) -> list[MessageView]:
    """
    Messages addressed to the caller, newest first.
    ``from`` is null for anonymous messages.
    """
    return services.list_messages_for(db, current, user_id)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


def run() -> None:
    """Console entry point: serve the app with uvicorn on HOST:PORT."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
