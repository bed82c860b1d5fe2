"""FastAPI application exposing the user directory endpoints."""
from __future__ import annotations

import logging
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import Body, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import ServiceSettings
from .models import AuthenticatedContext, User
from .pipeline import PipelineMiddleware, build_pipeline
from .security import TokenRegistry
from .store import InMemoryUserStore, StoreError

logger = logging.getLogger("userapi.api")

LOGIN_MESSAGE = "Use this token in the Authorization header or the API docs Authorize dialog"


class UserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: Optional[str]


class LoginResponse(BaseModel):
    token: str
    message: str


class HealthResponse(BaseModel):
    status: str
    users: int


def user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email)


def _bad_request(reason: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"Error": reason})


def _not_found(user_id: int) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Not found", "message": f"User {user_id} does not exist"},
    )


def _store_failure() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "message": "Internal server error"},
    )


def validate_user_request(payload: Optional[UserRequest]) -> Optional[str]:
    """Return the reason a create/update payload is rejected, if any."""

    if payload is None:
        return "Request body is required"
    if payload.name is None or not payload.name.strip():
        return "Name is required"
    if payload.email is not None and payload.email.strip():
        try:
            validate_email(payload.email.strip(), check_deliverability=False)
        except EmailNotValidError:
            return "Email is invalid"
    return None


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Request is invalid"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = str(first.get("msg", "Invalid value"))
    return f"{location}: {message}" if location else message


def create_app(
    *,
    store: InMemoryUserStore | None = None,
    tokens: TokenRegistry | None = None,
    settings: ServiceSettings | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application with its request pipeline."""

    if settings is None:
        settings = ServiceSettings()
    if store is None:
        store = InMemoryUserStore()
    if tokens is None:
        tokens = TokenRegistry(settings.tokens)

    app = FastAPI(
        title="User Directory API",
        description="In-memory user management with bearer token authentication",
        version="1.0.0",
        docs_url="/swagger" if settings.docs_enabled else None,
        openapi_url="/swagger/openapi.json" if settings.docs_enabled else None,
        redoc_url=None,
    )
    app.state.store = store
    app.state.tokens = tokens
    app.state.settings = settings

    pipeline = build_pipeline(
        tokens,
        public_paths=settings.public_paths,
        expose_error_details=settings.expose_error_details,
    )
    app.state.pipeline = pipeline
    app.add_middleware(PipelineMiddleware, pipeline=pipeline)

    def get_store() -> InMemoryUserStore:
        return store

    def get_tokens() -> TokenRegistry:
        return tokens

    def get_auth_context(request: Request) -> Optional[AuthenticatedContext]:
        return getattr(request.state, "auth", None)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        return _bad_request(_describe_validation_error(exc))

    @app.get("/health", response_model=HealthResponse)
    async def healthcheck(db: InMemoryUserStore = Depends(get_store)) -> HealthResponse:
        return HealthResponse(status="ok", users=db.count())

    @app.post("/auth/login", response_model=LoginResponse, name="login")
    async def login(registry: TokenRegistry = Depends(get_tokens)) -> LoginResponse:
        token = registry.issue()
        logger.info("Issued a new access token via /auth/login")
        return LoginResponse(token=token, message=LOGIN_MESSAGE)

    @app.get("/users", response_model=List[UserResponse], name="get_users")
    async def list_users(
        page: Optional[int] = None,
        size: Optional[int] = None,
        db: InMemoryUserStore = Depends(get_store),
    ) -> List[UserResponse]:
        return [user_to_response(user) for user in db.get_all(page, size)]

    @app.get("/users/{user_id}", response_model=UserResponse, name="get_user_by_id")
    async def read_user(user_id: int, db: InMemoryUserStore = Depends(get_store)):
        user = db.get_by_id(user_id)
        if user is None:
            return _not_found(user_id)
        return user_to_response(user)

    @app.post(
        "/users",
        response_model=UserResponse,
        status_code=status.HTTP_201_CREATED,
        name="create_user",
    )
    async def create_user(
        response: Response,
        payload: Optional[UserRequest] = Body(default=None),
        db: InMemoryUserStore = Depends(get_store),
        auth: Optional[AuthenticatedContext] = Depends(get_auth_context),
    ):
        reason = validate_user_request(payload)
        if reason is not None or payload is None or payload.name is None:
            return _bad_request(reason or "Request body is required")

        try:
            created = db.add(payload.name.strip(), payload.email)
        except StoreError:
            logger.exception("Failed to create user")
            return _store_failure()

        logger.info(
            "Created user %s (token authenticated at %s)",
            created.id,
            auth.authenticated_at.isoformat() if auth else "n/a",
        )
        response.headers["Location"] = f"/users/{created.id}"
        return user_to_response(created)

    @app.put(
        "/users/{user_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        name="update_user",
    )
    async def update_user(
        user_id: int,
        payload: Optional[UserRequest] = Body(default=None),
        db: InMemoryUserStore = Depends(get_store),
    ) -> Response:
        reason = validate_user_request(payload)
        if reason is not None or payload is None or payload.name is None:
            return _bad_request(reason or "Request body is required")

        try:
            updated = db.update(user_id, payload.name.strip(), payload.email)
        except StoreError:
            logger.exception("Failed to update user %s", user_id)
            return _store_failure()

        if not updated:
            return _not_found(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.delete(
        "/users/{user_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        name="delete_user",
    )
    async def delete_user(user_id: int, db: InMemoryUserStore = Depends(get_store)) -> Response:
        try:
            deleted = db.delete(user_id)
        except StoreError:
            logger.exception("Failed to delete user %s", user_id)
            return _store_failure()

        if not deleted:
            return _not_found(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["LoginResponse", "UserRequest", "UserResponse", "create_app", "validate_user_request"]
