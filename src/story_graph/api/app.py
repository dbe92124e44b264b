"""FastAPI application exposing the story graph engine."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from story_graph.adapters.sqlite_graph_store import SQLiteGraphStore
from story_graph.api.contracts import (
    AuthLoginRequest,
    AuthRegisterRequest,
    AuthTokenResponse,
    ChoiceCreateRequest,
    ChoiceReorderRequest,
    ChoiceResponse,
    ChoiceUpdateRequest,
    DeleteResponse,
    ErrorResponse,
    NodeCreateRequest,
    NodeResponse,
    NodeUpdateRequest,
    StoryCreateRequest,
    StoryResponse,
    StoryUpdateRequest,
    UserResponse,
)
from story_graph.api.credentials import TokenCredentialVerifier
from story_graph.application.accounts import AccountService
from story_graph.application.lifecycle import StoryGraphService
from story_graph.domain.errors import StoreUnavailable, StoryGraphError, Unauthorized
from story_graph.domain.models import User

DEFAULT_DB_PATH = Path("work/local/story_graph.db")
DEFAULT_TOKEN_TTL_HOURS = 24 * 7
DEV_TOKEN_SECRET = "story-graph-local-development-secret-change-me"

logger = logging.getLogger(__name__)

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


class HealthResponse(BaseModel):
    """Simple health payload used by probes."""

    status: Literal["ok"] = "ok"
    service: str = "story_graph"


class ApiRootResponse(BaseModel):
    """Describes currently available API capabilities and runtime mode."""

    name: str = "story_graph"
    persistence: Literal["sqlite"] = "sqlite"
    auth: Literal["bearer-jwt"] = "bearer-jwt"
    endpoints: list[str] = Field(
        default_factory=lambda: [
            "/healthz",
            "/api/v1",
            "/api/v1/auth/register",
            "/api/v1/auth/login",
            "/api/v1/me",
            "/api/v1/me/stories",
            "/api/v1/stories",
            "/api/v1/stories/{story_id}",
            "/api/v1/stories/{story_id}/nodes",
            "/api/v1/nodes/{node_id}",
            "/api/v1/nodes/{node_id}/choices",
            "/api/v1/nodes/{node_id}/choices/reorder",
            "/api/v1/choices/{choice_id}",
        ]
    )


def _resolve_db_path(db_path: Path | None) -> Path:
    """Resolve DB path from explicit arg, env var, then default path."""
    if db_path is not None:
        return db_path
    env_value = os.environ.get("STORY_GRAPH_DB_PATH", "").strip()
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def _resolve_token_secret(token_secret: str | None) -> str:
    if token_secret:
        return token_secret
    env_value = os.environ.get("STORY_GRAPH_JWT_SECRET", "").strip()
    if env_value:
        return env_value
    logger.warning("auth.dev_secret STORY_GRAPH_JWT_SECRET unset; using development secret")
    return DEV_TOKEN_SECRET


def _cors_origins() -> list[str]:
    raw = os.environ.get("STORY_GRAPH_CORS_ORIGINS", "").strip()
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]


def _int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def _unencodable_field(exc: RequestValidationError) -> str | None:
    for error in exc.errors():
        value = error.get("input")
        if error.get("type") != "string_unicode":
            if not isinstance(value, str):
                continue
            try:
                value.encode("utf-8")
                continue
            except UnicodeEncodeError:
                pass
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        return ".".join(location) or "body"
    return None


def create_app(db_path: Path | None = None, *, token_secret: str | None = None) -> FastAPI:
    """Create the API application."""
    effective_db_path = _resolve_db_path(db_path)
    token_ttl_hours = _int_env(
        "STORY_GRAPH_TOKEN_TTL_HOURS",
        DEFAULT_TOKEN_TTL_HOURS,
        minimum=1,
        maximum=24 * 365,
    )
    store = SQLiteGraphStore(db_path=effective_db_path)
    credentials = TokenCredentialVerifier(
        secret=_resolve_token_secret(token_secret),
        ttl=timedelta(hours=token_ttl_hours),
    )
    accounts = AccountService(store, credentials)
    service = StoryGraphService(store)
    bearer = HTTPBearer(auto_error=False)

    app = FastAPI(
        title="story_graph API",
        version="0.1.0",
        description=(
            "Branching interactive story authoring. Stories are graphs of nodes joined by "
            "ordered choices; drafts are visible only to their author."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "system", "description": "Service health and runtime metadata."},
            {"name": "api", "description": "API discovery and root-level capability listing."},
            {"name": "auth", "description": "Registration, login, and profile lookups."},
            {"name": "stories", "description": "Story CRUD, publishing, and cascading delete."},
            {"name": "nodes", "description": "Narrative nodes inside a story."},
            {"name": "choices", "description": "Ordered choices between nodes of one story."},
        ],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(
        "api.start db_path=%s token_ttl_hours=%s",
        effective_db_path,
        token_ttl_hours,
    )

    @app.exception_handler(StoryGraphError)
    async def story_graph_error_handler(request: Request, exc: StoryGraphError) -> JSONResponse:
        if isinstance(exc, StoreUnavailable):
            logger.error(
                "api.store_unavailable method=%s path=%s",
                request.method,
                request.url.path,
                exc_info=exc,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=exc.message, code=exc.code).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # The default 422 body echoes the input, which cannot be encoded here.
        field_name = _unencodable_field(exc)
        if field_name is None:
            return await request_validation_exception_handler(request, exc)
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                detail=f"{field_name} must be valid UTF-8 text", code="validation_error"
            ).model_dump(),
        )

    def optional_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> User | None:
        if credentials is None:
            return None
        return accounts.resolve_token(credentials.credentials)

    def current_user(user: User | None = Depends(optional_user)) -> User:
        if user is None:
            raise Unauthorized("Missing bearer token")
        return user

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/v1", response_model=ApiRootResponse, tags=["api"])
    def api_v1_root() -> ApiRootResponse:
        return ApiRootResponse()

    @app.post(
        "/api/v1/auth/register",
        response_model=UserResponse,
        tags=["auth"],
        status_code=201,
        responses={409: {"model": ErrorResponse}},
    )
    def register(payload: AuthRegisterRequest) -> UserResponse:
        created = accounts.register(
            email=payload.email,
            password=payload.password.get_secret_value(),
            display_name=payload.display_name,
            bio=payload.bio,
        )
        return UserResponse.from_user(created)

    @app.post(
        "/api/v1/auth/login",
        response_model=AuthTokenResponse,
        tags=["auth"],
        responses={401: {"model": ErrorResponse}},
    )
    def login(payload: AuthLoginRequest) -> AuthTokenResponse:
        user, token, expires_at_utc = accounts.login(
            email=payload.email, password=payload.password.get_secret_value()
        )
        return AuthTokenResponse(
            access_token=token,
            expires_at_utc=expires_at_utc,
            user=UserResponse.from_user(user),
        )

    @app.get("/api/v1/me", response_model=UserResponse, tags=["auth"])
    def me(user: User = Depends(current_user)) -> UserResponse:
        return UserResponse.from_user(user)

    @app.get("/api/v1/me/stories", response_model=list[StoryResponse], tags=["stories"])
    def list_my_stories(
        limit: int = Query(default=100, ge=1, le=500),
        user: User = Depends(current_user),
    ) -> list[StoryResponse]:
        return [
            StoryResponse.from_story(story)
            for story in service.list_author_stories(user, limit=limit)
        ]

    @app.get("/api/v1/stories", response_model=list[StoryResponse], tags=["stories"])
    def list_published_stories(
        limit: int = Query(default=100, ge=1, le=500),
    ) -> list[StoryResponse]:
        return [
            StoryResponse.from_story(story)
            for story in service.list_published_stories(limit=limit)
        ]

    @app.post(
        "/api/v1/stories",
        response_model=StoryResponse,
        tags=["stories"],
        status_code=201,
        responses=_ERROR_RESPONSES,
    )
    def create_story(
        payload: StoryCreateRequest,
        user: User = Depends(current_user),
    ) -> StoryResponse:
        story = service.create_story(
            user,
            payload.title,
            description=payload.description,
            cover_image=payload.cover_image,
        )
        return StoryResponse.from_story(story)

    @app.get(
        "/api/v1/stories/{story_id}",
        response_model=StoryResponse,
        tags=["stories"],
        responses=_ERROR_RESPONSES,
    )
    def get_story(story_id: str, user: User | None = Depends(optional_user)) -> StoryResponse:
        return StoryResponse.from_story(service.get_story(user, story_id))

    @app.patch(
        "/api/v1/stories/{story_id}",
        response_model=StoryResponse,
        tags=["stories"],
        responses=_ERROR_RESPONSES,
    )
    def update_story(
        story_id: str,
        payload: StoryUpdateRequest,
        user: User = Depends(current_user),
    ) -> StoryResponse:
        story = service.update_story(user, story_id, payload.model_dump(exclude_unset=True))
        return StoryResponse.from_story(story)

    @app.delete(
        "/api/v1/stories/{story_id}",
        response_model=DeleteResponse,
        tags=["stories"],
        responses=_ERROR_RESPONSES,
    )
    def delete_story(story_id: str, user: User = Depends(current_user)) -> DeleteResponse:
        service.delete_story(user, story_id)
        return DeleteResponse()

    @app.get(
        "/api/v1/stories/{story_id}/nodes",
        response_model=list[NodeResponse],
        tags=["stories", "nodes"],
        responses=_ERROR_RESPONSES,
    )
    def list_nodes(
        story_id: str, user: User | None = Depends(optional_user)
    ) -> list[NodeResponse]:
        return [NodeResponse.from_view(view) for view in service.list_nodes(user, story_id)]

    @app.post(
        "/api/v1/stories/{story_id}/nodes",
        response_model=NodeResponse,
        tags=["stories", "nodes"],
        status_code=201,
        responses=_ERROR_RESPONSES,
    )
    def create_node(
        story_id: str,
        payload: NodeCreateRequest,
        user: User = Depends(current_user),
    ) -> NodeResponse:
        node = service.create_node(
            user,
            story_id,
            payload.content,
            title=payload.title,
            is_ending=payload.is_ending,
        )
        return NodeResponse.from_node(node)

    @app.get(
        "/api/v1/nodes/{node_id}",
        response_model=NodeResponse,
        tags=["nodes"],
        responses=_ERROR_RESPONSES,
    )
    def get_node(node_id: str, user: User | None = Depends(optional_user)) -> NodeResponse:
        return NodeResponse.from_view(service.get_node(user, node_id))

    @app.patch(
        "/api/v1/nodes/{node_id}",
        response_model=NodeResponse,
        tags=["nodes"],
        responses=_ERROR_RESPONSES,
    )
    def update_node(
        node_id: str,
        payload: NodeUpdateRequest,
        user: User = Depends(current_user),
    ) -> NodeResponse:
        service.update_node(user, node_id, payload.model_dump(exclude_unset=True))
        return NodeResponse.from_view(service.get_node(user, node_id))

    @app.delete(
        "/api/v1/nodes/{node_id}",
        response_model=DeleteResponse,
        tags=["nodes"],
        responses=_ERROR_RESPONSES,
    )
    def delete_node(node_id: str, user: User = Depends(current_user)) -> DeleteResponse:
        service.delete_node(user, node_id)
        return DeleteResponse()

    @app.get(
        "/api/v1/nodes/{node_id}/choices",
        response_model=list[ChoiceResponse],
        tags=["nodes", "choices"],
        responses=_ERROR_RESPONSES,
    )
    def list_choices(
        node_id: str, user: User | None = Depends(optional_user)
    ) -> list[ChoiceResponse]:
        choices = service.list_choices(user, node_id)
        return [ChoiceResponse.from_choice(choice) for choice in choices]

    @app.post(
        "/api/v1/nodes/{node_id}/choices",
        response_model=ChoiceResponse,
        tags=["nodes", "choices"],
        status_code=201,
        responses=_ERROR_RESPONSES,
    )
    def create_choice(
        node_id: str,
        payload: ChoiceCreateRequest,
        user: User = Depends(current_user),
    ) -> ChoiceResponse:
        choice = service.create_choice(
            user,
            node_id,
            payload.target_node_id,
            payload.text,
            order=payload.order,
        )
        return ChoiceResponse.from_choice(choice)

    @app.post(
        "/api/v1/nodes/{node_id}/choices/reorder",
        response_model=list[ChoiceResponse],
        tags=["nodes", "choices"],
        responses=_ERROR_RESPONSES,
    )
    def reorder_choices(
        node_id: str,
        payload: ChoiceReorderRequest,
        user: User = Depends(current_user),
    ) -> list[ChoiceResponse]:
        choices = service.reorder_choices(user, node_id, payload.choice_ids)
        return [ChoiceResponse.from_choice(choice) for choice in choices]

    @app.patch(
        "/api/v1/choices/{choice_id}",
        response_model=ChoiceResponse,
        tags=["choices"],
        responses=_ERROR_RESPONSES,
    )
    def update_choice(
        choice_id: str,
        payload: ChoiceUpdateRequest,
        user: User = Depends(current_user),
    ) -> ChoiceResponse:
        choice = service.update_choice(user, choice_id, payload.model_dump(exclude_unset=True))
        return ChoiceResponse.from_choice(choice)

    @app.delete(
        "/api/v1/choices/{choice_id}",
        response_model=DeleteResponse,
        tags=["choices"],
        responses=_ERROR_RESPONSES,
    )
    def delete_choice(choice_id: str, user: User = Depends(current_user)) -> DeleteResponse:
        service.delete_choice(user, choice_id)
        return DeleteResponse()

    return app


app = create_app()
