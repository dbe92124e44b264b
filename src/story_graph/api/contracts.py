"""Typed contracts shared by API handlers and the Python client.

Required narrative text (story title, node content, choice text) is typed as
optional here; blank or missing values are rejected by the service layer as a
``validation_error``.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from story_graph.core.choice_ordering import MAX_CHOICE_ORDER
from story_graph.domain.models import Choice, Node, NodeView, Story, User

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ContractModel(BaseModel):
    """Base model config used by all API contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Email must be a valid address.")
    return normalized


class AuthRegisterRequest(ContractModel):
    """Register an author account."""

    email: str = Field(min_length=5, max_length=320)
    password: SecretStr = Field(min_length=8, max_length=200)
    display_name: str = Field(min_length=1, max_length=120)
    bio: str | None = Field(default=None, max_length=2000)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: SecretStr) -> SecretStr:
        raw = value.get_secret_value()
        if raw.strip() != raw:
            raise ValueError("Password must not start or end with whitespace.")
        if not any(char.isalpha() for char in raw) or not any(char.isdigit() for char in raw):
            raise ValueError("Password must include at least one letter and one number.")
        return value


class AuthLoginRequest(ContractModel):
    """Authenticate and request an access token."""

    email: str = Field(min_length=5, max_length=320)
    password: SecretStr = Field(min_length=1, max_length=200)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class UserResponse(ContractModel):
    """Public user profile; never includes the password hash."""

    user_id: str
    email: str
    display_name: str
    bio: str | None = None
    is_admin: bool = False
    created_at_utc: str

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            user_id=user.user_id,
            email=user.email,
            display_name=user.display_name,
            bio=user.bio,
            is_admin=user.is_admin,
            created_at_utc=user.created_at_utc,
        )


class AuthTokenResponse(ContractModel):
    """Bearer token payload used by web and Python clients."""

    access_token: str
    token_type: str = Field(default="bearer", pattern=r"^bearer$")
    expires_at_utc: str
    user: UserResponse


class StoryCreateRequest(ContractModel):
    """Create a draft story; the bootstrap node is created alongside it."""

    title: str | None = Field(default=None, max_length=300)
    description: str | None = Field(default=None, max_length=5000)
    cover_image: str | None = Field(default=None, max_length=2000)


class StoryUpdateRequest(ContractModel):
    """Partial story update; omitted fields stay unchanged."""

    title: str | None = Field(default=None, max_length=300)
    description: str | None = Field(default=None, max_length=5000)
    cover_image: str | None = Field(default=None, max_length=2000)
    is_draft: bool | None = None
    is_published: bool | None = None
    first_node_id: str | None = None


class StoryResponse(ContractModel):
    """Story payload returned by the API."""

    story_id: str
    author_id: str
    title: str
    description: str | None = None
    cover_image: str | None = None
    is_draft: bool
    is_published: bool
    first_node_id: str | None = None
    created_at_utc: str
    updated_at_utc: str

    @classmethod
    def from_story(cls, story: Story) -> StoryResponse:
        return cls(
            story_id=story.story_id,
            author_id=story.author_id,
            title=story.title,
            description=story.description,
            cover_image=story.cover_image,
            is_draft=story.is_draft,
            is_published=story.is_published,
            first_node_id=story.first_node_id,
            created_at_utc=story.created_at_utc,
            updated_at_utc=story.updated_at_utc,
        )


class NodeCreateRequest(ContractModel):
    """Add a node to a story."""

    content: str | None = Field(default=None, max_length=100_000)
    title: str | None = Field(default=None, max_length=300)
    is_ending: bool = False


class NodeUpdateRequest(ContractModel):
    """Partial node update; omitted fields stay unchanged."""

    content: str | None = Field(default=None, max_length=100_000)
    title: str | None = Field(default=None, max_length=300)
    is_ending: bool | None = None


class ChoiceCreateRequest(ContractModel):
    """Add an outbound choice to the node in the path."""

    target_node_id: str | None = None
    text: str | None = Field(default=None, max_length=1000)
    order: int | None = Field(default=None, ge=0, le=MAX_CHOICE_ORDER)


class ChoiceUpdateRequest(ContractModel):
    """Partial choice update; a new target is re-validated."""

    text: str | None = Field(default=None, max_length=1000)
    target_node_id: str | None = None
    order: int | None = Field(default=None, ge=0, le=MAX_CHOICE_ORDER)


class ChoiceReorderRequest(ContractModel):
    """Choice ids in their desired display order."""

    choice_ids: list[str] = Field(max_length=1000)


class ChoiceResponse(ContractModel):
    """Choice payload returned by the API."""

    choice_id: str
    source_node_id: str
    target_node_id: str
    text: str
    order: int
    created_at_utc: str
    updated_at_utc: str

    @classmethod
    def from_choice(cls, choice: Choice) -> ChoiceResponse:
        return cls(
            choice_id=choice.choice_id,
            source_node_id=choice.source_node_id,
            target_node_id=choice.target_node_id,
            text=choice.text,
            order=choice.order,
            created_at_utc=choice.created_at_utc,
            updated_at_utc=choice.updated_at_utc,
        )


class NodeResponse(ContractModel):
    """Node payload with its outbound choices in display order."""

    node_id: str
    story_id: str
    content: str
    title: str | None = None
    is_ending: bool
    created_at_utc: str
    updated_at_utc: str
    choices: list[ChoiceResponse] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: Node, choices: tuple[Choice, ...] = ()) -> NodeResponse:
        return cls(
            node_id=node.node_id,
            story_id=node.story_id,
            content=node.content,
            title=node.title,
            is_ending=node.is_ending,
            created_at_utc=node.created_at_utc,
            updated_at_utc=node.updated_at_utc,
            choices=[ChoiceResponse.from_choice(choice) for choice in choices],
        )

    @classmethod
    def from_view(cls, view: NodeView) -> NodeResponse:
        return cls.from_node(view.node, view.choices)


class DeleteResponse(ContractModel):
    """Acknowledges a delete."""

    deleted: bool = True


class ErrorResponse(ContractModel):
    """Error body for every story graph failure."""

    detail: str
    code: str

