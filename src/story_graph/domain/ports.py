"""Ports for persistence and credential verification."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from story_graph.domain.models import Choice, Node, Story, User


class GraphRecordStore(Protocol):
    """Durable keyed storage for users, stories, nodes, and choices.

    Implementations raise ``StoreUnavailable`` when the backing database fails.
    Multi-row workflows run as one transaction.
    """

    def create_user(
        self,
        *,
        email: str,
        display_name: str,
        password_hash: str,
        bio: str | None = None,
        is_admin: bool = False,
    ) -> User | None:
        ...

    def get_user_by_email(self, *, email: str) -> User | None:
        ...

    def get_user_by_id(self, *, user_id: str) -> User | None:
        ...

    def create_story_with_first_node(
        self,
        *,
        author_id: str,
        title: str,
        description: str | None,
        cover_image: str | None,
        first_node_content: str,
        first_node_title: str | None,
    ) -> tuple[Story, Node]:
        ...

    def get_story(self, *, story_id: str) -> Story | None:
        ...

    def list_published_stories(self, *, limit: int = 100) -> list[Story]:
        ...

    def list_stories_by_author(self, *, author_id: str, limit: int = 100) -> list[Story]:
        ...

    def update_story(self, *, story_id: str, fields: Mapping[str, object]) -> Story | None:
        """Return ``None`` when the story is gone or a new ``first_node_id`` no longer exists."""
        ...

    def delete_story_cascade(self, *, story_id: str) -> bool:
        ...

    def create_node(
        self, *, story_id: str, content: str, title: str | None, is_ending: bool
    ) -> Node:
        ...

    def get_node(self, *, node_id: str) -> Node | None:
        ...

    def list_nodes(self, *, story_id: str) -> list[Node]:
        ...

    def update_node(self, *, node_id: str, fields: Mapping[str, object]) -> Node | None:
        ...

    def delete_node_cascade(self, *, node_id: str) -> bool:
        """Raise ``ValidationError`` instead when the node is a story's entry node."""
        ...

    def create_choice(
        self, *, source_node_id: str, target_node_id: str, text: str, order: int
    ) -> Choice:
        ...

    def get_choice(self, *, choice_id: str) -> Choice | None:
        ...

    def list_choices(self, *, source_node_id: str) -> list[Choice]:
        ...

    def list_choices_by_story(self, *, story_id: str) -> list[Choice]:
        ...

    def update_choice(self, *, choice_id: str, fields: Mapping[str, object]) -> Choice | None:
        ...

    def delete_choice(self, *, choice_id: str) -> bool:
        ...

    def apply_choice_orders(self, *, source_node_id: str, orders: Mapping[str, int]) -> None:
        ...


class CredentialVerifier(Protocol):
    """Hashes passwords and issues/verifies bearer tokens."""

    def hash_password(self, password: str) -> str:
        ...

    def verify_password(self, password: str, password_hash: str) -> bool:
        ...

    def issue_token(self, user_id: str) -> tuple[str, str]:
        ...

    def verify_token(self, token: str) -> str:
        ...
