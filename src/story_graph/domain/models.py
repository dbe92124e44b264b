"""Core story graph domain models."""

from __future__ import annotations

from dataclasses import dataclass, field

BOOTSTRAP_NODE_CONTENT = "Your story begins here..."
BOOTSTRAP_NODE_TITLE = "Beginning"


@dataclass(frozen=True)
class User:
    """An account that can author stories."""

    user_id: str
    email: str
    display_name: str
    password_hash: str
    created_at_utc: str
    updated_at_utc: str
    bio: str | None = None
    is_admin: bool = False


@dataclass(frozen=True)
class Story:
    """A branching narrative owned by one author."""

    story_id: str
    author_id: str
    title: str
    created_at_utc: str
    updated_at_utc: str
    description: str | None = None
    cover_image: str | None = None
    is_draft: bool = True
    is_published: bool = False
    first_node_id: str | None = None


@dataclass(frozen=True)
class Node:
    """A unit of narrative content inside one story."""

    node_id: str
    story_id: str
    content: str
    created_at_utc: str
    updated_at_utc: str
    title: str | None = None
    is_ending: bool = False


@dataclass(frozen=True)
class Choice:
    """A directed, ordered edge between two nodes of the same story.

    ``sequence`` is the store's insertion counter and breaks ties between
    choices sharing the same ``order``.
    """

    choice_id: str
    source_node_id: str
    target_node_id: str
    text: str
    order: int
    created_at_utc: str
    updated_at_utc: str
    sequence: int = 0


@dataclass(frozen=True)
class NodeView:
    """A node together with its outbound choices in display order."""

    node: Node
    choices: tuple[Choice, ...] = field(default_factory=tuple)
