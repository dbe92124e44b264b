"""Structural checks run before any graph write reaches storage."""

from __future__ import annotations

from story_graph.domain.errors import (
    CrossStoryReference,
    NodeNotFound,
    StoryMismatch,
    ValidationError,
)
from story_graph.domain.models import Node


def optional_text(value: str | None, *, field_name: str) -> str | None:
    """Pass ``None`` through; reject text that cannot be stored as UTF-8."""
    if value is None:
        return None
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValidationError(f"{field_name} must be valid UTF-8 text") from exc
    return value


def require_text(value: str | None, *, field_name: str) -> str:
    """Return the stripped value, rejecting missing, blank, or unencodable text."""
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required")
    cleaned = value.strip()
    optional_text(cleaned, field_name=field_name)
    return cleaned


def validate_choice_endpoints(source: Node | None, target: Node | None) -> tuple[Node, Node]:
    """Ensure both endpoints exist and live in the same story."""
    if source is None:
        raise NodeNotFound("Source node not found")
    if target is None:
        raise NodeNotFound("Target node not found")
    if source.story_id != target.story_id:
        raise CrossStoryReference("Source and target nodes must belong to the same story")
    return source, target


def validate_node_belongs_to_story(node: Node | None, story_id: str) -> Node:
    if node is None:
        raise NodeNotFound("Node not found")
    if node.story_id != story_id:
        raise StoryMismatch(f"Node {node.node_id} does not belong to story {story_id}")
    return node
