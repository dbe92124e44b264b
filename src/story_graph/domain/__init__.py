"""Domain models, error kinds, and ports for the story graph."""

from story_graph.domain.errors import (
    Conflict,
    CrossStoryReference,
    Forbidden,
    InvalidChoiceSet,
    NodeNotFound,
    NotFound,
    StoreUnavailable,
    StoryGraphError,
    StoryMismatch,
    Unauthorized,
    ValidationError,
)
from story_graph.domain.models import Choice, Node, NodeView, Story, User
from story_graph.domain.ports import CredentialVerifier, GraphRecordStore

__all__ = [
    "Choice",
    "Conflict",
    "CredentialVerifier",
    "CrossStoryReference",
    "Forbidden",
    "GraphRecordStore",
    "InvalidChoiceSet",
    "Node",
    "NodeNotFound",
    "NodeView",
    "NotFound",
    "StoreUnavailable",
    "Story",
    "StoryGraphError",
    "StoryMismatch",
    "Unauthorized",
    "User",
    "ValidationError",
]
