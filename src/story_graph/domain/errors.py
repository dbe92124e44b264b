"""Error kinds raised by the story graph engine.

Every error carries the HTTP status the API layer answers with and a stable
``code`` string so clients can branch without parsing messages.
"""

from __future__ import annotations


class StoryGraphError(Exception):
    """Base class for all story graph failures."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(StoryGraphError):
    """A required field is missing, blank, or otherwise invalid."""

    status_code = 400
    code = "validation_error"


class StoryMismatch(ValidationError):
    """A node was referenced from a story it does not belong to."""

    code = "story_mismatch"


class Unauthorized(StoryGraphError):
    """No authenticated identity where one is required."""

    status_code = 401
    code = "unauthorized"


class Forbidden(StoryGraphError):
    """Authenticated, or anonymous, but not allowed to touch this story."""

    status_code = 403
    code = "forbidden"


class NotFound(StoryGraphError):
    """An entity id does not resolve."""

    status_code = 404
    code = "not_found"


class NodeNotFound(NotFound):
    """A node id does not resolve."""

    code = "node_not_found"


class Conflict(StoryGraphError):
    """A uniqueness constraint would be violated."""

    status_code = 409
    code = "conflict"


class CrossStoryReference(StoryGraphError):
    """Choice endpoints belong to different stories."""

    status_code = 400
    code = "cross_story_reference"


class InvalidChoiceSet(StoryGraphError):
    """Reorder payload names foreign choices or repeats an id."""

    status_code = 400
    code = "invalid_choice_set"


class StoreUnavailable(StoryGraphError):
    """The record store failed to read or write."""

    status_code = 503
    code = "store_unavailable"
