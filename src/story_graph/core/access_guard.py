"""Authorship and publish-state predicates for every story read or write.

These are the only authorization rules in the engine. Nodes resolve their
author through their story; choices through their source node's story. Callers
look those up explicitly and hand the story in here.
"""

from __future__ import annotations

import logging

from story_graph.domain.errors import Forbidden, Unauthorized
from story_graph.domain.models import Story, User

logger = logging.getLogger(__name__)


def can_mutate(user: User | None, story: Story) -> bool:
    return user is not None and user.user_id == story.author_id


def can_read(user: User | None, story: Story) -> bool:
    return story.is_published or can_mutate(user, story)


def require_mutate(user: User | None, story: Story) -> None:
    """Raise unless ``user`` is the story's author."""
    if user is None:
        logger.warning("access.denied action=mutate story_id=%s user=anonymous", story.story_id)
        raise Unauthorized("Authentication required")
    if not can_mutate(user, story):
        logger.warning(
            "access.denied action=mutate story_id=%s user_id=%s",
            story.story_id,
            user.user_id,
        )
        raise Forbidden("You can only modify your own stories")


def require_read(user: User | None, story: Story) -> None:
    """Raise unless the story is published or ``user`` is its author."""
    if can_read(user, story):
        return
    logger.warning(
        "access.denied action=read story_id=%s user_id=%s",
        story.story_id,
        user.user_id if user is not None else "anonymous",
    )
    raise Forbidden("This story is not published")
