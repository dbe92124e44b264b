"""Story lifecycle workflows: creation, partial updates, cascades, reordering.

Every operation takes the caller identity explicitly (``None`` for anonymous)
and runs in the same sequence: load the entities it touches, pass the access
guard, run the graph rules, then write through the record store. All checks
finish before the first write, so a rejected call leaves storage untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence

from story_graph.core.access_guard import require_mutate, require_read
from story_graph.core.choice_ordering import (
    next_order,
    plan_reorder,
    sort_choices,
    validate_order,
)
from story_graph.core.graph_rules import (
    optional_text,
    require_text,
    validate_choice_endpoints,
    validate_node_belongs_to_story,
)
from story_graph.domain.errors import NodeNotFound, NotFound, Unauthorized, ValidationError
from story_graph.domain.models import (
    BOOTSTRAP_NODE_CONTENT,
    BOOTSTRAP_NODE_TITLE,
    Choice,
    Node,
    NodeView,
    Story,
    User,
)
from story_graph.domain.ports import GraphRecordStore

STORY_FIELDS = frozenset(
    {"title", "description", "cover_image", "is_draft", "is_published", "first_node_id"}
)
NODE_FIELDS = frozenset({"content", "title", "is_ending"})
CHOICE_FIELDS = frozenset({"text", "target_node_id", "order"})

logger = logging.getLogger(__name__)


def _reject_unknown(changes: Mapping[str, object], allowed: frozenset[str], entity: str) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValidationError(f"Unknown {entity} fields: {', '.join(unknown)}")


def _require_bool(changes: dict[str, object], field_name: str) -> None:
    if field_name in changes and not isinstance(changes[field_name], bool):
        raise ValidationError(f"{field_name} must be a boolean")


def _require_encodable(changes: dict[str, object]) -> None:
    for field_name, value in changes.items():
        if isinstance(value, str):
            optional_text(value, field_name=field_name)


class StoryGraphService:
    """Orchestrates multi-entity story graph operations."""

    def __init__(self, store: GraphRecordStore) -> None:
        self._store = store

    # Lookups. Authorship is always resolved through explicit loads:
    # node -> story, choice -> source node -> story.

    def _story_or_404(self, story_id: str) -> Story:
        story = self._store.get_story(story_id=story_id)
        if story is None:
            raise NotFound("Story not found")
        return story

    def _node_or_404(self, node_id: str) -> Node:
        node = self._store.get_node(node_id=node_id)
        if node is None:
            raise NodeNotFound("Node not found")
        return node

    def _choice_or_404(self, choice_id: str) -> Choice:
        choice = self._store.get_choice(choice_id=choice_id)
        if choice is None:
            raise NotFound("Choice not found")
        return choice

    def _node_with_story(self, node_id: str) -> tuple[Node, Story]:
        node = self._node_or_404(node_id)
        return node, self._story_or_404(node.story_id)

    # Stories

    def create_story(
        self,
        user: User | None,
        title: str | None,
        description: str | None = None,
        cover_image: str | None = None,
    ) -> Story:
        """Create a draft story together with its bootstrap node."""
        if user is None:
            raise Unauthorized("Authentication required")
        clean_title = require_text(title, field_name="title")
        story, node = self._store.create_story_with_first_node(
            author_id=user.user_id,
            title=clean_title,
            description=optional_text(description, field_name="description"),
            cover_image=optional_text(cover_image, field_name="cover_image"),
            first_node_content=BOOTSTRAP_NODE_CONTENT,
            first_node_title=BOOTSTRAP_NODE_TITLE,
        )
        logger.info(
            "story.create story_id=%s author_id=%s first_node_id=%s",
            story.story_id,
            user.user_id,
            node.node_id,
        )
        return story

    def get_story(self, user: User | None, story_id: str) -> Story:
        story = self._story_or_404(story_id)
        require_read(user, story)
        return story

    def list_published_stories(self, *, limit: int = 100) -> list[Story]:
        return self._store.list_published_stories(limit=limit)

    def list_author_stories(self, user: User | None, *, limit: int = 100) -> list[Story]:
        if user is None:
            raise Unauthorized("Authentication required")
        return self._store.list_stories_by_author(author_id=user.user_id, limit=limit)

    def update_story(
        self, user: User | None, story_id: str, changes: Mapping[str, object]
    ) -> Story:
        """Apply only the fields present in ``changes``."""
        story = self._story_or_404(story_id)
        require_mutate(user, story)
        _reject_unknown(changes, STORY_FIELDS, "story")
        fields = dict(changes)
        if "title" in fields:
            fields["title"] = require_text(_optional_str(fields, "title"), field_name="title")
        _require_bool(fields, "is_draft")
        _require_bool(fields, "is_published")
        if "first_node_id" in fields:
            first_node_id = _optional_str(fields, "first_node_id")
            if first_node_id is None:
                raise ValidationError("first_node_id cannot be cleared")
            node = self._store.get_node(node_id=first_node_id)
            validate_node_belongs_to_story(node, story.story_id)
        _require_encodable(fields)
        if not fields:
            return story
        updated = self._store.update_story(story_id=story.story_id, fields=fields)
        if updated is None:
            if "first_node_id" in fields:
                # The new entry node was deleted after it was validated.
                node = self._store.get_node(node_id=str(fields["first_node_id"]))
                validate_node_belongs_to_story(node, story.story_id)
            raise NotFound("Story not found")
        logger.info(
            "story.update story_id=%s fields=%s", story.story_id, ",".join(sorted(fields))
        )
        return updated

    def delete_story(self, user: User | None, story_id: str) -> None:
        """Delete a story, its nodes, and every choice touching those nodes."""
        story = self._story_or_404(story_id)
        require_mutate(user, story)
        if not self._store.delete_story_cascade(story_id=story.story_id):
            raise NotFound("Story not found")
        logger.info("story.delete story_id=%s", story.story_id)

    # Nodes

    def create_node(
        self,
        user: User | None,
        story_id: str,
        content: str | None,
        title: str | None = None,
        is_ending: bool = False,
    ) -> Node:
        story = self._story_or_404(story_id)
        require_mutate(user, story)
        clean_content = require_text(content, field_name="content")
        node = self._store.create_node(
            story_id=story.story_id,
            content=clean_content,
            title=optional_text(title, field_name="title"),
            is_ending=is_ending,
        )
        logger.info("node.create node_id=%s story_id=%s", node.node_id, story.story_id)
        return node

    def get_node(self, user: User | None, node_id: str) -> NodeView:
        """Return a readable node with its choices in display order."""
        node, story = self._node_with_story(node_id)
        require_read(user, story)
        choices = sort_choices(self._store.list_choices(source_node_id=node.node_id))
        return NodeView(node=node, choices=tuple(choices))

    def list_nodes(self, user: User | None, story_id: str) -> list[NodeView]:
        story = self._story_or_404(story_id)
        require_read(user, story)
        by_source: dict[str, list[Choice]] = defaultdict(list)
        for choice in self._store.list_choices_by_story(story_id=story.story_id):
            by_source[choice.source_node_id].append(choice)
        return [
            NodeView(node=node, choices=tuple(sort_choices(by_source.get(node.node_id, []))))
            for node in self._store.list_nodes(story_id=story.story_id)
        ]

    def update_node(self, user: User | None, node_id: str, changes: Mapping[str, object]) -> Node:
        node, story = self._node_with_story(node_id)
        require_mutate(user, story)
        _reject_unknown(changes, NODE_FIELDS, "node")
        fields = dict(changes)
        if "content" in fields:
            fields["content"] = require_text(
                _optional_str(fields, "content"), field_name="content"
            )
        _require_bool(fields, "is_ending")
        _require_encodable(fields)
        if not fields:
            return node
        updated = self._store.update_node(node_id=node.node_id, fields=fields)
        if updated is None:
            raise NodeNotFound("Node not found")
        logger.info("node.update node_id=%s fields=%s", node.node_id, ",".join(sorted(fields)))
        return updated

    def delete_node(self, user: User | None, node_id: str) -> None:
        """Delete a node with its outbound and inbound choices.

        The story's entry node cannot be deleted while it is the entry node; the
        store checks that inside the delete transaction.
        """
        node, story = self._node_with_story(node_id)
        require_mutate(user, story)
        if not self._store.delete_node_cascade(node_id=node.node_id):
            raise NodeNotFound("Node not found")
        logger.info("node.delete node_id=%s story_id=%s", node.node_id, story.story_id)

    # Choices

    def create_choice(
        self,
        user: User | None,
        source_node_id: str,
        target_node_id: str | None,
        text: str | None,
        order: int | None = None,
    ) -> Choice:
        source = self._node_or_404(source_node_id)
        story = self._story_or_404(source.story_id)
        require_mutate(user, story)
        clean_text = require_text(text, field_name="text")
        target_node_id = require_text(target_node_id, field_name="target_node_id")
        target = self._store.get_node(node_id=target_node_id)
        validate_choice_endpoints(source, target)
        if order is not None:
            order = validate_order(order)
        else:
            order = next_order(self._store.list_choices(source_node_id=source.node_id))
        choice = self._store.create_choice(
            source_node_id=source.node_id,
            target_node_id=target_node_id,
            text=clean_text,
            order=order,
        )
        logger.info(
            "choice.create choice_id=%s source_node_id=%s target_node_id=%s order=%s",
            choice.choice_id,
            source.node_id,
            target_node_id,
            order,
        )
        return choice

    def list_choices(self, user: User | None, node_id: str) -> list[Choice]:
        node, story = self._node_with_story(node_id)
        require_read(user, story)
        return sort_choices(self._store.list_choices(source_node_id=node.node_id))

    def update_choice(
        self, user: User | None, choice_id: str, changes: Mapping[str, object]
    ) -> Choice:
        choice = self._choice_or_404(choice_id)
        source, story = self._node_with_story(choice.source_node_id)
        require_mutate(user, story)
        _reject_unknown(changes, CHOICE_FIELDS, "choice")
        fields = dict(changes)
        if "text" in fields:
            fields["text"] = require_text(_optional_str(fields, "text"), field_name="text")
        if "order" in fields:
            fields["order"] = validate_order(fields["order"])
        if "target_node_id" in fields:
            target_node_id = _optional_str(fields, "target_node_id")
            if target_node_id is None:
                raise ValidationError("target_node_id cannot be cleared")
            validate_choice_endpoints(source, self._store.get_node(node_id=target_node_id))
        _require_encodable(fields)
        if not fields:
            return choice
        updated = self._store.update_choice(choice_id=choice.choice_id, fields=fields)
        if updated is None:
            raise NotFound("Choice not found")
        logger.info(
            "choice.update choice_id=%s fields=%s", choice.choice_id, ",".join(sorted(fields))
        )
        return updated

    def delete_choice(self, user: User | None, choice_id: str) -> None:
        choice = self._choice_or_404(choice_id)
        _, story = self._node_with_story(choice.source_node_id)
        require_mutate(user, story)
        if not self._store.delete_choice(choice_id=choice.choice_id):
            raise NotFound("Choice not found")
        logger.info("choice.delete choice_id=%s", choice.choice_id)

    def reorder_choices(
        self, user: User | None, node_id: str, choice_ids: Sequence[str]
    ) -> list[Choice]:
        """Give the listed choices orders ``0..n-1`` in the supplied sequence."""
        node, story = self._node_with_story(node_id)
        require_mutate(user, story)
        for choice_id in choice_ids:
            optional_text(choice_id, field_name="choice_ids")
        current = self._store.list_choices(source_node_id=node.node_id)
        plan = plan_reorder(current, choice_ids)
        self._store.apply_choice_orders(source_node_id=node.node_id, orders=plan)
        logger.info(
            "choice.reorder node_id=%s reordered=%s unlisted=%s",
            node.node_id,
            len(plan),
            len(current) - len(plan),
        )
        return sort_choices(self._store.list_choices(source_node_id=node.node_id))


def _optional_str(changes: Mapping[str, object], field_name: str) -> str | None:
    value = changes[field_name]
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return optional_text(value, field_name=field_name)
