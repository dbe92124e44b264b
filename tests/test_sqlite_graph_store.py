from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from story_graph.adapters.sqlite_graph_store import SQLiteGraphStore
from story_graph.domain.errors import StoreUnavailable, ValidationError
from story_graph.domain.models import Story, User


def _store_with_author(tmp_path: Path) -> tuple[SQLiteGraphStore, User]:
    store = SQLiteGraphStore(db_path=tmp_path / "graph.db")
    user = store.create_user(email="Alice@Example.com", display_name="Alice", password_hash="h")
    assert user is not None
    return store, user


def _story(store: SQLiteGraphStore, author: User, title: str = "Tale") -> Story:
    story, _ = store.create_story_with_first_node(
        author_id=author.user_id,
        title=title,
        description=None,
        cover_image=None,
        first_node_content="Your story begins here...",
        first_node_title="Beginning",
    )
    return story


def test_user_email_is_normalized_and_unique(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    assert user.email == "alice@example.com"
    assert store.get_user_by_email(email="ALICE@example.com") == user
    duplicate = store.create_user(email="alice@example.com", display_name="A2", password_hash="x")
    assert duplicate is None
    assert store.get_user_by_id(user_id="missing") is None


def test_story_bootstrap_links_first_node(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story, node = store.create_story_with_first_node(
        author_id=user.user_id,
        title="Tale",
        description="About things",
        cover_image=None,
        first_node_content="Your story begins here...",
        first_node_title="Beginning",
    )
    assert story.first_node_id == node.node_id
    assert story.is_draft is True
    assert story.is_published is False
    assert node.story_id == story.story_id
    assert store.list_nodes(story_id=story.story_id) == [node]


def test_bootstrap_failure_leaves_no_story(tmp_path: Path) -> None:
    store = SQLiteGraphStore(db_path=tmp_path / "graph.db")
    with pytest.raises(StoreUnavailable):
        store.create_story_with_first_node(
            author_id="no-such-user",
            title="Orphan",
            description=None,
            cover_image=None,
            first_node_content="Start",
            first_node_title=None,
        )
    with sqlite3.connect(tmp_path / "graph.db") as connection:
        stories = connection.execute("SELECT COUNT(*) FROM stories").fetchone()[0]
        nodes = connection.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
    assert (stories, nodes) == (0, 0)


def test_listing_by_author_and_published(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    draft = _story(store, user, "Draft")
    public = _story(store, user, "Public")
    store.update_story(story_id=public.story_id, fields={"is_published": True})

    published = store.list_published_stories(limit=10)
    mine = store.list_stories_by_author(author_id=user.user_id, limit=10)

    assert [story.story_id for story in published] == [public.story_id]
    assert {story.story_id for story in mine} == {draft.story_id, public.story_id}


def test_partial_update_touches_only_named_fields(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    updated = store.update_story(story_id=story.story_id, fields={"description": "New"})
    assert updated is not None
    assert updated.description == "New"
    assert updated.title == story.title
    assert updated.first_node_id == story.first_node_id
    assert store.update_story(story_id="missing", fields={"title": "x"}) is None
    with pytest.raises(ValueError):
        store.update_story(story_id=story.story_id, fields={"author_id": "someone"})


def test_choices_list_in_order_and_reorder_atomically(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    assert story.first_node_id is not None
    target = store.create_node(story_id=story.story_id, content="Two", title=None, is_ending=True)
    first = store.create_choice(
        source_node_id=story.first_node_id, target_node_id=target.node_id, text="A", order=1
    )
    second = store.create_choice(
        source_node_id=story.first_node_id, target_node_id=target.node_id, text="B", order=0
    )
    listed = store.list_choices(source_node_id=story.first_node_id)
    assert [choice.choice_id for choice in listed] == [second.choice_id, first.choice_id]
    assert first.sequence < second.sequence

    store.apply_choice_orders(
        source_node_id=story.first_node_id,
        orders={first.choice_id: 0, second.choice_id: 1},
    )
    reordered = store.list_choices(source_node_id=story.first_node_id)
    assert [choice.order for choice in reordered] == [0, 1]
    assert [choice.choice_id for choice in reordered] == [first.choice_id, second.choice_id]

    by_story = store.list_choices_by_story(story_id=story.story_id)
    assert {choice.choice_id for choice in by_story} == {first.choice_id, second.choice_id}


def test_choice_update_maps_order_column(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    assert story.first_node_id is not None
    choice = store.create_choice(
        source_node_id=story.first_node_id,
        target_node_id=story.first_node_id,
        text="Loop",
        order=0,
    )
    updated = store.update_choice(choice_id=choice.choice_id, fields={"order": 7, "text": "Again"})
    assert updated is not None
    assert (updated.order, updated.text) == (7, "Again")
    assert store.delete_choice(choice_id=choice.choice_id) is True
    assert store.delete_choice(choice_id=choice.choice_id) is False


def test_node_delete_cascades_inbound_and_outbound_choices(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    assert story.first_node_id is not None
    middle = store.create_node(story_id=story.story_id, content="Mid", title=None, is_ending=False)
    end = store.create_node(story_id=story.story_id, content="End", title=None, is_ending=True)
    inbound = store.create_choice(
        source_node_id=story.first_node_id, target_node_id=middle.node_id, text="In", order=0
    )
    outbound = store.create_choice(
        source_node_id=middle.node_id, target_node_id=end.node_id, text="Out", order=0
    )

    assert store.delete_node_cascade(node_id=middle.node_id) is True

    assert store.get_node(node_id=middle.node_id) is None
    assert store.get_choice(choice_id=inbound.choice_id) is None
    assert store.get_choice(choice_id=outbound.choice_id) is None
    assert store.get_node(node_id=end.node_id) is not None
    assert store.delete_node_cascade(node_id=middle.node_id) is False


def test_story_delete_cascades_everything(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    other = _story(store, user, "Other")
    assert story.first_node_id is not None
    node = store.create_node(story_id=story.story_id, content="Next", title=None, is_ending=False)
    choice = store.create_choice(
        source_node_id=story.first_node_id, target_node_id=node.node_id, text="Go", order=0
    )

    assert store.delete_story_cascade(story_id=story.story_id) is True

    assert store.get_story(story_id=story.story_id) is None
    assert store.list_nodes(story_id=story.story_id) == []
    assert store.get_choice(choice_id=choice.choice_id) is None
    assert store.get_story(story_id=other.story_id) is not None
    assert store.delete_story_cascade(story_id=story.story_id) is False


def test_entry_node_delete_is_refused_inside_the_transaction(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    assert story.first_node_id is not None
    loop = store.create_choice(
        source_node_id=story.first_node_id,
        target_node_id=story.first_node_id,
        text="Loop",
        order=0,
    )

    with pytest.raises(ValidationError, match="first node"):
        store.delete_node_cascade(node_id=story.first_node_id)

    assert store.get_node(node_id=story.first_node_id) is not None
    assert store.get_choice(choice_id=loop.choice_id) == loop


def test_first_node_repoint_requires_a_live_node(tmp_path: Path) -> None:
    store, user = _store_with_author(tmp_path)
    story = _story(store, user)
    other = _story(store, user, "Other")
    gone = store.create_node(story_id=story.story_id, content="Gone", title=None, is_ending=False)
    assert store.delete_node_cascade(node_id=gone.node_id) is True

    missing = store.update_story(story_id=story.story_id, fields={"first_node_id": gone.node_id})
    assert missing is None
    assert other.first_node_id is not None
    foreign = store.update_story(
        story_id=story.story_id, fields={"first_node_id": other.first_node_id}
    )
    assert foreign is None
    reloaded = store.get_story(story_id=story.story_id)
    assert reloaded is not None
    assert reloaded.first_node_id == story.first_node_id
