from __future__ import annotations

from typing import Any

import httpx
import pytest

from story_graph.api.python_interface import AuthSession, StoryGraphClient

STAMP = "2026-01-01T00:00:00+00:00"


def _story_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "story_id": "s1",
        "author_id": "u1",
        "title": "Cave",
        "description": None,
        "cover_image": None,
        "is_draft": True,
        "is_published": False,
        "first_node_id": "n1",
        "created_at_utc": STAMP,
        "updated_at_utc": STAMP,
    }
    payload.update(overrides)
    return payload


def _choice_payload(choice_id: str, order: int) -> dict[str, Any]:
    return {
        "choice_id": choice_id,
        "source_node_id": "n1",
        "target_node_id": "n2",
        "text": f"Go {choice_id}",
        "order": order,
        "created_at_utc": STAMP,
        "updated_at_utc": STAMP,
    }


def _session() -> AuthSession:
    return AuthSession(access_token="token-123", api_base_url="http://api", user_id="u1")


def test_login_parses_token_and_user(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, json: object, timeout: float) -> httpx.Response:
        request = httpx.Request("POST", url)
        assert str(url).endswith("/api/v1/auth/login")
        return httpx.Response(
            status_code=200,
            request=request,
            json={
                "access_token": "token-123",
                "token_type": "bearer",
                "expires_at_utc": STAMP,
                "user": {
                    "user_id": "u1",
                    "email": "alice@example.com",
                    "display_name": "Alice",
                    "created_at_utc": STAMP,
                },
            },
        )

    monkeypatch.setattr("story_graph.api.python_interface.httpx.post", fake_post)
    client = StoryGraphClient(api_base_url="http://127.0.0.1:8000/")
    session = client.login(email="alice@example.com", password="password123")
    assert session.access_token == "token-123"
    assert session.user_id == "u1"
    assert session.api_base_url == "http://127.0.0.1:8000"
    assert session.headers() == {"Authorization": "Bearer token-123"}


def test_update_story_sends_only_given_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_patch(
        url: str, json: object, headers: dict[str, str], timeout: float
    ) -> httpx.Response:
        captured.update(url=url, json=json, headers=headers)
        return httpx.Response(
            status_code=200,
            request=httpx.Request("PATCH", url),
            json=_story_payload(description=None, is_published=True),
        )

    monkeypatch.setattr("story_graph.api.python_interface.httpx.patch", fake_patch)
    client = StoryGraphClient(api_base_url="http://api")
    story = client.update_story(
        session=_session(), story_id="s1", description=None, is_published=True
    )

    assert captured["url"] == "http://api/api/v1/stories/s1"
    assert captured["json"] == {"description": None, "is_published": True}
    assert captured["headers"] == {"Authorization": "Bearer token-123"}
    assert story.is_published is True


def test_anonymous_reads_send_no_auth_header(monkeypatch: pytest.MonkeyPatch) -> None:
    seen_headers: list[dict[str, str]] = []

    def fake_get(url: str, headers: dict[str, str], timeout: float) -> httpx.Response:
        seen_headers.append(headers)
        return httpx.Response(
            status_code=200,
            request=httpx.Request("GET", url),
            json=[_choice_payload("c1", 0), _choice_payload("c2", 1)],
        )

    monkeypatch.setattr("story_graph.api.python_interface.httpx.get", fake_get)
    choices = StoryGraphClient(api_base_url="http://api").list_choices(node_id="n1")
    assert [choice.choice_id for choice in choices] == ["c1", "c2"]
    assert seen_headers == [{}]


def test_reorder_posts_choice_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_post(
        url: str, json: object, headers: dict[str, str], timeout: float
    ) -> httpx.Response:
        captured.update(url=url, json=json)
        return httpx.Response(
            status_code=200,
            request=httpx.Request("POST", url),
            json=[_choice_payload("c2", 0), _choice_payload("c1", 1)],
        )

    monkeypatch.setattr("story_graph.api.python_interface.httpx.post", fake_post)
    result = StoryGraphClient(api_base_url="http://api").reorder_choices(
        session=_session(), node_id="n1", choice_ids=["c2", "c1"]
    )
    assert captured["url"] == "http://api/api/v1/nodes/n1/choices/reorder"
    assert captured["json"] == {"choice_ids": ["c2", "c1"]}
    assert [choice.order for choice in result] == [0, 1]


def test_http_errors_are_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, headers: dict[str, str], timeout: float) -> httpx.Response:
        return httpx.Response(
            status_code=403,
            request=httpx.Request("GET", url),
            json={"detail": "This story is not published", "code": "forbidden"},
        )

    monkeypatch.setattr("story_graph.api.python_interface.httpx.get", fake_get)
    with pytest.raises(httpx.HTTPStatusError):
        StoryGraphClient(api_base_url="http://api").get_story(story_id="s1")


def test_register_sends_bio_only_when_given(monkeypatch: pytest.MonkeyPatch) -> None:
    bodies: list[object] = []

    def fake_post(url: str, json: object, timeout: float) -> httpx.Response:
        bodies.append(json)
        return httpx.Response(
            status_code=201,
            request=httpx.Request("POST", url),
            json={
                "user_id": "u1",
                "email": "alice@example.com",
                "display_name": "Alice",
                "bio": "Writes caves.",
                "created_at_utc": STAMP,
            },
        )

    monkeypatch.setattr("story_graph.api.python_interface.httpx.post", fake_post)
    client = StoryGraphClient(api_base_url="http://api")
    user = client.register(
        email="alice@example.com",
        password="password123",
        display_name="Alice",
        bio="Writes caves.",
    )
    client.register(email="bob@example.com", password="password123", display_name="Bob")

    assert user.bio == "Writes caves."
    assert bodies == [
        {
            "email": "alice@example.com",
            "password": "password123",
            "display_name": "Alice",
            "bio": "Writes caves.",
        },
        {"email": "bob@example.com", "password": "password123", "display_name": "Bob"},
    ]
