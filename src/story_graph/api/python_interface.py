"""Python-first client for the story graph HTTP API."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from story_graph.api.contracts import (
    AuthTokenResponse,
    ChoiceCreateRequest,
    ChoiceReorderRequest,
    ChoiceResponse,
    ChoiceUpdateRequest,
    NodeCreateRequest,
    NodeResponse,
    NodeUpdateRequest,
    StoryCreateRequest,
    StoryResponse,
    StoryUpdateRequest,
    UserResponse,
)


@dataclass(frozen=True)
class AuthSession:
    """Authenticated client session."""

    access_token: str
    api_base_url: str
    user_id: str

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


def _headers(session: AuthSession | None) -> dict[str, str]:
    return session.headers() if session is not None else {}


class StoryGraphClient:
    """Typed API client; one method per HTTP route.

    Partial updates only send the keyword arguments the caller passes, so an
    omitted field stays unchanged on the server while an explicit ``None``
    clears it.
    """

    def __init__(
        self, api_base_url: str = "http://127.0.0.1:8000", *, timeout: float = 30.0
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = timeout

    @property
    def api_base_url(self) -> str:
        return self._api_base_url

    def _url(self, path: str) -> str:
        return f"{self._api_base_url}{path}"

    def register(
        self, *, email: str, password: str, display_name: str, bio: str | None = None
    ) -> UserResponse:
        payload: dict[str, str] = {
            "email": email,
            "password": password,
            "display_name": display_name,
        }
        if bio is not None:
            payload["bio"] = bio
        response = httpx.post(
            self._url("/api/v1/auth/register"),
            json=payload,
            timeout=self._timeout,
        )
        response.raise_for_status()
        return UserResponse.model_validate(response.json())

    def login(self, *, email: str, password: str) -> AuthSession:
        """Authenticate and return a reusable auth session."""
        response = httpx.post(
            self._url("/api/v1/auth/login"),
            json={"email": email, "password": password},
            timeout=self._timeout,
        )
        response.raise_for_status()
        payload = AuthTokenResponse.model_validate(response.json())
        return AuthSession(
            access_token=payload.access_token,
            api_base_url=self._api_base_url,
            user_id=payload.user.user_id,
        )

    def list_published_stories(self, *, limit: int = 100) -> list[StoryResponse]:
        response = httpx.get(
            self._url("/api/v1/stories"), params={"limit": limit}, timeout=self._timeout
        )
        response.raise_for_status()
        return [StoryResponse.model_validate(item) for item in response.json()]

    def list_my_stories(self, *, session: AuthSession, limit: int = 100) -> list[StoryResponse]:
        response = httpx.get(
            self._url("/api/v1/me/stories"),
            params={"limit": limit},
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return [StoryResponse.model_validate(item) for item in response.json()]

    def create_story(
        self,
        *,
        session: AuthSession,
        title: str,
        description: str | None = None,
        cover_image: str | None = None,
    ) -> StoryResponse:
        """Create a draft story; the server adds its first node."""
        request = StoryCreateRequest(
            title=title, description=description, cover_image=cover_image
        )
        response = httpx.post(
            self._url("/api/v1/stories"),
            json=request.model_dump(mode="json"),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return StoryResponse.model_validate(response.json())

    def get_story(self, *, story_id: str, session: AuthSession | None = None) -> StoryResponse:
        response = httpx.get(
            self._url(f"/api/v1/stories/{story_id}"),
            headers=_headers(session),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return StoryResponse.model_validate(response.json())

    def update_story(
        self, *, session: AuthSession, story_id: str, **changes: object
    ) -> StoryResponse:
        request = StoryUpdateRequest.model_validate(changes)
        response = httpx.patch(
            self._url(f"/api/v1/stories/{story_id}"),
            json=request.model_dump(mode="json", exclude_unset=True),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return StoryResponse.model_validate(response.json())

    def delete_story(self, *, session: AuthSession, story_id: str) -> None:
        response = httpx.delete(
            self._url(f"/api/v1/stories/{story_id}"),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()

    def list_nodes(
        self, *, story_id: str, session: AuthSession | None = None
    ) -> list[NodeResponse]:
        response = httpx.get(
            self._url(f"/api/v1/stories/{story_id}/nodes"),
            headers=_headers(session),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return [NodeResponse.model_validate(item) for item in response.json()]

    def create_node(
        self,
        *,
        session: AuthSession,
        story_id: str,
        content: str,
        title: str | None = None,
        is_ending: bool = False,
    ) -> NodeResponse:
        request = NodeCreateRequest(content=content, title=title, is_ending=is_ending)
        response = httpx.post(
            self._url(f"/api/v1/stories/{story_id}/nodes"),
            json=request.model_dump(mode="json"),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return NodeResponse.model_validate(response.json())

    def get_node(self, *, node_id: str, session: AuthSession | None = None) -> NodeResponse:
        response = httpx.get(
            self._url(f"/api/v1/nodes/{node_id}"),
            headers=_headers(session),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return NodeResponse.model_validate(response.json())

    def update_node(
        self, *, session: AuthSession, node_id: str, **changes: object
    ) -> NodeResponse:
        request = NodeUpdateRequest.model_validate(changes)
        response = httpx.patch(
            self._url(f"/api/v1/nodes/{node_id}"),
            json=request.model_dump(mode="json", exclude_unset=True),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return NodeResponse.model_validate(response.json())

    def delete_node(self, *, session: AuthSession, node_id: str) -> None:
        response = httpx.delete(
            self._url(f"/api/v1/nodes/{node_id}"),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()

    def list_choices(
        self, *, node_id: str, session: AuthSession | None = None
    ) -> list[ChoiceResponse]:
        response = httpx.get(
            self._url(f"/api/v1/nodes/{node_id}/choices"),
            headers=_headers(session),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return [ChoiceResponse.model_validate(item) for item in response.json()]

    def create_choice(
        self,
        *,
        session: AuthSession,
        source_node_id: str,
        target_node_id: str,
        text: str,
        order: int | None = None,
    ) -> ChoiceResponse:
        request = ChoiceCreateRequest(target_node_id=target_node_id, text=text, order=order)
        response = httpx.post(
            self._url(f"/api/v1/nodes/{source_node_id}/choices"),
            json=request.model_dump(mode="json", exclude_none=True),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return ChoiceResponse.model_validate(response.json())

    def reorder_choices(
        self, *, session: AuthSession, node_id: str, choice_ids: list[str]
    ) -> list[ChoiceResponse]:
        """Send the desired display order; returns the node's choices re-read."""
        request = ChoiceReorderRequest(choice_ids=choice_ids)
        response = httpx.post(
            self._url(f"/api/v1/nodes/{node_id}/choices/reorder"),
            json=request.model_dump(mode="json"),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return [ChoiceResponse.model_validate(item) for item in response.json()]

    def update_choice(
        self, *, session: AuthSession, choice_id: str, **changes: object
    ) -> ChoiceResponse:
        request = ChoiceUpdateRequest.model_validate(changes)
        response = httpx.patch(
            self._url(f"/api/v1/choices/{choice_id}"),
            json=request.model_dump(mode="json", exclude_unset=True),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return ChoiceResponse.model_validate(response.json())

    def delete_choice(self, *, session: AuthSession, choice_id: str) -> None:
        response = httpx.delete(
            self._url(f"/api/v1/choices/{choice_id}"),
            headers=session.headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()


__all__ = ["AuthSession", "StoryGraphClient"]
