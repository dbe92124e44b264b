"""Public API surface for HTTP serving and the Python client."""

from story_graph.api.app import create_app
from story_graph.api.python_interface import AuthSession, StoryGraphClient

__all__ = ["AuthSession", "StoryGraphClient", "create_app"]
