"""Account registration and credential checks."""

from __future__ import annotations

import logging

from story_graph.core.graph_rules import optional_text, require_text
from story_graph.domain.errors import Conflict, Unauthorized, ValidationError
from story_graph.domain.models import User
from story_graph.domain.ports import CredentialVerifier, GraphRecordStore

logger = logging.getLogger(__name__)


class AccountService:
    """Registers users and turns credentials into a verified identity."""

    def __init__(self, store: GraphRecordStore, credentials: CredentialVerifier) -> None:
        self._store = store
        self._credentials = credentials

    def register(
        self,
        *,
        email: str | None,
        password: str | None,
        display_name: str | None,
        bio: str | None = None,
    ) -> User:
        clean_email = require_text(email, field_name="email").lower()
        clean_name = require_text(display_name, field_name="display_name")
        if not password:
            raise ValidationError("password is required")
        optional_text(password, field_name="password")
        created = self._store.create_user(
            email=clean_email,
            display_name=clean_name,
            password_hash=self._credentials.hash_password(password),
            bio=optional_text(bio, field_name="bio"),
        )
        if created is None:
            raise Conflict("Email already registered")
        logger.info("user.register user_id=%s", created.user_id)
        return created

    def login(self, *, email: str, password: str) -> tuple[User, str, str]:
        """Return the user, a bearer token, and its expiry timestamp."""
        optional_text(password, field_name="password")
        clean_email = email.strip().lower()
        optional_text(clean_email, field_name="email")
        user = self._store.get_user_by_email(email=clean_email)
        if user is None or not self._credentials.verify_password(password, user.password_hash):
            logger.warning("user.login_failed email=%s", clean_email)
            raise Unauthorized("Invalid credentials")
        token, expires_at_utc = self._credentials.issue_token(user.user_id)
        logger.info("user.login user_id=%s", user.user_id)
        return user, token, expires_at_utc

    def resolve_token(self, token: str) -> User:
        """Map a bearer token to its user or raise ``Unauthorized``."""
        user_id = self._credentials.verify_token(token)
        user = self._store.get_user_by_id(user_id=user_id)
        if user is None:
            raise Unauthorized("Invalid token")
        return user
