"""Password hashing and signed bearer tokens."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta

import jwt

from story_graph.domain.errors import Unauthorized

PBKDF2_ITERATIONS = 310_000
TOKEN_ALGORITHM = "HS256"
TOKEN_ISSUER = "story_graph"


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_sha256${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = password_hash.split("$", maxsplit=3)
        salt = bytes.fromhex(salt_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    recomputed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(recomputed.hex(), digest_hex)


class TokenCredentialVerifier:
    """Issues and verifies HS256 JWTs whose subject is the user id."""

    def __init__(
        self,
        *,
        secret: str,
        ttl: timedelta,
        password_iterations: int = PBKDF2_ITERATIONS,
    ) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty.")
        self._secret = secret
        self._ttl = ttl
        self._password_iterations = password_iterations

    def hash_password(self, password: str) -> str:
        return hash_password(password, iterations=self._password_iterations)

    def verify_password(self, password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    def issue_token(self, user_id: str) -> tuple[str, str]:
        """Return ``(token, expires_at_utc)`` for one user."""
        issued_at = datetime.now(UTC)
        expires_at = issued_at + self._ttl
        token = jwt.encode(
            {
                "sub": user_id,
                "iss": TOKEN_ISSUER,
                "iat": issued_at,
                "exp": expires_at,
            },
            self._secret,
            algorithm=TOKEN_ALGORITHM,
        )
        return token, expires_at.isoformat()

    def verify_token(self, token: str) -> str:
        """Return the user id carried by a valid token."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                issuer=TOKEN_ISSUER,
                options={"require": ["sub", "exp", "iss"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Unauthorized("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise Unauthorized("Invalid token") from exc
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthorized("Invalid token")
        return subject
