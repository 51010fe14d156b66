"""Resolve the authenticated user behind a stored bearer token."""

from __future__ import annotations

from datetime import timedelta

from cli_ai_agent.auth.token_store import EXPIRY_MARGIN, TokenStore, is_expired
from cli_ai_agent.errors import AuthError
from cli_ai_agent.log import get_logger
from cli_ai_agent.storage.database import Database
from cli_ai_agent.storage.models import User

logger = get_logger(__name__)

LOGIN_HINT = "Please run 'cli-ai-agent login' to authenticate."


class SessionResolver:
    """Read-only lookup of users through the auth backend's session table."""

    def __init__(self, db: Database):
        self._db = db

    async def resolve_user(self, access_token: str) -> User | None:
        """Return the user owning an active session for *access_token*."""
        # julianday() normalises separators and UTC offsets of expires_at
        cursor = await self._db.conn.execute(
            """SELECT u.id, u.name, u.email FROM users u
               JOIN sessions s ON s.user_id = u.id
               WHERE s.token = ?
                 AND (s.expires_at IS NULL
                      OR julianday(s.expires_at) > julianday('now'))
               LIMIT 1""",
            (access_token,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return User(id=row["id"], name=row["name"], email=row["email"])


async def require_user(
    token_store: TokenStore,
    resolver: SessionResolver,
    margin: timedelta = EXPIRY_MARGIN,
) -> User:
    """Validate the stored credential and resolve its user, or raise AuthError."""
    credential = token_store.get_credential()
    if credential is None:
        raise AuthError(f"You are not logged in. {LOGIN_HINT}")

    if is_expired(credential, margin=margin):
        logger.info("credential_expired", expires_at=str(credential.expires_at))
        raise AuthError(f"Your token has expired. {LOGIN_HINT}")

    user = await resolver.resolve_user(credential.access_token)
    if user is None:
        logger.info("session_not_found")
        raise AuthError(f"Invalid token. {LOGIN_HINT}")

    logger.info("user_authenticated", user_id=user.id)
    return user
