"""Tests for resolving the authenticated user from the stored token."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from cli_ai_agent.auth.session import require_user
from cli_ai_agent.errors import AuthError

from conftest import VALID_TOKEN, insert_session, insert_user


async def test_resolve_active_session(resolver, user):
    resolved = await resolver.resolve_user(VALID_TOKEN)
    assert resolved == user


async def test_resolve_unknown_token(resolver, user):
    assert await resolver.resolve_user("nope") is None


async def test_resolve_expired_session(db, resolver):
    await insert_user(db, "user-2", "bob@example.com")
    await insert_session(db, "sess-2", "old-token", "user-2", "2000-01-01T00:00:00.000")
    assert await resolver.resolve_user("old-token") is None


async def test_resolve_session_without_expiry(db, resolver):
    await insert_user(db, "user-3", "carol@example.com")
    await insert_session(db, "sess-3", "forever", "user-3", None)
    resolved = await resolver.resolve_user("forever")
    assert resolved.email == "carol@example.com"
    assert resolved.display_name == "carol@example.com"


async def test_require_user_not_logged_in(token_store, resolver):
    with pytest.raises(AuthError, match="not logged in"):
        await require_user(token_store, resolver)


async def test_require_user_expired_credential(token_store, resolver, user):
    token_store.store_credential(VALID_TOKEN, expires_in=60)
    with pytest.raises(AuthError, match="expired"):
        await require_user(token_store, resolver)


async def test_require_user_credential_without_expiry(token_store, resolver, user):
    token_store.path.parent.mkdir(parents=True, exist_ok=True)
    token_store.path.write_text(json.dumps({"access_token": VALID_TOKEN}))
    with pytest.raises(AuthError, match="expired"):
        await require_user(token_store, resolver)


async def test_require_user_invalid_token(token_store, resolver, user):
    token_store.store_credential("unknown-token", expires_in=3600)
    with pytest.raises(AuthError, match="Invalid token"):
        await require_user(token_store, resolver)


async def test_require_user_success(logged_in, resolver, user):
    assert await require_user(logged_in, resolver) == user


def _stamp(delta: timedelta, offset_hours: int = 0, sep: str = "T") -> str:
    tz = timezone(timedelta(hours=offset_hours))
    moment = (datetime.now(timezone.utc) + delta).astimezone(tz)
    suffix = moment.strftime("%z")
    suffix = f"{suffix[:3]}:{suffix[3:]}" if offset_hours else ""
    return moment.strftime(f"%Y-%m-%d{sep}%H:%M:%S") + suffix


@pytest.mark.parametrize(
    ("expires_at", "active"),
    [
        (_stamp(timedelta(hours=1), sep=" "), True),
        (_stamp(timedelta(hours=-1), sep=" "), False),
        (_stamp(timedelta(hours=-1), offset_hours=5), False),
        (_stamp(timedelta(hours=1), offset_hours=-5), True),
        ("2999-01-01 00:00:00", True),
    ],
)
async def test_resolve_normalises_expiry_formats(db, resolver, expires_at, active):
    await insert_user(db, "user-4", "dave@example.com")
    await insert_session(db, "sess-4", "tok-4", "user-4", expires_at)

    resolved = await resolver.resolve_user("tok-4")
    assert (resolved is not None) is active
