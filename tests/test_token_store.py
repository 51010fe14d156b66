"""Tests for the local credential file and expiry checks."""

import json
import stat
from datetime import datetime, timedelta, timezone

from cli_ai_agent.auth.token_store import Credential, TokenStore, is_expired

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _credential(expires_in: timedelta | None) -> Credential:
    return Credential(
        access_token="abc",
        expires_at=NOW + expires_in if expires_in is not None else None,
        created_at=NOW,
    )


class TestIsExpired:
    def test_no_expiry_counts_as_expired(self):
        assert is_expired(_credential(None), now=NOW) is True

    def test_far_future_is_valid(self):
        assert is_expired(_credential(timedelta(hours=1)), now=NOW) is False

    def test_exactly_five_minutes_is_expired(self):
        assert is_expired(_credential(timedelta(minutes=5)), now=NOW) is True

    def test_just_over_five_minutes_is_valid(self):
        assert is_expired(_credential(timedelta(minutes=5, seconds=1)), now=NOW) is False

    def test_past_expiry(self):
        assert is_expired(_credential(timedelta(minutes=-1)), now=NOW) is True

    def test_custom_margin(self):
        cred = _credential(timedelta(minutes=2))
        assert is_expired(cred, now=NOW, margin=timedelta(minutes=1)) is False
        assert is_expired(cred, now=NOW, margin=timedelta(minutes=3)) is True


class TestTokenStore:
    def test_missing_file(self, tmp_path):
        store = TokenStore(tmp_path / "token.json")
        assert store.get_credential() is None

    def test_store_and_read(self, tmp_path):
        store = TokenStore(tmp_path / "nested" / "token.json")
        stored = store.store_credential("tok", refresh_token="ref", scope="chat", expires_in=3600)

        loaded = store.get_credential()
        assert loaded is not None
        assert loaded.access_token == "tok"
        assert loaded.refresh_token == "ref"
        assert loaded.scope == "chat"
        assert loaded.token_type == "Bearer"
        assert loaded.expires_at == stored.expires_at
        assert not is_expired(loaded)

    def test_file_is_private(self, tmp_path):
        store = TokenStore(tmp_path / "token.json")
        store.store_credential("tok", expires_in=60)
        mode = stat.S_IMODE(store.path.stat().st_mode)
        assert mode == 0o600

    def test_without_expires_in_has_no_expiry(self, tmp_path):
        store = TokenStore(tmp_path / "token.json")
        store.store_credential("tok")
        loaded = store.get_credential()
        assert loaded.expires_at is None
        assert is_expired(loaded)

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text("{not json")
        assert TokenStore(path).get_credential() is None

    def test_missing_access_token_field(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text(json.dumps({"token_type": "Bearer"}))
        assert TokenStore(path).get_credential() is None

    def test_empty_access_token(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text(json.dumps({"access_token": ""}))
        assert TokenStore(path).get_credential() is None

    def test_zulu_timestamp(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text(
            json.dumps({"access_token": "tok", "expires_at": "2999-01-01T00:00:00Z"})
        )
        loaded = TokenStore(path).get_credential()
        assert loaded.expires_at == datetime(2999, 1, 1, tzinfo=timezone.utc)

    def test_clear(self, tmp_path):
        store = TokenStore(tmp_path / "token.json")
        store.store_credential("tok", expires_in=60)
        assert store.clear() is True
        assert store.get_credential() is None
        assert store.clear() is False
