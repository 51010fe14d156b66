"""Local credential file: the bearer token saved by ``login``."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from cli_ai_agent.log import get_logger

logger = get_logger(__name__)

EXPIRY_MARGIN = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Credential:
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["expires_at"] = self.expires_at.isoformat() if self.expires_at else None
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Credential:
        expires_at = data.get("expires_at")
        created_at = data.get("created_at")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
            expires_at=_parse_datetime(expires_at) if expires_at else None,
            created_at=_parse_datetime(created_at) if created_at else _utcnow(),
        )


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_expired(
    credential: Credential,
    now: datetime | None = None,
    margin: timedelta = EXPIRY_MARGIN,
) -> bool:
    """True when there is no expiry or it falls within *margin* of *now*."""
    if credential.expires_at is None:
        return True
    now = now or _utcnow()
    return credential.expires_at - now <= margin


class TokenStore:
    """Reads, writes and deletes the credential file."""

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def get_credential(self) -> Credential | None:
        """Return the stored credential, or None when missing or unreadable."""
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            credential = Credential.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("credential_unreadable", path=str(self._path), error=str(e))
            return None
        if not credential.access_token:
            return None
        return credential

    def store_credential(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        token_type: str = "Bearer",
        scope: Optional[str] = None,
        expires_in: Optional[int] = None,
    ) -> Credential:
        """Write a new credential. *expires_in* is in seconds from now."""
        now = _utcnow()
        credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=token_type,
            scope=scope,
            expires_at=now + timedelta(seconds=expires_in) if expires_in else None,
            created_at=now,
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(credential.to_dict(), indent=2), encoding="utf-8")
        self._path.chmod(0o600)
        logger.info("credential_stored", path=str(self._path), expires_at=credential.to_dict()["expires_at"])
        return credential

    def clear(self) -> bool:
        """Delete the credential file. Returns False when there was nothing to delete."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        logger.info("credential_cleared", path=str(self._path))
        return True
