"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from cli_ai_agent.core.types import Mode, Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: Optional[str]
    email: str

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass
class Message:
    conversation_id: str
    role: Role
    content: str
    created_at: datetime = field(default_factory=_utcnow)
    id: Optional[int] = None


@dataclass
class Conversation:
    id: str
    user_id: str
    mode: Mode
    title: str
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    messages: list[Message] = field(default_factory=list)
