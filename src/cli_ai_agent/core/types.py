"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Mode(StrEnum):
    CHAT = "chat"
    TOOL = "tool"
    AGENT = "agent"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
