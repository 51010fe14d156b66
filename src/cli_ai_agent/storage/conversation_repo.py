"""Conversation repository: user-scoped conversations and their append-only messages."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from cli_ai_agent.core.types import Mode, Role
from cli_ai_agent.log import get_logger
from cli_ai_agent.storage.database import Database
from cli_ai_agent.storage.models import Conversation, Message

logger = get_logger(__name__)

TITLE_MAX_LENGTH = 50


def derive_title(text: str) -> str:
    """Title from the first user message: 50 characters, ellipsis when truncated."""
    return text[:TITLE_MAX_LENGTH] + ("..." if len(text) > TITLE_MAX_LENGTH else "")


def placeholder_title(mode: Mode | str) -> str:
    return f"New {Mode(mode).value} conversation"


def format_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert stored messages into the model-ready transcript, order preserved."""
    return [{"role": str(m.role), "content": m.content} for m in messages]


class ConversationRepository:
    """Create, resume and append to conversations."""

    def __init__(self, db: Database):
        self._db = db

    async def get_or_create_conversation(
        self, user_id: str, conversation_id: Optional[str], mode: Mode | str
    ) -> Conversation:
        """Resume *conversation_id* when it belongs to *user_id*, else create a new one."""
        mode = Mode(mode)

        if conversation_id:
            conversation = await self.get_conversation(conversation_id, user_id)
            if conversation is not None:
                conversation.messages = await self.get_messages(conversation.id)
                logger.info(
                    "conversation_resumed",
                    conversation_id=conversation.id,
                    message_count=len(conversation.messages),
                )
                return conversation
            logger.info("conversation_not_found", conversation_id=conversation_id, user_id=user_id)

        return await self.create_conversation(user_id, mode)

    async def create_conversation(self, user_id: str, mode: Mode | str) -> Conversation:
        mode = Mode(mode)
        conversation = Conversation(
            id=uuid.uuid4().hex,
            user_id=user_id,
            mode=mode,
            title=placeholder_title(mode),
        )
        await self._db.conn.execute(
            "INSERT INTO conversations (id, user_id, mode, title) VALUES (?, ?, ?, ?)",
            (conversation.id, conversation.user_id, conversation.mode.value, conversation.title),
        )
        await self._db.conn.commit()
        logger.info("conversation_created", conversation_id=conversation.id, mode=mode.value)
        return conversation

    async def get_conversation(self, conversation_id: str, user_id: str) -> Conversation | None:
        cursor = await self._db.conn.execute(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, user_id),
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def add_message(self, conversation_id: str, role: Role | str, content: str) -> Message:
        """Append a message and return the persisted record."""
        role = Role(role)
        cursor = await self._db.conn.execute(
            "INSERT INTO messages (conversation_id, role, content) VALUES (?, ?, ?)",
            (conversation_id, role.value, content),
        )
        message_id = cursor.lastrowid
        await self._db.conn.execute(
            """UPDATE conversations
               SET updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')
               WHERE id = ?""",
            (conversation_id,),
        )
        await self._db.conn.commit()

        cursor = await self._db.conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
        row = await cursor.fetchone()
        return self._row_to_message(row)

    async def update_title(self, conversation_id: str, title: str) -> None:
        await self._db.conn.execute(
            "UPDATE conversations SET title = ? WHERE id = ?",
            (title, conversation_id),
        )
        await self._db.conn.commit()
        logger.debug("conversation_title_updated", conversation_id=conversation_id)

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """All messages of a conversation, in insertion order."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY id ASC",
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def list_conversations(
        self, user_id: str, mode: Mode | str | None = None, limit: int = 20
    ) -> list[Conversation]:
        """Most recently active conversations of a user."""
        if mode is not None:
            cursor = await self._db.conn.execute(
                """SELECT * FROM conversations
                   WHERE user_id = ? AND mode = ?
                   ORDER BY updated_at DESC
                   LIMIT ?""",
                (user_id, Mode(mode).value, limit),
            )
        else:
            cursor = await self._db.conn.execute(
                """SELECT * FROM conversations
                   WHERE user_id = ?
                   ORDER BY updated_at DESC
                   LIMIT ?""",
                (user_id, limit),
            )
        rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    @staticmethod
    def format_messages(messages: list[Message]) -> list[dict[str, Any]]:
        return format_messages(messages)

    @staticmethod
    def _row_to_conversation(row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            mode=Mode(row["mode"]),
            title=row["title"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=Role(row["role"]),
            content=row["content"],
            created_at=_parse_ts(row["created_at"]),
        )


def _parse_ts(value: str) -> datetime:
    # SQLite timestamps are UTC without an offset
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)
