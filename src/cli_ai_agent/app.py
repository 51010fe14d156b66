"""Application wiring - builds collaborators and manages their lifecycle."""

from __future__ import annotations

from pathlib import Path

from cli_ai_agent.ai.client import AnthropicGateway, ModelGateway
from cli_ai_agent.ai.tools.registry import ToolSelection
from cli_ai_agent.auth.session import SessionResolver
from cli_ai_agent.auth.token_store import TokenStore
from cli_ai_agent.chat.session import ChatSession
from cli_ai_agent.config import AppConfig
from cli_ai_agent.log import get_logger
from cli_ai_agent.storage.conversation_repo import ConversationRepository
from cli_ai_agent.storage.database import Database
from cli_ai_agent.ui.terminal import Terminal

logger = get_logger(__name__)


class AgentApp:
    """Owns the database and the services built on top of it."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.token_store = TokenStore(config.auth.token_file)
        self.resolver = SessionResolver(self.db)
        self.conversation_repo = ConversationRepository(self.db)

    async def start(self) -> None:
        await self.db.initialize()
        logger.info("app_started", db_path=self.config.storage.db_path)

    async def stop(self) -> None:
        await self.db.close()
        logger.info("app_stopped")

    async def __aenter__(self) -> AgentApp:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def create_gateway(self) -> ModelGateway:
        return AnthropicGateway(self.config.anthropic, self.config.ai)

    def create_session(
        self,
        terminal: Terminal,
        gateway: ModelGateway | None = None,
        cwd: str | Path | None = None,
    ) -> ChatSession:
        return ChatSession(
            terminal=terminal,
            token_store=self.token_store,
            resolver=self.resolver,
            repo=self.conversation_repo,
            gateway=gateway or self.create_gateway,
            tools=ToolSelection(self.config.tools),
            config=self.config,
            cwd=cwd,
        )
