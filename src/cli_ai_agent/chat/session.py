"""Interactive chat session: authenticate, pick a mode, then loop over user turns."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional

from cli_ai_agent.agent.generator import GenerationResult, generate_application
from cli_ai_agent.ai.client import ModelGateway, ToolCall
from cli_ai_agent.ai.tools.registry import ToolSelection
from cli_ai_agent.auth.session import SessionResolver, require_user
from cli_ai_agent.auth.token_store import TokenStore
from cli_ai_agent.config import AppConfig
from cli_ai_agent.core.types import Mode, Role
from cli_ai_agent.errors import (
    AgentError,
    AuthError,
    Cancelled,
    GatewayError,
    GenerationError,
    InputValidationError,
)
from cli_ai_agent.log import get_logger
from cli_ai_agent.storage.conversation_repo import ConversationRepository, derive_title
from cli_ai_agent.storage.models import Conversation, Message, User
from cli_ai_agent.ui.terminal import Choice, Terminal

logger = get_logger(__name__)

EXIT_COMMAND = "exit"

MODE_CHOICES = [
    Choice(Mode.CHAT.value, "Chat", "Simple chat with the AI agent"),
    Choice(Mode.TOOL.value, "Tool Calling", "Chat with tools (Web Search, Code Execution)"),
    Choice(Mode.AGENT.value, "Agentic Mode", "Generate complete applications in the current directory"),
]

Generator = Callable[..., Awaitable[Optional[GenerationResult]]]


def validate_message(value: str) -> None:
    if not value or not value.strip():
        raise InputValidationError("Message cannot be empty")


def make_description_validator(min_length: int) -> Callable[[str], None]:
    def validate(value: str) -> None:
        if not value or not value.strip():
            raise InputValidationError("Description cannot be empty")
        if value.strip().lower() == EXIT_COMMAND:
            return
        if len(value.strip()) < min_length:
            raise InputValidationError(
                f"Please provide more details (at least {min_length} characters)"
            )

    return validate


class ChatSession:
    """Drives one interactive session from authentication to termination.

    Collaborators are injected. *gateway* may be a zero-argument factory, which
    is called only once the user is authenticated. The tool selection belongs
    to this session and is reset on every exit path.
    """

    def __init__(
        self,
        terminal: Terminal,
        token_store: TokenStore,
        resolver: SessionResolver,
        repo: ConversationRepository,
        gateway: ModelGateway | Callable[[], ModelGateway],
        tools: ToolSelection,
        config: AppConfig,
        generator: Generator = generate_application,
        cwd: str | Path | None = None,
    ):
        self._terminal = terminal
        self._token_store = token_store
        self._resolver = resolver
        self._repo = repo
        self._gateway_source = gateway
        self._gateway: ModelGateway | None = None
        self._tools = tools
        self._config = config
        self._generator = generator
        self._cwd = Path(cwd) if cwd is not None else Path(os.getcwd())

    async def run(self, mode: Mode | str | None = None, conversation_id: str | None = None) -> int:
        """Run the session. Returns the process exit code."""
        try:
            user = await self._authenticate()
            self._gateway = self._open_gateway()

            existing = None
            if conversation_id:
                existing = await self._repo.get_conversation(conversation_id, user.id)
                if existing is None:
                    self._terminal.warning(
                        f"Conversation {conversation_id} not found. Starting a new one."
                    )

            if existing is not None:
                if mode and Mode(mode) != existing.mode:
                    self._terminal.warning(
                        f"Conversation {existing.id} is a {existing.mode.value} conversation; "
                        f"continuing in {existing.mode.value} mode."
                    )
                mode = existing.mode
            elif mode is None:
                mode = Mode(await self._terminal.select("Select an option", MODE_CHOICES))
            else:
                mode = Mode(mode)

            if not await self._prepare_mode(mode):
                return 0

            conversation = await self._init_conversation(user, conversation_id, mode)
            await self._chat_loop(conversation)

            self._terminal.success("Thanks for using the AI agent!")
            return 0

        except AuthError as e:
            logger.info("auth_failed", reason=str(e))
            self._terminal.error(str(e))
            return 1
        except Cancelled:
            self._terminal.warning("Session cancelled. Goodbye!")
            return 0
        except AgentError as e:
            logger.error("session_failed", error=str(e))
            self._terminal.error(f"Error: {e}")
            return 1
        except Exception as e:
            logger.exception("session_crashed", error=str(e))
            self._terminal.error(f"Error: {e}")
            return 1
        finally:
            self._tools.reset_tools()

    def _open_gateway(self) -> ModelGateway:
        if isinstance(self._gateway_source, ModelGateway):
            return self._gateway_source
        return self._gateway_source()

    async def _authenticate(self) -> User:
        with self._terminal.status("Authenticating..."):
            user = await require_user(
                self._token_store, self._resolver, self._config.auth.expiry_margin
            )
        self._terminal.success(f"Welcome back, {user.display_name}!")
        return user

    async def _prepare_mode(self, mode: Mode) -> bool:
        """Mode-specific setup before the conversation opens. False ends the session."""
        if mode is Mode.TOOL:
            await self._select_tools()
        elif mode is Mode.AGENT:
            proceed = await self._terminal.confirm(
                "The agent will create files and folders in the current directory. Continue?",
                default=True,
            )
            if not proceed:
                self._terminal.warning("Agent mode cancelled.")
                return False
        return True

    async def _select_tools(self) -> None:
        options = [Choice(t.id, t.name, t.description) for t in self._tools.available_tools]
        selected = await self._terminal.multiselect("Select tools to enable", options)
        self._tools.enable_tools(selected)

        if not selected:
            self._terminal.warning("No tools selected. Proceeding without tools.")
            return

        names = "\n".join(f"  • {name}" for name in self._tools.get_enabled_tools_names())
        self._terminal.panel(f"Enabled tools:\n{names}", title="Active Tools", style="green")

    async def _init_conversation(
        self, user: User, conversation_id: str | None, mode: Mode
    ) -> Conversation:
        with self._terminal.status("Loading conversation..."):
            conversation = await self._repo.get_or_create_conversation(user.id, conversation_id, mode)

        lines = [
            f"Conversation: {conversation.title}",
            f"ID: {conversation.id}",
            f"Mode: {conversation.mode.value}",
        ]
        if mode is Mode.TOOL:
            names = self._tools.get_enabled_tools_names()
            lines.append(f"Active Tools: {', '.join(names)}" if names else "No Tools Enabled")
        elif mode is Mode.AGENT:
            lines.append(f"Working Directory: {self._cwd}")
        self._terminal.panel("\n".join(lines), title="Conversation", style="cyan")

        if conversation.messages:
            self._terminal.warning("Previous messages:")
            self._display_messages(conversation.messages)

        return conversation

    def _display_messages(self, messages: list[Message]) -> None:
        for message in messages:
            if message.role is Role.USER:
                self._terminal.panel(message.content, title="You", style="blue")
            else:
                self._terminal.message("Assistant:", "bold green")
                self._terminal.markdown(message.content)

    def _show_help(self, mode: Mode) -> None:
        if mode is Mode.AGENT:
            body = (
                "Describe the application you want and the agent will generate\n"
                "all files and folders plus setup commands.\n\n"
                'Examples:\n  • "Build a todo app with React and Tailwind"\n'
                '  • "Create a REST API with FastAPI and SQLite"\n\n'
                'Type "exit" to end the session'
            )
        else:
            lines = ["• Type your message and press Enter"]
            if mode is Mode.TOOL:
                names = self._tools.get_enabled_tools_names()
                lines.append(f"• AI has access to: {', '.join(names) if names else 'No tools'}")
            lines.append('• Type "exit" to end conversation')
            lines.append("• Press Ctrl+C to quit anytime")
            body = "\n".join(lines)
        self._terminal.panel(body, title="Help", style="dim")

    async def _chat_loop(self, conversation: Conversation) -> None:
        mode = conversation.mode
        self._show_help(mode)

        if mode is Mode.AGENT:
            prompt, placeholder = "What would you like to build?", "Describe your application..."
            validate = make_description_validator(self._config.agent.min_prompt_length)
        else:
            prompt, placeholder = "Your message", "Type your message..."
            validate = validate_message

        while True:
            user_input = await self._terminal.ask_text(prompt, placeholder, validate)

            if user_input.strip().lower() == EXIT_COMMAND:
                self._terminal.warning("Chat session ended. Goodbye!")
                break

            self._terminal.panel(user_input, title="You", style="blue")
            if not await self._process_turn(conversation, user_input):
                break

    async def _process_turn(self, conversation: Conversation, user_input: str) -> bool:
        """Persist the user turn, get a reply and persist it. Returns False to stop."""
        await self._repo.add_message(conversation.id, Role.USER, user_input)
        messages = await self._repo.get_messages(conversation.id)
        is_first = len(messages) == 1

        try:
            if conversation.mode is Mode.AGENT:
                reply = await self._generate(user_input)
            else:
                reply = await self._get_ai_response(messages)
        except (GatewayError, GenerationError) as e:
            logger.warning("turn_failed", conversation_id=conversation.id, error=str(e))
            self._terminal.error(f"Error: {e}")
            await self._repo.add_message(conversation.id, Role.ASSISTANT, f"Error: {e}")
            if is_first:
                await self._repo.update_title(conversation.id, derive_title(user_input))
            return await self._terminal.confirm("Would you like to try again?", default=True)

        await self._repo.add_message(conversation.id, Role.ASSISTANT, reply)
        if is_first:
            await self._repo.update_title(conversation.id, derive_title(user_input))

        if conversation.mode is Mode.AGENT:
            another = await self._terminal.confirm(
                "Would you like to generate another application?", default=False
            )
            if not another:
                self._terminal.success("Great! Check your new application.")
            return another
        return True

    async def _get_ai_response(self, messages: list[Message]) -> str:
        transcript = self._repo.format_messages(messages)
        tools = self._tools.get_enabled_tools() or None

        def on_tool_call(call: ToolCall) -> None:
            args = json.dumps(call.input, ensure_ascii=False)
            if len(args) > 120:
                args = args[:117] + "..."
            self._terminal.message(f"🔧 {call.name} {args}", "dim")

        parts: list[str] = []
        with self._terminal.live_markdown("🤖 Assistant:") as live:

            def on_chunk(chunk: str) -> None:
                parts.append(chunk)
                live.update("".join(parts))

            result = await self._gateway.send_message(
                transcript, on_chunk=on_chunk, tools=tools, on_tool_call=on_tool_call
            )

        logger.info(
            "assistant_response",
            finish_reason=result.finish_reason,
            steps=result.steps,
            tool_calls=len(result.tool_calls),
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
        )
        return result.content

    async def _generate(self, request: str) -> str:
        with self._terminal.status("Generating application..."):
            result = await self._generator(
                request,
                self._gateway,
                self._cwd,
                max_files=self._config.agent.max_files,
                max_tokens=self._config.agent.max_tokens,
            )
        if result is None or not result.success:
            raise GenerationError("Generation returned no result")

        files = "\n".join(f"  • {f}" for f in result.files)
        self._terminal.panel(
            f"{result.description}\n\nFiles:\n{files}" if result.description else f"Files:\n{files}",
            title=f"Generated {result.folder_name}",
            style="green",
        )
        return result.summary()
