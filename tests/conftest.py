"""Shared test fixtures for cli-ai-agent."""

from __future__ import annotations

from contextlib import contextmanager
from types import SimpleNamespace
from typing import Any, AsyncIterator, Iterator

import pytest

from cli_ai_agent.ai.client import ModelGateway, StepFinish, TextDelta, Usage
from cli_ai_agent.ai.tools.base import Tool
from cli_ai_agent.auth.session import SessionResolver
from cli_ai_agent.auth.token_store import TokenStore
from cli_ai_agent.config import AppConfig
from cli_ai_agent.errors import Cancelled
from cli_ai_agent.storage.conversation_repo import ConversationRepository
from cli_ai_agent.storage.database import Database
from cli_ai_agent.storage.models import User
from cli_ai_agent.ui.terminal import Choice, LiveText, Terminal

VALID_TOKEN = "tok-valid-123"


# -- storage / auth -----------------------------------------------------------


@pytest.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


async def insert_user(db: Database, user_id: str, email: str, name: str | None = None) -> User:
    await db.conn.execute(
        "INSERT INTO users (id, name, email) VALUES (?, ?, ?)", (user_id, name, email)
    )
    await db.conn.commit()
    return User(id=user_id, name=name, email=email)


async def insert_session(
    db: Database, session_id: str, token: str, user_id: str, expires_at: str | None
) -> None:
    await db.conn.execute(
        "INSERT INTO sessions (id, token, user_id, expires_at) VALUES (?, ?, ?, ?)",
        (session_id, token, user_id, expires_at),
    )
    await db.conn.commit()


@pytest.fixture
async def user(db) -> User:
    alice = await insert_user(db, "user-1", "alice@example.com", "Alice")
    await insert_session(db, "sess-1", VALID_TOKEN, alice.id, "2999-01-01T00:00:00.000")
    return alice


@pytest.fixture
def token_store(tmp_path) -> TokenStore:
    return TokenStore(tmp_path / "auth" / "token.json")


@pytest.fixture
def logged_in(token_store, user) -> TokenStore:
    token_store.store_credential(VALID_TOKEN, expires_in=3600)
    return token_store


@pytest.fixture
def resolver(db) -> SessionResolver:
    return SessionResolver(db)


@pytest.fixture
def repo(db) -> ConversationRepository:
    return ConversationRepository(db)


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        data_dir=str(tmp_path),
        log_file=None,
        storage={"db_path": str(tmp_path / "test.db")},
        auth={"token_file": str(tmp_path / "auth" / "token.json")},
        anthropic={"api_key": "test-key"},
    )


# -- terminal -----------------------------------------------------------------


class _RecordingLive(LiveText):
    def __init__(self) -> None:
        self.frames: list[str] = []

    def update(self, text: str) -> None:
        self.frames.append(text)


class FakeTerminal(Terminal):
    """Terminal driven by a script of answers.

    Each entry answers the next prompt of any kind; ``Cancelled`` instances
    (or the class) are raised instead of returned.
    """

    def __init__(self, answers: list[Any] | None = None):
        self.answers = list(answers or [])
        self.prompts: list[tuple[str, str]] = []
        self.output: list[tuple[str, str]] = []
        self.live: list[_RecordingLive] = []

    def _next(self, kind: str, message: str) -> Any:
        self.prompts.append((kind, message))
        if not self.answers:
            raise AssertionError(f"Unexpected {kind} prompt: {message}")
        answer = self.answers.pop(0)
        if answer is Cancelled or isinstance(answer, Cancelled):
            raise Cancelled("cancelled by test")
        return answer

    async def read_line(self, message: str, placeholder: str = "") -> str:
        return self._next("text", message)

    async def select(self, message: str, options: list[Choice]) -> str:
        answer = self._next("select", message)
        assert answer in [o.value for o in options]
        return answer

    async def multiselect(self, message: str, options: list[Choice]) -> list[str]:
        return list(self._next("multiselect", message))

    async def confirm(self, message: str, default: bool = True) -> bool:
        return bool(self._next("confirm", message))

    def panel(self, body: str, title: str | None = None, style: str = "cyan") -> None:
        self.output.append(("panel", f"{title}: {body}"))

    def markdown(self, text: str) -> None:
        self.output.append(("markdown", text))

    def message(self, text: str, style: str = "") -> None:
        self.output.append((style or "plain", text))

    @contextmanager
    def status(self, text: str) -> Iterator[None]:
        self.output.append(("status", text))
        yield None

    @contextmanager
    def live_markdown(self, title: str) -> Iterator[LiveText]:
        live = _RecordingLive()
        self.live.append(live)
        yield live

    def text_output(self) -> str:
        return "\n".join(text for _, text in self.output)


@pytest.fixture
def terminal() -> FakeTerminal:
    return FakeTerminal()


# -- model gateway ------------------------------------------------------------


class FakeGateway(ModelGateway):
    """Gateway replaying scripted replies; an exception in the script is raised."""

    def __init__(self, replies: list[Any] | None = None, chunk_size: int = 4):
        self.replies = list(replies or [])
        self.chunk_size = chunk_size
        self.calls: list[dict[str, Any]] = []
        self.structured_calls: list[tuple[type, str]] = []
        self.structured_result: Any = None

    @property
    def model_name(self) -> str:
        return "fake-model"

    async def stream(
        self, messages: list[dict[str, Any]], tools: list[Tool] | None = None
    ) -> AsyncIterator:
        self.calls.append({"messages": list(messages), "tools": tools})
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        for i in range(0, len(reply), self.chunk_size):
            yield TextDelta(reply[i : i + self.chunk_size])
        yield StepFinish("end_turn", Usage(10, len(reply)))

    async def generate_structured(self, schema, prompt, max_tokens=None):
        self.structured_calls.append((schema, prompt))
        if isinstance(self.structured_result, Exception):
            raise self.structured_result
        return self.structured_result


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# -- fake Anthropic SDK client --------------------------------------------------


def text_block(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=text)


def tool_use_block(block_id: str, name: str, tool_input: dict) -> SimpleNamespace:
    return SimpleNamespace(type="tool_use", id=block_id, name=name, input=tool_input)


def fake_message(content: list, stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(
        content=content,
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=12, output_tokens=7),
    )


class _FakeStream:
    """Async stream context; an exception among the chunks is raised mid-body."""

    def __init__(self, chunks: list[Any], final: SimpleNamespace):
        self._chunks = chunks
        self._final = final

    async def __aenter__(self) -> _FakeStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    @property
    async def text_stream(self) -> AsyncIterator[str]:
        for chunk in self._chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def get_final_message(self) -> SimpleNamespace:
        return self._final


class _FakeMessages:
    def __init__(self, owner: FakeAnthropicClient):
        self._owner = owner

    def stream(self, **kwargs: Any) -> _FakeStream:
        self._owner.requests.append(kwargs)
        step = self._owner.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        chunks, final = step
        return _FakeStream(chunks, final)


class FakeAnthropicClient:
    """Stands in for ``anthropic.AsyncAnthropic`` with scripted responses.

    ``steps`` holds one ``(text_chunks, final_message)`` tuple per
    ``messages.stream`` call, or an exception raised when the call is made.
    """

    def __init__(self, steps: list[Any]):
        self.steps = list(steps)
        self.requests: list[dict[str, Any]] = []
        self.messages = _FakeMessages(self)


class RecordingTool(Tool):
    def __init__(self, name: str = "web_search", result: str = "result", error: Exception | None = None):
        self._name = name
        self._result = result
        self._error = error
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "test tool"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"query": {"type": "string"}}}

    async def execute(self, **kwargs: Any) -> str:
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._result
