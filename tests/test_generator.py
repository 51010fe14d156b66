"""Tests for agent-mode application generation."""

import pytest

from cli_ai_agent.agent.generator import (
    ApplicationPlan,
    GeneratedFile,
    generate_application,
    write_application,
)
from cli_ai_agent.errors import GatewayError, GenerationError


def _plan(files=None, folder_name="Todo App", commands=None) -> ApplicationPlan:
    return ApplicationPlan(
        folder_name=folder_name,
        description="A small todo app",
        files=files
        if files is not None
        else [
            GeneratedFile(path="README.md", content="# Todo\n"),
            GeneratedFile(path="src/app.py", content="print('todo')\n"),
        ],
        setup_commands=commands if commands is not None else ["pip install -r requirements.txt"],
    )


def test_write_application(tmp_path):
    result = write_application(_plan(), tmp_path)

    assert result.success
    assert result.folder_name == "todo-app"
    assert result.app_dir == (tmp_path / "todo-app").resolve()
    assert (tmp_path / "todo-app" / "src" / "app.py").read_text() == "print('todo')\n"
    assert result.files == ["README.md", "src/app.py"]


def test_summary(tmp_path):
    result = write_application(_plan(), tmp_path)
    summary = result.summary()
    assert summary.startswith("Generated application: todo-app\nFiles created: 2\n")
    assert f"Location: {result.app_dir}" in summary
    assert summary.endswith("Setup commands:\npip install -r requirements.txt")


@pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "src/../../escape.txt"])
def test_rejects_paths_outside_folder(tmp_path, path):
    plan = _plan(files=[GeneratedFile(path="ok.txt", content="ok"), GeneratedFile(path=path, content="x")])
    with pytest.raises(GenerationError):
        write_application(plan, tmp_path)
    assert not (tmp_path / "todo-app" / "ok.txt").exists()


def test_rejects_non_empty_existing_directory(tmp_path):
    existing = tmp_path / "todo-app"
    existing.mkdir()
    (existing / "keep.txt").write_text("mine")

    with pytest.raises(GenerationError, match="not empty"):
        write_application(_plan(), tmp_path)
    assert (existing / "keep.txt").read_text() == "mine"


def test_rejects_empty_plan(tmp_path):
    with pytest.raises(GenerationError):
        write_application(_plan(files=[]), tmp_path)


def test_rejects_too_many_files(tmp_path):
    files = [GeneratedFile(path=f"f{i}.txt", content="") for i in range(3)]
    with pytest.raises(GenerationError):
        write_application(_plan(files=files), tmp_path, max_files=2)


def test_rejects_unusable_folder_name(tmp_path):
    with pytest.raises(GenerationError):
        write_application(_plan(folder_name="../.."), tmp_path)


async def test_generate_application(tmp_path, gateway):
    gateway.structured_result = _plan()

    result = await generate_application("Build a todo app please", gateway, tmp_path)

    assert result.success
    schema, prompt = gateway.structured_calls[0]
    assert schema is ApplicationPlan
    assert "Build a todo app please" in prompt


async def test_generate_application_gateway_error(tmp_path, gateway):
    gateway.structured_result = GatewayError("rate limited")
    with pytest.raises(GenerationError, match="rate limited"):
        await generate_application("Build a todo app please", gateway, tmp_path)
