"""Application generator for agent mode: asks the model for a project and writes it to disk."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field

from cli_ai_agent.ai.client import ModelGateway
from cli_ai_agent.errors import GatewayError, GenerationError
from cli_ai_agent.log import get_logger

logger = get_logger(__name__)

GENERATION_PROMPT = """You are an expert software engineer. Generate a complete, working \
application for the following request.

Request:
{request}

Rules:
- folder_name must be a short kebab-case directory name.
- Every file path is relative to the application folder and uses forward slashes.
- Include every file needed to run the project: source, configuration, \
dependency manifest and a README with usage instructions.
- Write complete file contents. No placeholders or "TODO: implement" stubs.
- setup_commands are the shell commands, in order, to install and run the \
application from inside its folder.
"""

_FOLDER_NAME = re.compile(r"[^a-z0-9._-]+")


class GeneratedFile(BaseModel):
    path: str = Field(description="File path relative to the application folder")
    content: str = Field(description="Complete file content")


class ApplicationPlan(BaseModel):
    """A complete application: folder name, files and setup commands."""

    folder_name: str = Field(description="kebab-case directory name for the application")
    description: str = Field(description="One-paragraph summary of what was generated")
    files: list[GeneratedFile] = Field(description="All files of the application")
    setup_commands: list[str] = Field(
        default_factory=list, description="Commands to install and run the application"
    )


@dataclass
class GenerationResult:
    success: bool
    folder_name: str
    app_dir: Path
    files: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    description: str = ""

    def summary(self) -> str:
        """The assistant message persisted for a successful generation."""
        commands = "\n".join(self.commands) if self.commands else "(none)"
        return (
            f"Generated application: {self.folder_name}\n"
            f"Files created: {len(self.files)}\n"
            f"Location: {self.app_dir}\n\n"
            f"Setup commands:\n{commands}"
        )


def _sanitize_folder_name(name: str) -> str:
    cleaned = _FOLDER_NAME.sub("-", name.strip().lower()).strip("-.")
    if not cleaned:
        raise GenerationError("Generated application has no usable folder name")
    return cleaned


def _safe_relative_path(path: str) -> PurePosixPath:
    relative = PurePosixPath(path.replace("\\", "/"))
    if not path or relative.is_absolute() or ".." in relative.parts:
        raise GenerationError(f"Refusing to write outside the application folder: {path!r}")
    return relative


def write_application(plan: ApplicationPlan, cwd: Path, max_files: int = 100) -> GenerationResult:
    """Write *plan* under ``cwd/<folder_name>``."""
    if not plan.files:
        raise GenerationError("Generated application contains no files")
    if len(plan.files) > max_files:
        raise GenerationError(f"Generated application has {len(plan.files)} files (limit {max_files})")

    folder_name = _sanitize_folder_name(plan.folder_name)
    app_dir = (cwd / folder_name).resolve()
    if app_dir.exists() and any(app_dir.iterdir()):
        raise GenerationError(f"Directory already exists and is not empty: {app_dir}")

    # Validate every path before touching the filesystem
    targets = [(_safe_relative_path(f.path), f.content) for f in plan.files]

    written: list[str] = []
    for relative, content in targets:
        target = app_dir.joinpath(*relative.parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(str(relative))
        logger.debug("file_written", path=str(target))

    logger.info("application_written", app_dir=str(app_dir), file_count=len(written))
    return GenerationResult(
        success=True,
        folder_name=folder_name,
        app_dir=app_dir,
        files=written,
        commands=list(plan.setup_commands),
        description=plan.description,
    )


async def generate_application(
    request: str,
    gateway: ModelGateway,
    cwd: str | Path,
    max_files: int = 100,
    max_tokens: int | None = None,
) -> GenerationResult:
    """Generate an application for *request* inside *cwd*."""
    logger.info("generation_started", cwd=str(cwd), request_length=len(request))
    try:
        plan = await gateway.generate_structured(
            ApplicationPlan,
            GENERATION_PROMPT.format(request=request),
            max_tokens=max_tokens,
        )
    except GatewayError as e:
        raise GenerationError(str(e)) from e

    try:
        return write_application(plan, Path(cwd), max_files=max_files)
    except OSError as e:
        raise GenerationError(f"Failed to write application files: {e}") from e
