"""Terminal interaction layer: prompts and rendering.

The session loop talks to :class:`Terminal` only, so the concrete rich-based
implementation can be swapped for a scripted one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from cli_ai_agent.errors import Cancelled, InputValidationError


@dataclass(frozen=True, slots=True)
class Choice:
    value: str
    label: str
    hint: str = ""


class LiveText(ABC):
    """Handle for output that is re-rendered as text accumulates."""

    @abstractmethod
    def update(self, text: str) -> None:
        ...


class Terminal(ABC):
    """Blocking request/response interface to the user."""

    @abstractmethod
    async def read_line(self, message: str, placeholder: str = "") -> str:
        """Read one line. Raises Cancelled on interrupt or end of input."""
        ...

    @abstractmethod
    async def select(self, message: str, options: list[Choice]) -> str:
        """Pick exactly one option; returns its value."""
        ...

    @abstractmethod
    async def multiselect(self, message: str, options: list[Choice]) -> list[str]:
        """Pick zero or more options; returns their values."""
        ...

    @abstractmethod
    async def confirm(self, message: str, default: bool = True) -> bool:
        ...

    @abstractmethod
    def panel(self, body: str, title: str | None = None, style: str = "cyan") -> None:
        ...

    @abstractmethod
    def markdown(self, text: str) -> None:
        ...

    @abstractmethod
    def message(self, text: str, style: str = "") -> None:
        ...

    @abstractmethod
    def status(self, text: str) -> AbstractContextManager[object]:
        """Spinner shown while waiting."""
        ...

    @abstractmethod
    def live_markdown(self, title: str) -> AbstractContextManager[LiveText]:
        ...

    def info(self, text: str) -> None:
        self.message(text, "cyan")

    def success(self, text: str) -> None:
        self.message(text, "green")

    def warning(self, text: str) -> None:
        self.message(text, "yellow")

    def error(self, text: str) -> None:
        self.message(text, "bold red")

    async def ask_text(
        self,
        message: str,
        placeholder: str = "",
        validate: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Read a line, re-prompting in place while *validate* rejects it."""
        while True:
            value = await self.read_line(message, placeholder)
            if validate is not None:
                try:
                    validate(value)
                except InputValidationError as e:
                    self.warning(str(e))
                    continue
            return value


class _RichLiveText(LiveText):
    def __init__(self, live: Live):
        self._live = live

    def update(self, text: str) -> None:
        self._live.update(Markdown(text))


class RichTerminal(Terminal):
    """Terminal implementation on top of rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    async def read_line(self, message: str, placeholder: str = "") -> str:
        prompt = f"[bold blue]{message}[/]"
        if placeholder:
            prompt += f" [dim]({placeholder})[/]"
        try:
            return self.console.input(prompt + "\n› ")
        except (KeyboardInterrupt, EOFError):
            raise Cancelled("Input cancelled") from None

    async def select(self, message: str, options: list[Choice]) -> str:
        self._print_options(options)
        choices = [str(i) for i in range(1, len(options) + 1)]
        try:
            picked = Prompt.ask(f"[bold cyan]{message}[/]", choices=choices, console=self.console)
        except (KeyboardInterrupt, EOFError):
            raise Cancelled("Selection cancelled") from None
        return options[int(picked) - 1].value

    async def multiselect(self, message: str, options: list[Choice]) -> list[str]:
        self._print_options(options)
        while True:
            try:
                raw = Prompt.ask(
                    f"[bold cyan]{message}[/] [dim](numbers separated by commas, empty for none)[/]",
                    default="",
                    show_default=False,
                    console=self.console,
                )
            except (KeyboardInterrupt, EOFError):
                raise Cancelled("Selection cancelled") from None
            try:
                indexes = _parse_indexes(raw, len(options))
            except InputValidationError as e:
                self.warning(str(e))
                continue
            return [options[i].value for i in indexes]

    async def confirm(self, message: str, default: bool = True) -> bool:
        try:
            return Confirm.ask(f"[bold cyan]{message}[/]", default=default, console=self.console)
        except (KeyboardInterrupt, EOFError):
            raise Cancelled("Confirmation cancelled") from None

    def panel(self, body: str, title: str | None = None, style: str = "cyan") -> None:
        self.console.print(Panel(body, title=title, border_style=style, padding=(1, 2)))

    def markdown(self, text: str) -> None:
        self.console.print(Markdown(text))

    def message(self, text: str, style: str = "") -> None:
        self.console.print(text, style=style or None, markup=False)

    def status(self, text: str) -> AbstractContextManager[object]:
        return self.console.status(text, spinner="dots")

    @contextmanager
    def live_markdown(self, title: str) -> Iterator[LiveText]:
        self.console.print(f"\n[bold green]{title}[/]")
        self.console.rule(style="dim")
        with Live(Markdown(""), console=self.console, refresh_per_second=12) as live:
            yield _RichLiveText(live)
        self.console.rule(style="dim")

    def _print_options(self, options: list[Choice]) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        for i, option in enumerate(options, 1):
            table.add_row(f"[bold]{i}[/]", option.label, f"[dim]{option.hint}[/]")
        self.console.print(table)


def _parse_indexes(raw: str, count: int) -> list[int]:
    """Parse '1, 3' into sorted zero-based indexes."""
    indexes: set[int] = set()
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= count:
            raise InputValidationError(f"Invalid choice: {part!r}. Pick numbers between 1 and {count}.")
        indexes.add(int(part) - 1)
    return sorted(indexes)
