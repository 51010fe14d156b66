"""Exception hierarchy shared by every layer of the CLI."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for errors that carry a user-facing message."""


class ConfigError(AgentError):
    """Configuration is missing or invalid."""


class AuthError(AgentError):
    """No credential, an expired credential, or a token with no user behind it."""


class InputValidationError(AgentError):
    """User input rejected at the prompt. Never leaves the prompt boundary."""


class GatewayError(AgentError):
    """Transport or API failure while talking to the hosted model."""


class GenerationError(AgentError):
    """The application generator failed or produced nothing."""


class Cancelled(AgentError):
    """The user aborted an interactive prompt (Ctrl+C / Ctrl+D)."""
