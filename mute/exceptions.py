"""Custom exception hierarchy for mute.

Provides precise error classification for the command pipeline and
startup wiring. Per-message command errors are recovered by the
dispatcher into a failed InvocationOutcome; registry and configuration
errors are fatal and surface before the gateway connects.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"          # Worth retrying (gateway hiccup, upstream timeout)
    PERMANENT = "permanent"          # Not worth retrying (bad input, unknown command)
    INFRASTRUCTURE = "infrastructure"  # Missing config, env issues


class MuteError(Exception):
    """Base exception for all mute errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry/escalation decisions.
        module: Originating module name (e.g. "commands.registry").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        return self.message or self.__class__.__name__

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Command execution exceptions
# ---------------------------------------------------------------------------

class CommandError(MuteError):
    """A command could not be carried out.

    Handlers raise this with a user-facing reason; the dispatcher turns
    it into a failed outcome and replies with ``str(error)``.
    """

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command = command
        super().__init__(
            message, category=category, module=module or "commands", **context
        )


class UnknownCommandError(CommandError):
    """No registered command matches the requested name."""

    def __init__(
        self,
        message: str = "Unknown command.",
        *,
        command: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, command=command, module="commands.registry", **context
        )


class ArgumentMismatchError(CommandError):
    """The argument text does not fit the command's declared parameters.

    Attributes:
        parameter: Name of the offending parameter (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        parameter: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.parameter = parameter
        super().__init__(
            message, command=command, module="commands.arguments", **context
        )


# ---------------------------------------------------------------------------
# Registry exceptions
# ---------------------------------------------------------------------------

class RegistryError(MuteError):
    """Invalid use of the command registry during startup.

    Defaults to INFRASTRUCTURE because these are wiring mistakes that
    no retry will fix.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "commands.registry",
            **context,
        )


class DuplicateCommandError(RegistryError):
    """A command name or alias was registered twice.

    Attributes:
        name: The conflicting name.
    """

    def __init__(self, message: str = "", *, name: Optional[str] = None, **context: Any) -> None:
        self.name = name
        super().__init__(message, **context)


class RegistryFrozenError(RegistryError):
    """register() was called after the registry was frozen."""


# ---------------------------------------------------------------------------
# Startup exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(MuteError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )


class ModuleLoadError(MuteError):
    """A discovered command module could not be imported or instantiated."""

    def __init__(
        self,
        message: str = "",
        *,
        module_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        **context: Any,
    ) -> None:
        self.module_name = module_name
        super().__init__(
            message, category=category, module="module_loader", **context
        )
