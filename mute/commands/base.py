"""Base classes for the command framework.

Defines the abstractions for registering and dispatching bot
commands. Handlers are ``@command``-decorated async methods on
CommandModule subclasses; the CommandRegistry maps command names to
CommandDescriptors built from them by introspection.

Key classes:
    CommandDescriptor: Immutable description of one registered command.
    InvocationContext: Per-dispatch view of the message and reply sink.
    CommandRegistry: Name -> descriptor map with a two-phase lifecycle.

Key functions:
    command: Decorator marking a module method as a command handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

import structlog

from ..exceptions import (
    DuplicateCommandError,
    RegistryError,
    RegistryFrozenError,
    UnknownCommandError,
)
from ..models import InboundMessage
from .arguments import Parameter, bind_arguments, parameters_from_signature

if TYPE_CHECKING:
    from ..module_base import CommandModule

logger = structlog.get_logger("mute.commands")

# Attribute set on decorated functions, read back by CommandModule.get_commands()
COMMAND_ATTR = "__mute_command__"

Handler = Callable[..., Awaitable[None]]


class ReplySink(Protocol):
    """Capability to send a message into a channel."""

    async def send(self, channel_id: int, text: str) -> None:
        ...


@dataclass(frozen=True)
class CommandSpec:
    """Options captured by the @command decorator."""
    name: str
    aliases: Tuple[str, ...] = ()
    summary: str = ""
    remainder: bool = False


def command(
    name: Optional[str] = None,
    *,
    aliases: Sequence[str] = (),
    summary: Optional[str] = None,
    remainder: bool = False,
):
    """Mark an async CommandModule method as a command handler.

    Handler signature: ``async (self, ctx: InvocationContext, *params)``.
    Parameter annotations drive argument coercion. With
    ``remainder=True`` the last parameter receives the rest of the
    argument text unsplit.

    Usage::

        @command("weather", aliases=("w",), remainder=True)
        async def weather(self, ctx, city: str) -> None:
            ...
    """

    def decorator(func):
        doc = (func.__doc__ or "").strip().splitlines()
        spec = CommandSpec(
            name=name or func.__name__,
            aliases=tuple(aliases),
            summary=summary if summary is not None else (doc[0] if doc else ""),
            remainder=remainder,
        )
        setattr(func, COMMAND_ATTR, spec)
        return func

    return decorator


@dataclass(frozen=True)
class CommandDescriptor:
    """A registered command.

    Attributes:
        name: Primary command name.
        parameters: Ordered declared parameters.
        handler: Bound async handler ``(ctx, *args)``.
        aliases: Alternative names resolving to the same command.
        summary: One-line description for help output.
        module: Name of the owning command module.
    """
    name: str
    parameters: Tuple[Parameter, ...]
    handler: Handler = field(compare=False)
    aliases: Tuple[str, ...] = ()
    summary: str = ""
    module: str = ""

    @classmethod
    def from_function(cls, func, handler: Handler, module: str = "") -> "CommandDescriptor":
        """Build a descriptor from a decorated (unbound) function."""
        spec: CommandSpec = getattr(func, COMMAND_ATTR)
        return cls(
            name=spec.name,
            parameters=parameters_from_signature(func, remainder=spec.remainder),
            handler=handler,
            aliases=spec.aliases,
            summary=spec.summary,
            module=module,
        )

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases

    @property
    def usage(self) -> str:
        """Usage string like ``weather <city...>``."""
        parts = [self.name]
        for p in self.parameters:
            label = f"{p.name}..." if p.remainder else p.name
            parts.append(f"<{label}>" if p.required else f"[{label}]")
        return " ".join(parts)


@dataclass
class InvocationContext:
    """Everything a handler needs for one invocation.

    Scoped to a single dispatch; handlers must not keep it.
    """
    message: InboundMessage
    bot_id: int
    reply_sink: ReplySink
    command: Optional[str] = None

    @property
    def author_id(self) -> int:
        return self.message.author_id

    @property
    def channel_id(self) -> int:
        return self.message.channel_id

    async def reply(self, text: str) -> None:
        """Send text to the channel the command came from."""
        await self.reply_sink.send(self.message.channel_id, text)


@dataclass(frozen=True)
class ResolvedCommand:
    """A descriptor paired with arguments coerced for it."""
    descriptor: CommandDescriptor
    arguments: Tuple[Any, ...] = ()

    async def invoke(self, ctx: InvocationContext) -> None:
        await self.descriptor.handler(ctx, *self.arguments)


class CommandRegistry:
    """Maps command names to descriptors.

    Lifecycle: commands are registered at startup, then freeze() is
    called and the registry only serves lookups. Reads after freezing
    need no locking.

    Args:
        case_sensitive: Match command names exactly instead of
            case-insensitively.
    """

    def __init__(self, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive
        self._commands: Dict[str, CommandDescriptor] = {}
        self._descriptors: List[CommandDescriptor] = []
        self._frozen = False

    def _key(self, name: str) -> str:
        return name if self.case_sensitive else name.lower()

    def register(self, descriptor: CommandDescriptor) -> None:
        """Register a descriptor under its name and aliases.

        Raises:
            RegistryFrozenError: If called after freeze().
            RegistryError: If a name is empty or contains whitespace.
            DuplicateCommandError: If any name is already taken.
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{descriptor.name}': registry is frozen",
                command=descriptor.name,
            )
        for n in descriptor.names:
            if not n or any(c.isspace() for c in n):
                raise RegistryError(f"Invalid command name {n!r}", command=descriptor.name)
        keys = [self._key(n) for n in descriptor.names]
        for key in keys:
            existing = self._commands.get(key)
            if existing is not None or keys.count(key) > 1:
                owner = existing.module if existing else descriptor.module
                raise DuplicateCommandError(
                    f"Command name '{key}' is already registered"
                    f" (module '{owner}')",
                    name=key,
                    module_name=descriptor.module,
                )
        for key in keys:
            self._commands[key] = descriptor
        self._descriptors.append(descriptor)
        logger.debug(
            "command_registered",
            command=descriptor.name,
            aliases=list(descriptor.aliases),
            module=descriptor.module,
        )

    def register_module(self, module: "CommandModule") -> int:
        """Register every command of a CommandModule instance.

        Returns:
            Number of commands registered.
        """
        descriptors = module.get_commands()
        for descriptor in descriptors:
            self.register(descriptor)
        return len(descriptors)

    def freeze(self) -> None:
        """End the registration phase."""
        self._frozen = True
        logger.info("registry_frozen", commands=len(self._descriptors))

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[CommandDescriptor]:
        """Look up a descriptor by name or alias."""
        return self._commands.get(self._key(name))

    def resolve(self, name: str, argument_text: str = "") -> ResolvedCommand:
        """Find the command for ``name`` and coerce its arguments.

        Raises:
            UnknownCommandError: No command with that name.
            ArgumentMismatchError: Arguments don't fit the parameters.
        """
        descriptor = self.get(name) if name else None
        if descriptor is None:
            raise UnknownCommandError(command=name)
        arguments = bind_arguments(
            descriptor.parameters, argument_text, command=descriptor.name
        )
        return ResolvedCommand(descriptor=descriptor, arguments=arguments)

    def descriptors(self) -> List[CommandDescriptor]:
        """All registered descriptors in registration order."""
        return list(self._descriptors)

    @property
    def command_names(self) -> frozenset:
        """All registered names, aliases included."""
        return frozenset(self._commands.keys())
