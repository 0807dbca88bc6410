"""Command framework for mute.

Provides the @command decorator, CommandDescriptor, InvocationContext
and the CommandRegistry mapping command names to async handlers.
"""

from .base import (
    CommandDescriptor,
    CommandRegistry,
    InvocationContext,
    ReplySink,
    ResolvedCommand,
    command,
)

__all__ = [
    "CommandDescriptor",
    "CommandRegistry",
    "InvocationContext",
    "ReplySink",
    "ResolvedCommand",
    "command",
]
