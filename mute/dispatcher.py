"""Command dispatch for mute.

Takes a message already classified as a command, resolves the named
command in the registry, invokes its handler, and reports failures
back to the originating channel. Every per-message error is recovered
into a failed InvocationOutcome; dispatch never raises.
"""

from typing import Tuple

import structlog

from .classifier import DEFAULT_PREFIX
from .commands.base import CommandRegistry, InvocationContext, ReplySink
from .exceptions import ArgumentMismatchError, CommandError, UnknownCommandError
from .models import ErrorKind, InboundMessage, InvocationOutcome

logger = structlog.get_logger("mute.commands")


def split_command(content: str, offset: int) -> Tuple[str, str]:
    """Split content at offset into (command name, raw argument text)."""
    parts = content[offset:].lstrip().split(maxsplit=1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class Dispatcher:
    """Routes command messages to registered handlers.

    Args:
        registry: Frozen command registry.
        bot_id: The bot's own user id, exposed to handlers.
        prefix: Command prefix character.
    """

    def __init__(self, registry: CommandRegistry, bot_id: int, prefix: str = DEFAULT_PREFIX):
        self.registry = registry
        self.bot_id = bot_id
        self.prefix = prefix

    async def dispatch(
        self, message: InboundMessage, offset: int, reply_sink: ReplySink,
    ) -> InvocationOutcome:
        """Run the command starting at ``offset`` in the message.

        Args:
            message: The inbound message.
            offset: Index where command text begins, from the classifier.
            reply_sink: Where failure reasons are sent.

        Returns:
            Success, or Failure with the reason that was replied.
        """
        ctx = InvocationContext(message=message, bot_id=self.bot_id, reply_sink=reply_sink)
        content = message.content

        # A mention-prefixed command may still carry the prefix character ("@bot !ping")
        if offset < len(content) and content[offset] == self.prefix:
            offset += 1

        name, argument_text = split_command(content, offset)
        ctx.command = name
        outcome = await self._execute(ctx, name, argument_text)

        if not outcome.success:
            await self._reply_failure(ctx, outcome)
        return outcome

    async def _execute(
        self, ctx: InvocationContext, name: str, argument_text: str,
    ) -> InvocationOutcome:
        try:
            resolved = self.registry.resolve(name, argument_text)
        except UnknownCommandError as e:
            logger.info("unknown_command", command=name, channel=ctx.channel_id)
            return InvocationOutcome.failure(str(e), ErrorKind.UNKNOWN_COMMAND, command=name)
        except ArgumentMismatchError as e:
            logger.info(
                "argument_mismatch",
                command=name, parameter=e.parameter, reason=str(e),
            )
            return InvocationOutcome.failure(str(e), ErrorKind.ARGUMENT_MISMATCH, command=name)

        command_name = resolved.descriptor.name
        logger.info(
            "command_dispatched",
            command=command_name,
            module=resolved.descriptor.module,
            author=ctx.author_id,
            channel=ctx.channel_id,
        )
        try:
            await resolved.invoke(ctx)
        except CommandError as e:
            logger.info("command_failed", command=command_name, reason=str(e))
            return InvocationOutcome.failure(
                str(e), ErrorKind.HANDLER_FAILURE, command=command_name
            )
        except Exception as e:
            logger.exception(
                "command_error",
                command=command_name, error=str(e), error_type=type(e).__name__,
            )
            return InvocationOutcome.failure(
                f"Command failed: {e}" if str(e) else f"Command failed: {type(e).__name__}",
                ErrorKind.HANDLER_FAILURE,
                command=command_name,
            )
        return InvocationOutcome.ok(command=command_name)

    async def _reply_failure(self, ctx: InvocationContext, outcome: InvocationOutcome) -> None:
        try:
            await ctx.reply(outcome.reason or "Command failed.")
        except Exception as e:
            logger.error(
                "failure_reply_error",
                command=outcome.command, channel=ctx.channel_id, error=str(e),
            )
