"""Message processing service for mute.

Receives InboundMessages from a gateway adapter, classifies each one,
and dispatches commands through the registry. Every message is
processed in its own asyncio task so a slow handler never holds up
other messages.

Key classes:
    MuteBot: Owns the classify -> dispatch pipeline and the set of
        in-flight message tasks.

Key functions:
    log_task_exception: Done-callback that logs failures of
        fire-and-forget tasks.
"""

import asyncio
from typing import AsyncIterator, Optional, Set

import structlog

from .classifier import classify
from .commands.base import CommandRegistry, ReplySink
from .config import Config
from .dispatcher import Dispatcher
from .models import ClassificationKind, InboundMessage, InvocationOutcome

logger = structlog.get_logger("mute.bot")


def log_task_exception(task: asyncio.Task):
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("background_task_failed", error=str(exc), exc_type=type(exc).__name__)


class MuteBot:
    """Command bot core.

    The registry must be frozen before messages arrive. The bot's own
    identity is only known once the gateway has connected, so it is
    supplied through set_identity() rather than the constructor.

    Args:
        config: Loaded configuration.
        registry: Frozen command registry.
        reply_sink: Gateway capability for sending replies.
    """

    def __init__(self, config: Config, registry: CommandRegistry, reply_sink: ReplySink):
        self.config = config
        self.registry = registry
        self.reply_sink = reply_sink
        self.prefix = config.command_prefix
        self.bot_id: Optional[int] = None
        self.running = False
        self._dispatcher: Optional[Dispatcher] = None
        self._tasks: Set[asyncio.Task] = set()

    def set_identity(self, bot_id: int) -> None:
        """Record the bot's user id and start accepting messages."""
        self.bot_id = bot_id
        self._dispatcher = Dispatcher(self.registry, bot_id, prefix=self.prefix)
        self.running = True
        logger.info("bot_identity_set", bot_id=bot_id, prefix=self.prefix)

    @property
    def in_flight(self) -> int:
        """Number of messages currently being processed."""
        return len(self._tasks)

    def submit(self, message: InboundMessage) -> Optional[asyncio.Task]:
        """Schedule processing of one message.

        Returns:
            The processing task, or None if the bot is not accepting
            messages (not connected yet, or stopping).
        """
        if not self.running:
            logger.debug("message_dropped_not_running", channel=message.channel_id)
            return None
        task = asyncio.create_task(self.process_message(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_exception)
        return task

    async def process_message(self, message: InboundMessage) -> Optional[InvocationOutcome]:
        """Classify a message and dispatch it if it is a command.

        Returns:
            The dispatch outcome, or None if the message was not a command.
        """
        if self._dispatcher is None or self.bot_id is None:
            return None

        result = classify(message, self.bot_id, self.prefix)
        if result.kind == ClassificationKind.NOT_COMMAND:
            return None
        if result.kind == ClassificationKind.BOT_MENTIONED:
            logger.info(
                "bot_mentioned",
                channel=message.channel_id,
                author=message.author_id,
                content=message.content[:200],
            )
            return None

        logger.debug(
            "message_routing",
            is_command=True, offset=result.offset, channel=message.channel_id,
        )
        return await self._dispatcher.dispatch(message, result.offset, self.reply_sink)

    async def run(self, events: AsyncIterator[InboundMessage]) -> None:
        """Process an event stream until it ends, then drain in-flight work."""
        try:
            async for message in events:
                self.submit(message)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop accepting messages and wait for in-flight dispatches."""
        self.running = False
        pending = list(self._tasks)
        if pending:
            logger.info("draining_in_flight", count=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("bot_stopped")
