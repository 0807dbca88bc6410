"""Discord adapter: bridges discord.Client to MuteBot.

Converts discord.Message events into platform-agnostic InboundMessages
and provides the reply sink the dispatcher uses to answer in the
originating channel.
"""

from typing import Optional

import discord
import structlog

from ..bot import MuteBot
from ..commands.base import CommandRegistry
from ..config import Config
from ..models import InboundMessage
from ..module_loader import ModuleLoader

logger = structlog.get_logger("mute.gateway")

# Discord rejects messages longer than this
MAX_MESSAGE_LENGTH = 2000

# User-authored text messages; joins, pins, boosts etc. are system messages
_USER_MESSAGE_TYPES = frozenset({discord.MessageType.default, discord.MessageType.reply})


def to_inbound(message: discord.Message) -> Optional[InboundMessage]:
    """Convert a Discord message, or None for system/empty messages."""
    if message.type not in _USER_MESSAGE_TYPES:
        return None
    if not message.content:
        return None
    return InboundMessage(
        content=message.content,
        author_id=message.author.id,
        channel_id=message.channel.id,
        mentioned_user_ids=frozenset(user.id for user in message.mentions),
    )


class DiscordReplySink:
    """ReplySink implementation using discord.Client."""

    def __init__(self, client: discord.Client):
        self._client = client

    async def send(self, channel_id: int, text: str) -> None:
        channel = self._client.get_channel(channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(channel_id)
        # Split long messages
        while text:
            await channel.send(text[:MAX_MESSAGE_LENGTH])
            text = text[MAX_MESSAGE_LENGTH:]


class MuteDiscordClient(discord.Client):
    """discord.Client that feeds every user message to a MuteBot.

    Args:
        config: Loaded configuration.
        registry: Frozen command registry.
        loader: Module loader whose modules get start/stop hooks.
    """

    def __init__(
        self,
        config: Config,
        registry: CommandRegistry,
        loader: Optional[ModuleLoader] = None,
        **discord_kwargs,
    ):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents, **discord_kwargs)
        self.config = config
        self.loader = loader
        self.reply_sink = DiscordReplySink(self)
        self.bot = MuteBot(config, registry, self.reply_sink)
        self._modules_started = False

    async def on_ready(self):
        logger.info("gateway_ready", user=str(self.user), user_id=self.user.id)
        self.bot.set_identity(self.user.id)

        if self.config.debug:
            await self.change_presence(activity=discord.Game("Debug Mode"))

        # on_ready fires again after every reconnect
        if self.loader is not None and not self._modules_started:
            self._modules_started = True
            await self.loader.start_all()

    async def on_message(self, message: discord.Message):
        # Ignore own messages
        if not self.user or message.author.id == self.user.id:
            return
        inbound = to_inbound(message)
        if inbound is None:
            return
        self.bot.submit(inbound)

    async def close(self):
        """Stop taking messages, drain in-flight commands, then disconnect."""
        await self.bot.stop()
        if self.loader is not None and self._modules_started:
            await self.loader.stop_all()
            self._modules_started = False
        logger.info("gateway_closing")
        await super().close()
