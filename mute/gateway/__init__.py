"""Chat gateway adapters for mute."""

from .discord_adapter import DiscordReplySink, MuteDiscordClient, to_inbound

__all__ = ["DiscordReplySink", "MuteDiscordClient", "to_inbound"]
