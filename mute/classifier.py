"""Message classification for mute.

Decides whether an inbound message is addressed to the bot as a
command, and where the command text starts. Two forms are accepted:

    !ping               prefix character at position 0
    <@123> ping         mention of the bot at position 0

A message that mentions the bot elsewhere is reported as
BOT_MENTIONED; everything else is NOT_COMMAND. Classification is a
pure function of the message, the bot's user id and the prefix.
"""

import re
from typing import Optional

from .models import Classification, InboundMessage

DEFAULT_PREFIX = "!"

# Discord user mention, plain (<@id>) or nickname (<@!id>) form
_MENTION_RE = re.compile(r"<@!?([0-9]+)>")


def has_char_prefix(content: str, prefix: str = DEFAULT_PREFIX) -> Optional[int]:
    """Return the command offset if content starts with the prefix character."""
    if content and content[0] == prefix:
        return 1
    return None


def has_mention_prefix(content: str, bot_id: int) -> Optional[int]:
    """Return the command offset if content starts with a mention of bot_id.

    The offset points just past the mention token, skipping exactly one
    whitespace separator if one follows it.
    """
    match = _MENTION_RE.match(content)
    if match is None or int(match.group(1)) != bot_id:
        return None
    offset = match.end()
    if offset < len(content) and content[offset].isspace():
        offset += 1
    return offset


def classify(
    message: InboundMessage, bot_id: int, prefix: str = DEFAULT_PREFIX,
) -> Classification:
    """Classify a message relative to the bot identity.

    Args:
        message: The inbound message.
        bot_id: The bot's own user id.
        prefix: The single command prefix character.

    Returns:
        Exactly one Classification. Prefix match takes priority over
        mention match.
    """
    offset = has_char_prefix(message.content, prefix)
    if offset is None:
        offset = has_mention_prefix(message.content, bot_id)
    if offset is not None:
        return Classification.command(offset)
    if bot_id in message.mentioned_user_ids:
        return Classification.bot_mentioned()
    return Classification.not_command()
