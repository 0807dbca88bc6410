"""Pydantic models for the message pipeline.

Domain values passed between the gateway adapter, the classifier and
the dispatcher. All models are frozen: a message is created once per
gateway event and never changed by the core.

Models:
    InboundMessage, Classification, InvocationOutcome

Enums:
    ClassificationKind, ErrorKind
"""

from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InboundMessage(BaseModel):
    """A text message received from the chat gateway."""
    model_config = ConfigDict(frozen=True)

    content: str
    author_id: int
    channel_id: int
    mentioned_user_ids: FrozenSet[int] = Field(default_factory=frozenset)


class ClassificationKind(str, Enum):
    """How a message relates to the bot."""
    NOT_COMMAND = "not_command"
    BOT_MENTIONED = "bot_mentioned"
    COMMAND = "command"


class Classification(BaseModel):
    """Result of classifying one message.

    ``offset`` is only set for COMMAND and marks the index in the
    message content where the command text begins.
    """
    model_config = ConfigDict(frozen=True)

    kind: ClassificationKind
    offset: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _offset_matches_kind(self) -> "Classification":
        if (self.kind == ClassificationKind.COMMAND) != (self.offset is not None):
            raise ValueError("offset is required for commands and only for commands")
        return self

    @classmethod
    def not_command(cls) -> "Classification":
        return cls(kind=ClassificationKind.NOT_COMMAND)

    @classmethod
    def bot_mentioned(cls) -> "Classification":
        return cls(kind=ClassificationKind.BOT_MENTIONED)

    @classmethod
    def command(cls, offset: int) -> "Classification":
        return cls(kind=ClassificationKind.COMMAND, offset=offset)

    @property
    def is_command(self) -> bool:
        return self.kind == ClassificationKind.COMMAND


class ErrorKind(str, Enum):
    """Why a dispatch failed."""
    UNKNOWN_COMMAND = "unknown_command"
    ARGUMENT_MISMATCH = "argument_mismatch"
    HANDLER_FAILURE = "handler_failure"


class InvocationOutcome(BaseModel):
    """Success or failure of a single dispatch.

    Failures carry the human-readable reason that is sent back to the
    originating channel.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None
    command: Optional[str] = None

    @classmethod
    def ok(cls, command: Optional[str] = None) -> "InvocationOutcome":
        return cls(success=True, command=command)

    @classmethod
    def failure(
        cls, reason: str, error: ErrorKind, command: Optional[str] = None,
    ) -> "InvocationOutcome":
        return cls(success=False, reason=reason, error=error, command=command)
