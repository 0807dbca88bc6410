"""Tests for command dispatch and failure replies."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mute.classifier import classify
from mute.commands.base import CommandRegistry, command
from mute.config import Config
from mute.dispatcher import Dispatcher, split_command
from mute.exceptions import CommandError
from mute.models import ErrorKind, InboundMessage
from mute.module_base import CommandModule, ModuleContext

BOT_ID = 123
CHANNEL = 100


class RecordingModule(CommandModule):
    """Test module that records every invocation."""

    name = "recording"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.calls = []

    @command("ping")
    async def ping(self, ctx):
        self.calls.append(("ping",))

    @command("weather", remainder=True)
    async def weather(self, ctx, city: str):
        self.calls.append(("weather", city))

    @command("roll")
    async def roll(self, ctx, sides: int):
        self.calls.append(("roll", sides))

    @command("refuse")
    async def refuse(self, ctx):
        raise CommandError("City not found.")

    @command("crash")
    async def crash(self, ctx):
        raise RuntimeError("upstream exploded")

    @command("whoami")
    async def whoami(self, ctx):
        self.calls.append(("whoami", ctx.author_id, ctx.channel_id, ctx.bot_id))


def _make_dispatcher(prefix="!"):
    registry = CommandRegistry()
    module = RecordingModule(
        ModuleContext(module_name="recording", config=Config(settings={}), registry=registry)
    )
    registry.register_module(module)
    registry.freeze()
    return Dispatcher(registry, BOT_ID, prefix=prefix), module


def _make_sink():
    sink = MagicMock()
    sink.send = AsyncMock()
    return sink


def _make_message(content: str, mentions=()) -> InboundMessage:
    return InboundMessage(
        content=content, author_id=42, channel_id=CHANNEL, mentioned_user_ids=frozenset(mentions),
    )


async def _run(content: str, dispatcher=None, module=None, sink=None, mentions=()):
    if dispatcher is None:
        dispatcher, module = _make_dispatcher()
    sink = sink or _make_sink()
    message = _make_message(content, mentions)
    result = classify(message, BOT_ID)
    outcome = await dispatcher.dispatch(message, result.offset, sink)
    return outcome, module, sink


def test_split_command():
    assert split_command("!ping", 1) == ("ping", "")
    assert split_command("<@123> weather  paris france", 7) == ("weather", "paris france")
    assert split_command("<@123>", 6) == ("", "")


@pytest.mark.asyncio
async def test_prefix_command_invokes_handler_once_without_reply():
    outcome, module, sink = await _run("!ping")
    assert outcome.success
    assert outcome.command == "ping"
    assert module.calls == [("ping",)]
    sink.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_mention_command_parses_name_and_arguments():
    outcome, module, sink = await _run("<@123> weather paris", mentions=[BOT_ID])
    assert outcome.success
    assert module.calls == [("weather", "paris")]
    sink.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_mention_followed_by_prefix_skips_prefix():
    outcome, module, _ = await _run("<@123> !ping", mentions=[BOT_ID])
    assert outcome.success
    assert module.calls == [("ping",)]


@pytest.mark.asyncio
async def test_double_prefix_is_tolerated():
    outcome, module, _ = await _run("!!ping")
    assert outcome.success
    assert module.calls == [("ping",)]


@pytest.mark.asyncio
async def test_command_name_is_case_insensitive():
    outcome, module, _ = await _run("!PING")
    assert outcome.success
    assert module.calls == [("ping",)]


@pytest.mark.asyncio
async def test_unknown_command_replies_once():
    outcome, module, sink = await _run("!unknowncmd")
    assert not outcome.success
    assert outcome.error == ErrorKind.UNKNOWN_COMMAND
    assert "unknown command" in outcome.reason.lower()
    assert module.calls == []
    sink.send.assert_awaited_once()
    channel_id, text = sink.send.await_args.args
    assert channel_id == CHANNEL
    assert "unknown command" in text.lower()


@pytest.mark.asyncio
async def test_bare_mention_is_unknown_command():
    outcome, _, sink = await _run("<@123>", mentions=[BOT_ID])
    assert outcome.error == ErrorKind.UNKNOWN_COMMAND
    sink.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_argument_mismatch_replies_reason():
    outcome, module, sink = await _run("!roll many")
    assert outcome.error == ErrorKind.ARGUMENT_MISMATCH
    assert module.calls == []
    sink.send.assert_awaited_once_with(CHANNEL, outcome.reason)


@pytest.mark.asyncio
async def test_missing_argument_replies_reason():
    outcome, _, sink = await _run("!roll")
    assert outcome.error == ErrorKind.ARGUMENT_MISMATCH
    assert "too few" in outcome.reason
    sink.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_handler_command_error_reason_is_replied():
    outcome, _, sink = await _run("!refuse")
    assert outcome.error == ErrorKind.HANDLER_FAILURE
    assert outcome.reason == "City not found."
    sink.send.assert_awaited_once_with(CHANNEL, "City not found.")


@pytest.mark.asyncio
async def test_unexpected_handler_exception_becomes_failure():
    outcome, _, sink = await _run("!crash")
    assert not outcome.success
    assert outcome.error == ErrorKind.HANDLER_FAILURE
    assert "upstream exploded" in outcome.reason
    sink.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_failing_reply_sink_does_not_raise():
    sink = _make_sink()
    sink.send.side_effect = RuntimeError("channel gone")
    outcome, _, _ = await _run("!unknowncmd", sink=sink)
    assert not outcome.success


@pytest.mark.asyncio
async def test_context_exposes_message_and_identity():
    _, module, _ = await _run("!whoami")
    assert module.calls == [("whoami", 42, CHANNEL, BOT_ID)]


@pytest.mark.asyncio
async def test_custom_prefix_skipped_after_mention():
    dispatcher, module = _make_dispatcher(prefix="?")
    message = _make_message("<@123> ?ping", mentions=[BOT_ID])
    result = classify(message, BOT_ID, prefix="?")
    outcome = await dispatcher.dispatch(message, result.offset, _make_sink())
    assert outcome.success
    assert module.calls == [("ping",)]


@pytest.mark.asyncio
async def test_concurrent_dispatches_do_not_block_each_other():
    release = asyncio.Event()
    order = []

    class SlowModule(CommandModule):
        @command("slow")
        async def slow(self, ctx):
            await release.wait()
            order.append("slow")

        @command("fast")
        async def fast(self, ctx):
            order.append("fast")
            release.set()

    registry = CommandRegistry()
    registry.register_module(
        SlowModule(ModuleContext(module_name="slow", config=Config(settings={}), registry=registry))
    )
    registry.freeze()
    dispatcher = Dispatcher(registry, BOT_ID)
    sink = _make_sink()

    slow = asyncio.create_task(dispatcher.dispatch(_make_message("!slow"), 1, sink))
    await asyncio.sleep(0)
    fast = await asyncio.wait_for(dispatcher.dispatch(_make_message("!fast"), 1, sink), 1)
    slow_outcome = await asyncio.wait_for(slow, 1)

    assert fast.success and slow_outcome.success
    assert order == ["fast", "slow"]
