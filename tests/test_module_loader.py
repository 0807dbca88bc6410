"""Tests for command module discovery and allowlist."""

from unittest.mock import AsyncMock

import pytest

from mute.commands.base import CommandRegistry
from mute.config import Config
from mute.exceptions import DuplicateCommandError, ModuleLoadError, RegistryError
from mute.module_loader import ModuleLoader

WEATHER_MODULE = (
    "from mute.commands import command\n"
    "from mute.module_base import CommandModule\n"
    "class WeatherModule(CommandModule):\n"
    "    name = 'weather'\n"
    "    @command('weather', remainder=True)\n"
    "    async def weather(self, ctx, city: str):\n"
    "        await ctx.reply(city)\n"
)


def _make_loader(settings=None, modules_dir=None):
    """Create a ModuleLoader with test defaults."""
    settings = dict(settings or {})
    if modules_dir is not None:
        settings["modules_dir"] = str(modules_dir)
    config = Config(settings=settings)
    return ModuleLoader(config, CommandRegistry())


def _write_module(root, name, source=WEATHER_MODULE):
    module_dir = root / name
    module_dir.mkdir()
    (module_dir / "module.py").write_text(source)
    return module_dir


def test_builtin_general_module_is_loaded():
    loader = _make_loader()
    loader.discover_and_load()
    assert {"ping", "help"} <= loader.registry.command_names
    assert [m.module_name for m in loader.modules] == ["general"]


def test_disabled_builtin_module_is_skipped():
    loader = _make_loader({"modules": {"general": {"enabled": False}}})
    loader.discover_and_load()
    assert loader.modules == []
    assert loader.registry.get("ping") is None


def test_external_module_loaded(tmp_path):
    _write_module(tmp_path, "weather")
    loader = _make_loader(modules_dir=tmp_path)
    loader.discover_and_load()
    assert loader.registry.get("weather").module == "weather"


def test_module_allowlist_blocks_unlisted_module(tmp_path):
    """Modules not in allowlist should be skipped."""
    _write_module(tmp_path, "evil_module", "raise RuntimeError('must not import')\n")
    loader = _make_loader({"module_allowlist": ["weather"]}, modules_dir=tmp_path)
    loader.discover_and_load()
    assert [m.module_name for m in loader.modules] == ["general"]


def test_module_allowlist_allows_listed_module(tmp_path):
    _write_module(tmp_path, "weather")
    loader = _make_loader({"module_allowlist": ["weather"]}, modules_dir=tmp_path)
    loader.discover_and_load()
    assert loader.registry.get("weather") is not None


def test_disabled_external_module_is_skipped(tmp_path):
    _write_module(tmp_path, "weather")
    loader = _make_loader({"modules": {"weather": {"enabled": False}}}, modules_dir=tmp_path)
    loader.discover_and_load()
    assert loader.registry.get("weather") is None


def test_broken_external_module_is_logged_and_skipped(tmp_path):
    _write_module(tmp_path, "broken", "this is not python\n")
    loader = _make_loader(modules_dir=tmp_path)
    loader.discover_and_load()
    assert [m.module_name for m in loader.modules] == ["general"]


def test_module_without_class_is_ignored(tmp_path):
    _write_module(tmp_path, "empty", "X = 1\n")
    loader = _make_loader(modules_dir=tmp_path)
    loader.discover_and_load()
    assert len(loader.modules) == 1


def test_missing_modules_dir_is_not_an_error(tmp_path):
    loader = _make_loader(modules_dir=tmp_path / "nope")
    loader.discover_and_load()
    assert len(loader.modules) == 1


def test_duplicate_command_across_modules_is_fatal(tmp_path):
    _write_module(
        tmp_path,
        "clash",
        "from mute.commands import command\n"
        "from mute.module_base import CommandModule\n"
        "class ClashModule(CommandModule):\n"
        "    @command('PING')\n"
        "    async def ping(self, ctx):\n"
        "        pass\n",
    )
    loader = _make_loader(modules_dir=tmp_path)
    with pytest.raises(DuplicateCommandError):
        loader.discover_and_load()


def test_module_constructor_failure_is_module_load_error(tmp_path):
    _write_module(
        tmp_path,
        "flaky",
        "from mute.module_base import CommandModule\n"
        "class FlakyModule(CommandModule):\n"
        "    def __init__(self, ctx):\n"
        "        raise RuntimeError('no api key')\n",
    )
    loader = _make_loader(modules_dir=tmp_path)
    with pytest.raises(ModuleLoadError, match="no api key") as exc_info:
        loader.discover_and_load()
    assert exc_info.value.module_name == "flaky"


def test_varargs_handler_is_registry_error(tmp_path):
    _write_module(
        tmp_path,
        "dice",
        "from mute.commands import command\n"
        "from mute.module_base import CommandModule\n"
        "class DiceModule(CommandModule):\n"
        "    @command('roll')\n"
        "    async def roll(self, ctx, *dice):\n"
        "        pass\n",
    )
    loader = _make_loader(modules_dir=tmp_path)
    with pytest.raises(RegistryError, match="not supported"):
        loader.discover_and_load()


def test_empty_modules_section_is_tolerated():
    loader = _make_loader({"modules": None})
    loader.discover_and_load()
    assert loader.registry.get("ping") is not None


def test_empty_module_entry_is_tolerated(tmp_path):
    _write_module(tmp_path, "weather")
    loader = _make_loader({"modules": {"weather": None}}, modules_dir=tmp_path)
    loader.discover_and_load()
    weather = [m for m in loader.modules if m.module_name == "weather"][0]
    assert weather.ctx.get_config("units", "metric") == "metric"


def test_module_settings_are_scoped(tmp_path):
    _write_module(
        tmp_path,
        "weather",
        WEATHER_MODULE + "    def units(self):\n        return self.ctx.get_config('units', 'metric')\n",
    )
    loader = _make_loader(
        {"modules": {"weather": {"units": "imperial"}, "general": {"secret": "x"}}},
        modules_dir=tmp_path,
    )
    loader.discover_and_load()
    weather = [m for m in loader.modules if m.module_name == "weather"][0]
    assert weather.units() == "imperial"
    assert weather.ctx.get_config("secret") is None


@pytest.mark.asyncio
async def test_start_and_stop_hooks_survive_failures():
    loader = _make_loader()
    loader.discover_and_load()
    module = loader.modules[0]
    module.on_start = AsyncMock(side_effect=RuntimeError("boom"))
    module.on_stop = AsyncMock()
    await loader.start_all()
    await loader.stop_all()
    module.on_start.assert_awaited_once()
    module.on_stop.assert_awaited_once()
