"""Command module base class and context for mute extensibility."""

import os
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

from .commands.base import COMMAND_ATTR, CommandDescriptor

if TYPE_CHECKING:
    from .commands.base import CommandRegistry
    from .config import Config


class ModuleContext:
    """Interface exposed to command modules.

    Modules receive this in their constructor. They should never
    import the bot or gateway directly.
    """

    def __init__(
        self,
        module_name: str,
        config: "Config",
        registry: "CommandRegistry",
    ):
        self.module_name = module_name
        self.prefix = config.command_prefix
        # Only expose the module's own config section, not full settings
        section = (config.settings.get("modules") or {}).get(module_name) or {}
        self._module_settings: Dict[str, Any] = section if isinstance(section, dict) else {}
        self.registry = registry
        self.logger = structlog.get_logger("mute.modules").bind(module=module_name)

    def get_config(self, key: str, default: Any = None) -> Any:
        """Read a value from modules.<module_name>.<key> in settings.yaml."""
        return self._module_settings.get(key, default)

    def get_env(self, key: str) -> Optional[str]:
        """Read an environment variable."""
        return os.environ.get(key)

    @property
    def enabled(self) -> bool:
        """Whether this module is enabled in config (default True)."""
        return self._module_settings.get("enabled", True)


class CommandModule:
    """Base class for all command modules.

    Subclass this and decorate async methods with ``@command``. Built-in
    modules live in ``mute/modules/``; external ones in
    ``<modules_dir>/<name>/module.py``.
    """

    name: str = ""
    description: str = ""

    def __init__(self, ctx: ModuleContext):
        self.ctx = ctx

    @property
    def module_name(self) -> str:
        return self.name or self.ctx.module_name

    def get_commands(self) -> List[CommandDescriptor]:
        """Build descriptors for every @command method, in definition order.

        Subclass overrides replace the base method of the same name.
        """
        functions: Dict[str, Any] = {}
        for klass in reversed(type(self).__mro__):
            for attr_name, attr in vars(klass).items():
                if callable(attr) and hasattr(attr, COMMAND_ATTR):
                    functions[attr_name] = attr
                elif attr_name in functions:
                    del functions[attr_name]
        return [
            CommandDescriptor.from_function(
                func, getattr(self, attr_name), module=self.module_name
            )
            for attr_name, func in functions.items()
        ]

    async def on_start(self) -> None:
        """Called after the gateway connects."""
        pass

    async def on_stop(self) -> None:
        """Called during shutdown. Clean up resources."""
        pass
