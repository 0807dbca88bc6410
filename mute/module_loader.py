"""Command module discovery, loading, and lifecycle management.

Built-in modules are the submodules of ``mute.modules``; external
modules live in ``<modules_dir>/<name>/module.py``. Every
CommandModule subclass defined in a discovered Python module is
instantiated and its commands are registered.
"""

import importlib
import importlib.util
import inspect
import pkgutil
import sys
from pathlib import Path
from types import ModuleType
from typing import List

import structlog

from .commands.base import CommandRegistry
from .config import Config
from .exceptions import ModuleLoadError, RegistryError
from .module_base import CommandModule, ModuleContext

logger = structlog.get_logger("mute.modules")

BUILTIN_PACKAGE = "mute.modules"


class ModuleLoader:
    """Discovers command modules and registers their commands.

    Args:
        config: Loaded configuration (module settings, allowlist, dir).
        registry: Registry in its registering phase.
        package: Dotted name of the built-in module package.
    """

    def __init__(self, config: Config, registry: CommandRegistry, package: str = BUILTIN_PACKAGE):
        self.config = config
        self.registry = registry
        self.package = package
        self.modules: List[CommandModule] = []

    def discover_and_load(self) -> None:
        """Load built-in modules, then external ones from modules_dir.

        Raises:
            ModuleLoadError: A built-in module failed to import, or a
                module class could not be instantiated.
            RegistryError: Two modules claim the same command, or a
                handler signature is unusable.
        """
        self._load_package()
        modules_dir = self.config.modules_dir
        if modules_dir is not None:
            self._load_directory(modules_dir)

        logger.info(
            "module_loader_complete",
            modules_loaded=len(self.modules),
            commands=len(self.registry.descriptors()),
        )

    def _is_enabled(self, module_name: str) -> bool:
        module_config = (self.config.settings.get("modules") or {}).get(module_name) or {}
        return not (isinstance(module_config, dict) and module_config.get("enabled") is False)

    def _load_package(self) -> None:
        package = importlib.import_module(self.package)
        for info in pkgutil.iter_modules(package.__path__):
            if info.name.startswith("_"):
                continue
            if not self._is_enabled(info.name):
                logger.info("module_skipped_disabled", module=info.name)
                continue
            try:
                py_module = importlib.import_module(f"{self.package}.{info.name}")
            except Exception as e:
                raise ModuleLoadError(
                    f"Failed to import built-in module '{info.name}': {e}",
                    module_name=info.name,
                ) from e
            self._register(info.name, py_module)

    def _load_directory(self, modules_dir: Path) -> None:
        if not modules_dir.is_dir():
            logger.info("module_loader_no_dir", path=str(modules_dir))
            return

        allowlist = self.config.module_allowlist

        for module_dir in sorted(modules_dir.iterdir()):
            module_file = module_dir / "module.py"
            if not module_dir.is_dir() or not module_file.is_file():
                continue

            module_name = module_dir.name
            if allowlist is not None and module_name not in allowlist:
                logger.warning(
                    "module_blocked_not_in_allowlist",
                    module=module_name,
                    allowlist=allowlist,
                )
                continue
            if not self._is_enabled(module_name):
                logger.info("module_skipped_disabled", module=module_name)
                continue

            try:
                py_module = self._import_file(module_name, module_file)
            except Exception as e:
                logger.error(
                    "module_load_failed",
                    module=module_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            self._register(module_name, py_module)

    @staticmethod
    def _import_file(module_name: str, module_file: Path) -> ModuleType:
        qualified = f"mute_ext_{module_name}.module"
        spec = importlib.util.spec_from_file_location(qualified, module_file)
        py_module = importlib.util.module_from_spec(spec)
        sys.modules[qualified] = py_module
        try:
            spec.loader.exec_module(py_module)
        except BaseException:
            sys.modules.pop(qualified, None)
            raise
        return py_module

    def _register(self, module_name: str, py_module: ModuleType) -> None:
        """Instantiate every CommandModule subclass defined in py_module."""
        classes = [
            attr for _, attr in inspect.getmembers(py_module, inspect.isclass)
            if issubclass(attr, CommandModule)
            and attr is not CommandModule
            and attr.__module__ == py_module.__name__
        ]
        if not classes:
            logger.warning("module_no_class_found", module=module_name)
            return

        for cls in classes:
            ctx = ModuleContext(module_name=module_name, config=self.config, registry=self.registry)
            try:
                instance = cls(ctx)
                count = self.registry.register_module(instance)
            except RegistryError:
                raise
            except Exception as e:
                raise ModuleLoadError(
                    f"Failed to set up module '{module_name}' ({cls.__name__}): {e}",
                    module_name=module_name,
                ) from e
            self.modules.append(instance)
            logger.info(
                "module_loaded",
                module=instance.module_name,
                cls=cls.__name__,
                commands=count,
            )

    async def start_all(self) -> None:
        """Call on_start() on all loaded modules."""
        for module in self.modules:
            try:
                await module.on_start()
                logger.info("module_started", module=module.module_name)
            except Exception as e:
                logger.error("module_start_failed", module=module.module_name, error=str(e))

    async def stop_all(self) -> None:
        """Call on_stop() on all loaded modules (reverse order)."""
        for module in reversed(self.modules):
            try:
                await module.on_stop()
                logger.info("module_stopped", module=module.module_name)
            except Exception as e:
                logger.error("module_stop_failed", module=module.module_name, error=str(e))
