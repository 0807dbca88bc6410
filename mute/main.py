"""Main entry point for mute.

Initializes logging in two phases (defaults then config-driven),
loads command modules into a frozen registry, connects the Discord
client, and runs until the connection ends or SIGTERM/SIGINT arrives.

Key functions:
    build_registry: Discover modules and freeze the command registry.
    main: Async entry point.
    run: Synchronous wrapper that calls asyncio.run(main()).
"""

import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Tuple

import structlog

from . import __version__
from .commands.base import CommandRegistry
from .config import Config
from .exceptions import ConfigurationError, ModuleLoadError, RegistryError
from .logging_config import setup_logging
from .module_loader import ModuleLoader


def build_registry(config: Config) -> Tuple[CommandRegistry, ModuleLoader]:
    """Discover all command modules and freeze the registry.

    Raises:
        RegistryError: Duplicate or invalid command names.
        ModuleLoadError: A built-in module failed to import.
    """
    logger = structlog.get_logger("mute.modules")
    registry = CommandRegistry(case_sensitive=config.case_sensitive_commands)
    loader = ModuleLoader(config, registry)
    loader.discover_and_load()
    registry.freeze()

    logger.info("modules_loaded", count=len(loader.modules))
    for module in loader.modules:
        logger.info("module_ready", module=module.module_name, cls=type(module).__name__)
    return registry, loader


async def main(config_dir: Optional[Path] = None):
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("mute")

    logger.info("mute_starting", version=__version__)

    if config_dir is None and os.environ.get("MUTE_CONFIG_DIR"):
        config_dir = Path(os.environ["MUTE_CONFIG_DIR"])

    try:
        config = Config.load(config_dir)
        config.validate()
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e), setting=e.setting_name)
        raise SystemExit(1)

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    try:
        registry, loader = build_registry(config)
    except (RegistryError, ModuleLoadError) as e:
        logger.error("startup_registry_error", error=str(e), error_type=type(e).__name__)
        raise SystemExit(1)

    # Import here so discord.py's own logging setup happens after ours
    from .gateway import MuteDiscordClient

    client = MuteDiscordClient(config, registry, loader)

    # Setup graceful shutdown
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported.
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    client_task = asyncio.create_task(client.start(config.discord_token))
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    try:
        done, _ = await asyncio.wait(
            {client_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if client_task in done:
            # Raises LoginFailure etc. if the gateway connection failed
            client_task.result()
    except Exception as e:
        logger.error("bot_error", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        if not client.is_closed():
            await client.close()
        for task in (client_task, shutdown_task):
            if not task.done():
                task.cancel()
        logger.info("mute_stopped")


def run():
    """Synchronous entry point for the ``mute`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
