"""Logging setup for mute.

structlog renders events; stdlib logging routes them. Every event lands
on the console, in the combined ``mute.log`` and in the file of the
subsystem that emitted it::

    mute.bot       bot.log        message intake, service loop
    mute.commands  commands.log   registry, dispatch, handler failures
    mute.gateway   gateway.log    Discord connection
    mute.modules   modules.log    module discovery and lifecycle

Bot tokens and API keys are scrubbed from events before rendering.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, NamedTuple

import structlog

SUBSYSTEMS = ("bot", "commands", "gateway", "modules")

LOGGER_PREFIX = "mute"

DEFAULT_LOG_DIR = Path(__file__).parent.parent / "logs"

_REDACTED = "***REDACTED***"

_SECRET_PATTERNS = (
    # Discord bot token: <user id>.<timestamp>.<hmac>
    re.compile(r"[MNO][A-Za-z\d_-]{23,27}\.[A-Za-z\d_-]{6}\.[A-Za-z\d_-]{27,40}"),
    re.compile(r"sk-[a-zA-Z0-9_-]{20,}"),
    # Authorization header values
    re.compile(r"(?:Bearer|Bot)\s+[a-zA-Z0-9_./-]{20,}"),
)


def _scrub(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(_REDACTED, value)
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that redacts tokens and keys.

    Looks at string values and one level into lists, tuples and dicts.
    """
    for key, value in event_dict.items():
        if isinstance(value, (list, tuple)):
            event_dict[key] = type(value)(_scrub(v) for v in value)
        elif isinstance(value, dict):
            event_dict[key] = {k: _scrub(v) for k, v in value.items()}
        else:
            event_dict[key] = _scrub(value)
    return event_dict


class _LogSettings(NamedTuple):
    log_dir: Path
    level: int
    subsystem_levels: Dict[str, int]
    max_bytes: int
    backup_count: int
    final: bool


def _level(name: Any, default: int) -> int:
    if not name:
        return default
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


def _settings_from(config) -> _LogSettings:
    if config is None:
        return _LogSettings(DEFAULT_LOG_DIR, logging.INFO, {}, 10 * 1024 * 1024, 5, False)
    level = _level(config.logging_level, logging.INFO)
    overrides = config.logging_subsystem_levels or {}
    return _LogSettings(
        log_dir=config.log_dir,
        level=level,
        subsystem_levels={s: _level(overrides.get(s), level) for s in SUBSYSTEMS},
        max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
        backup_count=config.logging_backup_count,
        final=True,
    )


def _file_handler(
    path: Path, level: int, settings: _LogSettings, formatter: logging.Formatter,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset(logger: logging.Logger, level: int) -> logging.Logger:
    logger.setLevel(level)
    for handler in logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.close()
    logger.handlers.clear()
    logger.propagate = True
    return logger


def setup_logging(config=None) -> None:
    """Configure console, combined and per-subsystem logging.

    Called twice at startup: once without config so early events have
    somewhere to go, then with the loaded Config. Only the second call
    lets structlog cache its loggers.
    """
    settings = _settings_from(config)

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        to_files = True
    except OSError as exc:
        print(f"mute: log directory {settings.log_dir} unusable ({exc}); "
              "logging to console only", file=sys.stderr)
        to_files = False

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    _reset(logging.getLogger(), logging.DEBUG).addHandler(console)

    logging.getLogger("discord").setLevel(max(settings.level, logging.INFO))

    combined = _reset(logging.getLogger(LOGGER_PREFIX), logging.DEBUG)
    if to_files:
        combined.addHandler(
            _file_handler(settings.log_dir / "mute.log", settings.level, settings, file_formatter)
        )

    for subsystem in SUBSYSTEMS:
        level = settings.subsystem_levels.get(subsystem, settings.level)
        sub_logger = _reset(logging.getLogger(f"{LOGGER_PREFIX}.{subsystem}"), level)
        if to_files:
            sub_logger.addHandler(
                _file_handler(settings.log_dir / f"{subsystem}.log", level, settings, file_formatter)
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.final,
    )
