"""Configuration management for mute.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a typed Config object. Property getters provide safe access with
sensible defaults for the command pipeline, module loading, the
Discord gateway, and logging.

Key classes:
    Config: Central configuration manager.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("mute.bot")

SETTINGS_FILE = "settings.yaml"
DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"


class Config:
    """Central configuration manager for mute.

    Loads settings.yaml and .env from the config directory. Read-only
    after __init__; one instance is built in main() and passed to the
    components that need it.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
        settings: Pre-parsed settings; skips reading settings.yaml.
    """

    def __init__(self, config_dir: Optional[Path] = None, settings: Optional[dict] = None):
        if config_dir is None:
            config_dir = DEFAULT_CONFIG_DIR
        self.config_dir = Path(config_dir)

        # Load environment variables
        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = settings if settings is not None else self._load_yaml(SETTINGS_FILE)

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> "Config":
        """Load config, refusing to start without a settings file.

        Raises:
            ConfigurationError: settings.yaml is missing.
        """
        config_dir = Path(config_dir or DEFAULT_CONFIG_DIR)
        if not (config_dir / SETTINGS_FILE).is_file():
            raise ConfigurationError(
                f"No settings file found at {config_dir / SETTINGS_FILE}",
                setting_name=SETTINGS_FILE,
            )
        return cls(config_dir)

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def validate(self) -> None:
        """Validate critical settings at startup.

        Raises:
            ConfigurationError: Invalid prefix or missing bot token.
        """
        prefix = self.settings.get("command_prefix", "!")
        if not isinstance(prefix, str) or len(prefix) != 1 or prefix.isspace():
            raise ConfigurationError(
                f"command_prefix must be a single non-space character, got {prefix!r}",
                setting_name="command_prefix",
            )
        if not self.discord_token:
            raise ConfigurationError(
                "No bot token: set DISCORD_TOKEN or auth.token in settings.yaml",
                setting_name="auth.token",
            )
        allowlist = self.settings.get("module_allowlist")
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("module_allowlist_invalid_type", type=type(allowlist).__name__)

    # --- Command pipeline ---

    @property
    def command_prefix(self) -> str:
        """Single character that marks a command (default ``!``)."""
        return self.settings.get("command_prefix", "!")

    @property
    def case_sensitive_commands(self) -> bool:
        """Match command names case-sensitively (default False)."""
        return bool(self.settings.get("case_sensitive_commands", False))

    # --- Gateway ---

    @property
    def discord_token(self) -> str:
        """Discord bot token. Env var DISCORD_TOKEN takes precedence."""
        auth = self.settings.get("auth") or {}
        return os.environ.get("DISCORD_TOKEN") or auth.get("token", "")

    @property
    def debug(self) -> bool:
        """Debug mode: advertise "Debug Mode" as the bot's presence."""
        return bool(self.settings.get("debug", False))

    # --- Modules ---

    @property
    def modules_dir(self) -> Optional[Path]:
        """Directory of external command modules (optional)."""
        configured = self.settings.get("modules_dir")
        if configured:
            return Path(configured).expanduser()
        return None

    @property
    def module_allowlist(self) -> Optional[List[str]]:
        """If set, only external modules named here are loaded."""
        allowlist = self.settings.get("module_allowlist")
        if allowlist is None or not isinstance(allowlist, list):
            return None
        return allowlist

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"gateway": "DEBUG"}."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("subsystem_levels") or {}

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging") or {}
        return log_config.get("backup_count", 5)
