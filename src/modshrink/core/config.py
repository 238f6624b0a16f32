"""Configuration resolver with 4-level priority.

Priority (highest to lowest):
1. CLI arguments
2. Environment variables (MODSHRINK_*)
3. Config files (user > system)
4. Defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from modshrink.archives.types import ArchiveFormat
from modshrink.core.errors import ConfigError

ALLOWED_LOGGING_LEVELS = frozenset({"quiet", "normal", "verbose", "debug"})

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable settings for one run."""

    source: Path
    minify_json: bool = True
    minify_images: bool = True
    minify_tiles: bool = True
    format: ArchiveFormat = ArchiveFormat.ZSTD
    workers: int | None = None


class ConfigResolver:
    """Resolve configuration with strict 4-level priority.

    Example:
        resolver = ConfigResolver(
            cli_args={'format': 'zip'},
            user_config_path=Path('~/.config/modshrink/config.yaml')
        )

        fmt, source = resolver.resolve('format')
        # fmt = 'zip', source = 'cli'
    """

    def __init__(
        self,
        cli_args: dict[str, Any] | None = None,
        user_config_path: Path | None = None,
        system_config_path: Path | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> None:
        """Initialize config resolver.

        Args:
            cli_args: Arguments from CLI (highest priority), dot-notation keys allowed
            user_config_path: Path to user config file
            system_config_path: Path to system config file
            defaults: Default values (lowest priority)
        """
        self.cli_args = cli_args or {}
        self.user_config_path = user_config_path or Path.home() / ".config/modshrink/config.yaml"
        self.system_config_path = system_config_path or Path("/etc/modshrink/config.yaml")
        self.defaults = defaults or self._default_config()

        # Cache loaded configs
        self._user_config: dict[str, Any] | None = None
        self._system_config: dict[str, Any] | None = None

    def resolve(self, key: str) -> tuple[Any, str]:
        """Resolve config value with priority.

        Args:
            key: Config key (supports dot notation: 'logging.level')

        Returns:
            (value, source) tuple

        Raises:
            ConfigError: If key not found in any source
        """
        # 1. CLI (highest priority)
        value = self._from_cli(key)
        if value is not None:
            return value, "cli"

        # 2. Environment
        value = self._from_env(key)
        if value is not None:
            return value, "env"

        # 3. User config
        value = self._from_user_config(key)
        if value is not None:
            return value, "user_config"

        # 4. System config
        value = self._from_system_config(key)
        if value is not None:
            return value, "system_config"

        # 5. Default
        value = self._from_defaults(key)
        if value is not None:
            return value, "default"

        raise ConfigError(f"Config key '{key}' not found in any source")

    def resolve_bool(self, key: str) -> bool:
        value, _src = self.resolve(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            norm = value.strip().lower()
            if norm in _TRUE_STRINGS:
                return True
            if norm in _FALSE_STRINGS:
                return False
        raise ConfigError(f"Config key '{key}' must be a bool, got {value!r}")

    def resolve_int(self, key: str) -> int:
        value, _src = self.resolve(key)
        if isinstance(value, bool):
            raise ConfigError(f"Config key '{key}' must be an int, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        raise ConfigError(f"Config key '{key}' must be an int, got {value!r}")

    def resolve_format(self) -> ArchiveFormat:
        value, _src = self.resolve("format")
        norm = str(value).strip().lower()
        for fmt in ArchiveFormat:
            if fmt.value == norm:
                return fmt
        allowed = ", ".join(f.value for f in ArchiveFormat)
        raise ConfigError(f"Invalid 'format': {value!r}. Allowed values: {allowed}")

    def resolve_logging_level(self) -> str:
        """Resolve and validate logging.level.

        Allowed values (after normalization):
            quiet | normal | verbose | debug

        Raises:
            ConfigError: If the resolved value is invalid.
        """
        key = "logging.level"
        value, _src = self.resolve(key)
        if not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' must be a string, got {type(value).__name__}")

        norm = value.strip().lower()
        if norm not in ALLOWED_LOGGING_LEVELS:
            allowed = ", ".join(sorted(ALLOWED_LOGGING_LEVELS))
            raise ConfigError(f"Invalid '{key}': {value!r}. Allowed values: {allowed}")
        return norm

    def resolve_log_file(self) -> Path | None:
        """Resolve logging.file; an empty value means no log file."""
        key = "logging.file"
        value, _src = self.resolve(key)
        if isinstance(value, Path):
            return value
        if not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' must be a path, got {type(value).__name__}")
        value = value.strip()
        return Path(value).expanduser() if value else None

    def _from_cli(self, key: str) -> Any | None:
        if key in self.cli_args:
            return self.cli_args[key]
        return self._get_nested(self.cli_args, key)

    def _from_env(self, key: str) -> Any | None:
        """Get value from environment variables.

        Environment variable format: MODSHRINK_KEY_NAME
        Example: MODSHRINK_FORMAT, MODSHRINK_MINIFY_WORKERS
        """
        env_key = f"MODSHRINK_{key.upper().replace('.', '_')}"
        return os.environ.get(env_key)

    def _from_user_config(self, key: str) -> Any | None:
        return self._get_nested(self._get_user_config(), key)

    def _from_system_config(self, key: str) -> Any | None:
        return self._get_nested(self._get_system_config(), key)

    def _from_defaults(self, key: str) -> Any | None:
        return self._get_nested(self.defaults, key)

    def _get_user_config(self) -> dict[str, Any]:
        if self._user_config is None:
            self._user_config = self._load_yaml(self.user_config_path)
        return self._user_config

    def _get_system_config(self) -> dict[str, Any]:
        if self._system_config is None:
            self._system_config = self._load_yaml(self.system_config_path)
        return self._system_config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

    def _get_nested(self, data: dict[str, Any], key: str) -> Any | None:
        """Get nested value using dot notation.

        Example:
            data = {'minify': {'json': False}}
            _get_nested(data, 'minify.json') -> False
        """
        current: Any = data

        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None

        return current

    @staticmethod
    def _default_config() -> dict[str, Any]:
        """Default configuration."""
        return {
            "format": ArchiveFormat.ZSTD.value,
            "minify": {
                "json": True,
                "images": True,
                "tiles": True,
                # 0 = one worker per CPU
                "workers": 0,
            },
            "logging": {
                "level": "normal",
                "color": True,
                # empty = no log file
                "file": "",
            },
            "progress": {
                "enabled": True,
            },
        }


def build_pipeline_config(resolver: ConfigResolver, source: Path) -> PipelineConfig:
    """Build the immutable run configuration from resolved settings.

    Args:
        resolver: Config resolver holding CLI, env and file layers
        source: Mod archive or folder to repackage

    Returns:
        PipelineConfig for the run
    """
    workers = resolver.resolve_int("minify.workers")
    if workers < 0:
        raise ConfigError(f"Config key 'minify.workers' must not be negative, got {workers}")

    return PipelineConfig(
        source=source,
        minify_json=resolver.resolve_bool("minify.json"),
        minify_images=resolver.resolve_bool("minify.images"),
        minify_tiles=resolver.resolve_bool("minify.tiles"),
        format=resolver.resolve_format(),
        workers=workers or None,
    )
