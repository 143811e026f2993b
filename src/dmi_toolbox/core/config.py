"""ConfigManager — global and per-tool defaults backed by TOML files."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dmi_toolbox.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "DMI_TOOLBOX_CONFIG_DIR"

_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "dmi-toolbox"


def default_config_dir() -> Path:
    """Return the configuration directory, honouring ``$DMI_TOOLBOX_CONFIG_DIR``."""
    value = os.environ.get(CONFIG_DIR_ENV)
    return Path(value) if value else _DEFAULT_CONFIG_DIR


class ConfigManager:
    """Layered configuration: per-tool TOML values override global ones.

    Layout of the configuration directory::

        config.toml              global defaults
        tools/<tool_name>.toml   overrides for a single tool

    Args:
        config_dir: Root directory for configuration files.
                    Defaults to ``default_config_dir()``.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self._config_dir = config_dir or default_config_dir()
        self._global: dict[str, Any] = {}
        self._per_tool: dict[str, dict[str, Any]] = {}

    @property
    def config_dir(self) -> Path:
        """Return the configuration directory path."""
        return self._config_dir

    def load(self) -> None:
        """Load global and per-tool config from ``config_dir``.

        Missing files are silently skipped.

        Raises:
            ValidationError: If a TOML file exists but cannot be parsed.
        """
        global_file = self._config_dir / "config.toml"
        if global_file.is_file():
            self._global = self._read_toml(global_file)
            logger.info("Loaded global config from %s", global_file)

        tools_dir = self._config_dir / "tools"
        if tools_dir.is_dir():
            for toml_file in sorted(tools_dir.glob("*.toml")):
                tool_name = toml_file.stem
                self._per_tool[tool_name] = self._read_toml(toml_file)
                logger.info("Loaded config for tool '%s'", tool_name)

    def get(self, key: str, *, tool: str | None = None, default: Any = None) -> Any:
        """Retrieve a config value with optional tool-level override.

        Args:
            key: The configuration key.
            tool: If given, check the tool-specific config first.
            default: Fallback value when the key is not found.

        Returns:
            The configuration value, or *default*.
        """
        if tool and tool in self._per_tool:
            value = self._per_tool[tool].get(key)
            if value is not None:
                return value
        return self._global.get(key, default)

    @staticmethod
    def _read_toml(path: Path) -> dict[str, Any]:
        try:
            return tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in config file '{path}': {exc}"
            raise ValidationError(msg) from exc
