"""Settings for the whirlpool monitor.

``config/settings.yaml`` holds the shipped defaults and the pool registry. A
git-ignored ``settings.local.yaml`` beside it is merged on top, and string
values of the form ``${VAR}`` or ``${VAR:default}`` are read from the
environment (after loading any ``.env`` file).
"""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"
_ENV_REF = re.compile(r"^\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}$")
_EMBEDDED_ENV_REF = re.compile(r"\$\{[^}]+\}")
_TRUE_STRINGS = frozenset({"true", "yes", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "0", "off", ""})


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open() as f:
        return cast("dict[str, Any]", yaml.safe_load(f) or {})


def _merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, recursing into nested sections."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(cast("dict[str, Any]", current), cast("dict[str, Any]", value))
        else:
            base[key] = value


def _resolve_env(value: Any) -> Any:
    """Replace ``${VAR}`` / ``${VAR:default}`` strings throughout a settings tree.

    Raises:
        ConfigError: If a variable is unset without a default, or a reference
            is embedded inside a longer string.

    """
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in cast("dict[str, Any]", value).items()}
    if isinstance(value, list):
        return [_resolve_env(item) for item in cast("list[Any]", value)]
    if not isinstance(value, str):
        return value

    match = _ENV_REF.match(value)
    if match:
        resolved = os.getenv(match["name"], match["default"])
        if resolved is None:
            msg = f"Required environment variable ${{{match['name']}}} is not set and has no default"
            raise ConfigError(msg)
        return resolved
    if _EMBEDDED_ENV_REF.search(value):
        msg = f"Unresolved environment variable reference in: {value}"
        raise ConfigError(msg)
    return value


class ConfigLoader:
    """Merged, environment-resolved view of the monitor's settings files.

    Args:
        config_dir: Directory holding ``settings.yaml`` and an optional
            ``settings.local.yaml``. Defaults to the packaged ``config/``.

    Raises:
        ConfigError: If an environment reference cannot be resolved.

    """

    def __init__(self, config_dir: Path | None = None) -> None:
        """Load ``.env``, both settings files, and resolve env references."""
        load_dotenv()
        self.config_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
        settings = _read_yaml(self.config_dir / "settings.yaml")
        _merge(settings, _read_yaml(self.config_dir / "settings.local.yaml"))
        self._settings: dict[str, Any] = _resolve_env(settings)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``collection.batch_size``.

        Returns ``default`` when any segment is missing or null.
        """
        node: Any = self._settings
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = cast("dict[str, Any]", node).get(part)
            if node is None:
                return default
        return node

    def get_int(self, key: str, default: int) -> int:
        """Get a value coerced to ``int``.

        Values substituted from environment variables arrive as strings, so
        every typed accessor parses before returning.

        Raises:
            ConfigError: If the value cannot be parsed.

        """
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            msg = f"{key} must be an integer, got {value!r}"
            raise ConfigError(msg) from exc

    def get_float(self, key: str, default: float) -> float:
        """Get a value coerced to ``float``.

        Raises:
            ConfigError: If the value cannot be parsed.

        """
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            msg = f"{key} must be a number, got {value!r}"
            raise ConfigError(msg) from exc

    def get_bool(self, key: str, default: bool) -> bool:  # noqa: FBT001
        """Get a value coerced to ``bool``.

        Accept YAML booleans and the strings ``true/false``, ``yes/no``,
        ``on/off`` and ``1/0`` (case-insensitive).

        Raises:
            ConfigError: If the value is not a recognised boolean.

        """
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        msg = f"{key} must be a boolean, got {value!r}"
        raise ConfigError(msg)

    def get_section(self, name: str) -> dict[str, Any]:
        """Get a top-level section such as ``pools``; absent sections are empty.

        Raises:
            ConfigError: If the section exists but is not a mapping.

        """
        result: Any = self.get(name, {})
        if isinstance(result, dict):
            return cast("dict[str, Any]", result)
        msg = f"{name} config must be a dict, got {type(result).__name__}"
        raise ConfigError(msg)


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the process-wide ``ConfigLoader``, loading it on first use."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
