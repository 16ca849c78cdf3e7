"""Configuration loader for redisops."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from redisops.errors import ConfigurationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "host",
        "port",
        "database",
        "user",
        "password",
        "ssl",
        "socket_timeout",
        "operation",
        "parameters",
        "input",
        "output",
        "continue_on_fail",
        "verbose",
        "log_file",
        "manifest_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        parameters = parsed.get("parameters")
        if parameters is not None and not isinstance(parameters, dict):
            raise ConfigurationError("`parameters` must be a mapping of parameter names to values.")

        self._check_connection_settings(parsed)
        return parsed

    def _check_connection_settings(self, parsed: Dict[str, Any]):
        for key in ("port", "database"):
            value = parsed.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigurationError(f"`{key}` must be an integer, got {value!r}.")

        port = parsed.get("port")
        if port is not None and not 0 < port < 65536:
            raise ConfigurationError(f"`port` must be between 1 and 65535, got {port}.")
        database = parsed.get("database")
        if database is not None and database < 0:
            raise ConfigurationError(f"`database` must not be negative, got {database}.")

        for key in ("ssl", "continue_on_fail", "verbose"):
            value = parsed.get(key)
            if value is not None and not isinstance(value, bool):
                raise ConfigurationError(f"`{key}` must be true or false, got {value!r}.")

        timeout = parsed.get("socket_timeout")
        if timeout is None:
            return
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError(
                f"`socket_timeout` must be a positive number of seconds, got {timeout!r}."
            )
