"""Spock - Configuration Manager for DMStore.

Spock manages configuration from JSON files, dicts and environment
variables, providing a unified interface for accessing settings.

Configuration hierarchy:
- dmstore: Core settings
  - backend: "memory" or "exist"
  - url, collection, username, password, timeout: eXist REST settings
  - wrapper: Document wrapper element name
  - bootstrap: Create missing documents at startup
  - verify: Check every document shape at startup
- kinds: Entity kind definitions, keyed by kind id
  - <kind_id>: document, entities_root, tag, fields, unique, enabled, wrapper

Environment variables follow the naming convention:
DMSTORE__<section>__<key> for nested values
Example: DMSTORE__DMSTORE__BACKEND="exist"
         DMSTORE__KINDS__USERS__DOCUMENT="People.xml"
"""

import json
import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class Spock:
    """Configuration manager for DMStore instances.

    Each DMStore instance has its own Spock instance to maintain
    isolated configuration state.

    Famous quote from Spock in Star Trek:
    "Logic is the beginning of wisdom, not the end."
    """

    ENV_PREFIX = "DMSTORE"
    ENV_SEPARATOR = "__"
    SECTIONS = ("dmstore", "kinds")

    def __init__(self, config_path: str | None = None):
        """Initialize Spock configuration manager.

        Args:
            config_path: Path to JSON configuration file. If None, only
                        environment variables will be used.
        """
        self._config_path = config_path
        self._config = self.default_config()
        self._loaded = False
        logger.debug("Spock instance created with config_path=%s", config_path)

    @staticmethod
    def default_config() -> dict[str, Any]:
        """Return a new default config dict each time."""
        return {"dmstore": {}, "kinds": {}}

    def load(self, config: dict[str, Any] | None = None) -> None:
        """Load configuration from JSON file, environment variables, or provided config.

        Args:
            config: Optional config dict merged over the JSON file.

        Priority (highest to lowest):
        1. Environment variables
        2. Provided config (if any)
        3. JSON file
        4. Default values
        """
        if self._loaded:
            logger.debug("Configuration already loaded, skipping reload")
            return

        self._config = self.default_config()

        if self._config_path:
            self._load_from_json()

        if config is not None:
            self._merge_sections(config, source="dict")

        self._load_from_env()

        self._loaded = True
        logger.info("Configuration loaded successfully")
        logger.debug(
            "Final config structure: dmstore keys=%s, kinds=%s",
            list(self._config.get("dmstore", {}).keys()),
            list(self._config.get("kinds", {}).keys()),
        )

    def _load_from_json(self) -> None:
        """Load configuration from JSON file."""
        try:
            config_file = Path(self._config_path)
            if not config_file.exists():
                logger.warning("Config file not found: %s", self._config_path)
                return

            with open(config_file, encoding="utf-8") as f:
                json_config = json.load(f)

            self._merge_sections(json_config, source="JSON")
            logger.info("Loaded configuration from JSON: %s", self._config_path)

        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in config file %s: %s", self._config_path, e)
            raise ValueError(f"Invalid JSON configuration file: {e}") from e
        except Exception as e:
            logger.error("Error loading config file %s: %s", self._config_path, e)
            raise

    def _merge_sections(self, config: Any, *, source: str) -> None:
        """Validate and merge the known sections of ``config`` into self._config."""
        if not isinstance(config, dict):
            raise ValueError(f"Configuration ({source}) must be an object")

        for section in self.SECTIONS:
            if section not in config:
                continue
            if not isinstance(config[section], dict):
                raise ValueError(f"'{section}' section must be an object")
            merged = self._config[section]
            for key, value in deepcopy(config[section]).items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key].update(value)
                else:
                    merged[key] = value

    def _load_from_env(self) -> None:
        """Load configuration from environment variables.

        Environment variables follow the pattern:
        DMSTORE__<SECTION>__<KEY>__<SUBKEY>...

        Examples:
        - DMSTORE__DMSTORE__URL=http://localhost:8080/exist/rest
        - DMSTORE__KINDS__TAGS__DOCUMENT=Labels.xml
        - DMSTORE__KINDS__TAGS__UNIQUE='["xpath"]'
        """
        prefix = f"{self.ENV_PREFIX}{self.ENV_SEPARATOR}"

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(prefix):
                continue

            key_path = env_key[len(prefix) :].split(self.ENV_SEPARATOR)

            if len(key_path) < 2:
                logger.warning("Invalid env var format (too short): %s", env_key)
                continue

            section = key_path[0].lower()

            if section not in self.SECTIONS:
                logger.warning("Invalid section in env var %s: %s", env_key, section)
                continue

            if section == "kinds" and len(key_path) < 3:
                logger.warning("Kind env var too short: %s", env_key)
                continue

            try:
                parsed_value = self._parse_env_value(env_value)
                self._set_nested_value(section, key_path[1:], parsed_value)
                logger.debug("Set from env: %s", env_key)
            except Exception as e:
                logger.error("Error processing env var %s: %s", env_key, e)

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value with type inference.

        Attempts to parse as JSON first, falls back to string.
        """
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return value

    def _set_nested_value(self, section: str, path: list[str], value: Any) -> None:
        """Set a value in nested configuration structure.

        Args:
            section: Top-level section ('dmstore' or 'kinds')
            path: List of keys representing the path to the value
            value: Value to set
        """
        target = self._config[section]
        for key in path[:-1]:
            target = target.setdefault(key.lower(), {})
        target[path[-1].lower()] = value

    def get_dmstore_config(self, key: str | None = None, default: Any = None) -> Any:
        """Get core configuration.

        Args:
            key: Specific configuration key. If None, returns the whole section.
            default: Default value if key not found.
        """
        if not self._loaded:
            self.load()

        if key is None:
            return deepcopy(self._config.get("dmstore", {}))

        return self._config.get("dmstore", {}).get(key, default)

    def get_kind_config(self, kind_id: str, key: str | None = None, default: Any = None) -> Any:
        """Get the configuration of one entity kind.

        Args:
            kind_id: Kind identifier (e.g. "users").
            key: Specific configuration key. If None, returns the whole kind config.
            default: Default value if key not found.
        """
        if not self._loaded:
            self.load()

        kind_config = self._config.get("kinds", {}).get(kind_id, {})

        if key is None:
            return deepcopy(kind_config)

        return kind_config.get(key, default)

    def kind_ids(self) -> list[str]:
        """Ids of every kind present in the ``kinds`` section."""
        if not self._loaded:
            self.load()
        return list(self._config.get("kinds", {}).keys())

    def set_dmstore_config(self, key: str, value: Any) -> None:
        """Set core configuration (runtime only, not persisted)."""
        if not self._loaded:
            self.load()

        self._config["dmstore"][key] = value
        logger.debug("Set dmstore config: %s", key)

    def set_kind_config(self, kind_id: str, key: str, value: Any) -> None:
        """Set kind configuration (runtime only, not persisted)."""
        if not self._loaded:
            self.load()

        self._config["kinds"].setdefault(kind_id, {})[key] = value
        logger.debug("Set kind config: %s.%s = %s", kind_id, key, value)

    def get_all_config(self) -> dict[str, Any]:
        """Deep copy of the entire configuration."""
        if not self._loaded:
            self.load()

        return deepcopy(self._config)

    def reload(self) -> None:
        """Reload configuration from the file and the environment."""
        self._loaded = False
        self.load()
        logger.info("Configuration reloaded")

    @property
    def config_path(self) -> str | None:
        """Get the configuration file path."""
        return self._config_path

    @property
    def is_loaded(self) -> bool:
        """Check if configuration has been loaded."""
        return self._loaded


ConfigManager = Spock
