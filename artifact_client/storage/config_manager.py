"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from artifact_client.exceptions import ConfigurationError
from artifact_client.models.config import ClientConfig

log = logging.getLogger(__name__)

SECTION = "artifact-client"
BASE_URL_ENV = "ARTIFACT_SERVICE_URL"


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "artifact-client"


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ClientConfig:
        """
        Loads configuration from the INI file, the environment and CLI overrides,
        in increasing order of precedence, and validates it.

        A missing file is fine as long as a base URL comes from elsewhere.

        Args:
            cli_options: A dictionary of options provided via the command line.
                None values are ignored.

        Returns:
            A validated ClientConfig object.

        Raises:
            ConfigurationError: If the config file is invalid, no base URL is
            known, or validation fails.
        """
        config_data: dict[str, Any] = {}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_data.update(self._get_config_as_dict())

        if env_url := os.getenv(BASE_URL_ENV):
            config_data["base_url"] = env_url

        if cli_options:
            config_data.update({k: v for k, v in cli_options.items() if v is not None})

        if not config_data.get("base_url"):
            raise ConfigurationError(
                "No artifact service URL configured. Run 'artifact-client init "
                f"<base-url>', set {BASE_URL_ENV}, or pass --base-url."
            )

        try:
            config_dir = self.config_file_path.parent
            return ClientConfig(**config_data, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save. Must contain ``base_url``.

        Raises:
            ConfigurationError: The settings are invalid or the file cannot be written.
        """
        try:
            validated = ClientConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser()
        config[SECTION] = {}
        for key in sorted(ClientConfig.get_ini_keys()):
            config[SECTION][key] = str(getattr(validated, key))

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the client section of the INI file into a dictionary."""
        if not self._parser.has_section(SECTION):
            return {}
        section = self._parser[SECTION]
        try:
            data: dict[str, Any] = {
                "base_url": section.get("base_url", ""),
                "request_timeout": section.getfloat("request_timeout", 30.0),
                "transfer_timeout": section.getfloat("transfer_timeout", 300.0),
                "chunk_size": section.getint("chunk_size", 65536),
                "max_connections": section.getint("max_connections", 8),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        if not data["base_url"]:
            del data["base_url"]
        return data

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        if not self._parser.has_section(SECTION):
            return False

        defaults = ClientConfig.model_construct()
        config_section = self._parser[SECTION]
        needs_saving = False

        for key in sorted(ClientConfig.get_ini_keys()):
            if key in config_section or key == "base_url":
                continue
            config_section[key] = str(getattr(defaults, key))
            needs_saving = True
            log.debug(
                f"Migrating config: added missing key '{key}' with "
                f"value '{config_section[key]}'."
            )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
