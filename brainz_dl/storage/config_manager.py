"""
Manages loading, validation, and creation of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from brainz_dl.exceptions import ConfigurationError
from brainz_dl.models.config import DownloadConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> DownloadConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: every setting has a default.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated DownloadConfig object.

        Raises:
            ConfigurationError: If the config file is invalid or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return DownloadConfig(**config_from_file, config_path=str(config_dir))
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a configuration file holding every known setting.

        Args:
            settings: Values that take precedence over the model defaults.
        """
        settings = settings or {}
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = DownloadConfig.model_construct()
        for key in sorted(DownloadConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            elif value is not None:
                config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {}
        try:
            for key, field in DownloadConfig.model_fields.items():
                if key not in section or key not in DownloadConfig.get_ini_keys():
                    continue
                if field.annotation is bool:
                    values[key] = section.getboolean(key)
                elif field.annotation is int:
                    values[key] = section.getint(key)
                elif field.annotation is float:
                    values[key] = section.getfloat(key)
                else:
                    values[key] = section.get(key)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e
        return values
