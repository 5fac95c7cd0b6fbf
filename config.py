#!/usr/bin/env python3
"""
Centralized configuration module for netstub.
Handles loading configuration from environment variables, a .env file and a
YAML file, validates known parameters, and provides a unified interface for
accessing configuration values, logging a summary on request.
"""
import os
import sys
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"


def setup_logging(log_level=None, log_file="netstub.log", log_dir=None):
    """
    Configures logging for the command line tools.
    Sets up console (stderr) and rotating file handlers with a standard format.
    Safe to call multiple times; replaces existing root handlers.
    """
    if log_level is None:
        log_level = config.get(("logging", "level"), DEFAULT_LOG_LEVEL)
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    log_directory = Path(log_dir or config.get(("logging", "dir"), DEFAULT_LOG_DIR))
    log_directory.mkdir(parents=True, exist_ok=True)
    log_filepath = log_directory / log_file

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # stdout is reserved for machine-readable output (check_binding.py prints JSON)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    file_handler = TimedRotatingFileHandler(log_filepath, when="midnight", interval=1, backupCount=7)
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to prevent duplication on reconfiguration
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
        try:
            h.close()
        except Exception as e:
            print(f"Warning: Failed to close log handler {h}: {e}", file=sys.stderr)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    logger.info("Logging configured to level '%s', writing to '%s'.", logging.getLevelName(log_level), log_filepath)


# Known configuration keys and their validation rules
# Format: (("tuple", "of", "keys"), 'validation_rule')
# Validation rules: 'str' (non-empty string), 'int' (positive integer), 'level' (logging level name)
CONFIG_KEYS = [
    (("fixtures", "dir"), 'str'),
    (("http", "timeout"), 'int'),
    (("http", "user_agent"), 'str'),
    (("logging", "level"), 'level'),
    (("logging", "dir"), 'str'),
]

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Config:
    """Singleton configuration manager.

    Attributes:
        _config (dict): The loaded YAML configuration.
        _loaded (bool): Whether YAML configuration has been processed.
        _load_attempted (bool): Whether load() has run, successfully or not.
        _env_file_loaded (bool): Whether a .env file was successfully loaded.
        CONFIG_MAP (dict): Map of config keys to validation rules.
    """
    def __init__(self):
        self._config = {}
        self._loaded = False
        self._load_attempted = False
        self._env_file_loaded = False
        self.CONFIG_MAP = {key_path: rule for key_path, rule in CONFIG_KEYS}

    def validate_config(self):
        """Validates the type of every known key that has a value.

        Unset keys are fine; callers supply their own defaults.

        Returns:
            bool: True if all set values are valid, False otherwise.
        """
        is_valid = True
        logger.debug("Validating configuration parameters...")
        for key_path, validation_rule in CONFIG_KEYS:
            value = self.get(key_path)
            key_str = '.'.join(key_path)
            if value is None:
                continue

            if validation_rule == 'str':
                if not isinstance(value, str) or not value.strip():
                    logger.critical("INVALID configuration: '%s' must be a non-empty string. Found: '%s' (type: %s)",
                                    key_str, value, type(value).__name__)
                    is_valid = False
            elif validation_rule == 'int':
                if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                    logger.critical("INVALID configuration: '%s' must be a positive integer. Found: '%s' (type: %s)",
                                    key_str, value, type(value).__name__)
                    is_valid = False
            elif validation_rule == 'level':
                if not isinstance(value, str) or value.upper() not in LOG_LEVELS:
                    logger.critical("INVALID configuration: '%s' must be one of %s. Found: '%s'",
                                    key_str, ", ".join(sorted(LOG_LEVELS)), value)
                    is_valid = False

        if is_valid:
            logger.info("Configuration validation successful.")
        else:
            logger.error("Configuration validation FAILED. Some parameters are invalid.")
        return is_valid

    def log_config_summary(self, log_level=logging.INFO):
        """Logs the effective value of every known key.

        Args:
            log_level: The logging level to use for the summary.
        """
        logger.log(log_level, "--- Configuration Summary ---")

        env_path_used = os.environ.get('NETSTUB_ENV', '.env')
        if self._env_file_loaded:
            logger.log(log_level, "Source: .env file loaded from '%s'.", env_path_used)
        else:
            logger.log(log_level, "Source: .env file not found or not loaded from '%s'.", env_path_used)

        yaml_config_path_used = os.environ.get('NETSTUB_CONFIG', 'config.yaml')
        if self._loaded and self._config:
            logger.log(log_level, "Source: YAML file loaded from '%s'.", yaml_config_path_used)
        else:
            logger.log(log_level, "Source: YAML file not found or empty at '%s'.", yaml_config_path_used)

        logger.log(log_level, "Effective settings (priority: YAML > Environment > Default):")
        for key_path, _ in CONFIG_KEYS:
            value = self.get(key_path)
            key_str = '.'.join(key_path)
            if value is not None:
                logger.log(log_level, "  %s: %s", key_str, value)
            else:
                logger.log(log_level, "  %s: Not set (module default applies)", key_str)
        logger.log(log_level, "-----------------------------")

    def load(self):
        """Loads configuration from .env and YAML file (e.g., config.yaml).

        Validates known parameters and logs a summary.

        Returns:
            bool: True if loading succeeded and all values are valid, False otherwise.
        """
        self._load_attempted = True
        config_path_env = os.environ.get('NETSTUB_CONFIG')
        config_path_default = 'config.yaml'
        config_path = config_path_env or config_path_default

        env_path = os.environ.get('NETSTUB_ENV') or '.env'

        # Load .env file first. It sets environment variables.
        if os.path.exists(env_path):
            self._env_file_loaded = load_dotenv(env_path, override=True)
            if self._env_file_loaded:
                logger.info("Loaded environment variables from '%s'.", env_path)
            else:
                logger.info(".env file at '%s' was processed but set no variables.", env_path)
        else:
            logger.info(".env file not found at '%s'. Skipping .env load.", env_path)
            self._env_file_loaded = False

        if os.path.exists(config_path):
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    self._config = yaml.safe_load(f) or {}
                self._loaded = True
                logger.info("Loaded YAML configuration from '%s'.", config_path)
            except (OSError, yaml.YAMLError) as e:
                logger.critical("Failed to load YAML configuration from '%s': %s", config_path, e)
                self._loaded = False
                # A file the user asked for explicitly must load.
                if config_path_env:
                    return False
        else:
            if config_path == config_path_default:
                logger.info("Default configuration file '%s' not found. Relying on environment variables and defaults.", config_path)
                self._config = {}
                self._loaded = True
            else:
                logger.critical("Specified configuration file '%s' not found. This is critical.", config_path)
                return False

        if not self.validate_config():
            return False

        self.log_config_summary()
        return True

    def ensure_loaded(self):
        """Loads configuration on first use; later calls do nothing.

        Returns:
            bool: Whether YAML configuration has been processed.
        """
        if not self._load_attempted:
            self._load_attempted = True
            self.load()
        return self._loaded

    def get(self, key_tuple, default=None):
        """Retrieves a value from the config.

        Priority: 1. YAML config, 2. Environment Variables, 3. Default value.

        Args:
            key_tuple (tuple): The key path in the config dictionary (e.g. ('http', 'timeout')).
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default.
        """
        d = self._config
        try:
            for k in key_tuple:
                d = d[k]
            return d
        except (KeyError, TypeError):
            env_key = '_'.join(str(k).upper() for k in key_tuple)
            env_value = os.environ.get(env_key)

            if env_value is not None:
                expected_type = self.CONFIG_MAP.get(tuple(key_tuple))
                if expected_type == 'int':
                    try:
                        return int(env_value)
                    except ValueError:
                        logger.warning("Env var '%s' with value '%s' could not be cast to int, returning as string. Validation will occur in validate_config.", env_key, env_value)
                        return env_value
                return env_value

            return default


# Singleton config instance
config = Config()
