# spin_harvester/infrastructure/config/loaders/yaml_loader.py
import os
import json
import logging
from typing import Dict, Any, Optional

import yaml


class ConfigError(Exception):
    """Base class for configuration loading and validation errors."""
    pass


class FileNotFoundConfigError(ConfigError):
    """A configuration or schema file does not exist."""
    def __init__(self, path, message=None):
        self.path = path
        self.message = message or f"Configuration file not found: {path}"
        super().__init__(self.message)


class YamlParseError(ConfigError):
    """The YAML document could not be parsed."""
    def __init__(self, file_path, yaml_error):
        self.file_path = file_path
        self.yaml_error = yaml_error
        self.message = f"Error parsing YAML file {file_path}: {str(yaml_error)}"
        super().__init__(self.message)


class SchemaValidationError(ConfigError):
    """The configuration does not satisfy its JSON schema."""
    def __init__(self, file_path, errors):
        self.file_path = file_path
        self.errors = errors
        error_msg = "\n  - ".join([""] + errors)
        self.message = f"Configuration validation failed for {file_path}:{error_msg}"
        super().__init__(self.message)


class YamlConfigLoader:
    """
    Loads YAML configuration files and validates them against JSON schemas.

    Every problem is raised as a ConfigError subclass; there is no silent
    fallback to built-in values. Defaults come from the schema only.
    """
    def __init__(self, schema_validator=None):
        """
        Args:
            schema_validator: Optional SchemaValidator used when a schema path is given
        """
        self.logger = logging.getLogger("infrastructure.config.loader")
        self.schema_validator = schema_validator

    def load_file(self, file_path: str, schema_path: Optional[str] = None,
                  apply_defaults: bool = True) -> Dict[str, Any]:
        """
        Load a single YAML file and optionally validate it.

        Args:
            file_path: Path of the YAML file
            schema_path: Optional path of the JSON schema to validate against
            apply_defaults: Fill in missing values from the schema defaults

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundConfigError: The file or the schema does not exist
            YamlParseError: The YAML is malformed
            SchemaValidationError: The configuration violates the schema
        """
        if not os.path.isfile(file_path):
            self.logger.error(f"Configuration file not found: {file_path}")
            raise FileNotFoundConfigError(file_path)

        try:
            with open(file_path, 'r', encoding='utf-8') as file:
                config = yaml.safe_load(file)
        except yaml.YAMLError as e:
            error = YamlParseError(file_path, e)
            self.logger.error(error.message)
            raise error from e

        self.logger.debug(f"Successfully loaded configuration from {file_path}")

        # 空文件按空配置处理，由模式默认值补齐
        if config is None:
            self.logger.warning(f"Empty configuration file: {file_path}")
            config = {}

        if schema_path and self.schema_validator:
            schema = self._load_schema(schema_path)
            return self.validate(config, schema, file_path, apply_defaults)

        return config

    def validate(self, config: Dict[str, Any], schema: Dict[str, Any], source: str = "<memory>",
                 apply_defaults: bool = True) -> Dict[str, Any]:
        """
        Validate an already loaded configuration.

        Returns:
            The configuration, with schema defaults applied when requested

        Raises:
            SchemaValidationError: The configuration violates the schema
        """
        if apply_defaults:
            is_valid, errors, config = self.schema_validator.validate_with_defaults(config, schema)
        else:
            is_valid, errors = self.schema_validator.validate(config, schema)

        if not is_valid:
            raise SchemaValidationError(source, errors)

        self.logger.debug(f"Successfully validated configuration from {source}")
        return config

    def _load_schema(self, schema_path: str) -> Dict[str, Any]:
        """
        Load a JSON schema file.

        Raises:
            FileNotFoundConfigError: If the schema file does not exist
            ConfigError: If the schema cannot be parsed
        """
        if not os.path.isfile(schema_path):
            error_msg = f"Schema file not found: {schema_path}"
            self.logger.error(error_msg)
            raise FileNotFoundConfigError(schema_path, error_msg)

        try:
            with open(schema_path, 'r', encoding='utf-8') as file:
                return json.load(file)
        except json.JSONDecodeError as e:
            error_msg = f"Error parsing schema file {schema_path}: {str(e)}"
            self.logger.error(error_msg)
            raise ConfigError(error_msg) from e
