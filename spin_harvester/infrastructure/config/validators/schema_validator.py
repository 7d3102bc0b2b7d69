# spin_harvester/infrastructure/config/validators/schema_validator.py
import copy
import logging
from typing import Dict, Any, Tuple, List

import jsonschema


class SchemaValidator:
    """
    Validates configuration data against JSON schemas.
    """
    def __init__(self):
        """Initialize the schema validator."""
        self.logger = logging.getLogger("infrastructure.config.validator")

    def validate(self, config: Dict[str, Any], schema: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate a configuration against a JSON schema.

        Args:
            config: The configuration dictionary to validate
            schema: The JSON schema to validate against

        Returns:
            Tuple of (is_valid, error_messages); every violation is reported,
            not only the first one
        """
        try:
            validator_class = jsonschema.validators.validator_for(schema)
            validator_class.check_schema(schema)
        except jsonschema.exceptions.SchemaError as e:
            # There's something wrong with the schema itself
            self.logger.error(f"Invalid schema: {e.message}")
            return False, [f"Schema error: {e.message}"]

        errors = []
        for error in sorted(validator_class(schema).iter_errors(config), key=lambda e: list(e.path)):
            error_path = '.'.join(str(p) for p in error.path) if error.path else 'root'
            errors.append(f"At {error_path}: {error.message}")

        for message in errors:
            self.logger.error(f"Schema validation error: {message}")
        return not errors, errors

    def validate_with_defaults(self, config: Dict[str, Any],
                               schema: Dict[str, Any]) -> Tuple[bool, List[str], Dict[str, Any]]:
        """
        Validate a configuration and fill in default values from the schema.

        Returns:
            Tuple of (is_valid, error_messages, updated_config); the input is
            never modified
        """
        updated_config = copy.deepcopy(config)
        self._apply_defaults(updated_config, schema)

        is_valid, errors = self.validate(updated_config, schema)
        return is_valid, errors, updated_config

    def _apply_defaults(self, config: Any, schema: Dict[str, Any], path: str = ""):
        """
        Recursively apply default values from schema to config.

        Missing object properties that declare nested properties are created
        so that their own defaults can be filled in.
        """
        if not isinstance(schema, dict):
            return

        if isinstance(config, dict) and isinstance(schema.get('properties'), dict):
            for prop_name, prop_schema in schema['properties'].items():
                if not isinstance(prop_schema, dict):
                    continue
                new_path = f"{path}.{prop_name}" if path else prop_name

                if prop_name not in config:
                    if 'default' in prop_schema:
                        config[prop_name] = copy.deepcopy(prop_schema['default'])
                        self.logger.debug(f"Applied default value for {new_path}: {prop_schema['default']}")
                    elif prop_schema.get('type') == 'object' and 'properties' in prop_schema:
                        config[prop_name] = {}

                if prop_name in config:
                    self._apply_defaults(config[prop_name], prop_schema, new_path)

        if isinstance(config, list) and isinstance(schema.get('items'), dict):
            for i, item in enumerate(config):
                self._apply_defaults(item, schema['items'], f"{path}[{i}]")
