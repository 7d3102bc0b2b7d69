# tests/test_config.py
import unittest
import logging
import sys
import os
import shutil
import tempfile

import yaml

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from spin_harvester.application.registry.game_catalog import GameCatalog
from spin_harvester.infrastructure.config.loaders.yaml_loader import (
    YamlConfigLoader, FileNotFoundConfigError, YamlParseError, SchemaValidationError
)
from spin_harvester.infrastructure.config.validators.schema_validator import SchemaValidator
from spin_harvester.infrastructure.config.settings import AppSettings
from spin_harvester.infrastructure.logging.log_manager import LogManager
from spin_harvester.main import DEFAULT_CONFIG, CONFIG_SCHEMA, CATALOG_SCHEMA, CONFIG_DIR


CATALOG_PATH = os.path.join(CONFIG_DIR, "games", "pg.yaml")


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.temp_dir = tempfile.mkdtemp()
        self.loader = YamlConfigLoader(SchemaValidator())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        logging.disable(logging.NOTSET)

    def write_yaml(self, name, data) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            if isinstance(data, str):
                f.write(data)
            else:
                yaml.safe_dump(data, f)
        return path


class TestHarvestConfig(ConfigTestCase):
    """Test loading and validating the run configuration."""

    def test_default_config(self):
        config = self.loader.load_file(DEFAULT_CONFIG, CONFIG_SCHEMA)
        settings = AppSettings.from_config(config)

        self.assertEqual(settings.harvest.normal_round_target, 3000)
        self.assertEqual(settings.harvest.bonus_round_target, 50)
        self.assertEqual(settings.harvest.retry_delay, 1.0)
        self.assertIsNone(settings.harvest.rtp_control)
        self.assertEqual(settings.transport.rtp_path, "/api/SetDemoPlayerRTP")
        self.assertEqual(settings.transport.headers, {})
        self.assertEqual(settings.validation.max_report_entries, 50)
        self.assertEqual(settings.archive_dir, "assets/pg")

    def test_empty_file_gets_schema_defaults(self):
        path = self.write_yaml("empty.yaml", "")

        settings = AppSettings.from_config(self.loader.load_file(path, CONFIG_SCHEMA))

        self.assertEqual(settings.harvest.concurrent_games, 10)
        self.assertEqual(settings.harvest.max_spins_per_round, 500)
        self.assertEqual(settings.transport.work_key, "0_C")
        self.assertFalse(settings.logging["file"]["enabled"])

    def test_partial_section_keeps_given_values(self):
        path = self.write_yaml("partial.yaml", {"harvest": {"normal_round_target": 10, "rtp_control": 300}})

        settings = AppSettings.from_config(self.loader.load_file(path, CONFIG_SCHEMA))

        self.assertEqual(settings.harvest.normal_round_target, 10)
        self.assertEqual(settings.harvest.rtp_control, 300)
        self.assertEqual(settings.harvest.retry_attempts, 10)

    def test_invalid_value(self):
        path = self.write_yaml("bad.yaml", {"harvest": {"retry_attempts": 0, "concurrent_games": "many"}})

        with self.assertRaises(SchemaValidationError) as ctx:
            self.loader.load_file(path, CONFIG_SCHEMA)
        self.assertEqual(len(ctx.exception.errors), 2)
        self.assertTrue(any("harvest.retry_attempts" in e for e in ctx.exception.errors))

    def test_unknown_key_rejected(self):
        path = self.write_yaml("unknown.yaml", {"harvest": {"normal_round_targt": 5}})

        with self.assertRaises(SchemaValidationError):
            self.loader.load_file(path, CONFIG_SCHEMA)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundConfigError):
            self.loader.load_file(os.path.join(self.temp_dir, "nope.yaml"), CONFIG_SCHEMA)

    def test_malformed_yaml(self):
        path = self.write_yaml("broken.yaml", "harvest: [unclosed\n")

        with self.assertRaises(YamlParseError):
            self.loader.load_file(path, CONFIG_SCHEMA)

    def test_input_not_modified_by_defaults(self):
        config = {"harvest": {}}
        is_valid, errors, updated = SchemaValidator().validate_with_defaults(
            config, {"type": "object", "properties": {"harvest": {
                "type": "object", "properties": {"log_interval": {"type": "integer", "default": 20}}
            }}}
        )
        self.assertTrue(is_valid)
        self.assertEqual(errors, [])
        self.assertEqual(updated["harvest"]["log_interval"], 20)
        self.assertEqual(config, {"harvest": {}})


class TestGameCatalog(ConfigTestCase):
    """Test the game catalog."""

    def test_load_bundled_catalog(self):
        catalog = GameCatalog(self.loader, CATALOG_SCHEMA)

        loaded = catalog.load(CATALOG_PATH)

        self.assertEqual(loaded, [39, 98, 126, 1543462])
        self.assertEqual(catalog.find("126").api, "fortune-tiger")
        self.assertEqual(catalog.find("Fortune Ox").game_id, 98)
        self.assertEqual(catalog.find("fortune-rabbit").game_id, 1543462)
        self.assertIsNone(catalog.find("unknown"))

    def test_duplicate_entries_keep_first(self):
        path = self.write_yaml("games.yaml", {"games": [
            {"gameId": 1, "name": "One", "api": "one"},
            {"gameId": 1, "name": "Again", "api": "again"},
        ]})
        catalog = GameCatalog(self.loader, CATALOG_SCHEMA)

        self.assertEqual(catalog.load(path), [1])
        self.assertEqual(catalog.find("1").name, "One")
        self.assertEqual(len(catalog), 1)

    def test_entry_without_api_rejected(self):
        path = self.write_yaml("games.yaml", {"games": [{"gameId": 1, "name": "One"}]})

        with self.assertRaises(SchemaValidationError):
            GameCatalog(self.loader, CATALOG_SCHEMA).load(path)


class TestLogManager(ConfigTestCase):
    """Test logging setup from the logging section."""

    def test_file_handler_and_logger_levels(self):
        log_path = os.path.join(self.temp_dir, "logs", "run.log")
        manager = LogManager()
        try:
            manager.initialize({
                "level": "INFO",
                "console": False,
                "file": {"enabled": True, "path": log_path, "level": "DEBUG"},
                "loggers": {"application.harvest": {"level": "WARNING"}},
            })

            self.assertIn("file", manager.handlers)
            self.assertNotIn("console", manager.handlers)
            self.assertTrue(os.path.isdir(os.path.dirname(log_path)))
            harvest_logger = logging.getLogger("application.harvest")
            self.assertEqual(harvest_logger.level, logging.WARNING)
            self.assertFalse(harvest_logger.propagate)
        finally:
            manager.shutdown()
            logging.getLogger("application.harvest").propagate = True
            logging.getLogger("application.harvest").setLevel(logging.NOTSET)

        self.assertEqual(manager.handlers, {})
        self.assertFalse(manager.initialized)

    def test_unknown_level_falls_back_to_info(self):
        self.assertEqual(LogManager()._get_log_level("chatty"), logging.INFO)
        self.assertEqual(LogManager()._get_log_level("debug"), logging.DEBUG)


if __name__ == "__main__":
    unittest.main()
