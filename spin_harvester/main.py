# spin_harvester/main.py
import os
import sys
import logging
import argparse
import asyncio
import time
from dataclasses import replace
from typing import Dict, Any

from spin_harvester.infrastructure.config.loaders.yaml_loader import YamlConfigLoader, ConfigError
from spin_harvester.infrastructure.config.validators.schema_validator import SchemaValidator
from spin_harvester.infrastructure.config.settings import AppSettings
from spin_harvester.infrastructure.logging.log_manager import initialize_logging
from spin_harvester.infrastructure.output.archive_store import ArchiveStore
from spin_harvester.infrastructure.transport.pg_transport import PgTransport, create_client

from spin_harvester.domain.events.event_dispatcher import EventDispatcher
from spin_harvester.domain.events.harvest_events import HarvestEventType

from spin_harvester.application.registry.game_catalog import GameCatalog
from spin_harvester.application.harvest.coordinator import HarvestCoordinator, STATUS_FAILED
from spin_harvester.application.validation.archive_validator import ArchiveValidator
from spin_harvester.application.validation.archive_repair import ArchiveRepairer
from spin_harvester.application.analysis.report_generator import ValidationReportGenerator
from spin_harvester.application.conversion.simulate_converter import SimulateDumpConverter


PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(PACKAGE_DIR)
CONFIG_DIR = os.path.join(PACKAGE_DIR, "application", "config")
DEFAULT_CONFIG = os.path.join(CONFIG_DIR, "harvest", "default_harvest.yaml")
CONFIG_SCHEMA = os.path.join(CONFIG_DIR, "schemas", "harvest_config.schema.json")
CATALOG_SCHEMA = os.path.join(CONFIG_DIR, "schemas", "game_catalog.schema.json")


def resolve_path(path: str) -> str:
    """Relative paths resolve against the working directory, then the project root."""
    if os.path.isabs(path) or os.path.exists(path):
        return path
    candidate = os.path.join(PROJECT_ROOT, path)
    return candidate if os.path.exists(candidate) else path


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Spin round harvester and archive validator")

    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG,
        help="Path to harvest configuration file"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output (DEBUG logging, advisory warnings in reports)"
    )

    # 简单的日志模式选择
    parser.add_argument(
        "--log-mode",
        choices=["all", "app", "domain", "none"],
        default=None,
        help="Select logging mode: 'all'=verbose, 'app'=application only, 'domain'=domain only, 'none'=minimal"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    harvest = subparsers.add_parser("harvest", help="Harvest rounds for the catalog games")
    harvest.add_argument("--game", default=None,
                         help="Harvest a single game, by id, name, English name or api slug")
    harvest.add_argument("--archive-dir", default=None, help="Override archive.base_dir")

    validate = subparsers.add_parser("validate", help="Validate an archive directory")
    validate.add_argument("--archive-dir", default=None, help="Override archive.base_dir")
    validate.add_argument("-r", "--remove", action="store_true", help="Remove invalid records")
    validate.add_argument("--warnings", action="store_true", help="Report advisory free-spin warnings")
    validate.add_argument("--report-dir", default=None, help="Also write a JSON report to this directory")

    convert = subparsers.add_parser("convert", help="Convert simulate.json dumps to archive files")
    convert.add_argument("source", help="Directory of pg_<gameId> folders, or a single dump file with --file")
    convert.add_argument("output", help="Output archive directory, or output file with --file")
    convert.add_argument("--file", action="store_true", help="Convert a single dump file")

    return parser.parse_args(argv)


def apply_log_mode(config: Dict[str, Any], log_mode: str, verbose: bool):
    """Apply --log-mode and --verbose to the logging section in place."""
    log_config = config.setdefault("logging", {})
    loggers = log_config.setdefault("loggers", {})

    if log_mode == "all":
        log_config["level"] = "DEBUG"
        log_config["console_level"] = "DEBUG"
    elif log_mode == "app":
        log_config["level"] = "WARNING"
        loggers["domain"] = {"level": "WARNING", "propagate": False}
        loggers["application"] = {"level": "DEBUG", "propagate": False}
        loggers["infrastructure"] = {"level": "WARNING", "propagate": False}
    elif log_mode == "domain":
        log_config["level"] = "WARNING"
        loggers["domain"] = {"level": "DEBUG", "propagate": False}
        loggers["application"] = {"level": "WARNING", "propagate": False}
        loggers["infrastructure"] = {"level": "WARNING", "propagate": False}
    elif log_mode == "none":
        log_config["level"] = "WARNING"
        log_config["console_level"] = "WARNING"

    # verbose 覆盖其他设置
    if verbose:
        log_config["level"] = "DEBUG"
        log_config["console_level"] = "DEBUG"


def load_config(config_path: str) -> Dict[str, Any]:
    config_loader = YamlConfigLoader(SchemaValidator())
    return config_loader.load_file(resolve_path(config_path), CONFIG_SCHEMA)


async def run_harvest(settings: AppSettings, game_key: str = None) -> int:
    logger = logging.getLogger("main")

    catalog = GameCatalog(YamlConfigLoader(SchemaValidator()), CATALOG_SCHEMA)
    catalog.load(resolve_path(settings.catalog_path))
    if not len(catalog):
        logger.error("Game catalog is empty, nothing to harvest")
        return 1

    store = ArchiveStore(settings.archive_dir)
    event_dispatcher = EventDispatcher()
    event_dispatcher.register(
        HarvestEventType.SESSION_DEGRADED,
        lambda event: logger.debug(f"Degraded: {event.data}")
    )

    async with create_client(settings.transport) as client:
        coordinator = HarvestCoordinator(
            settings.harvest,
            store,
            lambda game: PgTransport(client, game, settings.transport),
            event_dispatcher
        )

        if game_key:
            result = await coordinator.run_single(catalog, game_key)
            if result is None:
                print(f"Game not found: {game_key}")
                return 1
            results = [result]
        else:
            results = await coordinator.run(catalog.get_all_games())

    print("\nHarvest Summary:")
    for result in results:
        line = f"- {result.game_id}: {result.status}, normal {result.normal_count}, bonus {result.bonus_count}"
        if result.errors:
            line += f" ({'; '.join(result.errors)})"
        print(line)

    return 1 if any(r.status == STATUS_FAILED for r in results) else 0


def run_validate(settings: AppSettings, args) -> int:
    archive_dir = args.archive_dir or settings.archive_dir
    verbose = args.warnings or args.verbose

    report = ArchiveValidator(verbose=verbose).validate_archive(archive_dir)
    if args.remove and report.removal_candidates:
        ArchiveRepairer().repair(report)

    generator = ValidationReportGenerator(
        output_dir=args.report_dir or settings.validation.report_dir,
        max_entries=settings.validation.max_report_entries
    )
    print(generator.render(report, verbose=verbose))
    generator.write_json(report)

    exit_code = report.exit_code
    if report.repair is not None and report.repair.failed:
        exit_code = 1
    return exit_code


def run_convert(args) -> int:
    converter = SimulateDumpConverter()
    if args.file:
        stats = converter.convert_file(args.source, args.output)
        print(f"Converted {stats.written} records ({stats.skipped} skipped) -> {stats.output_path}")
        return 0

    results = converter.convert_tree(args.source, args.output)
    for game_id, stats in results.items():
        print(f"- {game_id}: {stats.written} records ({stats.skipped} skipped)")
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)
    start_time = time.time()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error loading configuration: {str(e)}")
        return 1

    apply_log_mode(config, args.log_mode, args.verbose)
    initialize_logging(config.get("logging", {}))
    logger = logging.getLogger("main")

    settings = AppSettings.from_config(config)
    if args.command == "harvest" and args.archive_dir:
        settings = replace(settings, archive_dir=args.archive_dir)

    try:
        if args.command == "harvest":
            logger.info("Spin harvester starting")
            exit_code = asyncio.run(run_harvest(settings, args.game))
        elif args.command == "validate":
            exit_code = run_validate(settings, args)
        else:
            exit_code = run_convert(args)

        logger.info(f"Total execution time: {time.time() - start_time:.2f} seconds")
        return exit_code

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Error during {args.command}: {str(e)}")
        return 1
    finally:
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
