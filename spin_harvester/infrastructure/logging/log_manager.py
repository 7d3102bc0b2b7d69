# spin_harvester/infrastructure/logging/log_manager.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Dict, Any, Union


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LogManager:
    """
    Centralized logging configuration manager.
    """
    def __init__(self):
        """Initialize the log manager."""
        self.root_logger = logging.getLogger()
        self.loggers = {}  # name -> logger
        self.handlers = {}  # name -> handler
        self.initialized = False

    def initialize(self, config: Dict[str, Any], force: bool = False):
        """
        Initialize logging system based on configuration.

        Args:
            config: The ``logging`` section of the run configuration
            force: Reconfigure even if already initialized
        """
        if self.initialized and not force:
            return
        self.shutdown()

        log_level = self._get_log_level(config.get('level', 'INFO'))
        log_format = config.get('format', DEFAULT_FORMAT)
        log_date_format = config.get('date_format', '%Y-%m-%d %H:%M:%S')
        console_enabled = config.get('console', True)
        file_config = config.get('file') or {}

        self.root_logger.setLevel(log_level)
        formatter = logging.Formatter(log_format, log_date_format)

        if console_enabled:
            console_level = self._get_log_level(config.get('console_level', log_level))
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(console_level)
            console_handler.setFormatter(formatter)
            self._add_handler('console', console_handler)

        if file_config.get('enabled', False):
            file_path = file_config.get('path', 'logs/harvester.log')
            file_level = self._get_log_level(file_config.get('level', log_level))

            log_dir = os.path.dirname(file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=file_config.get('max_bytes', 10 * 1024 * 1024),
                backupCount=file_config.get('backup_count', 5),
                encoding='utf-8'
            )
            file_handler.setLevel(file_level)
            file_handler.setFormatter(formatter)
            self._add_handler('file', file_handler)

        # 父 logger 先于子 logger 配置
        loggers_config = config.get('loggers') or {}
        for logger_name in sorted(loggers_config, key=lambda x: len(x.split('.'))):
            logger_config = loggers_config[logger_name] or {}
            logger = logging.getLogger(logger_name)
            logger.setLevel(self._get_log_level(logger_config.get('level', log_level)))

            # Non-propagating loggers get the root handlers directly
            propagate = logger_config.get('propagate', False)
            logger.propagate = propagate
            if not propagate:
                for handler in self.handlers.values():
                    logger.addHandler(handler)

            self.loggers[logger_name] = logger
            self.root_logger.debug(
                f"Configured logger '{logger_name}' with level={logging.getLevelName(logger.level)}, "
                f"propagate={propagate}"
            )

        self.root_logger.debug("Logging system initialized")
        self.initialized = True

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def shutdown(self):
        """Detach and close every handler installed by this manager."""
        for handler in self.handlers.values():
            self.root_logger.removeHandler(handler)
            for logger in self.loggers.values():
                logger.removeHandler(handler)
            handler.close()
        self.handlers.clear()
        self.loggers.clear()
        self.initialized = False

    def _add_handler(self, name: str, handler: logging.Handler):
        self.root_logger.addHandler(handler)
        self.handlers[name] = handler

    def _get_log_level(self, level_name: Union[str, int]) -> int:
        """
        Convert a log level name to its numeric value.

        Unknown names fall back to INFO.
        """
        if isinstance(level_name, int):
            return level_name

        level = logging.getLevelName(str(level_name).upper())
        return level if isinstance(level, int) else logging.INFO


# Singleton instance
log_manager = LogManager()


def initialize_logging(config: Dict[str, Any] = None) -> LogManager:
    """
    Initialize the logging system from the ``logging`` configuration section.

    Args:
        config: Logging configuration; console-only INFO logging when omitted
    """
    if config is None:
        config = {'level': 'INFO', 'console': True}

    log_manager.initialize(config, force=True)
    return log_manager
