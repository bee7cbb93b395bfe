"""
Logging configuration for the door-sense engine
"""

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from door_sense.config.settings import Settings


_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    def format(self, record):
        original = record.levelname
        record.levelname = f"{_LEVEL_COLORS.get(original, _RESET)}{original}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields such as ``sensor_id`` are kept."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'line': f"{record.module}:{record.lineno}",
        }
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES
        )
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(settings: Settings) -> None:
    """Configure the console, rotating file and JSON-lines handlers from ``settings``."""
    settings.create_directories()
    logging.config.dictConfig(build_logging_config(settings))
    logging.getLogger(__name__).debug(
        "Logging configured - Level: %s, File: %s", settings.log_level, settings.log_file
    )


def build_logging_config(settings: Settings) -> Dict[str, Any]:
    handlers: Dict[str, Dict[str, Any]] = {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
            'stream': 'ext://sys.stderr',
        }
    }

    if settings.log_file:
        rotating = {
            'class': 'logging.handlers.RotatingFileHandler',
            'maxBytes': settings.log_max_size,
            'backupCount': settings.log_backup_count,
            'encoding': 'utf-8',
        }
        handlers['file'] = dict(rotating, formatter='file', filename=settings.log_file)
        # Detections and calibration failures as JSON lines next to the plain log
        handlers['structured'] = dict(
            rotating,
            formatter='structured',
            filename=str(Path(settings.log_file).with_suffix('.json')),
        )

    names = list(handlers)
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'console': {
                '()': ColoredFormatter,
                'format': settings.log_format,
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
            'file': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
            'structured': {'()': StructuredFormatter},
        },
        'handlers': handlers,
        'loggers': {
            '': {'level': settings.log_level, 'handlers': names},
            'door_sense': {'level': settings.log_level, 'handlers': names, 'propagate': False},
            'sqlalchemy.engine': {
                'level': 'INFO' if settings.db_echo else 'WARNING',
                'handlers': names,
                'propagate': False,
            },
        },
    }
