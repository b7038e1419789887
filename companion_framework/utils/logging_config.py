"""
Logging for the companion framework.

Every record carries the component that emitted it and, while a
conversation cycle is running, that cycle's epoch. Provider keys
registered with register_secret() are masked before anything is written.
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Set


ROOT_LOGGER_NAME = 'companion_framework'

# Client libraries that log request lines at INFO
NOISY_LOGGERS = ('aiohttp', 'httpx', 'httpcore', 'openai', 'faster_whisper', 'comtypes')

# Epoch of the conversation cycle running in the current task, 0 outside a cycle
current_cycle: ContextVar[int] = ContextVar('current_cycle', default=0)

_secrets: Set[str] = set()


def register_secret(value: Optional[str]) -> None:
    """Mask value in all later log output. Short values are ignored."""
    if value and len(value) >= 8:
        _secrets.add(value)


def mask_secrets(text: str) -> str:
    for secret in _secrets:
        if secret in text:
            text = text.replace(secret, f"{secret[:4]}…")
    return text


class CycleContextFilter(logging.Filter):
    """Stamps records with the active cycle epoch and masks registered secrets."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'cycle'):
            record.cycle = current_cycle.get()
        if _secrets:
            record.msg = mask_secrets(record.getMessage())
            record.args = None
        return True


class StructuredFormatter(logging.Formatter):
    """Console and file formatter: time, level, component, cycle, message."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m'
    }

    EMOJIS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '💀'
    }

    def __init__(self, use_colors: bool = True, use_emojis: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.use_emojis = use_emojis

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        level = record.levelname
        level_str = f"{self.EMOJIS.get(level, '')} {level}" if self.use_emojis else level
        if self.use_colors and sys.stdout.isatty():
            level_str = f"{self.COLORS.get(level, '')}{level_str}{self.COLORS['RESET']}"

        component = getattr(record, 'component', record.name.rsplit('.', 1)[-1])
        cycle = getattr(record, 'cycle', 0)

        parts = [
            f"[{timestamp}]",
            f"[{level_str:15}]",
            f"[{component:13}]",
        ]
        if cycle:
            parts.append(f"[cycle {cycle}]")
        parts.append(record.getMessage())

        if record.exc_info:
            parts.append('\n' + mask_secrets(self.formatException(record.exc_info)))

        return ' '.join(parts)


class ComponentLogger:
    """
    Logger wrapper that tags every message with a component name.

    Components map to the pipeline stages: capture, transcription,
    screening, reply, tts, playback, journal, store and so on.
    """

    def __init__(self, logger: logging.Logger, component: str):
        self.logger = logger
        self.component = component

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = kwargs.get('extra', {})
        extra['component'] = self.component
        kwargs['extra'] = extra
        self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs['exc_info'] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True,
    secrets: Iterable[Optional[str]] = (),
) -> logging.Logger:
    """
    Configure the framework logger.

    Args:
        level: Log level name for framework components
        log_file: Optional file that receives plain (uncolored) records
        use_colors: ANSI colors on a terminal
        use_emojis: Emoji level markers on the console
        secrets: Provider keys to mask in all output

    Returns:
        The framework logger
    """
    for secret in secrets:
        register_secret(secret)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    context = CycleContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.addFilter(context)
    console_handler.setFormatter(StructuredFormatter(use_colors=use_colors, use_emojis=use_emojis))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(context)
        file_handler.setFormatter(StructuredFormatter(use_colors=False, use_emojis=False))
        logger.addHandler(file_handler)

    # Library chatter stays at WARNING unless the framework itself is at DEBUG
    quiet = logging.DEBUG if logger.level == logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    return logger


def get_logger(component: str) -> ComponentLogger:
    """
    Get a component logger.

    Args:
        component: Pipeline stage name (e.g., "coordinator", "transcription")
    """
    return ComponentLogger(logging.getLogger(ROOT_LOGGER_NAME), component)
