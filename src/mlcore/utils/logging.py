# src/mlcore/utils/logging.py
"""
Logging Utilities for mlcore hosts.

This module provides:
1. A coloured console handler and optional rotating file, error and
   JSON-lines handlers
2. Named timers for ad-hoc profiling of loads and predictions
3. Scalar metric history with optional TensorBoard export, used by the
   model registry to publish per-model performance
4. A process-wide logger with convenience shortcuts

Library modules log through logging.getLogger(__name__); a StructuredLogger
is what an application attaches when it wants those records on disk.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple

import numpy as np
from colorama import Fore, Style, init
from tensorboardX import SummaryWriter

init(autoreset=True)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ERROR_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s'

LOG_FILE_BYTES = 10 * 1024 * 1024
ERROR_FILE_BYTES = 5 * 1024 * 1024


class ColoredFormatter(logging.Formatter):
    """Console formatter that colours the level name."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        # Other handlers receive the same record object
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        return super().format(colored)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, merged with the record's context fields."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'logger': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        entry.update(getattr(record, 'context', {}))

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    Structured logger for applications embedding mlcore.

    Keyword arguments passed to the logging methods become context fields of
    the JSON-lines log. Scalars recorded with log_metric are kept in
    metrics_history, the latest history_size (step, value) pairs per metric,
    and mirrored to TensorBoard when enabled.
    """

    def __init__(
        self,
        name: str = "mlcore",
        log_dir: Optional[str] = None,
        console_level: str = "INFO",
        file_level: str = "DEBUG",
        use_tensorboard: bool = False,
        history_size: int = 1000,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name, also the stem of the log files
            log_dir: Directory for log files; console only when None
            console_level: Console log level
            file_level: Level of the main log file
            use_tensorboard: Mirror metrics to TensorBoard (requires log_dir)
            history_size: Most recent (step, value) pairs kept per metric
        """
        if use_tensorboard and not log_dir:
            raise ValueError("use_tensorboard requires a log_dir")
        if history_size <= 0:
            raise ValueError(f"history_size must be positive, got {history_size}")

        self.name = name
        self.history_size = history_size
        self.log_dir = Path(log_dir) if log_dir else None

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self._remove_handlers()

        self._add_handler(logging.StreamHandler(sys.stdout), console_level,
                          ColoredFormatter(LOG_FORMAT, datefmt='%H:%M:%S'))

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._add_handler(
                logging.handlers.RotatingFileHandler(
                    self._log_path(".log"), maxBytes=LOG_FILE_BYTES, backupCount=5),
                file_level,
                logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'),
            )
            self._add_handler(
                logging.handlers.RotatingFileHandler(
                    self._log_path("_errors.log"), maxBytes=ERROR_FILE_BYTES, backupCount=3),
                "ERROR",
                logging.Formatter(ERROR_FORMAT),
            )
            self._add_handler(logging.FileHandler(self._log_path("_structured.jsonl")),
                              "INFO", JSONFormatter())

        self.tensorboard_writer = None
        if use_tensorboard:
            tb_dir = self.log_dir / "tensorboard"
            tb_dir.mkdir(exist_ok=True)
            self.tensorboard_writer = SummaryWriter(str(tb_dir))

        self._timers: Dict[str, float] = {}
        self.metrics_history: Dict[str, Deque[Tuple[int, float]]] = {}
        self._next_steps: Dict[str, int] = {}

        self.error_count = 0
        self.warning_count = 0

        self.debug("Logger initialized",
                   log_dir=str(self.log_dir) if self.log_dir else None,
                   tensorboard=use_tensorboard)

    def _log_path(self, suffix: str) -> Path:
        return self.log_dir / f"{self.name}{suffix}"

    def _add_handler(self, handler: logging.Handler, level: str, formatter: logging.Formatter):
        handler.setLevel(getattr(logging, level.upper()))
        handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    def _remove_handlers(self):
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def _log(self, level: int, message: str, exc_info: bool = False, **context):
        self.logger.log(level, message, exc_info=exc_info, extra={'context': context})

    # Logging methods with context fields
    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context):
        self.warning_count += 1
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, exc_info: bool = True, **context):
        """Log an error, with the active exception's traceback by default."""
        self.error_count += 1
        self._log(logging.ERROR, message, exc_info=exc_info, **context)

    def exception(self, message: str, **context):
        self.error(message, exc_info=True, **context)

    # Timers
    def start_timer(self, name: str):
        """Start (or restart) a named timer."""
        self._timers[name] = time.perf_counter()

    def stop_timer(self, name: str) -> float:
        """
        Stop a named timer.

        Returns:
            Elapsed seconds, or 0.0 (with a warning) for an unknown timer
        """
        started = self._timers.pop(name, None)
        if started is None:
            self.warning(f"Timer '{name}' not found")
            return 0.0

        elapsed = time.perf_counter() - started
        self.debug(f"Timer '{name}' stopped", timer=name, elapsed_seconds=elapsed)
        return elapsed

    # Metrics
    def log_metric(self, name: str, value: float, step: Optional[int] = None):
        """
        Record a scalar.

        Without a step, the one after the metric's previous step is used.
        """
        history = self.metrics_history.get(name)
        if history is None:
            history = self.metrics_history[name] = deque(maxlen=self.history_size)
        if step is None:
            step = self._next_steps.get(name, 0)
        self._next_steps[name] = step + 1
        history.append((step, float(value)))

        self.debug(f"Metric '{name}'", metric=name, value=value, step=step)

        if self.tensorboard_writer is not None:
            self.tensorboard_writer.add_scalar(name, value, step)

    def log_metrics(self, metrics: Dict[str, float], step: Optional[int] = None):
        for name, value in metrics.items():
            self.log_metric(name, value, step)

    def log_performance(self, model_name: str, metrics: Dict[str, Any],
                        step: Optional[int] = None):
        """
        Record the scalar entries of a model's PerformanceMetrics dict as
        '<model_name>/<field>'.

        Non-finite values (the min latency before any inference) are skipped.
        """
        for key, value in metrics.items():
            if isinstance(value, (int, float, np.number)) and np.isfinite(value):
                self.log_metric(f"{model_name}/{key}", float(value), step)

    def close(self):
        """Flush the TensorBoard writer and detach every handler."""
        self.debug("Logger closing",
                   errors=self.error_count,
                   warnings=self.warning_count,
                   metrics=len(self.metrics_history))

        if self.tensorboard_writer is not None:
            self.tensorboard_writer.close()
            self.tensorboard_writer = None

        self._remove_handlers()


# Process-wide logger
_global_logger: Optional[StructuredLogger] = None


def setup_global_logger(**kwargs) -> StructuredLogger:
    """Replace the process-wide logger; kwargs go to StructuredLogger."""
    global _global_logger
    if _global_logger is not None:
        _global_logger.close()
    _global_logger = StructuredLogger(**kwargs)
    return _global_logger


def get_logger() -> StructuredLogger:
    """Process-wide logger, created with defaults on first use."""
    global _global_logger
    if _global_logger is None:
        _global_logger = StructuredLogger()
    return _global_logger


def log_info(message: str, **context):
    get_logger().info(message, **context)


def log_error(message: str, **context):
    get_logger().error(message, **context)


def log_warning(message: str, **context):
    get_logger().warning(message, **context)


def log_debug(message: str, **context):
    get_logger().debug(message, **context)
