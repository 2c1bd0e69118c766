# src/mlcore/utils/__init__.py
"""
Utilities for mlcore.

This package provides:
1. Structured logging with console, file and TensorBoard outputs
2. Rolling-window inference performance metrics
"""

from .logging import (
    StructuredLogger,
    ColoredFormatter,
    setup_global_logger,
    get_logger,
    log_info,
    log_error,
    log_warning,
    log_debug
)

from .metrics import (
    PerformanceMetrics,
    PerformanceTracker,
    DEFAULT_WINDOW_SIZE
)

__all__ = [
    # Logging
    'StructuredLogger',
    'ColoredFormatter',
    'setup_global_logger',
    'get_logger',
    'log_info',
    'log_error',
    'log_warning',
    'log_debug',

    # Metrics
    'PerformanceMetrics',
    'PerformanceTracker',
    'DEFAULT_WINDOW_SIZE',
]
