"""
Structured logging system for JobMatch.

Provides centralized logging with multiple output destinations,
log levels, and metrics tracking for monitoring matching runs
(AI availability, recovery escalation, supply shortfalls and
persistence health).
"""

import copy
import json
import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring matching runs.
    """

    def __init__(
        self,
        name: str = "jobmatch",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the underlying stdlib logger
            level: Console threshold (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for the daily log file (default: logs/)
            enable_file: Also write every record, DEBUG included, to the log file
            enable_console: Echo records at `level` or above to stdout
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()

        # Pipelines for different users run on worker threads
        self._lock = threading.Lock()
        self.metrics = {
            "users_processed": 0,
            "ai_calls": 0,
            "ai_failures": 0,
            "ai_fallbacks": 0,
            "recovery_levels": {},
            "supply_shortfalls": 0,
            "supply_exhausted": 0,
            "persistence_writes": 0,
            "persistence_errors": 0,
            "errors_by_type": {},
        }

        if enable_console:
            self._attach(
                logging.StreamHandler(sys.stdout),
                getattr(logging, level.upper()),
                '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            )

        if enable_file:
            log_dir = log_dir or Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"jobmatch_{datetime.now().strftime('%Y%m%d')}.log"
            self._attach(
                logging.FileHandler(log_file, encoding='utf-8'),
                logging.DEBUG,
                '%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s',
            )

    def _attach(self, handler: logging.Handler, level: int, fmt: str):
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S'))
        self.logger.addHandler(handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_user_processed(self):
        with self._lock:
            self.metrics["users_processed"] += 1

    def record_ai_call(self):
        """Increment AI call counter."""
        with self._lock:
            self.metrics["ai_calls"] += 1

    def record_ai_failure(self, error_type: str):
        """Record a failed AI scoring call and the reason it failed."""
        with self._lock:
            self.metrics["ai_failures"] += 1
            self._count_error(error_type)

    def record_ai_fallback(self):
        with self._lock:
            self.metrics["ai_fallbacks"] += 1

    def record_recovery_level(self, level: int):
        """Record the terminal recovery level of one user's run."""
        with self._lock:
            levels = self.metrics["recovery_levels"]
            levels[level] = levels.get(level, 0) + 1

    def record_supply_shortfall(self):
        with self._lock:
            self.metrics["supply_shortfalls"] += 1

    def record_supply_exhausted(self):
        with self._lock:
            self.metrics["supply_exhausted"] += 1

    def record_persistence_write(self):
        with self._lock:
            self.metrics["persistence_writes"] += 1

    def record_persistence_error(self, error_type: str):
        """Record a failed upsert for one user."""
        with self._lock:
            self.metrics["persistence_errors"] += 1
            self._count_error(error_type)

    def _count_error(self, error_type: str):
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        with self._lock:
            metrics_copy = copy.deepcopy(self.metrics)

        attempts = metrics_copy["persistence_writes"] + metrics_copy["persistence_errors"]
        metrics_copy["persistence_error_rate"] = (
            round(metrics_copy["persistence_errors"] / attempts, 3) if attempts else 0.0
        )
        calls = metrics_copy["ai_calls"]
        metrics_copy["ai_failure_rate"] = (
            round(metrics_copy["ai_failures"] / calls, 3) if calls else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Matching Run Metrics ===")
        self.info(f"Users processed: {metrics['users_processed']}")
        self.info(
            f"AI calls: {metrics['ai_calls']} "
            f"(failures: {metrics['ai_failures']}, fallbacks: {metrics['ai_fallbacks']})"
        )
        self.info(
            f"Persistence: {metrics['persistence_writes']} writes, "
            f"{metrics['persistence_errors']} errors "
            f"({metrics['persistence_error_rate'] * 100:.1f}% error rate)"
        )

        if metrics["recovery_levels"]:
            self.info("Recovery levels:")
            for level, count in sorted(metrics["recovery_levels"].items()):
                self.info(f"  Level {level}: {count}")

        if metrics["supply_shortfalls"] or metrics["supply_exhausted"]:
            self.info(
                f"Supply shortfalls: {metrics['supply_shortfalls']} "
                f"(exhausted: {metrics['supply_exhausted']})"
            )

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobmatch",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
