"""Logging configuration for the Architecture Optimizer."""

import logging
import sys


LOGGER_NAME = "architecture_optimizer"


class OptimizerLogger:
    """Logger configuration for the Architecture Optimizer."""

    def __init__(self, name: str = LOGGER_NAME, level: str = "INFO"):
        """
        Initialize logger.

        Args:
            name: Logger name (child names such as "architecture_optimizer.search" inherit handlers)
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        self.logger = logging.getLogger(name)
        root = logging.getLogger(LOGGER_NAME)
        if root.level == logging.NOTSET:
            root.setLevel(getattr(logging, level.upper()))

        # Avoid duplicate handlers
        if not root.handlers:
            self._setup_handlers(root)

    def _setup_handlers(self, root: logging.Logger):
        """Setup logging handlers."""
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        console_handler.setFormatter(formatter)

        root.addHandler(console_handler)

    def debug(self, message: str, *args, **kwargs):
        """Log debug message."""
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        """Log info message."""
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        """Log warning message."""
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        """Log error message."""
        self.logger.error(message, *args, **kwargs)

    def is_enabled_for(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)


def get_logger(name: str = LOGGER_NAME) -> OptimizerLogger:
    """Get a logger under the optimizer's logger hierarchy."""
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return OptimizerLogger(name)


def set_log_level(level: str):
    """Set the log level for the whole optimizer hierarchy."""
    logging.getLogger(LOGGER_NAME).setLevel(getattr(logging, level.upper()))
