"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    AnomalyDetectionError,
    ConfigurationError,
    DataValidationError,
)
from .logging_config import setup_logging

__all__ = [
    "Config",
    "config",
    "AnomalyDetectionError",
    "DataValidationError",
    "ConfigurationError",
    "setup_logging",
]
