"""
Custom exceptions for Twin Sensor Hub.

These exceptions provide clear error semantics across the system.
Use them to distinguish between bad samples, bad recordings, and configuration errors.
"""


class AnomalyDetectionError(Exception):
    """Base exception for anomaly detection failures."""
    pass


class DataValidationError(AnomalyDetectionError):
    """Raised when a sensor or performance sample fails validation."""
    pass


class ConfigurationError(AnomalyDetectionError):
    """Raised when configuration is invalid or missing."""
    pass
