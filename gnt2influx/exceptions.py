"""
Exception hierarchy for the ingestion pipeline.
"""

from typing import Optional


class IngestionError(Exception):
    """Root of the pipeline exception hierarchy."""


class ConfigError(IngestionError):
    """Configuration file could not be read or failed validation."""


class ParseError(IngestionError):
    """A log file could not be parsed under the abort-on-error policy."""

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        placemark: Optional[int] = None
    ):
        super().__init__(message)
        self.line_number = line_number
        self.placemark = placemark


class InfluxConnectionError(IngestionError):
    """InfluxDB did not answer the connectivity check."""


class InfluxWriteError(IngestionError):
    """A batch of points was rejected or could not be sent."""
