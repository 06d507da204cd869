"""
Canonical record model shared by the log parsers and the InfluxDB writer.
"""

from datetime import datetime
from typing import Optional

import pytz
from pydantic import BaseModel, ConfigDict, field_validator


NUMERIC_FIELDS = (
    'longitude', 'latitude', 'altitude', 'speed', 'level',
    'qual', 'snr', 'cqi', 'dl_bitrate', 'ul_bitrate',
)

TEXT_FIELDS = (
    'operator_name', 'operator_code', 'cgi', 'cellname', 'node',
    'cell_id', 'lac', 'network_tech', 'network_mode', 'arfcn',
)


class NetworkMeasurement(BaseModel):
    """One drive-test observation at a point in time.

    Every attribute except ``timestamp`` is optional; ``None`` means the
    source did not report it. Instances are immutable.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime

    longitude: Optional[float] = None
    latitude: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None

    operator_name: Optional[str] = None
    operator_code: Optional[str] = None
    cgi: Optional[str] = None
    cellname: Optional[str] = None
    node: Optional[str] = None
    cell_id: Optional[str] = None
    lac: Optional[str] = None
    network_tech: Optional[str] = None
    network_mode: Optional[str] = None

    level: Optional[float] = None
    qual: Optional[float] = None
    snr: Optional[float] = None
    cqi: Optional[float] = None
    arfcn: Optional[str] = None
    dl_bitrate: Optional[float] = None
    ul_bitrate: Optional[float] = None

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        # Naive values are taken as UTC
        if v.tzinfo is None:
            return pytz.UTC.localize(v)
        return v.astimezone(pytz.UTC)
