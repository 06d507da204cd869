"""
Shared fixtures for the test suite.
"""

import logging
from datetime import datetime
from typing import List

import pytest
import pytz

from gnt2influx.config import ENV_OVERRIDES, InfluxDbConfig
from gnt2influx.database.influx_client import InfluxClient
from gnt2influx.exceptions import InfluxConnectionError
from gnt2influx.ingestion.models import NetworkMeasurement

CSV_HEADER = 'Timestamp,Longitude,Latitude,Speed,Operator,CellID,NetworkTech,Level,Qual,SNR'


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config lookups, .env files and env overrides away from the host."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def write_file(tmp_path):
    """Write text to a file under tmp_path and return its path as a string."""
    def _write(name: str, content: str) -> str:
        path = tmp_path / name
        path.write_text(content, encoding='utf-8')
        return str(path)
    return _write


@pytest.fixture
def sample_csv(write_file):
    return write_file('sample.csv', '\n'.join([
        CSV_HEADER,
        '2024-01-15 10:30:00,139.7,35.6,12.5,KDDI,12345,LTE,-95,-10,15.5',
        '2024-01-15 10:30:05,139.8,35.7,13.0,KDDI,12346,LTE,-97,-11,14.0',
        '2024-01-15 10:30:10,139.9,35.8,N/A,KDDI,12347,5G,-90,null,',
    ]) + '\n')


def make_record(**overrides) -> NetworkMeasurement:
    values = {
        'timestamp': datetime(2024, 1, 15, 10, 30, 0, tzinfo=pytz.UTC),
        'level': -95.0,
        'operator_name': 'KDDI',
        'network_tech': 'LTE',
    }
    values.update(overrides)
    return NetworkMeasurement(**values)


class RecordingClient(InfluxClient):
    """InfluxClient that records calls instead of talking to a server."""

    dialect = 'fake'

    def __init__(self, fail_on_batch: int = 0, connected: bool = True):
        super().__init__(InfluxDbConfig())
        self.fail_on_batch = fail_on_batch
        self.connected = connected
        self.calls: List[str] = []
        self.batches: List[int] = []
        self.closed = False

    def test_connection(self) -> None:
        self.calls.append('test_connection')
        if not self.connected:
            raise InfluxConnectionError("Connection test failed: connection refused")

    def create_database_if_not_exists(self) -> None:
        self.calls.append('create_database')

    def _write_points(self, points) -> None:
        self.batches.append(len(points))
        if len(self.batches) == self.fail_on_batch:
            raise RuntimeError("server returned 500")

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_client():
    return RecordingClient()
