"""
InfluxDB client supporting both the 1.x and 2.x APIs.

The dialect is chosen once, from configuration: a token together with an
organization selects the 2.x API (the database name doubles as the bucket
name), anything else talks to the 1.x HTTP API.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import requests
from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from gnt2influx.config import InfluxDbConfig
from gnt2influx.exceptions import InfluxConnectionError, InfluxWriteError
from gnt2influx.ingestion.models import NUMERIC_FIELDS, NetworkMeasurement

MEASUREMENT = 'network_measurements'
MEASUREMENT_TYPE = 'gnettrack'

# Indexed attributes; absent ones contribute no tag
TAG_FIELDS = ('operator_name', 'operator_code', 'cell_id', 'network_tech', 'network_mode', 'lac')

STRING_FIELDS = ('cgi', 'cellname', 'node', 'arfcn')


def build_point(record: NetworkMeasurement) -> Point:
    """Build the InfluxDB point for one measurement."""
    point = Point(MEASUREMENT).tag('measurement_type', MEASUREMENT_TYPE)

    for name in TAG_FIELDS:
        value = getattr(record, name)
        if value is not None:
            point.tag(name, value)

    for name in NUMERIC_FIELDS:
        value = getattr(record, name)
        if value is not None:
            point.field(name, float(value))

    for name in STRING_FIELDS:
        value = getattr(record, name)
        if value is not None:
            point.field(name, str(value))

    point.time(record.timestamp, WritePrecision.NS)
    return point


class InfluxClient(ABC):
    """Common interface of the 1.x and 2.x clients."""

    dialect = ''

    def __init__(self, config: InfluxDbConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.url = config.url.rstrip('/')
        self.database = config.database
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def test_connection(self) -> None:
        """Raise InfluxConnectionError if the server cannot be reached."""

    @abstractmethod
    def create_database_if_not_exists(self) -> None:
        """Make sure the target database exists (where the API allows it)."""

    @abstractmethod
    def _write_points(self, points: List[Point]) -> None:
        """Send a batch of points in one request."""

    def health_check(self) -> bool:
        """Check if InfluxDB is reachable."""
        try:
            self.test_connection()
            return True
        except InfluxConnectionError:
            return False

    def format_records(self, records: Sequence[NetworkMeasurement]) -> List[Point]:
        return [build_point(record) for record in records]

    def format_line_protocol(self, records: Sequence[NetworkMeasurement]) -> List[str]:
        """Render records as line protocol, one line per record.

        A record without any field value renders as an empty string.
        """
        return [point.to_line_protocol() for point in self.format_records(records)]

    def write_records(self, records: Sequence[NetworkMeasurement]) -> None:
        """Write all records as a single request.

        Any failure fails the whole batch with InfluxWriteError.
        """
        if not records:
            return

        self.logger.info(f"Attempting to write {len(records)} records to InfluxDB {self.dialect}...")

        try:
            points = self.format_records(records)
            empty = sum(1 for point in points if not point.to_line_protocol())
            if empty:
                raise ValueError(f"{empty} of {len(points)} records have no field values")
            self._write_points(points)
        except Exception as e:
            self.logger.error(f"Failed to write records to InfluxDB {self.dialect}: {e}")
            raise InfluxWriteError(f"Write operation failed: {e}") from e

        self.logger.info(f"Successfully wrote {len(records)} records to InfluxDB {self.dialect}")

    def write_records_batch(self, records: Sequence[NetworkMeasurement], batch_size: int) -> None:
        """Write records in consecutive chunks of at most batch_size.

        Stops at the first failing chunk; chunks already written stay written.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        if not records:
            return

        self.logger.info(f"Writing {len(records)} records in batches of {batch_size}")

        for batch_number, start in enumerate(range(0, len(records), batch_size), start=1):
            batch = records[start:start + batch_size]
            self.logger.debug(f"Writing batch {batch_number} with {len(batch)} records")
            self.write_records(batch)

        self.logger.info(f"Successfully wrote all {len(records)} records to InfluxDB")

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class InfluxV1Client(InfluxClient):
    """InfluxDB 1.x client over the /query and /write HTTP endpoints."""

    dialect = '1.x'

    def __init__(self, config: InfluxDbConfig, logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        self.session = requests.Session()

        if config.username:
            self.session.auth = (config.username, config.password)

    def _query(self, query: str, method: str = 'GET') -> dict:
        """Run an InfluxQL statement and return the decoded response."""
        response = self.session.request(method, f"{self.url}/query", params={'q': query})
        response.raise_for_status()

        payload = response.json()
        if 'error' in payload:
            raise RuntimeError(payload['error'])

        for result in payload.get('results', []):
            if 'error' in result:
                raise RuntimeError(result['error'])

        return payload

    def test_connection(self) -> None:
        try:
            self._query('SHOW DATABASES')
        except Exception as e:
            self.logger.error(f"Failed to connect to InfluxDB 1.x: {e}")
            raise InfluxConnectionError(f"Connection test failed: {e}") from e

        self.logger.info("Successfully connected to InfluxDB 1.x")

    def create_database_if_not_exists(self) -> None:
        try:
            self._query(f'CREATE DATABASE "{self.database}"', method='POST')
            self.logger.info(f"Database '{self.database}' created or already exists")
        except Exception as e:
            # Treated as already existing
            self.logger.debug(f"Database creation result: {e}")

    def _write_points(self, points: List[Point]) -> None:
        body = '\n'.join(point.to_line_protocol() for point in points)

        self.logger.debug(f"Writing to measurement '{MEASUREMENT}' in database '{self.database}'")

        response = self.session.post(
            f"{self.url}/write",
            params={'db': self.database, 'precision': 'ns'},
            data=body.encode('utf-8')
        )
        response.raise_for_status()

    def close(self) -> None:
        self.session.close()


class InfluxV2Client(InfluxClient):
    """InfluxDB 2.x client (token/org authentication, bucket writes)."""

    dialect = '2.x'

    def __init__(self, config: InfluxDbConfig, logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        self.org = config.org
        self.bucket = config.database
        self.client = InfluxDBClient(url=config.url, token=config.token, org=config.org)
        self.write_api = self.client.write_api(write_options=SYNCHRONOUS)

    def test_connection(self) -> None:
        try:
            health = self.client.health()
        except Exception as e:
            self.logger.error(f"Failed to connect to InfluxDB 2.x: {e}")
            raise InfluxConnectionError(f"Connection test failed: {e}") from e

        if health.status != 'pass':
            self.logger.error(f"Failed to connect to InfluxDB 2.x: {health.message}")
            raise InfluxConnectionError(f"Connection test failed: {health.message}")

        self.logger.info("Successfully connected to InfluxDB 2.x")

    def create_database_if_not_exists(self) -> None:
        # Buckets are managed outside this tool
        self.logger.info(f"Using InfluxDB 2.x bucket: {self.bucket}")

    def _write_points(self, points: List[Point]) -> None:
        self.logger.debug(f"Writing to measurement '{MEASUREMENT}' in bucket '{self.bucket}'")
        self.write_api.write(
            bucket=self.bucket,
            org=self.org,
            record=points,
            write_precision=WritePrecision.NS
        )

    def close(self) -> None:
        self.write_api.close()
        self.client.close()


def create_influx_client(config: InfluxDbConfig, logger: Optional[logging.Logger] = None) -> InfluxClient:
    """Pick the client for the configured dialect."""
    if config.token and config.org:
        return InfluxV2Client(config, logger)
    return InfluxV1Client(config, logger)
