"""
Ingestion worker that parses a G-NetTrack log and uploads it to InfluxDB.
"""

import argparse
import logging
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Union

from gnt2influx import __version__
from gnt2influx.config import DEFAULT_CONFIG_PATH, Config, load_config
from gnt2influx.database.influx_client import InfluxClient, create_influx_client
from gnt2influx.exceptions import ConfigError, IngestionError
from gnt2influx.ingestion.csv_processor import CSVProcessor
from gnt2influx.ingestion.kml_processor import KMLProcessor
from gnt2influx.ingestion.models import NetworkMeasurement
from gnt2influx.monitoring.health import HealthChecker
from gnt2influx.monitoring.logger_config import IngestionLogger, OperationLogger, resolve_log_level

logger = logging.getLogger(__name__)

# Records and line-protocol lines shown in verbose mode
PREVIEW_COUNT = 3


class IngestionWorker:
    """Main worker that orchestrates parse -> batch upload for one file."""

    def __init__(self, config: Config, influx_client: Optional[InfluxClient] = None):
        self.config = config
        self.influx_client = influx_client or create_influx_client(config.influxdb)

        self.skip_invalid = config.processing.skip_invalid
        self.batch_size = config.processing.batch_size

        logger.info(
            f"Ingestion worker initialized "
            f"(InfluxDB {self.influx_client.dialect} at {self.influx_client.url})"
        )

    def get_processor(self, file_path: Union[str, Path]):
        """KML exports go to the KML processor, everything else is tabular."""
        if Path(file_path).suffix.lower() == '.kml':
            return KMLProcessor(skip_invalid=self.skip_invalid)
        return CSVProcessor(skip_invalid=self.skip_invalid)

    def parse_file(self, file_path: Union[str, Path]) -> List[NetworkMeasurement]:
        processor = self.get_processor(file_path)
        return processor.parse_file(str(file_path))

    def process_file(
        self,
        file_path: Union[str, Path],
        dry_run: bool = False,
        verbose: bool = False
    ) -> int:
        """Parse a log file and upload its records. Returns the record count."""
        correlation_id = str(uuid.uuid4())
        logger.info(f"Processing log file: {file_path} - Correlation ID: {correlation_id}")

        with OperationLogger('parse', correlation_id, file=str(file_path)):
            records = self.parse_file(file_path)

        logger.info(f"Successfully parsed {len(records)} records")

        if not records:
            logger.info("No records to process")
            return 0

        if verbose:
            for i, record in enumerate(records[:PREVIEW_COUNT], start=1):
                logger.debug(f"Record {i}: {record!r}")

        if dry_run:
            logger.info(f"Dry run completed. {len(records)} records would be uploaded.")
            if verbose:
                self._log_line_protocol_preview(records)
            return len(records)

        with OperationLogger('upload', correlation_id, records=len(records), batch_size=self.batch_size):
            logger.info("Testing InfluxDB connection...")
            self.influx_client.test_connection()

            logger.info("Creating database if it doesn't exist...")
            self.influx_client.create_database_if_not_exists()

            logger.info(f"Uploading {len(records)} records to InfluxDB...")
            self.influx_client.write_records_batch(records, self.batch_size)

        logger.info(
            f"Successfully uploaded {len(records)} records to '{self.influx_client.database}' "
            f"on {self.influx_client.url}"
        )
        return len(records)

    def _log_line_protocol_preview(self, records: Sequence[NetworkMeasurement]) -> None:
        logger.info("Sample InfluxDB line protocol format (dry run):")
        lines = self.influx_client.format_line_protocol(records[:PREVIEW_COUNT])
        for i, line in enumerate(lines, start=1):
            logger.info(f"InfluxDB line {i}: {line}")

    def test_connection(self) -> bool:
        """Check InfluxDB connectivity and log the result."""
        result = HealthChecker(self.influx_client).check_influx_health()
        healthy = result['status'] == 'healthy'

        logger.info(
            f"Health check - InfluxDB {result['dialect']}: {result['status']} "
            f"({result['response_time_ms']}ms)"
        )

        return healthy

    def close(self) -> None:
        self.influx_client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gnt2influx',
        description='Converts G-NetTrack log files to InfluxDB format and uploads them'
    )
    parser.add_argument('--input', '-i', metavar='FILE', help='Path to G-NetTrack log file (CSV, TSV or KML)')
    parser.add_argument('--config', '-c', metavar='FILE', default=DEFAULT_CONFIG_PATH,
                        help='Path to configuration file')
    parser.add_argument('--test-connection', action='store_true',
                        help='Test InfluxDB connection without uploading data')
    parser.add_argument('--dry-run', action='store_true', help="Parse the log file but don't upload to InfluxDB")
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    IngestionLogger.setup_logging(resolve_log_level(None, args.verbose))

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    IngestionLogger.setup_logging(
        resolve_log_level(config.logging.level, args.verbose),
        config.logging.format,
        config.logging.file
    )

    if args.test_connection:
        worker = IngestionWorker(config)
        try:
            logger.info("Testing InfluxDB connection...")
            healthy = worker.test_connection()
        finally:
            worker.close()

        if healthy:
            logger.info("Connection test successful!")
            return 0
        return 1

    if not args.input:
        logger.error("Input file is required when not testing connection")
        return 1

    if not Path(args.input).exists():
        logger.error(f"Input file does not exist: {args.input}")
        return 1

    worker = IngestionWorker(config)
    try:
        worker.process_file(args.input, dry_run=args.dry_run, verbose=args.verbose)
    except (IngestionError, OSError) as e:
        logger.error(f"Processing failed: {e}")
        return 1
    finally:
        worker.close()

    logger.info("Successfully completed processing!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
