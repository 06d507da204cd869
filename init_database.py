#!/usr/bin/env python3

"""
Initialize the InfluxDB target database.
"""

import logging
import sys

from gnt2influx.config import load_config
from gnt2influx.database.influx_client import create_influx_client
from gnt2influx.exceptions import IngestionError
from gnt2influx.monitoring.logger_config import IngestionLogger, resolve_log_level

logger = logging.getLogger("init_database")


def main() -> int:
    config_path = sys.argv[1] if len(sys.argv) > 1 else 'config.toml'

    try:
        config = load_config(config_path)
    except IngestionError as e:
        print(f"Configuration error: {e}")
        return 1

    IngestionLogger.setup_logging(
        resolve_log_level(config.logging.level),
        config.logging.format,
        config.logging.file
    )

    with create_influx_client(config.influxdb) as client:
        try:
            client.test_connection()
            client.create_database_if_not_exists()
        except IngestionError as e:
            logger.error(f"Database initialization failed: {e}")
            return 1

    logger.info(f"Database '{config.influxdb.database}' initialized successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
