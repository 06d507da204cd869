"""
Health checks for the InfluxDB target.
"""

import logging
from typing import Dict, Any
from datetime import datetime

from gnt2influx.database.influx_client import InfluxClient
from gnt2influx.exceptions import InfluxConnectionError

logger = logging.getLogger(__name__)


class HealthChecker:
    """Provides health checks for system components."""

    def __init__(self, influx_client: InfluxClient):
        self.influx_client = influx_client

    def check_influx_health(self) -> Dict[str, Any]:
        """Check InfluxDB connectivity."""
        start_time = datetime.now()

        result = {
            'dialect': self.influx_client.dialect,
            'url': self.influx_client.url,
            'database': self.influx_client.database,
        }

        try:
            self.influx_client.test_connection()
            result['status'] = 'healthy'

        except InfluxConnectionError as e:
            logger.error(f"InfluxDB health check failed: {e}")
            result['status'] = 'unhealthy'
            result['error'] = str(e)

        result['response_time_ms'] = int((datetime.now() - start_time).total_seconds() * 1000)
        result['timestamp'] = datetime.now().isoformat()
        return result
