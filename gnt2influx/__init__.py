"""
G-NetTrack to InfluxDB Ingestion Pipeline

Parses G-NetTrack drive-test logs (CSV/TSV exports and KML placemark
exports) into normalized network measurements and writes them to an
InfluxDB 1.x database or 2.x bucket in batches.
"""

__version__ = "0.1.0"
