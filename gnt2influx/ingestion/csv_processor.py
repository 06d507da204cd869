"""
CSV/TSV processor for G-NetTrack tabular log exports.
"""

import csv
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

import pytz

from gnt2influx.exceptions import ParseError
from gnt2influx.ingestion.models import NUMERIC_FIELDS, NetworkMeasurement

# Lower-cased header name -> canonical field
COLUMN_ALIASES: Dict[str, str] = {
    'timestamp': 'timestamp',
    'time': 'timestamp',
    'longitude': 'longitude',
    'lon': 'longitude',
    'latitude': 'latitude',
    'lat': 'latitude',
    'altitude': 'altitude',
    'height': 'altitude',
    'speed': 'speed',
    'operator': 'operator_name',
    'operator_name': 'operator_name',
    'mcc-mnc': 'operator_code',
    'operator_code': 'operator_code',
    'cgi': 'cgi',
    'cellname': 'cellname',
    'node': 'node',
    'rnc': 'node',
    'enodeb': 'node',
    'cellid': 'cell_id',
    'cell_id': 'cell_id',
    'lac': 'lac',
    'networktech': 'network_tech',
    'network_tech': 'network_tech',
    'tech': 'network_tech',
    'networkmode': 'network_mode',
    'network_mode': 'network_mode',
    'mode': 'network_mode',
    'level': 'level',
    'rsrp': 'level',
    'rscp': 'level',
    'rxlevel': 'level',
    'qual': 'qual',
    'rsrq': 'qual',
    'ecno': 'qual',
    'rxqual': 'qual',
    'snr': 'snr',
    'cqi': 'cqi',
    'arfcn': 'arfcn',
    'dl_bitrate': 'dl_bitrate',
    'downlink_bitrate': 'dl_bitrate',
    'ul_bitrate': 'ul_bitrate',
    'uplink_bitrate': 'ul_bitrate',
}

# Tried in order, first match wins
TIMESTAMP_FORMATS = [
    '%Y-%m-%d %H:%M:%S',
    '%Y/%m/%d %H:%M:%S',
    '%d.%m.%Y %H:%M:%S',
    '%Y-%m-%d %H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y.%m.%d_%H.%M.%S',
]

NULL_VALUES = ('', 'N/A', 'null')

_EPOCH_PATTERN = re.compile(r'^-?\d+$')


def parse_float_optional(value: str) -> Optional[float]:
    """Parse a numeric cell; missing or unparseable values become None."""
    if value in NULL_VALUES:
        return None

    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def parse_text_optional(value: str) -> Optional[str]:
    """Parse a text cell; blank cells become None."""
    if not value or not value.strip():
        return None
    return value.strip()


def parse_timestamp(value: str) -> datetime:
    """Parse a log timestamp as UTC.

    Empty values yield the current time. Raises ValueError when no
    known format or Unix epoch interpretation fits.
    """
    value = value.strip()
    if not value:
        return datetime.now(pytz.UTC)

    for fmt in TIMESTAMP_FORMATS:
        try:
            return pytz.UTC.localize(datetime.strptime(value, fmt))
        except ValueError:
            continue

    if _EPOCH_PATTERN.match(value):
        try:
            return datetime.fromtimestamp(int(value), tz=pytz.UTC)
        except (OverflowError, OSError, ValueError):
            pass

    raise ValueError(f"Unable to parse timestamp: '{value}'")


def undecodable_field(row: List[str]) -> Optional[int]:
    """Index of the first cell holding bytes that are not valid UTF-8, or None.

    Files are read with surrogateescape, so undecodable bytes survive as
    lone surrogates that refuse to encode back to UTF-8.
    """
    for index, value in enumerate(row):
        try:
            value.encode('utf-8')
        except UnicodeEncodeError:
            return index
    return None


class CSVProcessor:
    """Parses G-NetTrack CSV/TSV logs into NetworkMeasurement records."""

    def __init__(self, skip_invalid: bool = True, logger: Optional[logging.Logger] = None):
        self.skip_invalid = skip_invalid
        self.logger = logger or logging.getLogger(__name__)
        self.errors: List[str] = []

    def detect_delimiter(self, file_path: str) -> str:
        """Return a tab if the first line contains one, otherwise a comma."""
        with open(file_path, 'r', encoding='utf-8-sig', errors='surrogateescape', newline='') as f:
            first_line = f.readline()

        return '\t' if '\t' in first_line else ','

    def parse_file(self, file_path: str) -> List[NetworkMeasurement]:
        """Parse a log file, preserving row order.

        Raises ParseError on the first bad row unless skip_invalid is set.
        """
        self.errors = []
        delimiter = self.detect_delimiter(file_path)
        self.logger.debug(f"Using delimiter {delimiter!r} for {file_path}")

        records = []

        with open(file_path, 'r', encoding='utf-8-sig', errors='surrogateescape', newline='') as f:
            reader = csv.reader(f, delimiter=delimiter)

            try:
                header = next(reader)
            except StopIteration:
                self.logger.info(f"No header row in {file_path}, nothing to parse")
                return records
            except csv.Error as e:
                raise ParseError(f"Error reading header of {file_path}: {e}", line_number=1) from e

            bad_field = undecodable_field(header)
            if bad_field is not None:
                raise ParseError(
                    f"Error reading header of {file_path}: invalid UTF-8 in column {bad_field + 1}",
                    line_number=1
                )

            columns = self._map_header(header)
            line_number = 1

            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    line_number += 1
                    self._handle_error('malformed line', line_number, e)
                    continue

                if not row:
                    continue

                line_number += 1

                bad_field = undecodable_field(row)
                if bad_field is not None:
                    error = ValueError(f"invalid UTF-8 in field {bad_field + 1}")
                    self._handle_error('malformed line', line_number, error)
                    continue

                if len(row) != len(header):
                    error = ValueError(
                        f"expected {len(header)} fields, found {len(row)}"
                    )
                    self._handle_error('malformed line', line_number, error)
                    continue

                try:
                    records.append(self._parse_row(row, columns))
                except ValueError as e:
                    self._handle_error('invalid record', line_number, e)

        if self.errors:
            self.logger.warning(f"Encountered {len(self.errors)} errors while parsing {file_path}")

        self.logger.debug(f"Parsed {len(records)} records from {file_path}")
        return records

    def _map_header(self, header: List[str]) -> List[Optional[str]]:
        """Resolve each header cell to a canonical field name, or None."""
        columns = []
        for name in header:
            field = COLUMN_ALIASES.get(name.strip().lower())
            if field is None:
                self.logger.debug(f"Unknown column: {name}")
            columns.append(field)
        return columns

    def _parse_row(self, row: List[str], columns: List[Optional[str]]) -> NetworkMeasurement:
        """Convert a single data row. Only the timestamp can fail."""
        values = {'timestamp': datetime.now(pytz.UTC)}

        for field, value in zip(columns, row):
            if field is None:
                continue

            if field == 'timestamp':
                values[field] = parse_timestamp(value)
            elif field in NUMERIC_FIELDS:
                values[field] = parse_float_optional(value)
            else:
                values[field] = parse_text_optional(value)

        return NetworkMeasurement(**values)

    def _handle_error(self, kind: str, line_number: int, error: Exception) -> None:
        """Apply the skip/abort policy to a failed row."""
        self.errors.append(f"Line {line_number}: {error}")

        if self.skip_invalid:
            self.logger.warning(f"Skipping {kind} at line {line_number}: {error}")
            return

        raise ParseError(
            f"Error parsing {kind} at line {line_number}: {error}",
            line_number=line_number
        ) from error
