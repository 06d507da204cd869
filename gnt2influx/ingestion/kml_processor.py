"""
KML processor for G-NetTrack placemark exports.

Each <Placemark> in the export is one measurement. Measurement values live
in <ExtendedData> as <Data name="..."><value>...</value></Data> pairs whose
names are Japanese labels, and the position lives in <coordinates>.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import List, Optional

import pytz

from gnt2influx.exceptions import ParseError
from gnt2influx.ingestion.models import NetworkMeasurement

# KML exports come from a single carrier's build of the app
KML_OPERATOR_NAME = 'KDDI'

# <Data name="..."> label -> PlacemarkData attribute
DATA_LABELS = {
    '技術': 'technology',
    'RSRP': 'rsrp',
    '速度': 'speed',
    '高度': 'altitude',
    '時間': 'time',
}

# (format, applied to the value with '_' replaced by a space)
KML_TIMESTAMP_FORMATS = [
    ('%Y.%m.%d %H.%M.%S', True),
    ('%Y.%m.%d_%H.%M.%S', False),
    ('%Y-%m-%d %H:%M:%S', True),
    ('%Y/%m/%d %H:%M:%S', True),
]


def parse_kml_timestamp(time_str: str) -> datetime:
    """Parse a placemark time such as '2025.10.03_10.20.09' as UTC."""
    raw = time_str.strip()
    cleaned = raw.replace('_', ' ')

    for fmt, use_cleaned in KML_TIMESTAMP_FORMATS:
        try:
            return pytz.UTC.localize(datetime.strptime(cleaned if use_cleaned else raw, fmt))
        except ValueError:
            continue

    raise ValueError(f"Unable to parse KML timestamp: '{time_str}'")


def parse_with_unit(value: Optional[str], unit: str) -> Optional[float]:
    """Parse a value like '42 km/h' or '-95 dBm', dropping the unit."""
    if value is None:
        return None

    return _parse_float(value.replace(unit, ''))


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value.strip())
    except ValueError:
        return None


def _local_name(tag: str) -> str:
    """Strip the XML namespace from a tag."""
    return tag.rsplit('}', 1)[-1]


def _element_text(element: ET.Element) -> str:
    return ''.join(element.itertext()).strip()


class PlacemarkData:
    """Raw strings collected from one <Placemark>."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.technology: Optional[str] = None
        self.rsrp: Optional[str] = None
        self.speed: Optional[str] = None
        self.altitude: Optional[str] = None
        self.time: Optional[str] = None
        self.coordinates: Optional[str] = None

    def add_data(self, name: str, value: str) -> None:
        attribute = DATA_LABELS.get(name)
        if attribute is None:
            self.logger.debug(f"Unknown KML data field: {name}")
            return
        setattr(self, attribute, value)

    def set_coordinates(self, coordinates: str) -> None:
        self.coordinates = coordinates

    def to_record(self) -> NetworkMeasurement:
        """Convert to a NetworkMeasurement.

        Raises ValueError if the placemark carries a time that cannot be
        parsed. A placemark without any time is stamped with the current
        time.
        """
        longitude, latitude = self._parse_coordinates()

        if self.time is not None:
            timestamp = parse_kml_timestamp(self.time)
        else:
            timestamp = datetime.now(pytz.UTC)

        return NetworkMeasurement(
            timestamp=timestamp,
            longitude=longitude,
            latitude=latitude,
            altitude=parse_with_unit(self.altitude, 'm'),
            speed=parse_with_unit(self.speed, 'km/h'),
            level=parse_with_unit(self.rsrp, 'dBm'),
            operator_name=KML_OPERATOR_NAME,
            network_tech=self.technology or None,
        )

    def _parse_coordinates(self):
        """Return (longitude, latitude); the altitude token is ignored."""
        if not self.coordinates:
            return None, None

        parts = self.coordinates.strip().split(',')
        if len(parts) < 2:
            return None, None

        return _parse_float(parts[0]), _parse_float(parts[1])


class KMLProcessor:
    """Parses G-NetTrack KML exports into NetworkMeasurement records."""

    def __init__(self, skip_invalid: bool = True, logger: Optional[logging.Logger] = None):
        self.skip_invalid = skip_invalid
        self.logger = logger or logging.getLogger(__name__)
        self.errors: List[str] = []

    def parse_file(self, file_path: str) -> List[NetworkMeasurement]:
        """Parse every placemark in document order.

        Raises ParseError on the first bad placemark or XML syntax error
        unless skip_invalid is set. The XML reader cannot resume after a
        syntax error, so in skip mode parsing ends there and the records
        read so far are returned.
        """
        self.errors = []
        records = []

        in_placemark = False
        placemark_index = 0
        current = PlacemarkData(self.logger)

        with open(file_path, 'rb') as f:
            try:
                for event, element in ET.iterparse(f, events=('start', 'end')):
                    name = _local_name(element.tag)

                    if event == 'start':
                        if name == 'Placemark':
                            in_placemark = True
                            placemark_index += 1
                            current = PlacemarkData(self.logger)
                        continue

                    if not in_placemark:
                        continue

                    if name == 'Data':
                        data_name = element.get('name')
                        if data_name is not None:
                            current.add_data(data_name, self._read_data_value(element))
                    elif name == 'coordinates':
                        current.set_coordinates(_element_text(element))
                    elif name == 'Placemark':
                        in_placemark = False
                        try:
                            records.append(current.to_record())
                        except ValueError as e:
                            self._handle_error(f"placemark {placemark_index}", e, placemark_index)
                        element.clear()

            except ET.ParseError as e:
                self._handle_error('XML document', e, placemark_index or None)
                self.logger.warning(
                    f"Stopped reading {file_path} at the XML error; remaining placemarks "
                    f"were not read ({len(records)} records kept)"
                )

        if self.errors:
            self.logger.warning(f"Encountered {len(self.errors)} errors while parsing KML file {file_path}")

        self.logger.debug(f"Parsed {len(records)} placemarks from {file_path}")
        return records

    def _read_data_value(self, element: ET.Element) -> str:
        """Return the text of the <value> child of a <Data> element."""
        for child in element:
            if _local_name(child.tag) == 'value':
                return _element_text(child)
        return ''

    def _handle_error(self, context: str, error: Exception, placemark: Optional[int]) -> None:
        """Apply the skip/abort policy to a failed placemark or XML error."""
        self.errors.append(f"{context}: {error}")

        if self.skip_invalid:
            self.logger.warning(f"Skipping invalid {context}: {error}")
            return

        raise ParseError(f"Error parsing {context}: {error}", placemark=placemark) from error
