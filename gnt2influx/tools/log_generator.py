"""
Log generator for simulating G-NetTrack drive-test exports.
"""

import argparse
import csv
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import pytz

# Operator name -> MCC-MNC
OPERATORS = {
    'KDDI': '440-51',
    'NTT DOCOMO': '440-10',
    'SoftBank': '440-20',
    'Rakuten': '440-11',
}

NETWORK_TECHS = ['LTE', 'LTE', 'LTE', '5G', 'HSPA']

# Start of the simulated route (Tokyo)
START_LONGITUDE = 139.6917
START_LATITUDE = 35.6895

TABULAR_COLUMNS = [
    'Timestamp', 'Longitude', 'Latitude', 'Speed', 'Operator', 'MCC-MNC',
    'CGI', 'Cellname', 'Node', 'CellID', 'LAC', 'NetworkTech', 'NetworkMode',
    'Level', 'Qual', 'SNR', 'CQI', 'ARFCN', 'DL_bitrate', 'UL_bitrate', 'Altitude',
]


class LogGenerator:
    """Generates realistic G-NetTrack log samples for testing."""

    def __init__(self, seed: Optional[int] = None):
        self.random = random.Random(seed)
        self.longitude = START_LONGITUDE
        self.latitude = START_LATITUDE
        self.timestamp = datetime.now(pytz.UTC).replace(microsecond=0) - timedelta(hours=1)

    def generate_measurement(self) -> Dict[str, Any]:
        """Generate the next measurement along the simulated route."""
        rng = self.random

        operator = rng.choice(list(OPERATORS))
        tech = rng.choice(NETWORK_TECHS)
        node = rng.randint(100000, 999999)
        cell = rng.randint(1, 255)

        # Small step so the route looks like a drive
        self.longitude += rng.uniform(-0.0005, 0.0005)
        self.latitude += rng.uniform(-0.0005, 0.0005)
        self.timestamp += timedelta(seconds=rng.randint(1, 5))

        measurement = {
            'timestamp': self.timestamp,
            'longitude': round(self.longitude, 6),
            'latitude': round(self.latitude, 6),
            'altitude': round(rng.uniform(0.0, 80.0), 1),
            'speed': round(rng.uniform(0.0, 60.0), 1),
            'operator_name': operator,
            'operator_code': OPERATORS[operator],
            'cgi': f"{OPERATORS[operator]}-{node}-{cell}",
            'cellname': f"{operator.split()[0]}_{node}_{cell}",
            'node': str(node),
            'cell_id': str(node * 256 + cell),
            'lac': str(rng.randint(1000, 9999)),
            'network_tech': tech,
            'network_mode': tech,
            'level': rng.randint(-120, -70),
            'qual': rng.randint(-20, -3),
            'snr': round(rng.uniform(-5.0, 30.0), 1),
            'cqi': rng.randint(1, 15),
            'arfcn': str(rng.choice([1850, 3050, 6300, 500])),
            'dl_bitrate': rng.randint(0, 150000),
            'ul_bitrate': rng.randint(0, 50000),
        }

        return measurement

    def generate_measurements(self, count: int) -> List[Dict[str, Any]]:
        return [self.generate_measurement() for _ in range(count)]

    def write_tabular(self, output_path: Path, measurements: List[Dict[str, Any]], delimiter: str) -> None:
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f, delimiter=delimiter)
            writer.writerow(TABULAR_COLUMNS)
            for m in measurements:
                writer.writerow([
                    m['timestamp'].strftime('%Y.%m.%d_%H.%M.%S'),
                    m['longitude'], m['latitude'], m['speed'],
                    m['operator_name'], m['operator_code'], m['cgi'], m['cellname'],
                    m['node'], m['cell_id'], m['lac'], m['network_tech'], m['network_mode'],
                    m['level'], m['qual'], m['snr'], m['cqi'], m['arfcn'],
                    m['dl_bitrate'], m['ul_bitrate'], m['altitude'],
                ])

    def write_kml(self, output_path: Path, measurements: List[Dict[str, Any]]) -> None:
        placemarks = []
        for i, m in enumerate(measurements, start=1):
            data = {
                '技術': m['network_tech'],
                'RSRP': f"{m['level']} dBm",
                '速度': f"{m['speed']} km/h",
                '高度': f"{m['altitude']}m",
                '時間': m['timestamp'].strftime('%Y.%m.%d_%H.%M.%S'),
            }
            extended = ''.join(
                f'<Data name="{name}"><value>{escape(str(value))}</value></Data>'
                for name, value in data.items()
            )
            placemarks.append(
                f'    <Placemark><name>{i}</name>'
                f'<ExtendedData>{extended}</ExtendedData>'
                f'<Point><coordinates>{m["longitude"]},{m["latitude"]},{m["altitude"]}</coordinates></Point>'
                f'</Placemark>'
            )

        document = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<kml xmlns="http://www.opengis.net/kml/2.2">\n'
            '  <Document>\n'
            + '\n'.join(placemarks) +
            '\n  </Document>\n'
            '</kml>\n'
        )

        output_path.write_text(document, encoding='utf-8')

    def generate_file(self, output_path: str, count: int = 100, file_format: str = 'csv') -> None:
        """Generate a log file in the given format (csv, tsv or kml)."""
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        measurements = self.generate_measurements(count)

        if file_format == 'kml':
            self.write_kml(output_file, measurements)
        elif file_format == 'tsv':
            self.write_tabular(output_file, measurements, '\t')
        elif file_format == 'csv':
            self.write_tabular(output_file, measurements, ',')
        else:
            raise ValueError(f"Unsupported format: {file_format}")

        print(f"Generated {count} measurements in {output_path} ({file_format})")
        if measurements:
            print(f"   Time range: {measurements[0]['timestamp']} to {measurements[-1]['timestamp']}")


def main(argv=None):
    """Main entry point for log generation."""
    parser = argparse.ArgumentParser(description='Generate G-NetTrack log data for testing')
    parser.add_argument('--output', '-o', required=True, help='Output file path')
    parser.add_argument('--count', '-c', type=int, default=100, help='Number of measurements to generate')
    parser.add_argument('--format', '-f', choices=['csv', 'tsv', 'kml'], default='csv', help='Output format')
    parser.add_argument('--seed', type=int, help='Random seed for reproducible output')

    args = parser.parse_args(argv)

    generator = LogGenerator(seed=args.seed)
    generator.generate_file(args.output, args.count, args.format)


if __name__ == "__main__":
    main()
