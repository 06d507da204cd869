import logging
from datetime import datetime

import pytest
import pytz

from gnt2influx.exceptions import ParseError
from gnt2influx.ingestion.kml_processor import (
    KML_OPERATOR_NAME,
    KMLProcessor,
    parse_kml_timestamp,
    parse_with_unit,
)


def placemark(time='2025.10.03_10.20.09', rsrp='-95 dBm', speed='42 km/h',
              altitude='10m', tech='LTE', coordinates='139.123,35.456,10'):
    data = []
    for name, value in (('技術', tech), ('RSRP', rsrp), ('速度', speed), ('高度', altitude), ('時間', time)):
        if value is not None:
            data.append(f'<Data name="{name}"><value>{value}</value></Data>')
    return (
        '<Placemark><name>p</name>'
        f'<ExtendedData>{"".join(data)}</ExtendedData>'
        f'<Point><coordinates>{coordinates}</coordinates></Point>'
        '</Placemark>'
    )


def kml_document(*placemarks, namespace='http://www.opengis.net/kml/2.2'):
    xmlns = f' xmlns="{namespace}"' if namespace else ''
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<kml{xmlns}><Document>{"".join(placemarks)}</Document></kml>\n'
    )


def test_placemark_to_record(write_file):
    path = write_file('track.kml', kml_document(placemark()))

    records = KMLProcessor().parse_file(path)

    assert len(records) == 1
    record = records[0]
    assert record.longitude == 139.123
    assert record.latitude == 35.456
    assert record.level == -95.0
    assert record.speed == 42.0
    assert record.altitude == 10.0
    assert record.network_tech == 'LTE'
    assert record.timestamp == datetime(2025, 10, 3, 10, 20, 9, tzinfo=pytz.UTC)
    assert record.operator_name == KML_OPERATOR_NAME


def test_document_without_namespace(write_file):
    path = write_file('plain.kml', kml_document(placemark(), placemark(rsrp='-100 dBm'), namespace=None))

    records = KMLProcessor().parse_file(path)

    assert [r.level for r in records] == [-95.0, -100.0]


def test_missing_fields_are_absent(write_file):
    path = write_file('partial.kml', kml_document(
        placemark(rsrp=None, speed='fast', altitude=None, tech=None, coordinates='')
    ))

    record = KMLProcessor().parse_file(path)[0]

    assert record.level is None
    assert record.speed is None
    assert record.altitude is None
    assert record.network_tech is None
    assert record.longitude is None
    assert record.latitude is None


def test_placemark_without_time_is_now(write_file):
    path = write_file('notime.kml', kml_document(placemark(time=None)))
    before = datetime.now(pytz.UTC)

    record = KMLProcessor().parse_file(path)[0]

    assert record.timestamp >= before


def test_bad_time_skipped(write_file, caplog):
    path = write_file('badtime.kml', kml_document(
        placemark(rsrp='-90 dBm'),
        placemark(time='not-a-date'),
        placemark(rsrp='-80 dBm'),
    ))
    processor = KMLProcessor(skip_invalid=True)

    with caplog.at_level(logging.WARNING):
        records = processor.parse_file(path)

    assert [r.level for r in records] == [-90.0, -80.0]
    assert len(processor.errors) == 1
    assert 'placemark 2' in caplog.text


def test_bad_time_aborts(write_file):
    path = write_file('badtime.kml', kml_document(placemark(), placemark(time='not-a-date')))

    with pytest.raises(ParseError) as exc_info:
        KMLProcessor(skip_invalid=False).parse_file(path)

    assert exc_info.value.placemark == 2


def test_malformed_xml(write_file, caplog):
    broken = kml_document(placemark()).replace('</Document></kml>', '<Placemark><name>x</Document>')
    path = write_file('broken.kml', broken)

    with caplog.at_level(logging.WARNING):
        records = KMLProcessor(skip_invalid=True).parse_file(path)
    assert len(records) == 1
    assert 'remaining placemarks were not read (1 records kept)' in caplog.text

    with pytest.raises(ParseError):
        KMLProcessor(skip_invalid=False).parse_file(path)


def test_unknown_data_fields_ignored(write_file):
    extra = placemark().replace(
        '<ExtendedData>', '<ExtendedData><Data name="バッテリー"><value>80%</value></Data>'
    )
    path = write_file('extra.kml', kml_document(extra))

    assert len(KMLProcessor().parse_file(path)) == 1


def test_empty_document(write_file):
    assert KMLProcessor().parse_file(write_file('empty.kml', kml_document())) == []


@pytest.mark.parametrize('value', [
    '2025.10.03_10.20.09',
    '2025.10.03 10.20.09',
    '2025-10-03 10:20:09',
    '2025/10/03 10:20:09',
])
def test_parse_kml_timestamp_formats(value):
    assert parse_kml_timestamp(value) == datetime(2025, 10, 3, 10, 20, 9, tzinfo=pytz.UTC)


def test_parse_kml_timestamp_rejects_garbage():
    with pytest.raises(ValueError):
        parse_kml_timestamp('not-a-date')


def test_parse_with_unit():
    assert parse_with_unit('-95 dBm', 'dBm') == -95.0
    assert parse_with_unit('42 km/h', 'km/h') == 42.0
    assert parse_with_unit('12.5m', 'm') == 12.5
    assert parse_with_unit('n/a', 'm') is None
    assert parse_with_unit(None, 'm') is None
