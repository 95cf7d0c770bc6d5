# _*_ coding: utf-8 _*_

import io
import json
import sys

import pytest
import shapefile

from dipr import cli
from dipr.core.stations import STATIONS, find_nearest_stations
from dipr.errors import DownloadError


@pytest.fixture
def product_path(tmp_path, annulus_bytes):
    path = tmp_path / 'sn.last'
    path.write_bytes(annulus_bytes)
    return str(path)


def test_info(capsys, product_path):
    assert cli.main(['info', product_path]) == 0
    out = capsys.readouterr().out
    assert 'Station Code:        KGYX' in out
    assert 'Bins per Radial:     2' in out


def test_to_geojson(capsys, product_path):
    assert cli.main(['to-geojson', product_path]) == 0
    collection = json.loads(capsys.readouterr().out)
    assert len(collection['features']) == 8


def test_to_geojson_file(tmp_path, product_path):
    out = tmp_path / 'out.geojson'
    assert cli.main(['to-geojson', product_path, '-o', str(out), '--units', 'mm/hr',
                     '--workers', '2', '--location', '45.0,-71.0']) == 0
    feature = json.loads(out.read_text())['features'][0]
    assert feature['properties']['precipRate'] == pytest.approx(127.0)
    assert feature['geometry']['coordinates'][0][0] == pytest.approx([-71.0, 45.0])


def test_skip_zeros(tmp_path):
    from dipr.io.encode import build_product
    radials = [(az, 90.0, [0, 5000]) for az in (0.0, 90.0, 180.0, 270.0)]
    path = tmp_path / 'zeros'
    path.write_bytes(build_product(radials))
    out = tmp_path / 'out.geojson'
    assert cli.main(['to-geojson', str(path), '-o', str(out), '--skip-zeros']) == 0
    assert len(json.loads(out.read_text())['features']) == 4


def test_to_shapefile(tmp_path, product_path):
    out = tmp_path / 'kgyx.shp'
    assert cli.main(['to-shapefile', product_path, str(out)]) == 0
    with shapefile.Reader(str(out)) as shp:
        assert len(shp) == 8


def test_config_stations(tmp_path, annulus_bytes):
    from dipr.io.encode import build_product
    radials = [(az, 90.0, [1, 2]) for az in (0.0, 90.0, 180.0, 270.0)]
    path = tmp_path / 'kxxx'
    path.write_bytes(build_product(radials, station_code='KXXX', location=None))
    out = tmp_path / 'out.geojson'
    assert cli.main(['to-geojson', str(path), '-o', str(out)]) == 1

    ini = tmp_path / 'config.ini'
    ini.write_text('[stations]\nKXXX = 40.0, -100.0\n')
    assert cli.main(['--config', str(ini), 'to-geojson', str(path), '-o', str(out)]) == 0
    feature = json.loads(out.read_text())['features'][0]
    assert feature['geometry']['coordinates'][0][0] == pytest.approx([-100.0, 40.0])


def test_format_error(tmp_path, caplog):
    path = tmp_path / 'garbage'
    path.write_bytes(b'\x00' * 500)
    assert cli.main(['info', str(path)]) == 1
    assert 'FormatError' in caplog.text


def test_missing_file(tmp_path):
    assert cli.main(['info', str(tmp_path / 'nope')]) == 1


def test_bad_config(tmp_path, product_path):
    assert cli.main(['--config', str(tmp_path / 'nope.ini'), 'info', product_path]) == 1


def test_usage_errors():
    with pytest.raises(SystemExit) as info:
        cli.main([])
    assert info.value.code == 2
    with pytest.raises(SystemExit):
        cli.main(['to-geojson', 'x', '--location', 'north'])


class FakeServer(object):
    """ Stands in for the NWS servers, recording the requested stations. """

    def __init__(self, data, offline=()):
        self.data = data
        self.offline = set(offline)
        self.requested = []

    def statuses(self):
        return [(code, code not in self.offline) for code in STATIONS]

    def fetch(self, station):
        self.requested.append(station)
        return self.data


@pytest.fixture
def server(monkeypatch, annulus_bytes):
    server = FakeServer(annulus_bytes)
    monkeypatch.setattr(cli, 'fetch_latest', server.fetch)
    monkeypatch.setattr(cli, 'fetch_station_statuses', server.statuses)
    return server


def test_fetch(tmp_path, server, annulus_bytes):
    out = tmp_path / 'sn.last'
    assert cli.main(['fetch', 'kgyx', '-o', str(out)]) == 0
    assert out.read_bytes() == annulus_bytes
    assert server.requested == ['KGYX']


def test_fetch_unknown_station(server, caplog):
    assert cli.main(['fetch', 'KXXX']) == 1
    assert 'not a valid station' in caplog.text
    assert server.requested == []


def test_fetch_offline_station(server, caplog):
    server.offline.add('KGYX')
    assert cli.main(['fetch', 'KGYX']) == 1
    assert 'offline' in caplog.text
    assert server.requested == []


def test_fetch_without_status_check(tmp_path, server, monkeypatch):
    def unreachable():
        raise DownloadError('status page is down')

    monkeypatch.setattr(cli, 'fetch_station_statuses', unreachable)
    server.offline.add('KGYX')
    assert cli.main(['fetch', 'KGYX', '--no-status', '-o', str(tmp_path / 'sn.last')]) == 0
    assert server.requested == ['KGYX']
    assert cli.main(['fetch', 'KGYX']) == 1


def test_fetch_near(tmp_path, server):
    out = str(tmp_path / 'sn.last')
    assert cli.main(['fetch', '--near', '43.66,-70.26', '-o', out]) == 0
    assert server.requested == ['KGYX']

    # the next nearest online station is used
    server.offline.add('KGYX')
    assert cli.main(['fetch', '--near', '43.66,-70.26', '-o', out]) == 0
    nearby = [code for code, _ in find_nearest_stations(43.66, -70.26)]
    assert server.requested[-1] == nearby[1]


def test_fetch_near_nothing_online(server, caplog):
    server.offline.update(STATIONS)
    assert cli.main(['fetch', '--near', '43.66,-70.26']) == 1
    assert 'offline' in caplog.text
    assert cli.main(['fetch', '--near', '30.0,-40.0']) == 1
    assert 'not within range' in caplog.text
    assert server.requested == []


def test_fetch_usage():
    with pytest.raises(SystemExit):
        cli.main(['fetch'])
    with pytest.raises(SystemExit):
        cli.main(['fetch', 'KGYX', '--near', '43.66,-70.26'])


class _Stdin(object):
    def __init__(self, data):
        self.buffer = io.BytesIO(data)


def test_to_geojson_reads_stdin(capsys, monkeypatch, annulus_bytes):
    monkeypatch.setattr(sys, 'stdin', _Stdin(annulus_bytes))
    assert cli.main(['to-geojson']) == 0
    assert len(json.loads(capsys.readouterr().out)['features']) == 8


def test_to_shapefile_reads_stdin(tmp_path, monkeypatch, annulus_bytes):
    monkeypatch.setattr(sys, 'stdin', _Stdin(annulus_bytes))
    out = tmp_path / 'kgyx.shp'
    assert cli.main(['to-shapefile', str(out)]) == 0
    with shapefile.Reader(str(out)) as shp:
        assert len(shp) == 8


def test_bad_units(product_path):
    for value in ('meter', 'furlong_per_nothing'):
        with pytest.raises(SystemExit) as info:
            cli.main(['to-geojson', product_path, '--units', value])
        assert info.value.code == 2
    with pytest.raises(SystemExit):
        cli.main(['to-geojson', product_path, '--workers', '0'])


def test_bad_geometry_config(tmp_path, product_path, caplog):
    ini = tmp_path / 'config.ini'
    ini.write_text('[geometry]\nmax_segments = 0\n')
    assert cli.main(['--config', str(ini), 'to-geojson', product_path]) == 1
    assert 'ConfigFetchError' in caplog.text
