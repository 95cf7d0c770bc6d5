# _*_ coding: utf-8 _*_

import io

import numpy as np
import pytest

from dipr.io.decode import parse_dipr
from dipr.io.dipr_pyart import RAIN_RATE_FIELD, dipr_to_pyart, read_dipr_pyart


def test_dipr_to_pyart(sweep_bytes):
    product = parse_dipr(sweep_bytes)
    radar = dipr_to_pyart(product)
    assert radar.nrays == 360
    assert radar.ngates == 6
    assert radar.nsweeps == 1
    assert radar.scan_type == 'ppi'
    assert radar.metadata['instrument_name'] == 'KGYX'
    assert radar.latitude['data'][0] == pytest.approx(43.891)
    assert radar.range['data'][0] == pytest.approx(2125.0)
    assert radar.azimuth['data'][0] == pytest.approx(0.5)
    data = radar.fields[RAIN_RATE_FIELD]['data']
    assert data.shape == (360, 6)
    assert data.mask[0, 1]
    assert not data.mask[1, 1]
    assert data[1, 1] == pytest.approx(260 * 0.0254, rel=1e-5)
    assert radar.fixed_angle['data'][0] == pytest.approx(0.5)


def test_read_dipr_pyart(tmp_path, annulus_bytes):
    path = tmp_path / 'sn.last'
    path.write_bytes(annulus_bytes)
    radar = read_dipr_pyart(str(path))
    assert radar.nrays == 4
    np.testing.assert_allclose(radar.fields[RAIN_RATE_FIELD]['data'], 127.0, rtol=1e-5)
    stream = io.BytesIO(annulus_bytes)
    assert read_dipr_pyart(stream, location=(45.0, -71.0)).longitude['data'][0] == -71.0
    assert not stream.closed


def test_unknown_keywords(annulus_bytes):
    with pytest.warns(UserWarning):
        read_dipr_pyart(io.BytesIO(annulus_bytes), bogus=1)
