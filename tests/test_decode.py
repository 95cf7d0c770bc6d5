# _*_ coding: utf-8 _*_

import bz2
import dataclasses
import io
import struct
from datetime import datetime, timezone

import numpy as np
import pytest
from metpy.units import units

from conftest import annulus_radials, sweep_radials
from dipr.core.product import BinState, Compression, Location, OperationalMode
from dipr.errors import DecompressionError, DiprError, FormatError
from dipr.io.decode import (FIXED_HEADER_SIZE, decode_header, decode_symbology,
                            decompress_payload, parse_dipr, read_dipr)
from dipr.io.encode import build_product, encode_header, encode_symbology


def test_annulus_product(annulus_bytes):
    product = parse_dipr(annulus_bytes)
    assert product.station_code == 'KGYX'
    assert product.radial_count == 4
    assert product.bins_per_radial == 2
    assert product.header.compression is Compression.NONE
    assert product.location == Location(43.891, -70.256)
    assert product.capture_time == datetime(2025, 4, 9, 13, 52, 11, tzinfo=timezone.utc)
    assert product.header.operational_mode is OperationalMode.PRECIPITATION
    for radial in product.radials:
        assert radial.bin_count == 2
        np.testing.assert_allclose(radial.range_edges.m_as('meter'), [0, 1000, 2000])
        np.testing.assert_allclose(radial.precip_rates.m_as('inch / hour'), [5.0, 5.0])
    assert [r.azimuth.m_as('degree') for r in product.radials] == [0, 90, 180, 270]
    assert product.valid_bin_count == 8
    assert product.sentinel_bin_count == 0


def test_bins_are_contiguous(sweep_bytes):
    product = parse_dipr(sweep_bytes)
    total = sum(r.width.m_as('degree') for r in product.radials)
    assert total == pytest.approx(360.0, abs=1e-3)
    for radial in product.radials[:20]:
        bins = radial.bins
        assert len(bins) == radial.bin_count == 6
        for near, far in zip(bins[:-1], bins[1:]):
            assert near.range_outer == far.range_inner
        assert bins[0].range_inner.m_as('meter') == pytest.approx(2000.0)


def test_rate_is_a_velocity(annulus_bytes):
    product = parse_dipr(annulus_bytes)
    rate = product.radials[0].bins[0].reading
    assert rate.dimensionality == units.Quantity(1.0, 'm/s').dimensionality
    assert rate.m_as('mm / hour') == pytest.approx(127.0)


def test_sentinels_stay_in_bins(sweep_bytes):
    product = parse_dipr(sweep_bytes)
    radial = product.radials[0]
    readings = [b.reading for b in radial.bins]
    assert readings[1] is BinState.NO_DATA
    assert readings[2] is BinState.BELOW_THRESHOLD
    assert readings[-1] is BinState.RANGE_FOLDED
    assert radial.bins[1].is_sentinel
    assert not radial.bins[0].is_sentinel
    assert readings[0].magnitude == 0.0
    rates = radial.precip_rates.magnitude
    assert np.isnan(rates[1]) and np.isnan(rates[2]) and np.isnan(rates[-1])
    assert list(radial.states[:3]) == [0, -1, -2]


def test_bzip2_and_raw_decode_alike():
    packed = parse_dipr(build_product(sweep_radials()))
    raw = parse_dipr(build_product(sweep_radials(), compression=Compression.NONE))
    assert packed.header.compression is Compression.BZIP2
    assert len(packed.radials) == len(raw.radials)
    for a, b in zip(packed.radials, raw.radials):
        np.testing.assert_array_equal(a.codes, b.codes)


def test_codes_are_read_only(annulus_bytes):
    product = parse_dipr(annulus_bytes)
    with pytest.raises(ValueError):
        product.radials[0].codes[0] = 1


def test_short_buffer():
    with pytest.raises(FormatError):
        parse_dipr(b'SDUS51 KGYX')


def test_truncated_header(annulus_bytes):
    with pytest.raises(FormatError):
        decode_header(annulus_bytes[:FIXED_HEADER_SIZE - 1])


def test_payload_longer_than_buffer(annulus_bytes):
    with pytest.raises(FormatError, match='exceeds'):
        parse_dipr(annulus_bytes[:-10])


def test_declared_length_without_payload(annulus_bytes):
    buf = bytearray(annulus_bytes)
    struct.pack_into('>I', buf, 38, 120)
    with pytest.raises(FormatError):
        decode_header(bytes(buf))


@pytest.mark.parametrize('offset, fmt, value', [
    (30, '>h', 175),  # message code
    (48, '>h', 0),  # block divider
    (60, '>h', 19),  # product code
    (62, '>h', 7),  # operational mode
    (130, '>h', 2),  # compression method
    (50, '>i', 95000),  # latitude
])
def test_bad_header_fields(annulus_bytes, offset, fmt, value):
    buf = bytearray(annulus_bytes)
    struct.pack_into(fmt, buf, offset, value)
    with pytest.raises(FormatError):
        decode_header(bytes(buf))


def test_not_a_dipr_text_header(annulus_bytes):
    buf = b'SDUS51 KGYX 091352\r\r\nN0QGYX\r\r\n' + annulus_bytes[30:]
    with pytest.raises(FormatError, match='AWIPS'):
        decode_header(buf)


def test_padding_tolerance(annulus_bytes):
    radials = annulus_radials()
    ok = build_product(radials, bin_size=1000.0, range_to_first_bin=500.0,
                       trailing=b'\x00' * 4)
    assert parse_dipr(ok).radial_count == 4
    bad = build_product(radials, bin_size=1000.0, range_to_first_bin=500.0,
                        trailing=b'\x00' * 5)
    with pytest.raises(FormatError, match='undecoded'):
        parse_dipr(bad)
    assert parse_dipr(bad, padding_tolerance=8).radial_count == 4


def _with_payload(buf, payload):
    header = decode_header(buf)
    header = dataclasses.replace(header, message_length=18 + 102 + len(payload))
    return encode_header(header) + payload


def test_truncated_bzip2_stream():
    buf = build_product(sweep_radials())
    header = decode_header(buf)
    payload = buf[header.payload_offset:header.payload_offset + header.payload_length]
    with pytest.raises(DecompressionError) as info:
        parse_dipr(_with_payload(buf, payload[:len(payload) // 2]))
    assert info.value.__cause__ is not None
    assert not isinstance(info.value, FormatError)


def test_corrupt_bzip2_stream():
    buf = build_product(sweep_radials())
    with pytest.raises(DecompressionError):
        parse_dipr(_with_payload(buf, b'BZh9' + b'\x17' * 64))


def test_decompressed_size_mismatch_is_a_warning(caplog):
    buf = build_product(annulus_radials(), bin_size=1000.0, range_to_first_bin=500.0)
    header = dataclasses.replace(decode_header(buf), uncompressed_size=1)
    buf = encode_header(header) + buf[FIXED_HEADER_SIZE:]
    product = parse_dipr(buf)
    assert product.radial_count == 4
    assert 'header declares 1' in caplog.text


def test_decompress_identity(annulus_bytes):
    header = decode_header(annulus_bytes)
    assert decompress_payload(annulus_bytes, header) == annulus_bytes[FIXED_HEADER_SIZE:]


def test_rate_ceiling():
    radials = annulus_radials(code=70000)
    buf = build_product(radials, bin_size=1000.0, range_to_first_bin=500.0)
    with pytest.raises(FormatError, match='in/hr'):
        parse_dipr(buf)
    product = parse_dipr(buf, max_precip_rate=100.0)
    assert product.radials[0].precip_rates[0].m_as('inch / hour') == pytest.approx(70.0)


def test_negative_code():
    radials = annulus_radials(code=-7)
    with pytest.raises(FormatError):
        parse_dipr(build_product(radials, bin_size=1000.0, range_to_first_bin=500.0))


def test_coverage_sum():
    radials = [(az, 80.0, [1, 2]) for az in (0.0, 90.0, 180.0, 270.0)]
    with pytest.raises(FormatError, match='sum'):
        parse_dipr(build_product(radials))


def test_coverage_gap():
    radials = [(0.0, 90.0, [1]), (100.0, 90.0, [1]), (180.0, 90.0, [1]), (270.0, 90.0, [1])]
    with pytest.raises(FormatError, match='between radial 0 and radial 1'):
        parse_dipr(build_product(radials))


def test_coverage_tolerance():
    radials = [(0.0, 90.0, [1]), (90.3, 89.7, [1]), (180.0, 90.0, [1]), (270.0, 90.0, [1])]
    assert parse_dipr(build_product(radials)).radial_count == 4
    with pytest.raises(FormatError):
        parse_dipr(build_product(radials), azimuth_tolerance=0.1)


def test_coverage_wraps_at_north():
    radials = [(315.0, 90.0, [1, 2]), (45.0, 90.0, [1, 2]),
               (135.0, 90.0, [1, 2]), (225.0, 90.0, [1, 2])]
    product = parse_dipr(build_product(radials))
    assert product.radials[0].end_azimuth.m_as('degree') == pytest.approx(45.0)


def test_bin_count_mismatch():
    radials = [(0.0, 90.0, [1, 2]), (90.0, 90.0, [1, 2, 3]),
               (180.0, 90.0, [1, 2]), (270.0, 90.0, [1, 2])]
    with pytest.raises(FormatError, match='radial 1'):
        parse_dipr(build_product(radials))


def test_zero_bins():
    radials = [(az, 90.0, []) for az in (0.0, 90.0, 180.0, 270.0)]
    with pytest.raises(FormatError, match='bin count'):
        parse_dipr(build_product(radials))


def test_bad_bin_size():
    with pytest.raises(FormatError, match='bin size'):
        parse_dipr(build_product(annulus_radials(), bin_size=1500.0))


def test_bad_scan_number():
    with pytest.raises(FormatError, match='scan number'):
        parse_dipr(build_product(annulus_radials(), scan_number=81))


def _stream(buf):
    header = decode_header(buf)
    return decompress_payload(buf, header)


def test_symbology_padding(annulus_bytes):
    stream = _stream(annulus_bytes)
    symbology, radials = decode_symbology(stream + b'\x00' * 4)
    assert symbology.radial_count == len(radials) == 4
    with pytest.raises(FormatError, match='after the last radial'):
        decode_symbology(stream + b'\x00' * 5)


def test_symbology_truncated(annulus_bytes):
    stream = _stream(annulus_bytes)
    for cut in (3, 9, len(stream) // 2, len(stream) - 20):
        with pytest.raises(FormatError):
            decode_symbology(stream[:-cut])


def test_symbology_header_values(annulus_bytes):
    symbology, _ = decode_symbology(_stream(annulus_bytes))
    assert symbology.name == 'DPR'
    assert symbology.radar_name == 'KGYX'
    assert symbology.bin_size.m_as('meter') == 1000.0
    assert symbology.range_to_first_bin.m_as('meter') == 500.0
    assert symbology.azimuthal_resolution.m_as('degree') == pytest.approx(90.0)


def test_errors_share_a_base():
    for kind in (FormatError, DecompressionError):
        assert issubclass(kind, DiprError)
    assert not issubclass(DecompressionError, FormatError)


def test_read_dipr(tmp_path, annulus_bytes):
    path = tmp_path / 'sn.last'
    path.write_bytes(annulus_bytes)
    assert read_dipr(str(path)).radial_count == 4
    assert read_dipr(io.BytesIO(annulus_bytes)).radial_count == 4


def test_summary(annulus_bytes):
    text = str(parse_dipr(annulus_bytes))
    assert 'Station Code:        KGYX' in text
    assert 'Number of Radials:   4' in text
    assert 'Operational Mode:    Precipitation' in text


def test_to_xarray(sweep_bytes):
    data = parse_dipr(sweep_bytes).to_xarray()
    assert data.dims == ('azimuth', 'range')
    assert data.shape == (360, 6)
    assert data.attrs['site_id'] == 'KGYX'
    assert data.attrs['radar_lat'] == pytest.approx(43.891)
    assert np.isnan(data.values[0, 1])
    assert data.values[1, 1] == pytest.approx(260 * 0.0254, rel=1e-5)
    assert float(data.azimuth[0]) == pytest.approx(0.5)
    np.testing.assert_allclose(data.range_outer.values[:-1], data.range_inner.values[1:])


def test_symbology_reencodes():
    buf = build_product(annulus_radials())
    header = decode_header(buf)
    payload = buf[header.payload_offset:header.payload_offset + header.payload_length]
    assert bz2.decompress(payload) == encode_symbology(
        header, *decode_symbology(bz2.decompress(payload)))
