# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Decode Digital Instantaneous Precipitation Rate (DIPR) product files.

The product is read left to right: the uncompressed header region (text
header, message header, product description block), then the symbology
block, which is usually bzip2 compressed, then the radials inside it.

'''
import bz2
import logging
import sys
from datetime import datetime, timedelta, timezone

import numpy as np
from metpy.units import units

from dipr.core.product import (Compression, Location, OperationalMode,
                               PrecipRate, ProductHeader, Radial,
                               SymbologyHeader, RATE_OFFSET, RATE_SCALE,
                               RATE_UNITS, SENTINEL_CODES)
from dipr.errors import DecompressionError, FormatError
from dipr.io.structures import (COMPONENT_POINTER, GENERIC_PACKET_HEADER,
                                MESSAGE_HEADER, PRODUCT_DESCRIPTION,
                                PRODUCT_DESCRIPTION_DATA, RADIAL_COMPONENT,
                                RADIAL_INFO, SYMBOLOGY_HEADER, TEXT_HEADER,
                                _structure_size, _unpack_from_buf, _unpack_xdr)
from dipr.util.comm_func import as_quantity

logger = logging.getLogger(__name__)

DIPR_PRODUCT_CODE = 176
AWIPS_CATEGORY = 'DPR'
BLOCK_DIVIDER = -1
SYMBOLOGY_BLOCK_ID = 1
GENERIC_PACKET_CODE = 28
RADIAL_COMPONENT_TYPE = 1

TEXT_HEADER_SIZE = _structure_size(TEXT_HEADER)
MESSAGE_HEADER_SIZE = _structure_size(MESSAGE_HEADER)
PRODUCT_DESCRIPTION_SIZE = _structure_size(PRODUCT_DESCRIPTION)
FIXED_HEADER_SIZE = TEXT_HEADER_SIZE + MESSAGE_HEADER_SIZE + PRODUCT_DESCRIPTION_SIZE

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_MAX_PRECIP_RATE = units.Quantity(60.0, RATE_UNITS)
DEFAULT_AZIMUTH_TOLERANCE = units.Quantity(0.5, 'degree')
DEFAULT_PADDING_TOLERANCE = 4

LATITUDE_RANGE = (-90000, 90000)
LONGITUDE_RANGE = (-180000, 180000)
PRECIP_DETECTED_RANGE = (0, 1)
SECONDS_OF_DAY_RANGE = (0, 86399)
SCAN_NUMBER_RANGE = (1, 80)
BIN_SIZE_RANGE = (0.0, 1000.0)
RANGE_TO_FIRST_BIN_RANGE = (0.0, 460000.0)
RADIAL_COUNT_RANGE = (1, 800)
BIN_COUNT_RANGE = (1, 1840)
AZIMUTH_RANGE = (0.0, 360.0)
ELEVATION_RANGE = (-1.0, 45.0)
WIDTH_RANGE = (0.0, 360.0)


def _check_value(expected, actual, name, block):
    if actual != expected:
        raise FormatError('%s in %s: got %s, expected %s' % (name, block, actual, expected))


def _check_range(bounds, actual, name, block, exclude_low=False):
    low, high = bounds
    inside = (low < actual if exclude_low else low <= actual) and actual <= high
    if not inside:
        raise FormatError('%s in %s: got %s, expected %s%s..%s'
                          % (name, block, actual, '>' if exclude_low else '', low, high))


def _julian_to_datetime(date, seconds):
    """ Days since 1969-12-31 plus seconds after midnight, as UTC. """
    return EPOCH + timedelta(days=date - 1, seconds=seconds)


def _decode_text(raw, name):
    try:
        return raw.decode('ascii').rstrip('\x00')
    except UnicodeDecodeError as e:
        raise FormatError('%s is not ASCII: %s' % (name, e)) from e


def decode_header(buf, padding_tolerance=DEFAULT_PADDING_TOLERANCE):
    """
    Decode the fixed header region of a DIPR product.

    Parameters
    ----------
    buf : bytes-like
        The whole product file.
    padding_tolerance : int
        Number of bytes allowed after the end of the declared message.

    Returns
    -------
    ProductHeader

    Raises
    ------
    FormatError
        When the buffer is not a DIPR product or its declared lengths do not
        match the bytes available.
    """
    if len(buf) < FIXED_HEADER_SIZE:
        raise FormatError('buffer holds %d bytes, the DIPR header alone needs %d'
                          % (len(buf), FIXED_HEADER_SIZE))
    pos = 0

    # WMO/AWIPS text header
    dic_th = _unpack_from_buf(buf, pos, TEXT_HEADER, 'text header')
    pos += TEXT_HEADER_SIZE
    station_code = _decode_text(dic_th['station_code'], 'station code')
    awips_id = _decode_text(dic_th['awips_id'], 'AWIPS identifier')
    if not station_code.isalnum():
        raise FormatError('station code %r is not alphanumeric' % station_code)
    if not awips_id.startswith(AWIPS_CATEGORY):
        raise FormatError('AWIPS identifier %r does not name a %s product'
                          % (awips_id.strip(), AWIPS_CATEGORY))

    # message header
    block = 'message header'
    dic_mh = _unpack_from_buf(buf, pos, MESSAGE_HEADER, block)
    pos += MESSAGE_HEADER_SIZE
    _check_value(DIPR_PRODUCT_CODE, dic_mh['message_code'], 'message code', block)
    _check_range(SECONDS_OF_DAY_RANGE, dic_mh['time'], 'time', block)

    # product description block
    block = 'product description block'
    dic_pd = _unpack_from_buf(buf, pos, PRODUCT_DESCRIPTION, block)
    pos += PRODUCT_DESCRIPTION_SIZE
    _check_value(BLOCK_DIVIDER, dic_pd['divider'], 'block divider', block)
    _check_value(DIPR_PRODUCT_CODE, dic_pd['product_code'], 'product code', block)
    _check_range(LATITUDE_RANGE, dic_pd['latitude'], 'latitude', block)
    _check_range(LONGITUDE_RANGE, dic_pd['longitude'], 'longitude', block)
    _check_range(PRECIP_DETECTED_RANGE, dic_pd['precip_detected'], 'precipitation detected', block)
    _check_range(SECONDS_OF_DAY_RANGE, dic_pd['volume_scan_time'], 'volume scan time', block)
    _check_range(SECONDS_OF_DAY_RANGE, dic_pd['generation_time'], 'generation time', block)
    try:
        operational_mode = OperationalMode(dic_pd['operational_mode'])
    except ValueError:
        raise FormatError('operational mode in %s: got %d, expected 0, 1 or 2'
                          % (block, dic_pd['operational_mode'])) from None
    try:
        compression = Compression(dic_pd['compression_method'])
    except ValueError:
        raise FormatError('compression method in %s: got %d, expected 0 or 1'
                          % (block, dic_pd['compression_method'])) from None

    # the message length counts the message header and everything after it
    payload_offset = pos
    payload_length = dic_mh['length'] - MESSAGE_HEADER_SIZE - PRODUCT_DESCRIPTION_SIZE
    available = len(buf) - payload_offset
    if payload_length <= 0:
        raise FormatError('declared message length %d leaves no room for the symbology block'
                          % dic_mh['length'])
    if payload_length > available:
        raise FormatError('declared payload of %d bytes exceeds the %d bytes remaining'
                          % (payload_length, available))
    trailing = available - payload_length
    if trailing > padding_tolerance:
        raise FormatError('%d undecoded bytes follow the declared message, %d allowed'
                          % (trailing, padding_tolerance))

    if dic_pd['latitude'] == 0 and dic_pd['longitude'] == 0:
        location = None
    else:
        location = Location(dic_pd['latitude'] / 1000.0, dic_pd['longitude'] / 1000.0)

    header = ProductHeader(
        station_code=station_code,
        message_code=dic_mh['message_code'],
        message_time=_julian_to_datetime(dic_mh['date'], dic_mh['time']),
        message_length=dic_mh['length'],
        location=location,
        radar_height=units.Quantity(dic_pd['height'], 'foot'),
        operational_mode=operational_mode,
        vcp=dic_pd['vcp'],
        sequence_number=dic_pd['sequence_number'],
        volume_scan_number=dic_pd['volume_scan_number'],
        scan_time=_julian_to_datetime(dic_pd['volume_scan_date'], dic_pd['volume_scan_time']),
        generation_time=_julian_to_datetime(dic_pd['generation_date'], dic_pd['generation_time']),
        elevation_number=dic_pd['elevation_number'],
        elevation_angle=units.Quantity(dic_pd['elevation_angle'] / 10.0, 'degree'),
        precip_detected=dic_pd['precip_detected'] != 0,
        max_precip_rate=units.Quantity(dic_pd['max_precip_rate'] / 100.0, RATE_UNITS),
        compression=compression,
        uncompressed_size=dic_pd['uncompressed_size'],
        payload_offset=payload_offset,
        payload_length=payload_length,
        source_id=dic_mh['source_id'],
        destination_id=dic_mh['destination_id'],
        block_count=dic_mh['block_count'],
        version=dic_pd['version'],
        spot_blank=dic_pd['spot_blank'],
        product_params=(dic_pd['param_1'], dic_pd['param_2'],
                        dic_pd['param_6'], dic_pd['param_7']),
        thresholds=dic_pd['thresholds'],
        block_offsets=(dic_pd['symbology_offset'], dic_pd['graphic_offset'],
                       dic_pd['tabular_offset']),
        wmo_id=_decode_text(dic_th['wmo_id'], 'WMO identifier'),
        wmo_time=_decode_text(dic_th['wmo_time'], 'WMO time'),
        awips_id=awips_id,
    )
    logger.debug('%s header: scan %s, %s, %d byte %s payload',
                 header.station_code, header.scan_time.isoformat(),
                 header.operational_mode, header.payload_length,
                 header.compression.name.lower())
    return header


def decompress_payload(buf, header):
    """
    Return the symbology block bytes of the payload declared by ``header``.

    Raises
    ------
    FormatError
        The buffer is shorter than the payload the header declares.
    DecompressionError
        The bzip2 stream is corrupt or truncated.
    """
    start = header.payload_offset
    payload = bytes(buf[start:start + header.payload_length])
    if len(payload) != header.payload_length:
        raise FormatError('declared payload of %d bytes exceeds the %d bytes remaining'
                          % (header.payload_length, len(payload)))

    if header.compression is Compression.NONE:
        return payload

    try:
        stream = bz2.decompress(payload)
    except (OSError, ValueError, EOFError) as e:
        raise DecompressionError('failed to decompress product symbology: %s' % e) from e

    if header.uncompressed_size and len(stream) != header.uncompressed_size:
        logger.warning('%s: decompressed %d bytes, header declares %d',
                       header.station_code, len(stream), header.uncompressed_size)
    logger.debug('decompressed %d payload bytes into %d', len(payload), len(stream))
    return stream


def _range_edges(range_to_first_bin, bin_size, bin_count):
    """
    Bin edges in meters; the first range is the centre of bin 0.
    """
    edges = range_to_first_bin + (np.arange(bin_count + 1) - 0.5) * bin_size
    return np.maximum(edges, 0.0)


def _check_codes(codes, radial_idx, max_precip_rate):
    valid = ~np.isin(codes, SENTINEL_CODES)
    rates = (codes - RATE_OFFSET) / RATE_SCALE
    ceiling = max_precip_rate.m_as(RATE_UNITS)
    bad = np.flatnonzero(valid & ((rates < 0) | (rates > ceiling)))
    if len(bad):
        idx = bad[0]
        raise FormatError('radial %d bin %d: code %d decodes to %.3f in/hr, expected 0..%g'
                          % (radial_idx, idx, codes[idx], rates[idx], ceiling))


def _check_coverage(starts, widths, tolerance):
    """
    Radials must cover one full turn with no gap or overlap above tolerance.
    """
    tol = tolerance.m_as('degree')
    total = widths.sum()
    if abs(total - 360.0) > tol:
        raise FormatError('radial widths sum to %.3f degrees, expected 360' % total)
    ends = starts + widths
    gaps = (np.roll(starts, -1) - ends + 180.0) % 360.0 - 180.0
    worst = int(np.argmax(np.abs(gaps)))
    if abs(gaps[worst]) > tol:
        raise FormatError('%s of %.3f degrees between radial %d and radial %d'
                          % ('gap' if gaps[worst] > 0 else 'overlap', abs(gaps[worst]),
                             worst, (worst + 1) % len(starts)))


def decode_symbology(stream, max_precip_rate=DEFAULT_MAX_PRECIP_RATE,
                     azimuth_tolerance=DEFAULT_AZIMUTH_TOLERANCE,
                     padding_tolerance=DEFAULT_PADDING_TOLERANCE):
    """
    Decode the symbology block into its header and the ordered radials.

    Exactly ``radial_count * bins_per_radial`` codes are read. Running out of
    bytes, radials of different lengths, out of range values, an incomplete
    azimuth sweep, or more than ``padding_tolerance`` leftover bytes all
    raise FormatError.
    """
    max_precip_rate = as_quantity(max_precip_rate, RATE_UNITS)
    azimuth_tolerance = as_quantity(azimuth_tolerance, 'degree')
    pos = 0

    block = 'symbology block header'
    dic_sh = _unpack_from_buf(stream, pos, SYMBOLOGY_HEADER, block)
    pos += _structure_size(SYMBOLOGY_HEADER)
    _check_value(BLOCK_DIVIDER, dic_sh['divider'], 'block divider', block)
    _check_value(SYMBOLOGY_BLOCK_ID, dic_sh['block_id'], 'block id', block)
    _check_value(BLOCK_DIVIDER, dic_sh['layer_divider'], 'layer divider', block)

    block = 'generic data packet'
    dic_gp = _unpack_from_buf(stream, pos, GENERIC_PACKET_HEADER, block)
    pos += _structure_size(GENERIC_PACKET_HEADER)
    _check_value(GENERIC_PACKET_CODE, dic_gp['packet_code'], 'packet code', block)

    block = 'product description data'
    dic_pdd, pos = _unpack_xdr(stream, pos, PRODUCT_DESCRIPTION_DATA, block)
    _check_range(SCAN_NUMBER_RANGE, dic_pdd['scan_number'], 'scan number', block)
    if dic_pdd['parameter_count'] != 0:
        raise FormatError('%s declares %d parameters; DIPR products carry none'
                          % (block, dic_pdd['parameter_count']))
    if dic_pdd['component_count'] != 1:
        raise FormatError('%s declares %d components; only single component products are supported'
                          % (block, dic_pdd['component_count']))
    for _ in range(dic_pdd['component_count']):
        _unpack_from_buf(stream, pos, COMPONENT_POINTER, 'component pointer')
        pos += _structure_size(COMPONENT_POINTER)

    block = 'radial component'
    dic_rc, pos = _unpack_xdr(stream, pos, RADIAL_COMPONENT, block)
    _check_value(RADIAL_COMPONENT_TYPE, dic_rc['component_type'], 'component type', block)
    _check_range(BIN_SIZE_RANGE, dic_rc['bin_size'], 'bin size', block, exclude_low=True)
    _check_range(RANGE_TO_FIRST_BIN_RANGE, dic_rc['range_to_first_bin'], 'range to first bin', block)
    _check_range(RADIAL_COUNT_RANGE, dic_rc['radial_count'], 'radial count', block)

    bin_size = float(dic_rc['bin_size'])
    range_to_first_bin = float(dic_rc['range_to_first_bin'])
    radial_count = dic_rc['radial_count']

    radials = []
    starts = np.zeros(radial_count)
    widths = np.zeros(radial_count)
    bins_per_radial = None
    edges = None
    for idx in range(radial_count):
        block = 'radial %d' % idx
        dic_ri, pos = _unpack_xdr(stream, pos, RADIAL_INFO, block)
        _check_range(AZIMUTH_RANGE, dic_ri['azimuth'], 'azimuth', block)
        _check_range(ELEVATION_RANGE, dic_ri['elevation'], 'elevation', block)
        _check_range(WIDTH_RANGE, dic_ri['width'], 'width', block, exclude_low=True)
        _check_range(BIN_COUNT_RANGE, dic_ri['bin_count'], 'bin count', block)
        bin_count = dic_ri['bin_count']
        if bins_per_radial is None:
            bins_per_radial = bin_count
            edges = _range_edges(range_to_first_bin, bin_size, bin_count)
        elif bin_count != bins_per_radial:
            raise FormatError('%s holds %d bins, radial 0 holds %d'
                              % (block, bin_count, bins_per_radial))
        _check_value(bin_count, dic_ri['array_length'], 'data array length', block)

        nbytes = bin_count * 4
        if pos + nbytes > len(stream):
            raise FormatError('stream ends inside %s: %d code bytes declared, %d available'
                              % (block, nbytes, len(stream) - pos))
        codes = np.frombuffer(stream, dtype='>i4', count=bin_count, offset=pos).astype(np.int32)
        pos += nbytes
        _check_codes(codes, idx, max_precip_rate)
        codes.flags.writeable = False

        starts[idx] = dic_ri['azimuth']
        widths[idx] = dic_ri['width']
        radials.append(Radial(
            azimuth=units.Quantity(float(dic_ri['azimuth']), 'degree'),
            elevation=units.Quantity(float(dic_ri['elevation']), 'degree'),
            width=units.Quantity(float(dic_ri['width']), 'degree'),
            codes=codes,
            range_edges=units.Quantity(edges.copy(), 'meter'),
            attributes=dic_ri['attributes'],
        ))

    leftover = len(stream) - pos
    if leftover > padding_tolerance:
        raise FormatError('%d undecoded bytes remain after the last radial, %d allowed'
                          % (leftover, padding_tolerance))
    if leftover:
        logger.debug('ignoring %d padding bytes after the last radial', leftover)

    _check_coverage(starts, widths, azimuth_tolerance)

    symbology = SymbologyHeader(
        name=dic_pdd['name'],
        description=dic_pdd['description'],
        radar_name=dic_pdd['radar_name'],
        capture_time=EPOCH + timedelta(seconds=dic_pdd['volume_time']),
        scan_number=dic_pdd['scan_number'],
        elevation_angle=units.Quantity(float(dic_pdd['elevation_angle']), 'degree'),
        bin_size=units.Quantity(bin_size, 'meter'),
        range_to_first_bin=units.Quantity(range_to_first_bin, 'meter'),
        radial_count=radial_count,
        bins_per_radial=bins_per_radial,
        azimuthal_resolution=units.Quantity(float(widths.mean()), 'degree'),
    )
    logger.debug('decoded %d radials of %d bins, %g m bins',
                 radial_count, bins_per_radial, bin_size)
    return symbology, radials


def parse_dipr(buf, max_precip_rate=DEFAULT_MAX_PRECIP_RATE,
               azimuth_tolerance=DEFAULT_AZIMUTH_TOLERANCE,
               padding_tolerance=DEFAULT_PADDING_TOLERANCE):
    """
    Convert the bytes of one DIPR product into a PrecipRate.

    Raises FormatError or DecompressionError; nothing partial is returned.
    """
    header = decode_header(buf, padding_tolerance=padding_tolerance)
    stream = decompress_payload(buf, header)
    symbology, radials = decode_symbology(stream,
                                          max_precip_rate=max_precip_rate,
                                          azimuth_tolerance=azimuth_tolerance,
                                          padding_tolerance=padding_tolerance)
    return PrecipRate(header=header, symbology=symbology, radials=tuple(radials))


def read_dipr(filename, **kwargs):
    """
    Read and parse a DIPR product from a path, a binary file object, or
    standard input when ``filename`` is ``'-'``.
    """
    if hasattr(filename, 'read'):
        buf = filename.read()
    elif filename in (None, '', '-'):
        buf = sys.stdin.buffer.read()
    else:
        with open(filename, 'rb') as fh:
            buf = fh.read()
    return parse_dipr(buf, **kwargs)
