# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Encode DIPR products.

The inverse of dipr.io.decode: turns headers and radials back into the
product layout. Used to re-encode parsed products and to build synthetic
products for testing downstream tools.

'''
import bz2
import dataclasses
from datetime import datetime, timezone

import numpy as np
from metpy.units import units

from dipr.core.product import (Compression, Location, OperationalMode,
                               PrecipRate, ProductHeader, Radial,
                               SymbologyHeader, RATE_OFFSET, RATE_SCALE,
                               RATE_UNITS)
from dipr.io.decode import (BLOCK_DIVIDER, DIPR_PRODUCT_CODE, EPOCH,
                            GENERIC_PACKET_CODE, MESSAGE_HEADER_SIZE,
                            PRODUCT_DESCRIPTION_SIZE, RADIAL_COMPONENT_TYPE,
                            SYMBOLOGY_BLOCK_ID, TEXT_HEADER_SIZE,
                            _range_edges)
from dipr.io.structures import (COMPONENT_POINTER, GENERIC_PACKET_HEADER,
                                MESSAGE_HEADER, PRODUCT_DESCRIPTION,
                                PRODUCT_DESCRIPTION_DATA, RADIAL_COMPONENT,
                                RADIAL_INFO, SYMBOLOGY_HEADER, TEXT_HEADER,
                                _pack_structure, _pack_xdr, _structure_size)
from dipr.util.comm_func import as_quantity


def _datetime_to_julian(dt):
    """ Inverse of the decoder's date conversion: (days, seconds of day). """
    delta = dt.astimezone(timezone.utc) - EPOCH
    return delta.days + 1, delta.seconds


def rate_to_code(rate):
    """ Code of a rate given in inches per hour or as a rate quantity. """
    value = as_quantity(rate, RATE_UNITS).m_as(RATE_UNITS)
    return np.rint(np.asarray(value) * RATE_SCALE + RATE_OFFSET).astype(np.int32)


def encode_header(header):
    """
    Encode the fixed header region (text header, message header and product
    description block) of ``header``.
    """
    dic_th = {
        'wmo_id': header.wmo_id.encode('ascii'),
        'station_code': header.station_code.encode('ascii'),
        'wmo_time': header.wmo_time.encode('ascii'),
        'awips_id': header.awips_id.encode('ascii'),
    }
    date, seconds = _datetime_to_julian(header.message_time)
    dic_mh = {
        'message_code': header.message_code,
        'date': date,
        'time': seconds,
        'length': header.message_length,
        'source_id': header.source_id,
        'destination_id': header.destination_id,
        'block_count': header.block_count,
    }
    if header.location is None:
        latitude, longitude = 0, 0
    else:
        latitude = int(round(header.location.latitude * 1000))
        longitude = int(round(header.location.longitude * 1000))
    scan_date, scan_seconds = _datetime_to_julian(header.scan_time)
    gen_date, gen_seconds = _datetime_to_julian(header.generation_time)
    param_1, param_2, param_6, param_7 = header.product_params
    symbology_offset, graphic_offset, tabular_offset = header.block_offsets
    dic_pd = {
        'divider': BLOCK_DIVIDER,
        'latitude': latitude,
        'longitude': longitude,
        'height': int(round(header.radar_height.m_as('foot'))),
        'product_code': DIPR_PRODUCT_CODE,
        'operational_mode': int(header.operational_mode),
        'vcp': header.vcp,
        'sequence_number': header.sequence_number,
        'volume_scan_number': header.volume_scan_number,
        'volume_scan_date': scan_date,
        'volume_scan_time': scan_seconds,
        'generation_date': gen_date,
        'generation_time': gen_seconds,
        'param_1': param_1,
        'param_2': param_2,
        'elevation_number': header.elevation_number,
        'precip_detected': int(header.precip_detected),
        'spare': b'\x00',
        'thresholds': header.thresholds,
        'max_precip_rate': int(round(header.max_precip_rate.m_as(RATE_UNITS) * 100)),
        'elevation_angle': int(round(header.elevation_angle.m_as('degree') * 10)),
        'param_6': param_6,
        'param_7': param_7,
        'compression_method': int(header.compression),
        'uncompressed_size': header.uncompressed_size,
        'version': header.version,
        'spot_blank': header.spot_blank,
        'symbology_offset': symbology_offset,
        'graphic_offset': graphic_offset,
        'tabular_offset': tabular_offset,
    }
    return (_pack_structure(dic_th, TEXT_HEADER)
            + _pack_structure(dic_mh, MESSAGE_HEADER)
            + _pack_structure(dic_pd, PRODUCT_DESCRIPTION))


def encode_radial(radial):
    dic_ri = {
        'azimuth': radial.azimuth.m_as('degree'),
        'elevation': radial.elevation.m_as('degree'),
        'width': radial.width.m_as('degree'),
        'bin_count': radial.bin_count,
        'attributes': radial.attributes,
        'array_length': radial.bin_count,
    }
    return _pack_xdr(dic_ri, RADIAL_INFO) + np.asarray(radial.codes, dtype='>i4').tobytes()


def encode_symbology(header, symbology, radials):
    """ Encode the uncompressed symbology block. """
    if header.location is None:
        latitude, longitude = 0.0, 0.0
    else:
        latitude, longitude = header.location
    dic_pdd = {
        'name': symbology.name,
        'description': symbology.description,
        'code': DIPR_PRODUCT_CODE,
        'type': 1,
        'generation_time': int((header.generation_time - EPOCH).total_seconds()),
        'radar_name': symbology.radar_name,
        'latitude': latitude,
        'longitude': longitude,
        'height': header.radar_height.m_as('foot'),
        'volume_time': int((symbology.capture_time - EPOCH).total_seconds()),
        'elevation_time': int((symbology.capture_time - EPOCH).total_seconds()),
        'elevation_angle': symbology.elevation_angle.m_as('degree'),
        'scan_number': symbology.scan_number,
        'operational_mode': int(header.operational_mode),
        'vcp': header.vcp,
        'elevation_number': header.elevation_number,
        'compression': int(header.compression),
        'uncompressed_size': header.uncompressed_size,
        'parameter_count': 0,
        'component_count': 1,
    }
    dic_rc = {
        'component_type': RADIAL_COMPONENT_TYPE,
        'description': 'Precipitation rate in 0.001 in/hr',
        'bin_size': symbology.bin_size.m_as('meter'),
        'range_to_first_bin': symbology.range_to_first_bin.m_as('meter'),
        'parameter_count': 0,
        'parameter_pointer': 0,
        'radial_count': len(radials),
    }
    body = b''.join([
        _pack_xdr(dic_pdd, PRODUCT_DESCRIPTION_DATA),
        _pack_structure({'component_type': RADIAL_COMPONENT_TYPE, 'component_present': 1},
                        COMPONENT_POINTER),
        _pack_xdr(dic_rc, RADIAL_COMPONENT),
    ] + [encode_radial(r) for r in radials])

    packet = _pack_structure({'packet_code': GENERIC_PACKET_CODE, 'reserved': 0,
                              'byte_count': len(body)}, GENERIC_PACKET_HEADER) + body
    layer_length = len(packet)
    block_length = _structure_size(SYMBOLOGY_HEADER) + layer_length
    dic_sh = {
        'divider': BLOCK_DIVIDER,
        'block_id': SYMBOLOGY_BLOCK_ID,
        'block_length': block_length,
        'layer_count': 1,
        'layer_divider': BLOCK_DIVIDER,
        'layer_length': layer_length,
    }
    return _pack_structure(dic_sh, SYMBOLOGY_HEADER) + packet


def encode_product(product, compression=None, trailing=b''):
    """
    Encode a PrecipRate back into product bytes.

    The lengths in the header are recomputed from the encoded symbology
    block; ``compression`` overrides the header's compression method.
    """
    header = product.header
    if compression is not None:
        header = dataclasses.replace(header, compression=Compression(compression))
    # the symbology block repeats its own size, which does not change its length
    stream = encode_symbology(header, product.symbology, product.radials)
    header = dataclasses.replace(header, uncompressed_size=len(stream))
    stream = encode_symbology(header, product.symbology, product.radials)
    if header.compression is Compression.BZIP2:
        payload = bz2.compress(stream)
    else:
        payload = stream
    header = dataclasses.replace(
        header,
        payload_offset=TEXT_HEADER_SIZE + MESSAGE_HEADER_SIZE + PRODUCT_DESCRIPTION_SIZE,
        payload_length=len(payload),
        message_length=MESSAGE_HEADER_SIZE + PRODUCT_DESCRIPTION_SIZE + len(payload),
    )
    return encode_header(header) + payload + trailing


def build_product(radials, station_code='KGYX', location=Location(43.891, -70.256),
                  scan_time=datetime(2025, 4, 9, 13, 52, 11, tzinfo=timezone.utc),
                  bin_size=250.0, range_to_first_bin=125.0, elevation_angle=0.5,
                  compression=Compression.BZIP2, scan_number=1,
                  operational_mode=OperationalMode.PRECIPITATION, vcp=215,
                  trailing=b''):
    """
    Build the bytes of a synthetic DIPR product.

    Parameters
    ----------
    radials : sequence of (azimuth, width, codes)
        Starting azimuth and width in degrees, and the coded bin values of
        each radial (see ``rate_to_code`` and ``BinState``).
    bin_size, range_to_first_bin : float
        Meters; the first range is the centre of bin 0.
    trailing : bytes
        Appended after the message, to exercise padding handling.
    """
    radial_objs = []
    for azimuth, width, codes in radials:
        codes = np.asarray(codes, dtype=np.int32)
        radial_objs.append(Radial(
            azimuth=units.Quantity(float(azimuth), 'degree'),
            elevation=units.Quantity(float(elevation_angle), 'degree'),
            width=units.Quantity(float(width), 'degree'),
            codes=codes,
            range_edges=units.Quantity(_range_edges(range_to_first_bin, bin_size, len(codes)),
                                       'meter'),
        ))
    codes = np.concatenate([r.codes for r in radial_objs] or [np.zeros(0, np.int32)])
    valid = codes[codes >= 0]
    max_rate = (valid.max() - RATE_OFFSET) / RATE_SCALE if len(valid) else 0.0

    header = ProductHeader(
        station_code=station_code,
        message_code=DIPR_PRODUCT_CODE,
        message_time=scan_time,
        message_length=0,
        location=location,
        radar_height=units.Quantity(400, 'foot'),
        operational_mode=OperationalMode(operational_mode),
        vcp=vcp,
        sequence_number=1,
        volume_scan_number=scan_number,
        scan_time=scan_time,
        generation_time=scan_time,
        elevation_number=1,
        elevation_angle=units.Quantity(float(elevation_angle), 'degree'),
        precip_detected=bool(max_rate > 0),
        max_precip_rate=units.Quantity(float(max_rate), RATE_UNITS),
        compression=Compression(compression),
        uncompressed_size=0,
        payload_offset=0,
        payload_length=0,
        wmo_id='SDUS51 ',
        wmo_time=scan_time.strftime(' %d%H%M\r\r\n'),
        awips_id='DPR%s\r\r\n' % station_code[1:],
    )
    widths = np.array([r.width.m_as('degree') for r in radial_objs])
    symbology = SymbologyHeader(
        name='DPR',
        description='Digital Instantaneous Precipitation Rate',
        radar_name=station_code,
        capture_time=scan_time,
        scan_number=scan_number,
        elevation_angle=units.Quantity(float(elevation_angle), 'degree'),
        bin_size=units.Quantity(float(bin_size), 'meter'),
        range_to_first_bin=units.Quantity(float(range_to_first_bin), 'meter'),
        radial_count=len(radial_objs),
        bins_per_radial=len(radial_objs[0].codes) if radial_objs else 0,
        azimuthal_resolution=units.Quantity(float(widths.mean()) if len(widths) else 0.0,
                                            'degree'),
    )
    product = PrecipRate(header=header, symbology=symbology, radials=tuple(radial_objs))
    return encode_product(product, trailing=trailing)
