# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Read DIPR products into a pyart Radar object.

'''
import numpy as np
from pyart.config import FileMetadata, get_fillvalue
from pyart.core.radar import Radar
from pyart.io.common import _test_arguments, make_time_unit_str, prepare_for_read

from dipr.core.geometry import resolve_location
from dipr.io.decode import DIPR_PRODUCT_CODE, parse_dipr

RAIN_RATE_FIELD = 'radar_estimated_rain_rate'


def dipr_to_pyart(product, field_names=None, additional_metadata=None,
                  file_field_names=False, exclude_fields=None,
                  include_fields=None, location=None, stations=None):
    """
    Convert a PrecipRate into a single sweep pyart Radar.

    The rate field is in mm/hr and masked where the bin holds a sentinel.
    The site location follows the same lookup as the polygon builder.
    """
    filemetadata = FileMetadata('nexrad_level3', field_names,
                                additional_metadata, file_field_names,
                                exclude_fields, include_fields)
    nrays = product.radial_count

    # time, every ray is stamped with the volume scan start
    time = filemetadata('time')
    time['data'] = np.zeros(nrays, dtype='float64')
    time['units'] = make_time_unit_str(product.capture_time.replace(tzinfo=None))

    # range
    _range = filemetadata('range')
    first_gate = product.range_to_first_bin.m_as('meter')
    gate_spacing = product.bin_size.m_as('meter')
    _range['data'] = (first_gate + np.arange(product.bins_per_radial) * gate_spacing).astype('float32')
    _range['meters_to_center_of_first_gate'] = float(first_gate)
    _range['meters_between_gates'] = float(gate_spacing)

    # metadata
    metadata = filemetadata('metadata')
    metadata['original_container'] = 'NEXRAD Level 3 DIPR'
    metadata['instrument_name'] = product.station_code
    metadata['vcp_pattern'] = product.header.vcp

    scan_type = 'ppi'

    # latitude, longitude, altitude
    latitude = filemetadata('latitude')
    longitude = filemetadata('longitude')
    altitude = filemetadata('altitude')
    lat, lon = resolve_location(product, location=location, stations=stations)
    latitude['data'] = np.array([lat], dtype='float64')
    longitude['data'] = np.array([lon], dtype='float64')
    altitude['data'] = np.array([product.header.radar_height.m_as('meter')], dtype='float64')

    # one sweep
    sweep_number = filemetadata('sweep_number')
    sweep_mode = filemetadata('sweep_mode')
    fixed_angle = filemetadata('fixed_angle')
    sweep_start_ray_index = filemetadata('sweep_start_ray_index')
    sweep_end_ray_index = filemetadata('sweep_end_ray_index')
    sweep_number['data'] = np.array([0], dtype='int32')
    sweep_mode['data'] = np.array(['azimuth_surveillance'], dtype='S')
    fixed_angle['data'] = np.array([product.header.elevation_angle.m_as('degree')],
                                   dtype='float32')
    sweep_start_ray_index['data'] = np.array([0], dtype='int32')
    sweep_end_ray_index['data'] = np.array([nrays - 1], dtype='int32')

    # azimuth at the centre of each ray
    azimuth = filemetadata('azimuth')
    elevation = filemetadata('elevation')
    azimuth['data'] = np.array([(r.azimuth + r.width / 2).m_as('degree') % 360.0
                                for r in product.radials], dtype='float32')
    elevation['data'] = np.array([r.elevation.m_as('degree') for r in product.radials],
                                 dtype='float32')

    # fields
    fields = {}
    if file_field_names:
        field_name = str(DIPR_PRODUCT_CODE)
    elif field_names is not None:
        field_name = field_names.get(DIPR_PRODUCT_CODE, RAIN_RATE_FIELD)
    else:
        field_name = RAIN_RATE_FIELD
    excluded = exclude_fields is not None and field_name in exclude_fields
    if include_fields is not None and field_name not in include_fields:
        excluded = True
    if not excluded:
        rates = np.vstack([r.precip_rates.m_as('mm / hour') for r in product.radials])
        dic = filemetadata(field_name)
        dic['_FillValue'] = get_fillvalue()
        dic['units'] = 'mm/hr'
        dic['data'] = np.ma.masked_invalid(rates.astype('float32'))
        np.ma.set_fill_value(dic['data'], get_fillvalue())
        fields[field_name] = dic

    return Radar(
        time, _range, fields, metadata, scan_type,
        latitude, longitude, altitude,
        sweep_number, sweep_mode, fixed_angle, sweep_start_ray_index,
        sweep_end_ray_index,
        azimuth, elevation)


def read_dipr_pyart(filename, field_names=None, additional_metadata=None,
                    file_field_names=False, exclude_fields=None,
                    include_fields=None, location=None, stations=None,
                    **kwargs):
    """
    Read a DIPR product file as a pyart Radar.

    Accepts a path or file object; gzip and bzip2 wrapped files are opened
    transparently.
    """
    # test for non empty kwargs
    _test_arguments(kwargs)

    fh = prepare_for_read(filename)
    buf = fh.read()
    if fh is not filename:
        fh.close()
    product = parse_dipr(buf)
    return dipr_to_pyart(product, field_names, additional_metadata,
                         file_field_names, exclude_fields, include_fields,
                         location=location, stations=stations)
