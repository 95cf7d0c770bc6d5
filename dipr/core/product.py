# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
In-memory representation of a decoded DIPR product.

A PrecipRate owns its ProductHeader, its SymbologyHeader and its radials;
every radial owns its coded values and range edges. Nothing here is mutated
after construction. Physical values are pint quantities from the metpy
unit registry.

'''
from collections import namedtuple
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional, Tuple

import numpy as np
import xarray as xr
from metpy.units import units


# precipitation rate is a length per time, the same dimension as a velocity
RATE_UNITS = 'inch / hour'
# code = rate * RATE_SCALE + RATE_OFFSET, rate in inches per hour
RATE_SCALE = 1000.0
RATE_OFFSET = 0.0

Location = namedtuple('Location', ['latitude', 'longitude'])


class OperationalMode(IntEnum):
    MAINTENANCE = 0
    CLEAN_AIR = 1
    PRECIPITATION = 2

    def __str__(self):
        return self.name.replace('_', ' ').title()


class Compression(IntEnum):
    NONE = 0
    BZIP2 = 1


class BinState(IntEnum):
    """
    State of a coded bin. Every negative member is a reserved sentinel code.
    """
    VALID = 0
    NO_DATA = -1
    BELOW_THRESHOLD = -2
    RANGE_FOLDED = -3


SENTINEL_CODES = np.array([s.value for s in BinState if s is not BinState.VALID],
                          dtype=np.int32)


@dataclass(frozen=True)
class ProductHeader:
    """
    Fields of the uncompressed header region: text header, message header
    and product description block.
    """
    station_code: str
    message_code: int
    message_time: datetime
    message_length: int
    location: Optional[Location]
    radar_height: object
    operational_mode: OperationalMode
    vcp: int
    sequence_number: int
    volume_scan_number: int
    scan_time: datetime
    generation_time: datetime
    elevation_number: int
    elevation_angle: object
    precip_detected: bool
    max_precip_rate: object
    compression: Compression
    uncompressed_size: int
    payload_offset: int
    payload_length: int
    source_id: int = 0
    destination_id: int = 0
    block_count: int = 3
    version: int = 0
    spot_blank: int = 0
    product_params: Tuple[int, int, int, int] = (0, 0, 0, 0)
    thresholds: bytes = bytes(32)
    # halfwords from the message header to the symbology, graphic and tabular blocks
    block_offsets: Tuple[int, int, int] = (60, 0, 0)
    wmo_id: str = 'SDUS50 '
    wmo_time: str = ' 000000\r\r\n'
    awips_id: str = 'DPR\r\r\n'


@dataclass(frozen=True)
class SymbologyHeader:
    """
    Fields of the decompressed symbology block that describe the polar grid.
    """
    name: str
    description: str
    radar_name: str
    capture_time: datetime
    scan_number: int
    elevation_angle: object
    bin_size: object
    range_to_first_bin: object
    radial_count: int
    bins_per_radial: int
    azimuthal_resolution: object


@dataclass(frozen=True)
class Bin:
    range_inner: object
    range_outer: object
    reading: object

    @property
    def is_sentinel(self):
        return isinstance(self.reading, BinState)


@dataclass(frozen=True, eq=False)
class Radial:
    """
    One angular slice of the scan.

    Attributes
    ----------
    azimuth : pint.Quantity
        Starting azimuth, degrees clockwise from north.
    elevation : pint.Quantity
        Antenna elevation.
    width : pint.Quantity
        Azimuthal width of the slice.
    codes : numpy.ndarray
        Raw int32 bin codes, read-only.
    range_edges : pint.Quantity
        Contiguous bin edges in meters, one more than the number of bins.
    attributes : str
        Free text attached to the radial.
    """
    azimuth: object
    elevation: object
    width: object
    codes: np.ndarray
    range_edges: object
    attributes: str = ''

    @property
    def bin_count(self):
        return len(self.codes)

    @property
    def end_azimuth(self):
        return units.Quantity((self.azimuth + self.width).m_as('degree') % 360.0, 'degree')

    @property
    def valid(self):
        """Boolean mask of the bins holding a rate."""
        return ~np.isin(self.codes, SENTINEL_CODES)

    @property
    def states(self):
        return np.where(self.valid, BinState.VALID.value, self.codes).astype(np.int32)

    @property
    def precip_rates(self):
        """Decoded rates, NaN where the bin holds a sentinel."""
        rates = np.where(self.valid, (self.codes - RATE_OFFSET) / RATE_SCALE, np.nan)
        return units.Quantity(rates, RATE_UNITS)

    @property
    def bins(self):
        edges = self.range_edges
        rates = self.precip_rates
        out = []
        for idx, state in enumerate(self.states):
            if state == BinState.VALID:
                reading = rates[idx]
            else:
                reading = BinState(int(state))
            out.append(Bin(edges[idx], edges[idx + 1], reading))
        return out


@dataclass(frozen=True, eq=False)
class PrecipRate:
    """
    Decoded Digital Instantaneous Precipitation Rate product.

    Create it with ``dipr.io.decode.parse_dipr``.
    """
    header: ProductHeader
    symbology: SymbologyHeader
    radials: Tuple[Radial, ...]

    @property
    def station_code(self):
        return self.header.station_code

    @property
    def capture_time(self):
        return self.symbology.capture_time

    @property
    def location(self):
        return self.header.location

    @property
    def radial_count(self):
        return len(self.radials)

    @property
    def bins_per_radial(self):
        return self.symbology.bins_per_radial

    @property
    def bin_size(self):
        return self.symbology.bin_size

    @property
    def range_to_first_bin(self):
        return self.symbology.range_to_first_bin

    @property
    def azimuthal_resolution(self):
        return self.symbology.azimuthal_resolution

    @property
    def max_precip_rate(self):
        return self.header.max_precip_rate

    @property
    def valid_bin_count(self):
        return int(sum(np.count_nonzero(r.valid) for r in self.radials))

    @property
    def sentinel_bin_count(self):
        return self.radial_count * self.bins_per_radial - self.valid_bin_count

    def to_polygons(self, **kwargs):
        """Shortcut for ``dipr.core.geometry.to_polygons(self, **kwargs)``."""
        from dipr.core.geometry import to_polygons
        return to_polygons(self, **kwargs)

    def to_xarray(self, rate_units='mm / hour'):
        """
        Rates as an (azimuth, range) DataArray; sentinel bins are NaN.
        """
        rates = np.vstack([r.precip_rates.m_as(rate_units) for r in self.radials])
        azimuth = np.array([(r.azimuth + r.width / 2).m_as('degree') % 360.0
                            for r in self.radials])
        edges = self.radials[0].range_edges.m_as('meter')
        centers = (self.range_to_first_bin.m_as('meter')
                   + np.arange(self.bins_per_radial) * self.bin_size.m_as('meter'))
        data = xr.DataArray(rates.astype(np.float32), coords=[azimuth, centers],
                            dims=['azimuth', 'range'], name='precip_rate')
        data.coords['range_inner'] = ('range', edges[:-1])
        data.coords['range_outer'] = ('range', edges[1:])
        data.azimuth.attrs['units'] = 'degree'
        data.range.attrs['units'] = 'meter'
        data.attrs['units'] = str(units.Unit(rate_units))
        data.attrs['standard_name'] = 'rainfall_rate'
        data.attrs['long_name'] = 'digital_instantaneous_precipitation_rate'
        if self.location is not None:
            data.attrs['radar_lat'] = self.location.latitude
            data.attrs['radar_lon'] = self.location.longitude
        data.attrs['site_id'] = self.station_code
        data.attrs['scan_time'] = self.capture_time.strftime('%Y-%m-%d %H:%M:%S')
        data.attrs['scan_number'] = self.symbology.scan_number
        data.attrs['operational_mode'] = str(self.header.operational_mode)
        data.attrs['missing_value'] = np.nan
        return data

    def summary(self):
        header = self.header
        lines = [
            'Station Code:        %s' % self.station_code,
            'Capture Time:        %s' % self.capture_time.isoformat(),
            'Operational Mode:    %s' % header.operational_mode,
            'Precip Detected:     %s' % ('Yes' if header.precip_detected else 'No'),
            'Scan Number:         %d' % self.symbology.scan_number,
            'Max Precip Rate:     %.3f in/hr' % self.max_precip_rate.m_as(RATE_UNITS),
            'Elevation Angle:     %.1f deg' % header.elevation_angle.m_as('degree'),
            'Bin Size:            %g m' % self.bin_size.m_as('meter'),
            'Bins per Radial:     %d' % self.bins_per_radial,
            'Number of Radials:   %d' % self.radial_count,
            'Range to First Bin:  %g m' % self.range_to_first_bin.m_as('meter'),
            'Valid Bins:          %d' % self.valid_bin_count,
        ]
        if self.location is not None:
            lines.insert(1, 'Location:            %.3f, %.3f'
                         % (self.location.latitude, self.location.longitude))
        return '\n'.join(lines)

    def __str__(self):
        return self.summary()
