# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Polar grid to polygons.

Every valid bin of a PrecipRate becomes a shapely Polygon in (longitude,
latitude) bounding its sector, paired with the bin's rate. Arcs are split
into chords short enough to stay within a distance tolerance of the true
arc, and vertices are projected with the azimuthal equidistant projection
centred on the station, so bearing and distance from the radar are exact.

'''
import logging
from collections import namedtuple
from functools import partial
from multiprocessing.pool import ThreadPool

import numpy as np
import pyart
from shapely.geometry import Polygon

from dipr.core.product import Location
from dipr.core.stations import STATIONS
from dipr.errors import GeometryError
from dipr.util.comm_func import as_quantity

logger = logging.getLogger(__name__)

RatePolygon = namedtuple('RatePolygon', ['polygon', 'rate'])

DEFAULT_CHORD_TOLERANCE = 10.0  # meters
DEFAULT_MAX_SEGMENTS = 64

# widest arc drawn by a single chord, degrees
MAX_CHORD_ANGLE = 90.0


def resolve_location(product, location=None, stations=None):
    """
    Station location used to anchor the polygons of ``product``.

    The explicit ``location`` wins, then the location stored in the product
    header, then the station table (``stations`` or the bundled table).
    """
    if location is not None:
        return Location(float(location[0]), float(location[1]))
    if product.location is not None:
        return product.location
    table = STATIONS if stations is None else stations
    code = product.station_code.upper()
    if code in table:
        return Location(*table[code])
    raise GeometryError('location of station %s is unknown' % product.station_code)


def arc_segments(width, radius, tolerance=DEFAULT_CHORD_TOLERANCE,
                 max_segments=DEFAULT_MAX_SEGMENTS):
    """
    Number of chords needed to draw an arc of ``width`` degrees at ``radius``
    meters with a sagitta below ``tolerance`` meters.

    ``radius`` may be an array. The result is between 1 and ``max_segments``
    and never decreases with the radius, except that a chord never spans
    more than 90 degrees of arc.
    """
    radius = np.asarray(radius, dtype=float)
    with np.errstate(divide='ignore'):
        ratio = np.minimum(np.where(radius > 0, tolerance / radius, 1.0), 1.0)
    step = 2 * np.arccos(1 - ratio)
    count = np.clip(np.ceil(np.deg2rad(width) / step), 1, max_segments)
    return np.maximum(count, np.ceil(width / MAX_CHORD_ANGLE)).astype(int)


def _radial_polygons(radial, origin, skip_zeros, tolerance, max_segments):
    keep = radial.valid
    rates = radial.precip_rates
    if skip_zeros:
        keep = keep & (np.nan_to_num(rates.magnitude) > 0)
    index = np.flatnonzero(keep)
    if not len(index):
        return []

    start = radial.azimuth.m_as('degree')
    # a width of 360 is one full turn, not zero
    width = radial.width.m_as('degree') % 360.0 or 360.0
    full_turn = width >= 360.0
    edges = radial.range_edges.m_as('meter')

    # each edge is shared by the bins on both sides of it
    used = np.union1d(index, index + 1)
    nseg = arc_segments(width, edges[used], tolerance, max_segments)
    if full_turn:
        # same vertex bearings on every circle keep each hole inside its shell
        nseg[:] = nseg.max()
    xs, ys, spans = [], [], {}
    pos = 0
    for edge, n in zip(used, nseg):
        r = edges[edge]
        if r <= 0:
            theta = np.deg2rad([start])
        elif full_turn:
            theta = np.deg2rad(start + width * np.arange(n) / n)
        else:
            theta = np.deg2rad(start + width * np.arange(n + 1) / n)
        xs.append(r * np.sin(theta))
        ys.append(r * np.cos(theta))
        spans[edge] = slice(pos, pos + len(theta))
        pos += len(theta)

    lon, lat = pyart.core.transforms.cartesian_to_geographic_aeqd(
        np.concatenate(xs), np.concatenate(ys), origin.longitude, origin.latitude)
    points = np.column_stack([lon, lat])

    out = []
    for idx in index:
        inner = points[spans[idx]]
        outer = points[spans[idx + 1]][::-1]
        if not full_turn:
            polygon = Polygon(np.vstack([inner, outer]))
        elif len(inner) > 1:
            # annulus, the inner circle runs clockwise as a hole
            polygon = Polygon(outer, [inner])
        else:
            polygon = Polygon(outer)
        out.append(RatePolygon(polygon, rates[idx]))
    return out


def to_polygons(product, location=None, stations=None, skip_zeros=False,
                chord_tolerance=DEFAULT_CHORD_TOLERANCE,
                max_segments=DEFAULT_MAX_SEGMENTS, workers=None):
    """
    Decompose a PrecipRate into one polygon per valid bin.

    Parameters
    ----------
    product : PrecipRate
    location : (latitude, longitude), optional
        Station location; see ``resolve_location`` for the fallbacks.
    stations : mapping, optional
        Station code to (latitude, longitude); defaults to the bundled table.
    skip_zeros : bool
        Also drop bins whose rate is zero.
    chord_tolerance : float or pint.Quantity
        Largest distance between an arc and its chords, meters by default.
    max_segments : int
        Upper bound of chords per arc.
    workers : int, optional
        Build radials on a thread pool of this size.

    Returns
    -------
    list of RatePolygon
        In radial order, then bin order. ``polygon`` is a shapely Polygon in
        (longitude, latitude) with a counter-clockwise shell; a bin of a full
        turn radial is an annulus whose clockwise hole is the inner circle.
        ``rate`` is a pint quantity in inches per hour.

    Raises
    ------
    GeometryError
        The station location is unknown.
    """
    origin = resolve_location(product, location=location, stations=stations)
    tolerance = as_quantity(chord_tolerance, 'meter').m_as('meter')
    if tolerance <= 0:
        raise ValueError('chord tolerance must be positive, got %s' % chord_tolerance)
    if max_segments < 1:
        raise ValueError('max_segments must be at least 1, got %s' % max_segments)

    func = partial(_radial_polygons, origin=origin, skip_zeros=skip_zeros,
                   tolerance=tolerance, max_segments=int(max_segments))
    if workers and workers > 1:
        with ThreadPool(workers) as pool:
            parts = pool.map(func, product.radials)
    else:
        parts = [func(radial) for radial in product.radials]

    polygons = [p for part in parts for p in part]
    logger.debug('%s: %d polygons from %d radials, origin %.3f, %.3f',
                 product.station_code, len(polygons), product.radial_count,
                 origin.latitude, origin.longitude)
    return polygons
