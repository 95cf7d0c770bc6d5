# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Write polygon decompositions as GeoJSON or ESRI Shapefile.

Both writers take the list returned by ``to_polygons`` and store the rate of
each polygon in a ``precipRate`` property.

'''
import json
import logging
import sys

import numpy as np
import shapefile
from shapely.geometry import mapping
from shapely.ops import transform

from dipr.core.product import RATE_UNITS

logger = logging.getLogger(__name__)

RATE_PROPERTY = 'precipRate'

# WGS 84, written next to the shapefile
WGS84_PRJ = ('GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",'
             'SPHEROID["WGS_1984",6378137.0,298.257223563]],'
             'PRIMEM["Greenwich",0.0],UNIT["Degree",0.0174532925199433]]')


def to_geojson(polygons, rate_units=RATE_UNITS, precision=6):
    """
    Build a GeoJSON FeatureCollection dictionary.

    Shells are counter-clockwise and holes clockwise as produced by
    ``to_polygons``; coordinates are rounded to ``precision`` decimals.
    """
    def _round(x, y):
        return np.round(x, precision), np.round(y, precision)

    features = []
    for polygon, rate in polygons:
        features.append({
            'type': 'Feature',
            'geometry': mapping(transform(_round, polygon)),
            'properties': {RATE_PROPERTY: float(rate.m_as(rate_units))},
        })
    return {'type': 'FeatureCollection', 'features': features}


def write_geojson(polygons, fp=None, rate_units=RATE_UNITS, precision=6):
    """
    Write polygons as GeoJSON to a path or text file object, stdout by default.
    """
    collection = to_geojson(polygons, rate_units=rate_units, precision=precision)
    if fp is None or fp == '-':
        json.dump(collection, sys.stdout)
        sys.stdout.write('\n')
    elif hasattr(fp, 'write'):
        json.dump(collection, fp)
    else:
        with open(fp, 'w', encoding='utf-8') as fh:
            json.dump(collection, fh)
    logger.debug('wrote %d features', len(collection['features']))
    return collection


def write_shapefile(polygons, target, rate_units=RATE_UNITS, write_prj=True):
    """
    Write polygons as a polygon shapefile.

    Parameters
    ----------
    polygons : list of RatePolygon
    target : str
        Output path; .shp, .shx and .dbf (and .prj) files are created next
        to each other.
    rate_units : str
        Unit of the ``precipRate`` field.
    """
    target = str(target)
    if target.lower().endswith('.shp'):
        target = target[:-4]
    with shapefile.Writer(target, shapeType=shapefile.POLYGON) as shp:
        shp.field(RATE_PROPERTY, 'N', decimal=4)
        for polygon, rate in polygons:
            # shapefile outer rings are clockwise, holes counter-clockwise
            rings = [polygon.exterior] + list(polygon.interiors)
            shp.poly([list(ring.coords)[::-1] for ring in rings])
            shp.record(float(rate.m_as(rate_units)))
    if write_prj:
        with open(target + '.prj', 'w', encoding='ascii') as fh:
            fh.write(WGS84_PRJ)
    logger.debug('wrote %d shapes to %s.shp', len(polygons), target)
    return target + '.shp'
