# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Small helpers shared by the decoder, the geometry code and the tools.

'''
import numpy as np
from metpy.units import units

# mean earth radius
EARTH_RADIUS = units.Quantity(6371008.8, 'meter')


def as_quantity(value, default_units):
    """
    Attach ``default_units`` to a bare number; quantities pass through
    after a dimensionality check.
    """
    if hasattr(value, 'units'):
        return value.to(default_units)
    return units.Quantity(value, default_units)


def great_circle_distance(lat1, lon1, lat2, lon2):
    r"""Compute the haversine distance between two points.

    Parameters
    ----------
    lat1, lon1 : float or array_like
        Start point, degrees
    lat2, lon2 : float or array_like
        End point, degrees

    Returns
    -------
    `pint.Quantity`
        Distance along the surface of a spherical earth

    """
    lat1, lon1, lat2, lon2 = map(np.deg2rad, (lat1, lon1, lat2, lon2))
    haversine = (np.sin((lat2 - lat1) / 2) ** 2
                 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2)
    return EARTH_RADIUS * 2 * np.arctan2(np.sqrt(haversine), np.sqrt(1 - haversine))
