# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

"""
Read configure file.

The default file is ~/.dipr/config.ini:

    [decode]
    azimuth_tolerance = 0.5
    padding_tolerance = 4
    max_precip_rate = 60

    [geometry]
    chord_tolerance = 10
    max_segments = 64
    workers = 4

    [stations]
    KGYX = 43.8913, -70.2565
"""

import os
import configparser
from pathlib import Path

from metpy.units import units

from dipr.core.product import RATE_UNITS


def _get_config_dir():
    """
    Get default configuration directory.
    """
    return Path.home() / ".dipr"


# Global Variables
CONFIG_DIR = _get_config_dir()
CONFIG_FILE = CONFIG_DIR / 'config.ini'


class ConfigFetchError(Exception):
    pass


def _get_config_from_rcfile(rc=CONFIG_FILE):
    """
    Get configure information from the ini file, None if it does not exist.
    """

    if not os.path.exists(rc):
        return None

    config = configparser.ConfigParser()
    # keep station codes upper case
    config.optionxform = str
    try:
        with open(rc, encoding='utf-8') as fh:
            config.read_file(fh)
    except (OSError, configparser.Error) as e:
        raise ConfigFetchError('%s: %s' % (rc, e)) from e

    return config


def load_config(rc=None):
    """
    Load the ini file ``rc``, or the default file.

    An explicitly named file must exist; a missing default file gives an
    empty configuration.
    """
    if rc is not None and not os.path.exists(rc):
        raise ConfigFetchError(str(rc) + ' not exists!')
    config = _get_config_from_rcfile(CONFIG_FILE if rc is None else rc)
    if config is None:
        config = configparser.ConfigParser()
        config.optionxform = str
    return config


def _get(config, section, option, convert, minimum=None, strict=False):
    if not config.has_option(section, option):
        return None
    value = config.get(section, option)
    try:
        out = convert(value)
    except ValueError as e:
        raise ConfigFetchError('[%s] %s = %r: %s' % (section, option, value, e)) from e
    if minimum is not None and (out < minimum or (strict and out == minimum)):
        raise ConfigFetchError('[%s] %s = %r: must be %s %s' % (
            section, option, value, 'above' if strict else 'at least', minimum))
    return out


def get_decode_options(config):
    """ Keyword arguments for ``parse_dipr`` from the [decode] section. """
    out = {}
    value = _get(config, 'decode', 'azimuth_tolerance', float, 0)
    if value is not None:
        out['azimuth_tolerance'] = units.Quantity(value, 'degree')
    value = _get(config, 'decode', 'padding_tolerance', int, 0)
    if value is not None:
        out['padding_tolerance'] = value
    value = _get(config, 'decode', 'max_precip_rate', float, 0, strict=True)
    if value is not None:
        out['max_precip_rate'] = units.Quantity(value, RATE_UNITS)
    return out


def get_geometry_options(config):
    """ Keyword arguments for ``to_polygons`` from the [geometry] section. """
    out = {}
    value = _get(config, 'geometry', 'chord_tolerance', float, 0, strict=True)
    if value is not None:
        out['chord_tolerance'] = units.Quantity(value, 'meter')
    for option in ('max_segments', 'workers'):
        value = _get(config, 'geometry', option, int, 1)
        if value is not None:
            out[option] = value
    return out


def _parse_location(text):
    parts = [p.strip() for p in text.split(',')]
    if len(parts) != 2:
        raise ValueError('expected "latitude, longitude"')
    return float(parts[0]), float(parts[1])


def get_station_overrides(config):
    """ Station locations from the [stations] section, keyed by upper case code. """
    if not config.has_section('stations'):
        return {}
    return {code.upper(): _get(config, 'stations', code, _parse_location)
            for code in config.options('stations')}
