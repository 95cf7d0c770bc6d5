# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Convert the NWS Digital Instantaneous Precipitation Rate product to common
vector GIS formats.

    dipr info sn.last
    dipr to-geojson sn.last --skip-zeros > kgyx.geojson
    dipr to-shapefile sn.last kgyx.shp
    dipr fetch --near 43.66,-70.26 | dipr to-geojson
    dipr fetch KGYX -o sn.last

'''
import argparse
import logging
import sys

from metpy.units import units
from pint.errors import PintError

from dipr.config import (ConfigFetchError, get_decode_options,
                         get_geometry_options, get_station_overrides,
                         load_config)
from dipr.core.geometry import to_polygons
from dipr.core.product import RATE_UNITS
from dipr.core.stations import STATIONS, find_nearest_stations
from dipr.errors import DiprError, DownloadError
from dipr.io.decode import read_dipr
from dipr.io.net import fetch_latest, fetch_station_statuses
from dipr.io.writers import write_geojson, write_shapefile

logger = logging.getLogger('dipr')


def _location(text):
    try:
        lat, lon = [float(v) for v in text.split(',')]
    except ValueError:
        raise argparse.ArgumentTypeError('expected LAT,LON, got %r' % text) from None
    return lat, lon


def _rate_units(text):
    try:
        ok = (units.Quantity(1.0, text).dimensionality
              == units.Quantity(1.0, RATE_UNITS).dimensionality)
    except (PintError, ValueError):
        ok = False
    if not ok:
        raise argparse.ArgumentTypeError('%r is not a unit of length per time' % text)
    return text


def _positive_int(text):
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError('expected a positive integer, got %r' % text)
    return value


def _stations(config):
    stations = dict(STATIONS)
    stations.update(get_station_overrides(config))
    return stations


def _polygons(args, config):
    product = read_dipr(args.input, **get_decode_options(config))
    options = get_geometry_options(config)
    if args.workers is not None:
        options['workers'] = args.workers
    return to_polygons(product, location=args.location, stations=_stations(config),
                       skip_zeros=args.skip_zeros, **options)


def do_info(args, config):
    product = read_dipr(args.input, **get_decode_options(config))
    print(product.summary())


def do_geojson(args, config):
    polygons = _polygons(args, config)
    write_geojson(polygons, args.output, rate_units=args.units)


def do_shapefile(args, config):
    polygons = _polygons(args, config)
    path = write_shapefile(polygons, args.output, rate_units=args.units)
    logger.info('wrote %d polygons to %s', len(polygons), path)


def _select_station(args, config):
    """ Station to download from, checked against the status page. """
    stations = _stations(config)
    online = None if args.no_status else dict(fetch_station_statuses())

    if args.near is None:
        station = args.station.strip().upper()
        if station not in stations:
            raise DownloadError("'%s' is not a valid station" % args.station)
        # a station missing from the status page counts as offline
        if online is not None and not online.get(station, False):
            raise DownloadError('station %s is offline' % station)
        return station

    lat, lon = args.near
    nearby = find_nearest_stations(lat, lon, stations=stations)
    if not nearby:
        raise DownloadError('%.3f, %.3f is not within range of any radar station' % (lat, lon))
    for code, distance in nearby:
        if online is None or online.get(code, False):
            logger.info('using station %s, %.1f km away', code, distance.m_as('kilometer'))
            return code
        logger.debug('skipping offline station %s', code)
    raise DownloadError('all radar stations within range of %.3f, %.3f are offline' % (lat, lon))


def do_fetch(args, config):
    data = fetch_latest(_select_station(args, config))
    if args.output in (None, '-'):
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        with open(args.output, 'wb') as fh:
            fh.write(data)
        logger.info('saved %d bytes to %s', len(data), args.output)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='dipr',
        description='Convert the NWS Digital Instantaneous Precipitation Rate '
                    'product to common vector GIS formats.')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='print debug messages')
    parser.add_argument('--config', default=None,
                        help='ini file, default ~/.dipr/config.ini')
    subparsers = parser.add_subparsers(dest='command', metavar='command')
    subparsers.required = True

    p = subparsers.add_parser('info', help='print a summary of a DIPR product')
    p.add_argument('input', nargs='?', default='-',
                   help='path to the DIPR product; - or omitted reads stdin')
    p.set_defaults(func=do_info)

    p = subparsers.add_parser('to-geojson', help='convert a DIPR product to GeoJSON')
    p.add_argument('input', nargs='?', default='-',
                   help='path to the DIPR product; - or omitted reads stdin')
    p.add_argument('-o', '--output', default=None,
                   help='output file, stdout by default')
    _add_polygon_options(p)
    p.set_defaults(func=do_geojson)

    p = subparsers.add_parser('to-shapefile', help='convert a DIPR product to a Shapefile')
    p.add_argument('input', nargs='?', default='-',
                   help='path to the DIPR product; - or omitted reads stdin')
    p.add_argument('output', help='output .shp path')
    _add_polygon_options(p)
    p.set_defaults(func=do_shapefile)

    p = subparsers.add_parser('fetch', help='download the latest product of a station')
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument('station', nargs='?', default=None, help='station code, e.g. KGYX')
    group.add_argument('--near', type=_location, default=None, metavar='LAT,LON',
                       help='use the nearest online station to this point')
    p.add_argument('--no-status', action='store_true',
                   help="don't check the station status page")
    p.add_argument('-o', '--output', default=None, help='output file, stdout by default')
    p.set_defaults(func=do_fetch)
    return parser


def _add_polygon_options(p):
    p.add_argument('--skip-zeros', action='store_true',
                   help="don't include bins with zero precipitation")
    p.add_argument('--units', type=_rate_units, default=RATE_UNITS,
                   help='unit of the precipRate property (default: %s)' % RATE_UNITS)
    p.add_argument('--location', type=_location, default=None, metavar='LAT,LON',
                   help='radar location, overrides the product header')
    p.add_argument('--workers', type=_positive_int, default=None,
                   help='threads used to build the polygons')


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
                        stream=sys.stderr)
    try:
        config = load_config(args.config)
        args.func(args, config)
    except (DiprError, ConfigFetchError) as e:
        logger.error('%s: %s', type(e).__name__, e)
        return 1
    except OSError as e:
        logger.error('%s', e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
