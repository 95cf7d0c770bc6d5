# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Locations of the WSR-88D sites that issue DIPR products.

'''
import numpy as np
from metpy.units import units

from dipr.core.product import Location
from dipr.util.comm_func import as_quantity, great_circle_distance

# the product can only describe precipitation within this distance of a radar
DEFAULT_MAX_DISTANCE = units.Quantity(230.0, 'kilometer')

# station code: (latitude, longitude), degrees
STATIONS = {
    'TJUA': (18.1155, -66.0780),
    'KCBW': (46.0391, -67.8066),
    'KGYX': (43.8913, -70.2565),
    'KCXX': (44.5109, -73.1664),
    'KBOX': (41.9558, -71.1369),
    'KENX': (42.5865, -74.0639),
    'KBGM': (42.1997, -75.9847),
    'KBUF': (42.9488, -78.7369),
    'KTYX': (43.7556, -75.6799),
    'KOKX': (40.8655, -72.8638),
    'KDOX': (38.8257, -75.4400),
    'KDIX': (39.9470, -74.4108),
    'KPBZ': (40.5316, -80.2179),
    'KCCX': (40.9228, -78.0038),
    'KRLX': (38.3110, -81.7229),
    'KAKQ': (36.9840, -77.0073),
    'KFCX': (37.0242, -80.2736),
    'KLWX': (38.9753, -77.4778),
    'KMHX': (34.7759, -76.8762),
    'KRAX': (35.6654, -78.4897),
    'KLTX': (33.9891, -78.4291),
    'KCLX': (32.6554, -81.0423),
    'KCAE': (33.9487, -81.1184),
    'KGSP': (34.8833, -82.2200),
    'KFFC': (33.3635, -84.5658),
    'KVAX': (30.8903, -83.0019),
    'KJGX': (32.6755, -83.3508),
    'KEVX': (30.5649, -85.9215),
    'KJAX': (30.4846, -81.7018),
    'KBYX': (24.5974, -81.7032),
    'KMLB': (28.1131, -80.6540),
    'KAMX': (25.6111, -80.4127),
    'KTLH': (30.3975, -84.3289),
    'KTBW': (27.7054, -82.4017),
    'KBMX': (33.1722, -86.7698),
    'KEOX': (31.4605, -85.4592),
    'KHTX': (34.9305, -86.0837),
    'KMXX': (32.5366, -85.7897),
    'KMOB': (30.6795, -88.2397),
    'KDGX': (32.2797, -89.9846),
    'KGWX': (33.8967, -88.3293),
    'KMRX': (36.1685, -83.4017),
    'KNQA': (35.3447, -89.8734),
    'KOHX': (36.2472, -86.5625),
    'KHPX': (36.7368, -87.2854),
    'KJKL': (37.5907, -83.3130),
    'KLVX': (37.9753, -85.9438),
    'KPAH': (37.0683, -88.7720),
    'KILN': (39.4202, -83.8216),
    'KCLE': (41.4131, -81.8597),
    'KDTX': (42.6999, -83.4718),
    'KAPX': (44.9071, -84.7198),
    'KGRR': (42.8938, -85.5449),
    'KMQT': (46.5311, -87.5487),
    'KVWX': (38.2603, -87.7246),
    'KIND': (39.7074, -86.2803),
    'KIWX': (41.3586, -85.7000),
    'KLOT': (41.6044, -88.0843),
    'KILX': (40.1505, -89.3368),
    'KGRB': (44.4984, -88.1111),
    'KARX': (43.8227, -91.1915),
    'KMKX': (42.9678, -88.5506),
    'KDLH': (46.8368, -92.2097),
    'KMPX': (44.8488, -93.5654),
    'KDVN': (41.6115, -90.5809),
    'KDMX': (41.7311, -93.7229),
    'KEAX': (38.8102, -94.2644),
    'KSGF': (37.2352, -93.4006),
    'KLSX': (38.6986, -90.6828),
    'KSRX': (35.2904, -94.3619),
    'KLZK': (34.8365, -92.2621),
    'KPOE': (31.1556, -92.9762),
    'KLCH': (30.1253, -93.2161),
    'KLIX': (30.3367, -89.8256),
    'KSHV': (32.4508, -93.8412),
    'KAMA': (35.2334, -101.7092),
    'KEWX': (29.7039, -98.0285),
    'KBRO': (25.9159, -97.4189),
    'KCRP': (27.7840, -97.5112),
    'KFWS': (32.5730, -97.3031),
    'KDYX': (32.5386, -99.2542),
    'KEPZ': (31.8731, -106.6979),
    'KGRK': (30.7217, -97.3829),
    'KHGX': (29.4718, -95.0788),
    'KDFX': (29.2730, -100.2802),
    'KLBB': (33.6541, -101.8141),
    'KMAF': (31.9433, -102.1894),
    'KSJT': (31.3712, -100.4925),
    'KFDR': (34.3620, -98.9766),
    'KTLX': (35.3333, -97.2778),
    'KOUN': (35.2358, -97.4622),
    'KINX': (36.1750, -95.5642),
    'KVNX': (36.7406, -98.1279),
    'KDDC': (37.7608, -99.9688),
    'KGLD': (39.3667, -101.7004),
    'KTWX': (38.9969, -96.2326),
    'KICT': (37.6545, -97.4431),
    'KUEX': (40.3209, -98.4418),
    'KLNX': (41.9579, -100.5759),
    'KOAX': (41.3202, -96.3667),
    'KABR': (45.4558, -98.4132),
    'KUDX': (44.1248, -102.8298),
    'KFSD': (43.5877, -96.7293),
    'KBIS': (46.7709, -100.7605),
    'KMVX': (47.5279, -97.3256),
    'KMBX': (48.3930, -100.8644),
    'KBLX': (45.8537, -108.6068),
    'KGGW': (48.2064, -106.6252),
    'KTFX': (47.4595, -111.3855),
    'KMSX': (47.0412, -113.9864),
    'KCYS': (41.1519, -104.806),
    'KRIW': (43.0660, -108.4773),
    'KFTG': (39.7866, -104.5458),
    'KGJX': (39.0619, -108.2137),
    'KPUX': (38.4595, -104.1816),
    'KABX': (35.1497, -106.8239),
    'KFDX': (34.6341, -103.6186),
    'KHDX': (33.0768, -106.12),
    'KFSX': (34.5744, -111.1983),
    'KIWA': (33.2891, -111.67),
    'KEMX': (31.8937, -110.6304),
    'KYUX': (32.4953, -114.6567),
    'KICX': (37.5908, -112.8622),
    'KMTX': (41.2627, -112.448),
    'KCBX': (43.4902, -116.236),
    'KSFX': (43.1055, -112.686),
    'KLRX': (40.7396, -116.8025),
    'KESX': (35.7012, -114.8918),
    'KRGX': (39.7541, -119.462),
    'KBBX': (39.4956, -121.6316),
    'KEYX': (35.0979, -117.5608),
    'KBHX': (40.4986, -124.2918),
    'KVTX': (34.4116, -119.1795),
    'KDAX': (38.5011, -121.6778),
    'KNKX': (32.9189, -117.0418),
    'KMUX': (37.1551, -121.8984),
    'KHNX': (36.3142, -119.632),
    'KSOX': (33.8176, -117.6359),
    'KVBG': (34.8383, -120.3977),
    'PHKI': (21.8938, -159.5524),
    'PHKM': (20.1254, -155.778),
    'PHMO': (21.1327, -157.1802),
    'PHWA': (19.0950, -155.5688),
    'KMAX': (42.0810, -122.7173),
    'KPDT': (45.6906, -118.8529),
    'KRTX': (45.7150, -122.965),
    'KLGX': (47.1168, -124.1062),
    'KATX': (48.1945, -122.4957),
    'KOTX': (47.6803, -117.6267),
    'PABC': (60.7919, -161.8765),
    'PAPD': (65.0351, -147.5014),
    'PAHG': (60.6156, -151.2832),
    'PAKC': (58.6794, -156.6293),
    'PAIH': (59.4619, -146.3011),
    'PAEC': (64.5114, -165.2949),
    'PACG': (56.8521, -135.5524),
    'PGUA': (13.4559, 144.8111),
    'LPLA': (38.7302, -27.3216),
    'RKJK': (35.9241, 126.6222),
    'RKSG': (37.2076, 127.2856),
    'RODN': (26.3077, 127.9034),
}


def get_station_location(code, stations=None):
    """ Location of a station, None when the code is unknown. """
    table = STATIONS if stations is None else stations
    item = table.get(code.strip().upper())
    if item is None:
        return None
    return Location(*item)


def find_nearest_stations(latitude, longitude, max_distance=DEFAULT_MAX_DISTANCE,
                          stations=None):
    """
    Stations within ``max_distance`` of a point, nearest first.

    Returns
    -------
    list of (code, distance)
        ``distance`` is a pint quantity in kilometers.
    """
    table = STATIONS if stations is None else stations
    if not table:
        return []
    codes = list(table)
    lats, lons = np.array([table[c] for c in codes], dtype=float).T
    dist = great_circle_distance(latitude, longitude, lats, lons).to('kilometer')
    limit = as_quantity(max_distance, 'kilometer').m_as('kilometer')
    order = np.argsort(dist.magnitude, kind='stable')
    return [(codes[idx], dist[idx]) for idx in order if dist[idx].magnitude <= limit]


def find_nearest_station(latitude, longitude, max_distance=DEFAULT_MAX_DISTANCE,
                         stations=None):
    """
    Find the station closest to a point.

    Returns
    -------
    (code, distance) or None
        None when no station lies within ``max_distance``.
    """
    found = find_nearest_stations(latitude, longitude, max_distance=max_distance,
                                  stations=stations)
    return found[0] if found else None
