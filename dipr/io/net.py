# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Retrieve DIPR products from the NWS tgftp server.

Each station directory holds about a day of products; the most recent one
is always named sn.last.

'''
import logging
import re

import urllib3

from dipr.errors import DownloadError

logger = logging.getLogger(__name__)

PRODUCT_URL = 'https://tgftp.nws.noaa.gov/SL.us008001/DF.of/DC.radar/DS.176pr/SI.{station}/{name}'
STATUS_URL = 'https://radar3pub.ncep.noaa.gov/'

# green on the status page means the radar is up
_STATUS_PATTERN = re.compile(r'(33FF33|FFFF00|0000FF|FF0000).*([A-Z]{4})')

_http = None


def _pool_manager():
    global _http
    if _http is None:
        _http = urllib3.PoolManager(
            timeout=urllib3.Timeout(connect=10.0, read=60.0),
            retries=urllib3.Retry(total=3, backoff_factor=0.5,
                                  status_forcelist=(500, 502, 503, 504)))
    return _http


def _get(url):
    try:
        resp = _pool_manager().request('GET', url)
    except urllib3.exceptions.HTTPError as e:
        raise DownloadError('request to %s failed: %s' % (url, e)) from e
    if resp.status != 200:
        raise DownloadError('%s: server responded with %d' % (url, resp.status))
    return resp.data


def fetch_latest(station, name='sn.last'):
    """
    Download the latest DIPR product of ``station`` (e.g. 'KGYX').

    Returns the raw product bytes, ready for ``parse_dipr``.
    """
    station = station.strip().lower()
    url = PRODUCT_URL.format(station=station, name=name)
    logger.info('downloading %s', url)
    data = _get(url)
    logger.debug('received %d bytes', len(data))
    return data


def fetch_station_statuses():
    """
    List (station code, online) pairs from the NWS radar status page.
    """
    text = _get(STATUS_URL).decode('utf-8', errors='replace')
    return [(m.group(2), m.group(1) == '33FF33') for m in _STATUS_PATTERN.finditer(text)]
