# _*_ coding: utf-8 _*_

import numpy as np
import pytest

from dipr.core.product import BinState, Compression
from dipr.io.encode import build_product


def annulus_radials(code=5000):
    """ 4 radials of 90 degrees, 2 bins each. """
    return [(az, 90.0, [code, code]) for az in (0.0, 90.0, 180.0, 270.0)]


def sweep_radials(bins=6, width=1.0):
    """ A full sweep of narrow radials with a few sentinel bins. """
    count = int(round(360.0 / width))
    out = []
    for idx in range(count):
        codes = np.arange(bins, dtype=np.int32) * 250 + (idx % 7) * 10
        if idx % 10 == 0:
            codes[1] = BinState.NO_DATA
        if idx % 15 == 0:
            codes[2] = BinState.BELOW_THRESHOLD
        if idx % 45 == 0:
            codes[-1] = BinState.RANGE_FOLDED
        out.append((idx * width, width, codes))
    return out


@pytest.fixture
def annulus_bytes():
    return build_product(annulus_radials(), bin_size=1000.0, range_to_first_bin=500.0,
                         compression=Compression.NONE)


@pytest.fixture
def sweep_bytes():
    return build_product(sweep_radials(), bin_size=250.0, range_to_first_bin=2125.0)
