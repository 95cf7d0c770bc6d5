# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Exceptions raised while decoding DIPR products and building their geometry.

'''


class DiprError(Exception):
    """Base exception for every failure raised by this package."""
    pass


class FormatError(DiprError):
    """The buffer does not follow the DIPR product layout."""
    pass


class DecompressionError(DiprError):
    """The compressed symbology block is corrupt or truncated."""
    pass


class GeometryError(DiprError):
    """The station location needed to place the bins is unknown."""
    pass


class DownloadError(DiprError):
    """A product or station listing could not be retrieved."""
    pass
