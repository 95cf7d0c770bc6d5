# _*_ coding: utf-8 _*_

# Copyright (c) 2026 NMC Developers.
# Distributed under the terms of the GPL V3 License.

'''
Record layouts of the DIPR product (NEXRAD Level III product code 176).

Every layout is a tuple of (field name, struct code) pairs in file order.
The product is transmitted big-endian. The symbology block is XDR encoded,
so its layouts may also contain variable length strings (STRING).

'''
import struct

from dipr.errors import FormatError


CODE1 = 'B'
CODE2 = 'H'
INT1 = 'B'
INT2 = 'H'
INT4 = 'I'
REAL4 = 'f'
SINT1 = 'b'
SINT2 = 'h'
SINT4 = 'i'

# XDR string: u32 length, bytes, zero padding to a four byte boundary
STRING = 'xdr_string'

# WMO/AWIPS communications header, e.g. 'SDUS53 KGYX 091352\r\r\nDPRGYX\r\r\n'
TEXT_HEADER = (
    ('wmo_id', '7s'),
    ('station_code', '4s'),
    ('wmo_time', '10s'),
    ('awips_id', '9s'),
)

# Message Header Block
MESSAGE_HEADER = (
    ('message_code', SINT2),
    ('date', INT2),  # days, 1 = 1970-01-01
    ('time', INT4),  # seconds after midnight UTC
    ('length', INT4),  # bytes, message header included
    ('source_id', SINT2),
    ('destination_id', SINT2),
    ('block_count', SINT2),
)

# Product Description Block
PRODUCT_DESCRIPTION = (
    ('divider', SINT2),
    ('latitude', SINT4),  # 0.001 degree
    ('longitude', SINT4),  # 0.001 degree
    ('height', SINT2),  # feet above MSL
    ('product_code', SINT2),
    ('operational_mode', SINT2),
    ('vcp', SINT2),
    ('sequence_number', SINT2),
    ('volume_scan_number', SINT2),
    ('volume_scan_date', INT2),
    ('volume_scan_time', INT4),
    ('generation_date', INT2),
    ('generation_time', INT4),
    ('param_1', SINT2),
    ('param_2', SINT2),
    ('elevation_number', SINT2),
    ('precip_detected', SINT1),
    ('spare', '1s'),
    ('thresholds', '32s'),
    ('max_precip_rate', SINT2),  # 0.01 in/hr
    ('elevation_angle', SINT2),  # 0.1 degree
    ('param_6', SINT2),
    ('param_7', SINT2),
    ('compression_method', SINT2),
    ('uncompressed_size', INT4),
    ('version', INT1),
    ('spot_blank', INT1),
    ('symbology_offset', INT4),
    ('graphic_offset', INT4),
    ('tabular_offset', INT4),
)

# Product Symbology Block header, single layer
SYMBOLOGY_HEADER = (
    ('divider', SINT2),
    ('block_id', SINT2),
    ('block_length', SINT4),
    ('layer_count', SINT2),
    ('layer_divider', SINT2),
    ('layer_length', SINT4),
)

# Generic Data Packet (packet code 28)
GENERIC_PACKET_HEADER = (
    ('packet_code', SINT2),
    ('reserved', SINT2),
    ('byte_count', SINT4),
)

# Product Description Data Structure (XDR)
PRODUCT_DESCRIPTION_DATA = (
    ('name', STRING),
    ('description', STRING),
    ('code', SINT4),
    ('type', SINT4),
    ('generation_time', INT4),
    ('radar_name', STRING),
    ('latitude', REAL4),
    ('longitude', REAL4),
    ('height', REAL4),
    ('volume_time', INT4),  # unix seconds
    ('elevation_time', INT4),
    ('elevation_angle', REAL4),
    ('scan_number', SINT4),
    ('operational_mode', SINT4),
    ('vcp', SINT4),
    ('elevation_number', SINT4),
    ('compression', SINT4),
    ('uncompressed_size', SINT4),
    ('parameter_count', SINT4),
    ('component_count', SINT4),
)

COMPONENT_POINTER = (
    ('component_type', SINT4),
    ('component_present', SINT4),
)

# Radial Component Data Structure (XDR)
RADIAL_COMPONENT = (
    ('component_type', SINT4),
    ('description', STRING),
    ('bin_size', REAL4),  # meters
    ('range_to_first_bin', REAL4),  # meters, centre of the first bin
    ('parameter_count', SINT4),
    ('parameter_pointer', SINT4),
    ('radial_count', SINT4),
)

# Radial Information Data Structure (XDR), followed by array_length codes
RADIAL_INFO = (
    ('azimuth', REAL4),
    ('elevation', REAL4),
    ('width', REAL4),
    ('bin_count', SINT4),
    ('attributes', STRING),
    ('array_length', SINT4),
)


def _structure_size(structure):
    """ Find the size of a structure in bytes. """
    return struct.calcsize('>' + ''.join([i[1] for i in structure]))


def _unpack_structure(string, structure):
    """ Unpack a structure from a string """
    fmt = '>' + ''.join([i[1] for i in structure])  # big-endian
    lst = struct.unpack(fmt, string)
    return dict(zip([i[0] for i in structure], lst))


def _unpack_from_buf(buf, pos, structure, name='structure'):
    """ Unpack a structure from a buffer. """
    size = _structure_size(structure)
    if pos < 0 or pos + size > len(buf):
        raise FormatError('truncated %s: need %d bytes at offset %d, %d available'
                          % (name, size, pos, max(len(buf) - pos, 0)))
    return _unpack_structure(bytes(buf[pos:pos + size]), structure)


def _pack_structure(dic, structure):
    """ Pack a dictionary into the bytes of a structure. """
    fmt = '>' + ''.join([i[1] for i in structure])
    return struct.pack(fmt, *[dic[i[0]] for i in structure])


def _unpack_xdr_string(buf, pos, name='string'):
    """
    Read an XDR string, return the text and the position after its padding.
    """
    length = _unpack_from_buf(buf, pos, (('length', INT4),), name)['length']
    pos += 4
    end = pos + length
    if end > len(buf):
        raise FormatError('truncated %s: declared %d bytes, %d available'
                          % (name, length, len(buf) - pos))
    try:
        text = bytes(buf[pos:end]).decode('utf-8')
    except UnicodeDecodeError as e:
        raise FormatError('invalid UTF-8 in %s: %s' % (name, e)) from e
    end += -length % 4
    if end > len(buf):
        raise FormatError('truncated %s padding' % name)
    return text, end


def _pack_xdr_string(text):
    raw = text.encode('utf-8')
    return struct.pack('>I', len(raw)) + raw + b'\x00' * (-len(raw) % 4)


def _unpack_xdr(buf, pos, structure, name='structure'):
    """
    Unpack an XDR structure that may contain strings.

    Returns the field dictionary and the position after the structure.
    """
    dic = {}
    for field, code in structure:
        if code == STRING:
            dic[field], pos = _unpack_xdr_string(buf, pos, '%s %s' % (name, field))
        else:
            part = ((field, code),)
            dic.update(_unpack_from_buf(buf, pos, part, name))
            pos += _structure_size(part)
    return dic, pos


def _pack_xdr(dic, structure):
    out = []
    for field, code in structure:
        if code == STRING:
            out.append(_pack_xdr_string(dic[field]))
        else:
            out.append(struct.pack('>' + code, dic[field]))
    return b''.join(out)
