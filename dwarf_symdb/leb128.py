# (c) Copyright 2022 Aaron Kimball
#
# LEB128 decoding for the short location / member-offset blocks found in .debug_info.


def read_uleb128(data):
    """
    Decode an unsigned LEB128 integer from the start of 'data' (any iterable of byte values).
    Decoding stops at the first byte without the continuation bit, or when data runs out.
    """
    result = 0
    shift = 0
    for byte in data:
        result |= (byte & 0x7F) << shift
        shift += 7
        if (byte & 0x80) == 0:
            break
    return result


def read_sleb128(data):
    """
    Decode a signed LEB128 integer from the start of 'data'.
    """
    result = 0
    shift = 0
    byte = 0
    for byte in data:
        result |= (byte & 0x7F) << shift
        shift += 7
        if (byte & 0x80) == 0:
            break

    if shift and (byte & 0x40):
        # Sign-extend from the last byte consumed.
        result -= (1 << shift)
    return result
