"""Pull the FIT payload out of a Garmin ZIP download."""

from __future__ import annotations

import logging
import struct
import zlib

from lapanalyzer.errors import FormatError, NotFoundError, UnsupportedCompressionError

log = logging.getLogger(__name__)

LOCAL_HEADER_SIG = 0x04034B50
CENTRAL_DIR_SIG = 0x02014B50
END_OF_CENTRAL_DIR_SIG = 0x06054B50

EOCD_SIZE = 22
# EOCD record plus the longest comment it can carry
MAX_EOCD_SCAN = EOCD_SIZE + 0xFFFF

METHOD_STORED = 0
METHOD_DEFLATE = 8


def _u16(buf: bytes, offset: int) -> int:
    try:
        return struct.unpack_from("<H", buf, offset)[0]
    except struct.error as e:
        raise FormatError(f"ZIP structure truncated at offset {offset}") from e


def _u32(buf: bytes, offset: int) -> int:
    try:
        return struct.unpack_from("<I", buf, offset)[0]
    except struct.error as e:
        raise FormatError(f"ZIP structure truncated at offset {offset}") from e


def is_zip(data: bytes) -> bool:
    return len(data) > 4 and data[:4] == b"PK\x03\x04"


def _find_eocd(buf: bytes) -> int:
    lowest = max(0, len(buf) - MAX_EOCD_SCAN)
    for i in range(len(buf) - EOCD_SIZE, lowest - 1, -1):
        if _u32(buf, i) == END_OF_CENTRAL_DIR_SIG:
            return i
    raise FormatError("Invalid ZIP file: end of central directory not found")


def _decompress(method: int, data: bytes) -> bytes:
    if method == METHOD_STORED:
        return data
    if method == METHOD_DEFLATE:
        try:
            return zlib.decompress(data, -zlib.MAX_WBITS)
        except zlib.error as e:
            raise FormatError(f"Corrupt deflate stream: {e}") from e
    raise UnsupportedCompressionError(f"Unsupported compression method: {method}")


def extract(archive: bytes, extension: str = ".fit") -> bytes:
    """
    Return the decompressed bytes of the first archive entry whose name ends
    with ``extension`` (case-insensitive).

    Only the central directory is trusted for sizes and methods; the local
    header is read just to find where the entry's data starts.
    """
    buf = bytes(archive)
    eocd = _find_eocd(buf)
    entry_count = _u16(buf, eocd + 10)
    offset = _u32(buf, eocd + 16)
    extension = extension.lower()

    for _ in range(entry_count):
        if _u32(buf, offset) != CENTRAL_DIR_SIG:
            raise FormatError("Invalid central directory")

        method = _u16(buf, offset + 10)
        comp_size = _u32(buf, offset + 20)
        name_len = _u16(buf, offset + 28)
        extra_len = _u16(buf, offset + 30)
        comment_len = _u16(buf, offset + 32)
        local_offset = _u32(buf, offset + 42)
        name = buf[offset + 46:offset + 46 + name_len].decode("utf-8", errors="replace")
        offset += 46 + name_len + extra_len + comment_len

        if not name.lower().endswith(extension):
            continue

        if _u32(buf, local_offset) != LOCAL_HEADER_SIG:
            raise FormatError(f"Invalid local file header for {name}")
        local_name_len = _u16(buf, local_offset + 26)
        local_extra_len = _u16(buf, local_offset + 28)
        start = local_offset + 30 + local_name_len + local_extra_len
        compressed = buf[start:start + comp_size]
        if len(compressed) != comp_size:
            raise FormatError(f"ZIP entry {name} is truncated")

        payload = _decompress(method, compressed)
        log.info("Extracted %s (%d -> %d bytes, method %d)", name, comp_size, len(payload), method)
        return payload

    raise NotFoundError(f"No {extension} file found in ZIP")
