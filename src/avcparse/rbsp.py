"""
Emulation prevention: conversion between a NAL unit's physical bytes
and its raw byte sequence payload (RBSP).

An encoder inserts 0x03 after any two zero bytes that would otherwise be
followed by a byte <= 0x03, so payload data can never imitate a start
code. decode_rbsp() strips those bytes, encode_rbsp() inserts them.

The zero-pair search is vectorised with numpy; the common case of a
payload with no escapes returns a memoryview over the caller's buffer
without copying anything.
"""

from typing import Optional, Union

import numpy as np

from .errors import EmulationPreventionError

BytesLike = Union[bytes, bytearray, memoryview]

#: Skip the NAL unit header, whose size is derived from nal_unit_type.
AUTO = -1

H264_HEADER_LEN = 1
H264_EXTENDED_HEADER_LEN = 4
EXTENDED_HEADER_TYPES = (14, 20, 21)

EMULATION_PREVENTION_BYTE = 0x03


def nal_header_len(first_byte: int) -> int:
    """Header width in bytes for a NAL unit starting with first_byte."""
    if first_byte & 0x1F in EXTENDED_HEADER_TYPES:
        return H264_EXTENDED_HEADER_LEN
    return H264_HEADER_LEN


def decode_rbsp(
    buffer: BytesLike,
    header_len: int = AUTO,
    start: int = 0,
    end: Optional[int] = None,
) -> Union[memoryview, bytes]:
    """
    Strip emulation prevention bytes from buffer[start:end].

    Args:
        buffer: bytes holding the NAL unit
        header_len: AUTO to skip the NAL header (1 byte, or 4 for types
            14/20/21), 0 when start is already at the payload, or an
            explicit number of header bytes to skip
        start, end: the unit's extent within buffer; nothing at or past
            end is examined, so bytes belonging to the next unit are never
            mistaken for escapes

    Returns:
        A memoryview into buffer when no escapes occur, otherwise an owned
        bytes object.
    """
    view = memoryview(buffer)
    if end is None:
        end = len(view)
    if header_len == AUTO:
        header_len = nal_header_len(view[start]) if end > start else 0
    begin = min(start + header_len, end)

    if end - begin < 3:
        return view[begin:end]
    arr = np.frombuffer(view[begin:end], dtype=np.uint8)

    hits = np.flatnonzero((arr[:-2] == 0) & (arr[1:-1] == 0) & (arr[2:] <= 3))
    if len(hits) == 0:
        return view[begin:end]

    out = bytearray()
    chunk_start = 0
    for i in hits.tolist():
        third = int(arr[i + 2])
        if third == 0:
            raise EmulationPreventionError(begin + i, "00 00 00 inside NAL unit payload")
        if third != EMULATION_PREVENTION_BYTE:
            continue
        j = i + 2
        if j + 1 < len(arr) and arr[j + 1] > 3:
            raise EmulationPreventionError(
                begin + j, f"emulation prevention byte followed by 0x{int(arr[j + 1]):02x}"
            )
        out += arr[chunk_start:j].tobytes()
        chunk_start = j + 1

    if chunk_start == 0:
        return view[begin:end]
    out += arr[chunk_start:].tobytes()
    return bytes(out)


def encode_rbsp(payload: BytesLike) -> bytes:
    """Insert emulation prevention bytes so payload can be framed safely."""
    payload = bytes(payload)
    if b"\x00\x00" not in payload:
        return payload

    out = bytearray()
    zeros = 0
    for byte in payload:
        if zeros == 2 and byte <= 3:
            out.append(EMULATION_PREVENTION_BYTE)
            zeros = 0
        out.append(byte)
        zeros = zeros + 1 if byte == 0 else 0
    if zeros == 2:
        # A payload may not end in 00 00 (H.264 7.4.1).
        out.append(EMULATION_PREVENTION_BYTE)
    return bytes(out)
