"""Nintendo Yaz0 decompressor.

Shipped `.szs` files wrap the BFRES container in this envelope; it has to be
peeled off before the container can be parsed.
"""

from __future__ import annotations

import struct

from .errors import BfresError, TruncatedError, WrongMagicError

YAZ0_MAGIC = b"Yaz0"
HEADER_SIZE = 0x10


def looks_like_yaz0(data: bytes) -> bool:
    return len(data) >= HEADER_SIZE and bytes(data[:4]) == YAZ0_MAGIC


def decompressed_size(data: bytes) -> int:
    if len(data) < HEADER_SIZE:
        raise TruncatedError(0, HEADER_SIZE, len(data))
    if bytes(data[:4]) != YAZ0_MAGIC:
        raise WrongMagicError(YAZ0_MAGIC, bytes(data[:4]), 0)
    return struct.unpack_from(">I", data, 4)[0]


def decompress(data: bytes) -> bytes:
    decoded_len = decompressed_size(data)
    inp = memoryview(data)
    in_len = len(inp)
    in_off = HEADER_SIZE
    out = bytearray(decoded_len)
    out_off = 0

    def need(count: int) -> None:
        if in_off + count > in_len:
            raise TruncatedError(in_off, count, in_len)

    mask = 0
    header = 0
    while out_off < decoded_len:
        mask >>= 1
        if mask == 0:
            need(1)
            header = int(inp[in_off])
            in_off += 1
            mask = 0x80

        if header & mask:
            need(1)
            out[out_off] = int(inp[in_off])
            out_off += 1
            in_off += 1
            continue

        need(2)
        byte1 = int(inp[in_off])
        byte2 = int(inp[in_off + 1])
        in_off += 2
        distance = (((byte1 & 0xF) << 8) | byte2) + 1
        length = byte1 >> 4
        if length == 0:
            need(1)
            length = int(inp[in_off]) + 0x12
            in_off += 1
        else:
            length += 2

        if distance > out_off:
            raise BfresError(
                f"back reference of {distance} byte(s) at output 0x{out_off:X} precedes the start"
            )
        for _ in range(length):
            out[out_off] = out[out_off - distance]
            out_off += 1
            if out_off >= decoded_len:
                break

    return bytes(out)
