"""FTEX pixel decoding to BGRA8.

Surfaces are de-swizzled first. BC1, BC3, BC4 and BC5 go through
texture2ddecoder, which already emits BGRA; BC2 goes through Pillow's BCn
decoder. Signed BC4/BC5 endpoints are rebiased so -1..1 lands on 0..255.
"""

from __future__ import annotations

from typing import Callable, Dict, List

import texture2ddecoder
from PIL import Image

from .errors import UnsupportedTextureFormatError
from .ftex import FtexHeader, TextureFormat
from .swizzle import deswizzle


def _whole_blocks(linear: bytes, width: int, height: int, block_bytes: int) -> bytes:
    need = ((width + 3) // 4) * ((height + 3) // 4) * block_bytes
    return linear[:need].ljust(need, b"\0")


def _unsign_endpoints(blocks: bytes) -> bytes:
    """Flip the sign bit of every 8-byte channel block's two endpoints."""
    out = bytearray(blocks)
    for start in range(0, len(out) - 7, 8):
        out[start] ^= 0x80
        out[start + 1] ^= 0x80
    return bytes(out)


def _decode_bc2(blocks: bytes, width: int, height: int) -> bytes:
    rgba = Image.frombytes("RGBA", (width, height), blocks, "bcn", 2).tobytes()
    return _rgba8_to_bgra(rgba, width * height)


def _decode_bc4_snorm(blocks: bytes, width: int, height: int) -> bytes:
    return texture2ddecoder.decode_bc4(_unsign_endpoints(blocks), width, height)


def _decode_bc5_snorm(blocks: bytes, width: int, height: int) -> bytes:
    return texture2ddecoder.decode_bc5(_unsign_endpoints(blocks), width, height)


_BC_DECODERS: Dict[TextureFormat, Callable[[bytes, int, int], bytes]] = {
    TextureFormat.BC1_UNORM: texture2ddecoder.decode_bc1,
    TextureFormat.BC1_SRGB: texture2ddecoder.decode_bc1,
    TextureFormat.BC2_UNORM: _decode_bc2,
    TextureFormat.BC2_SRGB: _decode_bc2,
    TextureFormat.BC3_UNORM: texture2ddecoder.decode_bc3,
    TextureFormat.BC3_SRGB: texture2ddecoder.decode_bc3,
    TextureFormat.BC4_UNORM: texture2ddecoder.decode_bc4,
    TextureFormat.BC4_SNORM: _decode_bc4_snorm,
    TextureFormat.BC5_UNORM: texture2ddecoder.decode_bc5,
    TextureFormat.BC5_SNORM: _decode_bc5_snorm,
}


def _rgba8_to_bgra(linear: bytes, count: int) -> bytes:
    out = bytearray(count * 4)
    n = min(count * 4, len(linear) - len(linear) % 4)
    out[0:n:4] = linear[2:n:4]
    out[1:n:4] = linear[1:n:4]
    out[2:n:4] = linear[0:n:4]
    out[3:n:4] = linear[3:n:4]
    return bytes(out)


def _r8_to_bgra(linear: bytes, count: int) -> bytes:
    out = bytearray(b"\xff" * (count * 4))
    n = min(count, len(linear))
    lum = linear[:n]
    out[0 : n * 4 : 4] = lum
    out[1 : n * 4 : 4] = lum
    out[2 : n * 4 : 4] = lum
    return bytes(out)


def _r8g8_to_bgra(linear: bytes, count: int) -> bytes:
    out = bytearray(count * 4)
    n = min(count, len(linear) // 2)
    out[1 : n * 4 : 4] = linear[1 : n * 2 : 2]
    out[2 : n * 4 : 4] = linear[0 : n * 2 : 2]
    out[3 : n * 4 : 4] = b"\xff" * n
    return bytes(out)


_PLAIN_DECODERS: Dict[TextureFormat, Callable[[bytes, int], bytes]] = {
    TextureFormat.R8_G8_B8_A8_UNORM: _rgba8_to_bgra,
    TextureFormat.R8_G8_B8_A8_SRGB: _rgba8_to_bgra,
    TextureFormat.R8_UNORM: _r8_to_bgra,
    TextureFormat.R8_G8_UNORM: _r8g8_to_bgra,
}


def decode_texture_bgra(header: FtexHeader, raw: bytes) -> bytes:
    """Top mip level of a texture as `width * height * 4` BGRA bytes."""
    fmt = header.format
    width = header.width
    height = header.height
    if fmt.is_block_compressed:
        blocks = _whole_blocks(deswizzle(header, raw), width, height, fmt.block_bytes)
        return _BC_DECODERS[fmt](blocks, width, height)
    plain = _PLAIN_DECODERS.get(fmt)
    if plain is None:
        raise UnsupportedTextureFormatError(fmt)
    return plain(deswizzle(header, raw), width * height)


def flip_bgra_y(bgra: bytes, width: int, height: int) -> bytes:
    stride = width * 4
    out = bytearray(len(bgra))
    for y in range(height):
        src = y * stride
        dst = (height - 1 - y) * stride
        out[dst : dst + stride] = bgra[src : src + stride]
    return bytes(out)


def bgra_to_rgba_floats(bgra: bytes) -> List[float]:
    inv = 1.0 / 255.0
    out: List[float] = [0.0] * len(bgra)
    for i in range(0, len(bgra) - 3, 4):
        out[i + 0] = bgra[i + 2] * inv
        out[i + 1] = bgra[i + 1] * inv
        out[i + 2] = bgra[i + 0] * inv
        out[i + 3] = bgra[i + 3] * inv
    return out
