"""GX2 surface de-swizzling (tiled GPU layout -> linear raster order).

Address math for the Wii U's R7xx-family tiler with its fixed configuration:
4 banks, 2 pipes, 256-byte pipe interleave, 2 KiB rows and split size.
"""

from __future__ import annotations

from typing import Tuple

from .ftex import FtexHeader, TileMode

BANKS = 4
BANK_BITS = 2
PIPES = 2
PIPE_BITS = 1
PIPE_INTERLEAVE_BYTES = 256
PIPE_INTERLEAVE_BITS = 8
ROW_SIZE = 2048
SWAP_SIZE = 256
SPLIT_SIZE = 2048
MICRO_TILE_PIXELS = 8 * 8

BANK_SWAP_ORDER = (0, 1, 3, 2, 6, 7, 5, 4, 0, 0)


def surface_dimensions(header: FtexHeader) -> Tuple[int, int]:
    """Element grid size: pixels, or 4x4 blocks for BC formats."""
    if header.format.is_block_compressed:
        return (header.width + 3) // 4, (header.height + 3) // 4
    return header.width, header.height


def bytes_per_pixel(header: FtexHeader) -> int:
    return header.format.bits_per_pixel // 8


def pixel_index_in_micro_tile(x: int, y: int, z: int, bpp: int, tile_mode: TileMode) -> int:
    x0, x1, x2 = x & 1, (x >> 1) & 1, (x >> 2) & 1
    y0, y1, y2 = y & 1, (y >> 1) & 1, (y >> 2) & 1
    if bpp == 8:
        bits = (x0, x1, x2, y1, y0, y2)
    elif bpp == 16:
        bits = (x0, x1, x2, y0, y1, y2)
    elif bpp == 64:
        bits = (x0, y0, x1, x2, y1, y2)
    elif bpp == 128:
        bits = (y0, x0, x1, x2, y1, y2)
    else:
        bits = (x0, x1, y0, x2, y1, y2)

    index = 0
    for i, b in enumerate(bits):
        index |= b << i

    thickness = tile_mode.surface_thickness
    if thickness > 1:
        index |= (z & 1) << 6
        index |= ((z >> 1) & 1) << 7
    if thickness == 8:
        index |= ((z >> 2) & 1) << 8
    return index


def _pipe_from_coord(x: int, y: int) -> int:
    return ((y >> 3) ^ (x >> 3)) & 1


def _bank_from_coord(x: int, y: int) -> int:
    bank0 = ((y // (16 * PIPES)) ^ (x >> 3)) & 1
    bank1 = ((y // (8 * PIPES)) ^ (x >> 4)) & 1
    return bank0 | (bank1 << 1)


def bank_swapped_width(tile_mode: TileMode, bpp: int, pitch: int, samples: int = 1) -> int:
    if not tile_mode.is_bank_swapped:
        return 0
    bytes_per_sample = 8 * bpp
    if bytes_per_sample:
        slices_per_tile = max(1, samples // (SPLIT_SIZE // bytes_per_sample or 1))
    else:
        slices_per_tile = 1
    if tile_mode.is_thick:
        samples = 4
    bytes_per_tile_slice = samples * bytes_per_sample // slices_per_tile
    swap_tiles = max(1, (SWAP_SIZE >> 1) // bpp)
    swap_width = swap_tiles * 8 * BANKS
    height_bytes = samples * tile_mode.aspect_ratio * PIPES * bpp // slices_per_tile
    swap_max = PIPES * BANKS * ROW_SIZE // height_bytes
    swap_min = PIPE_INTERLEAVE_BYTES * 8 * BANKS // bytes_per_tile_slice
    width = min(swap_max, max(swap_min, swap_width))
    while pitch > 0 and width >= 2 * pitch:
        width >>= 1
    return width


def address_linear(x: int, y: int, bpp: int, pitch: int) -> int:
    return ((y * pitch + x) * bpp) // 8


def address_micro_tiled(x: int, y: int, bpp: int, pitch: int, tile_mode: TileMode) -> int:
    thickness = tile_mode.surface_thickness
    micro_tile_bytes = (MICRO_TILE_PIXELS * thickness * bpp + 7) // 8
    tiles_per_row = pitch >> 3
    tile_offset = micro_tile_bytes * ((x >> 3) + (y >> 3) * tiles_per_row)
    pixel_index = pixel_index_in_micro_tile(x, y, 0, bpp, tile_mode)
    return tile_offset + ((bpp * pixel_index) >> 3)


def address_macro_tiled(
    x: int,
    y: int,
    bpp: int,
    pitch: int,
    tile_mode: TileMode,
    pipe_swizzle: int,
    bank_swizzle: int,
    height: int = 1,
) -> int:
    thickness = tile_mode.surface_thickness
    micro_tile_bits = bpp * thickness * MICRO_TILE_PIXELS
    micro_tile_bytes = (micro_tile_bits + 7) // 8

    element_offset = bpp * pixel_index_in_micro_tile(x, y, 0, bpp, tile_mode)

    samples = 1
    sample_slice = 0
    if micro_tile_bytes > SPLIT_SIZE:
        samples_per_slice = max(1, SPLIT_SIZE // micro_tile_bytes)
        sample_splits = max(1, 1 // samples_per_slice)
        slice_bits = micro_tile_bits // sample_splits
        samples = samples_per_slice
        sample_slice = element_offset // slice_bits
        element_offset %= slice_bits
    element_offset = (element_offset + 7) // 8

    pipe = _pipe_from_coord(x, y)
    bank = _bank_from_coord(x, y)
    bank_pipe = pipe + PIPES * bank
    bank_pipe ^= (PIPES * sample_slice * ((BANKS >> 1) + 1)) ^ (pipe_swizzle + PIPES * bank_swizzle)
    bank_pipe %= PIPES * BANKS
    pipe = bank_pipe % PIPES
    bank = bank_pipe // PIPES

    slice_bytes = (height * pitch * thickness * bpp * samples + 7) // 8
    slice_offset = slice_bytes * (sample_slice // thickness)

    aspect = tile_mode.aspect_ratio
    macro_tile_pitch = (8 * BANKS) // aspect
    macro_tile_height = (8 * PIPES) * aspect
    macro_tiles_per_row = pitch // macro_tile_pitch
    macro_tile_bytes = (
        samples * thickness * bpp * macro_tile_height * macro_tile_pitch + 7
    ) // 8
    macro_x = x // macro_tile_pitch
    macro_y = y // macro_tile_height
    macro_tile_offset = (macro_x + macro_tiles_per_row * macro_y) * macro_tile_bytes

    if tile_mode.is_bank_swapped:
        swap_width = max(1, bank_swapped_width(tile_mode, bpp, pitch))
        swap_index = macro_tile_pitch * macro_x // swap_width
        bank ^= BANK_SWAP_ORDER[swap_index & (BANKS - 1)]

    group_mask = (1 << PIPE_INTERLEAVE_BITS) - 1
    swizzle_bits = BANK_BITS + PIPE_BITS
    total = element_offset + ((macro_tile_offset + slice_offset) >> swizzle_bits)
    offset_high = (total & ~group_mask) << swizzle_bits
    offset_low = total & group_mask
    pipe_bits = pipe << PIPE_INTERLEAVE_BITS
    bank_bits = bank << (PIPE_BITS + PIPE_INTERLEAVE_BITS)
    return bank_bits | pipe_bits | offset_low | offset_high


def compute_surface_address(
    x: int,
    y: int,
    bpp: int,
    pitch: int,
    tile_mode: TileMode,
    pipe_swizzle: int = 0,
    bank_swizzle: int = 0,
) -> int:
    """Byte offset of element (x, y) inside the tiled surface."""
    if tile_mode.is_linear:
        return address_linear(x, y, bpp, pitch)
    if tile_mode.is_micro_tiled:
        return address_micro_tiled(x, y, bpp, pitch, tile_mode)
    return address_macro_tiled(x, y, bpp, pitch, tile_mode, pipe_swizzle, bank_swizzle)


def deswizzle(header: FtexHeader, data: bytes) -> bytes:
    """Reorder a tiled surface into row-major element order.

    The result has the same length as `data` and starts zeroed; elements whose
    source or destination range falls outside the buffer are left as zeros.
    """
    size = len(data)
    out = bytearray(size)
    width, height = surface_dimensions(header)
    bpp = header.format.bits_per_pixel
    bpe = bpp // 8
    pitch = header.pitch
    tile_mode = header.tile_mode
    pipe_swizzle = (header.swizzle >> 8) & 1
    bank_swizzle = (header.swizzle >> 9) & 3
    src = memoryview(data)

    for y in range(height):
        row = y * width
        for x in range(width):
            pos = compute_surface_address(x, y, bpp, pitch, tile_mode, pipe_swizzle, bank_swizzle)
            pos2 = (row + x) * bpe
            if pos + bpe <= size and pos2 + bpe <= size:
                out[pos2 : pos2 + bpe] = src[pos : pos + bpe]
    return bytes(out)
