import dataclasses

import pytest

from io_scene_bfres.core.errors import UnsupportedTextureFormatError
from io_scene_bfres.core.fres import SubFileKind, load_bfres
from io_scene_bfres.core.ftex import TextureFormat
from io_scene_bfres.core.texture import bgra_to_rgba_floats, decode_texture_bgra, flip_bgra_y


@pytest.fixture
def texture(model_bfres):
    fres = load_bfres(model_bfres)
    [(_name, ftex)] = fres.entries(SubFileKind.TEXTURE)
    return ftex.header, ftex.image_bytes(fres.source)


def test_rgba8_to_bgra(texture):
    header, raw = texture
    bgra = decode_texture_bgra(header, raw)
    assert len(bgra) == 4 * 4 * 4
    assert bgra[0:4] == bytes((2, 1, 0, 3))
    assert bgra[60:64] == bytes((62, 61, 60, 63))


def test_r8_is_grey_opaque(texture):
    header, _raw = texture
    header = dataclasses.replace(header, width=2, height=1, pitch=2, format=TextureFormat.R8_UNORM)
    assert decode_texture_bgra(header, b"\x10\x20") == bytes((16, 16, 16, 255, 32, 32, 32, 255))


def test_bc1_goes_through_block_decoder(texture):
    header, _raw = texture
    header = dataclasses.replace(header, pitch=1, format=TextureFormat.BC1_UNORM)
    block = bytes((0xFF, 0xFF, 0xFF, 0xFF, 0, 0, 0, 0))
    bgra = decode_texture_bgra(header, block)
    assert len(bgra) == 4 * 4 * 4
    assert bgra[0:4] == b"\xff\xff\xff\xff"


def test_bc2_explicit_alpha(texture):
    header, _raw = texture
    header = dataclasses.replace(header, pitch=1, format=TextureFormat.BC2_UNORM)
    alpha = bytes((0xF0,)) + b"\xff" * 7
    colour = bytes((0xFF, 0xFF, 0, 0, 0, 0, 0, 0))
    bgra = decode_texture_bgra(header, alpha + colour)
    assert len(bgra) == 4 * 4 * 4
    assert bgra[0:4] == b"\xff\xff\xff\x00"
    assert bgra[4:8] == b"\xff\xff\xff\xff"


def test_short_block_data_is_padded(texture):
    header, _raw = texture
    header = dataclasses.replace(header, pitch=1, format=TextureFormat.BC1_UNORM)
    assert len(decode_texture_bgra(header, b"")) == 4 * 4 * 4


@pytest.mark.parametrize(
    "signed, unsigned, block_bytes",
    [
        (TextureFormat.BC4_SNORM, TextureFormat.BC4_UNORM, 8),
        (TextureFormat.BC5_SNORM, TextureFormat.BC5_UNORM, 16),
    ],
)
def test_signed_bc_endpoints_are_rebiased(texture, signed, unsigned, block_bytes):
    header, _raw = texture
    header = dataclasses.replace(header, pitch=1)
    zero = bytes(block_bytes)
    mid = bytearray(block_bytes)
    for start in range(0, block_bytes, 8):
        mid[start] = mid[start + 1] = 0x80
    as_signed = decode_texture_bgra(dataclasses.replace(header, format=signed), zero)
    as_unsigned = decode_texture_bgra(dataclasses.replace(header, format=unsigned), bytes(mid))
    assert as_signed == as_unsigned
    assert as_signed != decode_texture_bgra(dataclasses.replace(header, format=unsigned), zero)


def test_unsupported_format(texture):
    header, raw = texture
    header = dataclasses.replace(header, format=TextureFormat.R32_FLOAT)
    with pytest.raises(UnsupportedTextureFormatError):
        decode_texture_bgra(header, raw)


def test_flip_and_float_conversion():
    bgra = bytes((1, 2, 3, 4, 5, 6, 7, 8))
    assert flip_bgra_y(bgra, 1, 2) == bytes((5, 6, 7, 8, 1, 2, 3, 4))
    floats = bgra_to_rgba_floats(bytes((0, 0, 255, 255)))
    assert floats == [1.0, 0.0, 0.0, 1.0]
