import pytest

from io_scene_bfres.core.binio import ByteSource, Pointer
from io_scene_bfres.core.errors import (
    ArrayOutOfRangeError,
    IndexGroupOverrunError,
    NonZeroReservedError,
    PointerOutOfRangeError,
    TruncatedError,
)
from io_scene_bfres.core.groups import BufferInfo, DataArray, IndexGroup

from conftest import Blob


def _two_entry_group():
    b = Blob()
    first = b.cstring("first")
    second = b.cstring("second")
    b.align(4)
    start, slots = b.index_group([first, second])
    b.point(slots[0], b.pos)
    b.u32(111)
    b.point(slots[1], b.pos)
    b.u32(222)
    return ByteSource(b.bytes()), start


def _u32(src):
    return src.u32()


def test_index_group_entries_and_lazy_data():
    src, start = _two_entry_group()
    src.seek(start)
    group = IndexGroup.read(src, _u32)
    assert len(group) == 2
    assert group.names(src) == ["first", "second"]
    assert [e.data(src) for e in group] == [111, 222]
    assert group[1].data(src) == 222
    assert group[1].data(src) == 222
    assert group.find(src, "second").data(src) == 222
    assert group.find(src, "missing") is None
    assert group.items(src) == [("first", 111), ("second", 222)]
    assert group[0].left_index == 1


def test_index_group_read_at_pointer():
    src, start = _two_entry_group()
    group = IndexGroup.read_at(src, Pointer.absolute(start), _u32)
    assert group.position == start
    assert len(group) == 2


def test_index_group_overrun():
    b = Blob()
    b.u32(4 + 0x10).s32(2)
    b.zeros(0x10 * 3)
    src = ByteSource(b.bytes())
    with pytest.raises(IndexGroupOverrunError) as info:
        IndexGroup.read(src, _u32)
    assert info.value.end == 4 + 4 + 0x10


def test_index_group_negative_count():
    b = Blob()
    b.u32(4 + 0x10).s32(-1)
    b.zeros(0x10)
    src = ByteSource(b.bytes())
    with pytest.raises(IndexGroupOverrunError) as info:
        IndexGroup.read(src, _u32)
    assert info.value.count == -1
    assert info.value.position == 0


def test_bad_data_pointer_is_out_of_range():
    b = Blob()
    name = b.cstring("x")
    b.align(4)
    start, slots = b.index_group([name])
    b.point(slots[0], 0x10000)
    src = ByteSource(b.bytes())
    src.seek(start)
    group = IndexGroup.read(src, _u32)
    with pytest.raises(PointerOutOfRangeError):
        group[0].data(src)


def test_decoder_failure_carries_context():
    src, start = _two_entry_group()
    src.seek(start)

    def too_long(cur):
        return cur.read(0x100)

    group = IndexGroup.read(src, too_long)
    with pytest.raises(TruncatedError) as info:
        group[0].data(src)
    assert "too_long" in str(info.value)


def test_data_array_positions():
    src = ByteSource(bytes(range(16)))
    src.seek(4)
    arr = DataArray.read(src, 4, 3, lambda cur: cur.u8())
    assert len(arr) == 3
    assert arr.position(0) == 4
    assert arr.position(2) == 12
    assert [e.data(src) for e in arr] == [4, 8, 12]
    assert arr.data(src, 1) == 8
    assert len(arr.entries) == 3
    with pytest.raises(ArrayOutOfRangeError):
        arr.position(3)
    with pytest.raises(ArrayOutOfRangeError):
        arr.entry(-1)


def test_buffer_info_bytes():
    b = Blob()
    slot = b.buffer_info(4, 2)
    b.point(slot, b.pos)
    b.raw(b"\x01\x02\x03\x04")
    src = ByteSource(b.bytes())
    info = BufferInfo.read(src)
    assert info.size == 4
    assert info.stride == 2
    assert info.buffering_count == 1
    assert info.data_position(src) == 0x18
    assert info.read_bytes(src) == b"\x01\x02\x03\x04"


def test_buffer_info_data_past_end():
    b = Blob()
    slot = b.buffer_info(8, 2)
    b.point(slot, b.pos)
    b.raw(b"\x01\x02")
    src = ByteSource(b.bytes())
    info = BufferInfo.read(src)
    with pytest.raises(PointerOutOfRangeError):
        info.read_bytes(src)


def test_buffer_info_rejects_runtime_fields():
    b = Blob()
    b.u32(0x80000000).u32(4).u32(0).u16(2).u16(1).u32(0).s32(0)
    with pytest.raises(NonZeroReservedError):
        BufferInfo.read(ByteSource(b.bytes()))
