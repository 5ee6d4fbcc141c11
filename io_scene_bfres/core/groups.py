"""Index groups, data arrays and buffer descriptors.

Both collection kinds only remember where their records live. Visiting an
entry seeks a private cursor to the record and runs the decoder that was bound
when the collection was read, so an entry may be visited any number of times.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Tuple

from .binio import ByteSource, Pointer
from .errors import (
    ArrayOutOfRangeError,
    BfresError,
    IndexGroupOverrunError,
    PointerOutOfRangeError,
)

Decoder = Callable[[ByteSource], Any]

INDEX_GROUP_ENTRY_SIZE = 0x10
BUFFER_INFO_SIZE = 0x18


def _decode_at(src: ByteSource, pointer: Pointer, decoder: Decoder) -> Any:
    cur = src.fork()
    target = pointer.seek(cur)
    try:
        return decoder(cur)
    except BfresError as exc:
        what = getattr(decoder, "__qualname__", repr(decoder))
        raise exc.add_context(f"while reading {what} @ 0x{target:X}")


@dataclass(frozen=True)
class IndexGroupEntry:
    search_value: int
    left_index: int
    right_index: int
    name_pointer: Pointer
    data_pointer: Pointer
    decoder: Decoder = field(repr=False, compare=False)

    @classmethod
    def read(cls, src: ByteSource, decoder: Decoder) -> "IndexGroupEntry":
        search_value = src.u32()
        left_index = src.u16()
        right_index = src.u16()
        name_pointer = Pointer.read(src)
        data_pointer = Pointer.read(src)
        return cls(search_value, left_index, right_index, name_pointer, data_pointer, decoder)

    def name(self, src: ByteSource) -> str:
        cur = src.fork()
        self.name_pointer.seek(cur)
        return cur.cstring()

    def data(self, src: ByteSource) -> Any:
        return _decode_at(src, self.data_pointer, self.decoder)


@dataclass(frozen=True)
class IndexGroup:
    """Named entries in stored order.

    The on-disk search tree links (`left_index`/`right_index`) are kept on each
    entry but never followed; lookups by name are linear scans.
    """

    position: int
    length: int
    entries: Tuple[IndexGroupEntry, ...]

    @classmethod
    def read(cls, src: ByteSource, decoder: Decoder) -> "IndexGroup":
        position = src.tell
        length = src.u32()
        end = src.tell + length
        count = src.s32()
        if count < 0:
            raise IndexGroupOverrunError(end, position, count)
        src.skip(INDEX_GROUP_ENTRY_SIZE)
        if src.tell > end:
            raise IndexGroupOverrunError(end, src.tell)
        entries: List[IndexGroupEntry] = []
        for _ in range(count):
            entries.append(IndexGroupEntry.read(src, decoder))
            if src.tell > end:
                raise IndexGroupOverrunError(end, src.tell)
        return cls(position, length, tuple(entries))

    @classmethod
    def read_at(cls, src: ByteSource, pointer: Pointer, decoder: Decoder) -> "IndexGroup":
        cur = src.fork()
        pointer.seek(cur)
        return cls.read(cur, decoder)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexGroupEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> IndexGroupEntry:
        return self.entries[index]

    def names(self, src: ByteSource) -> List[str]:
        return [e.name(src) for e in self.entries]

    def find(self, src: ByteSource, name: str) -> Optional[IndexGroupEntry]:
        for e in self.entries:
            if e.name(src) == name:
                return e
        return None

    def items(self, src: ByteSource) -> List[Tuple[str, Any]]:
        return [(e.name(src), e.data(src)) for e in self.entries]


@dataclass(frozen=True)
class DataArrayEntry:
    data_pointer: Pointer
    decoder: Decoder = field(repr=False, compare=False)

    def data(self, src: ByteSource) -> Any:
        return _decode_at(src, self.data_pointer, self.decoder)


@dataclass(frozen=True)
class DataArray:
    start: int
    stride: int
    count: int
    decoder: Decoder = field(repr=False, compare=False)

    @classmethod
    def read(cls, src: ByteSource, stride: int, count: int, decoder: Decoder) -> "DataArray":
        """Array whose first element starts at the cursor."""
        return cls(src.tell, int(stride), int(count), decoder)

    @classmethod
    def read_at(
        cls, src: ByteSource, pointer: Pointer, stride: int, count: int, decoder: Decoder
    ) -> "DataArray":
        return cls(pointer.resolve(len(src)), int(stride), int(count), decoder)

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[DataArrayEntry]:
        for i in range(self.count):
            yield self.entry(i)

    def position(self, index: int) -> int:
        if index < 0 or index >= self.count:
            raise ArrayOutOfRangeError(index, self.count)
        return self.start + index * self.stride

    def entry(self, index: int) -> DataArrayEntry:
        return DataArrayEntry(Pointer.absolute(self.position(index)), self.decoder)

    @property
    def entries(self) -> List[DataArrayEntry]:
        return list(self)

    def data(self, src: ByteSource, index: int) -> Any:
        return self.entry(index).data(src)


@dataclass(frozen=True)
class BufferInfo:
    size: int
    stride: int
    buffering_count: int
    data_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "BufferInfo":
        src.reserved_zero("BufferInfo.data_pointer")
        size = src.u32()
        src.reserved_zero("BufferInfo.handle")
        stride = src.u16()
        buffering_count = src.u16()
        src.reserved_zero("BufferInfo.context_pointer")
        data_offset = Pointer.read(src)
        return cls(size, stride, buffering_count, data_offset)

    def data_position(self, src: ByteSource) -> int:
        start = self.data_offset.resolve(len(src))
        if start + self.size > len(src):
            raise PointerOutOfRangeError(self.data_offset.origin, self.data_offset.delta + self.size, len(src))
        return start

    def read_bytes(self, src: ByteSource) -> bytes:
        start = self.data_position(src)
        return src.buffer[start : start + self.size].tobytes()
