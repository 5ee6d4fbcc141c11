"""Animation, shader-parameter and scene sub-files plus embedded blobs.

Only their position is recorded; their bodies are left undecoded.
"""

from __future__ import annotations

from dataclasses import dataclass

from .binio import ByteSource, Pointer


@dataclass(frozen=True)
class _Opaque:
    position: int

    @classmethod
    def read(cls, src: ByteSource):
        return cls(src.tell)


class Fska(_Opaque):
    """Skeletal animation."""


class Fshu(_Opaque):
    """Shader parameter, colour or texture SRT animation."""


class Ftxp(_Opaque):
    """Texture pattern animation."""


class Fvis(_Opaque):
    """Bone or material visibility animation."""


class Fsha(_Opaque):
    """Shape animation."""


class Fscn(_Opaque):
    """Scene animation."""


@dataclass(frozen=True)
class Embedded:
    offset: Pointer
    length: int

    @classmethod
    def read(cls, src: ByteSource) -> "Embedded":
        return cls(Pointer.read(src), src.u32())

    def position(self, src: ByteSource) -> int:
        return self.offset.resolve(len(src))

    def read_bytes(self, src: ByteSource) -> bytes:
        cur = src.fork()
        self.offset.seek(cur)
        return cur.read(self.length)
