"""
Cursor-based little-endian reader over an in-memory byte buffer.

Shared by the GLB and FBX parsers. Every read checks bounds first and
raises OutOfBoundsError instead of returning short data.
"""

import struct

from mesh import MalformedInputError, OutOfBoundsError


class BinaryReader:
    """Sequential typed reads with an explicit, settable cursor."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = bytes(data)
        self.offset = offset

    def __len__(self) -> int:
        return len(self.data)

    def tell(self) -> int:
        return self.offset

    def seek(self, offset: int) -> None:
        if offset < 0 or offset > len(self.data):
            raise OutOfBoundsError(
                f"Seek to {offset} outside buffer of {len(self.data)} bytes")
        self.offset = offset

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def _require(self, size: int) -> int:
        start = self.offset
        if size < 0 or start + size > len(self.data):
            raise OutOfBoundsError(
                f"Read of {size} bytes at offset {start} exceeds "
                f"buffer of {len(self.data)} bytes")
        self.offset = start + size
        return start

    def _unpack(self, fmt: str):
        size = struct.calcsize(fmt)
        start = self._require(size)
        return struct.unpack_from(fmt, self.data, start)[0]

    # -- integers ---------------------------------------------------------

    def u8(self) -> int:
        return self._unpack("<B")

    def u16(self) -> int:
        return self._unpack("<H")

    def u32(self) -> int:
        return self._unpack("<I")

    def i8(self) -> int:
        return self._unpack("<b")

    def i16(self) -> int:
        return self._unpack("<h")

    def i32(self) -> int:
        return self._unpack("<i")

    def u64(self) -> int:
        low = self.u32()
        high = self.u32()
        return (high << 32) | low

    def i64(self) -> int:
        low = self.u32()
        high = self.i32()
        return (high << 32) | low

    # -- floats -----------------------------------------------------------

    def f32(self) -> float:
        return self._unpack("<f")

    def f64(self) -> float:
        return self._unpack("<d")

    # -- slices -----------------------------------------------------------

    def raw(self, length: int) -> bytes:
        start = self._require(length)
        return self.data[start:start + length]

    def string(self, length: int, encoding: str = "utf-8") -> str:
        raw = self.raw(length)
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError as e:
            raise MalformedInputError(
                f"Invalid {encoding} string at offset {self.offset - length}: {e}"
            ) from e

    def array(self, fmt_char: str, count: int) -> list:
        """Read ``count`` consecutive elements of one struct format char."""
        fmt = f"<{count}{fmt_char}"
        start = self._require(struct.calcsize(fmt))
        return list(struct.unpack_from(fmt, self.data, start))
