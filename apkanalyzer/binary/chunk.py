"""
Bounds-checked access to chunked binary containers.

Compiled XML files and the compiled resource table share one container format:
a sequence of nested chunks, each starting with a fixed 8-byte header::

    uint16_t type
    uint16_t headerSize
    uint32_t size

Every decoder in this package reads through :class:`ChunkHeader` and
:class:`ChunkCursor` so that no decoder performs its own offset arithmetic.
"""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass

from ..core.exceptions import MalformedHeaderError, OutOfBoundsReadError

CHUNK_HEADER_FORMAT = "<HHI"
CHUNK_HEADER_SIZE = struct.calcsize(CHUNK_HEADER_FORMAT)


@dataclass(frozen=True)
class ChunkHeader:
    """One chunk occurrence inside a buffer."""

    offset: int
    header_size: int
    chunk_size: int
    chunk_type: int

    def __post_init__(self) -> None:
        if self.offset < 0 or self.header_size < 0 or self.header_size > self.chunk_size:
            raise MalformedHeaderError(
                message=f"Header size {self.header_size} exceeds chunk size {self.chunk_size}",
                offset=self.offset,
            )

    @property
    def data_offset(self) -> int:
        """Absolute position of the payload (first byte after the header)."""
        return self.offset + self.header_size

    @property
    def chunk_end(self) -> int:
        """Exclusive upper bound of the chunk."""
        return self.offset + self.chunk_size

    @property
    def next_chunk(self) -> int:
        """Offset where a sibling chunk, if any, begins."""
        return self.chunk_end

    @property
    def payload_size(self) -> int:
        return self.chunk_size - self.header_size

    def absolute(self, relative: int) -> int:
        """Convert a chunk-relative position into an absolute buffer position.

        The chunk end itself is addressable so that zero-length trailing reads
        succeed; anything past it is corrupted input.

        Raises:
            OutOfBoundsReadError: If the position lies outside the chunk.
        """
        absolute = self.offset + relative
        if relative < 0 or absolute > self.chunk_end:
            raise OutOfBoundsReadError(
                message="Requested a relative value out of bounds",
                context={"chunk_type": f"{self.chunk_type:#06x}", "relative": relative},
                offset=absolute,
                limit=self.chunk_end,
            )
        return absolute

    def __str__(self) -> str:
        return (
            f"(Token:{self.chunk_type:X}; Start: {self.offset}; "
            f"Data: {self.data_offset}; End {self.chunk_end})"
        )


def read_header(buffer: bytes, offset: int) -> ChunkHeader:
    """Read the chunk header located at ``offset``.

    Raises:
        MalformedHeaderError: If the header does not fit in the buffer, declares
            a header larger than the chunk, or a chunk larger than the buffer.
    """
    if offset < 0 or offset + CHUNK_HEADER_SIZE > len(buffer):
        raise MalformedHeaderError(
            message="Incomplete chunk header",
            context={"buffer_size": len(buffer)},
            offset=offset,
        )

    chunk_type, header_size, chunk_size = struct.unpack_from(CHUNK_HEADER_FORMAT, buffer, offset)

    if header_size < CHUNK_HEADER_SIZE:
        raise MalformedHeaderError(
            message=f"Header size {header_size} is smaller than the chunk header itself",
            offset=offset,
        )
    if header_size > chunk_size:
        raise MalformedHeaderError(
            message=f"Header size {header_size} exceeds chunk size {chunk_size}",
            offset=offset,
        )
    if offset + chunk_size > len(buffer):
        raise MalformedHeaderError(
            message=f"Chunk size {chunk_size} runs past the end of the buffer",
            context={"buffer_size": len(buffer)},
            offset=offset,
        )

    return ChunkHeader(
        offset=offset,
        header_size=header_size,
        chunk_size=chunk_size,
        chunk_type=chunk_type,
    )


def data_offset(header: ChunkHeader) -> int:
    return header.data_offset


def chunk_end(header: ChunkHeader) -> int:
    return header.chunk_end


def absolute(header: ChunkHeader, relative: int) -> int:
    return header.absolute(relative)


def next_chunk(header: ChunkHeader) -> int:
    return header.next_chunk


class ChunkCursor:
    """A window over one buffer that only reads through chunk headers.

    Typical use by a grammar decoder::

        cursor = ChunkCursor(data)
        root = cursor.read_header(0)
        for child in cursor.iter_chunks(root.data_offset, root.chunk_end):
            ...
    """

    def __init__(self, buffer: bytes) -> None:
        self.buffer = bytes(buffer)

    def __len__(self) -> int:
        return len(self.buffer)

    def read_header(self, offset: int) -> ChunkHeader:
        return read_header(self.buffer, offset)

    def iter_chunks(self, start: int, end: int) -> Iterator[ChunkHeader]:
        """Walk sibling chunks laid out back to back in ``[start, end)``.

        A chunk that extends beyond ``end`` belongs to no valid parent and is
        reported as malformed.
        """
        offset = start
        while offset < end:
            header = self.read_header(offset)
            if header.chunk_end > end:
                raise MalformedHeaderError(
                    message=f"Chunk overruns its parent ending at {end}",
                    offset=offset,
                )
            yield header
            offset = header.next_chunk

    def read_bytes(self, header: ChunkHeader, relative: int, length: int) -> bytes:
        """Read ``length`` bytes at a chunk-relative position."""
        start = header.absolute(relative)
        stop = header.absolute(relative + length)
        return self.buffer[start:stop]

    def read_struct(self, header: ChunkHeader, relative: int, fmt: str) -> tuple:
        """Unpack a little-endian struct at a chunk-relative position."""
        if not fmt.startswith(("<", ">", "=", "!", "@")):
            fmt = "<" + fmt
        start = header.absolute(relative)
        header.absolute(relative + struct.calcsize(fmt))
        return struct.unpack_from(fmt, self.buffer, start)

    def read_u16(self, header: ChunkHeader, relative: int) -> int:
        return self.read_struct(header, relative, "<H")[0]

    def read_u32(self, header: ChunkHeader, relative: int) -> int:
        return self.read_struct(header, relative, "<I")[0]
