"""
Snapshot envelope model.

A snapshot is a 16-byte header, a JSON info segment and a buffer region that
starts at the next 4-byte boundary after the info segment.
"""

import struct
from typing import Tuple

from ..config import HEADER_SIZE, INFO_LENGTH_OFFSET, REGION_ALIGNMENT
from ..errors import MalformedSnapshotError
from ..integrity.canonical import parse_info


def align_up(value: int, alignment: int = REGION_ALIGNMENT) -> int:
    """Round value up to the next multiple of alignment."""
    return (value + alignment - 1) // alignment * alignment


class SnapshotParts:
    """
    The three regions of one snapshot.

    Splitting and recombining are exact inverses for any snapshot whose
    info padding is zero bytes.
    """

    def __init__(self, header: bytes, info: bytes, buffer: bytes):
        """
        Create snapshot parts.

        Args:
            header: raw 16-byte header, kept verbatim
            info: UTF-8 JSON info segment without padding
            buffer: buffer region
        """
        self.header = bytes(header)
        self.info = bytes(info)
        self.buffer = bytes(buffer)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'SnapshotParts':
        """
        Split a snapshot into header, info and buffer.

        Raises MalformedSnapshotError if the header is short or the info
        length is negative or runs past the end of the data.
        """
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise MalformedSnapshotError(
                f"snapshot is {len(data)} bytes, shorter than the {HEADER_SIZE}-byte header"
            )

        header = data[:HEADER_SIZE]
        (info_length,) = struct.unpack_from('<i', header, INFO_LENGTH_OFFSET)

        if info_length < 0:
            raise MalformedSnapshotError(f"negative info length {info_length}")

        info_end = HEADER_SIZE + info_length
        if info_end > len(data):
            raise MalformedSnapshotError(
                f"info length {info_length} runs past end of {len(data)}-byte snapshot"
            )

        info = data[HEADER_SIZE:info_end]
        buffer = data[align_up(info_end):]

        return cls(header, info, buffer)

    def to_bytes(self) -> bytes:
        """Reassemble the snapshot, zero-padding the info segment to 4 bytes."""
        padding = align_up(len(self.info)) - len(self.info)
        return b''.join((self.header, self.info, bytes(padding), self.buffer))

    @property
    def info_length(self) -> int:
        return len(self.info)

    def parse_info(self) -> dict:
        """Decode the info segment. Raises MalformedSnapshotError."""
        return parse_info(self.info)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SnapshotParts):
            return NotImplemented
        return (self.header, self.info, self.buffer) == (other.header, other.info, other.buffer)

    def __repr__(self) -> str:
        return (
            f"SnapshotParts(info={len(self.info)} bytes, "
            f"buffer={len(self.buffer)} bytes)"
        )


def split_snapshot(data: bytes) -> Tuple[bytes, bytes, bytes]:
    """Split a snapshot into a (header, info, buffer) tuple."""
    parts = SnapshotParts.from_bytes(data)
    return parts.header, parts.info, parts.buffer


def recombine_snapshot(header: bytes, info: bytes, buffer: bytes) -> bytes:
    """Inverse of split_snapshot."""
    return SnapshotParts(header, info, buffer).to_bytes()
