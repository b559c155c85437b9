"""
Block alignment of the buffer region.

Each sub-buffer listed in the info segment is padded to a whole number of
blocks so that unchanged memory lands on the same block boundaries from one
snapshot to the next.
"""

from typing import List, Tuple

from ..config import REGION_ALIGNMENT
from ..errors import InvalidArgumentError, MalformedSnapshotError
from ..model.snapshot import align_up


def _check_multiple(name: str, multiple) -> int:
    if isinstance(multiple, bool) or not isinstance(multiple, int) or multiple <= 0:
        raise InvalidArgumentError(name, multiple, "must be a positive integer")
    return multiple


def padding_for(length: int, multiple: int) -> int:
    """Number of zero bytes needed to bring length up to a multiple."""
    return (multiple - length % multiple) % multiple


def pad_to(data: bytes, multiple: int) -> bytes:
    """
    Right-pad data with zero bytes to a multiple of the given size.

    Raises InvalidArgumentError if multiple is not a positive integer.
    """
    _check_multiple('multiple', multiple)
    padding = padding_for(len(data), multiple)
    if padding == 0:
        return bytes(data)
    return bytes(data) + bytes(padding)


def buffer_regions(info: dict) -> List[Tuple[int, int]]:
    """
    Read (offset, length) pairs from the info segment's buffer_infos.

    Raises MalformedSnapshotError if the field is missing or an entry is not
    a pair of non-negative integers.
    """
    if not isinstance(info, dict) or 'buffer_infos' not in info:
        raise MalformedSnapshotError("info segment has no buffer_infos")

    entries = info['buffer_infos']
    if not isinstance(entries, list):
        raise MalformedSnapshotError("buffer_infos must be a list")

    regions = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedSnapshotError(f"buffer_infos[{i}] must be an object")
        offset = entry.get('offset')
        length = entry.get('length')
        for field, value in (('offset', offset), ('length', length)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise MalformedSnapshotError(
                    f"buffer_infos[{i}].{field} must be a non-negative integer, got {value!r}"
                )
        regions.append((offset, length))

    return regions


def align_buffer(info: dict, buffer: bytes, block_size: int) -> bytes:
    """
    Build the block-aligned form of a buffer region.

    Each sub-buffer is copied in buffer_infos order and zero-padded to the
    next multiple of block_size.

    Args:
        info: parsed info segment
        buffer: raw buffer region
        block_size: alignment block size

    Raises:
        InvalidArgumentError: block_size is not a positive integer
        MalformedSnapshotError: a sub-buffer lies outside the buffer
    """
    _check_multiple('block_size', block_size)

    aligned = bytearray()
    for offset, length in buffer_regions(info):
        if offset + length > len(buffer):
            raise MalformedSnapshotError(
                f"sub-buffer [{offset}, {offset + length}) runs past "
                f"end of {len(buffer)}-byte buffer region"
            )
        aligned += buffer[offset:offset + length]
        aligned += bytes(padding_for(length, block_size))

    return bytes(aligned)


def unalign_buffer(info: dict, aligned_buffer: bytes, block_size: int) -> bytes:
    """
    Rebuild a buffer region from its block-aligned form.

    Sub-buffers are read back past their block padding and laid out again
    with 4-byte padding between them, which is how the virtual machine lays
    out its own buffer region.

    Raises:
        InvalidArgumentError: block_size is not a positive integer
        MalformedSnapshotError: the aligned buffer is shorter than the info
            segment describes
    """
    _check_multiple('block_size', block_size)
    regions = buffer_regions(info)

    total = sum(align_up(length, REGION_ALIGNMENT) for _, length in regions)
    buffer = bytearray(total)

    read_offset = 0
    write_offset = 0
    for _, length in regions:
        if read_offset + length > len(aligned_buffer):
            raise MalformedSnapshotError(
                f"aligned buffer of {len(aligned_buffer)} bytes is too short "
                f"for a {length}-byte sub-buffer at {read_offset}"
            )
        buffer[write_offset:write_offset + length] = aligned_buffer[read_offset:read_offset + length]
        read_offset += length + padding_for(length, block_size)
        write_offset += align_up(length, REGION_ALIGNMENT)

    return bytes(buffer)
