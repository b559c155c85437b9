"""
Frame model.

A frame is one snapshot's record inside a savestream.
"""

from types import MappingProxyType
from typing import Dict, List, Optional

from ..config import HEADER_SIZE
from ..errors import InvalidFrameError
from ..metadata import decode_patch

FIELDS = ('headerBlock', 'infoPatch', 'newBlocks', 'newSuperBlocks', 'superIdSequence')


def _parse_id(value, what: str, frame_index: Optional[int]) -> int:
    # ids arrive as decimal string map keys, or as ints from older writers
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise InvalidFrameError(f"{what} id must be an integer, got {value!r}", frame_index)


def _int_list(values, what: str, frame_index: Optional[int]) -> List[int]:
    if not isinstance(values, (list, tuple)):
        raise InvalidFrameError(f"{what} must be an array", frame_index)
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidFrameError(f"{what} contains non-id {value!r}", frame_index)
    return list(values)


class Frame:
    """
    Immutable encoded snapshot.

    Holds:
    - the raw snapshot header
    - the info patch against the previous frame (compact JSON bytes)
    - blocks first seen in this frame, by id
    - superblocks first seen in this frame, by id, as block id tuples
    - the superblock ids that rebuild this frame's aligned buffer
    """

    def __init__(
        self,
        header_block: bytes,
        info_patch: bytes,
        new_blocks: Dict[int, bytes],
        new_super_blocks: Dict[int, List[int]],
        super_id_sequence: List[int],
    ):
        self.header_block = bytes(header_block)
        self.info_patch = bytes(info_patch)
        self.new_blocks = MappingProxyType(dict(new_blocks))
        self.new_super_blocks = MappingProxyType(
            {k: tuple(v) for k, v in new_super_blocks.items()}
        )
        self.super_id_sequence = tuple(super_id_sequence)

    def to_dict(self) -> dict:
        """
        Convert frame to its wire record.

        Map keys are decimal strings, matching the JavaScript writer.
        """
        return {
            'headerBlock': self.header_block,
            'infoPatch': self.info_patch,
            'newBlocks': {str(k): v for k, v in self.new_blocks.items()},
            'newSuperBlocks': {str(k): v for k, v in self.new_super_blocks.items()},
            'superIdSequence': self.super_id_sequence,
        }

    @classmethod
    def from_dict(cls, data: dict, frame_index: int = None) -> 'Frame':
        """
        Reconstruct frame from a wire record.

        Raises InvalidFrameError if a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise InvalidFrameError(
                f"frame record must be a map, got {type(data).__name__}", frame_index
            )

        missing = [field for field in FIELDS if field not in data]
        if missing:
            raise InvalidFrameError(f"frame missing fields {missing}", frame_index)

        header_block = data['headerBlock']
        if not isinstance(header_block, (bytes, bytearray)) or len(header_block) != HEADER_SIZE:
            raise InvalidFrameError(
                f"headerBlock must be {HEADER_SIZE} bytes", frame_index
            )

        info_patch = data['infoPatch']
        if isinstance(info_patch, str):
            info_patch = info_patch.encode('utf-8')
        if not isinstance(info_patch, (bytes, bytearray)):
            raise InvalidFrameError("infoPatch must be bytes", frame_index)

        raw_blocks = data['newBlocks']
        if not isinstance(raw_blocks, dict):
            raise InvalidFrameError("newBlocks must be a map", frame_index)
        new_blocks = {}
        for key, block in raw_blocks.items():
            if not isinstance(block, (bytes, bytearray)):
                raise InvalidFrameError(f"block {key!r} must be bytes", frame_index)
            new_blocks[_parse_id(key, 'block', frame_index)] = bytes(block)

        raw_super_blocks = data['newSuperBlocks']
        if not isinstance(raw_super_blocks, dict):
            raise InvalidFrameError("newSuperBlocks must be a map", frame_index)
        new_super_blocks = {
            _parse_id(key, 'superblock', frame_index): _int_list(
                block_ids, f"superblock {key!r}", frame_index
            )
            for key, block_ids in raw_super_blocks.items()
        }

        super_id_sequence = _int_list(data['superIdSequence'], 'superIdSequence', frame_index)

        return cls(header_block, info_patch, new_blocks, new_super_blocks, super_id_sequence)

    def patch_operations(self, frame_index: int = None) -> List[dict]:
        """Parse the info patch. Raises PatchApplicationError."""
        return decode_patch(self.info_patch, frame_index)

    @property
    def superblock_count(self) -> int:
        return len(self.super_id_sequence)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"Frame(superblocks={len(self.super_id_sequence)}, "
            f"new_blocks={len(self.new_blocks)}, "
            f"new_super_blocks={len(self.new_super_blocks)})"
        )
