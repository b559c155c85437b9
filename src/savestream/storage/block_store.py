"""
Two-tier content-addressed block store.

Blocks and superblocks are numbered densely in order of first appearance.
Id 0 is reserved at both tiers for all-zero content. One store lives for
exactly one encode pass, one dictionary for exactly one decode pass.
"""

from typing import Dict, Iterable, List, Tuple

from ..config import CodecConfig, ZERO_ID
from ..errors import (
    InvalidArgumentError,
    InvalidFrameError,
    UnknownBlockReferenceError,
    UnknownSuperblockReferenceError,
)


class BlockStore:
    """
    Encode-side store mapping block and superblock content to ids.

    Content bytes are the dictionary keys, so two equal chunks can never
    receive different ids. Ids assigned since the last take_new() are kept
    aside for emission in the current frame.
    """

    def __init__(self, config: CodecConfig):
        """
        Create a store seeded with the zero block and zero superblock.

        Args:
            config: block geometry for this stream
        """
        self.config = config.validate()
        self.block_size = config.block_size
        self.super_block_size = config.super_block_size

        self._blocks: Dict[bytes, int] = {bytes(self.block_size): ZERO_ID}
        self._super_blocks: Dict[bytes, int] = {bytes(self.super_block_size): ZERO_ID}

        self._new_blocks: Dict[int, bytes] = {}
        self._new_super_blocks: Dict[int, List[int]] = {}

    def intern_block(self, block: bytes) -> int:
        """
        Return the id of a block, assigning the next id if it is unseen.

        Newly assigned ids are recorded for the current frame.
        """
        block = bytes(block)
        block_id = self._blocks.get(block)
        if block_id is None:
            block_id = len(self._blocks)
            self._blocks[block] = block_id
            self._new_blocks[block_id] = block
        return block_id

    def intern_superblock(self, superblock: bytes) -> int:
        """
        Return the id of a superblock, assigning the next id if it is unseen.

        Constituent blocks of an unseen superblock are interned first, in
        order, so block ids follow buffer order.
        """
        superblock = bytes(superblock)
        super_id = self._super_blocks.get(superblock)
        if super_id is not None:
            return super_id

        block_ids = [
            self.intern_block(superblock[offset:offset + self.block_size])
            for offset in range(0, len(superblock), self.block_size)
        ]

        super_id = len(self._super_blocks)
        self._super_blocks[superblock] = super_id
        self._new_super_blocks[super_id] = block_ids
        return super_id

    def dedupe(self, aligned_buffer: bytes) -> List[int]:
        """
        Intern every superblock of an aligned buffer.

        The buffer must already be padded to a multiple of the superblock
        size. Returns the superblock id sequence in buffer order.
        """
        if len(aligned_buffer) % self.super_block_size:
            raise InvalidArgumentError(
                'aligned_buffer', len(aligned_buffer),
                f"length must be a multiple of superblock size {self.super_block_size}",
            )

        return [
            self.intern_superblock(aligned_buffer[offset:offset + self.super_block_size])
            for offset in range(0, len(aligned_buffer), self.super_block_size)
        ]

    def take_new(self) -> Tuple[Dict[int, bytes], Dict[int, List[int]]]:
        """
        Return and clear the blocks and superblocks introduced since the
        last call.
        """
        new_blocks, self._new_blocks = self._new_blocks, {}
        new_super_blocks, self._new_super_blocks = self._new_super_blocks, {}
        return new_blocks, new_super_blocks

    @property
    def block_count(self) -> int:
        """Number of known blocks, including the zero block."""
        return len(self._blocks)

    @property
    def superblock_count(self) -> int:
        """Number of known superblocks, including the zero superblock."""
        return len(self._super_blocks)

    def __repr__(self) -> str:
        return (
            f"BlockStore(block_size={self.block_size}, "
            f"blocks={self.block_count}, superblocks={self.superblock_count})"
        )


class BlockDictionary:
    """
    Decode-side dictionary mapping ids back to content.

    Frames are merged in stream order; each frame's new entries must be
    merged before its superblock sequence is rebuilt.
    """

    def __init__(self, config: CodecConfig):
        self.config = config.validate()
        self.block_size = config.block_size
        self.super_block_multiple = config.super_block_multiple

        self._blocks: Dict[int, bytes] = {ZERO_ID: bytes(self.block_size)}
        self._super_blocks: Dict[int, List[int]] = {
            ZERO_ID: [ZERO_ID] * self.super_block_multiple
        }

    def merge(
        self,
        new_blocks: Dict[int, bytes],
        new_super_blocks: Dict[int, List[int]],
        frame_index: int = None,
    ) -> None:
        """
        Add a frame's new blocks and superblocks.

        Blocks go in first so a new superblock may reference blocks from
        the same frame.

        Raises:
            InvalidFrameError: an id is already defined, a block has the
                wrong size or a superblock the wrong number of entries
            UnknownBlockReferenceError: a superblock references a block not
                introduced in this frame or an earlier one
        """
        for block_id, block in new_blocks.items():
            if block_id in self._blocks:
                raise InvalidFrameError(f"block {block_id} is already defined", frame_index)
            if len(block) != self.block_size:
                raise InvalidFrameError(
                    f"block {block_id} is {len(block)} bytes, expected {self.block_size}",
                    frame_index,
                )
            self._blocks[block_id] = block

        for super_id, block_ids in new_super_blocks.items():
            if super_id in self._super_blocks:
                raise InvalidFrameError(f"superblock {super_id} is already defined", frame_index)
            if len(block_ids) != self.super_block_multiple:
                raise InvalidFrameError(
                    f"superblock {super_id} has {len(block_ids)} blocks, "
                    f"expected {self.super_block_multiple}",
                    frame_index,
                )
            for block_id in block_ids:
                if block_id not in self._blocks:
                    raise UnknownBlockReferenceError(block_id, super_id, frame_index)
            self._super_blocks[super_id] = list(block_ids)

    def superblock(self, super_id: int, frame_index: int = None) -> List[int]:
        """Block ids of a superblock. Raises UnknownSuperblockReferenceError."""
        try:
            return self._super_blocks[super_id]
        except KeyError:
            raise UnknownSuperblockReferenceError(super_id, frame_index) from None

    def block(self, block_id: int, super_id: int = None, frame_index: int = None) -> bytes:
        """Content of a block. Raises UnknownBlockReferenceError."""
        try:
            return self._blocks[block_id]
        except KeyError:
            raise UnknownBlockReferenceError(block_id, super_id, frame_index) from None

    def rebuild(self, super_id_sequence: Iterable[int], frame_index: int = None) -> bytes:
        """Concatenate the blocks of each referenced superblock, in order."""
        parts = []
        for super_id in super_id_sequence:
            for block_id in self.superblock(super_id, frame_index):
                parts.append(self.block(block_id, super_id, frame_index))
        return b''.join(parts)

    @property
    def block_count(self) -> int:
        return len(self._blocks)

    @property
    def superblock_count(self) -> int:
        return len(self._super_blocks)

    def __repr__(self) -> str:
        return (
            f"BlockDictionary(block_size={self.block_size}, "
            f"blocks={self.block_count}, superblocks={self.superblock_count})"
        )
