"""
Savestream - compact, randomly addressable archives of v86 save states.

This package provides:
- Splitting and recombining the v86 snapshot envelope
- Block alignment of the buffer region
- Two-tier content-addressed deduplication of blocks and superblocks
- JSON Patch differencing of the info segment
- Lazy and random-access decoding, trimming and verification

Example usage:
    from savestream import encode, decode, decode_one, trim

    stream = encode(snapshots)
    for state in decode(stream):
        ...

    third = decode_one(stream, 2)
    tail = trim(stream, 10)
"""

from .config import CodecConfig
from .engine import (
    SavestreamDecoder,
    SavestreamEncoder,
    decode,
    decode_frames,
    decode_len,
    decode_one,
    encode,
    stream_stats,
    trim,
)
from .errors import (
    SavestreamError,
    MalformedSnapshotError,
    InvalidArgumentError,
    StreamCorruptedError,
    InvalidFrameError,
    UnknownBlockReferenceError,
    UnknownSuperblockReferenceError,
    PatchApplicationError,
    IndexOutOfRangeError,
    EmptyRangeError,
    StorageError,
)
from .integrity.verification import verify_stream
from .metadata import apply_info_patch, diff_info
from .model.frame import Frame
from .model.snapshot import SnapshotParts, recombine_snapshot, split_snapshot
from .storage.alignment import align_buffer, pad_to, unalign_buffer
from .storage.block_store import BlockDictionary, BlockStore

__version__ = '0.1.0'

__all__ = [
    # Stream operations
    'encode',
    'decode',
    'decode_one',
    'decode_len',
    'decode_frames',
    'trim',
    'stream_stats',
    'verify_stream',
    'SavestreamEncoder',
    'SavestreamDecoder',
    'CodecConfig',

    # Building blocks
    'SnapshotParts',
    'split_snapshot',
    'recombine_snapshot',
    'align_buffer',
    'unalign_buffer',
    'pad_to',
    'BlockStore',
    'BlockDictionary',
    'diff_info',
    'apply_info_patch',
    'Frame',

    # Errors
    'SavestreamError',
    'MalformedSnapshotError',
    'InvalidArgumentError',
    'StreamCorruptedError',
    'InvalidFrameError',
    'UnknownBlockReferenceError',
    'UnknownSuperblockReferenceError',
    'PatchApplicationError',
    'IndexOutOfRangeError',
    'EmptyRangeError',
    'StorageError',
]
