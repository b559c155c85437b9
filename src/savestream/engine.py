"""
Savestream engine.

Main entry point coordinating splitting, alignment, deduplication and info
differencing. Dictionaries live for exactly one encode or decode pass.
"""

import io
import itertools
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import msgpack
from msgpack.exceptions import UnpackException

from .config import CodecConfig, DEFAULT_BLOCK_SIZE, DEFAULT_SUPER_BLOCK_MULTIPLE
from .errors import (
    EmptyRangeError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    InvalidFrameError,
    MalformedSnapshotError,
)
from .integrity.canonical import compact_json
from .metadata import apply_info_patch, diff_info, encode_patch
from .model.frame import Frame
from .model.snapshot import SnapshotParts
from .storage.alignment import align_buffer, pad_to, unalign_buffer
from .storage.block_store import BlockDictionary, BlockStore

logger = logging.getLogger(__name__)


def _config(block_size: int, super_block_multiple: int) -> CodecConfig:
    return CodecConfig(block_size, super_block_multiple).validate()


class SavestreamEncoder:
    """
    Incremental savestream encoder.

    Snapshots are added one at a time, in capture order. The block store and
    previous info are private to this encoder.
    """

    def __init__(self, config: Optional[CodecConfig] = None):
        """
        Initialize an empty encoder.

        Args:
            config: block geometry, defaults to 256-byte blocks and
                256 blocks per superblock
        """
        self.config = (config or CodecConfig()).validate()
        self.store = BlockStore(self.config)
        self._prev_info: dict = {}
        self._frames: List[Frame] = []
        self._superblock_refs = 0

    def add(self, snapshot: bytes) -> Frame:
        """
        Encode one snapshot as the next frame.

        Returns the new frame.
        Raises MalformedSnapshotError if the snapshot cannot be parsed.
        """
        index = len(self._frames)

        try:
            parts = SnapshotParts.from_bytes(snapshot)
            info = parts.parse_info()
            aligned = align_buffer(info, parts.buffer, self.config.block_size)
        except MalformedSnapshotError as e:
            raise MalformedSnapshotError(e.reason, index) from e

        aligned = pad_to(aligned, self.config.super_block_size)
        super_id_sequence = self.store.dedupe(aligned)
        new_blocks, new_super_blocks = self.store.take_new()

        patch = diff_info(self._prev_info, info)
        self._prev_info = info

        frame = Frame(
            header_block=parts.header,
            info_patch=encode_patch(patch),
            new_blocks=new_blocks,
            new_super_blocks=new_super_blocks,
            super_id_sequence=super_id_sequence,
        )
        self._frames.append(frame)
        self._superblock_refs += len(super_id_sequence)

        logger.debug(
            "Encoded snapshot %d: %d superblocks, %d new blocks, %d new superblocks, %d patch ops",
            index, len(super_id_sequence), len(new_blocks), len(new_super_blocks), len(patch),
        )
        return frame

    def extend(self, snapshots: Iterable[bytes]) -> int:
        """Add snapshots in order. Returns the number added."""
        count = 0
        for snapshot in snapshots:
            self.add(snapshot)
            count += 1
        return count

    @property
    def frames(self) -> List[Frame]:
        return list(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def stats(self) -> Dict[str, int]:
        """
        Deduplication statistics so far.

        Counts include the reserved zero block and zero superblock.
        """
        return {
            'frames': len(self._frames),
            'unique_blocks': self.store.block_count,
            'unique_superblocks': self.store.superblock_count,
            'superblock_refs': self._superblock_refs,
            'aligned_bytes': self._superblock_refs * self.config.super_block_size,
        }

    def to_bytes(self) -> bytes:
        """Serialize all frames as one msgpack array."""
        return msgpack.packb([frame.to_dict() for frame in self._frames], use_bin_type=True)


class _ReplayState:
    """Dictionaries and previous info for one decode pass."""

    def __init__(self, config: CodecConfig):
        self.config = config
        self.dictionary = BlockDictionary(config)
        self.prev_info: dict = {}

    def advance(self, frame: Frame, index: int) -> dict:
        """Merge a frame's new entries and apply its info patch."""
        self.dictionary.merge(frame.new_blocks, frame.new_super_blocks, index)
        info = apply_info_patch(self.prev_info, frame.patch_operations(index), index)
        self.prev_info = info
        return info

    def materialize(self, frame: Frame, info: dict, index: int) -> bytes:
        """Rebuild the snapshot for a frame that has been advanced."""
        aligned = self.dictionary.rebuild(frame.super_id_sequence, index)
        try:
            buffer = unalign_buffer(info, aligned, self.config.block_size)
        except MalformedSnapshotError as e:
            raise InvalidFrameError(e.reason, index) from e

        return SnapshotParts(frame.header_block, compact_json(info), buffer).to_bytes()


def _open_stream(stream: bytes) -> Tuple[msgpack.Unpacker, int]:
    """Open a streaming unpacker positioned after the frame array header."""
    unpacker = msgpack.Unpacker(
        io.BytesIO(bytes(stream)),
        raw=False,
        strict_map_key=False,
        max_buffer_size=0,
    )
    try:
        count = unpacker.read_array_header()
    except (ValueError, UnpackException) as e:
        raise InvalidFrameError(f"stream is not a msgpack frame array: {e}") from e
    return unpacker, count


def _iter_frames(stream: bytes) -> Iterator[Tuple[int, Frame]]:
    unpacker, count = _open_stream(stream)
    for index in range(count):
        try:
            record = unpacker.unpack()
        except (ValueError, UnpackException) as e:
            raise InvalidFrameError(f"unreadable frame record: {e}", index) from e
        yield index, Frame.from_dict(record, index)


def _generate_snapshots(stream: bytes, config: CodecConfig) -> Iterator[bytes]:
    state = _ReplayState(config)
    for index, frame in _iter_frames(stream):
        info = state.advance(frame, index)
        logger.debug("Decoding frame %d: %r", index, frame)
        yield state.materialize(frame, info, index)


class SavestreamDecoder:
    """
    Random-access view over an encoded savestream.

    Every iteration starts a fresh decode pass with its own dictionaries.
    """

    def __init__(self, stream: bytes, config: Optional[CodecConfig] = None):
        self.stream = bytes(stream)
        self.config = (config or CodecConfig()).validate()

    def __len__(self) -> int:
        return decode_len(self.stream)

    def __iter__(self) -> Iterator[bytes]:
        return _generate_snapshots(self.stream, self.config)

    def __getitem__(self, index: int) -> bytes:
        return decode_one(
            self.stream, index, self.config.block_size, self.config.super_block_multiple
        )

    def frames(self) -> Iterator[Frame]:
        """Yield parsed frames without rebuilding any snapshot."""
        for _, frame in _iter_frames(self.stream):
            yield frame


def encode(
    snapshots: Iterable[bytes],
    block_size: int = DEFAULT_BLOCK_SIZE,
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE,
) -> bytes:
    """
    Encode a sequence of snapshots into a single savestream.

    Args:
        snapshots: snapshot buffers in capture order
        block_size: alignment block size
        super_block_multiple: blocks per superblock

    Returns:
        bytes: the serialized savestream

    Raises:
        InvalidArgumentError: a size is not a positive integer
        MalformedSnapshotError: a snapshot cannot be parsed; nothing is returned
    """
    encoder = SavestreamEncoder(_config(block_size, super_block_multiple))
    encoder.extend(snapshots)
    stream = encoder.to_bytes()

    stats = encoder.stats()
    logger.info(
        "Encoded %d snapshots into %d bytes (%d unique blocks, %d unique superblocks)",
        stats['frames'], len(stream), stats['unique_blocks'], stats['unique_superblocks'],
    )
    return stream


def decode(
    stream: bytes,
    block_size: int = DEFAULT_BLOCK_SIZE,
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE,
) -> Iterator[bytes]:
    """
    Lazily decode a savestream back into snapshots.

    Each snapshot is rebuilt only when requested. The returned iterator is
    single-pass; call decode again to start over. A corrupted frame raises
    when it is reached, after earlier snapshots have been yielded.
    """
    return _generate_snapshots(stream, _config(block_size, super_block_multiple))


def decode_frames(stream: bytes) -> Iterator[Frame]:
    """Yield the parsed frames of a savestream in order."""
    for _, frame in _iter_frames(stream):
        yield frame


def decode_len(stream: bytes) -> int:
    """
    Get the number of snapshots in a savestream.

    Only the container header is read.
    """
    _, count = _open_stream(stream)
    return count


def decode_one(
    stream: bytes,
    index: int,
    block_size: int = DEFAULT_BLOCK_SIZE,
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE,
) -> bytes:
    """
    Decode the snapshot at one index.

    Earlier frames are replayed into the dictionaries but their buffers are
    not rebuilt.

    Raises IndexOutOfRangeError if index is not in [0, decode_len(stream)).
    """
    config = _config(block_size, super_block_multiple)
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidArgumentError('index', index, "must be an integer")

    length = decode_len(stream)
    if index < 0 or index >= length:
        raise IndexOutOfRangeError(index, length)

    state = _ReplayState(config)
    for i, frame in _iter_frames(stream):
        info = state.advance(frame, i)
        if i == index:
            return state.materialize(frame, info, i)

    raise IndexOutOfRangeError(index, length)


def trim(
    stream: bytes,
    start_index: int,
    end_index: Optional[int] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE,
) -> bytes:
    """
    Cut a savestream down to the snapshots in [start_index, end_index).

    A negative end_index counts back from the end and None means the end.
    The result is a new self-contained stream with fresh dictionaries.

    Raises:
        InvalidArgumentError: start_index is negative
        EmptyRangeError: the range selects no snapshots
    """
    config = _config(block_size, super_block_multiple)
    if isinstance(start_index, bool) or not isinstance(start_index, int) or start_index < 0:
        raise InvalidArgumentError('start_index', start_index, "must be a non-negative integer")
    if end_index is not None and (isinstance(end_index, bool) or not isinstance(end_index, int)):
        raise InvalidArgumentError('end_index', end_index, "must be an integer or None")

    length = decode_len(stream)
    if end_index is None:
        stop = length
    elif end_index < 0:
        stop = max(length + end_index, 0)
    else:
        stop = min(end_index, length)

    if stop <= start_index:
        raise EmptyRangeError(start_index, end_index, length)

    encoder = SavestreamEncoder(config)
    encoder.extend(itertools.islice(_generate_snapshots(stream, config), start_index, stop))
    trimmed = encoder.to_bytes()

    logger.info(
        "Trimmed savestream from %d to %d snapshots [%d, %d), %d -> %d bytes",
        length, len(encoder), start_index, stop, len(stream), len(trimmed),
    )
    return trimmed


def stream_stats(
    stream: bytes,
    block_size: int = DEFAULT_BLOCK_SIZE,
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE,
) -> Dict[str, int]:
    """
    Summarize a savestream without rebuilding any snapshot.

    Returns dict with:
        - frames: number of snapshots
        - unique_blocks / unique_superblocks: dictionary sizes, including
          the reserved zero entries
        - superblock_refs: total superblock references across frames
        - stream_bytes: encoded size
        - aligned_bytes: aligned buffer bytes the stream represents
    """
    config = _config(block_size, super_block_multiple)
    stats = {
        'frames': 0,
        'unique_blocks': 1,
        'unique_superblocks': 1,
        'superblock_refs': 0,
        'stream_bytes': len(stream),
        'aligned_bytes': 0,
    }

    for frame in decode_frames(stream):
        stats['frames'] += 1
        stats['unique_blocks'] += len(frame.new_blocks)
        stats['unique_superblocks'] += len(frame.new_super_blocks)
        stats['superblock_refs'] += frame.superblock_count

    stats['aligned_bytes'] = stats['superblock_refs'] * config.super_block_size
    return stats
