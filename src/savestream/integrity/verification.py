"""
Integrity verification for encoded savestreams.

Walks the frames of a stream without rebuilding any buffer and checks the
ordering rules that make single-pass decoding possible.
"""

from typing import List, Tuple

from ..config import CodecConfig, DEFAULT_BLOCK_SIZE, DEFAULT_SUPER_BLOCK_MULTIPLE
from ..engine import decode_frames
from ..errors import SavestreamError, StreamCorruptedError
from ..metadata import apply_info_patch
from ..model.frame import Frame


def verify_new_ids(ids: List[int], next_id: int, what: str) -> List[str]:
    """
    Check that newly introduced ids continue the dense sequence at next_id.

    Returns list of error messages.
    """
    expected = list(range(next_id, next_id + len(ids)))
    if sorted(ids) == expected:
        return []

    reused = [i for i in ids if i < next_id]
    if reused:
        return [f"{what} ids {reused} reintroduced (next id is {next_id})"]
    return [f"{what} ids {sorted(ids)} are not dense from {next_id}"]


def verify_frame(
    frame: Frame,
    index: int,
    config: CodecConfig,
    block_count: int,
    superblock_count: int,
) -> List[str]:
    """
    Verify one frame against the dictionary sizes before it.

    Returns list of error messages.
    """
    errors = []
    prefix = f"frame {index}:"

    for message in verify_new_ids(list(frame.new_blocks), block_count, 'block'):
        errors.append(f"{prefix} {message}")
    for message in verify_new_ids(list(frame.new_super_blocks), superblock_count, 'superblock'):
        errors.append(f"{prefix} {message}")

    for block_id, block in frame.new_blocks.items():
        if len(block) != config.block_size:
            errors.append(
                f"{prefix} block {block_id} is {len(block)} bytes, expected {config.block_size}"
            )

    known_blocks = block_count + len(frame.new_blocks)
    for super_id, block_ids in frame.new_super_blocks.items():
        if len(block_ids) != config.super_block_multiple:
            errors.append(
                f"{prefix} superblock {super_id} has {len(block_ids)} blocks, "
                f"expected {config.super_block_multiple}"
            )
        forward = sorted({b for b in block_ids if b >= known_blocks})
        if forward:
            errors.append(f"{prefix} superblock {super_id} references unknown blocks {forward}")

    known_superblocks = superblock_count + len(frame.new_super_blocks)
    forward = sorted({s for s in frame.super_id_sequence if s >= known_superblocks})
    if forward:
        errors.append(f"{prefix} references unknown superblocks {forward}")

    return errors


def verify_stream(
    stream: bytes,
    block_size: int = DEFAULT_BLOCK_SIZE,
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE,
) -> Tuple[bool, List[str]]:
    """
    Verify a savestream frame by frame.

    Checks that block and superblock ids are introduced densely and in
    increasing order, that every id is introduced no later than the frame
    that first uses it, that block and superblock sizes match the config,
    and that every info patch applies.

    Returns (is_valid, errors) where errors is list of error messages.
    """
    config = CodecConfig(block_size, super_block_multiple).validate()
    errors: List[str] = []

    block_count = 1
    superblock_count = 1
    prev_info: dict = {}

    try:
        for index, frame in enumerate(decode_frames(stream)):
            errors.extend(verify_frame(frame, index, config, block_count, superblock_count))
            block_count += len(frame.new_blocks)
            superblock_count += len(frame.new_super_blocks)

            try:
                prev_info = apply_info_patch(prev_info, frame.patch_operations(index), index)
            except StreamCorruptedError as e:
                errors.append(str(e))
                return False, errors

    except SavestreamError as e:
        errors.append(f"Failed to read stream: {e}")
        return False, errors

    is_valid = len(errors) == 0
    return is_valid, errors
