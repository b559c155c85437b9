"""
Error types for savestream encoding and decoding.

All errors are explicit and never silent.
"""


class SavestreamError(Exception):
    """Base exception for all savestream errors."""
    pass


class MalformedSnapshotError(SavestreamError):
    """Raised when a snapshot's header or info segment cannot be parsed."""

    def __init__(self, reason: str, index: int = None):
        self.reason = reason
        self.index = index
        msg = f"Malformed snapshot: {reason}"
        if index is not None:
            msg += f" (snapshot {index})"
        super().__init__(msg)


class InvalidArgumentError(SavestreamError):
    """Raised when a caller passes a size or index the codec cannot use."""

    def __init__(self, name: str, value, reason: str):
        self.name = name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid argument {name}={value!r}: {reason}")


class StreamCorruptedError(SavestreamError):
    """Raised when a savestream cannot be replayed."""

    def __init__(self, reason: str, frame_index: int = None):
        self.reason = reason
        self.frame_index = frame_index
        msg = f"Savestream corrupted: {reason}"
        if frame_index is not None:
            msg += f" (frame {frame_index})"
        super().__init__(msg)


class InvalidFrameError(StreamCorruptedError):
    """Raised when a frame record is missing fields or has the wrong shape."""
    pass


class UnknownBlockReferenceError(StreamCorruptedError):
    """Raised when a superblock references a block id that was never introduced."""

    def __init__(self, block_id: int, superblock_id: int = None, frame_index: int = None):
        self.block_id = block_id
        self.superblock_id = superblock_id
        reason = f"unknown block id {block_id}"
        if superblock_id is not None:
            reason += f" referenced by superblock {superblock_id}"
        super().__init__(reason, frame_index)


class UnknownSuperblockReferenceError(StreamCorruptedError):
    """Raised when a frame references a superblock id that was never introduced."""

    def __init__(self, superblock_id: int, frame_index: int = None):
        self.superblock_id = superblock_id
        super().__init__(f"unknown superblock id {superblock_id}", frame_index)


class PatchApplicationError(StreamCorruptedError):
    """Raised when an info patch does not apply to the previous info."""

    def __init__(self, reason: str, frame_index: int = None):
        super().__init__(f"info patch failed: {reason}", frame_index)
        self.reason = reason


class IndexOutOfRangeError(SavestreamError):
    """Raised when a snapshot index is outside the stream."""

    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(
            f"Index {index} out of range for savestream with {length} saves"
        )


class EmptyRangeError(SavestreamError):
    """Raised when a trim range selects no snapshots."""

    def __init__(self, start_index: int, end_index, length: int):
        self.start_index = start_index
        self.end_index = end_index
        self.length = length
        super().__init__(
            f"No states in range [{start_index}, {end_index}) "
            f"of savestream with {length} saves"
        )


class StorageError(SavestreamError):
    """Raised when reading or writing snapshot files fails."""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        msg = f"Storage error during {operation}: {path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)
