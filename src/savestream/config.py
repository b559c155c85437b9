"""
Format constants and codec configuration.

Block geometry is not stored in the stream, so encoder and decoder must be
given the same values. Defaults can be overridden through the environment.
"""

import os
from dataclasses import dataclass

from .errors import InvalidArgumentError

HEADER_SIZE = 16
"""Size of the fixed snapshot header in bytes."""

INFO_LENGTH_OFFSET = 12
"""Offset of the little-endian int32 info length inside the header."""

REGION_ALIGNMENT = 4
"""Alignment of the buffer region and of each sub-buffer inside it."""

DEFAULT_BLOCK_SIZE = 256
DEFAULT_SUPER_BLOCK_MULTIPLE = 256

ZERO_ID = 0
"""Id reserved for the all-zero block and the all-zero superblock."""


def _positive_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(name, value, "must be an integer")
    if value <= 0:
        raise InvalidArgumentError(name, value, "must be a positive integer")
    return value


@dataclass(frozen=True)
class CodecConfig:
    """
    Block geometry shared by the encoder and decoder of one stream.

    Attributes:
        block_size: bytes per block
        super_block_multiple: blocks per superblock
    """

    block_size: int = DEFAULT_BLOCK_SIZE
    super_block_multiple: int = DEFAULT_SUPER_BLOCK_MULTIPLE

    @property
    def super_block_size(self) -> int:
        return self.block_size * self.super_block_multiple

    def validate(self) -> 'CodecConfig':
        """
        Check both sizes are positive integers.

        Returns self so calls can be chained.
        Raises InvalidArgumentError otherwise.
        """
        _positive_int('block_size', self.block_size)
        _positive_int('super_block_multiple', self.super_block_multiple)
        return self

    @classmethod
    def from_env(cls) -> 'CodecConfig':
        """
        Build a config from SAVESTREAM_BLOCK_SIZE and
        SAVESTREAM_SUPER_BLOCK_MULTIPLE, falling back to the defaults.
        """
        values = {}
        for field_name, env_name, default in (
            ('block_size', 'SAVESTREAM_BLOCK_SIZE', DEFAULT_BLOCK_SIZE),
            ('super_block_multiple', 'SAVESTREAM_SUPER_BLOCK_MULTIPLE', DEFAULT_SUPER_BLOCK_MULTIPLE),
        ):
            raw = os.environ.get(env_name)
            if raw is None or raw.strip() == '':
                values[field_name] = default
                continue
            try:
                values[field_name] = int(raw)
            except ValueError as e:
                raise InvalidArgumentError(env_name, raw, "must be an integer") from e

        return cls(**values).validate()
