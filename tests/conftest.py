"""Shared snapshot builders for savestream tests."""

import json
import random
import struct

import msgpack
import pytest

V86_MAGIC = 0x86768676
V86_VERSION = 6

SMALL_BLOCK_SIZE = 16
SMALL_SUPER_BLOCK_MULTIPLE = 4


def _align4(n: int) -> int:
    return (n + 3) & ~3


def build_snapshot(regions, state=None, version=V86_VERSION) -> bytes:
    """
    Build a snapshot in the layout the virtual machine writes.

    Regions are laid out back to back at 4-byte aligned offsets and the info
    segment is compact JSON.
    """
    buffer_infos = []
    buffer = bytearray()
    for region in regions:
        buffer_infos.append({'offset': len(buffer), 'length': len(region)})
        buffer += region
        buffer += bytes(_align4(len(region)) - len(region))

    info = {'buffer_infos': buffer_infos, 'state': state if state is not None else {}}
    info_bytes = json.dumps(info, separators=(',', ':'), ensure_ascii=False).encode('utf-8')

    header = struct.pack('<IIIi', V86_MAGIC, version, 0, len(info_bytes))
    padding = bytes(_align4(len(info_bytes)) - len(info_bytes))
    return header + info_bytes + padding + bytes(buffer)


def build_sequence(count: int, seed: int = 0) -> list:
    """
    Build a sequence of related snapshots.

    Each snapshot rewrites a few bytes of memory and bumps the CPU state,
    the way consecutive captures of a running machine differ.
    """
    rng = random.Random(seed)
    memory = bytearray(rng.getrandbits(8) for _ in range(300))
    vga = bytearray(b'\x07' * 77)

    snapshots = []
    for i in range(count):
        for _ in range(3):
            memory[rng.randrange(len(memory))] = rng.getrandbits(8)
        state = {'cpu': {'eip': 0x7c00 + i * 17, 'flags': [1, 0, i % 2]}, 'ticks': i}
        regions = [bytes(memory), bytes(vga), bytes(b'\x00' * 33)]
        if i % 3 == 2:
            regions.append(bytes([i]) * 5)
        snapshots.append(build_snapshot(regions, state))
    return snapshots


def unpack_records(stream: bytes) -> list:
    """Decode a savestream container into raw frame records."""
    return msgpack.unpackb(stream, raw=False, strict_map_key=False)


def pack_records(records: list) -> bytes:
    """Encode raw frame records back into a savestream container."""
    return msgpack.packb(records, use_bin_type=True)


@pytest.fixture
def make_snapshot():
    """Factory building a snapshot from a list of region byte strings."""
    return build_snapshot


@pytest.fixture
def snapshot_sequence():
    """Five related snapshots."""
    return build_sequence(5)


@pytest.fixture
def small_geometry():
    """Block geometry small enough for superblocks to repeat in tests."""
    return {'block_size': SMALL_BLOCK_SIZE, 'super_block_multiple': SMALL_SUPER_BLOCK_MULTIPLE}


@pytest.fixture
def records():
    """Helpers to unpack and repack raw frame records."""
    return unpack_records, pack_records
