"""
Snapshot files on disk.

Capture tools write one `.bin` file per snapshot into a directory, with the
capture number in the name, e.g. `v86state (12).bin`.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, List

from ..errors import StorageError

_CAPTURE_NUMBER = re.compile(r'\((\d+)\)')
_LAST_NUMBER = re.compile(r'(\d+)(?!.*\d)')


def capture_order_key(path: Path) -> tuple:
    """
    Sort key putting snapshot files in capture order.

    Uses the number in parentheses if present, else the last run of digits,
    else the name alone.
    """
    name = Path(path).name
    match = _CAPTURE_NUMBER.search(name) or _LAST_NUMBER.search(name)
    if match:
        return (0, int(match.group(1)), name)
    return (1, 0, name)


def list_snapshot_files(directory: str | Path, suffix: str = '.bin') -> List[Path]:
    """List snapshot files in a directory, in capture order."""
    directory = Path(directory)
    try:
        files = [p for p in directory.iterdir() if p.is_file() and p.name.endswith(suffix)]
    except OSError as e:
        raise StorageError("list_snapshots", str(directory), e)

    return sorted(files, key=capture_order_key)


def expand_inputs(inputs: Iterable[str | Path]) -> List[Path]:
    """
    Expand a mix of files and directories into snapshot file paths.

    Files keep their given order; each directory contributes its snapshot
    files in capture order.
    """
    paths = []
    for item in inputs:
        item = Path(item)
        if item.is_dir():
            paths.extend(list_snapshot_files(item))
        else:
            paths.append(item)
    return paths


def read_bytes(path: str | Path) -> bytes:
    """Read a whole file."""
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as e:
        raise StorageError("read_file", str(path), e)


def read_snapshots(paths: Iterable[str | Path]) -> Iterator[bytes]:
    """Read snapshot files one at a time, in the given order."""
    for path in paths:
        yield read_bytes(path)


def write_bytes_atomic(path: str | Path, data: bytes) -> None:
    """
    Write a file atomically.

    Uses temp file + rename so readers never see a partial file.
    """
    path = Path(path)
    fd = None
    temp_path = None
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix='.tmp_',
            suffix=path.suffix,
        )

        with os.fdopen(fd, 'wb') as f:
            fd = None
            f.write(data)

        os.replace(temp_path, path)
        temp_path = None

    except OSError as e:
        raise StorageError("write_file", str(path), e)

    finally:
        if fd is not None:
            os.close(fd)
        if temp_path is not None and os.path.exists(temp_path):
            os.unlink(temp_path)
