"""
Incremental info segment differencing.

Each frame stores its info segment as a JSON Patch (RFC 6902) against the
previous frame's info. Patches are applied with jsonpatch; the diff is
built here so that key order survives the round trip.
"""

from typing import Any, List

import jsonpatch
import jsonpointer
from jsonpointer import JsonPointer

from .errors import PatchApplicationError
from .integrity.canonical import compact_json, load_json


def _pointer(parts: List) -> str:
    return JsonPointer.from_parts(parts).path


def _same_value(old: Any, new: Any) -> bool:
    # bool is an int subclass and 1 == 1.0; JSON keeps them apart
    return type(old) is type(new) and old == new


def _keeps_key_order(old: dict, new: dict) -> bool:
    """True if retained keys followed by added keys reproduce new's order."""
    merged = [key for key in old if key in new]
    merged += [key for key in new if key not in old]
    return merged == list(new)


def _compare(old: Any, new: Any, parts: List, ops: List[dict]) -> None:
    if isinstance(old, dict) and isinstance(new, dict):
        if not _keeps_key_order(old, new):
            ops.append({'op': 'replace', 'path': _pointer(parts), 'value': new})
            return

        for key in old:
            if key in new:
                _compare(old[key], new[key], parts + [key], ops)
            else:
                ops.append({'op': 'remove', 'path': _pointer(parts + [key])})

        for key in new:
            if key not in old:
                ops.append({'op': 'add', 'path': _pointer(parts + [key]), 'value': new[key]})

    elif isinstance(old, list) and isinstance(new, list):
        shared = min(len(old), len(new))
        for i in range(shared):
            _compare(old[i], new[i], parts + [i], ops)

        # remove from the tail so earlier indices stay valid
        for i in range(len(old) - 1, shared - 1, -1):
            ops.append({'op': 'remove', 'path': _pointer(parts + [i])})

        for i in range(shared, len(new)):
            ops.append({'op': 'add', 'path': _pointer(parts + [i]), 'value': new[i]})

    elif not _same_value(old, new):
        ops.append({'op': 'replace', 'path': _pointer(parts), 'value': new})


def diff_info(prev_info: Any, curr_info: Any) -> List[dict]:
    """
    Compute the patch operations turning prev_info into curr_info.

    Operations are add, remove and replace at JSON pointer paths. An
    unchanged document yields an empty list.
    """
    ops: List[dict] = []
    _compare(prev_info, curr_info, [], ops)
    return ops


def apply_info_patch(prev_info: Any, patch: List[dict], frame_index: int = None) -> Any:
    """
    Apply patch operations to prev_info and return the new document.

    prev_info is never modified.
    Raises PatchApplicationError if an operation is invalid or its path
    does not resolve.
    """
    if not isinstance(patch, list) or not all(isinstance(op, dict) for op in patch):
        raise PatchApplicationError("patch must be a list of operation objects", frame_index)

    try:
        return jsonpatch.apply_patch(prev_info, patch, in_place=False)
    except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException) as e:
        raise PatchApplicationError(str(e), frame_index) from e


def encode_patch(patch: List[dict]) -> bytes:
    """Serialize patch operations as compact UTF-8 JSON."""
    return compact_json(patch)


def decode_patch(blob: bytes, frame_index: int = None) -> List[dict]:
    """
    Parse a serialized patch.

    Raises PatchApplicationError if the blob is not a JSON list.
    """
    try:
        patch = load_json(blob)
    except ValueError as e:
        raise PatchApplicationError(f"patch is not valid JSON: {e}", frame_index) from e

    if not isinstance(patch, list):
        raise PatchApplicationError("patch must be a JSON list", frame_index)
    return patch
