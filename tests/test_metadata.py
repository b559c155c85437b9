"""
Test info segment differencing.

Verifies diff and apply are inverse and that broken patches fail loudly.
"""

import pytest

from savestream import PatchApplicationError, apply_info_patch, diff_info
from savestream.metadata import decode_patch, encode_patch


class TestDiff:
    """Test patch generation."""

    def test_unchanged_info_gives_empty_patch(self):
        info = {'buffer_infos': [{'offset': 0, 'length': 4}], 'state': {'a': 1}}

        assert diff_info(info, dict(info)) == []

    def test_first_frame_adds_keys_in_order(self):
        """Diffing against an empty object adds every key, in order."""
        info = {'buffer_infos': [], 'state': {'x': 1}}

        patch = diff_info({}, info)

        assert patch == [
            {'op': 'add', 'path': '/buffer_infos', 'value': []},
            {'op': 'add', 'path': '/state', 'value': {'x': 1}},
        ]

    def test_nested_replace(self):
        prev = {'state': {'cpu': {'eip': 1, 'esp': 2}}}
        curr = {'state': {'cpu': {'eip': 9, 'esp': 2}}}

        assert diff_info(prev, curr) == [
            {'op': 'replace', 'path': '/state/cpu/eip', 'value': 9},
        ]

    def test_array_shrink_removes_from_tail(self):
        """Removed array entries are listed highest index first."""
        patch = diff_info({'a': [1, 2, 3]}, {'a': [1]})

        assert patch == [
            {'op': 'remove', 'path': '/a/2'},
            {'op': 'remove', 'path': '/a/1'},
        ]

    def test_array_growth(self):
        patch = diff_info({'a': [1]}, {'a': [1, {'k': 2}]})

        assert patch == [{'op': 'add', 'path': '/a/1', 'value': {'k': 2}}]

    def test_types_are_distinguished(self):
        """1, 1.0 and true are different JSON values."""
        assert diff_info({'a': 1}, {'a': True}) == [
            {'op': 'replace', 'path': '/a', 'value': True},
        ]
        assert diff_info({'a': 1}, {'a': 1.0}) == [
            {'op': 'replace', 'path': '/a', 'value': 1.0},
        ]

    def test_object_to_array_is_replaced(self):
        assert diff_info({'a': {'0': 1}}, {'a': [1]}) == [
            {'op': 'replace', 'path': '/a', 'value': [1]},
        ]

    def test_pointer_escaping(self):
        """Keys containing / and ~ are escaped in paths."""
        patch = diff_info({}, {'a/b': 1, 'c~d': 2})

        assert [op['path'] for op in patch] == ['/a~1b', '/c~0d']

    def test_reordered_keys_replace_object(self):
        """A change of key order replaces the whole object."""
        patch = diff_info({'a': 1, 'b': 2}, {'b': 2, 'a': 1})

        assert patch == [{'op': 'replace', 'path': '', 'value': {'b': 2, 'a': 1}}]


class TestApply:
    """Test patch application."""

    @pytest.mark.parametrize('prev, curr', [
        ({}, {'buffer_infos': [{'offset': 0, 'length': 8}], 'state': {'ticks': 1}}),
        ({'a': [1, 2, 3], 'b': {'c': None}}, {'a': [3], 'b': {'c': 'x', 'd': [True]}}),
        ({'a': 1, 'b': 2}, {'b': 3, 'a': 1}),
        ({'keep': 1, 'gone': 2}, {'keep': 1, 'new': {'deep': [1, [2, 3]]}}),
        ({'s': 'é'}, {'s': '日本'}),
    ])
    def test_apply_inverts_diff(self, prev, curr):
        """apply(prev, diff(prev, curr)) == curr, key order included."""
        result = apply_info_patch(prev, diff_info(prev, curr))

        assert result == curr
        assert list(result) == list(curr)

    def test_does_not_mutate_previous(self):
        prev = {'a': [1, 2], 'b': {'c': 1}}

        apply_info_patch(prev, [{'op': 'remove', 'path': '/a/0'}])

        assert prev == {'a': [1, 2], 'b': {'c': 1}}

    def test_move_and_copy_operations(self):
        """Operations from other RFC 6902 writers are accepted."""
        patch = [
            {'op': 'move', 'from': '/a', 'path': '/b'},
            {'op': 'copy', 'from': '/b', 'path': '/c'},
        ]

        assert apply_info_patch({'a': 5}, patch) == {'b': 5, 'c': 5}

    def test_replace_missing_path(self):
        """Replacing a path that does not exist fails."""
        with pytest.raises(PatchApplicationError):
            apply_info_patch({'a': 1}, [{'op': 'replace', 'path': '/missing', 'value': 1}])

    def test_remove_missing_path(self):
        with pytest.raises(PatchApplicationError):
            apply_info_patch({'a': [1]}, [{'op': 'remove', 'path': '/a/5'}])

    def test_unknown_operation(self):
        with pytest.raises(PatchApplicationError):
            apply_info_patch({}, [{'op': 'explode', 'path': '/a'}])

    def test_patch_must_be_list_of_objects(self):
        with pytest.raises(PatchApplicationError):
            apply_info_patch({}, {'op': 'add'})
        with pytest.raises(PatchApplicationError):
            apply_info_patch({}, [1, 2])

    def test_error_carries_frame_index(self):
        with pytest.raises(PatchApplicationError) as exc_info:
            apply_info_patch({}, [{'op': 'remove', 'path': '/x'}], frame_index=4)

        assert exc_info.value.frame_index == 4


class TestPatchSerialization:
    """Test the byte form of patches stored in frames."""

    def test_compact_encoding(self):
        blob = encode_patch([{'op': 'add', 'path': '/a', 'value': 'é'}])

        assert blob == '[{"op":"add","path":"/a","value":"é"}]'.encode('utf-8')

    def test_empty_patch(self):
        assert encode_patch([]) == b'[]'
        assert decode_patch(b'[]') == []

    def test_decode_rejects_invalid_json(self):
        with pytest.raises(PatchApplicationError):
            decode_patch(b'[{"op":')

    @pytest.mark.parametrize('blob', [
        b'[{"op":"add","path":"/a","value":NaN}]',
        b'[{"op":"add","path":"/a","value":1e999}]',
    ])
    def test_decode_rejects_non_finite_numbers(self, blob):
        with pytest.raises(PatchApplicationError):
            decode_patch(blob)

    def test_lone_surrogate_is_escaped(self):
        """A lone surrogate is written as an escape, not as invalid UTF-8."""
        blob = encode_patch([{'op': 'add', 'path': '/s', 'value': '\ud800'}])

        assert blob == b'[{"op":"add","path":"/s","value":"\\ud800"}]'
        assert decode_patch(blob)[0]['value'] == '\ud800'

    def test_decode_rejects_non_list(self):
        with pytest.raises(PatchApplicationError):
            decode_patch(b'{"op":"add"}')
