"""
Test package structure and exports.

Verifies that the package is correctly structured and exposes the right API.
"""

import savestream
from savestream import (
    CodecConfig,
    SavestreamDecoder,
    SavestreamEncoder,
    SavestreamError,
    decode,
    decode_len,
    decode_one,
    encode,
    trim,
)


def test_package_exports():
    """Verify that the package exposes the codec operations."""
    for operation in (encode, decode, decode_len, decode_one, trim):
        assert callable(operation)
    assert SavestreamEncoder is not None
    assert SavestreamDecoder is not None
    assert issubclass(savestream.StreamCorruptedError, SavestreamError)


def test_all_names_resolve():
    """Every name in __all__ is importable from the package."""
    for name in savestream.__all__:
        assert hasattr(savestream, name), name


def test_default_geometry():
    config = CodecConfig()

    assert config.block_size == 256
    assert config.super_block_multiple == 256
    assert config.super_block_size == 65536


def test_subpackage_imports():
    """Verify that subpackages are importable (even if not exposed directly)."""
    import savestream.storage.block_store
    import savestream.storage.files
    import savestream.integrity.canonical
    import savestream.model.frame
    import savestream.cli

    assert savestream.storage.block_store.BlockStore is not None
    assert savestream.integrity.canonical.compact_json is not None
    assert savestream.cli.main is not None
