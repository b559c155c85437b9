"""
Test codec configuration.
"""

import pytest

from savestream import CodecConfig, InvalidArgumentError


class TestCodecConfig:
    """Test block geometry validation and environment overrides."""

    def test_superblock_size(self):
        assert CodecConfig(16, 4).super_block_size == 64

    def test_validate_returns_self(self):
        config = CodecConfig(8, 2)

        assert config.validate() is config

    @pytest.mark.parametrize('block_size, multiple', [
        (0, 4), (16, 0), (-1, 4), (16, -4), (True, 4), ('16', 4), (16, 4.0),
    ])
    def test_rejects_invalid_sizes(self, block_size, multiple):
        with pytest.raises(InvalidArgumentError):
            CodecConfig(block_size, multiple).validate()

    def test_is_immutable(self):
        config = CodecConfig()

        with pytest.raises(AttributeError):
            config.block_size = 1

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv('SAVESTREAM_BLOCK_SIZE', raising=False)
        monkeypatch.delenv('SAVESTREAM_SUPER_BLOCK_MULTIPLE', raising=False)

        assert CodecConfig.from_env() == CodecConfig(256, 256)

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv('SAVESTREAM_BLOCK_SIZE', '64')
        monkeypatch.setenv('SAVESTREAM_SUPER_BLOCK_MULTIPLE', ' 8 ')

        assert CodecConfig.from_env() == CodecConfig(64, 8)

    def test_from_env_blank_uses_default(self, monkeypatch):
        monkeypatch.setenv('SAVESTREAM_BLOCK_SIZE', '')
        monkeypatch.delenv('SAVESTREAM_SUPER_BLOCK_MULTIPLE', raising=False)

        assert CodecConfig.from_env().block_size == 256

    @pytest.mark.parametrize('value', ['abc', '0', '-16'])
    def test_from_env_invalid(self, monkeypatch, value):
        monkeypatch.setenv('SAVESTREAM_BLOCK_SIZE', value)

        with pytest.raises(InvalidArgumentError):
            CodecConfig.from_env()
