"""Unit tests for stream format negotiation."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from wavrec.audio.device import CHANNEL_IN_MONO, CHANNEL_IN_STEREO, SampleEncoding
from wavrec.audio.mock_device import MockAudioDevice
from wavrec.config import AudioConfig
from wavrec.recorder.errors import DeviceRejectedParameters, UnsupportedParameter
from wavrec.recorder.negotiator import ConfigNegotiator, channel_layout_for, read_chunk_size


class TestChannelLayout:
    """Tests for channel_layout_for."""

    def test_mono_uses_canonical_token(self) -> None:
        """Test mono layout token."""
        assert channel_layout_for(1) == CHANNEL_IN_MONO

    def test_stereo_uses_canonical_token(self) -> None:
        """Test stereo layout token."""
        assert channel_layout_for(2) == CHANNEL_IN_STEREO

    @pytest.mark.parametrize("channels", range(3, 17))
    def test_multichannel_bitmask(self, channels: int) -> None:
        """Test that 3-16 channels map to a mask with one bit per channel."""
        assert channel_layout_for(channels) == 2**channels - 1

    @pytest.mark.parametrize("channels", [0, -2, 17, 64])
    def test_out_of_range_rejected(self, channels: int) -> None:
        """Test that unsupported channel counts raise."""
        with pytest.raises(UnsupportedParameter, match="channel count"):
            channel_layout_for(channels)


class TestReadChunkSize:
    """Tests for read_chunk_size."""

    @pytest.mark.parametrize(
        ("channels", "expected"),
        [(1, 4096), (2, 4096), (6, 4096), (8, 6144), (11, 6144), (12, 8192), (16, 8192)],
    )
    def test_channel_table(self, channels: int, expected: int) -> None:
        """Test chunk size by channel count with 32-bit frames and a large buffer."""
        block_align = channels * 4
        chunk = read_chunk_size(channels, block_align, 1 << 20)
        assert chunk == expected - expected % block_align

    def test_never_exceeds_device_buffer(self) -> None:
        """Test that the chunk is capped at the device buffer."""
        assert read_chunk_size(2, 4, 960) == 960

    def test_rounds_down_to_whole_frames(self) -> None:
        """Test alignment for a 3-channel 24-bit frame (9 bytes)."""
        chunk = read_chunk_size(3, 9, 1 << 20)
        assert chunk == 4095
        assert chunk % 9 == 0

    def test_at_least_one_frame(self) -> None:
        """Test that a tiny buffer still yields one frame."""
        assert read_chunk_size(16, 64, 10) == 64


class TestConfigNegotiator:
    """Tests for ConfigNegotiator."""

    @pytest.fixture
    def device(self) -> MockAudioDevice:
        """Create mock device."""
        return MockAudioDevice()

    def test_default_config(self, device: MockAudioDevice) -> None:
        """Test negotiation of 48kHz stereo 16-bit."""
        result = ConfigNegotiator(device).negotiate(AudioConfig())

        # 20ms at 48kHz = 960 frames of 4 bytes
        assert result.min_device_buffer_bytes == 3840
        assert result.effective_buffer_bytes == 3840 * 4
        assert result.channel_layout == CHANNEL_IN_STEREO
        assert result.encoding is SampleEncoding.PCM_16BIT
        assert result.read_chunk_bytes == 4096

    def test_floor_applies_to_small_buffers(self, device: MockAudioDevice) -> None:
        """Test that the configured floor wins over a small device minimum."""
        device.min_buffer_size = 100
        config = AudioConfig(buffer_multiplier=2, min_buffer_size=960)

        result = ConfigNegotiator(device).negotiate(config)

        assert result.effective_buffer_bytes == 960
        assert result.read_chunk_bytes == 960

    def test_multiplier_scales_minimum(self, device: MockAudioDevice) -> None:
        """Test effective buffer = minimum * multiplier."""
        device.min_buffer_size = 2000
        config = AudioConfig(buffer_multiplier=3)

        result = ConfigNegotiator(device).negotiate(config)

        assert result.effective_buffer_bytes == 6000

    @pytest.mark.parametrize("rate", [8000, 44100, 192000])
    def test_sample_rate_bounds_accepted(self, device: MockAudioDevice, rate: int) -> None:
        """Test that the inclusive sample rate range is accepted."""
        ConfigNegotiator(device).negotiate(AudioConfig(sample_rate=rate))

    @pytest.mark.parametrize("rate", [0, 7999, 192001])
    def test_sample_rate_out_of_range(self, device: MockAudioDevice, rate: int) -> None:
        """Test that out-of-range sample rates raise."""
        with pytest.raises(UnsupportedParameter, match="sample rate"):
            ConfigNegotiator(device).negotiate(AudioConfig(sample_rate=rate))

    @pytest.mark.parametrize("bits", [0, 12, 20, 64])
    def test_bit_depth_rejected(self, device: MockAudioDevice, bits: int) -> None:
        """Test that unsupported bit depths raise."""
        with pytest.raises(UnsupportedParameter, match="bit depth"):
            ConfigNegotiator(device).negotiate(AudioConfig(bit_depth=bits))

    def test_channel_count_rejected(self, device: MockAudioDevice) -> None:
        """Test that 17 channels raise."""
        with pytest.raises(UnsupportedParameter, match="channel count"):
            ConfigNegotiator(device).negotiate(AudioConfig(channel_count=17))

    def test_zero_multiplier_rejected(self, device: MockAudioDevice) -> None:
        """Test that a non-positive multiplier raises."""
        with pytest.raises(UnsupportedParameter, match="multiplier"):
            ConfigNegotiator(device).negotiate(AudioConfig(buffer_multiplier=0))

    def test_invalid_config_never_queries_device(self) -> None:
        """Test that validation happens before the device is touched."""
        device = MagicMock()

        with pytest.raises(UnsupportedParameter):
            ConfigNegotiator(device).negotiate(AudioConfig(channel_count=17))

        device.query_min_buffer_size.assert_not_called()

    @pytest.mark.parametrize("reported", [0, -1, -2])
    def test_device_rejection(self, device: MockAudioDevice, reported: int) -> None:
        """Test that a non-positive minimum buffer raises."""
        device.min_buffer_size = reported

        with pytest.raises(DeviceRejectedParameters):
            ConfigNegotiator(device).negotiate(AudioConfig())

    def test_query_receives_layout_and_encoding(self) -> None:
        """Test the arguments passed to the device query."""
        device = MagicMock()
        device.query_min_buffer_size.return_value = 4096
        config = dataclasses.replace(AudioConfig(), channel_count=4, bit_depth=24, sample_rate=96000)

        ConfigNegotiator(device).negotiate(config)

        device.query_min_buffer_size.assert_called_once_with(96000, 0b1111, SampleEncoding.PCM_24BIT_PACKED, 4)
