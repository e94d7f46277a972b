from __future__ import annotations

import base64
import io
import struct
import wave

import numpy as np
import pytest

from musescape.errors import DecodeError
from musescape.services.audio import (
    decode_audio_data,
    decode_base64_audio,
    decode_base64_to_bytes,
    encode_wav,
)


def _pcm(*samples: int) -> bytes:
    return struct.pack(f"<{len(samples)}h", *samples)


def test_decode_mono_half_scale():
    buf = decode_audio_data(bytes([0x00, 0x40, 0x00, 0xC0]), num_channels=1)
    assert buf.channel_count == 1
    assert buf.frame_count == 2
    assert buf.get_channel_data(0).tolist() == [0.5, -0.5]
    assert buf.sample_rate == 24000


def test_decode_extremes_use_fixed_divisor():
    buf = decode_audio_data(_pcm(-32768, 32767, 0))
    data = buf.get_channel_data(0)
    assert data[0] == -1.0
    assert data[1] == np.float32(32767 / 32768)
    assert data[2] == 0.0


def test_decode_deinterleaves_stereo():
    buf = decode_audio_data(_pcm(16384, -16384, 8192, -8192, 0, 32767), sample_rate=48000, num_channels=2)
    assert buf.channel_count == 2
    assert buf.frame_count == 3
    assert buf.get_channel_data(0).tolist() == [0.5, 0.25, 0.0]
    assert buf.get_channel_data(1).tolist() == [-0.5, -0.25, 32767 / 32768]
    assert buf.duration_sec == pytest.approx(3 / 48000)


def test_decode_frame_count_and_range():
    rng = np.random.default_rng(7)
    raw = rng.integers(-32768, 32768, size=600, dtype=np.int16).astype("<i2").tobytes()
    for channels in (1, 2, 3, 4, 5, 6):
        buf = decode_audio_data(raw, num_channels=channels)
        assert buf.channels.shape == (channels, len(raw) // (2 * channels))
        assert buf.channels.dtype == np.float32
        assert buf.channels.min() >= -1.0
        assert buf.channels.max() <= 32767 / 32768


def test_decode_is_deterministic():
    raw = _pcm(*range(-500, 500, 7))
    a = decode_audio_data(raw)
    b = decode_audio_data(raw)
    assert a.channels.tobytes() == b.channels.tobytes()


def test_decode_empty_buffer():
    buf = decode_audio_data(b"")
    assert buf.frame_count == 0
    assert buf.duration_sec == 0.0


@pytest.mark.parametrize("channels", [0, -1])
def test_decode_rejects_bad_channel_count(channels):
    with pytest.raises(DecodeError):
        decode_audio_data(_pcm(1, 2), num_channels=channels)


def test_decode_rejects_odd_length():
    with pytest.raises(DecodeError):
        decode_audio_data(b"\x00\x40\x00")


def test_decode_rejects_samples_not_divisible_by_channels():
    with pytest.raises(DecodeError):
        decode_audio_data(_pcm(1, 2, 3), num_channels=2)


def test_decode_rejects_bad_sample_rate():
    with pytest.raises(DecodeError):
        decode_audio_data(_pcm(1), sample_rate=0)


def test_base64_helpers():
    text = base64.b64encode(bytes([0x00, 0x40, 0x00, 0xC0])).decode("ascii")
    assert decode_base64_to_bytes(text) == bytes([0x00, 0x40, 0x00, 0xC0])
    assert decode_base64_audio(text).get_channel_data(0).tolist() == [0.5, -0.5]
    with pytest.raises(DecodeError):
        decode_base64_to_bytes("not base64!!")


def test_encode_wav_restores_pcm():
    raw = _pcm(16384, -16384, -32768, 32767)
    buf = decode_audio_data(raw, num_channels=2)
    with wave.open(io.BytesIO(encode_wav(buf)), "rb") as wf:
        assert wf.getnchannels() == 2
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 24000
        assert wf.readframes(wf.getnframes()) == raw
