from __future__ import annotations

import base64
import binascii
import io
import wave

import numpy as np

from musescape.errors import DecodeError
from musescape.types import AudioBuffer

# Narration audio arrives as 16-bit PCM, mono, 24 kHz
DEFAULT_SAMPLE_RATE = 24000
DEFAULT_CHANNELS = 1

_INT16_SCALE = 32768.0


def decode_base64_to_bytes(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecodeError(f"Invalid base64 audio payload: {e}") from e


def decode_audio_data(
    data: bytes,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    num_channels: int = DEFAULT_CHANNELS,
) -> AudioBuffer:
    """
    Decode little-endian signed 16-bit PCM into per-channel float32 samples.

    - De-interleaves: out[c][i] = raw[i * num_channels + c] / 32768
    - The divisor is fixed, so -32768 decodes to exactly -1.0
    - Misaligned input raises DecodeError instead of dropping samples
    """
    if num_channels <= 0:
        raise DecodeError(f"Channel count must be positive, got {num_channels}")
    if sample_rate <= 0:
        raise DecodeError(f"Sample rate must be positive, got {sample_rate}")
    if len(data) % 2 != 0:
        raise DecodeError(f"Buffer length {len(data)} is not a whole number of 16-bit samples")

    samples = np.frombuffer(data, dtype="<i2")
    if samples.size % num_channels != 0:
        raise DecodeError(
            f"{samples.size} samples cannot be split evenly into {num_channels} channels"
        )
    frame_count = samples.size // num_channels
    frames = samples.reshape(frame_count, num_channels)
    channels = np.ascontiguousarray(frames.T, dtype=np.float32) / np.float32(_INT16_SCALE)
    return AudioBuffer(sample_rate=sample_rate, channels=channels)


def decode_base64_audio(
    text: str,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    num_channels: int = DEFAULT_CHANNELS,
) -> AudioBuffer:
    return decode_audio_data(decode_base64_to_bytes(text), sample_rate, num_channels)


def encode_wav(buffer: AudioBuffer) -> bytes:
    """Wrap a decoded buffer back into a 16-bit WAV container for the browser."""
    interleaved = np.round(buffer.channels.T * _INT16_SCALE)
    pcm = np.clip(interleaved, -32768, 32767).astype("<i2").tobytes()
    out = io.BytesIO()
    with wave.open(out, "wb") as wf:
        wf.setnchannels(buffer.channel_count)
        wf.setsampwidth(2)
        wf.setframerate(buffer.sample_rate)
        wf.writeframes(pcm)
    return out.getvalue()
