from __future__ import annotations

import base64
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str

    @property
    def data_url(self) -> str:
        b64 = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{b64}"


@dataclass(frozen=True)
class StoryResult:
    analysis: str
    opening: str


@dataclass(frozen=True)
class Message:
    role: str  # "user" | "model"
    text: str


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """Decoded PCM audio, shaped (channel_count, frame_count), float32."""

    sample_rate: int
    channels: np.ndarray

    @property
    def channel_count(self) -> int:
        return int(self.channels.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration_sec(self) -> float:
        return self.frame_count / float(self.sample_rate)

    def get_channel_data(self, channel: int) -> np.ndarray:
        return self.channels[channel]
