from __future__ import annotations

from types import SimpleNamespace
from typing import Callable, List

import pytest

from musescape.config import MuseConfig


def make_config(**overrides) -> MuseConfig:
    values = dict(
        openrouter_api_key="test-key",
        base_url="https://openrouter.invalid/api/v1",
        story_model="story-model",
        chat_model="chat-model",
        speech_model="speech-model",
        speech_voice="alloy",
        speech_sample_rate=24000,
        speech_channels=1,
        request_timeout_sec=5,
        max_retries=0,
        max_image_width=1536,
        chat_replay_history=False,
    )
    values.update(overrides)
    return MuseConfig(**values)


def completion(content: str = "", audio_data: str | None = None) -> SimpleNamespace:
    audio = SimpleNamespace(data=audio_data) if audio_data is not None else None
    message = SimpleNamespace(content=content, audio=audio)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    """OpenAI-shaped client recording every chat.completions.create call."""

    def __init__(self, handler: Callable[..., object]) -> None:
        self.calls: List[dict] = []

        def create(**kwargs):
            self.calls.append(kwargs)
            return handler(**kwargs)

        self.chat = SimpleNamespace(completions=SimpleNamespace(create=create))


@pytest.fixture
def cfg() -> MuseConfig:
    return make_config()
