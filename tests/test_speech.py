from __future__ import annotations

import base64

import pytest

from conftest import FakeClient, completion
from musescape.errors import DecodeError, SpeechFailedError
from musescape.services.speech import extract_audio_base64_from_response, generate_speech, synthesize_narration

PCM_B64 = base64.b64encode(bytes([0x00, 0x40, 0x00, 0xC0])).decode("ascii")


def test_extract_from_sdk_object_and_dict():
    assert extract_audio_base64_from_response(completion("", audio_data=PCM_B64)) == PCM_B64
    as_dict = {"choices": [{"message": {"audio": {"data": PCM_B64}}}]}
    assert extract_audio_base64_from_response(as_dict) == PCM_B64
    assert extract_audio_base64_from_response({"choices": []}) is None
    assert extract_audio_base64_from_response(completion("no audio")) is None


def test_generate_speech_requests_pcm(cfg):
    client = FakeClient(lambda **_: completion("", audio_data=PCM_B64))
    assert generate_speech(client, cfg, "It was dark.") == PCM_B64
    call = client.calls[0]
    assert call["modalities"] == ["text", "audio"]
    assert call["audio"] == {"voice": "alloy", "format": "pcm16"}
    assert call["messages"][0]["content"].endswith("atmosphere: It was dark.")


def test_generate_speech_without_audio(cfg):
    client = FakeClient(lambda **_: completion("I cannot speak"))
    with pytest.raises(SpeechFailedError):
        generate_speech(client, cfg, "It was dark.")


def test_generate_speech_backend_failure(cfg):
    def boom(**_):
        raise ConnectionError("down")

    with pytest.raises(SpeechFailedError):
        generate_speech(FakeClient(boom), cfg, "It was dark.")


def test_synthesize_narration_decodes(cfg):
    client = FakeClient(lambda **_: completion("", audio_data=PCM_B64))
    buf = synthesize_narration(client, cfg, "It was dark.")
    assert buf.sample_rate == 24000
    assert buf.get_channel_data(0).tolist() == [0.5, -0.5]


def test_synthesize_narration_misaligned_audio(cfg):
    odd = base64.b64encode(b"\x00\x40\x00").decode("ascii")
    client = FakeClient(lambda **_: completion("", audio_data=odd))
    with pytest.raises(DecodeError):
        synthesize_narration(client, cfg, "It was dark.")
