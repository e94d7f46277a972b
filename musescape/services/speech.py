from __future__ import annotations

from typing import Any, Callable, List, Optional, Union

from openai import OpenAI

from musescape.config import MuseConfig
from musescape.errors import SpeechFailedError
from musescape.services import with_backoff
from musescape.services.audio import decode_base64_audio
from musescape.types import AudioBuffer


NARRATION_PROMPT = "Read this story passage with deep emotion and atmosphere: {text}"


def build_speech_messages(text: str) -> List[dict]:
    return [{"role": "user", "content": NARRATION_PROMPT.format(text=text)}]


def extract_audio_base64_from_response(resp: Union[dict, Any]) -> Optional[str]:
    """Extract base64 PCM from either an OpenAI SDK object or an HTTP JSON dict."""
    if hasattr(resp, "choices"):
        if not resp.choices:
            return None
        audio = getattr(resp.choices[0].message, "audio", None)
        data = getattr(audio, "data", None) if audio is not None else None
        if isinstance(data, str) and data:
            return data
        # Final attempt: convert SDK object to dict and reuse dict path
        if hasattr(resp, "model_dump"):
            return extract_audio_base64_from_response(resp.model_dump())
        return None
    if isinstance(resp, dict):
        choices = resp.get("choices") or []
        if not choices:
            return None
        audio = (choices[0].get("message") or {}).get("audio") or {}
        data = audio.get("data") if isinstance(audio, dict) else None
        return data if isinstance(data, str) and data else None
    return None


def generate_speech(
    client: OpenAI,
    cfg: MuseConfig,
    text: str,
    on_log: Optional[Callable[[str], None]] = None,
) -> str:
    """Return base64-encoded 16-bit PCM narration for ``text``."""
    if not text or not text.strip():
        raise ValueError("Nothing to narrate")
    if on_log:
        on_log(f"Speech: calling {cfg.speech_model} (voice {cfg.speech_voice})…")
    try:
        resp = with_backoff(
            lambda: client.chat.completions.create(
                model=cfg.speech_model,
                messages=build_speech_messages(text),
                modalities=["text", "audio"],
                audio={"voice": cfg.speech_voice, "format": "pcm16"},
                timeout=cfg.request_timeout_sec,
            ),
            retries=cfg.max_retries,
            on_log=on_log,
        )
    except Exception as e:
        raise SpeechFailedError(f"Speech synthesis failed: {e}") from e

    data = extract_audio_base64_from_response(resp)
    if not data:
        raise SpeechFailedError("No audio data returned")
    if on_log:
        on_log(f"Speech: received ~{len(data) * 3 / 4 / 1024:.1f} KB of audio")
    return data


def synthesize_narration(
    client: OpenAI,
    cfg: MuseConfig,
    text: str,
    on_log: Optional[Callable[[str], None]] = None,
) -> AudioBuffer:
    """Fetch speech for ``text`` and decode it into playable samples."""
    b64 = generate_speech(client, cfg, text, on_log=on_log)
    return decode_base64_audio(b64, sample_rate=cfg.speech_sample_rate, num_channels=cfg.speech_channels)
