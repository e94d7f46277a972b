import os
from dataclasses import dataclass
from typing import Optional, Dict

from openai import OpenAI

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _get_env(key: str, default: str = "") -> str:
    return str(os.getenv(key, default))


def _get_flag(key: str, default: bool = False) -> bool:
    raw = _get_env(key, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MuseConfig:
    openrouter_api_key: str
    base_url: str
    story_model: str
    chat_model: str
    speech_model: str
    speech_voice: str
    speech_sample_rate: int
    speech_channels: int
    request_timeout_sec: int
    max_retries: int
    max_image_width: int
    # Off by default: every chat call starts a fresh context
    chat_replay_history: bool = False


def load_config() -> MuseConfig:
    api_key = _get_env("OPENROUTER_API_KEY", "")
    timeout_sec = int(_get_env("MUSESCAPE_REQUEST_TIMEOUT_SEC") or _get_env("REQUEST_TIMEOUT_SECONDS", "60"))

    return MuseConfig(
        openrouter_api_key=api_key,
        base_url=_get_env("MUSESCAPE_BASE_URL", OPENROUTER_BASE_URL),
        story_model=_get_env("MUSESCAPE_STORY_MODEL", "google/gemini-2.5-pro"),
        chat_model=_get_env("MUSESCAPE_CHAT_MODEL", "google/gemini-2.5-pro"),
        speech_model=_get_env("MUSESCAPE_SPEECH_MODEL", "openai/gpt-4o-audio-preview"),
        speech_voice=_get_env("MUSESCAPE_SPEECH_VOICE", "alloy"),
        speech_sample_rate=int(_get_env("MUSESCAPE_SPEECH_SAMPLE_RATE", "24000")),
        speech_channels=int(_get_env("MUSESCAPE_SPEECH_CHANNELS", "1")),
        request_timeout_sec=timeout_sec,
        max_retries=int(_get_env("MUSESCAPE_MAX_RETRIES", "0")),
        max_image_width=int(_get_env("MUSESCAPE_MAX_IMAGE_WIDTH", "1536")),
        chat_replay_history=_get_flag("MUSESCAPE_CHAT_REPLAY_HISTORY"),
    )


def attribution_headers() -> Dict[str, str]:
    # OpenRouter recommends sending HTTP-Referer and X-Title
    return {
        "HTTP-Referer": _get_env("MUSESCAPE_HTTP_REFERER", "http://localhost"),
        "X-Title": _get_env("MUSESCAPE_APP_TITLE", "MuseScape"),
    }


def create_openrouter_client(cfg: Optional[MuseConfig] = None, api_key: Optional[str] = None) -> OpenAI:
    cfg = cfg or load_config()
    key = api_key or cfg.openrouter_api_key
    # Retries are owned by with_backoff so the SDK must not add its own
    client = OpenAI(
        api_key=key,
        base_url=cfg.base_url,
        default_headers=attribution_headers(),
        max_retries=0,
    )
    return client
