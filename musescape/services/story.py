from __future__ import annotations

import json
from typing import Callable, List, Optional

from openai import OpenAI

from musescape.config import MuseConfig
from musescape.errors import GenerationFailedError, MalformedResponseError
from musescape.services import response_text, with_backoff
from musescape.services.storage import validate_image_payload
from musescape.types import ImagePayload, StoryResult


STORY_PROMPT = (
    "Analyze this image in detail. Identify the mood, lighting, key subjects, and setting.\n"
    "Then, write an evocative, atmospheric opening paragraph (approx 100-150 words) for a story set in this exact scene.\n"
    "The tone should match the visual style.\n\n"
    "Return the response as a JSON object with two fields:\n"
    "\"analysis\": A brief summary of the scene's mood and elements.\n"
    "\"opening\": The creative writing piece."
)

STORY_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "story_opening",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "analysis": {"type": "string"},
                "opening": {"type": "string"},
            },
            "required": ["analysis", "opening"],
            "additionalProperties": False,
        },
    },
}


def build_story_messages(image: ImagePayload, instructions: str = STORY_PROMPT) -> List[dict]:
    content = [
        {"type": "image_url", "image_url": {"url": image.data_url}},
        {"type": "text", "text": instructions},
    ]
    return [{"role": "user", "content": content}]


def parse_story_output(text: str) -> StoryResult:
    """
    Parse the structured story reply.

    Surrounding prose or code fences are tolerated; the outermost JSON object
    must carry string fields "analysis" and "opening".
    """
    text = (text or "").strip()
    start = text.find("{")
    end = text.rfind("}") + 1
    json_text = text[start:end] if start >= 0 and end > start else text
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Story reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("Story reply is not a JSON object")

    missing = [k for k in ("analysis", "opening") if not isinstance(data.get(k), str)]
    if missing:
        raise MalformedResponseError(f"Story reply missing field(s): {', '.join(missing)}")
    return StoryResult(analysis=data["analysis"], opening=data["opening"])


def generate_story(
    client: OpenAI,
    cfg: MuseConfig,
    image: ImagePayload,
    on_log: Optional[Callable[[str], None]] = None,
) -> StoryResult:
    validate_image_payload(image)
    messages = build_story_messages(image)
    if on_log:
        on_log(f"Story: payload size ~{len(image.data)/1024:.1f} KB ({image.mime_type})")
        on_log(f"Story: calling {cfg.story_model} (timeout {cfg.request_timeout_sec}s)…")
    try:
        resp = with_backoff(
            lambda: client.chat.completions.create(
                model=cfg.story_model,
                messages=messages,
                response_format=STORY_RESPONSE_FORMAT,
                timeout=cfg.request_timeout_sec,
            ),
            retries=cfg.max_retries,
            on_log=on_log,
        )
    except Exception as e:
        raise GenerationFailedError(f"Story generation failed: {e}") from e

    text = response_text(resp)
    if on_log:
        on_log(f"Story: received {len(text)} characters")
    return parse_story_output(text)
