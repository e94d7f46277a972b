from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from openai import OpenAI

from musescape.config import MuseConfig
from musescape.errors import ChatFailedError
from musescape.services import response_text, with_backoff
from musescape.types import Message


CHAT_SYSTEM_PROMPT = (
    "You are MuseScape, a creative writing assistant. You help the user expand on the world shown in their "
    "image and the story started in the opening paragraph. Be descriptive, encouraging, and maintain the "
    "established mood."
)

FALLBACK_REPLY = "I'm sorry, I couldn't process that request."

# Transcript roles map onto chat-completions roles
_ROLE_MAP = {"user": "user", "model": "assistant"}


def build_chat_messages(
    prior_turns: Sequence[Message],
    new_user_text: str,
    *,
    replay_history: bool = False,
    system_prompt: str = CHAT_SYSTEM_PROMPT,
) -> List[dict]:
    """Assemble the request messages.

    Unless ``replay_history`` is set, ``prior_turns`` are ignored and every
    call starts a fresh conversation with the assistant.
    """
    messages: List[dict] = [{"role": "system", "content": system_prompt}]
    if replay_history:
        for turn in prior_turns:
            role = _ROLE_MAP.get(turn.role)
            if role and turn.text:
                messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": new_user_text})
    return messages


def send_chat_message(
    client: OpenAI,
    cfg: MuseConfig,
    prior_turns: Sequence[Message],
    new_user_text: str,
    on_log: Optional[Callable[[str], None]] = None,
) -> str:
    if not new_user_text or not new_user_text.strip():
        raise ValueError("Chat message is empty")
    messages = build_chat_messages(prior_turns, new_user_text, replay_history=cfg.chat_replay_history)
    if on_log:
        on_log(f"Chat: calling {cfg.chat_model} with {len(messages) - 1} turn(s)…")
    try:
        resp = with_backoff(
            lambda: client.chat.completions.create(
                model=cfg.chat_model,
                messages=messages,
                timeout=cfg.request_timeout_sec,
            ),
            retries=cfg.max_retries,
            on_log=on_log,
        )
    except Exception as e:
        raise ChatFailedError(f"Chat request failed: {e}") from e

    text = response_text(resp).strip()
    if on_log:
        on_log(f"Chat: received {len(text)} characters")
    return text or FALLBACK_REPLY
