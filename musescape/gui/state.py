from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from musescape.types import ImagePayload, Message


@dataclass(frozen=True)
class StoryState:
    image: Optional[ImagePayload] = None
    analysis: str = ""
    opening: str = ""
    is_generating: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class ChatState:
    messages: Tuple[Message, ...] = ()
    is_typing: bool = False


@dataclass(frozen=True)
class AudioState:
    is_playing: bool = False
    is_loading: bool = False


@dataclass
class AppState:
    # Records are immutable; the coordinator swaps whole records under its lock
    story: StoryState = field(default_factory=StoryState)
    chat: ChatState = field(default_factory=ChatState)
    audio: AudioState = field(default_factory=AudioState)
