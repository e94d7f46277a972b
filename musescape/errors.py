from __future__ import annotations


class MuseScapeError(Exception):
    pass


class DecodeError(MuseScapeError):
    """Raw audio buffer could not be interpreted as 16-bit PCM."""


class GenerationFailedError(MuseScapeError):
    """Story backend call failed."""


class MalformedResponseError(GenerationFailedError):
    """Backend answered, but the structured payload is incomplete."""


class ChatFailedError(MuseScapeError):
    pass


class SpeechFailedError(MuseScapeError):
    pass


class PlaybackError(MuseScapeError):
    """Audio output could not be started."""
