"""
speech.py — Uni-GPT Voice Assistant · Speech Capability Contracts
=================================================================
The controller never touches a platform speech API directly.  It is handed
a recognizer and a synthesizer that satisfy the protocols below, and those
adapters report back through the controller's event methods:

  SpeechRecognizer.start()  → on_recognition_start / _result / _error / _end
  SpeechSynthesizer.speak() → on_synthesis_start / _end / _error

Both capabilities are single-flight: a new start()/speak() supersedes
whatever the previous call left running.

The error types shared by the controller side live here too, so nothing
that runs beside the speech adapters needs the provider SDK installed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Protocol, Sequence

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    role:    Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Voice:
    name: str
    lang: str


@dataclass(frozen=True)
class Utterance:
    """Everything a synthesizer needs to voice one reply."""
    text:   str
    voice:  Optional[Voice] = None
    rate:   float = 1.0
    pitch:  float = 1.0
    volume: float = 1.0


class RecognitionError(Exception):
    """Raised by a recognizer when a session cannot be started."""


class RelayError(Exception):
    """Base for every failure the relay reports to its caller."""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SpeechRecognizer(Protocol):
    """Single-shot recognizer: at most one transcript per start()."""

    locale: str

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


class SpeechSynthesizer(Protocol):

    def voices(self) -> Sequence[Voice]:
        ...

    def speak(self, utterance: Utterance) -> None:
        ...

    def cancel(self) -> None:
        """Stop any utterance in progress.  Fire-and-forget."""
        ...


def select_voice(voices: Sequence[Voice], locale: str, preferred: str = "Google") -> Optional[Voice]:
    """Pick the preferred voice for *locale*, else the first one offered."""
    for voice in voices:
        if preferred in voice.name and voice.lang == locale:
            return voice
    return voices[0] if voices else None
