"""
controller.py — Uni-GPT Voice Assistant · Conversation Controller
=================================================================
Client-side orchestrator for one conversation.  Owns the rolling history,
the displayed transcript, and the turn-taking state machine:

    IDLE ──start_listening()──────────────▶ LISTENING
    LISTENING ──on_recognition_result()───▶ THINKING
    LISTENING ──end / stop / error────────▶ IDLE
    THINKING ──relay reply (or apology)───▶ SPEAKING
    SPEAKING ──on_synthesis_end()─────────▶ IDLE  (continuous: ▶ LISTENING after delay)
    SPEAKING ──on_synthesis_error()───────▶ IDLE
    any ──reset()─────────────────────────▶ IDLE

Speech capabilities are injected (see speech.py) and report back through the
on_* event methods.  Everything runs on one asyncio loop; the relay call is
the only await, and while it is outstanding the controller sits in THINKING
with recognition and synthesis quiescent.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from config import AssistantConfig
from speech import (
    Message,
    RecognitionError,
    RelayError,
    SpeechRecognizer,
    SpeechSynthesizer,
    Utterance,
    select_voice,
)

log = logging.getLogger("unigpt.controller")

STATUS_IDLE      = "Click to start"
STATUS_LISTENING = "Listening..."
STATUS_THINKING  = "Thinking..."
STATUS_SPEAKING  = "Speaking..."

ERROR_REPLY_PREFIX = "Sorry, I encountered an error: "


class TurnState(Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    THINKING = "THINKING"
    SPEAKING = "SPEAKING"
    ERROR = "ERROR"


class RelayClient(Protocol):

    async def complete(self, messages: Sequence[Message], temperature: float) -> str:
        ...


StateListener = Callable[[TurnState, TurnState], None]


class ConversationController:

    def __init__(
        self,
        *,
        relay: RelayClient,
        recognizer: Optional[SpeechRecognizer] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        config: Optional[AssistantConfig] = None,
        on_state_change: Optional[StateListener] = None,
    ):
        config = config or AssistantConfig()
        self._relay = relay
        self._recognizer = recognizer
        self._synthesizer = synthesizer
        self._speech = config.speech
        self._history_window = config.controller.history_window
        self._relisten_delay = config.controller.relisten_delay_sec
        self._temperature = config.controller.temperature
        self._system_message = Message("system", config.system_prompt)  # injected per call, never stored
        self._on_state_change = on_state_change

        self.continuous: bool = config.controller.continuous
        self.state = TurnState.IDLE
        self.status = STATUS_IDLE

        # history feeds the relay; transcript is what the user sees
        self.history: list[Message] = []
        self.transcript: list[Message] = []
        self.voice = None

        # Bumped on reset so a late relay reply can tell it is stale
        self._epoch: int = 0
        self._turn_task: Optional[asyncio.Task] = None
        self._relisten_task: Optional[asyncio.Task] = None

        self.on_voices_changed()

    # -----------------------------------------------------------------------
    # State bookkeeping
    # -----------------------------------------------------------------------

    def _set_state(self, new_state: TurnState, status: Optional[str] = None) -> None:
        prev = self.state
        self.state = new_state
        if status is not None:
            self.status = status
        if prev is new_state:
            return
        log.info("event=state_change from=%s to=%s status=%r", prev.value, new_state.value, self.status)
        if self._on_state_change is not None:
            self._on_state_change(prev, new_state)

    def _fail(self, status: str) -> None:
        """Surface a transient error and settle back in IDLE."""
        self._set_state(TurnState.ERROR, status)
        self._set_state(TurnState.IDLE)

    # -----------------------------------------------------------------------
    # User controls
    # -----------------------------------------------------------------------

    def start_listening(self) -> None:
        if self._recognizer is None:
            log.warning("event=listen_unavailable reason=no_recognizer")
            return
        if self.state in (TurnState.LISTENING, TurnState.THINKING):
            log.debug("event=listen_ignored state=%s", self.state.value)
            return

        # Barge-in: listening always preempts speaking
        if self._synthesizer is not None:
            if self.state is TurnState.SPEAKING:
                log.info("event=barge_in")
            self._synthesizer.cancel()
        self._cancel_relisten()

        try:
            self._recognizer.start()
        except RecognitionError as exc:
            log.error("event=recognition_start_failed error=%s", exc)
            self._fail(f"Error: {exc}")
            return
        self._set_state(TurnState.LISTENING, STATUS_LISTENING)

    def stop_listening(self) -> None:
        if self.state is not TurnState.LISTENING:
            return
        if self._recognizer is not None:
            self._recognizer.stop()
        self._set_state(TurnState.IDLE, STATUS_IDLE)

    def toggle_listening(self) -> None:
        if self.state is TurnState.LISTENING:
            self.stop_listening()
        else:
            self.start_listening()

    def set_continuous(self, enabled: bool) -> None:
        self.continuous = enabled
        if not enabled:
            self._cancel_relisten()
        log.info("event=continuous_mode enabled=%s", enabled)

    def reset(self) -> None:
        """Drop the whole conversation and return to IDLE from any state."""
        self._epoch += 1
        self._cancel_relisten()
        if self.state is TurnState.LISTENING and self._recognizer is not None:
            self._recognizer.stop()
        if self.state is TurnState.SPEAKING and self._synthesizer is not None:
            self._synthesizer.cancel()
        self.history.clear()
        self.transcript.clear()
        self._set_state(TurnState.IDLE, STATUS_IDLE)
        log.info("event=conversation_reset epoch=%d", self._epoch)

    # -----------------------------------------------------------------------
    # Recognition events
    # -----------------------------------------------------------------------

    def on_recognition_start(self) -> None:
        if self.state is TurnState.LISTENING:
            self.status = STATUS_LISTENING

    def on_recognition_result(self, transcript: str) -> Optional[asyncio.Task]:
        """Commit a recognized utterance; the relay round-trip runs as a task."""
        text = (transcript or "").strip()
        if not text:
            log.info("event=empty_transcript")
            return None
        turn = self._begin_turn(text)
        if turn is None:
            return None
        self._turn_task = asyncio.create_task(self._finish_turn(*turn), name="unigpt_turn")
        return self._turn_task

    def on_recognition_error(self, error: str) -> None:
        log.error("event=recognition_error error=%s state=%s", error, self.state.value)
        if self.state is not TurnState.LISTENING:
            return
        self._fail(f"Error: {error}")

    def on_recognition_end(self) -> None:
        if self.state is TurnState.LISTENING:
            log.info("event=recognition_ended_without_result")
            self._set_state(TurnState.IDLE, STATUS_IDLE)

    # -----------------------------------------------------------------------
    # Turn handling
    # -----------------------------------------------------------------------

    async def handle_user_input(self, text: str) -> Optional[str]:
        """Run one full turn for *text* and return the reply that was spoken."""
        text = (text or "").strip()
        if not text:
            return None
        turn = self._begin_turn(text)
        if turn is None:
            return None
        return await self._finish_turn(*turn)

    def build_messages(self, user_message: Message) -> list[Message]:
        """System prompt + trailing history window + the new user turn."""
        recent = self.history[-self._history_window:] if self._history_window > 0 else []
        return [self._system_message, *recent, user_message]

    def _begin_turn(self, text: str) -> Optional[tuple[Message, list[Message], int]]:
        if self.state is TurnState.THINKING:
            log.warning("event=turn_rejected reason=relay_in_flight")
            return None
        if self.state is TurnState.SPEAKING and self._synthesizer is not None:
            self._synthesizer.cancel()
        self._cancel_relisten()

        user_message = Message("user", text)
        self.transcript.append(user_message)
        messages = self.build_messages(user_message)
        self._set_state(TurnState.THINKING, STATUS_THINKING)
        log.info(
            "event=turn_committed transcript_len=%d context_messages=%d history_len=%d",
            len(text), len(messages), len(self.history),
        )
        return user_message, messages, self._epoch

    async def _finish_turn(self, user_message: Message, messages: list[Message], epoch: int) -> Optional[str]:
        try:
            reply = await self._relay.complete(messages, self._temperature)
        except RelayError as exc:
            log.error("event=relay_failed error=%s", exc)
            reply = ERROR_REPLY_PREFIX + exc.message

        if epoch != self._epoch:
            log.info("event=reply_discarded reason=conversation_reset")
            return None

        assistant_message = Message("assistant", reply)
        self.history.extend((user_message, assistant_message))
        self.transcript.append(assistant_message)
        log.debug("event=history_updated history_len=%d", len(self.history))
        self.speak(reply)
        return reply

    # -----------------------------------------------------------------------
    # Synthesis
    # -----------------------------------------------------------------------

    def speak(self, text: str) -> None:
        if self._synthesizer is None:
            log.warning("event=speak_unavailable reason=no_synthesizer")
            self._set_state(TurnState.SPEAKING, STATUS_SPEAKING)
            self.on_synthesis_end()
            return

        self._synthesizer.cancel()
        utterance = Utterance(
            text=text,
            voice=self.voice,
            rate=self._speech.rate,
            pitch=self._speech.pitch,
            volume=self._speech.volume,
        )
        # Enter SPEAKING first: an adapter may report start/end from inside speak()
        self._set_state(TurnState.SPEAKING, STATUS_SPEAKING)
        self._synthesizer.speak(utterance)

    def on_voices_changed(self) -> None:
        if self._synthesizer is None:
            return
        self.voice = select_voice(
            self._synthesizer.voices(),
            self._speech.locale,
            self._speech.preferred_voice,
        )
        log.info("event=voice_selected voice=%s", self.voice.name if self.voice else None)

    def on_synthesis_start(self) -> None:
        if self.state is TurnState.SPEAKING:
            self.status = STATUS_SPEAKING

    def on_synthesis_end(self) -> None:
        if self.state is not TurnState.SPEAKING:
            return
        if self.continuous:
            self._set_state(TurnState.IDLE)
            self._schedule_relisten()
        else:
            self._set_state(TurnState.IDLE, STATUS_IDLE)

    def on_synthesis_error(self, error: str) -> None:
        log.error("event=synthesis_error error=%s state=%s", error, self.state.value)
        if self.state is not TurnState.SPEAKING:
            return
        self._fail(STATUS_IDLE)

    # -----------------------------------------------------------------------
    # Continuous-mode re-listen timer
    # -----------------------------------------------------------------------

    def _schedule_relisten(self) -> None:
        self._cancel_relisten()
        self._relisten_task = asyncio.create_task(
            self._relisten_after(self._relisten_delay),
            name="unigpt_relisten",
        )
        log.debug("event=relisten_scheduled delay_sec=%.2f", self._relisten_delay)

    async def _relisten_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._relisten_task = None
        if self.state is TurnState.IDLE and self.continuous:
            self.start_listening()

    def _cancel_relisten(self) -> None:
        if self._relisten_task and not self._relisten_task.done():
            self._relisten_task.cancel()
            log.debug("event=relisten_cancelled")
        self._relisten_task = None
