"""
console.py — Uni-GPT Voice Assistant · Terminal Front-End
=========================================================
Drives a ConversationController from a terminal: typed lines stand in for
recognized speech and replies are printed instead of spoken.  Talks to a
running relay (server.py) over HTTP.

Usage
-----
    python console.py [relay_url]

Commands: /reset clears the conversation, /quit exits.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Callable, Optional, Sequence

from config import AssistantConfig
from controller import ConversationController, TurnState
from relay_client import HttpRelayClient
from speech import RecognitionError, Utterance, Voice

logging.basicConfig(
    level=logging.DEBUG if os.getenv("UNIGPT_DEBUG") else logging.WARNING,
    format="%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s – %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("unigpt.console")

PROMPT = "you> "


def _read_line(prompt: str) -> Optional[str]:
    try:
        return input(prompt)
    except EOFError:
        return None


class ConsoleRecognizer:
    """One typed line per activation.  Lines starting with '/' are commands."""

    def __init__(self, locale: str, on_command: Callable[[str], None]):
        self.locale = locale
        self._on_command = on_command
        self._controller: Optional[ConversationController] = None
        self._task: Optional[asyncio.Task] = None

    def bind(self, controller: ConversationController) -> None:
        self._controller = controller

    def start(self) -> None:
        if self._task and not self._task.done():
            raise RecognitionError("recognition already started")
        self._task = asyncio.create_task(self._listen(), name="console_recognizer")

    def stop(self) -> None:
        if self._task and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()

    async def _listen(self) -> None:
        controller = self._controller
        controller.on_recognition_start()
        line = await asyncio.get_running_loop().run_in_executor(None, _read_line, PROMPT)
        if line is None:
            self._on_command("/quit")
        elif line.startswith("/"):
            self._on_command(line.strip())
        else:
            controller.on_recognition_result(line)
        controller.on_recognition_end()


class ConsoleSynthesizer:
    """Prints each utterance on the next loop tick, like an async speech engine."""

    def __init__(self, locale: str):
        self._voices = [Voice(name="Console", lang=locale)]
        self._controller: Optional[ConversationController] = None
        self._pending: Optional[asyncio.Handle] = None

    def bind(self, controller: ConversationController) -> None:
        self._controller = controller

    def voices(self) -> Sequence[Voice]:
        return self._voices

    def speak(self, utterance: Utterance) -> None:
        self._pending = asyncio.get_running_loop().call_soon(self._play, utterance)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _play(self, utterance: Utterance) -> None:
        self._pending = None
        self._controller.on_synthesis_start()
        print(f"uni-gpt> {utterance.text}", flush=True)
        self._controller.on_synthesis_end()


async def main(config: AssistantConfig, relay_url: Optional[str] = None) -> None:
    done = asyncio.Event()
    relay = HttpRelayClient(relay_url or config.controller.relay_url)

    def on_command(command: str) -> None:
        if command == "/quit":
            done.set()
        elif command == "/reset":
            controller.reset()
            print("(conversation cleared)", flush=True)
        else:
            print(f"(unknown command {command})", flush=True)

    def on_state_change(prev: TurnState, new: TurnState) -> None:
        # Nobody presses the mic button here: re-arm after a turn that produced no reply
        if new is TurnState.IDLE and prev is not TurnState.SPEAKING and not done.is_set():
            asyncio.get_running_loop().call_soon(controller.start_listening)

    recognizer = ConsoleRecognizer(config.speech.locale, on_command)
    synthesizer = ConsoleSynthesizer(config.speech.locale)
    controller = ConversationController(
        relay=relay,
        recognizer=recognizer,
        synthesizer=synthesizer,
        config=config,
        on_state_change=on_state_change,
    )
    recognizer.bind(controller)
    synthesizer.bind(controller)

    log.info("event=console_start relay=%s", relay_url or config.controller.relay_url)
    controller.set_continuous(True)
    controller.start_listening()
    try:
        await done.wait()
    finally:
        controller.reset()
        await relay.aclose()
        log.info("event=console_stopped")


if __name__ == "__main__":
    _url = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(main(AssistantConfig.load(), _url))
    except KeyboardInterrupt:
        print("\nShutdown requested")
