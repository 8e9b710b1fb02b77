import asyncio

import console
from speech import Utterance


class RecordingController:

    def __init__(self):
        self.events = []

    def on_recognition_start(self):
        self.events.append("recognition_start")

    def on_recognition_result(self, transcript):
        self.events.append(("result", transcript))

    def on_recognition_end(self):
        self.events.append("recognition_end")

    def on_synthesis_start(self):
        self.events.append("synthesis_start")

    def on_synthesis_end(self):
        self.events.append("synthesis_end")


def _listen_once(monkeypatch, line):
    commands = []
    controller = RecordingController()
    monkeypatch.setattr(console, "_read_line", lambda prompt: line)

    async def run():
        recognizer = console.ConsoleRecognizer("en-US", commands.append)
        recognizer.bind(controller)
        recognizer.start()
        await recognizer._task

    asyncio.run(run())
    return controller.events, commands


def test_recognizer_delivers_typed_line(monkeypatch):
    events, commands = _listen_once(monkeypatch, "what's the weather")
    assert events == ["recognition_start", ("result", "what's the weather"), "recognition_end"]
    assert commands == []


def test_recognizer_routes_commands(monkeypatch):
    events, commands = _listen_once(monkeypatch, "/reset ")
    assert events == ["recognition_start", "recognition_end"]
    assert commands == ["/reset"]


def test_recognizer_treats_eof_as_quit(monkeypatch):
    _, commands = _listen_once(monkeypatch, None)
    assert commands == ["/quit"]


def test_synthesizer_prints_on_next_tick(capsys):
    controller = RecordingController()

    async def run():
        synth = console.ConsoleSynthesizer("en-US")
        synth.bind(controller)
        synth.speak(Utterance(text="You have a 2pm meeting."))
        assert controller.events == []
        await asyncio.sleep(0)

    asyncio.run(run())

    assert "uni-gpt> You have a 2pm meeting." in capsys.readouterr().out
    assert controller.events == ["synthesis_start", "synthesis_end"]


def test_synthesizer_cancel_drops_pending_utterance(capsys):
    controller = RecordingController()

    async def run():
        synth = console.ConsoleSynthesizer("en-US")
        synth.bind(controller)
        synth.speak(Utterance(text="never heard"))
        synth.cancel()
        await asyncio.sleep(0)

    asyncio.run(run())

    assert "never heard" not in capsys.readouterr().out
    assert controller.events == []
