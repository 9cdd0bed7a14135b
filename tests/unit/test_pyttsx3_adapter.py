# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

import adapters.tts.pyttsx3_adapter as tts_mod
from adapters.tts.base import SynthesisError
from adapters.tts.pyttsx3_adapter import Pyttsx3SpeechSynthesizer, rate_to_wpm
from constants import SPEECH_PARAMS_V1


class FakeEngine:
    def __init__(self, fail_on_run: bool = False) -> None:
        self.props: dict[str, Any] = {}
        self.said: list[str] = []
        self.stopped = 0
        self.fail_on_run = fail_on_run
        self.voices = [
            SimpleNamespace(id="voice-fr", languages=[b"\x05fr-FR"]),
            SimpleNamespace(id="voice-en", languages=["en_US"]),
        ]

    def getProperty(self, name: str) -> Any:  # pylint: disable=invalid-name
        if name == "voices":
            return self.voices
        return self.props.get(name)

    def setProperty(self, name: str, value: Any) -> None:  # pylint: disable=invalid-name
        self.props[name] = value

    def say(self, text: str) -> None:
        self.said.append(text)

    def runAndWait(self) -> None:  # pylint: disable=invalid-name
        if self.fail_on_run:
            raise RuntimeError("run loop already started")

    def stop(self) -> None:
        self.stopped += 1


def test_rate_maps_to_words_per_minute() -> None:
    assert rate_to_wpm(1.0, 200) == 200
    assert rate_to_wpm(0.5, 200) == 100
    assert rate_to_wpm(0.0, 200) == 1


def test_speak_configures_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = FakeEngine()
    monkeypatch.setattr(tts_mod.pyttsx3, "init", lambda: engine)
    tts = Pyttsx3SpeechSynthesizer(connection_id="conn_test", base_wpm=200)

    asyncio.run(tts.speak("Happy means you feel good.", SPEECH_PARAMS_V1))

    assert engine.said == ["Happy means you feel good."]
    assert engine.props["rate"] == 100
    assert engine.props["voice"] == "voice-en"


def test_configured_voice_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = FakeEngine()
    monkeypatch.setattr(tts_mod.pyttsx3, "init", lambda: engine)
    tts = Pyttsx3SpeechSynthesizer(connection_id="conn_test", voice_id="voice-fr")

    asyncio.run(tts.speak("Hi", SPEECH_PARAMS_V1))

    assert engine.props["voice"] == "voice-fr"


def test_engine_failure_becomes_synthesis_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tts_mod.pyttsx3, "init", lambda: FakeEngine(fail_on_run=True))
    tts = Pyttsx3SpeechSynthesizer(connection_id="conn_test")

    with pytest.raises(SynthesisError, match="RuntimeError"):
        asyncio.run(tts.speak("Hi", SPEECH_PARAMS_V1))


def test_stop_before_first_utterance_is_noop() -> None:
    Pyttsx3SpeechSynthesizer(connection_id="conn_test").stop()


def test_stop_interrupts_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = FakeEngine()
    monkeypatch.setattr(tts_mod.pyttsx3, "init", lambda: engine)
    tts = Pyttsx3SpeechSynthesizer(connection_id="conn_test")
    asyncio.run(tts.speak("Hi", SPEECH_PARAMS_V1))

    tts.stop()

    assert engine.stopped == 1
