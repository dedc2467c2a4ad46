from __future__ import annotations

import threading

from jarvis_voice.audio.speech import SpeechOutput
from jarvis_voice.core.errors import SpeechOutputError


class RecordingSynthesizer:
    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.texts: list[str] = []

    def synthesize_stream(self, text: str):
        self.texts.append(text)
        if text == self.fail_on:
            raise RuntimeError("voice model missing")
        for chunk in text.split():
            yield chunk.encode("utf-8"), 22_050, 1


class RecordingPlayer:
    def __init__(self) -> None:
        self.chunks: list[tuple[bytes, int | None, int | None]] = []
        self.stopped = False

    def play(self, pcm_data: bytes, sample_rate: int | None = None, channels: int | None = None) -> None:
        self.chunks.append((pcm_data, sample_rate, channels))

    def stop(self) -> None:
        self.stopped = True


def _speech(settings, synthesizer=None, player=None) -> tuple[SpeechOutput, RecordingSynthesizer, RecordingPlayer]:
    synthesizer = synthesizer or RecordingSynthesizer()
    player = player or RecordingPlayer()
    return SpeechOutput(settings, synthesizer_factory=lambda: synthesizer, player=player), synthesizer, player


def test_utterances_play_in_submission_order(settings):
    speech, synthesizer, player = _speech(settings)

    speech.speak("first reply")
    speech.speak("second")
    assert speech.wait(2)
    speech.shutdown()

    assert synthesizer.texts == ["first reply", "second"]
    assert [chunk for chunk, _, _ in player.chunks] == [b"first", b"reply", b"second"]
    assert player.chunks[0][1:] == (22_050, 1)


def test_blank_text_is_ignored(settings):
    speech, synthesizer, _ = _speech(settings)

    speech.speak("   ")
    speech.speak("")
    assert speech.wait(1)
    speech.shutdown()

    assert synthesizer.texts == []


def test_failure_is_reported_not_raised(settings):
    errors: list[SpeechOutputError] = []
    speech, _, player = _speech(settings, RecordingSynthesizer(fail_on="broken"))
    speech.bind_errors(errors.append)

    speech.speak("broken")
    speech.speak("fine")
    assert speech.wait(2)
    speech.shutdown()

    assert len(errors) == 1
    assert isinstance(errors[0], SpeechOutputError)
    assert "voice model missing" in str(errors[0])
    assert [chunk for chunk, _, _ in player.chunks] == [b"fine"]


def test_synthesizer_load_failure_is_reported(settings):
    errors: list[SpeechOutputError] = []

    def factory():
        raise FileNotFoundError("no .onnx voice")

    speech = SpeechOutput(settings, synthesizer_factory=factory, player=RecordingPlayer())
    speech.bind_errors(errors.append)
    speech.speak("hello")
    assert speech.wait(2)
    speech.shutdown()

    assert len(errors) == 1


def test_speak_returns_before_synthesis(settings):
    release = threading.Event()

    class SlowSynthesizer(RecordingSynthesizer):
        def synthesize_stream(self, text: str):
            release.wait(2)
            yield from super().synthesize_stream(text)

    speech, _, player = _speech(settings, SlowSynthesizer())
    speech.speak("later")
    assert player.chunks == []
    assert not speech.wait(0.05)
    release.set()
    assert speech.wait(2)
    speech.shutdown()
    assert player.chunks == [(b"later", 22_050, 1)]


def test_shutdown_stops_player(settings):
    speech, _, player = _speech(settings)
    speech.shutdown()
    assert player.stopped


def test_wait_while_utterances_complete(settings):
    speech, synthesizer, player = _speech(settings)
    failures: list[BaseException] = []
    done = threading.Event()

    def poll() -> None:
        try:
            while not done.is_set():
                speech.wait(0)
        except BaseException as exc:
            failures.append(exc)

    poller = threading.Thread(target=poll)
    poller.start()
    try:
        for index in range(300):
            speech.speak(f"reply {index}")
        assert speech.wait(5)
    finally:
        done.set()
        poller.join(2)
        speech.shutdown()

    assert failures == []
    assert len(synthesizer.texts) == 300
    assert len(player.chunks) == 600
