from __future__ import annotations

import pytest

from jarvis_voice.audio.vad import (
    SegmentStatus,
    UtteranceSegmenter,
    VADConfig,
    VoiceActivityDetector,
)


class SequenceDetector:
    def __init__(self, pattern: list[bool]) -> None:
        self.pattern = list(pattern)

    def is_speech(self, frame: bytes, sample_rate: int) -> bool:
        return self.pattern.pop(0)


def _segmenter(pattern: list[bool], **kwargs) -> UtteranceSegmenter:
    options = dict(
        sample_rate=16_000,
        frame_duration_ms=10,
        end_silence_ms=30,
        no_speech_timeout_ms=50,
        max_utterance_ms=100,
        pre_roll_ms=20,
    )
    options.update(kwargs)
    return UtteranceSegmenter(SequenceDetector(pattern), **options)


def _feed(segmenter: UtteranceSegmenter, count: int) -> list[SegmentStatus]:
    return [segmenter.feed(bytes([index]) * 4) for index in range(count)]


def test_utterance_completes_after_trailing_silence():
    segmenter = _segmenter([False, False, False, True, True, False, False, False])

    statuses = _feed(segmenter, 8)

    assert statuses[:3] == [SegmentStatus.WAITING] * 3
    assert statuses[3:7] == [SegmentStatus.SPEECH] * 4
    assert statuses[7] is SegmentStatus.COMPLETE
    assert segmenter.triggered
    # pre-roll holds frame 2 and the trigger frame 3
    assert segmenter.audio == b"".join(bytes([index]) * 4 for index in range(2, 8))


def test_no_speech_within_timeout():
    segmenter = _segmenter([False] * 5)

    statuses = _feed(segmenter, 5)

    assert statuses[-1] is SegmentStatus.NO_SPEECH
    assert statuses[:-1] == [SegmentStatus.WAITING] * 4
    assert not segmenter.triggered
    assert segmenter.audio == b""


def test_long_utterance_is_cut_at_maximum():
    segmenter = _segmenter([True] * 10)

    statuses = _feed(segmenter, 10)

    assert statuses[-1] is SegmentStatus.COMPLETE
    assert SegmentStatus.COMPLETE not in statuses[:-1]


def test_speech_resets_silence_counter():
    segmenter = _segmenter([True, False, False, True, False, False, False], max_utterance_ms=1000)

    statuses = _feed(segmenter, 7)

    assert statuses[:6] == [SegmentStatus.SPEECH] * 6
    assert statuses[6] is SegmentStatus.COMPLETE


@pytest.mark.parametrize(
    ("length", "expected"),
    [(160, 320), (320, 320), (500, 640), (960, 960), (1200, 960)],
)
def test_normalize_frame_picks_closest_valid_length(length, expected):
    normalized = VoiceActivityDetector._normalize_frame(b"\x00" * length, 16_000)
    assert len(normalized) == expected


def test_aggressiveness_is_clamped():
    assert VoiceActivityDetector(VADConfig(aggressiveness=9)).config.aggressiveness == 3
    assert VoiceActivityDetector(VADConfig(aggressiveness=-2)).config.aggressiveness == 0


def test_silence_is_not_speech():
    detector = VoiceActivityDetector()
    assert detector.is_speech(b"\x00" * 960, 16_000) is False


def test_unsupported_sample_rate_is_rejected():
    with pytest.raises(ValueError):
        VoiceActivityDetector().is_speech(b"\x00" * 960, 44_100)
