"""Tests for speaker identity resolution."""

import pytest

from analysis.speakers import (
    SPEAKER_COLORS,
    color_for_position,
    resolve_speakers,
    speaker_id_for_position,
)
from config.schemas import SpeakerCharacteristic, Utterance


def utts(*indices):
    return [Utterance(speaker=i, text=f"line {n}") for n, i in enumerate(indices)]


class TestSpeakerIds:
    @pytest.mark.parametrize("position,expected", [
        (0, "A"), (1, "B"), (25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (52, "BA"), (701, "ZZ"), (702, "AAA"),
    ])
    def test_bijective_base26(self, position, expected):
        assert speaker_id_for_position(position) == expected

    def test_negative_position_rejected(self):
        with pytest.raises(ValueError):
            speaker_id_for_position(-1)

    def test_colors_cycle(self):
        assert color_for_position(0) == SPEAKER_COLORS[0]
        assert color_for_position(len(SPEAKER_COLORS)) == SPEAKER_COLORS[0]
        assert color_for_position(len(SPEAKER_COLORS) + 2) == SPEAKER_COLORS[2]


class TestResolveSpeakers:
    def test_first_appearance_order(self):
        speakers = resolve_speakers(utts(3, 0, 3, 7, 0))
        assert list(speakers) == [3, 0, 7]
        assert [s.id for s in speakers.values()] == ["A", "B", "C"]
        assert speakers[7].label == "Speaker C"

    def test_non_contiguous_indices(self):
        speakers = resolve_speakers(utts(5, 9))
        assert speakers[5].id == "A"
        assert speakers[9].id == "B"
        assert speakers[9].color_token == SPEAKER_COLORS[1]

    def test_empty(self):
        assert resolve_speakers([]) == {}

    def test_more_speakers_than_alphabet(self):
        speakers = resolve_speakers(utts(*range(28)))
        assert speakers[26].id == "AA"
        assert speakers[27].id == "AB"
        assert len({s.id for s in speakers.values()}) == 28

    def test_deterministic(self):
        first = resolve_speakers(utts(2, 1, 2))
        second = resolve_speakers(utts(2, 1, 2))
        assert first == second

    def test_confident_characteristic_attached(self):
        speakers = resolve_speakers(
            utts(0, 1),
            {1: SpeakerCharacteristic(description="glasses, beard", confidence=0.92)},
        )
        assert speakers[1].description == "glasses, beard"
        assert speakers[0].description == ""

    def test_low_confidence_characteristic_ignored(self):
        speakers = resolve_speakers(
            utts(0),
            {0: SpeakerCharacteristic(description="hat", confidence=0.5)},
        )
        assert speakers[0].description == ""
