"""Timeline & participation aggregation.

Durations are synthetic (the diarization engine's timings are not trusted for
display): every utterance lasts ``len(text) // 15 + 1`` seconds, and the
transcript clock is the running total of those durations.
"""

import math

import numpy as np
from loguru import logger

from analysis.sentiment import clamp, sentiment_label, sentiment_value
from config.schemas import (
    EmotionTimelinePoint,
    ParticipationMetric,
    ResolvedSpeaker,
    SentimentResult,
    SpeakerValue,
    TranscriptEntry,
    Utterance,
)


CHARS_PER_SECOND_BLOCK = 15
TIMESTAMP_DISPLAY_CAP = 59
TIMELINE_POINTS = 5
TIMELINE_MODES = ("random", "binned")


def utterance_duration(text: str) -> int:
    """Synthetic speaking time in whole seconds; at least 1, even for empty text."""
    return len(text) // CHARS_PER_SECOND_BLOCK + 1


def format_timestamp(cumulative_seconds: int) -> str:
    """Transcript timestamp '00:SS'. Display saturates at 00:59; the clock itself does not."""
    return f"00:{min(cumulative_seconds, TIMESTAMP_DISPLAY_CAP):02d}"


def format_time_label(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def build_transcript(
    utterances: list[Utterance],
    speakers: dict[int, ResolvedSpeaker],
    results: list[SentimentResult],
) -> list[TranscriptEntry]:
    """One TranscriptEntry per utterance, in input order, with cumulative timestamps."""
    if len(utterances) != len(results):
        raise ValueError(f"Got {len(results)} sentiment results for {len(utterances)} utterances")

    entries = []
    elapsed = 0
    for position, (utt, result) in enumerate(zip(utterances, results), start=1):
        duration = utterance_duration(utt.text)
        elapsed += duration
        speaker = speakers[utt.speaker_index]
        entries.append(TranscriptEntry(
            sequence_id=position,
            speaker_id=speaker.id,
            speaker_label=speaker.label,
            color_token=speaker.color_token,
            text=utt.text,
            sentiment_label=result.label,
            emotion_label=result.emotion,
            timestamp=format_timestamp(elapsed),
            sentiment_score=result.score,
            duration_seconds=duration,
        ))
    return entries


def total_duration(entries: list[TranscriptEntry]) -> int:
    return sum(e.duration_seconds for e in entries)


def conflict_score(average: float) -> int:
    """0 for a fully positive speaker, 10 for neutral, up to 20 for fully negative."""
    return max(0, round_half_up((1 - clamp(average)) * 10))


def compute_participation(
    entries: list[TranscriptEntry],
    speakers: dict[int, ResolvedSpeaker],
) -> list[ParticipationMetric]:
    """Per-speaker speaking time, average sentiment and conflict score, in speaker order."""
    by_speaker: dict[str, list[TranscriptEntry]] = {}
    for e in entries:
        by_speaker.setdefault(e.speaker_id, []).append(e)

    metrics = []
    for speaker in speakers.values():
        spoken = by_speaker.get(speaker.id, [])
        speaking_time = sum(e.duration_seconds for e in spoken)
        average = sum(sentiment_value(e.sentiment_label) for e in spoken) / max(1, len(spoken))
        metrics.append(ParticipationMetric(
            speaker_id=speaker.id,
            label=speaker.label,
            color_token=speaker.color_token,
            speaking_time_seconds=speaking_time,
            conflict_score=conflict_score(average),
            sentiment_label=sentiment_label(average),
            average_score=clamp(average),
        ))
    return metrics


def timeline_time_labels(total_seconds: int) -> list[str]:
    """TIMELINE_POINTS evenly spaced labels from 0:00 to the end of the transcript clock."""
    step = total_seconds / (TIMELINE_POINTS - 1)
    return [format_time_label(math.floor(i * step)) for i in range(TIMELINE_POINTS)]


def build_emotion_timeline(
    speakers: dict[int, ResolvedSpeaker],
    total_seconds: int,
    rng: np.random.Generator | None = None,
) -> list[EmotionTimelinePoint]:
    """Placeholder timeline: each speaker value drawn uniformly from [-1, 1].

    Values are not derived from the transcript; see build_binned_emotion_timeline
    for the sentiment-driven variant.
    """
    rng = rng if rng is not None else np.random.default_rng()
    points = []
    for label in timeline_time_labels(total_seconds):
        values = [
            SpeakerValue(speaker_id=s.id, value=float(rng.uniform(-1.0, 1.0)))
            for s in speakers.values()
        ]
        points.append(EmotionTimelinePoint(time_label=label, values=values))
    return points


def build_binned_emotion_timeline(
    entries: list[TranscriptEntry],
    speakers: dict[int, ResolvedSpeaker],
) -> list[EmotionTimelinePoint]:
    """Deterministic timeline: mean sentiment score per speaker per time bin.

    The transcript clock is split into TIMELINE_POINTS equal bins; an utterance
    belongs to the bin containing its start time. Empty bins read 0.0.
    """
    total = total_duration(entries)
    sums = np.zeros((TIMELINE_POINTS, len(speakers)))
    counts = np.zeros((TIMELINE_POINTS, len(speakers)), dtype=int)
    column = {s.id: i for i, s in enumerate(speakers.values())}

    start = 0
    for e in entries:
        bin_index = min(TIMELINE_POINTS - 1, start * TIMELINE_POINTS // total) if total else 0
        sums[bin_index, column[e.speaker_id]] += e.sentiment_score
        counts[bin_index, column[e.speaker_id]] += 1
        start += e.duration_seconds

    means = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)

    points = []
    for i, label in enumerate(timeline_time_labels(total)):
        values = [
            SpeakerValue(speaker_id=s.id, value=clamp(float(means[i, column[s.id]])))
            for s in speakers.values()
        ]
        points.append(EmotionTimelinePoint(time_label=label, values=values))
    return points


def emotion_timeline(
    entries: list[TranscriptEntry],
    speakers: dict[int, ResolvedSpeaker],
    mode: str = "random",
    rng: np.random.Generator | None = None,
) -> list[EmotionTimelinePoint]:
    if mode not in TIMELINE_MODES:
        raise ValueError(f"Unknown timeline mode '{mode}', expected one of {TIMELINE_MODES}")
    if mode == "binned":
        return build_binned_emotion_timeline(entries, speakers)
    logger.debug("Emotion timeline in random mode — values are placeholders")
    return build_emotion_timeline(speakers, total_duration(entries), rng=rng)
