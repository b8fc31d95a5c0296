"""Speaker identity resolution — raw diarization indices to display identities.

Diarization engines emit arbitrary, not necessarily contiguous speaker indices
(0, 3, 7, ...). Each distinct index gets a letter id in order of first
appearance and a color from a fixed cyclic palette.
"""

import string

from loguru import logger

from config.schemas import ResolvedSpeaker, SpeakerCharacteristic, Utterance


SPEAKER_ALPHABET = string.ascii_uppercase

# Dashboard chart colors; wraps around when a meeting has more speakers.
SPEAKER_COLORS = [
    "#2563eb",  # blue
    "#dc2626",  # red
    "#16a34a",  # green
    "#d97706",  # amber
    "#9333ea",  # purple
    "#0891b2",  # cyan
]

# Visual descriptions below this confidence are not attached to speakers
CHARACTERISTIC_MIN_CONFIDENCE = 0.8


def speaker_id_for_position(position: int) -> str:
    """Bijective base-26 id: 0 → A, 25 → Z, 26 → AA, 27 → AB, 701 → ZZ, 702 → AAA."""
    if position < 0:
        raise ValueError(f"Speaker position must be non-negative, got {position}")

    base = len(SPEAKER_ALPHABET)
    letters = []
    n = position + 1
    while n > 0:
        n, rem = divmod(n - 1, base)
        letters.append(SPEAKER_ALPHABET[rem])
    return "".join(reversed(letters))


def color_for_position(position: int) -> str:
    return SPEAKER_COLORS[position % len(SPEAKER_COLORS)]


def resolve_speakers(
    utterances: list[Utterance],
    characteristics: dict[int, SpeakerCharacteristic] | None = None,
) -> dict[int, ResolvedSpeaker]:
    """Map each distinct speaker index to a ResolvedSpeaker, in first-appearance order.

    Args:
        utterances: Diarized utterances in spoken order
        characteristics: Optional per-index visual descriptions (video uploads)

    Returns:
        Insertion-ordered dict {speaker_index: ResolvedSpeaker}. Empty for no utterances.
    """
    characteristics = characteristics or {}
    speakers: dict[int, ResolvedSpeaker] = {}

    for utt in utterances:
        if utt.speaker_index in speakers:
            continue
        position = len(speakers)
        speaker_id = speaker_id_for_position(position)

        description = ""
        detected = characteristics.get(utt.speaker_index)
        if detected is not None and detected.confidence >= CHARACTERISTIC_MIN_CONFIDENCE:
            description = detected.description

        speakers[utt.speaker_index] = ResolvedSpeaker(
            id=speaker_id,
            label=f"Speaker {speaker_id}",
            color_token=color_for_position(position),
            description=description,
        )

    if len(speakers) > len(SPEAKER_COLORS):
        logger.debug(f"{len(speakers)} speakers exceed palette size {len(SPEAKER_COLORS)} — colors repeat")

    return speakers
