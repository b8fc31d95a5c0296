"""Speaker visual characteristics — optional enrichment for video uploads.

For each speaker, grab up to two frames around their utterances with ffmpeg,
send each frame to an external vision service, and keep the most confident
description. Everything here is best-effort: failures yield no description.

Vision service contract:
    POST {"imageBase64": "data:image/png;base64,..."}
    → {"attributes": [{"label": "glasses", "confidence": 0.93}, ...]}
"""

import asyncio
import base64
import os
import subprocess
import tempfile
from pathlib import Path

import httpx
from loguru import logger

from config.schemas import SpeakerCharacteristic, Utterance


VISION_SERVICE_URL = os.getenv("VISION_SERVICE_URL", "http://localhost:8001/analyze")

FRAMES_PER_SPEAKER = 2
MIN_ATTRIBUTE_CONFIDENCE = 0.8
MAX_ATTRIBUTES = 2
FALLBACK_TIMESTAMPS = [0.5, 1.5]
DEFAULT_UTTERANCE_SPAN = 0.6


def select_frame_timestamps(
    utterances: list[Utterance],
    per_speaker: int = FRAMES_PER_SPEAKER,
) -> dict[int, list[float]]:
    """Pick up to ``per_speaker`` frame timestamps (utterance midpoints) per speaker index.

    Only utterances carrying a start or end time count. If none do, every
    speaker gets the fallback timestamps.
    """
    timestamps: dict[int, list[float]] = {}
    for utt in utterances:
        if utt.start_sec is None and utt.end_sec is None:
            continue
        start = utt.start_sec if utt.start_sec is not None else 0.0
        end = utt.end_sec if utt.end_sec is not None else start + DEFAULT_UTTERANCE_SPAN
        midpoint = start + max(0.1, (end - start) / 2)
        picked = timestamps.setdefault(utt.speaker_index, [])
        if len(picked) < per_speaker:
            picked.append(midpoint)

    if not timestamps:
        for utt in utterances:
            timestamps.setdefault(utt.speaker_index, list(FALLBACK_TIMESTAMPS))
    return timestamps


def pick_confident_attributes(attributes, threshold: float = MIN_ATTRIBUTE_CONFIDENCE) -> SpeakerCharacteristic | None:
    """Join the top confident attribute labels into one description, or None."""
    if not isinstance(attributes, list):
        return None
    confident = [
        a for a in attributes
        if isinstance(a, dict)
        and isinstance(a.get("label"), str)
        and isinstance(a.get("confidence"), (int, float))
        and a["confidence"] >= threshold
    ]
    confident.sort(key=lambda a: a["confidence"], reverse=True)
    confident = confident[:MAX_ATTRIBUTES]
    if not confident:
        return None
    return SpeakerCharacteristic(
        description=", ".join(a["label"] for a in confident),
        confidence=min(1.0, float(confident[0]["confidence"])),
    )


def best_characteristic(candidates: list[SpeakerCharacteristic]) -> SpeakerCharacteristic | None:
    confident = [c for c in candidates if c.confidence >= MIN_ATTRIBUTE_CONFIDENCE]
    if not confident:
        return None
    return max(confident, key=lambda c: c.confidence)


def extract_frame(video_path: str, timestamp: float, output_path: str) -> str:
    """Write the single frame at ``timestamp`` seconds as PNG."""
    result = subprocess.run(
        [
            "ffmpeg", "-ss", f"{max(0.0, timestamp):.2f}", "-i", str(video_path),
            "-frames:v", "1", "-y", str(output_path),
        ],
        capture_output=True, text=True,
    )
    if result.returncode != 0:
        raise RuntimeError(f"ffmpeg frame extraction failed at {timestamp:.2f}s: {result.stderr}")
    return output_path


def _image_data_uri(path: str) -> str:
    encoded = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


async def _describe_frame(client: httpx.AsyncClient, frame_path: str) -> SpeakerCharacteristic | None:
    try:
        resp = await client.post(VISION_SERVICE_URL, json={"imageBase64": _image_data_uri(frame_path)})
        if not resp.is_success:
            logger.debug(f"Vision service returned {resp.status_code} for {frame_path}")
            return None
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"Vision call failed for {frame_path}: {e}")
        return None
    return pick_confident_attributes(data.get("attributes") if isinstance(data, dict) else None)


async def _describe_frames(
    client: httpx.AsyncClient, frames: list[tuple[int, str]],
) -> dict[int, list[SpeakerCharacteristic]]:
    candidates: dict[int, list[SpeakerCharacteristic]] = {}
    for speaker_index, frame_path in frames:
        detected = await _describe_frame(client, frame_path)
        if detected:
            candidates.setdefault(speaker_index, []).append(detected)
    return candidates


async def detect_speaker_characteristics(
    video_path: str,
    utterances: list[Utterance],
    client: httpx.AsyncClient | None = None,
) -> dict[int, SpeakerCharacteristic]:
    """Best-effort per-speaker visual description. Returns {} on any pipeline failure."""
    if not utterances:
        return {}

    try:
        with tempfile.TemporaryDirectory(prefix="insightmeet-") as tmp_dir:
            frames: list[tuple[int, str]] = []
            for speaker_index, stamps in select_frame_timestamps(utterances).items():
                for ts in stamps:
                    out_path = os.path.join(tmp_dir, f"speaker-{speaker_index}-{ts:.2f}.png")
                    frame_path = await asyncio.to_thread(extract_frame, video_path, ts, out_path)
                    frames.append((speaker_index, frame_path))

            if client is not None:
                candidates = await _describe_frames(client, frames)
            else:
                async with httpx.AsyncClient(timeout=30.0) as own_client:
                    candidates = await _describe_frames(own_client, frames)
    except Exception as e:
        logger.warning(f"Vision pipeline failed (continuing without characteristics): {e}")
        return {}

    characteristics = {}
    for speaker_index, found in candidates.items():
        best = best_characteristic(found)
        if best is not None:
            characteristics[speaker_index] = best
    logger.info(f"Speaker characteristics detected for {len(characteristics)} speakers")
    return characteristics
