"""Media intake — probe uploads and normalize them to 16kHz mono WAV for transcription."""

import json
import subprocess
from pathlib import Path

from loguru import logger


def probe_media(input_path: str) -> dict:
    """Run ffprobe and return its JSON (format + streams).

    Raises:
        RuntimeError: ffprobe failed (missing binary or unreadable file)
    """
    probe = subprocess.run(
        [
            "ffprobe", "-v", "quiet", "-print_format", "json",
            "-show_format", "-show_streams", str(input_path),
        ],
        capture_output=True, text=True,
    )
    if probe.returncode != 0:
        raise RuntimeError(f"ffprobe failed on {input_path}: {probe.stderr}")
    return json.loads(probe.stdout)


def has_stream(info: dict, codec_type: str) -> bool:
    return any(s.get("codec_type") == codec_type for s in info.get("streams", []))


def normalize_audio(input_path: str, output_path: str) -> dict:
    """Extract the audio track of any audio/video file as 16kHz mono PCM WAV.

    Returns:
        dict with format, duration, has_video, output_path

    Raises:
        ValueError: the file has no audio stream
        RuntimeError: ffprobe/ffmpeg failed
    """
    input_path = str(input_path)
    output_path = str(output_path)

    info = probe_media(input_path)
    if not has_stream(info, "audio"):
        raise ValueError(f"No audio stream found in {input_path}")

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    result = subprocess.run(
        [
            "ffmpeg", "-i", input_path, "-vn",
            "-ar", "16000", "-ac", "1", "-c:a", "pcm_s16le", "-y", output_path,
        ],
        capture_output=True, text=True,
    )
    if result.returncode != 0:
        raise RuntimeError(f"ffmpeg normalization failed: {result.stderr}")

    metadata = {
        "format": info.get("format", {}).get("format_name", "unknown"),
        "duration": float(info.get("format", {}).get("duration", 0) or 0),
        "has_video": has_stream(info, "video"),
        "output_path": output_path,
    }
    logger.info(f"Normalized {input_path} → {output_path} ({metadata['format']}, {metadata['duration']:.1f}s)")
    return metadata
