"""Diarized transcription — WhisperX + pyannote, emitted as speaker-indexed utterances.

Output contract (the only thing the analysis pipeline relies on):
    DiarizationResult(utterances=[Utterance(speaker=0, text="...", startSec=0.2, endSec=1.6), ...])

pyannote labels speakers "SPEAKER_00", "SPEAKER_01", ...; the numeric suffix
becomes the utterance's speaker index. Any transcription failure is fatal for
the upload and raised as DiarizationError.
"""

import os
import re
import threading

from loguru import logger

from config.schemas import DiarizationResult, Utterance


WHISPERX_MODEL = os.getenv("WHISPERX_MODEL", "large-v3-turbo")
WHISPERX_DEVICE = os.getenv("WHISPERX_DEVICE", "")
WHISPERX_COMPUTE_TYPE = os.getenv("WHISPERX_COMPUTE_TYPE", "int8")

_SPEAKER_INDEX_RE = re.compile(r"(\d+)\s*$")


class DiarizationError(RuntimeError):
    """Transcription/diarization could not produce utterances."""


# ── Persistent WhisperX model cache ──
_whisperx_model = None
_whisperx_lock = threading.Lock()


def _device() -> str:
    if WHISPERX_DEVICE:
        return WHISPERX_DEVICE
    import torch
    return "cuda" if torch.cuda.is_available() else "cpu"


def preload_whisperx():
    """Load WhisperX once and keep it resident. Thread-safe."""
    global _whisperx_model
    with _whisperx_lock:
        if _whisperx_model is not None:
            logger.info("WhisperX already loaded — skipping preload")
            return
        import whisperx
        device = _device()
        logger.info(f"Loading WhisperX ({WHISPERX_MODEL}, {WHISPERX_COMPUTE_TYPE}) on {device}...")
        _whisperx_model = whisperx.load_model(
            whisper_arch=WHISPERX_MODEL, device=device, compute_type=WHISPERX_COMPUTE_TYPE,
        )
        logger.info("WhisperX loaded and resident")


def is_whisperx_loaded() -> bool:
    return _whisperx_model is not None


def speaker_index_from_label(label, default: int = 0) -> int:
    """'SPEAKER_03' → 3, 'spk 1' → 1, 2 → 2; unparseable labels fall back to default."""
    if isinstance(label, int) and label >= 0:
        return label
    if not isinstance(label, str):
        return default
    match = _SPEAKER_INDEX_RE.search(label)
    return int(match.group(1)) if match else default


def segments_to_utterances(segments: list) -> list[Utterance]:
    """Convert WhisperX segments to utterances.

    Segments without a speaker label inherit the previous speaker (0 at the
    start). Empty-text segments are dropped.
    """
    utterances = []
    previous = 0
    for seg in segments:
        text = (seg.get("text") or "").strip()
        if not text:
            continue
        speaker = speaker_index_from_label(seg.get("speaker"), default=previous)
        previous = speaker
        utterances.append(Utterance(
            speaker=speaker,
            text=text,
            start_sec=seg.get("start"),
            end_sec=seg.get("end"),
        ))
    return utterances


def split_segments_by_speaker(segments: list) -> list:
    """Split segments whose words carry more than one speaker label.

    WhisperX assigns one speaker per segment (the majority), but word-level
    labels reveal mid-segment speaker changes.
    """
    new_segments = []
    for seg in segments:
        words = seg.get("words", [])
        speakers_in_seg = {w["speaker"] for w in words if w.get("speaker")}
        if len(speakers_in_seg) <= 1:
            new_segments.append(seg)
            continue

        current_speaker = None
        current_words = []
        for w in words:
            word_speaker = w.get("speaker", current_speaker)
            if current_speaker is None:
                current_speaker = word_speaker
            if word_speaker != current_speaker and word_speaker is not None:
                if current_words:
                    new_segments.append(_words_to_segment(current_words, current_speaker, seg))
                current_words = [w]
                current_speaker = word_speaker
            else:
                current_words.append(w)
        if current_words:
            new_segments.append(_words_to_segment(current_words, current_speaker, seg))

    split_count = len(new_segments) - len(segments)
    if split_count > 0:
        logger.info(f"Diarization split: {len(segments)} segments → {len(new_segments)} (+{split_count})")
    return new_segments


def _words_to_segment(words: list, speaker, original_seg: dict) -> dict:
    return {
        "start": words[0].get("start", original_seg.get("start", 0)),
        "end": words[-1].get("end", original_seg.get("end", 0)),
        "text": " ".join(w.get("word", "") for w in words).strip(),
        "speaker": speaker,
        "words": words,
    }


def diarize_audio(
    wav_path: str,
    hf_token: str | None = None,
    batch_size: int = 8,
    min_speakers: int | None = None,
    max_speakers: int | None = None,
) -> DiarizationResult:
    """Transcribe, align and diarize a normalized 16kHz mono WAV.

    Without an HF token pyannote cannot run; every utterance is then attributed
    to speaker 0.

    Raises:
        DiarizationError: WhisperX missing, transcription failed, or diarization failed
    """
    hf_token = hf_token or os.getenv("HF_TOKEN")
    try:
        import whisperx
    except ImportError as e:
        raise DiarizationError("whisperx is not installed (pip install insightmeet[asr])") from e

    try:
        preload_whisperx()
        device = _device()
        audio = whisperx.load_audio(wav_path)
        result = _whisperx_model.transcribe(audio, batch_size=batch_size)
        language = result.get("language", "en")
        logger.info(f"Transcribed {len(result.get('segments', []))} segments (language={language})")
    except Exception as e:
        logger.error(f"Transcription failed for {wav_path}: {e}")
        raise DiarizationError(f"Transcription failed: {e}") from e

    try:
        align_model, align_metadata = whisperx.load_align_model(language_code=language, device=device)
        result = whisperx.align(result["segments"], align_model, align_metadata, audio, device=device)
        del align_model
    except Exception as e:
        logger.warning(f"Word alignment failed (continuing with segment-level speakers): {e}")

    if hf_token:
        try:
            from whisperx.diarize import DiarizationPipeline
            diarize_model = DiarizationPipeline(use_auth_token=hf_token, device=device)
            diarize_segments = diarize_model(audio, min_speakers=min_speakers, max_speakers=max_speakers)
            result = whisperx.assign_word_speakers(diarize_segments, result)
            result["segments"] = split_segments_by_speaker(result.get("segments", []))
            del diarize_model
            logger.info("Speaker diarization complete")
        except Exception as e:
            logger.error(f"Speaker diarization failed: {e}")
            raise DiarizationError(f"Speaker diarization failed: {e}") from e
    else:
        logger.warning("No HF token — skipping diarization, single speaker assumed")

    utterances = segments_to_utterances(result.get("segments", []))
    logger.info(f"Diarization produced {len(utterances)} utterances, "
                f"{len({u.speaker_index for u in utterances})} speakers")
    return DiarizationResult(utterances=utterances)
