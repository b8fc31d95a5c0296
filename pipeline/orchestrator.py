"""Pipeline Orchestrator — diarized utterances to the dashboard's AnalysisData.

Stages run strictly forward, one pass per analysis:
  1. Speaker identity resolution      (pure)
  2. Sentiment/emotion scoring        (pure, injected scorer)
  3. Timeline & participation         (pure)
  4. Narrative enrichment             (two sequential collaborator calls, never fatal)

Upload processing (normalize → diarize → optional video characteristics →
persist) lives here too; diarization failures are fatal and propagate.
"""

import asyncio
import os
import tempfile
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
from loguru import logger

from analysis.sentiment import LexiconScorer, SentimentScorer
from analysis.speakers import resolve_speakers
from analysis.timeline import build_transcript, compute_participation, emotion_timeline, total_duration
from config.schemas import (
    AnalysisData,
    AnalysisRecord,
    DiarizationResult,
    SpeakerCharacteristic,
    SummaryData,
    Utterance,
)
from pipeline.enrichment import enrich, overall_sentiment
from services.asr.transcriber import DiarizationError, diarize_audio
from services.audio.normalizer import normalize_audio
from services.narrative.client import NarrativeService
from services.storage.records import RecordStore
from services.vision.characteristics import detect_speaker_characteristics


TIMELINE_MODE = os.getenv("TIMELINE_MODE", "random")


def _new_run_id() -> str:
    return uuid.uuid4().hex[:8]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def coerce_utterances(utterances: list) -> list[Utterance]:
    """Accept Utterance models or raw diarization dicts ({"speaker": 0, "text": ...})."""
    return [u if isinstance(u, Utterance) else Utterance.model_validate(u) for u in utterances]


def analyze_utterances(
    utterances: list,
    characteristics: dict[int, SpeakerCharacteristic] | None = None,
    scorer: SentimentScorer | None = None,
    timeline_mode: str | None = None,
    rng: np.random.Generator | None = None,
    run_id: str | None = None,
) -> AnalysisData:
    """Stages 1-3: resolve speakers, score every utterance, aggregate.

    The returned AnalysisData has an empty relationship graph and a summary
    holding only the overall sentiment; run_analysis adds the narrative parts.
    """
    run_id = run_id or _new_run_id()
    utterances = coerce_utterances(utterances)
    scorer = scorer or LexiconScorer()
    started = time.perf_counter()

    speakers = resolve_speakers(utterances, characteristics)
    results = [scorer.analyze(u.text) for u in utterances]
    transcript = build_transcript(utterances, speakers, results)
    participation = compute_participation(transcript, speakers)
    timeline = emotion_timeline(transcript, speakers, mode=timeline_mode or TIMELINE_MODE, rng=rng)

    logger.info(
        f"[{run_id}] Analyzed {len(transcript)} utterances, {len(speakers)} speakers, "
        f"{total_duration(transcript)}s transcript clock ({time.perf_counter() - started:.3f}s)"
    )
    return AnalysisData(
        summary=SummaryData(overall_sentiment=overall_sentiment(transcript)),
        transcript=transcript,
        participation=participation,
        emotion_timeline=timeline,
    )


async def run_analysis(
    utterances: list,
    narrative: NarrativeService | None,
    characteristics: dict[int, SpeakerCharacteristic] | None = None,
    scorer: SentimentScorer | None = None,
    timeline_mode: str | None = None,
    rng: np.random.Generator | None = None,
) -> AnalysisData:
    """Full pipeline: stages 1-3 then narrative enrichment."""
    run_id = _new_run_id()
    analysis = analyze_utterances(
        utterances, characteristics, scorer=scorer, timeline_mode=timeline_mode, rng=rng, run_id=run_id,
    )
    summary, graph = await enrich(analysis.transcript, narrative, run_id=run_id)
    return analysis.model_copy(update={"summary": summary, "relationship_graph": graph})


async def process_upload(
    file_path: str,
    mime_type: str = "audio/wav",
    file_name: str | None = None,
    store: RecordStore | None = None,
    hf_token: str | None = None,
) -> AnalysisRecord:
    """Diarize an uploaded recording and persist it as a new analysis record.

    Raises:
        DiarizationError: media could not be read, transcribed, or yielded no utterances
    """
    logger.info(f"Processing upload {file_name or file_path} ({mime_type})")

    with tempfile.TemporaryDirectory(prefix="insightmeet-") as tmp_dir:
        wav_path = str(Path(tmp_dir) / "normalized.wav")
        try:
            await asyncio.to_thread(normalize_audio, file_path, wav_path)
        except (OSError, RuntimeError, ValueError) as e:
            logger.error(f"Could not read media {file_name or file_path}: {e}")
            raise DiarizationError(f"Could not read media: {e}") from e
        diarization: DiarizationResult = await asyncio.to_thread(diarize_audio, wav_path, hf_token)

    if not diarization.utterances:
        raise DiarizationError("Diarization failed or returned no utterances.")

    characteristics: dict[int, SpeakerCharacteristic] = {}
    if mime_type.startswith("video/"):
        characteristics = await detect_speaker_characteristics(file_path, diarization.utterances)

    record = AnalysisRecord(
        id=str(uuid.uuid4()),
        created_at=_utc_timestamp(),
        mime_type=mime_type,
        file_name=file_name,
        diarization_result=diarization,
        speaker_characteristics=characteristics,
    )

    store = store or RecordStore()
    try:
        store.save(record)
    except OSError as e:
        logger.error(f"Persisting analysis failed (returning unsaved result): {e}")
        record = record.model_copy(update={"id": None})
    return record


async def open_saved_analysis(
    record_id: str,
    store: RecordStore,
    narrative: NarrativeService | None,
    scorer: SentimentScorer | None = None,
    timeline_mode: str | None = None,
) -> AnalysisData:
    """Re-run the pipeline over a saved record's utterances.

    Raises:
        RecordNotFoundError: no record with that id
    """
    record = store.get(record_id)
    logger.info(f"Opening saved analysis {record_id} ({len(record.diarization_result.utterances)} utterances)")
    return await run_analysis(
        record.diarization_result.utterances,
        narrative,
        characteristics=record.speaker_characteristics,
        scorer=scorer,
        timeline_mode=timeline_mode,
    )
