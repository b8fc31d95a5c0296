"""Run the analysis pipeline over a diarization JSON file.

Accepts either a bare diarization result ({"utterances": [...]}) or a saved
analysis record ({"diarizationResult": {...}, "speakerCharacteristics": {...}}).

Usage:
    python scripts/analyze_transcript.py meeting.json [--output analysis.json] [--no-enrichment] [--timeline binned]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from loguru import logger

from analysis.sentiment import build_scorer
from analysis.timeline import TIMELINE_MODES
from config.schemas import AnalysisRecord, DiarizationResult
from pipeline.orchestrator import run_analysis
from services.narrative.client import build_narrative_service


def load_input(path: Path) -> tuple[DiarizationResult, dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if "diarizationResult" in data:
        record = AnalysisRecord.model_validate(data)
        return record.diarization_result, record.speaker_characteristics
    return DiarizationResult.model_validate(data), {}


def main():
    parser = argparse.ArgumentParser(description="Analyze a diarized meeting transcript")
    parser.add_argument("input", type=Path, help="Diarization result or saved record JSON")
    parser.add_argument("--output", type=Path, default=None, help="Write AnalysisData JSON here (default: stdout)")
    parser.add_argument("--no-enrichment", action="store_true", help="Skip relationship graph and summary report")
    parser.add_argument("--narrative-url", default=None, help="Narrative service base URL (default: in-process LLM)")
    parser.add_argument("--timeline", choices=TIMELINE_MODES, default=None, help="Emotion timeline mode")
    parser.add_argument("--emotion-model", default=None, help="Hugging Face emotion model (default: lexicon scorer)")
    args = parser.parse_args()

    if not args.input.exists():
        logger.error(f"Input not found: {args.input}")
        sys.exit(1)

    diarization, characteristics = load_input(args.input)
    logger.info(f"Loaded {len(diarization.utterances)} utterances from {args.input}")

    scorer = build_scorer(args.emotion_model)
    narrative = None if args.no_enrichment else build_narrative_service(args.narrative_url)

    analysis = asyncio.run(run_analysis(
        diarization.utterances,
        narrative,
        characteristics=characteristics,
        scorer=scorer,
        timeline_mode=args.timeline,
    ))

    payload = json.dumps(analysis.model_dump(by_alias=True, mode="json"), indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload, encoding="utf-8")
        logger.info(f"Analysis written to {args.output}")
    else:
        print(payload)


if __name__ == "__main__":
    main()
