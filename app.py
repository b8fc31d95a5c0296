"""InsightMeet — Meeting analysis API (upload, diarize, analyze, enrich, store)."""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from analysis.sentiment import build_scorer
from config.schemas import (
    AnalysisData,
    AnalyzeRequest,
    RecordActionRequest,
    RelationshipGraphRequest,
    SummaryReportRequest,
)
from pipeline.orchestrator import open_saved_analysis, process_upload, run_analysis
from services.asr.transcriber import DiarizationError, is_whisperx_loaded
from services.llm.client import check_llm_health
from services.narrative.client import build_narrative_service
from services.narrative.generator import encode_graph, generate_relationship_graph, generate_summary_report
from services.storage.records import RecordNotFoundError, RecordStore

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_MB", "100")) * 1024 * 1024
EMOTION_MODEL = os.getenv("EMOTION_MODEL", "")

app = FastAPI(
    title="InsightMeet",
    description="Meeting analysis — diarized transcript, sentiment, participation, relationship graph",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Startup: build the shared scorer, narrative transport and store once ──
@app.on_event("startup")
async def startup_services():
    app.state.scorer = build_scorer(EMOTION_MODEL or None)
    app.state.narrative = build_narrative_service()
    app.state.store = RecordStore()
    logger.info(f"InsightMeet ready (scorer={app.state.scorer.name}, data_dir={app.state.store.data_dir})")


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return value


def _analysis_response(analysis: AnalysisData) -> JSONResponse:
    return JSONResponse(content=analysis.model_dump(by_alias=True, mode="json"))


@app.get("/api/health")
async def health():
    """Health check — LLM reachability and transcription model status."""
    return {
        "status": "healthy",
        "llm": check_llm_health(),
        "whisperx_loaded": is_whisperx_loaded(),
    }


# ── Upload & saved analyses ──

@app.post("/api/upload")
async def upload_recording(request: Request, file: UploadFile = File(...)):
    """Upload an audio/video recording; diarize it and save the result."""
    store = _state(request, "store")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"File too large ({len(content)} bytes)")

    mime_type = file.content_type or "audio/wav"
    logger.info(f"Received {file.filename} ({len(content)} bytes, {mime_type})")

    with tempfile.TemporaryDirectory(prefix="insightmeet-upload-") as tmp_dir:
        upload_path = Path(tmp_dir) / (Path(file.filename or "upload").name or "upload")
        upload_path.write_bytes(content)
        try:
            record = await process_upload(str(upload_path), mime_type, file.filename, store=store)
        except DiarizationError as e:
            logger.error(f"Diarization failed for {file.filename}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    body = {
        "diarizationResult": record.diarization_result.model_dump(by_alias=True, mode="json"),
        "speakerCharacteristics": {
            str(k): v.model_dump(by_alias=True, mode="json") for k, v in record.speaker_characteristics.items()
        },
    }
    if record.id:
        body = {"id": record.id, **body}
    return JSONResponse(content=body)


@app.get("/api/upload")
async def list_or_get_analyses(request: Request, id: str | None = Query(None)):
    """List saved analyses, or return one saved record when ?id= is given."""
    store = _state(request, "store")
    if id:
        try:
            record = store.get(id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except RecordNotFoundError:
            raise HTTPException(status_code=404, detail=f"Analysis {id} not found")
        return JSONResponse(content=record.model_dump(by_alias=True, mode="json"))

    items = store.list_items()
    return {"items": [item.model_dump(by_alias=True, mode="json") for item in items]}


@app.get("/api/analyses/{record_id}/analysis")
async def open_analysis(request: Request, record_id: str):
    """Re-run the analysis pipeline over a saved recording's utterances."""
    try:
        analysis = await open_saved_analysis(
            record_id, _state(request, "store"), _state(request, "narrative"), scorer=_state(request, "scorer"),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail=f"Analysis {record_id} not found")
    return _analysis_response(analysis)


@app.post("/api/analyze")
async def analyze(request: Request, body: AnalyzeRequest):
    """Run the analysis pipeline over already-diarized utterances."""
    analysis = await run_analysis(
        body.utterances,
        _state(request, "narrative"),
        characteristics=body.speaker_characteristics,
        scorer=_state(request, "scorer"),
    )
    return _analysis_response(analysis)


@app.post("/api/hide-analysis")
async def hide_analysis(request: Request, body: RecordActionRequest):
    store = _state(request, "store")
    if not body.id:
        raise HTTPException(status_code=400, detail="Missing id")
    try:
        store.set_hidden(body.id, hidden=not body.unhide)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail=f"Analysis {body.id} not found")
    return {"success": True}


@app.post("/api/delete-analysis")
async def delete_analysis(request: Request, body: RecordActionRequest):
    store = _state(request, "store")
    if not body.id:
        raise HTTPException(status_code=400, detail="Missing id")
    try:
        store.delete(body.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail=f"Analysis {body.id} not found")
    return {"success": True}


@app.post("/api/clear-all")
async def clear_all(request: Request):
    errors = _state(request, "store").clear_all()
    if errors:
        return JSONResponse(
            content={"detail": "Some files could not be deleted", "errors": errors},
            status_code=500,
        )
    return {"success": True}


# ── Narrative collaborators ──

@app.post("/api/relationship-graph")
def relationship_graph(body: RelationshipGraphRequest):
    """Generate the participant relationship graph; graphData is a JSON-encoded string."""
    if not body.transcript.strip():
        raise HTTPException(status_code=400, detail="Missing or invalid transcript")
    try:
        graph = generate_relationship_graph(body.transcript)
    except Exception as e:
        logger.error(f"Relationship graph generation failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate relationship graph")
    return {"graphData": encode_graph(graph)}


@app.post("/api/summary-report")
def summary_report(body: SummaryReportRequest):
    """Generate a free-text meeting report."""
    if not body.transcript.strip():
        raise HTTPException(status_code=400, detail="Missing or invalid transcript")
    try:
        report = generate_summary_report(body.transcript, body.overall_sentiment, body.relationship_summary)
    except Exception as e:
        logger.error(f"Summary report generation failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate summary report")
    return {"summaryReport": report, "relationshipSummary": body.relationship_summary}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
