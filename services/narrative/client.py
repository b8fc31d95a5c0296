"""Narrative collaborators — relationship graph + summary report transports.

Two interchangeable implementations:
- HttpNarrativeClient: POSTs to a running InsightMeet (or compatible) server's
  /api/relationship-graph and /api/summary-report endpoints.
- LocalNarrativeService: calls the LLM generators in-process (worker thread).

Both raise on any failure. Fallback values are the enrichment adapter's job.
"""

import asyncio
import json
import os
from typing import Protocol

import httpx
from loguru import logger

from config.schemas import RelationshipGraph
from services.narrative.generator import generate_relationship_graph, generate_summary_report


NARRATIVE_SERVICE_URL = os.getenv("NARRATIVE_SERVICE_URL", "")
NARRATIVE_TIMEOUT = float(os.getenv("NARRATIVE_TIMEOUT", "120"))


class NarrativeService(Protocol):
    async def relationship_graph(self, transcript: str) -> RelationshipGraph: ...

    async def summary_report(
        self, transcript: str, overall_sentiment: str, relationship_summary: str = "",
    ) -> tuple[str, str]: ...


def parse_graph_data(graph_data) -> RelationshipGraph:
    """Validate a graphData payload (JSON string or decoded object) into a RelationshipGraph.

    Raises:
        ValueError: not JSON, not an object, or wrong shape (pydantic ValidationError)
    """
    if isinstance(graph_data, (str, bytes)):
        graph_data = json.loads(graph_data)
    if not isinstance(graph_data, dict):
        raise ValueError(f"graphData must be an object, got {type(graph_data).__name__}")
    return RelationshipGraph.model_validate(graph_data)


class HttpNarrativeClient:
    """HTTP transport for the narrative collaborators."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or NARRATIVE_SERVICE_URL or "http://localhost:8000").rstrip("/")
        self.timeout = timeout or NARRATIVE_TIMEOUT
        self._client = client

    async def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            resp = await self._client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"{path} returned {type(data).__name__}, expected an object")
        return data

    async def relationship_graph(self, transcript: str) -> RelationshipGraph:
        data = await self._post("/api/relationship-graph", {"transcript": transcript})
        return parse_graph_data(data.get("graphData"))

    async def summary_report(
        self, transcript: str, overall_sentiment: str, relationship_summary: str = "",
    ) -> tuple[str, str]:
        data = await self._post("/api/summary-report", {
            "transcript": transcript,
            "overallSentiment": overall_sentiment,
            "relationshipSummary": relationship_summary,
        })
        report = data.get("summaryReport")
        if not isinstance(report, str):
            raise ValueError("summary-report response has no summaryReport text")
        relationship = data.get("relationshipSummary")
        if relationship is not None and not isinstance(relationship, str):
            raise ValueError(f"relationshipSummary must be text, got {type(relationship).__name__}")
        return report, relationship or ""


class LocalNarrativeService:
    """In-process transport: runs the blocking LLM generators in a worker thread."""

    async def relationship_graph(self, transcript: str) -> RelationshipGraph:
        return await asyncio.to_thread(generate_relationship_graph, transcript)

    async def summary_report(
        self, transcript: str, overall_sentiment: str, relationship_summary: str = "",
    ) -> tuple[str, str]:
        report = await asyncio.to_thread(
            generate_summary_report, transcript, overall_sentiment, relationship_summary,
        )
        return report, relationship_summary


def build_narrative_service(base_url: str | None = None) -> NarrativeService:
    """HTTP client when a service URL is configured, otherwise in-process generation."""
    url = base_url or NARRATIVE_SERVICE_URL
    if url:
        logger.info(f"Narrative enrichment via HTTP at {url}")
        return HttpNarrativeClient(base_url=url)
    logger.info("Narrative enrichment in-process (LLM client)")
    return LocalNarrativeService()
