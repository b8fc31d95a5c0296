"""Narrative enrichment — relationship graph + summary report merged into the analysis.

Enrichment never aborts an analysis: any collaborator failure (HTTP error,
timeout, malformed JSON, wrong shape) is logged and replaced by an empty
graph / empty report.
"""

import re

from loguru import logger

from config.schemas import RelationshipGraph, SentimentLabel, SummaryData, TranscriptEntry
from services.narrative.client import NarrativeService


# Counting order doubles as the tie-break order for the overall sentiment
SENTIMENT_ORDER = [SentimentLabel.POSITIVE, SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL]

_POINT_SPLIT_RE = re.compile(r"[\n.]")


def format_transcript(entries: list[TranscriptEntry]) -> str:
    """Flatten to "Speaker A: text" lines."""
    return "\n".join(f"{e.speaker_label}: {e.text}" for e in entries)


def count_sentiments(entries: list[TranscriptEntry]) -> dict[SentimentLabel, int]:
    counts = {label: 0 for label in SENTIMENT_ORDER}
    for e in entries:
        counts[e.sentiment_label] += 1
    return counts


def overall_sentiment(entries: list[TranscriptEntry]) -> SentimentLabel:
    """Majority label; ties go to the earlier label in Positive, Negative, Neutral order."""
    counts = count_sentiments(entries)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[0][0]


def split_key_points(report: str) -> list[str]:
    """Split a report on newlines and periods, dropping empty/whitespace-only fragments."""
    return [p for p in _POINT_SPLIT_RE.split(report) if p.strip()]


async def enrich(
    entries: list[TranscriptEntry],
    narrative: NarrativeService | None,
    run_id: str = "-",
) -> tuple[SummaryData, RelationshipGraph]:
    """Call the graph then the summary collaborator (sequentially) and build the summary block.

    Args:
        entries: Finalized transcript entries
        narrative: Collaborator transport; None skips both calls
        run_id: Short id used to tag log lines

    Returns:
        (SummaryData, RelationshipGraph) with fallbacks applied
    """
    sentiment = overall_sentiment(entries)
    summary = SummaryData(overall_sentiment=sentiment)
    graph = RelationshipGraph()

    if narrative is None or not entries:
        logger.info(f"[{run_id}] Enrichment skipped (no transcript or no narrative service)")
        return summary, graph

    transcript_text = format_transcript(entries)

    try:
        graph = await narrative.relationship_graph(transcript_text)
    except Exception as e:
        logger.warning(f"[{run_id}] Relationship graph failed (using empty graph): {e}")
        graph = RelationshipGraph()

    try:
        report, relationship_summary = await narrative.summary_report(
            transcript_text, sentiment.value, "",
        )
        summary.summary_report = report
        summary.points = split_key_points(report)
        summary.relationship_summary = relationship_summary
    except Exception as e:
        logger.warning(f"[{run_id}] Summary report failed (using empty summary): {e}")
        summary.summary_report = ""
        summary.points = []
        summary.relationship_summary = ""

    logger.info(
        f"[{run_id}] Enrichment done: graph={len(graph.nodes)} nodes/{len(graph.links)} links, "
        f"{len(summary.points)} key points, overall={sentiment.value}"
    )
    return summary, graph
