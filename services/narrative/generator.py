"""Narrative generation — relationship graph and summary report from a flattened transcript.

This is the server side of the two enrichment collaborators. Both take the
transcript as "Speaker A: text" lines.
"""

import json

from loguru import logger

from config.schemas import RelationshipGraph
from services.llm.client import extract_raw, extract_structured


GRAPH_SYSTEM_PROMPT = (
    "You analyze meeting transcripts and map how participants relate to each other. "
    "Return JSON with 'nodes' and 'links'. Each node is one speaker: "
    "{\"id\": \"A\", \"label\": \"Speaker A\", \"group\": 1}. "
    "Each link connects two speaker ids: "
    "{\"source\": \"A\", \"target\": \"B\", \"type\": \"support\"|\"conflict\"|\"neutral\", \"value\": 1-10}. "
    "'value' is the strength of the interaction. Only use speakers that appear in the transcript."
)

SUMMARY_SYSTEM_PROMPT = (
    "You write concise meeting reports. Cover the main topics, decisions, disagreements "
    "and action items in short declarative sentences, one idea per sentence. "
    "Do not use bullet characters or headings."
)

SUMMARY_PROMPT_TEMPLATE = (
    "Overall meeting sentiment: {overall_sentiment}\n"
    "{relationship_line}"
    "Transcript:\n{transcript}\n\n"
    "Write the summary report."
)


def generate_relationship_graph(transcript: str, model: str | None = None) -> RelationshipGraph:
    """Ask the LLM for the participant relationship graph."""
    graph = extract_structured(
        prompt=f"Transcript:\n{transcript}",
        response_model=RelationshipGraph,
        model=model,
        system_prompt=GRAPH_SYSTEM_PROMPT,
    )
    logger.info(f"Relationship graph generated: {len(graph.nodes)} nodes, {len(graph.links)} links")
    return graph


def encode_graph(graph: RelationshipGraph) -> str:
    """JSON-encode a graph the way the relationship-graph endpoint returns it."""
    return json.dumps(graph.model_dump(by_alias=True, mode="json"))


def generate_summary_report(
    transcript: str,
    overall_sentiment: str,
    relationship_summary: str = "",
    model: str | None = None,
) -> str:
    """Ask the LLM for a free-text summary report."""
    relationship_line = f"Relationship summary: {relationship_summary}\n" if relationship_summary else ""
    prompt = SUMMARY_PROMPT_TEMPLATE.format(
        overall_sentiment=overall_sentiment,
        relationship_line=relationship_line,
        transcript=transcript,
    )
    report = extract_raw(prompt, model=model, system_prompt=SUMMARY_SYSTEM_PROMPT).strip()
    logger.info(f"Summary report generated ({len(report)} chars)")
    return report
