"""Tests for the narrative transports and the LLM-backed generators (no network calls)."""

import json

import httpx
import pytest
from pydantic import ValidationError
from unittest.mock import patch

from config.schemas import GraphLink, GraphNode, LinkType, RelationshipGraph
from services.narrative.client import (
    HttpNarrativeClient,
    LocalNarrativeService,
    build_narrative_service,
    parse_graph_data,
)
from services.narrative.generator import (
    encode_graph,
    generate_relationship_graph,
    generate_summary_report,
)


GRAPH_PAYLOAD = {
    "nodes": [{"id": "A", "label": "Speaker A", "group": 1}, {"id": "B", "label": "Speaker B", "group": 1}],
    "links": [{"source": "A", "target": "B", "type": "support", "value": 7}],
}


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ── graphData parsing ──

class TestParseGraphData:
    def test_json_string(self):
        graph = parse_graph_data(json.dumps(GRAPH_PAYLOAD))
        assert [n.id for n in graph.nodes] == ["A", "B"]
        assert graph.links[0].type == LinkType.SUPPORT
        assert graph.links[0].value == 7

    def test_decoded_object(self):
        graph = parse_graph_data(GRAPH_PAYLOAD)
        assert len(graph.links) == 1

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_graph_data("{not json")

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_graph_data("[1, 2]")
        with pytest.raises(ValueError):
            parse_graph_data(None)

    def test_wrong_shape(self):
        with pytest.raises(ValidationError):
            parse_graph_data({"nodes": [{"label": "no id"}]})

    def test_unknown_link_type_rejected(self):
        payload = {"nodes": [], "links": [{"source": "A", "target": "B", "type": "rivalry"}]}
        with pytest.raises(ValidationError):
            parse_graph_data(payload)

    def test_encode_round_trip(self):
        graph = RelationshipGraph(
            nodes=[GraphNode(id="A", label="Speaker A")],
            links=[GraphLink(source="A", target="A", type=LinkType.NEUTRAL)],
        )
        assert parse_graph_data(encode_graph(graph)) == graph


# ── HTTP transport ──

class TestHttpNarrativeClient:
    @pytest.mark.asyncio
    async def test_relationship_graph_request_and_string_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"graphData": json.dumps(GRAPH_PAYLOAD)})

        async with mock_client(handler) as client:
            narrative = HttpNarrativeClient(base_url="http://narrative.test/", client=client)
            graph = await narrative.relationship_graph("Speaker A: hi")

        assert seen["url"] == "http://narrative.test/api/relationship-graph"
        assert seen["body"] == {"transcript": "Speaker A: hi"}
        assert len(graph.nodes) == 2

    @pytest.mark.asyncio
    async def test_relationship_graph_object_payload(self):
        async with mock_client(lambda r: httpx.Response(200, json={"graphData": GRAPH_PAYLOAD})) as client:
            graph = await HttpNarrativeClient(base_url="http://narrative.test", client=client).relationship_graph("x")
        assert graph.links[0].source == "A"

    @pytest.mark.asyncio
    async def test_summary_report_request(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"summaryReport": "All good.", "relationshipSummary": "Friendly"})

        async with mock_client(handler) as client:
            narrative = HttpNarrativeClient(base_url="http://narrative.test", client=client)
            report, rel = await narrative.summary_report("Speaker A: hi", "Positive")

        assert seen["url"] == "http://narrative.test/api/summary-report"
        assert seen["body"] == {
            "transcript": "Speaker A: hi",
            "overallSentiment": "Positive",
            "relationshipSummary": "",
        }
        assert report == "All good."
        assert rel == "Friendly"

    @pytest.mark.asyncio
    async def test_summary_without_relationship_summary(self):
        async with mock_client(lambda r: httpx.Response(200, json={"summaryReport": "Done."})) as client:
            report, rel = await HttpNarrativeClient(base_url="http://n.test", client=client).summary_report("x", "Neutral")
        assert (report, rel) == ("Done.", "")

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        async with mock_client(lambda r: httpx.Response(500, json={"detail": "boom"})) as client:
            narrative = HttpNarrativeClient(base_url="http://n.test", client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await narrative.relationship_graph("x")

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self):
        async with mock_client(lambda r: httpx.Response(200, content=b"<html>")) as client:
            narrative = HttpNarrativeClient(base_url="http://n.test", client=client)
            with pytest.raises(ValueError):
                await narrative.summary_report("x", "Neutral")

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self):
        async with mock_client(lambda r: httpx.Response(200, json=["a"])) as client:
            narrative = HttpNarrativeClient(base_url="http://n.test", client=client)
            with pytest.raises(ValueError):
                await narrative.relationship_graph("x")

    @pytest.mark.asyncio
    async def test_missing_report_raises(self):
        async with mock_client(lambda r: httpx.Response(200, json={"summaryReport": 42})) as client:
            narrative = HttpNarrativeClient(base_url="http://n.test", client=client)
            with pytest.raises(ValueError):
                await narrative.summary_report("x", "Neutral")

    @pytest.mark.asyncio
    async def test_non_text_relationship_summary_raises(self):
        body = {"summaryReport": "Good meeting.", "relationshipSummary": {"oops": 1}}
        async with mock_client(lambda r: httpx.Response(200, json=body)) as client:
            narrative = HttpNarrativeClient(base_url="http://n.test", client=client)
            with pytest.raises(ValueError):
                await narrative.summary_report("x", "Neutral")

    @pytest.mark.asyncio
    async def test_null_relationship_summary_is_empty(self):
        body = {"summaryReport": "Done.", "relationshipSummary": None}
        async with mock_client(lambda r: httpx.Response(200, json=body)) as client:
            report, rel = await HttpNarrativeClient(base_url="http://n.test", client=client).summary_report("x", "Neutral")
        assert (report, rel) == ("Done.", "")


# ── In-process transport ──

class TestLocalNarrativeService:
    @pytest.mark.asyncio
    async def test_relationship_graph_uses_generator(self):
        graph = RelationshipGraph(nodes=[GraphNode(id="A", label="Speaker A")])
        with patch("services.narrative.client.generate_relationship_graph", return_value=graph) as gen:
            result = await LocalNarrativeService().relationship_graph("Speaker A: hi")
        gen.assert_called_once_with("Speaker A: hi")
        assert result == graph

    @pytest.mark.asyncio
    async def test_summary_report_echoes_relationship_summary(self):
        with patch("services.narrative.client.generate_summary_report", return_value="Short meeting.") as gen:
            report, rel = await LocalNarrativeService().summary_report("Speaker A: hi", "Neutral", "Cordial")
        gen.assert_called_once_with("Speaker A: hi", "Neutral", "Cordial")
        assert (report, rel) == ("Short meeting.", "Cordial")


class TestBuildNarrativeService:
    def test_url_selects_http(self):
        service = build_narrative_service("http://narrative.test")
        assert isinstance(service, HttpNarrativeClient)
        assert service.base_url == "http://narrative.test"

    def test_default_is_local(self):
        with patch("services.narrative.client.NARRATIVE_SERVICE_URL", ""):
            assert isinstance(build_narrative_service(), LocalNarrativeService)


# ── Generators ──

class TestGenerators:
    def test_relationship_graph_uses_structured_extraction(self):
        graph = RelationshipGraph.model_validate(GRAPH_PAYLOAD)
        with patch("services.narrative.generator.extract_structured", return_value=graph) as extract:
            result = generate_relationship_graph("Speaker A: hi\nSpeaker B: hello")
        assert result == graph
        kwargs = extract.call_args.kwargs
        assert kwargs["response_model"] is RelationshipGraph
        assert "Speaker B: hello" in kwargs["prompt"]

    def test_summary_report_strips_and_includes_context(self):
        with patch("services.narrative.generator.extract_raw", return_value="  Report text.\n") as extract:
            report = generate_summary_report("Speaker A: hi", "Negative", "Tense")
        assert report == "Report text."
        prompt = extract.call_args.args[0]
        assert "Overall meeting sentiment: Negative" in prompt
        assert "Relationship summary: Tense" in prompt
        assert "Speaker A: hi" in prompt

    def test_summary_report_without_relationship_line(self):
        with patch("services.narrative.generator.extract_raw", return_value="Ok.") as extract:
            generate_summary_report("Speaker A: hi", "Positive")
        assert "Relationship summary" not in extract.call_args.args[0]
