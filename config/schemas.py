"""InsightMeet Pydantic schemas — diarized input, analytics output, persisted records.

Models exchanged with the dashboard serialize with camelCase keys
(``model_dump(by_alias=True)``) and accept either camelCase or snake_case on input.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── DIARIZATION INPUT ──

class Utterance(CamelModel):
    """A single speaker-tagged utterance as produced by the diarization engine."""
    speaker_index: int = Field(ge=0, alias="speaker", description="Raw diarization speaker index")
    text: str = ""
    start_sec: Optional[float] = Field(None, description="Approximate start time (seconds)")
    end_sec: Optional[float] = Field(None, description="Approximate end time (seconds)")


class DiarizationResult(CamelModel):
    utterances: list[Utterance] = Field(default_factory=list)


class SpeakerCharacteristic(CamelModel):
    """Visual description of a speaker detected from video frames."""
    description: str
    confidence: float = Field(ge=0, le=1)


# ── SPEAKERS & SENTIMENT ──

class SentimentLabel(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


class ResolvedSpeaker(CamelModel):
    """Stable display identity for one raw speaker index within an analysis run."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(description="'A', 'B', ... 'Z', 'AA', ... by first appearance")
    label: str = Field(description="'Speaker ' + id")
    color_token: str
    description: str = ""


class SentimentResult(BaseModel):
    """Scorer output for one utterance."""
    score: float = Field(ge=-1, le=1)
    label: SentimentLabel
    emotion: str


# ── ANALYTICS OUTPUT ──

class TranscriptEntry(CamelModel):
    sequence_id: int = Field(ge=1, description="1-based position in the utterance list")
    speaker_id: str
    speaker_label: str
    color_token: str
    text: str
    sentiment_label: SentimentLabel
    emotion_label: str
    timestamp: str = Field(description="'00:SS', display capped at 59 seconds")
    sentiment_score: float = Field(0.0, ge=-1, le=1)
    duration_seconds: int = Field(1, ge=1)


class ParticipationMetric(CamelModel):
    speaker_id: str
    label: str
    color_token: str
    speaking_time_seconds: int = Field(ge=0)
    conflict_score: int = Field(ge=0, le=20, description="0 (fully positive) .. 20 (fully negative)")
    sentiment_label: SentimentLabel
    average_score: float = Field(0.0, ge=-1, le=1)

    @property
    def speaking_time(self) -> str:
        return f"{self.speaking_time_seconds} sec"


class SpeakerValue(CamelModel):
    speaker_id: str
    value: float = Field(ge=-1, le=1)


class EmotionTimelinePoint(CamelModel):
    """One point on the emotion timeline: a time label plus one value per speaker."""
    time_label: str
    values: list[SpeakerValue] = Field(default_factory=list)

    def value_for(self, speaker_id: str) -> float | None:
        for v in self.values:
            if v.speaker_id == speaker_id:
                return v.value
        return None

    def as_row(self) -> dict:
        """Chart row shape: {"time": "0:12", "A": 0.4, "B": -0.2}."""
        row: dict = {"time": self.time_label}
        for v in self.values:
            row[v.speaker_id] = v.value
        return row


class LinkType(str, Enum):
    SUPPORT = "support"
    CONFLICT = "conflict"
    NEUTRAL = "neutral"


class GraphNode(CamelModel):
    id: str
    label: str
    group: int = 0


class GraphLink(CamelModel):
    source: str
    target: str
    type: LinkType = LinkType.NEUTRAL
    value: float = 1.0


class RelationshipGraph(CamelModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)


class SummaryData(CamelModel):
    title: str = "Dynamic Analysis Report"
    overall_sentiment: SentimentLabel = SentimentLabel.POSITIVE
    points: list[str] = Field(default_factory=list)
    relationship_summary: str = ""
    summary_report: str = ""


class AnalysisData(CamelModel):
    """The complete analytics object rendered by the dashboard."""
    summary: SummaryData = Field(default_factory=SummaryData)
    transcript: list[TranscriptEntry] = Field(default_factory=list)
    participation: list[ParticipationMetric] = Field(default_factory=list)
    emotion_timeline: list[EmotionTimelinePoint] = Field(default_factory=list)
    relationship_graph: RelationshipGraph = Field(default_factory=RelationshipGraph)


# ── PERSISTENCE ──

class AnalysisRecord(CamelModel):
    """One saved upload: the diarization output plus optional video enrichment."""
    id: Optional[str] = None
    created_at: str
    mime_type: str = "audio/wav"
    file_name: Optional[str] = None
    hidden: bool = False
    diarization_result: DiarizationResult = Field(default_factory=DiarizationResult)
    speaker_characteristics: dict[int, SpeakerCharacteristic] = Field(default_factory=dict)


class AnalysisListItem(CamelModel):
    id: str
    created_at: str
    file_name: Optional[str] = None
    hidden: bool = False


# ── REQUEST BODIES ──

class AnalyzeRequest(CamelModel):
    utterances: list[Utterance] = Field(default_factory=list)
    speaker_characteristics: dict[int, SpeakerCharacteristic] = Field(default_factory=dict)


class RelationshipGraphRequest(CamelModel):
    transcript: str = ""


class SummaryReportRequest(CamelModel):
    transcript: str = ""
    overall_sentiment: str = SentimentLabel.NEUTRAL.value
    relationship_summary: str = ""


class RecordActionRequest(CamelModel):
    id: str = ""
    unhide: bool = False
