"""Sentiment + Emotion scoring — per-utterance score in [-1, 1] with discrete labels.

Two scorers share one interface (``analyze(text) -> SentimentResult``):
1. LexiconScorer — fixed positive/negative word lists, fully reproducible.
2. TransformerEmotionScorer — Hugging Face text-classification emotion model
   (6 emotions), loaded once when the scorer is constructed.

The application builds one scorer at startup and passes it to every pipeline run.
"""

import re
from typing import Protocol

from loguru import logger

from config.schemas import SentimentLabel, SentimentResult

try:
    from transformers import pipeline as hf_pipeline
    HAS_TRANSFORMERS = True
except ImportError:
    HAS_TRANSFORMERS = False
    logger.debug("transformers not installed — transformer emotion scorer unavailable")


POSITIVE_WORDS = frozenset({
    "good", "great", "excellent", "agree", "yes", "ok", "thanks", "thank",
    "love", "like", "clear", "awesome", "nice", "happy", "support", "strong",
    "well", "congrats", "congratulations", "cheers", "success", "improve",
    "improved", "improving",
})

NEGATIVE_WORDS = frozenset({
    "bad", "worse", "worst", "disagree", "no", "not", "confused", "issue",
    "problem", "hate", "angry", "sad", "conflict", "weak", "blocker", "delay",
    "fail", "failed", "failing", "bug", "risk", "concern", "concerns",
})

LEXICON_WEIGHT = 2

# Strict comparisons; a score of exactly ±0.3 is Neutral
POSITIVE_THRESHOLD = 0.3
NEGATIVE_THRESHOLD = -0.3

# First match wins; positive thresholds are "score > t", negative "score < t"
_POSITIVE_EMOTIONS = [(0.7, "joy"), (0.4, "calm"), (0.2, "supportive")]
_NEGATIVE_EMOTIONS = [(-0.7, "anger"), (-0.4, "sadness"), (-0.2, "critical")]


_TOKEN_RE = re.compile(r"[a-z']+")


def tokenize(text: str) -> list[str]:
    """Lowercase and split into maximal runs of letters/apostrophes."""
    return _TOKEN_RE.findall(text.lower())


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def score_text(text: str) -> float:
    """Weighted lexicon score in [-1, 1]; exactly 0.0 when no lexicon word appears."""
    score = 0
    weight = 0
    for token in tokenize(text):
        if token in POSITIVE_WORDS:
            score += LEXICON_WEIGHT
            weight += LEXICON_WEIGHT
        if token in NEGATIVE_WORDS:
            score -= LEXICON_WEIGHT
            weight += LEXICON_WEIGHT

    if weight <= 0:
        return 0.0
    return clamp(score / weight)


def sentiment_label(score: float) -> SentimentLabel:
    if score > POSITIVE_THRESHOLD:
        return SentimentLabel.POSITIVE
    if score < NEGATIVE_THRESHOLD:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


def emotion_label(score: float) -> str:
    for threshold, label in _POSITIVE_EMOTIONS:
        if score > threshold:
            return label
    for threshold, label in _NEGATIVE_EMOTIONS:
        if score < threshold:
            return label
    return "neutral"


def sentiment_value(label: SentimentLabel) -> int:
    """Positive → +1, Negative → -1, Neutral → 0."""
    if label == SentimentLabel.POSITIVE:
        return 1
    if label == SentimentLabel.NEGATIVE:
        return -1
    return 0


class SentimentScorer(Protocol):
    def analyze(self, text: str) -> SentimentResult: ...


class LexiconScorer:
    """Reproducible word-list scorer. Stateless; safe to share across requests."""

    name = "lexicon"

    def analyze(self, text: str) -> SentimentResult:
        score = score_text(text)
        return SentimentResult(score=score, label=sentiment_label(score), emotion=emotion_label(score))


# distilbert emotion model labels, grouped by polarity
POSITIVE_EMOTIONS = frozenset({"joy", "love", "surprise"})
NEGATIVE_EMOTIONS = frozenset({"anger", "sadness", "fear"})

DEFAULT_EMOTION_MODEL = "bhadresh-savani/distilbert-base-uncased-emotion"


def emotion_to_score(emotion: str, confidence: float) -> float:
    """Signed score from a classifier label: +confidence, -confidence, or 0."""
    emotion = emotion.lower().strip()
    if emotion in POSITIVE_EMOTIONS:
        return clamp(confidence)
    if emotion in NEGATIVE_EMOTIONS:
        return clamp(-confidence)
    return 0.0


class TransformerEmotionScorer:
    """Emotion classifier scorer backed by a transformers text-classification pipeline.

    The model is loaded in the constructor, so build this once at process start
    and hand the instance to the pipeline. Pass ``classifier`` to reuse an
    already-loaded pipeline (or a stand-in with the same call signature).
    """

    name = "transformer"

    def __init__(self, model_name: str = DEFAULT_EMOTION_MODEL, device: int = -1, classifier=None):
        self.model_name = model_name
        if classifier is not None:
            self._classifier = classifier
            return
        if not HAS_TRANSFORMERS:
            raise RuntimeError("transformers is required for TransformerEmotionScorer (pip install insightmeet[ml])")

        logger.info(f"Loading emotion classifier ({model_name}) on {'CPU' if device < 0 else f'cuda:{device}'}...")
        self._classifier = hf_pipeline(
            "text-classification",
            model=model_name,
            device=device,
            truncation=True,
            max_length=512,
        )
        logger.info("Emotion classifier loaded")

    def analyze(self, text: str) -> SentimentResult:
        if not text.strip():
            return SentimentResult(score=0.0, label=SentimentLabel.NEUTRAL, emotion="neutral")

        result = self._classifier(text[:512])[0]
        emotion = result["label"].lower().strip()
        score = emotion_to_score(emotion, float(result["score"]))
        return SentimentResult(score=score, label=sentiment_label(score), emotion=emotion)


def build_scorer(emotion_model: str | None = None) -> SentimentScorer:
    """Construct the process-wide scorer: transformer when a model is named, else lexicon."""
    if emotion_model:
        return TransformerEmotionScorer(emotion_model)
    return LexiconScorer()
