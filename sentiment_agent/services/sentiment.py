# sentiment_agent/services/sentiment.py
"""
Sentiment pipeline orchestrator.

    Idle -> Invoking -> Streaming -> Extracting -> Validating -> Done
                      \\______________ TimedOut _______________/

Any agent failure (launch, exit, timeout, unrecoverable output) lands in the
keyword heuristic instead of reaching the caller. Empty input short-circuits
to the NOT_AVAILABLE sentinel without spawning anything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence

from ..config import settings
from ..exceptions import AgentProcessError, NoRecoverablePayload, ProcessTimedOut
from .agent_cli import (
    AgentLauncher, Deadline, InvocationRequest, Provenance,
    extract_json_object, extract_markdown_fields, extract_payload, iter_output_texts,
)
from .heuristic import analyze_headlines_heuristic
from .toon import to_toon
from .validation import SentimentRecord, looks_like_sentiment, normalize_sentiment

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    INVOKING = "invoking"
    STREAMING = "streaming"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    DONE = "done"
    TIMED_OUT = "timed_out"


@dataclass
class PipelineRun:
    """Per-invocation bookkeeping; never shared between invocations."""
    state: PipelineState = PipelineState.IDLE
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    error: Exception | None = None
    provenance: Provenance | None = None

    def to(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)


@dataclass(frozen=True)
class AnalysisOutcome:
    record: SentimentRecord
    run: PipelineRun


def build_sentiment_prompt(table: str) -> str:
    return f"""
You are an expert Market Sentiment Analyst for ES Futures (S&P 500).

TASK:
Analyze the provided TOON data and return valid JSON.

CRITICAL:
- Output ONLY the JSON object
- No markdown, no explanations
- Must be parseable by JSON.parse()

EXAMPLE:
{{
  "sentiment": "BEARISH",
  "score": -25,
  "catalysts": ["Bitcoin decline", "Fed hawkish"],
  "risk_level": "HIGH",
  "summary": "Market sentiment is negative due to..."
}}

STRUCTURE:
{{
  "sentiment": "BULLISH" | "BEARISH" | "NEUTRAL",
  "score": number between -100 and 100,
  "catalysts": ["string", "string"],
  "risk_level": "LOW" | "MEDIUM" | "HIGH",
  "summary": "Brief explanation"
}}

DATA:
{table}

RULES:
1. Analyze all headlines
2. Return ONLY JSON
3. No conversational text
"""


def headlines_table(headlines: Sequence[Mapping]) -> str:
    return to_toon("headlines", [{"title": h.get("title"), "src": h.get("source")} for h in headlines])


class SentimentPipeline:
    """Stateless between calls; safe to share across threads."""

    def __init__(self, launcher: AgentLauncher | None = None, timeout: float | None = None):
        self.launcher = launcher or AgentLauncher()
        self.timeout = timeout if timeout is not None else settings.agent_timeout_sec

    def analyze(self, headlines: Sequence[Mapping]) -> SentimentRecord:
        return self.run(headlines).record

    def run(self, headlines: Sequence[Mapping]) -> AnalysisOutcome:
        run = PipelineRun()
        if not headlines:
            logger.info("No headlines; skipping agent invocation")
            run.to(PipelineState.DONE)
            return AnalysisOutcome(SentimentRecord.not_available("No news data from any source"), run)

        prompt = build_sentiment_prompt(headlines_table(headlines))
        logger.info("Analyzing %d headlines (prompt %d chars)", len(headlines), len(prompt))
        try:
            record = self._invoke(InvocationRequest(prompt=prompt), run)
        except (AgentProcessError, NoRecoverablePayload) as exc:
            run.error = exc
            run.to(PipelineState.TIMED_OUT if isinstance(exc, ProcessTimedOut) else PipelineState.DONE)
            logger.warning("Agent analysis unusable (%s: %s); falling back to pattern-based analysis",
                           type(exc).__name__, exc)
            return AnalysisOutcome(analyze_headlines_heuristic(headlines), run)
        run.to(PipelineState.DONE)
        return AnalysisOutcome(record, run)

    def _invoke(self, request: InvocationRequest, run: PipelineRun) -> SentimentRecord:
        run.to(PipelineState.INVOKING)
        deadline = Deadline(self.timeout)
        # launcher.run spawns and streams in one go
        run.to(PipelineState.STREAMING)
        result = self.launcher.run(request, deadline)
        run.provenance = result.candidate.provenance

        run.to(PipelineState.EXTRACTING)
        if deadline.expired():
            raise deadline.timed_out()
        try:
            payload = extract_payload(result.candidate.text, request.anchors)
        except NoRecoverablePayload:
            if result.candidate.provenance is Provenance.RAW_OUTPUT:
                raise
            logger.info("Nothing recoverable in %s candidate; scanning full output",
                        result.candidate.provenance.name)
            payload = self._rescan(result.raw_text, request, deadline)

        run.to(PipelineState.VALIDATING)
        return normalize_sentiment(payload)

    def _rescan(self, raw_text: str, request: InvocationRequest, deadline: Deadline) -> dict:
        """Newest output first, one bounded extraction per event; Markdown over all of it last."""
        texts = []
        for text in iter_output_texts(raw_text):
            if deadline.expired():
                raise deadline.timed_out()
            obj = extract_json_object(text, request.anchors)
            if looks_like_sentiment(obj):
                return obj
            texts.append(text)
        if deadline.expired():
            raise deadline.timed_out()
        md = extract_markdown_fields("\n".join(reversed(texts)))
        if md is None:
            raise NoRecoverablePayload("Full agent output holds no sentiment fields")
        return md


def analyze_headlines(headlines: Sequence[Mapping], pipeline: SentimentPipeline | None = None) -> SentimentRecord:
    return (pipeline or SentimentPipeline()).analyze(headlines)
