"""
NDJSON event stream decoding for the agent CLI.

StreamDecoder is a per-invocation state machine: feed() it one line at a time
and it keeps the best Response Candidate seen so far, telling the caller when
to stop reading. decode_stream() drives it from a live process handle.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, Protocol

from ...constants import SCHEMA_FIELDS
from ...exceptions import ProcessExitedWithError, ProcessTimedOut
from ..validation import looks_like_sentiment
from .extract import extract_json_object, strip_ansi

logger = logging.getLogger(__name__)


class Deadline:
    """Monotonic deadline shared by every step of one invocation."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self.at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.at

    def timed_out(self) -> ProcessTimedOut:
        return ProcessTimedOut(self.seconds)


class EventKind(str, Enum):
    METADATA = "metadata"
    COMPLETION = "completion"
    TEXT = "text"
    SAY = "say"
    REASONING = "reasoning"
    ASK = "ask"
    HEARTBEAT = "heartbeat"
    UNKNOWN = "unknown"


class Provenance(IntEnum):
    """Candidate sources; a lower value outranks a higher one."""
    METADATA = 1
    COMPLETION_RESULT = 2
    TEXT = 3
    SAY = 4
    RAW_LINE = 5
    RAW_OUTPUT = 6


HEARTBEAT_TYPES = frozenset({"heartbeat", "ping", "keepalive"})


@dataclass(frozen=True)
class EventRecord:
    kind: EventKind
    content: str | None = None
    metadata: dict | None = None
    ask_kind: str | None = None
    say_kind: str | None = None


def classify_event(obj: dict) -> EventRecord:
    """Decode one parsed NDJSON object field by field into an EventRecord."""
    etype = obj.get("type") if isinstance(obj.get("type"), str) else None
    content = obj.get("content") if isinstance(obj.get("content"), str) else None
    metadata = obj.get("metadata") if isinstance(obj.get("metadata"), dict) else None
    say = obj.get("say") if isinstance(obj.get("say"), str) else None
    ask = obj.get("ask") if isinstance(obj.get("ask"), str) else None

    if metadata is not None and looks_like_sentiment(metadata):
        return EventRecord(EventKind.METADATA, content, metadata)
    if etype == "completion_result":
        return EventRecord(EventKind.COMPLETION, content, metadata)
    if etype == "text":
        return EventRecord(EventKind.TEXT, content, metadata)
    if etype == "reasoning":
        return EventRecord(EventKind.REASONING, content, metadata)
    if etype == "say":
        if say == "reasoning":
            return EventRecord(EventKind.REASONING, content, metadata, say_kind=say)
        if say == "completion_result":
            return EventRecord(EventKind.COMPLETION, content, metadata, say_kind=say)
        return EventRecord(EventKind.SAY, content, metadata, say_kind=say)
    if etype == "ask":
        return EventRecord(EventKind.ASK, content, metadata, ask_kind=ask)
    if etype in HEARTBEAT_TYPES:
        return EventRecord(EventKind.HEARTBEAT)
    return EventRecord(EventKind.UNKNOWN, content, metadata)


@dataclass
class ResponseCandidate:
    provenance: Provenance
    text: str


@dataclass(frozen=True)
class StreamResult:
    candidate: ResponseCandidate
    raw_text: str
    exit_code: int | None
    stderr: str = ""
    terminated_early: bool = False
    lines_seen: int = 0


class StreamDecoder:
    """Keeps the highest-priority candidate; see feed() for the stop rules."""

    def __init__(self, anchors: tuple[str, ...] = SCHEMA_FIELDS):
        self.anchors = anchors
        self.candidate: ResponseCandidate | None = None
        self.lines: list[str] = []
        self.done = False
        self.terminate_requested = False

    @property
    def lines_seen(self) -> int:
        return len(self.lines)

    def _offer(self, provenance: Provenance, text: str) -> None:
        # equal rank replaces too: the agent re-sends full snapshots, not deltas
        if self.candidate is None or provenance <= self.candidate.provenance:
            self.candidate = ResponseCandidate(provenance, text)
            logger.debug("Candidate <- %s (%d chars)", provenance.name, len(text))

    def feed(self, raw_line: str) -> bool:
        """Consume one line. Returns True when no further lines should be read."""
        if self.done:
            return True
        line = strip_ansi(raw_line).replace("\r", "").strip()
        if not line:
            return False
        self.lines.append(line)

        try:
            obj = json.loads(line)
        except (ValueError, RecursionError):
            obj = None
        if not isinstance(obj, dict):
            recovered = extract_json_object(line, self.anchors)
            if recovered is not None:
                self._offer(Provenance.RAW_LINE, json.dumps(recovered))
            return False

        event = classify_event(obj)
        if event.kind is EventKind.UNKNOWN and looks_like_sentiment(obj):
            # a bare payload object printed on its own line
            self._offer(Provenance.RAW_LINE, line)
            return False
        return self._on_event(event)

    def _on_event(self, event: EventRecord) -> bool:
        content = (event.content or "").strip()
        if event.kind is EventKind.METADATA:
            self._offer(Provenance.METADATA, json.dumps(event.metadata))
            self.done = True
        elif event.kind is EventKind.COMPLETION and content:
            self._offer(Provenance.COMPLETION_RESULT, event.content)
            self.done = True
        elif event.kind is EventKind.TEXT and content:
            self._offer(Provenance.TEXT, event.content)
        elif event.kind is EventKind.SAY and content:
            self._offer(Provenance.SAY, event.content)
        elif event.kind is EventKind.ASK and event.ask_kind == "completion_result":
            # the agent now waits for confirmation and would hang forever
            self.terminate_requested = True
            self.done = True
        return self.done

    @property
    def raw_text(self) -> str:
        return "\n".join(self.lines)

    def finish(self, exit_code: int | None, stderr: str = "") -> StreamResult:
        """Finalize the candidate. Raw output is the last resort; no output at all is an error."""
        candidate = self.candidate
        raw = self.raw_text
        if candidate is None and raw.strip():
            candidate = ResponseCandidate(Provenance.RAW_OUTPUT, raw)
        if candidate is None or not candidate.text.strip():
            raise ProcessExitedWithError(exit_code, stderr)
        if exit_code not in (0, None):
            logger.info("Agent exited with code %s but produced a %s candidate; using it",
                        exit_code, candidate.provenance.name)
        return StreamResult(
            candidate=candidate,
            raw_text=raw,
            exit_code=exit_code,
            stderr=stderr,
            terminated_early=self.terminate_requested,
            lines_seen=self.lines_seen,
        )


def iter_output_texts(raw_text: str) -> Iterator[str]:
    """
    Newest-first texts worth rescanning: event contents (reasoning and
    heartbeats skipped) and non-JSON lines as they are.
    """
    for line in reversed(raw_text.splitlines()):
        try:
            obj = json.loads(line)
        except (ValueError, RecursionError):
            yield line
            continue
        if not isinstance(obj, dict):
            continue
        event = classify_event(obj)
        if event.kind in (EventKind.REASONING, EventKind.HEARTBEAT):
            continue
        if event.kind is EventKind.UNKNOWN and looks_like_sentiment(obj):
            yield line
        elif event.content:
            yield event.content


class LineSource(Protocol):
    def lines(self, deadline: Deadline) -> Iterator[str]: ...
    def wait(self, deadline: Deadline) -> int | None: ...
    def wait_or_terminate(self, grace: float) -> int | None: ...
    def terminate(self) -> int | None: ...
    def stderr_text(self) -> str: ...


def decode_stream(handle: LineSource, decoder: StreamDecoder, deadline: Deadline,
                  grace: float = 2.0) -> StreamResult:
    """Read lines until the decoder is satisfied or the stream closes, then settle the process."""
    for line in handle.lines(deadline):
        if decoder.feed(line):
            break

    if decoder.terminate_requested:
        logger.info("Agent asked for completion confirmation; terminating process")
        exit_code = handle.terminate()
    elif decoder.done:
        exit_code = handle.wait_or_terminate(min(grace, deadline.remaining()))
    else:
        exit_code = handle.wait(deadline)

    return decoder.finish(exit_code, handle.stderr_text())
