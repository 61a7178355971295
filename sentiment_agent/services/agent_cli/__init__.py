from .extract import extract_payload, extract_json_object, extract_markdown_fields
from .launcher import (
    AgentLauncher, InvocationRequest, SchemaHint, LaunchStrategy,
    TempFileStrategy, InlineStrategy, ShellPipeStrategy,
)
from .stream import Deadline, StreamDecoder, StreamResult, Provenance, EventKind, iter_output_texts

__all__ = [
    "extract_payload", "extract_json_object", "extract_markdown_fields",
    "AgentLauncher", "InvocationRequest", "SchemaHint", "LaunchStrategy",
    "TempFileStrategy", "InlineStrategy", "ShellPipeStrategy",
    "Deadline", "StreamDecoder", "StreamResult", "Provenance", "EventKind", "iter_output_texts",
]
