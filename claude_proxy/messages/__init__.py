"""Provider-independent Anthropic Messages helpers.

History reconciliation, request validation, tool argument repair, JSON
schema cleaning and the canonical event stream driver shared by every
provider translator.
"""

from .arguments import decode_tool_arguments
from .reconciler import classify_result, reconcile, successful_result_ids
from .schema import GEMINI_SCHEMA_RULES, OPENAI_SCHEMA_RULES, SchemaRules, clean_json_schema
from .stream import StreamCursor, translate_frames, translate_stream
from .validation import validate_canonical_request

__all__ = [
    "GEMINI_SCHEMA_RULES",
    "OPENAI_SCHEMA_RULES",
    "SchemaRules",
    "StreamCursor",
    "classify_result",
    "clean_json_schema",
    "decode_tool_arguments",
    "reconcile",
    "successful_result_ids",
    "translate_frames",
    "translate_stream",
    "validate_canonical_request",
]
