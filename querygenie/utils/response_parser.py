"""
Parsing of raw model output into a TranslationResult.

Parsing is an ordered chain of attempts: strict JSON, then the first
brace-delimited block, then a bare `db.<collection>.<op>(...)` call found in
free text. The first attempt that succeeds decides the result.
"""

import json
import re
from typing import Any, Callable, NamedTuple, Optional, Sequence

from querygenie.models import (
    ErrorTranslation,
    GreetingTranslation,
    QueryTranslation,
    TranslationResult,
)
from querygenie.utils.logger import get_logger

logger = get_logger(__name__)

UNPARSEABLE_MESSAGE = "Unable to parse AI response. Please try rephrasing your query."
INVALID_STRUCTURE_MESSAGE = "Invalid response structure"

_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")
_SHELL_QUERY_RE = re.compile(
    r"db\.(\w+)\.(find|findOne|aggregate|insertOne|updateOne|updateMany|deleteOne|deleteMany|countDocuments)\([^)]*\)"
)


class ParseAttempt(NamedTuple):
    ok: bool
    result: Optional[TranslationResult] = None
    reason: str = ""


def _coerce_error(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return json.dumps(error, default=str)


def interpret_response_object(parsed: dict) -> TranslationResult:
    """Map a decoded model response onto one TranslationResult arm."""
    if parsed.get("message"):
        return GreetingTranslation(message=str(parsed["message"]))

    if parsed.get("error"):
        return ErrorTranslation(reason=_coerce_error(parsed["error"]))

    confidence = 0.9 if parsed.get("safety_check") == "Passed" else 0.5

    if parsed.get("query"):
        return QueryTranslation(
            query=str(parsed["query"]),
            collection=parsed.get("collection") or "unknown",
            operation=parsed.get("operation") or "find",
            explanation=parsed.get("explanation") or "Query generated",
            confidence=confidence,
        )

    if parsed.get("collection") and parsed.get("operation"):
        collection, operation = parsed["collection"], parsed["operation"]
        return QueryTranslation(
            query=f"db.{collection}.{operation}({{}})",
            collection=collection,
            operation=operation,
            explanation=parsed.get("explanation") or "Query generated",
            confidence=confidence,
        )

    return ErrorTranslation(reason=INVALID_STRUCTURE_MESSAGE)


def _decode_object(text: str) -> ParseAttempt:
    try:
        parsed = json.loads(text)
    except ValueError as e:
        return ParseAttempt(False, reason=str(e))
    if not isinstance(parsed, dict):
        return ParseAttempt(False, reason=f"Expected a JSON object, got {type(parsed).__name__}")
    return ParseAttempt(True, interpret_response_object(parsed))


def parse_strict_json(content: str) -> ParseAttempt:
    return _decode_object(content.strip())


def parse_embedded_json(content: str) -> ParseAttempt:
    match = _JSON_BLOCK_RE.search(content)
    if not match:
        return ParseAttempt(False, reason="No JSON object found")
    return _decode_object(match.group())


def extract_shell_query(content: str) -> ParseAttempt:
    match = _SHELL_QUERY_RE.search(content)
    if not match:
        return ParseAttempt(False, reason="No shell query found")
    return ParseAttempt(True, QueryTranslation(
        query=match.group(),
        collection=match.group(1),
        operation=match.group(2),
        explanation="Query extracted from response",
        confidence=0.5,
    ))


PARSER_CHAIN: Sequence[Callable[[str], ParseAttempt]] = (
    parse_strict_json,
    parse_embedded_json,
    extract_shell_query,
)


def parse_ai_response(content: str) -> TranslationResult:
    """Run the parser chain over raw model text; never raises."""
    for parser in PARSER_CHAIN:
        attempt = parser(content)
        if attempt.ok:
            return attempt.result
        logger.debug("Parser %s failed: %s", parser.__name__, attempt.reason)

    logger.warning("Failed to parse AI response: %.200s", content)
    return ErrorTranslation(reason=UNPARSEABLE_MESSAGE)
