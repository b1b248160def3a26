"""Tolerant parser for structured review reports in model output.

``parse_review_response`` never raises. It accepts the report as plain JSON,
as JSON inside a markdown code fence, or as JSON that was cut off part-way
(the streamed output cap can stop the model mid-object). Parsing proceeds in
two stages:

1. Strict: ``json.loads`` on the fenced interior (or the whole text), then
   per-item validation of every array. Invalid items are dropped, not
   replaced, and every array is capped at ``MAX_ARRAY_ITEMS``.

2. Salvage (strict parse failed): targeted field extraction.
   - ``summary`` via a string-field pattern honoring escapes. Without a
     summary there is nothing worth salvaging and the raw text becomes the
     summary of an otherwise empty report.
   - ``issues`` / ``refactorSuggestions``: the field's ``[ ... ]`` span
     (the closing bracket may be missing at end of input), then every
     balanced ``{ ... }`` span inside it is parsed and validated on its own.
   - ``edgeCases`` / ``testPlan``: every complete quoted string in the span.

Known limitation:
    The salvage scanners count brackets and braces without tracking JSON
    string boundaries. A ``{``, ``}``, ``[`` or ``]`` inside a string value
    (a code snippet in a description, say) can shift a span boundary; the
    affected objects then fail to parse or validate and are dropped. The
    strict stage is unaffected.
"""
import json
import logging
import re
from typing import Any, Callable, Iterator, List, Optional

from coderoom.ai_provider.parsing import extract_fenced_block

from .schemas import MAX_ARRAY_ITEMS, RefactorSuggestion, ReviewIssue, ReviewReport

logger = logging.getLogger(__name__)

VALID_SEVERITIES = ("critical", "major", "minor")
VALID_EFFORTS = ("low", "medium", "high")

INVALID_RESPONSE_SUMMARY = "Invalid response"
NO_SUMMARY = "No summary"

# A JSON string literal body: anything but quote/backslash, or an escape.
_STRING_BODY = r'((?:[^"\\]|\\.)*)'
_QUOTED_STRING_RE = re.compile(r'"' + _STRING_BODY + r'"', re.DOTALL)


def _field_string_re(field: str) -> "re.Pattern[str]":
    return re.compile(r'"' + re.escape(field) + r'"\s*:\s*"' + _STRING_BODY + r'"', re.DOTALL)


def _field_array_start_re(field: str) -> "re.Pattern[str]":
    return re.compile(r'"' + re.escape(field) + r'"\s*:\s*\[')


# =============================================================================
# Item validation
# =============================================================================


def is_valid_issue(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and item.get("severity") in VALID_SEVERITIES
        and isinstance(item.get("title"), str)
        and isinstance(item.get("description"), str)
        and isinstance(item.get("location"), str)
    )


def is_valid_refactor_suggestion(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("title"), str)
        and isinstance(item.get("rationale"), str)
        and item.get("effort") in VALID_EFFORTS
    )


def _to_issue(item: dict) -> ReviewIssue:
    return ReviewIssue(
        severity=item["severity"],
        title=item["title"],
        description=item["description"],
        location=item["location"],
    )


def _to_refactor(item: dict) -> RefactorSuggestion:
    return RefactorSuggestion(
        title=item["title"],
        rationale=item["rationale"],
        effort=item["effort"],
    )


def _filter_items(value: Any, is_valid: Callable[[Any], bool]) -> List[Any]:
    """Keep valid items of a list, in order, capped at MAX_ARRAY_ITEMS."""
    if not isinstance(value, list):
        return []
    return [item for item in value if is_valid(item)][:MAX_ARRAY_ITEMS]


def _is_string(item: Any) -> bool:
    return isinstance(item, str)


def create_fallback_report(summary: str) -> ReviewReport:
    """An otherwise empty report carrying ``summary``."""
    return ReviewReport(summary=summary)


# =============================================================================
# Strict parsing
# =============================================================================


def _report_from_dict(parsed: dict) -> ReviewReport:
    summary = parsed.get("summary")
    return ReviewReport(
        summary=summary if isinstance(summary, str) else NO_SUMMARY,
        issues=[_to_issue(i) for i in _filter_items(parsed.get("issues"), is_valid_issue)],
        edgeCases=_filter_items(parsed.get("edgeCases"), _is_string),
        refactorSuggestions=[
            _to_refactor(r)
            for r in _filter_items(parsed.get("refactorSuggestions"), is_valid_refactor_suggestion)
        ],
        testPlan=_filter_items(parsed.get("testPlan"), _is_string),
    )


# =============================================================================
# Truncated-JSON salvage
# =============================================================================


def _decode_string_body(body: str) -> str:
    """Unescape a JSON string body, keeping it verbatim if it is malformed."""
    try:
        return json.loads(f'"{body}"')
    except ValueError:
        return body


def extract_string_field(text: str, field: str) -> Optional[str]:
    """Find ``"field": "..."`` and return its decoded value."""
    match = _field_string_re(field).search(text)
    if match is None:
        return None
    return _decode_string_body(match.group(1))


def extract_array_span(text: str, field: str) -> Optional[str]:
    """Return the interior of ``"field": [ ... ]``.

    The span ends at the bracket that balances the opening one, or at the
    end of the text when the array was cut off.
    """
    match = _field_array_start_re(field).search(text)
    if match is None:
        return None

    start = match.end()
    depth = 1
    for pos in range(start, len(text)):
        char = text[pos]
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start:pos]
    return text[start:]


def iter_object_spans(span: str) -> Iterator[str]:
    """Yield every balanced top-level ``{ ... }`` span; an unclosed one is dropped."""
    depth = 0
    start = -1
    for pos, char in enumerate(span):
        if char == "{":
            if depth == 0:
                start = pos
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield span[start:pos + 1]


def salvage_object_array(
    text: str,
    field: str,
    is_valid: Callable[[Any], bool],
) -> List[dict]:
    """Recover the complete, valid objects of an object-array field."""
    span = extract_array_span(text, field)
    if span is None:
        return []

    items: List[dict] = []
    for object_text in iter_object_spans(span):
        try:
            item = json.loads(object_text)
        except (ValueError, RecursionError):
            continue
        if is_valid(item):
            items.append(item)
            if len(items) >= MAX_ARRAY_ITEMS:
                break
    return items


def salvage_string_array(text: str, field: str) -> List[str]:
    """Recover the complete quoted strings of a string-array field."""
    span = extract_array_span(text, field)
    if span is None:
        return []
    return [
        _decode_string_body(body) for body in _QUOTED_STRING_RE.findall(span)
    ][:MAX_ARRAY_ITEMS]


def salvage_report(text: str) -> Optional[ReviewReport]:
    """Recover what is parseable from truncated report JSON.

    Returns:
        The partial report, or None when no summary field can be found.
    """
    summary = extract_string_field(text, "summary")
    if summary is None:
        return None

    return ReviewReport(
        summary=summary,
        issues=[_to_issue(i) for i in salvage_object_array(text, "issues", is_valid_issue)],
        edgeCases=salvage_string_array(text, "edgeCases"),
        refactorSuggestions=[
            _to_refactor(r)
            for r in salvage_object_array(text, "refactorSuggestions", is_valid_refactor_suggestion)
        ],
        testPlan=salvage_string_array(text, "testPlan"),
    )


# =============================================================================
# Public entry point
# =============================================================================


def parse_review_response(response: Any) -> ReviewReport:
    """Extract a ReviewReport from model output. Never raises.

    Args:
        response: Raw model output; anything other than a str yields the
            "Invalid response" fallback.

    Returns:
        ReviewReport: parsed, salvaged, or fallback report.
    """
    if not isinstance(response, str):
        return create_fallback_report(INVALID_RESPONSE_SUMMARY)

    fenced = extract_fenced_block(response)
    candidate = fenced if fenced is not None else response

    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError):
        salvaged = salvage_report(candidate)
        if salvaged is None:
            logger.info("Review response is not JSON; using raw text as summary")
            return create_fallback_report(response)
        logger.info("Salvaged truncated review JSON (%d issues)", len(salvaged.issues))
        return salvaged

    if not isinstance(parsed, dict):
        logger.info("Review response JSON is not an object; using raw text as summary")
        return create_fallback_report(response)

    return _report_from_dict(parsed)
