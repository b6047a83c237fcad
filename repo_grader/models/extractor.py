from typing import Any, Callable, List, Optional
import json
import logging
import re

from repo_grader.models.schemas import EvaluationResult, UnstructuredResult, Verdict

logger = logging.getLogger(__name__)


_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")
# double-quoted strings are matched first so apostrophes inside them are left alone
_STRING_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'((?:[^\'\\]|\\.)*)\'')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


# 1) whole text
def parse_direct(text: str) -> Optional[Any]:
    return _loads(text.strip())


# 2) first fenced code block, optionally tagged json
def parse_code_block(text: str) -> Optional[Any]:
    match = _CODE_BLOCK_RE.search(text)
    if not match:
        return None
    return _loads(match.group(1))


def _brace_span(text: str) -> Optional[str]:
    match = _BRACE_SPAN_RE.search(text)
    return match.group(0) if match else None


# 3) outermost {...} span (greedy: first "{" to last "}")
def parse_brace_span(text: str) -> Optional[Any]:
    span = _brace_span(text)
    if span is None:
        return None
    return _loads(span)


def _requote(match: re.Match) -> str:
    if match.group(1) is None:
        return match.group(0)
    return json.dumps(match.group(1))


def repair_json(span: str) -> str:
    fixed = _STRING_TOKEN_RE.sub(_requote, span)
    return _TRAILING_COMMA_RE.sub(r"\1", fixed)


# 4) the same span after light repair
def parse_repaired_span(text: str) -> Optional[Any]:
    span = _brace_span(text)
    if span is None:
        return None
    return _loads(repair_json(span))


PARSERS: List[Callable[[str], Optional[Any]]] = [
    parse_direct,
    parse_code_block,
    parse_brace_span,
    parse_repaired_span,
]


# Try each parser in order; None only when every one fails
def extract_json(text: str) -> Optional[Any]:
    if not isinstance(text, str) or not text.strip():
        return None

    for parser in PARSERS:
        parsed = parser(text)
        if parsed is not None:
            logger.debug("Parsed model response with %s", parser.__name__)
            return parsed

    logger.info("Model response is not recoverable JSON (%d chars)", len(text))
    return None


# Resolve raw model text into Verdict | UnstructuredResult, once
def to_result(text: str) -> EvaluationResult:
    parsed = extract_json(text)

    if isinstance(parsed, dict):
        return Verdict.from_dict(parsed)

    if parsed is not None:
        return UnstructuredResult(
            text_content=text,
            message="Raw response was JSON but not an object; wrapped as text.",
        )

    return UnstructuredResult(text_content=text if isinstance(text, str) else "")
