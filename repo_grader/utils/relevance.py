from typing import Any, Dict, Iterable, List, Sequence
import logging
import re

from repo_grader.models.schemas import EvaluationRequest, ScoredFile

logger = logging.getLogger(__name__)


# (path weight, content weight) per context field
EVIDENCE_WEIGHTS = (0.40, 0.10)
CURRENT_TASK_WEIGHTS = (0.20, 0.05)
OTHER_TASK_WEIGHTS = (0.10, 0.03)
PROJECT_DETAIL_WEIGHTS = (0.05, 0.02)

MAX_OTHER_TASKS = 5
MAX_COUNTED_MATCHES = 10
MIN_TOKEN_LENGTH = 4

# Fixed bonuses by path shape
EXTENSION_BONUSES = [
    ((".ts", ".tsx"), 0.10),
    ((".js", ".jsx"), 0.08),
]
PATH_SEGMENT_BONUSES = [
    (("/api/",), 0.15),
    (("/components/",), 0.10),
    (("/pages/", "/app/"), 0.10),
    (("/lib/", "/utils/"), 0.10),
]


def _safe_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return str(value)


def _tokens(text: str) -> List[str]:
    return [w for w in text.lower().split() if len(w) >= MIN_TOKEN_LENGTH]


# Path hits plus capped content-occurrence hits for every token in text
def _word_match_score(
    text: str,
    lower_path: str,
    lower_content: str,
    path_weight: float,
    content_weight: float,
) -> float:

    score = 0.0
    for word in _tokens(text):
        if word in lower_path:
            score += path_weight

        try:
            matches = re.findall(re.escape(word), lower_content)
        except re.error as e:
            logger.warning("Regex match failed for token %r: %s", word, e)
            continue

        if matches:
            score += content_weight * min(len(matches), MAX_COUNTED_MATCHES)

    return score


def _path_bonus(lower_path: str) -> float:
    bonus = 0.0
    for suffixes, value in EXTENSION_BONUSES:
        if lower_path.endswith(suffixes):
            bonus += value
    for segments, value in PATH_SEGMENT_BONUSES:
        if any(seg in lower_path for seg in segments):
            bonus += value
    return bonus


# Relevance of one file to the evaluation context, clamped to [0, 1]
def calculate_relevance(
    path: Any,
    content: Any,
    current_task: Any,
    tasks: Any,
    project_detail: Any,
    evidence: Any,
) -> float:

    lower_path = _safe_text(path).lower()
    lower_content = _safe_text(content).lower()
    current = _safe_text(current_task)
    all_tasks = [_safe_text(t) for t in tasks] if isinstance(tasks, (list, tuple)) else []

    score = 0.0

    score += _word_match_score(current, lower_path, lower_content, *CURRENT_TASK_WEIGHTS)

    other_tasks = [t for t in all_tasks if t != current]
    for task in other_tasks[:MAX_OTHER_TASKS]:
        score += _word_match_score(task, lower_path, lower_content, *OTHER_TASK_WEIGHTS)

    score += _word_match_score(
        _safe_text(project_detail), lower_path, lower_content, *PROJECT_DETAIL_WEIGHTS
    )
    score += _word_match_score(
        _safe_text(evidence), lower_path, lower_content, *EVIDENCE_WEIGHTS
    )

    score += _path_bonus(lower_path)

    return min(max(score, 0.0), 1.0)


# Score raw {path, content} records and sort them by descending relevance
def score_files(
    files: Iterable[Dict[str, Any]],
    current_task: Any,
    tasks: Sequence[Any],
    project_detail: Any,
    evidence: Any,
) -> List[ScoredFile]:

    scored = []
    for f in files:
        path = _safe_text(f.get("path"))
        content = _safe_text(f.get("content"))
        relevance = calculate_relevance(
            path, content, current_task, tasks, project_detail, evidence
        )
        scored.append(ScoredFile(path=path, content=content, relevance=relevance))

    scored.sort(key=lambda sf: sf.relevance, reverse=True)

    logger.info("Scored %d files for task %r", len(scored), _safe_text(current_task)[:100])
    for i, sf in enumerate(scored[:10], 1):
        logger.info("Relevant file %d: %s (relevance %.2f)", i, sf.path, sf.relevance)

    return scored


def score_request_files(
    request: EvaluationRequest,
    files: Iterable[Dict[str, Any]],
) -> List[ScoredFile]:
    return score_files(
        files,
        request.current_task,
        list(request.tasks),
        request.project_detail,
        request.evidence,
    )
