from typing import Any, Callable, Dict, Sequence
import json
import logging
import time

from repo_grader.config import Settings
from repo_grader.models.extractor import to_result
from repo_grader.models.llm_client import (
    EndpointSelector,
    Evaluator,
    LLMConfig,
    call_with_retries,
)
from repo_grader.models.schemas import (
    Checkpoint,
    EvaluationRequest,
    EvaluationResult,
    ScoredFile,
    UnstructuredResult,
    Verdict,
)
from repo_grader.utils.chunking import prepare_payload_files

logger = logging.getLogger(__name__)


#prompts
CODE_ASSESSMENT_PROMPT = """You are a code assessment expert. Evaluate ONLY the CURRENT TASK, STRICTLY against the EVIDENCE criteria.

RULES:
- Evaluate only current_task, not the other tasks in the list.
- Use only the evidence criteria as the standard; do not invent requirements.
- Give 1.0 only when ALL evidence criteria are satisfied.

Context fields in the user message:
- project_detail, tasks, current_task, evidence
- github_repo_url, repo_summary
- relevant_files: code files related to current_task (may be empty)

For each evidence criterion assign a status:
"Completed", "Partially completed" or "Not completed".

Score guide: 1.0 all completed, 0.8 minor issues, 0.5 about half,
0.2 mostly not completed, 0.0 none completed.

Return ONLY valid JSON:
{
  "assessment": 0.0,
  "checkpoints": [
    {"requirement": "...", "status": "...", "details": "..."}
  ],
  "summary": "...",
  "improvements": ["...", "..."]
}
"""


# Request fields + files as the JSON user message
def build_user_message(
    request: EvaluationRequest,
    files: Sequence[ScoredFile],
    settings: Settings,
) -> str:

    payload_files = prepare_payload_files(
        files,
        max_total_chars=settings.max_total_chars,
        max_file_chars=settings.max_file_chars,
        truncate=settings.truncate_files,
    ) if files else []

    data: Dict[str, Any] = {
        "project_detail": request.project_detail,
        "tasks": list(request.tasks),
        "current_task": request.current_task,
        "evidence": request.evidence,
        "github_repo_url": request.repo_url,
        "repo_summary": request.repo_summary,
        "relevant_files": [f.to_dict() for f in payload_files],
    }
    return json.dumps(data, ensure_ascii=False)


# Placeholder verdict for mock mode and permissive fallback
def mock_verdict() -> Verdict:
    logger.warning("Returning placeholder evaluation result")
    return Verdict(
        assessment=0.0,
        checkpoints=(
            Checkpoint(
                requirement="Model evaluation",
                status="Not completed",
                details="No model response was available; this is a placeholder result.",
            ),
        ),
        summary="Placeholder result: the model backend was not consulted or did not respond.",
        improvements=("Re-run the evaluation once the model backend is reachable.",),
    )


# One graded call: payload -> model (with retries/failover) -> tagged result
def judge_code(
    request: EvaluationRequest,
    files: Sequence[ScoredFile],
    cfg: LLMConfig,
    evaluator: Evaluator,
    selector: EndpointSelector,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "code evaluation",
) -> EvaluationResult:

    user_msg = build_user_message(request, files, settings)
    logger.debug("%s request (%d chars)", label, len(user_msg))

    raw = call_with_retries(
        evaluator,
        CODE_ASSESSMENT_PROMPT,
        user_msg,
        cfg,
        selector,
        max_attempts=settings.max_attempts,
        retry_delay=settings.retry_delay,
        sleep=sleep,
        label=label,
    )
    logger.debug("%s raw response: %s", label, raw)

    result = to_result(raw)
    if isinstance(result, UnstructuredResult):
        logger.info("%s: response could not be parsed as JSON, kept as text", label)
    return result
