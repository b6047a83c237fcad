from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
import time

from repo_grader.config import Settings, load_settings
from repo_grader.evaluation.orchestrator import BatchOrchestrator
from repo_grader.evaluation.reconcile import reconcile
from repo_grader.evaluation.scoring import apply_partial_failure_policy, batch_score_stats
from repo_grader.models.judge import mock_verdict
from repo_grader.models.llm_client import Evaluator, call_llm
from repo_grader.models.schemas import (
    BatchOutcome,
    EvaluationRequest,
    EvaluationRunResult,
)
from repo_grader.utils.chunking import partition_files
from repo_grader.utils.relevance import score_request_files

logger = logging.getLogger(__name__)


# Score raw {path, content} records and attach them to the request
def prepare_request(
    request: EvaluationRequest,
    raw_files: Iterable[Dict[str, Any]],
) -> EvaluationRequest:
    scored = score_request_files(request, raw_files)
    return replace(request, files=tuple(scored))


#Evaluation pipeline for one request
def evaluate_repository(
    request: EvaluationRequest,
    settings: Optional[Settings] = None,
    evaluator: Evaluator = call_llm,
    sleep: Callable[[float], None] = time.sleep,
) -> EvaluationRunResult:

    settings = settings or load_settings()
    started = time.monotonic()

    logger.info("Starting code evaluation")
    logger.info("Project: %s...", request.project_detail[:100])
    logger.info("Total files: %d", len(request.files))

    if settings.use_mock_data:
        logger.info("Configured to use mock data, skipping model calls")
        return EvaluationRunResult(
            verdict=mock_verdict(),
            batch_count=0,
            per_batch_outcomes=[],
        )

    # relevance order decides which files survive truncation and split order
    files = sorted(request.files, key=lambda f: f.relevance, reverse=True)
    batches = partition_files(files, settings.batch_budget)

    orchestrator = BatchOrchestrator(settings, evaluator=evaluator, sleep=sleep)
    last_result = orchestrator.run(request, batches)

    final = reconcile(request, orchestrator.context, last_result, orchestrator.judge)
    outcomes = list(orchestrator.context.batch_results)

    final = apply_partial_failure_policy(final, outcomes, settings.partial_failure_policy)

    stats = batch_score_stats(outcomes)
    logger.info(
        "Evaluation completed in %.1fs: %d/%d batches succeeded, mean batch assessment %.2f",
        time.monotonic() - started,
        int(stats["succeeded"]),
        int(stats["batches"]),
        stats["mean_assessment"],
    )

    return EvaluationRunResult(
        verdict=final,
        batch_count=max(1, len(batches)),
        per_batch_outcomes=outcomes,
    )


def failed_batches(result: EvaluationRunResult) -> List[BatchOutcome]:
    return [o for o in result.per_batch_outcomes if not o.success]
