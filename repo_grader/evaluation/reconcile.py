from dataclasses import replace
from typing import Callable, List, Optional, Sequence
import logging

from repo_grader.models.errors import NetworkError
from repo_grader.models.schemas import (
    BatchOutcome,
    EvaluationRequest,
    EvaluationResult,
    PipelineContext,
    ScoredFile,
)

logger = logging.getLogger(__name__)


# (request, files, label) -> result; the orchestrator's judge
JudgeFn = Callable[[EvaluationRequest, Sequence[ScoredFile], str], EvaluationResult]


def _successful(outcomes: List[BatchOutcome]) -> List[BatchOutcome]:
    return [o for o in outcomes if o.success and o.verdict is not None]


# Merge instruction listing every processed path and each batch summary
def build_reconcile_prompt(context: PipelineContext, total_batches: int) -> str:
    analyses = []
    for o in _successful(context.batch_results):
        block = f"\n--- Batch {o.batch_index} Analysis ---\nFiles: {', '.join(o.processed_files)}"
        if o.verdict.summary:
            block += f"\nSummary: {o.verdict.summary}"
        analyses.append(block)

    paths = "\n".join(f"- {p}" for p in context.processed_paths)

    return (
        "Provide a comprehensive evaluation based on all batch code analysis results. "
        f"This is a summary of analysis across all batches (total {total_batches} batches).\n\n"
        f"You have analyzed the following files:\n{paths}\n\n"
        f"Each batch analysis summary:\n{''.join(analyses)}\n\n"
        "Evaluate thoroughly against the assessment criteria using all of this information.\n"
        "Your assessment must consider all files from all batches, not just the last batch."
    )


def reconcile(
    request: EvaluationRequest,
    context: PipelineContext,
    last_result: Optional[EvaluationResult],
    judge: JudgeFn,
) -> Optional[EvaluationResult]:

    total = len(context.batch_results)
    if total <= 1:
        return last_result

    analyses = _successful(context.batch_results)
    if len(analyses) < 2:
        logger.info(
            "Only %d successful batch analyses, using the last batch result", len(analyses)
        )
        return last_result

    logger.info("Reconciling %d batch analyses", len(analyses))

    merge_request = replace(
        request,
        project_detail=f"{request.project_detail}\n\n{build_reconcile_prompt(context, total)}",
        current_task=(
            f"Final comprehensive evaluation - Analysis based on "
            f"{len(context.processed_paths)} files"
        ),
        repo_summary=(
            f"{request.repo_summary}\n\n[Comprehensive evaluation] Based on analysis "
            f"across all {total} batches for final assessment."
        ),
        files=(),
    )

    try:
        return judge(merge_request, [], "reconciliation")
    except NetworkError as e:
        logger.error("Reconciliation failed, using the last batch result: %s", e)
        return last_result
