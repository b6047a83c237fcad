from dataclasses import replace
from typing import Callable, List, Optional, Sequence
import logging
import re
import time

from repo_grader.config import Settings
from repo_grader.models.errors import FatalPipelineFailure, NetworkError
from repo_grader.models.judge import judge_code, mock_verdict
from repo_grader.models.llm_client import EndpointSelector, Evaluator, LLMConfig, call_llm
from repo_grader.models.schemas import (
    BatchOutcome,
    EvaluationRequest,
    EvaluationResult,
    PipelineContext,
    ScoredFile,
    Verdict,
)

logger = logging.getLogger(__name__)


MAX_CHECKPOINT_INSIGHTS = 3
MAX_SUMMARY_INSIGHTS = 2
MIN_FRAGMENT_LENGTH = 10

_SUMMARY_SPLIT_RE = re.compile(r"[|,;.]")


def _previous_files_block(context: PipelineContext, heading: str) -> str:
    if not context.processed_paths:
        return ""
    lines = "\n".join(f"- {p}" for p in context.processed_paths)
    return f"\n\n{heading}\n{lines}"


def _insights_block(context: PipelineContext, heading: str) -> str:
    if not context.key_insights:
        return ""
    lines = "\n".join(f"{i}. {s}" for i, s in enumerate(context.key_insights, 1))
    return f"\n\n{heading}\n{lines}"


# Continuation instruction for one batch of a multi-batch run
def build_batch_prompt(
    batch_number: int,
    total_batches: int,
    context: PipelineContext,
    is_last: bool,
) -> str:

    if batch_number == 1:
        return (
            f"This is batch 1/{total_batches} of the code assessment.\n"
            "Read and understand the code files below. More files will follow in later batches.\n"
            "Analyze their structure, functionality and implementation, but do not evaluate or score yet.\n"
            "Remember what you see; later batches will rely on it."
        )

    if is_last:
        previous = _previous_files_block(
            context, "## Files you have analyzed in previous batches:"
        )
        insights = _insights_block(
            context, "## Key code characteristics you discovered in previous batches:"
        )
        return (
            f"## This is the final batch of the code assessment ({batch_number}/{total_batches})\n\n"
            "You now need to:\n"
            "1. Analyze the code files in this batch\n"
            "2. Evaluate comprehensively, using every file from all batches (previous and current)\n\n"
            "Your assessment must be based on all the files you have reviewed, not just this batch."
            f"{previous}{insights}\n\n"
            "After analyzing this batch, evaluate against the assessment criteria with a detailed report and score."
        )

    previous = _previous_files_block(context, "Files you have analyzed in previous batches:")
    insights = _insights_block(
        context, "Key code characteristics you discovered in previous batches:"
    )
    return (
        f"## This is batch {batch_number}/{total_batches} of the code assessment\n\n"
        "Continue analyzing the code files below, but do not evaluate or score yet.\n"
        f"You have already analyzed {len(context.processed_paths)} files in previous batches."
        f"{previous}{insights}\n\n"
        "Relate this batch to what you saw before. The final batch will ask for a comprehensive evaluation."
    )


# Carry-forward insights from a non-final batch result
def extract_insights(result: Optional[EvaluationResult]) -> List[str]:
    if not isinstance(result, Verdict):
        return []

    insights = [
        f"{cp.requirement}: {cp.status}"
        for cp in result.checkpoints
        if cp.status and cp.details
    ][:MAX_CHECKPOINT_INSIGHTS]

    fragments = [
        frag.strip()
        for frag in _SUMMARY_SPLIT_RE.split(result.summary)
        if len(frag.strip()) > MIN_FRAGMENT_LENGTH
    ]
    insights.extend(fragments[:MAX_SUMMARY_INSIGHTS])

    return insights


class BatchOrchestrator:
    """Drives batches through the model one after another.

    Later batch prompts re-inject the paths and insights gathered from
    earlier ones, which is what lets a stateless call interface behave like
    one long review. The endpoint selector lives on the instance, so each
    run fails over independently.
    """

    def __init__(
        self,
        settings: Settings,
        evaluator: Evaluator = call_llm,
        cfg: Optional[LLMConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.evaluator = evaluator
        self.cfg = cfg or settings.llm_config()
        self.selector = EndpointSelector(self.cfg.base_urls)
        self.sleep = sleep
        self.context = PipelineContext()

    def judge(
        self,
        request: EvaluationRequest,
        files: Sequence[ScoredFile],
        label: str,
    ) -> EvaluationResult:
        return judge_code(
            request,
            files,
            self.cfg,
            self.evaluator,
            self.selector,
            self.settings,
            sleep=self.sleep,
            label=label,
        )

    def _fatal(self, message: str, error: Exception) -> Verdict:
        if self.settings.mock_on_failure:
            logger.error("%s; substituting placeholder result: %s", message, error)
            return mock_verdict()
        raise FatalPipelineFailure(f"{message}: {error}") from error

    def run(
        self,
        request: EvaluationRequest,
        batches: Sequence[Sequence[ScoredFile]],
    ) -> Optional[EvaluationResult]:

        if not batches:
            batches = [[]]

        if len(batches) == 1:
            return self._run_single(request, batches[0])

        return self._run_batches(request, batches)

    # n == 1: evaluate directly, no continuation prompts
    def _run_single(
        self,
        request: EvaluationRequest,
        batch: Sequence[ScoredFile],
    ) -> EvaluationResult:

        logger.info("Single batch, using standard evaluation")
        paths = [f.path for f in batch]

        try:
            result = self.judge(request, batch, label="code evaluation")
        except NetworkError as e:
            self.context.batch_results.append(BatchOutcome(
                batch_index=1,
                total_batches=1,
                verdict=None,
                processed_files=paths,
                success=False,
                error=e,
            ))
            return self._fatal("Code evaluation failed", e)

        self.context.add_paths(paths)
        self.context.batch_results.append(BatchOutcome(
            batch_index=1,
            total_batches=1,
            verdict=result,
            processed_files=paths,
            success=True,
        ))
        return result

    def _batch_request(
        self,
        request: EvaluationRequest,
        batch: Sequence[ScoredFile],
        batch_number: int,
        total: int,
        is_last: bool,
    ) -> EvaluationRequest:

        prompt = build_batch_prompt(batch_number, total, self.context, is_last)

        if is_last:
            task = f"[Batch {batch_number}/{total}] {request.current_task} - Comprehensive evaluation"
            summary_note = "[Final batch] Provide a comprehensive evaluation based on all batch files."
        else:
            task = f"[Batch {batch_number}/{total}] {request.current_task} - Analysis mode"
            summary_note = (
                f"[Batch {batch_number}/{total}] Analyze these files and remember their "
                "content, but do not provide a final evaluation."
            )

        return replace(
            request,
            project_detail=f"{prompt}\n\n{request.project_detail}",
            current_task=task,
            repo_summary=f"{request.repo_summary}\n\n{summary_note}",
            files=tuple(batch),
        )

    def _run_batches(
        self,
        request: EvaluationRequest,
        batches: Sequence[Sequence[ScoredFile]],
    ) -> Optional[EvaluationResult]:

        total = len(batches)
        logger.info("Files divided into %d batches", total)
        last_result: Optional[EvaluationResult] = None

        for i, batch in enumerate(batches):
            batch_number = i + 1
            is_last = batch_number == total
            paths = [f.path for f in batch]

            logger.info("Processing batch %d/%d, %d files", batch_number, total, len(batch))
            batch_request = self._batch_request(request, batch, batch_number, total, is_last)

            started = time.monotonic()
            try:
                result = self.judge(
                    batch_request, batch, label=f"batch {batch_number}/{total}"
                )
            except NetworkError as e:
                logger.error("Batch %d/%d failed: %s", batch_number, total, e)
                self.context.batch_results.append(BatchOutcome(
                    batch_index=batch_number,
                    total_batches=total,
                    verdict=None,
                    processed_files=paths,
                    success=False,
                    error=e,
                ))

                if is_last:
                    last_result = self._fatal(
                        f"Final batch {batch_number}/{total} failed", e
                    )
                    break

                logger.info("Continuing with the next batch despite batch %d failing", batch_number)
                self.sleep(self.settings.batch_cooldown)
                continue

            logger.info(
                "Batch %d/%d completed in %.1fs",
                batch_number, total, time.monotonic() - started,
            )

            self.context.add_paths(paths)
            self.context.batch_results.append(BatchOutcome(
                batch_index=batch_number,
                total_batches=total,
                verdict=result,
                processed_files=paths,
                success=True,
            ))

            if not is_last:
                self.context.add_insights(extract_insights(result))

            last_result = result

            if not is_last:
                logger.debug("Cooling down %.1fs between batches", self.settings.batch_cooldown)
                self.sleep(self.settings.batch_cooldown)

        if last_result is None:
            raise FatalPipelineFailure("All batches failed")

        return last_result
