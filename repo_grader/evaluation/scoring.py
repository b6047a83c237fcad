from dataclasses import replace
from typing import Dict, List, Optional
import numpy as np

from repo_grader.models.schemas import BatchOutcome, EvaluationResult, Verdict


# Mean / spread of per-batch assessments (structured batches only)
def batch_score_stats(outcomes: List[BatchOutcome]) -> Dict[str, float]:
    scores = [
        o.verdict.assessment
        for o in outcomes
        if o.success and isinstance(o.verdict, Verdict)
    ]
    succeeded = sum(1 for o in outcomes if o.success)

    return {
        "batches": float(len(outcomes)),
        "succeeded": float(succeeded),
        "success_rate": float(succeeded / len(outcomes)) if outcomes else 0.0,
        "mean_assessment": float(np.mean(scores)) if scores else 0.0,
        "std_assessment": float(np.std(scores, ddof=1)) if len(scores) > 1 else 0.0,
    }


# How failed batches weigh on the final score
def apply_partial_failure_policy(
    result: Optional[EvaluationResult],
    outcomes: List[BatchOutcome],
    policy: str = "ignore",
) -> Optional[EvaluationResult]:

    if policy == "ignore" or not isinstance(result, Verdict) or not outcomes:
        return result

    if policy == "scale":
        success_rate = batch_score_stats(outcomes)["success_rate"]
        if success_rate >= 1.0:
            return result
        scaled = float(np.clip(result.assessment * success_rate, 0.0, 1.0))
        return replace(result, assessment=scaled)

    raise ValueError(f"Unknown partial failure policy: {policy!r}")
