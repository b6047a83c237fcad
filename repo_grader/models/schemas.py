from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


# Cap on carry-forward insights re-injected into later batch prompts
MAX_KEY_INSIGHTS = 5


@dataclass(frozen=True)
class ScoredFile:
    path: str
    content: str
    relevance: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "content": self.content, "relevance": self.relevance}


@dataclass(frozen=True)
class Checkpoint:
    requirement: str
    status: str = ""
    details: str = ""

    @classmethod
    def from_obj(cls, obj: Any) -> "Checkpoint":
        if not isinstance(obj, dict):
            return cls(requirement=str(obj))
        return cls(
            requirement=_as_text(obj.get("requirement")),
            status=_as_text(obj.get("status")),
            details=_as_text(obj.get("details")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"requirement": self.requirement, "status": self.status, "details": self.details}


@dataclass(frozen=True)
class Verdict:
    """Structured grading output for one model call.

    Built once from parsed model JSON and never mutated; later stages that
    need a different verdict (reconciliation, score policy) build a new one.
    """

    assessment: float
    checkpoints: Tuple[Checkpoint, ...] = ()
    summary: str = ""
    improvements: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Verdict":
        checkpoints = data.get("checkpoints") or []
        if not isinstance(checkpoints, list):
            checkpoints = [checkpoints]

        improvements = data.get("improvements") or []
        if isinstance(improvements, str):
            improvements = [improvements]
        elif not isinstance(improvements, list):
            improvements = [improvements]

        return cls(
            assessment=_coerce_assessment(data.get("assessment")),
            checkpoints=tuple(Checkpoint.from_obj(cp) for cp in checkpoints),
            summary=_as_text(data.get("summary")),
            improvements=tuple(_as_text(item) for item in improvements),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment": self.assessment,
            "checkpoints": [cp.to_dict() for cp in self.checkpoints],
            "summary": self.summary,
            "improvements": list(self.improvements),
        }


@dataclass(frozen=True)
class UnstructuredResult:
    # Model text that could not be recovered as JSON
    text_content: str
    message: str = "Raw response was not valid JSON and was wrapped as text."
    is_json_format: bool = False

    # Unstructured text carries no summary to reconcile
    @property
    def summary(self) -> str:
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "textContent": self.text_content,
            "isJsonFormat": self.is_json_format,
            "message": self.message,
        }


EvaluationResult = Union[Verdict, UnstructuredResult]


@dataclass
class RetryAttempt:
    attempt_number: int
    endpoint_index: int
    last_error: Optional[Exception] = None


@dataclass
class BatchOutcome:
    batch_index: int
    total_batches: int
    verdict: Optional[EvaluationResult]
    processed_files: List[str]
    success: bool
    error: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch": self.batch_index,
            "totalBatches": self.total_batches,
            "result": self.verdict.to_dict() if self.verdict is not None else None,
            "processedFiles": list(self.processed_files),
            "success": self.success,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass
class PipelineContext:
    processed_paths: List[str] = field(default_factory=list)
    key_insights: List[str] = field(default_factory=list)
    batch_results: List[BatchOutcome] = field(default_factory=list)

    def add_paths(self, paths: List[str]) -> None:
        for p in paths:
            if p not in self.processed_paths:
                self.processed_paths.append(p)

    # Once more than MAX_KEY_INSIGHTS are held, only the first ones ever
    # collected survive; later insights are dropped.
    def add_insights(self, insights: List[str]) -> None:
        self.key_insights.extend(insights)
        if len(self.key_insights) > MAX_KEY_INSIGHTS:
            self.key_insights = self.key_insights[:MAX_KEY_INSIGHTS]


@dataclass(frozen=True)
class EvaluationRequest:
    project_detail: str
    tasks: Tuple[str, ...]
    current_task: str
    evidence: str
    repo_summary: str = ""
    files: Tuple[ScoredFile, ...] = ()
    repo_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationRequest":
        tasks = data.get("tasks") or []
        if not isinstance(tasks, list):
            tasks = [tasks]

        files = []
        for f in data.get("files") or []:
            files.append(ScoredFile(
                path=_as_text(f.get("path")),
                content=_as_text(f.get("content")),
                relevance=float(f.get("relevance", 0.0) or 0.0),
            ))

        return cls(
            project_detail=_as_text(data.get("projectDetail")),
            tasks=tuple(_as_text(t) for t in tasks),
            current_task=_as_text(data.get("currentTask")),
            evidence=_as_text(data.get("evidence")),
            repo_summary=_as_text(data.get("repoSummary")),
            files=tuple(files),
            repo_url=_as_text(data.get("githubRepoUrl")),
        )


@dataclass
class EvaluationRunResult:
    verdict: Optional[EvaluationResult]
    batch_count: int
    per_batch_outcomes: List[BatchOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verdict": self.verdict.to_dict() if self.verdict is not None else None,
            "batchCount": self.batch_count,
            "perBatchOutcomes": [o.to_dict() for o in self.per_batch_outcomes],
        }


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _coerce_assessment(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(1.0, score))
