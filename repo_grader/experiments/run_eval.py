import sys
from pathlib import Path

from repo_grader.config import load_settings
from repo_grader.evaluation.pipeline import evaluate_repository, failed_batches, prepare_request
from repo_grader.models.errors import FatalPipelineFailure
from repo_grader.utils.io import collect_repo_files, load_request, write_json
from repo_grader.utils.logging_config import setup_logging

USAGE = "usage: repo-grader <request.json> [repo_dir] [out.json]"


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)

    #parse args
    if not argv or argv[0] in ("-h", "--help"):
        print(USAGE)
        return 0 if argv else 2

    request_path = argv[0]
    repo_dir = argv[1] if len(argv) > 1 else None
    out_path = argv[2] if len(argv) > 2 else str(
        Path("outputs") / f"{Path(request_path).stem}_result.json"
    )

    settings = load_settings()
    setup_logging(settings.log_level)

    request, raw_files = load_request(request_path)

    # Files from a local checkout replace any listed in the request
    if repo_dir:
        raw_files = collect_repo_files(repo_dir)

    request = prepare_request(request, raw_files)

    print(f"\nCurrent task: {request.current_task}")
    print(f"Candidate files: {len(request.files)}")

    try:
        result = evaluate_repository(request, settings)
    except FatalPipelineFailure as e:
        print(f"\nEvaluation failed: {e}", file=sys.stderr)
        write_json(out_path, {"verdict": None, "error": str(e)})
        return 1

    write_json(out_path, result.to_dict())

    #print final results
    print("\n===== FINAL EVALUATION RESULT =====")
    print("Batches:", result.batch_count)
    failed = failed_batches(result)
    if failed:
        print("Failed batches:", ", ".join(str(o.batch_index) for o in failed))

    verdict = result.verdict.to_dict() if result.verdict is not None else None
    if verdict and "assessment" in verdict:
        print("Assessment (0-1):", verdict["assessment"])
        print("\nSummary:\n", verdict["summary"])
    else:
        print("\nUnstructured result:\n", verdict)

    print("\nOutputs saved to:", out_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
