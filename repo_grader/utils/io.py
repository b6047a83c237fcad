import os
import json
import logging
from typing import Dict, Any, List
from pathlib import Path

from repo_grader.models.schemas import EvaluationRequest

logger = logging.getLogger(__name__)


EXCLUDED_EXTENSIONS = [
    ".jpg", ".jpeg", ".png", ".gif", ".svg", ".ico",
    ".pdf", ".zip", ".tar", ".gz", ".rar",
    ".mp3", ".mp4", ".avi", ".mov",
    ".ttf", ".woff", ".woff2",
    ".lock", ".map", ".json", ".yaml", ".mjs", ".gitignore",
]

EXCLUDED_DIRECTORIES = [
    "node_modules",
    "dist",
    "build",
    ".git",
    ".github",
    ".vscode",
    "vendor",
]


def should_include_file(path: str) -> bool:
    lower = path.lower()
    if any(lower.endswith(ext) for ext in EXCLUDED_EXTENSIONS):
        return False
    return not any(
        f"/{d}/" in path or path.startswith(f"{d}/") for d in EXCLUDED_DIRECTORIES
    )


def should_include_directory(path: str) -> bool:
    return not any(
        path == d or path.startswith(f"{d}/") or f"/{d}/" in path
        for d in EXCLUDED_DIRECTORIES
    )


# Candidate files from a local checkout as {path, content} with "/" paths
def collect_repo_files(root: str) -> List[Dict[str, str]]:

    root_path = Path(root)
    if not root_path.is_dir():
        raise FileNotFoundError(f"Repository directory not found: {root}")

    files = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        rel_dir = Path(dirpath).relative_to(root_path).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        # prune excluded directories in place
        dirnames[:] = sorted(
            d for d in dirnames
            if should_include_directory(f"{rel_dir}/{d}" if rel_dir else d)
        )

        for name in sorted(filenames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if not should_include_file(rel_path):
                continue

            try:
                with open(Path(dirpath) / name, "r", encoding="utf-8") as f:
                    content = f.read()
            except (UnicodeDecodeError, OSError) as e:
                logger.warning("Skipping unreadable file %s: %s", rel_path, e)
                continue

            files.append({"path": rel_path, "content": content})

    logger.info("Collected %d files from %s", len(files), root)
    return files


# Request JSON -> (request, raw files listed in it)
def load_request(path: str):

    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Request file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    raw_files = [
        {"path": str(f.get("path", "")), "content": str(f.get("content", ""))}
        for f in data.get("files") or []
    ]
    request = EvaluationRequest.from_dict({k: v for k, v in data.items() if k != "files"})

    return request, raw_files


# Final Results JSON
def write_json(path: str, data: Dict[str, Any]):

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
