from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import json
import logging

from repo_grader.models.schemas import ScoredFile

logger = logging.getLogger(__name__)


# Directory groups up to this share of the budget are kept whole
WHOLE_GROUP_RATIO = 0.8
# Batches below this share of the budget are candidates for compaction
SMALL_BATCH_RATIO = 0.5

HEAD_RATIO = 0.6
TAIL_RATIO = 0.4


# Serialized size estimate of a set of files (compact JSON, as sent)
def serialized_size(files: Sequence[ScoredFile]) -> int:
    return len(json.dumps(
        [f.to_dict() for f in files],
        ensure_ascii=False,
        separators=(",", ":"),
    ))


# Size of one file serialized as a one-element list
def file_size(f: ScoredFile) -> int:
    return serialized_size([f])


# Serialized size of two JSON lists concatenated into one
def joined_size(a: int, b: int) -> int:
    if not a:
        return b
    if not b:
        return a
    return a + b - 1  # two brackets dropped, one comma added


def directory_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


@dataclass
class _FileGroup:
    files: List[ScoredFile] = field(default_factory=list)
    total_size: int = 0
    directory_score: Dict[str, int] = field(default_factory=dict)

    def fits(self, size: int, budget: int) -> bool:
        return joined_size(self.total_size, size) <= budget

    def add(self, files: List[ScoredFile], size: int, directory: str) -> None:
        self.files.extend(files)
        self.total_size = joined_size(self.total_size, size)
        self.directory_score[directory] = self.directory_score.get(directory, 0) + 1

    def absorb(self, other: "_FileGroup") -> None:
        self.files.extend(other.files)
        self.total_size = joined_size(self.total_size, other.total_size)
        for d, n in other.directory_score.items():
            self.directory_score[d] = self.directory_score.get(d, 0) + n

    # Exact-directory tally plus 2 for every nested/enclosing directory
    def affinity(self, directory: str) -> int:
        score = self.directory_score.get(directory, 0)
        for existing in self.directory_score:
            if directory.startswith(existing) or existing.startswith(directory):
                score += 2
        return score


def _group_by_directory(files: Sequence[ScoredFile]) -> Dict[str, List[ScoredFile]]:
    groups: Dict[str, List[ScoredFile]] = {}
    for f in files:
        groups.setdefault(directory_of(f.path), []).append(f)
    return groups


def _place_whole_group(
    groups: List[_FileGroup],
    directory: str,
    dir_files: List[ScoredFile],
    dir_size: int,
    budget: int,
) -> None:

    best: Optional[_FileGroup] = None
    best_score = -1

    for group in groups:
        if not group.fits(dir_size, budget):
            continue

        score = group.affinity(directory)
        if score > best_score or (score == best_score and group.total_size < best.total_size):
            best, best_score = group, score

    if best is None:
        new_group = _FileGroup()
        new_group.add(list(dir_files), dir_size, directory)
        groups.append(new_group)
    else:
        best.add(dir_files, dir_size, directory)


# Oversized directory: most relevant files first, first-fit
def _split_group(
    groups: List[_FileGroup],
    directory: str,
    dir_files: List[ScoredFile],
    budget: int,
) -> None:

    for f in sorted(dir_files, key=lambda x: x.relevance, reverse=True):
        size = file_size(f)

        for group in groups:
            if group.fits(size, budget):
                group.add([f], size, directory)
                break
        else:
            new_group = _FileGroup()
            new_group.add([f], size, directory)
            groups.append(new_group)


# Fold later batches into small ones while the result still fits
def _compact(groups: List[_FileGroup], budget: int) -> List[_FileGroup]:
    groups = sorted(groups, key=lambda g: g.total_size)

    i = 0
    while i < len(groups) - 1:
        current = groups[i]
        if current.total_size < budget * SMALL_BATCH_RATIO:
            j = i + 1
            while j < len(groups):
                other = groups[j]
                if current.fits(other.total_size, budget):
                    current.absorb(other)
                    del groups[j]
                else:
                    j += 1
        i += 1

    return groups


# Partition files into batches that fit the budget, keeping directories together
def partition_files(files: Sequence[ScoredFile], budget: int) -> List[List[ScoredFile]]:
    files = list(files)
    if not files:
        return []

    if serialized_size(files) <= budget:
        return [files]

    logger.info("Partitioning %d files into batches (budget %d chars)", len(files), budget)

    groups: List[_FileGroup] = []
    for directory, dir_files in _group_by_directory(files).items():
        dir_size = serialized_size(dir_files)

        if dir_size <= budget * WHOLE_GROUP_RATIO:
            _place_whole_group(groups, directory, dir_files, dir_size, budget)
        else:
            _split_group(groups, directory, dir_files, budget)

    groups = _compact(groups, budget)
    batches = [g.files for g in groups if g.files]

    logger.info("Created %d batches", len(batches))
    for i, batch in enumerate(batches, 1):
        logger.info(
            "Batch %d: %d files, ~%d KB", i, len(batch), serialized_size(batch) // 1024
        )

    return batches


# Keep the head and tail of an overlong file with an explicit marker between
def truncate_content(content: str, max_length: int) -> str:
    if not content or len(content) <= max_length:
        return content

    head_size = int(max_length * HEAD_RATIO)
    tail_size = int(max_length * TAIL_RATIO)
    head = content[:head_size]
    tail = content[len(content) - tail_size:] if tail_size > 0 else ""
    omitted = len(content) - head_size - tail_size

    return f"{head}\n\n... [content truncated, {omitted} characters omitted] ...\n\n{tail}"


# Files for one model call: by relevance, optionally truncated, capped in total size
def prepare_payload_files(
    files: Sequence[ScoredFile],
    max_total_chars: Optional[int] = 100000,
    max_file_chars: int = 15000,
    truncate: bool = True,
) -> List[ScoredFile]:

    ordered = sorted(files, key=lambda f: f.relevance, reverse=True)

    if truncate:
        ordered = [
            ScoredFile(f.path, truncate_content(f.content, max_file_chars), f.relevance)
            for f in ordered
        ]

    if max_total_chars is None:
        return ordered

    total = serialized_size(ordered)
    dropped = []
    while total > max_total_chars and len(ordered) > 1:
        dropped.append(ordered.pop().path)
        total = serialized_size(ordered)

    if dropped:
        logger.warning(
            "Payload over %d chars: dropped %d least relevant files (%s)",
            max_total_chars, len(dropped), ", ".join(dropped[:5]),
        )
    logger.info("Payload files: %d, estimated %d chars", len(ordered), total)

    return ordered
