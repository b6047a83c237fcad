"""Tests for batch partitioning and payload sizing."""

from collections import Counter

from repo_grader.models.schemas import ScoredFile
from repo_grader.utils.chunking import (
    _FileGroup,
    _compact,
    directory_of,
    partition_files,
    prepare_payload_files,
    serialized_size,
    truncate_content,
)

from helpers import make_file


def assert_exact_partition(files, batches):
    flat = [f.path for batch in batches for f in batch]
    assert Counter(flat) == Counter(f.path for f in files)
    assert len(flat) == len(set(flat))


def assert_budget_respected(batches, budget):
    for batch in batches:
        assert batch, "batches must not be empty"
        if len(batch) > 1 or serialized_size(batch) <= budget:
            assert serialized_size(batch) <= budget


def test_directory_of():
    assert directory_of("src/app/page.tsx") == "src/app"
    assert directory_of("README.md") == ""


def test_empty_input():
    assert partition_files([], 1000) == []


def test_small_set_is_single_batch():
    files = [make_file("a.py"), make_file("src/b.py"), make_file("src/c/d.py")]
    batches = partition_files(files, 10000)
    assert batches == [files]


def test_whole_directories_stay_together():
    budget = 1000
    files = [
        make_file("alpha/one.py", 300, 0.9),
        make_file("alpha/two.py", 300, 0.8),
        make_file("beta/one.py", 300, 0.7),
        make_file("beta/two.py", 300, 0.6),
    ]
    alpha, beta = files[:2], files[2:]
    assert serialized_size(alpha) <= 0.8 * budget
    assert serialized_size(beta) <= 0.8 * budget
    assert serialized_size(files) > budget

    batches = partition_files(files, budget)

    assert len(batches) >= 2
    assert_exact_partition(files, batches)
    for directory in ("alpha", "beta"):
        holding = [b for b in batches if any(directory_of(f.path) == directory for f in b)]
        assert len(holding) == 1


def test_oversized_file_gets_own_batch():
    budget = 1000
    big = make_file("src/huge.py", 5000, 0.1)
    files = [big] + [make_file(f"lib/f{i}.py", 200, 0.5) for i in range(6)]

    batches = partition_files(files, budget)

    assert_exact_partition(files, batches)
    assert_budget_respected(batches, budget)
    big_batch = [b for b in batches if big in b][0]
    assert big_batch == [big]


def test_large_directory_is_split_within_budget():
    budget = 1000
    files = [make_file(f"src/mod/f{i}.py", 300, i / 10) for i in range(6)]

    batches = partition_files(files, budget)

    assert len(batches) >= 2
    assert_exact_partition(files, batches)
    assert_budget_respected(batches, budget)
    # most relevant file is placed first
    assert any(f.relevance == 0.5 for f in batches[0])


def test_partition_mixed_tree():
    budget = 2500
    files = []
    for d, count, size in [("src", 5, 400), ("src/api", 3, 900), ("docs", 2, 100), ("", 2, 50), ("lib/x/y", 4, 700)]:
        for i in range(count):
            path = f"{d}/file{i}.ts" if d else f"file{i}.ts"
            files.append(make_file(path, size, (i + 1) / 10))
    files.append(make_file("assets/blob.bin", 4000, 0.0))

    batches = partition_files(files, budget)

    assert_exact_partition(files, batches)
    assert_budget_respected(batches, budget)


def test_compaction_folds_small_batches():
    budget = 1000

    def group(path, size):
        g = _FileGroup()
        g.add([make_file(path)], size, directory_of(path))
        return g

    groups = [group("big/a.py", 700), group("small1/a.py", 200), group("small2/a.py", 300)]
    compacted = _compact(groups, budget)

    assert len(compacted) == 2
    merged = compacted[0]
    assert [f.path for f in merged.files] == ["small1/a.py", "small2/a.py"]
    assert merged.total_size == 499
    assert merged.directory_score == {"small1": 1, "small2": 1}


def test_affinity_prefers_related_directories():
    group = _FileGroup()
    group.add([make_file("src/a/x.py")], 10, "src/a")

    assert group.affinity("src/a") == 3
    assert group.affinity("src/a/b") == 2
    assert group.affinity("src") == 2
    assert group.affinity("lib") == 0


class TestPayloadSizing:

    def test_truncate_keeps_head_and_tail(self):
        content = "H" * 60 + "M" * 40 + "T" * 40
        out = truncate_content(content, 100)

        assert out.startswith("H" * 60)
        assert out.endswith("T" * 40)
        assert "[content truncated, 40 characters omitted]" in out

    def test_truncate_leaves_short_content(self):
        assert truncate_content("short", 100) == "short"

    def test_drops_least_relevant_over_cap(self):
        files = [
            make_file("a.py", 500, 0.9),
            make_file("b.py", 500, 0.1),
            make_file("c.py", 500, 0.5),
        ]
        out = prepare_payload_files(files, max_total_chars=1200, truncate=False)

        assert [f.path for f in out] == ["a.py", "c.py"]

    def test_keeps_one_file_even_if_over_cap(self):
        out = prepare_payload_files([make_file("a.py", 5000)], max_total_chars=100, truncate=False)
        assert len(out) == 1

    def test_no_cap(self):
        files = [make_file(f"{i}.py", 1000) for i in range(5)]
        assert len(prepare_payload_files(files, max_total_chars=None)) == 5

    def test_truncation_applied(self):
        out = prepare_payload_files([make_file("a.py", 500)], max_file_chars=100)
        assert "characters omitted" in out[0].content
        assert isinstance(out[0], ScoredFile)

    def test_full_batch_over_cap_logs_dropped_files(self, caplog):
        files = [make_file(f"src/f{i}.py", 900, i / 10) for i in range(3)]
        batches = partition_files(files, 5000)
        assert batches == [files]

        with caplog.at_level("WARNING", logger="repo_grader.utils.chunking"):
            out = prepare_payload_files(batches[0], max_total_chars=2000, truncate=False)

        assert [f.path for f in out] == ["src/f2.py", "src/f1.py"]
        assert "dropped 1 least relevant files (src/f0.py)" in caplog.text
