from __future__ import annotations

import pytest

from rankpool.errors import InvalidInput
from rankpool.pipeline.chunking import ChunkPlan, ChunkWindow

DEFAULT_CHUNK_SIZE = 10


@pytest.mark.parametrize(
    ("limit", "expected_chunks", "expected_last"),
    [
        (0, 0, 0),
        (1, 1, 1),
        (10, 1, 10),
        (11, 2, 1),
        (95, 10, 5),
        (200, 20, 10),
    ],
)
def test_plan_counts_chunks_and_last_size(limit: int, expected_chunks: int, expected_last: int) -> None:
    plan = ChunkPlan.build(limit, DEFAULT_CHUNK_SIZE)

    assert plan.total_chunks == expected_chunks
    assert plan.last_chunk_size == expected_last


def test_windows_cover_the_limit_without_overlap() -> None:
    plan = ChunkPlan.build(95, DEFAULT_CHUNK_SIZE)
    windows = list(plan.windows())

    assert [w.index for w in windows] == list(range(10))
    assert sum(w.limit for w in windows) == 95
    assert windows[-1] == ChunkWindow(index=9, offset=90, limit=5)
    for previous, current in zip(windows, windows[1:]):
        assert current.offset == previous.offset + previous.limit


def test_zero_limit_has_no_windows() -> None:
    assert list(ChunkPlan.build(0, DEFAULT_CHUNK_SIZE).windows()) == []


def test_negative_limit_is_rejected() -> None:
    with pytest.raises(InvalidInput) as excinfo:
        ChunkPlan.build(-1, DEFAULT_CHUNK_SIZE)
    assert excinfo.value.stage == "plan"


@pytest.mark.parametrize("chunk_size", [0, -5])
def test_non_positive_chunk_size_is_rejected(chunk_size: int) -> None:
    with pytest.raises(InvalidInput):
        ChunkPlan.build(10, chunk_size)
