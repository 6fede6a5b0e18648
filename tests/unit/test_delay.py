from __future__ import annotations

import pytest

from rankpool.pipeline.delay import ELEVATED, NOMINAL, RUNAWAY, DelayShaper

NOMINAL_DELAY = 0.002
ELEVATED_DELAY = 0.005
ESCALATION = 0.002


@pytest.fixture
def shaper() -> DelayShaper:
    return DelayShaper()


@pytest.mark.parametrize(
    ("total_chunks", "expected"),
    [(1, NOMINAL), (9, NOMINAL), (10, ELEVATED), (18, ELEVATED), (19, RUNAWAY), (40, RUNAWAY)],
)
def test_regime_boundaries(shaper: DelayShaper, total_chunks: int, expected: str) -> None:
    assert shaper.regime(total_chunks) == expected


def test_small_requests_hold_nominal_delay(shaper: DelayShaper) -> None:
    assert [shaper.delay(i, 5) for i in range(5)] == [NOMINAL_DELAY] * 5


def test_medium_requests_hold_flat_elevated_delay(shaper: DelayShaper) -> None:
    assert {shaper.delay(i, 15) for i in range(15)} == {ELEVATED_DELAY}


def test_large_requests_escalate_quadratically(shaper: DelayShaper) -> None:
    delays = [shaper.delay(i, 25) for i in range(25)]

    assert delays[0] == pytest.approx(ELEVATED_DELAY)
    assert delays[3] == pytest.approx(ELEVATED_DELAY + ESCALATION * 9)
    assert all(later > earlier for earlier, later in zip(delays, delays[1:]))


def test_two_hundred_items_run_away(shaper: DelayShaper) -> None:
    # 200 items at chunk size 10 -> 20 chunks, last one held 0.005 + 0.002 * 19**2.
    assert shaper.regime(20) == RUNAWAY
    assert shaper(19, 20) == pytest.approx(0.727)
    assert shaper.total_hold(20) == pytest.approx(20 * ELEVATED_DELAY + ESCALATION * 2470)


def test_delay_is_deterministic(shaper: DelayShaper) -> None:
    assert shaper.delay(7, 30) == shaper.delay(7, 30)


def test_invalid_tiers_are_rejected() -> None:
    with pytest.raises(ValueError):
        DelayShaper(elevated_chunks=20, runaway_chunks=10)
    with pytest.raises(ValueError):
        DelayShaper(nominal_seconds=0.01, elevated_seconds=0.001)
