"""Tests for adaptive difficulty selection."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from phishguard.services.difficulty import select_difficulty, tier_for
from phishguard.services.progression import record_attempt


def _history(trainee, scores, start=None):
    """Record ``scores`` oldest first, one minute apart."""
    start = start or datetime.utcnow() - timedelta(hours=1)
    for i, score in enumerate(scores):
        record_attempt(trainee.id, score=score, difficulty=2, is_correct=score >= 50,
                       created_at=start + timedelta(minutes=i))


@pytest.mark.parametrize("scores,tier", [
    ([], 2),
    ([100], 2),
    ([100, 100], 2),
    ([0, 0], 2),
    ([90, 90, 90], 4),
    ([86, 86, 86, 86, 86], 4),
    ([85, 85, 85], 3),
    ([71, 71, 71], 3),
    ([70, 70, 70], 2),
    ([51, 51, 51], 2),
    ([50, 50, 50], 1),
    ([0, 10, 20, 30, 40], 1),
])
def test_tier_for(scores, tier):
    assert tier_for(scores) == tier


def test_unknown_trainee_gets_bootstrap_tier(app):
    assert select_difficulty(12345) == 2


def test_short_history_ignores_scores(trainee):
    _history(trainee, [100, 100])
    assert select_difficulty(trainee.id) == 2


def test_only_five_most_recent_attempts_count(trainee):
    old = datetime.utcnow() - timedelta(days=3)
    _history(trainee, [0, 0, 0, 0, 0, 0], start=old)
    _history(trainee, [95, 95, 95, 95, 95])
    assert select_difficulty(trainee.id) == 4


def test_struggling_trainee_drops_to_tier_one(trainee):
    _history(trainee, [20, 30, 40, 45])
    assert select_difficulty(trainee.id) == 1


def test_selection_is_repeatable(trainee):
    _history(trainee, [60, 80, 75, 72])
    first = select_difficulty(trainee.id)
    assert first == 3
    assert all(select_difficulty(trainee.id) == first for _ in range(3))
