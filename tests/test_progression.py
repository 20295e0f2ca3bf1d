"""Tests for the scoring and progression engine."""

from __future__ import annotations

import random
import threading
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from phishguard import create_app, db
from phishguard.errors import NotFound, StoreError, ValidationError
from phishguard.models import Attempt, Simulation, Trainee
from phishguard.services import records
from phishguard.services.progression import _locks, compute_progression, level_for, record_attempt


def _count(model):
    return db.session.scalar(select(func.count(model.id)))


def _state(**overrides):
    state = dict(xp=0, current_streak=0, best_streak=0, security_score=100, simulations_completed=0)
    state.update(overrides)
    return SimpleNamespace(**state)


# ─────────────────────────────────────────────────────────────────────────────
# Pure arithmetic
# ─────────────────────────────────────────────────────────────────────────────


def test_fresh_trainee_correct_attempt():
    p = compute_progression(_state(), score=90, difficulty=3, is_correct=True)
    assert p.xp_awarded == 84
    assert p.total_xp == 84
    assert p.new_level == 1
    assert p.new_streak == 1


def test_crossing_level_boundary():
    p = compute_progression(_state(xp=180), score=100, difficulty=2, is_correct=True)
    assert p.xp_awarded == 60
    assert p.total_xp == 240
    assert p.new_level == 2


def test_incorrect_attempt_penalty_scales_with_difficulty():
    p = compute_progression(_state(security_score=95), score=20, difficulty=5, is_correct=False)
    assert p.security_score == 87
    assert p.xp_awarded == 27  # floor(10 * 5 * 0.5 + 2)


def test_security_score_clamped_high():
    p = compute_progression(_state(security_score=99), score=80, difficulty=1, is_correct=True)
    assert p.security_score == 100


def test_security_score_clamped_low():
    p = compute_progression(_state(security_score=4), score=0, difficulty=4, is_correct=False)
    assert p.security_score == 0


def test_incorrect_resets_long_streak_but_keeps_best():
    p = compute_progression(_state(current_streak=12, best_streak=12), 40, 3, False)
    assert p.new_streak == 0
    assert p.best_streak == 12


@pytest.mark.parametrize("xp,level", [(0, 1), (199, 1), (200, 2), (399, 2), (1000, 6)])
def test_level_for(xp, level):
    assert level_for(xp) == level


# ─────────────────────────────────────────────────────────────────────────────
# Persistence
# ─────────────────────────────────────────────────────────────────────────────


def test_record_attempt_persists_trainee_and_attempt(trainee):
    result = record_attempt(
        trainee.id, score=90, difficulty=3, is_correct=True, sim_type="phone",
        response_time_ms=4200, flags_identified=["Urgency"], flags_missed=[], feedback="Nice",
    )
    assert result.attempt_id is not None
    assert result.to_response() == {
        "id": result.attempt_id, "xp": 84, "newLevel": 1, "streak": 1, "totalXP": 84,
    }

    stored = db.session.get(Trainee, trainee.id)
    assert (stored.xp, stored.level, stored.current_streak, stored.best_streak) == (84, 1, 1, 1)
    assert stored.security_score == 100
    assert stored.simulations_completed == 1

    attempt = db.session.get(Attempt, result.attempt_id)
    assert attempt.sim_type == "phone"
    assert attempt.flags_identified == ["Urgency"]
    assert attempt.difficulty == 3
    assert attempt.response_time_ms == 4200


def test_placeholder_simulation_is_created(trainee):
    result = record_attempt(trainee.id, score=50, difficulty=2, is_correct=False, sim_type="deepfake")
    attempt = db.session.get(Attempt, result.attempt_id)
    sim = db.session.get(Simulation, attempt.simulation_id)
    assert sim.type == "deepfake"
    assert sim.difficulty == 2
    assert sim.content is None


def test_existing_simulation_is_referenced(trainee):
    sim = records.create_simulation("email", 4, {"subject": "Invoice"})
    result = record_attempt(trainee.id, 70, 4, True, simulation_id=sim.id)
    assert db.session.get(Attempt, result.attempt_id).simulation_id == sim.id
    assert _count(Simulation) == 1


def test_unknown_trainee_writes_nothing(app):
    with pytest.raises(NotFound):
        record_attempt(999, score=90, difficulty=3, is_correct=True)
    assert _count(Attempt) == 0
    assert _count(Simulation) == 0


def test_unknown_trainees_do_not_grow_lock_registry(app):
    before = len(_locks._locks)
    for trainee_id in range(100000, 100500):
        with pytest.raises(NotFound):
            record_attempt(trainee_id, score=50, difficulty=2, is_correct=True)
    assert len(_locks._locks) == before


def test_whole_float_difficulty_is_accepted(trainee):
    result = record_attempt(trainee.id, score=99.6, difficulty=3.0, is_correct=True)
    attempt = db.session.get(Attempt, result.attempt_id)
    assert attempt.difficulty == 3
    assert attempt.score == 100


@pytest.mark.parametrize("field,value", [("simulation_id", 404), ("campaign_id", 404)])
def test_unknown_references_are_not_found(trainee, field, value):
    with pytest.raises(NotFound):
        record_attempt(trainee.id, 50, 2, True, **{field: value})
    assert _count(Attempt) == 0
    assert db.session.get(Trainee, trainee.id).xp == 0


@pytest.mark.parametrize("kwargs", [
    {"score": 101},
    {"score": -1},
    {"score": "90"},
    {"score": 100.4},
    {"score": -0.4},
    {"difficulty": 2.5},
    {"difficulty": 5.5},
    {"is_correct": "false"},
    {"is_correct": 1},
    {"difficulty": 0},
    {"difficulty": 6},
    {"sim_type": "sms"},
    {"response_time_ms": -5},
    {"flags_missed": "Urgency"},
])
def test_invalid_input_rejected(trainee, kwargs):
    args = {"score": 80, "difficulty": 2, "is_correct": True}
    args.update(kwargs)
    with pytest.raises(ValidationError):
        record_attempt(trainee.id, **args)
    assert _count(Attempt) == 0


def test_store_failure_rolls_back_both_halves(trainee, monkeypatch):
    def boom():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db.session, "commit", boom)
    with pytest.raises(StoreError):
        record_attempt(trainee.id, score=90, difficulty=3, is_correct=True)
    monkeypatch.undo()

    stored = db.session.get(Trainee, trainee.id)
    assert stored.xp == 0
    assert stored.simulations_completed == 0
    assert _count(Attempt) == 0
    assert _count(Simulation) == 0


def test_invariants_hold_over_random_sequence(trainee):
    rng = random.Random(7)
    previous_xp = 0
    for _ in range(60):
        correct = rng.random() > 0.4
        result = record_attempt(
            trainee.id,
            score=rng.randint(0, 100),
            difficulty=rng.randint(1, 5),
            is_correct=correct,
            sim_type=rng.choice(["email", "phone", "deepfake"]),
        )
        t = db.session.get(Trainee, trainee.id)
        assert t.level == t.xp // 200 + 1
        assert t.best_streak >= t.current_streak
        assert 0 <= t.security_score <= 100
        assert t.xp >= previous_xp
        if not correct:
            assert t.current_streak == 0
        assert result.total_xp == t.xp
        previous_xp = t.xp
    assert db.session.get(Trainee, trainee.id).simulations_completed == 60
    assert _count(Attempt) == 60


def test_trainee_locks_are_per_trainee():
    assert _locks.get(1) is _locks.get(1)
    assert _locks.get(1) is not _locks.get(2)


def test_concurrent_attempts_for_one_trainee_lose_no_updates(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'concurrent.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()
        trainee_id = records.create_trainee("Carol", "carol@corp.com").id
        db.session.remove()

    errors = []

    def worker():
        try:
            with app.app_context():
                for _ in range(20):
                    record_attempt(trainee_id, score=50, difficulty=2, is_correct=True)
        except Exception as exc:  # surfaced through the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with app.app_context():
        trainee = db.session.get(Trainee, trainee_id)
        assert trainee.simulations_completed == 160
        assert trainee.xp == 8800
        assert trainee.current_streak == 160
        assert _count(Attempt) == 160
        db.session.remove()
        db.engine.dispose()
