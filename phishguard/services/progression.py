"""
Scoring and progression: the only code allowed to change a trainee's XP,
level, streaks and security score.

Each call inserts exactly one Attempt (plus a placeholder Simulation when
the caller has none) and updates exactly one Trainee, in one transaction.
"""

import logging
import threading
from dataclasses import dataclass, replace

from sqlalchemy.exc import SQLAlchemyError

from phishguard import db
from phishguard.errors import NotFound, StoreError, ValidationError
from phishguard.models import Attempt, Campaign, Simulation, Trainee
from phishguard.services.records import require_int, require_sim_type

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 200
CORRECT_BASE_XP = 50
INCORRECT_BASE_XP = 10


@dataclass(frozen=True)
class Progression:
    xp_awarded: int
    new_level: int
    new_streak: int
    best_streak: int
    total_xp: int
    security_score: int
    simulations_completed: int
    attempt_id: int = None

    def to_response(self):
        return {
            "id": self.attempt_id,
            "xp": self.xp_awarded,
            "newLevel": self.new_level,
            "streak": self.new_streak,
            "totalXP": self.total_xp,
        }


def level_for(xp) -> int:
    return xp // XP_PER_LEVEL + 1


def compute_progression(trainee, score, difficulty, is_correct) -> Progression:
    """Pure arithmetic over the trainee's current state; nothing is written."""
    base_xp = CORRECT_BASE_XP if is_correct else INCORRECT_BASE_XP
    # floor(base * difficulty * 0.5 + score / 10) in integer arithmetic
    xp_awarded = (base_xp * difficulty * 5 + score) // 10
    total_xp = trainee.xp + xp_awarded
    new_streak = trainee.current_streak + 1 if is_correct else 0

    if is_correct:
        security_score = min(100, trainee.security_score + 2 + difficulty)
    else:
        security_score = max(0, trainee.security_score - 3 - difficulty)

    return Progression(
        xp_awarded=xp_awarded,
        new_level=level_for(total_xp),
        new_streak=new_streak,
        best_streak=max(trainee.best_streak, new_streak),
        total_xp=total_xp,
        security_score=security_score,
        simulations_completed=trainee.simulations_completed + 1,
    )


class _TraineeLocks:
    """One lock per trainee id so same-trainee updates never interleave."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def get(self, trainee_id):
        with self._guard:
            lock = self._locks.get(trainee_id)
            if lock is None:
                lock = self._locks[trainee_id] = threading.Lock()
            return lock


_locks = _TraineeLocks()


def record_attempt(
    trainee_id,
    score,
    difficulty,
    is_correct,
    sim_type="email",
    simulation_id=None,
    campaign_id=None,
    response_time_ms=0,
    flags_identified=None,
    flags_missed=None,
    feedback="",
    created_at=None,
) -> Progression:
    """
    Score one trainee response and persist it.

    ``created_at`` backdates the attempt (demo seeding and imports); it
    defaults to now.
    """
    score = require_int(score, "score", 0, 100)
    difficulty = require_int(difficulty, "difficulty", 1, 5, whole=True)
    response_time_ms = require_int(response_time_ms or 0, "response_time_ms", 0)
    sim_type = require_sim_type(sim_type)
    if not isinstance(is_correct, bool):
        raise ValidationError("is_correct must be true or false.")
    for name, flags in (("flags_identified", flags_identified), ("flags_missed", flags_missed)):
        if flags is not None and not isinstance(flags, list):
            raise ValidationError(f"{name} must be a list.")

    # Only existing trainees get a registry entry.
    if db.session.get(Trainee, trainee_id) is None:
        raise NotFound("Trainee not found.")

    with _locks.get(trainee_id):
        try:
            trainee = db.session.get(
                Trainee, trainee_id, with_for_update=True, populate_existing=True
            )
            if trainee is None:
                raise NotFound("Trainee not found.")
            if simulation_id is not None and db.session.get(Simulation, simulation_id) is None:
                raise NotFound("Simulation not found.")
            if campaign_id is not None and db.session.get(Campaign, campaign_id) is None:
                raise NotFound("Campaign not found.")

            if simulation_id is None:
                placeholder = Simulation(type=sim_type, difficulty=difficulty)
                db.session.add(placeholder)
                db.session.flush()
                simulation_id = placeholder.id

            progression = compute_progression(trainee, score, difficulty, is_correct)

            attempt = Attempt(
                trainee_id=trainee.id,
                simulation_id=simulation_id,
                campaign_id=campaign_id,
                sim_type=sim_type,
                is_correct=is_correct,
                score=score,
                response_time_ms=response_time_ms,
                difficulty=difficulty,
                flags_identified=flags_identified,
                flags_missed=flags_missed,
                feedback=feedback or "",
            )
            if created_at is not None:
                attempt.created_at = created_at
            db.session.add(attempt)

            trainee.xp = progression.total_xp
            trainee.level = progression.new_level
            trainee.current_streak = progression.new_streak
            trainee.best_streak = progression.best_streak
            trainee.security_score = progression.security_score
            trainee.simulations_completed = progression.simulations_completed

            db.session.flush()
            attempt_id = attempt.id
            db.session.commit()
        except NotFound:
            db.session.rollback()
            raise
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Progression write failed for trainee %s", trainee_id)
            raise StoreError()

    logger.info(
        "Trainee %s: +%d XP (total %d, level %d, streak %d, security %d)",
        trainee_id,
        progression.xp_awarded,
        progression.total_xp,
        progression.new_level,
        progression.new_streak,
        progression.security_score,
    )
    return replace(progression, attempt_id=attempt_id)
