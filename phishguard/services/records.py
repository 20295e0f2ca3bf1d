"""CRUD over departments, trainees, simulations and campaigns.

Attempts are not created here: only the progression engine inserts them.
"""

import logging
import math

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from phishguard import db
from phishguard.errors import ConflictError, NotFound, StoreError, ValidationError
from phishguard.models import (
    CAMPAIGN_STATUSES,
    SIM_TYPES,
    Attempt,
    Campaign,
    Department,
    Simulation,
    Trainee,
)

logger = logging.getLogger(__name__)


def require_int(value, name, low=None, high=None, whole=False) -> int:
    """Validate a number against ``[low, high]`` and return it as an int.

    The range is checked before rounding, so 100.4 is out of ``[0, 100]``.
    With ``whole=True`` fractional values are rejected instead of rounded.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number.")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{name} must be a number.")
    if high is None and low is not None and value < low:
        raise ValidationError(f"{name} must be at least {low}.")
    if (low is not None and value < low) or (high is not None and value > high):
        raise ValidationError(f"{name} must be between {low} and {high}.")
    if isinstance(value, float):
        if whole and not value.is_integer():
            raise ValidationError(f"{name} must be a whole number.")
        value = int(round(value))
    return value


def require_sim_type(sim_type) -> str:
    if sim_type not in SIM_TYPES:
        raise ValidationError(f"sim_type must be one of: {', '.join(SIM_TYPES)}.")
    return sim_type


def _require_text(value, name) -> str:
    value = (value or "").strip() if isinstance(value, str) else ""
    if not value:
        raise ValidationError(f"{name} is required.")
    return value


def _commit(what):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{what} already exists or references a missing record.")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Store write failed: %s", what)
        raise StoreError()


def create_department(name, risk_score=100) -> Department:
    dept = Department(
        name=_require_text(name, "name"),
        risk_score=require_int(risk_score, "risk_score", 0, 100),
    )
    db.session.add(dept)
    _commit("Department")
    return dept


def create_trainee(name, email, dept_id=None) -> Trainee:
    name = _require_text(name, "name")
    email = _require_text(email, "email").lower()
    if "@" not in email:
        raise ValidationError("email must be a valid address.")
    if dept_id is not None and db.session.get(Department, dept_id) is None:
        raise NotFound("Department not found.")

    trainee = Trainee(name=name, email=email, dept_id=dept_id)
    db.session.add(trainee)
    _commit("Trainee")
    logger.info("Onboarded trainee %s", trainee.id)
    return trainee


def get_trainee(trainee_id) -> Trainee:
    trainee = db.session.get(Trainee, trainee_id)
    if trainee is None:
        raise NotFound("Trainee not found.")
    return trainee


def create_simulation(sim_type, difficulty, content) -> Simulation:
    sim = Simulation(
        type=require_sim_type(sim_type),
        difficulty=require_int(difficulty, "difficulty", 1, 5, whole=True),
        content=content,
    )
    db.session.add(sim)
    _commit("Simulation")
    return sim


def get_simulation(simulation_id) -> Simulation:
    sim = db.session.get(Simulation, simulation_id)
    if sim is None:
        raise NotFound("Simulation not found.")
    return sim


def create_campaign(name, target_dept_id, sim_type, status="active") -> Campaign:
    if status not in CAMPAIGN_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(CAMPAIGN_STATUSES)}.")
    name = _require_text(name, "name")
    sim_type = require_sim_type(sim_type)
    if db.session.get(Department, target_dept_id) is None:
        raise NotFound("Department not found.")

    campaign = Campaign(name=name, target_dept_id=target_dept_id, sim_type=sim_type, status=status)
    db.session.add(campaign)
    _commit("Campaign")
    logger.info("Launched campaign %s for department %s", campaign.id, target_dept_id)
    return campaign


def delete_campaign(campaign_id):
    """Delete a campaign, detaching (not deleting) the attempts that reference it."""
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound("Campaign not found.")
    db.session.execute(
        update(Attempt).where(Attempt.campaign_id == campaign_id).values(campaign_id=None)
    )
    db.session.delete(campaign)
    _commit("Campaign")
    logger.info("Deleted campaign %s", campaign_id)


def list_campaigns():
    response_count = (
        select(func.count(Attempt.id))
        .where(Attempt.campaign_id == Campaign.id)
        .correlate(Campaign)
        .scalar_subquery()
    )
    rows = db.session.execute(
        select(Campaign, Department.name, response_count)
        .join(Department, Campaign.target_dept_id == Department.id)
        .order_by(Campaign.launched_at.desc(), Campaign.id.desc())
    ).all()
    return [
        {
            "id": c.id,
            "name": c.name,
            "status": c.status,
            "target_dept_id": c.target_dept_id,
            "sim_type": c.sim_type,
            "launched_at": c.launched_at.isoformat() if c.launched_at else None,
            "dept_name": dept_name,
            "response_count": count,
        }
        for c, dept_name, count in rows
    ]


def list_departments():
    trainee_count = (
        select(func.count(Trainee.id))
        .where(Trainee.dept_id == Department.id)
        .correlate(Department)
        .scalar_subquery()
    )
    avg_score = (
        select(func.avg(Trainee.security_score))
        .where(Trainee.dept_id == Department.id)
        .correlate(Department)
        .scalar_subquery()
    )
    total_sims = (
        select(func.count(Attempt.id))
        .join(Trainee, Attempt.trainee_id == Trainee.id)
        .where(Trainee.dept_id == Department.id)
        .correlate(Department)
        .scalar_subquery()
    )
    rows = db.session.execute(
        select(Department, trainee_count, avg_score, total_sims).order_by(Department.id)
    ).all()
    return [
        {
            "id": d.id,
            "name": d.name,
            "risk_score": d.risk_score,
            "employee_count": employees,
            "avg_score": float(avg) if avg is not None else None,
            "total_sims": sims,
        }
        for d, employees, avg, sims in rows
    ]
