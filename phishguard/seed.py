"""Demo data for the dashboard charts. Only runs when invoked explicitly."""

import logging
import random
from datetime import datetime, timedelta

import click
from flask.cli import with_appcontext
from sqlalchemy import func, select

from phishguard import db
from phishguard.models import SIM_TYPES, Department
from phishguard.services import records
from phishguard.services.progression import record_attempt

logger = logging.getLogger(__name__)

DEMO_DEPARTMENTS = [
    ("Engineering", 72),
    ("Finance", 85),
    ("Marketing", 58),
    ("HR", 63),
    ("Sales", 51),
]

DEMO_TRAINEES = [
    ("Alice Chen", "alice@corp.com", "Engineering"),
    ("Bob Smith", "bob@corp.com", "Finance"),
    ("Charlie Day", "charlie@corp.com", "Marketing"),
    ("Diana Ross", "diana@corp.com", "HR"),
    ("Eve Johnson", "eve@corp.com", "Sales"),
]


def seed_demo(rng=None, days=14) -> bool:
    """Populate an empty store. Returns False (and writes nothing) if departments exist."""
    rng = rng or random.Random()
    if db.session.scalar(select(func.count(Department.id))):
        return False

    dept_ids = {}
    for name, risk in DEMO_DEPARTMENTS:
        dept_ids[name] = records.create_department(name, risk).id

    trainee_ids = [
        records.create_trainee(name, email, dept_ids[dept]).id
        for name, email, dept in DEMO_TRAINEES
    ]

    now = datetime.utcnow()
    attempts = 0
    for day in range(days - 1, -1, -1):
        when = now - timedelta(days=day)
        for _ in range(rng.randint(1, 4)):
            correct = rng.random() > 0.35
            score = rng.randint(70, 99) if correct else rng.randint(10, 59)
            sim_type = rng.choice(SIM_TYPES)
            difficulty = rng.randint(1, 5)
            sim = records.create_simulation(sim_type, difficulty, None)
            record_attempt(
                trainee_id=rng.choice(trainee_ids),
                score=score,
                difficulty=difficulty,
                is_correct=correct,
                sim_type=sim_type,
                simulation_id=sim.id,
                response_time_ms=rng.randint(5000, 64999),
                created_at=when,
            )
            attempts += 1

    logger.info("Seeded %d departments, %d trainees, %d attempts",
                len(dept_ids), len(trainee_ids), attempts)
    return True


@click.command("seed-demo")
@click.option("--days", default=14, show_default=True, help="Days of history to generate.")
@click.option("--seed", "seed_value", type=int, default=None, help="Random seed for repeatable data.")
@with_appcontext
def seed_demo_command(days, seed_value):
    """Fill an empty database with demo departments, trainees and results."""
    if seed_demo(random.Random(seed_value), days=days):
        click.echo("Demo data created.")
    else:
        click.echo("Database already has departments; nothing seeded.")
