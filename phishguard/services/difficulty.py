from sqlalchemy import select

from phishguard import db
from phishguard.models import Attempt

WINDOW = 5
MIN_HISTORY = 3
BOOTSTRAP_TIER = 2


def tier_for(scores) -> int:
    """
    Map a trainee's recent scores (newest first, at most WINDOW) to a tier.
    Fewer than MIN_HISTORY scores is not enough signal to adapt.
    """
    if len(scores) < MIN_HISTORY:
        return BOOTSTRAP_TIER
    mean = sum(scores) / len(scores)
    if mean > 85:
        return 4
    if mean > 70:
        return 3
    if mean > 50:
        return 2
    return 1


def select_difficulty(trainee_id) -> int:
    scores = db.session.execute(
        select(Attempt.score)
        .where(Attempt.trainee_id == trainee_id)
        .order_by(Attempt.created_at.desc(), Attempt.id.desc())
        .limit(WINDOW)
    ).scalars().all()
    return tier_for(list(scores))
