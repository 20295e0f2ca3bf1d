"""Read-only rollups over attempts and trainees. Every call hits the store."""

from sqlalchemy import case, func, select

from phishguard import db
from phishguard.models import Attempt, Department, Trainee

TIMELINE_DAYS = 30
TREND_DAYS = 14
RECENT_SCORES = 10
RECENT_REPORTS = 30

_day = func.date(Attempt.created_at)
_correct = func.sum(case((Attempt.is_correct.is_(True), 1), else_=0))
_incorrect = func.sum(case((Attempt.is_correct.is_(False), 1), else_=0))


def _num(value):
    return float(value) if value is not None else None


def _int(value):
    return int(value) if value is not None else 0


def timeline(trainee_id):
    rows = db.session.execute(
        select(
            _day.label("date"),
            func.count(Attempt.id),
            func.avg(Attempt.score),
            _correct,
            func.avg(Attempt.response_time_ms),
        )
        .where(Attempt.trainee_id == trainee_id)
        .group_by(_day)
        .order_by(_day.desc())
        .limit(TIMELINE_DAYS)
    ).all()
    return [
        {
            "date": str(date),
            "attempts": attempts,
            "avg_score": _num(avg_score),
            "correct": _int(correct),
            "avg_time": _num(avg_time),
        }
        for date, attempts, avg_score, correct, avg_time in reversed(rows)
    ]


def by_type(trainee_id):
    rows = db.session.execute(
        select(Attempt.sim_type, func.count(Attempt.id), func.avg(Attempt.score), _correct)
        .where(Attempt.trainee_id == trainee_id)
        .group_by(Attempt.sim_type)
        .order_by(Attempt.sim_type)
    ).all()
    return [
        {"sim_type": sim_type, "attempts": attempts, "avg_score": _num(avg), "correct": _int(correct)}
        for sim_type, attempts, avg, correct in rows
    ]


def difficulty_curve(trainee_id):
    rows = db.session.execute(
        select(Attempt.difficulty, func.avg(Attempt.score), func.count(Attempt.id))
        .where(Attempt.trainee_id == trainee_id)
        .group_by(Attempt.difficulty)
        .order_by(Attempt.difficulty)
    ).all()
    return [
        {"difficulty": difficulty, "avg_score": _num(avg), "attempts": attempts}
        for difficulty, avg, attempts in rows
    ]


def leaderboard():
    rows = db.session.execute(
        select(
            Trainee,
            Department.name,
            func.count(Attempt.id),
            func.avg(Attempt.score),
        )
        .outerjoin(Department, Trainee.dept_id == Department.id)
        .outerjoin(Attempt, Attempt.trainee_id == Trainee.id)
        .group_by(Trainee.id, Department.name)
        .order_by(Trainee.xp.desc(), Trainee.id)
    ).all()
    return [
        {
            "id": t.id,
            "name": t.name,
            "security_score": t.security_score,
            "xp": t.xp,
            "level": t.level,
            "current_streak": t.current_streak,
            "best_streak": t.best_streak,
            "dept_name": dept_name,
            "total_sims": total,
            "avg_score": _num(avg),
        }
        for t, dept_name, total, avg in rows
    ]


def admin_overview():
    total, successes, compromises, avg_score, avg_time = db.session.execute(
        select(
            func.count(Attempt.id),
            _correct,
            _incorrect,
            func.avg(Attempt.score),
            func.avg(Attempt.response_time_ms),
        )
    ).one()

    risk_rows = db.session.execute(
        select(Attempt.sim_type, func.count(Attempt.id), func.avg(Attempt.score), _incorrect)
        .group_by(Attempt.sim_type)
        .order_by(Attempt.sim_type)
    ).all()

    trend_rows = db.session.execute(
        select(_day, func.avg(Attempt.score), func.count(Attempt.id))
        .group_by(_day)
        .order_by(_day.desc())
        .limit(TREND_DAYS)
    ).all()

    return {
        "total_sims": total,
        "total_reports": _int(successes),
        "total_compromises": _int(compromises),
        "org_avg_score": _num(avg_score),
        "org_avg_time": _num(avg_time),
        "riskByType": [
            {
                "sim_type": sim_type,
                "total": count,
                "avg_score": _num(avg),
                "fail_rate": _int(failed) * 100.0 / count,
            }
            for sim_type, count, avg, failed in risk_rows
        ],
        "trendData": [
            {"date": str(date), "avg_score": _num(avg), "volume": volume}
            for date, avg, volume in trend_rows
        ],
    }


def trainee_stats(trainee):
    total, correct, avg_time, avg_score = db.session.execute(
        select(
            func.count(Attempt.id),
            _correct,
            func.avg(Attempt.response_time_ms),
            func.avg(Attempt.score),
        ).where(Attempt.trainee_id == trainee.id)
    ).one()
    recent = db.session.execute(
        select(Attempt.score, Attempt.sim_type, Attempt.difficulty, Attempt.created_at)
        .where(Attempt.trainee_id == trainee.id)
        .order_by(Attempt.created_at.desc(), Attempt.id.desc())
        .limit(RECENT_SCORES)
    ).all()
    stats = {
        "total_simulations": total,
        "correct_count": _int(correct),
        "avg_response_time": _num(avg_time),
        "avg_score": _num(avg_score),
        "recentScores": [
            {
                "score": score,
                "sim_type": sim_type,
                "difficulty": difficulty,
                "created_at": created_at.isoformat() if created_at else None,
            }
            for score, sim_type, difficulty, created_at in recent
        ],
    }
    stats.update(trainee.progress_dict())
    return stats


def recent_reports(trainee_id):
    attempts = db.session.execute(
        select(Attempt)
        .where(Attempt.trainee_id == trainee_id)
        .order_by(Attempt.created_at.desc(), Attempt.id.desc())
        .limit(RECENT_REPORTS)
    ).scalars().all()
    return [a.to_report() for a in attempts]
