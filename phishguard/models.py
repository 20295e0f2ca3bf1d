from datetime import datetime
from phishguard import db

SIM_TYPES = ("email", "phone", "deepfake")
CAMPAIGN_STATUSES = ("active", "completed", "cancelled")


class Department(db.Model):
    __tablename__ = "departments"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), unique=True, nullable=False)
    risk_score = db.Column(db.Integer, nullable=False, default=100)

class Trainee(db.Model):
    __tablename__ = "trainees"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    dept_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)
    security_score = db.Column(db.Integer, nullable=False, default=100)
    simulations_completed = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    best_streak = db.Column(db.Integer, nullable=False, default=0)
    xp = db.Column(db.Integer, nullable=False, default=0)
    level = db.Column(db.Integer, nullable=False, default=1)  # always xp // 200 + 1
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    department = db.relationship("Department", backref="trainees")

    def progress_dict(self):
        return {
            "security_score": self.security_score,
            "xp": self.xp,
            "level": self.level,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "simulations_completed": self.simulations_completed,
        }

class Simulation(db.Model):
    __tablename__ = "simulations"
    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(20), nullable=False)  # email/phone/deepfake
    difficulty = db.Column(db.Integer, nullable=False)
    content = db.Column(db.JSON, nullable=True)  # None for placeholder records
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

class Campaign(db.Model):
    __tablename__ = "campaigns"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    target_dept_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False)
    sim_type = db.Column(db.String(20), nullable=False)
    launched_at = db.Column(db.DateTime, default=datetime.utcnow)

    department = db.relationship("Department")

class Attempt(db.Model):
    __tablename__ = "attempts"
    id = db.Column(db.Integer, primary_key=True)
    trainee_id = db.Column(db.Integer, db.ForeignKey("trainees.id"), nullable=False, index=True)
    simulation_id = db.Column(db.Integer, db.ForeignKey("simulations.id"), nullable=False)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)
    sim_type = db.Column(db.String(20), nullable=False, default="email")
    is_correct = db.Column(db.Boolean, nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    response_time_ms = db.Column(db.Integer, nullable=False, default=0)
    difficulty = db.Column(db.Integer, nullable=False, default=1)
    flags_identified = db.Column(db.JSON, nullable=True)
    flags_missed = db.Column(db.JSON, nullable=True)
    feedback = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    trainee = db.relationship("Trainee", backref="attempts")
    simulation = db.relationship("Simulation", backref="attempts")
    campaign = db.relationship("Campaign", backref=db.backref("attempts", passive_deletes=True))

    def to_report(self):
        return {
            "id": self.id,
            "is_correct": self.is_correct,
            "score": self.score,
            "response_time_ms": self.response_time_ms,
            "difficulty": self.difficulty,
            "feedback": self.feedback,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "sim_type": self.sim_type,
            "flags_identified": self.flags_identified,
            "flags_missed": self.flags_missed,
        }
