from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request

from phishguard.errors import ValidationError
from phishguard.services import analytics, content_generator, records
from phishguard.services.difficulty import select_difficulty
from phishguard.services.progression import record_attempt

main_bp = Blueprint("main", __name__, url_prefix="/api")


def _body():
    return request.get_json(silent=True) or {}


def _trainee_id(source):
    raw = source.get("trainee_id", source.get("employee_id"))
    if raw in (None, ""):
        return current_app.config["DEFAULT_TRAINEE_ID"]
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("trainee_id must be an integer.")


@main_bp.route("/health")
def health():
    return jsonify({"status": "ok", "gemini": bool(current_app.config["GEMINI_API_KEY"])})


# Generation

@main_bp.route("/generate/email", methods=["POST"])
def generate_email():
    trainee = records.get_trainee(_trainee_id(_body()))
    difficulty = select_difficulty(trainee.id)
    email = content_generator.generate_email(content_generator.get_client(), difficulty)
    sim = records.create_simulation("email", difficulty, email)
    return jsonify({**email, "simulation_id": sim.id, "difficulty": difficulty})


@main_bp.route("/generate/phone", methods=["POST"])
def generate_phone():
    trainee = records.get_trainee(_trainee_id(_body()))
    difficulty = select_difficulty(trainee.id)
    call = content_generator.generate_phone_call(content_generator.get_client(), difficulty)
    sim = records.create_simulation("phone", difficulty, call["content"])
    return jsonify({
        **call["content"],
        "audioBase64": call["audioBase64"],
        "simulation_id": sim.id,
        "difficulty": difficulty,
    })


@main_bp.route("/generate/deepfake", methods=["POST"])
def generate_deepfake():
    trainee = records.get_trainee(_trainee_id(_body()))
    difficulty = select_difficulty(trainee.id)
    clip = content_generator.generate_deepfake(content_generator.get_client(), difficulty)
    sim = records.create_simulation("deepfake", difficulty, clip["content"])
    return jsonify({
        **clip["content"],
        "audioBase64": clip["audioBase64"],
        "contextHints": clip["contextHints"],
        "simulation_id": sim.id,
        "difficulty": difficulty,
    })


# Evaluation

@main_bp.route("/analyze/phone-engagement", methods=["POST"])
def analyze_phone_engagement():
    data = _body()
    verdict = content_generator.judge_phone_engagement(
        content_generator.get_client(),
        data.get("transcript"),
        data.get("scenario"),
        data.get("attacker_script"),
    )
    return jsonify(verdict)


@main_bp.route("/analyze", methods=["POST"])
def analyze():
    data = _body()
    grade = content_generator.grade_flags(
        content_generator.get_client(),
        data.get("simulation_content"),
        data.get("user_flags"),
        data.get("sim_type"),
    )
    return jsonify(grade)


@main_bp.route("/chat", methods=["POST"])
def chat():
    data = _body()
    message = (data.get("message") or "").strip()
    if not message:
        raise ValidationError("Message cannot be empty.")
    reply = content_generator.chat(content_generator.get_client(), message, data.get("context"))
    return jsonify({"response": reply})


# Results

@main_bp.route("/results", methods=["POST"])
def submit_result():
    data = _body()
    if "is_correct" not in data:
        raise ValidationError("is_correct is required.")
    progression = record_attempt(
        trainee_id=_trainee_id(data),
        score=data.get("score", 0),
        difficulty=data.get("difficulty", 1),
        is_correct=data["is_correct"],
        sim_type=data.get("sim_type", "email"),
        simulation_id=data.get("simulation_id") or None,
        campaign_id=data.get("campaign_id") or None,
        response_time_ms=data.get("response_time_ms") or 0,
        flags_identified=data.get("flags_identified"),
        flags_missed=data.get("flags_missed"),
        feedback=data.get("feedback") or "",
    )
    return jsonify(progression.to_response())


@main_bp.route("/stats")
def stats():
    trainee = records.get_trainee(_trainee_id(request.args))
    return jsonify(analytics.trainee_stats(trainee))


@main_bp.route("/reports")
def reports():
    return jsonify(analytics.recent_reports(_trainee_id(request.args)))


# Analytics

@main_bp.route("/analytics/timeline")
def analytics_timeline():
    return jsonify(analytics.timeline(_trainee_id(request.args)))


@main_bp.route("/analytics/by-type")
def analytics_by_type():
    return jsonify(analytics.by_type(_trainee_id(request.args)))


@main_bp.route("/analytics/difficulty-curve")
def analytics_difficulty_curve():
    return jsonify(analytics.difficulty_curve(_trainee_id(request.args)))


@main_bp.route("/analytics/org-leaderboard")
def analytics_leaderboard():
    return jsonify(analytics.leaderboard())


@main_bp.route("/threat-feed")
def threat_feed():
    now = datetime.utcnow()
    items = [
        ("Spear Phishing", "Finance", "critical", 0, "CEO impersonation targeting CFO for wire transfer"),
        ("Voice Clone", "HR", "high", 1, "Synthetic voice impersonating CHRO requesting SSNs"),
        ("Credential Harvest", "Engineering", "medium", 2, "Fake SSO login page mimicking internal portal"),
        ("BEC Attack", "Sales", "high", 3, "Vendor payment redirect via compromised thread"),
    ]
    return jsonify([
        {"type": t, "target": target, "severity": sev,
         "ts": (now - timedelta(hours=hours)).isoformat(), "desc": desc}
        for t, target, sev, hours, desc in items
    ])
