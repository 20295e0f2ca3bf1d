from flask import Blueprint, jsonify, request

from phishguard.services import analytics, records

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _form():
    return request.get_json(silent=True) or {}


@admin_bp.route("/overview")
def admin_overview():
    return jsonify(analytics.admin_overview())

@admin_bp.route("/departments")
def departments_list():
    return jsonify(records.list_departments())

@admin_bp.route("/departments", methods=["POST"])
def departments_new():
    data = _form()
    dept = records.create_department(data.get("name"), data.get("risk_score", 100))
    return jsonify({"id": dept.id}), 201

@admin_bp.route("/trainees", methods=["POST"])
def trainees_new():
    data = _form()
    trainee = records.create_trainee(data.get("name"), data.get("email"), data.get("dept_id"))
    return jsonify({"id": trainee.id, "level": trainee.level, "xp": trainee.xp}), 201

@admin_bp.route("/campaigns")
def campaigns_list():
    return jsonify(records.list_campaigns())

@admin_bp.route("/campaigns", methods=["POST"])
def campaigns_new():
    data = _form()
    campaign = records.create_campaign(data.get("name"), data.get("target_dept_id"), data.get("sim_type"))
    return jsonify({"id": campaign.id}), 201

@admin_bp.route("/campaigns/<int:campaign_id>", methods=["DELETE"])
def campaigns_delete(campaign_id):
    records.delete_campaign(campaign_id)
    return jsonify({"ok": True})
