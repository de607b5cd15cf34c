# admin.py
import math

from flask import Blueprint, request, jsonify

from errors import ConflictError, NoEligibleTargetError, NotFoundError, ValidationError
from models import db, Contribution, Report, ReportHistory, Team, User
from utils.geo import display_distance, validate_coordinates
from utils.jwt_auth import ensure_actor, role_required_api
from utils.params import json_body, optional_int, parse_id, parse_int, parse_pagination, require_choice, require_text
from utils.priority import SEVERITIES, queue_order
from utils.status import ASSIGNABLE, PENDING, STATUSES, validate_status
from workflow import (
    ADMIN_ROLE, WORKER_ROLE, assign_report, get_admin, get_report, get_team, get_user,
    reassign_nearest, record_cleanup, reject_report,
)
from api import EMAIL_RE, WASTE_TYPES

admin = Blueprint("admin", __name__, url_prefix="/api/admin")

TEAM_STATUSES = ("active", "inactive")


def _acting_admin(session, data):
    if data.get("adminId") is None:
        raise ValidationError("adminId is required", code="MISSING_ADMIN_ID")
    admin_id = parse_id(data.get("adminId"), "adminId", "INVALID_ADMIN_ID")
    ensure_actor(session, admin_id, "adminId")
    return get_admin(admin_id)


# ---------- REPORTS ----------
@admin.get("/reports")
@role_required_api(ADMIN_ROLE)
def search_reports(session):
    args = request.args
    limit, offset = parse_pagination(args)
    q = Report.query
    if args.get("status"):
        q = q.filter(Report.status == validate_status(args.get("status"), STATUSES + (PENDING,)))
    if args.get("severity"):
        q = q.filter(Report.severity == require_choice(args, "severity", SEVERITIES, "INVALID_SEVERITY"))
    ward = optional_int(args, "wardNumber", "INVALID_WARD_NUMBER")
    if ward is not None:
        q = q.filter(Report.ward_number == ward)
    team_id = optional_int(args, "teamId", "INVALID_TEAM_ID")
    if team_id is not None:
        q = q.filter(Report.assigned_team_id == team_id)
    assigned = args.get("assigned")
    if assigned:
        if assigned not in ("true", "false"):
            raise ValidationError('assigned must be "true" or "false"', code="INVALID_ASSIGNED")
        if assigned == "true":
            q = q.filter(Report.assigned_team_id.isnot(None))
        else:
            q = q.filter(Report.assigned_team_id.is_(None))

    rows = q.order_by(*queue_order(Report)).offset(offset).limit(limit).all()
    return jsonify([r.to_dict() for r in rows])


@admin.get("/reports/unassigned")
@role_required_api(ADMIN_ROLE)
def unassigned_reports(session):
    args = request.args
    limit, offset = parse_pagination(args)
    q = Report.query.filter(Report.assigned_team_id.is_(None), Report.status.in_(ASSIGNABLE))
    if args.get("severity"):
        q = q.filter(Report.severity == require_choice(args, "severity", SEVERITIES, "INVALID_SEVERITY"))
    ward = optional_int(args, "wardNumber", "INVALID_WARD_NUMBER")
    if ward is not None:
        q = q.filter(Report.ward_number == ward)
    if args.get("wasteType"):
        q = q.filter(Report.waste_type == require_choice(args, "wasteType", WASTE_TYPES, "INVALID_WASTE_TYPE"))

    total = q.count()
    rows = q.order_by(*queue_order(Report)).offset(offset).limit(limit).all()
    return jsonify({
        "reports": [r.to_dict() for r in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@admin.post("/reports/<int:rid>/auto-assign")
@role_required_api(ADMIN_ROLE)
def auto_assign_report(rid, session):
    data = json_body()
    admin_user = _acting_admin(session, data)
    report = get_report(rid)
    try:
        report, selection = reassign_nearest(report, admin_user)
    except NoEligibleTargetError as e:
        e.status_code = 400
        raise

    return jsonify(dict(
        report.to_dict(),
        assignedTeamName=selection.team.name,
        assignedTeamDistance=display_distance(selection.distance_km),
        matchedByWard=selection.matched_by_ward,
    ))


@admin.post("/reports/<int:rid>/assign")
@role_required_api(ADMIN_ROLE)
def manual_assign_report(rid, session):
    data = json_body()
    if data.get("teamId") is None:
        raise ValidationError("teamId is required", code="MISSING_TEAM_ID")
    team_id = parse_id(data.get("teamId"), "teamId", "INVALID_TEAM_ID")
    admin_user = _acting_admin(session, data)

    report = get_report(rid)
    team = get_team(team_id)
    report = assign_report(report, team, assigned_by=admin_user.id, changed_by="admin:%s" % admin_user.id)
    return jsonify(report.to_dict())


@admin.post("/reports/<int:rid>/reject")
@role_required_api(ADMIN_ROLE)
def reject(rid, session):
    data = json_body()
    admin_user = _acting_admin(session, data)
    report = reject_report(get_report(rid), admin_user)
    return jsonify(report.to_dict())


@admin.delete("/reports/<int:rid>")
@role_required_api(ADMIN_ROLE)
def delete_report(rid, session):
    report = get_report(rid)
    ReportHistory.query.filter_by(report_id=rid).delete(synchronize_session=False)
    # earned points stay with the citizen
    Contribution.query.filter_by(report_id=rid).update({Contribution.report_id: None}, synchronize_session=False)
    db.session.delete(report)
    db.session.commit()
    return jsonify({"message": "Report deleted successfully", "deletedId": rid})


# ---------- TEAMS ----------
def _parse_service_area(value):
    if not isinstance(value, dict):
        raise ValidationError("Service area is required and must be a valid object", code="INVALID_SERVICE_AREA")
    if value.get("lat") is None or value.get("lng") is None:
        raise ValidationError("Service area must contain valid lat and lng coordinates",
                              code="INVALID_SERVICE_AREA_COORDINATES")
    lat, lng = validate_coordinates(value["lat"], value["lng"])
    radius = value.get("radius")
    if (isinstance(radius, bool) or not isinstance(radius, (int, float))
            or not math.isfinite(radius) or radius <= 0):
        raise ValidationError("Service area must contain a positive radius", code="INVALID_SERVICE_AREA_BOUNDS")
    return lat, lng, float(radius)


def _parse_wards(value):
    if not isinstance(value, list) or not value:
        raise ValidationError("Ward numbers is required and must be an array with at least one element",
                              code="INVALID_WARD_NUMBERS")
    wards = []
    for w in value:
        ward = parse_int(w, "wardNumbers", "INVALID_WARD_NUMBERS", minimum=1)
        if ward not in wards:
            wards.append(ward)
    return wards


def _parse_email(value):
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError("Invalid email format", code="INVALID_EMAIL_FORMAT")
    return value.strip().lower()


@admin.post("/teams")
@role_required_api(ADMIN_ROLE)
def create_team(session):
    data = json_body()
    name = require_text(data, "name", "INVALID_NAME")
    lat, lng, radius = _parse_service_area(data.get("serviceArea"))
    wards = _parse_wards(data.get("wardNumbers"))
    if not data.get("contactEmail"):
        raise ValidationError("Contact email is required", code="MISSING_CONTACT_EMAIL")
    email = _parse_email(data.get("contactEmail"))
    phone = (data.get("contactPhone") or "").strip() or None

    team = Team(
        name=name, service_lat=lat, service_lng=lng, service_radius_km=radius,
        ward_numbers=wards, contact_email=email, contact_phone=phone, status="active",
    )
    db.session.add(team); db.session.commit()
    return jsonify(team.to_dict()), 201


@admin.get("/teams")
@role_required_api(ADMIN_ROLE)
def list_teams(session):
    args = request.args
    limit, offset = parse_pagination(args, default_limit=20)
    q = Team.query
    if args.get("status"):
        q = q.filter(Team.status == require_choice(args, "status", TEAM_STATUSES, "INVALID_STATUS"))
    teams = q.order_by(Team.created_at.desc(), Team.id.desc()).all()

    ward = optional_int(args, "wardNumber", "INVALID_WARD_NUMBER")
    if ward is not None:
        # ward lists are JSON; match in Python to stay exact
        teams = [t for t in teams if ward in (t.ward_numbers or [])]
    return jsonify([t.to_dict() for t in teams[offset:offset + limit]])


@admin.get("/teams/<int:tid>")
@role_required_api(ADMIN_ROLE)
def get_team_detail(tid, session):
    team = get_team(tid)
    return jsonify(dict(team.to_dict(), memberCount=len(team.members)))


@admin.patch("/teams/<int:tid>")
@role_required_api(ADMIN_ROLE)
def update_team(tid, session):
    data = json_body()
    team = get_team(tid)
    if "name" in data:
        team.name = require_text(data, "name", "INVALID_NAME")
    if "serviceArea" in data:
        team.service_lat, team.service_lng, team.service_radius_km = _parse_service_area(data["serviceArea"])
    if "wardNumbers" in data:
        team.ward_numbers = _parse_wards(data["wardNumbers"])
    if "contactEmail" in data:
        team.contact_email = _parse_email(data["contactEmail"])
    if "contactPhone" in data:
        team.contact_phone = (data["contactPhone"] or "").strip() or None
    if "status" in data:
        team.status = require_choice(data, "status", TEAM_STATUSES, "INVALID_STATUS")
    db.session.commit()
    return jsonify(team.to_dict())


@admin.get("/teams/<int:tid>/members")
@role_required_api(ADMIN_ROLE)
def list_members(tid, session):
    get_team(tid)
    limit, offset = parse_pagination(request.args)
    members = User.query.filter_by(team_id=tid, role=WORKER_ROLE).order_by(User.id).offset(offset).limit(limit).all()
    return jsonify([m.to_dict() for m in members])


@admin.post("/teams/<int:tid>/members")
@role_required_api(ADMIN_ROLE)
def add_member(tid, session):
    data = json_body()
    if data.get("userId") is None:
        raise ValidationError("userId is required", code="MISSING_USER_ID")
    user_id = parse_id(data.get("userId"), "userId", "INVALID_USER_ID")
    get_team(tid)
    user = get_user(user_id)
    if user.role != WORKER_ROLE:
        raise ValidationError("User is not a municipality worker", code="INVALID_USER_ROLE")
    if user.team_id is not None:
        raise ConflictError("Worker already assigned to another team", code="WORKER_ALREADY_ASSIGNED")
    user.team_id = tid
    db.session.commit()
    return jsonify(user.to_dict())


@admin.delete("/teams/<int:tid>/members/<int:uid>")
@role_required_api(ADMIN_ROLE)
def remove_member(tid, uid, session):
    get_team(tid)
    user = get_user(uid)
    if user.role != WORKER_ROLE or user.team_id != tid:
        raise NotFoundError("Worker is not a member of this team", code="MEMBER_NOT_FOUND")
    user.team_id = None
    db.session.commit()
    return jsonify(user.to_dict())


# ---------- CONTRIBUTIONS ----------
@admin.post("/contributions")
@role_required_api(ADMIN_ROLE)
def record_community_cleanup(session):
    data = json_body()
    admin_user = _acting_admin(session, data)
    if data.get("userId") is None:
        raise ValidationError("userId is required", code="MISSING_USER_ID")
    user = get_user(parse_id(data.get("userId"), "userId", "INVALID_USER_ID"))
    if data.get("pointsEarned") is None:
        raise ValidationError("pointsEarned is required", code="MISSING_POINTS_EARNED")
    points = parse_int(data.get("pointsEarned"), "pointsEarned", "INVALID_POINTS_EARNED", minimum=1)
    report_id = None
    if data.get("reportId") is not None:
        report_id = get_report(parse_id(data.get("reportId"), "reportId", "INVALID_REPORT_ID")).id

    contribution = record_cleanup(user, points, admin_user, report_id)
    return jsonify(dict(contribution.to_dict(), totalPoints=get_user(user.id).points)), 201
