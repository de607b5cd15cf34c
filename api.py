# api.py
import math
import re

from flask import Blueprint, request, jsonify
from werkzeug.security import generate_password_hash, check_password_hash

from errors import ApiError, AuthorizationError, ConflictError, ValidationError
from models import db, Contribution, User, Report
from utils.carbon import carbon_summary, parse_weight
from utils.geo import display_distance, nearest_teams, select_team, validate_coordinates
from utils.jwt_auth import ensure_actor, issue_token, role_required_api
from utils.params import (
    json_body, optional_int, parse_id, parse_int, parse_pagination, require_choice, require_text,
)
from utils.priority import MAX_PRIORITY, MIN_PRIORITY, SEVERITIES, priority_for_severity, queue_order
from utils.status import RESOLVED, WORKER_TARGETS, validate_status
from workflow import (
    ADMIN_ROLE, WORKER_ROLE, active_teams, assign_report, claim_report, get_report, get_user,
    get_worker, set_carbon_footprint, submit_report, update_task_status,
)

api = Blueprint("api", __name__, url_prefix="/api")

WASTE_TYPES = ("plastic", "organic", "metal", "electronic", "mixed", "hazardous")
BIODEGRADABLE = ("biodegradable", "non-biodegradable")
SIGNUP_ROLES = ("citizen", "municipality")
ACTION_TYPES = ("report_created", "report_resolved", "community_cleanup")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@api.get("/health")
def health():
    return jsonify({"status": "ok"})


# ---------- AUTH ----------
@api.post("/auth/signup")
def signup():
    data = json_body()
    email = require_text(data, "email", "MISSING_EMAIL").lower()
    password = data.get("password") or ""
    name = require_text(data, "name", "MISSING_NAME")
    role = require_choice(data, "role", SIGNUP_ROLES, "INVALID_ROLE")

    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format", code="INVALID_EMAIL")
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long", code="PASSWORD_TOO_SHORT")
    municipality_name = (data.get("municipalityName") or "").strip() or None
    if role == "municipality" and not municipality_name:
        raise ValidationError("Municipality name is required for municipality role",
                              code="MISSING_MUNICIPALITY_NAME")
    if User.query.filter_by(email=email).first():
        raise ConflictError("Email already registered", code="EMAIL_EXISTS")

    user = User(
        email=email,
        password=generate_password_hash(password, method='pbkdf2:sha256'),
        name=name,
        role=role,
        municipality_name=municipality_name,
    )
    db.session.add(user); db.session.commit()
    return jsonify({"accessToken": issue_token(user), "user": user.to_dict()}), 201


@api.post("/auth/login")
def login():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")
    if not email or not password:
        raise ValidationError("email/password required", code="MISSING_CREDENTIALS")

    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password, password):
        raise ApiError("Invalid credentials", code="INVALID_CREDENTIALS", status_code=401)
    return jsonify({"accessToken": issue_token(user), "user": user.to_dict()})


@api.get("/auth/me")
@role_required_api()
def me(session):
    return jsonify(get_user(session.user_id).to_dict())


# ---------- REPORTS ----------
def _parse_location(data):
    location = data.get("location")
    if not isinstance(location, dict):
        raise ValidationError("location is required and must be an object", code="MISSING_LOCATION")
    if location.get("lat") is None or location.get("lng") is None or not location.get("address"):
        raise ValidationError("location must contain lat, lng, and address", code="INVALID_LOCATION")
    lat, lng = validate_coordinates(location["lat"], location["lng"])
    return lat, lng, str(location["address"]).strip()


def _parse_priority(data, severity):
    raw = data.get("priorityScore")
    if raw is None:
        return priority_for_severity(severity)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
        raise ValidationError("priorityScore must be a number", code="INVALID_PRIORITY_SCORE")
    if raw < MIN_PRIORITY or raw > MAX_PRIORITY:
        raise ValidationError("priorityScore must be between 1 and 100", code="INVALID_PRIORITY_SCORE")
    return int(raw)


@api.post("/reports")
@role_required_api()
def create_report(session):
    data = json_body()
    if data.get("userId") is None:
        raise ValidationError("userId is required", code="MISSING_USER_ID")
    user_id = parse_id(data.get("userId"), "userId", "INVALID_USER_ID")
    ensure_actor(session, user_id, "userId")
    owner = get_user(user_id)

    photo_url = require_text(data, "photoUrl", "MISSING_PHOTO_URL")
    lat, lng, address = _parse_location(data)
    waste_type = require_choice(data, "wasteType", WASTE_TYPES, "INVALID_WASTE_TYPE")
    biodegradable = require_choice(data, "biodegradable", BIODEGRADABLE, "INVALID_BIODEGRADABLE")
    severity = require_choice(data, "severity", SEVERITIES, "INVALID_SEVERITY")
    description = require_text(data, "description", "MISSING_DESCRIPTION")
    priority = _parse_priority(data, severity)
    weight = None
    if data.get("estimatedWeightKg") is not None:
        weight = parse_weight(data.get("estimatedWeightKg"))
    ward = None
    if data.get("wardNumber") is not None:
        ward = parse_int(data.get("wardNumber"), "wardNumber", "INVALID_WARD_NUMBER", minimum=1)

    report = submit_report(
        owner,
        photo_url=photo_url,
        latitude=lat,
        longitude=lng,
        address=address,
        waste_type=waste_type,
        biodegradable=biodegradable,
        severity=severity,
        description=description,
        priority_score=priority,
        ward_number=ward,
        estimated_weight_kg=weight,
    )
    return jsonify(report.to_dict()), 201


@api.get("/reports")
@role_required_api()
def list_reports(session):
    args = request.args
    limit, offset = parse_pagination(args)
    q = Report.query

    user_id = optional_int(args, "userId", "INVALID_USER_ID")
    if user_id is not None:
        q = q.filter(Report.user_id == user_id)
    status = args.get("status")
    if status:
        q = q.filter(Report.status == validate_status(status))
    severity = args.get("severity")
    if severity:
        q = q.filter(Report.severity == require_choice(args, "severity", SEVERITIES, "INVALID_SEVERITY"))
    municipality = args.get("municipality")
    if municipality:
        q = q.filter(Report.assigned_municipality == municipality)
    team_id = optional_int(args, "assignedTeamId", "INVALID_TEAM_ID")
    if team_id is not None:
        # a team's view is its work queue
        q = q.filter(Report.assigned_team_id == team_id).order_by(*queue_order(Report))
    else:
        q = q.order_by(Report.created_at.desc(), Report.id.desc())

    return jsonify([r.to_dict() for r in q.offset(offset).limit(limit).all()])


@api.get("/reports/<int:rid>")
@role_required_api()
def get_report_detail(rid, session):
    return jsonify(get_report(rid).to_dict())


@api.post("/reports/<int:rid>/carbon")
@role_required_api()
def update_carbon(rid, session):
    data = json_body()
    weight = parse_weight(data.get("estimatedWeightKg"))
    report = get_report(rid)
    # owner and admins always; workers only for their own team
    if session.role != ADMIN_ROLE and report.user_id != session.user_id:
        worker = get_user(session.user_id)
        if worker.role != WORKER_ROLE or worker.team_id is None or worker.team_id != report.assigned_team_id:
            raise AuthorizationError("Not authorized", code="NOT_AUTHORIZED")
    return jsonify(set_carbon_footprint(report, weight).to_dict())


@api.get("/users/<int:uid>/carbon-stats")
@role_required_api()
def carbon_stats(uid, session):
    get_user(uid)
    rows = db.session.query(Report.carbon_footprint_kg).filter(
        Report.user_id == uid,
        Report.status == RESOLVED,
        Report.carbon_footprint_kg.isnot(None),
    ).all()
    return jsonify(carbon_summary([kg for (kg,) in rows]))


# ---------- CONTRIBUTIONS ----------
@api.get("/contributions/<int:uid>")
@role_required_api()
def contribution_history(uid, session):
    args = request.args
    get_user(uid)
    limit, offset = parse_pagination(args, default_limit=20)
    q = Contribution.query.filter(Contribution.user_id == uid)
    if args.get("actionType"):
        q = q.filter(Contribution.action_type == require_choice(
            args, "actionType", ACTION_TYPES, "INVALID_ACTION_TYPE"))
    rows = q.order_by(Contribution.created_at.desc(), Contribution.id.desc()).offset(offset).limit(limit).all()
    return jsonify([c.to_dict() for c in rows])


# ---------- GEOSPATIAL ----------
@api.get("/geospatial/nearest-team")
@role_required_api()
def nearest_team_lookup(session):
    args = request.args
    if not args.get("lat") or not args.get("lng"):
        raise ValidationError("Both lat and lng query parameters are required", code="MISSING_COORDINATES")
    limit = 1
    if args.get("limit"):
        limit = parse_int(args.get("limit"), "limit", "INVALID_LIMIT")

    ranked = nearest_teams(args.get("lat"), args.get("lng"), active_teams(), limit)
    if limit <= 1:
        team, km = ranked[0]
        return jsonify({"team": team.to_dict(), "distance": display_distance(km)})
    return jsonify({"teams": [{"team": t.to_dict(), "distance": display_distance(km)} for t, km in ranked]})


@api.post("/geospatial/nearest-team")
@role_required_api()
def nearest_team_assign(session):
    data = json_body()
    if data.get("reportId") is None or data.get("latitude") is None or data.get("longitude") is None:
        raise ValidationError("reportId, latitude, and longitude are required", code="MISSING_PARAMETERS")
    report_id = parse_id(data.get("reportId"), "reportId", "INVALID_REPORT_ID")
    lat, lng = validate_coordinates(data.get("latitude"), data.get("longitude"))
    report = get_report(report_id)

    selection = select_team(lat, lng, active_teams())
    if session.role == ADMIN_ROLE:
        assign_report(report, selection.team, assigned_by=session.user_id,
                      changed_by="admin:%s" % session.user_id)
    elif report.user_id == session.user_id:
        if not claim_report(report, selection.team, changed_by="user:%s" % session.user_id):
            raise ConflictError("Report is already assigned", code="REPORT_ALREADY_ASSIGNED")
    else:
        raise AuthorizationError("Not authorized", code="NOT_AUTHORIZED")

    return jsonify({
        "teamId": selection.team.id,
        "teamName": selection.team.name,
        "distance": display_distance(selection.distance_km),
    })


# ---------- WORKER ----------
@api.get("/worker/tasks")
@role_required_api(WORKER_ROLE)
def worker_tasks(session):
    args = request.args
    worker_id = session.user_id
    if args.get("workerId"):
        worker_id = parse_id(args.get("workerId"), "workerId", "INVALID_WORKER_ID")
        ensure_actor(session, worker_id, "workerId")
    limit, offset = parse_pagination(args)
    worker = get_worker(worker_id)

    q = Report.query.filter(Report.assigned_team_id == worker.team_id)
    if args.get("status"):
        q = q.filter(Report.status == validate_status(args.get("status"), ("assigned",) + WORKER_TARGETS))
    if args.get("severity"):
        q = q.filter(Report.severity == require_choice(args, "severity", SEVERITIES, "INVALID_SEVERITY"))
    tasks = q.order_by(*queue_order(Report)).offset(offset).limit(limit).all()
    return jsonify([t.to_dict() for t in tasks])


@api.patch("/worker/tasks/<int:rid>/status")
@role_required_api(WORKER_ROLE)
def worker_update_status(rid, session):
    data = json_body()
    status = data.get("status")
    if not status:
        raise ValidationError("Status is required", code="MISSING_STATUS")
    if data.get("workerId") is None:
        raise ValidationError("Worker ID is required", code="MISSING_WORKER_ID")
    worker_id = parse_id(data.get("workerId"), "workerId", "INVALID_WORKER_ID")
    ensure_actor(session, worker_id, "workerId")
    validate_status(status)

    report = get_report(rid)
    worker = get_worker(worker_id)
    report = update_task_status(report, worker, status)
    return jsonify(report.to_dict())


# ---------- LEADERBOARD ----------
@api.get("/leaderboard")
def leaderboard():
    args = request.args
    limit, offset = parse_pagination(args, default_limit=10)
    q = User.query
    role = args.get("role")
    if role:
        q = q.filter(User.role == require_choice(args, "role", SIGNUP_ROLES, "INVALID_ROLE"))
    users = q.order_by(User.points.desc(), User.id.asc()).offset(offset).limit(limit).all()
    return jsonify([
        dict(u.to_dict(), rank=offset + i + 1) for i, u in enumerate(users)
    ])
