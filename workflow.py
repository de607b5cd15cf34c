"""Persistence-side steps for reports: assignment, status moves, point awards.

Each step commits on its own so a failure in a later step never undoes an
earlier one, and each step is safe to repeat:

* the submitted -> assigned move is a conditional UPDATE (compare-and-swap),
  so two racing assigners produce at most one effective assignment;
* point awards are keyed on (report, action) by a unique constraint, so a
  retried resolution never credits the citizen twice.
"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import ApiError, AuthorizationError, ConflictError, NotFoundError, NoEligibleTargetError, ValidationError
from models import db, Contribution, Report, ReportHistory, Team, User, utcnow
from utils.carbon import carbon_footprint
from utils.geo import select_team
from utils.log import get_logger
from utils.notify import notify_team_of_report
from utils.status import (
    ASSIGNABLE, ASSIGNED, REJECTED, RESOLVED, SUBMITTED, WORKER_TARGETS,
    check_transition, validate_status,
)

logger = get_logger(__name__)

CREATION_POINTS = 10
RESOLUTION_BONUS = 20
CLEANUP_ACTION = "community_cleanup"

WORKER_ROLE = "municipality-worker"
ADMIN_ROLE = "super-admin"


# ---------- lookups ----------
def get_report(report_id):
    report = db.session.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found", code="REPORT_NOT_FOUND")
    return report


def get_team(team_id):
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found", code="TEAM_NOT_FOUND")
    return team


def get_user(user_id, code="USER_NOT_FOUND", label="User"):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("%s not found" % label, code=code)
    return user


def get_admin(admin_id):
    admin = get_user(admin_id, code="ADMIN_NOT_FOUND", label="Admin user")
    if admin.role != ADMIN_ROLE:
        raise AuthorizationError("Not authorized", code="NOT_AUTHORIZED")
    return admin


def get_worker(worker_id):
    worker = get_user(worker_id, code="WORKER_NOT_FOUND", label="Worker")
    if worker.role != WORKER_ROLE:
        raise AuthorizationError("Not authorized. User must be a municipality worker", code="NOT_AUTHORIZED")
    if not worker.team_id:
        raise ValidationError("Worker not assigned to team", code="WORKER_NO_TEAM")
    return worker


def active_teams():
    return Team.query.filter_by(status="active").all()


def record_history(report_id, old_status, new_status, changed_by):
    db.session.add(ReportHistory(
        report_id=report_id, old_status=old_status, new_status=new_status, changed_by=changed_by
    ))


# ---------- assignment ----------
def _assignment_fields(team, assigned_by):
    now = utcnow()
    return {
        Report.assigned_team_id: team.id,
        Report.assigned_municipality: team.name,
        Report.assignment_date: now,
        Report.assigned_by: assigned_by,
        Report.updated_at: now,
    }


def claim_assignment(report_id, team, assigned_by=None):
    """Compare-and-swap submitted/pending -> assigned. True if this call won."""
    fields = _assignment_fields(team, assigned_by)
    fields[Report.status] = ASSIGNED
    won = Report.query.filter(
        Report.id == report_id, Report.status.in_(ASSIGNABLE)
    ).update(fields, synchronize_session=False)
    return won == 1


def assign_report(report, team, assigned_by=None, changed_by="system"):
    """Point a report at ``team``; status moves only from submitted/pending.

    Reports already in progress or resolved keep their status. Rejected
    reports cannot be assigned.
    """
    if not team.is_active:
        raise ConflictError("Team is not active", code="TEAM_NOT_ACTIVE")
    if report.status == REJECTED:
        raise ConflictError("Rejected reports cannot be assigned", code="REPORT_REJECTED")

    old_status = report.status
    old_team_id = report.assigned_team_id
    report_id = report.id
    if claim_assignment(report_id, team, assigned_by):
        record_history(report_id, old_status, ASSIGNED, changed_by)
    else:
        fields = _assignment_fields(team, assigned_by)
        if old_team_id != team.id:
            # the previous team's worker no longer owns the task
            fields[Report.assigned_to] = None
        updated = Report.query.filter(
            Report.id == report_id, Report.status != REJECTED
        ).update(fields, synchronize_session=False)
        if not updated:
            db.session.rollback()
            raise ConflictError("Rejected reports cannot be assigned", code="REPORT_REJECTED")
    db.session.commit()
    logger.info("assign.done report=%s team=%s by=%s", report_id, team.id, changed_by)

    report = get_report(report_id)
    notify_team_of_report(team, report)
    return report


def claim_report(report, team, changed_by="system"):
    """Assign only if nobody has yet; notify on success. True if this call won."""
    report_id = report.id
    old_status = report.status
    if not claim_assignment(report_id, team):
        db.session.rollback()
        return False
    record_history(report_id, old_status, ASSIGNED, changed_by)
    db.session.commit()
    notify_team_of_report(team, get_report(report_id))
    return True


def auto_assign(report, use_ward=True):
    """System assignment for a fresh report. Returns the Selection or None.

    Only the CAS is attempted: if another caller already assigned the
    report this is a no-op.
    """
    ward = report.ward_number if use_ward else None
    selection = select_team(report.latitude, report.longitude, active_teams(), ward)
    report_id = report.id
    if not claim_report(report, selection.team):
        logger.info("auto_assign.skipped report=%s reason=not_assignable", report_id)
        return None
    logger.info(
        "auto_assign.done report=%s team=%s distance_km=%.2f ward_match=%s",
        report_id, selection.team.id, selection.distance_km, selection.matched_by_ward,
    )
    return selection


def reassign_nearest(report, admin):
    """Admin re-run of GeoAssignment with the ward rule."""
    selection = select_team(report.latitude, report.longitude, active_teams(), report.ward_number)
    report = assign_report(report, selection.team, assigned_by=admin.id, changed_by="admin:%s" % admin.id)
    return report, selection


# ---------- points ----------
def award_points(user_id, report_id, action_type, points):
    """Credit ``points`` once per (report, action). Returns the Contribution or None.

    Awards without a report (community cleanups) are not deduplicated.
    """
    if report_id is not None and Contribution.query.filter_by(
            report_id=report_id, action_type=action_type).first():
        return None
    contribution = Contribution(
        user_id=user_id, report_id=report_id, action_type=action_type, points_earned=points
    )
    try:
        db.session.add(contribution)
        User.query.filter_by(id=user_id).update(
            {User.points: User.points + points}, synchronize_session=False
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("points.duplicate report=%s action=%s", report_id, action_type)
        return None
    logger.info("points.awarded user=%s report=%s action=%s points=%s", user_id, report_id, action_type, points)
    return contribution


def record_cleanup(user, points, admin, report_id=None):
    """Credit a community cleanup. With a report it is paid once per report."""
    contribution = award_points(user.id, report_id, CLEANUP_ACTION, points)
    if contribution is None:
        raise ConflictError("Cleanup already recorded for this report", code="CONTRIBUTION_EXISTS")
    logger.info("points.cleanup user=%s admin=%s report=%s", user.id, admin.id, report_id)
    return contribution


# ---------- carbon ----------
def set_carbon_footprint(report, weight_kg):
    """Store the footprint for ``weight_kg`` of the report's waste. Repeats overwrite."""
    footprint = carbon_footprint(report.waste_type, weight_kg)
    report_id = report.id
    Report.query.filter_by(id=report_id).update(
        {Report.carbon_footprint_kg: footprint, Report.updated_at: utcnow()}, synchronize_session=False
    )
    db.session.commit()
    logger.info("carbon.set report=%s kg=%.2f", report_id, footprint)
    return get_report(report_id)


# ---------- status ----------
def _move_status(report, target, changed_by, extra=None):
    old_status = report.status
    now = utcnow()
    values = {Report.status: target, Report.updated_at: now}
    if target == RESOLVED and report.resolved_at is None:
        values[Report.resolved_at] = now
    if target == REJECTED:
        values[Report.assigned_team_id] = None
        values[Report.assigned_municipality] = None
    values.update(extra or {})
    moved = Report.query.filter(
        Report.id == report.id, Report.status == old_status
    ).update(values, synchronize_session=False)
    if not moved:
        db.session.rollback()
        raise ConflictError("Report status changed concurrently", code="STATUS_CHANGED")
    record_history(report.id, old_status, target, changed_by)
    db.session.commit()


def update_task_status(report, worker, target):
    """Worker status change, gated by team membership.

    A same-state request is a no-op. Resolving re-runs the bonus step, which
    is idempotent, so retried resolutions are safe.
    """
    validate_status(target)
    if report.assigned_team_id != worker.team_id:
        raise AuthorizationError("Report not assigned to worker's team", code="TEAM_MISMATCH")

    report_id = report.id
    if check_transition(report.status, target):
        if target not in WORKER_TARGETS:
            raise AuthorizationError("Workers cannot move a report to %s" % target, code="NOT_AUTHORIZED")
        _move_status(report, target, "worker:%s" % worker.id, {Report.assigned_to: worker.id})
        logger.info("status.changed report=%s status=%s worker=%s", report_id, target, worker.id)

    report = get_report(report_id)
    if target == RESOLVED:
        award_points(report.user_id, report_id, "report_resolved", RESOLUTION_BONUS)
    return report


def reject_report(report, admin):
    report_id = report.id
    if check_transition(report.status, REJECTED):
        _move_status(report, REJECTED, "admin:%s" % admin.id)
        logger.info("status.rejected report=%s admin=%s", report_id, admin.id)
    return get_report(report_id)


# ---------- creation ----------
def submit_report(owner, estimated_weight_kg=None, **fields):
    """Create a report, then run the follow-up steps.

    Follow-up failures are logged and leave the report in place: a missed
    assignment can be redone from the admin console.
    """
    report = Report(user_id=owner.id, status=SUBMITTED, **fields)
    db.session.add(report)
    db.session.flush()
    record_history(report.id, None, SUBMITTED, "user:%s" % owner.id)
    db.session.commit()
    report_id = report.id
    logger.info("report.created report=%s user=%s severity=%s", report_id, owner.id, report.severity)

    try:
        award_points(owner.id, report_id, "report_created", CREATION_POINTS)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("report.points_failed report=%s", report_id)

    try:
        auto_assign(get_report(report_id))
    except NoEligibleTargetError as e:
        logger.warning("report.unassigned report=%s reason=%s", report_id, e.code)
    except (ApiError, SQLAlchemyError):
        db.session.rollback()
        logger.exception("report.assign_failed report=%s", report_id)

    if estimated_weight_kg is not None:
        try:
            set_carbon_footprint(get_report(report_id), estimated_weight_kg)
        except (ApiError, SQLAlchemyError):
            db.session.rollback()
            logger.exception("report.carbon_failed report=%s", report_id)

    return get_report(report_id)

