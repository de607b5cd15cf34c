import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


# Citizen / municipality staff / worker / super-admin all live here
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(30), nullable=False, default="citizen")
    municipality_name = db.Column(db.String(120))
    team_id = db.Column(db.Integer, db.ForeignKey("municipality_teams.id"), nullable=True)
    points = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)

    team = db.relationship("Team", backref="members")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "municipalityName": self.municipality_name,
            "teamId": self.team_id,
            "points": self.points,
            "createdAt": _iso(self.created_at),
        }


class Team(db.Model):
    __tablename__ = "municipality_teams"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    service_lat = db.Column(db.Float, nullable=False)
    service_lng = db.Column(db.Float, nullable=False)
    service_radius_km = db.Column(db.Float)  # advisory, not a hard boundary
    ward_numbers = db.Column(db.JSON, nullable=False, default=list)
    contact_email = db.Column(db.String(120))
    contact_phone = db.Column(db.String(30))
    status = db.Column(db.String(20), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_active(self):
        return self.status == "active"

    @property
    def service_area(self):
        return {"lat": self.service_lat, "lng": self.service_lng, "radius": self.service_radius_km}

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "serviceArea": self.service_area,
            "wardNumbers": list(self.ward_numbers or []),
            "contactEmail": self.contact_email,
            "contactPhone": self.contact_phone,
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }


class Report(db.Model):
    __tablename__ = "reports"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    photo_url = db.Column(db.String(500), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    address = db.Column(db.String(300), nullable=False)
    waste_type = db.Column(db.String(30), nullable=False)
    biodegradable = db.Column(db.String(30), nullable=False)
    severity = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="submitted")
    priority_score = db.Column(db.Integer, nullable=False)
    ward_number = db.Column(db.Integer)

    # Assignment fields
    assigned_team_id = db.Column(db.Integer, db.ForeignKey("municipality_teams.id"), nullable=True)
    assigned_municipality = db.Column(db.String(120))
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    assignment_date = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    resolved_at = db.Column(db.DateTime)
    carbon_footprint_kg = db.Column(db.Float)

    assigned_team = db.relationship("Team", foreign_keys=[assigned_team_id])

    @property
    def location(self):
        return {"lat": self.latitude, "lng": self.longitude, "address": self.address}

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "photoUrl": self.photo_url,
            "location": self.location,
            "wasteType": self.waste_type,
            "biodegradable": self.biodegradable,
            "severity": self.severity,
            "description": self.description,
            "status": self.status,
            "priorityScore": self.priority_score,
            "wardNumber": self.ward_number,
            "assignedTeamId": self.assigned_team_id,
            "assignedMunicipality": self.assigned_municipality,
            "assignedTo": self.assigned_to,
            "assignedBy": self.assigned_by,
            "assignmentDate": _iso(self.assignment_date),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "resolvedAt": _iso(self.resolved_at),
            "carbonFootprintKg": self.carbon_footprint_kg,
        }


class ReportHistory(db.Model):
    __tablename__ = "report_history"

    id = db.Column(db.Integer, primary_key=True)
    report_id = db.Column(db.Integer, db.ForeignKey("reports.id", ondelete="CASCADE"))
    old_status = db.Column(db.String(20))
    new_status = db.Column(db.String(20))
    changed_by = db.Column(db.String(120))  # system / admin:<id> / worker:<id>
    timestamp = db.Column(db.DateTime, default=utcnow)


class Contribution(db.Model):
    __tablename__ = "contributions"
    # one award per (report, action); retried awards hit this and become no-ops
    __table_args__ = (db.UniqueConstraint("report_id", "action_type", name="uq_contribution_report_action"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    report_id = db.Column(db.Integer, db.ForeignKey("reports.id", ondelete="CASCADE"), nullable=True)
    action_type = db.Column(db.String(30), nullable=False)
    points_earned = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "reportId": self.report_id,
            "actionType": self.action_type,
            "pointsEarned": self.points_earned,
            "createdAt": _iso(self.created_at),
        }
