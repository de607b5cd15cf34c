import itertools
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from models import db, Report, Team, User
from utils.jwt_auth import issue_token

# a quick hash keeps the suite fast; production uses the werkzeug default
FAST_HASH = "pbkdf2:sha256:1000"


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///%s" % (tmp_path / "test.db"),
        "JWT_SECRET_KEY": "test-secret-key-with-enough-length",
        "NOTIFY_SYNC": True,
        "EMAIL_ADDRESS": None,
        "LOG_LEVEL": "WARNING",
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role="citizen", team=None, email=None, points=0, password="password123"):
        n = next(counter)
        user = User(
            email=email or "user%s@example.com" % n,
            password=generate_password_hash(password, method=FAST_HASH),
            name="User %s" % n,
            role=role,
            team_id=team.id if team else None,
            points=points,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_team(app):
    def _make(name="Team", lat=0.0, lng=0.0, wards=(1,), status="active",
              email="team@example.com", radius=5.0):
        team = Team(
            name=name, service_lat=lat, service_lng=lng, service_radius_km=radius,
            ward_numbers=list(wards), contact_email=email, status=status,
        )
        db.session.add(team)
        db.session.commit()
        return team
    return _make


@pytest.fixture
def make_report(app):
    def _make(owner, lat=0.0, lng=0.0, status="submitted", priority=50, ward=None,
              team=None, severity="medium", created_at=None):
        report = Report(
            user_id=owner.id,
            photo_url="https://img.example.com/waste.jpg",
            latitude=lat,
            longitude=lng,
            address="1 Test Street",
            waste_type="plastic",
            biodegradable="non-biodegradable",
            severity=severity,
            description="Pile of bottles",
            status=status,
            priority_score=priority,
            ward_number=ward,
            assigned_team_id=team.id if team else None,
            assigned_municipality=team.name if team else None,
        )
        if created_at is not None:
            report.created_at = created_at
        db.session.add(report)
        db.session.commit()
        return report
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": "Bearer %s" % issue_token(user)}
    return _headers


def fake_team(id, lat, lng, wards=(), status="active", name=None):
    """Plain stand-in for Team used by the pure geo tests."""
    return SimpleNamespace(
        id=id, name=name or "T%s" % id, service_lat=lat, service_lng=lng,
        ward_numbers=list(wards), status=status,
    )


# roughly one kilometre of latitude at any longitude
KM_LAT = 1 / 111.195
