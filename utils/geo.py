from collections import namedtuple
from math import radians, cos, sin, asin, sqrt

from errors import InvalidCoordinates, NoActiveTeams
from utils.log import get_logger

logger = get_logger(__name__)

EARTH_RADIUS_KM = 6371
MAX_NEAREST = 5

# team:            chosen team
# distance_km:     full-precision distance to the chosen team
# matched_by_ward: True when the ward rule picked the team
# nearest:         nearest team by distance alone (may differ from team)
Selection = namedtuple("Selection", "team distance_km matched_by_ward nearest")


def haversine(lat1, lon1, lat2, lon2):
    R = EARTH_RADIUS_KM
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat/2)**2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon/2)**2
    # float noise can push a a hair above 1 for antipodal points
    c = 2 * asin(sqrt(min(a, 1.0)))
    return R * c


def display_distance(km):
    return round(km, 2)


def validate_coordinates(lat, lng):
    """Coerce to floats and range-check; raise InvalidCoordinates otherwise."""
    if isinstance(lat, bool) or isinstance(lng, bool):
        raise InvalidCoordinates("Latitude and longitude must be valid numbers",
                                 code="INVALID_COORDINATE_FORMAT")
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        raise InvalidCoordinates("Latitude and longitude must be valid numbers",
                                 code="INVALID_COORDINATE_FORMAT")
    if lat != lat or lng != lng:  # NaN
        raise InvalidCoordinates("Latitude and longitude must be valid numbers",
                                 code="INVALID_COORDINATE_FORMAT")
    if lat < -90 or lat > 90:
        raise InvalidCoordinates("Latitude must be between -90 and 90", code="INVALID_LATITUDE_RANGE")
    if lng < -180 or lng > 180:
        raise InvalidCoordinates("Longitude must be between -180 and 180", code="INVALID_LONGITUDE_RANGE")
    return lat, lng


def rank_teams(lat, lng, teams):
    """Return [(team, distance_km)] for active teams, nearest first.

    Ties on distance are broken by team id so the order never depends on
    how the caller happened to load the teams.
    """
    lat, lng = validate_coordinates(lat, lng)
    active = [t for t in teams if t.status == "active"]
    if not active:
        raise NoActiveTeams()
    ranked = [(t, haversine(lat, lng, t.service_lat, t.service_lng)) for t in active]
    ranked.sort(key=lambda pair: (pair[1], pair[0].id))
    return ranked


def select_team(lat, lng, teams, ward_number=None):
    """Pick the team a report at (lat, lng) should go to.

    The nearest active team wins unless ``ward_number`` is given and some
    team lists that ward, in which case the closest such team wins even if
    a nearer team exists. A ward nobody covers falls back to the nearest
    team; that never blocks assignment.
    """
    ranked = rank_teams(lat, lng, teams)
    nearest, nearest_km = ranked[0]

    if ward_number is not None:
        for team, km in ranked:
            if ward_number in (team.ward_numbers or []):
                return Selection(team, km, True, nearest)
        logger.warning("geo.ward_unmatched ward=%s fallback_team=%s", ward_number, nearest.id)

    return Selection(nearest, nearest_km, False, nearest)


def clamp_limit(limit, default=1):
    if limit is None:
        return default
    return max(1, min(int(limit), MAX_NEAREST))


def nearest_teams(lat, lng, teams, limit=1):
    """Read-only top-K lookup, K clamped to 1..5."""
    return rank_teams(lat, lng, teams)[:clamp_limit(limit)]
