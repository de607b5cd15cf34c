import pytest

from conftest import KM_LAT, fake_team
from errors import InvalidCoordinates, NoActiveTeams, NoEligibleTargetError
from utils.geo import (
    display_distance, haversine, nearest_teams, rank_teams, select_team, validate_coordinates,
)


def test_haversine_is_symmetric():
    a = (27.7172, 85.3240)
    b = (28.2096, 83.9856)
    assert haversine(*a, *b) == pytest.approx(haversine(*b, *a))


def test_haversine_same_point_is_zero():
    assert haversine(12.5, -45.25, 12.5, -45.25) == 0


def test_haversine_quarter_circumference():
    # equator to pole along a meridian
    assert haversine(0, 0, 90, 0) == pytest.approx(10007.5, rel=0.01)
    assert haversine(0, 0, 0, 90) == pytest.approx(10007.5, rel=0.01)


def test_haversine_antipodes_do_not_blow_up():
    assert haversine(0, 0, 0, 180) == pytest.approx(20015.1, rel=0.01)


def test_display_distance_rounds_to_two_places():
    assert display_distance(2.34567) == 2.35
    assert display_distance(0.004) == 0.0


def test_ward_match_beats_nearer_team():
    t1 = fake_team(1, 5 * KM_LAT, 0, wards=[3])
    t2 = fake_team(2, 2 * KM_LAT, 0, wards=[7])

    selection = select_team(0, 0, [t1, t2], ward_number=3)

    assert selection.team is t1
    assert selection.matched_by_ward is True
    assert selection.nearest is t2
    assert selection.distance_km == pytest.approx(5.0, abs=0.01)


def test_unknown_ward_falls_back_to_nearest():
    t1 = fake_team(1, 5 * KM_LAT, 0, wards=[3])
    t2 = fake_team(2, 2 * KM_LAT, 0, wards=[7])

    selection = select_team(0, 0, [t1, t2], ward_number=9)

    assert selection.team is t2
    assert selection.matched_by_ward is False
    assert selection.distance_km == pytest.approx(2.0, abs=0.01)


def test_ward_match_takes_closest_of_several_matches():
    far = fake_team(1, 9 * KM_LAT, 0, wards=[4])
    mid = fake_team(2, 6 * KM_LAT, 0, wards=[4])
    near = fake_team(3, 1 * KM_LAT, 0, wards=[8])

    selection = select_team(0, 0, [far, near, mid], ward_number=4)

    assert selection.team is mid


def test_no_ward_selects_nearest():
    t1 = fake_team(1, 5 * KM_LAT, 0, wards=[3])
    t2 = fake_team(2, 2 * KM_LAT, 0, wards=[7])

    selection = select_team(0, 0, [t1, t2])

    assert selection.team is t2
    assert selection.matched_by_ward is False


def test_inactive_teams_are_never_candidates():
    closed = fake_team(1, 0.1 * KM_LAT, 0, wards=[3], status="inactive")
    open_ = fake_team(2, 8 * KM_LAT, 0)

    selection = select_team(0, 0, [closed, open_], ward_number=3)

    assert selection.team is open_


def test_no_active_teams_raises():
    with pytest.raises(NoActiveTeams) as exc:
        select_team(0, 0, [fake_team(1, 0, 0, status="inactive")])
    assert isinstance(exc.value, NoEligibleTargetError)
    assert exc.value.code == "NO_ACTIVE_TEAMS"

    with pytest.raises(NoActiveTeams):
        select_team(0, 0, [])


def test_distance_ties_break_on_team_id():
    a = fake_team(7, 1.0, 1.0)
    b = fake_team(3, 1.0, 1.0)

    assert [t.id for t, _ in rank_teams(0, 0, [a, b])] == [3, 7]
    assert [t.id for t, _ in rank_teams(0, 0, [b, a])] == [3, 7]


def test_selection_is_deterministic():
    teams = [fake_team(i, i * 0.01, -i * 0.02) for i in range(1, 8)]
    first = select_team(0.03, -0.05, teams)
    for _ in range(5):
        again = select_team(0.03, -0.05, list(reversed(teams)))
        assert again.team.id == first.team.id
        assert again.distance_km == first.distance_km


def test_service_radius_is_not_a_boundary():
    # a team hundreds of kilometres away is still the nearest one
    far = fake_team(1, 5.0, 5.0)
    assert select_team(0, 0, [far]).team is far


@pytest.mark.parametrize("lat, lng, code", [
    (91, 0, "INVALID_LATITUDE_RANGE"),
    (-90.5, 0, "INVALID_LATITUDE_RANGE"),
    (0, 180.1, "INVALID_LONGITUDE_RANGE"),
    (0, -181, "INVALID_LONGITUDE_RANGE"),
    ("north", 0, "INVALID_COORDINATE_FORMAT"),
    (None, 0, "INVALID_COORDINATE_FORMAT"),
    ("nan", 0, "INVALID_COORDINATE_FORMAT"),
    (True, 0, "INVALID_COORDINATE_FORMAT"),
    (0, False, "INVALID_COORDINATE_FORMAT"),
])
def test_invalid_coordinates(lat, lng, code):
    with pytest.raises(InvalidCoordinates) as exc:
        validate_coordinates(lat, lng)
    assert exc.value.code == code


def test_coordinates_checked_before_team_lookup():
    with pytest.raises(InvalidCoordinates):
        select_team(120, 0, [])


def test_validate_coordinates_accepts_bounds_and_strings():
    assert validate_coordinates(90, -180) == (90.0, -180.0)
    assert validate_coordinates("27.7", "85.3") == (27.7, 85.3)


def test_nearest_teams_clamps_limit():
    teams = [fake_team(i, i * KM_LAT, 0) for i in range(1, 8)]

    assert [t.id for t, _ in nearest_teams(0, 0, teams, limit=3)] == [1, 2, 3]
    assert len(nearest_teams(0, 0, teams, limit=50)) == 5
    assert len(nearest_teams(0, 0, teams, limit=0)) == 1
    assert len(nearest_teams(0, 0, teams, limit=-4)) == 1
    assert len(nearest_teams(0, 0, teams[:2], limit=5)) == 2
