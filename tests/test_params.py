import pytest

from errors import ValidationError
from utils.params import MAX_PAGE_SIZE, parse_id, parse_int, parse_pagination


def test_pagination_defaults():
    assert parse_pagination({}) == (50, 0)
    assert parse_pagination({}, default_limit=10) == (10, 0)


def test_pagination_clamps_oversized_limit():
    assert parse_pagination({"limit": "500", "offset": "20"}) == (MAX_PAGE_SIZE, 20)
    assert MAX_PAGE_SIZE == 100


@pytest.mark.parametrize("args, code", [
    ({"limit": "abc"}, "INVALID_LIMIT"),
    ({"limit": "0"}, "INVALID_LIMIT"),
    ({"offset": "-1"}, "INVALID_OFFSET"),
])
def test_pagination_rejects_garbage(args, code):
    with pytest.raises(ValidationError) as exc:
        parse_pagination(args)
    assert exc.value.code == code


def test_parse_int_refuses_bools_and_fractions():
    with pytest.raises(ValidationError):
        parse_int(True, "teamId", "INVALID_TEAM_ID")
    with pytest.raises(ValidationError):
        parse_int(2.5, "teamId", "INVALID_TEAM_ID")
    with pytest.raises(ValidationError):
        parse_int(float("inf"), "teamId", "INVALID_TEAM_ID")
    with pytest.raises(ValidationError):
        parse_int(float("nan"), "teamId", "INVALID_TEAM_ID")
    assert parse_int(3.0, "teamId", "INVALID_TEAM_ID") == 3
    assert parse_int("12", "teamId", "INVALID_TEAM_ID") == 12


def test_parse_id_must_be_positive():
    with pytest.raises(ValidationError) as exc:
        parse_id("0")
    assert exc.value.code == "INVALID_ID"
    assert parse_id(9) == 9
