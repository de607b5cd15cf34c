"""Request parameter parsing shared by the blueprints."""

from flask import request

from errors import ValidationError

MAX_PAGE_SIZE = 100


def json_body():
    """The request body as a dict; an absent body reads as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_BODY")
    return data


def parse_int(value, name, code, minimum=None):
    if isinstance(value, bool):
        raise ValidationError("%s must be a valid integer" % name, code=code)
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("%s must be a valid integer" % name, code=code)
    if isinstance(value, float) and value != number:
        raise ValidationError("%s must be a valid integer" % name, code=code)
    if minimum is not None and number < minimum:
        raise ValidationError("%s must be at least %s" % (name, minimum), code=code)
    return number


def parse_id(value, name="id", code="INVALID_ID"):
    return parse_int(value, name, code, minimum=1)


def optional_int(args, key, code):
    raw = args.get(key)
    if raw in (None, ""):
        return None
    return parse_int(raw, key, code)


def parse_pagination(args, default_limit=50):
    """Return (limit, offset); oversized limits are clamped, not rejected."""
    limit = default_limit
    if args.get("limit") not in (None, ""):
        limit = parse_int(args.get("limit"), "limit", "INVALID_LIMIT", minimum=1)
    offset = 0
    if args.get("offset") not in (None, ""):
        offset = parse_int(args.get("offset"), "offset", "INVALID_OFFSET", minimum=0)
    return min(limit, MAX_PAGE_SIZE), offset


def require_text(data, key, code):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("%s is required and must be a non-empty string" % key, code=code)
    return value.strip()


def require_choice(data, key, choices, code):
    value = data.get(key)
    if value not in choices:
        raise ValidationError("%s must be one of: %s" % (key, ", ".join(choices)), code=code)
    return value
