"""Report status state machine.

    submitted -> assigned -> in_progress -> resolved
    submitted | assigned -> rejected

``resolved`` and ``rejected`` are terminal. ``pending`` is an older name for
``submitted`` that the assignment step still accepts.
"""

from errors import ConflictError, ValidationError

SUBMITTED = "submitted"
PENDING = "pending"
ASSIGNED = "assigned"
IN_PROGRESS = "in_progress"
RESOLVED = "resolved"
REJECTED = "rejected"

STATUSES = (SUBMITTED, ASSIGNED, IN_PROGRESS, RESOLVED, REJECTED)
ASSIGNABLE = (SUBMITTED, PENDING)
TERMINAL = (RESOLVED, REJECTED)

TRANSITIONS = {
    SUBMITTED: {ASSIGNED, REJECTED},
    PENDING: {ASSIGNED, REJECTED},
    ASSIGNED: {IN_PROGRESS, REJECTED},
    IN_PROGRESS: {RESOLVED},
    RESOLVED: set(),
    REJECTED: set(),
}

# targets a worker may request through the task endpoint
WORKER_TARGETS = (IN_PROGRESS, RESOLVED)


def validate_status(value, allowed=STATUSES):
    if value not in allowed:
        raise ValidationError(
            "Invalid status value. Must be one of: %s" % ", ".join(allowed),
            code="INVALID_STATUS",
        )
    return value


def check_transition(current, target):
    """Return False for a same-state no-op, True for a legal move; raise otherwise."""
    if current == target:
        return False
    if target not in TRANSITIONS.get(current, set()):
        raise ConflictError(
            "Cannot move report from %s to %s" % (current, target),
            code="INVALID_TRANSITION",
        )
    return True
