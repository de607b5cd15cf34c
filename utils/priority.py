import random

SEVERITIES = ("low", "medium", "high", "critical")

# severity -> (base, max jitter)
PRIORITY_BANDS = {
    "critical": (90, 9),
    "high": (70, 19),
    "medium": (50, 19),
    "low": (30, 19),
}

MIN_PRIORITY = 1
MAX_PRIORITY = 100


def priority_for_severity(severity, rng=random):
    """Initial priority score for a new report; never recomputed afterwards."""
    base, jitter = PRIORITY_BANDS[severity]
    return base + rng.randint(0, jitter)


def queue_order(model):
    """ORDER BY clauses for a work queue: highest priority, then newest."""
    return (model.priority_score.desc(), model.created_at.desc(), model.id.desc())
