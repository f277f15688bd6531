"""Plan tiers and access window policy.

A completed gift stays viewable for a fixed number of days that depends on the
plan it was bought under. Unknown or missing plans have no expiry.
"""

from datetime import datetime, timedelta

from memoryhaze.db.models import Plan

PLAN_DURATION_DAYS: dict[Plan, int] = {
    Plan.momentum: 7,
    Plan.everlasting: 14,
}


def duration_days(plan: Plan | str | None) -> int | None:
    """Return the access window length in days, or None for no expiry."""
    if plan is None or plan == "":
        return None
    try:
        plan = Plan(plan)
    except ValueError:
        return None
    return PLAN_DURATION_DAYS.get(plan)


def compute_expiry(anchor: datetime, plan: Plan | str | None) -> datetime | None:
    """Return ``anchor + duration_days(plan)``, or None when the plan has no duration."""
    days = duration_days(plan)
    if days is None:
        return None
    return anchor + timedelta(days=days)
