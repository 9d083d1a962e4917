"""
Dashboard statistics and analytics.

All change-request level counts go through the query composer, so they use
the same visibility rules and the same canonical aggregation as the list
endpoints.
"""
from collections import Counter, OrderedDict
from datetime import date, datetime
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta

from changetrack.core.errors import InvalidInputError
from changetrack.core.query_composer import ChangeRequestFilters, ChangeRequestQueryComposer
from changetrack.core.status_aggregation import OverallStatus, compute_record_status
from changetrack.core.store import ValidationRecordStore
from changetrack.core.time import utc_now
from changetrack.models.change_request import (
    ChangeRequestApplication,
    ChangeRequestStatus,
    ChangeType,
    ValidationStatus,
)
from changetrack.models.user import User

ANALYTICS_RANGES = OrderedDict([
    ("7d", relativedelta(days=7)),
    ("30d", relativedelta(days=30)),
    ("90d", relativedelta(days=90)),
    ("1y", relativedelta(years=1)),
])

OPEN_STATUSES = {ValidationStatus.PENDING.value, ValidationStatus.IN_PROGRESS.value}


def compute_change_manager_stats(composer: ChangeRequestQueryComposer, viewer: User) -> Dict[str, int]:
    """Validation status counts across active change requests."""
    results = composer.list_change_requests(
        viewer, ChangeRequestFilters(lifecycle_status=ChangeRequestStatus.ACTIVE.value)
    )
    counts = Counter(r.validation_status for r in results)
    return {
        "total": len(results),
        "completed": counts[OverallStatus.COMPLETED],
        "in_progress": counts[OverallStatus.IN_PROGRESS],
        "pending": counts[OverallStatus.PENDING],
        "no_applications": counts[OverallStatus.NO_APPLICATIONS],
    }


def compute_application_owner_stats(
    store: ValidationRecordStore,
    owner_id: int,
    today: Optional[date] = None
) -> Dict[str, int]:
    """
    Counts for an application owner's dashboard.

    - pending: rows on active change requests with either side still open
    - completed_today: sides marked completed today, counted once per row
    - total: rows on active change requests
    """
    today = today or utc_now().date()
    active_records = store.get_validation_records_for_owner(owner_id, active_only=True)
    all_records = store.get_validation_records_for_owner(owner_id, active_only=False)

    pending = sum(
        1 for r in active_records
        if r.pre_status in OPEN_STATUSES or r.post_status in OPEN_STATUSES
    )
    completed_today = sum(1 for r in all_records if _completed_on(r, today))

    return {
        "pending": pending,
        "completed_today": completed_today,
        "total": len(active_records),
    }


def _completed_on(record: ChangeRequestApplication, day: date) -> bool:
    pre_done = (
        record.pre_status == ValidationStatus.COMPLETED.value
        and record.pre_updated_at is not None
        and record.pre_updated_at.date() == day
    )
    post_done = (
        record.post_status == ValidationStatus.COMPLETED.value
        and record.post_updated_at is not None
        and record.post_updated_at.date() == day
    )
    return pre_done or post_done


def _completion_hours(record: ChangeRequestApplication) -> Optional[float]:
    """Hours from attachment to the later of the two completion stamps."""
    stamps = [s for s in (record.pre_updated_at, record.post_updated_at) if s is not None]
    if not stamps or record.created_at is None:
        return None
    return (max(stamps) - record.created_at).total_seconds() / 3600


def parse_range(range_code: str) -> relativedelta:
    try:
        return ANALYTICS_RANGES[range_code]
    except KeyError:
        raise InvalidInputError(
            f"Unknown analytics range: {range_code!r}. "
            f"Expected one of: {', '.join(ANALYTICS_RANGES)}"
        )


def compute_analytics(
    composer: ChangeRequestQueryComposer,
    viewer: User,
    range_code: str = "30d",
    now: Optional[datetime] = None
) -> dict:
    """Overview, trends, change type distribution and per-application metrics."""
    since = (now or utc_now()) - parse_range(range_code)
    results = composer.list_change_requests(viewer, ChangeRequestFilters(created_since=since))

    status_counts = Counter(r.validation_status for r in results)
    total = len(results)
    completed = status_counts[OverallStatus.COMPLETED]

    completion_hours: List[float] = []
    per_application: Dict[str, dict] = {}
    trends: Dict[str, Counter] = {}

    for result in results:
        day = result.change_request.created_at.date().isoformat()
        trend = trends.setdefault(day, Counter())
        trend["created"] += 1
        trend[result.validation_status] += 1

        for record in result.change_request.applications:
            effective = compute_record_status(record)
            name = record.application.name if record.application else str(record.application_id)
            metrics = per_application.setdefault(name, {
                "name": name,
                "total_validations": 0,
                "completed_validations": 0,
                "pre_completed": 0,
                "post_completed": 0,
            })
            metrics["total_validations"] += 1
            if record.pre_status == ValidationStatus.COMPLETED.value:
                metrics["pre_completed"] += 1
            if record.post_status == ValidationStatus.COMPLETED.value:
                metrics["post_completed"] += 1
            if effective == OverallStatus.COMPLETED:
                metrics["completed_validations"] += 1
                hours = _completion_hours(record)
                if hours is not None:
                    completion_hours.append(hours)

    application_metrics = []
    for metrics in sorted(per_application.values(), key=lambda m: m["name"]):
        metrics["completion_rate"] = (
            metrics["completed_validations"] / metrics["total_validations"] * 100
            if metrics["total_validations"] else 0.0
        )
        application_metrics.append(metrics)

    type_counts = Counter(r.change_request.change_type for r in results)

    return {
        "range": range_code,
        "since": since,
        "overview": {
            "total_requests": total,
            "completed_requests": completed,
            "in_progress_requests": status_counts[OverallStatus.IN_PROGRESS],
            "pending_requests": status_counts[OverallStatus.PENDING],
            "no_application_requests": status_counts[OverallStatus.NO_APPLICATIONS],
            "success_rate": (completed / total * 100) if total else 0.0,
            "avg_completion_hours": (
                sum(completion_hours) / len(completion_hours) if completion_hours else 0.0
            ),
        },
        "trends": [
            {
                "date": day,
                "created": counts["created"],
                "completed": counts[OverallStatus.COMPLETED],
                "in_progress": counts[OverallStatus.IN_PROGRESS],
                "pending": counts[OverallStatus.PENDING],
            }
            for day, counts in sorted(trends.items())
        ],
        "change_type_distribution": [
            {"change_type": change_type.value, "count": type_counts[change_type.value]}
            for change_type in ChangeType
        ],
        "application_metrics": application_metrics,
    }
