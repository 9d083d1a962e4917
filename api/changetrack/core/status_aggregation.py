"""
Validation status aggregation for change requests.

Every change request carries one validation record per attached application,
each with an independent pre-change and post-change status. This module
derives:

1. The effective status of a single application from its (pre, post) pair
2. The overall validation status of a change request
3. Pre/post completion ratios for progress reporting
4. Per-side validation summaries ("Pre-Change: 3/4")

Only `completed` counts toward completion. `not_applicable` never satisfies
it, so an application at completed/not_applicable is still pending.

Status Definitions (overall):
- NO_APPLICATIONS: nothing is attached, so there is nothing to validate
- COMPLETED: every application is completed on both sides
- IN_PROGRESS: not completed, and at least one side of one application is in progress
- PENDING: anything else
"""
from dataclasses import dataclass
from typing import Iterable, List, Protocol, Tuple, Union

from changetrack.core.errors import InvalidInputError
from changetrack.models.change_request import ValidationSide, ValidationStatus


class OverallStatus:
    """Enum-like class for aggregated validation status codes."""
    NO_APPLICATIONS = "no_applications"
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"

    ALL = (NO_APPLICATIONS, COMPLETED, IN_PROGRESS, PENDING)


class SummaryStatus:
    """Enum-like class for per-side summary labels."""
    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


STATUS_LABELS = {
    OverallStatus.NO_APPLICATIONS: "No Applications",
    OverallStatus.COMPLETED: "Completed",
    OverallStatus.IN_PROGRESS: "In Progress",
    OverallStatus.PENDING: "Pending",
}

SUMMARY_LABELS = {
    SummaryStatus.NOT_APPLICABLE: "N/A",
    SummaryStatus.PENDING: "Pending",
    SummaryStatus.IN_PROGRESS: "In Progress",
    SummaryStatus.COMPLETED: "Completed",
}


class HasValidationStatus(Protocol):
    pre_status: str
    post_status: str


StatusValue = Union[str, ValidationStatus]


@dataclass(frozen=True)
class ValidationSummary:
    """Per-side aggregation across all applications of a change request."""
    side: str
    total: int
    completed: int
    not_applicable: int
    status: str

    @property
    def applicable(self) -> int:
        return self.total - self.not_applicable

    @property
    def label(self) -> str:
        return SUMMARY_LABELS[self.status]


def coerce_validation_status(value: StatusValue) -> ValidationStatus:
    """Convert a raw status value to ValidationStatus, rejecting unknown values."""
    if isinstance(value, ValidationStatus):
        return value
    try:
        return ValidationStatus(value)
    except ValueError:
        raise InvalidInputError(f"Unknown validation status: {value!r}")


def compute_effective_status(pre_status: StatusValue, post_status: StatusValue) -> str:
    """Effective status of one application from its pre and post statuses."""
    pre = coerce_validation_status(pre_status)
    post = coerce_validation_status(post_status)

    if pre == ValidationStatus.COMPLETED and post == ValidationStatus.COMPLETED:
        return OverallStatus.COMPLETED
    if ValidationStatus.IN_PROGRESS in (pre, post):
        return OverallStatus.IN_PROGRESS
    return OverallStatus.PENDING


def compute_record_status(record: HasValidationStatus) -> str:
    return compute_effective_status(record.pre_status, record.post_status)


def compute_overall_status(records: Iterable[HasValidationStatus]) -> str:
    """
    Overall validation status of a change request.

    Strict priority chain: no applications, then all completed, then any
    in progress, else pending.
    """
    statuses = [compute_record_status(record) for record in records]
    if not statuses:
        return OverallStatus.NO_APPLICATIONS
    if all(status == OverallStatus.COMPLETED for status in statuses):
        return OverallStatus.COMPLETED
    if any(status == OverallStatus.IN_PROGRESS for status in statuses):
        return OverallStatus.IN_PROGRESS
    return OverallStatus.PENDING


def _side_status(record: HasValidationStatus, side: StatusValue) -> ValidationStatus:
    side = ValidationSide(side)
    raw = record.pre_status if side == ValidationSide.PRE else record.post_status
    return coerce_validation_status(raw)


def compute_completion_ratio(records: Iterable[HasValidationStatus]) -> Tuple[float, float]:
    """
    Return (pre_ratio, post_ratio): completed sides over total applications.

    An empty record set yields (0.0, 0.0).
    """
    records = list(records)
    total = len(records)
    if total == 0:
        return 0.0, 0.0
    pre_completed = sum(
        1 for r in records if _side_status(r, ValidationSide.PRE) == ValidationStatus.COMPLETED
    )
    post_completed = sum(
        1 for r in records if _side_status(r, ValidationSide.POST) == ValidationStatus.COMPLETED
    )
    return pre_completed / total, post_completed / total


def summarize_side(records: Iterable[HasValidationStatus], side: StatusValue) -> ValidationSummary:
    """
    Summarize one side (pre or post) across all applications.

    Applications marked not_applicable on this side are excluded from the
    denominator. This is coarser than compute_overall_status and is reported
    separately from it.
    """
    side = ValidationSide(side)
    statuses: List[ValidationStatus] = [_side_status(r, side) for r in records]
    total = len(statuses)
    completed = sum(1 for s in statuses if s == ValidationStatus.COMPLETED)
    not_applicable = sum(1 for s in statuses if s == ValidationStatus.NOT_APPLICABLE)
    applicable = total - not_applicable

    if applicable == 0:
        status = SummaryStatus.NOT_APPLICABLE
    elif completed == 0:
        status = SummaryStatus.PENDING
    elif completed == applicable:
        status = SummaryStatus.COMPLETED
    else:
        status = SummaryStatus.IN_PROGRESS

    return ValidationSummary(
        side=side.value,
        total=total,
        completed=completed,
        not_applicable=not_applicable,
        status=status,
    )


def get_status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def parse_overall_status(value: str) -> str:
    """Validate a user supplied aggregated status filter value."""
    normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
    if normalized not in OverallStatus.ALL:
        raise InvalidInputError(
            f"Unknown validation status filter: {value!r}. "
            f"Expected one of: {', '.join(OverallStatus.ALL)}"
        )
    return normalized
