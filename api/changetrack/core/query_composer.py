"""
Change request list/detail composition.

Builds the store-level predicates for a viewer and a set of user filters,
then applies the aggregated validation status filter in memory, since that
status depends on the joined validation records.

Precedence: role visibility is always the first predicate and cannot be
widened by any filter. User filters are ANDed together; each filter ORs
across its own match fields.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import or_

from changetrack.core.errors import InvalidInputError, NotFoundError
from changetrack.core.rls import (
    change_request_visibility_clause,
    ensure_can_access_change_request,
    owned_application_ids,
)
from changetrack.core.status_aggregation import (
    OverallStatus,
    ValidationSummary,
    compute_completion_ratio,
    compute_overall_status,
    parse_overall_status,
    summarize_side,
)
from changetrack.core.store import (
    ValidationRecordStore,
    parse_change_type,
    parse_lifecycle_status,
)
from changetrack.core.time import to_naive_utc
from changetrack.models.application import Application
from changetrack.models.change_request import (
    ChangeRequest,
    ChangeRequestApplication,
    ChangeRequestStatus,
    ValidationSide,
)
from changetrack.models.user import User

# Lifecycle values that are not also aggregated validation statuses; a
# `status` filter with one of these narrows the lifecycle flag instead
LIFECYCLE_ONLY_STATUSES = frozenset(
    s.value for s in ChangeRequestStatus if s.value not in OverallStatus.ALL
)


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _day_start(value) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return datetime.combine(value, time.min)


def _day_end(value) -> datetime:
    """Inclusive upper bound; a bare date covers the whole day."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return datetime.combine(value, time.max)


@dataclass
class ChangeRequestFilters:
    """User supplied list filters. Empty strings count as not provided."""
    search: Optional[str] = None
    change_type: Optional[str] = None
    status: Optional[str] = None
    lifecycle_status: Optional[str] = None
    application: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    managed_by_me: bool = False
    created_since: Optional[datetime] = None

    def normalized(self) -> "ChangeRequestFilters":
        """Return a copy with blanks dropped and enum values checked."""
        search = (self.search or "").strip() or None
        application = (self.application or "").strip() or None
        change_type = parse_change_type(self.change_type).value if self.change_type else None
        lifecycle_status = (
            parse_lifecycle_status(self.lifecycle_status).value
            if self.lifecycle_status else None
        )
        status = None
        if self.status:
            raw_status = self.status.strip().lower()
            if raw_status in LIFECYCLE_ONLY_STATUSES:
                if lifecycle_status and lifecycle_status != raw_status:
                    raise InvalidInputError(
                        f"status {raw_status!r} conflicts with lifecycle_status {lifecycle_status!r}"
                    )
                lifecycle_status = raw_status
            else:
                status = parse_overall_status(self.status)
        if self.date_from and self.date_to and _day_start(self.date_from) > _day_end(self.date_to):
            raise InvalidInputError("date_from must not be after date_to")

        return ChangeRequestFilters(
            search=search,
            change_type=change_type,
            status=status,
            lifecycle_status=lifecycle_status,
            application=application,
            date_from=self.date_from,
            date_to=self.date_to,
            managed_by_me=self.managed_by_me,
            created_since=to_naive_utc(self.created_since) if self.created_since else None,
        )


@dataclass
class AggregatedChangeRequest:
    """A change request together with its derived validation figures."""
    change_request: ChangeRequest
    validation_status: str
    pre_completion_ratio: float
    post_completion_ratio: float
    pre_summary: ValidationSummary
    post_summary: ValidationSummary
    editable_application_ids: set = field(default_factory=set)

    @classmethod
    def build(cls, change_request: ChangeRequest, viewer: Optional[User] = None) -> "AggregatedChangeRequest":
        records = list(change_request.applications)
        pre_ratio, post_ratio = compute_completion_ratio(records)
        editable = owned_application_ids(change_request, viewer) if viewer is not None else set()
        return cls(
            change_request=change_request,
            validation_status=compute_overall_status(records),
            pre_completion_ratio=pre_ratio,
            post_completion_ratio=post_ratio,
            pre_summary=summarize_side(records, ValidationSide.PRE),
            post_summary=summarize_side(records, ValidationSide.POST),
            editable_application_ids=editable,
        )


class ChangeRequestQueryComposer:
    """Role-scoped listing and retrieval of change requests."""

    def __init__(self, store: ValidationRecordStore, admin_sees_all: Optional[bool] = None):
        self.store = store
        self.admin_sees_all = admin_sees_all

    def compose_conditions(self, viewer: User, filters: ChangeRequestFilters) -> list:
        """Store-level predicates; the visibility clause always comes first."""
        conditions = []

        visibility = change_request_visibility_clause(viewer, self.admin_sees_all)
        if visibility is not None:
            conditions.append(visibility)

        if filters.search:
            term = _like_pattern(filters.search)
            conditions.append(or_(
                ChangeRequest.change_id.ilike(term, escape="\\"),
                ChangeRequest.title.ilike(term, escape="\\"),
                ChangeRequest.description.ilike(term, escape="\\"),
            ))

        if filters.change_type:
            conditions.append(ChangeRequest.change_type == filters.change_type)

        if filters.lifecycle_status:
            conditions.append(ChangeRequest.status == filters.lifecycle_status)

        if filters.application:
            term = _like_pattern(filters.application)
            conditions.append(ChangeRequest.applications.any(
                ChangeRequestApplication.application.has(
                    Application.name.ilike(term, escape="\\")
                )
            ))

        if filters.date_from:
            conditions.append(ChangeRequest.start_time >= _day_start(filters.date_from))

        if filters.date_to:
            conditions.append(ChangeRequest.start_time <= _day_end(filters.date_to))

        if filters.managed_by_me:
            conditions.append(ChangeRequest.manager_id == viewer.user_id)

        if filters.created_since:
            conditions.append(ChangeRequest.created_at >= filters.created_since)

        return conditions

    def list_change_requests(self, viewer: User,
                             filters: Optional[ChangeRequestFilters] = None) -> List[AggregatedChangeRequest]:
        """Visible change requests matching the filters, newest first."""
        filters = (filters or ChangeRequestFilters()).normalized()
        rows = self.store.list_change_requests(self.compose_conditions(viewer, filters))
        results = [AggregatedChangeRequest.build(cr, viewer) for cr in rows]
        if filters.status:
            results = [r for r in results if r.validation_status == filters.status]
        return results

    def get_change_request(self, viewer: User, change_request_id: int) -> AggregatedChangeRequest:
        """
        A single change request with every attached row.

        Raises NotFoundError for an unknown id and ForbiddenError when the
        viewer may not see it.
        """
        change_request = self.store.get_change_request(change_request_id)
        if change_request is None:
            raise NotFoundError(f"Change request with ID {change_request_id} not found")
        ensure_can_access_change_request(change_request, viewer, self.admin_sees_all)
        return AggregatedChangeRequest.build(change_request, viewer)
