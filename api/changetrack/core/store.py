"""
Validation record store.

Thin persistence layer over a SQLAlchemy session. One store is built per
request from the request's session and handed to the query composer and the
routers; nothing in the application holds a store globally.
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from changetrack.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from changetrack.core.status_aggregation import coerce_validation_status
from changetrack.core.time import to_naive_utc, utc_now
from changetrack.models.application import Application
from changetrack.models.audit_log import AuditLog
from changetrack.models.change_request import (
    ChangeRequest,
    ChangeRequestApplication,
    ChangeRequestStatus,
    ChangeType,
    ValidationSide,
    ValidationStatus,
)
from changetrack.models.user import User

CHANGE_ID_PREFIX = "CR"
CHANGE_ID_ATTEMPTS = 5


def _change_request_load_options():
    return (
        selectinload(ChangeRequest.manager),
        selectinload(ChangeRequest.applications)
        .selectinload(ChangeRequestApplication.application)
        .selectinload(Application.owner),
    )


def parse_change_type(value: str) -> ChangeType:
    try:
        return ChangeType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ChangeType)
        raise InvalidInputError(f"Unknown change type: {value!r}. Expected one of: {allowed}")


def parse_lifecycle_status(value: str) -> ChangeRequestStatus:
    try:
        return ChangeRequestStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ChangeRequestStatus)
        raise InvalidInputError(f"Unknown lifecycle status: {value!r}. Expected one of: {allowed}")


def parse_side(value: str) -> ValidationSide:
    try:
        return ValidationSide(value)
    except ValueError:
        raise InvalidInputError(f"Unknown validation side: {value!r}. Expected 'pre' or 'post'")


class ValidationRecordStore:
    """CRUD access to users, applications, change requests and validation records."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def add_audit_log(self, entity_type: str, entity_id: int, action: str,
                      user_id: int, changes: dict = None) -> None:
        """Stage an audit log entry; committed with the surrounding change."""
        self.db.add(AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            user_id=user_id,
            changes=changes
        ))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def list_applications(self, search: Optional[str] = None,
                          owner_id: Optional[int] = None) -> List[Application]:
        query = self.db.query(Application).options(selectinload(Application.owner))
        if search:
            term = f"%{search}%"
            query = query.filter(
                Application.name.ilike(term) | Application.description.ilike(term)
            )
        if owner_id is not None:
            query = query.filter(Application.owner_id == owner_id)
        return query.order_by(Application.name).all()

    def get_application(self, application_id: int) -> Optional[Application]:
        return self.db.query(Application).options(
            selectinload(Application.owner)
        ).filter(Application.application_id == application_id).first()

    def require_application(self, application_id: int) -> Application:
        application = self.get_application(application_id)
        if not application:
            raise NotFoundError(f"Application with ID {application_id} not found")
        return application

    def _require_owner(self, owner_id: Optional[int]) -> None:
        if owner_id is not None and not self.get_user(owner_id):
            raise NotFoundError(f"User with ID {owner_id} not found")

    def create_application(self, name: str, description: Optional[str],
                           owner_id: Optional[int], created_by: int) -> Application:
        self._require_owner(owner_id)
        application = Application(name=name, description=description, owner_id=owner_id)
        self.db.add(application)
        self.db.flush()
        self.add_audit_log(
            "Application", application.application_id, "CREATE", created_by,
            {"name": name, "owner_id": owner_id}
        )
        self.db.commit()
        self.db.refresh(application)
        return application

    def reassign_application_owner(self, application_id: int, owner_id: Optional[int],
                                   acting_user_id: int) -> Application:
        application = self.require_application(application_id)
        self._require_owner(owner_id)
        previous = application.owner_id
        application.owner_id = owner_id
        self.add_audit_log(
            "Application", application_id, "REASSIGN_OWNER", acting_user_id,
            {"owner_id": {"old": previous, "new": owner_id}}
        )
        self.db.commit()
        return self.require_application(application_id)

    # ------------------------------------------------------------------
    # Change requests
    # ------------------------------------------------------------------

    def generate_change_id(self, now: Optional[datetime] = None) -> str:
        """
        Next free change id for the year, e.g. CR-2024-000042.

        Ids are never reused: the sequence continues from the highest
        number issued this year.
        """
        year = (now or utc_now()).year
        prefix = f"{CHANGE_ID_PREFIX}-{year}-"
        existing = self.db.query(ChangeRequest.change_id).filter(
            ChangeRequest.change_id.like(f"{prefix}%")
        ).all()
        numbers = [
            int(change_id[len(prefix):])
            for (change_id,) in existing
            if change_id[len(prefix):].isdigit()
        ]
        return f"{prefix}{max(numbers, default=0) + 1:06d}"

    def create_change_request(
        self,
        manager_id: int,
        title: str,
        change_type: str,
        start_time: datetime,
        end_time: datetime,
        description: Optional[str] = None,
        application_ids: Sequence[int] = (),
        change_id: Optional[str] = None,
    ) -> ChangeRequest:
        """Create a change request and one pending/pending record per application."""
        change_type = parse_change_type(change_type)
        start_time = to_naive_utc(start_time)
        end_time = to_naive_utc(end_time)
        if start_time >= end_time:
            raise InvalidInputError("start_time must be before end_time")

        generated = change_id is None
        if not generated and self.db.query(ChangeRequest).filter(
            ChangeRequest.change_id == change_id
        ).first():
            raise ConflictError(f"Change id {change_id} already exists")

        for _ in range(CHANGE_ID_ATTEMPTS if generated else 1):
            candidate = self.generate_change_id() if generated else change_id
            change_request = ChangeRequest(
                change_id=candidate,
                title=title,
                description=description,
                change_type=change_type.value,
                status=ChangeRequestStatus.ACTIVE.value,
                start_time=start_time,
                end_time=end_time,
                manager_id=manager_id,
            )
            self.db.add(change_request)
            try:
                self.db.flush()
                break
            except IntegrityError:
                # Another request took the id between the read and the insert
                self.db.rollback()
                if not generated:
                    raise ConflictError(f"Change id {change_id} already exists")
        else:
            raise ConflictError(
                f"Could not allocate a unique change id after {CHANGE_ID_ATTEMPTS} attempts"
            )
        change_id = change_request.change_id

        try:
            self._stage_attachments(change_request, application_ids)
        except (ConflictError, NotFoundError):
            self.db.rollback()
            raise
        self.add_audit_log(
            "ChangeRequest", change_request.change_request_id, "CREATE", manager_id,
            {
                "change_id": change_id,
                "change_type": change_type.value,
                "application_ids": list(application_ids),
            }
        )
        self._commit_or_conflict()
        return self.get_change_request(change_request.change_request_id)

    def list_change_requests(self, conditions: Iterable = ()) -> List[ChangeRequest]:
        """
        Change requests matching every condition, newest first, with
        applications, owners and validation records loaded.
        """
        query = self.db.query(ChangeRequest).options(*_change_request_load_options())
        for condition in conditions:
            query = query.filter(condition)
        return query.order_by(
            ChangeRequest.created_at.desc(),
            ChangeRequest.change_request_id.desc()
        ).all()

    def get_change_request(self, change_request_id: int) -> Optional[ChangeRequest]:
        return self.db.query(ChangeRequest).options(
            *_change_request_load_options()
        ).filter(ChangeRequest.change_request_id == change_request_id).first()

    def require_change_request(self, change_request_id: int) -> ChangeRequest:
        change_request = self.get_change_request(change_request_id)
        if not change_request:
            raise NotFoundError(f"Change request with ID {change_request_id} not found")
        return change_request

    def update_lifecycle_status(self, change_request_id: int, status: str,
                                acting_user_id: int) -> ChangeRequest:
        new_status = parse_lifecycle_status(status)
        change_request = self.require_change_request(change_request_id)
        previous = change_request.status
        change_request.status = new_status.value
        change_request.updated_at = utc_now()
        self.add_audit_log(
            "ChangeRequest", change_request_id, "UPDATE_STATUS", acting_user_id,
            {"status": {"old": previous, "new": new_status.value}}
        )
        self.db.commit()
        return self.require_change_request(change_request_id)

    # ------------------------------------------------------------------
    # Validation records
    # ------------------------------------------------------------------

    def _stage_attachments(self, change_request: ChangeRequest,
                           application_ids: Sequence[int]) -> List[ChangeRequestApplication]:
        ids = list(application_ids)
        duplicates = sorted({app_id for app_id in ids if ids.count(app_id) > 1})
        if duplicates:
            raise ConflictError(
                f"Application IDs listed more than once: {', '.join(map(str, duplicates))}"
            )

        if ids:
            found = {
                app_id for (app_id,) in self.db.query(Application.application_id).filter(
                    Application.application_id.in_(ids)
                ).all()
            }
            missing = [app_id for app_id in ids if app_id not in found]
            if missing:
                raise NotFoundError(
                    f"Applications not found: {', '.join(map(str, missing))}"
                )

        attached = {
            app_id for (app_id,) in self.db.query(ChangeRequestApplication.application_id).filter(
                ChangeRequestApplication.change_request_id == change_request.change_request_id
            ).all()
        }
        already = [app_id for app_id in ids if app_id in attached]
        if already:
            raise ConflictError(
                f"Applications already attached to {change_request.change_id}: "
                f"{', '.join(map(str, already))}"
            )

        records = [
            ChangeRequestApplication(
                change_request_id=change_request.change_request_id,
                application_id=app_id,
                pre_status=ValidationStatus.PENDING.value,
                post_status=ValidationStatus.PENDING.value,
                pre_attachments=[],
                post_attachments=[],
            )
            for app_id in ids
        ]
        self.db.add_all(records)
        return records

    def _commit_or_conflict(self) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                "Application already attached to this change request"
            )

    def attach_applications(self, change_request_id: int, application_ids: Sequence[int],
                            acting_user_id: int) -> List[ChangeRequestApplication]:
        """Attach applications, creating a pending/pending record for each."""
        change_request = self.require_change_request(change_request_id)
        records = self._stage_attachments(change_request, application_ids)
        self.add_audit_log(
            "ChangeRequest", change_request_id, "ATTACH_APPLICATIONS", acting_user_id,
            {"application_ids": list(application_ids)}
        )
        self._commit_or_conflict()
        return [self.get_validation_record(r.change_request_id, r.application_id) for r in records]

    def get_validation_record(self, change_request_id: int,
                              application_id: int) -> Optional[ChangeRequestApplication]:
        return self.db.query(ChangeRequestApplication).options(
            selectinload(ChangeRequestApplication.application).selectinload(Application.owner),
            selectinload(ChangeRequestApplication.change_request),
        ).filter(
            ChangeRequestApplication.change_request_id == change_request_id,
            ChangeRequestApplication.application_id == application_id
        ).first()

    def get_validation_records_for_owner(self, owner_id: int,
                                         active_only: bool = True) -> List[ChangeRequestApplication]:
        """
        Validation records for every application the user owns, with the
        parent change request (and its manager) and application loaded.
        """
        query = self.db.query(ChangeRequestApplication).join(
            Application,
            ChangeRequestApplication.application_id == Application.application_id
        ).join(
            ChangeRequest,
            ChangeRequestApplication.change_request_id == ChangeRequest.change_request_id
        ).options(
            selectinload(ChangeRequestApplication.application),
            selectinload(ChangeRequestApplication.change_request).selectinload(ChangeRequest.manager),
        ).filter(Application.owner_id == owner_id)

        if active_only:
            query = query.filter(ChangeRequest.status == ChangeRequestStatus.ACTIVE.value)

        return query.order_by(
            ChangeRequest.start_time, ChangeRequestApplication.record_id
        ).all()

    def update_validation_record(
        self,
        change_request_id: int,
        application_id: int,
        caller_id: int,
        side: str,
        status: str,
        comments: Optional[str] = None,
        attachments: Optional[List[str]] = None,
    ) -> ChangeRequestApplication:
        """
        Record a pre or post validation outcome.

        The ownership check is part of the UPDATE's WHERE clause, so a
        concurrent ownership reassignment cannot slip a write through after
        the check. Comments and attachments left as None are unchanged; the
        side's updated_at timestamp moves on every call.
        """
        side = parse_side(side)
        status = coerce_validation_status(status)

        now = utc_now()
        if side == ValidationSide.PRE:
            values: Dict[str, object] = {"pre_status": status.value, "pre_updated_at": now}
            if comments is not None:
                values["pre_comments"] = comments
            if attachments is not None:
                values["pre_attachments"] = list(attachments)
        else:
            values = {"post_status": status.value, "post_updated_at": now}
            if comments is not None:
                values["post_comments"] = comments
            if attachments is not None:
                values["post_attachments"] = list(attachments)

        owned_applications = select(Application.application_id).where(
            Application.owner_id == caller_id
        )
        result = self.db.execute(
            update(ChangeRequestApplication)
            .where(
                ChangeRequestApplication.change_request_id == change_request_id,
                ChangeRequestApplication.application_id == application_id,
                ChangeRequestApplication.application_id.in_(owned_applications),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        # Rows already loaded in this session still hold the old values
        self.db.expire_all()

        if result.rowcount == 0:
            self.db.rollback()
            if not self.get_validation_record(change_request_id, application_id):
                raise NotFoundError(
                    f"Application {application_id} is not attached to change request {change_request_id}"
                )
            raise ForbiddenError("Unauthorized to update this application")

        record = self.get_validation_record(change_request_id, application_id)
        audit_changes = {
            key: (value.isoformat() if isinstance(value, (datetime, date)) else value)
            for key, value in values.items()
        }
        audit_changes["side"] = side.value
        self.add_audit_log(
            "ValidationRecord", record.record_id, "UPDATE", caller_id, audit_changes
        )
        self.db.commit()
        return self.get_validation_record(change_request_id, application_id)
