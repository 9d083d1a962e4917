"""Tests for the validation record store."""
from datetime import datetime, timedelta, timezone

import pytest

from changetrack.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from changetrack.models.audit_log import AuditLog
from changetrack.models.change_request import ChangeRequestApplication


class TestCreateChangeRequest:
    def test_creates_pending_records(self, store, manager_user, applications):
        cr = store.create_change_request(
            manager_id=manager_user.user_id,
            title="Patch",
            change_type="P2",
            start_time=datetime(2024, 5, 1, 10, 0),
            end_time=datetime(2024, 5, 1, 12, 0),
            application_ids=[applications["A"].application_id, applications["B"].application_id],
        )
        assert cr.status == "active"
        assert len(cr.applications) == 2
        for record in cr.applications:
            assert (record.pre_status, record.post_status) == ("pending", "pending")
            assert record.pre_attachments == []
            assert record.pre_updated_at is None

    def test_start_must_precede_end(self, store, manager_user):
        start = datetime(2024, 5, 1, 10, 0)
        with pytest.raises(InvalidInputError):
            store.create_change_request(
                manager_id=manager_user.user_id, title="Bad window", change_type="P1",
                start_time=start, end_time=start,
            )

    def test_unknown_change_type(self, store, manager_user):
        with pytest.raises(InvalidInputError):
            store.create_change_request(
                manager_id=manager_user.user_id, title="Bad type", change_type="Routine",
                start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
            )

    def test_aware_datetimes_stored_as_utc(self, store, manager_user):
        cr = store.create_change_request(
            manager_id=manager_user.user_id, title="Offset", change_type="P1",
            start_time=datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))),
            end_time=datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))),
        )
        assert cr.start_time == datetime(2024, 5, 1, 10, 0)

    def test_change_ids_are_sequential_and_unique(self, store, manager_user):
        created = [
            store.create_change_request(
                manager_id=manager_user.user_id, title=f"Change {i}", change_type="Standard",
                start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
            )
            for i in range(3)
        ]
        change_ids = [cr.change_id for cr in created]
        assert len(set(change_ids)) == 3
        year = datetime.now(timezone.utc).year
        assert change_ids[0] == f"CR-{year}-000001"
        assert change_ids[2] == f"CR-{year}-000003"

    def test_generated_id_collision_is_regenerated(self, store, monkeypatch, manager_user,
                                                   scenario_change_request):
        candidates = iter(["CR-2024-001", "CR-2024-000002"])
        monkeypatch.setattr(store, "generate_change_id", lambda now=None: next(candidates))
        cr = store.create_change_request(
            manager_id=manager_user.user_id, title="Retry", change_type="P1",
            start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
        )
        assert cr.change_id == "CR-2024-000002"
        assert store.get_change_request(scenario_change_request.change_request_id).change_id == "CR-2024-001"

    def test_generated_id_collision_gives_up_with_conflict(self, store, monkeypatch, manager_user,
                                                           scenario_change_request):
        monkeypatch.setattr(store, "generate_change_id", lambda now=None: "CR-2024-001")
        with pytest.raises(ConflictError):
            store.create_change_request(
                manager_id=manager_user.user_id, title="Stuck", change_type="P1",
                start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
            )
        # The session is usable after the failed insert
        assert len(store.list_change_requests()) == 1

    def test_explicit_duplicate_change_id(self, store, manager_user, scenario_change_request):
        with pytest.raises(ConflictError, match="already exists"):
            store.create_change_request(
                manager_id=manager_user.user_id, title="Copy", change_type="P1",
                start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
                change_id="CR-2024-001",
            )


    def test_duplicate_application_ids_conflict(self, store, manager_user, applications):
        app_id = applications["A"].application_id
        with pytest.raises(ConflictError):
            store.create_change_request(
                manager_id=manager_user.user_id, title="Dup", change_type="P1",
                start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
                application_ids=[app_id, app_id],
            )

    def test_unknown_application(self, store, manager_user):
        with pytest.raises(NotFoundError):
            store.create_change_request(
                manager_id=manager_user.user_id, title="Missing", change_type="P1",
                start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
                application_ids=[4242],
            )

    def test_audit_log_written(self, store, db_session, manager_user):
        cr = store.create_change_request(
            manager_id=manager_user.user_id, title="Audited", change_type="P1",
            start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
        )
        log = db_session.query(AuditLog).filter(
            AuditLog.entity_type == "ChangeRequest",
            AuditLog.entity_id == cr.change_request_id
        ).one()
        assert log.action == "CREATE"
        assert log.user_id == manager_user.user_id


class TestAttachApplications:
    def test_attach_creates_one_record_per_application(self, store, manager_user, applications,
                                                       scenario_change_request):
        records = store.attach_applications(
            scenario_change_request.change_request_id,
            [applications["C"].application_id],
            manager_user.user_id,
        )
        assert len(records) == 1
        assert records[0].pre_status == "pending"
        cr = store.get_change_request(scenario_change_request.change_request_id)
        assert len(cr.applications) == 3

    def test_attach_existing_application_conflicts(self, store, manager_user, applications,
                                                   scenario_change_request, db_session):
        with pytest.raises(ConflictError):
            store.attach_applications(
                scenario_change_request.change_request_id,
                [applications["A"].application_id],
                manager_user.user_id,
            )
        count = db_session.query(ChangeRequestApplication).filter(
            ChangeRequestApplication.change_request_id == scenario_change_request.change_request_id
        ).count()
        assert count == 2

    def test_attach_to_missing_change_request(self, store, manager_user, applications):
        with pytest.raises(NotFoundError):
            store.attach_applications(9999, [applications["A"].application_id], manager_user.user_id)


class TestUpdateValidationRecord:
    def test_owner_updates_pre_side(self, store, owner_two, applications, scenario_change_request):
        record = store.update_validation_record(
            scenario_change_request.change_request_id,
            applications["B"].application_id,
            owner_two.user_id,
            side="pre",
            status="in_progress",
            comments="Smoke tests running",
            attachments=["evidence-1.png"],
        )
        assert record.pre_status == "in_progress"
        assert record.post_status == "pending"
        assert record.pre_comments == "Smoke tests running"
        assert record.pre_attachments == ["evidence-1.png"]
        assert record.pre_updated_at is not None
        assert record.post_updated_at is None

    def test_none_leaves_comments_and_attachments(self, store, owner_two, applications,
                                                  scenario_change_request):
        cr_id = scenario_change_request.change_request_id
        app_id = applications["B"].application_id
        store.update_validation_record(
            cr_id, app_id, owner_two.user_id, side="post", status="in_progress",
            comments="Checking", attachments=["log.txt"],
        )
        record = store.update_validation_record(
            cr_id, app_id, owner_two.user_id, side="post", status="completed",
        )
        assert record.post_status == "completed"
        assert record.post_comments == "Checking"
        assert record.post_attachments == ["log.txt"]

    def test_non_owner_forbidden(self, store, owner_one, applications, scenario_change_request):
        """U1 attempts to update B's record."""
        with pytest.raises(ForbiddenError):
            store.update_validation_record(
                scenario_change_request.change_request_id,
                applications["B"].application_id,
                owner_one.user_id,
                side="pre",
                status="completed",
            )
        record = store.get_validation_record(
            scenario_change_request.change_request_id, applications["B"].application_id
        )
        assert record.pre_status == "pending"

    @pytest.mark.parametrize("caller", ["manager_user", "admin_user", "owner_one", "outsider"])
    def test_forbidden_for_everyone_but_owner(self, request, store, applications,
                                              scenario_change_request, caller):
        user = request.getfixturevalue(caller)
        with pytest.raises(ForbiddenError):
            store.update_validation_record(
                scenario_change_request.change_request_id,
                applications["B"].application_id,
                user.user_id,
                side="post",
                status="completed",
            )

    def test_unowned_application_forbidden(self, store, manager_user, owner_one, applications,
                                           scenario_change_request):
        store.attach_applications(
            scenario_change_request.change_request_id,
            [applications["C"].application_id],
            manager_user.user_id,
        )
        with pytest.raises(ForbiddenError):
            store.update_validation_record(
                scenario_change_request.change_request_id,
                applications["C"].application_id,
                owner_one.user_id,
                side="pre",
                status="completed",
            )

    def test_reassigned_owner_loses_access(self, store, admin_user, owner_one, owner_two,
                                           applications, scenario_change_request):
        store.reassign_application_owner(
            applications["B"].application_id, owner_one.user_id, admin_user.user_id
        )
        with pytest.raises(ForbiddenError):
            store.update_validation_record(
                scenario_change_request.change_request_id,
                applications["B"].application_id,
                owner_two.user_id,
                side="pre",
                status="completed",
            )
        record = store.update_validation_record(
            scenario_change_request.change_request_id,
            applications["B"].application_id,
            owner_one.user_id,
            side="pre",
            status="completed",
        )
        assert record.pre_status == "completed"

    def test_record_not_attached(self, store, owner_one, applications, manager_user):
        cr = store.create_change_request(
            manager_id=manager_user.user_id, title="Empty", change_type="P1",
            start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 2),
        )
        with pytest.raises(NotFoundError):
            store.update_validation_record(
                cr.change_request_id, applications["A"].application_id, owner_one.user_id,
                side="pre", status="completed",
            )

    def test_invalid_status_and_side(self, store, owner_two, applications, scenario_change_request):
        args = (scenario_change_request.change_request_id, applications["B"].application_id, owner_two.user_id)
        with pytest.raises(InvalidInputError):
            store.update_validation_record(*args, side="pre", status="done")
        with pytest.raises(InvalidInputError):
            store.update_validation_record(*args, side="during", status="completed")

    def test_repeated_update_is_idempotent_but_touches_timestamp(self, store, owner_two, applications,
                                                                 scenario_change_request):
        args = (scenario_change_request.change_request_id, applications["B"].application_id, owner_two.user_id)
        first = store.update_validation_record(*args, side="pre", status="completed", comments="ok")
        first_values = (first.pre_status, first.pre_comments, list(first.pre_attachments))
        first_stamp = first.pre_updated_at

        second = store.update_validation_record(*args, side="pre", status="completed", comments="ok")
        assert (second.pre_status, second.pre_comments, list(second.pre_attachments)) == first_values
        assert second.pre_updated_at >= first_stamp

    def test_audit_log_for_update(self, store, db_session, owner_two, applications, scenario_change_request):
        record = store.update_validation_record(
            scenario_change_request.change_request_id, applications["B"].application_id,
            owner_two.user_id, side="post", status="not_applicable",
        )
        log = db_session.query(AuditLog).filter(
            AuditLog.entity_type == "ValidationRecord",
            AuditLog.entity_id == record.record_id
        ).one()
        assert log.changes["side"] == "post"
        assert log.changes["post_status"] == "not_applicable"


class TestOwnerRecords:
    def test_records_for_owner(self, store, owner_one, owner_two, outsider, scenario_change_request):
        records = store.get_validation_records_for_owner(owner_one.user_id)
        assert len(records) == 1
        assert records[0].change_request.change_id == "CR-2024-001"
        assert records[0].application.name == "Customer Portal"
        assert store.get_validation_records_for_owner(outsider.user_id) == []

    def test_inactive_requests_excluded_by_default(self, store, manager_user, owner_one,
                                                   scenario_change_request):
        store.update_lifecycle_status(
            scenario_change_request.change_request_id, "completed", manager_user.user_id
        )
        assert store.get_validation_records_for_owner(owner_one.user_id) == []
        assert len(store.get_validation_records_for_owner(owner_one.user_id, active_only=False)) == 1


class TestApplications:
    def test_create_with_unknown_owner(self, store, admin_user):
        with pytest.raises(NotFoundError):
            store.create_application("Ghost", None, owner_id=777, created_by=admin_user.user_id)

    def test_list_filters(self, store, applications, owner_one):
        assert [a.name for a in store.list_applications(owner_id=owner_one.user_id)] == ["Customer Portal"]
        assert [a.name for a in store.list_applications(search="invoice")] == ["Billing Engine"]

    def test_invalid_lifecycle_status(self, store, manager_user, scenario_change_request):
        with pytest.raises(InvalidInputError):
            store.update_lifecycle_status(
                scenario_change_request.change_request_id, "archived", manager_user.user_id
            )
