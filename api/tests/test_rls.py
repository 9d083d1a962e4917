"""Tests for change request row-level security."""
import pytest

from changetrack.core.errors import ForbiddenError
from changetrack.core.rls import (
    can_access_change_request,
    can_edit_validation_record,
    can_see_all_change_requests,
    change_request_visibility_clause,
    ensure_can_access_change_request,
    owned_application_ids,
)
from changetrack.models.change_request import ChangeRequest


class TestVisibility:
    def test_change_manager_sees_all(self, manager_user, second_manager):
        assert can_see_all_change_requests(manager_user)
        assert can_see_all_change_requests(second_manager)

    def test_application_owner_restricted(self, owner_one):
        assert not can_see_all_change_requests(owner_one)

    def test_admin_follows_setting(self, admin_user):
        assert can_see_all_change_requests(admin_user, admin_sees_all=True)
        assert not can_see_all_change_requests(admin_user, admin_sees_all=False)

    def test_manager_of_other_requests_can_access(self, second_manager, scenario_change_request):
        assert can_access_change_request(scenario_change_request, second_manager)

    def test_owner_with_attached_application_can_access(self, owner_one, owner_two, scenario_change_request):
        assert can_access_change_request(scenario_change_request, owner_one)
        assert can_access_change_request(scenario_change_request, owner_two)

    def test_outsider_cannot_access(self, outsider, scenario_change_request):
        assert not can_access_change_request(scenario_change_request, outsider)
        with pytest.raises(ForbiddenError):
            ensure_can_access_change_request(scenario_change_request, outsider)

    def test_restricted_admin_without_applications(self, admin_user, scenario_change_request):
        assert not can_access_change_request(
            scenario_change_request, admin_user, admin_sees_all=False
        )


class TestQueryFilter:
    def test_rls_query_for_owner(self, db_session, owner_one, outsider, scenario_change_request):
        owner_rows = db_session.query(ChangeRequest).filter(
            change_request_visibility_clause(owner_one)
        ).all()
        assert [cr.change_id for cr in owner_rows] == ["CR-2024-001"]

        outsider_rows = db_session.query(ChangeRequest).filter(
            change_request_visibility_clause(outsider)
        ).all()
        assert outsider_rows == []

    def test_rls_query_unrestricted_for_manager(self, db_session, second_manager, scenario_change_request):
        assert change_request_visibility_clause(second_manager) is None


class TestEditPermission:
    def test_only_owner_can_edit(self, applications, owner_one, owner_two, manager_user, admin_user):
        app_a = applications["A"]
        assert can_edit_validation_record(app_a, owner_one)
        assert not can_edit_validation_record(app_a, owner_two)
        assert not can_edit_validation_record(app_a, manager_user)
        assert not can_edit_validation_record(app_a, admin_user)

    def test_unowned_application_is_not_editable(self, applications, owner_one):
        assert not can_edit_validation_record(applications["C"], owner_one)

    def test_owned_application_ids(self, scenario_change_request, applications, owner_one, manager_user):
        assert owned_application_ids(scenario_change_request, owner_one) == {
            applications["A"].application_id
        }
        assert owned_application_ids(scenario_change_request, manager_user) == set()
