"""Tests for the application owner queue."""


def test_owner_queue(client, owner_two_headers, scenario_change_request):
    response = client.get("/my-applications", headers=owner_two_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["application"]["name"] == "Billing Engine"
    assert data[0]["change_request"]["change_id"] == "CR-2024-001"
    assert data[0]["change_request"]["manager"]["email"] == "manager@example.com"
    assert data[0]["effective_status"] == "pending"


def test_queue_is_empty_for_outsider(client, outsider_headers, scenario_change_request):
    response = client.get("/my-applications", headers=outsider_headers)
    assert response.json() == []


def test_inactive_requests_hidden_by_default(client, manager_headers, owner_one_headers,
                                             scenario_change_request):
    client.patch(
        f"/change-requests/{scenario_change_request.change_request_id}/status",
        json={"status": "cancelled"},
        headers=manager_headers,
    )
    assert client.get("/my-applications", headers=owner_one_headers).json() == []

    response = client.get(
        "/my-applications", params={"include_inactive": True}, headers=owner_one_headers
    )
    data = response.json()
    assert len(data) == 1
    assert data[0]["change_request"]["status"] == "cancelled"
