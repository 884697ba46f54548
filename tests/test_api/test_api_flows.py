"""
End-to-end HTTP tests: authentication boundary, error mapping and the main
workflow routes, against the seeded identity graph.
"""
from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from uniadmin.db.session import get_db


def _doc(client, headers, **overrides):
    body = {"title": "MOU with Kyoto University", "partner_name": "Kyoto University", "partner_country": "JP"}
    body.update(overrides)
    response = client.post("/documents", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ---- Authentication boundary ---------------------------------------------------------


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


@pytest.mark.parametrize("header", [None, "Token abc", "Bearer", "Bearer not-a-jwt"])
def test_bad_or_missing_credentials_are_401(client, header):
    headers = {"Authorization": header} if header is not None else {}
    response = client.get("/documents", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "unauthenticated"


def test_wrong_password_is_401(client):
    response = client.post("/auth/login", json={"email": "staff.eng@uni.example", "password": "nope"})
    assert response.status_code == 401


def test_me_reports_resolved_actions(client, headers):
    me = client.get("/auth/me", headers=headers["staff"]).json()

    assert "document.create" in me["action_codes"]
    assert "document.approve" not in me["action_codes"]
    assert me["unit_id"] is not None


def test_refresh_then_logout_revokes(client, login):
    _, tokens = login("staff.eng@uni.example")

    renewed = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert renewed.status_code == 200
    replay = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 401

    new_tokens = renewed.json()
    auth = {"Authorization": f"Bearer {new_tokens['access_token']}"}
    assert client.post("/auth/logout", json={"refresh_token": new_tokens["refresh_token"]}, headers=auth).json() == {
        "revoked": 1
    }
    assert client.post("/auth/refresh", json={"refresh_token": new_tokens["refresh_token"]}).status_code == 401


def test_logout_all(client, login):
    auth, first = login("officer@uni.example")
    login("officer@uni.example")

    assert client.post("/auth/logout-all", headers=auth).json() == {"revoked": 2}
    assert client.post("/auth/refresh", json={"refresh_token": first["refresh_token"]}).status_code == 401


# ---- Documents -----------------------------------------------------------------------


def test_document_approval_flow_and_error_mapping(client, headers):
    doc = _doc(client, headers["staff"])
    assert doc["status"] == "DRAFT"

    submitted = client.post(f"/documents/{doc['id']}/submit", headers=headers["staff"])
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "SUBMITTED"

    denied = client.post(f"/documents/{doc['id']}/approve", headers=headers["staff"])
    assert denied.status_code == 403
    assert denied.json() == {"detail": "Missing required action", "code": "forbidden", "missing_action": "document.approve"}

    again = client.post(f"/documents/{doc['id']}/submit", headers=headers["staff"])
    assert again.status_code == 400
    assert again.json()["code"] == "invalid_transition"

    approved = client.post(f"/documents/{doc['id']}/approve", headers=headers["officer"])
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"


def test_denied_action_hidden_when_not_exposed(client, headers, api_settings):
    api_settings.expose_denied_action = False
    doc = _doc(client, headers["staff"])
    client.post(f"/documents/{doc['id']}/submit", headers=headers["staff"])

    denied = client.post(f"/documents/{doc['id']}/approve", headers=headers["staff"])

    assert denied.status_code == 403
    assert "missing_action" not in denied.json()


def test_reject_with_reason_body(client, headers):
    doc = _doc(client, headers["staff"])
    client.post(f"/documents/{doc['id']}/submit", headers=headers["staff"])

    rejected = client.post(f"/documents/{doc['id']}/reject", json={"reason": "Wrong partner"}, headers=headers["officer"])

    assert rejected.json()["status"] == "DRAFT"
    assert rejected.json()["rejection_reason"] == "Wrong partner"


def test_patch_edits_draft_with_typed_dates(client, headers):
    doc = _doc(client, headers["staff"])

    response = client.patch(
        f"/documents/{doc['id']}",
        json={"effective_date": "2027-01-01", "expiration_date": "2029-01-01"},
        headers=headers["staff"],
    )

    assert response.status_code == 200
    assert response.json()["expiration_date"] == "2029-01-01"
    inverted = client.patch(f"/documents/{doc['id']}", json={"expiration_date": "2026-01-01"}, headers=headers["staff"])
    assert inverted.status_code == 400
    assert inverted.json()["code"] == "validation_failed"


def test_patch_null_for_required_field_is_rejected(client, headers):
    doc = _doc(client, headers["staff"])

    response = client.patch(f"/documents/{doc['id']}", json={"title": None}, headers=headers["staff"])

    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"
    assert client.get(f"/documents/{doc['id']}", headers=headers["staff"]).json()["title"] == doc["title"]


def test_update_operation_must_use_patch(client, headers):
    doc = _doc(client, headers["staff"])
    response = client.post(f"/documents/{doc['id']}/update", headers=headers["staff"])
    assert response.status_code == 400
    assert response.json()["code"] == "bad_request"


def test_unknown_operation_is_422(client, headers):
    doc = _doc(client, headers["staff"])
    assert client.post(f"/documents/{doc['id']}/teleport", headers=headers["staff"]).status_code == 422


def test_document_visibility_by_scope(client, headers):
    doc = _doc(client, headers["staff"])

    assert client.get(f"/documents/{doc['id']}", headers=headers["sci"]).status_code == 404
    assert client.get(f"/documents/{doc['id']}", headers=headers["head"]).status_code == 200
    assert [d["id"] for d in client.get("/documents", headers=headers["officer"]).json()] == [doc["id"]]
    assert client.get("/documents", headers=headers["sci"]).json() == []


def test_delete_draft(client, headers):
    doc = _doc(client, headers["staff"])

    assert client.delete(f"/documents/{doc['id']}", headers=headers["staff"]).status_code == 403
    assert client.delete(f"/documents/{doc['id']}", headers=headers["officer"]).status_code == 204
    assert client.get(f"/documents/{doc['id']}", headers=headers["officer"]).status_code == 404


def test_document_statistics(client, headers):
    _doc(client, headers["staff"])
    _doc(client, headers["sci"])

    stats = client.get("/documents/statistics", headers=headers["officer"]).json()
    assert stats == {"total": 2, "by_status": {"DRAFT": 2}}


# ---- Guests, visas, translations -----------------------------------------------------


def test_guest_registration_and_visit(client, headers):
    today = date.today()
    body = {
        "full_name": "Dr. Aiko Tanaka",
        "nationality": "JP",
        "purpose": "Seminar",
        "arrival_date": (today + timedelta(days=5)).isoformat(),
        "departure_date": (today + timedelta(days=9)).isoformat(),
        "members": [{"full_name": "Ken Tanaka"}],
    }
    created = client.post("/guests", json=body, headers=headers["staff"])
    assert created.status_code == 201, created.text
    guest = created.json()
    assert [m["full_name"] for m in guest["members"]] == ["Ken Tanaka"]

    for operation, status in (("approve", "APPROVED"), ("checkin", "ARRIVED"), ("checkout", "DEPARTED")):
        response = client.post(f"/guests/{guest['id']}/{operation}", headers=headers["officer"])
        assert response.json()["status"] == status

    late_edit = client.patch(f"/guests/{guest['id']}", json={"purpose": "Extended"}, headers=headers["officer"])
    assert late_edit.status_code == 400


def test_visa_extension_approval_moves_expiration(client, headers):
    today = date.today()
    visa = client.post(
        "/visas",
        json={
            "holder_name": "Jean Dupont",
            "holder_country": "FR",
            "passport_number": "18FR12345",
            "visa_number": "VN-API-1",
            "issue_date": (today - timedelta(days=10)).isoformat(),
            "expiration_date": (today + timedelta(days=20)).isoformat(),
        },
        headers=headers["staff"],
    ).json()
    new_date = (today + timedelta(days=120)).isoformat()

    direct = client.patch(f"/visas/{visa['id']}", json={"expiration_date": new_date}, headers=headers["staff"])
    assert direct.status_code == 422

    ext = client.post(f"/visas/{visa['id']}/extensions", json={"new_expiration_date": new_date}, headers=headers["staff"])
    assert ext.status_code == 201, ext.text
    duplicate = client.post(f"/visas/{visa['id']}/extensions", json={"new_expiration_date": new_date}, headers=headers["staff"])
    assert duplicate.status_code == 409

    approved = client.post(f"/visas/extensions/{ext.json()['id']}/approve", headers=headers["officer"])
    assert approved.json()["status"] == "APPROVED"
    assert client.get(f"/visas/{visa['id']}", headers=headers["staff"]).json()["expiration_date"] == new_date

    second = client.post(f"/visas/extensions/{ext.json()['id']}/approve", headers=headers["officer"])
    assert second.status_code == 400


def test_translation_completion(client, headers):
    created = client.post(
        "/translations",
        json={
            "title": "Transcript",
            "source_language": "vi",
            "target_language": "en",
            "original_file_url": "https://files.uni.example/t.pdf",
        },
        headers=headers["sci"],
    ).json()

    client.post(f"/translations/{created['id']}/approve", headers=headers["officer"])
    done = client.post(
        f"/translations/{created['id']}/complete",
        json={"translated_file_url": "https://files.uni.example/t-en.pdf"},
        headers=headers["officer"],
    )

    assert done.json()["status"] == "COMPLETED"


# ---- Identity graph administration ---------------------------------------------------


def test_rbac_routes_are_gated(client, headers):
    assert client.get("/rbac/roles", headers=headers["staff"]).status_code == 403
    assert client.get("/rbac/roles", headers=headers["officer"]).status_code == 200
    created = client.post("/rbac/roles", json={"code": "AUDITOR", "name": "Auditor"}, headers=headers["officer"])
    assert created.status_code == 403
    assert created.json()["missing_action"] == "rbac.manage"
    assert client.post("/rbac/roles", json={"code": "AUDITOR", "name": "Auditor"}, headers=headers["admin"]).status_code == 201


def test_deactivated_permission_disappears_on_refresh(client, headers, login):
    _, officer_tokens = login("officer@uni.example")
    permissions = client.get("/rbac/permissions", headers=headers["admin"]).json()
    visa_management = next(p for p in permissions if p["code"] == "visa_management")

    response = client.put(
        f"/rbac/permissions/{visa_management['id']}/active", json={"is_active": False}, headers=headers["admin"]
    )
    assert response.json()["is_active"] is False

    renewed = client.post("/auth/refresh", json={"refresh_token": officer_tokens["refresh_token"]}).json()
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {renewed['access_token']}"}).json()
    assert "visa.approve" not in me["action_codes"]
    assert "document.approve" in me["action_codes"]


def test_user_access_check_route(client, headers):
    me = client.get("/auth/me", headers=headers["officer"]).json()

    check = client.get(f"/rbac/users/{me['id']}/check/visa.approve", headers=headers["admin"]).json()

    assert check == {"user_id": me["id"], "action_code": "visa.approve", "allowed": True}


def test_actions_by_category(client, headers):
    grouped = client.get("/rbac/actions/by-category", headers=headers["officer"]).json()
    assert {"DOCUMENT", "GUEST", "VISA", "TRANSLATION", "RBAC"} <= set(grouped)


# ---- Storage failures ----------------------------------------------------------------


def test_storage_failure_maps_to_503_with_retry_after(app, client):
    class DownSession:
        def execute(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        def close(self):
            pass

    app.dependency_overrides[get_db] = lambda: DownSession()

    response = client.get("/health")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["code"] == "storage_unavailable"


# ---- Maintenance sweeps --------------------------------------------------------------


def test_visa_reminder_sweep(app, client, headers):
    today = date.today()
    client.post(
        "/visas",
        json={
            "holder_name": "Jean Dupont",
            "holder_country": "FR",
            "passport_number": "18FR12345",
            "visa_number": "VN-API-2",
            "issue_date": (today - timedelta(days=100)).isoformat(),
            "expiration_date": (today + timedelta(days=12)).isoformat(),
        },
        headers=headers["staff"],
    )

    assert client.post("/maintenance/visa-reminders", headers=headers["staff"]).status_code == 403
    assert client.post("/maintenance/visa-reminders", headers=headers["officer"]).json() == {"sent": 1}
    assert client.post("/maintenance/visa-reminders", headers=headers["officer"]).json() == {"sent": 0}
    assert any("VN-API-2" in n.subject for n in app.state.notifier.sent)


def test_expire_overdue_sweep_with_nothing_due(client, headers):
    response = client.post("/maintenance/expire-overdue", headers=headers["officer"])
    assert response.json() == {"expired": {}, "skipped": {}}
