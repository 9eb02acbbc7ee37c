"""Event registration, check-in and attendance endpoint tests."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from tests.conftest import (
    add_test_profile,
    auth,
    create_test_event,
    mint_token,
    new_user_id,
    repos,
    run,
)


def _register(client: TestClient, event_id: str, token: str, **body):
    return client.post(
        f"/v1/events/{event_id}/registrations", json=body or None, headers=auth(token)
    )


def _check_in(client: TestClient, event_id: str, scan_token: str, token: str):
    return client.post(
        f"/v1/events/{event_id}/check-in", json={"token": scan_token}, headers=auth(token)
    )


# ---- events ----


def test_create_event_requires_organizer_role(client: TestClient, token: str) -> None:
    resp = client.post(
        "/v1/events",
        json={"title": "Hack Night", "event_date": datetime.now(UTC).isoformat()},
        headers=auth(token),
    )
    assert resp.status_code == 403


def test_create_and_get_event(
    client: TestClient, organizer_token: str, organizer_id: str, token: str
) -> None:
    event = create_test_event(client, organizer_token, max_attendees=10)
    assert event["organizer_id"] == organizer_id
    assert event["registration_count"] == 0

    _register(client, event["id"], token)
    resp = client.get(f"/v1/events/{event['id']}", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["registration_count"] == 1
    assert resp.json()["is_full"] is False


def test_get_unknown_event_is_404(client: TestClient, token: str) -> None:
    resp = client.get(f"/v1/events/{uuid.uuid4()}", headers=auth(token))
    assert resp.status_code == 404


# ---- registration ----


def test_register_returns_scan_token_and_qr(
    client: TestClient, organizer_token: str, token: str, user_id: str
) -> None:
    event = create_test_event(client, organizer_token)
    resp = _register(client, event["id"], token)
    assert resp.status_code == 201
    body = resp.json()
    assert body["user_id"] == user_id
    assert body["state"] == "registered"
    assert body["is_attended"] is False
    assert len(body["qr_code"]) >= 32
    assert body["qr_image"].startswith("data:image/png;base64,")


def test_register_twice_is_409(client: TestClient, organizer_token: str, token: str) -> None:
    event = create_test_event(client, organizer_token)
    _register(client, event["id"], token)
    resp = _register(client, event["id"], token)
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_registered"
    assert run(repos().registrations.count_for_event(uuid.UUID(event["id"]))) == 1


def test_register_full_event_is_409(client: TestClient, organizer_token: str, token: str) -> None:
    event = create_test_event(client, organizer_token, max_attendees=1)
    assert _register(client, event["id"], token).status_code == 201
    resp = _register(client, event["id"], mint_token())
    assert resp.status_code == 409
    assert resp.json()["code"] == "event_full"


def test_register_past_event_is_409(client: TestClient, organizer_token: str, token: str) -> None:
    past = (datetime.now(UTC) - timedelta(days=1)).isoformat()
    event = create_test_event(client, organizer_token, event_date=past)
    resp = _register(client, event["id"], token)
    assert resp.status_code == 409
    assert resp.json()["code"] == "event_past"


def test_attendee_cannot_register_someone_else(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    resp = _register(client, event["id"], token, user_id=new_user_id())
    assert resp.status_code == 403


def test_attendee_cannot_self_register_as_collaborator(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    resp = _register(client, event["id"], token, is_collaborator=True)
    assert resp.status_code == 403


def test_organizer_registers_collaborator(
    client: TestClient, organizer_token: str
) -> None:
    event = create_test_event(client, organizer_token)
    helper = new_user_id()
    resp = _register(client, event["id"], organizer_token, user_id=helper, is_collaborator=True)
    assert resp.status_code == 201
    assert resp.json()["user_id"] == helper
    assert resp.json()["is_collaborator"] is True


def test_my_registration(client: TestClient, organizer_token: str, token: str) -> None:
    event = create_test_event(client, organizer_token)
    registered = _register(client, event["id"], token).json()

    resp = client.get(f"/v1/events/{event['id']}/registrations/me", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["id"] == registered["id"]
    assert resp.json()["qr_code"] == registered["qr_code"]


def test_my_registration_when_not_registered_is_404(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    resp = client.get(f"/v1/events/{event['id']}/registrations/me", headers=auth(token))
    assert resp.status_code == 404


# ---- check-in ----


def test_organizer_checks_in_by_scan(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()

    resp = _check_in(client, event["id"], registration["qr_code"], organizer_token)
    assert resp.status_code == 200
    body = resp.json()
    assert body["state"] == "attended"
    assert body["is_attended"] is True
    assert body["attended_at"] is not None
    assert "qr_code" not in body or body["qr_code"] is None


def test_second_scan_reports_original_check_in(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()

    first = _check_in(client, event["id"], registration["qr_code"], organizer_token).json()
    second = _check_in(client, event["id"], registration["qr_code"], organizer_token)

    assert second.status_code == 409
    body = second.json()
    assert body["code"] == "already_checked_in"
    assert body["informational"] is True
    assert body["registration_id"] == registration["id"]
    assert datetime.fromisoformat(body["attended_at"]) == datetime.fromisoformat(
        first["attended_at"]
    )


def test_scan_token_is_scoped_to_its_event(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event_a = create_test_event(client, organizer_token)
    event_b = create_test_event(client, organizer_token)
    registration = _register(client, event_a["id"], token).json()

    resp = _check_in(client, event_b["id"], registration["qr_code"], organizer_token)
    assert resp.status_code == 404
    assert resp.json()["code"] == "invalid_token"


def test_unknown_scan_token_is_404(client: TestClient, organizer_token: str) -> None:
    event = create_test_event(client, organizer_token)
    resp = _check_in(client, event["id"], "not-a-real-token", organizer_token)
    assert resp.status_code == 404
    assert resp.json()["code"] == "invalid_token"


def test_attendee_cannot_check_in(client: TestClient, organizer_token: str, token: str) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()
    resp = _check_in(client, event["id"], registration["qr_code"], token)
    assert resp.status_code == 403


def test_collaborator_can_check_in_others(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()

    helper = new_user_id()
    _register(client, event["id"], organizer_token, user_id=helper, is_collaborator=True)
    resp = _check_in(client, event["id"], registration["qr_code"], mint_token(helper))
    assert resp.status_code == 200
    assert resp.json()["is_attended"] is True


# ---- manual attendance ----


def test_organizer_toggles_attendance(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()
    url = f"/v1/events/{event['id']}/registrations/{registration['id']}"

    on = client.patch(url, json={"attended": True}, headers=auth(organizer_token))
    assert on.status_code == 200
    assert on.json()["is_attended"] is True
    assert on.json()["attended_at"] is not None

    off = client.patch(url, json={"attended": False}, headers=auth(organizer_token))
    assert off.json()["is_attended"] is False
    assert off.json()["attended_at"] is None


def test_attendee_cannot_toggle_attendance(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()
    resp = client.patch(
        f"/v1/events/{event['id']}/registrations/{registration['id']}",
        json={"attended": True},
        headers=auth(token),
    )
    assert resp.status_code == 403


def test_toggle_registration_of_other_event_is_404(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event_a = create_test_event(client, organizer_token)
    event_b = create_test_event(client, organizer_token)
    registration = _register(client, event_a["id"], token).json()
    resp = client.patch(
        f"/v1/events/{event_b['id']}/registrations/{registration['id']}",
        json={"attended": True},
        headers=auth(organizer_token),
    )
    assert resp.status_code == 404


def test_admin_manages_any_event(
    client: TestClient, organizer_token: str, admin_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()
    resp = _check_in(client, event["id"], registration["qr_code"], admin_token)
    assert resp.status_code == 200


# ---- roster and resources ----


def test_attendee_roster_includes_profiles(
    client: TestClient, organizer_token: str, token: str, user_id: str
) -> None:
    add_test_profile(user_id, "mae@example.org", full_name="Mae Jemison")
    event = create_test_event(client, organizer_token)
    _register(client, event["id"], token)
    _register(client, event["id"], mint_token())

    resp = client.get(f"/v1/events/{event['id']}/attendees", headers=auth(organizer_token))
    assert resp.status_code == 200
    roster = {a["user_id"]: a for a in resp.json()}
    assert len(roster) == 2
    assert roster[user_id]["full_name"] == "Mae Jemison"
    assert roster[user_id]["email"] == "mae@example.org"


def test_attendee_cannot_read_roster(client: TestClient, organizer_token: str, token: str) -> None:
    event = create_test_event(client, organizer_token)
    resp = client.get(f"/v1/events/{event['id']}/attendees", headers=auth(token))
    assert resp.status_code == 403


def test_resources_unlocked_by_check_in(
    client: TestClient, organizer_token: str, token: str
) -> None:
    event = create_test_event(client, organizer_token)
    registration = _register(client, event["id"], token).json()
    url = f"/v1/events/{event['id']}/resources"

    assert client.get(url, headers=auth(token)).status_code == 403

    _check_in(client, event["id"], registration["qr_code"], organizer_token)
    resp = client.get(url, headers=auth(token))
    assert resp.status_code == 200
    assert resp.json() == {"resources_url": "https://example.org/slides"}


def test_organizer_always_sees_resources(client: TestClient, organizer_token: str) -> None:
    event = create_test_event(client, organizer_token)
    resp = client.get(f"/v1/events/{event['id']}/resources", headers=auth(organizer_token))
    assert resp.status_code == 200


# ---- attendance history ----


def test_attendance_history(
    client: TestClient, organizer_token: str, token: str, user_id: str, admin_token: str
) -> None:
    attended = create_test_event(client, organizer_token)
    skipped = create_test_event(client, organizer_token)
    registration = _register(client, attended["id"], token).json()
    _register(client, skipped["id"], token)
    _check_in(client, attended["id"], registration["qr_code"], organizer_token)

    resp = client.get(f"/v1/users/{user_id}/attendance", headers=auth(token))
    assert resp.status_code == 200
    history = resp.json()
    assert [h["event_id"] for h in history] == [attended["id"]]
    assert history[0]["attended_at"] is not None

    as_admin = client.get(f"/v1/users/{user_id}/attendance", headers=auth(admin_token))
    assert as_admin.status_code == 200


def test_attendance_history_of_someone_else_is_403(client: TestClient, token: str) -> None:
    resp = client.get(f"/v1/users/{new_user_id()}/attendance", headers=auth(token))
    assert resp.status_code == 403
