"""Demo: walk an event from creation to check-in using FastAPI TestClient.

Run with:
    python scripts/demo_event_flow.py
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from credhub.main import app
from credhub.services.token_service import create_access_token


def _bearer(user_id: str, roles: list[str]) -> dict[str, str]:
    token = create_access_token(sub=user_id, roles=roles)
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    organizer = _bearer(str(uuid.uuid4()), ["user", "organizer"])
    attendee_id = str(uuid.uuid4())
    attendee = _bearer(attendee_id, ["user"])

    with TestClient(app) as client:
        # ── Step 1: organizer creates the event ─────────────────────────
        r = client.post(
            "/v1/events",
            headers=organizer,
            json={
                "title": "Demo Meetup",
                "event_date": (datetime.now(UTC) + timedelta(days=3)).isoformat(),
                "location": "Room 101",
                "max_attendees": 20,
                "resources_url": "https://example.org/slides",
            },
        )
        event_id = r.json()["id"]
        print(f"1. POST /v1/events              → {r.status_code}  id={event_id}")

        # ── Step 2: attendee registers and receives a scan token ───────
        r = client.post(f"/v1/events/{event_id}/registrations", headers=attendee)
        scan_token = r.json()["qr_code"]
        print(f"2. POST registrations           → {r.status_code}  token={scan_token[:12]}…")

        # ── Step 3: resources are locked before check-in ────────────────
        r = client.get(f"/v1/events/{event_id}/resources", headers=attendee)
        print(f"3. GET  resources (registered)  → {r.status_code}  {r.json()['detail']}")

        # ── Step 4: organizer scans the token ───────────────────────────
        r = client.post(
            f"/v1/events/{event_id}/check-in",
            headers=organizer,
            json={"token": scan_token},
        )
        print(f"4. POST check-in                → {r.status_code}  state={r.json()['state']}")

        # ── Step 5: a second scan is reported, not applied ──────────────
        r = client.post(
            f"/v1/events/{event_id}/check-in",
            headers=organizer,
            json={"token": scan_token},
        )
        print(f"5. POST check-in (again)        → {r.status_code}  {r.json()['detail']}")

        # ── Step 6: resources unlock for the attendee ───────────────────
        r = client.get(f"/v1/events/{event_id}/resources", headers=attendee)
        print(f"6. GET  resources (attended)    → {r.status_code}  {r.json()['resources_url']}")

        # ── Step 7: organizer roster and attendee history ───────────────
        r = client.get(f"/v1/events/{event_id}/attendees", headers=organizer)
        print(f"7. GET  attendees               → {r.status_code}  count={len(r.json())}")
        r = client.get(f"/v1/users/{attendee_id}/attendance", headers=attendee)
        print(f"8. GET  attendance history      → {r.status_code}  {[e['title'] for e in r.json()]}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
