from __future__ import annotations

from fastapi.testclient import TestClient

from referral_engine.main import create_app
from tests.referral_fixtures import build_harness, make_referral


def _client(harness) -> TestClient:
    return TestClient(create_app(engine=harness.engine))


def test_list_dismiss_and_mark_all_read() -> None:
    harness = build_harness(referrals=[make_referral("ref-1")])

    with _client(harness) as client:
        client.post("/referrals/ref-1/status", json={"status": "contacted"})
        client.post("/referrals/ref-1/status", json={"status": "quoted"})

        listing = client.get("/notifications", params={"user_id": "rep-1", "limit": 5})
        items = listing.json()["items"]
        dismissed = client.delete(f"/notifications/{items[0]['id']}")
        dismissed_again = client.delete(f"/notifications/{items[0]['id']}")
        marked = client.post("/notifications/mark-all-read", json={"user_id": "rep-1"})
        after = client.get("/notifications", params={"user_id": "rep-1"})

    assert listing.status_code == 200
    assert listing.json()["unread_count"] == 2
    assert len(items) == 2
    assert items[0]["recipients"][0]["id"] == "rep-1"
    assert dismissed.status_code == 204
    assert dismissed_again.status_code == 404
    assert dismissed_again.json()["detail"] == {"code": "E_NOTIFICATION_NOT_FOUND"}
    assert marked.json() == {"user_id": "rep-1", "updated": 1}
    assert after.json()["unread_count"] == 0
    assert len(after.json()["items"]) == 1
    assert after.json()["items"][0]["read_at"] is not None


def test_list_notifications_validates_limit() -> None:
    harness = build_harness()

    with _client(harness) as client:
        response = client.get("/notifications", params={"user_id": "rep-1", "limit": 0})

    assert response.status_code == 422
