from tagsphere.services.notifications import create_notification


def test_inbox_lifecycle(client, db, make_user, headers_for):
    user = make_user()
    headers = headers_for(user)
    first = create_notification(db, user.id, "alert", "Vehicle Alert", "Lights on", vehicle_number="MH12AB1234")
    create_notification(db, user.id, "scan", "QR Code Scanned", "Someone scanned your vehicle")

    listed = client.get("/api/notifications", headers=headers).json()
    assert len(listed) == 2
    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"count": 2}

    assert client.post(f"/api/notifications/{first.id}/read", headers=headers).status_code == 200
    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"count": 1}
    unread = client.get("/api/notifications", params={"unread_only": True}, headers=headers).json()
    assert [n["type"] for n in unread] == ["scan"]

    res = client.post("/api/notifications/read-all", headers=headers)
    assert res.json()["updated"] == 1
    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"count": 0}


def test_inbox_is_private(client, db, make_user, headers_for):
    owner = make_user()
    stranger = make_user(phone="9123456789", name="Asha Rao")
    note = create_notification(db, owner.id, "alert", "Vehicle Alert", "Lights on")
    assert client.get("/api/notifications", headers=headers_for(stranger)).json() == []
    assert client.post(f"/api/notifications/{note.id}/read", headers=headers_for(stranger)).status_code == 404


def test_inbox_requires_auth(client):
    assert client.get("/api/notifications").status_code == 401
