from types import SimpleNamespace

from firebase_admin import messaging

from tagsphere.config import settings
from tagsphere.models.models import Notification, PushToken
from tagsphere.services import push


def _enable_push(monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)
    monkeypatch.setattr(settings, "enable_notifications", True)
    monkeypatch.setattr(push, "get_firebase_app", lambda: None)


def test_push_disabled_by_default(db, make_user, monkeypatch):
    user = make_user()
    push.register_token(db, user, "tok-1")

    def fail(*args, **kwargs):
        raise AssertionError("FCM must not be called")

    monkeypatch.setattr(messaging, "send_each_for_multicast", fail)
    assert push.send_push(db, user, "Title", "Body") == 0


def test_push_needs_both_flags(db, make_user, monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)
    assert push.push_enabled() is False
    monkeypatch.setattr(settings, "enable_notifications", True)
    assert push.push_enabled() is True


def test_register_token_dedupes_and_caps(db, make_user):
    user = make_user()
    for i in range(4):
        push.register_token(db, user, f"tok-{i}", max_tokens=3)
    push.register_token(db, user, "tok-3", max_tokens=3)
    tokens = [t.token for t in db.query(PushToken).filter(PushToken.user_id == user.id).all()]
    assert len(tokens) == 3
    assert "tok-0" not in tokens
    assert tokens.count("tok-3") == 1


def test_remove_token(db, make_user):
    user = make_user()
    push.register_token(db, user, "tok-1")
    assert push.remove_token(db, user, "tok-1") == 1
    assert push.remove_token(db, user, "tok-1") == 0


def test_send_push_prunes_dead_tokens(db, make_user, monkeypatch):
    _enable_push(monkeypatch)
    user = make_user()
    push.register_token(db, user, "alive")
    push.register_token(db, user, "dead")
    sent = {}

    def send_each_for_multicast(message, app=None):
        sent["tokens"] = list(message.tokens)
        sent["data"] = message.data
        responses = []
        for token in message.tokens:
            if token == "dead":
                responses.append(SimpleNamespace(success=False, exception=messaging.UnregisteredError("gone")))
            else:
                responses.append(SimpleNamespace(success=True, exception=None))
        return SimpleNamespace(responses=responses, success_count=1, failure_count=1)

    monkeypatch.setattr(messaging, "send_each_for_multicast", send_each_for_multicast)
    assert push.send_push(db, user, "Vehicle Alert", "Lights on", {"type": "alert", "vehicleNumber": "MH12AB1234"}) == 1
    assert sorted(sent["tokens"]) == ["alive", "dead"]
    assert sent["data"] == {"type": "alert", "vehicleNumber": "MH12AB1234"}
    remaining = [t.token for t in db.query(PushToken).all()]
    assert remaining == ["alive"]


def test_alert_pushes_to_owner(client, db, make_user, make_vehicle, monkeypatch):
    _enable_push(monkeypatch)
    owner = make_user()
    make_vehicle(owner)
    push.register_token(db, owner, "owner-device")
    calls = []

    def send_each_for_multicast(message, app=None):
        calls.append(message)
        return SimpleNamespace(responses=[SimpleNamespace(success=True, exception=None)], success_count=1, failure_count=0)

    monkeypatch.setattr(messaging, "send_each_for_multicast", send_each_for_multicast)
    res = client.post("/api/scan/ABCDEFG/alert", json={"alert_type": "emergency"})
    assert res.status_code == 200
    assert len(calls) == 1
    assert calls[0].notification.title == "Vehicle Alert"
    assert calls[0].data["type"] == "alert"
    assert db.query(Notification).count() == 1
