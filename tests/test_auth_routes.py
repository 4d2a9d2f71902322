from firebase_admin import auth as firebase_auth

from tagsphere.auth.security import create_refresh_token
from tagsphere.config import settings
from tagsphere.models.models import User
from tagsphere.services import firebase as firebase_service
from tagsphere.services.encryption import hash_value


PHONE = "9876543210"


def _send(client, phone=PHONE):
    res = client.post("/api/auth/send-otp", json={"phone": phone})
    assert res.status_code == 200
    return res.json()["dev_otp"]


def test_config_reports_auth_mode(client, monkeypatch):
    assert client.get("/api/auth/config").json() == {"auth_mode": "otp"}
    monkeypatch.setattr(settings, "enable_firebase", True)
    assert client.get("/api/auth/config").json() == {"auth_mode": "firebase"}


def test_send_otp_returns_dev_code(client):
    res = client.post("/api/auth/send-otp", json={"phone": PHONE})
    body = res.json()
    assert body["success"] is True
    assert len(body["dev_otp"]) == 6


def test_send_otp_hides_code_in_production(client, monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    res = client.post("/api/auth/send-otp", json={"phone": PHONE})
    assert res.status_code == 200
    assert "dev_otp" not in res.json()


def test_send_otp_rejects_bad_phone(client):
    res = client.post("/api/auth/send-otp", json={"phone": "12345"})
    assert res.status_code == 400
    body = res.json()
    assert body["detail"] == "Validation failed"
    assert body["errors"][0]["field"] == "phone"


def test_send_otp_disabled_in_firebase_mode(client, monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)
    assert client.post("/api/auth/send-otp", json={"phone": PHONE}).status_code == 503


def test_new_user_needs_name_then_registers(client, db):
    code = _send(client)
    res = client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": code})
    assert res.status_code == 200
    body = res.json()
    assert body["is_new_user"] is True
    assert "token" not in body
    assert db.query(User).count() == 0

    res = client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": code, "name": "Ravi Kumar"})
    body = res.json()
    assert res.status_code == 200
    assert body["is_new_user"] is True
    assert body["token"] and body["refresh_token"]
    assert body["user"]["phone"] == PHONE
    assert body["user"]["is_verified"] is True

    user = db.query(User).one()
    assert user.phone_hash == hash_value(PHONE)
    assert user.phone_encrypted != PHONE


def test_existing_user_logs_in(client, db, make_user):
    user = make_user()
    code = _send(client)
    res = client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": code})
    body = res.json()
    assert body["is_new_user"] is False
    assert body["user"]["id"] == str(user.id)
    db.expire_all()
    assert db.get(User, user.id).last_login_at is not None


def test_wrong_otp(client):
    code = _send(client)
    wrong = "000000" if code != "000000" else "111111"
    res = client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": wrong})
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid OTP"


def test_otp_must_be_six_digits(client):
    res = client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": "12ab"})
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "otp"


def test_firebase_verify_disabled(client):
    res = client.post("/api/auth/firebase-verify", json={"id_token": "abc"})
    assert res.status_code == 503


def test_firebase_verify_links_existing_user(client, db, make_user, monkeypatch):
    user = make_user()
    monkeypatch.setattr(settings, "enable_firebase", True)
    monkeypatch.setattr(firebase_service, "verify_id_token", lambda token: {"uid": "fb-uid-1", "phone_number": "+919876543210"})
    res = client.post("/api/auth/firebase-verify", json={"id_token": "abc"})
    assert res.status_code == 200
    assert res.json()["user"]["id"] == str(user.id)
    db.expire_all()
    assert db.get(User, user.id).firebase_uid == "fb-uid-1"


def test_firebase_verify_new_user(client, db, monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)
    monkeypatch.setattr(firebase_service, "verify_id_token", lambda token: {"uid": "fb-uid-2", "phone_number": "+919123456789"})
    res = client.post("/api/auth/firebase-verify", json={"id_token": "abc"})
    assert res.json()["is_new_user"] is True
    assert "token" not in res.json()

    res = client.post("/api/auth/firebase-verify", json={"id_token": "abc", "name": "Asha Rao"})
    assert res.status_code == 200
    assert res.json()["user"]["phone"] == "9123456789"
    assert db.query(User).one().firebase_uid == "fb-uid-2"


def test_firebase_verify_requires_phone_claim(client, monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)
    monkeypatch.setattr(firebase_service, "verify_id_token", lambda token: {"uid": "fb-uid-3"})
    assert client.post("/api/auth/firebase-verify", json={"id_token": "abc"}).status_code == 400


def test_firebase_verify_expired_token(client, monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)

    def expired(token):
        raise firebase_auth.ExpiredIdTokenError("Token expired", None)

    monkeypatch.setattr(firebase_service, "verify_id_token", expired)
    res = client.post("/api/auth/firebase-verify", json={"id_token": "abc"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Firebase token expired. Please try again."


def test_firebase_verify_invalid_token(client, monkeypatch):
    monkeypatch.setattr(settings, "enable_firebase", True)

    def invalid(token):
        raise firebase_auth.InvalidIdTokenError("bad token")

    monkeypatch.setattr(firebase_service, "verify_id_token", invalid)
    res = client.post("/api/auth/firebase-verify", json={"id_token": "abc"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid Firebase token."


def test_refresh_issues_new_pair(client, make_user):
    user = make_user()
    res = client.post("/api/auth/refresh", json={"refresh_token": create_refresh_token(str(user.id))})
    assert res.status_code == 200
    assert res.json()["token"] and res.json()["refresh_token"]


def test_refresh_rejects_access_token(client, make_user, headers_for):
    user = make_user()
    access = headers_for(user)["Authorization"].split(" ", 1)[1]
    assert client.post("/api/auth/refresh", json={"refresh_token": access}).status_code == 401


def test_refresh_token_is_not_a_session(client, make_user):
    user = make_user()
    headers = {"Authorization": f"Bearer {create_refresh_token(str(user.id))}"}
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_me_requires_auth(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_me(client, make_user, headers_for):
    user = make_user()
    body = client.get("/api/auth/me", headers=headers_for(user)).json()
    assert body["phone"] == PHONE
    assert body["role"] == "user"
    assert body["has_emergency_contact"] is False


def test_update_profile(client, make_user, headers_for):
    user = make_user()
    res = client.put("/api/auth/profile", json={"name": "Ravi K"}, headers=headers_for(user))
    assert res.status_code == 200
    assert res.json()["user"]["name"] == "Ravi K"
    bad = client.put("/api/auth/profile", json={"name": "R2D2"}, headers=headers_for(user))
    assert bad.status_code == 400


def test_emergency_contact_lifecycle(client, make_user, headers_for):
    user = make_user()
    headers = headers_for(user)
    res = client.put("/api/auth/emergency-contact", json={"name": "Sita", "phone": "9123456789"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["emergency_contact"] == {"name": "Sita", "masked_phone": "91****89"}
    me = client.get("/api/auth/me", headers=headers).json()
    assert me["has_emergency_contact"] is True
    assert me["emergency_contact_name"] == "Sita"

    assert client.delete("/api/auth/emergency-contact", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).json()["has_emergency_contact"] is False


def test_fcm_token_register_and_remove(client, make_user, headers_for):
    user = make_user()
    headers = headers_for(user)
    res = client.post("/api/auth/fcm-token", json={"token": "tok-1", "platform": "android"}, headers=headers)
    assert res.json()["token_count"] == 1
    res = client.post("/api/auth/fcm-token", json={"token": "tok-1"}, headers=headers)
    assert res.json()["token_count"] == 1

    res = client.request("DELETE", "/api/auth/fcm-token", json={"token": "tok-1"}, headers=headers)
    assert res.json() == {"success": True, "removed": 1}


def test_fcm_token_platform_validated(client, make_user, headers_for):
    user = make_user()
    res = client.post("/api/auth/fcm-token", json={"token": "tok-1", "platform": "windows"}, headers=headers_for(user))
    assert res.status_code == 400


def test_send_otp_reports_new_user(client, make_user):
    assert client.post("/api/auth/send-otp", json={"phone": PHONE}).json()["is_new_user"] is True
    make_user()
    assert client.post("/api/auth/send-otp", json={"phone": PHONE}).json()["is_new_user"] is False


def test_code_is_consumed_once_the_account_exists(client):
    code = _send(client)
    client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": code})
    assert client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": code, "name": "Ravi Kumar"}).status_code == 200
    res = client.post("/api/auth/verify-otp", json={"phone": PHONE, "otp": code})
    assert res.status_code == 400
