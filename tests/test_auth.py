import inspect
import re
from datetime import timedelta

import jwt

from database import utcnow
from security import get_current_user


def test_signup_returns_token_and_generated_user_id(signup, db):
    resp = signup()

    assert resp.status_code == 200
    body = resp.json()
    assert body["accessToken"]
    assert body["user"]["email"] == "a@x.com"
    assert len(body["user"]["userId"]) == 12
    assert "password" not in body["user"]
    stored = db["user"].find_one({"email": "a@x.com"})
    assert stored["password"] != "pw123456"
    assert stored["cart"] == [] and stored["wishlist"] == []


def test_refresh_token_is_cookie_only(signup):
    resp = signup()

    assert "refreshToken" not in resp.json()
    cookie = resp.headers["set-cookie"]
    assert "refreshToken=" in cookie
    assert "HttpOnly" in cookie
    assert "SameSite=lax" in cookie


def test_duplicate_email_is_rejected_without_second_user(signup, db):
    assert signup().status_code == 200

    resp = signup(name="B")

    assert resp.status_code == 400
    assert resp.json() == {"error": "Email already exists"}
    assert db["user"].count_documents({"email": "a@x.com"}) == 1


def test_signup_missing_field_is_a_validation_error(client):
    resp = client.post("/api/signup", json={"name": "A", "email": "a@x.com", "hcaptchaToken": "tok"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Validation failed"
    assert {e["field"] for e in body["errors"]} >= {"phone", "password"}


def test_signup_sends_welcome_mail(signup, mailer):
    signup()

    assert mailer.sent[0]["to"] == ["a@x.com"]
    assert mailer.sent[0]["subject"] == "Welcome to Sumansi!"


def test_signup_succeeds_when_mail_fails(signup, mailer, db):
    mailer.fail = True

    resp = signup()

    assert resp.status_code == 200
    assert db["notification_failure"].count_documents({"subject": "Welcome to Sumansi!"}) == 1


def test_login_error_is_identical_for_unknown_email_and_wrong_password(client, signup):
    signup()

    wrong_password = client.post("/api/login", json={"email": "a@x.com", "password": "nope", "token": "tok"})
    unknown_email = client.post("/api/login", json={"email": "b@x.com", "password": "pw123456", "token": "tok"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid credentials"}


def test_login_issues_token_and_notifies(client, signup, mailer):
    signup()

    resp = client.post("/api/login", json={"email": "a@x.com", "password": "pw123456", "captchaToken": "tok"})

    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "a@x.com"
    assert mailer.sent[-1]["subject"] == "Login Notification - Sumansi"


def test_refresh_issues_new_access_token(client, signup, settings):
    user_id = signup().json()["user"]["userId"]

    resp = client.post("/api/refresh")

    assert resp.status_code == 200
    payload = jwt.decode(resp.json()["accessToken"], settings.jwt_secret, algorithms=["HS256"])
    assert payload["userId"] == user_id
    assert set(resp.json()) == {"accessToken"}


def test_refresh_without_cookie(client):
    resp = client.post("/api/refresh")

    assert resp.status_code == 401
    assert resp.json() == {"error": "No refresh token"}


def test_refresh_rejects_access_token(client, signup):
    access = signup().json()["accessToken"]
    client.cookies.clear()
    client.cookies.set("refreshToken", access)

    resp = client.post("/api/refresh")

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired refresh token"}


def _reset_token_from(mailer):
    html = next(m["html"] for m in mailer.sent if m["subject"] == "Password Reset - Sumansi")
    return re.search(r"/reset-password/([0-9a-f]{64})", html).group(1)


def test_forgot_and_reset_password(client, signup, mailer, db):
    signup()

    resp = client.post("/api/forgot-password", json={"email": "a@x.com"})
    assert resp.status_code == 200
    token = _reset_token_from(mailer)
    assert "https://shop.example/reset-password/" in mailer.sent[-1]["html"]
    # only the hash is stored
    assert db["user"].find_one({"email": "a@x.com"})["resetPasswordToken"] != token

    resp = client.post(f"/api/reset-password/{token}", json={"password": "newpass99"})
    assert resp.status_code == 200
    stored = db["user"].find_one({"email": "a@x.com"})
    assert "resetPasswordToken" not in stored
    assert mailer.sent[-1]["subject"] == "Password Changed - Sumansi"

    login = client.post("/api/login", json={"email": "a@x.com", "password": "newpass99", "token": "tok"})
    assert login.status_code == 200
    again = client.post(f"/api/reset-password/{token}", json={"password": "other"})
    assert again.status_code == 401


def test_reset_with_expired_token(client, signup, mailer, db):
    signup()
    client.post("/api/forgot-password", json={"email": "a@x.com"})
    token = _reset_token_from(mailer)
    db["user"].update_one({"email": "a@x.com"}, {"$set": {"resetPasswordExpires": utcnow() - timedelta(minutes=1)}})

    resp = client.post(f"/api/reset-password/{token}", json={"password": "newpass99"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired token"}


def test_forgot_password_unknown_email(client):
    resp = client.post("/api/forgot-password", json={"email": "ghost@x.com"})

    assert resp.status_code == 404
    assert resp.json() == {"error": "No user found with that email"}


def test_profile_read_and_partial_update(client, auth_headers):
    headers = auth_headers()

    resp = client.put("/api/user/profile", json={"phone": "999", "name": ""}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["phone"] == "999"
    assert resp.json()["name"] == "A"
    profile = client.get("/api/user/profile", headers=headers).json()
    assert profile["phone"] == "999"
    assert profile["avatar"] is None


def test_protected_route_without_token(client):
    resp = client.get("/api/user/profile")

    assert resp.status_code == 401
    assert resp.json() == {"error": "No token provided"}


def test_protected_route_with_garbage_token(client):
    resp = client.get("/api/user/profile", headers={"Authorization": "Bearer not-a-jwt"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired token"}


def test_current_user_lookup_runs_off_the_event_loop():
    # FastAPI runs plain functions in its threadpool; the lookup does blocking pymongo I/O
    assert not inspect.iscoroutinefunction(get_current_user)
