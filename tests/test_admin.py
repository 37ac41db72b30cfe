import pytest

from storage import ImageStorage, to_data_url
from tests.conftest import ADMIN_KEY, FakeResponse, FakeSession

ADMIN = {"x-api-key": ADMIN_KEY}
WEBP = "data:image/webp;base64,UklGRg=="


def create_banner(client, **body):
    return client.post("/api/banner/admin/create", json={"image": WEBP, **body}, headers=ADMIN)


def test_banner_admin_requires_key(client):
    resp = client.post("/api/banner/admin/create", json={"image": WEBP})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized: Invalid or missing API key"}


def test_banner_must_be_webp(client):
    resp = create_banner(client, image="data:image/png;base64,iVBOR")

    assert resp.status_code == 400
    assert resp.json() == {"error": "Valid WebP Base64 image required"}


def test_banner_lifecycle(client):
    first = create_banner(client, order=2)
    assert first.status_code == 201
    second = create_banner(client, order=1, isActive=False)
    first_id = first.json()["banner"]["_id"]
    second_id = second.json()["banner"]["_id"]

    assert [b["_id"] for b in client.get("/api/banner/active").json()] == [first_id]
    assert [b["_id"] for b in client.get("/api/banner/banners").json()] == [second_id, first_id]

    toggled = client.patch(f"/api/banner/admin/toggle/{second_id}", headers=ADMIN)
    assert toggled.json()["banner"]["isActive"] is True

    updated = client.put(f"/api/banner/admin/update/{first_id}", json={"order": 0}, headers=ADMIN)
    assert updated.json()["banner"]["order"] == 0
    assert [b["_id"] for b in client.get("/api/banner/active").json()] == [first_id, second_id]

    assert client.delete(f"/api/banner/admin/delete/{first_id}", headers=ADMIN).status_code == 200
    assert client.delete(f"/api/banner/admin/delete/{first_id}", headers=ADMIN).status_code == 404


def test_banner_update_rejects_non_webp(client):
    banner_id = create_banner(client).json()["banner"]["_id"]

    resp = client.put(f"/api/banner/admin/update/{banner_id}", json={"image": "https://x/y.png"}, headers=ADMIN)

    assert resp.status_code == 400


def test_announcements(client):
    created = client.post("/api/announcements", json={"text": "Free shipping over 999"})
    assert created.status_code == 200
    assert [a["text"] for a in created.json()] == ["Free shipping over 999"]

    blank = client.post("/api/announcements", json={"text": "  "})
    assert blank.status_code == 400
    assert blank.json() == {"error": "Text is required"}

    announcement_id = created.json()[0]["_id"]
    assert client.delete(f"/api/announcements/{announcement_id}").json() == []


def test_list_users_requires_key_and_hides_secrets(client, signup):
    signup()

    assert client.get("/api/users").status_code == 401
    users = client.get("/api/users", headers=ADMIN).json()
    assert [u["email"] for u in users] == ["a@x.com"]
    assert "password" not in users[0]


def test_upload_returns_data_url_without_cloud_config(client):
    resp = client.post("/api/upload", files={"image": ("kurta.png", b"\x89PNG", "image/png")})

    assert resp.status_code == 200
    assert resp.json() == {"url": to_data_url(b"\x89PNG", "image/png")}
    assert resp.json()["url"] == "data:image/png;base64,iVBORw=="


def test_upload_without_file(client):
    resp = client.post("/api/upload")

    assert resp.status_code == 400
    assert resp.json() == {"error": "No file uploaded"}


def test_remote_storage_posts_signed_upload():
    session = FakeSession(FakeResponse(200, {"secure_url": "https://res.cloudinary.com/demo/k.png"}))
    storage = ImageStorage("demo", "key", "secret", session=session)

    assert storage.save("k.png", b"data", "image/png") == "https://res.cloudinary.com/demo/k.png"
    call = session.calls[0]
    assert call["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert call["data"]["api_key"] == "key"
    assert len(call["data"]["signature"]) == 40


def test_contact_form(client, mailer, settings):
    body = {"fullName": "Asha", "email": "asha@x.com", "phone": "1", "message": "Do you ship <abroad>?"}

    resp = client.post("/api/email/send", json=body)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    sent = mailer.sent[-1]
    assert sent["to"] == settings.contact_email
    assert "&lt;abroad&gt;" in sent["html"]


def test_contact_form_mail_failure(client, mailer):
    mailer.fail = True

    resp = client.post("/api/email/send", json={"fullName": "Asha", "email": "asha@x.com", "message": "Hi"})

    assert resp.status_code == 503
    assert resp.json() == {"error": "Failed to send message"}


@pytest.mark.parametrize("path", ["/", "/test"])
def test_health(client, path):
    resp = client.get(path)

    assert resp.status_code == 200


def test_database_diagnostics(client, signup):
    signup()

    body = client.get("/test").json()

    assert body["connection_status"] == "Connected"
    assert "user" in body["collections"]
