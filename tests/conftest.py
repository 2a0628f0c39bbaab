import os
import tempfile

# main.py reads its settings at import time
os.environ["ADMIN_PASSWORD"] = "letmein-admin"
os.environ["JWT_SECRET"] = "test-signing-key"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="portfolio-uploads-")
os.environ["MAX_UPLOAD_BYTES"] = "2048"
for _name in (
    "ADMIN_PASSWORD_HASH",
    "CLOUDINARY_CLOUD_NAME",
    "CLOUDINARY_API_KEY",
    "CLOUDINARY_API_SECRET",
    "SENDGRID_API_KEY",
    "EMAIL_FROM",
    "CONTACT_NOTIFY_EMAIL",
):
    os.environ.pop(_name, None)

import pytest
import requests
from fastapi.testclient import TestClient

import main
from media import MediaGateway
from storage import MemoryStorage

ADMIN_PASSWORD = "letmein-admin"


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_contact_notification(self, submission):
        self.sent.append(submission)
        return True


class SpyGateway(MediaGateway):
    def __init__(self, settings):
        super().__init__(settings)
        self.calls = []

    def store(self, data, original_name, content_type):
        self.calls.append((original_name, content_type, len(data)))
        return super().store(data, original_name, content_type)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def settings():
    return main.settings


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway(settings):
    return SpyGateway(settings)


@pytest.fixture
def api(store, notifier, gateway):
    main.app.dependency_overrides[main.get_storage] = lambda: store
    main.app.dependency_overrides[main.get_notifier] = lambda: notifier
    main.app.dependency_overrides[main.get_media_gateway] = lambda: gateway
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(api):
    r = api.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}
