"""
API tests.

The application is built around fakes through build_services, so the
routes, dependency wiring and both background queues run for real
without FFmpeg or Claude.
"""

import io
import json
import time
import zipfile

import pytest
from fastapi.testclient import TestClient

from ainspire.api.dependencies import build_services
from ainspire.config.settings import Settings
from ainspire.core.classification.classifier import InvalidCredentialError
from ainspire.core.collection.models import Classification
from ainspire.infrastructure.credentials.store import InMemoryCredentialStore
from ainspire.main import create_app

from conftest import FakeClassifier, FakeDecoder

DURATIONS = {"a.mp4": 10.0, "b.mp4": 4.0}


def _labels(index, data):
    if index % 2 == 0:
        return Classification(composition="Close-Up", lighting="Low-Key")
    return Classification(composition="Wide Shot", setting="Urban")


def _build(classifier: FakeClassifier, credential: str | None = "sk-test"):
    settings = Settings(_env_file=None, credential_file="", cors_origins="*")
    return build_services(
        settings,
        classifier=classifier,
        decoder=FakeDecoder(durations=DURATIONS),
        credentials=InMemoryCredentialStore(credential),
    )


def _video(name: str):
    return ("files", (name, b"video-bytes", "video/mp4"))


def _wait_until_idle(client: TestClient) -> list[str]:
    """Poll /status until both queues are idle; returns any alerts seen."""
    alerts = []
    for _ in range(500):
        body = client.get("/api/v1/status").json()
        if body["alert"]:
            alerts.append(body["alert"])
        if not body["is_busy"]:
            return alerts
        time.sleep(0.01)
    raise AssertionError("pipeline never went idle")


def _wait_for_rejection(services) -> None:
    """Wait for a credential failure to settle without consuming it."""
    collector = services.collector
    for _ in range(500):
        if collector.classification_queue.last_error is not None and not collector.status().is_busy:
            return
        time.sleep(0.01)
    raise AssertionError("credential failure never surfaced")


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier(_labels)


@pytest.fixture
def client(classifier):
    with TestClient(create_app(services=_build(classifier))) as test_client:
        yield test_client


@pytest.fixture
def populated(client):
    """a.mp4 at 5s gives 2 frames, b.mp4 gives 1."""
    response = client.post(
        "/api/v1/videos",
        files=[_video("a.mp4"), _video("b.mp4")],
        data={"interval_seconds": "5"},
    )
    assert response.status_code == 202
    _wait_until_idle(client)
    return client


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_with_credential(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_without_credential(self):
        classifier = FakeClassifier()
        classifier.api_key = None
        with TestClient(create_app(services=_build(classifier, credential=None))) as client:
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"


# ---------------------------------------------------------------------------
# Videos and status
# ---------------------------------------------------------------------------

class TestVideos:
    def test_enqueue_reports_accepted_and_ignored(self, client):
        response = client.post(
            "/api/v1/videos",
            files=[_video("a.mp4"), ("files", ("notes.txt", b"hello", "text/plain"))],
            data={"interval_seconds": "5"},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["accepted"] == ["a.mp4"]
        assert body["ignored"] == ["notes.txt"]
        assert body["interval_seconds"] == 5.0
        _wait_until_idle(client)

    def test_interval_is_clamped(self, client):
        response = client.post("/api/v1/videos", files=[_video("b.mp4")], data={"interval_seconds": "120"})
        assert response.json()["interval_seconds"] == 30.0
        _wait_until_idle(client)

    def test_no_videos_in_upload(self, client):
        response = client.post("/api/v1/videos", files=[("files", ("notes.txt", b"hello", "text/plain"))])
        assert response.status_code == 400

    def test_missing_credential_is_localized(self):
        classifier = FakeClassifier()
        classifier.api_key = None
        with TestClient(create_app(services=_build(classifier, credential=None))) as client:
            english = client.post("/api/v1/videos", files=[_video("a.mp4")])
            korean = client.post("/api/v1/videos?lang=ko", files=[_video("a.mp4")])

        assert english.status_code == 409
        assert english.json()["detail"] == "Enter your Anthropic API key to get started."
        assert korean.json()["detail"] == "시작하려면 Anthropic API 키를 입력하세요."

    def test_status_when_idle(self, client):
        body = client.get("/api/v1/status").json()
        assert body["is_busy"] is False
        assert body["message"] is None
        assert body["image_count"] == 0

    def test_cancel_when_idle(self, client):
        response = client.post("/api/v1/videos/cancel")
        assert response.status_code == 200
        assert response.json() == {"dropped": 0}

    def test_credential_failure_surfaces_alert_and_forgets_key(self):
        classifier = FakeClassifier(lambda index, data: InvalidCredentialError("Invalid API key"))
        with TestClient(create_app(services=_build(classifier))) as client:
            client.post("/api/v1/videos", files=[_video("a.mp4")], data={"interval_seconds": "5"})
            alerts = _wait_until_idle(client)
            credential = client.get("/api/v1/credential").json()
            images = client.get("/api/v1/images").json()

        assert "Invalid API Key. Please check your key and try again." in alerts
        assert credential == {"configured": False}
        assert images["total"] == 0

    def test_credential_check_leaves_alert_for_status(self):
        classifier = FakeClassifier(lambda index, data: InvalidCredentialError("Invalid API key"))
        services = _build(classifier)
        with TestClient(create_app(services=services)) as client:
            client.post("/api/v1/videos", files=[_video("b.mp4")], data={"interval_seconds": "5"})
            _wait_for_rejection(services)

            before = client.get("/api/v1/credential").json()
            status = client.get("/api/v1/status").json()
            after = client.get("/api/v1/credential").json()

        assert before == {"configured": True}
        assert status["alert"] == "Invalid API Key. Please check your key and try again."
        assert after == {"configured": False}

    def test_upload_refused_until_new_key(self):
        classifier = FakeClassifier(lambda index, data: InvalidCredentialError("Invalid API key"))
        services = _build(classifier)
        with TestClient(create_app(services=services)) as client:
            client.post("/api/v1/videos", files=[_video("b.mp4")])
            _wait_for_rejection(services)

            refused = client.post("/api/v1/videos", files=[_video("a.mp4")])
            client.put("/api/v1/credential", json={"api_key": "sk-new"})
            accepted = client.post("/api/v1/videos", files=[_video("a.mp4")])
            _wait_until_idle(client)

        assert refused.status_code == 409
        assert refused.json()["detail"] == "Invalid API Key. Please check your key and try again."
        assert accepted.status_code == 202


# ---------------------------------------------------------------------------
# Credential
# ---------------------------------------------------------------------------

class TestCredential:
    def test_configured(self, client):
        assert client.get("/api/v1/credential").json() == {"configured": True}

    def test_replace_and_delete(self, client, classifier):
        response = client.put("/api/v1/credential", json={"api_key": "sk-new"})
        assert response.json() == {"configured": True}
        assert classifier.api_key == "sk-new"

        response = client.delete("/api/v1/credential")
        assert response.json() == {"configured": False}

    def test_blank_key_rejected(self, client):
        response = client.put("/api/v1/credential", json={"api_key": "   "})
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

class TestImages:
    def test_list_in_extraction_order(self, populated):
        body = populated.get("/api/v1/images").json()

        assert body["total"] == 3
        assert [(image["source_name"], image["timestamp_seconds"]) for image in body["images"]] == [
            ("a.mp4", 0.0), ("a.mp4", 5.0), ("b.mp4", 0.0),
        ]
        assert body["images"][0]["src"].startswith("data:image/jpeg;base64,")

    def test_filter_and_search(self, populated):
        body = populated.get("/api/v1/images", params={"composition": "Close-Up"}).json()
        assert len(body["images"]) == 2

        body = populated.get("/api/v1/images", params={"composition": "Close-Up", "q": "b.mp4"}).json()
        assert [image["source_name"] for image in body["images"]] == ["b.mp4"]

        body = populated.get("/api/v1/images", params={"q": "urban"}).json()
        assert len(body["images"]) == 1

    def test_filter_options_are_localized(self, populated):
        options = populated.get("/api/v1/images/filters", params={"lang": "ko"}).json()

        assert options[0] == {"category": "composition", "label": "구도", "values": ["Close-Up", "Wide Shot"]}
        assert [option["category"] for option in options] == ["composition", "lighting", "setting"]

    def test_download_and_delete_image(self, populated):
        image = populated.get("/api/v1/images").json()["images"][1]

        download = populated.get(f"/api/v1/images/{image['id']}")
        assert download.status_code == 200
        assert 'filename="a-5_00.jpg"' in download.headers["content-disposition"]

        assert populated.delete(f"/api/v1/images/{image['id']}").status_code == 204
        assert populated.get(f"/api/v1/images/{image['id']}").status_code == 404
        assert populated.delete(f"/api/v1/images/{image['id']}").status_code == 404

    def test_export_then_import(self, populated):
        exported = populated.get("/api/v1/images/export")
        assert exported.headers["content-type"].startswith("application/json")
        records = json.loads(exported.content)
        assert {"id", "src", "classifications", "timestampSeconds", "sourceName"} <= set(records[0])

        response = populated.post(
            "/api/v1/images/import",
            files={"file": ("collection.json", json.dumps(records[:1]).encode(), "application/json")},
        )
        assert response.json() == {"imported": 1}
        assert populated.get("/api/v1/images").json()["total"] == 1

    def test_rejected_import_leaves_collection(self, populated):
        broken = populated.post(
            "/api/v1/images/import",
            files={"file": ("collection.json", b"{nope", "application/json")},
        )
        invalid = populated.post(
            "/api/v1/images/import",
            files={"file": ("collection.json", b'[{"id": "x"}]', "application/json")},
        )

        assert broken.status_code == 400
        assert broken.json()["detail"] == "Failed to parse JSON file."
        assert invalid.status_code == 400
        assert invalid.json()["detail"] == "Invalid JSON file format."
        assert populated.get("/api/v1/images").json()["total"] == 3

    def test_archive(self, populated):
        response = populated.get("/api/v1/images/archive")
        assert response.status_code == 200

        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["a-0_00.jpg", "a-5_00.jpg", "b-0_00.jpg"]

    def test_empty_archive(self, client):
        response = client.get("/api/v1/images/archive")
        assert response.status_code == 404
        assert response.json()["detail"] == "There are no images to download."
