"""HTTP tests for the stream router.

The service runs on in-memory repositories; authentication dependencies
are overridden with fixed users.
"""

import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from livecast.core.config import settings
from livecast.main import app
from livecast.modules.auth.jwt import get_current_user, get_optional_user
from livecast.modules.auth.models import UserRole
from livecast.modules.stream.models import StreamStatus
from livecast.modules.stream.router import get_stream_service

API = f"{settings.API_V1_PREFIX}/streams"


class AuthAs:
    """Switches the authenticated user between requests."""

    def __init__(self):
        self.user = None

    async def current(self):
        return self.user

    async def optional(self):
        return self.user


@pytest.fixture
def auth() -> AuthAs:
    return AuthAs()


@pytest.fixture
def client(env, auth):
    app.dependency_overrides[get_stream_service] = lambda: env.service
    app.dependency_overrides[get_current_user] = auth.current
    app.dependency_overrides[get_optional_user] = auth.optional
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestGoLiveEndpoints:
    def test_go_live_returns_credential_once(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())

        created = client.post(f"{API}/go-live", json={"title": "Launch day"})

        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "LIVE"
        assert len(body["stream_key"]) == 32

        fetched = client.get(f"{API}/{body['id']}")
        assert fetched.status_code == 200
        assert "stream_key" not in fetched.json()

    def test_second_go_live_is_409(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())
        assert client.post(f"{API}/go-live", json={"title": "First"}).status_code == 201

        response = client.post(f"{API}/go-live", json={"title": "Second"})

        assert response.status_code == 409

    def test_viewer_cannot_go_live(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user(role=UserRole.VIEWER))

        response = client.post(f"{API}/go-live", json={"title": "Not allowed"})

        assert response.status_code == 403

    def test_short_title_is_422(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())

        response = client.post(f"{API}/go-live", json={"title": "  a "})

        assert response.status_code == 422


class TestStopLiveEndpoint:
    def test_stop_live_without_body(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())
        stream_id = client.post(f"{API}/go-live", json={"title": "Short one"}).json()["id"]

        response = client.patch(f"{API}/{stream_id}/stop-live")

        assert response.status_code == 200
        assert response.json()["status"] == "OFFLINE"
        assert response.json()["duration_seconds"] >= 0

    def test_stop_live_with_duration(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())
        stream_id = client.post(f"{API}/go-live", json={"title": "Timed"}).json()["id"]

        response = client.patch(f"{API}/{stream_id}/stop-live", json={"duration_seconds": 120})

        assert response.json()["duration_seconds"] == 120

    def test_stop_offline_is_400(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())
        stream = env.streams.add(helpers.make_stream(
            creator_id=auth.user.id, started_at=helpers.utc(2026, 1, 1, 9, 0),
        ))

        response = client.patch(f"{API}/{stream.id}/stop-live")

        assert response.status_code == 400

    def test_stop_someone_elses_stream_is_403(self, client, env, auth, helpers) -> None:
        stream = env.streams.add(helpers.make_stream(
            status=StreamStatus.LIVE, started_at=datetime.now(timezone.utc),
        ))
        auth.user = env.users.add(helpers.make_user())

        response = client.patch(f"{API}/{stream.id}/stop-live")

        assert response.status_code == 403


class TestReadEndpoints:
    def test_unknown_stream_is_404(self, client) -> None:
        assert client.get(f"{API}/{uuid.uuid4()}").status_code == 404

    def test_recordings_listing_reports_reconciliation(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user(role=UserRole.ADMIN))
        started = helpers.utc(2026, 2, 3, 19, 30, 12)
        stream = env.streams.add(helpers.make_stream(started_at=started))
        env.store.add(helpers.manifest_key("2026", "2", "3", "19", "30", "sessionX"), started)

        response = client.get(f"{API}/recordings", params={"page": 1, "limit": 10})

        assert response.status_code == 200
        body = response.json()
        assert body["reconciliation"]["matched"] == 1
        assert body["reconciliation"]["partial"] is False
        assert body["meta"]["total"] == 1
        assert body["items"][0]["id"] == str(stream.id)
        assert body["items"][0]["playback_url"].endswith("/sessionX/media/hls/master.m3u8")

    def test_recordings_listing_is_admin_only(self, client, env, auth, helpers) -> None:
        started = helpers.utc(2026, 2, 3, 19, 30, 12)
        stream = env.streams.add(helpers.make_stream(started_at=started))
        env.store.add(helpers.manifest_key("2026", "2", "3", "19", "30", "sessionX"), started)
        auth.user = env.users.add(helpers.make_user())

        response = client.get(f"{API}/recordings")

        assert response.status_code == 403
        assert env.store.calls == []
        assert stream.recording_path is None

    def test_live_listing_hides_private_streams(self, client, env, helpers) -> None:
        now = datetime.now(timezone.utc)
        public = env.streams.add(helpers.make_stream(status=StreamStatus.LIVE, started_at=now))
        env.streams.add(helpers.make_stream(status=StreamStatus.LIVE, started_at=now, is_public=False))

        body = client.get(f"{API}/live").json()

        assert [item["id"] for item in body["items"]] == [str(public.id)]

    def test_private_stream_is_403_for_anonymous(self, client, env, helpers) -> None:
        stream = env.streams.add(helpers.make_stream(
            started_at=helpers.utc(2026, 1, 1), is_public=False,
        ))

        assert client.get(f"{API}/{stream.id}/watch").status_code == 403

    def test_playback_for_missing_recording(self, client, env, helpers) -> None:
        stream = env.streams.add(helpers.make_stream(started_at=helpers.utc(2026, 1, 1, 1, 1)))

        body = client.get(f"{API}/{stream.id}/playback").json()

        assert body["recording_available"] is False
        assert body["playback_url"] is None

    def test_ingest_config_unconfigured_is_503(self, client, env, auth, helpers, monkeypatch) -> None:
        monkeypatch.setattr(settings, "IVS_INGEST_ENDPOINT", "")
        auth.user = env.users.add(helpers.make_user())

        assert client.get(f"{API}/ingest-config").status_code == 503


class TestAudienceAndAdminEndpoints:
    def test_view_and_leave(self, client, env, helpers) -> None:
        stream = env.streams.add(helpers.make_stream(
            status=StreamStatus.LIVE, started_at=datetime.now(timezone.utc),
        ))

        joined = client.post(f"{API}/{stream.id}/view").json()
        left = client.post(f"{API}/{stream.id}/leave").json()
        left_again = client.post(f"{API}/{stream.id}/leave").json()

        assert joined["current_viewers"] == 1
        assert left["current_viewers"] == 0
        assert left_again["current_viewers"] == 0
        assert left_again["peak_viewers"] == 1

    def test_like_toggle(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user(role=UserRole.VIEWER))
        stream = env.streams.add(helpers.make_stream(started_at=helpers.utc(2026, 1, 1)))

        assert client.post(f"{API}/{stream.id}/like").json()["liked"] is True
        second = client.post(f"{API}/{stream.id}/like").json()
        assert second["liked"] is False
        assert second["total_likes"] == 0

    def test_delete_requires_admin(self, client, env, auth, helpers) -> None:
        stream = env.streams.add(helpers.make_stream(started_at=helpers.utc(2026, 1, 1)))
        auth.user = env.users.add(helpers.make_user())
        assert client.delete(f"{API}/{stream.id}").status_code == 403

        auth.user = env.users.add(helpers.make_user(role=UserRole.ADMIN))
        assert client.delete(f"{API}/{stream.id}").status_code == 200
        assert client.get(f"{API}/{stream.id}").status_code == 404

    def test_my_streams_filters_by_status(self, client, env, auth, helpers) -> None:
        auth.user = env.users.add(helpers.make_user())
        live = env.streams.add(helpers.make_stream(
            creator_id=auth.user.id, status=StreamStatus.LIVE, started_at=datetime.now(timezone.utc),
        ))
        env.streams.add(helpers.make_stream(creator_id=auth.user.id, started_at=helpers.utc(2026, 1, 1)))

        body = client.get(f"{API}/my-streams", params={"status": "LIVE"}).json()

        assert [item["id"] for item in body] == [str(live.id)]


def test_health_and_metrics(client) -> None:
    assert client.get("/health").json() == {"status": "healthy"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "recording_lookups_total" in metrics.text
