"""HTTP API tests against the app with in-memory services."""
import httpx
import pytest
import pytest_asyncio

from notifier.main import create_app

from .helpers import add_tokens, expo_token


@pytest_asyncio.fixture
async def client(test_settings, services):
    app = create_app(test_settings, services=services)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["success"] is True
        assert body["timezone"] == "Asia/Kolkata (IST)"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_index_lists_endpoints(self, client):
        body = (await client.get("/")).json()
        assert "POST /save-token" in body["endpoints"]

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "Route not found"
        assert response.json()["path"] == "/nope"


class TestTokens:
    @pytest.mark.asyncio
    async def test_save_token(self, client, services):
        response = await client.post(
            "/save-token",
            json={"userId": "alice", "token": expo_token("a1"), "deviceId": "phone"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["deviceId"] == "phone"
        assert body["tokenType"] == "expo"
        assert [r.token for r in await services.token_store.get_user_tokens("alice")] == [expo_token("a1")]

    @pytest.mark.asyncio
    async def test_save_token_twice_keeps_one_record(self, client, services):
        payload = {"userId": "alice", "token": expo_token("a1"), "deviceId": "phone"}
        await client.post("/save-token", json=payload)
        await client.post("/save-token", json=payload)

        assert len(await services.token_store.get_all_tokens()) == 1

    @pytest.mark.asyncio
    async def test_save_token_missing_fields(self, client):
        response = await client.post("/save-token", json={"token": expo_token("a1")})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: userId and token"

    @pytest.mark.asyncio
    async def test_save_token_rejects_bad_format(self, client):
        response = await client.post("/save-token", json={"userId": "alice", "token": "short"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid push token format"

    @pytest.mark.asyncio
    async def test_delete_by_user_and_device(self, client, services):
        await client.post(
            "/save-token",
            json={"userId": "alice", "token": expo_token("a1"), "deviceId": "phone"},
        )

        response = await client.request(
            "DELETE", "/delete-token", json={"userId": "alice", "deviceId": "phone"}
        )

        assert response.status_code == 200
        assert response.json()["removed"] == 1
        assert await services.token_store.get_all_tokens() == []

    @pytest.mark.asyncio
    async def test_delete_requires_identifier(self, client):
        response = await client.request("DELETE", "/delete-token", json={"userId": "alice"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: userId and deviceId"

    @pytest.mark.asyncio
    async def test_list_user_tokens(self, client, database):
        await add_tokens(
            database,
            {"token": expo_token("a1"), "user_id": "alice", "device_id": "phone"},
            {"token": expo_token("b1"), "user_id": "bob", "device_id": "tablet"},
        )

        body = (await client.get("/tokens/alice")).json()

        assert body["count"] == 1
        assert body["userId"] == "alice"
        assert body["tokens"][0]["deviceId"] == "phone"
        assert body["tokens"][0]["token"] == expo_token("a1")

    @pytest.mark.asyncio
    async def test_list_all_tokens(self, client, database):
        await add_tokens(
            database,
            {"token": expo_token("a1"), "user_id": "alice"},
            {"token": expo_token("b1"), "user_id": "bob"},
        )

        body = (await client.get("/tokens")).json()

        assert body["count"] == 2


class TestNotifications:
    @pytest.mark.asyncio
    async def test_send_notification_requires_user(self, client):
        response = await client.post("/send-notification", json={"title": "Hi"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required field: userId"

    @pytest.mark.asyncio
    async def test_send_notification_without_tokens(self, client):
        response = await client.post("/send-notification", json={"userId": "ghost", "title": "Hi"})

        assert response.status_code == 400
        assert response.json()["error"] == "No push tokens found for user"

    @pytest.mark.asyncio
    async def test_send_notification(self, client, database, transport):
        await add_tokens(database, {"token": expo_token("a1"), "user_id": "alice"})

        response = await client.post(
            "/send-notification",
            json={"userId": "alice", "title": "Hi", "body": "There", "data": {"screen": "home"}},
        )

        assert response.status_code == 200
        assert response.json()["result"]["sent"] == 1
        _, message = transport.calls[0]
        assert message.data == {"screen": "home"}

    @pytest.mark.asyncio
    async def test_broadcast_without_body(self, client, database, transport):
        await add_tokens(database, {"token": expo_token("a1"), "user_id": "alice"})

        response = await client.post("/send-notification-all")

        assert response.status_code == 200
        assert transport.calls[0][1].data["type"] == "broadcast"

    @pytest.mark.asyncio
    async def test_daily_reminders_with_no_users(self, client):
        response = await client.post("/send-daily-reminders")

        assert response.status_code == 200
        assert response.json()["result"]["totalUsers"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes", [30, 10])
    async def test_class_reminders_accepts_allowed_windows(self, client, minutes):
        response = await client.post("/send-class-reminders", json={"minutesBefore": minutes})

        assert response.status_code == 200
        assert response.json()["result"]["minutesBefore"] == minutes

    @pytest.mark.asyncio
    async def test_class_reminders_rejects_other_windows(self, client):
        response = await client.post("/send-class-reminders", json={"minutesBefore": 15})

        assert response.status_code == 400
        assert response.json()["error"] == "minutesBefore must be 30 or 10"

    @pytest.mark.asyncio
    async def test_class_reminders_via_query_string(self, client):
        response = await client.get("/send-class-reminders", params={"minutesBefore": "10"})

        assert response.status_code == 200
        assert response.json()["result"]["minutesBefore"] == 10

    @pytest.mark.asyncio
    async def test_class_reminders_defaults_to_thirty(self, client):
        response = await client.get("/send-class-reminders")

        assert response.json()["result"]["minutesBefore"] == 30


@pytest.mark.asyncio
async def test_rate_limit(test_settings, services):
    config = test_settings.model_copy(update={"rate_limit_max_requests": 2})
    app = create_app(config, services=services)

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        statuses = [(await client.get("/health")).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]


@pytest.mark.asyncio
async def test_responses_use_the_app_timezone(test_settings, services, monkeypatch):
    zones = []

    def fake_timestamp(moment=None, tz=None):
        zones.append(tz)
        return "stamped"

    monkeypatch.setattr("notifier.routers.responses.format_local_timestamp", fake_timestamp)
    config = test_settings.model_copy(update={"timezone": "UTC"})
    app = create_app(config, services=services)

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        await client.get("/health")
        await client.get("/nope")
        await client.post("/save-token", json={})

    assert zones == ["UTC", "UTC", "UTC"]
