"""Tests for push token storage and invalid token cleanup."""
import pytest

from notifier.services.push_sender import SendResult
from notifier.services.token_store import TokenStore

from .helpers import add_tokens, expo_token


@pytest.fixture
def store(database):
    return TokenStore(database.session_factory)


@pytest.mark.asyncio
async def test_save_token_upserts_by_token_string(store):
    token = expo_token("phone")

    first = await store.save_token("alice", token, "device-1")
    second = await store.save_token("alice", token, "device-2")

    assert first.id == second.id
    records = await store.list_user_records("alice")
    assert len(records) == 1
    assert records[0].device_id == "device-2"
    assert records[0].token_type == "expo"


@pytest.mark.asyncio
async def test_save_token_generates_device_id(store):
    record = await store.save_token("alice", expo_token("phone"))
    assert record.device_id.startswith("device_")


@pytest.mark.asyncio
async def test_reassigns_token_to_new_owner(store):
    token = expo_token("shared")
    await store.save_token("alice", token, "d1")
    await store.save_token("bob", token, "d1")

    assert await store.get_user_tokens("alice") == []
    assert [r.token for r in await store.get_user_tokens("bob")] == [token]


@pytest.mark.asyncio
async def test_get_tokens_by_user_groups_in_first_seen_order(store, database):
    await add_tokens(
        database,
        {"token": expo_token("b1"), "user_id": "bob"},
        {"token": expo_token("a1"), "user_id": "alice"},
        {"token": expo_token("orphan"), "user_id": None},
        {"token": expo_token("b2"), "user_id": "bob"},
        {"token": expo_token("off"), "user_id": "alice", "active": 0},
    )

    grouped, skipped = await store.get_tokens_by_user()

    assert list(grouped) == ["bob", "alice"]
    assert [r.token for r in grouped["bob"]] == [expo_token("b1"), expo_token("b2")]
    assert [r.token for r in grouped["alice"]] == [expo_token("a1")]
    assert skipped == 1


@pytest.mark.asyncio
async def test_delete_token_by_user_and_device(store):
    await store.save_token("alice", expo_token("one"), "d1")
    await store.save_token("alice", expo_token("two"), "d2")

    assert await store.delete_token("alice", "d1") == 1
    assert [r.device_id for r in await store.get_user_tokens("alice")] == ["d2"]


@pytest.mark.asyncio
async def test_delete_is_idempotent(store):
    token = expo_token("gone")
    await store.save_token("alice", token, "d1")

    assert await store.delete_by_token(token) == 1
    assert await store.delete_by_token(token) == 0
    assert await store.delete_token("alice", "d1") == 0


@pytest.mark.asyncio
async def test_cleanup_removes_only_invalid_tokens(store, database):
    tokens = [expo_token(f"t{i}") for i in range(5)]
    await add_tokens(database, *({"token": t, "user_id": "alice"} for t in tokens))

    results = [
        SendResult(token=tokens[0], ok=True),
        SendResult(token=tokens[1], ok=False, error="DeviceNotRegistered", invalid=True),
        SendResult(token=tokens[2], ok=False, error="MessageRateExceeded"),
        SendResult(token=tokens[3], ok=False, error="DeviceNotRegistered", invalid=True),
        SendResult(token=tokens[4], ok=True),
    ]

    removed = await store.cleanup_invalid(tokens, results)

    assert removed == 2
    remaining = [r.token for r in await store.get_all_tokens()]
    assert remaining == [tokens[0], tokens[2], tokens[4]]


@pytest.mark.asyncio
async def test_cleanup_continues_after_a_failed_delete(store, database, monkeypatch):
    tokens = [expo_token("bad1"), expo_token("bad2")]
    await add_tokens(database, *({"token": t, "user_id": "alice"} for t in tokens))

    original = store.delete_by_token

    async def flaky_delete(token):
        if token == tokens[0]:
            raise RuntimeError("write failed")
        return await original(token)

    monkeypatch.setattr(store, "delete_by_token", flaky_delete)
    results = [SendResult(token=t, ok=False, invalid=True) for t in tokens]

    removed = await store.cleanup_invalid(tokens, results)

    assert removed == 1
    assert [r.token for r in await store.get_all_tokens()] == [tokens[0]]


@pytest.mark.asyncio
async def test_cleanup_skips_misaligned_results(store, database):
    tokens = [expo_token("x1"), expo_token("x2")]
    await add_tokens(database, *({"token": t, "user_id": "alice"} for t in tokens))

    removed = await store.cleanup_invalid(tokens, [SendResult(token=tokens[0], ok=False, invalid=True)])

    assert removed == 0
    assert len(await store.get_all_tokens()) == 2
