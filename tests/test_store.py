"""Tests for the collection CRUD surface."""

import asyncio
from datetime import datetime, timezone

import pytest

from litedocstore import (
    AppendOnlyCollection,
    InvalidDocumentError,
    KeyedCollection,
    Store,
    UnknownCollectionError,
)


@pytest.mark.asyncio
async def test_collection_set_is_closed(store: Store):
    assert store.collection_names() == [
        "users", "dailyStates", "referrals", "orders",
        "notifications", "ambassadorWaitlist", "activities",
    ]
    assert isinstance(store["users"], KeyedCollection)
    assert isinstance(store.collection("orders"), AppendOnlyCollection)
    with pytest.raises(UnknownCollectionError):
        store["stickers"]


@pytest.mark.asyncio
async def test_create_then_find(store: Store):
    created = await store.users.create({"id": "u1", "name": "A"})
    assert created == {"id": "u1", "name": "A"}
    assert await store.users.find_by_id("u1") == {"id": "u1", "name": "A"}


@pytest.mark.asyncio
async def test_find_missing_returns_none(store: Store):
    assert await store.users.find_by_id("nobody") is None


@pytest.mark.asyncio
async def test_create_overwrites_by_id(store: Store):
    await store.users.create({"id": "u1", "name": "A", "extra": 1})
    await store.users.create({"id": "u1", "name": "B"})
    assert await store.users.find_by_id("u1") == {"id": "u1", "name": "B"}
    assert len(store.users) == 1


@pytest.mark.asyncio
async def test_create_requires_key_field(store: Store):
    with pytest.raises(InvalidDocumentError):
        await store.users.create({"name": "no id"})
    with pytest.raises(InvalidDocumentError):
        await store.daily_states.create({"id": "u1"})


@pytest.mark.asyncio
async def test_numeric_ids_are_found_either_way(store: Store):
    await store.users.create({"id": 42, "name": "num"})
    assert (await store.users.find_by_id(42))["id"] == 42
    assert (await store.users.find_by_id("42"))["name"] == "num"


@pytest.mark.asyncio
async def test_daily_states_keyed_by_user_id(store: Store):
    await store.daily_states.create({"userId": "u1", "totalPoints": 0, "streak": 0})
    updated = await store.daily_states.update("u1", {"totalPoints": 30, "streak": 2})
    assert updated == {"userId": "u1", "totalPoints": 30, "streak": 2}


@pytest.mark.asyncio
async def test_update_shallow_merges(store: Store):
    await store.users.create({"id": "u1", "name": "A", "profile": {"lang": "en", "tz": "UTC"}})
    merged = await store.users.update("u1", {"profile": {"lang": "ru"}, "lastSeen": "today"})
    assert merged == {"id": "u1", "name": "A", "profile": {"lang": "ru"}, "lastSeen": "today"}
    assert await store.users.find_by_id("u1") == merged


@pytest.mark.asyncio
async def test_update_cannot_move_key(store: Store):
    await store.users.create({"id": "u1", "name": "A"})
    merged = await store.users.update("u1", {"id": "u2", "name": "B"})
    assert merged == {"id": "u1", "name": "B"}
    assert await store.users.find_by_id("u2") is None


@pytest.mark.asyncio
async def test_update_missing_is_not_an_upsert(store: Store, snapshot_path):
    await store.users.create({"id": "u1", "name": "A"})
    before = snapshot_path.read_bytes()
    assert await store.users.update("missing", {"name": "X"}) is None
    assert snapshot_path.read_bytes() == before
    assert await store.users.find_by_id("missing") is None


@pytest.mark.asyncio
async def test_delete(store: Store, snapshot_path):
    await store.users.create({"id": "u1"})
    assert await store.users.delete("u1") is True
    assert await store.users.find_by_id("u1") is None
    before = snapshot_path.read_bytes()
    assert await store.users.delete("u1") is False
    assert snapshot_path.read_bytes() == before


@pytest.mark.asyncio
async def test_query_and_count_on_keyed_collection(store: Store):
    for i, points in enumerate([5, 12, 20]):
        await store.users.create({"id": f"u{i}", "totalPoints": points})
    assert await store.users.count({"totalPoints": {"$gt": 10}}) == 2
    found = await store.users.query({"totalPoints": {"$gt": 10}})
    assert [d["id"] for d in found] == ["u1", "u2"]
    assert (await store.users.find_one({"totalPoints": 5}))["id"] == "u0"
    assert await store.users.find_one({"totalPoints": 99}) is None


@pytest.mark.asyncio
async def test_append_allows_duplicates(store: Store):
    entry = {"email": "a@example.com", "name": "A"}
    await store.ambassador_waitlist.append(entry)
    await store.ambassador_waitlist.append(entry)
    entries = await store.ambassador_waitlist.query()
    assert len(entries) == 2
    assert entries[0] == entries[1] == entry


@pytest.mark.asyncio
async def test_append_preserves_order(store: Store):
    for n in range(3):
        await store.orders.append({"n": n, "status": "pending" if n != 1 else "completed"})
    assert [d["n"] for d in await store.orders.query()] == [0, 1, 2]
    assert [d["n"] for d in await store.orders.query({"status": "pending"})] == [0, 2]
    assert await store.orders.count({"status": {"$ne": "pending"}}) == 1


@pytest.mark.asyncio
async def test_returned_documents_are_copies(store: Store):
    await store.users.create({"id": "u1", "tags": ["a"]})
    doc = await store.users.find_by_id("u1")
    doc["tags"].append("b")
    assert await store.users.find_by_id("u1") == {"id": "u1", "tags": ["a"]}


@pytest.mark.asyncio
async def test_datetimes_stored_as_iso_strings(store: Store):
    when = datetime(2025, 5, 25, 12, 0, tzinfo=timezone.utc)
    stored = await store.activities.append({"userId": "u1", "timestamp": when})
    assert stored["timestamp"] == "2025-05-25T12:00:00+00:00"
    assert await store.activities.count({"timestamp": {"$gt": datetime(2025, 1, 1, tzinfo=timezone.utc)}}) == 1


@pytest.mark.asyncio
async def test_non_json_document_rejected(store: Store):
    with pytest.raises(InvalidDocumentError):
        await store.notifications.append({"payload": object()})
    with pytest.raises(InvalidDocumentError):
        await store.notifications.append(["not", "a", "dict"])
    with pytest.raises(InvalidDocumentError):
        await store.notifications.append({"stars": float("nan")})
    with pytest.raises(InvalidDocumentError):
        await store.users.update("u1", {"stars": float("inf")})
    assert await store.notifications.count() == 0


@pytest.mark.asyncio
async def test_store_aggregate(store: Store):
    await store.referrals.append({"referrerUserId": "A", "status": "active"})
    await store.referrals.append({"referrerUserId": "A", "status": "active"})
    await store.referrals.append({"referrerUserId": "B", "status": "pending"})
    out = await store.aggregate("referrals", [
        {"$match": {"status": {"$in": ["active"]}}},
        {"$group": {"_id": "$referrerUserId", "referralsCount": {"$sum": 1}}},
        {"$sort": {"referralsCount": -1}},
        {"$limit": 1},
    ])
    assert out == [{"_id": "A", "referralsCount": 2}]


@pytest.mark.asyncio
async def test_concurrent_updates_do_not_lose_fields(store: Store):
    await store.users.create({"id": "u1"})
    await asyncio.gather(*(
        store.users.update("u1", {f"field{i}": i}) for i in range(10)
    ))
    doc = await store.users.find_by_id("u1")
    assert all(doc[f"field{i}"] == i for i in range(10))
