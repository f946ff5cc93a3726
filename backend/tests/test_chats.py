from __future__ import annotations
import uuid
import pytest

from conftest import add_booking, add_service, auth_headers


async def _booking(sessionmaker, users):
    async with sessionmaker() as s:
        svc = await add_service(s, users["provider"])
        b = await add_booking(s, svc, users["client"], status="confirmed")
        return b.id


@pytest.mark.asyncio
async def test_parties_can_talk(client, sessionmaker, users):
    booking_id = await _booking(sessionmaker, users)

    r = await client.post("/chats/messages", headers=auth_headers(users["client"]),
                          json={"booking_id": str(booking_id), "content": "  Is 2pm still ok?  "})
    assert r.status_code == 201, r.text
    assert r.json()["message"]["content"] == "Is 2pm still ok?"

    r = await client.post("/chats/messages", headers=auth_headers(users["provider"]),
                          json={"booking_id": str(booking_id), "content": "Yes"})
    assert r.status_code == 201

    r = await client.get(f"/chats/{booking_id}/messages", headers=auth_headers(users["provider"]))
    assert r.status_code == 200
    assert sorted(m["content"] for m in r.json()["messages"]) == ["Is 2pm still ok?", "Yes"]


@pytest.mark.asyncio
async def test_outsiders_and_empty_messages_are_rejected(client, sessionmaker, users):
    booking_id = await _booking(sessionmaker, users)

    r = await client.get(f"/chats/{booking_id}/messages", headers=auth_headers(users["stranger"]))
    assert r.status_code == 404
    r = await client.post("/chats/messages", headers=auth_headers(users["stranger"]),
                          json={"booking_id": str(booking_id), "content": "hi"})
    assert r.status_code == 404
    r = await client.post("/chats/messages", headers=auth_headers(users["client"]),
                          json={"booking_id": str(booking_id), "content": "   "})
    assert r.status_code == 400
    r = await client.get(f"/chats/{uuid.uuid4()}/messages", headers=auth_headers(users["client"]))
    assert r.status_code == 404
