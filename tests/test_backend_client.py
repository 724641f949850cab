import asyncio

import pytest
from aiohttp import test_utils, web

from stream_monitor.datafeed.backend_client import (
    BackendClient,
    BackendError,
    parse_channel_snapshot,
    parse_records,
)
from stream_monitor.engine.rankings import TOP_GAMES

STATS = {
    "channel_id": 7,
    "channel_name": "somestreamer",
    "stream_id": 99,
    "is_live": True,
    "viewer_count": 1234,
    "chat_rate_1min": 42,
    "chat_rate_5s": 3,
    "category": "Deadlock",
    "title": "ranked grind",
    "collected_at": "2026-10-17T12:00:00+00:00",
    "event_flags": {"viewer_spike": True, "chat_spike": False, "category_change": False},
}


def test_parse_records():
    rows = [{"category": "Deadlock", "minutes_watched": 10.5, "top_channel": None}]
    assert parse_records(rows) == rows
    assert parse_records([]) == []


@pytest.mark.parametrize("payload", [
    {"category": "Deadlock"},
    ["not a record"],
    [{"nested": {"a": 1}}],
    [{"list": [1, 2]}],
])
def test_parse_records_rejects_malformed(payload):
    with pytest.raises(BackendError):
        parse_records(payload)


def test_parse_channel_snapshot():
    snapshot = parse_channel_snapshot(STATS)

    assert snapshot.channel_id == 7
    assert snapshot.channel_name == "somestreamer"
    assert snapshot.viewer_count == 1234
    assert snapshot.chat_rate_1min == 42
    assert snapshot.chat_rate_5s == 3
    assert snapshot.category == "Deadlock"
    assert snapshot.stream_id == 99
    assert snapshot.is_live is True


def test_parse_offline_channel_snapshot():
    snapshot = parse_channel_snapshot({
        "channel_id": 8,
        "channel_name": "sleeper",
        "stream_id": None,
        "is_live": False,
        "viewer_count": None,
        "chat_rate_1min": 0,
        "chat_rate_5s": 0,
        "category": None,
        "title": None,
        "collected_at": None,
    })
    assert snapshot.is_live is False
    assert snapshot.viewer_count is None
    assert snapshot.category is None


@pytest.mark.parametrize("change", [
    {"channel_name": None},
    {"channel_id": "seven"},
    {"viewer_count": True},
    {"category": 5},
    {"is_live": "yes"},
])
def test_parse_channel_snapshot_rejects_bad_fields(change):
    with pytest.raises(BackendError):
        parse_channel_snapshot({**STATS, **change})


def test_parse_channel_snapshot_requires_identity():
    payload = dict(STATS)
    del payload["channel_id"]
    with pytest.raises(BackendError):
        parse_channel_snapshot(payload)


def test_invoke_requires_open_client():
    client = BackendClient("http://127.0.0.1:1")
    with pytest.raises(BackendError):
        asyncio.run(client.invoke("get_game_analytics"))


def _backend_app(received):
    async def invoke(request):
        command = request.match_info["command"]
        received.append((command, await request.json()))
        if command == "get_game_analytics":
            return web.json_response([{"category": "Deadlock", "minutes_watched": 100}])
        if command == "get_multiview_realtime_stats":
            return web.json_response([STATS])
        if command == "broken_json":
            return web.Response(body=b"{not json", content_type="application/json")
        return web.json_response({"error": "unknown command"}, status=500)

    app = web.Application()
    app.router.add_post("/invoke/{command}", invoke)
    return app


def test_client_against_backend():
    received = []

    async def scenario():
        async with test_utils.TestServer(_backend_app(received)) as server:
            async with BackendClient(str(server.make_url("/"))) as client:
                rows = await client.fetch_ranking(TOP_GAMES, start_time="2026-10-01")
                snapshots = await client.fetch_multiview_stats([7])
                empty = await client.fetch_multiview_stats([])

                with pytest.raises(BackendError):
                    await client.invoke("nope")
                with pytest.raises(BackendError):
                    await client.invoke("broken_json")
        return rows, snapshots, empty

    rows, snapshots, empty = asyncio.run(scenario())

    assert rows == [{"category": "Deadlock", "minutes_watched": 100}]
    assert [s.channel_name for s in snapshots] == ["somestreamer"]
    assert empty == []
    assert received[0] == ("get_game_analytics", {"startTime": "2026-10-01"})
    assert received[1] == ("get_multiview_realtime_stats", {"channelIds": [7]})


def test_unreachable_backend():
    async def scenario():
        # Port 1 is reserved; connecting fails immediately
        async with BackendClient("http://127.0.0.1:1", timeout_sec=2) as client:
            await client.invoke("get_game_analytics")

    with pytest.raises(BackendError):
        asyncio.run(scenario())

