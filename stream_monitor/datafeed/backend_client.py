"""
Async client for the analytics backend's command/query boundary.

Handles:
1. Command invocation over HTTP (POST /invoke/<command>, JSON body)
2. Ranking queries returning flat records
3. Multiview realtime stats, validated into ChannelSnapshot

Every transport, status or payload problem surfaces as BackendError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

import aiohttp
import orjson

from ..engine.rankings import RankingTable
from ..types import ChannelSnapshot, Record

log = logging.getLogger(__name__)

MULTIVIEW_COMMAND = "get_multiview_realtime_stats"

_SCALAR_TYPES = (int, float, str, type(None))


class BackendError(RuntimeError):
    """Backend unreachable, returned an error status, or sent a malformed payload."""


def parse_records(data: Any) -> list[Record]:
    """Validate a ranking payload: a list of flat objects with scalar values."""
    if not isinstance(data, list):
        raise BackendError(f"expected a list of records, got {type(data).__name__}")

    records: list[Record] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise BackendError(f"record {index}: expected object, got {type(item).__name__}")
        for field, value in item.items():
            if not isinstance(value, _SCALAR_TYPES):
                raise BackendError(
                    f"record {index}: field {field!r} has non-scalar value of type {type(value).__name__}"
                )
        records.append(item)
    return records


def _field(obj: dict, name: str, types: tuple[type, ...], optional: bool = False, default: Any = None) -> Any:
    if name not in obj:
        if optional:
            return default
        raise BackendError(f"missing field {name!r}")
    value = obj[name]
    if value is None:
        if optional:
            return None
        raise BackendError(f"field {name!r} must not be null")
    # bool is an int subclass; only accept it where bool is asked for
    if isinstance(value, bool) and bool not in types:
        raise BackendError(f"field {name!r}: unexpected boolean")
    if not isinstance(value, types):
        raise BackendError(f"field {name!r}: expected {'/'.join(t.__name__ for t in types)}, got {type(value).__name__}")
    return value


def _count(obj: dict, name: str, optional: bool = False, default: Any = None) -> int | None:
    value = _field(obj, name, (int, float), optional=optional, default=default)
    return None if value is None else int(value)


def parse_channel_snapshot(obj: Any) -> ChannelSnapshot:
    """
    Validate one multiview stats object.

    Expected format (snake_case):
        {channel_id, channel_name, stream_id, is_live, viewer_count,
         chat_rate_1min, chat_rate_5s, category, title, collected_at}

    Server-side event_flags are ignored; flags are classified locally.
    """
    if not isinstance(obj, dict):
        raise BackendError(f"expected channel stats object, got {type(obj).__name__}")

    return ChannelSnapshot(
        channel_id=_count(obj, "channel_id"),
        channel_name=_field(obj, "channel_name", (str,)),
        viewer_count=_count(obj, "viewer_count", optional=True),
        chat_rate_5s=_count(obj, "chat_rate_5s", optional=True, default=0) or 0,
        chat_rate_1min=_count(obj, "chat_rate_1min", optional=True, default=0) or 0,
        category=_field(obj, "category", (str,), optional=True),
        collected_at=_field(obj, "collected_at", (str,), optional=True),
        stream_id=_count(obj, "stream_id", optional=True),
        is_live=_field(obj, "is_live", (bool,), optional=True, default=True),
        title=_field(obj, "title", (str,), optional=True),
    )


class BackendClient:
    """
    Async backend client.

    Usage:
        async with BackendClient("http://127.0.0.1:8787") as client:
            records = await client.fetch_ranking(TOP_CHANNELS)
            snapshots = await client.fetch_multiview_stats([1, 2, 3])
    """

    def __init__(self, base_url: str, timeout_sec: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> BackendClient:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_sec)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _command_url(self, command: str) -> str:
        return f"{self.base_url}/invoke/{command}"

    async def invoke(self, command: str, **params: Any) -> Any:
        """Run a backend command and return its decoded JSON result."""
        if self._session is None:
            raise BackendError("client is not open")

        url = self._command_url(command)
        body = orjson.dumps({k: v for k, v in params.items() if v is not None})
        try:
            async with self._session.post(
                url, data=body, headers={"Content-Type": "application/json"}
            ) as resp:
                resp.raise_for_status()
                raw = await resp.read()
        except aiohttp.ClientResponseError as exc:
            raise BackendError(f"{command}: HTTP {exc.status} {exc.message}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise BackendError(f"{command}: {str(exc) or type(exc).__name__}") from exc

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as exc:
            raise BackendError(f"{command}: invalid JSON response ({exc})") from exc

    async def fetch_ranking(
        self,
        table: RankingTable,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> list[Record]:
        """Ranking rows for `table` over an optional time range."""
        data = await self.invoke(table.command, startTime=start_time, endTime=end_time)
        records = parse_records(data)
        log.debug("%s: %d records", table.command, len(records))
        return records

    async def fetch_multiview_stats(self, channel_ids: Iterable[int]) -> list[ChannelSnapshot]:
        """Current snapshot for each requested channel."""
        ids = list(channel_ids)
        if not ids:
            return []
        data = await self.invoke(MULTIVIEW_COMMAND, channelIds=ids)
        if not isinstance(data, list):
            raise BackendError(f"{MULTIVIEW_COMMAND}: expected a list, got {type(data).__name__}")
        return [parse_channel_snapshot(item) for item in data]
