from __future__ import annotations

import asyncio
import json

import pytest

from wabot.config import BridgeConfig
from wabot.errors import TransportClosedError, TransportError
from wabot.transport.bridge import BridgeTransport, _decode_binary, _encode


class _FakeSocket:
    def __init__(self) -> None:
        self.frames: list[dict] = []
        self.closed = False

    async def send(self, raw: str) -> None:
        self.frames.append(json.loads(raw))

    async def close(self) -> None:
        self.closed = True


def test_binary_values_round_trip_through_json() -> None:
    encoded = _encode({"sticker": b"\x00\x01", "nested": [b"x"], "text": "hi"})

    assert encoded["text"] == "hi"
    assert _decode_binary(encoded["sticker"]) == b"\x00\x01"
    assert _decode_binary(encoded["nested"][0]) == b"x"
    json.dumps(encoded)


def test_decode_binary_rejects_missing_payload() -> None:
    with pytest.raises(TransportError):
        _decode_binary(None)


@pytest.mark.asyncio
async def test_credentials_are_saved_and_reloaded(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path / "session"))

    await bridge.save_credentials({"me": {"id": "628"}})

    assert bridge._load_credentials() == {"me": {"id": "628"}}
    assert not (tmp_path / "session" / "creds.json.tmp").exists()


@pytest.mark.asyncio
async def test_unreadable_credentials_are_ignored(tmp_path) -> None:
    session = tmp_path / "session"
    session.mkdir()
    (session / "creds.json").write_text("{not json")

    assert BridgeTransport(BridgeConfig(), str(session))._load_credentials() is None


@pytest.mark.asyncio
async def test_request_without_connection_raises(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path))

    with pytest.raises(TransportClosedError):
        await bridge.send_message("628@s.whatsapp.net", {"text": "hi"})


@pytest.mark.asyncio
async def test_responses_resolve_pending_requests(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path))
    socket = _FakeSocket()
    bridge._ws = socket

    request = asyncio.create_task(bridge.send_message("628@s.whatsapp.net", {"text": "hi"}))
    while not socket.frames:
        await asyncio.sleep(0)
    sent = socket.frames[0]
    bridge._handle_frame(json.dumps({"id": sent["id"], "ok": True, "result": {"key": {"id": "M1"}}}))

    assert await request == {"key": {"id": "M1"}}
    assert sent["action"] == "sendMessage"
    assert sent["jid"] == "628@s.whatsapp.net"
    assert sent["content"] == {"text": "hi"}


@pytest.mark.asyncio
async def test_error_responses_raise(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path))
    socket = _FakeSocket()
    bridge._ws = socket

    request = asyncio.create_task(bridge.download_media({"key": {}}))
    while not socket.frames:
        await asyncio.sleep(0)
    bridge._handle_frame(json.dumps({"id": socket.frames[0]["id"], "ok": False, "error": "gone"}))

    with pytest.raises(TransportError, match="gone"):
        await request


@pytest.mark.asyncio
async def test_event_frames_reach_the_handler(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path))
    received: list[tuple[str, dict]] = []

    async def on_event(event: str, data: dict) -> None:
        received.append((event, data))

    bridge._on_event = on_event
    bridge._handle_frame(json.dumps({"event": "messages.upsert", "data": {"messages": []}}))
    bridge._handle_frame("not json")
    await asyncio.gather(*bridge._event_tasks)

    assert received == [("messages.upsert", {"messages": []})]


@pytest.mark.asyncio
async def test_close_fails_pending_requests(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path))
    socket = _FakeSocket()
    bridge._ws = socket

    request = asyncio.create_task(bridge.send_message("628@s.whatsapp.net", {"text": "hi"}))
    while not socket.frames:
        await asyncio.sleep(0)
    await bridge.close()

    assert socket.closed
    with pytest.raises(TransportClosedError):
        await request


@pytest.mark.asyncio
async def test_events_without_a_handler_are_dropped(tmp_path) -> None:
    bridge = BridgeTransport(BridgeConfig(), str(tmp_path))

    bridge._handle_frame(json.dumps({"event": "creds.update", "data": {}}))
    await bridge._run_handler("creds.update", {})

    assert bridge._event_tasks == set()
