"""WebSocket client for a Baileys bridge process.

The bridge owns the WhatsApp socket (pairing, encryption, multi-device sync)
and relays it as JSON frames:

- events, bridge → bot: ``{"event": "connection.update", "data": {...}}``
- requests, bot → bridge: ``{"id": "...", "action": "sendMessage", ...}``
- responses, bridge → bot: ``{"id": "...", "ok": true, "result": {...}}``

Binary values travel as ``{"$binary": "<base64>"}``.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import json
import os
import uuid
from pathlib import Path
from typing import Any

import structlog
import websockets

from wabot.config import BridgeConfig
from wabot.errors import TransportClosedError, TransportError
from wabot.transport.base import EVENT_CONNECTION_UPDATE, EventHandler, Transport

logger = structlog.get_logger()

CREDS_FILE = "creds.json"

# Baileys DisconnectReason.connectionClosed
CONNECTION_CLOSED_CODE = 428


def _encode(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return {"$binary": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode_binary(value: Any) -> bytes:
    if isinstance(value, dict) and "$binary" in value:
        return base64.b64decode(value["$binary"])
    if isinstance(value, str):
        return base64.b64decode(value)
    raise TransportError("bridge returned no binary payload")


class BridgeTransport(Transport):
    """Transport backed by a Baileys bridge over WebSocket."""

    def __init__(self, config: BridgeConfig, session_dir: str) -> None:
        self.config = config
        self.session_dir = Path(session_dir)
        self._ws: Any | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._event_tasks: set[asyncio.Task[None]] = set()
        self._on_event: EventHandler | None = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self, on_event: EventHandler) -> None:
        self._on_event = on_event
        self._closing = False
        logger.info("transport.bridge.connecting", url=self.config.url)
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(
                    self.config.url,
                    max_size=self.config.max_frame_bytes,
                    ping_interval=20,
                    ping_timeout=20,
                ),
                timeout=self.config.connect_timeout_s,
            )
        except (OSError, TimeoutError, websockets.WebSocketException) as e:
            raise TransportError(f"cannot reach bridge at {self.config.url}: {e}") from e

        self._reader_task = asyncio.create_task(self._read_loop(), name="wabot-bridge-reader")
        await self._request(
            "auth",
            token=self.config.token,
            creds=self._load_credentials(),
        )
        logger.info("transport.bridge.connected", url=self.config.url)

    async def send_message(self, chat_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("sendMessage", jid=chat_id, content=payload)
        return result if isinstance(result, dict) else {}

    async def download_media(self, raw_message: dict[str, Any]) -> bytes:
        result = await self._request("downloadMedia", message=raw_message)
        data = result.get("data") if isinstance(result, dict) else result
        return _decode_binary(data)

    async def save_credentials(self, creds: dict[str, Any]) -> None:
        self.session_dir.mkdir(parents=True, exist_ok=True)
        target = self.session_dir / CREDS_FILE
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(creds), encoding="utf-8")
        os.replace(tmp, target)
        logger.debug("transport.bridge.creds_saved", path=str(target))

    async def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None
        self._fail_pending("transport closed")

    def _load_credentials(self) -> dict[str, Any] | None:
        path = self.session_dir / CREDS_FILE
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("transport.bridge.creds_unreadable", path=str(path), error=str(e))
            return None
        return data if isinstance(data, dict) else None

    async def _request(self, action: str, **fields: Any) -> Any:
        ws = self._ws
        if ws is None:
            raise TransportClosedError(f"cannot {action}: bridge not connected")

        request_id = uuid.uuid4().hex
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await ws.send(json.dumps(_encode({"id": request_id, "action": action, **fields})))
            return await asyncio.wait_for(future, timeout=self.config.request_timeout_s)
        except TimeoutError as e:
            raise TransportError(f"bridge {action} timed out") from e
        except websockets.WebSocketException as e:
            raise TransportError(f"bridge {action} failed: {e}") from e
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            async for raw in ws:
                self._handle_frame(raw)
        except websockets.ConnectionClosed as e:
            logger.warning("transport.bridge.closed", code=e.code, reason=e.reason)
        finally:
            self._fail_pending("bridge connection lost")
            if not self._closing:
                self._ws = None
                self._dispatch(
                    EVENT_CONNECTION_UPDATE,
                    {
                        "connection": "close",
                        "lastDisconnect": {
                            "error": {
                                "message": "Connection Closed",
                                "statusCode": CONNECTION_CLOSED_CODE,
                            }
                        },
                    },
                )

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("transport.bridge.invalid_json")
            return
        if not isinstance(frame, dict):
            return

        request_id = frame.get("id")
        if isinstance(request_id, str) and "event" not in frame:
            future = self._pending.get(request_id)
            if future is None or future.done():
                return
            if frame.get("ok"):
                future.set_result(frame.get("result"))
            else:
                future.set_exception(TransportError(str(frame.get("error") or "bridge request failed")))
            return

        event = frame.get("event")
        data = frame.get("data")
        if isinstance(event, str):
            self._dispatch(event, data if isinstance(data, dict) else {})

    def _dispatch(self, event: str, data: dict[str, Any]) -> None:
        if self._on_event is None:
            return
        # Run handlers off the reader loop so request responses keep flowing
        task = asyncio.create_task(self._run_handler(event, data))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)

    async def _run_handler(self, event: str, data: dict[str, Any]) -> None:
        if self._on_event is None:
            return
        try:
            await self._on_event(event, data)
        except Exception:
            logger.exception("transport.bridge.handler_failed", event_name=event)

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportClosedError(reason))
        self._pending.clear()
