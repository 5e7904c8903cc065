"""
Push subscription: WebSocket eth_subscribe("logs") → RawLog → callback.

Connects to the node's WebSocket endpoint, registers a topic/address filter,
and forwards each notification until stopped. Auto-reconnects with exponential
backoff; every failure is logged as a SubscriptionError and never escapes run().
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from backend_jarwatch.core.exceptions import SubscriptionError
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.ledger.models import LogFilter, RawLog

logger = get_logger(__name__)

DEFAULT_WS_PING_INTERVAL = 30.0
DEFAULT_WS_PING_TIMEOUT = 10.0
DEFAULT_RECONNECT_MIN_SEC = 1.0
DEFAULT_RECONNECT_MAX_SEC = 60.0
_SUBSCRIBE_TIMEOUT = 10.0
_WS_CLOSE_TIMEOUT = 5.0

LogCallback = Callable[[RawLog], Awaitable[None]]


class LogSubscriber:
    """
    eth_subscribe("logs") client for one WebSocket endpoint.

    run() blocks until stop_event is set or the task is cancelled.
    """

    def __init__(
        self,
        ws_url: str,
        *,
        reconnect_min_sec: float = DEFAULT_RECONNECT_MIN_SEC,
        reconnect_max_sec: float = DEFAULT_RECONNECT_MAX_SEC,
        ping_interval: float | None = DEFAULT_WS_PING_INTERVAL,
        ping_timeout: float | None = DEFAULT_WS_PING_TIMEOUT,
    ) -> None:
        if not ws_url.strip():
            raise ValueError("ws_url must be non-empty")
        self._ws_url = ws_url.strip()
        self._reconnect_min = reconnect_min_sec
        self._reconnect_max = reconnect_max_sec
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._ids = itertools.count(1)

    async def run(
        self,
        log_filter: LogFilter,
        on_log: LogCallback,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        stop = stop_event or asyncio.Event()
        backoff = self._reconnect_min
        run_id = 0
        while not stop.is_set():
            run_id += 1
            try:
                logger.info("subscription_connecting", run_id=run_id, url=self._ws_url)
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                    close_timeout=_WS_CLOSE_TIMEOUT,
                ) as ws:
                    sub_id = await self._subscribe(ws, log_filter)
                    backoff = self._reconnect_min
                    logger.info("subscription_connected", run_id=run_id, subscription_id=sub_id)
                    await self._receive_loop(ws, sub_id, on_log, stop)
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as e:
                logger.warning(
                    "subscription_disconnected",
                    run_id=run_id,
                    code=getattr(e.rcvd, "code", None),
                    reason=getattr(e.rcvd, "reason", None),
                )
            except Exception as e:
                err = e if isinstance(e, SubscriptionError) else SubscriptionError(str(e))
                logger.warning("subscription_error", run_id=run_id, error=str(err), exc_info=True)

            if stop.is_set():
                break
            logger.info("subscription_reconnect", run_id=run_id, backoff_sec=round(backoff, 1))
            try:
                await asyncio.wait_for(stop.wait(), timeout=backoff)
            except asyncio.TimeoutError:
                pass
            backoff = min(backoff * 2, self._reconnect_max)
        logger.info("subscription_stopped", run_id=run_id)

    async def _subscribe(self, ws: Any, log_filter: LogFilter) -> str:
        """Send eth_subscribe and read its response (first message on a fresh connection)."""
        req_id = next(self._ids)
        req = {
            "jsonrpc": "2.0",
            "id": req_id,
            "method": "eth_subscribe",
            "params": ["logs", log_filter.to_rpc_params()],
        }
        await ws.send(json.dumps(req))
        try:
            raw = await asyncio.wait_for(ws.recv(), timeout=_SUBSCRIBE_TIMEOUT)
            msg = json.loads(raw)
        except (asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise SubscriptionError(f"eth_subscribe got no valid response: {e}") from e
        if msg.get("error"):
            raise SubscriptionError(f"eth_subscribe rejected: {msg['error']}")
        sub_id = msg.get("result")
        if not sub_id:
            raise SubscriptionError(f"eth_subscribe returned no subscription id: {msg}")
        return str(sub_id)

    async def _receive_loop(
        self,
        ws: Any,
        sub_id: str,
        on_log: LogCallback,
        stop: asyncio.Event,
    ) -> None:
        async for raw in ws:
            if stop.is_set():
                return
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if msg.get("method") != "eth_subscription":
                continue
            params = msg.get("params") or {}
            if str(params.get("subscription")) != sub_id:
                continue
            try:
                log = RawLog.from_rpc_item(params.get("result") or {})
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("subscription_bad_notification", error=str(e))
                continue
            await on_log(log)
