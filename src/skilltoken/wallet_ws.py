# skilltoken/wallet_ws.py
"""
Websocket-backed wallet provider.

An external wallet agent (browser extension bridge, desktop signer, ...)
listens on a websocket and answers JSON requests:

    -> {"id": 1, "method": "account", "params": {}}
    <- {"id": 1, "result": {"address": "0x..."}}
    <- {"id": 1, "error": {"code": 4001, "message": "User rejected"}}

``wallet_link`` keeps a connection to the agent, injecting the provider into
the ProviderSlot while connected and removing it when the link drops, with
exponential backoff between reconnects.
"""
import asyncio
import itertools
import json
import logging
from typing import Any

import websockets

import skilltoken.constants as C
from skilltoken.wallet import ProviderSlot

log = logging.getLogger("skilltoken.wallet_ws")

RECONNECT_BASE = 1.0
RECONNECT_MAX = 10.0


class WalletRpcError(Exception):
    def __init__(self, code: Any, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{message} (code {code})")


class WebsocketWalletProvider:
    def __init__(self, ws, *, request_timeout: float = C.RPC_TIMEOUT) -> None:
        self.ws = ws
        self.request_timeout = request_timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}

    async def _call(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        req_id = next(self._ids)
        fut = asyncio.get_running_loop().create_future()
        self._pending[req_id] = fut
        try:
            await self.ws.send(json.dumps({"id": req_id, "method": method, "params": params or {}}))
            if timeout is None:
                return await fut
            return await asyncio.wait_for(fut, timeout=timeout)
        finally:
            self._pending.pop(req_id, None)

    async def connect(self) -> Any:
        return await self._call("connect", timeout=self.request_timeout)

    async def account(self) -> Any:
        return await self._call("account", timeout=self.request_timeout)

    async def is_connected(self) -> bool:
        return bool(await self._call("isConnected", timeout=self.request_timeout))

    async def sign_and_submit_transaction(self, payload: dict[str, Any]) -> Any:
        # No timeout: the user may take a while to approve.
        return await self._call("signAndSubmitTransaction", {"payload": payload})

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            log.debug("Wallet WS raw (non-JSON): %s", str(raw)[:200])
            return
        if not isinstance(msg, dict):
            log.debug("Wallet WS unexpected message: %r", msg)
            return

        req_id = msg.get("id")
        if not isinstance(req_id, int) or isinstance(req_id, bool):
            log.debug("Wallet WS message without a request id: %r", msg)
            return
        fut = self._pending.get(req_id)
        if fut is None or fut.done():
            log.debug("Wallet WS message for unknown request: %s", req_id)
            return
        error = msg.get("error")
        if error is not None:
            if isinstance(error, dict):
                fut.set_exception(WalletRpcError(error.get("code"), str(error.get("message", "wallet error"))))
            else:
                fut.set_exception(WalletRpcError(None, str(error)))
        else:
            fut.set_result(msg.get("result"))

    def fail_pending(self, exc: BaseException) -> None:
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(exc)
        self._pending.clear()

    async def serve(self) -> None:
        """Read responses until the connection closes."""
        try:
            async for raw in self.ws:
                self._dispatch(raw)
        except websockets.ConnectionClosed as e:
            log.warning("Wallet WS closed: %s", e)
        finally:
            self.fail_pending(ConnectionError("wallet connection closed"))


async def wallet_link(stop: asyncio.Event, ws_url: str, slot: ProviderSlot) -> None:
    """Keep the wallet agent injected into ``slot`` for as long as it is reachable."""
    backoff = RECONNECT_BASE

    while not stop.is_set():
        try:
            async with websockets.connect(
                ws_url,
                ping_interval=20,
                ping_timeout=20,
                close_timeout=1,
            ) as ws:
                log.info("Wallet WS connected: %s", ws_url)
                provider = WebsocketWalletProvider(ws)
                slot.inject(provider)
                backoff = RECONNECT_BASE
                try:
                    serve_task = asyncio.create_task(provider.serve())
                    halt_task = asyncio.create_task(stop.wait())

                    done, pending = await asyncio.wait(
                        {serve_task, halt_task},
                        return_when=asyncio.FIRST_COMPLETED,
                    )
                    for t in pending:
                        t.cancel()

                    if halt_task in done:
                        log.info("Wallet link received stop signal")
                        return
                finally:
                    slot.eject(provider)
                    provider.fail_pending(ConnectionError("wallet link stopped"))

        except asyncio.CancelledError:
            log.info("Wallet link cancelled")
            raise
        except Exception as e:
            log.error("Wallet WS connection error: %s", e)

        if stop.is_set():
            break

        log.info("Wallet WS reconnecting in %.1fs", backoff)
        await asyncio.sleep(backoff)
        backoff = min(backoff * 2, RECONNECT_MAX)

    log.info("Wallet link stopped")
