"""
Ledger client: the network boundary for view calls and confirmation checks.

The core depends only on the LedgerClient protocol. AptosRestClient is the
concrete implementation against a fullnode REST API:

    POST {node_url}/view                          -> JSON return values
    GET  {node_url}/transactions/by_hash/{hash}   -> 404 / pending / committed
"""
import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

import skilltoken.constants as C
from skilltoken.models import ViewRequest

log = logging.getLogger("skilltoken.ledger")


class TransactionFailed(Exception):
    """The transaction was committed but did not succeed on chain."""

    def __init__(self, tx_hash: str, vm_status: str | None) -> None:
        self.tx_hash = tx_hash
        self.vm_status = vm_status
        super().__init__(f"transaction {tx_hash} failed: {vm_status}")


@runtime_checkable
class LedgerClient(Protocol):
    async def view(self, request: ViewRequest) -> Any:
        """Run a read-only view call and return the decoded JSON as-is."""
        ...

    async def wait_for_transaction(self, tx_hash: str, *, timeout: float) -> dict[str, Any]:
        """Block until the transaction is committed successfully.

        Raises TimeoutError if it is still pending after ``timeout`` seconds
        and TransactionFailed if it was committed but failed.
        """
        ...


class AptosRestClient:
    def __init__(
        self,
        node_url: str,
        *,
        rpc_timeout: float = C.RPC_TIMEOUT,
        poll_interval: float = C.CONFIRM_POLL_INTERVAL,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.node_url = node_url.rstrip("/")
        self.poll_interval = poll_interval
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=rpc_timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "AptosRestClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def view(self, request: ViewRequest) -> Any:
        log.debug("view %s args=%s", request.function, request.arguments)
        r = await self.http.post(f"{self.node_url}/view", json=request.to_dict())
        r.raise_for_status()
        body = r.json()
        # The node returns the list of Move return values; get_user_tokens has one.
        if isinstance(body, list) and len(body) <= 1:
            return body[0] if body else None
        return body

    async def _get_tx(self, tx_hash: str) -> dict[str, Any] | None:
        r = await self.http.get(f"{self.node_url}/transactions/by_hash/{tx_hash}")
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json()

    async def wait_for_transaction(self, tx_hash: str, *, timeout: float = C.CONFIRM_ATTEMPT_TIMEOUT) -> dict[str, Any]:
        async with asyncio.timeout(timeout):
            while True:
                tx = await self._get_tx(tx_hash)
                if tx is None or tx.get("type") == "pending_transaction":
                    await asyncio.sleep(self.poll_interval)
                    continue

                if not tx.get("success", False):
                    raise TransactionFailed(tx_hash, tx.get("vm_status"))
                log.info("Transaction confirmed: %s (version %s)", tx_hash, tx.get("version"))
                return tx
