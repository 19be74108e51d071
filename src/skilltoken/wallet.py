"""
Wallet provider boundary.

A provider is injected by a third party at some unspecified time, so the
bridge never holds one directly: it looks it up in a ProviderSlot on every
call. An empty slot is an expected state, reported as WalletUnavailable.
"""
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from skilltoken.errors import (
    AccountUnavailable,
    MissingTransactionHash,
    SubmissionRejected,
    WalletUnavailable,
)
from skilltoken.models import EntryFunctionPayload, PendingTransaction

log = logging.getLogger("skilltoken.wallet")


@runtime_checkable
class WalletProvider(Protocol):
    async def connect(self) -> Any: ...
    async def account(self) -> Any: ...
    async def is_connected(self) -> bool: ...
    async def sign_and_submit_transaction(self, payload: dict[str, Any]) -> Any: ...


class ProviderSlot:
    """The one place a wallet provider can appear in."""

    def __init__(self, provider: WalletProvider | None = None) -> None:
        self._provider = provider

    @property
    def provider(self) -> WalletProvider | None:
        return self._provider

    def present(self) -> bool:
        return self._provider is not None

    def inject(self, provider: WalletProvider) -> None:
        log.info("Wallet provider injected: %s", type(provider).__name__)
        self._provider = provider

    def eject(self, provider: WalletProvider | None = None) -> None:
        # Only eject the given provider, so a stale link can't remove a newer one.
        if provider is None or provider is self._provider:
            if self._provider is not None:
                log.info("Wallet provider removed: %s", type(self._provider).__name__)
            self._provider = None


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


class WalletBridge:
    def __init__(self, slot: ProviderSlot) -> None:
        self.slot = slot

    def _require(self) -> WalletProvider:
        provider = self.slot.provider
        if provider is None:
            raise WalletUnavailable()
        return provider

    def available(self) -> bool:
        return self.slot.present()

    async def connect(self) -> None:
        provider = self._require()
        response = await provider.connect()
        log.debug("Wallet connection response: %r", response)

    async def get_account(self) -> str:
        """Current account address exactly as the provider reports it."""
        provider = self._require()
        account = await provider.account()
        log.debug("Account info: %r", account)
        address = _get(account, "address") if account is not None else None
        if not address or not isinstance(address, str):
            raise AccountUnavailable()
        return address

    async def is_connected(self) -> bool:
        provider = self.slot.provider
        if provider is None:
            return False
        connected = bool(await provider.is_connected())
        log.debug("Wallet connection status: %s", connected)
        return connected

    async def sign_and_submit(self, payload: EntryFunctionPayload) -> PendingTransaction:
        provider = self._require()
        log.info("Submitting transaction: %s", payload.function)
        try:
            result = await provider.sign_and_submit_transaction(payload.to_dict())
        except Exception as e:
            log.warning("Wallet declined transaction: %r", e)
            raise SubmissionRejected(str(e) or None) from e
        log.info("Transaction submitted: %r", result)

        tx_hash = _get(result, "hash") if result is not None else None
        if not tx_hash:
            raise MissingTransactionHash()
        return PendingTransaction(hash=str(tx_hash))
