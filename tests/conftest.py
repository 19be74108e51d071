"""Shared fakes: wallet provider, ledger client and a sleep that only records."""
from typing import Any

import pytest

from skilltoken.models import ViewRequest
from skilltoken.wallet import ProviderSlot, WalletBridge

SAMPLE_MODULE = "0xcafe"
SAMPLE_ADDRESS = "0xabc123"
SAMPLE_TX_HASH = "0x" + "ab" * 32


class FakeProvider:
    """Minimal WalletProvider for testing."""

    def __init__(
        self,
        *,
        address: str | None = SAMPLE_ADDRESS,
        connected: bool = True,
        tx_result: Any = None,
        sign_should_raise: Exception | None = None,
        account_should_raise: Exception | None = None,
    ) -> None:
        self.addresses = [address]
        self.connected = connected
        self.tx_result = tx_result if tx_result is not None else {"hash": SAMPLE_TX_HASH}
        self.sign_should_raise = sign_should_raise
        self.account_should_raise = account_should_raise
        self.connect_calls = 0
        self.account_calls = 0
        self.sign_calls: list[dict[str, Any]] = []

    def switch_account(self, address: str | None) -> None:
        self.addresses.append(address)

    async def connect(self) -> Any:
        self.connect_calls += 1
        self.connected = True
        return {"status": "ok"}

    async def account(self) -> Any:
        self.account_calls += 1
        if self.account_should_raise is not None:
            raise self.account_should_raise
        address = self.addresses[-1]
        return {"address": address, "publicKey": "0x01"} if address is not None else {}

    async def is_connected(self) -> bool:
        return self.connected

    async def sign_and_submit_transaction(self, payload: dict[str, Any]) -> Any:
        self.sign_calls.append(payload)
        if self.sign_should_raise is not None:
            raise self.sign_should_raise
        return self.tx_result


class FakeLedger:
    """Minimal LedgerClient for testing.

    ``confirm_outcomes`` is consumed one entry per confirmation check: an
    exception instance is raised, anything else counts as confirmed. Once
    exhausted, ``confirm_default`` applies.
    """

    def __init__(
        self,
        *,
        view_result: Any = None,
        view_should_raise: Exception | None = None,
        confirm_outcomes: list[Any] | None = None,
        confirm_default: Any = None,
    ) -> None:
        self.view_result = view_result
        self.view_should_raise = view_should_raise
        self.confirm_outcomes = list(confirm_outcomes or [])
        self.confirm_default = confirm_default
        self.view_calls: list[ViewRequest] = []
        self.wait_calls: list[tuple[str, float]] = []

    async def view(self, request: ViewRequest) -> Any:
        self.view_calls.append(request)
        if self.view_should_raise is not None:
            raise self.view_should_raise
        return self.view_result

    async def wait_for_transaction(self, tx_hash: str, *, timeout: float) -> dict[str, Any]:
        self.wait_calls.append((tx_hash, timeout))
        outcome = self.confirm_outcomes.pop(0) if self.confirm_outcomes else self.confirm_default
        if isinstance(outcome, BaseException):
            raise outcome
        return {"hash": tx_hash, "success": True}


class RecordingSleep:
    def __init__(self, on_sleep=None) -> None:
        self.delays: list[float] = []
        self.on_sleep = on_sleep

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(len(self.delays))


def raw_token(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "token_id": "1",
        "skill_name": "Rust",
        "skill_level": "5",
        "owner": "0xabc",
        "endorsements": "2",
        "created_at": "1700000000000",
    }
    record.update(overrides)
    return record


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def slot(provider: FakeProvider) -> ProviderSlot:
    return ProviderSlot(provider)


@pytest.fixture
def bridge(slot: ProviderSlot) -> WalletBridge:
    return WalletBridge(slot)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
