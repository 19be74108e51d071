import time

import pytest
from fastapi.testclient import TestClient

from skilltoken.app import create_app
from skilltoken.wallet import ProviderSlot

from conftest import SAMPLE_MODULE, SAMPLE_TX_HASH, FakeLedger, FakeProvider, raw_token


def _cfg(module_address: str | None = SAMPLE_MODULE) -> dict:
    return {
        "ledger": {"node_url": "https://node.test/v1", "module_address": module_address},
        "wallet": {"ws_url": None},
        "monitor": {"max_attempts": 3, "poll_interval": 0},
        "confirmation": {"max_attempts": 3, "retry_delay": 0, "attempt_timeout": 1},
    }


def _wait_detected(client: TestClient) -> dict:
    deadline = time.monotonic() + 2
    while True:
        state = client.get("/state").json()
        if not state["checking_wallet"] or time.monotonic() > deadline:
            return state
        time.sleep(0.01)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(view_result=[raw_token()])


@pytest.fixture
def client(ledger):
    app = create_app(_cfg(), ledger=ledger, slot=ProviderSlot(FakeProvider(connected=False)))
    with TestClient(app) as c:
        yield c


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_state_after_detection(client):
    state = _wait_detected(client)
    assert state["availability"] == "AVAILABLE"
    assert state["session"] is None


def test_connect_and_list(client):
    r = client.post("/wallet/connect")
    assert r.status_code == 200
    assert r.json()["session"]["address"] == "0xabc123"

    r = client.get("/tokens")
    assert r.status_code == 200
    assert [t["token_id"] for t in r.json()["tokens"]] == ["1"]


def test_tokens_before_connect(client):
    r = client.get("/tokens")
    assert r.status_code == 409
    assert r.json()["error"] == "not_connected"


def test_mint(client):
    client.post("/wallet/connect")
    r = client.post("/tokens/mint", json={"skill_name": "Rust", "skill_level": 5})
    assert r.status_code == 200
    body = r.json()
    assert body["tx_hash"] == SAMPLE_TX_HASH
    assert body["attempts"] == 1


@pytest.mark.parametrize(
    "body",
    [{"skill_name": "", "skill_level": 5}, {"skill_name": "Rust", "skill_level": 0}, {"skill_name": "Rust", "skill_level": 101}],
)
def test_mint_validates_input(client, body):
    client.post("/wallet/connect")
    assert client.post("/tokens/mint", json=body).status_code == 422


def test_mint_timeout_maps_to_504(ledger, client):
    client.post("/wallet/connect")
    ledger.confirm_default = TimeoutError()
    r = client.post("/tokens/mint", json={"skill_name": "Rust", "skill_level": 5})
    assert r.status_code == 504
    assert r.json()["detail"] == "Transaction confirmation timed out"
    assert client.get("/state").json()["error"] == "Transaction confirmation timed out"


def test_missing_module_address_is_reported_not_fatal():
    app = create_app(_cfg(module_address=None), ledger=FakeLedger(), slot=ProviderSlot(FakeProvider(connected=False)))
    with TestClient(app) as c:
        assert c.get("/health").status_code == 200
        r = c.post("/tokens/mint", json={"skill_name": "Rust", "skill_level": 5})
        assert r.status_code == 500
        assert r.json()["error"] == "configuration_missing"


def test_no_provider_reports_unavailable():
    app = create_app(_cfg(), ledger=FakeLedger(), slot=ProviderSlot())
    with TestClient(app) as c:
        state = _wait_detected(c)
        assert state["availability"] == "UNAVAILABLE"
        assert c.post("/wallet/connect").status_code == 503
