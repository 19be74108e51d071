import httpx
import pytest

from skilltoken.errors import ConfigurationMissing, InvalidResponseFormat, LedgerRequestFailed
from skilltoken.retry import Cancelled, Liveness
from skilltoken.store import TokenStore

from conftest import SAMPLE_MODULE, FakeLedger, raw_token


async def _seeded_store(ledger: FakeLedger) -> TokenStore:
    store = TokenStore(ledger, SAMPLE_MODULE)
    ledger.view_result = [raw_token(token_id="seed")]
    await store.sync("0xabc")
    assert [t.token_id for t in store.tokens] == ["seed"]
    return store


@pytest.mark.asyncio
async def test_sync_normalizes_address_before_query():
    ledger = FakeLedger(view_result=[raw_token()])
    store = TokenStore(ledger, SAMPLE_MODULE)
    tokens = await store.sync("abc")
    assert [t.token_id for t in tokens] == ["1"]
    assert ledger.view_calls[0].arguments == ["0xabc"]
    assert ledger.view_calls[0].function == f"{SAMPLE_MODULE}::skill_token::get_user_tokens"
    assert store.address == "0xabc"


@pytest.mark.asyncio
async def test_null_response_yields_empty():
    ledger = FakeLedger()
    store = await _seeded_store(ledger)
    ledger.view_result = None
    assert await store.sync("0xabc") == []
    assert store.tokens == []


@pytest.mark.asyncio
async def test_scenario_c_invalid_format_clears_store():
    ledger = FakeLedger()
    store = await _seeded_store(ledger)
    ledger.view_result = "unexpected-string"
    with pytest.raises(InvalidResponseFormat):
        await store.sync("0xabc")
    assert store.tokens == []
    assert store.address is None


@pytest.mark.asyncio
async def test_sync_replaces_never_merges():
    ledger = FakeLedger()
    store = await _seeded_store(ledger)
    ledger.view_result = [raw_token(token_id="new1"), raw_token(token_id="new2")]
    await store.sync("0xabc")
    assert [t.token_id for t in store.tokens] == ["new1", "new2"]


@pytest.mark.asyncio
async def test_transport_error_clears_and_wraps():
    ledger = FakeLedger()
    store = await _seeded_store(ledger)
    ledger.view_should_raise = httpx.ConnectError("boom")
    with pytest.raises(LedgerRequestFailed):
        await store.sync("0xabc")
    assert store.tokens == []


@pytest.mark.asyncio
async def test_missing_module_address():
    ledger = FakeLedger(view_result=[raw_token()])
    store = TokenStore(ledger, None)
    with pytest.raises(ConfigurationMissing):
        await store.sync("0xabc")
    assert ledger.view_calls == []
    assert store.tokens == []


@pytest.mark.asyncio
async def test_torn_down_sync_does_not_write():
    ledger = FakeLedger()
    store = await _seeded_store(ledger)
    liveness = Liveness()

    async def view_then_teardown(request):
        liveness.cancel()
        return [raw_token(token_id="late")]

    ledger.view = view_then_teardown
    with pytest.raises(Cancelled):
        await store.sync("0xabc", liveness=liveness)
    assert [t.token_id for t in store.tokens] == ["seed"]
