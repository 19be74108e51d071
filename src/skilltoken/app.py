import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import skilltoken.constants as C
from skilltoken.config import cfg as default_cfg
from skilltoken.dapp import SkillTokenDapp
from skilltoken.errors import SkillTokenError
from skilltoken.ledger import AptosRestClient, LedgerClient
from skilltoken.logging_config import setup_logging
from skilltoken.retry import RetryPolicy
from skilltoken.wallet import ProviderSlot
from skilltoken.wallet_ws import wallet_link

log = logging.getLogger("skilltoken.app")


class MintReq(BaseModel):
    skill_name: str = Field(min_length=1)
    skill_level: int = Field(ge=C.MIN_SKILL_LEVEL, le=C.MAX_SKILL_LEVEL)


def _policies(cfg: dict) -> tuple[RetryPolicy, RetryPolicy]:
    mon = cfg.get("monitor", {})
    conf = cfg.get("confirmation", {})
    monitor_policy = RetryPolicy(
        max_attempts=int(mon.get("max_attempts", C.PROVIDER_POLL_ATTEMPTS)),
        delay=float(mon.get("poll_interval", C.PROVIDER_POLL_INTERVAL)),
    )
    confirm_policy = RetryPolicy(
        max_attempts=int(conf.get("max_attempts", C.CONFIRM_ATTEMPTS)),
        delay=float(conf.get("retry_delay", C.CONFIRM_RETRY_DELAY)),
        attempt_timeout=float(conf.get("attempt_timeout", C.CONFIRM_ATTEMPT_TIMEOUT)),
    )
    return monitor_policy, confirm_policy


def create_app(
    cfg: dict | None = None,
    *,
    ledger: LedgerClient | None = None,
    slot: ProviderSlot | None = None,
) -> FastAPI:
    cfg = cfg if cfg is not None else default_cfg

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop = asyncio.Event()
        ledger_cfg = cfg.get("ledger", {})
        owned_ledger = None
        client = ledger
        if client is None:
            owned_ledger = client = AptosRestClient(
                ledger_cfg["node_url"],
                rpc_timeout=float(ledger_cfg.get("rpc_timeout", C.RPC_TIMEOUT)),
                poll_interval=float(cfg.get("confirmation", {}).get("poll_interval", C.CONFIRM_POLL_INTERVAL)),
            )
        provider_slot = slot if slot is not None else ProviderSlot()

        module_address = ledger_cfg.get("module_address")
        if not module_address:
            log.warning("No module address configured; ledger calls will fail until MODULE_ADDRESS is set")

        monitor_policy, confirm_policy = _policies(cfg)
        dapp = SkillTokenDapp(
            provider_slot,
            client,
            module_address,
            monitor_policy=monitor_policy,
            confirm_policy=confirm_policy,
        )
        app.state.dapp = dapp
        app.state.stop = stop

        ws_url = cfg.get("wallet", {}).get("ws_url")
        async with asyncio.TaskGroup() as tg:
            if ws_url:
                tg.create_task(wallet_link(stop, ws_url, provider_slot), name="wallet_link")
                log.info("Wallet link started: %s", ws_url)
            else:
                log.info("No wallet agent configured; waiting for a provider to be injected")
            dapp.start()
            try:
                yield
            finally:
                log.info("Shutting down...")
                stop.set()
                await dapp.close()
                if owned_ledger is not None:
                    await owned_ledger.aclose()

        log.info("Shutdown complete")

    app = FastAPI(
        title="SkillToken",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Wallet", "description": "Wallet detection and connection"},
            {"name": "Tokens", "description": "View and mint skill tokens"},
        ],
    )

    @app.exception_handler(SkillTokenError)
    async def skilltoken_error_handler(request: Request, exc: SkillTokenError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": exc.message, "tx_hash": exc.tx_hash},
        )

    r_wallet = APIRouter(prefix="/wallet", tags=["Wallet"])
    r_tokens = APIRouter(prefix="/tokens", tags=["Tokens"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/state")
    async def state(request: Request):
        return request.app.state.dapp.snapshot()

    @r_wallet.post("/connect")
    async def connect_wallet(request: Request):
        dapp: SkillTokenDapp = request.app.state.dapp
        await dapp.connect_wallet()
        return dapp.snapshot()

    @r_tokens.get("")
    async def list_tokens(request: Request):
        dapp: SkillTokenDapp = request.app.state.dapp
        tokens = await dapp.load_tokens()
        return {"address": dapp.state.session.address, "tokens": [t.to_dict() for t in tokens]}

    @r_tokens.post("/mint")
    async def mint(req: MintReq, request: Request):
        dapp: SkillTokenDapp = request.app.state.dapp
        result = await dapp.mint(req.skill_name, req.skill_level)
        return {
            "tx_hash": result.tx_hash,
            "attempts": result.attempts,
            "address": result.address,
            "tokens": [t.to_dict() for t in result.tokens],
        }

    app.include_router(r_wallet)
    app.include_router(r_tokens)
    return app


setup_logging()
app = create_app()
