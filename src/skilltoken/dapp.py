"""
Coordinating context for one user-facing session.

SkillTokenDapp owns the state record (session, availability, tokens, pending
transaction, error, busy flags) and is the only writer of it. Components talk
back through return values and callbacks; every SkillTokenError that escapes
an operation is recorded as the user-visible ``error`` before propagating.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any

import skilltoken.constants as C
from skilltoken.config import require_module_address
from skilltoken.errors import MintInProgress, NotConnected, SkillTokenError, WalletUnavailable
from skilltoken.ledger import LedgerClient
from skilltoken.models import EntryFunctionPayload, PendingTransaction, SkillToken, WalletSession
from skilltoken.monitor import AvailabilityMonitor
from skilltoken.retry import Cancelled, Liveness, RetryPolicy, Sleep
from skilltoken.store import TokenStore
from skilltoken.transactions import Confirmed, TransactionLifecycleManager
from skilltoken.wallet import ProviderSlot, WalletBridge

log = logging.getLogger("skilltoken.dapp")


@dataclass
class DappState:
    session: WalletSession | None = None
    availability: C.Availability = C.Availability.UNKNOWN
    tokens: list[SkillToken] = field(default_factory=list)
    pending_tx: PendingTransaction | None = None
    error: str | None = None
    checking_wallet: bool = False
    loading: bool = False
    minting: bool = False


class SkillTokenDapp:
    def __init__(
        self,
        slot: ProviderSlot,
        ledger: LedgerClient,
        module_address: str | None,
        *,
        monitor_policy: RetryPolicy | None = None,
        confirm_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.module_address = module_address
        self.state = DappState()
        self.bridge = WalletBridge(slot)
        self.store = TokenStore(ledger, module_address)

        monitor_kw: dict[str, Any] = {"policy": monitor_policy} if monitor_policy else {}
        self.monitor = AvailabilityMonitor(
            self.bridge,
            on_state=self._set_availability,
            on_session=self._adopt_session,
            on_error=self._set_error,
            sleep=sleep,
            **monitor_kw,
        )
        confirm_kw: dict[str, Any] = {"policy": confirm_policy} if confirm_policy else {}
        self.transactions = TransactionLifecycleManager(
            self.bridge,
            ledger,
            self.store,
            on_pending=self._set_pending,
            sleep=sleep,
            **confirm_kw,
        )

        self._liveness: Liveness | None = None
        self._monitor_task: asyncio.Task | None = None

    # ---- callbacks --------------------------------------------------------

    def _set_availability(self, availability: C.Availability) -> None:
        self.state.availability = availability

    def _set_error(self, message: str) -> None:
        self.state.error = message

    def _set_pending(self, pending: PendingTransaction | None) -> None:
        self.state.pending_tx = pending

    async def _adopt_session(self, address: str, liveness: Liveness) -> None:
        self.state.session = WalletSession.from_account(address)
        log.info("Found existing wallet session: %s", self.state.session.address)
        with contextlib.suppress(SkillTokenError):
            await self.load_tokens(self.state.session.address, liveness=liveness)

    # ---- lifecycle --------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Start wallet detection in the background. Safe to call again after close()."""
        if self._liveness is not None:
            self._liveness.cancel()
        self._liveness = Liveness()
        self.monitor.reset()
        self.state.availability = C.Availability.UNKNOWN
        self.state.checking_wallet = True
        self._monitor_task = asyncio.create_task(self._detect(self._liveness), name="availability_monitor")
        return self._monitor_task

    async def _detect(self, liveness: Liveness) -> C.Availability:
        try:
            return await self.monitor.run(liveness)
        except Cancelled:
            log.info("Wallet detection stopped")
            return self.monitor.state
        except Exception:
            log.exception("Wallet detection error")
            if liveness.alive:
                self.state.error = "Failed to detect wallet status"
                self.state.availability = C.Availability.UNAVAILABLE
            return C.Availability.UNAVAILABLE
        finally:
            if liveness.alive:
                self.state.checking_wallet = False

    async def close(self, grace: float = C.SHUTDOWN_GRACE) -> None:
        if self._liveness is not None:
            self._liveness.cancel()
        task, self._monitor_task = self._monitor_task, None
        if task is not None and not task.done():
            with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(task, timeout=grace)

    # ---- operations -------------------------------------------------------

    async def connect_wallet(self) -> WalletSession:
        self.state.error = None
        try:
            await self.bridge.connect()
            address = await self.bridge.get_account()
        except SkillTokenError as e:
            self.state.error = e.message
            raise
        except Exception as e:
            log.error("Wallet connection error: %r", e)
            err = WalletUnavailable("Failed to connect wallet. Please try again.")
            self.state.error = err.message
            raise err from e
        session = WalletSession.from_account(address)
        log.info("Connected wallet address: %s", session.address)
        self.state.session = session
        # Load failures are recorded in state.error; the connection itself stands.
        with contextlib.suppress(SkillTokenError):
            await self.load_tokens(session.address)
        return session

    async def load_tokens(self, address: str | None = None, *, liveness: Liveness | None = None) -> list[SkillToken]:
        if address is None:
            if self.state.session is None:
                self.state.error = NotConnected.default_message
                raise NotConnected()
            address = self.state.session.address

        self.state.loading = True
        self.state.error = None
        try:
            tokens = await self.store.sync(address, liveness=liveness)
        except Cancelled:
            raise
        except SkillTokenError as e:
            if liveness is None or liveness.alive:
                self.state.error = e.message
                self.state.tokens = []
            raise
        finally:
            if liveness is None or liveness.alive:
                self.state.loading = False
        self.state.tokens = tokens
        return tokens

    async def mint(self, skill_name: str, skill_level: int) -> Confirmed:
        if self.state.minting:
            raise MintInProgress()
        self.state.minting = True
        self.state.error = None
        try:
            if not self.bridge.available():
                raise WalletUnavailable("Wallet not connected")
            payload = EntryFunctionPayload.mint(require_module_address(self.module_address), skill_name, skill_level)
            result = await self.transactions.submit_and_confirm(payload, self.state.session)
        except SkillTokenError as e:
            log.error("Minting error: %s", e.message)
            self.state.error = e.message
            if e.minted:
                # The resync cleared the store; mirror it.
                self.state.tokens = self.store.tokens
            raise
        finally:
            self.state.minting = False

        self.state.session = WalletSession.from_account(result.address)
        self.state.tokens = result.tokens
        return result

    def snapshot(self) -> dict[str, Any]:
        s = self.state
        return {
            "availability": s.availability.value,
            "checking_wallet": s.checking_wallet,
            "session": None if s.session is None else {
                "address": s.session.address,
                "short_address": s.session.short_address,
                "is_connected": s.session.is_connected,
            },
            "tokens": [t.to_dict() for t in s.tokens],
            "pending_tx": None if s.pending_tx is None else {
                "hash": s.pending_tx.hash,
                "attempts": s.pending_tx.attempts,
                "state": s.pending_tx.state.value,
            },
            "loading": s.loading,
            "minting": s.minting,
            "error": s.error,
        }
