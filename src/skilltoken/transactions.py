"""
Transaction lifecycle: submit through the wallet, wait for confirmation,
then resync the token store.

The confirmation wait is a bounded retry loop (10 attempts, 10 s each, 2 s
between). After confirmation the account is fetched again from the wallet
rather than reusing the submitting address, since the user may have switched
accounts during the wait. Failures after confirmation carry the transaction
hash so they are never mistaken for a failed mint.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

import skilltoken.constants as C
from skilltoken.errors import (
    AccountUnavailable,
    NotConnected,
    ResyncFailed,
    SkillTokenError,
    TransactionTimeout,
)
from skilltoken.ledger import LedgerClient
from skilltoken.models import (
    EntryFunctionPayload,
    PendingTransaction,
    SkillToken,
    WalletSession,
    normalize_address,
)
from skilltoken.retry import Liveness, RetriesExhausted, RetryPolicy, Sleep, run_with_retry
from skilltoken.store import TokenStore
from skilltoken.wallet import WalletBridge

log = logging.getLogger("skilltoken.transactions")

DEFAULT_POLICY = RetryPolicy(
    max_attempts=C.CONFIRM_ATTEMPTS,
    delay=C.CONFIRM_RETRY_DELAY,
    attempt_timeout=C.CONFIRM_ATTEMPT_TIMEOUT,
)


@dataclass(frozen=True, slots=True)
class Confirmed:
    tx_hash: str
    attempts: int
    address: str
    tokens: list[SkillToken]


class TransactionLifecycleManager:
    def __init__(
        self,
        bridge: WalletBridge,
        ledger: LedgerClient,
        store: TokenStore,
        *,
        policy: RetryPolicy = DEFAULT_POLICY,
        on_pending: Callable[[PendingTransaction | None], None] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.bridge = bridge
        self.ledger = ledger
        self.store = store
        self.policy = policy
        self.on_pending = on_pending
        self.sleep = sleep

    def _publish(self, pending: PendingTransaction | None) -> None:
        if self.on_pending is not None:
            self.on_pending(pending)

    async def _confirm(self, pending: PendingTransaction, liveness: Liveness | None) -> None:
        def failed(attempt: int, e: BaseException) -> None:
            pending.attempts = attempt
            log.debug("Confirmation check %s/%s for %s failed: %r", attempt, self.policy.max_attempts, pending.hash, e)

        async def check() -> None:
            await self.ledger.wait_for_transaction(pending.hash, timeout=self.policy.attempt_timeout or C.CONFIRM_ATTEMPT_TIMEOUT)

        try:
            await run_with_retry(
                check,
                self.policy,
                liveness=liveness,
                on_failure=failed,
                sleep=self.sleep,
                label=f"confirm {pending.hash}",
            )
        except RetriesExhausted as e:
            pending.state = C.TxState.TIMED_OUT
            raise TransactionTimeout() from e.last_error

        pending.attempts += 1
        pending.confirmed = True
        pending.state = C.TxState.CONFIRMED
        log.info("Transaction confirmed: %s after %d attempt(s)", pending.hash, pending.attempts)

    async def submit_and_confirm(
        self,
        payload: EntryFunctionPayload,
        session: WalletSession | None,
        *,
        liveness: Liveness | None = None,
    ) -> Confirmed:
        if session is None or not session.is_connected:
            raise NotConnected()

        pending = await self.bridge.sign_and_submit(payload)
        self._publish(pending)
        try:
            await self._confirm(pending, liveness)
        finally:
            self._publish(None)

        try:
            address = normalize_address(await self.bridge.get_account())
        except Exception as e:
            log.error("Could not get current account address after %s: %r", pending.hash, e)
            raise AccountUnavailable(
                "Transaction confirmed, but the current account could not be read to refresh tokens",
                tx_hash=pending.hash,
            ) from e

        try:
            tokens = await self.store.sync(address, liveness=liveness)
        except SkillTokenError as e:
            raise ResyncFailed(f"Token minted, but refreshing your tokens failed: {e.message}", tx_hash=pending.hash) from e

        return Confirmed(tx_hash=pending.hash, attempts=pending.attempts, address=address, tokens=tokens)
