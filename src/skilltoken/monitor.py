"""
Wallet provider detection.

The provider may show up late (or never), so the monitor polls the bridge a
bounded number of times. Once it is there the monitor looks for a session the
wallet already remembers, so the user doesn't have to reconnect.

State only moves UNKNOWN -> AVAILABLE or UNKNOWN -> UNAVAILABLE. Results are
reported through callbacks, and only while the liveness token is set.
"""
import asyncio
import logging
from typing import Awaitable, Callable

import skilltoken.constants as C
from skilltoken.retry import Liveness, RetriesExhausted, RetryPolicy, Sleep, run_with_retry
from skilltoken.wallet import WalletBridge

log = logging.getLogger("skilltoken.monitor")

UNAVAILABLE_MESSAGE = "Wallet provider not detected. Please install a compatible wallet and retry."

DEFAULT_POLICY = RetryPolicy(max_attempts=C.PROVIDER_POLL_ATTEMPTS, delay=C.PROVIDER_POLL_INTERVAL)


class ProviderNotFound(Exception):
    pass


class AvailabilityMonitor:
    def __init__(
        self,
        bridge: WalletBridge,
        *,
        policy: RetryPolicy = DEFAULT_POLICY,
        on_state: Callable[[C.Availability], None] | None = None,
        on_session: Callable[[str, Liveness], Awaitable[None]] | None = None,
        on_error: Callable[[str], None] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.bridge = bridge
        self.policy = policy
        self.on_state = on_state
        self.on_session = on_session
        self.on_error = on_error
        self.sleep = sleep
        self.state = C.Availability.UNKNOWN
        self.polls = 0

    def reset(self) -> None:
        self.state = C.Availability.UNKNOWN
        self.polls = 0

    def _transition(self, state: C.Availability) -> None:
        if self.state is not C.Availability.UNKNOWN:
            return
        log.info("Wallet provider %s", state.lower())
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    async def _probe(self) -> None:
        self.polls += 1
        if not self.bridge.available():
            raise ProviderNotFound()

    async def run(self, liveness: Liveness) -> C.Availability:
        """Poll for the provider. Raises retry.Cancelled if torn down."""
        try:
            await run_with_retry(self._probe, self.policy, liveness=liveness, sleep=self.sleep, label="provider poll")
        except RetriesExhausted:
            liveness.check()
            self._transition(C.Availability.UNAVAILABLE)
            if self.on_error is not None:
                self.on_error(UNAVAILABLE_MESSAGE)
            return self.state

        self._transition(C.Availability.AVAILABLE)
        await self.discover_session(liveness)
        return self.state

    async def discover_session(self, liveness: Liveness) -> str | None:
        """Adopt a connection the wallet already has. Failures are only logged."""
        try:
            connected = await self.bridge.is_connected()
            liveness.check()
            if not connected:
                return None
            address = await self.bridge.get_account()
            liveness.check()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not liveness.alive:
                raise
            log.error("Connection check error: %r", e)
            return None

        if self.on_session is not None:
            await self.on_session(address, liveness)
        return address
