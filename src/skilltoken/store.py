"""Process-local cache of the connected address's skill tokens."""
import logging
import time

from skilltoken.config import require_module_address
from skilltoken.errors import LedgerRequestFailed, SkillTokenError
from skilltoken.ledger import LedgerClient
from skilltoken.models import SkillToken, ViewRequest, normalize_address
from skilltoken.retry import Cancelled, Liveness
from skilltoken.validator import Clock, validate_response

log = logging.getLogger("skilltoken.store")


class TokenStore:
    """Rebuilt wholesale on every sync, cleared on every failed one."""

    def __init__(self, ledger: LedgerClient, module_address: str | None, *, clock: Clock = time.time) -> None:
        self.ledger = ledger
        self.module_address = module_address
        self.clock = clock
        self._tokens: tuple[SkillToken, ...] = ()
        self._address: str | None = None

    @property
    def tokens(self) -> list[SkillToken]:
        return list(self._tokens)

    @property
    def address(self) -> str | None:
        return self._address

    def clear(self) -> None:
        self._tokens = ()
        self._address = None

    async def sync(self, address: str, *, liveness: Liveness | None = None) -> list[SkillToken]:
        try:
            module_address = require_module_address(self.module_address)
            normalized = normalize_address(address)
            response = await self.ledger.view(ViewRequest.user_tokens(module_address, normalized))
            if liveness is not None:
                liveness.check()
            tokens = validate_response(response, clock=self.clock)
        except Cancelled:
            raise
        except SkillTokenError:
            self.clear()
            raise
        except Exception as e:
            log.error("Error loading tokens for %s: %r", address, e)
            self.clear()
            raise LedgerRequestFailed() from e

        self._tokens = tuple(tokens)
        self._address = normalized
        log.info("Loaded %d skill tokens for %s", len(tokens), normalized)
        return self.tokens
