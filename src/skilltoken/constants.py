from typing import Final
from enum import StrEnum


class Availability(StrEnum):
    UNKNOWN     = "UNKNOWN"
    AVAILABLE   = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"


class TxState(StrEnum):
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    TIMED_OUT = "TIMED_OUT"


MODULE_NAME: Final = "skill_token"
VIEW_FUNCTION: Final = "get_user_tokens"
MINT_FUNCTION: Final = "mint_skill_token"
ENTRY_FUNCTION_PAYLOAD: Final = "entry_function_payload"

# Wallet provider detection
PROVIDER_POLL_INTERVAL = 0.5
PROVIDER_POLL_ATTEMPTS = 10

# Transaction confirmation
CONFIRM_ATTEMPTS = 10
CONFIRM_ATTEMPT_TIMEOUT = 10.0
CONFIRM_RETRY_DELAY = 2.0
CONFIRM_POLL_INTERVAL = 0.5

RPC_TIMEOUT = 10.0
SHUTDOWN_GRACE = 2.0

MIN_SKILL_LEVEL = 1
MAX_SKILL_LEVEL = 100

__all__ = [
    "CONFIRM_ATTEMPTS",
    "CONFIRM_ATTEMPT_TIMEOUT",
    "CONFIRM_POLL_INTERVAL",
    "CONFIRM_RETRY_DELAY",
    "ENTRY_FUNCTION_PAYLOAD",
    "MAX_SKILL_LEVEL",
    "MIN_SKILL_LEVEL",
    "MINT_FUNCTION",
    "MODULE_NAME",
    "PROVIDER_POLL_ATTEMPTS",
    "PROVIDER_POLL_INTERVAL",
    "RPC_TIMEOUT",
    "SHUTDOWN_GRACE",
    "VIEW_FUNCTION",

    ######
    "Availability",
    "TxState",
]
