"""Error taxonomy for the chain-interaction core.

Every error carries a stable ``code`` (used by the HTTP layer) and a
``message`` that is safe to show to the user as-is.

Malformed *elements* of a view response never raise; they are dropped by the
validator. Everything else surfaces through one of these.
"""


class SkillTokenError(Exception):
    code = "skilltoken_error"
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None, *, tx_hash: str | None = None) -> None:
        self.message = message or self.default_message
        # Set when the failure happened after a transaction was already confirmed.
        self.tx_hash = tx_hash
        super().__init__(self.message)

    @property
    def minted(self) -> bool:
        return self.tx_hash is not None


class ConfigurationMissing(SkillTokenError):
    code = "configuration_missing"
    status_code = 500
    default_message = "Module address not configured"


class WalletUnavailable(SkillTokenError):
    code = "wallet_unavailable"
    status_code = 503
    default_message = "Wallet provider not detected. Please install a compatible wallet."


class AccountUnavailable(SkillTokenError):
    code = "account_unavailable"
    status_code = 502
    default_message = "Could not get wallet address"


class NotConnected(SkillTokenError):
    code = "not_connected"
    status_code = 409
    default_message = "Please connect your wallet first"


class InvalidResponseFormat(SkillTokenError):
    code = "invalid_response_format"
    status_code = 502
    default_message = "Received invalid data format from contract"


class LedgerRequestFailed(SkillTokenError):
    code = "ledger_request_failed"
    status_code = 502
    default_message = "Failed to load skill tokens"


class SubmissionRejected(SkillTokenError):
    code = "submission_rejected"
    status_code = 400
    default_message = "Transaction was rejected by the wallet"


class MissingTransactionHash(SkillTokenError):
    code = "missing_transaction_hash"
    status_code = 502
    default_message = "No transaction hash received"


class TransactionTimeout(SkillTokenError):
    code = "transaction_timeout"
    status_code = 504
    default_message = "Transaction confirmation timed out"


class MintInProgress(SkillTokenError):
    code = "mint_in_progress"
    status_code = 409
    default_message = "A mint is already in progress"


class ResyncFailed(SkillTokenError):
    """The mint was confirmed but reloading tokens afterwards failed."""
    code = "resync_failed"
    status_code = 502
    default_message = "Token minted, but refreshing your tokens failed"


__all__ = [
    "AccountUnavailable",
    "ConfigurationMissing",
    "InvalidResponseFormat",
    "LedgerRequestFailed",
    "MintInProgress",
    "MissingTransactionHash",
    "NotConnected",
    "ResyncFailed",
    "SkillTokenError",
    "SubmissionRejected",
    "TransactionTimeout",
    "WalletUnavailable",
]
