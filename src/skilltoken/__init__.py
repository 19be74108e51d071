"""Connect a wallet, list skill tokens held on the ledger, and mint new ones."""

__version__ = "0.1.0"
