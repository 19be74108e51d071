"""Domain data structures for skill tokens, wallet sessions and ledger calls."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import skilltoken.constants as C


def normalize_address(address: str) -> str:
    """Prefix ``0x`` when missing. Idempotent; only the prefix is lowercased."""
    address = address.strip()
    if address[:2].lower() == "0x":
        address = address[2:]
    return f"0x{address}"


def function_id(module_address: str, function: str) -> str:
    return f"{module_address}::{C.MODULE_NAME}::{function}"


@dataclass(frozen=True, slots=True)
class SkillToken:
    """A validated skill credential read from the ledger.

    ``created_at`` stays string-encoded milliseconds, as the ledger reports it.
    """

    token_id: str
    skill_name: str
    skill_level: int
    owner: str
    endorsements: int
    created_at: str

    def __post_init__(self) -> None:
        if not self.token_id:
            raise ValueError("SkillToken requires a non-empty token_id")

    @property
    def created_date(self) -> datetime | None:
        try:
            return datetime.fromtimestamp(int(self.created_at) / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None

    def to_dict(self) -> dict[str, Any]:
        created = self.created_date
        return {
            "token_id": self.token_id,
            "skill_name": self.skill_name,
            "skill_level": self.skill_level,
            "owner": self.owner,
            "endorsements": self.endorsements,
            "created_at": self.created_at,
            "created_date": created.date().isoformat() if created else None,
        }


@dataclass(frozen=True, slots=True)
class Rejected:
    """Why a raw record did not become a SkillToken."""

    reason: str
    raw: Any = None


@dataclass(frozen=True, slots=True)
class WalletSession:
    address: str
    is_connected: bool = True

    @classmethod
    def from_account(cls, address: str) -> "WalletSession":
        return cls(address=normalize_address(address), is_connected=True)

    @property
    def short_address(self) -> str:
        return f"{self.address[:6]}...{self.address[-4:]}"


@dataclass(slots=True)
class PendingTransaction:
    hash: str
    confirmed: bool = False
    attempts: int = 0
    state: C.TxState = C.TxState.SUBMITTED


@dataclass(frozen=True, slots=True)
class ViewRequest:
    function: str
    type_arguments: list[str] = field(default_factory=list)
    arguments: list[Any] = field(default_factory=list)

    @classmethod
    def user_tokens(cls, module_address: str, address: str) -> "ViewRequest":
        return cls(
            function=function_id(module_address, C.VIEW_FUNCTION),
            arguments=[normalize_address(address)],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": list(self.arguments),
        }


@dataclass(frozen=True, slots=True)
class EntryFunctionPayload:
    function: str
    type_arguments: list[str] = field(default_factory=list)
    arguments: list[Any] = field(default_factory=list)
    type: str = C.ENTRY_FUNCTION_PAYLOAD

    @classmethod
    def mint(cls, module_address: str, skill_name: str, skill_level: int) -> "EntryFunctionPayload":
        return cls(
            function=function_id(module_address, C.MINT_FUNCTION),
            arguments=[skill_name, skill_level],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": list(self.arguments),
        }
