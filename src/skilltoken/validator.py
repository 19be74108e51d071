"""
Validation boundary between raw view-call responses and SkillToken.

The ledger returns loosely typed JSON: numbers may arrive as strings, fields
may be missing, and the whole response may be absent or the wrong shape.
``validate_token`` turns one raw record into ``SkillToken | Rejected``;
``validate_response`` applies it to a whole response with partial-failure
semantics (bad records are dropped, good siblings are kept in order).
"""
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from skilltoken.errors import InvalidResponseFormat
from skilltoken.models import Rejected, SkillToken

log = logging.getLogger("skilltoken.validator")

Clock = Callable[[], float]


class _Unparseable(ValueError):
    pass


def _now_ms(clock: Clock) -> str:
    return str(int(clock() * 1000))


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise _Unparseable(f"non-integral number {value!r}")
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return 0
        try:
            return int(s)
        except ValueError:
            pass
        try:
            f = float(s)
        except ValueError:
            raise _Unparseable(f"not a number {value!r}") from None
        if f.is_integer():
            return int(f)
        raise _Unparseable(f"non-integral number {value!r}")
    raise _Unparseable(f"cannot read {type(value).__name__} as a number")


def _as_str(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple, set)):
        raise _Unparseable(f"cannot read {type(value).__name__} as a string")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _field(record: Mapping, key: str, coerce: Callable[[Any], Any], default: Any) -> Any:
    value = record.get(key)
    if value is None:
        return default
    try:
        return coerce(value)
    except _Unparseable as e:
        raise _Unparseable(f"{key}: {e}") from None


def _number(record: Mapping, key: str) -> int:
    try:
        return _field(record, key, _as_int, 0)
    except _Unparseable as e:
        log.warning("Token %s: %s, using 0", record.get("token_id"), e)
        return 0


def validate_token(raw: Any, *, clock: Clock = time.time) -> SkillToken | Rejected:
    """Validate a single raw token record. Never raises."""
    if not isinstance(raw, Mapping):
        return Rejected(f"expected an object, got {type(raw).__name__}", raw)

    try:
        token_id = _field(raw, "token_id", _as_str, "")
        skill_name = _field(raw, "skill_name", _as_str, "")
        skill_level = _number(raw, "skill_level")
        owner = _field(raw, "owner", _as_str, "")
        endorsements = _number(raw, "endorsements")
        # Only an absent created_at gets "now"; a malformed one is kept as-is.
        created_at = _field(raw, "created_at", _as_str, None)
    except _Unparseable as e:
        return Rejected(str(e), raw)

    if not token_id:
        return Rejected("missing required token_id", raw)
    if endorsements < 0:
        log.warning("Token %s: negative endorsements %d, using 0", token_id, endorsements)
        endorsements = 0

    return SkillToken(
        token_id=token_id,
        skill_name=skill_name,
        skill_level=skill_level,
        owner=owner,
        endorsements=endorsements,
        created_at=created_at if created_at is not None else _now_ms(clock),
    )


def _describe(response: Any) -> None:
    log.debug("Response type: %s", type(response).__name__)
    if isinstance(response, (list, tuple)):
        log.debug("Response length: %d", len(response))
        if response:
            log.debug("First item: %r", response[0])
    else:
        log.debug("Raw response: %r", response)


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def validate_response(response: Any, *, clock: Clock = time.time) -> list[SkillToken]:
    """Validate a whole view-call response.

    ``None`` is an empty collection. Anything else that is not a sequence
    raises InvalidResponseFormat.
    """
    _describe(response)
    if response is None:
        log.warning("Received null response from view function")
        return []
    if not is_sequence(response):
        log.error("Unexpected response format: %r", response)
        raise InvalidResponseFormat()

    tokens: list[SkillToken] = []
    for raw in response:
        if raw is None:
            continue
        result = validate_token(raw, clock=clock)
        if isinstance(result, Rejected):
            log.warning("Invalid token data received (%s): %r", result.reason, result.raw)
            continue
        tokens.append(result)
    log.debug("Validated %d of %d token records", len(tokens), len(response))
    return tokens
