from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from phoneshop.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Numeric(10, 2) columns hold at most 99,999,999.99
MAX_AMOUNT = Decimal("99999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate phone number)."""


class NotFoundError(LookupError):
    """404-level missing or soft-deleted entity."""


def to_money(value) -> Decimal:
    """Quantize a Decimal (or None) to two places. None is treated as zero."""
    if value is None:
        return ZERO
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value: Any, field_name: str = "amount", *, allow_zero: bool = True) -> Decimal:
    """
    Parse a client-supplied monetary amount into a two-place Decimal.

    Accepts ints, decimal strings and JSON numbers. Floats go through str()
    so 19.99 stays 19.99. More than two fractional digits is rejected rather
    than rounded: a silently rounded payment is a wrong payment.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a decimal amount")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field_name} must be a decimal amount")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a decimal amount")

    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a finite amount")
    if amount < 0 or (not allow_zero and amount == 0):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValidationError(f"{field_name} must be {bound}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field_name} cannot exceed {MAX_AMOUNT}")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field_name} cannot have more than 2 decimal places")
    return amount.quantize(CENT)


def parse_choice(value: Any, choices, field_name: str) -> str:
    if not isinstance(value, str) or value.strip().upper() not in choices:
        raise ValidationError(f"{field_name} must be one of {sorted(choices)}")
    return value.strip().upper()


def parse_date(value: Any, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO-8601 datetime")


def clamp_paging(limit: int | None, offset: int | None, *, default_limit: int = 50, max_limit: int = 500) -> tuple[int, int]:
    limit = default_limit if limit is None else limit
    offset = 0 if offset is None else offset
    if limit < 1:
        limit = 1
    if limit > max_limit:
        limit = max_limit
    if offset < 0:
        offset = 0
    return limit, offset


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: enumerated string columns and their allowed values
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, frozenset[str]] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Money columns
    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not stripped.lstrip("-").isdigit():
                raise ValidationError(f"{col.key} must be an integer")
            return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        dt = parse_date(value, col.key)
        if dt is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        return dt

    # Calendar dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be an ISO-8601 date")
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 date")
        if d is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 date")
        return d

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        if k in policy.choices:
            patch[k] = parse_choice(raw, policy.choices[k], k)
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        # Blank optional strings are stored as NULL
        if isinstance(val, str) and val == "" and col.nullable:
            val = None

        patch[k] = val

    return patch
