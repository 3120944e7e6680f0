# Overview: Human-readable identifiers for transactions and items.

"""
Numbering Service

FORMATS:
    Transaction number: {PREFIX}-{YYYYMMDD}-{XXXX}   e.g. IN-20260114-7QX2
    Item SKU:           {CATG}-{XXXXXX}              e.g. ELEC-K2M9QA

X is an uppercase base36 character. Both generators take an `exists`
predicate and re-roll on collision, giving up with ConflictError after
NUMBER_MAX_ATTEMPTS tries. The unique constraints on the number/sku
columns remain the last line of defence.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from typing import Callable, Optional

from flask import current_app

from ..errors import ConflictError
from ..extensions import db
from ..models import Item
from ..time_utils import date_stamp

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
NUMBER_TOKEN_LENGTH = 4
SKU_TOKEN_LENGTH = 6
SKU_PREFIX_LENGTH = 4
DEFAULT_SKU_PREFIX = "ITEM"
DEFAULT_MAX_ATTEMPTS = 10


def random_token(length: int) -> str:
    """Uppercase base36 token of the given length."""
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def _max_attempts() -> int:
    return int(current_app.config.get("NUMBER_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))


def _generate_unique(build: Callable[[], str], exists: Optional[Callable[[str], bool]], what: str) -> str:
    if exists is None:
        return build()

    attempts = _max_attempts()
    for attempt in range(1, attempts + 1):
        candidate = build()
        if not exists(candidate):
            return candidate
        logger.warning("Generated %s %s already in use (attempt %d/%d)", what, candidate, attempt, attempts)

    raise ConflictError(f"Could not generate a unique {what} after {attempts} attempts")


def next_number(prefix: str, exists: Optional[Callable[[str], bool]] = None) -> str:
    """
    Generate a transaction number: {PREFIX}-{YYYYMMDD}-{4 base36}.

    Args:
        prefix: Kind prefix (IN, OUT, REQ, PO)
        exists: Optional predicate; when given, candidates it accepts are re-rolled

    Raises:
        ConflictError: If every attempt collided
    """
    if not prefix:
        raise ValueError("prefix is required")
    prefix = prefix.upper()

    def _build() -> str:
        return f"{prefix}-{date_stamp()}-{random_token(NUMBER_TOKEN_LENGTH)}"

    return _generate_unique(_build, exists, "transaction number")


def sku_prefix(category_name: str | None) -> str:
    """First four letters of the category name, uppercased (ITEM if none)."""
    letters = re.sub(r"[^A-Za-z]", "", category_name or "")
    return letters[:SKU_PREFIX_LENGTH].upper() or DEFAULT_SKU_PREFIX


def sku_exists(sku: str) -> bool:
    return db.session.query(Item.id).filter(Item.sku == sku).first() is not None


def next_sku(category_name: str | None, exists: Optional[Callable[[str], bool]] = None) -> str:
    """
    Generate an item SKU unique among existing items.

    Raises:
        ConflictError: If every attempt collided
    """
    prefix = sku_prefix(category_name)

    def _build() -> str:
        return f"{prefix}-{random_token(SKU_TOKEN_LENGTH)}"

    return _generate_unique(_build, exists or sku_exists, "SKU")
